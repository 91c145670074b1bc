import io
import wave

import pytest

np = pytest.importorskip("numpy")
pytest.importorskip("pyaudio")

from lapnotes.services.audio_capture import encode_wav, rms_level  # noqa: E402
from lapnotes.services.capture import CaptureConstraints  # noqa: E402


def test_no_frames_means_no_audio():
    assert encode_wav([], CaptureConstraints()) == b""


def test_frames_are_wrapped_in_wav():
    frames = [np.zeros(1024, dtype=np.int16).tobytes(), np.ones(1024, dtype=np.int16).tobytes()]
    data = encode_wav(frames, CaptureConstraints(sample_rate=16000))
    with wave.open(io.BytesIO(data)) as wf:
        assert wf.getframerate() == 16000
        assert wf.getnchannels() == 1
        assert wf.getnframes() == 2048


def test_rms_level():
    assert rms_level(b"") == 0.0
    loud = np.full(512, 16384, dtype=np.int16).tobytes()
    assert rms_level(loud) == pytest.approx(0.5)
