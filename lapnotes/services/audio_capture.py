import asyncio
import io
import logging
import threading
import wave

import numpy as np
import pyaudio

from lapnotes.services.capture import WAV_CONTENT_TYPE, CaptureConstraints, CapturedAudio
from lapnotes.services.errors import CaptureError, DeviceAcquisitionError

logger = logging.getLogger(__name__)

FORMAT = pyaudio.paInt16


def rms_level(data: bytes) -> float:
    """Root-mean-square level of a 16-bit PCM chunk, scaled to 0..1."""
    samples = np.frombuffer(data, dtype=np.int16).astype(np.float32)
    if len(samples) == 0:
        return 0.0
    return float(np.sqrt(np.mean(samples**2)) / 32768)


def encode_wav(frames: list[bytes], constraints: CaptureConstraints, sample_width: int = 2) -> bytes:
    """Wrap captured PCM frames in a WAV container. No frames means no audio."""
    if not frames:
        return b""
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wf:
        wf.setnchannels(constraints.channels)
        wf.setsampwidth(sample_width)
        wf.setframerate(constraints.sample_rate)
        wf.writeframes(b"".join(frames))
    return buffer.getvalue()


class MicrophoneHandle:
    def __init__(self, audio: pyaudio.PyAudio, stream, constraints: CaptureConstraints):
        self.audio = audio
        self.stream = stream
        self.constraints = constraints
        self.frames: list[bytes] = []
        self.is_recording = False
        self.is_paused = False
        self.level = 0.0
        self.thread: threading.Thread | None = None


def _deliver(delivery: asyncio.Future, result: CapturedAudio) -> None:
    if not delivery.done():
        delivery.set_result(result)


def _fail(delivery: asyncio.Future, error: Exception) -> None:
    if not delivery.done():
        delivery.set_exception(error)


class MicrophoneCapture:
    """Default-microphone capture through PyAudio, one WAV blob per segment."""

    async def acquire(self, constraints: CaptureConstraints) -> MicrophoneHandle:
        return await asyncio.to_thread(self._open, constraints)

    def _open(self, constraints: CaptureConstraints) -> MicrophoneHandle:
        audio = pyaudio.PyAudio()
        try:
            stream = audio.open(
                format=FORMAT,
                channels=constraints.channels,
                rate=constraints.sample_rate,
                input=True,
                input_device_index=constraints.input_device_index,
                frames_per_buffer=constraints.frames_per_buffer,
            )
        except (OSError, ValueError) as e:
            audio.terminate()
            raise DeviceAcquisitionError(f"Could not open microphone: {e}") from e
        logger.info(
            "Microphone opened at %d Hz, %d channel(s)",
            constraints.sample_rate,
            constraints.channels,
        )
        return MicrophoneHandle(audio, stream, constraints)

    def _record(self, handle: MicrophoneHandle, loop: asyncio.AbstractEventLoop, delivery: asyncio.Future):
        chunk = handle.constraints.frames_per_buffer
        try:
            while handle.is_recording:
                data = handle.stream.read(chunk, exception_on_overflow=False)
                if handle.is_paused:
                    continue
                handle.frames.append(data)
                handle.level = rms_level(data)
            audio = encode_wav(
                handle.frames,
                handle.constraints,
                handle.audio.get_sample_size(FORMAT),
            )
        except OSError as e:
            loop.call_soon_threadsafe(_fail, delivery, CaptureError(str(e)))
            return
        logger.debug("Segment closed with %d frames (%d bytes)", len(handle.frames), len(audio))
        loop.call_soon_threadsafe(_deliver, delivery, CapturedAudio(audio, WAV_CONTENT_TYPE))

    def start(self, handle: MicrophoneHandle) -> asyncio.Future:
        loop = asyncio.get_running_loop()
        delivery = loop.create_future()
        handle.frames = []
        handle.level = 0.0
        handle.is_paused = False
        handle.is_recording = True
        handle.thread = threading.Thread(
            target=self._record,
            args=(handle, loop, delivery),
            daemon=True,
        )
        handle.thread.start()
        return delivery

    def pause(self, handle: MicrophoneHandle) -> None:
        handle.is_paused = True
        handle.level = 0.0

    def resume(self, handle: MicrophoneHandle) -> None:
        handle.is_paused = False

    def stop(self, handle: MicrophoneHandle) -> None:
        handle.is_recording = False

    def level(self, handle: MicrophoneHandle) -> float:
        return 0.0 if handle.is_paused else handle.level

    def release(self, handle: MicrophoneHandle) -> None:
        """Close the stream and release PyAudio resources."""
        handle.is_recording = False
        if handle.thread:
            handle.thread.join(timeout=2)
        handle.stream.stop_stream()
        handle.stream.close()
        handle.audio.terminate()
        logger.info("Microphone released")
