import logging
from typing import Any, Awaitable, Callable

from lapnotes.models.schemas import Note, Segment
from lapnotes.services.capture import (
    DEFAULT_CONSTRAINTS,
    FALLBACK_CONSTRAINTS,
    WAV_CONTENT_TYPE,
    CaptureDevice,
    CapturedAudio,
)
from lapnotes.services.errors import CaptureError, DeviceAcquisitionError, TranscriptionServiceError
from lapnotes.services.transcript import NO_SPEECH, transcription_error_marker
from lapnotes.services.transcription import TranscriptionService
from lapnotes.services.usage import apply_usage

logger = logging.getLogger(__name__)


class SegmentOrchestrator:
    """Owns the capture device for a session and transcribes what it records.

    The device is opened lazily on the first segment, reused for every
    lap, and released only when the session goes back to idle.
    """

    def __init__(self, device: CaptureDevice, transcriber: TranscriptionService):
        self.device = device
        self.transcriber = transcriber
        self._handle: Any = None

    async def _acquire(self) -> Any:
        try:
            return await self.device.acquire(DEFAULT_CONSTRAINTS)
        except DeviceAcquisitionError as e:
            logger.warning("Capture device failed with default settings (%s); retrying with fallback", e)
        return await self.device.acquire(FALLBACK_CONSTRAINTS)

    async def begin_segment(self) -> Awaitable[CapturedAudio]:
        if self._handle is None:
            self._handle = await self._acquire()
        return self.device.start(self._handle)

    async def collect(self, delivery: Awaitable[CapturedAudio]) -> CapturedAudio:
        try:
            return await delivery
        except CaptureError as e:
            logger.warning("Capture failed mid-segment, treating it as empty: %s", e)
            return CapturedAudio(b"", WAV_CONTENT_TYPE)

    def pause(self) -> None:
        if self._handle is not None:
            self.device.pause(self._handle)

    def resume(self) -> None:
        if self._handle is not None:
            self.device.resume(self._handle)

    def request_stop(self) -> None:
        if self._handle is not None:
            self.device.stop(self._handle)

    def level(self) -> float:
        if self._handle is None:
            return 0.0
        return self.device.level(self._handle)

    def release(self) -> None:
        if self._handle is None:
            return
        handle, self._handle = self._handle, None
        self.device.release(handle)

    async def transcribe(
        self,
        segment: Segment,
        note: Note,
        on_status: Callable[[str], None] | None = None,
    ) -> str:
        """Transcribe one segment, never raising for service failures.

        Failures come back as an inline error marker so the session can
        keep going with the next lap.
        """
        if on_status:
            on_status(f"Transcribing {segment.label}...")
        try:
            result = await self.transcriber.transcribe(segment.audio, segment.content_type)
        except TranscriptionServiceError as e:
            logger.warning("Transcription failed for %s: %s", segment.label, e)
            if on_status:
                on_status(f"Error transcribing {segment.label}.")
            return transcription_error_marker(str(e))

        apply_usage(note, result.usage)
        logger.info("Transcribed %s: %d bytes -> %d chars", segment.label, len(segment.audio), len(result.text))
        return result.text or NO_SPEECH
