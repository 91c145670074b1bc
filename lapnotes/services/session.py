"""Segmented recording session: start/pause/resume/lap/stop over one capture device.

Lap and stop requests are latched and only acted on once the capture device
delivers the closed segment. While a segment is being transcribed or the
note polished, the session sits in PROCESSING and drops every intent.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from lapnotes.models.schemas import (
    Note,
    PendingStop,
    PolishOutcome,
    Segment,
    SessionState,
    SessionStatus,
)
from lapnotes.services.capture import CaptureDevice, CapturedAudio
from lapnotes.services.errors import CaptureError
from lapnotes.services.modes import DEFAULT_MODE_ID, ModeRegistry
from lapnotes.services.note_formatter import NoteFormatter, polish_note
from lapnotes.services.segments import SegmentOrchestrator
from lapnotes.services.timing import Clock, DurationTracker, format_live, monotonic_ms
from lapnotes.services.transcript import TranscriptAccumulator
from lapnotes.services.transcription import TranscriptionService

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "Europe/Warsaw"
TICK_INTERVAL = 0.05  # seconds


class Intent(str, Enum):
    START = "start"
    PAUSE = "pause"
    RESUME = "resume"
    LAP = "lap"
    STOP = "stop"
    UPLOAD = "upload"


# Which states each intent is honoured in. Anything else is dropped.
TRANSITIONS: dict[Intent, frozenset[SessionState]] = {
    Intent.START: frozenset({SessionState.IDLE}),
    Intent.UPLOAD: frozenset({SessionState.IDLE}),
    Intent.PAUSE: frozenset({SessionState.RECORDING}),
    Intent.RESUME: frozenset({SessionState.PAUSED}),
    Intent.LAP: frozenset({SessionState.RECORDING}),
    Intent.STOP: frozenset({SessionState.RECORDING, SessionState.PAUSED}),
}

POLISH_STEPS = {
    PolishOutcome.POLISHED: "Note polished. Ready for next recording.",
    PolishOutcome.EMPTY_TRANSCRIPT: "No transcription to polish",
    PolishOutcome.EMPTY_RESPONSE: "Polishing failed or returned empty.",
    PolishOutcome.FAILED: "Error polishing note. Please try again.",
}


@dataclass
class SessionContext:
    note: Note
    durations: DurationTracker
    transcript: TranscriptAccumulator = field(default_factory=TranscriptAccumulator)
    state: SessionState = SessionState.IDLE
    lap_count: int = 0
    pending_stop: PendingStop | None = None
    last_lap_end_ms: float = 0.0


def new_context(mode_id: str, clock: Clock) -> SessionContext:
    return SessionContext(note=Note(mode_id=mode_id), durations=DurationTracker(clock))


def accepts(context: SessionContext, intent: Intent) -> bool:
    if context.state not in TRANSITIONS[intent]:
        return False
    # A latched lap/stop is waiting on the device; nothing else may interleave.
    return context.pending_stop is None


class RecordingSession:
    def __init__(
        self,
        device: CaptureDevice,
        transcriber: TranscriptionService,
        formatter: NoteFormatter,
        modes: ModeRegistry | None = None,
        *,
        mode_id: str = DEFAULT_MODE_ID,
        timezone: str = DEFAULT_TIMEZONE,
        clock: Clock = monotonic_ms,
        on_status: Callable[[SessionStatus], None] | None = None,
        on_tick: Callable[[str], None] | None = None,
    ):
        self.modes = modes or ModeRegistry()
        self.mode_id = mode_id
        self.timezone = timezone
        self._orchestrator = SegmentOrchestrator(device, transcriber)
        self._formatter = formatter
        self._clock = clock
        self._on_status = on_status
        self._on_tick = on_tick
        self.context = new_context(mode_id, clock)
        self.status = SessionStatus(step="Ready to record", note_id=self.context.note.id)
        self._segment_task: asyncio.Task | None = None
        self._ticker: asyncio.Task | None = None

    # ---- Read-only views ----

    @property
    def state(self) -> SessionState:
        return self.context.state

    @property
    def note(self) -> Note:
        return self.context.note

    @property
    def ticking(self) -> bool:
        return self._ticker is not None and not self._ticker.done()

    def snapshot(self) -> SessionStatus:
        ctx = self.context
        return self.status.model_copy(
            update={
                "state": ctx.state,
                "lap_count": ctx.lap_count,
                "elapsed_seconds": int(ctx.durations.live_ms() // 1000),
                "input_level": self._orchestrator.level(),
                "note_id": ctx.note.id,
            }
        )

    # ---- Status reporting ----

    def _set_step(self, step: str) -> None:
        self.status.step = step
        if self._on_status:
            self._on_status(self.snapshot())

    def _set_error(self, message: str) -> None:
        self.status.error = message
        self._set_step(message)

    # ---- Live timer ----

    def _show_timer(self) -> None:
        self.status.timer = format_live(self.context.durations.live_ms())
        if self._on_tick:
            self._on_tick(self.status.timer)

    async def _tick(self) -> None:
        while True:
            await asyncio.sleep(TICK_INTERVAL)
            self._show_timer()

    def _start_ticker(self) -> None:
        self._stop_ticker()
        self._ticker = asyncio.create_task(self._tick())

    def _stop_ticker(self) -> None:
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None
            # Freeze the display at the time recorded so far.
            self._show_timer()

    # ---- Preferences ----

    def select_mode(self, mode_id: str) -> None:
        """Pick the mode for the next polish; a live session's note follows along."""
        self.mode_id = mode_id
        if self.context.state in (SessionState.RECORDING, SessionState.PAUSED):
            self.context.note.mode_id = mode_id

    def new_note(self) -> bool:
        """Start over with an empty note. A live session is asked to stop instead."""
        if self.context.state in (SessionState.RECORDING, SessionState.PAUSED):
            self.stop()
            return False
        if self.context.state is SessionState.PROCESSING:
            return False
        self.context = new_context(self.mode_id, self._clock)
        self.status = SessionStatus(step="Ready to record", note_id=self.context.note.id)
        return True

    # ---- Intents ----

    async def start(self) -> bool:
        """Begin a new session. Returns False if rejected or if the device could not be opened."""
        if not accepts(self.context, Intent.START):
            logger.debug("Ignoring start while %s", self.context.state.value)
            return False
        self.context = new_context(self.mode_id, self._clock)
        self.context.state = SessionState.PROCESSING
        self.status = SessionStatus(note_id=self.context.note.id)
        self._set_step("Requesting microphone...")
        return await self._begin_segment()

    def pause(self) -> bool:
        ctx = self.context
        if not accepts(ctx, Intent.PAUSE):
            return False
        self._orchestrator.pause()
        ctx.note.duration_ms = int(ctx.durations.fold())
        ctx.state = SessionState.PAUSED
        self._stop_ticker()
        self._set_step("Paused")
        return True

    def resume(self) -> bool:
        ctx = self.context
        if not accepts(ctx, Intent.RESUME):
            return False
        self._orchestrator.resume()
        ctx.durations.mark_active()
        ctx.state = SessionState.RECORDING
        self._start_ticker()
        self._set_step("Recording...")
        return True

    def lap(self) -> bool:
        return self._request_stop(Intent.LAP, PendingStop.LAP)

    def stop(self) -> bool:
        return self._request_stop(Intent.STOP, PendingStop.STOP)

    def _request_stop(self, intent: Intent, reason: PendingStop) -> bool:
        ctx = self.context
        if not accepts(ctx, intent):
            logger.debug("Ignoring %s while %s", intent.value, ctx.state.value)
            return False
        ctx.pending_stop = reason
        self._orchestrator.request_stop()
        return True

    def reserve_upload(self) -> bool:
        """Claim the session for a file upload; no other intent is honoured until it is processed."""
        if not accepts(self.context, Intent.UPLOAD):
            logger.debug("Ignoring upload while %s", self.context.state.value)
            return False
        self.context = new_context(self.mode_id, self._clock)
        self.context.state = SessionState.PROCESSING
        self.status = SessionStatus(note_id=self.context.note.id)
        self._set_step("Processing file...")
        return True

    async def transcribe_file(self, audio: bytes, content_type: str) -> bool:
        """Transcribe and polish a pre-recorded file as a one-shot note."""
        if not self.reserve_upload():
            return False
        await self.process_upload(audio, content_type)
        return True

    async def process_upload(self, audio: bytes, content_type: str) -> None:
        """Second half of ``transcribe_file``, run after ``reserve_upload`` succeeded."""
        ctx = self.context
        ctx.note.audio_size = len(audio)
        try:
            segment = Segment(audio=audio, content_type=content_type)
            text = await self._orchestrator.transcribe(segment, ctx.note, self._set_step)
            ctx.note.raw_transcript = ctx.transcript.replace(text)
            await self._finish()
        except Exception:
            logger.exception("Processing uploaded file failed")
            self._set_error("Error processing file.")
        finally:
            if ctx.state is SessionState.PROCESSING:
                self._go_idle()

    # ---- Segment lifecycle ----

    async def _begin_segment(self) -> bool:
        ctx = self.context
        try:
            delivery = await self._orchestrator.begin_segment()
        except CaptureError as e:
            logger.error("Could not start recording: %s", e)
            self._set_error(f"Error: {e}")
            self._go_idle()
            return False
        except Exception as e:
            logger.exception("Capture device failed while starting a segment")
            self._set_error(f"Error: {str(e) or type(e).__name__}")
            self._go_idle()
            return False
        ctx.state = SessionState.RECORDING
        ctx.durations.mark_active()
        self._start_ticker()
        self._set_step("Recording...")
        self._segment_task = asyncio.create_task(self._complete_segment(ctx, delivery))
        return True

    async def _complete_segment(self, ctx: SessionContext, delivery) -> None:
        captured = await self._orchestrator.collect(delivery)
        reason = ctx.pending_stop or PendingStop.STOP
        ctx.pending_stop = None
        ctx.state = SessionState.PROCESSING
        self._stop_ticker()
        end_ms = ctx.durations.fold()
        ctx.note.duration_ms = int(end_ms)
        try:
            if captured.audio:
                await self._process_lap(ctx, captured, end_ms)
            if reason is PendingStop.LAP:
                await self._begin_segment()
            else:
                await self._finish()
        except Exception:
            logger.exception("Segment processing failed")
            self._set_error("Error processing segment.")
        finally:
            if ctx.state is SessionState.PROCESSING:
                self._go_idle()

    async def _process_lap(self, ctx: SessionContext, captured: CapturedAudio, end_ms: float) -> None:
        ctx.lap_count += 1
        ctx.note.audio_size += len(captured.audio)
        segment = Segment(
            audio=captured.audio,
            content_type=captured.content_type,
            lap=ctx.lap_count,
            start_ms=ctx.last_lap_end_ms,
            end_ms=end_ms,
        )
        text = await self._orchestrator.transcribe(segment, ctx.note, self._set_step)
        ctx.note.raw_transcript = ctx.transcript.append_lap(segment.lap, segment.start_ms, segment.end_ms, text)
        ctx.last_lap_end_ms = end_ms

    async def _finish(self) -> None:
        ctx = self.context
        self._set_step("Polishing note...")
        outcome = await polish_note(
            ctx.note,
            ctx.transcript.text,
            self.modes.lookup(ctx.note.mode_id),
            self.timezone,
            self._formatter,
        )
        if outcome is PolishOutcome.FAILED:
            self._set_error(POLISH_STEPS[outcome])
        else:
            self._set_step(POLISH_STEPS[outcome])
        self._go_idle()

    def _go_idle(self) -> None:
        ctx = self.context
        self._stop_ticker()
        self._orchestrator.release()
        ctx.note.duration_ms = int(ctx.durations.fold())
        ctx.pending_stop = None
        ctx.state = SessionState.IDLE
        logger.info(
            "Session %s idle: %d lap(s), %d ms, %d bytes",
            ctx.note.id,
            ctx.lap_count,
            ctx.note.duration_ms,
            ctx.note.audio_size,
        )
        if self._on_status:
            self._on_status(self.snapshot())

    async def wait_processed(self) -> None:
        """Wait for the segment in flight to be delivered and handled."""
        if self._segment_task is not None:
            await self._segment_task

    async def aclose(self) -> None:
        self._stop_ticker()
        if self._segment_task is not None and not self._segment_task.done():
            self._segment_task.cancel()
            try:
                await self._segment_task
            except asyncio.CancelledError:
                pass
        self._orchestrator.release()
        self.context.state = SessionState.IDLE
