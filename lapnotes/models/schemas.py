import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, computed_field

from lapnotes.services.usage import Usage, compute_cost


def _note_id() -> str:
    return f"note_{uuid.uuid4().hex[:12]}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    PAUSED = "paused"
    PROCESSING = "processing"


class PendingStop(str, Enum):
    LAP = "lap"
    STOP = "stop"


class PolishOutcome(str, Enum):
    POLISHED = "polished"
    EMPTY_TRANSCRIPT = "empty_transcript"
    EMPTY_RESPONSE = "empty_response"
    FAILED = "failed"


class Note(BaseModel):
    id: str = Field(default_factory=_note_id)
    raw_transcript: str = ""
    polished_text: str = ""
    polished_html: str = ""
    created_at: datetime = Field(default_factory=_utcnow)
    duration_ms: int = 0
    audio_size: int = 0  # bytes
    mode_id: str = "journal"
    prompt_tokens: int = 0
    completion_tokens: int = 0

    @computed_field
    @property
    def cost(self) -> float:
        return compute_cost(self.prompt_tokens, self.completion_tokens)


class Segment(BaseModel):
    audio: bytes
    content_type: str
    lap: int | None = None  # None for a single uploaded file
    start_ms: float = 0
    end_ms: float = 0

    @property
    def label(self) -> str:
        return f"Lap {self.lap}" if self.lap is not None else "file"


class ServiceResult(BaseModel):
    text: str = ""
    usage: Usage | None = None


class SessionStatus(BaseModel):
    state: SessionState = SessionState.IDLE
    step: str = ""
    error: str | None = None
    lap_count: int = 0
    elapsed_seconds: int = 0
    timer: str = "00:00.00"
    input_level: float = 0.0
    note_id: str | None = None
