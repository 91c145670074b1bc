from dataclasses import dataclass, field

from lapnotes.services.timing import format_duration

NO_SPEECH = "[No speech detected]"


def transcription_error_marker(message: str) -> str:
    return f"[Error during transcription: {message}]"


def lap_header(lap: int, start_ms: float, end_ms: float) -> str:
    return f"--- LAP {lap} ({format_duration(start_ms)} - {format_duration(end_ms)}) ---"


@dataclass
class LapEntry:
    lap: int
    start_ms: float
    end_ms: float
    text: str


@dataclass
class TranscriptAccumulator:
    """Raw transcript for one session, built up lap by lap."""

    text: str = ""
    entries: list[LapEntry] = field(default_factory=list)

    def append_lap(self, lap: int, start_ms: float, end_ms: float, text: str) -> str:
        body = text or NO_SPEECH
        block = f"{lap_header(lap, start_ms, end_ms)}\n\n{body}"
        self.text = f"{self.text}\n\n{block}" if self.text else block
        self.entries.append(LapEntry(lap, start_ms, end_ms, body))
        return self.text

    def replace(self, text: str) -> str:
        """Use a single transcription result as the whole buffer, without a lap header."""
        self.text = text or NO_SPEECH
        self.entries.clear()
        return self.text
