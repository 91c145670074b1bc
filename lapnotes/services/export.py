from lapnotes.models.schemas import Note
from lapnotes.services.modes import ModeRegistry
from lapnotes.services.timing import format_duration, format_note_datetime, known_timezone

SIZE_UNITS = ["Bytes", "KB", "MB", "GB", "TB"]


def format_bytes(size: int, decimals: int = 2) -> str:
    if size <= 0:
        return "--"
    exponent = 0
    while exponent < len(SIZE_UNITS) - 1 and size >= 1024 ** (exponent + 1):
        exponent += 1
    value = round(size / 1024**exponent, max(decimals, 0))
    return f"{value:g} {SIZE_UNITS[exponent]}"


def format_metadata(note: Note, modes: ModeRegistry, timezone_name: str) -> str:
    """Plain-text metadata block for copying alongside a note."""
    return "\n".join(
        [
            f"Date & Time: {format_note_datetime(note.created_at, known_timezone(timezone_name))}",
            f"Recording Duration: {format_duration(note.duration_ms)}",
            f"Audio File Size: {format_bytes(note.audio_size)}",
            f"Processing Mode: {modes.lookup(note.mode_id).name}",
            f"Tokens (Prompt / Completion): {note.prompt_tokens} / {note.completion_tokens}",
            f"Estimated Cost (USD): ${note.cost:.5f}",
        ]
    )
