import asyncio
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from conftest import FakeFormatter

from lapnotes.models.schemas import Note, PolishOutcome
from lapnotes.services.errors import PolishingServiceError
from lapnotes.services.modes import ModeRegistry
from lapnotes.services.note_formatter import (
    NO_TRANSCRIPT_HTML,
    NoteFormatter,
    build_polish_prompt,
    location_from_timezone,
    polish_note,
)


class FakeModels:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    async def generate_content(self, model, contents):
        self.calls.append((model, contents))
        if self.error:
            raise self.error
        return self.response


def fake_client(models: FakeModels):
    return SimpleNamespace(aio=SimpleNamespace(models=models))


@pytest.mark.parametrize(
    "name,expected",
    [("America/New_York", "New York"), ("UTC", "UTC"), ("Europe/Warsaw", "Warsaw"), ("", "Unknown Location")],
)
def test_location_from_timezone(name, expected):
    assert location_from_timezone(name) == expected


def test_prompt_carries_location_timestamp_mode_and_transcript():
    mode = ModeRegistry().lookup("learning")
    started = datetime(2026, 10, 18, 13, 4, tzinfo=timezone.utc)
    prompt = build_polish_prompt("--- LAP 1 (00:00 - 00:02) ---\n\nhi", mode, "Asia/Tokyo", started)

    assert "Location: Tokyo\n" in prompt
    assert "Timestamp: Sunday, October 18, 2026 at 10:04 PM\n" in prompt
    assert "Mode: Study Notes\nInstructions:\nYou are a student" in prompt
    assert prompt.endswith("Raw transcription (from multiple laps):\n--- LAP 1 (00:00 - 00:02) ---\n\nhi")


def test_blank_transcript_short_circuits_without_a_call():
    formatter = FakeFormatter()
    note = Note()
    outcome = asyncio.run(polish_note(note, "  \n ", ModeRegistry().lookup("journal"), "UTC", formatter))
    assert outcome is PolishOutcome.EMPTY_TRANSCRIPT
    assert formatter.prompts == []
    assert note.polished_html == NO_TRANSCRIPT_HTML


def test_error_text_is_escaped_in_placeholder():
    formatter = FakeFormatter(PolishingServiceError("<bad gateway>"))
    note = Note()
    outcome = asyncio.run(polish_note(note, "text", ModeRegistry().lookup("journal"), "UTC", formatter))
    assert outcome is PolishOutcome.FAILED
    assert "&lt;bad gateway&gt;" in note.polished_html


def test_formatter_sends_prompt_and_reads_usage():
    response = SimpleNamespace(
        text="## Done",
        usage_metadata=SimpleNamespace(prompt_token_count=300, candidates_token_count=40),
    )
    models = FakeModels(response=response)
    result = asyncio.run(NoteFormatter(client=fake_client(models)).polish("prompt text"))

    assert models.calls == [("gemini-2.5-flash", "prompt text")]
    assert result.text == "## Done"
    assert (result.usage.prompt_tokens, result.usage.completion_tokens) == (300, 40)


def test_formatter_wraps_sdk_errors():
    models = FakeModels(error=RuntimeError("503 UNAVAILABLE"))
    with pytest.raises(PolishingServiceError, match="503 UNAVAILABLE"):
        asyncio.run(NoteFormatter(client=fake_client(models)).polish("prompt"))


def test_formatter_without_api_key_fails_cleanly(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    with pytest.raises(PolishingServiceError, match="API key not configured"):
        asyncio.run(NoteFormatter().polish("prompt"))
