import html
import logging
from datetime import datetime

import markdown
from google import genai

from lapnotes.models.schemas import Note, PolishOutcome, ServiceResult
from lapnotes.services.errors import PolishingServiceError
from lapnotes.services.gemini import API_KEY_MISSING, MODEL_NAME, client_for, resolve_api_key
from lapnotes.services.modes import ResolvedMode
from lapnotes.services.timing import format_session_timestamp, known_timezone
from lapnotes.services.usage import apply_usage, usage_from_response

logger = logging.getLogger(__name__)

NO_TRANSCRIPT_HTML = "<p><em>No transcription available to polish.</em></p>"
EMPTY_RESPONSE_HTML = "<p><em>Polishing returned empty. Raw transcription is available.</em></p>"


def location_from_timezone(timezone_name: str) -> str:
    """'America/New_York' -> 'New York'."""
    location = timezone_name.split("/")[-1].replace("_", " ").strip()
    return location or "Unknown Location"


def build_polish_prompt(
    transcript: str,
    mode: ResolvedMode,
    timezone_name: str,
    started_at: datetime,
) -> str:
    return f"""You are a specialized AI assistant that transforms raw audio transcription into a specific, structured format based on the user's selected 'mode'.

Your task is to follow the instructions for the selected mode precisely and generate a markdown response.
The note MUST begin with the provided location and timestamp.
Do not add any commentary before or after the markdown content.

Location: {location_from_timezone(timezone_name)}
Timestamp: {format_session_timestamp(started_at, timezone_name)}
Mode: {mode.name}
Instructions:
{mode.instructions}

---

Raw transcription (from multiple laps):
{transcript}"""


def render_markdown(text: str) -> str:
    return markdown.markdown(text, extensions=["extra", "sane_lists"])


class NoteFormatter:
    def __init__(self, api_key: str | None = None, client: genai.Client | None = None):
        self.api_key = api_key
        self._client = client
        self.model = MODEL_NAME

    @property
    def client(self) -> genai.Client:
        if self._client is not None:
            return self._client
        api_key = resolve_api_key(self.api_key)
        if not api_key:
            raise PolishingServiceError(API_KEY_MISSING)
        return client_for(api_key)

    async def polish(self, prompt: str) -> ServiceResult:
        """Use Gemini to turn a composed polishing prompt into a markdown note."""
        try:
            response = await self.client.aio.models.generate_content(
                model=self.model,
                contents=prompt,
            )
        except PolishingServiceError:
            raise
        except Exception as e:
            raise PolishingServiceError(str(e)) from e
        return ServiceResult(text=response.text or "", usage=usage_from_response(response))


async def polish_note(
    note: Note,
    transcript: str,
    mode: ResolvedMode,
    timezone_name: str,
    formatter: NoteFormatter,
) -> PolishOutcome:
    """Run the single end-of-session polishing call and store its result on the note."""
    if not transcript.strip():
        note.polished_html = NO_TRANSCRIPT_HTML
        return PolishOutcome.EMPTY_TRANSCRIPT

    prompt = build_polish_prompt(transcript, mode, known_timezone(timezone_name), note.created_at)
    try:
        result = await formatter.polish(prompt)
    except PolishingServiceError as e:
        logger.warning("Polishing failed for %s: %s", note.id, e)
        note.polished_html = f"<p><em>Error during polishing: {html.escape(str(e))}</em></p>"
        return PolishOutcome.FAILED

    apply_usage(note, result.usage)
    if not result.text:
        note.polished_html = EMPTY_RESPONSE_HTML
        return PolishOutcome.EMPTY_RESPONSE

    note.polished_text = result.text
    note.polished_html = render_markdown(result.text)
    logger.info("Polished %s in mode %s (%d chars)", note.id, mode.id, len(result.text))
    return PolishOutcome.POLISHED
