import asyncio
import io
import logging
import time

from google import genai
from google.genai import types

from lapnotes.models.schemas import ServiceResult
from lapnotes.services.errors import TranscriptionServiceError
from lapnotes.services.gemini import API_KEY_MISSING, MODEL_NAME, client_for, resolve_api_key
from lapnotes.services.usage import usage_from_response

logger = logging.getLogger(__name__)

# Inline request payloads are capped at ~20 MB; bigger audio goes through the Files API.
INLINE_AUDIO_LIMIT = 20 * 1024 * 1024

TRANSCRIPTION_INSTRUCTIONS = (
    "Transcribe this audio with the following format:\n\n"
    "[TIMESTAMP] SPEAKER: exact spoken words\n\n"
    "Include timestamps every 10-15 seconds, detect different speakers "
    "(Speaker 1, Speaker 2, etc.), mark pauses with [PAUSE], unclear words "
    "with [UNCLEAR], and background sounds with [BACKGROUND: description]. "
    "Capture everything exactly as spoken including filler words, "
    "repetitions, and false starts."
)


class TranscriptionService:
    def __init__(self, api_key: str | None = None, client: genai.Client | None = None):
        self.api_key = api_key
        self._client = client
        self.model = MODEL_NAME
        self.poll_interval = 2
        self.max_wait = 300

    @property
    def client(self) -> genai.Client:
        if self._client is not None:
            return self._client
        api_key = resolve_api_key(self.api_key)
        if not api_key:
            raise TranscriptionServiceError(API_KEY_MISSING)
        return client_for(api_key)

    async def _wait_for_file_active(self, uploaded_file):
        """Poll until an uploaded file reaches ACTIVE state.

        Large files need server-side processing after upload before they
        can be used in generate_content().
        """
        start = time.monotonic()
        while uploaded_file.state.name == "PROCESSING":
            if time.monotonic() - start > self.max_wait:
                raise TimeoutError(f"Uploaded file did not become active within {self.max_wait}s")
            await asyncio.sleep(self.poll_interval)
            uploaded_file = await self.client.aio.files.get(name=uploaded_file.name)
        if uploaded_file.state.name != "ACTIVE":
            raise RuntimeError(f"File upload failed with state: {uploaded_file.state.name}")
        return uploaded_file

    async def _audio_part(self, audio: bytes, content_type: str):
        if len(audio) <= INLINE_AUDIO_LIMIT:
            return types.Part.from_bytes(data=audio, mime_type=content_type)
        logger.info("Uploading %d bytes of %s to the Gemini Files API", len(audio), content_type)
        uploaded_file = await self.client.aio.files.upload(
            file=io.BytesIO(audio),
            config=types.UploadFileConfig(mime_type=content_type),
        )
        return await self._wait_for_file_active(uploaded_file)

    async def transcribe(self, audio: bytes, content_type: str) -> ServiceResult:
        """Send one chunk of audio to Gemini and return its transcript."""
        try:
            audio_part = await self._audio_part(audio, content_type)
            response = await self.client.aio.models.generate_content(
                model=self.model,
                contents=[TRANSCRIPTION_INSTRUCTIONS, audio_part],
            )
        except TranscriptionServiceError:
            raise
        except Exception as e:
            raise TranscriptionServiceError(str(e)) from e

        return ServiceResult(text=response.text or "", usage=usage_from_response(response))
