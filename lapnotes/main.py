import os
from contextlib import asynccontextmanager
from typing import Callable

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from lapnotes.logging_utils import setup_logging
from lapnotes.routers import notes, recording, settings
from lapnotes.services.modes import DEFAULT_MODE_ID
from lapnotes.services.note_formatter import NoteFormatter
from lapnotes.services.session import DEFAULT_TIMEZONE, RecordingSession
from lapnotes.services.transcription import TranscriptionService

load_dotenv()


def default_session() -> RecordingSession:
    # PyAudio needs PortAudio at import time; only load it for the real device.
    from lapnotes.services.audio_capture import MicrophoneCapture

    return RecordingSession(
        MicrophoneCapture(),
        TranscriptionService(),
        NoteFormatter(),
        mode_id=os.getenv("NOTE_MODE", DEFAULT_MODE_ID),
        timezone=os.getenv("NOTE_TIMEZONE", DEFAULT_TIMEZONE),
    )


def create_app(session_factory: Callable[[], RecordingSession] = default_session) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(os.getenv("LOG_LEVEL", "INFO").upper(), os.getenv("LOG_DIR") or None)
        app.state.session = session_factory()
        yield
        await app.state.session.aclose()

    app = FastAPI(title="Lap Notes", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(recording.router, prefix="/api/recording")
    app.include_router(notes.router, prefix="/api/notes")
    app.include_router(settings.router, prefix="/api/settings")

    @app.get("/api/health")
    async def health():
        return {"status": "healthy"}

    return app


app = create_app()
