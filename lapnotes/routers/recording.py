import logging
import os

from fastapi import APIRouter, BackgroundTasks, File, Request, UploadFile

from lapnotes.models.schemas import SessionState, SessionStatus
from lapnotes.services.modes import DEFAULT_MODE_ID
from lapnotes.services.session import DEFAULT_TIMEZONE, RecordingSession

logger = logging.getLogger(__name__)

router = APIRouter()


def _session(request: Request) -> RecordingSession:
    return request.app.state.session


def _apply_preferences(session: RecordingSession):
    """Pick up mode/timezone edits made through Settings since the last session."""
    session.select_mode(os.getenv("NOTE_MODE", DEFAULT_MODE_ID))
    session.timezone = os.getenv("NOTE_TIMEZONE", DEFAULT_TIMEZONE)


def _intent_result(accepted: bool, session: RecordingSession) -> dict:
    if not accepted:
        return {
            "status": "ignored",
            "state": session.state.value,
            "message": f"Not available while {session.state.value}",
        }
    return {"status": "ok", "state": session.state.value}


@router.post("/start")
async def start_recording(request: Request):
    session = _session(request)
    _apply_preferences(session)

    if await session.start():
        return {"status": "recording", "note_id": session.note.id}
    if session.state is SessionState.IDLE:
        return {"status": "error", "message": session.status.error}
    return _intent_result(False, session)


@router.post("/pause")
async def pause_recording(request: Request):
    session = _session(request)
    return _intent_result(session.pause(), session)


@router.post("/resume")
async def resume_recording(request: Request):
    session = _session(request)
    return _intent_result(session.resume(), session)


@router.post("/lap")
async def lap_recording(request: Request):
    session = _session(request)
    return _intent_result(session.lap(), session)


@router.post("/stop")
async def stop_recording(request: Request):
    session = _session(request)
    if not session.stop():
        return _intent_result(False, session)
    return {"status": "processing", "message": "Recording stopped. Processing..."}


@router.post("/upload")
async def upload_recording(
    request: Request,
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
):
    """Transcribe and polish a pre-recorded audio file in the background."""
    session = _session(request)
    if session.state is not SessionState.IDLE:
        return {"status": "error", "message": "Please wait for the current process to finish."}

    content = await file.read()
    _apply_preferences(session)
    # Claim the session before replying so a start cannot slip in ahead of the task.
    if not session.reserve_upload():
        return {"status": "error", "message": "Please wait for the current process to finish."}
    logger.info("Queued upload %s (%d bytes)", file.filename, len(content))
    background_tasks.add_task(
        session.process_upload, content, file.content_type or "audio/webm"
    )
    return {"status": "processing", "message": f"Processing {file.filename}..."}


@router.get("/status", response_model=SessionStatus)
async def get_status(request: Request):
    return _session(request).snapshot()
