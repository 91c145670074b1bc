from fastapi import APIRouter, Request

from lapnotes.models.schemas import Note
from lapnotes.services.export import format_metadata

router = APIRouter()


@router.get("/current", response_model=Note)
async def current_note(request: Request):
    return request.app.state.session.note


@router.get("/current/metadata")
async def current_metadata(request: Request):
    session = request.app.state.session
    if session.note.duration_ms == 0 and not session.note.raw_transcript:
        return {"text": "", "message": "No metadata to copy."}
    return {"text": format_metadata(session.note, session.modes, session.timezone)}


@router.post("/new")
async def new_note(request: Request):
    session = request.app.state.session
    if not session.new_note():
        return {"status": "stopping", "message": "Finishing the current recording first."}
    return {"status": "ok", "note_id": session.note.id}
