import os

from dotenv import dotenv_values, set_key
from fastapi import APIRouter, Request
from pydantic import BaseModel

from lapnotes.services.modes import DEFAULT_MODE_ID
from lapnotes.services.session import DEFAULT_TIMEZONE

router = APIRouter()

ENV_PATH = os.path.join(os.path.dirname(os.path.dirname(__file__)), ".env")

# All user-configurable settings and their .env keys
SETTING_KEYS = [
    "GEMINI_API_KEY",
    "NOTE_MODE",
    "NOTE_TIMEZONE",
    "CUSTOM_PROMPT_INSTRUCTIONS",
]

# Keys that should never be exposed in full to the frontend
MASKED_KEYS = {"GEMINI_API_KEY"}

DEFAULTS = {
    "NOTE_MODE": DEFAULT_MODE_ID,
    "NOTE_TIMEZONE": DEFAULT_TIMEZONE,
}

SUPPORTED_TIMEZONES = [
    "UTC",
    "Europe/Warsaw",
    "Europe/London",
    "Europe/Paris",
    "Europe/Berlin",
    "America/New_York",
    "America/Chicago",
    "America/Denver",
    "America/Los_Angeles",
    "Asia/Tokyo",
    "Asia/Dubai",
    "Asia/Kolkata",
    "Australia/Sydney",
]


def _read_env() -> dict[str, str]:
    """Read current .env values."""
    if not os.path.exists(ENV_PATH):
        return {}
    return dotenv_values(ENV_PATH)


def _write_env(values: dict[str, str]):
    """Write values to .env, preserving keys not in `values`."""
    if not os.path.exists(ENV_PATH):
        open(ENV_PATH, "a").close()
    for key, val in values.items():
        set_key(ENV_PATH, key, val)


def _mask(value: str) -> str:
    """Mask a secret value for display: show last 4 chars only."""
    if not value or len(value) <= 4:
        return "****"
    return "****" + value[-4:]


@router.get("")
async def get_settings():
    """Return current settings. Secrets are masked."""
    env = _read_env()
    settings = {}
    for key in SETTING_KEYS:
        val = env.get(key) or os.getenv(key, DEFAULTS.get(key, ""))
        if key in MASKED_KEYS and val:
            settings[key] = _mask(val)
        else:
            settings[key] = val or ""
    return settings


class SettingsUpdate(BaseModel):
    GEMINI_API_KEY: str | None = None
    NOTE_MODE: str | None = None
    NOTE_TIMEZONE: str | None = None
    CUSTOM_PROMPT_INSTRUCTIONS: str | None = None


@router.post("")
async def update_settings(update: SettingsUpdate, request: Request):
    """Update settings in .env. Only non-None fields are written."""
    modes = request.app.state.session.modes
    if update.NOTE_MODE is not None and update.NOTE_MODE not in modes:
        return {"status": "error", "message": f"Unknown mode: {update.NOTE_MODE}"}
    if update.NOTE_TIMEZONE is not None and update.NOTE_TIMEZONE not in SUPPORTED_TIMEZONES:
        return {"status": "error", "message": f"Unsupported timezone: {update.NOTE_TIMEZONE}"}

    changes = {}
    for key in SETTING_KEYS:
        val = getattr(update, key, None)
        if val is not None:
            changes[key] = val
    if changes:
        _write_env(changes)
        # Reload env vars into the current process
        for key, val in changes.items():
            os.environ[key] = val
    if update.NOTE_MODE is not None:
        request.app.state.session.select_mode(update.NOTE_MODE)
    return {"status": "ok"}


@router.get("/modes")
async def list_modes(request: Request):
    modes = request.app.state.session.modes
    return {"modes": [{"id": mode.id, "name": mode.name} for mode in map(modes.lookup, modes.ids())]}


@router.get("/timezones")
async def list_timezones():
    return {"timezones": SUPPORTED_TIMEZONES}


@router.get("/setup-status")
async def setup_status():
    """Check if the app has minimum required configuration to function."""
    env = _read_env()
    gemini_ok = bool(env.get("GEMINI_API_KEY") or os.getenv("GEMINI_API_KEY"))
    return {"ready": gemini_ok, "gemini_configured": gemini_ok}
