import time

import pytest
from conftest import FakeCaptureDevice, FakeFormatter, FakeTranscriber
from fastapi.testclient import TestClient

from lapnotes.main import create_app
from lapnotes.routers import settings
from lapnotes.services.modes import ModeRegistry
from lapnotes.services.session import RecordingSession


def wait_for_state(client, state, timeout=3.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        status = client.get("/api/recording/status").json()
        if status["state"] == state:
            return status
        time.sleep(0.02)
    raise AssertionError(f"session never reached {state}")


@pytest.fixture
def device():
    return FakeCaptureDevice()


@pytest.fixture
def client(device, monkeypatch, tmp_path):
    monkeypatch.setenv("NOTE_MODE", "journal")
    monkeypatch.setenv("NOTE_TIMEZONE", "UTC")
    monkeypatch.setenv("GEMINI_API_KEY", "test-key-0000")
    monkeypatch.setattr(settings, "ENV_PATH", str(tmp_path / ".env"))

    def factory():
        return RecordingSession(
            device,
            FakeTranscriber(["spoken words"]),
            FakeFormatter(),
            ModeRegistry(custom_source=lambda: ""),
        )

    with TestClient(create_app(factory)) as test_client:
        yield test_client


def test_health(client):
    assert client.get("/api/health").json() == {"status": "healthy"}


def test_record_pause_resume_stop_round_trip(client):
    assert client.post("/api/recording/start").json()["status"] == "recording"
    assert client.get("/api/recording/status").json()["state"] == "recording"

    assert client.post("/api/recording/pause").json() == {"status": "ok", "state": "paused"}
    assert client.post("/api/recording/pause").json()["status"] == "ignored"
    assert client.post("/api/recording/lap").json()["status"] == "ignored"
    assert client.post("/api/recording/resume").json() == {"status": "ok", "state": "recording"}

    assert client.post("/api/recording/stop").json()["status"] == "processing"
    status = wait_for_state(client, "idle")
    assert status["lap_count"] == 1
    assert status["step"] == "Note polished. Ready for next recording."

    note = client.get("/api/notes/current").json()
    assert note["raw_transcript"].startswith("--- LAP 1 (00:00 - ")
    assert note["raw_transcript"].endswith("spoken words")
    assert note["polished_text"] == "# Note\n\n- point"
    assert note["cost"] > 0

    metadata = client.get("/api/notes/current/metadata").json()["text"]
    assert "Processing Mode: Personal Journal" in metadata


def test_lap_returns_to_recording(client):
    client.post("/api/recording/start")
    assert client.post("/api/recording/lap").json()["status"] == "ok"
    status = wait_for_state(client, "recording")
    deadline = time.monotonic() + 3
    while status["lap_count"] < 1 and time.monotonic() < deadline:
        time.sleep(0.02)
        status = client.get("/api/recording/status").json()
    assert status["lap_count"] == 1


def test_status_reports_timer(client):
    client.post("/api/recording/start")
    status = client.get("/api/recording/status").json()
    assert status["state"] == "recording"
    assert status["timer"].count(":") == 1


def test_second_start_is_ignored(client):
    client.post("/api/recording/start")
    assert client.post("/api/recording/start").json()["status"] == "ignored"


def test_start_reports_device_failure(device, client):
    device.fail_acquire = 2
    body = client.post("/api/recording/start").json()
    assert body["status"] == "error"
    assert "Permission denied" in body["message"]
    assert client.get("/api/recording/status").json()["state"] == "idle"


def test_upload_transcribes_without_lap_header(client):
    body = client.post(
        "/api/recording/upload",
        files={"file": ("memo.webm", b"fake audio", "audio/webm")},
    ).json()
    assert body["status"] == "processing"

    deadline = time.monotonic() + 3
    note = client.get("/api/notes/current").json()
    while not note["raw_transcript"] and time.monotonic() < deadline:
        time.sleep(0.02)
        note = client.get("/api/notes/current").json()
    assert note["raw_transcript"] == "spoken words"
    assert note["audio_size"] == len(b"fake audio")


def test_new_note_replaces_idle_note(client):
    first = client.get("/api/notes/current").json()["id"]
    body = client.post("/api/notes/new").json()
    assert body["status"] == "ok"
    assert body["note_id"] != first


def test_settings_validate_and_mask(client, tmp_path):
    bad = client.post("/api/settings", json={"NOTE_TIMEZONE": "Mars/Olympus_Mons"}).json()
    assert bad["status"] == "error"
    assert client.post("/api/settings", json={"NOTE_MODE": "poetry"}).json()["status"] == "error"

    ok = client.post(
        "/api/settings",
        json={"NOTE_TIMEZONE": "Asia/Tokyo", "GEMINI_API_KEY": "secret-key-1234", "NOTE_MODE": "action"},
    ).json()
    assert ok == {"status": "ok"}

    current = client.get("/api/settings").json()
    assert current["NOTE_TIMEZONE"] == "Asia/Tokyo"
    assert current["NOTE_MODE"] == "action"
    assert current["GEMINI_API_KEY"] == "****1234"
    assert "NOTE_TIMEZONE" in (tmp_path / ".env").read_text()
    assert client.get("/api/settings/setup-status").json()["ready"] is True


def test_settings_lists_modes_and_timezones(client):
    modes = client.get("/api/settings/modes").json()["modes"]
    assert {"id": "custom", "name": "Custom Instructions"} in modes
    assert "Europe/Warsaw" in client.get("/api/settings/timezones").json()["timezones"]
