from __future__ import annotations

import asyncio

import pytest

from lapnotes.models.schemas import ServiceResult
from lapnotes.services.capture import CapturedAudio
from lapnotes.services.errors import DeviceAcquisitionError
from lapnotes.services.modes import ModeRegistry
from lapnotes.services.session import RecordingSession
from lapnotes.services.usage import Usage


class FakeClock:
    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class FakeCaptureDevice:
    """Capture device whose segments deliver queued payloads when stopped."""

    def __init__(self, payloads: list[bytes] | None = None, fail_acquire: int = 0):
        self.payloads = list(payloads or [])
        self.fail_acquire = fail_acquire
        self.acquire_calls = []
        self.calls: list[str] = []
        self.released = 0
        self._delivery: asyncio.Future | None = None

    async def acquire(self, constraints):
        self.acquire_calls.append(constraints)
        if len(self.acquire_calls) <= self.fail_acquire:
            raise DeviceAcquisitionError("Permission denied")
        return "handle"

    def start(self, handle):
        self.calls.append("start")
        self._delivery = asyncio.get_running_loop().create_future()
        return self._delivery

    def pause(self, handle):
        self.calls.append("pause")

    def resume(self, handle):
        self.calls.append("resume")

    def stop(self, handle):
        self.calls.append("stop")
        payload = self.payloads.pop(0) if self.payloads else b"audio-bytes"
        delivery = self._delivery
        asyncio.get_running_loop().call_soon(delivery.set_result, CapturedAudio(payload, "audio/webm"))

    def level(self, handle):
        return 0.25

    def release(self, handle):
        self.released += 1


class FakeTranscriber:
    def __init__(self, results: list | None = None):
        self.results = list(results or [])
        self.calls: list[tuple[bytes, str]] = []

    async def transcribe(self, audio: bytes, content_type: str) -> ServiceResult:
        self.calls.append((audio, content_type))
        result = self.results.pop(0) if self.results else f"text {len(self.calls)}"
        if isinstance(result, Exception):
            raise result
        if isinstance(result, ServiceResult):
            return result
        return ServiceResult(text=result, usage=Usage(prompt_tokens=100, completion_tokens=50))


class FakeFormatter:
    def __init__(self, result: ServiceResult | Exception | None = None):
        self.result = result or ServiceResult(
            text="# Note\n\n- point", usage=Usage(prompt_tokens=1000, completion_tokens=200)
        )
        self.prompts: list[str] = []

    async def polish(self, prompt: str) -> ServiceResult:
        self.prompts.append(prompt)
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_session(clock):
    def factory(
        device: FakeCaptureDevice | None = None,
        transcriber: FakeTranscriber | None = None,
        formatter: FakeFormatter | None = None,
        **kwargs,
    ) -> RecordingSession:
        return RecordingSession(
            device or FakeCaptureDevice(),
            transcriber or FakeTranscriber(),
            formatter or FakeFormatter(),
            ModeRegistry(custom_source=lambda: "Only list the jokes."),
            timezone=kwargs.pop("timezone", "UTC"),
            clock=clock,
            **kwargs,
        )

    return factory

