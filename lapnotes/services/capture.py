"""Interface between the session controller and an audio capture device."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, NamedTuple, Protocol

WAV_CONTENT_TYPE = "audio/wav"


@dataclass(frozen=True)
class CaptureConstraints:
    sample_rate: int = 44100
    channels: int = 1
    frames_per_buffer: int = 1024
    input_device_index: int | None = None  # None = default mic


DEFAULT_CONSTRAINTS = CaptureConstraints()
# Tried once if the default open fails.
FALLBACK_CONSTRAINTS = CaptureConstraints(sample_rate=16000, frames_per_buffer=4096)


class CapturedAudio(NamedTuple):
    audio: bytes
    content_type: str


class CaptureDevice(Protocol):
    async def acquire(self, constraints: CaptureConstraints) -> Any:
        """Open the device. Raises DeviceAcquisitionError on failure."""

    def start(self, handle: Any) -> Awaitable[CapturedAudio]:
        """Begin a fresh segment; the returned awaitable resolves once the segment stops."""

    def pause(self, handle: Any) -> None: ...

    def resume(self, handle: Any) -> None: ...

    def stop(self, handle: Any) -> None:
        """Ask the segment to stop. Delivery happens later through start()'s awaitable."""

    def level(self, handle: Any) -> float: ...

    def release(self, handle: Any) -> None: ...
