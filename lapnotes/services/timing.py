"""Elapsed-time bookkeeping and the duration/date formats shown to users."""

from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Callable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

Clock = Callable[[], float]

FALLBACK_TIMEZONE = "UTC"


def monotonic_ms() -> float:
    return time.monotonic() * 1000


class DurationTracker:
    """Sums the wall-clock time a session spends actively recording.

    ``mark_active`` opens an active period and ``fold`` closes it, adding
    its length to the total. Folding while no period is open is a no-op,
    which is what keeps a stop delivered after a pause from counting the
    paused stretch twice.
    """

    def __init__(self, clock: Clock = monotonic_ms):
        self._clock = clock
        self.total_ms = 0.0
        self._active_since: float | None = None

    @property
    def running(self) -> bool:
        return self._active_since is not None

    def mark_active(self) -> None:
        self._active_since = self._clock()

    def fold(self) -> float:
        if self._active_since is not None:
            self.total_ms += max(0.0, self._clock() - self._active_since)
            self._active_since = None
        return self.total_ms

    def live_ms(self) -> float:
        if self._active_since is None:
            return self.total_ms
        return self.total_ms + max(0.0, self._clock() - self._active_since)


def format_duration(ms: float) -> str:
    """mm:ss, with non-positive durations shown as 00:00."""
    if ms <= 0:
        return "00:00"
    total_seconds = int(ms // 1000)
    minutes, seconds = divmod(total_seconds, 60)
    return f"{minutes:02d}:{seconds:02d}"


def format_live(ms: float) -> str:
    """mm:ss.hh for the running recording timer."""
    ms = max(0.0, ms)
    total_seconds = int(ms // 1000)
    minutes, seconds = divmod(total_seconds, 60)
    hundredths = int((ms % 1000) // 10)
    return f"{minutes:02d}:{seconds:02d}.{hundredths:02d}"


def _clock_time(local: datetime) -> str:
    hour = local.hour % 12 or 12
    return f"{hour}:{local:%M} {local:%p}"


def format_session_timestamp(moment: datetime, timezone_name: str) -> str:
    """Long form used in the polishing prompt, e.g. 'Saturday, October 18, 2026 at 3:04 PM'."""
    local = moment.astimezone(ZoneInfo(timezone_name))
    return f"{local:%A}, {local:%B} {local.day}, {local.year} at {_clock_time(local)}"


def format_note_datetime(moment: datetime, timezone_name: str) -> str:
    """Short form used for note metadata, e.g. 'October 18, 2026 at 3:04 PM'."""
    local = moment.astimezone(ZoneInfo(timezone_name))
    return f"{local:%B} {local.day}, {local.year} at {_clock_time(local)}"


def known_timezone(timezone_name: str) -> str:
    """Return ``timezone_name`` if the tz database has it, else UTC."""
    try:
        ZoneInfo(timezone_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r, using %s", timezone_name, FALLBACK_TIMEZONE)
        return FALLBACK_TIMEZONE
    return timezone_name
