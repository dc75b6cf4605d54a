"""UTC datetime utilities and the injectable clock.

Engines never read wall-clock time themselves: the entry point takes one
``now`` from a Clock and threads it through every call.
"""

from datetime import datetime, timedelta, timezone
from typing import Protocol


def utc_now() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    def now(self) -> datetime:
        return utc_now()


class FixedClock:
    """Deterministic clock for tests and replays."""

    def __init__(self, at: datetime) -> None:
        if at.tzinfo is None:
            raise ValueError("FixedClock requires a timezone-aware datetime")
        self._at = at

    def now(self) -> datetime:
        return self._at

    def advance(self, **delta: float) -> None:
        self._at = self._at + timedelta(**delta)


system_clock = SystemClock()


def get_clock() -> Clock:
    """FastAPI dependency; tests override it with a FixedClock."""
    return system_clock
