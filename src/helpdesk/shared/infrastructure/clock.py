"""
Clock
=====

Time source injected into services and the SLA sweep so that deadline logic
can be driven deterministically in tests.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone


class Clock(ABC):
    """Interface for the current time (always timezone-aware UTC)."""

    @abstractmethod
    def now(self) -> datetime:
        """Return the current UTC time."""


class SystemClock(Clock):
    """Wall-clock time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


_clock: Clock = SystemClock()


def get_clock() -> Clock:
    """FastAPI dependency returning the process clock."""
    return _clock


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from SQLite."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
