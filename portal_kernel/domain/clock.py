"""
Clock -- injectable source of "now".

Responsibility:
    Services never call ``datetime.now()`` directly.  created_at,
    submitted_at, approved_at, deleted_at and audit timestamps all come from
    a Clock handed to the service, so tests can pin and step time.

Architecture position:
    Kernel > Domain -- pure, zero I/O (except SystemClock).

Invariants:
    ``now()`` always returns a timezone-aware UTC datetime; the UTCDateTime
    column type rejects naive values.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

DEFAULT_TEST_EPOCH = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):

    @abstractmethod
    def now(self) -> datetime:
        """Current time, timezone-aware UTC."""
        ...


class SystemClock(Clock):
    """Wall-clock time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock.  Time stands still until the test moves it.

    ``advance()`` steps forward; ``set_time()`` jumps.  Listings ordered by
    created_at are only deterministic when the test advances the clock
    between writes.
    """

    def __init__(self, start: datetime | None = None):
        self._current = _as_utc(start or DEFAULT_TEST_EPOCH)

    def now(self) -> datetime:
        return self._current

    def set_time(self, time: datetime) -> None:
        self._current = _as_utc(time)

    def advance(self, seconds: float = 1) -> None:
        self._current += timedelta(seconds=seconds)

    def tick(self) -> datetime:
        """Advance one second and return the new time."""
        self.advance(1)
        return self._current


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        raise ValueError("Clock times must be timezone-aware")
    return value.astimezone(timezone.utc)
