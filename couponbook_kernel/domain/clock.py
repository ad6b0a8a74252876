"""
Clock -- injectable time source.

Journal timestamps, grant expiries, payout references, referral codes and
rate limit windows all read time from a Clock passed in by the caller,
never from ``datetime.now()`` directly.  SystemClock is the one place the
kernel touches the real clock.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

DEFAULT_TEST_TIME = datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """Source of timezone-aware timestamps."""

    @abstractmethod
    def now(self) -> datetime:
        """Current time, timezone-aware."""

    def now_utc(self) -> datetime:
        """Current time normalized to UTC."""
        return self.now().astimezone(timezone.utc)


class SystemClock(Clock):
    """Wall-clock time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Clock for tests and replays.

    Time stands still until ``advance()``, ``tick()`` or ``set_time()`` is
    called, so repeated ``now()`` calls return the same instant.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._start = fixed_time or DEFAULT_TEST_TIME
        self._offset = timedelta(0)

    def now(self) -> datetime:
        return self._start + self._offset

    def set_time(self, time: datetime) -> None:
        """Jump to ``time`` and drop any accumulated advance."""
        self._start = time
        self._offset = timedelta(0)

    def advance(self, seconds: float = 1) -> None:
        self._offset += timedelta(seconds=seconds)

    def tick(self) -> datetime:
        """Advance one second and return the new time."""
        self.advance(1)
        return self.now()
