"""
Clock -- injectable time source.

The routing service stamps ``routed_at`` through a Clock so tests can pin
decision timestamps.  Engines never need the time.
"""

from abc import ABC, abstractmethod
from datetime import UTC, datetime, timedelta


class Clock(ABC):
    """Source of timezone-aware 'now' values."""

    @abstractmethod
    def now(self) -> datetime: ...


class SystemClock(Clock):
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class DeterministicClock(Clock):
    """Frozen clock for tests; moves only via ``advance`` or ``set_time``."""

    DEFAULT_TIME = datetime(2026, 1, 1, 12, 0, 0, tzinfo=UTC)

    def __init__(self, fixed_time: datetime | None = None):
        self._time = fixed_time or self.DEFAULT_TIME

    def now(self) -> datetime:
        return self._time

    def set_time(self, time: datetime) -> None:
        if time.tzinfo is None:
            raise ValueError("DeterministicClock needs a timezone-aware datetime")
        self._time = time

    def advance(self, seconds: float = 1) -> None:
        self._time += timedelta(seconds=seconds)
