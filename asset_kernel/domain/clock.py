"""
Injectable time source for the kernel.

Order numbers, movement and system log timestamps, ``received_at`` and
approval dates are all read from a Clock handed to the orchestrators, never
from the wall clock directly.  ``SystemClock`` is the only class here that
touches real time.
"""

from abc import ABC, abstractmethod
from datetime import UTC, date, datetime, timedelta


class Clock(ABC):
    """Source of timezone-aware timestamps."""

    @abstractmethod
    def now(self) -> datetime:
        ...

    def business_date(self) -> date:
        """The UTC calendar day order numbers are counted under."""
        return self.now().astimezone(UTC).date()


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(UTC)


class DeterministicClock(Clock):
    """
    Frozen clock for tests and replays.

    ``now()`` keeps returning the same instant until ``advance()`` or
    ``set_time()`` moves it.  Naive start times are taken as UTC.
    """

    def __init__(self, start: datetime | None = None):
        self._current = self._aware(start or datetime(2024, 1, 1, 12, 0, tzinfo=UTC))

    @staticmethod
    def _aware(value: datetime) -> datetime:
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)

    def now(self) -> datetime:
        return self._current

    def set_time(self, value: datetime) -> None:
        self._current = self._aware(value)

    def advance(self, seconds: float = 1) -> datetime:
        """Move forward and return the new instant."""
        self._current += timedelta(seconds=seconds)
        return self._current
