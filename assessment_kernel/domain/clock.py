"""
Injectable time source (``assessment_kernel.domain.clock``).

Aggregates never read the wall clock themselves.  Finalization, entry
creation, approval, FRC decisions and sign-off all stamp ``clock.now()`` so
a test can replay a claim and get byte-identical state.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    """Source of timezone-aware UTC timestamps."""

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Frozen clock for tests.

    Starts at 2025-01-01 12:00 UTC unless given a start time and only moves
    when told to.
    """

    DEFAULT_START = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __init__(self, start: datetime | None = None):
        self._current = start or self.DEFAULT_START

    def now(self) -> datetime:
        return self._current

    def advance(self, seconds: float = 1) -> datetime:
        """Move forward and return the new time."""
        self._current += timedelta(seconds=seconds)
        return self._current

    def set_time(self, when: datetime) -> None:
        self._current = when
