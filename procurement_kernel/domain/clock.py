"""
Injectable time source.

RFQ deadlines, delegation windows, overdue invoices and approval stamps all
read ``Clock.now()`` rather than the wall clock, so tests can pin and move
time.
"""

from abc import ABC, abstractmethod
from datetime import UTC, datetime, timedelta


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime:
        """Current time, always timezone-aware."""


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(UTC)


class DeterministicClock(Clock):
    """
    Frozen clock for tests. Time moves only through ``advance``,
    ``advance_days`` or ``set_time``.
    """

    def __init__(self, start: datetime | None = None):
        self._now = start or datetime(2024, 1, 1, 12, 0, tzinfo=UTC)

    def now(self) -> datetime:
        return self._now

    def set_time(self, when: datetime) -> None:
        self._now = when

    def advance(self, seconds: int = 1) -> None:
        self._now += timedelta(seconds=seconds)

    def advance_days(self, days: int) -> None:
        # invoices go OVERDUE and delegations lapse on day boundaries
        self._now += timedelta(days=days)
