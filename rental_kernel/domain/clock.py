"""
Clock -- the only source of "now" for services, engines and the scheduler.

Responsibility:
    Overdue detection, reminder windows, notice-day counts and the
    scheduler's next-run times all depend on the current time.  They read
    it from an injected ``Clock`` so that tests and replays can pin it.

Architecture position:
    Kernel > Domain.  ``SystemClock`` is the single place that touches the
    wall clock.

Failure modes:
    - None.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone


class Clock(ABC):
    """Injected into every component that needs the current time."""

    @abstractmethod
    def now(self) -> datetime:
        ...

    def today(self) -> date:
        """Calendar date of ``now()``; overdue and notice rules work on dates."""
        return self.now().date()


class SystemClock(Clock):
    """Wall clock, timezone-aware UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Clock that only moves when told to.

    ``now()`` keeps returning the same instant until ``set_time``,
    ``advance`` or ``advance_days`` is called.  The default instant is
    2024-01-01 12:00 (naive).
    """

    def __init__(self, start: datetime | None = None):
        self._current = start or datetime(2024, 1, 1, 12, 0, 0)

    def now(self) -> datetime:
        return self._current

    def set_time(self, moment: datetime) -> None:
        self._current = moment

    def advance(self, seconds: int = 1) -> None:
        self._current += timedelta(seconds=seconds)

    def advance_days(self, days: int = 1) -> None:
        self._current += timedelta(days=days)
