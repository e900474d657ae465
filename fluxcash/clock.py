"""
Time Provider

Every piece of day- or month-scoped logic (mission day keys, "today"
aggregates, default timestamps) asks a Clock instead of the wall clock,
so tests can move time forward deterministically.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone
from typing import Optional


class Clock(ABC):
    """Abstract time source."""

    @abstractmethod
    def now(self) -> datetime:
        """Current instant (timezone-aware)."""
        pass

    def today(self) -> date:
        """Current calendar day."""
        return self.now().date()

    def day_key(self) -> str:
        """Calendar-day partition key, e.g. '2026-01-31'."""
        return self.today().isoformat()


class SystemClock(Clock):
    """Wall-clock time in the local timezone."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc).astimezone()


class FixedClock(Clock):
    """
    Manually driven clock for tests and simulations.

    Usage:
        clock = FixedClock(datetime(2026, 1, 31, 12, 0))
        clock.advance(days=1)
    """

    def __init__(self, instant: Optional[datetime] = None):
        instant = instant or datetime(2026, 1, 15, 12, 0)
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        self._instant = instant

    def now(self) -> datetime:
        return self._instant

    def set(self, instant: datetime) -> None:
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        self._instant = instant

    def advance(self, days: int = 0, hours: int = 0, minutes: int = 0) -> None:
        self._instant += timedelta(days=days, hours=hours, minutes=minutes)
