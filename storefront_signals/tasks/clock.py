"""
Clock abstraction.

All time-dependent logic (dedup windows, day buckets, trending windows,
status expiry) reads the time through an injected Clock so it can be
pinned in tests.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone


class Clock(ABC):
    """Source of naive UTC timestamps"""

    @abstractmethod
    def now(self) -> datetime:
        """Current time, naive UTC"""

    def today(self) -> date:
        """Current UTC calendar day (the daily aggregate bucket)"""
        return self.now().date()

    def day_start(self, offset_days: int = 0) -> datetime:
        """UTC midnight, offset_days before today"""
        midnight = datetime.combine(self.today(), datetime.min.time())
        return midnight - timedelta(days=offset_days)


class SystemClock(Clock):
    """Wall clock"""

    def now(self) -> datetime:
        return datetime.now(timezone.utc).replace(tzinfo=None)


class ManualClock(Clock):
    """
    Clock that only moves when told to.

    Example:
        clock = ManualClock(datetime(2025, 1, 1, 12, 0))
        clock.advance(minutes=6)
    """

    def __init__(self, start: datetime):
        self._now = start

    def now(self) -> datetime:
        return self._now

    def set(self, value: datetime) -> None:
        self._now = value

    def advance(self, **kwargs) -> datetime:
        """Move forward by a timedelta built from kwargs"""
        self._now = self._now + timedelta(**kwargs)
        return self._now
