"""
Clocks.

Time-sensitive services never read the wall clock themselves;
callers pass "now" in. The API layer and the reminder scheduler
get it from one of these clocks, and tests swap in FrozenClock.
"""

from datetime import date, datetime, timedelta, timezone


def utcnow() -> datetime:
    """Naive UTC timestamp, the format every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SystemClock:
    """Reads the real time."""

    def now(self) -> datetime:
        return utcnow()

    def today(self) -> date:
        return self.now().date()


class FrozenClock(SystemClock):
    """A clock that only moves when told to."""

    def __init__(self, current: datetime):
        self.current = current

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        """Move forward by a timedelta given as keyword arguments."""
        self.current = self.current + timedelta(**kwargs)
        return self.current
