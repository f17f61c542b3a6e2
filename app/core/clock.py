"""
Time access for the insight and forecast engine.

Every age / day-difference computation reads "now" through a clock so tests
can pin the current time.
"""
from datetime import datetime, timedelta


class SystemClock:
    """Wall-clock time as naive UTC."""

    def now(self) -> datetime:
        return datetime.utcnow()


class FixedClock:
    """Clock frozen at a given instant."""

    def __init__(self, at: datetime):
        self.at = at

    def now(self) -> datetime:
        return self.at

    def advance(self, **kwargs) -> None:
        """Move the clock forward by a timedelta expressed as keyword args."""
        self.at = self.at + timedelta(**kwargs)


def days_between(earlier: datetime, later: datetime) -> int:
    """Whole days from ``earlier`` to ``later`` (floored, may be negative)."""
    return (later - earlier).days


def get_clock():
    """
    Dependency for FastAPI routes to get the clock.

    Overridden in tests with a FixedClock.
    """
    return SystemClock()
