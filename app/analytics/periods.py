"""
Calendar-month helpers shared by the dashboard and the forecast.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from app.core.models import Deal


@dataclass(frozen=True)
class MonthWindow:
    """A calendar month as a half-open [start, end) interval."""

    start: datetime
    end: datetime

    @property
    def label(self) -> str:
        """Short month + 2-digit year, e.g. "Oct 26"."""
        return self.start.strftime("%b %y")

    def contains(self, moment: Optional[datetime]) -> bool:
        return moment is not None and self.start <= moment < self.end


def month_start(moment: datetime, offset: int = 0) -> datetime:
    """First instant of the month ``offset`` months away from ``moment``."""
    index = moment.year * 12 + (moment.month - 1) + offset
    return datetime(index // 12, index % 12 + 1, 1)


def month_window(moment: datetime, offset: int = 0) -> MonthWindow:
    return MonthWindow(start=month_start(moment, offset), end=month_start(moment, offset + 1))


def trailing_months(now: datetime, count: int = 6) -> List[MonthWindow]:
    """The last ``count`` months including the current one, oldest first."""
    return [month_window(now, -i) for i in range(count - 1, -1, -1)]


def forward_months(now: datetime, count: int = 6) -> List[MonthWindow]:
    """The next ``count`` months starting with next month."""
    return [month_window(now, i) for i in range(1, count + 1)]


def effective_close_date(deal: Deal) -> Optional[datetime]:
    """When a WON deal counts as closed: last update, else creation."""
    return deal.updated_at or deal.created_at


def won_revenue_by_month(won_deals, windows: List[MonthWindow]) -> List[float]:
    """Sum of won amounts whose effective close date falls in each window."""
    return [
        sum(d.amount or 0 for d in won_deals if window.contains(effective_close_date(d)))
        for window in windows
    ]
