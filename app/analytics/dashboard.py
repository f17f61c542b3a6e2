"""
Dashboard Analytics Engine.

Portfolio statistics for the role-scoped sales dashboard: pipeline totals,
stage breakdown, win rate, recent activity and realized monthly revenue.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.analytics.periods import trailing_months, won_revenue_by_month
from app.core.clock import SystemClock
from app.core.errors import InternalError
from app.core.models import Activity, Deal, DealStage, OPEN_STAGES, Role
from app.core.numbers import round_half_up
from app.core.records import activity_to_dict
from app.core.scope import DealScope, resolve_deal_scope, scoped_deals

logger = logging.getLogger(__name__)

RECENT_ACTIVITY_LIMIT = 10
REVENUE_MONTHS = 6


@dataclass
class DealPartition:
    """Scoped deals split by outcome."""

    active: List[Deal] = field(default_factory=list)
    won: List[Deal] = field(default_factory=list)
    lost: List[Deal] = field(default_factory=list)

    @classmethod
    def from_deals(cls, deals: List[Deal]) -> "DealPartition":
        partition = cls()
        for deal in deals:
            if deal.stage == DealStage.WON:
                partition.won.append(deal)
            elif deal.stage == DealStage.LOST:
                partition.lost.append(deal)
            else:
                partition.active.append(deal)
        return partition

    @property
    def total_pipeline(self) -> float:
        return sum(d.amount or 0 for d in self.active)

    @property
    def won_revenue(self) -> float:
        return sum(d.amount or 0 for d in self.won)


def win_rate(won_count: int, lost_count: int) -> int:
    """Percentage of closed deals that were won; 0 with nothing closed."""
    closed = won_count + lost_count
    if closed == 0:
        return 0
    return round_half_up(won_count / closed * 100)


class DashboardAnalytics:
    """
    Analytics computation engine for the dashboard endpoint.

    Read-only: nothing here writes to the database.
    """

    def __init__(self, db: Session, clock=None):
        self.db = db
        self.clock = clock or SystemClock()

    def _recent_activities(self, role: str, caller_id: Optional[str]) -> List[Dict[str, Any]]:
        query = self.db.query(Activity)
        if role == Role.REP:
            query = query.filter(Activity.created_by == caller_id)
        rows = query.order_by(Activity.occurred_at.desc()).limit(RECENT_ACTIVITY_LIMIT).all()
        return [activity_to_dict(a) for a in rows]

    def _pipeline_by_stage(self, active: List[Deal]) -> List[Dict[str, Any]]:
        breakdown = []
        for stage in OPEN_STAGES:
            in_stage = [d for d in active if d.stage == stage]
            breakdown.append(
                {
                    "stage": stage,
                    "count": len(in_stage),
                    "value": sum(d.amount or 0 for d in in_stage),
                }
            )
        return breakdown

    def monthly_revenue(self, won: List[Deal]) -> List[Dict[str, Any]]:
        """Won revenue for the trailing six months, oldest first."""
        windows = trailing_months(self.clock.now(), REVENUE_MONTHS)
        totals = won_revenue_by_month(won, windows)
        return [
            {"month": window.label, "revenue": total}
            for window, total in zip(windows, totals)
        ]

    def get_dashboard_stats(
        self,
        role: str,
        team_id: Optional[str],
        caller_id: Optional[str],
    ) -> Dict[str, Any]:
        """
        Compute dashboard statistics for a caller.

        Args:
            role: REP, MANAGER or ADMIN
            team_id: Caller's team (managers see their whole team)
            caller_id: Caller's user id

        Returns:
            Totals, counts, stage breakdown, recent activities and monthly revenue
        """
        try:
            scope: DealScope = resolve_deal_scope(self.db, role, caller_id, team_id)
            partition = DealPartition.from_deals(scoped_deals(self.db, scope))
            recent = self._recent_activities(role, caller_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Dashboard query failed for {role} {caller_id}: {e}")
            raise InternalError("Failed to load dashboard", cause=e) from e

        total_pipeline = partition.total_pipeline
        active_count = len(partition.active)

        return {
            "totalPipeline": total_pipeline,
            "wonRevenue": partition.won_revenue,
            "winRate": win_rate(len(partition.won), len(partition.lost)),
            "avgDealSize": round_half_up(total_pipeline / active_count) if active_count else 0,
            "activeDealsCount": active_count,
            "wonDealsCount": len(partition.won),
            "lostDealsCount": len(partition.lost),
            "pipelineByStage": self._pipeline_by_stage(partition.active),
            "recentActivities": recent,
            "monthlyRevenue": self.monthly_revenue(partition.won),
        }
