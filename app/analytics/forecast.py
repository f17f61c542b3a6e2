"""
Revenue forecast projector.

Six trailing months of realized (WON) revenue, then six forward months that
blend the probability-weighted pipeline expected to close in each month with
the historical monthly average. Every forward month is saved as a forecast
snapshot for the caller's scope, replacing the previous run.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.analytics.dashboard import DealPartition
from app.analytics.periods import (
    MonthWindow,
    forward_months,
    trailing_months,
    won_revenue_by_month,
)
from app.core.clock import SystemClock
from app.core.config import get_settings
from app.core.errors import InternalError
from app.core.models import Deal, ForecastSnapshot, Role
from app.core.numbers import round_half_up
from app.core.scope import resolve_deal_scope, scoped_deals
from app.ml.scoring import close_probability

logger = logging.getLogger(__name__)

FORECAST_MONTHS = 6

# Blend of the weighted pipeline and the historical monthly average
PIPELINE_WEIGHT = 0.7
HISTORY_WEIGHT = 0.3

# Confidence decays per month ahead, bounded to [floor, ceiling]
CONFIDENCE_DECAY = 0.08
CONFIDENCE_FLOOR = 0.4
CONFIDENCE_CEILING = 0.9
OPTIMISM_SPREAD = 0.5

# Activity count assumed when a deal has no cached probability
ASSUMED_ACTIVITY_COUNT = 3

# Probability used for the summary's weighted pipeline when none is cached
DEFAULT_PIPELINE_PROBABILITY = 0.3


@dataclass
class ForecastMonth:
    """Projection for one forward month."""

    window: MonthWindow
    predicted: int
    optimistic: int
    pessimistic: int
    confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "month": self.window.label,
            "monthDate": self.window.start.isoformat(),
            "predicted": self.predicted,
            "optimistic": self.optimistic,
            "pessimistic": self.pessimistic,
            "confidence": round_half_up(self.confidence * 100),
        }


def month_confidence(month_index: int) -> float:
    """Confidence for the ``month_index``-th month ahead (1-based)."""
    return max(CONFIDENCE_FLOOR, min(CONFIDENCE_CEILING, 1 - month_index * CONFIDENCE_DECAY))


def historical_average(actuals: List[float]) -> float:
    """Mean over months with revenue; empty history averages to 0."""
    nonzero = len([a for a in actuals if a > 0])
    return sum(actuals) / max(nonzero, 1)


def project_month(
    window: MonthWindow, month_index: int, weighted: float, avg_historical: float
) -> ForecastMonth:
    predicted = round_half_up(weighted * PIPELINE_WEIGHT + avg_historical * HISTORY_WEIGHT)
    confidence = month_confidence(month_index)
    return ForecastMonth(
        window=window,
        predicted=predicted,
        optimistic=round_half_up(predicted * (1 + (1 - confidence) * OPTIMISM_SPREAD)),
        pessimistic=round_half_up(predicted * confidence),
        confidence=confidence,
    )


def snapshot_key(
    role: str, team_id: Optional[str], caller_id: Optional[str]
) -> Tuple[Optional[str], Optional[str]]:
    """(owner_id, team_id) a caller's snapshots are stored under."""
    return (caller_id if role == Role.REP else None, team_id or None)


class ForecastProjector:
    """Role-scoped revenue forecast with snapshot persistence."""

    def __init__(self, db: Session, clock=None, model_version: Optional[str] = None):
        self.db = db
        self.clock = clock or SystemClock()
        self.model_version = model_version or get_settings().insight_model_version

    def deal_probability(self, deal: Deal, now: datetime) -> float:
        """Cached probability, else a fresh score assuming typical engagement."""
        if deal.close_probability is not None:
            return deal.close_probability
        return close_probability(deal, ASSUMED_ACTIVITY_COUNT, now=now)

    def weighted_pipeline_for(
        self, active: List[Deal], window: MonthWindow, now: datetime
    ) -> float:
        return sum(
            (d.amount or 0) * self.deal_probability(d, now)
            for d in active
            if window.contains(d.expected_close_date)
        )

    def save_snapshots(
        self,
        months: List[ForecastMonth],
        owner_id: Optional[str],
        team_id: Optional[str],
        now: datetime,
    ) -> None:
        """Upsert one snapshot per month for (period_month, owner_id, team_id)."""
        for month in months:
            snapshot = (
                self.db.query(ForecastSnapshot)
                .filter(
                    ForecastSnapshot.period_month == month.window.label,
                    ForecastSnapshot.owner_id == owner_id,
                    ForecastSnapshot.team_id == team_id,
                )
                .first()
            )
            if snapshot is None:
                snapshot = ForecastSnapshot(
                    period_month=month.window.label, owner_id=owner_id, team_id=team_id
                )
                self.db.add(snapshot)

            snapshot.month_date = month.window.start
            snapshot.predicted_revenue = month.predicted
            snapshot.optimistic = month.optimistic
            snapshot.pessimistic = month.pessimistic
            snapshot.confidence = round_half_up(month.confidence * 100)
            snapshot.model_version = self.model_version
            snapshot.created_at = now

        self.db.commit()

    def forecast(
        self,
        role: str,
        team_id: Optional[str],
        caller_id: Optional[str],
    ) -> Dict[str, Any]:
        """
        Build the forecast for a caller and persist its snapshots.

        Returns:
            {"historical": [...], "forecast": [...], "summary": {...}}
        """
        now = self.clock.now()
        try:
            scope = resolve_deal_scope(self.db, role, caller_id, team_id)
            partition = DealPartition.from_deals(scoped_deals(self.db, scope))

            history_windows = trailing_months(now, FORECAST_MONTHS)
            actuals = won_revenue_by_month(partition.won, history_windows)
            avg_historical = historical_average(actuals)

            months = [
                project_month(
                    window,
                    index,
                    self.weighted_pipeline_for(partition.active, window, now),
                    avg_historical,
                )
                for index, window in enumerate(forward_months(now, FORECAST_MONTHS), start=1)
            ]

            owner_key, team_key = snapshot_key(role, team_id, caller_id)
            self.save_snapshots(months, owner_key, team_key, now)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Forecast failed for {role} {caller_id}: {e}")
            raise InternalError("Failed to compute forecast", cause=e) from e

        weighted_pipeline = sum(
            (d.amount or 0)
            * (d.close_probability if d.close_probability is not None else DEFAULT_PIPELINE_PROBABILITY)
            for d in partition.active
        )

        logger.info(
            f"Forecast for {role} {caller_id}: {len(partition.active)} active deals, "
            f"avg historical {avg_historical:.0f}, {len(months)} snapshots saved"
        )

        return {
            "historical": [
                {"month": window.label, "monthDate": window.start.isoformat(), "actual": actual}
                for window, actual in zip(history_windows, actuals)
            ],
            "forecast": [m.to_dict() for m in months],
            "summary": {
                "totalPipeline": partition.total_pipeline,
                "weightedPipeline": round_half_up(weighted_pipeline),
                "totalForecast": sum(m.predicted for m in months),
            },
        }

    def get_snapshots(
        self, owner_id: Optional[str] = None, team_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Stored snapshots for a scope, ordered by month."""
        rows = (
            self.db.query(ForecastSnapshot)
            .filter(ForecastSnapshot.owner_id == owner_id, ForecastSnapshot.team_id == team_id)
            .order_by(ForecastSnapshot.month_date)
            .all()
        )
        return [
            {
                "periodMonth": row.period_month,
                "ownerId": row.owner_id,
                "teamId": row.team_id,
                "predictedRevenue": row.predicted_revenue,
                "optimistic": row.optimistic,
                "pessimistic": row.pessimistic,
                "confidence": row.confidence,
                "modelVersion": row.model_version,
                "createdAt": row.created_at.isoformat() if row.created_at else None,
            }
            for row in rows
        ]
