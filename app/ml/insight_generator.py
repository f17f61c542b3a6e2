"""
Per-deal AI insight generation.

Scores a deal, narrates it, stores the result as the deal's single current
insight and mirrors the probability / risk tier onto the deal itself.
Regenerating is a full overwrite, so a retry after a partial failure heals
the stored state.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.clock import SystemClock
from app.core.config import get_settings
from app.core.errors import InternalError, NotFoundError
from app.core.models import Activity, Deal, DealInsight
from app.core.records import insight_to_dict
from app.ml.narrator import narrate
from app.ml.scoring import close_probability, risk_level

logger = logging.getLogger(__name__)


class DealInsightGenerator:
    """Builds and persists the current insight for a deal."""

    def __init__(self, db: Session, clock=None, model_version: Optional[str] = None):
        self.db = db
        self.clock = clock or SystemClock()
        self.model_version = model_version or get_settings().insight_model_version

    def _get_deal(self, deal_id: str) -> Deal:
        deal = self.db.query(Deal).filter(Deal.id == deal_id).first()
        if deal is None:
            raise NotFoundError("Deal not found", resource_id=deal_id)
        return deal

    def _get_activities(self, deal_id: str):
        return (
            self.db.query(Activity)
            .filter(Activity.deal_id == deal_id)
            .order_by(Activity.occurred_at.desc())
            .all()
        )

    def _upsert_insight(self, deal_id: str, fields: Dict[str, Any]) -> DealInsight:
        """Replace every field of the deal's insight, creating it if absent."""
        insight = (
            self.db.query(DealInsight).filter(DealInsight.deal_id == deal_id).first()
        )
        if insight is None:
            insight = DealInsight(deal_id=deal_id)
            self.db.add(insight)
        for name, value in fields.items():
            setattr(insight, name, value)
        return insight

    def generate(self, deal_id: str) -> Dict[str, Any]:
        """
        Generate insights for one deal.

        Raises:
            NotFoundError: the deal does not exist
            InternalError: a persistence read or write failed
        """
        now = self.clock.now()
        try:
            deal = self._get_deal(deal_id)
            activities = self._get_activities(deal_id)

            probability = close_probability(deal, len(activities), now=now)
            risk = risk_level(probability)
            narrative = narrate(deal, activities, now)

            insight = self._upsert_insight(
                deal_id,
                {
                    "close_probability": probability,
                    "risk_level": risk,
                    "risk_factors": narrative.risk_factors,
                    "next_best_actions": narrative.next_best_actions,
                    "email_draft": narrative.email_draft,
                    "summary": narrative.summary,
                    "model_version": self.model_version,
                    "created_at": now,
                },
            )

            # Cached scores only; stage, amount and timestamps stay untouched
            deal.close_probability = probability
            deal.risk_level = risk

            self.db.commit()
            self.db.refresh(insight)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Insight generation failed for deal {deal_id}: {e}")
            raise InternalError("Failed to generate insights", cause=e) from e

        logger.info(
            f"Generated insight for deal {deal_id}: "
            f"probability={probability}, risk={risk}, activities={len(activities)}"
        )
        return insight_to_dict(insight)

    def get_current(self, deal_id: str) -> Optional[Dict[str, Any]]:
        """Latest stored insight for a deal, if any."""
        insight = (
            self.db.query(DealInsight).filter(DealInsight.deal_id == deal_id).first()
        )
        return insight_to_dict(insight) if insight else None
