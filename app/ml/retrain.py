"""
Heuristic model retraining.

"Retraining" re-applies the scoring primitives to every open deal using its
real activity count, once enough labeled (WON/LOST) deals exist, and stamps a
new model version. Nothing is fitted.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.audit_service import log_event
from app.core.clock import SystemClock
from app.core.config import get_settings
from app.core.database import write_transaction
from app.core.errors import ForbiddenError, InternalError, ValidationError
from app.core.models import Activity, CLOSED_STAGES, Deal, ModelSettings, Role
from app.ml.scoring import close_probability, risk_level

logger = logging.getLogger(__name__)

SETTINGS_ID = "settings-global"
EPOCH = datetime(1970, 1, 1)
AI_MODES = ("mock", "live")


def _settings_to_dict(row: ModelSettings) -> Dict[str, Any]:
    return {
        "id": row.id,
        "aiMode": row.ai_mode,
        "modelVersion": row.model_version,
        "lastTrainedAt": row.last_trained_at.isoformat() if row.last_trained_at else None,
    }


def get_model_settings(db: Session) -> Dict[str, Any]:
    """Current AI settings, with defaults when nothing has been stored yet."""
    row = db.query(ModelSettings).filter(ModelSettings.id == SETTINGS_ID).first()
    if row is None:
        return {
            "aiMode": get_settings().default_ai_mode,
            "modelVersion": "1.0.0",
            "lastTrainedAt": None,
        }
    return _settings_to_dict(row)


def _get_or_create_settings(db: Session) -> ModelSettings:
    row = db.query(ModelSettings).filter(ModelSettings.id == SETTINGS_ID).first()
    if row is None:
        row = ModelSettings(id=SETTINGS_ID, ai_mode=get_settings().default_ai_mode)
        db.add(row)
    return row


def update_model_settings(db: Session, role: str, ai_mode: Optional[str]) -> Dict[str, Any]:
    """Change the AI mode. ADMIN only."""
    if role != Role.ADMIN:
        raise ForbiddenError("Only admins can update settings", role=role)
    if ai_mode is not None and ai_mode not in AI_MODES:
        raise ValidationError(
            f"Invalid aiMode. Must be one of: {list(AI_MODES)}",
            invalid_params={"aiMode": ai_mode},
        )

    with write_transaction(db, "update model settings"):
        row = _get_or_create_settings(db)
        if ai_mode is not None:
            row.ai_mode = ai_mode
    return _settings_to_dict(row)


class RetrainCoordinator:
    """Gate-checks labeled volume, then rescores every open deal."""

    def __init__(self, db: Session, clock=None, min_labeled: Optional[int] = None):
        self.db = db
        self.clock = clock or SystemClock()
        self.min_labeled = min_labeled or get_settings().min_labeled_deals

    def _activity_counts(self) -> Dict[str, int]:
        rows = (
            self.db.query(Activity.deal_id, func.count(Activity.id))
            .group_by(Activity.deal_id)
            .all()
        )
        return {deal_id: count for deal_id, count in rows}

    def retrain(self, role: str, caller_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Rescore all open deals.

        Raises:
            ForbiddenError: caller is a REP
            InternalError: a persistence read or write failed
        """
        if role == Role.REP:
            logger.warning(f"Retrain rejected for REP caller {caller_id}")
            raise ForbiddenError("Only managers and admins can retrain", role=role)

        now = self.clock.now()
        try:
            labeled = self.db.query(Deal).filter(Deal.stage.in_(CLOSED_STAGES)).count()
            if labeled < self.min_labeled:
                logger.info(
                    f"Retrain skipped: {labeled} labeled deals, need {self.min_labeled}"
                )
                return {
                    "message": (
                        "Not enough labeled data for training "
                        f"(need at least {self.min_labeled} WON/LOST deals)"
                    ),
                    "trained": False,
                    "dealCount": labeled,
                }

            counts = self._activity_counts()
            open_deals = self.db.query(Deal).filter(~Deal.stage.in_(CLOSED_STAGES)).all()
            for deal in open_deals:
                probability = close_probability(deal, counts.get(deal.id, 0), now=now)
                deal.close_probability = probability
                deal.risk_level = risk_level(probability)
                logger.debug(f"Rescored deal {deal.id}: {probability}")

            settings_row = _get_or_create_settings(self.db)
            settings_row.model_version = f"1.0.{int((now - EPOCH).total_seconds() * 1000)}"
            settings_row.last_trained_at = now

            log_event(
                self.db,
                entity_type="MODEL",
                entity_id=SETTINGS_ID,
                action="RETRAINED",
                user_id=caller_id,
                details={
                    "modelVersion": settings_row.model_version,
                    "labeledDeals": labeled,
                    "updatedDeals": len(open_deals),
                },
                at=now,
                commit=False,
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Retrain failed: {e}")
            raise InternalError("Failed to retrain model", cause=e) from e

        logger.info(
            f"Model retrained to {settings_row.model_version}: "
            f"{labeled} labeled deals, {len(open_deals)} deals rescored"
        )
        return {
            "message": "Model retrained successfully (mock mode)",
            "trained": True,
            "dealCount": labeled,
            "updatedDeals": len(open_deals),
            "modelVersion": settings_row.model_version,
        }
