"""
Deal Tracker Service.

Manages the sales pipeline: deals, their stages and their activity history.
"""

import logging
from typing import Dict, Any, List, Optional

from sqlalchemy.orm import Session

from app.core.audit_service import log_event
from app.core.clock import SystemClock
from app.core.database import write_transaction
from app.core.errors import ForbiddenError, NotFoundError, ValidationError
from app.core.models import (
    Account,
    Activity,
    ActivityType,
    Deal,
    DealInsight,
    DealStage,
    Role,
    User,
)
from app.core.records import activity_to_dict, deal_to_dict, insight_to_dict
from app.core.scope import DealScope

logger = logging.getLogger(__name__)

# Valid pipeline stages
PIPELINE_STAGES = [s.value for s in DealStage]
ACTIVITY_TYPES = [t.value for t in ActivityType]

UPDATABLE_FIELDS = ["name", "stage", "amount", "expected_close_date", "account_id"]


def _validate_stage(stage: str) -> None:
    if stage not in PIPELINE_STAGES:
        raise ValidationError(
            f"Invalid stage. Must be one of: {PIPELINE_STAGES}",
            invalid_params={"stage": str(stage)},
        )


def _validate_amount(amount) -> float:
    try:
        value = float(amount or 0)
    except (TypeError, ValueError):
        raise ValidationError("amount must be a number", invalid_params={"amount": str(amount)})
    if value < 0:
        raise ValidationError("amount must be non-negative", invalid_params={"amount": str(amount)})
    return value


class DealTracker:
    """Deal pipeline tracking service."""

    def __init__(self, db: Session, clock=None):
        self.db = db
        self.clock = clock or SystemClock()

    def _require_deal(self, deal_id: str) -> Deal:
        deal = self.db.query(Deal).filter(Deal.id == deal_id).first()
        if deal is None:
            raise NotFoundError("Deal not found", resource_id=deal_id)
        return deal

    def _names(self, model, ids) -> Dict[str, str]:
        ids = {i for i in ids if i}
        if not ids:
            return {}
        return {
            row.id: row.name for row in self.db.query(model).filter(model.id.in_(ids)).all()
        }

    def list_deals(self, scope: DealScope) -> Dict[str, Any]:
        """Deals visible to the caller, most recently updated first."""
        deals = scope.apply(self.db.query(Deal)).order_by(Deal.updated_at.desc()).all()
        account_names = self._names(Account, [d.account_id for d in deals])
        owner_names = self._names(User, [d.owner_id for d in deals])

        return {
            "deals": [
                {
                    **deal_to_dict(d),
                    "accountName": account_names.get(d.account_id, "Unknown"),
                    "ownerName": owner_names.get(d.owner_id, "Unknown"),
                }
                for d in deals
            ]
        }

    def create_deal(self, data: Dict[str, Any], owner_id: str) -> Dict[str, Any]:
        """Create a new deal owned by ``owner_id``."""
        name = data.get("name")
        if not name:
            raise ValidationError("name is required", invalid_params={"name": "missing"})

        stage = data.get("stage") or DealStage.PROSPECTING.value
        _validate_stage(stage)
        amount = _validate_amount(data.get("amount"))

        now = self.clock.now()
        deal = Deal(
            account_id=data.get("account_id"),
            name=name,
            stage=stage,
            amount=amount,
            currency=data.get("currency") or "USD",
            expected_close_date=data.get("expected_close_date"),
            owner_id=owner_id,
            created_at=now,
            updated_at=now,
        )
        with write_transaction(self.db, "create deal"):
            self.db.add(deal)
            self.db.flush()
            log_event(
                self.db, "DEAL", deal.id, "CREATED", user_id=owner_id,
                details={"name": deal.name, "stage": deal.stage}, at=now, commit=False,
            )
        self.db.refresh(deal)

        logger.info(f"Created deal {deal.id} ({deal.name}) for {owner_id}")
        return deal_to_dict(deal)

    def get_deal(self, deal_id: str) -> Dict[str, Any]:
        """Deal with its activities (newest first) and current insight."""
        deal = self._require_deal(deal_id)
        account = self.db.query(Account).filter(Account.id == deal.account_id).first()
        owner = self.db.query(User).filter(User.id == deal.owner_id).first()
        insight = self.db.query(DealInsight).filter(DealInsight.deal_id == deal_id).first()

        return {
            "deal": {
                **deal_to_dict(deal),
                "accountName": account.name if account else "Unknown",
                "ownerName": owner.name if owner else "Unknown",
            },
            "activities": self.list_activities(deal_id),
            "insight": insight_to_dict(insight) if insight else None,
        }

    def update_deal(
        self, deal_id: str, updates: Dict[str, Any], user_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Update deal fields present in ``updates``."""
        changes = {}
        for field in UPDATABLE_FIELDS:
            if field not in updates:
                continue
            value = updates[field]
            if field == "name" and not value:
                raise ValidationError("name cannot be empty", invalid_params={"name": str(value)})
            if field == "stage":
                _validate_stage(value)
            if field == "amount":
                value = _validate_amount(value)
            changes[field] = value

        with write_transaction(self.db, "update deal"):
            deal = self._require_deal(deal_id)
            now = self.clock.now()
            for field, value in changes.items():
                setattr(deal, field, value)

            # Always update updated_at
            deal.updated_at = now

            if changes.get("stage"):
                log_event(
                    self.db, "DEAL", deal_id, "STAGE_CHANGED", user_id=user_id,
                    details={"newStage": changes["stage"]}, at=now, commit=False,
                )
        self.db.refresh(deal)
        return deal_to_dict(deal)

    def update_stage(self, deal_id: str, stage: str, user_id: Optional[str] = None) -> Dict[str, Any]:
        """Move a deal to a new stage and record the transition."""
        _validate_stage(stage)
        with write_transaction(self.db, "update deal stage"):
            deal = self._require_deal(deal_id)
            now = self.clock.now()

            old_stage = deal.stage
            deal.stage = stage
            deal.updated_at = now
            log_event(
                self.db, "DEAL", deal_id, "STAGE_CHANGED", user_id=user_id,
                details={"oldStage": old_stage, "newStage": stage}, at=now, commit=False,
            )
        self.db.refresh(deal)

        logger.info(f"Deal {deal_id} moved {old_stage} -> {stage}")
        return deal_to_dict(deal)

    def delete_deal(self, deal_id: str, role: str) -> bool:
        """Delete a deal with its activities and insight. Not allowed for REP callers."""
        if role == Role.REP:
            raise ForbiddenError("Insufficient permissions", role=role)

        with write_transaction(self.db, "delete deal"):
            self.db.query(Activity).filter(Activity.deal_id == deal_id).delete(
                synchronize_session=False
            )
            self.db.query(DealInsight).filter(DealInsight.deal_id == deal_id).delete(
                synchronize_session=False
            )
            deleted = self.db.query(Deal).filter(Deal.id == deal_id).delete(
                synchronize_session=False
            )
        if deleted:
            logger.info(f"Deleted deal {deal_id}")
        return deleted > 0

    def list_activities(self, deal_id: str) -> List[Dict[str, Any]]:
        """Activities for a deal, most recent first."""
        rows = (
            self.db.query(Activity)
            .filter(Activity.deal_id == deal_id)
            .order_by(Activity.occurred_at.desc())
            .all()
        )
        return [activity_to_dict(a) for a in rows]

    def add_activity(
        self, deal_id: str, activity: Dict[str, Any], created_by: Optional[str] = None
    ) -> Dict[str, Any]:
        """Log an activity against a deal at the current time."""
        activity_type = activity.get("type") or ActivityType.NOTE.value
        if activity_type not in ACTIVITY_TYPES:
            raise ValidationError(
                f"Invalid activity type. Must be one of: {ACTIVITY_TYPES}",
                invalid_params={"type": str(activity_type)},
            )

        with write_transaction(self.db, "add activity"):
            self._require_deal(deal_id)
            row = Activity(
                deal_id=deal_id,
                type=activity_type,
                content=activity.get("content") or "",
                occurred_at=self.clock.now(),
                created_by=created_by,
            )
            self.db.add(row)
        self.db.refresh(row)
        return activity_to_dict(row)
