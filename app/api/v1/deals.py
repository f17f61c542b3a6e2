"""
Deal pipeline API endpoints.

Deals, their activity history and AI insights.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from app.api.v1.auth import get_current_user, http_error
from app.core.clock import get_clock
from app.core.database import get_db
from app.core.errors import CRMError
from app.core.models import User
from app.core.scope import resolve_deal_scope
from app.deals.tracker import DealTracker
from app.ml.insight_generator import DealInsightGenerator

router = APIRouter(prefix="/deals", tags=["deals"])


# Request/Response Models


class CreateDealRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1, description="Deal name")
    account_id: Optional[str] = Field(None, alias="accountId")
    stage: Optional[str] = Field(None, description="Initial stage (default PROSPECTING)")
    amount: Optional[float] = Field(0, ge=0, description="Deal value")
    currency: Optional[str] = Field("USD", max_length=3)
    expected_close_date: Optional[datetime] = Field(None, alias="expectedCloseDate")


class UpdateDealRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    account_id: Optional[str] = Field(None, alias="accountId")
    stage: Optional[str] = None
    amount: Optional[float] = Field(None, ge=0)
    expected_close_date: Optional[datetime] = Field(None, alias="expectedCloseDate")


class StageUpdateRequest(BaseModel):
    stage: str = Field(..., description="Target pipeline stage")


class AddActivityRequest(BaseModel):
    type: Optional[str] = Field(None, description="CALL, EMAIL, MEETING or NOTE")
    content: Optional[str] = Field("", description="Activity details")


# Endpoints


@router.get("")
def list_deals(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """List deals visible to the caller."""
    scope = resolve_deal_scope(db, user.role, user.id, user.team_id)
    return DealTracker(db).list_deals(scope)


@router.post("")
def create_deal(
    request: CreateDealRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
):
    """Create a new deal owned by the caller."""
    try:
        return DealTracker(db, clock=clock).create_deal(request.model_dump(), owner_id=user.id)
    except CRMError as e:
        raise http_error(e)


@router.get("/{deal_id}")
def get_deal(
    deal_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Get deal details with activities and the current insight."""
    try:
        return DealTracker(db).get_deal(deal_id)
    except CRMError as e:
        raise http_error(e)


@router.patch("/{deal_id}")
def update_deal(
    deal_id: str,
    request: UpdateDealRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
):
    """Update deal fields."""
    updates = request.model_dump(exclude_unset=True)
    try:
        return DealTracker(db, clock=clock).update_deal(deal_id, updates, user_id=user.id)
    except CRMError as e:
        raise http_error(e)


@router.patch("/{deal_id}/stage")
def update_stage(
    deal_id: str,
    request: StageUpdateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
):
    """Move a deal to another pipeline stage."""
    try:
        return DealTracker(db, clock=clock).update_stage(deal_id, request.stage, user_id=user.id)
    except CRMError as e:
        raise http_error(e)


@router.delete("/{deal_id}")
def delete_deal(
    deal_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Delete a deal and all its activities."""
    try:
        deleted = DealTracker(db).delete_deal(deal_id, role=user.role)
    except CRMError as e:
        raise http_error(e)
    if not deleted:
        raise HTTPException(status_code=404, detail="Deal not found")
    return {"message": "Deal deleted successfully", "id": deal_id}


@router.get("/{deal_id}/activities")
def get_activities(
    deal_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Get activities for a deal, most recent first."""
    activities = DealTracker(db).list_activities(deal_id)
    return {"dealId": deal_id, "activities": activities, "count": len(activities)}


@router.post("/{deal_id}/activities")
def add_activity(
    deal_id: str,
    request: AddActivityRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
):
    """Log an activity against a deal."""
    try:
        return DealTracker(db, clock=clock).add_activity(deal_id, request.model_dump(), created_by=user.id)
    except CRMError as e:
        raise http_error(e)


@router.post("/{deal_id}/insights")
def generate_insight(
    deal_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
):
    """Generate (or regenerate) the AI insight for a deal."""
    try:
        return DealInsightGenerator(db, clock=clock).generate(deal_id)
    except CRMError as e:
        raise http_error(e)


@router.get("/{deal_id}/insights")
def get_insight(
    deal_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Get the most recently generated insight for a deal."""
    insight = DealInsightGenerator(db).get_current(deal_id)
    if insight is None:
        raise HTTPException(status_code=404, detail="No insight generated for this deal")
    return insight
