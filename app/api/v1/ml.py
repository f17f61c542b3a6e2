"""
Model management API endpoints: retraining and AI settings.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from app.api.v1.auth import get_current_user, http_error
from app.core.clock import get_clock
from app.core.database import get_db
from app.core.errors import CRMError
from app.core.models import User
from app.ml.retrain import RetrainCoordinator, get_model_settings, update_model_settings

router = APIRouter(tags=["ml"])


class UpdateSettingsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ai_mode: Optional[str] = Field(None, alias="aiMode", description="mock or live")


@router.post("/ml/retrain")
def retrain(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
):
    """Rescore every open deal once enough deals have closed."""
    try:
        return RetrainCoordinator(db, clock=clock).retrain(user.role, caller_id=user.id)
    except CRMError as e:
        raise http_error(e)


@router.get("/settings")
def read_settings(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Current AI mode, model version and last training time."""
    return get_model_settings(db)


@router.put("/settings")
def write_settings(
    request: UpdateSettingsRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Change the AI mode (admins only)."""
    try:
        return update_model_settings(db, user.role, request.ai_mode)
    except CRMError as e:
        raise http_error(e)
