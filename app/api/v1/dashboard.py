"""
Dashboard and forecast API endpoints.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.analytics.dashboard import DashboardAnalytics
from app.analytics.forecast import ForecastProjector, snapshot_key
from app.api.v1.auth import get_current_user, http_error
from app.core.clock import get_clock
from app.core.database import get_db
from app.core.errors import CRMError
from app.core.models import User

logger = logging.getLogger(__name__)

router = APIRouter(tags=["analytics"])


@router.get("/dashboard/stats")
def get_dashboard_stats(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
):
    """
    Role-scoped pipeline statistics.

    Reps see their own deals, managers their team's, admins everything.
    """
    try:
        return DashboardAnalytics(db, clock=clock).get_dashboard_stats(user.role, user.team_id, user.id)
    except CRMError as e:
        raise http_error(e)


@router.get("/forecast")
def get_forecast(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
):
    """
    Six months of history plus a six-month revenue forecast.

    Each call replaces the stored forecast snapshots for the caller's scope.
    """
    try:
        return ForecastProjector(db, clock=clock).forecast(user.role, user.team_id, user.id)
    except CRMError as e:
        raise http_error(e)


@router.get("/forecast/snapshots")
def get_forecast_snapshots(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Stored forecast snapshots for the caller's scope, by month."""
    owner_id, team_id = snapshot_key(user.role, user.team_id, user.id)
    snapshots = ForecastProjector(db).get_snapshots(owner_id=owner_id, team_id=team_id)
    return {"snapshots": snapshots, "count": len(snapshots)}
