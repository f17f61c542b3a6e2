"""
Audit Trail API.

Query endpoint for the CRM audit log.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.api.v1.auth import get_current_user
from app.core import audit_service
from app.core.database import get_db
from app.core.models import Role, User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/audit", tags=["Audit Trail"])


@router.get("")
def get_audit_trail(
    entity_id: Optional[str] = Query(None, alias="entityId", description="Filter by entity"),
    limit: int = Query(50, ge=1, le=500),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Query the audit trail, newest first.

    Managers and admins only.
    """
    if user.role == Role.REP:
        logger.warning(f"Audit trail rejected for REP caller {user.id}")
        raise HTTPException(status_code=403, detail="Insufficient permissions")

    entries = audit_service.get_audit_trail(db, entity_id=entity_id, limit=limit)
    return {
        "entries": entries,
        "total": len(entries),
        "filters": {"entityId": entity_id, "limit": limit},
    }
