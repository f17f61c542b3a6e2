"""
CRM audit trail service.

Records domain events (deal created, stage changed, model retrained, ...)
for later review.
"""
import logging
from datetime import datetime
from typing import Dict, Any, Optional, List

from sqlalchemy.orm import Session

from app.core.models import AuditEntry

logger = logging.getLogger(__name__)


def log_event(
    db: Session,
    entity_type: str,
    entity_id: str,
    action: str,
    user_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    at: Optional[datetime] = None,
    commit: bool = True,
) -> AuditEntry:
    """
    Create an audit trail entry.

    Args:
        db: Database session
        entity_type: "DEAL", "ACCOUNT", "USER" or "MODEL"
        entity_id: Identifier of the affected record
        action: Event name, e.g. "CREATED" or "STAGE_CHANGED"
        user_id: Acting user
        details: Free-form event payload
        at: Event time (defaults to now)
        commit: Commit immediately; pass False to join the caller's transaction

    Returns:
        Created audit entry
    """
    entry = AuditEntry(
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        user_id=user_id,
        details=details or {},
        created_at=at or datetime.utcnow(),
    )
    db.add(entry)
    if commit:
        db.commit()

    logger.debug(f"Audit: {entity_type} {entity_id} {action} by {user_id}")
    return entry


def get_audit_trail(
    db: Session,
    entity_id: Optional[str] = None,
    limit: int = 50,
) -> List[Dict[str, Any]]:
    """
    Query the audit trail, newest first.

    Args:
        db: Database session
        entity_id: Only entries for this entity
        limit: Maximum results
    """
    query = db.query(AuditEntry)
    if entity_id:
        query = query.filter(AuditEntry.entity_id == entity_id)

    rows = query.order_by(AuditEntry.created_at.desc()).limit(limit).all()

    return [
        {
            "id": row.id,
            "entityType": row.entity_type,
            "entityId": row.entity_id,
            "action": row.action,
            "userId": row.user_id,
            "details": row.details or {},
            "createdAt": row.created_at.isoformat() if row.created_at else None,
        }
        for row in rows
    ]
