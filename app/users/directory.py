"""
User and team directory.

Identity, role and team membership only; credentials are managed by the
upstream auth service.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.database import write_transaction
from app.core.errors import ForbiddenError, NotFoundError, ValidationError
from app.core.models import Role, Team, User
from app.core.records import user_to_dict

logger = logging.getLogger(__name__)

ROLES = [r.value for r in Role]


class UserDirectory:
    """Lookup and administration of CRM users."""

    def __init__(self, db: Session):
        self.db = db

    def get_user(self, user_id: str) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def list_teams(self) -> List[Dict[str, Any]]:
        teams = self.db.query(Team).order_by(Team.name).all()
        return [{"id": t.id, "name": t.name} for t in teams]

    def list_users(self, role: str, team_id: Optional[str]) -> List[Dict[str, Any]]:
        """
        ADMIN sees everyone, MANAGER sees their own team.

        Raises:
            ForbiddenError: caller is a REP
        """
        if role == Role.REP:
            raise ForbiddenError("Insufficient permissions", role=role)

        query = self.db.query(User)
        if role == Role.MANAGER:
            query = query.filter(User.team_id == team_id)
        return [user_to_dict(u) for u in query.order_by(User.name).all()]

    def update_user(
        self, caller_role: str, user_id: str, updates: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Change a user's role or team. ADMIN only."""
        if caller_role != Role.ADMIN:
            raise ForbiddenError("Only admins can update users", role=caller_role)

        new_role = updates.get("role")
        if new_role is not None and new_role not in ROLES:
            raise ValidationError(
                f"Invalid role. Must be one of: {ROLES}", invalid_params={"role": new_role}
            )

        with write_transaction(self.db, "update user"):
            user = self.get_user(user_id)
            if user is None:
                raise NotFoundError("User not found", resource_id=user_id)

            if new_role is not None:
                user.role = new_role
            if "team_id" in updates:
                user.team_id = updates["team_id"]
            if updates.get("name"):
                user.name = updates["name"]

        self.db.refresh(user)
        logger.info(f"Updated user {user_id}: role={user.role}, team={user.team_id}")
        return user_to_dict(user)
