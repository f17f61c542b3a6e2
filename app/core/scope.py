"""
Role-based deal scoping.

REP callers see their own deals, MANAGER callers see every deal owned by a
member of their team, ADMIN callers (and managers without a team) see
everything. The dashboard, forecast and deal listing all resolve their scope
here.
"""

import logging
from dataclasses import dataclass
from typing import FrozenSet, Optional

from sqlalchemy.orm import Query, Session

from app.core.models import Deal, Role, User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DealScope:
    """
    Resolved visibility for one caller.

    owner_ids is None when the caller is unrestricted.
    """

    role: str
    caller_id: Optional[str]
    team_id: Optional[str]
    owner_ids: Optional[FrozenSet[str]] = None

    @property
    def unrestricted(self) -> bool:
        return self.owner_ids is None

    def apply(self, query: Query, owner_column=Deal.owner_id) -> Query:
        """Restrict a query over owned rows to this scope."""
        if self.unrestricted:
            return query
        return query.filter(owner_column.in_(self.owner_ids))


def resolve_deal_scope(
    db: Session,
    role: str,
    caller_id: Optional[str],
    team_id: Optional[str],
) -> DealScope:
    """
    Build the deal scope for a caller.

    Team membership is resolved by looking up every user with a matching
    team reference.
    """
    if role == Role.REP:
        return DealScope(
            role=role,
            caller_id=caller_id,
            team_id=team_id,
            owner_ids=frozenset([caller_id]) if caller_id else frozenset(),
        )

    if role == Role.MANAGER and team_id:
        member_ids = [
            row[0] for row in db.query(User.id).filter(User.team_id == team_id).all()
        ]
        logger.debug(f"Manager scope for team {team_id}: {len(member_ids)} members")
        return DealScope(
            role=role,
            caller_id=caller_id,
            team_id=team_id,
            owner_ids=frozenset(member_ids),
        )

    return DealScope(role=role, caller_id=caller_id, team_id=team_id)


def scoped_deals(db: Session, scope: DealScope):
    """All deals visible under ``scope``."""
    return scope.apply(db.query(Deal)).all()
