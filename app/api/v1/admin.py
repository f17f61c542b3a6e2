"""
Team and user administration endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from app.api.v1.auth import get_current_user, http_error
from app.core.database import get_db
from app.core.errors import CRMError
from app.core.models import User
from app.users.directory import UserDirectory

router = APIRouter(tags=["admin"])


class UpdateUserRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    role: Optional[str] = Field(None, description="REP, MANAGER or ADMIN")
    team_id: Optional[str] = Field(None, alias="teamId")


@router.get("/teams")
def list_teams(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """List all sales teams."""
    return {"teams": UserDirectory(db).list_teams()}


@router.get("/admin/users")
def list_users(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """List users: everyone for admins, the caller's team for managers."""
    try:
        users = UserDirectory(db).list_users(user.role, user.team_id)
    except CRMError as e:
        raise http_error(e)
    return {"users": users, "count": len(users)}


@router.patch("/admin/users/{user_id}")
def update_user(
    user_id: str,
    request: UpdateUserRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Change a user's name, role or team (admins only)."""
    try:
        return UserDirectory(db).update_user(
            user.role, user_id, request.model_dump(exclude_unset=True)
        )
    except CRMError as e:
        raise http_error(e)
