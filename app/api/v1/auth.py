"""
Caller identity for the CRM API.

Tokens are verified upstream; requests arrive with the resolved user id in
the X-User-Id header.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.errors import CRMError
from app.core.models import User
from app.core.records import user_to_dict
from app.users.directory import UserDirectory

router = APIRouter(prefix="/auth", tags=["auth"])


def get_current_user(
    x_user_id: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the X-User-Id header to a user row."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="X-User-Id header required")

    user = UserDirectory(db).get_user(x_user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="Unknown user")
    return user


def http_error(err: CRMError) -> HTTPException:
    """Map a service error onto the HTTP status it carries."""
    return HTTPException(status_code=err.status_code, detail=err.message)


@router.get("/me")
def get_me(user: User = Depends(get_current_user)):
    """Get the calling user's profile."""
    return user_to_dict(user)
