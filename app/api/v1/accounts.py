"""
Account and contact API endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.api.v1.auth import get_current_user, http_error
from app.core.clock import get_clock
from app.core.database import get_db
from app.core.errors import CRMError
from app.core.models import User
from app.core.scope import resolve_deal_scope
from app.deals.accounts import AccountDirectory

router = APIRouter(prefix="/accounts", tags=["accounts"])


# Request/Response Models


class CreateAccountRequest(BaseModel):
    name: str = Field(..., min_length=1, description="Company name")
    domain: Optional[str] = Field("", description="Web domain")
    industry: Optional[str] = Field("", description="Industry")
    country: Optional[str] = Field("", description="Country")


class UpdateAccountRequest(BaseModel):
    name: Optional[str] = None
    domain: Optional[str] = None
    industry: Optional[str] = None
    country: Optional[str] = None


class CreateContactRequest(BaseModel):
    name: str = Field(..., min_length=1, description="Contact name")
    email: Optional[str] = Field("", description="Email address")
    phone: Optional[str] = Field("", description="Phone number")
    title: Optional[str] = Field("", description="Job title")


# Endpoints


@router.get("")
def list_accounts(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """List accounts visible to the caller with deal rollups."""
    scope = resolve_deal_scope(db, user.role, user.id, user.team_id)
    accounts = AccountDirectory(db).list_accounts(scope)
    return {"accounts": accounts, "count": len(accounts)}


@router.post("")
def create_account(
    request: CreateAccountRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
):
    """Create an account owned by the caller."""
    try:
        return AccountDirectory(db, clock=clock).create_account(request.model_dump(), owner_id=user.id)
    except CRMError as e:
        raise http_error(e)


@router.get("/{account_id}")
def get_account(
    account_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Get an account with its contacts and deals."""
    try:
        return AccountDirectory(db).get_account(account_id)
    except CRMError as e:
        raise http_error(e)


@router.patch("/{account_id}")
def update_account(
    account_id: str,
    request: UpdateAccountRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Update account fields."""
    try:
        return AccountDirectory(db).update_account(
            account_id, request.model_dump(exclude_unset=True)
        )
    except CRMError as e:
        raise http_error(e)


@router.delete("/{account_id}")
def delete_account(
    account_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Delete an account and its contacts."""
    try:
        deleted = AccountDirectory(db).delete_account(account_id, role=user.role)
    except CRMError as e:
        raise http_error(e)
    if not deleted:
        raise HTTPException(status_code=404, detail="Account not found")
    return {"message": "Account deleted successfully", "id": account_id}


@router.get("/{account_id}/contacts")
def list_contacts(
    account_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """List contacts at an account."""
    contacts = AccountDirectory(db).list_contacts(account_id)
    return {"accountId": account_id, "contacts": contacts, "count": len(contacts)}


@router.post("/{account_id}/contacts")
def create_contact(
    account_id: str,
    request: CreateContactRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Add a contact to an account."""
    try:
        return AccountDirectory(db).create_contact(account_id, request.model_dump())
    except CRMError as e:
        raise http_error(e)
