"""
Account and contact directory.

Accounts are the companies deals are sold into; contacts are the people at
those accounts.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.audit_service import log_event
from app.core.clock import SystemClock
from app.core.database import write_transaction
from app.core.errors import ForbiddenError, NotFoundError, ValidationError
from app.core.models import Account, Contact, Deal, DealStage, Role
from app.core.records import account_to_dict, contact_to_dict, deal_to_dict
from app.core.scope import DealScope

logger = logging.getLogger(__name__)

ACCOUNT_FIELDS = ["name", "domain", "industry", "country"]


class AccountDirectory:
    """Accounts, their contacts and their deal rollups."""

    def __init__(self, db: Session, clock=None):
        self.db = db
        self.clock = clock or SystemClock()

    def _require_account(self, account_id: str) -> Account:
        account = self.db.query(Account).filter(Account.id == account_id).first()
        if account is None:
            raise NotFoundError("Account not found", resource_id=account_id)
        return account

    def _deal_rollups(self, account_ids: List[str]) -> Dict[str, Dict[str, Any]]:
        """dealCount over every deal, totalValue over deals not LOST."""
        if not account_ids:
            return {}
        counts = dict(
            self.db.query(Deal.account_id, func.count(Deal.id))
            .filter(Deal.account_id.in_(account_ids))
            .group_by(Deal.account_id)
            .all()
        )
        totals = dict(
            self.db.query(Deal.account_id, func.sum(Deal.amount))
            .filter(Deal.account_id.in_(account_ids), Deal.stage != DealStage.LOST.value)
            .group_by(Deal.account_id)
            .all()
        )
        return {
            account_id: {
                "dealCount": counts.get(account_id, 0),
                "totalValue": totals.get(account_id) or 0,
            }
            for account_id in account_ids
        }

    def list_accounts(self, scope: DealScope) -> List[Dict[str, Any]]:
        """Accounts owned within the caller's scope, by name."""
        accounts = (
            scope.apply(self.db.query(Account), owner_column=Account.owner_id)
            .order_by(Account.name)
            .all()
        )
        rollups = self._deal_rollups([a.id for a in accounts])
        return [{**account_to_dict(a), **rollups[a.id]} for a in accounts]

    def create_account(self, data: Dict[str, Any], owner_id: Optional[str]) -> Dict[str, Any]:
        name = data.get("name")
        if not name:
            raise ValidationError("name is required", invalid_params={"name": "missing"})

        now = self.clock.now()
        account = Account(
            name=name,
            domain=data.get("domain") or "",
            industry=data.get("industry") or "",
            country=data.get("country") or "",
            owner_id=owner_id,
            created_at=now,
        )
        with write_transaction(self.db, "create account"):
            self.db.add(account)
            self.db.flush()
            log_event(
                self.db, "ACCOUNT", account.id, "CREATED", user_id=owner_id,
                details={"name": account.name}, at=now, commit=False,
            )
        self.db.refresh(account)

        logger.info(f"Created account {account.id} ({account.name})")
        return account_to_dict(account)

    def get_account(self, account_id: str) -> Dict[str, Any]:
        """Account with its contacts and deals."""
        account = self._require_account(account_id)
        deals = (
            self.db.query(Deal)
            .filter(Deal.account_id == account_id)
            .order_by(Deal.updated_at.desc())
            .all()
        )
        return {
            **account_to_dict(account),
            "contacts": self.list_contacts(account_id),
            "deals": [deal_to_dict(d) for d in deals],
        }

    def update_account(self, account_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        with write_transaction(self.db, "update account"):
            account = self._require_account(account_id)
            for field in ACCOUNT_FIELDS:
                if updates.get(field) is not None:
                    setattr(account, field, updates[field])
        self.db.refresh(account)
        return account_to_dict(account)

    def delete_account(self, account_id: str, role: str) -> bool:
        """
        Delete an account and its contacts. Not allowed for REP callers.

        The account's deals are kept and unlinked from it.
        """
        if role == Role.REP:
            raise ForbiddenError("Insufficient permissions", role=role)

        with write_transaction(self.db, "delete account"):
            unlinked = (
                self.db.query(Deal)
                .filter(Deal.account_id == account_id)
                .update({Deal.account_id: None}, synchronize_session=False)
            )
            self.db.query(Contact).filter(Contact.account_id == account_id).delete(
                synchronize_session=False
            )
            deleted = self.db.query(Account).filter(Account.id == account_id).delete(
                synchronize_session=False
            )
        if deleted:
            logger.info(f"Deleted account {account_id}, unlinked {unlinked} deals")
        return deleted > 0

    def list_contacts(self, account_id: str) -> List[Dict[str, Any]]:
        rows = (
            self.db.query(Contact)
            .filter(Contact.account_id == account_id)
            .order_by(Contact.name)
            .all()
        )
        return [contact_to_dict(c) for c in rows]

    def create_contact(self, account_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Add a contact to an existing account."""
        name = data.get("name")
        with write_transaction(self.db, "create contact"):
            self._require_account(account_id)
            if not name:
                raise ValidationError("name is required", invalid_params={"name": "missing"})

            contact = Contact(
                account_id=account_id,
                name=name,
                email=data.get("email") or "",
                phone=data.get("phone") or "",
                title=data.get("title") or "",
            )
            self.db.add(contact)
        self.db.refresh(contact)
        return contact_to_dict(contact)
