"""
ORM row -> exchange record conversion.

Field names follow the camelCase vocabulary that UI and API collaborators
are built against. Persistence-internal fields never leave this module.
"""
from datetime import datetime
from typing import Any, Dict, Optional

from app.core.models import Account, Activity, Contact, Deal, DealInsight, User


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def deal_to_dict(deal: Deal) -> Dict[str, Any]:
    return {
        "id": deal.id,
        "accountId": deal.account_id,
        "name": deal.name,
        "stage": deal.stage,
        "amount": deal.amount or 0,
        "currency": deal.currency,
        "expectedCloseDate": _iso(deal.expected_close_date),
        "ownerId": deal.owner_id,
        "createdAt": _iso(deal.created_at),
        "updatedAt": _iso(deal.updated_at),
        "closeProbability": deal.close_probability,
        "riskLevel": deal.risk_level,
    }


def activity_to_dict(activity: Activity) -> Dict[str, Any]:
    return {
        "id": activity.id,
        "dealId": activity.deal_id,
        "type": activity.type,
        "content": activity.content,
        "occurredAt": _iso(activity.occurred_at),
        "createdBy": activity.created_by,
    }


def insight_to_dict(insight: DealInsight) -> Dict[str, Any]:
    return {
        "id": insight.id,
        "dealId": insight.deal_id,
        "closeProbability": insight.close_probability,
        "riskLevel": insight.risk_level,
        "riskFactors": list(insight.risk_factors or []),
        "nextBestActions": list(insight.next_best_actions or []),
        "emailDraft": dict(insight.email_draft or {}),
        "summary": insight.summary,
        "modelVersion": insight.model_version,
        "createdAt": _iso(insight.created_at),
    }


def account_to_dict(account: Account) -> Dict[str, Any]:
    return {
        "id": account.id,
        "name": account.name,
        "domain": account.domain,
        "industry": account.industry,
        "country": account.country,
        "ownerId": account.owner_id,
        "createdAt": _iso(account.created_at),
    }


def contact_to_dict(contact: Contact) -> Dict[str, Any]:
    return {
        "id": contact.id,
        "accountId": contact.account_id,
        "name": contact.name,
        "email": contact.email,
        "phone": contact.phone,
        "title": contact.title,
    }


def user_to_dict(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role,
        "teamId": user.team_id,
        "createdAt": _iso(user.created_at),
    }
