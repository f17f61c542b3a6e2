"""
Insight narrator.

Turns a deal and its activity history into the human-readable parts of an
insight: risk factors, next-best actions, a follow-up email draft and a
summary paragraph. Everything here is deterministic for a given "now".
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from app.core.clock import days_between
from app.core.models import Activity, ActivityType, Deal, DealStage
from app.ml.scoring import deal_age_days

MAX_RISK_FACTORS = 5
MAX_NEXT_BEST_ACTIONS = 4

# Assumed gap when a deal has no activity at all
NO_ACTIVITY_DAYS = 30

LARGE_DEAL_AMOUNT = 200_000
STALLED_AFTER_DAYS = 60
EARLY_STAGES = (DealStage.PROSPECTING.value, DealStage.QUALIFIED.value)

RISK_NO_CONTACT = "No contact in over 2 weeks - risk of going cold"
RISK_DECLINING = "Communication frequency declining"
RISK_LARGE_DEAL = "Large deal size may require additional approvals"
RISK_NO_MEETINGS = "No meetings logged - limited stakeholder engagement"
RISK_LOW_ENGAGEMENT = "Low engagement level with fewer than 3 interactions"
RISK_STALLED = "Deal stalled - in early stage for over 60 days"

ACTIONS_BY_STAGE: Dict[str, List[str]] = {
    "PROSPECTING": [
        "Research company recent news and key decision makers",
        "Prepare tailored value proposition for their industry",
        "Schedule introductory discovery call",
        "Send industry-relevant case studies via email",
    ],
    "QUALIFIED": [
        "Schedule product demo with key stakeholders",
        "Map the buying committee and identify champion",
        "Prepare competitive differentiation points",
        "Send ROI calculator worksheet",
    ],
    "PROPOSAL": [
        "Follow up on proposal within 48 hours",
        "Schedule technical review meeting",
        "Address pricing concerns with flexible options",
        "Provide customer references in same industry",
    ],
    "NEGOTIATION": [
        "Involve executive sponsor for final push",
        "Prepare contract red-line response document",
        "Set clear decision timeline with champion",
        "Offer limited-time implementation bonus",
    ],
    "WON": [
        "Schedule kickoff meeting with implementation team",
        "Send welcome package and onboarding timeline",
        "Introduce customer success manager",
    ],
    "LOST": [
        "Schedule loss review meeting internally",
        "Send graceful close-out email to prospect",
        "Document lessons learned and objections",
    ],
}

EMAIL_SUBJECT = "Following up on {name} — Next Steps"
EMAIL_BODY = """Hi there,

I hope this message finds you well. I wanted to follow up regarding {name} and our recent conversations.

Based on our discussions, I believe there's a strong fit between our solution and your team's needs. I'd love to schedule a brief call this week to:

1. Address any remaining questions or concerns you may have
2. Discuss the timeline and next steps for moving forward
3. Review the implementation approach and expected outcomes

Would you have 30 minutes available this Thursday or Friday afternoon?

I'm confident we can deliver significant value to your organization, and I look forward to continuing our conversation.

Best regards"""


@dataclass
class InsightNarrative:
    """Narrative half of a deal insight."""

    risk_factors: List[str] = field(default_factory=list)
    next_best_actions: List[str] = field(default_factory=list)
    email_draft: Dict[str, str] = field(default_factory=dict)
    summary: str = ""


def sort_recent_first(activities: Sequence[Activity]) -> List[Activity]:
    """Order activities by occurrence time, most recent first."""
    return sorted(activities, key=lambda a: a.occurred_at, reverse=True)


def days_since_last_activity(activities: Sequence[Activity], now: datetime) -> int:
    if not activities:
        return NO_ACTIVITY_DAYS
    latest = max(a.occurred_at for a in activities)
    return days_between(latest, now)


def derive_risk_factors(
    deal: Deal, activities: Sequence[Activity], now: datetime
) -> List[str]:
    """Evaluate every risk rule in a fixed order and keep the first five."""
    factors = []
    quiet_days = days_since_last_activity(activities, now)

    if quiet_days > 14:
        factors.append(RISK_NO_CONTACT)
    elif quiet_days > 7:
        factors.append(RISK_DECLINING)

    if (deal.amount or 0) > LARGE_DEAL_AMOUNT:
        factors.append(RISK_LARGE_DEAL)

    if not any(a.type == ActivityType.MEETING for a in activities):
        factors.append(RISK_NO_MEETINGS)

    if len(activities) < 3:
        factors.append(RISK_LOW_ENGAGEMENT)

    if deal_age_days(deal, now) > STALLED_AFTER_DAYS and deal.stage in EARLY_STAGES:
        factors.append(RISK_STALLED)

    return factors[:MAX_RISK_FACTORS]


def next_best_actions(stage: Optional[str]) -> List[str]:
    """Canned recommendations for a stage; unknown stages use PROSPECTING."""
    actions = ACTIONS_BY_STAGE.get(stage, ACTIONS_BY_STAGE["PROSPECTING"])
    return list(actions[:MAX_NEXT_BEST_ACTIONS])


def email_draft(deal: Deal) -> Dict[str, str]:
    return {
        "subject": EMAIL_SUBJECT.format(name=deal.name),
        "body": EMAIL_BODY.format(name=deal.name),
    }


def format_amount(amount: Optional[float]) -> str:
    amount = amount or 0
    if float(amount).is_integer():
        return f"${int(amount):,}"
    return f"${amount:,.2f}"


def _activity_breakdown(activities: Sequence[Activity]) -> str:
    counts = Counter(a.type for a in activities)
    ordered = [t.value for t in ActivityType if t.value in counts]
    ordered += sorted(t for t in counts if t not in ordered)
    return ", ".join(f"{counts[t]} {t.lower()}(s)" for t in ordered)


def summarize(deal: Deal, activities: Sequence[Activity], now: datetime) -> str:
    parts = [
        f'Deal "{deal.name}" is in the {deal.stage} stage valued at {format_amount(deal.amount)}.'
    ]

    if activities:
        parts.append(
            f"{len(activities)} activities logged ({_activity_breakdown(activities)})."
        )
    else:
        parts.append("No activities have been logged yet.")

    parts.append(f"Open for {deal_age_days(deal, now)} days.")

    if deal.expected_close_date:
        days_to_close = days_between(now, deal.expected_close_date)
        if days_to_close > 0:
            parts.append(f"Expected to close in {days_to_close} days.")
        else:
            parts.append(f"Close date passed {abs(days_to_close)} days ago.")

    return " ".join(parts)


def narrate(deal: Deal, activities: Sequence[Activity], now: datetime) -> InsightNarrative:
    """Build the full narrative for a deal."""
    ordered = sort_recent_first(activities)
    return InsightNarrative(
        risk_factors=derive_risk_factors(deal, ordered, now),
        next_best_actions=next_best_actions(deal.stage),
        email_draft=email_draft(deal),
        summary=summarize(deal, ordered, now),
    )
