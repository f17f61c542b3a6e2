"""
Close-probability scoring primitives.

Pure functions: a stage base probability adjusted for engagement, deal size
and staleness, and the risk tier derived from it. Each adjustment is applied
to the running value with its own clamp, so the order below is significant.
"""

from datetime import datetime
from typing import Optional

from app.core.clock import days_between
from app.core.models import Deal, RiskLevel

STAGE_BASE_PROBABILITY = {
    "PROSPECTING": 0.15,
    "QUALIFIED": 0.30,
    "PROPOSAL": 0.50,
    "NEGOTIATION": 0.70,
    "WON": 1.0,
    "LOST": 0.0,
}
DEFAULT_BASE_PROBABILITY = 0.25

PROBABILITY_CEILING = 0.95
PROBABILITY_FLOOR = 0.05

# (activity count threshold, bonus)
ENGAGEMENT_STEPS = [(5, 0.05), (10, 0.05)]

# (amount threshold, penalty)
SIZE_PENALTY_STEPS = [(200_000, 0.03), (500_000, 0.05)]

STALE_AFTER_DAYS = 90
STALE_PENALTY = 0.05

LOW_RISK_THRESHOLD = 0.65
MEDIUM_RISK_THRESHOLD = 0.35


def deal_age_days(deal: Deal, now: datetime) -> int:
    """Whole days since the deal was created."""
    if deal.created_at is None:
        return 0
    return days_between(deal.created_at, now)


def close_probability(
    deal: Deal, activity_count: int, now: Optional[datetime] = None
) -> float:
    """
    Heuristic close probability for a deal.

    WON and LOST deals still pass through the adjustments; only their raw
    stage values (1.0 / 0.0) fall outside the [0.05, 0.95] band, and any
    adjustment that fires pulls them into it.
    """
    now = now or datetime.utcnow()
    prob = STAGE_BASE_PROBABILITY.get(deal.stage, DEFAULT_BASE_PROBABILITY)

    for threshold, bonus in ENGAGEMENT_STEPS:
        if activity_count > threshold:
            prob = min(prob + bonus, PROBABILITY_CEILING)

    amount = deal.amount or 0
    for threshold, penalty in SIZE_PENALTY_STEPS:
        if amount > threshold:
            prob = max(prob - penalty, PROBABILITY_FLOOR)

    if deal_age_days(deal, now) > STALE_AFTER_DAYS:
        prob = max(prob - STALE_PENALTY, PROBABILITY_FLOOR)

    return round(prob, 2)


def risk_level(probability: float) -> str:
    """Risk tier; each band is inclusive on its lower bound."""
    if probability >= LOW_RISK_THRESHOLD:
        return RiskLevel.LOW.value
    if probability >= MEDIUM_RISK_THRESHOLD:
        return RiskLevel.MEDIUM.value
    return RiskLevel.HIGH.value
