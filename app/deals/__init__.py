"""
Deal pipeline package.

Deals, their activity history, and the accounts and contacts they belong to.
"""

from app.deals.tracker import DealTracker
from app.deals.accounts import AccountDirectory

__all__ = ["DealTracker", "AccountDirectory"]
