"""
Users module: CRM identities, roles and teams.
"""

from app.users.directory import UserDirectory

__all__ = ["UserDirectory"]
