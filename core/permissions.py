"""
Role-based access rules.
"""
from typing import Iterable

from models.users import UserRole

ADMIN_ROLES = frozenset({UserRole.ADMIN})

# May read, but not change, other users' records
USER_READER_ROLES = frozenset({UserRole.ADMIN, UserRole.STAFF})


def normalize_roles(roles: Iterable) -> frozenset:
    """Coerce role names to UserRole. Unknown names raise ValueError."""
    return frozenset(UserRole(role) for role in roles)


def is_role_allowed(role: UserRole, allowed: frozenset) -> bool:
    return UserRole(role) in allowed
