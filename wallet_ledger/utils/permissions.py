"""Admin permissions.

Names follow the admin panel's permission list. ``full_access`` implies every
other permission.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable

from wallet_ledger.utils.errors import UnauthorizedError


class Permission(str, Enum):
    FULL_ACCESS = "full_access"

    # Tournaments
    TOURNAMENT_CREATE = "tournament_create"
    TOURNAMENT_EDIT = "tournament_edit"
    TOURNAMENT_DELETE = "tournament_delete"
    TOURNAMENT_MANAGE_PARTICIPANTS = "tournament_manage_participants"

    # Users
    USER_VIEW = "user_view"
    USER_EDIT_CURRENCY = "user_edit_currency"
    USER_BAN = "user_ban"
    USER_SUSPEND = "user_suspend"
    USER_GIVE_REWARDS = "user_give_rewards"

    # Announcements
    ANNOUNCEMENT_CREATE = "announcement_create"

    # Audit
    LOGS_VIEW = "logs_view"


def parse_permissions(raw: Iterable[str]) -> frozenset[Permission]:
    """Convert stored permission names, ignoring names no longer defined."""
    known = {p.value for p in Permission}
    return frozenset(Permission(name) for name in raw if name in known)


def has_permission(granted: Iterable[Permission], permission: Permission) -> bool:
    """Check if a permission set includes ``permission``"""
    granted = set(granted)
    return Permission.FULL_ACCESS in granted or permission in granted


@dataclass(frozen=True)
class AdminPrincipal:
    """A verified admin identity with permissions resolved server-side."""

    admin_id: str
    permissions: frozenset[Permission] = field(default_factory=frozenset)

    def can(self, permission: Permission) -> bool:
        return has_permission(self.permissions, permission)

    def require(self, permission: Permission) -> None:
        """Raise UNAUTHORIZED unless the principal holds ``permission``."""
        if not self.can(permission):
            raise UnauthorizedError(permission.value, self.admin_id)
