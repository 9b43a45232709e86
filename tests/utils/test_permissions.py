"""Tests for admin permission resolution."""

import pytest

from wallet_ledger.utils.errors import ErrorCode, UnauthorizedError
from wallet_ledger.utils.permissions import (
    AdminPrincipal,
    Permission,
    has_permission,
    parse_permissions,
)


def test_parse_ignores_unknown_names():
    assert parse_permissions(["user_view", "launch_rockets"]) == frozenset({Permission.USER_VIEW})


def test_full_access_grants_everything():
    granted = {Permission.FULL_ACCESS}
    assert all(has_permission(granted, p) for p in Permission)


def test_specific_permission():
    granted = {Permission.USER_SUSPEND}
    assert has_permission(granted, Permission.USER_SUSPEND)
    assert not has_permission(granted, Permission.USER_BAN)


def test_require_raises_unauthorized():
    principal = AdminPrincipal("admin-1", frozenset({Permission.LOGS_VIEW}))

    principal.require(Permission.LOGS_VIEW)
    with pytest.raises(UnauthorizedError) as exc_info:
        principal.require(Permission.USER_EDIT_CURRENCY)

    assert exc_info.value.code is ErrorCode.UNAUTHORIZED
    assert exc_info.value.details == {
        "permission": "user_edit_currency",
        "adminId": "admin-1",
    }
