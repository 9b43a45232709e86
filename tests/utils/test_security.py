"""Tests for server-issued admin and account tokens."""

from datetime import timedelta

import pytest
from jose import jwt

from wallet_ledger.config import get_settings
from wallet_ledger.utils.security import (
    TOKEN_TYPE_ACCOUNT,
    TOKEN_TYPE_ADMIN,
    TokenError,
    create_account_token,
    create_admin_token,
    verify_token,
)


class TestTokens:
    def test_admin_token_round_trip(self):
        token = create_admin_token("admin-1")
        payload = verify_token(token, TOKEN_TYPE_ADMIN)
        assert payload["sub"] == "admin-1"
        assert payload["type"] == "admin"

    def test_account_token_rejected_on_admin_endpoint(self):
        """An account token never authenticates an admin."""
        token = create_account_token("acc-1")
        with pytest.raises(TokenError) as exc_info:
            verify_token(token, TOKEN_TYPE_ADMIN)
        assert exc_info.value.code == "TOKEN_WRONG_TYPE"

    def test_expired(self):
        token = create_account_token("acc-1", expires_delta=timedelta(seconds=-5))
        with pytest.raises(TokenError) as exc_info:
            verify_token(token, TOKEN_TYPE_ACCOUNT)
        assert exc_info.value.code == "TOKEN_EXPIRED"

    def test_forged_signature(self):
        settings = get_settings()
        forged = jwt.encode(
            {"sub": "admin-1", "type": "admin", "iat": 0, "exp": 4102444800},
            "x" * 40,
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(TokenError) as exc_info:
            verify_token(forged, TOKEN_TYPE_ADMIN)
        assert exc_info.value.code == "TOKEN_INVALID"

    def test_empty_token(self):
        with pytest.raises(TokenError):
            verify_token("", TOKEN_TYPE_ACCOUNT)
