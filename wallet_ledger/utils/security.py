"""Server-issued credentials for admins and accounts.

Tokens carry only the subject and its kind. Permissions are never read from a
token; the API layer resolves them from ``admin_accounts`` on every request.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from wallet_ledger.config import get_settings

logger = logging.getLogger(__name__)

TOKEN_TYPE_ADMIN = "admin"
TOKEN_TYPE_ACCOUNT = "account"


class TokenError(Exception):
    """Token validation error with specific code."""

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(message)


def _issue(subject: str, token_type: str, expires_delta: timedelta) -> str:
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload = {
        "sub": subject,
        "type": token_type,
        "iat": now,
        "exp": now + expires_delta,
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def create_admin_token(admin_id: str, expires_delta: timedelta | None = None) -> str:
    """Create a signed token for an admin account.

    Args:
        admin_id: Admin account ID to encode in token
        expires_delta: Custom expiration time

    Returns:
        Encoded JWT token string
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=get_settings().admin_token_expire_minutes)
    return _issue(admin_id, TOKEN_TYPE_ADMIN, expires_delta)


def create_account_token(account_id: str, expires_delta: timedelta | None = None) -> str:
    """Create a signed token for a player account."""
    if expires_delta is None:
        expires_delta = timedelta(minutes=get_settings().account_token_expire_minutes)
    return _issue(account_id, TOKEN_TYPE_ACCOUNT, expires_delta)


def verify_token(token: str, expected_type: str) -> dict[str, Any]:
    """Verify a token and return its payload.

    Raises:
        TokenError: TOKEN_EXPIRED, TOKEN_INVALID or TOKEN_WRONG_TYPE
    """
    if not token:
        raise TokenError("TOKEN_INVALID", "Missing token")

    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            options={"require_exp": True, "require_sub": True, "require_iat": True},
        )
    except jwt.ExpiredSignatureError:
        logger.debug("Token verification failed: token expired")
        raise TokenError("TOKEN_EXPIRED", "Token has expired")
    except JWTError as e:
        logger.warning(f"Token verification failed: {type(e).__name__}")
        raise TokenError("TOKEN_INVALID", "Invalid token")

    if payload.get("type") != expected_type:
        logger.debug(
            f"Token verification failed: wrong type {payload.get('type')!r}, "
            f"expected {expected_type!r}"
        )
        raise TokenError("TOKEN_WRONG_TYPE", "Token is not valid for this endpoint")

    return payload
