"""API dependencies for authentication and common utilities."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from wallet_ledger.models.admin import AdminAccount
from wallet_ledger.services.admin import AdminAdjustmentProcessor
from wallet_ledger.services.entry import EntryProcessor
from wallet_ledger.utils.db import SessionFactory, get_session_factory
from wallet_ledger.utils.permissions import AdminPrincipal, parse_permissions
from wallet_ledger.utils.security import (
    TOKEN_TYPE_ACCOUNT,
    TOKEN_TYPE_ADMIN,
    TokenError,
    verify_token,
)

# HTTP Bearer security scheme
security = HTTPBearer(auto_error=False)


def get_session_factory_dep() -> SessionFactory:
    """Session factory; tests override this to point at their database."""
    return get_session_factory()


SessionFactoryDep = Annotated[SessionFactory, Depends(get_session_factory_dep)]


async def get_db(factory: SessionFactoryDep) -> AsyncGenerator[AsyncSession, None]:
    """Read-only session for query endpoints."""
    async with factory() as session:
        yield session


DbSession = Annotated[AsyncSession, Depends(get_db)]


def _auth_error(code: str, message: str, status_code: int = status.HTTP_401_UNAUTHORIZED) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail={
            "error": {
                "code": code,
                "message": message,
                "details": {},
                "recoverable": False,
            }
        },
        headers={"WWW-Authenticate": "Bearer"} if status_code == 401 else None,
    )


def _subject(credentials: HTTPAuthorizationCredentials | None, token_type: str) -> str:
    if not credentials:
        raise _auth_error("AUTH_REQUIRED", "Authentication required")
    try:
        payload = verify_token(credentials.credentials, token_type)
    except TokenError as e:
        raise _auth_error(e.code, e.message)
    return payload["sub"]


async def get_current_account_id(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> str:
    """Account ID from a player token (required auth)."""
    return _subject(credentials, TOKEN_TYPE_ACCOUNT)


async def get_current_admin(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: DbSession,
) -> AdminPrincipal:
    """Resolve the acting admin and their permissions from the database.

    The token only proves identity; permissions always come from
    ``admin_accounts``.

    Raises:
        HTTPException: missing/invalid token, unknown or inactive admin
    """
    admin_id = _subject(credentials, TOKEN_TYPE_ADMIN)
    admin = await db.get(AdminAccount, admin_id)
    if admin is None:
        raise _auth_error("AUTH_ADMIN_NOT_FOUND", "Admin account not found")
    if not admin.is_active:
        raise _auth_error(
            "FORBIDDEN",
            "Admin account is disabled",
            status_code=status.HTTP_403_FORBIDDEN,
        )
    return AdminPrincipal(admin_id=admin.id, permissions=parse_permissions(admin.permissions))


def get_entry_processor(factory: SessionFactoryDep) -> EntryProcessor:
    return EntryProcessor(factory)


def get_admin_processor(factory: SessionFactoryDep) -> AdminAdjustmentProcessor:
    return AdminAdjustmentProcessor(factory)


# Type aliases for cleaner annotations
CurrentAccountId = Annotated[str, Depends(get_current_account_id)]
CurrentAdmin = Annotated[AdminPrincipal, Depends(get_current_admin)]
EntryProcessorDep = Annotated[EntryProcessor, Depends(get_entry_processor)]
AdminProcessorDep = Annotated[AdminAdjustmentProcessor, Depends(get_admin_processor)]
IdempotencyKey = Annotated[
    str | None,
    Header(alias="Idempotency-Key", description="Client key making retries safe"),
]
