"""Fixtures for API tests: the app wired to the per-test database."""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from wallet_ledger.api.deps import get_session_factory_dep
from wallet_ledger.main import app
from wallet_ledger.utils.security import create_account_token, create_admin_token


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app, with the session factory overridden."""
    app.dependency_overrides[get_session_factory_dep] = lambda: session_factory
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def account_headers():
    """Bearer header for a player account."""

    def _headers(account_id: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_account_token(account_id)}"}

    return _headers


@pytest.fixture
def admin_headers():
    """Bearer header for an admin account."""

    def _headers(admin_id: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_admin_token(admin_id)}"}

    return _headers
