"""Shared fixtures: a fresh SQLite database per test and seed helpers."""

import os
import tempfile
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any
from uuid import uuid4

# Settings are read at import time by the app module
os.environ.setdefault(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{os.path.join(tempfile.gettempdir(), 'wallet-ledger-app.db')}",
)
os.environ.setdefault("JWT_SECRET_KEY", "ledger-tests-signing-key-7f3c9a1e5b2d8f4a6c0e")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("LOG_LEVEL", "INFO")
os.environ.setdefault("CONFLICT_RETRY_ATTEMPTS", "30")
os.environ.setdefault("CONFLICT_RETRY_MULTIPLIER", "0.001")
os.environ.setdefault("CONFLICT_RETRY_MIN_WAIT", "0.001")
os.environ.setdefault("CONFLICT_RETRY_MAX_WAIT", "0.02")

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine

from wallet_ledger.config import Settings, get_settings
from wallet_ledger.models import (
    Account,
    AccountStatus,
    AdminAccount,
    Base,
    Tournament,
    TournamentStatus,
)
from wallet_ledger.utils.db import SessionFactory, build_engine, build_session_factory
from wallet_ledger.utils.permissions import AdminPrincipal, Permission
from wallet_ledger.utils.time import utcnow

get_settings.cache_clear()


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings pointing at a per-test database file."""
    return get_settings().model_copy(
        update={"database_url": f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}"}
    )


@pytest_asyncio.fixture
async def engine(settings) -> AsyncGenerator[AsyncEngine, None]:
    """Engine with freshly created tables."""
    engine = build_engine(settings)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine) -> SessionFactory:
    return build_session_factory(engine)


# =============================================================================
# Seed helpers
# =============================================================================


class Seeder:
    """Inserts committed rows and reads them back through fresh sessions."""

    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    async def _add(self, obj: Any) -> Any:
        async with self.session_factory() as session:
            session.add(obj)
            await session.commit()
        return obj

    async def account(
        self,
        username: str | None = None,
        cash: str = "0.00",
        gems: int = 0,
        coins: int = 0,
        vouchers: dict[int, int] | None = None,
        status: AccountStatus = AccountStatus.ACTIVE,
    ) -> Account:
        vouchers = vouchers or {}
        return await self._add(
            Account(
                id=str(uuid4()),
                username=username or f"player_{uuid4().hex[:8]}",
                cash_balance=Decimal(cash),
                gems=gems,
                coins=coins,
                voucher_20=vouchers.get(20, 0),
                voucher_30=vouchers.get(30, 0),
                voucher_50=vouchers.get(50, 0),
                status=status.value,
                version=1,
            )
        )

    async def tournament(
        self,
        name: str = "Friday Squad Cup",
        entry_fee: str = "20.00",
        capacity: int = 2,
        status: TournamentStatus = TournamentStatus.UPCOMING,
        start_time: datetime | None = None,
        room_id: str | None = None,
        room_password: str | None = None,
        game: str = "freefire",
    ) -> Tournament:
        return await self._add(
            Tournament(
                id=str(uuid4()),
                name=name,
                game=game,
                entry_fee=Decimal(entry_fee),
                prize_pool=Decimal("0.00"),
                capacity=capacity,
                occupancy=0,
                status=status.value,
                start_time=start_time or utcnow() + timedelta(days=1),
                room_id=room_id,
                room_password=room_password,
                version=1,
            )
        )

    async def admin(
        self,
        permissions: list[Permission] | None = None,
        is_active: bool = True,
    ) -> AdminAccount:
        return await self._add(
            AdminAccount(
                id=str(uuid4()),
                display_name=f"admin_{uuid4().hex[:6]}",
                permissions=[p.value for p in (permissions or [Permission.FULL_ACCESS])],
                is_active=is_active,
            )
        )

    async def get(self, model: type, obj_id: Any) -> Any:
        async with self.session_factory() as session:
            return await session.get(model, obj_id)


@pytest_asyncio.fixture
async def seed(session_factory) -> Seeder:
    return Seeder(session_factory)


@pytest_asyncio.fixture
async def root_admin(seed) -> AdminPrincipal:
    """Admin holding full_access."""
    admin = await seed.admin()
    return AdminPrincipal(admin_id=admin.id, permissions=frozenset({Permission.FULL_ACCESS}))


@pytest_asyncio.fixture
async def viewer_admin(seed) -> AdminPrincipal:
    """Admin that may only look."""
    admin = await seed.admin([Permission.USER_VIEW, Permission.LOGS_VIEW])
    return AdminPrincipal(
        admin_id=admin.id,
        permissions=frozenset({Permission.USER_VIEW, Permission.LOGS_VIEW}),
    )
