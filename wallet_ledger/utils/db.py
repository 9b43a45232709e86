"""Database connection and session management."""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from wallet_ledger.config import Settings, get_settings
from wallet_ledger.utils.errors import OutcomeUnknownError, VersionConflictError

logger = logging.getLogger(__name__)

SessionFactory = async_sessionmaker[AsyncSession]

# Serialization failure and deadlock: the server rolled the transaction back
RETRYABLE_SQLSTATES = frozenset({"40001", "40P01"})

_engine: AsyncEngine | None = None
_session_factory: SessionFactory | None = None


def build_engine(settings: Settings) -> AsyncEngine:
    """Create the async engine for ``settings.database_url``.

    SQLite gets a NullPool and a busy timeout so concurrent writers queue on
    the file lock instead of failing immediately.
    """
    if settings.database_url.startswith("sqlite"):
        return create_async_engine(
            settings.database_url,
            poolclass=NullPool,
            connect_args={"timeout": 30},
            echo=settings.db_echo,
        )
    return create_async_engine(
        settings.database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,
        echo=settings.db_echo,
    )


def build_session_factory(engine: AsyncEngine) -> SessionFactory:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        _engine = build_engine(get_settings())
    return _engine


def get_session_factory() -> SessionFactory:
    """Process-wide session factory, created on first use."""
    global _session_factory
    if _session_factory is None:
        _session_factory = build_session_factory(get_engine())
    return _session_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for read-only request handlers.

    Mutations go through the processors, which own their transactions.
    """
    async with get_session_factory()() as session:
        yield session


async def init_db() -> None:
    """Initialize database connection pool."""
    async with get_engine().connect() as conn:
        await conn.run_sync(lambda _: None)


async def close_db() -> None:
    """Close database connection pool."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None


async def commit_or_unknown(
    session: AsyncSession,
    operation: str,
    idempotency_key: str | None = None,
    timeout: float | None = None,
) -> None:
    """Commit the unit of work, classifying failures.

    A uniqueness violation means another request won a race and is retried as
    a version conflict, as is a serialization failure or deadlock the server
    already rolled back. A timeout or a lost connection after the commit was
    issued leaves the outcome unknown to us.

    Raises:
        VersionConflictError: constraint violation or server-side abort at commit
        OutcomeUnknownError: commit not acknowledged
    """
    if timeout is None:
        timeout = get_settings().commit_timeout_seconds
    try:
        await asyncio.wait_for(session.commit(), timeout=timeout)
    except IntegrityError as e:
        logger.info(f"Commit for {operation} hit a constraint: {type(e.orig).__name__}")
        await session.rollback()
        raise VersionConflictError(operation, idempotency_key or "-")
    except DBAPIError as e:
        if is_retryable(e):
            logger.info(f"Commit for {operation} rolled back by the server: {sqlstate_of(e)}")
            await session.rollback()
            raise VersionConflictError(operation, idempotency_key or "-")
        logger.error(
            f"Commit for {operation} not acknowledged: {type(e).__name__} "
            f"(idempotency_key={idempotency_key})"
        )
        raise OutcomeUnknownError(operation, idempotency_key)
    except (asyncio.TimeoutError, ConnectionError) as e:
        logger.error(
            f"Commit for {operation} not acknowledged: {type(e).__name__} "
            f"(idempotency_key={idempotency_key})"
        )
        raise OutcomeUnknownError(operation, idempotency_key)


@asynccontextmanager
async def unit_of_work(session_factory: SessionFactory) -> AsyncGenerator[AsyncSession, None]:
    """One session and one transaction for a single attempt of a mutation.

    The caller commits explicitly; any exception rolls the whole attempt
    back, which also releases a seat or debit made earlier in the attempt.
    """
    async with session_factory() as session:
        try:
            yield session
        except Exception as e:
            try:
                await session.rollback()
            except SQLAlchemyError as rollback_error:
                logger.warning(f"Rollback failed: {type(rollback_error).__name__}")
            if isinstance(e, DBAPIError) and is_retryable(e):
                logger.info(f"Statement rolled back by the server: {sqlstate_of(e)}")
                raise VersionConflictError("transaction", sqlstate_of(e)) from e
            raise


async def flush_or_conflict(session: AsyncSession, entity: str, entity_id: str) -> None:
    """Flush pending inserts; a uniqueness violation becomes a version conflict."""
    try:
        await session.flush()
    except IntegrityError as e:
        logger.info(f"Flush for {entity} {entity_id} hit a constraint: {type(e.orig).__name__}")
        raise VersionConflictError(entity, entity_id)


def sqlstate_of(error: DBAPIError) -> str | None:
    """SQLSTATE of the driver error, if the driver reports one."""
    orig = error.orig
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def is_retryable(error: DBAPIError) -> bool:
    """True when the server aborted the transaction and a retry may succeed."""
    return sqlstate_of(error) in RETRYABLE_SQLSTATES
