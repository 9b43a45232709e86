"""Tests for commit and rollback classification."""

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from wallet_ledger.utils.db import commit_or_unknown, unit_of_work
from wallet_ledger.utils.errors import OutcomeUnknownError, VersionConflictError


class DriverError(Exception):
    """Stand-in for a driver exception carrying a SQLSTATE."""

    def __init__(self, sqlstate: str | None = None, pgcode: str | None = None):
        super().__init__(f"driver error {sqlstate or pgcode}")
        self.sqlstate = sqlstate
        self.pgcode = pgcode


def _failing_commit(error: Exception):
    return AsyncMock(side_effect=error)


class TestCommitOrUnknown:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "orig",
        [DriverError(sqlstate="40001"), DriverError(sqlstate="40P01"), DriverError(pgcode="40001")],
        ids=["serialization_failure", "deadlock", "pgcode"],
    )
    async def test_server_abort_is_a_conflict(self, session_factory, orig):
        """A transaction the server rolled back is retried, not reported as unknown."""
        async with session_factory() as session:
            with patch.object(
                session, "commit", _failing_commit(OperationalError("COMMIT", None, orig))
            ):
                with pytest.raises(VersionConflictError) as exc_info:
                    await commit_or_unknown(session, "join_tournament", "key-1", timeout=1)

        assert exc_info.value.recoverable is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "orig", [DriverError(sqlstate="08006"), DriverError()], ids=["connection", "none"]
    )
    async def test_unacknowledged_commit_is_unknown(self, session_factory, orig):
        async with session_factory() as session:
            with patch.object(
                session, "commit", _failing_commit(OperationalError("COMMIT", None, orig))
            ):
                with pytest.raises(OutcomeUnknownError) as exc_info:
                    await commit_or_unknown(session, "join_tournament", "key-1", timeout=1)

        assert exc_info.value.details["idempotencyKey"] == "key-1"

    @pytest.mark.asyncio
    async def test_constraint_violation_is_a_conflict(self, session_factory):
        error = IntegrityError("COMMIT", None, DriverError(sqlstate="23505"))
        async with session_factory() as session:
            with patch.object(session, "commit", _failing_commit(error)):
                with pytest.raises(VersionConflictError):
                    await commit_or_unknown(session, "create_tournament", timeout=1)


class TestUnitOfWork:
    @pytest.mark.asyncio
    async def test_deadlock_inside_becomes_conflict(self, session_factory):
        with pytest.raises(VersionConflictError) as exc_info:
            async with unit_of_work(session_factory):
                raise OperationalError("UPDATE accounts", None, DriverError(sqlstate="40P01"))

        assert isinstance(exc_info.value.__cause__, OperationalError)

    @pytest.mark.asyncio
    async def test_other_errors_propagate(self, session_factory):
        with pytest.raises(OperationalError):
            async with unit_of_work(session_factory):
                raise OperationalError("UPDATE accounts", None, DriverError(sqlstate="53300"))
