"""Tests for the bounded conflict retry."""

import pytest

from wallet_ledger.config import get_settings
from wallet_ledger.utils.errors import (
    InsufficientFundsError,
    TryAgainError,
    VersionConflictError,
)
from wallet_ledger.utils.retry import run_with_conflict_retry


@pytest.fixture
def fast_settings():
    return get_settings().model_copy(
        update={
            "conflict_retry_attempts": 3,
            "conflict_retry_multiplier": 0.001,
            "conflict_retry_min_wait": 0,
            "conflict_retry_max_wait": 0.001,
        }
    )


class TestRunWithConflictRetry:
    @pytest.mark.asyncio
    async def test_succeeds_after_conflicts(self, fast_settings):
        calls = []

        async def attempt():
            calls.append(1)
            if len(calls) < 3:
                raise VersionConflictError("account", "acc-1", 1)
            return "done"

        assert await run_with_conflict_retry("op", attempt, fast_settings) == "done"
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_exhaustion_surfaces_try_again(self, fast_settings):
        async def attempt():
            raise VersionConflictError("tournament", "t-1", 4)

        with pytest.raises(TryAgainError) as exc_info:
            await run_with_conflict_retry("join_tournament", attempt, fast_settings)

        assert exc_info.value.details == {"operation": "join_tournament", "attempts": 3}
        assert exc_info.value.recoverable is True

    @pytest.mark.asyncio
    async def test_other_errors_not_retried(self, fast_settings):
        calls = []

        async def attempt():
            calls.append(1)
            raise InsufficientFundsError("real", "20.00", "5.00")

        with pytest.raises(InsufficientFundsError):
            await run_with_conflict_retry("op", attempt, fast_settings)
        assert len(calls) == 1
