"""Bounded retry for optimistic-concurrency conflicts."""

import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from tenacity import (
    AsyncRetrying,
    RetryError,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from wallet_ledger.config import Settings, get_settings
from wallet_ledger.utils.errors import TryAgainError, VersionConflictError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def conflict_retrying(settings: Settings | None = None) -> AsyncRetrying:
    """Retry policy: version conflicts only, exponential backoff, capped attempts."""
    settings = settings or get_settings()
    return AsyncRetrying(
        stop=stop_after_attempt(settings.conflict_retry_attempts),
        wait=wait_exponential(
            multiplier=settings.conflict_retry_multiplier,
            min=settings.conflict_retry_min_wait,
            max=settings.conflict_retry_max_wait,
        ),
        retry=retry_if_exception_type(VersionConflictError),
        before_sleep=before_sleep_log(logger, logging.WARNING),
    )


async def run_with_conflict_retry(
    operation: str,
    attempt: Callable[[], Awaitable[T]],
    settings: Settings | None = None,
) -> T:
    """Run ``attempt`` until it stops raising VersionConflictError.

    Each call of ``attempt`` must re-read state; nothing is carried between
    attempts. Every other error propagates unchanged on first occurrence.

    Raises:
        TryAgainError: conflicts persisted through every attempt
    """
    retrying = conflict_retrying(settings)
    try:
        return await retrying(attempt)
    except RetryError as e:
        attempts = e.last_attempt.attempt_number
        logger.warning(f"{operation} gave up after {attempts} conflicting attempts")
        raise TryAgainError(operation, attempts) from e
