"""Idempotency keys for client-retried mutations."""

import hashlib
import json
import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from wallet_ledger.models.idempotency import IdempotencyKey
from wallet_ledger.utils.errors import IdempotencyKeyReusedError, InvalidRequestError

logger = logging.getLogger(__name__)

MAX_KEY_LENGTH = 128


def request_fingerprint(payload: dict[str, Any]) -> str:
    """SHA-256 over the canonical JSON form of a request."""
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def validate_key(key: str | None) -> str | None:
    """Normalise a client key: 1-128 printable characters after stripping."""
    if key is None:
        return None
    key = key.strip()
    if not key or len(key) > MAX_KEY_LENGTH or not key.isprintable():
        raise InvalidRequestError(
            f"Idempotency key must be 1-{MAX_KEY_LENGTH} printable characters",
            details={"idempotencyKey": key},
        )
    return key


class IdempotencyStore:
    """Records which resource a keyed request produced.

    The record is written in the same transaction as the effect, so either
    both exist or neither does.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def lookup(self, scope: str, key: str, fingerprint: str) -> IdempotencyKey | None:
        """Find a committed request under ``(scope, key)``.

        Raises:
            IdempotencyKeyReusedError: the key was used for a different request
        """
        result = await self.session.execute(
            select(IdempotencyKey).where(
                IdempotencyKey.scope == scope,
                IdempotencyKey.key == key,
            )
        )
        record = result.scalar_one_or_none()
        if record is None:
            return None
        if record.fingerprint != fingerprint:
            logger.warning(f"Idempotency key reused with a different request: scope={scope}")
            raise IdempotencyKeyReusedError(key)
        logger.info(
            f"Idempotent replay: scope={scope} -> {record.resource_type} "
            f"{record.resource_id[:8]}..."
        )
        return record

    async def remember(
        self,
        scope: str,
        key: str,
        fingerprint: str,
        resource_type: str,
        resource_id: str,
    ) -> None:
        self.session.add(
            IdempotencyKey(
                scope=scope,
                key=key,
                fingerprint=fingerprint,
                resource_type=resource_type,
                resource_id=resource_id,
            )
        )
