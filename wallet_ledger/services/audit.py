"""Audit log service.

Every committed admin mutation writes exactly one entry, inside the same
transaction as the mutation. A failed append aborts the whole operation.
"""

import hashlib
import hmac
import json
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from wallet_ledger.models.audit import AuditAction, AuditLog
from wallet_ledger.utils.errors import AuditWriteError
from wallet_ledger.utils.time import utcnow

logger = logging.getLogger(__name__)


def _json_safe(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    return value


class AuditLogService:
    """Append and query the admin audit log."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def append(
        self,
        admin_id: str | None,
        action: AuditAction,
        details: dict[str, Any],
        *,
        target_type: str | None = None,
        target_id: str | None = None,
    ) -> int:
        """Append one entry to the pending unit of work.

        Returns:
            The new entry ID

        Raises:
            AuditWriteError: the entry could not be written
        """
        payload = _json_safe(details)
        created_at = utcnow()
        entry = AuditLog(
            admin_id=admin_id,
            action=action.value,
            target_type=target_type,
            target_id=target_id,
            details=payload,
            created_at=created_at,
            entry_hash=self._compute_entry_hash(
                admin_id, action.value, target_id, payload, created_at
            ),
        )
        try:
            await self._write(entry)
        except SQLAlchemyError as e:
            logger.error(f"Audit append failed for {action.value}: {type(e).__name__}")
            raise AuditWriteError(action.value) from e
        return entry.id

    async def _write(self, entry: AuditLog) -> None:
        self.session.add(entry)
        await self.session.flush()

    async def query(
        self,
        *,
        action: AuditAction | None = None,
        admin_id: str | None = None,
        since: datetime | None = None,
        target_id: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[AuditLog]:
        """Entries matching the filters, newest first."""
        query = select(AuditLog).order_by(AuditLog.id.desc()).offset(offset).limit(limit)
        if action:
            query = query.where(AuditLog.action == action.value)
        if admin_id:
            query = query.where(AuditLog.admin_id == admin_id)
        if since:
            query = query.where(AuditLog.created_at >= since)
        if target_id:
            query = query.where(AuditLog.target_id == target_id)

        result = await self.session.execute(query)
        return list(result.scalars().all())

    @staticmethod
    def _compute_entry_hash(
        admin_id: str | None,
        action: str,
        target_id: str | None,
        details: dict[str, Any],
        created_at: datetime,
    ) -> str:
        """Compute SHA-256 hash of an audit entry."""
        data = (
            f"{admin_id or ''}:{action}:{target_id or ''}:"
            f"{json.dumps(details, sort_keys=True, separators=(',', ':'))}:"
            f"{created_at.replace(microsecond=0).isoformat()}"
        )
        return hashlib.sha256(data.encode()).hexdigest()

    @staticmethod
    def verify_entry(entry: AuditLog) -> bool:
        """Recompute an entry's hash using timing-safe comparison."""
        computed = AuditLogService._compute_entry_hash(
            entry.admin_id,
            entry.action,
            entry.target_id,
            entry.details,
            entry.created_at,
        )
        return hmac.compare_digest(computed, entry.entry_hash)
