"""Admin audit log model."""

from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from wallet_ledger.models.base import Base, BigIntPK, JSONType, UTCDateTime
from wallet_ledger.utils.time import utcnow


class AuditAction(str, Enum):
    """Action tags for privileged mutations."""

    USER_CURRENCY_EDIT = "user_currency_edit"
    REWARD_GIVEN = "reward_given"
    USER_BAN = "user_ban"
    USER_SUSPEND = "user_suspend"
    USER_ACTIVATE = "user_activate"
    MONEY_SENT = "money_sent"
    MONEY_TAKEN = "money_taken"
    TOURNAMENT_CREATE = "tournament_create"
    TOURNAMENT_EDIT = "tournament_edit"
    TOURNAMENT_DELETE = "tournament_delete"
    ANNOUNCEMENT_CREATE = "announcement_create"


class AuditLog(Base):
    """Append-only record of one committed admin action."""

    __tablename__ = "audit_log"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)

    # Kept when the admin is removed, just unlinked
    admin_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("admin_accounts.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    target_type: Mapped[str | None] = mapped_column(String(30), nullable=True)
    target_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    details: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict, nullable=False)

    entry_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        default=utcnow,
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<AuditLog {self.action} by {self.admin_id}>"
