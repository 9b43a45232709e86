from enum import Enum

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from wallet_ledger.models.base import Base, TimestampMixin, UUIDMixin


class AnnouncementKind(str, Enum):
    GENERAL = "general"
    TOURNAMENT = "tournament"
    MAINTENANCE = "maintenance"
    UPDATE = "update"


class AnnouncementPriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class Announcement(Base, UUIDMixin, TimestampMixin):
    """Platform announcement"""

    __tablename__ = "announcements"

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    kind: Mapped[str] = mapped_column(
        String(20),
        default=AnnouncementKind.GENERAL.value,
        nullable=False,
    )
    priority: Mapped[str] = mapped_column(
        String(20),
        default=AnnouncementPriority.NORMAL.value,
        nullable=False,
    )
    created_by: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("admin_accounts.id", ondelete="SET NULL"),
        nullable=True,
    )
