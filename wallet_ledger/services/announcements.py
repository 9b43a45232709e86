"""Announcement service - create and list."""

import logging
from uuid import uuid4

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from wallet_ledger.models.announcement import (
    Announcement,
    AnnouncementKind,
    AnnouncementPriority,
)

logger = logging.getLogger(__name__)


class AnnouncementService:
    """Announcement storage. Creation is audited by the admin processor."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_announcement(
        self,
        title: str,
        message: str,
        created_by: str | None,
        kind: AnnouncementKind = AnnouncementKind.GENERAL,
        priority: AnnouncementPriority = AnnouncementPriority.NORMAL,
    ) -> Announcement:
        """Stage a new announcement in the caller's transaction."""
        announcement = Announcement(
            id=str(uuid4()),
            title=title,
            message=message,
            kind=kind.value,
            priority=priority.value,
            created_by=created_by,
        )
        self.db.add(announcement)
        await self.db.flush()

        logger.info(f"Announcement created: {announcement.id} - {title}")
        return announcement

    async def get_announcement(self, announcement_id: str) -> Announcement | None:
        return await self.db.get(Announcement, announcement_id)

    async def list_announcements(
        self,
        page: int = 1,
        page_size: int = 20,
        kind: AnnouncementKind | None = None,
    ) -> dict:
        """List announcements, newest first."""
        query = select(Announcement)
        count_query = select(func.count()).select_from(Announcement)
        if kind:
            query = query.where(Announcement.kind == kind.value)
            count_query = count_query.where(Announcement.kind == kind.value)

        total = (await self.db.execute(count_query)).scalar_one()
        result = await self.db.execute(
            query.order_by(Announcement.created_at.desc(), Announcement.id)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return {
            "items": list(result.scalars().all()),
            "total": total,
            "page": page,
            "page_size": page_size,
        }
