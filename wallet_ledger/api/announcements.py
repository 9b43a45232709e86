"""Public announcement feed."""

from fastapi import APIRouter, Query

from wallet_ledger.api.deps import DbSession
from wallet_ledger.models.announcement import AnnouncementKind
from wallet_ledger.schemas.admin import AnnouncementListResponse
from wallet_ledger.services.announcements import AnnouncementService

router = APIRouter(prefix="/announcements", tags=["Announcements"])


@router.get("", response_model=AnnouncementListResponse)
async def list_announcements(
    db: DbSession,
    kind: AnnouncementKind | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100, alias="pageSize"),
) -> AnnouncementListResponse:
    """Announcements, newest first."""
    result = await AnnouncementService(db).list_announcements(
        page=page, page_size=page_size, kind=kind
    )
    return AnnouncementListResponse.model_validate(result)
