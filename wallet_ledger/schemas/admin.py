"""Admin request and response schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import Field

from wallet_ledger.models.account import AccountStatus, Currency
from wallet_ledger.models.announcement import AnnouncementKind, AnnouncementPriority
from wallet_ledger.schemas.common import BaseSchema


class AdjustBalanceRequest(BaseSchema):
    """Signed balance edits, applied together or not at all."""

    deltas: dict[Currency, Decimal] = Field(
        ...,
        min_length=1,
        description="Signed change per currency; non-cash currencies take whole numbers",
    )
    reason: str | None = Field(default=None, max_length=500)


class GrantRewardRequest(BaseSchema):
    currency: Currency
    amount: Decimal = Field(..., gt=0)
    reason: str | None = Field(default=None, max_length=500)


class AccountStatusRequest(BaseSchema):
    status: AccountStatus
    reason: str | None = Field(default=None, max_length=500)


class PrizeRequest(BaseSchema):
    amount: Decimal = Field(..., gt=0, description="Cash amount")


class AnnouncementCreate(BaseSchema):
    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1)
    kind: AnnouncementKind = AnnouncementKind.GENERAL
    priority: AnnouncementPriority = AnnouncementPriority.NORMAL


class AnnouncementResponse(BaseSchema):
    id: str
    title: str
    message: str
    kind: str
    priority: str
    created_by: str | None
    created_at: datetime


class AnnouncementListResponse(BaseSchema):
    items: list[AnnouncementResponse]
    total: int
    page: int
    page_size: int


class AuditLogEntryResponse(BaseSchema):
    id: int
    admin_id: str | None
    action: str
    target_type: str | None
    target_id: str | None
    details: dict[str, Any]
    created_at: datetime
