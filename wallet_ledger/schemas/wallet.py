"""Wallet schemas."""

from datetime import datetime
from decimal import Decimal

from pydantic import Field

from wallet_ledger.schemas.common import BaseSchema


class AccountSnapshotResponse(BaseSchema):
    """Balances of one account."""

    account_id: str
    cash: Decimal = Field(..., description="Real-money balance")
    gems: int
    coins: int
    vouchers: dict[int, int] = Field(..., description="Voucher count per denomination")
    status: str


class TransactionResponse(BaseSchema):
    id: int
    amount: Decimal = Field(..., description="Signed; vouchers, gems and coins in whole units")
    currency: str
    tx_type: str
    description: str | None
    tournament_id: str | None
    balance_after: Decimal
    created_at: datetime


class TransactionListResponse(BaseSchema):
    items: list[TransactionResponse]
    limit: int
    offset: int
