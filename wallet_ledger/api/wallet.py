"""Wallet API endpoints.

Endpoints:
- GET /wallet - Balances of the caller
- GET /wallet/transactions - Transaction history, newest first
"""

from fastapi import APIRouter, Query

from wallet_ledger.api.deps import CurrentAccountId, DbSession
from wallet_ledger.models.account import Currency
from wallet_ledger.schemas.wallet import (
    AccountSnapshotResponse,
    TransactionListResponse,
    TransactionResponse,
)
from wallet_ledger.services.accounts import AccountStore
from wallet_ledger.services.ledger import LedgerRecorder

router = APIRouter(prefix="/wallet", tags=["Wallet"])


@router.get("", response_model=AccountSnapshotResponse)
async def get_wallet(account_id: CurrentAccountId, db: DbSession) -> AccountSnapshotResponse:
    """Get the caller's balances."""
    snapshot = await AccountStore(db).get_account_snapshot(account_id)
    return AccountSnapshotResponse.model_validate(snapshot)


@router.get("/transactions", response_model=TransactionListResponse)
async def get_transactions(
    account_id: CurrentAccountId,
    db: DbSession,
    currency: Currency | None = Query(None),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
) -> TransactionListResponse:
    """Get the caller's transaction history."""
    transactions = await LedgerRecorder(db).get_transactions(
        account_id,
        limit=limit,
        offset=offset,
        currency=currency,
    )
    return TransactionListResponse(
        items=[TransactionResponse.model_validate(tx) for tx in transactions],
        limit=limit,
        offset=offset,
    )
