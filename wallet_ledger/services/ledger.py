"""Ledger transaction recorder and history."""

import hashlib
import hmac
import logging
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from wallet_ledger.models.account import Currency
from wallet_ledger.models.ledger import LedgerTransaction, TransactionType

logger = logging.getLogger(__name__)


class LedgerRecorder:
    """Appends transaction rows inside the caller's unit of work.

    Rows are never updated or deleted; corrections are new rows.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def record(
        self,
        account_id: str,
        currency: Currency,
        amount: Decimal | int,
        tx_type: TransactionType,
        balance_after: Decimal | int,
        *,
        tournament_id: str | None = None,
        description: str | None = None,
    ) -> LedgerTransaction:
        """Append one transaction row.

        Args:
            account_id: Account ID
            currency: Currency that moved
            amount: Signed amount (positive = credit, negative = debit)
            tx_type: Transaction type
            balance_after: Balance of ``currency`` after the change
            tournament_id: Optional tournament reference
            description: Optional description

        Returns:
            The pending LedgerTransaction (flushed, not committed)
        """
        amount = Decimal(amount)
        balance_after = Decimal(balance_after)
        tx = LedgerTransaction(
            account_id=account_id,
            amount=amount,
            currency=currency.value,
            tx_type=tx_type.value,
            balance_after=balance_after,
            tournament_id=tournament_id,
            description=description,
            integrity_hash=self._compute_integrity_hash(
                account_id=account_id,
                currency=currency.value,
                tx_type=tx_type.value,
                amount=amount,
                balance_after=balance_after,
                tournament_id=tournament_id,
            ),
        )
        self.session.add(tx)
        await self.session.flush()

        logger.info(
            f"Ledger: account={account_id[:8]}... type={tx_type.value} "
            f"{currency.value} {amount:+} -> {balance_after}"
        )
        return tx

    async def get_transactions(
        self,
        account_id: str,
        *,
        limit: int = 50,
        offset: int = 0,
        currency: Currency | None = None,
    ) -> list[LedgerTransaction]:
        """Get an account's transaction history, newest first.

        Args:
            account_id: Account ID
            limit: Max transactions to return
            offset: Pagination offset
            currency: Optional filter by currency

        Returns:
            List of transactions
        """
        query = (
            select(LedgerTransaction)
            .where(LedgerTransaction.account_id == account_id)
            .order_by(LedgerTransaction.id.desc())
            .offset(offset)
            .limit(limit)
        )
        if currency:
            query = query.where(LedgerTransaction.currency == currency.value)

        result = await self.session.execute(query)
        return list(result.scalars().all())

    @staticmethod
    def _compute_integrity_hash(
        account_id: str,
        currency: str,
        tx_type: str,
        amount: Decimal,
        balance_after: Decimal,
        tournament_id: str | None,
    ) -> str:
        """Compute SHA-256 integrity hash for a transaction row."""
        # Fixed two-place rendering so the hash survives a driver round trip
        data = (
            f"{account_id}:{currency}:{tx_type}:"
            f"{amount:.2f}:{balance_after:.2f}:{tournament_id or ''}"
        )
        return hashlib.sha256(data.encode()).hexdigest()

    @staticmethod
    def verify_integrity(tx: LedgerTransaction) -> bool:
        """Verify transaction integrity hash."""
        expected = LedgerRecorder._compute_integrity_hash(
            account_id=tx.account_id,
            currency=tx.currency,
            tx_type=tx.tx_type,
            amount=Decimal(tx.amount),
            balance_after=Decimal(tx.balance_after),
            tournament_id=tx.tournament_id,
        )
        return hmac.compare_digest(expected, tx.integrity_hash)
