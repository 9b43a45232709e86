"""Ledger transaction model.

Append-only: rows are inserted once and never updated or deleted. Each row
carries a SHA-256 integrity hash over its key fields for tamper detection.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from wallet_ledger.models.base import Base, BigIntPK, Money, UTCDateTime
from wallet_ledger.utils.time import utcnow


class TransactionType(str, Enum):
    """Transaction types for balance-affecting events."""

    TOURNAMENT_ENTRY = "tournament_entry"
    TOURNAMENT_WIN = "tournament_win"
    ADMIN_CREDIT = "admin_credit"
    ADMIN_DEBIT = "admin_debit"


class LedgerTransaction(Base):
    """Immutable record of one balance change in one currency.

    ``amount`` is signed: cash in currency units with two places, every other
    currency in whole units. Summing a currency's rows for an account
    reconciles with that account's balance.
    """

    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)

    account_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("accounts.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    amount: Mapped[Decimal] = mapped_column(Money(14, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(20), nullable=False)
    tx_type: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # No FK: history outlives a deleted tournament
    tournament_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)

    balance_after: Mapped[Decimal] = mapped_column(
        Money(14, 2),
        nullable=False,
        comment="Balance of this currency right after the change",
    )

    integrity_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        default=utcnow,
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<LedgerTransaction {self.tx_type} {self.amount} {self.currency}>"
