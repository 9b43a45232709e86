"""Account model and the currencies it holds."""

from decimal import Decimal
from enum import Enum

from sqlalchemy import CheckConstraint, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from wallet_ledger.models.base import Base, Money, TimestampMixin, UUIDMixin


class AccountStatus(str, Enum):
    """Account status. Accounts are never deleted; banning replaces deletion."""

    ACTIVE = "active"
    SUSPENDED = "suspended"
    BANNED = "banned"


class Currency(str, Enum):
    """Balance kinds an account holds.

    ``real`` is cash with two decimal places; every other kind counts whole units.
    """

    REAL = "real"
    GEMS = "gems"
    COINS = "coins"
    VOUCHER_20 = "voucher_20"
    VOUCHER_30 = "voucher_30"
    VOUCHER_50 = "voucher_50"

    @property
    def column(self) -> str:
        """Account attribute holding this currency."""
        return CURRENCY_COLUMNS[self]

    @property
    def is_cash(self) -> bool:
        return self is Currency.REAL

    @classmethod
    def for_voucher(cls, denomination: int) -> "Currency":
        """Voucher currency for a denomination; ValueError if there is none."""
        return cls(f"voucher_{denomination}")


CURRENCY_COLUMNS: dict[Currency, str] = {
    Currency.REAL: "cash_balance",
    Currency.GEMS: "gems",
    Currency.COINS: "coins",
    Currency.VOUCHER_20: "voucher_20",
    Currency.VOUCHER_30: "voucher_30",
    Currency.VOUCHER_50: "voucher_50",
}


class Account(Base, UUIDMixin, TimestampMixin):
    """A player's spendable holdings.

    Balances only change through conditional updates that bump ``version``.
    """

    __tablename__ = "accounts"
    __table_args__ = (
        CheckConstraint("cash_balance >= 0", name="ck_accounts_cash_nonneg"),
        CheckConstraint("gems >= 0", name="ck_accounts_gems_nonneg"),
        CheckConstraint("coins >= 0", name="ck_accounts_coins_nonneg"),
        CheckConstraint("voucher_20 >= 0", name="ck_accounts_voucher_20_nonneg"),
        CheckConstraint("voucher_30 >= 0", name="ck_accounts_voucher_30_nonneg"),
        CheckConstraint("voucher_50 >= 0", name="ck_accounts_voucher_50_nonneg"),
    )

    username: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        index=True,
    )

    # Balances
    cash_balance: Mapped[Decimal] = mapped_column(
        Money(),
        default=Decimal("0.00"),
        nullable=False,
        comment="Real-money balance",
    )
    gems: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    coins: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    voucher_20: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    voucher_30: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    voucher_50: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        default=AccountStatus.ACTIVE.value,
        nullable=False,
    )

    # Optimistic lock token
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    def balance_of(self, currency: Currency) -> Decimal | int:
        return getattr(self, currency.column)

    def __repr__(self) -> str:
        return f"<Account {self.username} v{self.version}>"
