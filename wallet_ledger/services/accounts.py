"""Account store.

Balances change only through ``apply_delta``: one conditional UPDATE that
checks the expected version and the range of every touched field in the same
statement. There is no read-modify-write and no balance cache.
"""

import logging
from collections.abc import Mapping
from decimal import Decimal
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from wallet_ledger.models.account import Account, AccountStatus, Currency
from wallet_ledger.utils.errors import (
    AccountNotFoundError,
    ActionFailedError,
    InsufficientFundsError,
    InvalidAmountError,
    VersionConflictError,
)
from wallet_ledger.utils.money import MAX_CASH, MAX_UNITS
from wallet_ledger.utils.time import utcnow

logger = logging.getLogger(__name__)

Deltas = Mapping[Currency, Decimal | int]


def balance_ceiling(currency: Currency) -> Decimal | int:
    """Largest balance the column for ``currency`` can hold."""
    return MAX_CASH if currency.is_cash else MAX_UNITS


class AccountStore:
    """Reads and atomic mutations on ``accounts``."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _load(self, account_id: str) -> Account | None:
        # populate_existing: never trust an identity-map copy after a Core UPDATE
        result = await self.session.execute(
            select(Account)
            .where(Account.id == account_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_account(self, account_id: str) -> Account:
        """Get the committed state of an account.

        Raises:
            AccountNotFoundError: no such account
        """
        account = await self._load(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return account

    async def get_account_snapshot(self, account_id: str) -> dict[str, Any]:
        account = await self.get_account(account_id)
        return snapshot(account)

    async def apply_delta(
        self,
        account_id: str,
        deltas: Deltas,
        expected_version: int,
    ) -> Account:
        """Apply signed deltas to one or more currencies atomically.

        Either every field changes and ``version`` increments, or nothing
        changes. A zero-row update is classified by re-reading.

        Args:
            account_id: Account ID
            deltas: Signed amount per currency
            expected_version: Version the caller computed its deltas against

        Returns:
            The account as committed by this update

        Raises:
            AccountNotFoundError: no such account
            VersionConflictError: the account moved past ``expected_version``
            InsufficientFundsError: a field would go negative
            InvalidAmountError: a field would exceed its maximum
            ActionFailedError: the update matched nothing for no known reason
        """
        if not deltas:
            raise InvalidAmountError("No balance changes requested")

        values: dict[str, Any] = {}
        guards = []
        for currency, delta in deltas.items():
            ceiling = balance_ceiling(currency)
            if abs(delta) > ceiling:
                raise InvalidAmountError(
                    "Amount out of range",
                    details={"currency": currency.value, "value": delta},
                )
            column = getattr(Account, currency.column)
            values[currency.column] = column + delta
            # Comparisons only, so the guard never overflows the column type
            if delta < 0:
                guards.append(column >= -delta)
            elif delta > 0:
                guards.append(column <= ceiling - delta)

        stmt = (
            update(Account)
            .where(
                Account.id == account_id,
                Account.version == expected_version,
                *guards,
            )
            .values(**values, version=Account.version + 1, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount == 1:
            logger.debug(
                f"Balance delta applied: account={account_id[:8]}... "
                f"v{expected_version} "
                + ", ".join(f"{c.value}={d:+}" for c, d in deltas.items())
            )
            return await self.get_account(account_id)

        current = await self.get_account(account_id)
        if current.version != expected_version:
            raise VersionConflictError("account", account_id, expected_version)
        for currency, delta in deltas.items():
            available = current.balance_of(currency)
            if available + delta < 0:
                logger.info(
                    f"Balance delta rejected: account={account_id[:8]}... "
                    f"{currency.value} {available} {delta:+}"
                )
                raise InsufficientFundsError(currency.value, -delta, available)
            if available + delta > balance_ceiling(currency):
                raise InvalidAmountError(
                    "Balance would exceed the maximum",
                    details={
                        "currency": currency.value,
                        "available": available,
                        "delta": delta,
                        "maximum": balance_ceiling(currency),
                    },
                )
        logger.error(
            f"Balance guard rejected a valid delta: account={account_id[:8]}... "
            f"v{expected_version}"
        )
        raise ActionFailedError("apply_delta")

    async def set_status(
        self,
        account_id: str,
        new_status: AccountStatus,
        expected_version: int,
    ) -> Account:
        """Change account status under the optimistic lock.

        Raises:
            AccountNotFoundError: no such account
            VersionConflictError: the account moved past ``expected_version``
        """
        stmt = (
            update(Account)
            .where(Account.id == account_id, Account.version == expected_version)
            .values(
                status=new_status.value,
                version=Account.version + 1,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount != 1:
            await self.get_account(account_id)
            raise VersionConflictError("account", account_id, expected_version)
        return await self.get_account(account_id)


def snapshot(account: Account) -> dict[str, Any]:
    """Plain view of an account's holdings."""
    return {
        "account_id": account.id,
        "cash": account.cash_balance,
        "gems": account.gems,
        "coins": account.coins,
        "vouchers": {
            20: account.voucher_20,
            30: account.voucher_30,
            50: account.voucher_50,
        },
        "status": account.status,
        "version": account.version,
    }
