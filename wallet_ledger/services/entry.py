"""Entry processor: joining a tournament.

A join reserves a seat, debits the resolved fee, creates the participation
and records the transaction in one database transaction per attempt. Any
failure rolls the attempt back, so a seat is never held without a
participation and a fee is never taken without a seat. Version conflicts
are retried with backoff; each retry starts from a fresh read.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal

from wallet_ledger.config import Settings, get_settings
from wallet_ledger.logging_config import get_logger
from wallet_ledger.models.account import Account, AccountStatus, Currency
from wallet_ledger.models.ledger import TransactionType
from wallet_ledger.models.tournament import Participation, TournamentStatus
from wallet_ledger.services.accounts import AccountStore
from wallet_ledger.services.idempotency import (
    IdempotencyStore,
    request_fingerprint,
    validate_key,
)
from wallet_ledger.services.ledger import LedgerRecorder
from wallet_ledger.services.tournaments import TournamentRegistry
from wallet_ledger.utils.db import (
    SessionFactory,
    commit_or_unknown,
    flush_or_conflict,
    unit_of_work,
)
from wallet_ledger.utils.errors import (
    AccountInactiveError,
    AlreadyJoinedError,
    InsufficientFundsError,
    InvalidNameError,
    InvalidRequestError,
    LedgerError,
    TournamentClosedError,
    TournamentFullError,
    VoucherMismatchError,
)
from wallet_ledger.utils.retry import run_with_conflict_retry

logger = get_logger(__name__)

ZERO = Decimal("0.00")


@dataclass(frozen=True)
class FeeResolution:
    """What a join will charge.

    ``currency`` is None for a free entry. ``debit`` is the positive amount
    taken from that currency: cash for a paid entry, one unit for a voucher.
    """

    currency: Currency | None
    debit: Decimal | int
    fee_charged: Decimal
    voucher_denomination: int | None = None


def resolve_entry_fee(
    entry_fee: Decimal,
    cash_balance: Decimal,
    vouchers: Mapping[int, int],
    voucher_denomination: int | None = None,
) -> FeeResolution:
    """Decide how an entry is paid.

    A voucher covers the fee only when its denomination equals the fee
    exactly. Without a voucher the fee is taken in cash.

    Raises:
        VoucherMismatchError: denomination differs from the entry fee
        InsufficientFundsError: no voucher of that denomination, or not enough cash
    """
    if voucher_denomination is not None:
        if Decimal(voucher_denomination) != entry_fee:
            raise VoucherMismatchError(voucher_denomination, entry_fee)
        held = vouchers.get(voucher_denomination, 0)
        currency = Currency.for_voucher(voucher_denomination)
        if held < 1:
            raise InsufficientFundsError(currency.value, 1, held)
        return FeeResolution(currency, 1, ZERO, voucher_denomination)

    if entry_fee == 0:
        return FeeResolution(None, 0, ZERO)
    if cash_balance < entry_fee:
        raise InsufficientFundsError(Currency.REAL.value, entry_fee, cash_balance)
    return FeeResolution(Currency.REAL, entry_fee, entry_fee)


def _vouchers_of(account: Account) -> dict[int, int]:
    return {20: account.voucher_20, 30: account.voucher_30, 50: account.voucher_50}


class EntryProcessor:
    """Executes join requests against the account store and tournament registry."""

    OPERATION = "join_tournament"

    def __init__(self, session_factory: SessionFactory, settings: Settings | None = None) -> None:
        self.session_factory = session_factory
        self.settings = settings or get_settings()

    async def join_tournament(
        self,
        tournament_id: str,
        account_id: str,
        in_game_name: str,
        voucher_denomination: int | None = None,
        idempotency_key: str | None = None,
    ) -> Participation:
        """Join a tournament.

        Args:
            tournament_id: Tournament ID
            account_id: Joining account ID
            in_game_name: Display name inside the game
            voucher_denomination: Redeem a voucher of this denomination instead of cash
            idempotency_key: Client key; a replay returns the original participation

        Returns:
            The created (or replayed) Participation with its seat number

        Raises:
            LedgerError: INVALID_NAME, ALREADY_JOINED, TOURNAMENT_CLOSED,
                TOURNAMENT_FULL, ACCOUNT_INACTIVE, VOUCHER_MISMATCH,
                INSUFFICIENT_FUNDS, TRY_AGAIN, OUTCOME_UNKNOWN, ...
        """
        name = (in_game_name or "").strip()
        if len(name) < self.settings.min_in_game_name_length:
            raise InvalidNameError(self.settings.min_in_game_name_length)
        if (
            voucher_denomination is not None
            and voucher_denomination not in self.settings.voucher_denominations
        ):
            raise InvalidRequestError(
                f"Unknown voucher denomination {voucher_denomination}",
                details={"voucherDenomination": voucher_denomination},
            )
        key = validate_key(idempotency_key)
        fingerprint = request_fingerprint(
            {
                "tournamentId": tournament_id,
                "accountId": account_id,
                "inGameName": name,
                "voucherDenomination": voucher_denomination,
            }
        )

        async def attempt() -> tuple[Participation, bool]:
            return await self._attempt_join(
                tournament_id, account_id, name, voucher_denomination, key, fingerprint
            )

        try:
            participation, replayed = await run_with_conflict_retry(
                self.OPERATION, attempt, self.settings
            )
        except LedgerError as e:
            logger.info(
                "join_rejected",
                code=e.code.value,
                tournament_id=tournament_id,
                account_id=account_id,
            )
            raise

        if not replayed:
            logger.info(
                "tournament_joined",
                tournament_id=tournament_id,
                account_id=account_id,
                participation_id=participation.id,
                seat_number=participation.seat_number,
                fee_charged=str(participation.fee_charged),
                voucher_denomination=participation.voucher_denomination,
            )
        return participation

    async def _attempt_join(
        self,
        tournament_id: str,
        account_id: str,
        name: str,
        voucher_denomination: int | None,
        key: str | None,
        fingerprint: str,
    ) -> tuple[Participation, bool]:
        scope = f"join:{account_id}"
        async with unit_of_work(self.session_factory) as session:
            registry = TournamentRegistry(session, self.settings)
            accounts = AccountStore(session)
            idempotency = IdempotencyStore(session)

            if key:
                record = await idempotency.lookup(scope, key, fingerprint)
                if record is not None:
                    return await registry.get_participation_by_id(record.resource_id), True

            # Preconditions, in order, before any write
            if await registry.get_participation(tournament_id, account_id) is not None:
                raise AlreadyJoinedError(tournament_id, account_id)

            tournament = await registry.get_tournament(tournament_id)
            if tournament.status != TournamentStatus.UPCOMING.value:
                raise TournamentClosedError(tournament_id, tournament.status)
            if tournament.is_full:
                raise TournamentFullError(tournament_id, tournament.capacity)

            account = await accounts.get_account(account_id)
            if account.status != AccountStatus.ACTIVE.value:
                raise AccountInactiveError(account_id, account.status)

            fee = resolve_entry_fee(
                tournament.entry_fee,
                account.cash_balance,
                _vouchers_of(account),
                voucher_denomination,
            )

            # Commit unit
            seat_number = await registry.reserve_seat(tournament_id, tournament.occupancy)
            if fee.currency is not None:
                account = await accounts.apply_delta(
                    account_id, {fee.currency: -fee.debit}, account.version
                )

            participation = registry.add_participation(
                Participation(
                    tournament_id=tournament_id,
                    account_id=account_id,
                    seat_number=seat_number,
                    in_game_name=name,
                    fee_charged=fee.fee_charged,
                    voucher_denomination=fee.voucher_denomination,
                    prize_amount=ZERO,
                    verified=True,
                )
            )
            await flush_or_conflict(session, "participation", f"{tournament_id}/{account_id}")

            if fee.currency is not None:
                await LedgerRecorder(session).record(
                    account_id,
                    fee.currency,
                    -fee.debit,
                    TransactionType.TOURNAMENT_ENTRY,
                    account.balance_of(fee.currency),
                    tournament_id=tournament_id,
                    description=f"Entry: {tournament.name} (seat {seat_number})",
                )

            if key:
                await idempotency.remember(
                    scope, key, fingerprint, "participation", participation.id
                )
                await flush_or_conflict(session, "idempotency_key", key)

            await commit_or_unknown(
                session, self.OPERATION, key, self.settings.commit_timeout_seconds
            )
            return participation, False

    # -------------------------------------------------------------------------
    # Read paths
    # -------------------------------------------------------------------------

    async def get_participation(self, tournament_id: str, account_id: str) -> Participation | None:
        """Re-read an account's participation, e.g. after OUTCOME_UNKNOWN."""
        async with self.session_factory() as session:
            return await TournamentRegistry(session, self.settings).get_participation(
                tournament_id, account_id
            )

    async def get_room_credentials(
        self,
        tournament_id: str,
        account_id: str,
    ) -> dict[str, str | None] | None:
        async with self.session_factory() as session:
            return await TournamentRegistry(session, self.settings).get_room_credentials(
                tournament_id, account_id
            )
