"""Admin adjustment processor.

Privileged mutations: balance edits, rewards, account status, prize
payouts and claw-backs, tournament CRUD and announcements. Each runs in one
database transaction per attempt together with exactly one audit entry; if
the audit entry cannot be written nothing is committed. Rejected requests
write no audit entry.
"""

from collections.abc import Awaitable, Callable, Mapping
from datetime import datetime
from decimal import Decimal
from typing import Any, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from wallet_ledger.config import Settings, get_settings
from wallet_ledger.logging_config import get_logger, log_context
from wallet_ledger.models.account import Account, AccountStatus, Currency
from wallet_ledger.models.announcement import (
    Announcement,
    AnnouncementKind,
    AnnouncementPriority,
)
from wallet_ledger.models.audit import AuditAction, AuditLog
from wallet_ledger.models.ledger import TransactionType
from wallet_ledger.models.tournament import Participation, Tournament
from wallet_ledger.schemas.tournament import TournamentSpec, TournamentUpdate
from wallet_ledger.services.accounts import AccountStore
from wallet_ledger.services.announcements import AnnouncementService
from wallet_ledger.services.audit import AuditLogService
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
    InsufficientFundsError,
    InvalidAmountError,
    InvalidRequestError,
    InvalidStatusTransitionError,
    LedgerError,
    NegativeBalanceError,
)
from wallet_ledger.utils.money import to_money, to_positive_money, to_units
from wallet_ledger.utils.permissions import AdminPrincipal, Permission
from wallet_ledger.utils.retry import run_with_conflict_retry

logger = get_logger(__name__)

T = TypeVar("T")

Work = Callable[[AsyncSession], Awaitable[tuple[T, str]]]
Replay = Callable[[AsyncSession, str], Awaitable[T]]

# (current, requested) -> audit action
STATUS_TRANSITIONS: dict[tuple[AccountStatus, AccountStatus], AuditAction] = {
    (AccountStatus.ACTIVE, AccountStatus.SUSPENDED): AuditAction.USER_SUSPEND,
    (AccountStatus.SUSPENDED, AccountStatus.ACTIVE): AuditAction.USER_ACTIVATE,
    (AccountStatus.ACTIVE, AccountStatus.BANNED): AuditAction.USER_BAN,
}

SECRET_FIELDS = {"room_password"}


def normalize_deltas(raw: Mapping[Currency | str, Any]) -> dict[Currency, Decimal | int]:
    """Validate signed deltas: cash to two places, other currencies whole units.

    Raises:
        InvalidRequestError: unknown currency or no deltas
        InvalidAmountError: zero or malformed amount
    """
    if not raw:
        raise InvalidRequestError("At least one currency change is required")

    deltas: dict[Currency, Decimal | int] = {}
    for name, value in raw.items():
        try:
            currency = Currency(name)
        except ValueError:
            raise InvalidRequestError(
                f"Unknown currency {name!r}",
                details={"currency": str(name)},
            )
        if currency.is_cash:
            delta: Decimal | int = to_money(value, allow_zero=False, allow_negative=True)
        else:
            delta = to_units(value, allow_negative=True)
            if delta == 0:
                raise InvalidAmountError(
                    "Amount must not be zero",
                    details={"currency": currency.value},
                )
        deltas[currency] = delta
    return deltas


def _parse_amount(currency: Currency, value: Any) -> Decimal | int:
    if currency.is_cash:
        return to_positive_money(value)
    units = to_units(value)
    if units == 0:
        raise InvalidAmountError("Amount must not be zero", details={"currency": currency.value})
    return units


def _tx_type_for(delta: Decimal | int) -> TransactionType:
    return TransactionType.ADMIN_CREDIT if delta > 0 else TransactionType.ADMIN_DEBIT


def _tournament_values(values: dict[str, Any]) -> dict[str, Any]:
    status = values.get("status")
    if status is not None:
        values["status"] = status.value
    return values


def _audit_value(field: str, value: Any) -> Any:
    if field in SECRET_FIELDS and value is not None:
        return "***"
    return value


class AdminAdjustmentProcessor:
    """Executes privileged mutations for a verified admin principal."""

    def __init__(self, session_factory: SessionFactory, settings: Settings | None = None) -> None:
        self.session_factory = session_factory
        self.settings = settings or get_settings()

    async def _execute(
        self,
        operation: str,
        principal: AdminPrincipal,
        work: Work,
        *,
        idempotency_key: str | None = None,
        fingerprint: str | None = None,
        resource_type: str | None = None,
        replay: Replay | None = None,
    ) -> tuple[Any, bool]:
        """Run ``work`` in a retried unit of work.

        Returns:
            (result, replayed) where ``replayed`` is True for an idempotent replay
        """
        key = validate_key(idempotency_key)
        scope = f"{operation}:{principal.admin_id}"

        async def attempt() -> tuple[Any, bool]:
            async with unit_of_work(self.session_factory) as session:
                idempotency = IdempotencyStore(session)
                if key and replay is not None:
                    record = await idempotency.lookup(scope, key, fingerprint)
                    if record is not None:
                        return await replay(session, record.resource_id), True

                result, resource_id = await work(session)

                if key and replay is not None:
                    await idempotency.remember(
                        scope, key, fingerprint, resource_type, resource_id
                    )
                    await flush_or_conflict(session, "idempotency_key", key)

                await commit_or_unknown(
                    session, operation, key, self.settings.commit_timeout_seconds
                )
                return result, False

        with log_context(admin_id=principal.admin_id, operation=operation):
            try:
                return await run_with_conflict_retry(operation, attempt, self.settings)
            except LedgerError as e:
                logger.info("admin_action_rejected", code=e.code.value)
                raise

    # =========================================================================
    # Balances
    # =========================================================================

    async def adjust_balance(
        self,
        principal: AdminPrincipal,
        account_id: str,
        deltas: Mapping[Currency | str, Any],
        reason: str | None = None,
        idempotency_key: str | None = None,
    ) -> Account:
        """Apply signed deltas across one or more currencies.

        One transaction row per currency and one ``user_currency_edit`` audit
        entry carrying before/after for every currency.

        Raises:
            UnauthorizedError: missing ``user_edit_currency``
            NegativeBalanceError: a balance would go below zero
        """
        principal.require(Permission.USER_EDIT_CURRENCY)
        normalized = normalize_deltas(deltas)
        return await self._change_balances(
            "adjust_balance",
            principal,
            AuditAction.USER_CURRENCY_EDIT,
            account_id,
            normalized,
            reason,
            idempotency_key,
        )

    async def grant_reward(
        self,
        principal: AdminPrincipal,
        account_id: str,
        currency: Currency | str,
        amount: Any,
        reason: str | None = None,
        idempotency_key: str | None = None,
    ) -> Account:
        """Credit a positive amount of one currency as a reward."""
        principal.require(Permission.USER_GIVE_REWARDS)
        try:
            currency = Currency(currency)
        except ValueError:
            raise InvalidRequestError(
                f"Unknown currency {currency!r}",
                details={"currency": str(currency)},
            )
        value = _parse_amount(currency, amount)
        return await self._change_balances(
            "grant_reward",
            principal,
            AuditAction.REWARD_GIVEN,
            account_id,
            {currency: value},
            reason,
            idempotency_key,
            extra_details={"rewardType": currency.value, "amount": value},
        )

    async def _change_balances(
        self,
        operation: str,
        principal: AdminPrincipal,
        action: AuditAction,
        account_id: str,
        deltas: dict[Currency, Decimal | int],
        reason: str | None,
        idempotency_key: str | None,
        extra_details: dict[str, Any] | None = None,
    ) -> Account:
        async def work(session: AsyncSession) -> tuple[Account, str]:
            accounts = AccountStore(session)
            account = await accounts.get_account(account_id)
            before = {currency: account.balance_of(currency) for currency in deltas}
            for currency, delta in deltas.items():
                if before[currency] + delta < 0:
                    raise NegativeBalanceError(currency.value, delta, before[currency])

            try:
                updated = await accounts.apply_delta(account_id, deltas, account.version)
            except InsufficientFundsError as e:
                currency = Currency(e.details["currency"])
                raise NegativeBalanceError(
                    currency.value, deltas[currency], e.details["available"]
                ) from e

            ledger = LedgerRecorder(session)
            for currency, delta in deltas.items():
                await ledger.record(
                    account_id,
                    currency,
                    delta,
                    _tx_type_for(delta),
                    updated.balance_of(currency),
                    description=reason or action.value,
                )

            details = {
                "targetUserId": account_id,
                "username": updated.username,
                "reason": reason,
                "changes": {
                    currency.value: {
                        "delta": delta,
                        "before": before[currency],
                        "after": updated.balance_of(currency),
                    }
                    for currency, delta in deltas.items()
                },
                **(extra_details or {}),
            }
            await AuditLogService(session).append(
                principal.admin_id,
                action,
                details,
                target_type="account",
                target_id=account_id,
            )
            return updated, account_id

        async def replay(session: AsyncSession, resource_id: str) -> Account:
            return await AccountStore(session).get_account(resource_id)

        fingerprint = request_fingerprint(
            {
                "accountId": account_id,
                "deltas": {c.value: str(d) for c, d in deltas.items()},
                "reason": reason,
            }
        )
        account, replayed = await self._execute(
            operation,
            principal,
            work,
            idempotency_key=idempotency_key,
            fingerprint=fingerprint,
            resource_type="account",
            replay=replay,
        )
        if not replayed:
            logger.info(
                "balance_adjusted",
                action=action.value,
                admin_id=principal.admin_id,
                account_id=account_id,
                deltas={c.value: str(d) for c, d in deltas.items()},
            )
        return account

    # =========================================================================
    # Account status
    # =========================================================================

    async def set_account_status(
        self,
        principal: AdminPrincipal,
        account_id: str,
        new_status: AccountStatus | str,
        reason: str | None = None,
    ) -> Account:
        """Move an account between active, suspended and banned.

        Allowed: active <-> suspended, active -> banned.

        Raises:
            UnauthorizedError: missing ``user_ban`` (banning) or ``user_suspend``
            InvalidStatusTransitionError: any other transition
        """
        try:
            new_status = AccountStatus(new_status)
        except ValueError:
            raise InvalidRequestError(
                f"Unknown account status {new_status!r}",
                details={"status": str(new_status)},
            )
        if new_status is AccountStatus.BANNED:
            principal.require(Permission.USER_BAN)
        else:
            principal.require(Permission.USER_SUSPEND)

        async def work(session: AsyncSession) -> tuple[Account, str]:
            accounts = AccountStore(session)
            account = await accounts.get_account(account_id)
            current = AccountStatus(account.status)
            action = STATUS_TRANSITIONS.get((current, new_status))
            if action is None:
                raise InvalidStatusTransitionError(current.value, new_status.value)

            updated = await accounts.set_status(account_id, new_status, account.version)
            await AuditLogService(session).append(
                principal.admin_id,
                action,
                {
                    "targetUserId": account_id,
                    "username": updated.username,
                    "from": current.value,
                    "to": new_status.value,
                    "reason": reason,
                },
                target_type="account",
                target_id=account_id,
            )
            return updated, account_id

        account, _ = await self._execute("set_account_status", principal, work)
        logger.info(
            "account_status_changed",
            admin_id=principal.admin_id,
            account_id=account_id,
            status=new_status.value,
        )
        return account

    # =========================================================================
    # Prizes
    # =========================================================================

    async def send_prize(
        self,
        principal: AdminPrincipal,
        participation_id: str,
        amount: Any,
        idempotency_key: str | None = None,
    ) -> Participation:
        """Credit a prize to a participant and tag them as a winner.

        Raises:
            UnauthorizedError: missing ``tournament_manage_participants``
            InvalidAmountError: amount not positive
            ParticipationNotFoundError: no such participation
        """
        principal.require(Permission.TOURNAMENT_MANAGE_PARTICIPANTS)
        amount = to_positive_money(amount)

        async def work(session: AsyncSession) -> tuple[Participation, str]:
            registry = TournamentRegistry(session, self.settings)
            accounts = AccountStore(session)
            participation = await registry.get_participation_by_id(participation_id)
            tournament = await registry.find_tournament(participation.tournament_id)
            account = await accounts.get_account(participation.account_id)

            account = await accounts.apply_delta(
                account.id, {Currency.REAL: amount}, account.version
            )
            participation = await registry.change_prize(
                participation_id, amount, participation.version, tag_winner=True
            )
            await LedgerRecorder(session).record(
                account.id,
                Currency.REAL,
                amount,
                TransactionType.TOURNAMENT_WIN,
                account.cash_balance,
                tournament_id=participation.tournament_id,
                description=f"Prize: {tournament.name if tournament else participation.tournament_id}",
            )
            await AuditLogService(session).append(
                principal.admin_id,
                AuditAction.MONEY_SENT,
                self._prize_details(participation, tournament, amount),
                target_type="participation",
                target_id=participation_id,
            )
            return participation, participation_id

        participation, replayed = await self._execute(
            "send_prize",
            principal,
            work,
            idempotency_key=idempotency_key,
            fingerprint=request_fingerprint(
                {"participationId": participation_id, "amount": str(amount)}
            ),
            resource_type="participation",
            replay=self._replay_participation,
        )
        if not replayed:
            logger.info(
                "prize_sent",
                admin_id=principal.admin_id,
                participation_id=participation_id,
                amount=str(amount),
                prize_amount=str(participation.prize_amount),
            )
        return participation

    async def clawback_prize(
        self,
        principal: AdminPrincipal,
        participation_id: str,
        amount: Any,
        idempotency_key: str | None = None,
    ) -> Participation:
        """Take back part or all of a prize already sent.

        Requires ``0 < amount <= prize credited so far`` and enough cash.

        Raises:
            InvalidAmountError: amount not positive or above the prize-to-date
            InsufficientFundsError: cash balance below ``amount``
        """
        principal.require(Permission.TOURNAMENT_MANAGE_PARTICIPANTS)
        amount = to_positive_money(amount)

        async def work(session: AsyncSession) -> tuple[Participation, str]:
            registry = TournamentRegistry(session, self.settings)
            accounts = AccountStore(session)
            participation = await registry.get_participation_by_id(participation_id)
            if amount > participation.prize_amount:
                raise InvalidAmountError(
                    "Claw-back exceeds the prize credited so far",
                    details={
                        "prizeAmount": participation.prize_amount,
                        "requested": amount,
                    },
                )
            tournament = await registry.find_tournament(participation.tournament_id)
            account = await accounts.get_account(participation.account_id)
            if account.cash_balance < amount:
                raise InsufficientFundsError(Currency.REAL.value, amount, account.cash_balance)

            account = await accounts.apply_delta(
                account.id, {Currency.REAL: -amount}, account.version
            )
            participation = await registry.change_prize(
                participation_id, -amount, participation.version
            )
            await LedgerRecorder(session).record(
                account.id,
                Currency.REAL,
                -amount,
                TransactionType.ADMIN_DEBIT,
                account.cash_balance,
                tournament_id=participation.tournament_id,
                description=f"Prize claw-back: {tournament.name if tournament else participation.tournament_id}",
            )
            await AuditLogService(session).append(
                principal.admin_id,
                AuditAction.MONEY_TAKEN,
                self._prize_details(participation, tournament, amount),
                target_type="participation",
                target_id=participation_id,
            )
            return participation, participation_id

        participation, replayed = await self._execute(
            "clawback_prize",
            principal,
            work,
            idempotency_key=idempotency_key,
            fingerprint=request_fingerprint(
                {"participationId": participation_id, "amount": str(amount)}
            ),
            resource_type="participation",
            replay=self._replay_participation,
        )
        if not replayed:
            logger.info(
                "prize_clawed_back",
                admin_id=principal.admin_id,
                participation_id=participation_id,
                amount=str(amount),
                prize_amount=str(participation.prize_amount),
            )
        return participation

    async def _replay_participation(self, session: AsyncSession, resource_id: str) -> Participation:
        return await TournamentRegistry(session, self.settings).get_participation_by_id(
            resource_id
        )

    @staticmethod
    def _prize_details(
        participation: Participation,
        tournament: Tournament | None,
        amount: Decimal,
    ) -> dict[str, Any]:
        return {
            "targetUserId": participation.account_id,
            "targetTournamentId": participation.tournament_id,
            "participationId": participation.id,
            "tournamentName": tournament.name if tournament else None,
            "amount": amount,
            "prizeAmountAfter": participation.prize_amount,
        }

    # =========================================================================
    # Tournaments
    # =========================================================================

    async def create_tournament(
        self,
        principal: AdminPrincipal,
        spec: TournamentSpec,
        idempotency_key: str | None = None,
    ) -> Tournament:
        """Create a tournament.

        A replay of ``idempotency_key`` with the same spec returns the
        tournament created the first time.
        """
        principal.require(Permission.TOURNAMENT_CREATE)
        values = _tournament_values(spec.model_dump())

        async def work(session: AsyncSession) -> tuple[Tournament, str]:
            registry = TournamentRegistry(session, self.settings)
            tournament = await registry.create_tournament(
                {**values, "created_by": principal.admin_id}
            )
            await AuditLogService(session).append(
                principal.admin_id,
                AuditAction.TOURNAMENT_CREATE,
                {
                    "tournamentId": tournament.id,
                    "tournamentName": tournament.name,
                    "game": tournament.game,
                    "entryFee": tournament.entry_fee,
                    "capacity": tournament.capacity,
                    "startTime": tournament.start_time,
                },
                target_type="tournament",
                target_id=tournament.id,
            )
            return tournament, tournament.id

        async def replay(session: AsyncSession, resource_id: str) -> Tournament:
            return await TournamentRegistry(session, self.settings).get_tournament(resource_id)

        tournament, replayed = await self._execute(
            "create_tournament",
            principal,
            work,
            idempotency_key=idempotency_key,
            fingerprint=request_fingerprint(values),
            resource_type="tournament",
            replay=replay,
        )
        if not replayed:
            logger.info(
                "tournament_created",
                admin_id=principal.admin_id,
                tournament_id=tournament.id,
                name=tournament.name,
            )
        return tournament

    async def edit_tournament(
        self,
        principal: AdminPrincipal,
        tournament_id: str,
        changes: TournamentUpdate,
    ) -> Tournament:
        """Apply a partial edit.

        Raises:
            CapacityBelowOccupancyError: capacity lowered under seats taken
        """
        principal.require(Permission.TOURNAMENT_EDIT)
        values = _tournament_values(changes.model_dump(exclude_unset=True))
        if not values:
            raise InvalidRequestError("No tournament fields to change")

        async def work(session: AsyncSession) -> tuple[Tournament, str]:
            registry = TournamentRegistry(session, self.settings)
            current = await registry.get_tournament(tournament_id)
            before = {field: getattr(current, field) for field in values}
            updated = await registry.update_tournament(tournament_id, values, current.version)
            await AuditLogService(session).append(
                principal.admin_id,
                AuditAction.TOURNAMENT_EDIT,
                {
                    "tournamentId": tournament_id,
                    "tournamentName": updated.name,
                    "changes": {
                        field: {
                            "before": _audit_value(field, before[field]),
                            "after": _audit_value(field, getattr(updated, field)),
                        }
                        for field in values
                    },
                },
                target_type="tournament",
                target_id=tournament_id,
            )
            return updated, tournament_id

        tournament, _ = await self._execute("edit_tournament", principal, work)
        logger.info(
            "tournament_edited",
            admin_id=principal.admin_id,
            tournament_id=tournament_id,
            fields=sorted(values),
        )
        return tournament

    async def delete_tournament(self, principal: AdminPrincipal, tournament_id: str) -> int:
        """Delete a tournament with its participations.

        Returns:
            Number of participations removed
        """
        principal.require(Permission.TOURNAMENT_DELETE)

        async def work(session: AsyncSession) -> tuple[int, str]:
            registry = TournamentRegistry(session, self.settings)
            tournament = await registry.get_tournament(tournament_id)
            removed = await registry.delete_tournament(tournament_id)
            await AuditLogService(session).append(
                principal.admin_id,
                AuditAction.TOURNAMENT_DELETE,
                {
                    "tournamentId": tournament_id,
                    "tournamentName": tournament.name,
                    "participantsRemoved": removed,
                },
                target_type="tournament",
                target_id=tournament_id,
            )
            return removed, tournament_id

        removed, _ = await self._execute("delete_tournament", principal, work)
        logger.info(
            "tournament_deleted",
            admin_id=principal.admin_id,
            tournament_id=tournament_id,
            participants_removed=removed,
        )
        return removed

    # =========================================================================
    # Announcements
    # =========================================================================

    async def create_announcement(
        self,
        principal: AdminPrincipal,
        title: str,
        message: str,
        kind: AnnouncementKind = AnnouncementKind.GENERAL,
        priority: AnnouncementPriority = AnnouncementPriority.NORMAL,
        idempotency_key: str | None = None,
    ) -> Announcement:
        principal.require(Permission.ANNOUNCEMENT_CREATE)

        async def work(session: AsyncSession) -> tuple[Announcement, str]:
            announcement = await AnnouncementService(session).create_announcement(
                title, message, principal.admin_id, kind, priority
            )
            await AuditLogService(session).append(
                principal.admin_id,
                AuditAction.ANNOUNCEMENT_CREATE,
                {
                    "announcementId": announcement.id,
                    "title": title,
                    "kind": kind.value,
                    "priority": priority.value,
                },
                target_type="announcement",
                target_id=announcement.id,
            )
            return announcement, announcement.id

        async def replay(session: AsyncSession, resource_id: str) -> Announcement:
            return await AnnouncementService(session).get_announcement(resource_id)

        announcement, replayed = await self._execute(
            "create_announcement",
            principal,
            work,
            idempotency_key=idempotency_key,
            fingerprint=request_fingerprint(
                {
                    "title": title,
                    "message": message,
                    "kind": kind.value,
                    "priority": priority.value,
                }
            ),
            resource_type="announcement",
            replay=replay,
        )
        if not replayed:
            logger.info(
                "announcement_created",
                admin_id=principal.admin_id,
                announcement_id=announcement.id,
            )
        return announcement

    # =========================================================================
    # Audit log
    # =========================================================================

    async def list_audit_log(
        self,
        principal: AdminPrincipal,
        *,
        action: AuditAction | None = None,
        admin_id: str | None = None,
        since: datetime | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[AuditLog]:
        """Audit entries, newest first."""
        principal.require(Permission.LOGS_VIEW)
        async with self.session_factory() as session:
            return await AuditLogService(session).query(
                action=action,
                admin_id=admin_id,
                since=since,
                limit=limit,
                offset=offset,
            )
