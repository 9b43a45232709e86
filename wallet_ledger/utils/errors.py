"""Ledger error taxonomy.

Every rejection the ledger can produce is one of the ``ErrorCode`` kinds below.
Callers render the stable code; the message is for logs and admin screens.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Closed set of error codes surfaced to callers."""

    # Validation
    INVALID_REQUEST = "INVALID_REQUEST"
    INVALID_NAME = "INVALID_NAME"
    INVALID_AMOUNT = "INVALID_AMOUNT"

    # Preconditions
    ALREADY_JOINED = "ALREADY_JOINED"
    TOURNAMENT_FULL = "TOURNAMENT_FULL"
    TOURNAMENT_CLOSED = "TOURNAMENT_CLOSED"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    VOUCHER_MISMATCH = "VOUCHER_MISMATCH"
    NEGATIVE_BALANCE = "NEGATIVE_BALANCE"
    INVALID_STATUS_TRANSITION = "INVALID_STATUS_TRANSITION"
    CAPACITY_BELOW_OCCUPANCY = "CAPACITY_BELOW_OCCUPANCY"
    ACCOUNT_INACTIVE = "ACCOUNT_INACTIVE"

    # Lookups
    ACCOUNT_NOT_FOUND = "ACCOUNT_NOT_FOUND"
    TOURNAMENT_NOT_FOUND = "TOURNAMENT_NOT_FOUND"
    PARTICIPATION_NOT_FOUND = "PARTICIPATION_NOT_FOUND"

    # Authorization
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"

    # Concurrency / delivery
    VERSION_CONFLICT = "VERSION_CONFLICT"
    TRY_AGAIN = "TRY_AGAIN"
    OUTCOME_UNKNOWN = "OUTCOME_UNKNOWN"
    IDEMPOTENCY_KEY_REUSED = "IDEMPOTENCY_KEY_REUSED"

    # Fatal
    ACTION_FAILED = "ACTION_FAILED"


def _jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    return value


class LedgerError(Exception):
    """Base exception for ledger errors.

    Attributes:
        code: Error code for programmatic handling
        message: Human-readable message
        details: Additional error details
        recoverable: Whether retrying (possibly after a re-read) can succeed
    """

    code: ErrorCode = ErrorCode.INVALID_REQUEST

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        recoverable: bool = False,
        code: ErrorCode | None = None,
    ):
        if code is not None:
            self.code = code
        self.message = message
        self.details = {k: _jsonable(v) for k, v in (details or {}).items()}
        self.recoverable = recoverable
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


# =============================================================================
# Validation errors
# =============================================================================


class InvalidRequestError(LedgerError):
    """Raised for malformed input rejected before any read."""

    code = ErrorCode.INVALID_REQUEST


class InvalidNameError(LedgerError):
    """Raised when the in-game name is missing or too short."""

    code = ErrorCode.INVALID_NAME

    def __init__(self, min_length: int):
        super().__init__(
            f"In-game name must be at least {min_length} characters",
            details={"minLength": min_length},
        )


class InvalidAmountError(LedgerError):
    """Raised when an amount is zero, negative or malformed."""

    code = ErrorCode.INVALID_AMOUNT


# =============================================================================
# Precondition errors
# =============================================================================


class AlreadyJoinedError(LedgerError):
    """Raised when the account already holds a seat in the tournament."""

    code = ErrorCode.ALREADY_JOINED

    def __init__(self, tournament_id: str, account_id: str):
        super().__init__(
            "Already joined this tournament",
            details={"tournamentId": tournament_id, "accountId": account_id},
        )


class TournamentFullError(LedgerError):
    """Raised when every seat is taken."""

    code = ErrorCode.TOURNAMENT_FULL

    def __init__(self, tournament_id: str, capacity: int):
        super().__init__(
            "Tournament is full",
            details={"tournamentId": tournament_id, "capacity": capacity},
        )


class TournamentClosedError(LedgerError):
    """Raised when the tournament no longer accepts entries."""

    code = ErrorCode.TOURNAMENT_CLOSED

    def __init__(self, tournament_id: str, status: str):
        super().__init__(
            f"Tournament is {status}",
            details={"tournamentId": tournament_id, "status": status},
        )


class InsufficientFundsError(LedgerError):
    """Raised when a debit exceeds the available balance."""

    code = ErrorCode.INSUFFICIENT_FUNDS

    def __init__(self, currency: str, required: Any, available: Any):
        super().__init__(
            f"Insufficient {currency}: required {required}, available {available}",
            details={
                "currency": currency,
                "required": required,
                "available": available,
            },
        )


class VoucherMismatchError(LedgerError):
    """Raised when a voucher denomination does not equal the entry fee."""

    code = ErrorCode.VOUCHER_MISMATCH

    def __init__(self, denomination: int, entry_fee: Any):
        super().__init__(
            f"A {denomination} voucher cannot cover an entry fee of {entry_fee}",
            details={"denomination": denomination, "entryFee": entry_fee},
        )


class NegativeBalanceError(LedgerError):
    """Raised when an admin adjustment would drive a balance below zero."""

    code = ErrorCode.NEGATIVE_BALANCE

    def __init__(self, currency: str, delta: Any, available: Any):
        super().__init__(
            f"Adjustment of {delta} {currency} would leave a negative balance",
            details={"currency": currency, "delta": delta, "available": available},
        )


class InvalidStatusTransitionError(LedgerError):
    """Raised for an account status change outside the allowed transitions."""

    code = ErrorCode.INVALID_STATUS_TRANSITION

    def __init__(self, current: str, requested: str):
        super().__init__(
            f"Cannot change account status from {current} to {requested}",
            details={"current": current, "requested": requested},
        )


class CapacityBelowOccupancyError(LedgerError):
    """Raised when an edit would shrink capacity under the seats already taken."""

    code = ErrorCode.CAPACITY_BELOW_OCCUPANCY

    def __init__(self, capacity: int, occupancy: int):
        super().__init__(
            f"Capacity {capacity} is below current occupancy {occupancy}",
            details={"capacity": capacity, "occupancy": occupancy},
        )


class AccountInactiveError(LedgerError):
    """Raised when a suspended or banned account tries to join."""

    code = ErrorCode.ACCOUNT_INACTIVE

    def __init__(self, account_id: str, status: str):
        super().__init__(
            f"Account is {status}",
            details={"accountId": account_id, "status": status},
        )


# =============================================================================
# Lookup errors
# =============================================================================


class AccountNotFoundError(LedgerError):
    code = ErrorCode.ACCOUNT_NOT_FOUND

    def __init__(self, account_id: str):
        super().__init__(
            f"Account not found: {account_id}",
            details={"accountId": account_id},
        )


class TournamentNotFoundError(LedgerError):
    code = ErrorCode.TOURNAMENT_NOT_FOUND

    def __init__(self, tournament_id: str):
        super().__init__(
            f"Tournament not found: {tournament_id}",
            details={"tournamentId": tournament_id},
        )


class ParticipationNotFoundError(LedgerError):
    code = ErrorCode.PARTICIPATION_NOT_FOUND

    def __init__(self, participation_id: str):
        super().__init__(
            f"Participation not found: {participation_id}",
            details={"participationId": participation_id},
        )


# =============================================================================
# Authorization errors
# =============================================================================


class UnauthorizedError(LedgerError):
    """Raised when the acting admin lacks the required permission."""

    code = ErrorCode.UNAUTHORIZED

    def __init__(self, permission: str, admin_id: str | None = None):
        super().__init__(
            f"Missing permission: {permission}",
            details={"permission": permission, "adminId": admin_id},
        )


# =============================================================================
# Concurrency and delivery errors
# =============================================================================


class VersionConflictError(LedgerError):
    """Raised when a conditional update lost a race; safe to retry after re-read."""

    code = ErrorCode.VERSION_CONFLICT

    def __init__(self, entity: str, entity_id: str, expected: int | None = None):
        super().__init__(
            f"Concurrent modification of {entity} {entity_id}",
            details={"entity": entity, "entityId": entity_id, "expected": expected},
            recoverable=True,
        )


class TryAgainError(LedgerError):
    """Raised when bounded conflict retries are exhausted."""

    code = ErrorCode.TRY_AGAIN

    def __init__(self, operation: str, attempts: int):
        super().__init__(
            "The request collided with other activity, please try again",
            details={"operation": operation, "attempts": attempts},
            recoverable=True,
        )


class OutcomeUnknownError(LedgerError):
    """Raised when a commit was issued but never acknowledged.

    The caller must re-read state (or replay the idempotency key) instead of
    blindly retrying.
    """

    code = ErrorCode.OUTCOME_UNKNOWN

    def __init__(self, operation: str, idempotency_key: str | None = None):
        super().__init__(
            "The outcome of the request is unknown; re-check before retrying",
            details={"operation": operation, "idempotencyKey": idempotency_key},
            recoverable=True,
        )


class IdempotencyKeyReusedError(LedgerError):
    """Raised when an idempotency key is replayed with a different request."""

    code = ErrorCode.IDEMPOTENCY_KEY_REUSED

    def __init__(self, key: str):
        super().__init__(
            "Idempotency key was already used for a different request",
            details={"idempotencyKey": key},
        )


# =============================================================================
# Fatal errors
# =============================================================================


class ActionFailedError(LedgerError):
    """Raised when a mutation is aborted and rolled back; nothing changed."""

    code = ErrorCode.ACTION_FAILED

    def __init__(self, operation: str, details: dict[str, Any] | None = None):
        super().__init__(
            "Action failed, no changes made",
            details=details if details is not None else {"operation": operation},
        )


class AuditWriteError(ActionFailedError):
    """Raised when an audit entry cannot be written; the mutation is aborted."""

    def __init__(self, action: str):
        super().__init__(action, details={"action": action})
