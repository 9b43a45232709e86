"""SQLAlchemy models."""

from wallet_ledger.models.base import Base
from wallet_ledger.models.account import Account, AccountStatus, Currency
from wallet_ledger.models.admin import AdminAccount
from wallet_ledger.models.announcement import (
    Announcement,
    AnnouncementKind,
    AnnouncementPriority,
)
from wallet_ledger.models.audit import AuditAction, AuditLog
from wallet_ledger.models.idempotency import IdempotencyKey
from wallet_ledger.models.ledger import LedgerTransaction, TransactionType
from wallet_ledger.models.tournament import Participation, Tournament, TournamentStatus

__all__ = [
    "Base",
    "Account",
    "AccountStatus",
    "Currency",
    "AdminAccount",
    "Announcement",
    "AnnouncementKind",
    "AnnouncementPriority",
    "AuditAction",
    "AuditLog",
    "IdempotencyKey",
    "LedgerTransaction",
    "TransactionType",
    "Participation",
    "Tournament",
    "TournamentStatus",
]
