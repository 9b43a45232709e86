"""Business logic services."""

from wallet_ledger.services.accounts import AccountStore
from wallet_ledger.services.admin import AdminAdjustmentProcessor
from wallet_ledger.services.announcements import AnnouncementService
from wallet_ledger.services.audit import AuditLogService
from wallet_ledger.services.entry import EntryProcessor
from wallet_ledger.services.idempotency import IdempotencyStore
from wallet_ledger.services.ledger import LedgerRecorder
from wallet_ledger.services.tournaments import TournamentRegistry

__all__ = [
    # Stores
    "AccountStore",
    "TournamentRegistry",
    "LedgerRecorder",
    "AuditLogService",
    "IdempotencyStore",
    # Processors
    "EntryProcessor",
    "AdminAdjustmentProcessor",
    "AnnouncementService",
]
