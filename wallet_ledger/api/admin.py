"""Admin API endpoints.

Every mutation goes through ``AdminAdjustmentProcessor`` and is audited.
Permissions are checked against the admin account loaded for the request.
"""

from datetime import datetime

from fastapi import APIRouter, Query, status

from wallet_ledger.api.deps import (
    AdminProcessorDep,
    CurrentAdmin,
    DbSession,
    IdempotencyKey,
)
from wallet_ledger.models.audit import AuditAction
from wallet_ledger.schemas.admin import (
    AccountStatusRequest,
    AdjustBalanceRequest,
    AnnouncementCreate,
    AnnouncementResponse,
    AuditLogEntryResponse,
    GrantRewardRequest,
    PrizeRequest,
)
from wallet_ledger.schemas.tournament import (
    ParticipationResponse,
    TournamentResponse,
    TournamentSpec,
    TournamentUpdate,
)
from wallet_ledger.schemas.wallet import AccountSnapshotResponse
from wallet_ledger.services.accounts import AccountStore, snapshot
from wallet_ledger.utils.permissions import Permission

router = APIRouter(prefix="/admin", tags=["Admin"])


# ============================================================
# Accounts
# ============================================================


@router.get("/accounts/{account_id}", response_model=AccountSnapshotResponse)
async def get_account(
    account_id: str,
    admin: CurrentAdmin,
    db: DbSession,
) -> AccountSnapshotResponse:
    admin.require(Permission.USER_VIEW)
    return AccountSnapshotResponse.model_validate(
        await AccountStore(db).get_account_snapshot(account_id)
    )


@router.post("/accounts/{account_id}/adjust", response_model=AccountSnapshotResponse)
async def adjust_balance(
    account_id: str,
    body: AdjustBalanceRequest,
    admin: CurrentAdmin,
    processor: AdminProcessorDep,
    idempotency_key: IdempotencyKey = None,
) -> AccountSnapshotResponse:
    """Apply signed balance changes across currencies."""
    account = await processor.adjust_balance(
        admin,
        account_id,
        body.deltas,
        reason=body.reason,
        idempotency_key=idempotency_key,
    )
    return AccountSnapshotResponse.model_validate(snapshot(account))


@router.post("/accounts/{account_id}/rewards", response_model=AccountSnapshotResponse)
async def grant_reward(
    account_id: str,
    body: GrantRewardRequest,
    admin: CurrentAdmin,
    processor: AdminProcessorDep,
    idempotency_key: IdempotencyKey = None,
) -> AccountSnapshotResponse:
    account = await processor.grant_reward(
        admin,
        account_id,
        body.currency,
        body.amount,
        reason=body.reason,
        idempotency_key=idempotency_key,
    )
    return AccountSnapshotResponse.model_validate(snapshot(account))


@router.post("/accounts/{account_id}/status", response_model=AccountSnapshotResponse)
async def set_account_status(
    account_id: str,
    body: AccountStatusRequest,
    admin: CurrentAdmin,
    processor: AdminProcessorDep,
) -> AccountSnapshotResponse:
    account = await processor.set_account_status(
        admin, account_id, body.status, reason=body.reason
    )
    return AccountSnapshotResponse.model_validate(snapshot(account))


# ============================================================
# Prizes
# ============================================================


@router.post("/participations/{participation_id}/prize", response_model=ParticipationResponse)
async def send_prize(
    participation_id: str,
    body: PrizeRequest,
    admin: CurrentAdmin,
    processor: AdminProcessorDep,
    idempotency_key: IdempotencyKey = None,
) -> ParticipationResponse:
    participation = await processor.send_prize(
        admin, participation_id, body.amount, idempotency_key=idempotency_key
    )
    return ParticipationResponse.model_validate(participation)


@router.post(
    "/participations/{participation_id}/clawback",
    response_model=ParticipationResponse,
)
async def clawback_prize(
    participation_id: str,
    body: PrizeRequest,
    admin: CurrentAdmin,
    processor: AdminProcessorDep,
    idempotency_key: IdempotencyKey = None,
) -> ParticipationResponse:
    participation = await processor.clawback_prize(
        admin, participation_id, body.amount, idempotency_key=idempotency_key
    )
    return ParticipationResponse.model_validate(participation)


# ============================================================
# Tournaments
# ============================================================


@router.post(
    "/tournaments",
    response_model=TournamentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_tournament(
    body: TournamentSpec,
    admin: CurrentAdmin,
    processor: AdminProcessorDep,
    idempotency_key: IdempotencyKey = None,
) -> TournamentResponse:
    tournament = await processor.create_tournament(
        admin, body, idempotency_key=idempotency_key
    )
    return TournamentResponse.model_validate(tournament)


@router.patch("/tournaments/{tournament_id}", response_model=TournamentResponse)
async def edit_tournament(
    tournament_id: str,
    body: TournamentUpdate,
    admin: CurrentAdmin,
    processor: AdminProcessorDep,
) -> TournamentResponse:
    tournament = await processor.edit_tournament(admin, tournament_id, body)
    return TournamentResponse.model_validate(tournament)


@router.delete("/tournaments/{tournament_id}")
async def delete_tournament(
    tournament_id: str,
    admin: CurrentAdmin,
    processor: AdminProcessorDep,
) -> dict[str, int]:
    removed = await processor.delete_tournament(admin, tournament_id)
    return {"participantsRemoved": removed}


# ============================================================
# Announcements
# ============================================================


@router.post(
    "/announcements",
    response_model=AnnouncementResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_announcement(
    body: AnnouncementCreate,
    admin: CurrentAdmin,
    processor: AdminProcessorDep,
    idempotency_key: IdempotencyKey = None,
) -> AnnouncementResponse:
    announcement = await processor.create_announcement(
        admin,
        body.title,
        body.message,
        body.kind,
        body.priority,
        idempotency_key=idempotency_key,
    )
    return AnnouncementResponse.model_validate(announcement)


# ============================================================
# Audit log
# ============================================================


@router.get("/audit-log", response_model=list[AuditLogEntryResponse])
async def list_audit_log(
    admin: CurrentAdmin,
    processor: AdminProcessorDep,
    action: AuditAction | None = Query(None),
    admin_id: str | None = Query(None, alias="adminId"),
    since: datetime | None = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
) -> list[AuditLogEntryResponse]:
    """Audit entries, newest first."""
    entries = await processor.list_audit_log(
        admin,
        action=action,
        admin_id=admin_id,
        since=since,
        limit=limit,
        offset=offset,
    )
    return [AuditLogEntryResponse.model_validate(e) for e in entries]
