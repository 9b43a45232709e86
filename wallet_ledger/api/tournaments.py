"""Tournament API endpoints for players.

Endpoints:
- GET /tournaments - List tournaments
- GET /tournaments/{id} - Tournament details
- GET /tournaments/{id}/participants - Seat list
- POST /tournaments/{id}/join - Join (Idempotency-Key supported)
- GET /tournaments/{id}/participation - Caller's participation
- GET /tournaments/{id}/room - Room credentials once revealed
"""

from fastapi import APIRouter, Query, status

from wallet_ledger.api.deps import (
    CurrentAccountId,
    DbSession,
    EntryProcessorDep,
    IdempotencyKey,
)
from wallet_ledger.models.tournament import TournamentStatus
from wallet_ledger.schemas.tournament import (
    JoinTournamentRequest,
    ParticipationResponse,
    RoomCredentialsResponse,
    TournamentResponse,
)
from wallet_ledger.services.tournaments import TournamentRegistry
from wallet_ledger.utils.errors import ParticipationNotFoundError

router = APIRouter(prefix="/tournaments", tags=["Tournaments"])


@router.get("", response_model=list[TournamentResponse])
async def list_tournaments(
    db: DbSession,
    game: str | None = Query(None, description="Filter by game tag"),
    tournament_status: TournamentStatus | None = Query(None, alias="status"),
) -> list[TournamentResponse]:
    """List tournaments ordered by start time."""
    tournaments = await TournamentRegistry(db).list_tournaments(
        game=game, status=tournament_status
    )
    return [TournamentResponse.model_validate(t) for t in tournaments]


@router.get("/{tournament_id}", response_model=TournamentResponse)
async def get_tournament(tournament_id: str, db: DbSession) -> TournamentResponse:
    tournament = await TournamentRegistry(db).get_tournament(tournament_id)
    return TournamentResponse.model_validate(tournament)


@router.get("/{tournament_id}/participants", response_model=list[ParticipationResponse])
async def list_participants(tournament_id: str, db: DbSession) -> list[ParticipationResponse]:
    """Participants ordered by seat."""
    registry = TournamentRegistry(db)
    await registry.get_tournament(tournament_id)
    participants = await registry.list_participants(tournament_id)
    return [ParticipationResponse.model_validate(p) for p in participants]


@router.post(
    "/{tournament_id}/join",
    response_model=ParticipationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def join_tournament(
    tournament_id: str,
    body: JoinTournamentRequest,
    account_id: CurrentAccountId,
    processor: EntryProcessorDep,
    idempotency_key: IdempotencyKey = None,
) -> ParticipationResponse:
    """Join a tournament, paying the entry fee in cash or with a matching voucher.

    On OUTCOME_UNKNOWN, retry with the same Idempotency-Key or check
    ``GET /tournaments/{id}/participation``.
    """
    participation = await processor.join_tournament(
        tournament_id,
        account_id,
        body.in_game_name,
        voucher_denomination=body.voucher_denomination,
        idempotency_key=idempotency_key,
    )
    return ParticipationResponse.model_validate(participation)


@router.get("/{tournament_id}/participation", response_model=ParticipationResponse)
async def get_my_participation(
    tournament_id: str,
    account_id: CurrentAccountId,
    processor: EntryProcessorDep,
) -> ParticipationResponse:
    participation = await processor.get_participation(tournament_id, account_id)
    if participation is None:
        raise ParticipationNotFoundError(f"{tournament_id}/{account_id}")
    return ParticipationResponse.model_validate(participation)


@router.get("/{tournament_id}/room", response_model=RoomCredentialsResponse | None)
async def get_room_credentials(
    tournament_id: str,
    account_id: CurrentAccountId,
    processor: EntryProcessorDep,
) -> RoomCredentialsResponse | None:
    """Room id and password; null until revealed to this participant."""
    credentials = await processor.get_room_credentials(tournament_id, account_id)
    if credentials is None:
        return None
    return RoomCredentialsResponse(
        room_id=credentials["roomId"],
        room_password=credentials["roomPassword"],
    )
