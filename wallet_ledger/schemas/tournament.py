"""Tournament, participation and join schemas."""

from datetime import datetime
from decimal import Decimal

from pydantic import Field, field_validator

from wallet_ledger.models.tournament import TournamentStatus
from wallet_ledger.schemas.common import BaseSchema
from wallet_ledger.utils.time import ensure_utc


class TournamentSpec(BaseSchema):
    """Definition of a new tournament."""

    name: str = Field(..., min_length=1, max_length=200)
    game: str = Field(..., min_length=1, max_length=50, description="Game tag, e.g. freefire")
    description: str | None = None
    rules: str | None = None
    entry_fee: Decimal = Field(default=Decimal("0"), ge=0, decimal_places=2, description="0 = free")
    prize_pool: Decimal = Field(default=Decimal("0"), ge=0, decimal_places=2)
    capacity: int = Field(..., gt=0)
    start_time: datetime
    status: TournamentStatus = TournamentStatus.UPCOMING
    room_id: str | None = Field(default=None, max_length=100)
    room_password: str | None = Field(default=None, max_length=100)

    @field_validator("start_time")
    @classmethod
    def normalize_start_time(cls, v: datetime) -> datetime:
        """Treat naive times as UTC."""
        return ensure_utc(v)


class TournamentUpdate(BaseSchema):
    """Partial edit; only fields that are set are changed."""

    name: str | None = Field(default=None, min_length=1, max_length=200)
    game: str | None = Field(default=None, min_length=1, max_length=50)
    description: str | None = None
    rules: str | None = None
    entry_fee: Decimal | None = Field(default=None, ge=0, decimal_places=2)
    prize_pool: Decimal | None = Field(default=None, ge=0, decimal_places=2)
    capacity: int | None = Field(default=None, gt=0)
    start_time: datetime | None = None
    status: TournamentStatus | None = None
    room_id: str | None = Field(default=None, max_length=100)
    room_password: str | None = Field(default=None, max_length=100)

    @field_validator("start_time")
    @classmethod
    def normalize_start_time(cls, v: datetime | None) -> datetime | None:
        return ensure_utc(v)


class TournamentResponse(BaseSchema):
    id: str
    name: str
    game: str
    description: str | None
    rules: str | None
    entry_fee: Decimal
    prize_pool: Decimal
    capacity: int
    occupancy: int
    status: str
    start_time: datetime


class JoinTournamentRequest(BaseSchema):
    """Join request body."""

    in_game_name: str = Field(..., max_length=50, description="Name shown inside the game")
    voucher_denomination: int | None = Field(
        default=None,
        description="Redeem a voucher of this denomination instead of paying cash",
    )


class ParticipationResponse(BaseSchema):
    id: str
    tournament_id: str
    account_id: str
    seat_number: int
    in_game_name: str
    fee_charged: Decimal
    voucher_denomination: int | None
    prize_amount: Decimal
    winner_tagged: bool
    verified: bool
    created_at: datetime


class RoomCredentialsResponse(BaseSchema):
    room_id: str | None
    room_password: str | None
