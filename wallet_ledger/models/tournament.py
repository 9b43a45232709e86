"""Tournament and Participation models."""

from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from wallet_ledger.models.base import Base, Money, TimestampMixin, UTCDateTime, UUIDMixin


class TournamentStatus(str, Enum):
    UPCOMING = "upcoming"
    LIVE = "live"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Tournament(Base, UUIDMixin, TimestampMixin):
    """A scheduled event: a flat pool of numbered seats."""

    __tablename__ = "tournaments"
    __table_args__ = (
        CheckConstraint("capacity > 0", name="ck_tournaments_capacity_pos"),
        CheckConstraint(
            "occupancy >= 0 AND occupancy <= capacity",
            name="ck_tournaments_occupancy_bounds",
        ),
        CheckConstraint("entry_fee >= 0", name="ck_tournaments_fee_nonneg"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    game: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    rules: Mapped[str | None] = mapped_column(Text, nullable=True)

    entry_fee: Mapped[Decimal] = mapped_column(
        Money(),
        default=Decimal("0.00"),
        nullable=False,
        comment="0 means free entry",
    )
    prize_pool: Mapped[Decimal] = mapped_column(
        Money(),
        default=Decimal("0.00"),
        nullable=False,
        comment="Informational only; payouts go through sendPrize",
    )

    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    occupancy: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        default=TournamentStatus.UPCOMING.value,
        nullable=False,
        index=True,
    )
    start_time: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, index=True)

    # Room secrets, revealed to verified participants shortly before start
    room_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    room_password: Mapped[str | None] = mapped_column(String(100), nullable=True)

    created_by: Mapped[str | None] = mapped_column(String(36), nullable=True)

    # Bumped by admin edits; seat reservation is guarded by occupancy instead
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    def room_reveal_at(self, lead: timedelta) -> datetime:
        return self.start_time - lead

    @property
    def is_full(self) -> bool:
        return self.occupancy >= self.capacity

    def __repr__(self) -> str:
        return f"<Tournament {self.name} {self.occupancy}/{self.capacity}>"


class Participation(Base, UUIDMixin, TimestampMixin):
    """One account's seat in one tournament."""

    __tablename__ = "participations"
    __table_args__ = (
        UniqueConstraint(
            "tournament_id", "account_id", name="uq_participations_tournament_account"
        ),
        UniqueConstraint(
            "tournament_id", "seat_number", name="uq_participations_tournament_seat"
        ),
        CheckConstraint("prize_amount >= 0", name="ck_participations_prize_nonneg"),
    )

    tournament_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("tournaments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    account_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("accounts.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    seat_number: Mapped[int] = mapped_column(Integer, nullable=False)
    in_game_name: Mapped[str] = mapped_column(String(50), nullable=False)

    fee_charged: Mapped[Decimal] = mapped_column(
        Money(),
        default=Decimal("0.00"),
        nullable=False,
        comment="Cash actually charged; 0 when a voucher was redeemed",
    )
    voucher_denomination: Mapped[int | None] = mapped_column(Integer, nullable=True)

    prize_amount: Mapped[Decimal] = mapped_column(
        Money(),
        default=Decimal("0.00"),
        nullable=False,
        comment="Prize credited so far, net of claw-backs",
    )
    winner_tagged: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    def __repr__(self) -> str:
        return f"<Participation {self.tournament_id} seat={self.seat_number}>"
