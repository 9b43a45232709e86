"""Tournament registry: definitions, seats and participations.

``reserve_seat`` is the seat-uniqueness primitive. The UPDATE matches only
when occupancy still equals what the caller read, there is room, and the
tournament is open, so the Nth successful reservation always gets seat N.
"""

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from wallet_ledger.config import Settings, get_settings
from wallet_ledger.models.tournament import Participation, Tournament, TournamentStatus
from wallet_ledger.utils.errors import (
    ActionFailedError,
    CapacityBelowOccupancyError,
    InvalidAmountError,
    ParticipationNotFoundError,
    TournamentClosedError,
    TournamentFullError,
    TournamentNotFoundError,
    VersionConflictError,
)
from wallet_ledger.utils.money import MAX_CASH
from wallet_ledger.utils.time import utcnow

logger = logging.getLogger(__name__)


class TournamentRegistry:
    """Reads and atomic mutations on ``tournaments`` and ``participations``."""

    def __init__(self, session: AsyncSession, settings: Settings | None = None) -> None:
        self.session = session
        self.settings = settings or get_settings()

    # -------------------------------------------------------------------------
    # Tournaments
    # -------------------------------------------------------------------------

    async def find_tournament(self, tournament_id: str) -> Tournament | None:
        result = await self.session.execute(
            select(Tournament)
            .where(Tournament.id == tournament_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_tournament(self, tournament_id: str) -> Tournament:
        """Get a tournament.

        Raises:
            TournamentNotFoundError: no such tournament
        """
        tournament = await self.find_tournament(tournament_id)
        if tournament is None:
            raise TournamentNotFoundError(tournament_id)
        return tournament

    async def list_tournaments(
        self,
        *,
        game: str | None = None,
        status: TournamentStatus | None = None,
    ) -> list[Tournament]:
        """List tournaments ordered by start time, optionally filtered."""
        query = select(Tournament).order_by(Tournament.start_time.asc(), Tournament.id)
        if game:
            query = query.where(Tournament.game == game)
        if status:
            query = query.where(Tournament.status == status.value)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def reserve_seat(self, tournament_id: str, expected_occupancy: int) -> int:
        """Take the next seat.

        Args:
            tournament_id: Tournament ID
            expected_occupancy: Occupancy the caller read

        Returns:
            The reserved seat number, ``expected_occupancy + 1``

        Raises:
            TournamentNotFoundError: no such tournament
            TournamentClosedError: no longer ``upcoming``
            TournamentFullError: no seat left
            VersionConflictError: another join took the seat first
        """
        stmt = (
            update(Tournament)
            .where(
                Tournament.id == tournament_id,
                Tournament.occupancy == expected_occupancy,
                Tournament.occupancy < Tournament.capacity,
                Tournament.status == TournamentStatus.UPCOMING.value,
            )
            .values(occupancy=Tournament.occupancy + 1, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount == 1:
            return expected_occupancy + 1

        current = await self.get_tournament(tournament_id)
        if current.status != TournamentStatus.UPCOMING.value:
            raise TournamentClosedError(tournament_id, current.status)
        if current.occupancy != expected_occupancy:
            raise VersionConflictError("tournament", tournament_id, expected_occupancy)
        if current.is_full:
            raise TournamentFullError(tournament_id, current.capacity)
        raise VersionConflictError("tournament", tournament_id, expected_occupancy)

    async def create_tournament(self, values: dict[str, Any]) -> Tournament:
        tournament = Tournament(**values)
        self.session.add(tournament)
        await self.session.flush()
        return tournament

    async def update_tournament(
        self,
        tournament_id: str,
        values: dict[str, Any],
        expected_version: int,
    ) -> Tournament:
        """Apply an admin edit under the optimistic lock.

        Capacity is re-checked against occupancy inside the UPDATE so a join
        landing between read and write cannot leave occupancy above capacity.

        Raises:
            TournamentNotFoundError: no such tournament
            CapacityBelowOccupancyError: new capacity under current occupancy
            VersionConflictError: the tournament moved past ``expected_version``
        """
        conditions = [
            Tournament.id == tournament_id,
            Tournament.version == expected_version,
        ]
        if "capacity" in values:
            conditions.append(Tournament.occupancy <= values["capacity"])

        stmt = (
            update(Tournament)
            .where(*conditions)
            .values(**values, version=Tournament.version + 1, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        current = await self.get_tournament(tournament_id)
        if result.rowcount == 1:
            return current

        if current.version != expected_version:
            raise VersionConflictError("tournament", tournament_id, expected_version)
        if "capacity" in values and current.occupancy > values["capacity"]:
            raise CapacityBelowOccupancyError(values["capacity"], current.occupancy)
        raise VersionConflictError("tournament", tournament_id, expected_version)

    async def delete_tournament(self, tournament_id: str) -> int:
        """Delete a tournament and its participations.

        Returns:
            Number of participations removed
        """
        removed = await self.session.execute(
            delete(Participation).where(Participation.tournament_id == tournament_id)
        )
        result = await self.session.execute(
            delete(Tournament).where(Tournament.id == tournament_id)
        )
        if result.rowcount != 1:
            raise TournamentNotFoundError(tournament_id)
        logger.info(
            f"Tournament {tournament_id[:8]}... deleted with "
            f"{removed.rowcount} participations"
        )
        return removed.rowcount

    # -------------------------------------------------------------------------
    # Participations
    # -------------------------------------------------------------------------

    async def get_participation(
        self,
        tournament_id: str,
        account_id: str,
    ) -> Participation | None:
        """Find an account's participation in a tournament, if any."""
        result = await self.session.execute(
            select(Participation)
            .where(
                Participation.tournament_id == tournament_id,
                Participation.account_id == account_id,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_participation_by_id(self, participation_id: str) -> Participation:
        result = await self.session.execute(
            select(Participation)
            .where(Participation.id == participation_id)
            .execution_options(populate_existing=True)
        )
        participation = result.scalar_one_or_none()
        if participation is None:
            raise ParticipationNotFoundError(participation_id)
        return participation

    async def list_participants(self, tournament_id: str) -> list[Participation]:
        """Participations of a tournament ordered by seat."""
        result = await self.session.execute(
            select(Participation)
            .where(Participation.tournament_id == tournament_id)
            .order_by(Participation.seat_number.asc())
        )
        return list(result.scalars().all())

    def add_participation(self, participation: Participation) -> Participation:
        """Stage a new participation; the caller flushes and handles uniqueness."""
        self.session.add(participation)
        return participation

    async def change_prize(
        self,
        participation_id: str,
        delta: Decimal,
        expected_version: int,
        *,
        tag_winner: bool = False,
    ) -> Participation:
        """Move a participation's prize-to-date by ``delta``.

        Raises:
            ParticipationNotFoundError: no such participation
            InvalidAmountError: the prize-to-date would go negative or past the maximum
            VersionConflictError: the participation moved past ``expected_version``
        """
        values: dict[str, Any] = {
            "prize_amount": Participation.prize_amount + delta,
            "version": Participation.version + 1,
            "updated_at": utcnow(),
        }
        if tag_winner:
            values["winner_tagged"] = True

        conditions = [
            Participation.id == participation_id,
            Participation.version == expected_version,
        ]
        if delta < 0:
            conditions.append(Participation.prize_amount >= -delta)
        elif delta > 0:
            conditions.append(Participation.prize_amount <= MAX_CASH - delta)

        result = await self.session.execute(
            update(Participation)
            .where(*conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        current = await self.get_participation_by_id(participation_id)
        if result.rowcount == 1:
            return current

        if current.version != expected_version:
            raise VersionConflictError("participation", participation_id, expected_version)
        if current.prize_amount + delta < 0:
            raise InvalidAmountError(
                "Claw-back exceeds the prize credited so far",
                details={"prizeAmount": current.prize_amount, "requested": -delta},
            )
        if current.prize_amount + delta > MAX_CASH:
            raise InvalidAmountError(
                "Prize would exceed the maximum",
                details={"prizeAmount": current.prize_amount, "requested": delta},
            )
        logger.error(f"Prize guard rejected a valid change: participation={participation_id}")
        raise ActionFailedError("change_prize")

    # -------------------------------------------------------------------------
    # Room credentials
    # -------------------------------------------------------------------------

    async def get_room_credentials(
        self,
        tournament_id: str,
        account_id: str,
        now: datetime | None = None,
    ) -> dict[str, str | None] | None:
        """Room id and password, or None until the caller may see them.

        Visible only to a verified participant at or after the reveal time.
        """
        tournament = await self.get_tournament(tournament_id)
        participation = await self.get_participation(tournament_id, account_id)
        if participation is None or not participation.verified:
            return None

        lead = timedelta(minutes=self.settings.room_reveal_lead_minutes)
        now = now or utcnow()
        if now < tournament.room_reveal_at(lead):
            return None
        if tournament.room_id is None and tournament.room_password is None:
            return None
        return {"roomId": tournament.room_id, "roomPassword": tournament.room_password}
