"""Tournament listing and player registration ahead of round 1."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Final

from .errors import (
    InvalidArgument,
    InvariantViolation,
    PreconditionFailed,
    TournamentCompleted,
)
from .models import EntityId, Player, SessionRecord, Tournament
from .session import check_session

if TYPE_CHECKING:
    from .api import BracketApi

log: Final = logging.getLogger("bracket-client")


def check_registration_open(tournament: Tournament) -> None:
    if tournament.status == "completed":
        raise TournamentCompleted(f"Tournament {tournament.id} is already completed")
    if tournament.status != "registration_open":
        raise PreconditionFailed(
            f"Registration for tournament {tournament.id} is not open "
            f"({tournament.status})"
        )


class TournamentRegistry:
    """Browse tournaments and manage who is registered before pairing starts.

    Joining is open to any logged-in user; registering other players and
    closing registration are organizer actions.
    """

    def __init__(self, api: BracketApi, session: SessionRecord | None) -> None:
        self._api = api
        self._session = session

    async def list_tournaments(self, *, mine: bool = False) -> list[Tournament]:
        check_session(self._session)
        if mine:
            return await self._api.my_tournaments()
        return await self._api.list_tournaments()

    async def participants(self, tournament_id: EntityId) -> list[Player]:
        check_session(self._session)
        return await self._api.get_participants(tournament_id)

    async def _open_tournament(
        self, tournament_id: EntityId
    ) -> tuple[Tournament, list[Player]]:
        tournament = await self._api.get_tournament(tournament_id)
        check_registration_open(tournament)
        registered = await self._api.get_participants(tournament_id)
        return tournament, registered

    async def join(self, tournament_id: EntityId) -> list[Player]:
        session = check_session(self._session)
        tournament, registered = await self._open_tournament(tournament_id)
        if (
            tournament.max_players is not None
            and len(registered) >= tournament.max_players
        ):
            raise PreconditionFailed(
                f"The registration limit of {tournament.max_players} players "
                "has been reached"
            )
        await self._api.participate(tournament_id)
        log.info("%s joined tournament %s", session.email, tournament_id)
        return await self._api.get_participants(tournament_id)

    async def register_players(
        self,
        tournament_id: EntityId,
        player_ids: Iterable[EntityId] | None = None,
    ) -> list[Player]:
        """Register ``player_ids``, or every known user when none are given.

        Players who are already registered are skipped; the updated
        participant list is returned.
        """
        check_session(self._session, organizer=True)
        tournament, registered = await self._open_tournament(tournament_id)

        if player_ids is None:
            player_ids = [player.id for player in await self._api.list_players()]
        requested = list(dict.fromkeys(pid for pid in player_ids if pid is not None))
        if not requested:
            raise InvalidArgument("No players to register")

        already = {str(player.id) for player in registered}
        new_ids = [pid for pid in requested if str(pid) not in already]
        if not new_ids:
            log.info("All requested players already registered for %s", tournament_id)
            return registered

        if (
            tournament.max_players is not None
            and len(registered) + len(new_ids) > tournament.max_players
        ):
            raise PreconditionFailed(
                f"Registering {len(new_ids)} player(s) would exceed the limit of "
                f"{tournament.max_players}"
            )

        await self._api.register_players(tournament_id, new_ids)
        log.info(
            "Registered %d player(s) for tournament %s", len(new_ids), tournament_id
        )
        return await self._api.get_participants(tournament_id)

    async def close_registration(self, tournament_id: EntityId) -> Tournament:
        check_session(self._session, organizer=True)
        tournament = await self._api.get_tournament(tournament_id)
        check_registration_open(tournament)

        await self._api.close_registration(tournament_id)
        refreshed = await self._api.get_tournament(tournament_id)
        if refreshed.status == "registration_open":
            raise InvariantViolation(
                f"Tournament {tournament_id} still accepts registrations after closing"
            )
        log.info(
            "Closed registration for tournament %s (now %s)",
            tournament_id,
            refreshed.status,
        )
        return refreshed


__all__ = ["TournamentRegistry", "check_registration_open"]
