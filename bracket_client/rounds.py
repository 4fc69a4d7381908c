"""Round lifecycle: ensure, fetch and advance rounds of a tournament.

The server owns every round and match; this controller only sequences the
REST calls and refuses requests that the bracket state makes illegal, so a
rejected operation never reaches the server.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Final

from .errors import (
    Conflict,
    InvalidArgument,
    InvariantViolation,
    NotFound,
    PreconditionFailed,
    TournamentCompleted,
)
from .models import EntityId, Round, RoundSnapshot, Tournament, TournamentCompletion

if TYPE_CHECKING:
    from .api import BracketApi

log: Final = logging.getLogger("bracket-client")

AdvanceOutcome = RoundSnapshot | TournamentCompletion


def check_accepts_new_round(tournament: Tournament) -> None:
    if tournament.status == "completed":
        raise TournamentCompleted(f"Tournament {tournament.id} is already completed")
    if not tournament.accepts_new_rounds:
        raise PreconditionFailed(
            f"Cannot start a round while tournament {tournament.id} is "
            f"{tournament.status}"
        )


class RoundLifecycleController:
    def __init__(self, api: BracketApi) -> None:
        self._api = api

    async def _latest_round(self, tournament_id: EntityId) -> Round | None:
        try:
            return await self._api.get_current_round(tournament_id)
        except NotFound:
            return None

    async def _load(self, round_: Round) -> RoundSnapshot:
        matches = await self._api.get_round_matches(round_.id)
        return RoundSnapshot(round=round_, matches=matches)

    async def get_current_round(self, tournament_id: EntityId) -> RoundSnapshot:
        """Return the latest round and its matches.

        Raises ``NotFound`` when the tournament has no round yet; callers fall
        back to ``ensure_round(tournament_id, 1)``.
        """
        current = await self._api.get_current_round(tournament_id)
        return await self._load(current)

    async def ensure_round(
        self, tournament_id: EntityId, round_number: int
    ) -> RoundSnapshot:
        """Return round ``round_number``, creating it if it is the next one.

        Calling this again for an existing round has no side effect.
        """
        if round_number < 1:
            raise InvalidArgument(f"Round number must be positive, got {round_number}")

        tournament = await self._api.get_tournament(tournament_id)
        latest = await self._latest_round(tournament_id)
        latest_number = latest.round_number if latest is not None else 0

        if round_number > latest_number + 1:
            raise Conflict(
                f"Round {round_number} cannot be created before round "
                f"{latest_number + 1}"
            )

        if latest is not None and round_number == latest_number:
            return await self._load(latest)

        if round_number == latest_number + 1:
            check_accepts_new_round(tournament)
            if latest is not None:
                previous = await self._load(latest)
                pending = previous.pending_matches()
                if pending:
                    raise PreconditionFailed(
                        f"Round {round_number} cannot start while {len(pending)} "
                        f"match(es) in round {latest_number} are pending"
                    )
            log.info("Creating round %d for tournament %s", round_number, tournament_id)

        # Earlier rounds are only reachable through the create-or-fetch route,
        # which returns existing rounds unchanged.
        snapshot = await self._api.create_round(tournament_id, round_number)
        if snapshot.round.round_number != round_number:
            raise InvariantViolation(
                f"Requested round {round_number} but received round "
                f"{snapshot.round.round_number}"
            )
        return snapshot

    async def advance(
        self, tournament_id: EntityId, round_id: EntityId
    ) -> AdvanceOutcome:
        """Close ``round_id`` and open the next round or finish the tournament."""
        tournament = await self._api.get_tournament(tournament_id)
        check_accepts_new_round(tournament)

        current = await self._api.get_current_round(tournament_id)
        if str(current.id) != str(round_id):
            raise Conflict(
                f"Round {round_id} has been superseded by round {current.round_number}"
            )

        snapshot = await self._load(current)
        pending = snapshot.pending_matches()
        if pending:
            raise PreconditionFailed(
                f"{len(pending)} match(es) in round {current.round_number} "
                "are still pending"
            )

        outcome = await self._api.next_round(tournament_id, round_id)
        if isinstance(outcome, TournamentCompletion):
            log.info(
                "Tournament %s completed after round %d; winner %s",
                tournament_id,
                current.round_number,
                outcome.winner_player_id,
            )
            return outcome

        if outcome is None:
            outcome = await self.get_current_round(tournament_id)
        if outcome.round.round_number <= current.round_number:
            raise InvariantViolation(
                f"Advancing round {current.round_number} did not open a new round"
            )
        log.info(
            "Tournament %s advanced to round %d",
            tournament_id,
            outcome.round.round_number,
        )
        return outcome


__all__ = ["AdvanceOutcome", "RoundLifecycleController", "check_accepts_new_round"]
