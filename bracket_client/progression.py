"""Intent-driven state machine over a tournament bracket.

The gate turns a caller intent (view or advance) into the controller call the
current bracket state allows, and publishes the result as a ``RoundView``.
Phases are derived from freshly fetched round data on every call:

* ``NO_ROUND`` - nothing has been paired yet; organizers create round 1.
* ``ROUND_IN_PROGRESS`` - at least one match is pending; advancing is refused.
* ``ROUND_COMPLETE`` - every match is decided; advancing pairs the next round.
* ``TOURNAMENT_COMPLETE`` - terminal; round-mutating operations are refused.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Final

from .errors import (
    InvalidArgument,
    NotFound,
    PreconditionFailed,
    StaleTarget,
    TournamentCompleted,
)
from .models import (
    EntityId,
    Player,
    RoundSnapshot,
    SessionRecord,
    Tournament,
    TournamentCompletion,
)
from .players import PlayerDirectoryCache
from .resolution import MatchResolutionService
from .rounds import RoundLifecycleController
from .session import check_session

if TYPE_CHECKING:
    from .api import BracketApi

log: Final = logging.getLogger("bracket-client")


class Intent(str, Enum):
    VIEW = "view"
    ADVANCE = "advance"


class Phase(str, Enum):
    NO_ROUND = "no_round"
    ROUND_IN_PROGRESS = "round_in_progress"
    ROUND_COMPLETE = "round_complete"
    TOURNAMENT_COMPLETE = "tournament_complete"


@dataclass(slots=True)
class RoundView:
    tournament: Tournament
    phase: Phase
    snapshot: RoundSnapshot | None = None
    players: dict[EntityId, Player] = field(default_factory=dict)
    winner_player_id: EntityId | None = None

    @property
    def round_number(self) -> int | None:
        if self.snapshot is None:
            return None
        return self.snapshot.round.round_number

    def player(self, player_id: EntityId | None) -> Player | None:
        if player_id is None:
            return None
        return self.players.get(player_id)

    @property
    def winner(self) -> Player | None:
        return self.player(self.winner_player_id)


def phase_for(snapshot: RoundSnapshot) -> Phase:
    if snapshot.all_resolved:
        return Phase.ROUND_COMPLETE
    return Phase.ROUND_IN_PROGRESS


def champion_of(snapshot: RoundSnapshot | None) -> EntityId | None:
    """Return the only winner of a final round, if the round has exactly one."""
    if snapshot is None:
        return None
    winners = {
        str(match.winner_player_id): match.winner_player_id
        for match in snapshot.matches
        if not match.is_pending and match.winner_player_id is not None
    }
    if len(winners) != 1:
        return None
    return next(iter(winners.values()))


class TournamentProgressionGate:
    def __init__(
        self,
        api: BracketApi,
        session: SessionRecord | None,
        *,
        tournament_id: EntityId | None = None,
        lookup_timeout: float | None = 5.0,
        rounds: RoundLifecycleController | None = None,
        resolution: MatchResolutionService | None = None,
    ) -> None:
        self._api = api
        self._session = session
        self._lookup_timeout = lookup_timeout
        self._rounds = rounds or RoundLifecycleController(api)
        self._resolution = resolution or MatchResolutionService(api, self._rounds)
        self._tournament_id = tournament_id
        self._generation = 0
        self.view: RoundView | None = None

    @property
    def tournament_id(self) -> EntityId | None:
        return self._tournament_id

    def select(self, tournament_id: EntityId) -> None:
        """Switch to another tournament; loads still in flight become stale."""
        self._generation += 1
        self._tournament_id = tournament_id
        self.view = None
        log.debug("Gate now targets tournament %s", tournament_id)

    # ----- Guards -----
    def _require_session(self, *, mutating: bool = False) -> SessionRecord:
        return check_session(self._session, organizer=mutating)

    def _target(self) -> tuple[EntityId, int]:
        if self._tournament_id is None:
            raise InvalidArgument("No tournament selected")
        return self._tournament_id, self._generation

    def _check_current(self, token: int) -> None:
        if token != self._generation:
            raise StaleTarget("Discarding response for a previous tournament")

    def _reject_if_complete(self, tournament: Tournament | None = None) -> None:
        if self.view is not None and self.view.phase is Phase.TOURNAMENT_COMPLETE:
            raise TournamentCompleted("The tournament has already finished")
        if tournament is not None and tournament.status == "completed":
            raise TournamentCompleted(f"Tournament {tournament.id} is already completed")

    # ----- View assembly -----
    async def _publish(
        self,
        token: int,
        tournament: Tournament,
        phase: Phase,
        snapshot: RoundSnapshot | None,
        *,
        winner_player_id: EntityId | None = None,
    ) -> RoundView:
        players: dict[EntityId, Player] = {}
        if snapshot is not None or winner_player_id is not None:
            ids = set(snapshot.player_ids()) if snapshot is not None else set()
            if winner_player_id is not None:
                ids.add(winner_player_id)
            cache = PlayerDirectoryCache(self._api, lookup_timeout=self._lookup_timeout)
            players = await cache.resolve(ids)
        self._check_current(token)

        view = RoundView(
            tournament=tournament,
            phase=phase,
            snapshot=snapshot,
            players=players,
            winner_player_id=winner_player_id,
        )
        self.view = view
        return view

    async def _load_state(
        self, tournament_id: EntityId, token: int
    ) -> tuple[Tournament, RoundSnapshot | None]:
        tournament = await self._api.get_tournament(tournament_id)
        self._check_current(token)
        try:
            snapshot = await self._rounds.get_current_round(tournament_id)
        except NotFound:
            snapshot = None
        self._check_current(token)
        return tournament, snapshot

    # ----- Intents -----
    async def dispatch(self, intent: Intent | str) -> RoundView:
        intent = Intent(intent)
        tournament_id, token = self._target()
        session = self._require_session()
        tournament, snapshot = await self._load_state(tournament_id, token)

        if tournament.status == "completed":
            if intent is Intent.ADVANCE:
                raise TournamentCompleted(
                    f"Tournament {tournament_id} is already completed"
                )
            return await self._publish(
                token,
                tournament,
                Phase.TOURNAMENT_COMPLETE,
                snapshot,
                winner_player_id=champion_of(snapshot),
            )

        if snapshot is None:
            if intent is Intent.VIEW and not session.is_organizer:
                return await self._publish(token, tournament, Phase.NO_ROUND, None)
            self._require_session(mutating=True)
            snapshot = await self._rounds.ensure_round(tournament_id, 1)
            self._check_current(token)
            return await self._publish(token, tournament, phase_for(snapshot), snapshot)

        if intent is Intent.VIEW:
            return await self._publish(token, tournament, phase_for(snapshot), snapshot)

        self._require_session(mutating=True)
        self._reject_if_complete()
        pending = snapshot.pending_matches()
        if pending:
            raise PreconditionFailed(
                f"Round {snapshot.round.round_number} still has {len(pending)} "
                "pending match(es)"
            )

        outcome = await self._rounds.advance(tournament_id, snapshot.round.id)
        self._check_current(token)
        if isinstance(outcome, TournamentCompletion):
            return await self._publish(
                token,
                replace(tournament, status="completed"),
                Phase.TOURNAMENT_COMPLETE,
                snapshot,
                winner_player_id=outcome.winner_player_id,
            )
        return await self._publish(token, tournament, phase_for(outcome), outcome)

    async def view_round(self) -> RoundView:
        return await self.dispatch(Intent.VIEW)

    async def advance(self) -> RoundView:
        return await self.dispatch(Intent.ADVANCE)

    # ----- Match resolution -----
    async def _prepare_mutation(self) -> tuple[EntityId, int, Tournament]:
        tournament_id, token = self._target()
        self._require_session(mutating=True)
        self._reject_if_complete()
        tournament = await self._api.get_tournament(tournament_id)
        self._check_current(token)
        self._reject_if_complete(tournament)
        return tournament_id, token, tournament

    async def declare_winner(
        self, match_id: EntityId, winner_id: EntityId | None, result: str
    ) -> RoundView:
        tournament_id, token, tournament = await self._prepare_mutation()
        snapshot = await self._resolution.declare_winner(
            tournament_id, match_id, winner_id, result
        )
        self._check_current(token)
        return await self._publish(token, tournament, phase_for(snapshot), snapshot)

    async def declare_random_winners(self) -> RoundView:
        tournament_id, token, tournament = await self._prepare_mutation()
        current = await self._rounds.get_current_round(tournament_id)
        self._check_current(token)
        snapshot = await self._resolution.declare_random_winners(
            tournament_id, current.round.id
        )
        self._check_current(token)
        return await self._publish(token, tournament, phase_for(snapshot), snapshot)


__all__ = [
    "Intent",
    "Phase",
    "RoundView",
    "TournamentProgressionGate",
    "champion_of",
    "phase_for",
]
