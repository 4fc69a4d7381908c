from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Final

from .errors import Conflict, InvalidArgument, InvariantViolation, NotFound
from .models import DECIDED_RESULTS, EntityId, RoundSnapshot

if TYPE_CHECKING:
    from .api import BracketApi
    from .rounds import RoundLifecycleController

log: Final = logging.getLogger("bracket-client")


def _same_id(left: EntityId | None, right: EntityId | None) -> bool:
    if left is None or right is None:
        return left is None and right is None
    return str(left) == str(right)


def verify_random_resolution(before: RoundSnapshot, after: RoundSnapshot) -> int:
    """Check a bulk-random resolution against the round it started from.

    Returns the number of matches that were decided by the call.
    """
    decided = 0
    for previous in before.matches:
        current = after.find_match(previous.id)
        if current is None:
            raise InvariantViolation(f"Match {previous.id} disappeared from the round")
        if previous.is_bye or not previous.is_pending:
            if current.result != previous.result or not _same_id(
                current.winner_player_id, previous.winner_player_id
            ):
                raise InvariantViolation(
                    f"Match {previous.id} changed from {previous.result} to "
                    f"{current.result} during random resolution"
                )
            continue
        if current.is_pending:
            raise InvariantViolation(
                f"Match {current.id} is still pending after random resolution"
            )
        if current.result == "draw":
            raise InvariantViolation(
                f"Match {current.id} was drawn; random resolution must pick a winner"
            )
        try:
            expected = current.expected_winner(current.result)
        except InvalidArgument as exc:
            raise InvariantViolation(str(exc)) from exc
        if not _same_id(current.winner_player_id, expected):
            raise InvariantViolation(
                f"Match {current.id} records winner {current.winner_player_id} "
                f"inconsistent with {current.result}"
            )
        decided += 1
    return decided


class MatchResolutionService:
    """Record match outcomes; every success is followed by a full reload."""

    def __init__(self, api: BracketApi, rounds: RoundLifecycleController) -> None:
        self._api = api
        self._rounds = rounds

    async def declare_winner(
        self,
        tournament_id: EntityId,
        match_id: EntityId,
        winner_id: EntityId | None,
        result: str,
    ) -> RoundSnapshot:
        if result not in DECIDED_RESULTS:
            raise InvalidArgument(f"Unknown match result: {result!r}")

        snapshot = await self._rounds.get_current_round(tournament_id)
        match = snapshot.find_match(match_id)
        if match is None:
            raise NotFound(
                f"Match {match_id} is not part of round {snapshot.round.round_number}"
            )
        if not match.is_pending:
            raise InvalidArgument(f"Match {match.id} is already decided ({match.result})")
        if match.is_bye:
            raise InvalidArgument(f"Match {match.id} is a bye and cannot be declared")

        expected = match.expected_winner(result)
        if result == "draw":
            if winner_id is not None:
                raise InvalidArgument("A draw has no winner")
        elif not _same_id(winner_id, expected):
            raise InvalidArgument(
                f"Player {winner_id} cannot win match {match.id} as {result}"
            )

        await self._api.declare_winner(match.id, expected, result)
        log.info(
            "Declared %s for match %s in round %d",
            result,
            match.id,
            snapshot.round.round_number,
        )
        # The last pending match may have closed the round; only a reload shows it.
        return await self._rounds.get_current_round(tournament_id)

    async def declare_random_winners(
        self, tournament_id: EntityId, round_id: EntityId
    ) -> RoundSnapshot:
        snapshot = await self._rounds.get_current_round(tournament_id)
        if not _same_id(snapshot.round.id, round_id):
            raise Conflict(
                f"Round {round_id} has been superseded by round "
                f"{snapshot.round.round_number}"
            )

        candidates = [
            match for match in snapshot.matches if match.is_pending and not match.is_bye
        ]
        if not candidates:
            log.info(
                "Round %d has no pending matches; nothing to randomise",
                snapshot.round.round_number,
            )
            return snapshot

        await self._api.declare_random_winners(round_id)
        refreshed = await self._rounds.get_current_round(tournament_id)
        decided = verify_random_resolution(snapshot, refreshed)
        log.info(
            "Randomly decided %d of %d pending match(es) in round %d",
            decided,
            len(candidates),
            refreshed.round.round_number,
        )
        return refreshed


__all__ = ["MatchResolutionService", "verify_random_resolution"]
