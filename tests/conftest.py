from __future__ import annotations

import itertools
import random

import pytest

from bracket_client.errors import (
    Conflict,
    InvalidArgument,
    NetworkFailure,
    NotFound,
    PreconditionFailed,
)
from bracket_client.models import (
    Match,
    Player,
    Round,
    RoundSnapshot,
    SessionRecord,
    Tournament,
    TournamentCompletion,
    utc_now_ms,
)


def _copy_match(match: Match) -> Match:
    return Match.from_dict(match.to_dict())


def _copy_round(round_: Round) -> Round:
    return Round.from_dict(round_.to_dict())


class FakeBracketApi:
    """In-memory stand-in for the tournament server.

    Pairs players in registration order, gives the odd player out a bye and
    finishes the tournament once a round leaves fewer than two winners.
    """

    def __init__(self, *, seed: int = 0, current_user_id: int = 99) -> None:
        self.tournaments: dict[int, Tournament] = {}
        self.registrations: dict[int, list[int]] = {}
        self.rounds: dict[int, list[Round]] = {}
        self.matches: dict[int, list[Match]] = {}
        self.players: dict[int, Player] = {}
        self.failing_players: set[int] = set()
        self.player_lookups: list[int] = []
        self.calls: list[tuple[str, tuple[object, ...]]] = []
        self._ids = itertools.count(100)
        self._rng = random.Random(seed)
        self.current_user_id = current_user_id
        self.players[current_user_id] = Player(
            id=current_user_id, name="Me", rating=1400
        )

    # ----- Fixture helpers -----
    def add_tournament(
        self, tournament_id: int, player_ids: list[int], *, status: str = "ongoing"
    ) -> None:
        self.tournaments[tournament_id] = Tournament(
            id=tournament_id, name=f"Open {tournament_id}", status=status
        )
        self.registrations[tournament_id] = list(player_ids)
        self.rounds[tournament_id] = []
        for player_id in player_ids:
            self.players.setdefault(
                player_id,
                Player(id=player_id, name=f"Player {player_id}", rating=1500 + player_id),
            )

    def round_matches(self, round_id: int) -> list[Match]:
        return self.matches[round_id]

    def set_result(self, match: Match, result: str) -> None:
        match.result = result  # type: ignore[assignment]
        match.winner_player_id = match.expected_winner(result)
        self._refresh_round_status(match.round_id)  # type: ignore[arg-type]

    def _refresh_round_status(self, round_id: int) -> None:
        for rounds in self.rounds.values():
            for round_ in rounds:
                if round_.id == round_id:
                    if all(not m.is_pending for m in self.matches[round_id]):
                        round_.status = "completed"

    def _find_match(self, match_id: object) -> Match:
        for matches in self.matches.values():
            for match in matches:
                if str(match.id) == str(match_id):
                    return match
        raise NotFound(f"Match {match_id} not found", status=404)

    def _pair(self, tournament_id: int, round_number: int, players: list[int]) -> Round:
        round_ = Round(
            id=next(self._ids),
            tournament_id=tournament_id,
            round_number=round_number,
            status="ongoing",
        )
        matches: list[Match] = []
        for index in range(0, len(players), 2):
            pair = players[index : index + 2]
            if len(pair) == 2:
                matches.append(
                    Match(
                        id=next(self._ids),
                        round_id=round_.id,
                        white_player_id=pair[0],
                        black_player_id=pair[1],
                    )
                )
            else:
                matches.append(
                    Match(
                        id=next(self._ids),
                        round_id=round_.id,
                        white_player_id=pair[0],
                        black_player_id=None,
                        is_bye=True,
                        result="white_win",
                        winner_player_id=pair[0],
                    )
                )
        self.rounds[tournament_id].append(round_)
        self.matches[round_.id] = matches
        self._refresh_round_status(round_.id)
        return round_

    def _snapshot(self, round_: Round) -> RoundSnapshot:
        return RoundSnapshot(
            round=_copy_round(round_),
            matches=[_copy_match(m) for m in self.matches[round_.id]],
        )

    # ----- API surface -----
    async def get_tournament(self, tournament_id):
        self.calls.append(("get_tournament", (tournament_id,)))
        tournament = self.tournaments.get(int(tournament_id))
        if tournament is None:
            raise NotFound(f"Tournament {tournament_id} not found", status=404)
        return Tournament.from_dict(tournament.to_dict())

    async def get_current_round(self, tournament_id):
        self.calls.append(("get_current_round", (tournament_id,)))
        rounds = self.rounds.get(int(tournament_id))
        if not rounds:
            raise NotFound("No round found", status=404)
        return _copy_round(rounds[-1])

    async def get_round_matches(self, round_id):
        self.calls.append(("get_round_matches", (round_id,)))
        return [_copy_match(m) for m in self.matches.get(int(round_id), [])]

    async def create_round(self, tournament_id, round_number):
        self.calls.append(("create_round", (tournament_id, round_number)))
        tournament_id = int(tournament_id)
        rounds = self.rounds[tournament_id]
        for round_ in rounds:
            if round_.round_number == round_number:
                return self._snapshot(round_)
        if round_number != len(rounds) + 1:
            raise Conflict("Rounds must be created in order", status=409)
        round_ = self._pair(tournament_id, round_number, self.registrations[tournament_id])
        self.tournaments[tournament_id].status = "ongoing"
        return self._snapshot(round_)

    async def declare_winner(self, match_id, winner_id, result):
        self.calls.append(("declare_winner", (match_id, winner_id, result)))
        match = self._find_match(match_id)
        if not match.is_pending:
            raise InvalidArgument("Match already has a result", status=400)
        self.set_result(match, result)
        return match.to_dict()

    async def declare_random_winners(self, round_id):
        self.calls.append(("declare_random_winners", (round_id,)))
        matches = self.matches[int(round_id)]
        for match in matches:
            if match.is_pending and not match.is_bye:
                self.set_result(match, self._rng.choice(("white_win", "black_win")))
        return [_copy_match(m) for m in matches]

    async def next_round(self, tournament_id, round_id):
        self.calls.append(("next_round", (tournament_id, round_id)))
        tournament_id = int(tournament_id)
        winners = [
            m.winner_player_id
            for m in self.matches[int(round_id)]
            if m.winner_player_id is not None
        ]
        if len(winners) < 2:
            self.tournaments[tournament_id].status = "completed"
            return TournamentCompletion(
                winner_player_id=winners[0] if winners else None
            )
        round_number = len(self.rounds[tournament_id]) + 1
        return self._snapshot(self._pair(tournament_id, round_number, winners))

    async def get_player(self, player_id):
        self.player_lookups.append(player_id)
        if player_id in self.failing_players:
            raise NetworkFailure(f"Lookup for {player_id} failed")
        player = self.players.get(player_id)
        if player is None:
            raise NotFound(f"Player {player_id} not found", status=404)
        return Player(id=player.id, name=player.name, rating=player.rating)

    async def list_tournaments(self):
        self.calls.append(("list_tournaments", ()))
        return [Tournament.from_dict(t.to_dict()) for t in self.tournaments.values()]

    async def my_tournaments(self):
        self.calls.append(("my_tournaments", ()))
        return [
            Tournament.from_dict(self.tournaments[tid].to_dict())
            for tid, player_ids in self.registrations.items()
            if self.current_user_id in player_ids
        ]

    async def get_participants(self, tournament_id):
        self.calls.append(("get_participants", (tournament_id,)))
        player_ids = self.registrations.get(int(tournament_id))
        if player_ids is None:
            raise NotFound(f"Tournament {tournament_id} not found", status=404)
        return [self.players[pid] for pid in player_ids]

    async def close_registration(self, tournament_id):
        self.calls.append(("close_registration", (tournament_id,)))
        tournament = self.tournaments[int(tournament_id)]
        if tournament.status != "registration_open":
            raise PreconditionFailed("Registration is not open", status=412)
        tournament.status = "ongoing"
        return {"message": "Registration closed"}

    async def participate(self, tournament_id):
        self.calls.append(("participate", (tournament_id,)))
        registered = self.registrations[int(tournament_id)]
        if self.current_user_id in registered:
            raise Conflict("Already registered", status=409)
        registered.append(self.current_user_id)
        return {"message": "Registered"}

    async def register_players(self, tournament_id, player_ids):
        self.calls.append(("register_players", (tournament_id, list(player_ids))))
        registered = self.registrations[int(tournament_id)]
        for player_id in player_ids:
            player_id = int(player_id)
            if player_id not in self.players:
                raise NotFound(f"Player {player_id} not found", status=404)
            if player_id not in registered:
                registered.append(player_id)
        return {"message": "Players registered"}

    async def list_players(self):
        self.calls.append(("list_players", ()))
        return list(self.players.values())


def make_session(role: str = "organizer", *, ttl_ms: int = 60_000) -> SessionRecord:
    return SessionRecord(
        role=role, email=f"{role}@example.com", expiry=utc_now_ms() + ttl_ms
    )


@pytest.fixture
def fake_api() -> FakeBracketApi:
    api = FakeBracketApi()
    api.add_tournament(1, [1, 2, 3, 4])
    return api


@pytest.fixture
def organizer_session() -> SessionRecord:
    return make_session("organizer")


@pytest.fixture
def player_session() -> SessionRecord:
    return make_session("player")
