from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Literal

from .errors import InvalidArgument

EntityId = int | str

TournamentStatus = Literal[
    "draft", "registration_open", "ongoing", "completed", "cancelled"
]
RoundStatus = Literal["pending", "ongoing", "completed"]
MatchResult = Literal["pending", "white_win", "black_win", "draw"]

TOURNAMENT_STATUSES: frozenset[str] = frozenset(
    {"draft", "registration_open", "ongoing", "completed", "cancelled"}
)
ROUND_STATUSES: frozenset[str] = frozenset({"pending", "ongoing", "completed"})
MATCH_RESULTS: frozenset[str] = frozenset(
    {"pending", "white_win", "black_win", "draw"}
)
DECIDED_RESULTS: frozenset[str] = MATCH_RESULTS - {"pending"}

ORGANIZER_ROLE = "organizer"


def utc_now_ms() -> int:
    """Return the current UTC time as epoch milliseconds."""
    return int(datetime.now(UTC).timestamp() * 1000)


def _optional_id(value: object) -> EntityId | None:
    if value is None or value == "":
        return None
    return value  # type: ignore[return-value]


def _normalize_choice(value: object, allowed: frozenset[str], label: str) -> str:
    normalized = str(value or "").strip().lower()
    if normalized not in allowed:
        raise InvalidArgument(f"Unknown {label}: {value!r}")
    return normalized


@dataclass(slots=True)
class Tournament:
    id: EntityId
    name: str
    status: TournamentStatus
    max_players: int | None = None
    start_date: str | None = None
    end_date: str | None = None
    time_control: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Tournament:
        max_players_raw = data.get("max_players")
        try:
            max_players = (
                int(max_players_raw) if max_players_raw not in (None, "") else None
            )
        except (TypeError, ValueError):
            max_players = None
        return cls(
            id=data["id"],  # type: ignore[arg-type]
            name=str(data.get("name", "")),
            status=_normalize_choice(  # type: ignore[arg-type]
                data.get("status"), TOURNAMENT_STATUSES, "tournament status"
            ),
            max_players=max_players,
            start_date=(
                str(data["start_date"]) if data.get("start_date") is not None else None
            ),
            end_date=(
                str(data["end_date"]) if data.get("end_date") is not None else None
            ),
            time_control=(
                str(data["time_control"])
                if data.get("time_control") is not None
                else None
            ),
        )

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "id": self.id,
            "name": self.name,
            "status": self.status,
        }
        if self.max_players is not None:
            data["max_players"] = self.max_players
        for key in ("start_date", "end_date", "time_control"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data

    @property
    def accepts_new_rounds(self) -> bool:
        return self.status in ("registration_open", "ongoing")


@dataclass(slots=True)
class Round:
    id: EntityId
    tournament_id: EntityId
    round_number: int
    status: RoundStatus

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Round:
        try:
            round_number = int(data.get("round_number", 0))  # type: ignore[arg-type]
        except (TypeError, ValueError) as exc:
            raise InvalidArgument(
                f"Invalid round number: {data.get('round_number')!r}"
            ) from exc
        if round_number < 1:
            raise InvalidArgument(f"Round number must be positive, got {round_number}")
        return cls(
            id=data["id"],  # type: ignore[arg-type]
            tournament_id=data.get("tournament_id"),  # type: ignore[arg-type]
            round_number=round_number,
            status=_normalize_choice(  # type: ignore[arg-type]
                data.get("status", "pending"), ROUND_STATUSES, "round status"
            ),
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "tournament_id": self.tournament_id,
            "round_number": self.round_number,
            "status": self.status,
        }


@dataclass(slots=True)
class Match:
    id: EntityId
    round_id: EntityId | None
    white_player_id: EntityId | None
    black_player_id: EntityId | None
    is_bye: bool = False
    result: MatchResult = "pending"
    winner_player_id: EntityId | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Match:
        return cls(
            id=data["id"],  # type: ignore[arg-type]
            round_id=_optional_id(data.get("round_id")),
            white_player_id=_optional_id(data.get("white_player_id")),
            black_player_id=_optional_id(data.get("black_player_id")),
            is_bye=bool(data.get("is_bye", False)),
            result=_normalize_choice(  # type: ignore[arg-type]
                data.get("result", "pending"), MATCH_RESULTS, "match result"
            ),
            winner_player_id=_optional_id(data.get("winner_player_id")),
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "round_id": self.round_id,
            "white_player_id": self.white_player_id,
            "black_player_id": self.black_player_id,
            "is_bye": self.is_bye,
            "result": self.result,
            "winner_player_id": self.winner_player_id,
        }

    @property
    def is_pending(self) -> bool:
        return self.result == "pending"

    def player_ids(self) -> list[EntityId]:
        return [
            player_id
            for player_id in (self.white_player_id, self.black_player_id)
            if player_id is not None
        ]

    def expected_winner(self, result: str) -> EntityId | None:
        """Return the winner a result tag implies for this pairing.

        Raises ``InvalidArgument`` for an unknown tag, or when the tag names a
        side of the pairing that has no player.
        """
        if result == "draw":
            return None
        if result == "white_win":
            winner, side = self.white_player_id, "white"
        elif result == "black_win":
            winner, side = self.black_player_id, "black"
        else:
            raise InvalidArgument(f"Unknown match result: {result!r}")
        if winner is None:
            raise InvalidArgument(f"Match {self.id} has no {side} player")
        return winner


@dataclass(slots=True)
class Player:
    id: EntityId
    name: str
    rating: int | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Player:
        rating_raw = data.get("rating")
        try:
            rating = int(rating_raw) if rating_raw not in (None, "") else None
        except (TypeError, ValueError):
            rating = None
        return cls(
            id=data["id"],  # type: ignore[arg-type]
            name=str(data.get("name") or ""),
            rating=rating,
        )

    def display(self) -> str:
        if self.rating is None:
            return f"{self.name} (N/A)"
        return f"{self.name} ({self.rating})"


@dataclass(slots=True)
class RoundSnapshot:
    round: Round
    matches: list[Match] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> RoundSnapshot:
        round_data = data.get("round")
        if not isinstance(round_data, Mapping):
            raise InvalidArgument("Round payload is missing")
        matches_data: Iterable[Mapping[str, object]] = data.get("matches") or []  # type: ignore[assignment]
        return cls(
            round=Round.from_dict(round_data),
            matches=[Match.from_dict(item) for item in matches_data],
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "round": self.round.to_dict(),
            "matches": [match.to_dict() for match in self.matches],
        }

    def pending_matches(self) -> list[Match]:
        return [match for match in self.matches if match.is_pending]

    @property
    def all_resolved(self) -> bool:
        return not self.pending_matches()

    def player_ids(self) -> set[EntityId]:
        ids: set[EntityId] = set()
        for match in self.matches:
            ids.update(match.player_ids())
        return ids

    def find_match(self, match_id: EntityId) -> Match | None:
        for match in self.matches:
            if str(match.id) == str(match_id):
                return match
        return None


@dataclass(slots=True)
class TournamentCompletion:
    """Completion sentinel: the tournament has ended and no round follows."""

    winner_player_id: EntityId | None
    completed: bool = True

    @staticmethod
    def is_completion_payload(data: Mapping[str, object]) -> bool:
        status = str(data.get("status") or "").upper()
        return status == "COMPLETED" or data.get("completed") is True

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> TournamentCompletion:
        winner = data.get("winner_player_id")
        if winner is None:
            nested = data.get("winner")
            if isinstance(nested, Mapping):
                winner = nested.get("playerId", nested.get("id"))
            elif nested is not None:
                winner = nested
        return cls(winner_player_id=_optional_id(winner))

    def to_dict(self) -> dict[str, object]:
        return {"completed": True, "winner_player_id": self.winner_player_id}


@dataclass(slots=True)
class SessionRecord:
    role: str
    email: str
    expiry: int

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> SessionRecord:
        try:
            expiry = int(data.get("expiry", 0))  # type: ignore[arg-type]
        except (TypeError, ValueError):
            expiry = 0
        return cls(
            role=str(data.get("role") or ""),
            email=str(data.get("email") or ""),
            expiry=expiry,
        )

    def to_dict(self) -> dict[str, object]:
        return {"role": self.role, "email": self.email, "expiry": self.expiry}

    def is_expired(self, now_ms: int | None = None) -> bool:
        current = utc_now_ms() if now_ms is None else now_ms
        return self.expiry <= current

    @property
    def is_organizer(self) -> bool:
        return self.role.lower() == ORGANIZER_ROLE


__all__ = [
    "DECIDED_RESULTS",
    "EntityId",
    "MATCH_RESULTS",
    "Match",
    "MatchResult",
    "ORGANIZER_ROLE",
    "Player",
    "ROUND_STATUSES",
    "Round",
    "RoundSnapshot",
    "RoundStatus",
    "SessionRecord",
    "TOURNAMENT_STATUSES",
    "Tournament",
    "TournamentCompletion",
    "TournamentStatus",
    "utc_now_ms",
]
