from __future__ import annotations

from collections.abc import Sequence

from .models import EntityId, Match, Player, Tournament
from .progression import Phase, RoundView

_RESULT_LABELS = {
    "pending": "PENDING",
    "white_win": "WHITE WIN",
    "black_win": "BLACK WIN",
    "draw": "DRAW",
}


def _player_label(view: RoundView, player_id: EntityId | None) -> str:
    if player_id is None:
        return "BYE"
    player = view.player(player_id)
    if player is None:
        return f"Player {player_id} (unavailable)"
    return player.display()


def _match_lines(view: RoundView, index: int, match: Match) -> list[str]:
    white = _player_label(view, match.white_player_id)
    black = _player_label(view, match.black_player_id)
    header = f"  Match #{index} [{match.id}] {white} (white) vs {black} (black)"
    if match.is_bye:
        header += " - BYE MATCH"
    lines = [header]
    if match.is_pending:
        lines.append("    -> Result: PENDING")
    elif match.winner_player_id is None:
        lines.append(f"    -> Result: {_RESULT_LABELS[match.result]}")
    else:
        winner = _player_label(view, match.winner_player_id)
        lines.append(f"    -> Result: {_RESULT_LABELS[match.result]}, winner {winner}")
    return lines


def render_round_view(view: RoundView) -> str:
    tournament = view.tournament
    title = tournament.name or f"Tournament {tournament.id}"
    lines: list[str] = [f"{title} [{tournament.status.upper()}]"]

    if view.snapshot is None:
        lines.append("No round has been paired yet")
    else:
        round_ = view.snapshot.round
        lines.append(f"Round {round_.round_number} [{round_.status.upper()}]")
        if not view.snapshot.matches:
            lines.append("  No matches for this round")
        for index, match in enumerate(view.snapshot.matches, start=1):
            lines.extend(_match_lines(view, index, match))

    if view.phase is Phase.ROUND_COMPLETE:
        lines.append("All matches decided; the next round can be started.")
    elif view.phase is Phase.TOURNAMENT_COMPLETE:
        if view.winner_player_id is not None:
            lines.append(f"Champion: {_player_label(view, view.winner_player_id)}")
        else:
            lines.append("Tournament completed.")
    return "\n".join(line.rstrip() for line in lines)


def render_tournament_list(tournaments: Sequence[Tournament]) -> str:
    if not tournaments:
        return "No tournaments found"
    lines = []
    for tournament in tournaments:
        line = f"[{tournament.id}] {tournament.name} ({tournament.status})"
        if tournament.max_players is not None:
            line += f" max {tournament.max_players} players"
        if tournament.start_date:
            line += f", starts {tournament.start_date}"
        lines.append(line)
    return "\n".join(lines)


def render_participants(players: Sequence[Player]) -> str:
    if not players:
        return "No players registered yet"
    lines = [f"{len(players)} registered player(s):"]
    lines.extend(f"  [{player.id}] {player.display()}" for player in players)
    return "\n".join(lines)


__all__ = ["render_participants", "render_round_view", "render_tournament_list"]
