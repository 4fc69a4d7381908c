import pytest

from bracket_client.errors import InvalidArgument
from bracket_client.models import (
    Match,
    Player,
    Round,
    RoundSnapshot,
    SessionRecord,
    Tournament,
    TournamentCompletion,
)


def test_tournament_status_is_normalised():
    tournament = Tournament.from_dict(
        {"id": 4, "name": "Spring Open", "status": "ONGOING", "max_players": "16"}
    )

    assert tournament.status == "ongoing"
    assert tournament.max_players == 16
    assert tournament.accepts_new_rounds


def test_tournament_rejects_unknown_status():
    with pytest.raises(InvalidArgument):
        Tournament.from_dict({"id": 4, "status": "paused"})


@pytest.mark.parametrize(
    ("status", "accepts"),
    [
        ("draft", False),
        ("registration_open", True),
        ("ongoing", True),
        ("completed", False),
        ("cancelled", False),
    ],
)
def test_tournament_round_gating(status, accepts):
    tournament = Tournament(id=1, name="", status=status)
    assert tournament.accepts_new_rounds is accepts


def test_round_requires_positive_number():
    with pytest.raises(InvalidArgument):
        Round.from_dict({"id": 1, "tournament_id": 1, "round_number": 0})


def test_match_parsing_and_expected_winner():
    match = Match.from_dict(
        {
            "id": 7,
            "round_id": 3,
            "white_player_id": 11,
            "black_player_id": 12,
            "is_bye": False,
            "result": "pending",
            "winner_player_id": None,
        }
    )

    assert match.is_pending
    assert match.player_ids() == [11, 12]
    assert match.expected_winner("white_win") == 11
    assert match.expected_winner("black_win") == 12
    assert match.expected_winner("draw") is None
    with pytest.raises(InvalidArgument):
        match.expected_winner("pending")


def test_bye_match_has_single_player():
    match = Match.from_dict(
        {
            "id": 8,
            "round_id": 3,
            "white_player_id": 5,
            "black_player_id": None,
            "is_bye": True,
            "result": "white_win",
            "winner_player_id": 5,
        }
    )

    assert match.player_ids() == [5]
    assert not match.is_pending
    assert match.expected_winner("white_win") == 5


def test_expected_winner_rejects_empty_side():
    match = Match(
        id=9, round_id=3, white_player_id=None, black_player_id=6, is_bye=True
    )

    with pytest.raises(InvalidArgument, match="no white player"):
        match.expected_winner("white_win")
    assert match.expected_winner("black_win") == 6


def test_round_snapshot_helpers():
    snapshot = RoundSnapshot.from_dict(
        {
            "round": {"id": 3, "tournament_id": 1, "round_number": 2, "status": "ongoing"},
            "matches": [
                {"id": 1, "white_player_id": 1, "black_player_id": 2, "result": "draw"},
                {"id": 2, "white_player_id": 3, "black_player_id": 4},
            ],
        }
    )

    assert snapshot.player_ids() == {1, 2, 3, 4}
    assert [m.id for m in snapshot.pending_matches()] == [2]
    assert not snapshot.all_resolved
    assert snapshot.find_match("2") is snapshot.matches[1]
    assert snapshot.find_match(9) is None


def test_round_snapshot_requires_round():
    with pytest.raises(InvalidArgument):
        RoundSnapshot.from_dict({"matches": []})


@pytest.mark.parametrize(
    "payload",
    [
        {"status": "COMPLETED", "winner_player_id": 9},
        {"status": "completed", "winner": {"playerId": 9}},
        {"completed": True, "winner": {"id": 9}},
        {"completed": True, "winner": 9},
    ],
)
def test_completion_payload_shapes(payload):
    assert TournamentCompletion.is_completion_payload(payload)
    completion = TournamentCompletion.from_dict(payload)

    assert completion.winner_player_id == 9
    assert completion.to_dict() == {"completed": True, "winner_player_id": 9}


def test_round_payload_is_not_completion():
    assert not TournamentCompletion.is_completion_payload({"round": {}, "matches": []})


def test_player_display_handles_missing_rating():
    assert Player.from_dict({"id": 1, "name": "Ann", "rating": None}).display() == (
        "Ann (N/A)"
    )
    assert Player.from_dict({"id": 2, "name": "Bo", "rating": "1800"}).rating == 1800


def test_session_record_expiry_and_role():
    record = SessionRecord.from_dict(
        {"role": "Organizer", "email": "o@example.com", "expiry": 1000}
    )

    assert record.is_organizer
    assert record.is_expired(now_ms=1000)
    assert not record.is_expired(now_ms=999)
    assert record.to_dict() == {
        "role": "Organizer",
        "email": "o@example.com",
        "expiry": 1000,
    }
