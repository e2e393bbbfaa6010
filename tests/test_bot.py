"""
Tests for the bot's score lookup and message formatting.
"""

import json

import pytest

from challenge import ChallengeBoard, resolve_response
from conftest import make_score
from scores import ScoreRecord
from teto_bot import ScoreDB, claim_champion, format_map, format_result


@pytest.fixture
def scores_file(tmp_path):
    path = tmp_path / "scores.json"
    path.write_text(json.dumps({"players": {
        "1": {
            "username": "Champion",
            "avatar_url": "https://a.ppy.sh/1",
            "scores": [
                make_score(score=500_000, beatmap_id=10),
                make_score(score=900_000, beatmap_id=10),
                make_score(score=700_000, beatmap_id=20),
            ],
        },
    }}), encoding="utf-8")
    return path


class TestScoreDB:

    def test_best_on_map_uses_highest_score(self, scores_file):
        db = ScoreDB(scores_file)
        assert db.best_on_map(1, 10)["score"] == 900_000

    def test_no_play_on_map(self, scores_file):
        db = ScoreDB(scores_file)
        assert db.best_on_map(1, 30) is None
        assert db.best_on_map(2, 10) is None

    def test_recent_plays_are_records(self, scores_file):
        recent = ScoreDB(scores_file).recent(1, 2)
        assert [r.total_score for r in recent] == [500_000, 900_000]

    def test_missing_file_is_empty(self, tmp_path):
        db = ScoreDB(tmp_path / "nope.json")
        assert db.total_players == 0
        assert db.avatar_url(1) is None


class TestFormatting:

    def test_format_map(self):
        record = ScoreRecord.from_api(make_score())
        assert format_map(record) == (
            "[xi - Freedom Dive [FOUR DIMENSIONS]](https://osu.ppy.sh/beatmapsets/39804#osu/129891)")

    def test_format_map_unknown(self):
        assert format_map(ScoreRecord()) == "Unknown map"

    def test_result_messages(self, challenger_payload, responder_payload):
        board = ChallengeBoard()
        state = board.open(1, "x", 1, "Champion", ScoreRecord.from_api(challenger_payload))

        won = resolve_response(state, responder_payload, 2, "Responder")
        assert "takes the challenge (4/5" in format_result(won, state)

        tie = resolve_response(state, challenger_payload, 2, "Responder")
        assert "keeps the challenge" in format_result(tie, state)

    def test_own_challenge_messages(self, challenger_payload, responder_payload):
        board = ChallengeBoard()
        state = board.open(1, "x", 1, "Champion", ScoreRecord.from_api(challenger_payload))

        improved = resolve_response(state, responder_payload, 1, "Champion")
        assert "has improved the score! (4/5" in format_result(improved, state)

        same = resolve_response(state, challenger_payload, 1, "Champion")
        assert "has failed to improve the score" in format_result(same, state)


class TestClaimChampion:

    def test_winner_takes_the_board(self, challenger_payload, responder_payload):
        board = ChallengeBoard()
        state = board.open(1, "x", 1, "Champion", ScoreRecord.from_api(challenger_payload))
        outcome = resolve_response(state, responder_payload, 2, "Responder")
        assert claim_champion(board, outcome, 1) is None
        assert board.get(1).champion_name == "Responder"

    def test_stale_update_becomes_a_warning(self, challenger_payload, responder_payload):
        board = ChallengeBoard()
        state = board.open(1, "x", 1, "Champion", ScoreRecord.from_api(challenger_payload))
        first = resolve_response(state, responder_payload, 2, "First")
        second = resolve_response(state, responder_payload, 3, "Second")
        claim_champion(board, first, 1)

        note = claim_champion(board, second, 1)
        assert note.startswith("⚠️")
        assert "First took map 1 first" in note
        assert board.get(1).champion_name == "First"

    def test_closed_challenge_becomes_a_warning(self, challenger_payload, responder_payload):
        board = ChallengeBoard()
        state = board.open(1, "x", 1, "Champion", ScoreRecord.from_api(challenger_payload))
        outcome = resolve_response(state, responder_payload, 2, "Responder")
        board.close(1, 1)
        assert "No active challenge" in claim_champion(board, outcome, 1)
