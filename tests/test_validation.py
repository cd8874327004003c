"""Tests for score validation rules."""

import pytest

from pairbracket.errors import InvalidScoreError, ValidationError
from pairbracket.models import SetScore
from pairbracket.validation import (
    coerce_sets,
    parse_score_text,
    require_match_sets,
    require_single_set,
    validate_match_sets,
    validate_set,
)


class TestValidateSet:
    """Test cases for validate_set function."""

    def test_valid_scores(self):
        assert validate_set(6, 4) == (True, "")
        assert validate_set(4, 6) == (True, "")
        assert validate_set(7, 6) == (True, "")
        assert validate_set(1, 0) == (True, "")

    def test_tied_set(self):
        is_valid, msg = validate_set(5, 5)
        assert is_valid is False
        assert "cannot end tied" in msg

    def test_negative_games(self):
        is_valid, msg = validate_set(-1, 6)
        assert is_valid is False
        assert "negative" in msg


class TestValidateMatchSets:
    """Test cases for validate_match_sets function."""

    def test_valid_matches(self):
        assert validate_match_sets([SetScore(6, 4)]) == (True, "")
        assert validate_match_sets([SetScore(6, 4), SetScore(6, 2)]) == (True, "")
        assert validate_match_sets([SetScore(6, 4), SetScore(3, 6), SetScore(7, 5)]) == (True, "")

    def test_empty_match(self):
        is_valid, msg = validate_match_sets([])
        assert is_valid is False
        assert "at least one set" in msg

    def test_tied_sets_have_no_winner(self):
        is_valid, msg = validate_match_sets([SetScore(6, 4), SetScore(4, 6)])
        assert is_valid is False
        assert "no winner" in msg

    def test_reports_failing_set(self):
        is_valid, msg = validate_match_sets([SetScore(6, 4), SetScore(3, 3), SetScore(6, 1)])
        assert is_valid is False
        assert msg.startswith("Set 2:")


class TestCoercion:
    """Test cases for score coercion and the require_* helpers."""

    def test_coerce_mixed_inputs(self):
        sets = coerce_sets([(6, 4), [3, 6], {"games_pair1": 7, "games_pair2": 5}, SetScore(1, 0)])
        assert sets == [SetScore(6, 4), SetScore(3, 6), SetScore(7, 5), SetScore(1, 0)]

    def test_coerce_rejects_garbage(self):
        with pytest.raises(InvalidScoreError):
            coerce_sets([(6, 4, 2)])
        with pytest.raises(InvalidScoreError):
            coerce_sets([{"games_pair1": 6}])
        with pytest.raises(InvalidScoreError):
            coerce_sets([("six", "four")])

    def test_require_match_sets(self):
        assert require_match_sets([(6, 4), (6, 3)]) == [SetScore(6, 4), SetScore(6, 3)]
        with pytest.raises(InvalidScoreError):
            require_match_sets([(6, 4), (3, 6)])

    def test_invalid_score_is_a_validation_error(self):
        with pytest.raises(ValidationError):
            require_match_sets([])

    def test_require_single_set(self):
        assert require_single_set([(6, 3)]) == SetScore(6, 3)

    @pytest.mark.parametrize(
        "sets",
        [
            [],
            [(6, 3), (6, 2)],
            [(6, 4), (3, 6), (6, 1)],
            [(5, 5)],
        ],
    )
    def test_knockout_needs_one_decided_set(self, sets):
        with pytest.raises(InvalidScoreError):
            require_single_set(sets)


class TestParseScoreText:
    """Test cases for parse_score_text."""

    def test_parse(self):
        assert parse_score_text("6-4, 3-6, 7-5") == [SetScore(6, 4), SetScore(3, 6), SetScore(7, 5)]
        assert parse_score_text("6-0") == [SetScore(6, 0)]
        assert parse_score_text(" 6-4 ,, 6-2 ") == [SetScore(6, 4), SetScore(6, 2)]

    @pytest.mark.parametrize("text", ["6:4", "6-4-2", "a-b"])
    def test_parse_errors(self, text):
        with pytest.raises(InvalidScoreError, match="Cannot parse"):
            parse_score_text(text)
