"""Validation rules for submitted scores.

Group matches may have any number of sets; knockout matchups are decided
in a single set.
"""

from typing import Iterable, Union

from pairbracket.errors import InvalidScoreError
from pairbracket.models import SetScore

ScoreInput = Union[SetScore, tuple[int, int], list[int], dict]


def validate_set(score_a: int, score_b: int) -> tuple[bool, str]:
    """Validate a single set score.

    A set needs a winner: games cannot be negative and cannot be equal.

    Examples:
        >>> validate_set(6, 4)
        (True, '')
        >>> validate_set(5, 5)
        (False, 'A set cannot end tied (5-5)')
    """
    if score_a < 0 or score_b < 0:
        return False, f"Games cannot be negative ({score_a}-{score_b})"

    if score_a == score_b:
        return False, f"A set cannot end tied ({score_a}-{score_b})"

    return True, ""


def validate_match_sets(sets: list[SetScore]) -> tuple[bool, str]:
    """Validate all sets of a group match.

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not sets:
        return False, "A match must have at least one set"

    for idx, score in enumerate(sets, start=1):
        is_valid, error_msg = validate_set(score.games_pair1, score.games_pair2)
        if not is_valid:
            return False, f"Set {idx}: {error_msg}"

    won_1 = sum(1 for s in sets if s.winner_side == 1)
    won_2 = len(sets) - won_1
    if won_1 == won_2:
        return False, f"Sets are tied {won_1}-{won_2}: the match has no winner"

    return True, ""


def coerce_sets(raw: Iterable[ScoreInput]) -> list[SetScore]:
    """Convert tuples, lists or dicts into SetScore objects."""
    sets = []
    for item in raw:
        if isinstance(item, SetScore):
            sets.append(item)
        elif isinstance(item, dict):
            try:
                sets.append(SetScore.from_dict(item))
            except (KeyError, TypeError, ValueError) as e:
                raise InvalidScoreError(f"Invalid set {item!r}: {e}") from e
        else:
            try:
                games_1, games_2 = item
                sets.append(SetScore(int(games_1), int(games_2)))
            except (TypeError, ValueError) as e:
                raise InvalidScoreError(f"Invalid set {item!r}: {e}") from e
    return sets


def require_match_sets(raw: Iterable[ScoreInput]) -> list[SetScore]:
    """Coerce and validate a group-match score, raising InvalidScoreError."""
    sets = coerce_sets(raw)
    is_valid, error_msg = validate_match_sets(sets)
    if not is_valid:
        raise InvalidScoreError(error_msg)
    return sets


def require_single_set(raw: Iterable[ScoreInput]) -> SetScore:
    """Coerce and validate a knockout score: exactly one decided set."""
    sets = coerce_sets(raw)
    if len(sets) != 1:
        raise InvalidScoreError(f"Knockout score must have exactly 1 set, got {len(sets)}")

    score = sets[0]
    is_valid, error_msg = validate_set(score.games_pair1, score.games_pair2)
    if not is_valid:
        raise InvalidScoreError(error_msg)
    return score


def parse_score_text(text: str) -> list[SetScore]:
    """Parse "6-4, 3-6, 7-5" into SetScore objects (used by the CLI)."""
    sets = []
    for chunk in text.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        try:
            left, right = chunk.split("-")
            sets.append(SetScore(int(left), int(right)))
        except ValueError as e:
            raise InvalidScoreError(f"Cannot parse set '{chunk}' (expected e.g. 6-4)") from e
    return sets
