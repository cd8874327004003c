"""Pure tournament arithmetic: group sizes, BYEs, phases and seeding order."""

import math
from dataclasses import dataclass
from typing import Optional

from pairbracket.errors import ValidationError
from pairbracket.models import Phase

GROUP_LETTERS = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"

PHASE_PROGRESSION = {
    Phase.ROUND_OF_16: Phase.QUARTERFINAL,
    Phase.QUARTERFINAL: Phase.SEMIFINAL,
    Phase.SEMIFINAL: Phase.FINAL,
}


@dataclass(frozen=True)
class ByeMath:
    """BYE arithmetic for a knockout stage with ``n`` classified pairs."""

    next_pow2: int
    must_play: int
    byes: int
    first_round_matches: int


def group_sizes(total_pairs: int) -> list[int]:
    """Calculate group sizes for the draw.

    Prefers groups of 3. Five pairs make a single group of 5; otherwise the
    remainder modulo 3 is absorbed by trailing groups of 4.

    Args:
        total_pairs: Total number of pairs

    Returns:
        List of group sizes whose sum is ``total_pairs``

    Examples:
        >>> group_sizes(6)
        [3, 3]
        >>> group_sizes(7)
        [3, 4]
        >>> group_sizes(8)
        [4, 4]
        >>> group_sizes(11)
        [3, 4, 4]
    """
    if total_pairs < 3:
        raise ValidationError(f"Cannot create groups with {total_pairs} pairs (minimum 3)")

    if total_pairs == 5:
        return [5]

    remainder = total_pairs % 3
    groups_of_3 = total_pairs // 3

    if remainder == 0:
        return [3] * groups_of_3

    if remainder == 1:
        # e.g. 7 -> [3, 4], 10 -> [3, 3, 4]
        return [3] * (groups_of_3 - 1) + [4]

    # remainder == 2: e.g. 8 -> [4, 4], 11 -> [3, 4, 4]
    return [3] * (groups_of_3 - 2) + [4, 4]


def bye_math(classified_count: int) -> ByeMath:
    """Compute how many pairs play the first knockout round and how many get a BYE.

    Examples:
        >>> bye_math(6)
        ByeMath(next_pow2=8, must_play=4, byes=2, first_round_matches=2)
    """
    if classified_count < 2:
        raise ValidationError(f"At least 2 classified pairs are required, got {classified_count}")

    next_pow2 = 2 ** math.ceil(math.log2(classified_count))
    must_play = (classified_count - next_pow2 // 2) * 2
    byes = classified_count - must_play
    return ByeMath(
        next_pow2=next_pow2,
        must_play=must_play,
        byes=byes,
        first_round_matches=must_play // 2,
    )


def first_phase_for(classified_count: int) -> Phase:
    """Return the first knockout phase for a number of classified pairs."""
    if classified_count > 8:
        return Phase.ROUND_OF_16
    if classified_count > 4:
        return Phase.QUARTERFINAL
    if classified_count > 2:
        return Phase.SEMIFINAL
    return Phase.FINAL


def round_robin_count(group_size: int) -> int:
    """Number of matches in a round-robin group: n * (n - 1) / 2."""
    return group_size * (group_size - 1) // 2


def next_phase(phase: Phase) -> Optional[Phase]:
    """Return the phase after ``phase``, or None after the final."""
    return PHASE_PROGRESSION.get(phase)


def seed_order(n: int) -> list[int]:
    """Classic bracket seeding order for ``n`` seeds (a power of 2).

    Top seeds can only meet in later rounds.

    Examples:
        >>> seed_order(4)
        [1, 4, 2, 3]
        >>> seed_order(8)
        [1, 8, 4, 5, 2, 7, 3, 6]
    """
    if n < 1 or n & (n - 1):
        raise ValidationError(f"Seed count must be a power of 2, got {n}")

    if n == 1:
        return [1]

    order = []
    for seed in seed_order(n // 2):
        order.append(seed)
        order.append(n + 1 - seed)
    return order


def group_letter(index: int) -> str:
    """Letter for the group at 0-based ``index``."""
    if 0 <= index < len(GROUP_LETTERS):
        return GROUP_LETTERS[index]
    return str(index + 1)


def group_name(index: int) -> str:
    """Display name for the group at 0-based ``index`` ("Group A")."""
    return f"Group {group_letter(index)}"
