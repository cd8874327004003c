"""Turn set scores into signed aggregate deltas."""

from dataclasses import dataclass

from pairbracket.models import SetScore, StatDelta

POINTS_PER_WIN = 3
POINTS_PER_LOSS = 0


@dataclass(frozen=True)
class MatchOutcome:
    """Deltas for both sides of a finished match."""

    pair1: StatDelta
    pair2: StatDelta
    sets_pair1: int
    sets_pair2: int

    @property
    def pair1_won(self) -> bool:
        return self.sets_pair1 > self.sets_pair2

    def negated(self) -> "MatchOutcome":
        """Outcome that undoes this one when applied."""
        return MatchOutcome(
            pair1=self.pair1.negated(),
            pair2=self.pair2.negated(),
            sets_pair1=self.sets_pair1,
            sets_pair2=self.sets_pair2,
        )


def compute_outcome(sets: list[SetScore], award_points: bool = True) -> MatchOutcome:
    """Compute both sides' deltas from a list of set scores.

    The winner of each set is the side with more games; the match winner is
    the side with more sets. Group matches award 3 points for a win; knockout
    results (``award_points=False``) only move counters.

    Examples:
        >>> outcome = compute_outcome([SetScore(6, 4), SetScore(3, 6), SetScore(7, 5)])
        >>> outcome.pair1_won, outcome.pair1.games_won, outcome.pair2.set_diff
        (True, 16, -1)
    """
    sets_1 = sum(1 for s in sets if s.winner_side == 1)
    sets_2 = len(sets) - sets_1
    games_1 = sum(s.games_pair1 for s in sets)
    games_2 = sum(s.games_pair2 for s in sets)
    pair1_won = sets_1 > sets_2

    def side(won: bool, sets_w: int, sets_l: int, games_w: int, games_l: int) -> StatDelta:
        points = 0
        if award_points:
            points = POINTS_PER_WIN if won else POINTS_PER_LOSS
        return StatDelta(
            played=1,
            wins=1 if won else 0,
            losses=0 if won else 1,
            points=points,
            sets_won=sets_w,
            sets_lost=sets_l,
            games_won=games_w,
            games_lost=games_l,
        )

    return MatchOutcome(
        pair1=side(pair1_won, sets_1, sets_2, games_1, games_2),
        pair2=side(not pair1_won, sets_2, sets_1, games_2, games_1),
        sets_pair1=sets_1,
        sets_pair2=sets_2,
    )
