"""Tests for match outcome deltas."""

from pairbracket.models import Pair, SetScore, StatDelta
from pairbracket.scoring import POINTS_PER_WIN, compute_outcome


def test_three_set_win():
    outcome = compute_outcome([SetScore(6, 4), SetScore(3, 6), SetScore(7, 5)])

    assert outcome.pair1_won
    assert outcome.pair1.points == POINTS_PER_WIN
    assert (outcome.sets_pair1, outcome.sets_pair2) == (2, 1)
    assert outcome.pair1 == StatDelta(
        played=1, wins=1, losses=0, points=POINTS_PER_WIN,
        sets_won=2, sets_lost=1, games_won=16, games_lost=15,
    )
    assert outcome.pair2 == StatDelta(
        played=1, wins=0, losses=1, points=0,
        sets_won=1, sets_lost=2, games_won=15, games_lost=16,
    )


def test_second_pair_wins():
    outcome = compute_outcome([SetScore(2, 6), SetScore(4, 6)])
    assert not outcome.pair1_won
    assert outcome.pair2.wins == 1
    assert outcome.pair1.losses == 1
    assert outcome.pair2.game_diff == 6


def test_sides_mirror_each_other():
    outcome = compute_outcome([SetScore(7, 6), SetScore(1, 6), SetScore(6, 0)])
    assert outcome.pair1.sets_won == outcome.pair2.sets_lost
    assert outcome.pair1.games_won == outcome.pair2.games_lost
    assert outcome.pair1.set_diff == -outcome.pair2.set_diff
    assert outcome.pair1.wins + outcome.pair2.wins == 1


def test_knockout_outcome_awards_no_points():
    outcome = compute_outcome([SetScore(6, 3)], award_points=False)
    assert outcome.pair1.points == 0
    assert outcome.pair2.points == 0
    assert outcome.pair1.wins == 1
    assert outcome.pair1.games_won == 6


def test_negated_outcome_restores_aggregate():
    pair = Pair(id=1, played=3, wins=2, losses=1, points=6, sets_won=5, sets_lost=3, games_won=40, games_lost=31)
    before = pair.stats()

    outcome = compute_outcome([SetScore(6, 4), SetScore(6, 7), SetScore(2, 6)])
    pair.apply(outcome.pair1)
    assert pair.played == 4
    assert pair.losses == 2

    pair.apply(outcome.negated().pair1)
    assert pair.stats() == before


def test_delta_addition():
    first = compute_outcome([SetScore(6, 1)]).pair1
    second = compute_outcome([SetScore(3, 6)]).pair1
    total = first + second
    assert total.played == 2
    assert total.wins == 1
    assert total.losses == 1
    assert total.games_won == 9
    assert total.games_lost == 7
