"""Tests for group match generation and result recording."""

import asyncio
import logging
from unittest.mock import AsyncMock

import pytest

from conftest import make_pairs
from pairbracket.errors import (
    BracketLockedError,
    ConflictError,
    CreationFailure,
    InvalidScoreError,
    NotFoundError,
    StoreError,
)
from pairbracket.group_matches import round_robin_pairings
from pairbracket.models import MatchKind, MatchStatus, ResultSubmission, SetScore, StatDelta
from pairbracket.scoring import compute_outcome


def test_round_robin_pairings():
    assert round_robin_pairings(["a", "b", "c"]) == [("a", "b"), ("a", "c"), ("b", "c")]
    assert len(round_robin_pairings(list(range(4)))) == 6
    assert len(round_robin_pairings(list(range(5)))) == 10


class TestGenerateMatches:
    """Test cases for GroupMatchEngine.generate_matches."""

    def test_counts_per_group(self, tournament):
        async def scenario():
            groups = await tournament.register(7)
            matches = await tournament.engines.group_matches.list_by_stage(1)
            stored_groups = await tournament.backend.groups.list_by_stage(1)
            return groups, matches, stored_groups

        groups, matches, stored_groups = asyncio.run(scenario())

        assert len(matches) == 3 + 6
        assert [g.total_matches for g in stored_groups] == [3, 6]
        assert all(g.finished_matches == 0 for g in stored_groups)
        assert all(m.status == MatchStatus.SCHEDULED for m in matches)
        assert all(m.kind == MatchKind.GROUP for m in matches)

        for group in groups:
            in_group = [m for m in matches if m.group_id == group.id]
            assert all(m.group_name == group.name for m in in_group)
            played = {frozenset((m.pair1_id, m.pair2_id)) for m in in_group}
            assert len(played) == len(in_group)
            for m in in_group:
                assert m.pair1_id in group.pair_ids
                assert m.pair2_id in group.pair_ids

    def test_follows_draw_order(self, tournament):
        async def scenario():
            groups = await tournament.register(6, seeded={5})
            return groups, await tournament.engines.group_matches.list_by_group(groups[0].id)

        groups, matches = asyncio.run(scenario())

        # Seeded pair 3 heads group A
        assert groups[0].pair_ids == [3, 1, 2]
        assert [(m.pair1_id, m.pair2_id) for m in matches] == [(3, 1), (3, 2), (1, 2)]

    def test_group_with_matches_conflicts(self, tournament):
        async def scenario():
            groups = await tournament.register(6)
            await tournament.engines.group_matches.generate_matches(groups)

        with pytest.raises(ConflictError, match="already have matches"):
            asyncio.run(scenario())

    def test_conflict_creates_nothing(self, tournament):
        async def scenario():
            pairs = await tournament.backend.pairs.create_many(make_pairs(9))
            groups = await tournament.engines.group_builder.build_groups(1, pairs)
            engine = tournament.engines.group_matches
            await engine.generate_matches([groups[1]])
            with pytest.raises(ConflictError, match="Group B"):
                await engine.generate_matches(groups)
            counts = [len(await engine.list_by_group(g.id)) for g in groups]
            stored = await tournament.backend.groups.list_by_stage(1)
            return counts, stored

        counts, stored = asyncio.run(scenario())

        assert counts == [0, 3, 0]
        assert [g.total_matches for g in stored] == [0, 3, 0]

    def test_store_failure_becomes_creation_failure(self, tournament):
        async def scenario():
            pairs = await tournament.backend.pairs.create_many(make_pairs(6))
            groups = await tournament.engines.group_builder.build_groups(1, pairs)
            tournament.backend.matches.create_many = AsyncMock(side_effect=StoreError("locked"))
            await tournament.engines.group_matches.generate_matches(groups)

        with pytest.raises(CreationFailure) as exc_info:
            asyncio.run(scenario())
        assert isinstance(exc_info.value.__cause__, StoreError)


class TestSubmitResult:
    """Test cases for GroupMatchEngine.submit_result."""

    def test_result_moves_pairs_and_players(self, tournament):
        async def scenario():
            await tournament.register(6)
            match = (await tournament.engines.group_matches.list_by_stage(1))[0]
            result = await tournament.engines.group_matches.submit_result(match.id, [(6, 4), (3, 6), (6, 2)])
            return (
                result,
                await tournament.pair(result.pair1_id),
                await tournament.pair(result.pair2_id),
                await tournament.player(1),
                await tournament.player(2),
                await tournament.player(3),
            )

        match, pair1, pair2, player1, player2, player3 = asyncio.run(scenario())

        assert match.status == MatchStatus.FINISHED
        assert match.sets == [SetScore(6, 4), SetScore(3, 6), SetScore(6, 2)]
        assert match.winner_id == pair1.id
        assert match.winner_name == "Player1 & Player2"

        assert pair1.stats() == StatDelta(
            played=1, wins=1, points=3, sets_won=2, sets_lost=1, games_won=15, games_lost=12
        )
        assert pair2.stats() == StatDelta(
            played=1, losses=1, sets_won=1, sets_lost=2, games_won=12, games_lost=15
        )
        # Both players of a pair mirror the pair aggregate
        assert player1.stats() == pair1.stats()
        assert player2.stats() == pair1.stats()
        assert player3.stats() == pair2.stats()

    def test_edit_reverts_previous_result(self, tournament):
        """Editing leaves the aggregates as if only the new score was played."""

        async def scenario():
            await tournament.register(6)
            match = (await tournament.engines.group_matches.list_by_stage(1))[0]
            await tournament.engines.group_matches.submit_result(match.id, [(6, 0), (6, 0)])
            await tournament.engines.group_matches.submit_result(match.id, [(4, 6), (6, 3), (2, 6)])
            return (
                await tournament.engines.group_matches.list_by_stage(1),
                await tournament.pair(match.pair1_id),
                await tournament.pair(match.pair2_id),
                await tournament.player(4),
            )

        matches, pair1, pair2, player4 = asyncio.run(scenario())

        expected = compute_outcome([SetScore(4, 6), SetScore(6, 3), SetScore(2, 6)])
        assert pair1.stats() == expected.pair1
        assert pair2.stats() == expected.pair2
        assert player4.stats() == expected.pair2
        assert matches[0].winner_id == pair2.id
        assert sum(1 for m in matches if m.is_finished) == 1

    def test_repeated_edits_round_trip(self, tournament):
        async def scenario():
            await tournament.register(6)
            engine = tournament.engines.group_matches
            matches = await engine.list_by_stage(1)
            for match in matches:
                await engine.submit_result(match.id, [(6, 1), (6, 1)])
            before = [await tournament.pair(pid) for pid in range(1, 7)]
            for score in ([(1, 6), (1, 6)], [(7, 6), (0, 6), (6, 4)], [(6, 1), (6, 1)]):
                await engine.submit_result(matches[1].id, score)
            after = [await tournament.pair(pid) for pid in range(1, 7)]
            return before, after

        before, after = asyncio.run(scenario())
        assert [p.stats() for p in after] == [p.stats() for p in before]
        assert [p.group_rank for p in after] == [p.group_rank for p in before]

    def test_invalid_score_changes_nothing(self, tournament):
        async def scenario():
            await tournament.register(6)
            match = (await tournament.engines.group_matches.list_by_stage(1))[0]
            with pytest.raises(InvalidScoreError):
                await tournament.engines.group_matches.submit_result(match.id, [(6, 4), (4, 6)])
            return await tournament.pair(match.pair1_id)

        pair = asyncio.run(scenario())
        assert pair.played == 0

    def test_unknown_match(self, tournament):
        async def scenario():
            await tournament.register(6)
            await tournament.engines.group_matches.submit_result(999, [(6, 4)])

        with pytest.raises(NotFoundError, match="999"):
            asyncio.run(scenario())

    def test_locked_once_bracket_exists(self, tournament):
        async def scenario():
            await tournament.build(6)
            match = (await tournament.engines.group_matches.list_by_stage(1))[0]
            await tournament.engines.group_matches.submit_result(match.id, [(0, 6), (0, 6)])

        with pytest.raises(BracketLockedError):
            asyncio.run(scenario())

    def test_completion_tracks_finished_matches(self, tournament):
        async def scenario():
            groups = await tournament.register(6)
            engine = tournament.engines.group_matches
            matches = await engine.list_by_group(groups[0].id)
            snapshots = []
            for match in matches:
                await engine.submit_result(match.id, [(6, 3)])
                snapshots.append(await tournament.backend.groups.get(groups[0].id))
            return snapshots, await tournament.backend.groups.get(groups[1].id)

        snapshots, other = asyncio.run(scenario())
        assert [g.finished_matches for g in snapshots] == [1, 2, 3]
        assert [g.complete for g in snapshots] == [False, False, True]
        assert other.complete is False


class TestSubmitResultsBatch:
    """Test cases for GroupMatchEngine.submit_results_batch."""

    def test_isolates_failing_items(self, tournament):
        async def scenario():
            groups = await tournament.register(6)
            matches = await tournament.engines.group_matches.list_by_stage(1)
            outcome = await tournament.engines.group_matches.submit_results_batch(
                [
                    ResultSubmission(match_id=matches[0].id, sets=[SetScore(6, 2)]),
                    ResultSubmission(match_id=matches[3].id, sets=[SetScore(2, 6), SetScore(3, 6)]),
                    ResultSubmission(match_id=matches[1].id, sets=[SetScore(6, 6)]),
                    ResultSubmission(match_id=404, sets=[SetScore(6, 2)]),
                ]
            )
            return groups, outcome, await tournament.engines.group_matches.list_by_stage(1)

        groups, outcome, matches = asyncio.run(scenario())

        assert outcome.processed_count == 2
        assert sorted(e.match_id for e in outcome.errors) == [matches[1].id, 404]
        assert sorted(outcome.recomputed_group_ids) == sorted(g.id for g in groups)
        assert [m.is_finished for m in matches] == [True, False, False, True, False, False]

    def test_recompute_failure_is_logged(self, tournament, caplog):
        tournament.engines.standings.recompute = AsyncMock(side_effect=NotFoundError("group vanished"))

        async def scenario():
            await tournament.register(6)
            match = (await tournament.engines.group_matches.list_by_stage(1))[0]
            return await tournament.engines.group_matches.submit_results_batch(
                [ResultSubmission(match_id=match.id, sets=[SetScore(6, 2)])]
            )

        with caplog.at_level(logging.ERROR, logger="pairbracket.group_matches"):
            outcome = asyncio.run(scenario())

        assert outcome.processed_count == 1
        assert outcome.errors == []
        assert outcome.recomputed_group_ids == []
        assert "Standings recompute failed" in caplog.text
