"""Tests for group building."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from conftest import make_pairs
from pairbracket.errors import CreationFailure, DistributionError, StoreError, ValidationError
from pairbracket.group_builder import distribute_pairs, split_seeded
from pairbracket.models import Pair


def numbered_pairs(count):
    pairs = make_pairs(count)
    for idx, pair in enumerate(pairs, start=1):
        pair.id = idx
    return pairs


def ids(groups):
    return [[p.id for p in group] for group in groups]


class TestDistributePairs:
    """Test cases for the pure distribution step."""

    def test_without_seeds_fills_in_order(self):
        groups = distribute_pairs(numbered_pairs(7))
        assert ids(groups) == [[1, 2, 3], [4, 5, 6, 7]]

    def test_seeded_pairs_one_per_group(self):
        """Pair 3 (players 5, 6) and pair 6 (players 11, 12) are seeded."""
        groups = distribute_pairs(numbered_pairs(6), seeded_player_ids={5, 12})
        assert ids(groups) == [[3, 1, 2], [6, 4, 5]]

    def test_more_seeds_than_groups_cycle(self):
        groups = distribute_pairs(numbered_pairs(6), seeded_player_ids={1, 3, 5})
        assert ids(groups) == [[1, 3, 4], [2, 5, 6]]

    def test_every_pair_placed_once(self):
        for count in range(3, 40):
            pairs = numbered_pairs(count)
            seeded = {p.player1_id for p in pairs[::4]}
            groups = distribute_pairs(pairs, seeded)
            placed = [pid for group in ids(groups) for pid in group]
            assert sorted(placed) == list(range(1, count + 1))

    def test_seeds_spread_evenly(self):
        pairs = numbered_pairs(12)
        seeded = {p.player2_id for p in pairs[:4]}
        groups = distribute_pairs(pairs, seeded)
        for group in groups:
            assert sum(1 for p in group if p.has_player(seeded)) == 1

    def test_split_seeded_keeps_order(self):
        seeded, normal = split_seeded(numbered_pairs(5), {10, 3})
        assert [p.id for p in seeded] == [2, 5]
        assert [p.id for p in normal] == [1, 3, 4]

    def test_too_few_pairs(self):
        with pytest.raises(ValidationError):
            distribute_pairs(numbered_pairs(2))

    def test_distribution_mismatch(self):
        with patch("pairbracket.group_builder.group_sizes", return_value=[3, 3]):
            with pytest.raises(DistributionError, match="Incorrect distribution"):
                distribute_pairs(numbered_pairs(7))


class TestBuildGroups:
    """Test cases for GroupBuilder.build_groups."""

    def test_creates_groups_and_back_references(self, tournament):
        async def scenario():
            pairs = await tournament.backend.pairs.create_many(make_pairs(7))
            groups = await tournament.engines.group_builder.build_groups(1, pairs)
            stored = [await tournament.pair(p.id) for p in pairs]
            player = await tournament.player(14)
            return groups, stored, player

        groups, stored, player = asyncio.run(scenario())

        assert [g.name for g in groups] == ["Group A", "Group B"]
        assert [g.order for g in groups] == [1, 2]
        assert [g.size for g in groups] == [3, 4]
        assert all(g.stage_id == 1 for g in groups)

        for group in groups:
            for pair_id in group.pair_ids:
                pair = next(p for p in stored if p.id == pair_id)
                assert pair.group_id == group.id
                assert pair.group_name == group.name

        # Pair 7 holds players 13 and 14
        assert player.group_id == groups[1].id
        assert player.player_name == "Player14"
        assert player.played == 0

    def test_rejects_already_grouped_pairs(self, tournament):
        async def scenario():
            pairs = await tournament.backend.pairs.create_many(make_pairs(6))
            await tournament.engines.group_builder.build_groups(1, pairs)
            again = await tournament.backend.pairs.list_by_stage(1)
            await tournament.engines.group_builder.build_groups(1, again)

        with pytest.raises(ValidationError, match="already belong"):
            asyncio.run(scenario())

    def test_too_few_pairs(self, tournament):
        pairs = [Pair(id=1, player1_id=1, player2_id=2), Pair(id=2, player1_id=3, player2_id=4)]
        with pytest.raises(ValidationError):
            asyncio.run(tournament.engines.group_builder.build_groups(1, pairs))

    def test_store_failure_becomes_creation_failure(self, tournament):
        tournament.backend.groups.create_many = AsyncMock(side_effect=StoreError("disk full"))

        async def scenario():
            pairs = await tournament.backend.pairs.create_many(make_pairs(6))
            await tournament.engines.group_builder.build_groups(1, pairs)

        with pytest.raises(CreationFailure) as exc_info:
            asyncio.run(scenario())
        assert isinstance(exc_info.value.__cause__, StoreError)
        assert "disk full" in str(exc_info.value)
