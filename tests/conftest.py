"""Shared fixtures: an in-memory tournament with helpers to drive it."""

import pytest

from pairbracket.container import build_engines
from pairbracket.memory import MemoryBackend
from pairbracket.models import Pair


def make_pairs(count: int, stage_id: int = 1) -> list[Pair]:
    """Pair drafts; pair ``i`` (1-based) holds players ``2i - 1`` and ``2i``."""
    return [
        Pair(
            stage_id=stage_id,
            player1_id=2 * i - 1,
            player1_name=f"Player{2 * i - 1}",
            player2_id=2 * i,
            player2_name=f"Player{2 * i}",
        )
        for i in range(1, count + 1)
    ]


class Tournament:
    """A backend with its engines, plus shortcuts used across the tests."""

    def __init__(self, backend=None, draw_seed: int = 42):
        self.backend = backend or MemoryBackend()
        self.engines = build_engines(self.backend, draw_seed=draw_seed)

    async def register(self, count: int, stage_id: int = 1, seeded=()):
        """Create pairs, draw the groups and generate their matches."""
        pairs = await self.backend.pairs.create_many(make_pairs(count, stage_id))
        groups = await self.engines.group_builder.build_groups(stage_id, pairs, seeded)
        await self.engines.group_matches.generate_matches(groups)
        return groups

    async def play_groups(self, stage_id: int = 1):
        """Finish every group match; the first pair of each match wins 6-2 6-3.

        With the draw order [a, b, c] this ranks a, b, c.
        """
        for match in await self.engines.group_matches.list_by_stage(stage_id):
            await self.engines.group_matches.submit_result(match.id, [(6, 2), (6, 3)])

    async def build(self, count: int, stage_id: int = 1, per_group: int = 2):
        """Register ``count`` pairs, finish the groups and build the bracket."""
        await self.register(count, stage_id)
        await self.play_groups(stage_id)
        return await self.engines.bracket.build_bracket(stage_id, classified_per_group=per_group)

    async def player(self, player_id: int, stage_id: int = 1):
        return await self.backend.player_stats.get(player_id, stage_id)

    async def pair(self, pair_id: int):
        return await self.backend.pairs.get(pair_id)


@pytest.fixture
def tournament():
    return Tournament()


@pytest.fixture
def make_tournament():
    """Factory for tournaments on another backend."""
    return Tournament
