"""Group standings with tie-breaking rules.

Tie-breaking criteria (in order):
1. Points (3 per win)
2. Game differential
3. Head-to-head, only when exactly two pairs are tied on 1 and 2
4. Set differential
5. Games won
6. Seeded draw, when three or more pairs are tied on everything above
"""

import asyncio
import logging
import random
from itertools import groupby
from typing import Optional

from pairbracket.errors import NotFoundError
from pairbracket.models import Match, Pair
from pairbracket.ports import GroupStore, MatchStore, PairStore, PlayerStatsStore
from pairbracket.tournament_math import round_robin_count

logger = logging.getLogger(__name__)

DEFAULT_DRAW_SEED = 42


def head_to_head(matches: list[Match], pair_a: int, pair_b: int) -> Optional[int]:
    """Return the id of the winner of the direct match between two pairs.

    Returns None when the two pairs have not played a finished match.
    """
    for match in matches:
        if match.involves(pair_a, pair_b) and match.is_finished and match.winner_id is not None:
            return match.winner_id
    return None


def _primary_key(pair: Pair) -> tuple[int, int]:
    return (pair.points, pair.game_diff)


def _secondary_key(pair: Pair) -> tuple[int, int]:
    return (pair.set_diff, pair.games_won)


def rank_pairs(
    pairs: list[Pair],
    matches: list[Match],
    group_id: int,
    draw_seed: int = DEFAULT_DRAW_SEED,
) -> list[Pair]:
    """Sort the pairs of a group, best first.

    Args:
        pairs: Pairs of the group with their current aggregates
        matches: Finished matches of the group (for head-to-head)
        group_id: Group id, part of the draw seed
        draw_seed: Base seed of the draw for 3+ pairs tied on everything

    Returns:
        New list of pairs in ranking order

    Examples:
        Two pairs on 3 points and +2 games are ordered by their direct
        match; three such pairs skip the head-to-head and go straight to
        set differential and games won.
    """
    rng = random.Random(f"{draw_seed}:{group_id}")
    ordered = sorted(pairs, key=lambda p: p.id)
    ordered.sort(key=_primary_key, reverse=True)

    ranking: list[Pair] = []
    for _, block in groupby(ordered, key=_primary_key):
        block = list(block)

        if len(block) == 1:
            ranking.extend(block)
            continue

        if len(block) == 2:
            first, second = block
            winner = head_to_head(matches, first.id, second.id)
            if winner == second.id:
                block = [second, first]
            elif winner is None:
                block.sort(key=_secondary_key, reverse=True)
            ranking.extend(block)
            continue

        # 3+ tied on points and game differential
        block.sort(key=_secondary_key, reverse=True)
        for _, tied in groupby(block, key=_secondary_key):
            tied = list(tied)
            if len(tied) > 1:
                rng.shuffle(tied)
                logger.debug(
                    "Group %s: draw between pairs %s", group_id, [p.id for p in tied]
                )
            ranking.extend(tied)

    return ranking


class StandingsEngine:
    """Recomputes the ranking of a group and flags its completion."""

    def __init__(
        self,
        pair_store: PairStore,
        group_store: GroupStore,
        match_store: MatchStore,
        player_stats: PlayerStatsStore,
        draw_seed: int = DEFAULT_DRAW_SEED,
    ):
        self.pairs = pair_store
        self.groups = group_store
        self.matches = match_store
        self.player_stats = player_stats
        self.draw_seed = draw_seed

    async def recompute(self, group_id: int) -> list[Pair]:
        """Rank the pairs of a group and update its counters.

        Ranks 1..n are written to every pair and mirrored on both players.
        The group is complete once every round-robin match is finished.

        Returns:
            Pairs in ranking order, with ``group_rank`` set

        Raises:
            NotFoundError: Group does not exist
        """
        group = await self.groups.get(group_id)
        if group is None:
            raise NotFoundError(f"Group {group_id} not found")

        pairs, finished = await asyncio.gather(
            self.pairs.list_by_group(group_id),
            self.matches.list_finished_by_group(group_id),
        )

        ranking = rank_pairs(pairs, finished, group_id, self.draw_seed)

        writes = []
        for rank, pair in enumerate(ranking, start=1):
            pair.group_rank = rank
            writes.append(self.pairs.set_rank(pair.id, rank))
            writes.append(self.player_stats.set_group_rank(pair.player1_id, pair.stage_id, rank))
            writes.append(self.player_stats.set_group_rank(pair.player2_id, pair.stage_id, rank))
        await asyncio.gather(*writes)

        total = round_robin_count(len(pairs))
        complete = len(finished) == total
        await self.groups.update_counters(group_id, finished_matches=len(finished))
        await self.groups.set_complete(group_id, complete)

        logger.info(
            "%s standings: %d/%d matches finished%s",
            group.name,
            len(finished),
            total,
            " (complete)" if complete else "",
        )
        return ranking
