"""Group builder: distribute pairs into round-robin groups."""

import asyncio
import logging
from typing import Iterable

from pairbracket.errors import CreationFailure, DistributionError, StoreError, ValidationError
from pairbracket.models import Group, Pair
from pairbracket.ports import GroupStore, PairStore, PlayerStatsStore
from pairbracket.tournament_math import group_name, group_sizes

logger = logging.getLogger(__name__)


def split_seeded(pairs: list[Pair], seeded_player_ids: Iterable[int]) -> tuple[list[Pair], list[Pair]]:
    """Split pairs into (seeded, normal), keeping input order.

    A pair is seeded when either of its players is a seeded player.
    """
    seeded_ids = set(seeded_player_ids)
    seeded = [p for p in pairs if p.has_player(seeded_ids)]
    normal = [p for p in pairs if not p.has_player(seeded_ids)]
    return seeded, normal


def distribute_pairs(
    pairs: list[Pair],
    seeded_player_ids: Iterable[int] = (),
) -> list[list[Pair]]:
    """Distribute pairs into groups.

    Seeded pairs are dealt one per group, cycling over the groups; normal
    pairs then fill the remaining slots of each group in order.

    Args:
        pairs: Pairs to distribute, in registration order
        seeded_player_ids: Ids of the seeded players

    Returns:
        List of groups, each a list of pairs

    Raises:
        ValidationError: Fewer than 3 pairs
        DistributionError: Not every pair ended up in exactly one group

    Examples:
        With 6 pairs and seeded pairs s1, s2 the groups are
        [s1, n1, n2] and [s2, n3, n4].
    """
    sizes = group_sizes(len(pairs))
    num_groups = len(sizes)
    seeded, normal = split_seeded(pairs, seeded_player_ids)

    groups: list[list[Pair]] = [[] for _ in range(num_groups)]

    # 1. Seeded pairs, one per group
    for idx, pair in enumerate(seeded):
        groups[idx % num_groups].append(pair)

    # 2. Normal pairs fill the remaining slots
    normal_idx = 0
    for group, size in zip(groups, sizes):
        free_slots = size - len(group)
        for _ in range(max(free_slots, 0)):
            if normal_idx < len(normal):
                group.append(normal[normal_idx])
                normal_idx += 1

    distributed = sum(len(g) for g in groups)
    if distributed != len(pairs):
        raise DistributionError(
            f"Incorrect distribution: {len(pairs)} pairs, {distributed} placed in groups {sizes}"
        )

    return groups


class GroupBuilder:
    """Creates the groups of a stage and back-references every pair to its group."""

    def __init__(self, pair_store: PairStore, group_store: GroupStore, player_stats: PlayerStatsStore):
        self.pairs = pair_store
        self.groups = group_store
        self.player_stats = player_stats

    async def build_groups(
        self,
        stage_id: int,
        pairs: list[Pair],
        seeded_player_ids: Iterable[int] = (),
    ) -> list[Group]:
        """Draw the groups of a stage and persist them.

        Args:
            stage_id: Stage the groups belong to
            pairs: Pairs registered for the stage
            seeded_player_ids: Ids of the seeded players

        Returns:
            Created groups in draw order

        Raises:
            ValidationError: Fewer than 3 pairs
            DistributionError: Draw mismatch
            CreationFailure: A store call failed
        """
        if any(p.group_id is not None for p in pairs):
            raise ValidationError("Some pairs already belong to a group; reset the stage first")

        distribution = distribute_pairs(pairs, seeded_player_ids)

        drafts = [
            Group(
                id=0,
                stage_id=stage_id,
                name=group_name(idx),
                order=idx + 1,
                pair_ids=[p.id for p in members],
            )
            for idx, members in enumerate(distribution)
        ]

        try:
            created = await self.groups.create_many(drafts)

            assignments = []
            for group, members in zip(created, distribution):
                for pair in members:
                    assignments.append((pair.id, group.id, group.name))
            await self.pairs.assign_groups(assignments)

            await asyncio.gather(
                *(
                    self._register_players(stage_id, group.id, members)
                    for group, members in zip(created, distribution)
                )
            )
        except StoreError as e:
            logger.error("Failed to create groups for stage %s: %s", stage_id, e)
            raise CreationFailure(f"Failed to create groups: {e}") from e

        logger.info(
            "Created %d groups for stage %s (%d pairs, sizes %s)",
            len(created),
            stage_id,
            len(pairs),
            [g.size for g in created],
        )
        return created

    async def _register_players(self, stage_id: int, group_id: int, members: list[Pair]) -> None:
        for pair in members:
            await self.player_stats.ensure(pair.player1_id, stage_id, pair.player1_name)
            await self.player_stats.ensure(pair.player2_id, stage_id, pair.player2_name)
        player_ids = [pid for pair in members for pid in pair.player_ids]
        await self.player_stats.set_group(player_ids, stage_id, group_id)
