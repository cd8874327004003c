"""Pair formation: turn individual registrations into the pairs of a stage.

Seeded players are protected: two seeded players never share a pair while
some combination of the current seeded players has not been played yet.
Each seeded player gets a random normal partner, and the remaining normal
players are paired among themselves. Once every combination of the seeded
players has already been recorded, all players are shuffled together.

The shuffle uses ``random.Random`` seeded from the draw seed and the stage,
so a stage always forms the same pairs from the same registrations.
"""

import itertools
import logging
import random
from typing import Iterable, Sequence

from pairbracket.errors import ConflictError, CreationFailure, StoreError, ValidationError
from pairbracket.models import Pair, Partnership, Registration, partnership_key
from pairbracket.ports import PairStore, PartnershipStore
from pairbracket.standings import DEFAULT_DRAW_SEED

logger = logging.getLogger(__name__)

MIN_PLAYERS = 4


def all_seed_combinations_played(seeded_ids: Iterable[int], played: set[tuple[int, int]]) -> bool:
    """True when every two seeded players have already been partners.

    Needs at least two seeded players; with fewer there is nothing to play.
    """
    ids = sorted(set(seeded_ids))
    if len(ids) < 2:
        return False
    return all(partnership_key(a, b) in played for a, b in itertools.combinations(ids, 2))


def _pair(stage_id: int, first: Registration, second: Registration) -> Pair:
    return Pair(
        stage_id=stage_id,
        player1_id=first.player_id,
        player1_name=first.player_name,
        player2_id=second.player_id,
        player2_name=second.player_name,
    )


def form_pairs(
    stage_id: int,
    registrations: Sequence[Registration],
    rng: random.Random,
    free: bool = False,
) -> list[Pair]:
    """Form the pairs of a stage.

    Args:
        stage_id: Stage the pairs belong to
        registrations: Registered players, seeded ones flagged
        rng: Source of the shuffle
        free: Pair everyone at random, ignoring the seeded flags

    Returns:
        Unsaved pairs; seeded players are always ``player1``

    Raises:
        ValidationError: Odd number of players, duplicate players, or more
            seeded than normal players

    Examples:
        With seeded s1, s2 and normal n1..n4 the result is two pairs of a
        seeded and a normal player, then one pair of the two normal players
        left over.
    """
    ids = [r.player_id for r in registrations]
    if len(set(ids)) != len(ids):
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        raise ValidationError(f"Players registered more than once: {duplicates}")

    if len(registrations) % 2 != 0:
        raise ValidationError(f"Odd number of players: {len(registrations)}")

    if free:
        shuffled = list(registrations)
        rng.shuffle(shuffled)
        return [_pair(stage_id, shuffled[i], shuffled[i + 1]) for i in range(0, len(shuffled), 2)]

    seeded = [r for r in registrations if r.seeded]
    normal = [r for r in registrations if not r.seeded]
    if len(seeded) > len(normal):
        raise ValidationError(
            f"Cannot form pairs: {len(seeded)} seeded players but only {len(normal)} normal players; "
            f"at least {len(seeded)} normal players are required"
        )

    rng.shuffle(seeded)
    rng.shuffle(normal)

    pairs = [_pair(stage_id, seed, partner) for seed, partner in zip(seeded, normal)]
    rest = normal[len(seeded):]
    pairs.extend(_pair(stage_id, rest[i], rest[i + 1]) for i in range(0, len(rest), 2))
    return pairs


class PairFormation:
    """Forms and stores the pairs of a stage, keeping the partnership history."""

    def __init__(self, pair_store: PairStore, partnerships: PartnershipStore, draw_seed: int = DEFAULT_DRAW_SEED):
        self.pairs = pair_store
        self.partnerships = partnerships
        self.draw_seed = draw_seed

    async def form_pairs(self, stage_id: int, registrations: Sequence[Registration]) -> list[Pair]:
        """Form, store and record the pairs of a stage.

        Raises:
            ValidationError: Fewer than 4 players, or the players cannot be paired
            ConflictError: The stage already has pairs
            CreationFailure: A store call failed
        """
        if len(registrations) < MIN_PLAYERS:
            raise ValidationError(f"At least {MIN_PLAYERS} players are required, got {len(registrations)}")

        existing = await self.pairs.list_by_stage(stage_id)
        if existing:
            raise ConflictError(f"Stage {stage_id} already has {len(existing)} pairs")

        seeded_ids = {r.player_id for r in registrations if r.seeded}
        free = all_seed_combinations_played(seeded_ids, await self.partnerships.seeded_keys())
        if free:
            logger.info("Stage %s: every seeded combination already played, pairing freely", stage_id)

        rng = random.Random(f"{self.draw_seed}:pairs:{stage_id}")
        drafts = form_pairs(stage_id, registrations, rng, free=free)

        try:
            created = await self.pairs.create_many(drafts)
            await self.partnerships.record_many(
                [
                    Partnership(
                        stage_id=stage_id,
                        player1_id=p.player1_id,
                        player1_name=p.player1_name,
                        player2_id=p.player2_id,
                        player2_name=p.player2_name,
                        both_seeded=p.player1_id in seeded_ids and p.player2_id in seeded_ids,
                    )
                    for p in created
                ]
            )
        except StoreError as e:
            logger.error("Failed to form pairs for stage %s: %s", stage_id, e)
            raise CreationFailure(f"Failed to form pairs: {e}") from e

        logger.info(
            "Formed %d pairs for stage %s (%d players, %d seeded)",
            len(created),
            stage_id,
            len(registrations),
            len(seeded_ids),
        )
        return created

    async def history(self, stage_id: int) -> list[Partnership]:
        """Partnerships recorded for a stage."""
        return await self.partnerships.list_by_stage(stage_id)
