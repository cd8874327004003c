"""Group stage matches: round-robin generation and result recording.

Every result moves the aggregates of both pairs and of their four players
by the same signed delta. Editing a finished match first applies the
negated delta of the stored score, so the aggregates always equal the sum
of the deltas of the currently finished matches.
"""

import asyncio
import itertools
import logging
from typing import Iterable, Optional, Sequence

from pairbracket.errors import (
    BracketLockedError,
    ConflictError,
    CreationFailure,
    NotFoundError,
    StoreError,
    TournamentError,
    ValidationError,
)
from pairbracket.models import (
    BatchItemError,
    BatchOutcome,
    Group,
    Match,
    MatchKind,
    MatchStatus,
    Pair,
    ResultSubmission,
)
from pairbracket.ports import GroupStore, MatchStore, MatchupStore, PairStore, PlayerStatsStore
from pairbracket.scoring import MatchOutcome, compute_outcome
from pairbracket.standings import StandingsEngine
from pairbracket.validation import ScoreInput, require_match_sets

logger = logging.getLogger(__name__)


def round_robin_pairings(pairs: list[Pair]) -> list[tuple[Pair, Pair]]:
    """All unordered pairings of a group, in draw order.

    Examples:
        For pairs [a, b, c] the pairings are (a, b), (a, c), (b, c).
    """
    return list(itertools.combinations(pairs, 2))


class GroupMatchEngine:
    """Generates group matches and records their results."""

    def __init__(
        self,
        pair_store: PairStore,
        group_store: GroupStore,
        match_store: MatchStore,
        matchup_store: MatchupStore,
        player_stats: PlayerStatsStore,
        standings: StandingsEngine,
    ):
        self.pairs = pair_store
        self.groups = group_store
        self.matches = match_store
        self.matchups = matchup_store
        self.player_stats = player_stats
        self.standings = standings

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def generate_matches(self, groups: Sequence[Group]) -> list[Match]:
        """Create every round-robin match of the given groups.

        One batch per group; the groups are processed concurrently.

        Nothing is created when any of the groups already has matches.

        Raises:
            ConflictError: A group already has matches
            CreationFailure: A store call failed
        """
        try:
            existing = await asyncio.gather(*(self.matches.list_by_group(g.id) for g in groups))
            taken = [f"{g.name} ({len(ms)})" for g, ms in zip(groups, existing) if ms]
            if taken:
                raise ConflictError(f"Groups already have matches: {', '.join(taken)}")

            per_group = await asyncio.gather(*(self._generate_for_group(g) for g in groups))
        except StoreError as e:
            logger.error("Failed to generate group matches: %s", e)
            raise CreationFailure(f"Failed to generate matches: {e}") from e

        created = [m for matches in per_group for m in matches]
        logger.info("Generated %d matches for %d groups", len(created), len(groups))
        return created

    async def _generate_for_group(self, group: Group) -> list[Match]:
        pairs = await self.pairs.list_by_group(group.id)
        position = {pair_id: idx for idx, pair_id in enumerate(group.pair_ids)}
        pairs.sort(key=lambda p: position.get(p.id, len(position)))

        drafts = [
            Match(
                id=0,
                stage_id=group.stage_id,
                pair1_id=p1.id,
                pair2_id=p2.id,
                pair1_name=p1.name,
                pair2_name=p2.name,
                kind=MatchKind.GROUP,
                group_id=group.id,
                group_name=group.name,
            )
            for p1, p2 in round_robin_pairings(pairs)
        ]
        created = await self.matches.create_many(drafts)
        await self.groups.update_counters(group.id, total_matches=len(created), finished_matches=0)
        logger.debug("%s: %d matches", group.name, len(created))
        return created

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    async def submit_result(self, match_id: int, sets: Iterable[ScoreInput]) -> Match:
        """Record (or edit) the result of a group match and recompute standings.

        Args:
            match_id: Match to score
            sets: Set scores, e.g. ``[(6, 4), (6, 3)]``

        Returns:
            The updated match

        Raises:
            InvalidScoreError: Malformed score
            NotFoundError: Match or one of its pairs does not exist
            BracketLockedError: The knockout bracket of the stage exists
        """
        match = await self._record(match_id, sets)
        await self.standings.recompute(match.group_id)
        return match

    async def _record(self, match_id: int, sets: Iterable[ScoreInput]) -> Match:
        """Validate, revert a previous result if any, apply the new one."""
        score = require_match_sets(sets)

        match = await self.matches.get(match_id)
        if match is None:
            raise NotFoundError(f"Match {match_id} not found")
        if match.kind != MatchKind.GROUP:
            raise ValidationError(f"Match {match_id} is not a group match")

        if await self.matchups.list_by_stage(match.stage_id):
            raise BracketLockedError(
                f"Match {match_id} cannot change: the knockout bracket of stage {match.stage_id} exists"
            )

        pair1, pair2 = await asyncio.gather(self.pairs.get(match.pair1_id), self.pairs.get(match.pair2_id))
        if pair1 is None or pair2 is None:
            missing = match.pair1_id if pair1 is None else match.pair2_id
            raise NotFoundError(f"Pair {missing} of match {match_id} not found")

        if match.is_finished:
            previous = compute_outcome(match.sets)
            await self._apply(match.stage_id, pair1, pair2, previous.negated())
            logger.info("Match %s: reverted previous result %s", match_id, ", ".join(map(str, match.sets)))

        outcome = compute_outcome(score)
        await self._apply(match.stage_id, pair1, pair2, outcome)

        winner = pair1 if outcome.pair1_won else pair2
        await self.matches.record_result(match_id, score, winner.id, winner.name)

        match.sets = score
        match.winner_id = winner.id
        match.winner_name = winner.name
        match.status = MatchStatus.FINISHED
        logger.info("Match %s: %s (%s)", match_id, winner.name, ", ".join(map(str, score)))
        return match

    async def _apply(self, stage_id: int, pair1: Pair, pair2: Pair, outcome: MatchOutcome) -> None:
        """Apply one outcome to both pairs and their four players."""
        await asyncio.gather(
            self.pairs.apply_delta(pair1.id, outcome.pair1),
            self.pairs.apply_delta(pair2.id, outcome.pair2),
            self.player_stats.apply_deltas(
                stage_id,
                [
                    (pair1.player1_id, outcome.pair1),
                    (pair1.player2_id, outcome.pair1),
                    (pair2.player1_id, outcome.pair2),
                    (pair2.player2_id, outcome.pair2),
                ],
            ),
        )

    async def submit_results_batch(self, results: Sequence[ResultSubmission]) -> BatchOutcome:
        """Record several results, isolating per-item failures.

        Items are processed concurrently. Standings are recomputed once per
        affected group after all items ran; a failing recompute is logged
        and does not turn a recorded item into an error.
        """
        outcome = BatchOutcome()

        async def submit_one(item: ResultSubmission) -> Optional[Match]:
            try:
                return await self._record(item.match_id, item.sets)
            except TournamentError as e:
                logger.warning("Batch item for match %s failed: %s", item.match_id, e)
                outcome.errors.append(BatchItemError(match_id=item.match_id, error=str(e)))
                return None

        recorded = await asyncio.gather(*(submit_one(item) for item in results))
        finished = [m for m in recorded if m is not None]
        outcome.processed_count = len(finished)

        group_ids = list(dict.fromkeys(m.group_id for m in finished))

        async def recompute(group_id: int) -> Optional[int]:
            try:
                await self.standings.recompute(group_id)
                return group_id
            except TournamentError:
                logger.exception("Standings recompute failed for group %s", group_id)
                return None

        recomputed = await asyncio.gather(*(recompute(g) for g in group_ids))
        outcome.recomputed_group_ids = [g for g in recomputed if g is not None]

        logger.info(
            "Batch: %d processed, %d errors, %d groups recomputed",
            outcome.processed_count,
            len(outcome.errors),
            len(outcome.recomputed_group_ids),
        )
        return outcome

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def list_by_group(self, group_id: int) -> list[Match]:
        return await self.matches.list_by_group(group_id)

    async def list_by_stage(self, stage_id: int) -> list[Match]:
        return await self.matches.list_by_stage(stage_id, kind=MatchKind.GROUP)
