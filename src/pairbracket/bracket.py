"""Knockout bracket: fixed templates, results and winner advancement.

Pairings are fixed by group position, not by performance:
- first of one group meets second of another
- BYEs go to the top position keys first (1A, 1B, 1C, ... then 2A, ...)
- pairs from the same group can only meet in the Final

Supports 2 to 8 groups.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from pairbracket.errors import (
    ConflictError,
    GroupCountError,
    IncompleteGroupsError,
    NotFoundError,
    ValidationError,
)
from pairbracket.models import (
    Group,
    Match,
    MatchKind,
    Matchup,
    MatchupStatus,
    Pair,
    Phase,
    SetScore,
)
from pairbracket.ports import GroupStore, MatchStore, MatchupStore, PairStore, PlayerStatsStore
from pairbracket.scoring import MatchOutcome, compute_outcome
from pairbracket.tournament_math import group_letter, next_phase
from pairbracket.validation import ScoreInput, require_single_set

logger = logging.getLogger(__name__)

BYE = "BYE"
MAX_GROUPS = 8


@dataclass(frozen=True)
class BracketTemplate:
    """First-phase pairings for one group count.

    ``slots`` are (position key, position key or BYE) in ordinal order.
    ``next_pairings`` overrides the sequential 1-2, 3-4 pairing of a later
    phase with explicit (ordinal, ordinal) pairs of the previous phase.
    """

    phase: Phase
    slots: tuple[tuple[str, str], ...]
    next_pairings: dict = field(default_factory=dict)

    @property
    def bye_count(self) -> int:
        return sum(1 for _, away in self.slots if away == BYE)


# ============================================================================
# Templates by number of groups
# ============================================================================

BRACKET_TEMPLATES: dict[int, BracketTemplate] = {
    # S1: 1A x 2B
    # S2: 1B x 2A
    2: BracketTemplate(
        phase=Phase.SEMIFINAL,
        slots=(("1A", "2B"), ("1B", "2A")),
    ),
    # Q1: 1A -- BYE      Q3: 1B -- BYE
    # Q2: 1C x 2B        Q4: 2A x 2C
    3: BracketTemplate(
        phase=Phase.QUARTERFINAL,
        slots=(("1A", BYE), ("1C", "2B"), ("1B", BYE), ("2A", "2C")),
    ),
    # Q1: 1A x 2B -+- S1     Q3: 1B x 2A -+- S2
    # Q2: 1C x 2D -+         Q4: 1D x 2C -+
    4: BracketTemplate(
        phase=Phase.QUARTERFINAL,
        slots=(("1A", "2B"), ("1C", "2D"), ("1B", "2A"), ("1D", "2C")),
    ),
    # Q1: W(R16 1) x W(R16 7) = 1A x W(2B x 2C)
    # Q2: W(R16 4) x W(R16 2) = 1E x 1D
    # Q3: W(R16 3) x W(R16 8) = 1B x W(2D x 2E)
    # Q4: W(R16 5) x W(R16 6) = 1C x 2A
    5: BracketTemplate(
        phase=Phase.ROUND_OF_16,
        slots=(
            ("1A", BYE),
            ("1D", BYE),
            ("1B", BYE),
            ("1E", BYE),
            ("1C", BYE),
            ("2A", BYE),
            ("2B", "2C"),
            ("2D", "2E"),
        ),
        next_pairings={Phase.QUARTERFINAL: ((1, 7), (4, 2), (3, 8), (5, 6))},
    ),
    # Q1: W(R16 1) x W(R16 5) = 1A x W(2B x 2C)
    # Q2: W(R16 4) x W(R16 7) = 1D x W(1E x 2F)
    # Q3: W(R16 3) x W(R16 6) = 1B x W(2D x 2A)
    # Q4: W(R16 2) x W(R16 8) = 1C x W(1F x 2E)
    6: BracketTemplate(
        phase=Phase.ROUND_OF_16,
        slots=(
            ("1A", BYE),
            ("1C", BYE),
            ("1B", BYE),
            ("1D", BYE),
            ("2B", "2C"),
            ("2D", "2A"),
            ("1E", "2F"),
            ("1F", "2E"),
        ),
        next_pairings={Phase.QUARTERFINAL: ((1, 5), (4, 7), (3, 6), (2, 8))},
    ),
    7: BracketTemplate(
        phase=Phase.ROUND_OF_16,
        slots=(
            ("1A", BYE),
            ("1E", "2F"),
            ("1C", "2D"),
            ("1G", "2B"),
            ("1B", BYE),
            ("1F", "2E"),
            ("1D", "2C"),
            ("2A", "2G"),
        ),
    ),
    # R16 1-2 -> Q1, 3-4 -> Q2 (S1); R16 5-6 -> Q3, 7-8 -> Q4 (S2)
    8: BracketTemplate(
        phase=Phase.ROUND_OF_16,
        slots=(
            ("1A", "2B"),
            ("1C", "2D"),
            ("1E", "2F"),
            ("1G", "2H"),
            ("1B", "2A"),
            ("1D", "2C"),
            ("1F", "2E"),
            ("1H", "2G"),
        ),
    ),
}


def ordinal_suffix(n: int) -> str:
    """English ordinal: 1st, 2nd, 3rd, 4th, 11th, 21st."""
    if 10 <= n % 100 <= 20:
        return f"{n}th"
    suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


@dataclass
class Qualifier:
    """A pair that made it out of its group."""

    pair: Pair
    group: Group
    rank: int
    key: str  # "1A", "2B", ...

    @property
    def origin(self) -> str:
        """Slot origin label, e.g. "1st Group A"."""
        return f"{ordinal_suffix(self.rank)} {self.group.name}"


@dataclass
class Advancing:
    """Winner of a decided matchup moving to the next phase."""

    pair_id: int
    pair_name: str
    origin: str  # "Winner QF 2"


def next_phase_pairings(
    group_count: int,
    phase: Phase,
    ordinals: Iterable[int],
) -> list[tuple[int, int]]:
    """Which ordinals of the previous phase meet in ``phase``.

    Uses the template remap when the group count defines one, otherwise
    sequential pairing (1-2, 3-4, ...) of the decided ordinals.

    Examples:
        >>> next_phase_pairings(4, Phase.SEMIFINAL, [1, 2, 3, 4])
        [(1, 2), (3, 4)]
        >>> next_phase_pairings(5, Phase.QUARTERFINAL, range(1, 9))
        [(1, 7), (4, 2), (3, 8), (5, 6)]
    """
    template = BRACKET_TEMPLATES.get(group_count)
    if template is not None and phase in template.next_pairings:
        return list(template.next_pairings[phase])

    ordered = sorted(ordinals)
    return [(ordered[i], ordered[i + 1]) for i in range(0, len(ordered) - 1, 2)]


class BracketEngine:
    """Builds and drives the knockout stage of a tournament stage."""

    def __init__(
        self,
        pair_store: PairStore,
        group_store: GroupStore,
        match_store: MatchStore,
        matchup_store: MatchupStore,
        player_stats: PlayerStatsStore,
    ):
        self.pairs = pair_store
        self.groups = group_store
        self.matches = match_store
        self.matchups = matchup_store
        self.player_stats = player_stats

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    async def build_bracket(self, stage_id: int, classified_per_group: int = 2) -> list[Matchup]:
        """Create the first knockout phase from the group standings.

        Args:
            stage_id: Stage whose groups are finished
            classified_per_group: How many pairs of each group qualify

        Returns:
            Created matchups in ordinal order (BYE matchups already decided)

        Raises:
            ValidationError: No groups, or fewer than 2 qualifiers
            IncompleteGroupsError: Some groups still have pending matches
            GroupCountError: A single group, or more than 8 groups
            ConflictError: The bracket already exists
        """
        if classified_per_group < 1:
            raise ValidationError(f"classified_per_group must be at least 1, got {classified_per_group}")

        groups = await self.groups.list_by_stage(stage_id)
        if not groups:
            raise ValidationError(f"No groups found for stage {stage_id}")

        incomplete = [g.name for g in groups if not g.complete]
        if incomplete:
            raise IncompleteGroupsError(incomplete)

        if len(groups) == 1:
            raise GroupCountError(
                "Cannot build a knockout bracket with a single group: "
                "the round robin already decides the champion"
            )

        if len(groups) > MAX_GROUPS:
            raise GroupCountError(
                f"At most {MAX_GROUPS} groups are supported, stage {stage_id} has {len(groups)}"
            )

        if await self.matchups.list_by_stage(stage_id):
            raise ConflictError(f"The knockout bracket of stage {stage_id} already exists")

        template = BRACKET_TEMPLATES[len(groups)]

        qualifiers = await self._collect_qualifiers(groups, classified_per_group)
        if len(qualifiers) < 2:
            raise ValidationError(f"At least 2 qualified pairs are required, got {len(qualifiers)}")

        by_key = {q.key: q for q in qualifiers}
        created = await self._create_first_phase(stage_id, template, by_key)
        if not created:
            raise ValidationError(
                f"No matchup of the {len(groups)}-group template could be filled "
                f"with {classified_per_group} qualifier(s) per group"
            )

        await asyncio.gather(
            *(self.pairs.set_classified(q.pair.id, True) for q in qualifiers),
            self.player_stats.set_classified_many(
                [pid for q in qualifiers for pid in q.pair.player_ids], stage_id, True
            ),
        )

        logger.info(
            "Built %s bracket for stage %s: %d groups, %d qualifiers, %d matchups, %d BYEs",
            template.phase.value,
            stage_id,
            len(groups),
            len(qualifiers),
            len(created),
            sum(1 for m in created if m.status == MatchupStatus.BYE),
        )

        if all(m.is_decided for m in created):
            await self.advance_winner(created[0])

        return created

    async def _collect_qualifiers(self, groups: list[Group], per_group: int) -> list[Qualifier]:
        tops = await asyncio.gather(*(self.pairs.list_top_by_group(g.id, per_group) for g in groups))

        qualifiers = []
        for idx, (group, pairs) in enumerate(zip(groups, tops)):
            letter = group_letter(idx)
            for pair in pairs:
                rank = pair.group_rank or 1
                qualifiers.append(Qualifier(pair=pair, group=group, rank=rank, key=f"{rank}{letter}"))
        return qualifiers

    async def _create_first_phase(
        self,
        stage_id: int,
        template: BracketTemplate,
        by_key: dict[str, Qualifier],
    ) -> list[Matchup]:
        drafts = []
        for ordinal, (home_key, away_key) in enumerate(template.slots, start=1):
            home = by_key.get(home_key)
            if home is None:
                logger.warning("No qualifier for position %s, skipping %s %d", home_key, template.phase.value, ordinal)
                continue

            if away_key == BYE:
                drafts.append(
                    Matchup(
                        id=0,
                        stage_id=stage_id,
                        phase=template.phase,
                        ordinal=ordinal,
                        pair1_id=home.pair.id,
                        pair1_name=home.pair.name,
                        pair1_origin=home.origin,
                        status=MatchupStatus.BYE,
                    )
                )
                continue

            away = by_key.get(away_key)
            if away is None:
                logger.warning("No qualifier for position %s, skipping %s %d", away_key, template.phase.value, ordinal)
                continue

            drafts.append(
                Matchup(
                    id=0,
                    stage_id=stage_id,
                    phase=template.phase,
                    ordinal=ordinal,
                    pair1_id=home.pair.id,
                    pair1_name=home.pair.name,
                    pair1_origin=home.origin,
                    pair2_id=away.pair.id,
                    pair2_name=away.pair.name,
                    pair2_origin=away.origin,
                )
            )

        created = list(await asyncio.gather(*(self.matchups.create(d) for d in drafts)))

        # BYEs advance immediately, no score needed
        byes = [m for m in created if m.status == MatchupStatus.BYE]
        await asyncio.gather(
            *(self.matchups.record_result(m.id, m.pair1_id, m.pair1_name, bye=True) for m in byes)
        )
        for matchup in byes:
            matchup.winner_id = matchup.pair1_id
            matchup.winner_name = matchup.pair1_name
            logger.debug("%s: %s advances on a BYE", matchup.label, matchup.pair1_origin)

        return created

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    async def submit_result(self, matchup_id: int, stage_id: int, sets: Iterable[ScoreInput]) -> Matchup:
        """Record (or edit) a knockout result and advance the winner.

        Knockout matchups are decided in a single set. The four players'
        aggregates move by the knockout delta (no points); pair aggregates
        only reflect the group stage.

        Raises:
            InvalidScoreError: Not exactly one valid set
            NotFoundError: Matchup not in this stage, or a pair is missing
            ConflictError: The matchup is a BYE
            ValidationError: One of the slots is still pending
        """
        score = require_single_set(sets)

        matchup = await self.matchups.get(matchup_id, stage_id)
        if matchup is None:
            raise NotFoundError(f"Matchup {matchup_id} not found in stage {stage_id}")
        if matchup.status == MatchupStatus.BYE:
            raise ConflictError(f"{matchup.label} is a BYE and takes no result")
        if not matchup.has_both_pairs:
            raise ValidationError(f"{matchup.label} does not have both pairs yet")

        pair1, pair2 = await self._pairs_of(matchup)

        if matchup.status == MatchupStatus.FINISHED and matchup.score is not None:
            await self._apply_players(stage_id, pair1, pair2, self._outcome(matchup.score).negated())
            logger.info("%s: reverted previous result %s", matchup.label, matchup.score)

        outcome = self._outcome(score)
        winner = pair1 if outcome.pair1_won else pair2

        match_id = matchup.match_id
        if match_id is None:
            match = await self.matches.create(
                Match(
                    id=0,
                    stage_id=stage_id,
                    pair1_id=pair1.id,
                    pair2_id=pair2.id,
                    pair1_name=pair1.name,
                    pair2_name=pair2.name,
                    kind=MatchKind.KNOCKOUT,
                    phase=matchup.phase,
                )
            )
            match_id = match.id
        await self.matches.record_result(match_id, [score], winner.id, winner.name)

        await self._apply_players(stage_id, pair1, pair2, outcome)
        await self.matchups.record_result(matchup.id, winner.id, winner.name, score=score, match_id=match_id)

        matchup.status = MatchupStatus.FINISHED
        matchup.winner_id = winner.id
        matchup.winner_name = winner.name
        matchup.score = score
        matchup.match_id = match_id
        logger.info("%s: %s wins %s", matchup.label, winner.name, score)

        await self.advance_winner(matchup)
        return matchup

    @staticmethod
    def _outcome(score: SetScore) -> MatchOutcome:
        return compute_outcome([score], award_points=False)

    async def _pairs_of(self, matchup: Matchup) -> tuple[Pair, Pair]:
        pair1, pair2 = await asyncio.gather(self.pairs.get(matchup.pair1_id), self.pairs.get(matchup.pair2_id))
        if pair1 is None or pair2 is None:
            missing = matchup.pair1_id if pair1 is None else matchup.pair2_id
            raise NotFoundError(f"Pair {missing} of {matchup.label} not found")
        return pair1, pair2

    async def _apply_players(self, stage_id: int, pair1: Pair, pair2: Pair, outcome: MatchOutcome) -> None:
        await self.player_stats.apply_deltas(
            stage_id,
            [
                (pair1.player1_id, outcome.pair1),
                (pair1.player2_id, outcome.pair1),
                (pair2.player1_id, outcome.pair2),
                (pair2.player2_id, outcome.pair2),
            ],
        )

    async def _revert_matchup(self, matchup: Matchup) -> None:
        """Undo the player deltas of a finished matchup."""
        if matchup.status != MatchupStatus.FINISHED or matchup.score is None:
            return
        pair1, pair2 = await self._pairs_of(matchup)
        await self._apply_players(matchup.stage_id, pair1, pair2, self._outcome(matchup.score).negated())

    # ------------------------------------------------------------------
    # Advancement
    # ------------------------------------------------------------------

    async def advance_winner(self, matchup: Matchup) -> list[Matchup]:
        """Fill the next phase once every matchup of this phase is decided.

        Creates the next phase the first time. When it already exists (a
        result was edited), each next-phase matchup whose pairs changed is
        invalidated: a finished one has its player deltas reverted, its
        match deleted and its result cleared, then its slots are rewritten.
        Invalidation goes one phase deep; deeper phases are re-checked when
        the cleared matchup is played again.

        Returns:
            Next-phase matchups that were created or rewritten
        """
        following = next_phase(matchup.phase)
        if following is None:
            return []

        current, groups, existing = await asyncio.gather(
            self.matchups.list_by_phase(matchup.stage_id, matchup.phase),
            self.groups.list_by_stage(matchup.stage_id),
            self.matchups.list_by_phase(matchup.stage_id, following),
        )

        pending = [m.label for m in current if not m.is_decided]
        if pending:
            logger.debug("%s not complete yet, waiting for %s", matchup.phase.value, ", ".join(pending))
            return []

        winners = {
            m.ordinal: Advancing(pair_id=m.winner_id, pair_name=m.winner_name, origin=f"Winner {m.label}")
            for m in current
        }
        pairings = next_phase_pairings(len(groups), following, winners.keys())

        if existing:
            return await self._update_next_phase(existing, pairings, winners)
        return await self._create_next_phase(matchup.stage_id, following, pairings, winners)

    async def _create_next_phase(
        self,
        stage_id: int,
        phase: Phase,
        pairings: list[tuple[int, int]],
        winners: dict[int, Advancing],
    ) -> list[Matchup]:
        drafts = []
        for first, second in pairings:
            home, away = winners.get(first), winners.get(second)
            if home is None or away is None:
                continue
            drafts.append(
                Matchup(
                    id=0,
                    stage_id=stage_id,
                    phase=phase,
                    ordinal=len(drafts) + 1,
                    pair1_id=home.pair_id,
                    pair1_name=home.pair_name,
                    pair1_origin=home.origin,
                    pair2_id=away.pair_id,
                    pair2_name=away.pair_name,
                    pair2_origin=away.origin,
                )
            )

        created = [await self.matchups.create(d) for d in drafts]
        logger.info("Created %s for stage %s: %d matchups", phase.value, stage_id, len(created))
        return created

    async def _update_next_phase(
        self,
        existing: list[Matchup],
        pairings: list[tuple[int, int]],
        winners: dict[int, Advancing],
    ) -> list[Matchup]:
        rewritten = []
        for idx, matchup in enumerate(existing):
            if idx >= len(pairings):
                break
            first, second = pairings[idx]
            home, away = winners.get(first), winners.get(second)
            if home is None or away is None:
                continue

            if matchup.pair1_id == home.pair_id and matchup.pair2_id == away.pair_id:
                continue

            if matchup.status == MatchupStatus.FINISHED:
                await self._revert_matchup(matchup)
                if matchup.match_id is not None:
                    await self.matches.delete(matchup.match_id)
                await self.matchups.clear_result(matchup.id)
                logger.info("%s: result cleared, its pairs changed", matchup.label)

            await self.matchups.update_slots(
                matchup.id,
                (home.pair_id, home.pair_name, home.origin),
                (away.pair_id, away.pair_name, away.origin),
            )

            matchup.pair1_id, matchup.pair1_name, matchup.pair1_origin = home.pair_id, home.pair_name, home.origin
            matchup.pair2_id, matchup.pair2_name, matchup.pair2_origin = away.pair_id, away.pair_name, away.origin
            matchup.status = MatchupStatus.SCHEDULED
            matchup.winner_id = matchup.winner_name = None
            matchup.score = None
            matchup.match_id = None
            rewritten.append(matchup)

        return rewritten

    # ------------------------------------------------------------------
    # Cancel / queries
    # ------------------------------------------------------------------

    async def cancel_bracket(self, stage_id: int) -> int:
        """Remove the whole knockout stage and undo its effects.

        Returns:
            Number of matchups removed

        Raises:
            NotFoundError: The stage has no knockout bracket
        """
        matchups = await self.matchups.list_by_stage(stage_id)
        if not matchups:
            raise NotFoundError(f"No knockout bracket found for stage {stage_id}")

        finished = [m for m in matchups if m.status == MatchupStatus.FINISHED]
        for matchup in finished:
            await self._revert_matchup(matchup)

        knockout_matches = await self.matches.list_by_stage(stage_id, kind=MatchKind.KNOCKOUT)
        if knockout_matches:
            await self.matches.delete_many([m.id for m in knockout_matches])

        await self.matchups.delete_by_stage(stage_id)

        classified = await self.pairs.list_classified(stage_id)
        await asyncio.gather(
            *(self.pairs.set_classified(p.id, False) for p in classified),
            self.player_stats.set_classified_many(
                [pid for p in classified for pid in p.player_ids], stage_id, False
            ),
        )

        logger.info(
            "Cancelled bracket of stage %s: %d matchups, %d results reverted, %d matches deleted",
            stage_id,
            len(matchups),
            len(finished),
            len(knockout_matches),
        )
        return len(matchups)

    async def list_matchups(self, stage_id: int, phase: Optional[Phase] = None) -> list[Matchup]:
        if phase is not None:
            return await self.matchups.list_by_phase(stage_id, phase)
        return await self.matchups.list_by_stage(stage_id)
