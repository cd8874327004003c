"""Store ports consumed by the engines.

Every engine receives its stores through the constructor. Implementations
live in ``pairbracket.memory`` (in-process) and ``pairbracket.storage``
(SQLAlchemy). All methods are coroutines; implementations raise
``StoreError`` for backend failures.

Aggregate mutation goes through a single ``apply_delta``; an implementation
must apply the whole delta as one atomic step (no read-modify-write window).
"""

from typing import Optional, Protocol, Sequence

from pairbracket.models import (
    Group,
    Match,
    MatchKind,
    Matchup,
    Pair,
    Partnership,
    Phase,
    PlayerStats,
    SetScore,
    StatDelta,
)


class PairStore(Protocol):
    async def create_many(self, pairs: Sequence[Pair]) -> list[Pair]: ...

    async def get(self, pair_id: int) -> Optional[Pair]: ...

    async def list_by_stage(self, stage_id: int) -> list[Pair]: ...

    async def list_by_group(self, group_id: int) -> list[Pair]: ...

    async def list_top_by_group(self, group_id: int, limit: int) -> list[Pair]:
        """Pairs of a group ordered by rank, first ``limit`` only."""
        ...

    async def list_classified(self, stage_id: int) -> list[Pair]: ...

    async def apply_delta(self, pair_id: int, delta: StatDelta) -> None: ...

    async def set_rank(self, pair_id: int, rank: int) -> None: ...

    async def set_classified(self, pair_id: int, classified: bool) -> None: ...

    async def assign_groups(self, assignments: Sequence[tuple[int, int, str]]) -> None:
        """Batch update of (pair_id, group_id, group_name)."""
        ...


class GroupStore(Protocol):
    async def create_many(self, groups: Sequence[Group]) -> list[Group]: ...

    async def get(self, group_id: int) -> Optional[Group]: ...

    async def list_by_stage(self, stage_id: int) -> list[Group]:
        """Groups of a stage in draw order."""
        ...

    async def update_counters(
        self,
        group_id: int,
        total_matches: Optional[int] = None,
        finished_matches: Optional[int] = None,
    ) -> None: ...

    async def set_complete(self, group_id: int, complete: bool) -> None: ...


class MatchStore(Protocol):
    async def create(self, match: Match) -> Match: ...

    async def create_many(self, matches: Sequence[Match]) -> list[Match]: ...

    async def get(self, match_id: int) -> Optional[Match]: ...

    async def list_by_group(self, group_id: int) -> list[Match]: ...

    async def list_finished_by_group(self, group_id: int) -> list[Match]: ...

    async def list_by_stage(self, stage_id: int, kind: Optional[MatchKind] = None) -> list[Match]: ...

    async def record_result(
        self,
        match_id: int,
        sets: Sequence[SetScore],
        winner_id: int,
        winner_name: str,
    ) -> None:
        """Store the score and mark the match FINISHED."""
        ...

    async def delete(self, match_id: int) -> None: ...

    async def delete_many(self, match_ids: Sequence[int]) -> None: ...


class MatchupStore(Protocol):
    async def create(self, matchup: Matchup) -> Matchup: ...

    async def get(self, matchup_id: int, stage_id: int) -> Optional[Matchup]:
        """Fetch a matchup only if it belongs to ``stage_id``."""
        ...

    async def list_by_stage(self, stage_id: int) -> list[Matchup]:
        """All matchups ordered by phase then ordinal."""
        ...

    async def list_by_phase(self, stage_id: int, phase: Phase) -> list[Matchup]:
        """Matchups of one phase ordered by ordinal."""
        ...

    async def record_result(
        self,
        matchup_id: int,
        winner_id: int,
        winner_name: str,
        score: Optional[SetScore] = None,
        match_id: Optional[int] = None,
        bye: bool = False,
    ) -> None:
        """Mark FINISHED (or BYE when ``bye``) and store the winner."""
        ...

    async def update_slots(
        self,
        matchup_id: int,
        pair1: tuple[Optional[int], Optional[str], Optional[str]],
        pair2: tuple[Optional[int], Optional[str], Optional[str]],
    ) -> None:
        """Overwrite both slots with (pair_id, pair_name, origin)."""
        ...

    async def clear_result(self, matchup_id: int) -> None:
        """Back to SCHEDULED with no winner, score or match."""
        ...

    async def delete_by_stage(self, stage_id: int) -> None: ...


class PlayerStatsStore(Protocol):
    async def get(self, player_id: int, stage_id: int) -> Optional[PlayerStats]: ...

    async def ensure(self, player_id: int, stage_id: int, player_name: str = "") -> PlayerStats:
        """Return the aggregate, creating an empty one if missing."""
        ...

    async def apply_delta(self, player_id: int, stage_id: int, delta: StatDelta) -> None: ...

    async def apply_deltas(self, stage_id: int, deltas: Sequence[tuple[int, StatDelta]]) -> None:
        """Batch variant of apply_delta: (player_id, delta) items."""
        ...

    async def set_group(self, player_ids: Sequence[int], stage_id: int, group_id: int) -> None: ...

    async def set_group_rank(self, player_id: int, stage_id: int, rank: int) -> None: ...

    async def set_classified_many(self, player_ids: Sequence[int], stage_id: int, classified: bool) -> None: ...


class PartnershipStore(Protocol):
    async def record_many(self, partnerships: Sequence[Partnership]) -> list[Partnership]:
        """Store partnerships not yet recorded for their stage; returns the new ones."""
        ...

    async def list_by_stage(self, stage_id: int) -> list[Partnership]: ...

    async def seeded_keys(self) -> set[tuple[int, int]]:
        """Keys of every partnership, across all stages, in which both players were seeded."""
        ...
