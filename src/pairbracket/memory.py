"""In-memory implementation of the store ports.

Used by the test-suite and for dry runs. Records are stored by id and
handed out as copies, so callers never share state with the store. Each
coroutine runs to completion without awaiting, which makes every
``apply_delta`` atomic on the event loop.
"""

import copy
import itertools
from dataclasses import dataclass, field, replace
from typing import Optional, Sequence

from pairbracket.models import (
    Group,
    Match,
    MatchKind,
    MatchStatus,
    Matchup,
    MatchupStatus,
    Pair,
    Partnership,
    Phase,
    PlayerStats,
    SetScore,
    StatDelta,
)

PHASE_ORDER = {phase: idx for idx, phase in enumerate(Phase)}


class _Table:
    """Dict of records with an autoincrement id."""

    def __init__(self):
        self.rows: dict = {}
        self._ids = itertools.count(1)

    def next_id(self) -> int:
        return next(self._ids)

    def copy_of(self, key):
        row = self.rows.get(key)
        return copy.deepcopy(row) if row is not None else None

    def copies(self, rows) -> list:
        return [copy.deepcopy(r) for r in rows]


class InMemoryPairStore:
    """Pairs keyed by id."""

    def __init__(self):
        self._table = _Table()

    async def create_many(self, pairs: Sequence[Pair]) -> list[Pair]:
        created = []
        for pair in pairs:
            stored = replace(pair, id=pair.id or self._table.next_id())
            self._table.rows[stored.id] = stored
            created.append(copy.deepcopy(stored))
        return created

    async def get(self, pair_id: int) -> Optional[Pair]:
        return self._table.copy_of(pair_id)

    async def list_by_stage(self, stage_id: int) -> list[Pair]:
        rows = [p for p in self._table.rows.values() if p.stage_id == stage_id]
        return self._table.copies(sorted(rows, key=lambda p: p.id))

    async def list_by_group(self, group_id: int) -> list[Pair]:
        rows = [p for p in self._table.rows.values() if p.group_id == group_id]
        return self._table.copies(sorted(rows, key=lambda p: p.id))

    async def list_top_by_group(self, group_id: int, limit: int) -> list[Pair]:
        rows = [p for p in self._table.rows.values() if p.group_id == group_id and p.group_rank]
        rows.sort(key=lambda p: p.group_rank)
        return self._table.copies(rows[:limit])

    async def list_classified(self, stage_id: int) -> list[Pair]:
        rows = [p for p in self._table.rows.values() if p.stage_id == stage_id and p.classified]
        return self._table.copies(sorted(rows, key=lambda p: p.id))

    async def apply_delta(self, pair_id: int, delta: StatDelta) -> None:
        self._table.rows[pair_id].apply(delta)

    async def set_rank(self, pair_id: int, rank: int) -> None:
        self._table.rows[pair_id].group_rank = rank

    async def set_classified(self, pair_id: int, classified: bool) -> None:
        self._table.rows[pair_id].classified = classified

    async def assign_groups(self, assignments: Sequence[tuple[int, int, str]]) -> None:
        for pair_id, group_id, group_name in assignments:
            pair = self._table.rows[pair_id]
            pair.group_id = group_id
            pair.group_name = group_name


class InMemoryGroupStore:
    """Groups keyed by id."""

    def __init__(self):
        self._table = _Table()

    async def create_many(self, groups: Sequence[Group]) -> list[Group]:
        created = []
        for group in groups:
            stored = replace(group, id=self._table.next_id(), pair_ids=list(group.pair_ids))
            self._table.rows[stored.id] = stored
            created.append(copy.deepcopy(stored))
        return created

    async def get(self, group_id: int) -> Optional[Group]:
        return self._table.copy_of(group_id)

    async def list_by_stage(self, stage_id: int) -> list[Group]:
        rows = [g for g in self._table.rows.values() if g.stage_id == stage_id]
        return self._table.copies(sorted(rows, key=lambda g: g.order))

    async def update_counters(
        self,
        group_id: int,
        total_matches: Optional[int] = None,
        finished_matches: Optional[int] = None,
    ) -> None:
        group = self._table.rows[group_id]
        if total_matches is not None:
            group.total_matches = total_matches
        if finished_matches is not None:
            group.finished_matches = finished_matches

    async def set_complete(self, group_id: int, complete: bool) -> None:
        self._table.rows[group_id].complete = complete


class InMemoryMatchStore:
    """Group and knockout matches keyed by id."""

    def __init__(self):
        self._table = _Table()

    async def create(self, match: Match) -> Match:
        stored = replace(match, id=self._table.next_id(), sets=list(match.sets))
        self._table.rows[stored.id] = stored
        return copy.deepcopy(stored)

    async def create_many(self, matches: Sequence[Match]) -> list[Match]:
        return [await self.create(m) for m in matches]

    async def get(self, match_id: int) -> Optional[Match]:
        return self._table.copy_of(match_id)

    async def list_by_group(self, group_id: int) -> list[Match]:
        rows = [m for m in self._table.rows.values() if m.group_id == group_id]
        return self._table.copies(sorted(rows, key=lambda m: m.id))

    async def list_finished_by_group(self, group_id: int) -> list[Match]:
        rows = [
            m for m in self._table.rows.values()
            if m.group_id == group_id and m.status == MatchStatus.FINISHED
        ]
        return self._table.copies(sorted(rows, key=lambda m: m.id))

    async def list_by_stage(self, stage_id: int, kind: Optional[MatchKind] = None) -> list[Match]:
        rows = [
            m for m in self._table.rows.values()
            if m.stage_id == stage_id and (kind is None or m.kind == kind)
        ]
        return self._table.copies(sorted(rows, key=lambda m: m.id))

    async def record_result(
        self,
        match_id: int,
        sets: Sequence[SetScore],
        winner_id: int,
        winner_name: str,
    ) -> None:
        match = self._table.rows[match_id]
        match.sets = list(sets)
        match.winner_id = winner_id
        match.winner_name = winner_name
        match.status = MatchStatus.FINISHED

    async def delete(self, match_id: int) -> None:
        self._table.rows.pop(match_id, None)

    async def delete_many(self, match_ids: Sequence[int]) -> None:
        for match_id in match_ids:
            self._table.rows.pop(match_id, None)


class InMemoryMatchupStore:
    """Knockout matchups keyed by id."""

    def __init__(self):
        self._table = _Table()

    async def create(self, matchup: Matchup) -> Matchup:
        stored = replace(matchup, id=self._table.next_id())
        self._table.rows[stored.id] = stored
        return copy.deepcopy(stored)

    async def get(self, matchup_id: int, stage_id: int) -> Optional[Matchup]:
        matchup = self._table.rows.get(matchup_id)
        if matchup is None or matchup.stage_id != stage_id:
            return None
        return copy.deepcopy(matchup)

    async def list_by_stage(self, stage_id: int) -> list[Matchup]:
        rows = [m for m in self._table.rows.values() if m.stage_id == stage_id]
        rows.sort(key=lambda m: (PHASE_ORDER[m.phase], m.ordinal))
        return self._table.copies(rows)

    async def list_by_phase(self, stage_id: int, phase: Phase) -> list[Matchup]:
        rows = [m for m in self._table.rows.values() if m.stage_id == stage_id and m.phase == phase]
        return self._table.copies(sorted(rows, key=lambda m: m.ordinal))

    async def record_result(
        self,
        matchup_id: int,
        winner_id: int,
        winner_name: str,
        score: Optional[SetScore] = None,
        match_id: Optional[int] = None,
        bye: bool = False,
    ) -> None:
        matchup = self._table.rows[matchup_id]
        matchup.status = MatchupStatus.BYE if bye else MatchupStatus.FINISHED
        matchup.winner_id = winner_id
        matchup.winner_name = winner_name
        matchup.score = score
        matchup.match_id = match_id

    async def update_slots(self, matchup_id, pair1, pair2) -> None:
        matchup = self._table.rows[matchup_id]
        matchup.pair1_id, matchup.pair1_name, matchup.pair1_origin = pair1
        matchup.pair2_id, matchup.pair2_name, matchup.pair2_origin = pair2

    async def clear_result(self, matchup_id: int) -> None:
        matchup = self._table.rows[matchup_id]
        matchup.status = MatchupStatus.SCHEDULED
        matchup.winner_id = None
        matchup.winner_name = None
        matchup.score = None
        matchup.match_id = None

    async def delete_by_stage(self, stage_id: int) -> None:
        for key in [k for k, m in self._table.rows.items() if m.stage_id == stage_id]:
            del self._table.rows[key]


class InMemoryPlayerStatsStore:
    """Player aggregates keyed by (player_id, stage_id)."""

    def __init__(self):
        self.rows: dict[tuple[int, int], PlayerStats] = {}

    def _row(self, player_id: int, stage_id: int) -> PlayerStats:
        key = (player_id, stage_id)
        if key not in self.rows:
            self.rows[key] = PlayerStats(player_id=player_id, stage_id=stage_id)
        return self.rows[key]

    async def get(self, player_id: int, stage_id: int) -> Optional[PlayerStats]:
        row = self.rows.get((player_id, stage_id))
        return copy.deepcopy(row) if row is not None else None

    async def ensure(self, player_id: int, stage_id: int, player_name: str = "") -> PlayerStats:
        row = self._row(player_id, stage_id)
        if player_name and not row.player_name:
            row.player_name = player_name
        return copy.deepcopy(row)

    async def apply_delta(self, player_id: int, stage_id: int, delta: StatDelta) -> None:
        self._row(player_id, stage_id).apply(delta)

    async def apply_deltas(self, stage_id: int, deltas: Sequence[tuple[int, StatDelta]]) -> None:
        for player_id, delta in deltas:
            self._row(player_id, stage_id).apply(delta)

    async def set_group(self, player_ids: Sequence[int], stage_id: int, group_id: int) -> None:
        for player_id in player_ids:
            self._row(player_id, stage_id).group_id = group_id

    async def set_group_rank(self, player_id: int, stage_id: int, rank: int) -> None:
        self._row(player_id, stage_id).group_rank = rank

    async def set_classified_many(self, player_ids: Sequence[int], stage_id: int, classified: bool) -> None:
        for player_id in player_ids:
            self._row(player_id, stage_id).classified = classified


class InMemoryPartnershipStore:
    """Partnerships keyed by id, unique per (stage, key)."""

    def __init__(self):
        self._table = _Table()

    async def record_many(self, partnerships: Sequence[Partnership]) -> list[Partnership]:
        taken = {(p.stage_id, p.key) for p in self._table.rows.values()}
        created = []
        for partnership in partnerships:
            if (partnership.stage_id, partnership.key) in taken:
                continue
            stored = replace(partnership, id=self._table.next_id())
            self._table.rows[stored.id] = stored
            taken.add((stored.stage_id, stored.key))
            created.append(copy.deepcopy(stored))
        return created

    async def list_by_stage(self, stage_id: int) -> list[Partnership]:
        rows = [p for p in self._table.rows.values() if p.stage_id == stage_id]
        return self._table.copies(sorted(rows, key=lambda p: p.id))

    async def seeded_keys(self) -> set[tuple[int, int]]:
        return {p.key for p in self._table.rows.values() if p.both_seeded}


@dataclass
class MemoryBackend:
    """All in-memory stores for one process."""

    pairs: InMemoryPairStore = field(default_factory=InMemoryPairStore)
    groups: InMemoryGroupStore = field(default_factory=InMemoryGroupStore)
    matches: InMemoryMatchStore = field(default_factory=InMemoryMatchStore)
    matchups: InMemoryMatchupStore = field(default_factory=InMemoryMatchupStore)
    player_stats: InMemoryPlayerStatsStore = field(default_factory=InMemoryPlayerStatsStore)
    partnerships: InMemoryPartnershipStore = field(default_factory=InMemoryPartnershipStore)
