"""SQLite storage layer for pairbracket.

Provides ORM models and one repository per store port. Repositories run on
an async SQLAlchemy engine (aiosqlite); every method uses its own session
and commits before returning.
"""

import json
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text, UniqueConstraint, delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool

from pairbracket.errors import StoreError
from pairbracket.models import (
    STAT_FIELDS,
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

Base = declarative_base()

PHASE_ORDER = {phase: idx for idx, phase in enumerate(Phase)}


class StatColumnsMixin:
    """Aggregate counters shared by pairs and player stats."""

    played = Column(Integer, nullable=False, default=0)
    wins = Column(Integer, nullable=False, default=0)
    losses = Column(Integer, nullable=False, default=0)
    points = Column(Integer, nullable=False, default=0)
    sets_won = Column(Integer, nullable=False, default=0)
    sets_lost = Column(Integer, nullable=False, default=0)
    games_won = Column(Integer, nullable=False, default=0)
    games_lost = Column(Integer, nullable=False, default=0)


# ============================================================================
# ORM Models
# ============================================================================


class PairORM(StatColumnsMixin, Base):
    """Pair table."""

    __tablename__ = "pairs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    stage_id = Column(Integer, nullable=False, index=True)
    player1_id = Column(Integer, nullable=False)
    player1_name = Column(String(100), nullable=False)
    player2_id = Column(Integer, nullable=False)
    player2_name = Column(String(100), nullable=False)
    group_id = Column(Integer, nullable=True, index=True)
    group_name = Column(String(20), nullable=True)
    group_rank = Column(Integer, nullable=True)
    classified = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class PlayerStatsORM(StatColumnsMixin, Base):
    """Per-stage player aggregate table."""

    __tablename__ = "player_stats"

    player_id = Column(Integer, primary_key=True)
    stage_id = Column(Integer, primary_key=True)
    player_name = Column(String(100), nullable=False, default="")
    group_id = Column(Integer, nullable=True)
    group_rank = Column(Integer, nullable=True)
    classified = Column(Boolean, nullable=False, default=False)


class GroupORM(Base):
    """Group table."""

    __tablename__ = "groups"

    id = Column(Integer, primary_key=True, autoincrement=True)
    stage_id = Column(Integer, nullable=False, index=True)
    name = Column(String(20), nullable=False)  # Group A, Group B, ...
    order = Column(Integer, nullable=False)
    # Store pair_ids as JSON array
    pair_ids_json = Column(Text, nullable=False, default="[]")
    total_matches = Column(Integer, nullable=False, default=0)
    finished_matches = Column(Integer, nullable=False, default=0)
    complete = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    @property
    def pair_ids(self) -> list[int]:
        """Get pair IDs from JSON."""
        return json.loads(self.pair_ids_json)

    @pair_ids.setter
    def pair_ids(self, value: list[int]):
        """Set pair IDs as JSON."""
        self.pair_ids_json = json.dumps(value)


class MatchORM(Base):
    """Match table (group and knockout)."""

    __tablename__ = "matches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    stage_id = Column(Integer, nullable=False, index=True)
    kind = Column(String(10), nullable=False, default=MatchKind.GROUP.value)
    group_id = Column(Integer, nullable=True, index=True)
    group_name = Column(String(20), nullable=True)
    phase = Column(String(5), nullable=True)  # R16, QF, SF, F
    pair1_id = Column(Integer, nullable=False)
    pair1_name = Column(String(210), nullable=False, default="")
    pair2_id = Column(Integer, nullable=False)
    pair2_name = Column(String(210), nullable=False, default="")
    status = Column(String(20), nullable=False, default=MatchStatus.SCHEDULED.value)
    winner_id = Column(Integer, nullable=True)
    winner_name = Column(String(210), nullable=True)
    # Store sets as JSON: [{"games_pair1": 6, "games_pair2": 4}, ...]
    sets_json = Column(Text, nullable=False, default="[]")
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def sets(self) -> list[dict]:
        """Get sets from JSON."""
        return json.loads(self.sets_json)

    @sets.setter
    def sets(self, value: list[dict]):
        """Set sets as JSON."""
        self.sets_json = json.dumps(value)


class MatchupORM(Base):
    """Knockout matchup table."""

    __tablename__ = "matchups"

    id = Column(Integer, primary_key=True, autoincrement=True)
    stage_id = Column(Integer, nullable=False, index=True)
    phase = Column(String(5), nullable=False)
    ordinal = Column(Integer, nullable=False)
    pair1_id = Column(Integer, nullable=True)
    pair1_name = Column(String(210), nullable=True)
    pair1_origin = Column(String(50), nullable=True)
    pair2_id = Column(Integer, nullable=True)
    pair2_name = Column(String(210), nullable=True)
    pair2_origin = Column(String(50), nullable=True)
    status = Column(String(20), nullable=False, default=MatchupStatus.SCHEDULED.value)
    winner_id = Column(Integer, nullable=True)
    winner_name = Column(String(210), nullable=True)
    score_pair1 = Column(Integer, nullable=True)
    score_pair2 = Column(Integer, nullable=True)
    match_id = Column(Integer, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class PartnershipORM(Base):
    """History of player partnerships, one row per (stage, pair of players)."""

    __tablename__ = "partnerships"
    __table_args__ = (UniqueConstraint("stage_id", "key_low", "key_high", name="uq_partnership_stage_key"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    stage_id = Column(Integer, nullable=False, index=True)
    player1_id = Column(Integer, nullable=False)
    player1_name = Column(String(100), nullable=False)
    player2_id = Column(Integer, nullable=False)
    player2_name = Column(String(100), nullable=False)
    key_low = Column(Integer, nullable=False)
    key_high = Column(Integer, nullable=False)
    both_seeded = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)


# ============================================================================
# Database Manager
# ============================================================================


class DatabaseManager:
    """Manages the async SQLite engine and sessions."""

    def __init__(self, db_path: str = ".pairbracket/pairbracket.sqlite"):
        """Initialize database manager.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        # One connection per session; SQLite serializes the writers
        self.engine = create_async_engine(
            f"sqlite+aiosqlite:///{self.db_path}",
            echo=False,
            poolclass=NullPool,
        )
        self.SessionLocal = async_sessionmaker(bind=self.engine, expire_on_commit=False)

    async def create_tables(self):
        """Create all tables in the database."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self):
        await self.engine.dispose()

    def get_session(self):
        """Get a new database session."""
        return self.SessionLocal()

    @asynccontextmanager
    async def session_scope(self):
        """Session that commits on success and maps driver errors to StoreError."""
        async with self.get_session() as session:
            try:
                yield session
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise StoreError(f"Database error: {e}") from e


# ============================================================================
# Row <-> domain conversion
# ============================================================================


def _stats_of(row) -> dict:
    return {name: getattr(row, name) for name in STAT_FIELDS}


def _increment(orm_cls, delta: StatDelta) -> dict:
    """SET col = col + :d for every aggregate column."""
    return {name: getattr(orm_cls, name) + value for name, value in delta.as_dict().items()}


def pair_from_row(row: PairORM) -> Pair:
    return Pair(
        id=row.id,
        stage_id=row.stage_id,
        player1_id=row.player1_id,
        player1_name=row.player1_name,
        player2_id=row.player2_id,
        player2_name=row.player2_name,
        group_id=row.group_id,
        group_name=row.group_name,
        group_rank=row.group_rank,
        classified=row.classified,
        **_stats_of(row),
    )


def player_stats_from_row(row: PlayerStatsORM) -> PlayerStats:
    return PlayerStats(
        player_id=row.player_id,
        stage_id=row.stage_id,
        player_name=row.player_name,
        group_id=row.group_id,
        group_rank=row.group_rank,
        classified=row.classified,
        **_stats_of(row),
    )


def group_from_row(row: GroupORM) -> Group:
    return Group(
        id=row.id,
        stage_id=row.stage_id,
        name=row.name,
        order=row.order,
        pair_ids=row.pair_ids,
        total_matches=row.total_matches,
        finished_matches=row.finished_matches,
        complete=row.complete,
    )


def match_from_row(row: MatchORM) -> Match:
    return Match(
        id=row.id,
        stage_id=row.stage_id,
        pair1_id=row.pair1_id,
        pair2_id=row.pair2_id,
        pair1_name=row.pair1_name,
        pair2_name=row.pair2_name,
        kind=MatchKind(row.kind),
        group_id=row.group_id,
        group_name=row.group_name,
        phase=Phase(row.phase) if row.phase else None,
        status=MatchStatus(row.status),
        sets=[SetScore.from_dict(s) for s in row.sets],
        winner_id=row.winner_id,
        winner_name=row.winner_name,
    )


def matchup_from_row(row: MatchupORM) -> Matchup:
    score = None
    if row.score_pair1 is not None and row.score_pair2 is not None:
        score = SetScore(row.score_pair1, row.score_pair2)
    return Matchup(
        id=row.id,
        stage_id=row.stage_id,
        phase=Phase(row.phase),
        ordinal=row.ordinal,
        pair1_id=row.pair1_id,
        pair1_name=row.pair1_name,
        pair1_origin=row.pair1_origin,
        pair2_id=row.pair2_id,
        pair2_name=row.pair2_name,
        pair2_origin=row.pair2_origin,
        status=MatchupStatus(row.status),
        winner_id=row.winner_id,
        winner_name=row.winner_name,
        score=score,
        match_id=row.match_id,
    )


def partnership_from_row(row: PartnershipORM) -> Partnership:
    return Partnership(
        id=row.id,
        stage_id=row.stage_id,
        player1_id=row.player1_id,
        player1_name=row.player1_name,
        player2_id=row.player2_id,
        player2_name=row.player2_name,
        both_seeded=row.both_seeded,
    )


# ============================================================================
# Repository Pattern
# ============================================================================


class PairRepository:
    """Repository for Pair operations."""

    def __init__(self, db: DatabaseManager):
        self.db = db

    async def create_many(self, pairs: Sequence[Pair]) -> list[Pair]:
        async with self.db.session_scope() as session:
            rows = [
                PairORM(
                    stage_id=p.stage_id,
                    player1_id=p.player1_id,
                    player1_name=p.player1_name,
                    player2_id=p.player2_id,
                    player2_name=p.player2_name,
                    **_stats_of(p),
                )
                for p in pairs
            ]
            session.add_all(rows)
            await session.flush()
            return [pair_from_row(r) for r in rows]

    async def get(self, pair_id: int) -> Optional[Pair]:
        async with self.db.session_scope() as session:
            row = await session.get(PairORM, pair_id)
            return pair_from_row(row) if row else None

    async def list_by_stage(self, stage_id: int) -> list[Pair]:
        async with self.db.session_scope() as session:
            result = await session.execute(
                select(PairORM).where(PairORM.stage_id == stage_id).order_by(PairORM.id)
            )
            return [pair_from_row(r) for r in result.scalars()]

    async def list_by_group(self, group_id: int) -> list[Pair]:
        async with self.db.session_scope() as session:
            result = await session.execute(
                select(PairORM).where(PairORM.group_id == group_id).order_by(PairORM.id)
            )
            return [pair_from_row(r) for r in result.scalars()]

    async def list_top_by_group(self, group_id: int, limit: int) -> list[Pair]:
        async with self.db.session_scope() as session:
            result = await session.execute(
                select(PairORM)
                .where(PairORM.group_id == group_id, PairORM.group_rank.is_not(None))
                .order_by(PairORM.group_rank)
                .limit(limit)
            )
            return [pair_from_row(r) for r in result.scalars()]

    async def list_classified(self, stage_id: int) -> list[Pair]:
        async with self.db.session_scope() as session:
            result = await session.execute(
                select(PairORM)
                .where(PairORM.stage_id == stage_id, PairORM.classified.is_(True))
                .order_by(PairORM.id)
            )
            return [pair_from_row(r) for r in result.scalars()]

    async def apply_delta(self, pair_id: int, delta: StatDelta) -> None:
        async with self.db.session_scope() as session:
            await session.execute(
                update(PairORM).where(PairORM.id == pair_id).values(**_increment(PairORM, delta))
            )

    async def set_rank(self, pair_id: int, rank: int) -> None:
        async with self.db.session_scope() as session:
            await session.execute(update(PairORM).where(PairORM.id == pair_id).values(group_rank=rank))

    async def set_classified(self, pair_id: int, classified: bool) -> None:
        async with self.db.session_scope() as session:
            await session.execute(
                update(PairORM).where(PairORM.id == pair_id).values(classified=classified)
            )

    async def assign_groups(self, assignments: Sequence[tuple[int, int, str]]) -> None:
        async with self.db.session_scope() as session:
            for pair_id, group_id, group_name in assignments:
                await session.execute(
                    update(PairORM)
                    .where(PairORM.id == pair_id)
                    .values(group_id=group_id, group_name=group_name)
                )


class GroupRepository:
    """Repository for Group operations."""

    def __init__(self, db: DatabaseManager):
        self.db = db

    async def create_many(self, groups: Sequence[Group]) -> list[Group]:
        async with self.db.session_scope() as session:
            rows = []
            for group in groups:
                row = GroupORM(
                    stage_id=group.stage_id,
                    name=group.name,
                    order=group.order,
                    total_matches=group.total_matches,
                    finished_matches=group.finished_matches,
                    complete=group.complete,
                )
                row.pair_ids = list(group.pair_ids)
                rows.append(row)
            session.add_all(rows)
            await session.flush()
            return [group_from_row(r) for r in rows]

    async def get(self, group_id: int) -> Optional[Group]:
        async with self.db.session_scope() as session:
            row = await session.get(GroupORM, group_id)
            return group_from_row(row) if row else None

    async def list_by_stage(self, stage_id: int) -> list[Group]:
        async with self.db.session_scope() as session:
            result = await session.execute(
                select(GroupORM).where(GroupORM.stage_id == stage_id).order_by(GroupORM.order)
            )
            return [group_from_row(r) for r in result.scalars()]

    async def update_counters(
        self,
        group_id: int,
        total_matches: Optional[int] = None,
        finished_matches: Optional[int] = None,
    ) -> None:
        values = {}
        if total_matches is not None:
            values["total_matches"] = total_matches
        if finished_matches is not None:
            values["finished_matches"] = finished_matches
        if not values:
            return
        async with self.db.session_scope() as session:
            await session.execute(update(GroupORM).where(GroupORM.id == group_id).values(**values))

    async def set_complete(self, group_id: int, complete: bool) -> None:
        async with self.db.session_scope() as session:
            await session.execute(update(GroupORM).where(GroupORM.id == group_id).values(complete=complete))


class MatchRepository:
    """Repository for Match operations."""

    def __init__(self, db: DatabaseManager):
        self.db = db

    @staticmethod
    def _row(match: Match) -> MatchORM:
        row = MatchORM(
            stage_id=match.stage_id,
            kind=match.kind.value,
            group_id=match.group_id,
            group_name=match.group_name,
            phase=match.phase.value if match.phase else None,
            pair1_id=match.pair1_id,
            pair1_name=match.pair1_name,
            pair2_id=match.pair2_id,
            pair2_name=match.pair2_name,
            status=match.status.value,
            winner_id=match.winner_id,
            winner_name=match.winner_name,
        )
        row.sets = [s.to_dict() for s in match.sets]
        return row

    async def create(self, match: Match) -> Match:
        created = await self.create_many([match])
        return created[0]

    async def create_many(self, matches: Sequence[Match]) -> list[Match]:
        async with self.db.session_scope() as session:
            rows = [self._row(m) for m in matches]
            session.add_all(rows)
            await session.flush()
            return [match_from_row(r) for r in rows]

    async def get(self, match_id: int) -> Optional[Match]:
        async with self.db.session_scope() as session:
            row = await session.get(MatchORM, match_id)
            return match_from_row(row) if row else None

    async def list_by_group(self, group_id: int) -> list[Match]:
        async with self.db.session_scope() as session:
            result = await session.execute(
                select(MatchORM).where(MatchORM.group_id == group_id).order_by(MatchORM.id)
            )
            return [match_from_row(r) for r in result.scalars()]

    async def list_finished_by_group(self, group_id: int) -> list[Match]:
        async with self.db.session_scope() as session:
            result = await session.execute(
                select(MatchORM)
                .where(
                    MatchORM.group_id == group_id,
                    MatchORM.status == MatchStatus.FINISHED.value,
                )
                .order_by(MatchORM.id)
            )
            return [match_from_row(r) for r in result.scalars()]

    async def list_by_stage(self, stage_id: int, kind: Optional[MatchKind] = None) -> list[Match]:
        query = select(MatchORM).where(MatchORM.stage_id == stage_id)
        if kind is not None:
            query = query.where(MatchORM.kind == kind.value)
        async with self.db.session_scope() as session:
            result = await session.execute(query.order_by(MatchORM.id))
            return [match_from_row(r) for r in result.scalars()]

    async def record_result(
        self,
        match_id: int,
        sets: Sequence[SetScore],
        winner_id: int,
        winner_name: str,
    ) -> None:
        async with self.db.session_scope() as session:
            await session.execute(
                update(MatchORM)
                .where(MatchORM.id == match_id)
                .values(
                    sets_json=json.dumps([s.to_dict() for s in sets]),
                    winner_id=winner_id,
                    winner_name=winner_name,
                    status=MatchStatus.FINISHED.value,
                )
            )

    async def delete(self, match_id: int) -> None:
        await self.delete_many([match_id])

    async def delete_many(self, match_ids: Sequence[int]) -> None:
        if not match_ids:
            return
        async with self.db.session_scope() as session:
            await session.execute(delete(MatchORM).where(MatchORM.id.in_(list(match_ids))))


class MatchupRepository:
    """Repository for knockout Matchup operations."""

    def __init__(self, db: DatabaseManager):
        self.db = db

    async def create(self, matchup: Matchup) -> Matchup:
        async with self.db.session_scope() as session:
            row = MatchupORM(
                stage_id=matchup.stage_id,
                phase=matchup.phase.value,
                ordinal=matchup.ordinal,
                pair1_id=matchup.pair1_id,
                pair1_name=matchup.pair1_name,
                pair1_origin=matchup.pair1_origin,
                pair2_id=matchup.pair2_id,
                pair2_name=matchup.pair2_name,
                pair2_origin=matchup.pair2_origin,
                status=matchup.status.value,
                winner_id=matchup.winner_id,
                winner_name=matchup.winner_name,
                score_pair1=matchup.score.games_pair1 if matchup.score else None,
                score_pair2=matchup.score.games_pair2 if matchup.score else None,
                match_id=matchup.match_id,
            )
            session.add(row)
            await session.flush()
            return matchup_from_row(row)

    async def get(self, matchup_id: int, stage_id: int) -> Optional[Matchup]:
        async with self.db.session_scope() as session:
            result = await session.execute(
                select(MatchupORM).where(MatchupORM.id == matchup_id, MatchupORM.stage_id == stage_id)
            )
            row = result.scalar_one_or_none()
            return matchup_from_row(row) if row else None

    async def list_by_stage(self, stage_id: int) -> list[Matchup]:
        async with self.db.session_scope() as session:
            result = await session.execute(
                select(MatchupORM).where(MatchupORM.stage_id == stage_id).order_by(MatchupORM.ordinal)
            )
            matchups = [matchup_from_row(r) for r in result.scalars()]
        matchups.sort(key=lambda m: (PHASE_ORDER[m.phase], m.ordinal))
        return matchups

    async def list_by_phase(self, stage_id: int, phase: Phase) -> list[Matchup]:
        async with self.db.session_scope() as session:
            result = await session.execute(
                select(MatchupORM)
                .where(MatchupORM.stage_id == stage_id, MatchupORM.phase == phase.value)
                .order_by(MatchupORM.ordinal)
            )
            return [matchup_from_row(r) for r in result.scalars()]

    async def record_result(
        self,
        matchup_id: int,
        winner_id: int,
        winner_name: str,
        score: Optional[SetScore] = None,
        match_id: Optional[int] = None,
        bye: bool = False,
    ) -> None:
        status = MatchupStatus.BYE if bye else MatchupStatus.FINISHED
        async with self.db.session_scope() as session:
            await session.execute(
                update(MatchupORM)
                .where(MatchupORM.id == matchup_id)
                .values(
                    status=status.value,
                    winner_id=winner_id,
                    winner_name=winner_name,
                    score_pair1=score.games_pair1 if score else None,
                    score_pair2=score.games_pair2 if score else None,
                    match_id=match_id,
                )
            )

    async def update_slots(self, matchup_id, pair1, pair2) -> None:
        async with self.db.session_scope() as session:
            await session.execute(
                update(MatchupORM)
                .where(MatchupORM.id == matchup_id)
                .values(
                    pair1_id=pair1[0],
                    pair1_name=pair1[1],
                    pair1_origin=pair1[2],
                    pair2_id=pair2[0],
                    pair2_name=pair2[1],
                    pair2_origin=pair2[2],
                )
            )

    async def clear_result(self, matchup_id: int) -> None:
        async with self.db.session_scope() as session:
            await session.execute(
                update(MatchupORM)
                .where(MatchupORM.id == matchup_id)
                .values(
                    status=MatchupStatus.SCHEDULED.value,
                    winner_id=None,
                    winner_name=None,
                    score_pair1=None,
                    score_pair2=None,
                    match_id=None,
                )
            )

    async def delete_by_stage(self, stage_id: int) -> None:
        async with self.db.session_scope() as session:
            await session.execute(delete(MatchupORM).where(MatchupORM.stage_id == stage_id))


class PlayerStatsRepository:
    """Repository for per-stage player aggregates."""

    def __init__(self, db: DatabaseManager):
        self.db = db

    @staticmethod
    async def _ensure_row(session, player_id: int, stage_id: int, player_name: str = "") -> PlayerStatsORM:
        row = await session.get(PlayerStatsORM, (player_id, stage_id))
        if row is None:
            row = PlayerStatsORM(
                player_id=player_id,
                stage_id=stage_id,
                player_name=player_name,
                **{name: 0 for name in STAT_FIELDS},
            )
            session.add(row)
            await session.flush()
        elif player_name and not row.player_name:
            row.player_name = player_name
        return row

    async def get(self, player_id: int, stage_id: int) -> Optional[PlayerStats]:
        async with self.db.session_scope() as session:
            row = await session.get(PlayerStatsORM, (player_id, stage_id))
            return player_stats_from_row(row) if row else None

    async def ensure(self, player_id: int, stage_id: int, player_name: str = "") -> PlayerStats:
        async with self.db.session_scope() as session:
            row = await self._ensure_row(session, player_id, stage_id, player_name)
            return player_stats_from_row(row)

    async def apply_delta(self, player_id: int, stage_id: int, delta: StatDelta) -> None:
        await self.apply_deltas(stage_id, [(player_id, delta)])

    async def apply_deltas(self, stage_id: int, deltas: Sequence[tuple[int, StatDelta]]) -> None:
        async with self.db.session_scope() as session:
            for player_id, delta in deltas:
                await self._ensure_row(session, player_id, stage_id)
                await session.execute(
                    update(PlayerStatsORM)
                    .where(PlayerStatsORM.player_id == player_id, PlayerStatsORM.stage_id == stage_id)
                    .values(**_increment(PlayerStatsORM, delta))
                    .execution_options(synchronize_session=False)
                )

    async def set_group(self, player_ids: Sequence[int], stage_id: int, group_id: int) -> None:
        async with self.db.session_scope() as session:
            for player_id in player_ids:
                row = await self._ensure_row(session, player_id, stage_id)
                row.group_id = group_id

    async def set_group_rank(self, player_id: int, stage_id: int, rank: int) -> None:
        async with self.db.session_scope() as session:
            row = await self._ensure_row(session, player_id, stage_id)
            row.group_rank = rank

    async def set_classified_many(self, player_ids: Sequence[int], stage_id: int, classified: bool) -> None:
        async with self.db.session_scope() as session:
            for player_id in player_ids:
                row = await self._ensure_row(session, player_id, stage_id)
                row.classified = classified


class PartnershipRepository:
    """Repository for the partnership history."""

    def __init__(self, db: DatabaseManager):
        self.db = db

    async def record_many(self, partnerships: Sequence[Partnership]) -> list[Partnership]:
        if not partnerships:
            return []
        stage_ids = sorted({p.stage_id for p in partnerships})
        async with self.db.session_scope() as session:
            result = await session.execute(
                select(PartnershipORM.stage_id, PartnershipORM.key_low, PartnershipORM.key_high).where(
                    PartnershipORM.stage_id.in_(stage_ids)
                )
            )
            taken = {(stage_id, (low, high)) for stage_id, low, high in result}

            rows = []
            for p in partnerships:
                if (p.stage_id, p.key) in taken:
                    continue
                taken.add((p.stage_id, p.key))
                rows.append(
                    PartnershipORM(
                        stage_id=p.stage_id,
                        player1_id=p.player1_id,
                        player1_name=p.player1_name,
                        player2_id=p.player2_id,
                        player2_name=p.player2_name,
                        key_low=p.key[0],
                        key_high=p.key[1],
                        both_seeded=p.both_seeded,
                    )
                )
            session.add_all(rows)
            await session.flush()
            return [partnership_from_row(r) for r in rows]

    async def list_by_stage(self, stage_id: int) -> list[Partnership]:
        async with self.db.session_scope() as session:
            result = await session.execute(
                select(PartnershipORM).where(PartnershipORM.stage_id == stage_id).order_by(PartnershipORM.id)
            )
            return [partnership_from_row(r) for r in result.scalars()]

    async def seeded_keys(self) -> set[tuple[int, int]]:
        async with self.db.session_scope() as session:
            result = await session.execute(
                select(PartnershipORM.key_low, PartnershipORM.key_high).where(PartnershipORM.both_seeded.is_(True))
            )
            return {(low, high) for low, high in result}


class SQLBackend:
    """All repositories sharing one DatabaseManager."""

    def __init__(self, db: DatabaseManager):
        self.db = db
        self.pairs = PairRepository(db)
        self.groups = GroupRepository(db)
        self.matches = MatchRepository(db)
        self.matchups = MatchupRepository(db)
        self.player_stats = PlayerStatsRepository(db)
        self.partnerships = PartnershipRepository(db)
