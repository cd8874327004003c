"""Data models for pairbracket.

Domain model hierarchy:
- A Stage contains Pairs, Groups (round robin) and Matchups (knockout)
- Group contains Pairs and Matches
- Match contains SetScores
- Matchup references up to two Pairs and, once played, one knockout Match
- Each Player keeps a per-stage aggregate (PlayerStats) mirroring its Pair
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class Phase(str, Enum):
    """Knockout phases, in playing order."""

    ROUND_OF_16 = "R16"
    QUARTERFINAL = "QF"
    SEMIFINAL = "SF"
    FINAL = "F"


class MatchStatus(str, Enum):
    """Match status."""

    SCHEDULED = "scheduled"
    FINISHED = "finished"


class MatchupStatus(str, Enum):
    """Knockout matchup status.

    BYE is terminal from creation and already carries a winner.
    """

    BYE = "bye"
    SCHEDULED = "scheduled"
    FINISHED = "finished"


class MatchKind(str, Enum):
    """Which stage a match record belongs to."""

    GROUP = "group"
    KNOCKOUT = "knockout"


# ============================================================================
# Scores and aggregate deltas
# ============================================================================


@dataclass(frozen=True)
class SetScore:
    """Games won by each pair in one set."""

    games_pair1: int
    games_pair2: int

    @property
    def winner_side(self) -> int:
        """Return 1 or 2 for the side that won the set."""
        return 1 if self.games_pair1 > self.games_pair2 else 2

    def to_dict(self) -> dict:
        return {"games_pair1": self.games_pair1, "games_pair2": self.games_pair2}

    @classmethod
    def from_dict(cls, data: dict) -> "SetScore":
        return cls(int(data["games_pair1"]), int(data["games_pair2"]))

    def __str__(self) -> str:
        return f"{self.games_pair1}-{self.games_pair2}"


@dataclass(frozen=True)
class StatDelta:
    """Signed change to a pair or player aggregate caused by one match.

    Applying a delta and then its negation restores the aggregate exactly.
    """

    played: int = 0
    wins: int = 0
    losses: int = 0
    points: int = 0
    sets_won: int = 0
    sets_lost: int = 0
    games_won: int = 0
    games_lost: int = 0

    @property
    def set_diff(self) -> int:
        return self.sets_won - self.sets_lost

    @property
    def game_diff(self) -> int:
        return self.games_won - self.games_lost

    def negated(self) -> "StatDelta":
        """Return the delta that undoes this one."""
        return StatDelta(**{name: -value for name, value in self.as_dict().items()})

    def as_dict(self) -> dict[str, int]:
        return {
            "played": self.played,
            "wins": self.wins,
            "losses": self.losses,
            "points": self.points,
            "sets_won": self.sets_won,
            "sets_lost": self.sets_lost,
            "games_won": self.games_won,
            "games_lost": self.games_lost,
        }

    def __add__(self, other: "StatDelta") -> "StatDelta":
        mine = self.as_dict()
        theirs = other.as_dict()
        return StatDelta(**{name: mine[name] + theirs[name] for name in mine})


STAT_FIELDS = tuple(StatDelta().as_dict().keys())


@dataclass
class Aggregate:
    """Running counters shared by pairs and player stats."""

    played: int = 0
    wins: int = 0
    losses: int = 0
    points: int = 0
    sets_won: int = 0
    sets_lost: int = 0
    games_won: int = 0
    games_lost: int = 0

    @property
    def set_diff(self) -> int:
        """Sets won minus sets lost."""
        return self.sets_won - self.sets_lost

    @property
    def game_diff(self) -> int:
        """Games won minus games lost."""
        return self.games_won - self.games_lost

    def apply(self, delta: StatDelta) -> None:
        """Add a signed delta in place."""
        for name, value in delta.as_dict().items():
            setattr(self, name, getattr(self, name) + value)

    def stats(self) -> StatDelta:
        """Snapshot of the counters as a delta from zero."""
        return StatDelta(**{name: getattr(self, name) for name in STAT_FIELDS})


# ============================================================================
# Core Domain Models
# ============================================================================


@dataclass
class Pair(Aggregate):
    """A two-player team competing as a unit within one stage."""

    id: int = 0
    stage_id: int = 0
    player1_id: int = 0
    player1_name: str = ""
    player2_id: int = 0
    player2_name: str = ""
    group_id: Optional[int] = None
    group_name: Optional[str] = None
    group_rank: Optional[int] = None
    classified: bool = False

    @property
    def name(self) -> str:
        """Display name, e.g. "Ana & Bia"."""
        return f"{self.player1_name} & {self.player2_name}"

    @property
    def player_ids(self) -> tuple[int, int]:
        return (self.player1_id, self.player2_id)

    def has_player(self, player_ids) -> bool:
        """True if either player is in the given collection."""
        return self.player1_id in player_ids or self.player2_id in player_ids

    def __str__(self) -> str:
        rank = f"#{self.group_rank} " if self.group_rank else ""
        return f"{rank}{self.name}: {self.points}pts {self.wins}W-{self.losses}L"


@dataclass
class PlayerStats(Aggregate):
    """Individual aggregate of one player within one stage.

    Mirrors the aggregate of the pair the player belongs to.
    """

    player_id: int = 0
    stage_id: int = 0
    player_name: str = ""
    group_id: Optional[int] = None
    group_rank: Optional[int] = None
    classified: bool = False


@dataclass(frozen=True)
class Registration:
    """A player entered individually into a stage, before pairs are formed."""

    player_id: int
    player_name: str
    seeded: bool = False


@dataclass
class Partnership:
    """Record of two players having formed a pair in a stage.

    ``key`` is order independent, so (3, 8) and (8, 3) are the same partnership.
    """

    stage_id: int
    player1_id: int
    player1_name: str
    player2_id: int
    player2_name: str
    both_seeded: bool = False
    id: int = 0

    @property
    def key(self) -> tuple[int, int]:
        return partnership_key(self.player1_id, self.player2_id)


def partnership_key(player_a: int, player_b: int) -> tuple[int, int]:
    """Normalized (low, high) id tuple of two partners."""
    return (player_a, player_b) if player_a <= player_b else (player_b, player_a)


@dataclass
class Group:
    """A round-robin group."""

    id: int
    stage_id: int
    name: str  # "Group A", "Group B", ...
    order: int  # 1-based draw order
    pair_ids: list[int] = field(default_factory=list)
    total_matches: int = 0
    finished_matches: int = 0
    complete: bool = False

    @property
    def size(self) -> int:
        """Number of pairs in the group."""
        return len(self.pair_ids)

    def __str__(self) -> str:
        return f"{self.name} ({self.size} pairs, {self.finished_matches}/{self.total_matches})"


@dataclass
class Match:
    """A game between two pairs.

    Group matches are created in a batch at draw time; knockout matches are
    created when a matchup result is first recorded.
    """

    id: int
    stage_id: int
    pair1_id: int
    pair2_id: int
    pair1_name: str = ""
    pair2_name: str = ""
    kind: MatchKind = MatchKind.GROUP
    group_id: Optional[int] = None
    group_name: Optional[str] = None
    phase: Optional[Phase] = None
    status: MatchStatus = MatchStatus.SCHEDULED
    sets: list[SetScore] = field(default_factory=list)
    winner_id: Optional[int] = None
    winner_name: Optional[str] = None

    @property
    def is_finished(self) -> bool:
        return self.status == MatchStatus.FINISHED

    @property
    def pair1_sets_won(self) -> int:
        return sum(1 for s in self.sets if s.winner_side == 1)

    @property
    def pair2_sets_won(self) -> int:
        return sum(1 for s in self.sets if s.winner_side == 2)

    def involves(self, pair_a: int, pair_b: int) -> bool:
        """True if this match is between the two given pairs."""
        return {self.pair1_id, self.pair2_id} == {pair_a, pair_b}

    def __str__(self) -> str:
        score = f"{self.pair1_sets_won}-{self.pair2_sets_won}" if self.sets else "vs"
        return f"Match {self.id}: {self.pair1_name} {score} {self.pair2_name}"


@dataclass
class Matchup:
    """One knockout bracket slot between two pairs (or pending origins)."""

    id: int
    stage_id: int
    phase: Phase
    ordinal: int  # 1-based position within the phase
    pair1_id: Optional[int] = None
    pair1_name: Optional[str] = None
    pair1_origin: Optional[str] = None  # "1st Group A", "Winner QF 2"
    pair2_id: Optional[int] = None
    pair2_name: Optional[str] = None
    pair2_origin: Optional[str] = None
    status: MatchupStatus = MatchupStatus.SCHEDULED
    winner_id: Optional[int] = None
    winner_name: Optional[str] = None
    score: Optional[SetScore] = None
    match_id: Optional[int] = None

    @property
    def is_decided(self) -> bool:
        """Finished or BYE: the matchup already has a winner."""
        return self.status in (MatchupStatus.FINISHED, MatchupStatus.BYE)

    @property
    def has_both_pairs(self) -> bool:
        return self.pair1_id is not None and self.pair2_id is not None

    @property
    def label(self) -> str:
        """Short label such as "QF 2"."""
        return f"{self.phase.value} {self.ordinal}"

    def __str__(self) -> str:
        left = self.pair1_name or self.pair1_origin or "TBD"
        if self.status == MatchupStatus.BYE:
            return f"{self.label}: {left} (BYE)"
        right = self.pair2_name or self.pair2_origin or "TBD"
        score = f" {self.score}" if self.score else ""
        return f"{self.label}: {left} x {right}{score}"


# ============================================================================
# Result Models
# ============================================================================


@dataclass
class ResultSubmission:
    """Input model for one item of a batch result submission."""

    match_id: int
    sets: list[SetScore]


@dataclass
class BatchItemError:
    """A batch item that could not be processed."""

    match_id: int
    error: str


@dataclass
class BatchOutcome:
    """Summary returned by a batch result submission."""

    processed_count: int = 0
    errors: list[BatchItemError] = field(default_factory=list)
    recomputed_group_ids: list[int] = field(default_factory=list)
