"""Exception taxonomy for the progression engine.

Single-item operations let these propagate unchanged; the batch result
submission catches them per item.
"""


class TournamentError(Exception):
    """Base class for every error raised by the engine."""

    pass


# ----------------------------------------------------------------------------
# Validation
# ----------------------------------------------------------------------------


class ValidationError(TournamentError):
    """Raised when input or preconditions are invalid."""

    pass


class InvalidScoreError(ValidationError):
    """Raised when a submitted score is malformed."""

    pass


class GroupCountError(ValidationError):
    """Raised when the number of groups does not fit a bracket template."""

    pass


class IncompleteGroupsError(ValidationError):
    """Raised when a bracket is requested while groups still have matches."""

    def __init__(self, group_names: list[str]):
        self.group_names = list(group_names)
        super().__init__(
            "Cannot build the knockout bracket: the following groups still have "
            f"pending matches: {', '.join(self.group_names)}"
        )


# ----------------------------------------------------------------------------
# Lookup / state
# ----------------------------------------------------------------------------


class NotFoundError(TournamentError):
    """Raised when a match, pair, matchup or stage does not exist."""

    pass


class ConflictError(TournamentError):
    """Raised when the current state forbids the operation."""

    pass


class BracketLockedError(ConflictError):
    """Raised when a group result changes after the bracket was built."""

    pass


class ConsistencyError(TournamentError):
    """Raised when an internal invariant does not hold."""

    pass


class DistributionError(ConsistencyError):
    """Raised when the group draw does not place every pair exactly once."""

    pass


# ----------------------------------------------------------------------------
# Storage
# ----------------------------------------------------------------------------


class StoreError(TournamentError):
    """Opaque failure bubbled up from a store implementation."""

    pass


class CreationFailure(StoreError):
    """Raised when groups or matches could not be persisted.

    The original store exception is available as ``__cause__``.
    """

    pass
