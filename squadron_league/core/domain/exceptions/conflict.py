"""Conflict exceptions for concurrent or duplicate operations."""

from .base import LeagueError


class ConflictError(LeagueError):
    """Operation conflicts with the current stored data."""

    error_code = "LG_CON_001"


class CapacityExceededError(ConflictError):
    """Event or squadron roster is full."""

    error_code = "LG_CON_002"


class KartUnavailableError(ConflictError):
    """Kart number is already held by a confirmed or pending slot."""

    error_code = "LG_CON_003"


class DuplicateInvitationError(ConflictError):
    """Pilot already has a live invitation or a confirmed slot for the event."""

    error_code = "LG_CON_004"


class AlreadyFinalizedError(ConflictError):
    """Event results were already finalized."""

    error_code = "LG_CON_005"


class StaleWriteError(ConflictError):
    """A compare-and-swap write lost against a concurrent update."""

    error_code = "LG_CON_006"
