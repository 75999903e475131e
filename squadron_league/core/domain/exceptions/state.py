"""Lifecycle state exceptions."""

from .base import LeagueError


class StateError(LeagueError):
    """Operation is invalid for the entity's current lifecycle state."""

    error_code = "LG_STA_001"


class InvitationExpiredError(StateError):
    """Invitation is past its expiry time."""

    error_code = "LG_STA_002"
