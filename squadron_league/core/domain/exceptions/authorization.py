"""Authorization exceptions for Squadron League."""

from .base import LeagueError


class AuthorizationError(LeagueError):
    """Caller lacks the capability or ownership required for the operation."""

    error_code = "LG_AUTH_001"
