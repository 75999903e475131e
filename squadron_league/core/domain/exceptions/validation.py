"""Validation exceptions for Squadron League."""

from .base import LeagueError


class ValidationError(LeagueError):
    """Input validation failed."""

    error_code = "LG_VAL_001"


class InvalidKartNumberError(ValidationError):
    """Kart number is outside the allowed range."""

    error_code = "LG_VAL_002"


class InvalidScheduleError(ValidationError):
    """Registration deadline does not precede the event date."""

    error_code = "LG_VAL_003"
