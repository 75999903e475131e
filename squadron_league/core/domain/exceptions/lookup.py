"""Lookup exceptions raised when a referenced entity does not exist."""

from .base import LeagueError


class NotFoundError(LeagueError):
    """Base exception for missing entities."""

    error_code = "LG_NF_001"


class EventNotFoundError(NotFoundError):
    """Event does not exist."""

    error_code = "LG_NF_002"


class SquadronNotFoundError(NotFoundError):
    """Squadron does not exist or is not registered for the event."""

    error_code = "LG_NF_003"


class InvitationNotFoundError(NotFoundError):
    """Invitation token is unknown."""

    error_code = "LG_NF_004"


class SanctionNotFoundError(NotFoundError):
    """Sanction does not exist."""

    error_code = "LG_NF_005"


class PilotNotFoundError(NotFoundError):
    """Driver name or pilot id could not be resolved to an account."""

    error_code = "LG_NF_006"


class RaceSessionNotFoundError(NotFoundError):
    """Race session is unknown to the race-result provider."""

    error_code = "LG_NF_007"


class IncidentNotFoundError(NotFoundError):
    """Incident id is not on the pilot's fair racing record."""

    error_code = "LG_NF_008"
