"""Custom exception hierarchy for Squadron League.

One module per error family. The family in each error code (VAL, AUTH, NF,
CON, STA, SRC) decides the HTTP status the API answers with.

Import from this package directly:

    from squadron_league.core.domain.exceptions import LeagueError, StateError
"""

# Base classes
from .authorization import AuthorizationError
from .base import ENTITY_KEYS, ErrorFamily, LeagueError, RaiseSite

# Conflict exceptions
from .conflict import (
    AlreadyFinalizedError,
    CapacityExceededError,
    ConflictError,
    DuplicateInvitationError,
    KartUnavailableError,
    StaleWriteError,
)

# Data source exceptions
from .data_source import DataSourceError, RaceResultUnavailableError

# Lookup exceptions
from .lookup import (
    EventNotFoundError,
    IncidentNotFoundError,
    InvitationNotFoundError,
    NotFoundError,
    PilotNotFoundError,
    RaceSessionNotFoundError,
    SanctionNotFoundError,
    SquadronNotFoundError,
)

# State exceptions
from .state import InvitationExpiredError, StateError

# Validation exceptions
from .validation import InvalidKartNumberError, InvalidScheduleError, ValidationError

__all__ = [
    # Base
    "ENTITY_KEYS",
    "ErrorFamily",
    "RaiseSite",
    "LeagueError",
    # Validation
    "ValidationError",
    "InvalidKartNumberError",
    "InvalidScheduleError",
    # Authorization
    "AuthorizationError",
    # Lookup
    "NotFoundError",
    "EventNotFoundError",
    "SquadronNotFoundError",
    "InvitationNotFoundError",
    "SanctionNotFoundError",
    "PilotNotFoundError",
    "RaceSessionNotFoundError",
    "IncidentNotFoundError",
    # Conflict
    "ConflictError",
    "CapacityExceededError",
    "KartUnavailableError",
    "DuplicateInvitationError",
    "AlreadyFinalizedError",
    "StaleWriteError",
    # State
    "StateError",
    "InvitationExpiredError",
    # Data source
    "DataSourceError",
    "RaceResultUnavailableError",
]
