"""Domain models for Squadron League.

This package contains the data models shared by services and adapters:

- event: Event, Participation, Invitation and the category table
- results: raw race results, resolved entries and scoring output
- sanction: Sanction records
- squadron: Squadron, Pilot directory entries and the points audit trail
- fair_racing: FairRacingScore with incidents and recognitions
- caller: Caller and Capability flags

All models are re-exported here for convenient importing:

    from squadron_league.core.domain import Event, SquadronResult
"""

from .caller import Caller, Capability
from .event import (
    CATEGORY_CONFIG,
    MAX_KART_NUMBER,
    MIN_KART_NUMBER,
    CategoryConfig,
    ConfirmedPilot,
    Event,
    EventCategory,
    EventStatus,
    Invitation,
    InvitationStatus,
    Participation,
    ParticipationStatus,
    RaceProcessingState,
    validate_kart_number,
)
from .fair_racing import (
    DEFAULT_INITIAL_SCORE,
    AdjustmentKind,
    FairRacingScore,
    Incident,
    IncidentCategory,
    IncidentStatus,
    Recognition,
    RecognitionType,
    ScoreAdjustment,
)
from .results import (
    AdjustedResult,
    CalculatedResults,
    PilotResult,
    RaceEntry,
    RawRaceResult,
    SquadronResult,
)
from .sanction import Sanction, SanctionType
from .squadron import ChangeType, Pilot, PointsHistoryEntry, Squadron

__all__ = [
    # Caller
    "Caller",
    "Capability",
    # Event models
    "CATEGORY_CONFIG",
    "MIN_KART_NUMBER",
    "MAX_KART_NUMBER",
    "CategoryConfig",
    "ConfirmedPilot",
    "Event",
    "EventCategory",
    "EventStatus",
    "Invitation",
    "InvitationStatus",
    "Participation",
    "ParticipationStatus",
    "RaceProcessingState",
    "validate_kart_number",
    # Fair racing models
    "DEFAULT_INITIAL_SCORE",
    "AdjustmentKind",
    "FairRacingScore",
    "Incident",
    "IncidentCategory",
    "IncidentStatus",
    "Recognition",
    "RecognitionType",
    "ScoreAdjustment",
    # Result models
    "AdjustedResult",
    "CalculatedResults",
    "PilotResult",
    "RaceEntry",
    "RawRaceResult",
    "SquadronResult",
    # Sanctions
    "Sanction",
    "SanctionType",
    # Squadrons
    "ChangeType",
    "Pilot",
    "PointsHistoryEntry",
    "Squadron",
]
