"""Application services for the league core.

Leaves first:

- FairRacingScoreLedger: per-pilot reputation
- SanctionRegistry: penalties attached to an event's race
- RosterManager: registrations, invitations and kart slots
- ScoringEngine: pure race-to-squadron scoring
- PointsLedger: squadron totals with an audit trail
- EventLifecycle: state machines and finalization
"""

from .event_lifecycle import TRANSITIONS, EventLifecycle
from .fair_racing_ledger import FairRacingScoreLedger
from .points_ledger import PointsLedger
from .roster_manager import RosterManager
from .sanction_registry import SanctionRegistry
from .scoring_engine import ScoringEngine

__all__ = [
    "TRANSITIONS",
    "EventLifecycle",
    "FairRacingScoreLedger",
    "PointsLedger",
    "RosterManager",
    "SanctionRegistry",
    "ScoringEngine",
]
