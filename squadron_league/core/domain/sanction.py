"""Sanction model."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

MAX_DESCRIPTION_LENGTH = 500


class SanctionType(Enum):
    POSITION_PENALTY = "position_penalty"
    POINT_DEDUCTION = "point_deduction"
    DISQUALIFICATION = "disqualification"
    WARNING = "warning"


@dataclass(frozen=True)
class Sanction:
    """A penalty applied by an organizer to a driver in one event's race.

    Sanctions are immutable. Their effects on the pilot's fair racing score
    and the pilot notification are deferred until the event is finalized.

    Attributes:
        id: Sanction identifier.
        event_id: Event the sanction belongs to.
        driver_name: Name as it appears in the race result.
        pilot_id: Account the driver name resolved to.
        sanction_type: Kind of sanction.
        description: Reason given by the organizer.
        position_penalty: Places the driver drops, for position penalties.
        points_penalty: Fair racing points deducted at finalize time.
        applied_by: Organizer who applied it.
        applied_at: When it was applied.
        race_session_id: Race the sanction refers to.
        identity_confidence: Confidence of the driver-name resolution.
    """

    id: str
    event_id: str
    driver_name: str
    pilot_id: str
    sanction_type: SanctionType
    description: str
    applied_by: str
    applied_at: datetime
    position_penalty: int | None = None
    points_penalty: int | None = None
    race_session_id: str | None = None
    identity_confidence: float = 1.0
