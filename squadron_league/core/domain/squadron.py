"""Squadron, pilot directory and points audit models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


@dataclass
class Squadron:
    """A persistent team accumulating points across events.

    ``initial_points`` is the total at creation; the points history of a
    squadron always sums to ``total_points - initial_points``.
    """

    id: str
    name: str
    total_points: int = 0
    initial_points: int = 0
    created_at: datetime | None = None


@dataclass
class Pilot:
    """A registered pilot account and its linked timing-system names."""

    pilot_id: str
    display_name: str
    karting_driver_name: str | None = None
    aliases: list[str] = field(default_factory=list)
    squadron_id: str | None = None


class ChangeType(Enum):
    RACE_EVENT = "race_event"
    MANUAL_ADJUSTMENT = "manual_adjustment"
    PENALTY = "penalty"
    BONUS = "bonus"
    REVERT = "revert"


@dataclass(frozen=True)
class PointsHistoryEntry:
    """Append-only audit record of one change to a squadron's total."""

    id: str
    squadron_id: str
    event_id: str | None
    points_change: int
    previous_total: int
    new_total: int
    reason: str
    change_type: ChangeType
    modified_by: str
    timestamp: datetime
    metadata: dict[str, Any] = field(default_factory=dict)
