"""Fair racing score: a bounded per-pilot reputation metric.

The score starts at 85 and moves by three kinds of delta: penalties from
approved incidents, recognitions, and +1 recoveries for clean races. Each
delta is clamped into [0, 100] as it is applied, so the order of operations
determines the final score. Every applied delta is recorded in
``adjustments``, which is append-only.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from .exceptions import IncidentNotFoundError, StateError, ValidationError

MIN_SCORE = 0
MAX_SCORE = 100
DEFAULT_INITIAL_SCORE = 85
MAX_INCIDENT_DEDUCTION = 30
MIN_RECOGNITION_POINTS = 3
MAX_RECOGNITION_POINTS = 5
CLEAN_RACE_RECOVERY = 1


class IncidentCategory(Enum):
    AGGRESSIVE_DRIVING = "aggressive-driving"
    EXCESSIVE_BLOCKING = "excessive-blocking"
    AVOIDABLE_CONTACT = "avoidable-contact"
    UNSPORTSMANLIKE = "unsportsmanlike"
    EXPLOIT_ABUSE = "exploit-abuse"


class IncidentStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class RecognitionType(Enum):
    FAIR_RACING_EXCEPTIONAL = "fair-racing-exceptional"
    SPORTSMANSHIP_OUTSTANDING = "sportsmanship-outstanding"


class AdjustmentKind(Enum):
    PENALTY = "penalty"
    RECOGNITION = "recognition"
    CLEAN_RACE_RECOVERY = "clean_race_recovery"


@dataclass
class Incident:
    """A reported incident. Only approved incidents affect the score."""

    incident_id: str
    event_id: str
    category: IncidentCategory
    severity: int
    points_deducted: int
    reported_by: str
    description: str
    date: datetime
    status: IncidentStatus = IncidentStatus.PENDING
    moderator_id: str | None = None
    video_evidence: str | None = None


@dataclass(frozen=True)
class Recognition:
    recognition_id: str
    event_id: str
    recognition_type: RecognitionType
    points_awarded: int
    observer_id: str
    date: datetime
    description: str = ""


@dataclass(frozen=True)
class ScoreAdjustment:
    """One applied delta.

    Attributes:
        kind: What produced the delta.
        requested: Delta asked for (negative for penalties).
        applied: Delta actually applied after clamping.
        score_after: Score once the delta was applied.
        reference: Incident, recognition or event id the delta came from.
        at: When it was applied.
    """

    kind: AdjustmentKind
    requested: int
    applied: int
    score_after: int
    reference: str | None
    at: datetime


def _clamp(value: int) -> int:
    return max(MIN_SCORE, min(MAX_SCORE, value))


@dataclass
class FairRacingScore:
    """Reputation record for a single pilot."""

    pilot_id: str
    current_score: int = DEFAULT_INITIAL_SCORE
    initial_score: int = DEFAULT_INITIAL_SCORE
    incidents: list[Incident] = field(default_factory=list)
    recognitions: list[Recognition] = field(default_factory=list)
    adjustments: list[ScoreAdjustment] = field(default_factory=list)
    total_races_clean: int = 0
    recovery_progress: int = 0
    last_race_date: datetime | None = None
    version: int = 0

    def _apply(
        self, kind: AdjustmentKind, delta: int, reference: str | None, at: datetime
    ) -> ScoreAdjustment:
        before = self.current_score
        self.current_score = _clamp(before + delta)
        adjustment = ScoreAdjustment(
            kind=kind,
            requested=delta,
            applied=self.current_score - before,
            score_after=self.current_score,
            reference=reference,
            at=at,
        )
        self.adjustments.append(adjustment)
        return adjustment

    def apply_penalty(
        self, points: int, at: datetime, reference: str | None = None
    ) -> ScoreAdjustment:
        """Subtract ``points``, never going below zero."""
        if points < 0:
            raise ValidationError("Penalty points must be non-negative", context={"points": points})
        return self._apply(AdjustmentKind.PENALTY, -points, reference, at)

    def award_recognition(
        self, points: int, at: datetime, reference: str | None = None
    ) -> ScoreAdjustment:
        """Add ``points``, never going above 100."""
        if not MIN_RECOGNITION_POINTS <= points <= MAX_RECOGNITION_POINTS:
            raise ValidationError(
                f"Recognition points must be between {MIN_RECOGNITION_POINTS} "
                f"and {MAX_RECOGNITION_POINTS}",
                context={"points": points},
            )
        return self._apply(AdjustmentKind.RECOGNITION, points, reference, at)

    def apply_clean_race_recovery(
        self, at: datetime, reference: str | None = None
    ) -> ScoreAdjustment:
        """Recover one point after a race with no incident."""
        adjustment = self._apply(
            AdjustmentKind.CLEAN_RACE_RECOVERY, CLEAN_RACE_RECOVERY, reference, at
        )
        self.total_races_clean += 1
        self.recovery_progress += 1
        self.last_race_date = at
        return adjustment

    def find_incident(self, incident_id: str) -> Incident | None:
        for incident in self.incidents:
            if incident.incident_id == incident_id:
                return incident
        return None

    def record_incident(self, incident: Incident) -> None:
        """Append a reported incident. Reporting has no effect on the score."""
        if not 1 <= incident.severity <= 3:
            raise ValidationError(
                "Incident severity must be 1, 2 or 3", context={"severity": incident.severity}
            )
        if not 0 <= incident.points_deducted <= MAX_INCIDENT_DEDUCTION:
            raise ValidationError(
                f"Incident deduction must be between 0 and {MAX_INCIDENT_DEDUCTION}",
                context={"points_deducted": incident.points_deducted},
            )
        self.incidents.append(incident)

    def resolve_incident(
        self, incident_id: str, approve: bool, moderator_id: str, at: datetime
    ) -> Incident:
        """Move a pending incident to approved (applying its penalty) or rejected."""
        incident = self.find_incident(incident_id)
        if incident is None:
            raise IncidentNotFoundError(
                "Unknown incident",
                context={"pilot_id": self.pilot_id, "incident_id": incident_id},
            )
        if incident.status is not IncidentStatus.PENDING:
            raise StateError(
                f"Incident already {incident.status.value}",
                context={"incident_id": incident_id},
            )
        incident.moderator_id = moderator_id
        if approve:
            incident.status = IncidentStatus.APPROVED
            self.apply_penalty(incident.points_deducted, at, reference=incident.incident_id)
        else:
            incident.status = IncidentStatus.REJECTED
        return incident

    def record_recognition(self, recognition: Recognition) -> ScoreAdjustment:
        adjustment = self.award_recognition(
            recognition.points_awarded, recognition.date, reference=recognition.recognition_id
        )
        self.recognitions.append(recognition)
        return adjustment
