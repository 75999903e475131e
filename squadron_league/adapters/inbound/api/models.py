"""Pydantic models for API requests and responses."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ....core.domain import (
    CalculatedResults,
    Event,
    EventCategory,
    FairRacingScore,
    IncidentCategory,
    Invitation,
    Participation,
    PointsHistoryEntry,
    RecognitionType,
    Sanction,
    SanctionType,
    Squadron,
    SquadronResult,
)
from ....core.domain.event import MAX_KART_NUMBER, MIN_KART_NUMBER
from ....core.domain.fair_racing import (
    MAX_INCIDENT_DEDUCTION,
    MAX_RECOGNITION_POINTS,
    MIN_RECOGNITION_POINTS,
)
from ....core.domain.sanction import MAX_DESCRIPTION_LENGTH

# =============================================================================
# Requests
# =============================================================================


class EventCreateRequest(BaseModel):
    """Request model for creating an event."""

    name: str = Field(..., min_length=1, max_length=200)
    category: EventCategory
    event_date: datetime
    registration_deadline: datetime
    location: str = Field(default="SpeedPark", max_length=200)
    description: str | None = Field(None, max_length=2000)
    max_squadrons: int = Field(default=20, ge=1)
    min_pilots_per_squadron: int = Field(default=2, ge=1)
    max_pilots_per_squadron: int = Field(default=6, ge=1)


class TransitionRequest(BaseModel):
    """Publication lifecycle step to run."""

    operation: str = Field(
        ...,
        description="publish, open_registration, close_registration, start, complete or cancel",
        json_schema_extra={"example": "publish"},
    )


class ReviewRequest(BaseModel):
    race_session_id: str = Field(..., min_length=1)


class CalculateRequest(BaseModel):
    race_session_id: str | None = Field(
        None, description="Race to score; defaults to the race linked at review time"
    )


class RegistrationRequest(BaseModel):
    squadron_id: str = Field(..., min_length=1)
    kart_number: int = Field(..., ge=MIN_KART_NUMBER, le=MAX_KART_NUMBER)
    notes: str | None = Field(None, max_length=500)


class InvitationRequest(BaseModel):
    squadron_id: str = Field(..., min_length=1)
    pilot_id: str = Field(..., min_length=1)
    kart_number: int = Field(..., ge=MIN_KART_NUMBER, le=MAX_KART_NUMBER)


class InvitationResponseRequest(BaseModel):
    accept: bool


class SanctionRequest(BaseModel):
    driver_name: str = Field(..., min_length=1)
    sanction_type: SanctionType
    description: str = Field(..., min_length=1, max_length=MAX_DESCRIPTION_LENGTH)
    position_penalty: int | None = Field(None, ge=0)
    points_penalty: int | None = Field(None, ge=0)


class IncidentRequest(BaseModel):
    event_id: str
    category: IncidentCategory
    severity: int = Field(..., ge=1, le=3)
    points_deducted: int = Field(..., ge=0, le=MAX_INCIDENT_DEDUCTION)
    description: str = Field(..., min_length=1)
    video_evidence: str | None = None


class IncidentReviewRequest(BaseModel):
    approve: bool


class RecognitionRequest(BaseModel):
    event_id: str
    recognition_type: RecognitionType
    points: int = Field(..., ge=MIN_RECOGNITION_POINTS, le=MAX_RECOGNITION_POINTS)
    description: str = ""


# =============================================================================
# Results (used both as request and response bodies)
# =============================================================================


class PilotResultModel(BaseModel):
    pilot_id: str
    driver_name: str
    final_position: int = Field(..., ge=1)
    individual_points: int = Field(..., ge=0)
    kart_number: int


class SquadronResultModel(BaseModel):
    squadron_id: str
    position: int = Field(..., ge=1)
    total_points: int = Field(..., ge=0)
    points_awarded: int = Field(..., ge=0)
    percentage_awarded: int = Field(..., ge=0, le=100)
    pilots: list[PilotResultModel] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, result: SquadronResult) -> "SquadronResultModel":
        return cls.model_validate(result.to_dict())


class AdjustedResultModel(BaseModel):
    driver_name: str
    pilot_id: str | None = None
    original_position: int
    adjusted_position: int
    sanction_applied: bool


class CalculatedResultsModel(BaseModel):
    """Scoring output, as returned by the calculate endpoint and sent to finalize."""

    event_id: str
    base_points: int
    squadrons: list[SquadronResultModel]
    race_session_id: str | None = None
    adjusted_results: list[AdjustedResultModel] = Field(default_factory=list)
    unresolved_drivers: list[str] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, results: CalculatedResults) -> "CalculatedResultsModel":
        return cls.model_validate(results.to_dict())

    def to_domain(self) -> CalculatedResults:
        return CalculatedResults.from_dict(self.model_dump())


class FinalizeRequest(BaseModel):
    """Finalize with reviewed results, or recompute them from the linked race."""

    results: CalculatedResultsModel | None = None


# =============================================================================
# Responses
# =============================================================================


class InvitationModel(BaseModel):
    token: str
    event_id: str
    squadron_id: str
    pilot_id: str
    kart_number: int
    invited_at: datetime
    expires_at: datetime
    status: str
    invited_by: str | None = None
    responded_at: datetime | None = None

    @classmethod
    def from_domain(cls, invitation: Invitation, now: datetime) -> "InvitationModel":
        return cls(
            token=invitation.token,
            event_id=invitation.event_id,
            squadron_id=invitation.squadron_id,
            pilot_id=invitation.pilot_id,
            kart_number=invitation.kart_number,
            invited_at=invitation.invited_at,
            expires_at=invitation.expires_at,
            status=invitation.effective_status(now).value,
            invited_by=invitation.invited_by,
            responded_at=invitation.responded_at,
        )


class ConfirmedPilotModel(BaseModel):
    pilot_id: str
    kart_number: int
    confirmed_at: datetime


class ParticipationModel(BaseModel):
    squadron_id: str
    registered_by: str
    registered_at: datetime
    status: str
    confirmed_pilots: list[ConfirmedPilotModel]
    pending_invitations: list[InvitationModel]
    notes: str | None = None

    @classmethod
    def from_domain(cls, participation: Participation, now: datetime) -> "ParticipationModel":
        return cls(
            squadron_id=participation.squadron_id,
            registered_by=participation.registered_by,
            registered_at=participation.registered_at,
            status=participation.status.value,
            confirmed_pilots=[
                ConfirmedPilotModel(
                    pilot_id=p.pilot_id, kart_number=p.kart_number, confirmed_at=p.confirmed_at
                )
                for p in participation.confirmed_pilots
            ],
            pending_invitations=[
                InvitationModel.from_domain(inv, now)
                for inv in participation.live_invitations(now)
            ],
            notes=participation.notes,
        )


class EventResponse(BaseModel):
    id: str
    name: str
    description: str | None
    category: str
    base_points: int
    created_by: str
    event_date: datetime
    registration_deadline: datetime
    location: str
    max_squadrons: int
    min_pilots_per_squadron: int
    max_pilots_per_squadron: int
    status: str
    race_state: str
    linked_race_session_id: str | None
    participants: list[ParticipationModel]
    sanction_ids: list[str]
    results: list[SquadronResultModel]
    adjusted_results: list[AdjustedResultModel]
    finalized_at: datetime | None
    finalized_by: str | None

    @classmethod
    def from_domain(cls, event: Event, now: datetime) -> "EventResponse":
        return cls(
            id=event.id,
            name=event.name,
            description=event.description,
            category=event.category.value,
            base_points=event.base_points,
            created_by=event.created_by,
            event_date=event.event_date,
            registration_deadline=event.registration_deadline,
            location=event.location,
            max_squadrons=event.max_squadrons,
            min_pilots_per_squadron=event.min_pilots_per_squadron,
            max_pilots_per_squadron=event.max_pilots_per_squadron,
            status=event.status.value,
            race_state=event.race_state.value,
            linked_race_session_id=event.linked_race_session_id,
            participants=[ParticipationModel.from_domain(p, now) for p in event.participants],
            sanction_ids=list(event.sanction_ids),
            results=[SquadronResultModel.from_domain(r) for r in event.results],
            adjusted_results=[
                AdjustedResultModel.model_validate(a.to_dict()) for a in event.adjusted_results
            ],
            finalized_at=event.finalized_at,
            finalized_by=event.finalized_by,
        )


class KartsResponse(BaseModel):
    event_id: str
    occupied: list[int]


class SanctionResponse(BaseModel):
    id: str
    event_id: str
    driver_name: str
    pilot_id: str
    identity_confidence: float
    sanction_type: str
    description: str
    position_penalty: int | None
    points_penalty: int | None
    applied_by: str
    applied_at: datetime
    race_session_id: str | None

    @classmethod
    def from_domain(cls, sanction: Sanction) -> "SanctionResponse":
        return cls(
            id=sanction.id,
            event_id=sanction.event_id,
            driver_name=sanction.driver_name,
            pilot_id=sanction.pilot_id,
            identity_confidence=sanction.identity_confidence,
            sanction_type=sanction.sanction_type.value,
            description=sanction.description,
            position_penalty=sanction.position_penalty,
            points_penalty=sanction.points_penalty,
            applied_by=sanction.applied_by,
            applied_at=sanction.applied_at,
            race_session_id=sanction.race_session_id,
        )


class StandingEntry(BaseModel):
    rank: int
    squadron_id: str
    name: str
    total_points: int

    @classmethod
    def from_domain(cls, rank: int, squadron: Squadron) -> "StandingEntry":
        return cls(
            rank=rank,
            squadron_id=squadron.id,
            name=squadron.name,
            total_points=squadron.total_points,
        )


class PointsHistoryModel(BaseModel):
    id: str
    event_id: str | None
    points_change: int
    previous_total: int
    new_total: int
    reason: str
    change_type: str
    modified_by: str
    timestamp: datetime
    metadata: dict[str, Any]

    @classmethod
    def from_domain(cls, entry: PointsHistoryEntry) -> "PointsHistoryModel":
        return cls(
            id=entry.id,
            event_id=entry.event_id,
            points_change=entry.points_change,
            previous_total=entry.previous_total,
            new_total=entry.new_total,
            reason=entry.reason,
            change_type=entry.change_type.value,
            modified_by=entry.modified_by,
            timestamp=entry.timestamp,
            metadata=entry.metadata,
        )


class IncidentModel(BaseModel):
    incident_id: str
    event_id: str
    category: str
    severity: int
    points_deducted: int
    status: str
    description: str
    date: datetime
    reported_by: str
    moderator_id: str | None = None


class FairRacingScoreResponse(BaseModel):
    pilot_id: str
    current_score: int
    initial_score: int
    total_races_clean: int
    recovery_progress: int
    last_race_date: datetime | None
    incidents: list[IncidentModel]
    recognitions_count: int

    @classmethod
    def from_domain(cls, score: FairRacingScore) -> "FairRacingScoreResponse":
        return cls(
            pilot_id=score.pilot_id,
            current_score=score.current_score,
            initial_score=score.initial_score,
            total_races_clean=score.total_races_clean,
            recovery_progress=score.recovery_progress,
            last_race_date=score.last_race_date,
            incidents=[
                IncidentModel(
                    incident_id=i.incident_id,
                    event_id=i.event_id,
                    category=i.category.value,
                    severity=i.severity,
                    points_deducted=i.points_deducted,
                    status=i.status.value,
                    description=i.description,
                    date=i.date,
                    reported_by=i.reported_by,
                    moderator_id=i.moderator_id,
                )
                for i in score.incidents
            ],
            recognitions_count=len(score.recognitions),
        )


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str = Field(..., description="Health status")
    version: str = Field(..., description="API version")
    database: str = Field(..., description="Database status")


class ErrorDetail(BaseModel):
    """Structured error detail information."""

    type: str = Field(..., description="Exception type name")
    code: str = Field(..., description="Error code (e.g., LG_CON_003)")
    family: str = Field(..., description="Error family (validation, conflict, not_found ...)")
    retryable: bool = Field(False, description="True when repeating the request may succeed")
    message: str = Field(..., description="Human-readable error message")


class ErrorLocation(BaseModel):
    """Source location where error occurred."""

    model_config = ConfigDict(populate_by_name=True)

    class_name: str = Field(..., alias="class", description="Class name or <module>")
    method: str = Field(..., description="Method/function name")
    file: str = Field(..., description="Source file name")
    line: int = Field(..., description="Line number")
    timestamp: str | None = Field(None, description="When the error occurred")


class ErrorResponse(BaseModel):
    """Response model for structured errors.

    Example:
        {
            "error": {"type": "KartUnavailableError", "code": "LG_CON_003", "message": "..."},
            "location": {"class": "RosterManager", "method": "_check_kart_free", ...},
            "context": {"event_id": "evt_...", "kart_number": 7},
            "stack_trace": ["Traceback...", ...]  # Only in debug mode
        }
    """

    error: ErrorDetail = Field(..., description="Error details including type, code, and message")
    location: ErrorLocation | None = Field(None, description="Source location of the error")
    context: dict | None = Field(None, description="Additional debugging context")
    cause: dict | None = Field(None, description="Underlying exception that caused this error")
    stack_trace: list[str] | None = Field(None, description="Stack trace (debug mode only)")
