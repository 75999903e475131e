"""Pilot endpoints: fair racing reputation and pending invitations."""

import logging

from fastapi import APIRouter, Depends

from .....core.domain import Caller, Capability
from .....core.services.fair_racing_ledger import FairRacingScoreLedger
from .....core.services.roster_manager import RosterManager
from ..deps import get_caller, get_fair_racing_ledger, get_roster_manager
from ..models import (
    ErrorResponse,
    FairRacingScoreResponse,
    IncidentModel,
    IncidentRequest,
    IncidentReviewRequest,
    InvitationModel,
    RecognitionRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/pilots", tags=["pilots"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid request"},
    403: {"model": ErrorResponse, "description": "Moderators only"},
    404: {"model": ErrorResponse, "description": "Incident not found"},
    409: {"model": ErrorResponse, "description": "Concurrent update or incident already reviewed"},
}


def _require_moderator(caller: Caller, action: str) -> None:
    # Organizers moderate their own events
    if not caller.has(Capability.ORGANIZER):
        caller.require(Capability.MODERATOR, action)


@router.get("/{pilot_id}/fair-racing-score", response_model=FairRacingScoreResponse)
def fair_racing_score(
    pilot_id: str, ledger: FairRacingScoreLedger = Depends(get_fair_racing_ledger)
) -> FairRacingScoreResponse:
    """Current reputation score; pilots without history get the initial score."""
    return FairRacingScoreResponse.from_domain(ledger.get(pilot_id))


@router.post(
    "/{pilot_id}/incidents",
    response_model=IncidentModel,
    status_code=201,
    responses=ERROR_RESPONSES,
)
def report_incident(
    pilot_id: str,
    request: IncidentRequest,
    caller: Caller = Depends(get_caller),
    ledger: FairRacingScoreLedger = Depends(get_fair_racing_ledger),
) -> IncidentModel:
    """Report an incident. The score only changes once it is approved."""
    _require_moderator(caller, "report incidents")
    incident = ledger.report_incident(
        pilot_id,
        request.event_id,
        request.category,
        request.severity,
        request.points_deducted,
        reported_by=caller.user_id,
        description=request.description,
        video_evidence=request.video_evidence,
    )
    return IncidentModel(
        incident_id=incident.incident_id,
        event_id=incident.event_id,
        category=incident.category.value,
        severity=incident.severity,
        points_deducted=incident.points_deducted,
        status=incident.status.value,
        description=incident.description,
        date=incident.date,
        reported_by=incident.reported_by,
    )


@router.post(
    "/{pilot_id}/incidents/{incident_id}/review",
    response_model=FairRacingScoreResponse,
    responses=ERROR_RESPONSES,
)
def review_incident(
    pilot_id: str,
    incident_id: str,
    request: IncidentReviewRequest,
    caller: Caller = Depends(get_caller),
    ledger: FairRacingScoreLedger = Depends(get_fair_racing_ledger),
) -> FairRacingScoreResponse:
    _require_moderator(caller, "review incidents")
    ledger.review_incident(pilot_id, incident_id, request.approve, caller.user_id)
    return FairRacingScoreResponse.from_domain(ledger.get(pilot_id))


@router.post(
    "/{pilot_id}/recognitions",
    response_model=FairRacingScoreResponse,
    status_code=201,
    responses=ERROR_RESPONSES,
)
def award_recognition(
    pilot_id: str,
    request: RecognitionRequest,
    caller: Caller = Depends(get_caller),
    ledger: FairRacingScoreLedger = Depends(get_fair_racing_ledger),
) -> FairRacingScoreResponse:
    _require_moderator(caller, "award recognitions")
    ledger.award_recognition(
        pilot_id,
        request.event_id,
        request.recognition_type,
        request.points,
        observer_id=caller.user_id,
        description=request.description,
    )
    return FairRacingScoreResponse.from_domain(ledger.get(pilot_id))


@router.get("/{pilot_id}/invitations", response_model=list[InvitationModel])
def pilot_invitations(
    pilot_id: str,
    caller: Caller = Depends(get_caller),
    roster: RosterManager = Depends(get_roster_manager),
) -> list[InvitationModel]:
    """Live invitations addressed to the pilot. Pilots only see their own."""
    if caller.user_id != pilot_id:
        caller.require(Capability.ORGANIZER, "view other pilots' invitations")
    now = roster.clock()
    return [InvitationModel.from_domain(i, now) for i in roster.invitations_for(pilot_id)]
