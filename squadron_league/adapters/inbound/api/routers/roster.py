"""Roster endpoints: squadron registration and pilot invitations."""

import logging

from fastapi import APIRouter, Depends

from .....core.domain import Caller
from .....core.services.roster_manager import RosterManager
from ..deps import get_caller, get_roster_manager
from ..models import (
    ErrorResponse,
    InvitationModel,
    InvitationRequest,
    InvitationResponseRequest,
    ParticipationModel,
    RegistrationRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["roster"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid request"},
    403: {"model": ErrorResponse, "description": "Caller may not act for this squadron"},
    404: {"model": ErrorResponse, "description": "Event, squadron or invitation not found"},
    409: {"model": ErrorResponse, "description": "Kart, slot or state conflict"},
}


@router.post(
    "/events/{event_id}/registrations",
    response_model=ParticipationModel,
    status_code=201,
    responses=ERROR_RESPONSES,
)
def register_squadron(
    event_id: str,
    request: RegistrationRequest,
    caller: Caller = Depends(get_caller),
    roster: RosterManager = Depends(get_roster_manager),
) -> ParticipationModel:
    """Register a squadron; the registering captain takes the first kart."""
    participation = roster.register_squadron(
        event_id, request.squadron_id, caller, request.kart_number, notes=request.notes
    )
    return ParticipationModel.from_domain(participation, roster.clock())


@router.delete(
    "/events/{event_id}/pilots/{pilot_id}", status_code=204, responses=ERROR_RESPONSES
)
def unregister_pilot(
    event_id: str,
    pilot_id: str,
    caller: Caller = Depends(get_caller),
    roster: RosterManager = Depends(get_roster_manager),
) -> None:
    roster.unregister_pilot(event_id, pilot_id, caller)


@router.post(
    "/events/{event_id}/invitations",
    response_model=InvitationModel,
    status_code=201,
    responses=ERROR_RESPONSES,
)
def invite_pilot(
    event_id: str,
    request: InvitationRequest,
    caller: Caller = Depends(get_caller),
    roster: RosterManager = Depends(get_roster_manager),
) -> InvitationModel:
    """Invite a squadron pilot, reserving the kart until the invitation expires."""
    invitation = roster.invite(
        event_id, request.squadron_id, request.pilot_id, request.kart_number, caller
    )
    return InvitationModel.from_domain(invitation, roster.clock())


@router.post(
    "/invitations/{token}/respond", response_model=InvitationModel, responses=ERROR_RESPONSES
)
def respond_to_invitation(
    token: str,
    request: InvitationResponseRequest,
    caller: Caller = Depends(get_caller),
    roster: RosterManager = Depends(get_roster_manager),
) -> InvitationModel:
    """Accept or decline an invitation. Expired invitations answer 409."""
    invitation = roster.respond(token, request.accept, caller)
    return InvitationModel.from_domain(invitation, roster.clock())
