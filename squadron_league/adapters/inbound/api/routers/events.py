"""Event endpoints: creation, publication lifecycle and result processing."""

import logging

from fastapi import APIRouter, Depends

from .....core.domain import Caller, Capability, EventStatus
from .....core.services.event_lifecycle import EventLifecycle
from .....core.services.roster_manager import RosterManager
from ..deps import get_caller, get_event_lifecycle, get_roster_manager
from ..models import (
    CalculatedResultsModel,
    CalculateRequest,
    ErrorResponse,
    EventCreateRequest,
    EventResponse,
    FinalizeRequest,
    KartsResponse,
    ReviewRequest,
    TransitionRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/events", tags=["events"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid request"},
    403: {"model": ErrorResponse, "description": "Caller lacks the required capability"},
    404: {"model": ErrorResponse, "description": "Event not found"},
    409: {"model": ErrorResponse, "description": "Event is in the wrong state"},
}


@router.post("", response_model=EventResponse, status_code=201, responses=ERROR_RESPONSES)
def create_event(
    request: EventCreateRequest,
    caller: Caller = Depends(get_caller),
    lifecycle: EventLifecycle = Depends(get_event_lifecycle),
) -> EventResponse:
    """Create an event in draft."""
    event = lifecycle.create(
        name=request.name,
        category=request.category,
        event_date=request.event_date,
        registration_deadline=request.registration_deadline,
        caller=caller,
        location=request.location,
        description=request.description,
        max_squadrons=request.max_squadrons,
        min_pilots_per_squadron=request.min_pilots_per_squadron,
        max_pilots_per_squadron=request.max_pilots_per_squadron,
    )
    return EventResponse.from_domain(event, lifecycle.clock())


@router.get("", response_model=list[EventResponse])
def list_events(
    status: EventStatus | None = None,
    lifecycle: EventLifecycle = Depends(get_event_lifecycle),
) -> list[EventResponse]:
    now = lifecycle.clock()
    return [EventResponse.from_domain(e, now) for e in lifecycle.list_events(status)]


@router.get("/{event_id}", response_model=EventResponse, responses=ERROR_RESPONSES)
def get_event(
    event_id: str, lifecycle: EventLifecycle = Depends(get_event_lifecycle)
) -> EventResponse:
    return EventResponse.from_domain(lifecycle.get(event_id), lifecycle.clock())


@router.post("/{event_id}/transitions", response_model=EventResponse, responses=ERROR_RESPONSES)
def transition_event(
    event_id: str,
    request: TransitionRequest,
    caller: Caller = Depends(get_caller),
    lifecycle: EventLifecycle = Depends(get_event_lifecycle),
) -> EventResponse:
    """Move the event along its publication lifecycle.

    A 409 means the event was not in the state the step starts from, or
    another request moved it first.
    """
    event = lifecycle.transition(event_id, request.operation, caller)
    return EventResponse.from_domain(event, lifecycle.clock())


@router.post("/{event_id}/review", response_model=EventResponse, responses=ERROR_RESPONSES)
def review_event(
    event_id: str,
    request: ReviewRequest,
    caller: Caller = Depends(get_caller),
    lifecycle: EventLifecycle = Depends(get_event_lifecycle),
) -> EventResponse:
    """Link the race session and open result review."""
    event = lifecycle.mark_in_review(event_id, request.race_session_id, caller)
    return EventResponse.from_domain(event, lifecycle.clock())


@router.post(
    "/{event_id}/results/calculate",
    response_model=CalculatedResultsModel,
    responses={**ERROR_RESPONSES, 502: {"model": ErrorResponse, "description": "Timing system"}},
)
def calculate_results(
    event_id: str,
    request: CalculateRequest,
    caller: Caller = Depends(get_caller),
    lifecycle: EventLifecycle = Depends(get_event_lifecycle),
) -> CalculatedResultsModel:
    """Preview squadron results. Nothing is persisted."""
    caller.require(Capability.ORGANIZER, "calculate results")
    results = lifecycle.calculate_results(event_id, request.race_session_id)
    return CalculatedResultsModel.from_domain(results)


@router.post(
    "/{event_id}/finalize",
    response_model=EventResponse,
    responses={**ERROR_RESPONSES, 502: {"model": ErrorResponse, "description": "Timing system"}},
)
def finalize_event(
    event_id: str,
    request: FinalizeRequest,
    caller: Caller = Depends(get_caller),
    lifecycle: EventLifecycle = Depends(get_event_lifecycle),
) -> EventResponse:
    """Finalize the event, awarding squadron points and applying sanctions.

    Without a ``results`` body the results are recomputed from the linked race.
    """
    caller.require(Capability.ORGANIZER, "finalize results")
    if request.results is not None:
        results = request.results.to_domain()
    else:
        results = lifecycle.calculate_results(event_id)
    event = lifecycle.finalize(event_id, results, caller)
    return EventResponse.from_domain(event, lifecycle.clock())


@router.get("/{event_id}/karts", response_model=KartsResponse, responses=ERROR_RESPONSES)
def occupied_karts(
    event_id: str, roster: RosterManager = Depends(get_roster_manager)
) -> KartsResponse:
    """Kart numbers held by confirmed pilots or live invitations."""
    return KartsResponse(event_id=event_id, occupied=roster.occupied_karts(event_id))
