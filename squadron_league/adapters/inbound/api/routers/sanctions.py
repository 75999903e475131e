"""Sanction endpoints."""

from fastapi import APIRouter, Depends

from .....core.domain import Caller
from .....core.services.sanction_registry import SanctionRegistry
from ..deps import get_caller, get_sanction_registry
from ..models import ErrorResponse, SanctionRequest, SanctionResponse

router = APIRouter(prefix="/api/v1", tags=["sanctions"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid sanction"},
    403: {"model": ErrorResponse, "description": "Organizers only"},
    404: {"model": ErrorResponse, "description": "Event, driver or sanction not found"},
    409: {"model": ErrorResponse, "description": "Results already finalized"},
}


@router.post(
    "/events/{event_id}/sanctions",
    response_model=SanctionResponse,
    status_code=201,
    responses=ERROR_RESPONSES,
)
def apply_sanction(
    event_id: str,
    request: SanctionRequest,
    caller: Caller = Depends(get_caller),
    registry: SanctionRegistry = Depends(get_sanction_registry),
) -> SanctionResponse:
    """Record a sanction. Scores and notifications follow at finalize time."""
    sanction = registry.apply(
        event_id,
        request.driver_name,
        request.sanction_type,
        request.description,
        caller,
        position_penalty=request.position_penalty,
        points_penalty=request.points_penalty,
    )
    return SanctionResponse.from_domain(sanction)


@router.get(
    "/events/{event_id}/sanctions",
    response_model=list[SanctionResponse],
    responses=ERROR_RESPONSES,
)
def list_sanctions(
    event_id: str, registry: SanctionRegistry = Depends(get_sanction_registry)
) -> list[SanctionResponse]:
    return [SanctionResponse.from_domain(s) for s in registry.list_for_event(event_id)]


@router.delete("/sanctions/{sanction_id}", status_code=204, responses=ERROR_RESPONSES)
def remove_sanction(
    sanction_id: str,
    caller: Caller = Depends(get_caller),
    registry: SanctionRegistry = Depends(get_sanction_registry),
) -> None:
    registry.remove(sanction_id, caller)
