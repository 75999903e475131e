"""Squadron standings and points audit trail."""

from fastapi import APIRouter, Depends

from .....core.services.points_ledger import PointsLedger
from ..deps import get_points_ledger
from ..models import ErrorResponse, PointsHistoryModel, StandingEntry

router = APIRouter(prefix="/api/v1/squadrons", tags=["squadrons"])


@router.get("/standings", response_model=list[StandingEntry])
def standings(ledger: PointsLedger = Depends(get_points_ledger)) -> list[StandingEntry]:
    """Squadrons ordered by total points, best first."""
    return [
        StandingEntry.from_domain(rank, squadron)
        for rank, squadron in enumerate(ledger.standings(), start=1)
    ]


@router.get(
    "/{squadron_id}/history",
    response_model=list[PointsHistoryModel],
    responses={404: {"model": ErrorResponse, "description": "Squadron not found"}},
)
def points_history(
    squadron_id: str, ledger: PointsLedger = Depends(get_points_ledger)
) -> list[PointsHistoryModel]:
    return [PointsHistoryModel.from_domain(entry) for entry in ledger.history(squadron_id)]
