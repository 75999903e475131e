"""Health check endpoints."""

import logging

from fastapi import APIRouter, Depends

from ..... import __version__
from .....core.ports.repository_port import LeagueRepositoryPort
from ..deps import get_repository
from ..models import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
def health_check() -> HealthResponse:
    """Basic health check endpoint.

    Returns:
        HealthResponse with current status and version.
    """
    return HealthResponse(status="healthy", version=__version__, database="not_checked")


@router.get("/ready", response_model=HealthResponse)
def readiness_check(
    repository: LeagueRepositoryPort = Depends(get_repository),
) -> HealthResponse:
    """Readiness probe.

    Checks that the league database answers queries.
    """
    try:
        squadrons = repository.list_squadrons()
        db_status = f"connected ({len(squadrons)} squadrons)"
    except Exception as e:
        logger.warning(f"Readiness check failed: {e}")
        db_status = f"error: {e}"

    return HealthResponse(status="ready", version=__version__, database=db_status)
