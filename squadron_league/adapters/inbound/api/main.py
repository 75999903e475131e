"""FastAPI application for the Squadron League API."""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .... import __version__
from ....config.logging import setup_logging
from ....config.settings import settings
from ....core.domain.exceptions import LeagueError
from ...common.exception_handler import (
    format_exception_json,
    get_http_status_code,
    log_exception,
)
from .routers import events, health, pilots, roster, sanctions, squadrons

logger = logging.getLogger(__name__)

# Full stack traces in error responses
DEBUG_MODE = settings.debug

app = FastAPI(
    title="Squadron League API",
    description=(
        "Event lifecycle and scoring engine for a squadron karting league. "
        "Handles registration, invitations, sanctions and result finalization."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",  # Local dev
        "http://localhost:5173",  # Vite dev server
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(events.router)
app.include_router(roster.router)
app.include_router(sanctions.router)
app.include_router(squadrons.router)
app.include_router(pilots.router)


# =============================================================================
# Global Exception Handlers
# =============================================================================


@app.exception_handler(LeagueError)
async def league_error_handler(request: Request, exc: LeagueError) -> JSONResponse:
    """Handle all LeagueError exceptions with structured JSON response.

    Args:
        request: The incoming request.
        exc: The LeagueError exception.

    Returns:
        JSONResponse with structured error details.
    """
    log_exception(exc, extra_context={"path": str(request.url.path), "method": request.method})

    return JSONResponse(
        status_code=get_http_status_code(exc),
        content=exc.to_dict(include_trace=DEBUG_MODE),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle all unhandled exceptions with structured JSON response."""
    log_exception(exc, extra_context={"path": str(request.url.path), "method": request.method})

    return JSONResponse(
        status_code=get_http_status_code(exc),
        content=format_exception_json(exc, include_trace=DEBUG_MODE),
    )


# =============================================================================
# Lifecycle Events
# =============================================================================


@app.on_event("startup")
async def startup_event():
    """Initialize logging on startup."""
    setup_logging(
        level=settings.log_level,
        log_file=settings.log_file,
        json_format=settings.log_json,
    )
    logger.info("Squadron League API starting up...")
    logger.info("API docs available at /docs")
    logger.info("Debug mode: %s", "ENABLED" if DEBUG_MODE else "DISABLED")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Squadron League API shutting down...")


# Export for uvicorn
__all__ = ["app"]
