"""Exception handling utilities for consistent error formatting.

This module provides functions to format exceptions as structured JSON,
log them consistently, and map them to HTTP status codes.
"""

import json
import logging
import traceback
from typing import Any

from ...core.domain.exceptions import ErrorFamily, LeagueError

logger = logging.getLogger(__name__)

FAMILY_STATUS: dict[ErrorFamily, int] = {
    ErrorFamily.VALIDATION: 400,
    ErrorFamily.AUTHORIZATION: 403,
    ErrorFamily.NOT_FOUND: 404,
    ErrorFamily.CONFLICT: 409,
    ErrorFamily.STATE: 409,
    ErrorFamily.DATA_SOURCE: 502,
    ErrorFamily.INTERNAL: 500,
}


def format_exception_json(
    exc: Exception,
    include_trace: bool = False,
    extra_context: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Format any exception as structured JSON.

    Works with both LeagueError and standard Python exceptions.

    Args:
        exc: The exception to format.
        include_trace: If True, include full stack trace.
        extra_context: Additional context to include in output.

    Returns:
        Dictionary with structured error information.
    """
    if isinstance(exc, LeagueError):
        result = exc.to_dict(include_trace=include_trace)
        if extra_context:
            result.setdefault("context", {}).update(extra_context)
        return result

    tb = traceback.extract_tb(exc.__traceback__) if exc.__traceback__ else []
    last_frame = tb[-1] if tb else None

    result = {
        "error": {
            "type": type(exc).__name__,
            "code": "PYTHON_ERR",
            "family": ErrorFamily.INTERNAL.name.lower(),
            "retryable": isinstance(exc, ConnectionError | TimeoutError),
            "message": str(exc),
        },
        "location": {
            "class": "<unknown>",
            "method": last_frame.name if last_frame else "<unknown>",
            "file": (
                last_frame.filename.split("\\")[-1].split("/")[-1] if last_frame else "<unknown>"
            ),
            "line": last_frame.lineno if last_frame else 0,
        },
    }

    if extra_context:
        result["context"] = extra_context

    if include_trace:
        result["stack_trace"] = [
            line.strip()
            for line in traceback.format_exception(type(exc), exc, exc.__traceback__)
            if line.strip()
        ]

    return result


def log_exception(
    exc: Exception,
    log: logging.Logger | None = None,
    level: int = logging.ERROR,
    extra_context: dict[str, Any] | None = None,
) -> None:
    """Log exception in structured JSON format.

    Args:
        exc: The exception to log.
        log: Logger instance to use (defaults to module logger).
        level: Logging level (default: ERROR).
        extra_context: Additional context to include.
    """
    log_instance = log or logger

    exc_data = format_exception_json(exc, include_trace=True, extra_context=extra_context)
    extra = exc.log_extra() if isinstance(exc, LeagueError) else {"error_code": "PYTHON_ERR"}
    log_instance.log(level, json.dumps(exc_data, indent=2, default=str), extra=extra)


def get_error_code(exc: Exception) -> str:
    """Get the error code from an exception.

    Returns:
        Error code string (e.g., "LG_CON_003" or "PYTHON_ERR").
    """
    if isinstance(exc, LeagueError):
        return exc.error_code
    return "PYTHON_ERR"


def get_http_status_code(exc: Exception) -> int:
    """Map an exception to an HTTP status; league errors map by error family.

    Args:
        exc: The exception to map.

    Returns:
        HTTP status code (400, 403, 404, 409, 502, 500).
    """
    if isinstance(exc, LeagueError):
        return FAMILY_STATUS[exc.family]

    # Standard Python exceptions
    if isinstance(exc, ValueError):
        return 400
    if isinstance(exc, ConnectionError | TimeoutError):
        return 503

    return 500


def is_client_error(exc: Exception) -> bool:
    """True for errors caused by the request rather than the server."""
    return 400 <= get_http_status_code(exc) < 500
