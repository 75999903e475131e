"""League error base class.

Every error the league reports to a caller carries:

- an error code ``LG_<FAMILY>_<NNN>``; the family decides the HTTP status and
  whether the caller may simply retry
- the league entities it concerns (event, squadron, pilot, sanction ...),
  taken from its context so logs can be filtered per event or per pilot
- the site that raised it
"""

import inspect
import traceback
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import PurePath
from types import FrameType
from typing import Any

# Context keys that name league entities, in the order they are reported
ENTITY_KEYS = (
    "event_id",
    "squadron_id",
    "pilot_id",
    "sanction_id",
    "incident_id",
    "race_session_id",
    "token",
)


class ErrorFamily(Enum):
    """Middle segment of an error code."""

    INTERNAL = "ERR"
    VALIDATION = "VAL"
    AUTHORIZATION = "AUTH"
    NOT_FOUND = "NF"
    CONFLICT = "CON"
    STATE = "STA"
    DATA_SOURCE = "SRC"

    @property
    def retryable(self) -> bool:
        """Lost races and timing outages can succeed when simply repeated."""
        return self in (ErrorFamily.CONFLICT, ErrorFamily.DATA_SOURCE)


@dataclass(frozen=True)
class RaiseSite:
    """Where a league error was raised."""

    class_name: str
    method_name: str
    file_name: str
    line_number: int
    timestamp: str = field(default_factory=lambda: datetime.now(UTC).isoformat())

    @classmethod
    def from_frame(cls, frame: FrameType | None) -> "RaiseSite":
        if frame is None:
            return cls("<unknown>", "<unknown>", "<unknown>", 0)
        owner = frame.f_locals.get("self")
        return cls(
            class_name=type(owner).__name__ if owner is not None else "<module>",
            method_name=frame.f_code.co_name,
            file_name=PurePath(frame.f_code.co_filename.replace("\\", "/")).name,
            line_number=frame.f_lineno,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "class": self.class_name,
            "method": self.method_name,
            "file": self.file_name,
            "line": self.line_number,
            "timestamp": self.timestamp,
        }


class LeagueError(Exception):
    """Base class for every error the league reports to a caller.

    Subclasses only set ``error_code``. Put the ids of the entities involved
    in ``context`` under the keys in ``ENTITY_KEYS``; they show up in the API
    error body and on the log record.

    Example:
        raise KartUnavailableError(
            f"Kart {kart_number} is already taken",
            context={"event_id": event.id, "kart_number": kart_number},
        )
    """

    error_code: str = "LG_ERR_001"

    def __init__(
        self,
        message: str,
        *,
        cause: Exception | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Create the error.

        Args:
            message: Human-readable error message.
            cause: Lower-level exception this error wraps.
            context: Entity ids and other values describing the failure.
        """
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.extra_context = dict(context or {})
        frame = inspect.currentframe()
        self.location = RaiseSite.from_frame(frame.f_back if frame else None)
        del frame
        self.stack_trace = "".join(traceback.format_exception(cause)) if cause else None

    @property
    def family(self) -> ErrorFamily:
        return ErrorFamily(self.error_code.split("_")[1])

    @property
    def entities(self) -> dict[str, Any]:
        """League entity ids named in the context."""
        return {key: self.extra_context[key] for key in ENTITY_KEYS if key in self.extra_context}

    def log_extra(self) -> dict[str, Any]:
        """Mapping for the ``extra`` argument of a logging call."""
        return {"error_code": self.error_code, **self.entities}

    def to_dict(self, include_trace: bool = False) -> dict[str, Any]:
        """Serialize for API responses and structured logs.

        Args:
            include_trace: Add the wrapped cause's traceback (debug mode).
        """
        result: dict[str, Any] = {
            "error": {
                "type": type(self).__name__,
                "code": self.error_code,
                "family": self.family.name.lower(),
                "retryable": self.family.retryable,
                "message": self.message,
            },
            "location": self.location.to_dict(),
        }
        if self.extra_context:
            result["context"] = self.extra_context
        if self.cause:
            result["cause"] = {"type": type(self.cause).__name__, "message": str(self.cause)}
        if include_trace and self.stack_trace:
            result["stack_trace"] = [line for line in self.stack_trace.splitlines() if line.strip()]
        return result
