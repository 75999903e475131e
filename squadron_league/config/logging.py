"""Logging for Squadron League.

Services log through ``logging.getLogger(__name__)`` and attach the league
entities a message is about with ``extra`` (``event_id``, ``squadron_id``,
``pilot_id`` ...). A logged ``LeagueError`` contributes the entity ids in its
context. Both formatters below print those ids, so one event or one pilot
can be followed across services and adapters with a single grep.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Any

from ..core.domain.exceptions import ENTITY_KEYS, LeagueError

ROOT_LOGGER = "squadron_league"

LEAGUE_FIELDS = (*ENTITY_KEYS, "error_code")

TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(module)s:%(funcName)s | %(message)s"


def league_fields(record: logging.LogRecord) -> dict[str, Any]:
    """League ids on a record, from ``extra`` first, then from a logged LeagueError."""
    fields = {
        key: getattr(record, key)
        for key in LEAGUE_FIELDS
        if getattr(record, key, None) is not None
    }
    if record.exc_info and isinstance(record.exc_info[1], LeagueError):
        for key, value in record.exc_info[1].log_extra().items():
            fields.setdefault(key, value)
    return fields


class LeagueTextFormatter(logging.Formatter):
    """Plain text lines with league ids appended.

    ``2026-03-10 21:00:00 | INFO | event_lifecycle:finalize | Event finalized
    | event_id=evt_1``
    """

    def __init__(self) -> None:
        super().__init__(TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        fields = league_fields(record)
        if not fields:
            return text
        ids = " ".join(f"{key}={value}" for key, value in fields.items())
        # Ids go on the message line, not after a traceback
        first, newline, rest = text.partition("\n")
        return f"{first} | {ids}{newline}{rest}"


class JSONExceptionFormatter(logging.Formatter):
    """One JSON object per line for log aggregation.

    League ids are grouped under ``"league"``; a logged exception is
    reported with its error code when it is a LeagueError.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": {
                "file": record.filename,
                "function": record.funcName,
                "line": record.lineno,
            },
        }

        fields = league_fields(record)
        if fields:
            entry["league"] = fields

        if record.exc_info and record.exc_info[0] is not None:
            exc = record.exc_info[1]
            entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "code": exc.error_code if isinstance(exc, LeagueError) else None,
                "message": str(exc) if exc else None,
                "traceback": self.formatException(record.exc_info),
            }

        return json.dumps(entry, default=str)


def setup_logging(
    level: str = "INFO",
    log_file: Path | None = None,
    json_format: bool = False,
) -> logging.Logger:
    """Configure the ``squadron_league`` logger tree.

    Args:
        level: Logging level name, case-insensitive.
        log_file: Optional file that receives the same records as stdout.
        json_format: Emit JSON lines instead of text.

    Returns:
        The package root logger.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.handlers.clear()

    formatter = JSONExceptionFormatter() if json_format else LeagueTextFormatter()

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger
