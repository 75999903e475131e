"""Notification Port Interface."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any


class NotificationKind(Enum):
    RACE_SANCTION = "race_sanction"


class NotificationPort(ABC):
    """Abstract interface for fire-and-forget pilot notifications."""

    @abstractmethod
    def notify(self, pilot_id: str, kind: NotificationKind, payload: dict[str, Any]) -> None:
        """Dispatch a notification to a pilot."""
        ...
