"""Identity Resolution Port Interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class ResolvedIdentity:
    """A driver name mapped to a pilot account.

    Attributes:
        pilot_id: Stable account identifier.
        confidence: 1.0 for the linked timing name, lower for alias matches.
        matched_on: Which field matched ("karting_driver_name", "alias", ...).
    """

    pilot_id: str
    confidence: float
    matched_on: str = "karting_driver_name"


class IdentityResolverPort(ABC):
    """Abstract interface for resolving raw driver names to pilot accounts."""

    @abstractmethod
    def resolve(self, driver_name: str) -> ResolvedIdentity:
        """Resolve a driver name.

        Raises:
            PilotNotFoundError: If no account matches.
        """
        ...
