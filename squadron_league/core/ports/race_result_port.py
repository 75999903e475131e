"""Race Result Provider Port Interface."""

from abc import ABC, abstractmethod

from ..domain import RawRaceResult


class RaceResultProviderPort(ABC):
    """Abstract interface for the timing system holding finished race results."""

    @abstractmethod
    def get_result(self, race_session_id: str) -> list[RawRaceResult]:
        """Get the per-driver outcome of a race session.

        Raises:
            RaceSessionNotFoundError: If the session is unknown.
            RaceResultUnavailableError: If the provider cannot be reached.
        """
        ...
