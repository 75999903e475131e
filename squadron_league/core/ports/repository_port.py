"""Persistence Port Interfaces.

Write methods named ``compare_and_set_*``, ``reserve_*`` and ``accept_*`` are
single atomic conditional updates: they return False when the stored data no
longer satisfies the condition, and never perform a partial write.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import AbstractContextManager
from datetime import datetime

from ..domain import (
    AdjustedResult,
    ConfirmedPilot,
    Event,
    EventStatus,
    FairRacingScore,
    Invitation,
    InvitationStatus,
    Participation,
    ParticipationStatus,
    Pilot,
    PointsHistoryEntry,
    RaceProcessingState,
    Sanction,
    Squadron,
    SquadronResult,
)


class UnitOfWorkPort(ABC):
    """Transaction boundary shared by all repositories."""

    @abstractmethod
    def atomic(self) -> AbstractContextManager[None]:
        """Run the enclosed writes as one transaction.

        Nested blocks join the outermost transaction. An exception escaping
        the outermost block rolls back every write made inside it.
        """
        ...


class EventRepositoryPort(ABC):
    @abstractmethod
    def add_event(self, event: Event) -> None: ...

    @abstractmethod
    def get_event(self, event_id: str) -> Event:
        """Load the full event aggregate.

        Raises:
            EventNotFoundError: If the event does not exist.
        """
        ...

    @abstractmethod
    def list_events(self, status: EventStatus | None = None) -> list[Event]: ...

    @abstractmethod
    def compare_and_set_status(
        self, event_id: str, expected: EventStatus, new: EventStatus, at: datetime
    ) -> bool: ...

    @abstractmethod
    def compare_and_set_race_state(
        self, event_id: str, expected: RaceProcessingState, new: RaceProcessingState
    ) -> bool: ...

    @abstractmethod
    def link_race_session(self, event_id: str, race_session_id: str) -> None: ...

    @abstractmethod
    def save_results(
        self,
        event_id: str,
        results: list[SquadronResult],
        adjusted_results: list[AdjustedResult],
        finalized_at: datetime,
        finalized_by: str,
    ) -> None: ...


class RosterRepositoryPort(ABC):
    @abstractmethod
    def add_participation(
        self, participation: Participation, first_pilot: ConfirmedPilot, max_squadrons: int
    ) -> bool:
        """Register a squadron with its first confirmed pilot.

        Succeeds only if the event has room, the squadron is not yet
        registered, and the kart is free.
        """
        ...

    @abstractmethod
    def reserve_invitation(
        self, invitation: Invitation, max_pilots: int, now: datetime
    ) -> bool:
        """Insert an invitation if its kart, its pilot and the roster slot are all free."""
        ...

    @abstractmethod
    def get_invitation(self, token: str) -> Invitation:
        """Load an invitation.

        Raises:
            InvitationNotFoundError: If the token is unknown.
        """
        ...

    @abstractmethod
    def accept_invitation(
        self, token: str, now: datetime, max_pilots: int
    ) -> bool:
        """Confirm the invited pilot on the invited kart.

        Succeeds only if the invitation is still pending and unexpired, the
        kart is not held by any other slot, and the roster is not full.
        """
        ...

    @abstractmethod
    def compare_and_set_invitation_status(
        self,
        token: str,
        expected: InvitationStatus,
        new: InvitationStatus,
        at: datetime,
    ) -> bool: ...

    @abstractmethod
    def invitations_for_pilot(self, pilot_id: str) -> list[Invitation]: ...

    @abstractmethod
    def remove_confirmed_pilot(self, event_id: str, pilot_id: str) -> bool: ...

    @abstractmethod
    def remove_participation(self, event_id: str, squadron_id: str) -> None: ...

    @abstractmethod
    def set_participation_status(
        self, event_id: str, squadron_id: str, status: ParticipationStatus
    ) -> None: ...


class SanctionRepositoryPort(ABC):
    @abstractmethod
    def add_sanction(self, sanction: Sanction) -> None: ...

    @abstractmethod
    def get_sanction(self, sanction_id: str) -> Sanction:
        """Raises SanctionNotFoundError if absent."""
        ...

    @abstractmethod
    def delete_sanction(self, sanction_id: str) -> bool: ...

    @abstractmethod
    def list_sanctions(self, event_id: str) -> list[Sanction]: ...


class SquadronRepositoryPort(ABC):
    @abstractmethod
    def add_squadron(self, squadron: Squadron) -> None: ...

    @abstractmethod
    def get_squadron(self, squadron_id: str) -> Squadron:
        """Raises SquadronNotFoundError if absent."""
        ...

    @abstractmethod
    def list_squadrons(self) -> list[Squadron]:
        """All squadrons, highest total first."""
        ...

    @abstractmethod
    def compare_and_set_squadron_total(
        self, squadron_id: str, expected: int, new: int
    ) -> bool: ...

    @abstractmethod
    def append_points_history(self, entry: PointsHistoryEntry) -> None: ...

    @abstractmethod
    def points_history(self, squadron_id: str) -> list[PointsHistoryEntry]: ...

    @abstractmethod
    def add_pilot(self, pilot: Pilot) -> None: ...

    @abstractmethod
    def get_pilot(self, pilot_id: str) -> Pilot:
        """Raises PilotNotFoundError if absent."""
        ...

    @abstractmethod
    def iter_pilots(self) -> Iterator[Pilot]: ...


class FairRacingRepositoryPort(ABC):
    @abstractmethod
    def get_fair_racing_score(self, pilot_id: str) -> FairRacingScore | None: ...

    @abstractmethod
    def save_fair_racing_score(self, score: FairRacingScore, expected_version: int) -> bool:
        """Persist the score if the stored version still equals ``expected_version``.

        ``expected_version`` 0 means the record must not exist yet. On success
        the stored version becomes ``expected_version + 1``.
        """
        ...


class LeagueRepositoryPort(
    UnitOfWorkPort,
    EventRepositoryPort,
    RosterRepositoryPort,
    SanctionRepositoryPort,
    SquadronRepositoryPort,
    FairRacingRepositoryPort,
):
    """Everything the core persists, behind one transaction boundary."""
