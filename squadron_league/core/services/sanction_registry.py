"""Sanction registry: organizer penalties attached to an event's race."""

import logging
from collections.abc import Callable
from datetime import datetime

from ..domain import Caller, Capability, RaceProcessingState, Sanction, SanctionType
from ..domain.exceptions import StateError, ValidationError
from ..domain.sanction import MAX_DESCRIPTION_LENGTH
from ..domain.utils import clean_text, new_id, utcnow
from ..ports.identity_port import IdentityResolverPort
from ..ports.repository_port import LeagueRepositoryPort

logger = logging.getLogger(__name__)

OPEN_RACE_STATES = (RaceProcessingState.PENDING, RaceProcessingState.IN_REVIEW)


class SanctionRegistry:
    """Records sanctions without side effects.

    Applying or removing a sanction never touches the pilot's fair racing
    score and never notifies the pilot. Both happen when the event is
    finalized, so organizers can revise sanctions freely during review.
    """

    def __init__(
        self,
        repository: LeagueRepositoryPort,
        identity: IdentityResolverPort,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize the registry.

        Args:
            repository: Event and sanction storage.
            identity: Resolves driver names to pilot accounts.
            clock: Source of the current time.
        """
        self.repository = repository
        self.identity = identity
        self.clock = clock

    @staticmethod
    def _validate(
        sanction_type: SanctionType,
        description: str,
        position_penalty: int | None,
        points_penalty: int | None,
    ) -> str:
        description = clean_text(description).strip()
        if not description:
            raise ValidationError("Sanction description is required")
        if len(description) > MAX_DESCRIPTION_LENGTH:
            raise ValidationError(
                f"Sanction description exceeds {MAX_DESCRIPTION_LENGTH} characters",
                context={"length": len(description)},
            )
        if position_penalty is not None and position_penalty < 0:
            raise ValidationError("Position penalty cannot be negative")
        if points_penalty is not None and points_penalty < 0:
            raise ValidationError("Points penalty cannot be negative")
        if sanction_type is SanctionType.POSITION_PENALTY and not position_penalty:
            raise ValidationError("A position penalty needs a number of positions")
        return description

    def apply(
        self,
        event_id: str,
        driver_name: str,
        sanction_type: SanctionType,
        description: str,
        caller: Caller,
        position_penalty: int | None = None,
        points_penalty: int | None = None,
    ) -> Sanction:
        """Record a sanction against a driver in the event's race.

        Args:
            event_id: Event whose race the sanction refers to.
            driver_name: Driver name as shown in the race result.
            sanction_type: Kind of sanction.
            description: Reason for the sanction.
            caller: Organizer applying it.
            position_penalty: Places to drop, for position penalties.
            points_penalty: Fair racing points to deduct at finalize time.

        Returns:
            The stored sanction.

        Raises:
            AuthorizationError: If the caller is not an organizer.
            ValidationError: If the sanction details are invalid.
            PilotNotFoundError: If the driver name resolves to no account.
            EventNotFoundError: If the event does not exist.
            StateError: If the event's results are already finalized.
        """
        caller.require(Capability.ORGANIZER, "apply sanctions")
        description = self._validate(sanction_type, description, position_penalty, points_penalty)
        identity = self.identity.resolve(driver_name)

        with self.repository.atomic():
            event = self.repository.get_event(event_id)
            if event.race_state not in OPEN_RACE_STATES:
                raise StateError(
                    f"Cannot sanction an event whose results are {event.race_state.value}",
                    context={"event_id": event_id},
                )

            sanction = Sanction(
                id=new_id("san"),
                event_id=event_id,
                driver_name=driver_name.strip(),
                pilot_id=identity.pilot_id,
                sanction_type=sanction_type,
                description=description,
                applied_by=caller.user_id,
                applied_at=self.clock(),
                position_penalty=position_penalty,
                points_penalty=points_penalty,
                race_session_id=event.linked_race_session_id,
                identity_confidence=identity.confidence,
            )
            self.repository.add_sanction(sanction)

        logger.info(
            f"Sanction {sanction.id} ({sanction_type.value}) applied to {driver_name} "
            f"in event {event_id}",
            extra={"event_id": event_id, "pilot_id": sanction.pilot_id, "sanction_id": sanction.id},
        )
        return sanction

    def remove(self, sanction_id: str, caller: Caller) -> None:
        """Delete a sanction while the event's results are still open.

        Raises:
            AuthorizationError: If the caller is not an organizer.
            SanctionNotFoundError: If the sanction does not exist.
            StateError: If the event's results are already finalized.
        """
        caller.require(Capability.ORGANIZER, "remove sanctions")
        with self.repository.atomic():
            sanction = self.repository.get_sanction(sanction_id)
            event = self.repository.get_event(sanction.event_id)
            if event.race_state not in OPEN_RACE_STATES:
                raise StateError(
                    "Sanctions cannot be removed after results are finalized",
                    context={"sanction_id": sanction_id, "event_id": event.id},
                )
            self.repository.delete_sanction(sanction_id)
        logger.info(
            f"Sanction {sanction_id} removed from event {sanction.event_id}",
            extra={"event_id": sanction.event_id, "sanction_id": sanction_id},
        )

    def list_for_event(self, event_id: str) -> list[Sanction]:
        self.repository.get_event(event_id)
        return self.repository.list_sanctions(event_id)
