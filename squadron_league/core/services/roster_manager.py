"""Roster assembly: squadron registration, invitations and kart slots.

Every write here is a single conditional statement in the repository. The
checks made before the write only select the error reported to the caller;
the conditional write is what keeps two callers from taking the same kart.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from ..domain import (
    Caller,
    Capability,
    ConfirmedPilot,
    Event,
    EventStatus,
    Invitation,
    InvitationStatus,
    Participation,
    ParticipationStatus,
    validate_kart_number,
)
from ..domain.exceptions import (
    AuthorizationError,
    CapacityExceededError,
    ConflictError,
    DuplicateInvitationError,
    InvitationExpiredError,
    KartUnavailableError,
    SquadronNotFoundError,
    StateError,
    ValidationError,
)
from ..domain.utils import new_id, utcnow
from ..ports.repository_port import LeagueRepositoryPort

logger = logging.getLogger(__name__)

DEFAULT_INVITATION_WINDOW = timedelta(hours=2)

ROSTER_OPEN_STATES = (EventStatus.REGISTRATION_OPEN, EventStatus.REGISTRATION_CLOSED)


class RosterManager:
    """Manages each squadron's participation in an event."""

    def __init__(
        self,
        repository: LeagueRepositoryPort,
        invitation_window: timedelta = DEFAULT_INVITATION_WINDOW,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize the roster manager.

        Args:
            repository: Event, roster and squadron storage.
            invitation_window: How long an invitation holds its kart.
            clock: Source of the current time.
        """
        self.repository = repository
        self.invitation_window = invitation_window
        self.clock = clock

    # =========================================================================
    # Checks
    # =========================================================================

    @staticmethod
    def _require_roster_open(event: Event) -> None:
        if event.status not in ROSTER_OPEN_STATES:
            raise StateError(
                f"Rosters cannot change while the event is {event.status.value}",
                context={"event_id": event.id},
            )

    @staticmethod
    def _check_pilot_free(event: Event, pilot_id: str, now: datetime) -> None:
        if event.participation_of_pilot(pilot_id) is not None:
            raise DuplicateInvitationError(
                "Pilot is already confirmed for this event",
                context={"event_id": event.id, "pilot_id": pilot_id},
            )
        if event.has_live_invitation(pilot_id, now):
            raise DuplicateInvitationError(
                "Pilot already has a pending invitation for this event",
                context={"event_id": event.id, "pilot_id": pilot_id},
            )

    @staticmethod
    def _check_kart_free(event: Event, kart_number: int, now: datetime) -> None:
        if kart_number in event.occupied_karts(now):
            raise KartUnavailableError(
                f"Kart {kart_number} is already taken",
                context={"event_id": event.id, "kart_number": kart_number},
            )

    def _check_slot(
        self,
        event: Event,
        participation: Participation,
        pilot_id: str,
        kart_number: int,
        now: datetime,
    ) -> None:
        self._check_pilot_free(event, pilot_id, now)
        if participation.occupant_count(now) >= event.max_pilots_per_squadron:
            raise CapacityExceededError(
                "Squadron roster is full",
                context={
                    "event_id": event.id,
                    "squadron_id": participation.squadron_id,
                    "max_pilots": event.max_pilots_per_squadron,
                },
            )
        self._check_kart_free(event, kart_number, now)

    def _squadron_rank(self, squadron_id: str) -> int:
        ranked = [squadron.id for squadron in self.repository.list_squadrons()]
        return ranked.index(squadron_id) + 1

    def _refresh_participation_status(self, event_id: str, squadron_id: str) -> None:
        event = self.repository.get_event(event_id)
        participation = event.find_participation(squadron_id)
        if participation is None:
            return
        confirmed = len(participation.confirmed_pilots) >= event.min_pilots_per_squadron
        status = ParticipationStatus.CONFIRMED if confirmed else ParticipationStatus.PENDING
        if participation.status is not status:
            self.repository.set_participation_status(event_id, squadron_id, status)

    # =========================================================================
    # Registration
    # =========================================================================

    def register_squadron(
        self,
        event_id: str,
        squadron_id: str,
        caller: Caller,
        kart_number: int,
        notes: str | None = None,
    ) -> Participation:
        """Register a squadron with the caller as its first confirmed pilot.

        Raises:
            AuthorizationError: If the caller is not in the squadron.
            InvalidKartNumberError: If the kart number is out of range.
            StateError: If registration is not open or the deadline passed.
            ConflictError: If the squadron is registered already, the event is
                full, or the kart or pilot is already taken.
            ValidationError: If the squadron's rank is too low for the category.
        """
        caller.require_member_of(squadron_id)
        validate_kart_number(kart_number)
        now = self.clock()

        with self.repository.atomic():
            self.repository.get_squadron(squadron_id)
            event = self.repository.get_event(event_id)
            if event.status is not EventStatus.REGISTRATION_OPEN:
                raise StateError(
                    f"Registration is not open (event is {event.status.value})",
                    context={"event_id": event_id},
                )
            if now > event.registration_deadline:
                raise StateError(
                    "Registration deadline has passed", context={"event_id": event_id}
                )
            if event.find_participation(squadron_id) is not None:
                raise ConflictError(
                    "Squadron is already registered for this event",
                    context={"event_id": event_id, "squadron_id": squadron_id},
                )
            if not event.has_space():
                raise CapacityExceededError(
                    "Event has no space for more squadrons",
                    context={"event_id": event_id, "max_squadrons": event.max_squadrons},
                )
            rank = self._squadron_rank(squadron_id)
            if not event.can_register(rank):
                raise ValidationError(
                    f"Squadron rank {rank} does not meet the category requirement",
                    context={"event_id": event_id, "category": event.category.value},
                )
            self._check_pilot_free(event, caller.user_id, now)
            self._check_kart_free(event, kart_number, now)

            first_pilot = ConfirmedPilot(caller.user_id, kart_number, now)
            participation = Participation(
                event_id=event_id,
                squadron_id=squadron_id,
                registered_by=caller.user_id,
                registered_at=now,
                confirmed_pilots=[first_pilot],
                status=(
                    ParticipationStatus.CONFIRMED
                    if event.min_pilots_per_squadron <= 1
                    else ParticipationStatus.PENDING
                ),
                notes=notes,
            )
            if not self.repository.add_participation(
                participation, first_pilot, event.max_squadrons
            ):
                raise ConflictError(
                    "Registration conflicted with a concurrent change",
                    context={"event_id": event_id, "squadron_id": squadron_id},
                )

        logger.info(
            f"Squadron {squadron_id} registered for event {event_id} "
            f"(pilot {caller.user_id}, kart {kart_number})"
        )
        return participation

    def unregister_pilot(self, event_id: str, pilot_id: str, caller: Caller) -> None:
        """Remove a confirmed pilot before the registration deadline.

        The participation is removed once it has no confirmed pilot and no
        live invitation left.
        """
        now = self.clock()
        with self.repository.atomic():
            event = self.repository.get_event(event_id)
            self._require_roster_open(event)
            if now > event.registration_deadline:
                raise StateError(
                    "Pilots cannot leave after the registration deadline",
                    context={"event_id": event_id},
                )
            participation = event.participation_of_pilot(pilot_id)
            if participation is None:
                raise StateError(
                    "Pilot is not confirmed for this event",
                    context={"event_id": event_id, "pilot_id": pilot_id},
                )
            if caller.user_id != pilot_id and not (
                caller.has(Capability.CAPTAIN) and caller.squadron_id == participation.squadron_id
            ):
                raise AuthorizationError(
                    "Only the pilot or their captain may unregister a pilot",
                    context={"user_id": caller.user_id, "pilot_id": pilot_id},
                )

            self.repository.remove_confirmed_pilot(event_id, pilot_id)
            remaining = len(participation.confirmed_pilots) - 1
            if remaining == 0 and not participation.live_invitations(now):
                self.repository.remove_participation(event_id, participation.squadron_id)
                logger.info(f"Squadron {participation.squadron_id} left event {event_id}")
            else:
                self._refresh_participation_status(event_id, participation.squadron_id)

        logger.info(f"Pilot {pilot_id} unregistered from event {event_id}")

    # =========================================================================
    # Invitations
    # =========================================================================

    def invite(
        self,
        event_id: str,
        squadron_id: str,
        pilot_id: str,
        kart_number: int,
        caller: Caller,
    ) -> Invitation:
        """Offer a kart slot in the squadron's roster to a teammate.

        Args:
            event_id: Event the roster belongs to.
            squadron_id: Squadron issuing the invitation.
            pilot_id: Invited pilot.
            kart_number: Kart reserved for the pilot while the invitation lives.
            caller: Squadron member sending the invitation.

        Returns:
            The pending invitation.

        Raises:
            AuthorizationError: If the caller is not in the squadron.
            InvalidKartNumberError: If the kart number is out of range.
            SquadronNotFoundError: If the squadron is not registered.
            PilotNotFoundError: If the pilot is unknown.
            ValidationError: If the pilot is not in the squadron.
            StateError: If rosters are closed for the event.
            ConflictError: If the roster is full, the kart is taken, or the
                pilot already holds a slot or a live invitation.
        """
        caller.require_member_of(squadron_id)
        validate_kart_number(kart_number)
        now = self.clock()

        with self.repository.atomic():
            event = self.repository.get_event(event_id)
            self._require_roster_open(event)
            participation = event.find_participation(squadron_id)
            if participation is None:
                raise SquadronNotFoundError(
                    "Squadron is not registered for this event",
                    context={"event_id": event_id, "squadron_id": squadron_id},
                )
            pilot = self.repository.get_pilot(pilot_id)
            if pilot.squadron_id != squadron_id:
                raise ValidationError(
                    "Only squadron members can be invited",
                    context={"pilot_id": pilot_id, "squadron_id": squadron_id},
                )
            self._check_slot(event, participation, pilot_id, kart_number, now)

            invitation = Invitation(
                token=new_id("inv"),
                event_id=event_id,
                squadron_id=squadron_id,
                pilot_id=pilot_id,
                kart_number=kart_number,
                invited_at=now,
                expires_at=now + self.invitation_window,
                invited_by=caller.user_id,
            )
            if not self.repository.reserve_invitation(
                invitation, event.max_pilots_per_squadron, now
            ):
                raise KartUnavailableError(
                    f"Kart {kart_number} was taken by a concurrent request",
                    context={"event_id": event_id, "kart_number": kart_number},
                )

        logger.info(
            f"Pilot {pilot_id} invited to event {event_id} on kart {kart_number} "
            f"(expires {invitation.expires_at.isoformat()})"
        )
        return invitation

    def _expire(self, invitation: Invitation, now: datetime) -> None:
        with self.repository.atomic():
            self.repository.compare_and_set_invitation_status(
                invitation.token, InvitationStatus.PENDING, InvitationStatus.EXPIRED, now
            )
        logger.info(f"Invitation {invitation.token} expired")

    def respond(self, token: str, accept: bool, caller: Caller) -> Invitation:
        """Accept or decline an invitation.

        An invitation past its expiry time is stored as expired and rejected,
        whatever the stored status said.

        Returns:
            The invitation with its new status.

        Raises:
            InvitationNotFoundError: If the token is unknown.
            AuthorizationError: If the caller is not the invited pilot.
            InvitationExpiredError: If the invitation has expired.
            StateError: If the invitation was already answered or rosters closed.
            ConflictError: If the slot was lost to a concurrent change.
        """
        now = self.clock()
        invitation = self.repository.get_invitation(token)
        if invitation.pilot_id != caller.user_id:
            raise AuthorizationError(
                "Only the invited pilot may respond",
                context={"user_id": caller.user_id, "token": token},
            )

        status = invitation.effective_status(now)
        if status is InvitationStatus.EXPIRED:
            if invitation.status is InvitationStatus.PENDING:
                self._expire(invitation, now)
            raise InvitationExpiredError(
                "Invitation has expired",
                context={"token": token, "expires_at": invitation.expires_at.isoformat()},
            )
        if status is not InvitationStatus.PENDING:
            raise StateError(
                f"Invitation was already {status.value}", context={"token": token}
            )

        with self.repository.atomic():
            event = self.repository.get_event(invitation.event_id)
            self._require_roster_open(event)

            if not accept:
                if not self.repository.compare_and_set_invitation_status(
                    token, InvitationStatus.PENDING, InvitationStatus.DECLINED, now
                ):
                    raise StateError(
                        "Invitation is no longer pending", context={"token": token}
                    )
                new_status = InvitationStatus.DECLINED
            else:
                if not self.repository.accept_invitation(
                    token, now, event.max_pilots_per_squadron
                ):
                    self._explain_failed_accept(event, invitation, now)
                self._refresh_participation_status(event.id, invitation.squadron_id)
                new_status = InvitationStatus.ACCEPTED

        invitation.status = new_status
        invitation.responded_at = now
        logger.info(
            f"Invitation {token} {new_status.value} by pilot {invitation.pilot_id} "
            f"(event {invitation.event_id}, kart {invitation.kart_number})"
        )
        return invitation

    def _explain_failed_accept(self, event: Event, invitation: Invitation, now: datetime) -> None:
        """Raise the error describing why a conditional accept did not apply."""
        current = self.repository.get_invitation(invitation.token)
        status = current.effective_status(now)
        if status is InvitationStatus.EXPIRED:
            raise InvitationExpiredError("Invitation has expired", context={"token": current.token})
        if status is not InvitationStatus.PENDING:
            raise StateError(
                f"Invitation was already {status.value}", context={"token": current.token}
            )
        if event.participation_of_pilot(current.pilot_id) is not None:
            raise DuplicateInvitationError(
                "Pilot is already confirmed for this event",
                context={"event_id": event.id, "pilot_id": current.pilot_id},
            )
        participation = event.find_participation(current.squadron_id)
        if participation and len(participation.confirmed_pilots) >= event.max_pilots_per_squadron:
            raise CapacityExceededError(
                "Squadron roster is full",
                context={"event_id": event.id, "squadron_id": current.squadron_id},
            )
        raise KartUnavailableError(
            f"Kart {current.kart_number} is no longer free",
            context={"event_id": event.id, "kart_number": current.kart_number},
        )

    # =========================================================================
    # Reads
    # =========================================================================

    def occupied_karts(self, event_id: str) -> list[int]:
        """Karts held by confirmed pilots or live invitations, ascending."""
        event = self.repository.get_event(event_id)
        return sorted(event.occupied_karts(self.clock()))

    def invitations_for(self, pilot_id: str) -> list[Invitation]:
        """The pilot's invitations that can still be answered."""
        now = self.clock()
        return [inv for inv in self.repository.invitations_for_pilot(pilot_id) if inv.is_live(now)]
