"""Event, participation and invitation models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from .exceptions import InvalidKartNumberError

if TYPE_CHECKING:
    from .results import AdjustedResult, SquadronResult

MIN_KART_NUMBER = 1
MAX_KART_NUMBER = 20


class EventCategory(Enum):
    """Event category. Each category distributes a fixed pool of base points."""

    LE_MANS = "le_mans"
    GRAND_PRIX_ELITE = "grand_prix_elite"
    RACING_MASTERS = "racing_masters"
    PRO_CHAMPIONSHIP = "pro_championship"
    OPEN_SERIES = "open_series"


@dataclass(frozen=True)
class CategoryConfig:
    """Fixed configuration of an event category.

    Attributes:
        name: Display name.
        base_points: Point pool distributed by the event.
        required_rank: Worst squadron rank allowed to register (None = open).
        mandatory_for_top: Squadrons ranked at or above this must attend.
    """

    name: str
    base_points: int
    required_rank: int | None
    mandatory_for_top: int | None


CATEGORY_CONFIG: dict[EventCategory, CategoryConfig] = {
    EventCategory.LE_MANS: CategoryConfig("Le Mans", 5000, 10, 5),
    EventCategory.GRAND_PRIX_ELITE: CategoryConfig("Grand Prix Elite", 2500, 20, 10),
    EventCategory.RACING_MASTERS: CategoryConfig("Racing Masters", 1500, 50, 25),
    EventCategory.PRO_CHAMPIONSHIP: CategoryConfig("Pro Championship", 800, 100, None),
    EventCategory.OPEN_SERIES: CategoryConfig("Open Series", 400, None, None),
}


class EventStatus(Enum):
    """Publication lifecycle of an event."""

    DRAFT = "draft"
    PUBLISHED = "published"
    REGISTRATION_OPEN = "registration_open"
    REGISTRATION_CLOSED = "registration_closed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (EventStatus.COMPLETED, EventStatus.CANCELLED)


class RaceProcessingState(Enum):
    """Result-processing lifecycle, independent of the publication lifecycle."""

    PENDING = "pending"
    IN_REVIEW = "in_review"
    FINALIZED = "finalized"


class ParticipationStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class InvitationStatus(Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    EXPIRED = "expired"
    DECLINED = "declined"


def validate_kart_number(kart_number: int) -> int:
    """Ensure a kart number lies in the track's fleet range.

    Raises:
        InvalidKartNumberError: If the number is outside 1-20.
    """
    if not isinstance(kart_number, int) or isinstance(kart_number, bool):
        raise InvalidKartNumberError(
            "Kart number must be an integer", context={"kart_number": kart_number}
        )
    if not MIN_KART_NUMBER <= kart_number <= MAX_KART_NUMBER:
        raise InvalidKartNumberError(
            f"Kart number must be between {MIN_KART_NUMBER} and {MAX_KART_NUMBER}",
            context={"kart_number": kart_number},
        )
    return kart_number


@dataclass
class Invitation:
    """An offer of a kart slot to a pilot, valid for a fixed window.

    Expiry is lazy: a stored ``pending`` invitation past ``expires_at`` is
    treated as expired by every reader, whether or not the stored status was
    ever updated.
    """

    token: str
    event_id: str
    squadron_id: str
    pilot_id: str
    kart_number: int
    invited_at: datetime
    expires_at: datetime
    status: InvitationStatus = InvitationStatus.PENDING
    invited_by: str | None = None
    responded_at: datetime | None = None

    def effective_status(self, now: datetime) -> InvitationStatus:
        """Status as seen at ``now``, applying lazy expiry."""
        if self.status is InvitationStatus.PENDING and now >= self.expires_at:
            return InvitationStatus.EXPIRED
        return self.status

    def is_live(self, now: datetime) -> bool:
        """True while the invitation still reserves its kart."""
        return self.effective_status(now) is InvitationStatus.PENDING


@dataclass
class ConfirmedPilot:
    pilot_id: str
    kart_number: int
    confirmed_at: datetime


@dataclass
class Participation:
    """One squadron's roster for one event."""

    event_id: str
    squadron_id: str
    registered_by: str
    registered_at: datetime
    confirmed_pilots: list[ConfirmedPilot] = field(default_factory=list)
    pending_invitations: list[Invitation] = field(default_factory=list)
    status: ParticipationStatus = ParticipationStatus.PENDING
    notes: str | None = None

    def live_invitations(self, now: datetime) -> list[Invitation]:
        return [inv for inv in self.pending_invitations if inv.is_live(now)]

    def occupant_count(self, now: datetime) -> int:
        """Confirmed pilots plus live invitations."""
        return len(self.confirmed_pilots) + len(self.live_invitations(now))

    def held_karts(self, now: datetime) -> set[int]:
        karts = {pilot.kart_number for pilot in self.confirmed_pilots}
        karts.update(inv.kart_number for inv in self.live_invitations(now))
        return karts

    def has_pilot(self, pilot_id: str) -> bool:
        return any(pilot.pilot_id == pilot_id for pilot in self.confirmed_pilots)


@dataclass
class Event:
    """A single scored competitive occasion.

    Attributes:
        id: Event identifier.
        name: Display name.
        category: Category, which fixes the base points.
        created_by: Organizer who created the event.
        event_date: When the race takes place.
        registration_deadline: Last moment squadrons may register.
        location: Track name.
        max_squadrons: Maximum number of participating squadrons.
        min_pilots_per_squadron: Pilots needed for a participation to be confirmed.
        max_pilots_per_squadron: Roster size limit per squadron.
        status: Publication lifecycle state.
        race_state: Result-processing state.
        results: Squadron results, populated only once finalized.
    """

    id: str
    name: str
    category: EventCategory
    created_by: str
    event_date: datetime
    registration_deadline: datetime
    location: str = "SpeedPark"
    description: str | None = None
    max_squadrons: int = 20
    min_pilots_per_squadron: int = 2
    max_pilots_per_squadron: int = 6
    status: EventStatus = EventStatus.DRAFT
    race_state: RaceProcessingState = RaceProcessingState.PENDING
    linked_race_session_id: str | None = None
    participants: list[Participation] = field(default_factory=list)
    sanction_ids: list[str] = field(default_factory=list)
    results: list["SquadronResult"] = field(default_factory=list)
    adjusted_results: list["AdjustedResult"] = field(default_factory=list)
    created_at: datetime | None = None
    published_at: datetime | None = None
    completed_at: datetime | None = None
    finalized_at: datetime | None = None
    finalized_by: str | None = None

    @property
    def base_points(self) -> int:
        return CATEGORY_CONFIG[self.category].base_points

    def can_register(self, squadron_rank: int) -> bool:
        """Whether a squadron at ``squadron_rank`` meets the category's entry rank."""
        required = CATEGORY_CONFIG[self.category].required_rank
        return required is None or squadron_rank <= required

    def is_mandatory_for(self, squadron_rank: int) -> bool:
        mandatory = CATEGORY_CONFIG[self.category].mandatory_for_top
        return mandatory is not None and squadron_rank <= mandatory

    def active_participations(self) -> list[Participation]:
        return [p for p in self.participants if p.status is not ParticipationStatus.CANCELLED]

    def has_space(self) -> bool:
        return len(self.active_participations()) < self.max_squadrons

    def find_participation(self, squadron_id: str) -> Participation | None:
        for participation in self.participants:
            if participation.squadron_id == squadron_id:
                return participation
        return None

    def participation_of_pilot(self, pilot_id: str) -> Participation | None:
        """Participation in which the pilot holds a confirmed slot, if any."""
        for participation in self.participants:
            if participation.has_pilot(pilot_id):
                return participation
        return None

    def occupied_karts(self, now: datetime) -> set[int]:
        """Karts held by a confirmed pilot or a live invitation anywhere in the event."""
        karts: set[int] = set()
        for participation in self.active_participations():
            karts.update(participation.held_karts(now))
        return karts

    def has_live_invitation(self, pilot_id: str, now: datetime) -> bool:
        return any(
            inv.pilot_id == pilot_id
            for participation in self.participants
            for inv in participation.live_invitations(now)
        )

    def find_invitation(self, token: str) -> Invitation | None:
        for participation in self.participants:
            for invitation in participation.pending_invitations:
                if invitation.token == token:
                    return invitation
        return None

    def registration_order(self) -> list[str]:
        """Squadron ids ordered by registration time."""
        ordered = sorted(self.participants, key=lambda p: (p.registered_at, p.squadron_id))
        return [p.squadron_id for p in ordered]

