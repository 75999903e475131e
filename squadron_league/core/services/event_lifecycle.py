"""Event lifecycle orchestration.

An event moves along two independent axes:

- publication: draft -> published -> registration_open -> registration_closed
  -> in_progress -> completed, with cancelled reachable from any
  non-terminal state
- result processing: pending -> in_review -> finalized

``finalize`` is the only step that touches squadron totals and fair racing
scores, and it does so in a single transaction.
"""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from ..domain import (
    CATEGORY_CONFIG,
    CalculatedResults,
    Caller,
    Capability,
    Event,
    EventCategory,
    EventStatus,
    RaceEntry,
    RaceProcessingState,
    Sanction,
)
from ..domain.exceptions import (
    AlreadyFinalizedError,
    ConflictError,
    InvalidScheduleError,
    PilotNotFoundError,
    StateError,
    ValidationError,
)
from ..domain.utils import clean_text, new_id, normalize_name, utcnow
from ..ports.identity_port import IdentityResolverPort
from ..ports.notification_port import NotificationKind, NotificationPort
from ..ports.race_result_port import RaceResultProviderPort
from ..ports.repository_port import LeagueRepositoryPort
from .fair_racing_ledger import FairRacingScoreLedger
from .points_ledger import PointsLedger
from .scoring_engine import ScoringEngine

logger = logging.getLogger(__name__)

# Forward transitions: operation -> (required current status, next status)
TRANSITIONS: dict[str, tuple[EventStatus, EventStatus]] = {
    "publish": (EventStatus.DRAFT, EventStatus.PUBLISHED),
    "open_registration": (EventStatus.PUBLISHED, EventStatus.REGISTRATION_OPEN),
    "close_registration": (EventStatus.REGISTRATION_OPEN, EventStatus.REGISTRATION_CLOSED),
    "start": (EventStatus.REGISTRATION_CLOSED, EventStatus.IN_PROGRESS),
    "complete": (EventStatus.IN_PROGRESS, EventStatus.COMPLETED),
}


class EventLifecycle:
    """Creates events, drives their state machines and finalizes results."""

    def __init__(
        self,
        repository: LeagueRepositoryPort,
        scoring_engine: ScoringEngine,
        points_ledger: PointsLedger,
        fair_racing: FairRacingScoreLedger,
        race_results: RaceResultProviderPort,
        identity: IdentityResolverPort,
        notifier: NotificationPort,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize the lifecycle service.

        Args:
            repository: League storage and transaction boundary.
            scoring_engine: Pure race-to-squadron scorer.
            points_ledger: Applies awarded points to squadron totals.
            fair_racing: Pilot reputation ledger.
            race_results: Timing system client.
            identity: Driver name resolver.
            notifier: Pilot notification dispatcher.
            clock: Source of the current time.
        """
        self.repository = repository
        self.scoring_engine = scoring_engine
        self.points_ledger = points_ledger
        self.fair_racing = fair_racing
        self.race_results = race_results
        self.identity = identity
        self.notifier = notifier
        self.clock = clock

    # =========================================================================
    # Creation and reads
    # =========================================================================

    def create(
        self,
        name: str,
        category: EventCategory,
        event_date: datetime,
        registration_deadline: datetime,
        caller: Caller,
        location: str = "SpeedPark",
        description: str | None = None,
        max_squadrons: int = 20,
        min_pilots_per_squadron: int = 2,
        max_pilots_per_squadron: int = 6,
    ) -> Event:
        """Create an event in draft.

        Raises:
            AuthorizationError: If the caller is not an organizer.
            InvalidScheduleError: If the deadline is not before the event date.
            ValidationError: If the name or the capacity limits are invalid.
        """
        caller.require(Capability.ORGANIZER, "create events")
        name = clean_text(name).strip()
        if not name:
            raise ValidationError("Event name is required")
        if event_date.tzinfo is None or registration_deadline.tzinfo is None:
            raise ValidationError("Event dates must include a timezone")
        if registration_deadline >= event_date:
            raise InvalidScheduleError(
                "Registration deadline must be before the event date",
                context={
                    "event_date": event_date.isoformat(),
                    "registration_deadline": registration_deadline.isoformat(),
                },
            )
        if max_squadrons < 1:
            raise ValidationError("An event needs room for at least one squadron")
        if not 1 <= min_pilots_per_squadron <= max_pilots_per_squadron:
            raise ValidationError(
                "Pilot limits must satisfy 1 <= min <= max",
                context={"min": min_pilots_per_squadron, "max": max_pilots_per_squadron},
            )

        event = Event(
            id=new_id("evt"),
            name=name,
            category=category,
            created_by=caller.user_id,
            event_date=event_date,
            registration_deadline=registration_deadline,
            location=location,
            description=description,
            max_squadrons=max_squadrons,
            min_pilots_per_squadron=min_pilots_per_squadron,
            max_pilots_per_squadron=max_pilots_per_squadron,
            created_at=self.clock(),
        )
        with self.repository.atomic():
            self.repository.add_event(event)
        logger.info(f"Event {event.id} '{name}' created ({category.value})")
        return event

    def get(self, event_id: str) -> Event:
        return self.repository.get_event(event_id)

    def list_events(self, status: EventStatus | None = None) -> list[Event]:
        return self.repository.list_events(status)

    # =========================================================================
    # Publication lifecycle
    # =========================================================================

    def _move(
        self, event_id: str, expected: EventStatus, new: EventStatus, caller: Caller
    ) -> Event:
        caller.require(Capability.ORGANIZER, "change event status")
        event = self.repository.get_event(event_id)
        if event.status is not expected:
            raise StateError(
                f"Cannot move event from {event.status.value} to {new.value}",
                context={"event_id": event_id, "required": expected.value},
            )
        at = self.clock()
        with self.repository.atomic():
            if not self.repository.compare_and_set_status(event_id, expected, new, at):
                raise ConflictError(
                    "Event status changed concurrently",
                    context={"event_id": event_id, "expected": expected.value},
                )
        logger.info(
            f"Event {event_id}: {expected.value} -> {new.value}", extra={"event_id": event_id}
        )
        return self.repository.get_event(event_id)

    def transition(self, event_id: str, operation: str, caller: Caller) -> Event:
        """Run a named forward transition ("publish", "start", ...)."""
        if operation == "cancel":
            return self.cancel(event_id, caller)
        if operation not in TRANSITIONS:
            raise ValidationError(
                f"Unknown event transition: {operation}",
                context={"allowed": sorted([*TRANSITIONS, "cancel"])},
            )
        expected, new = TRANSITIONS[operation]
        return self._move(event_id, expected, new, caller)

    def publish(self, event_id: str, caller: Caller) -> Event:
        return self.transition(event_id, "publish", caller)

    def open_registration(self, event_id: str, caller: Caller) -> Event:
        return self.transition(event_id, "open_registration", caller)

    def close_registration(self, event_id: str, caller: Caller) -> Event:
        return self.transition(event_id, "close_registration", caller)

    def start(self, event_id: str, caller: Caller) -> Event:
        return self.transition(event_id, "start", caller)

    def complete(self, event_id: str, caller: Caller) -> Event:
        return self.transition(event_id, "complete", caller)

    def cancel(self, event_id: str, caller: Caller) -> Event:
        """Cancel an event from any non-terminal state."""
        caller.require(Capability.ORGANIZER, "cancel events")
        event = self.repository.get_event(event_id)
        if event.status.is_terminal:
            raise StateError(
                f"Cannot cancel an event that is {event.status.value}",
                context={"event_id": event_id},
            )
        return self._move(event_id, event.status, EventStatus.CANCELLED, caller)

    # =========================================================================
    # Result processing
    # =========================================================================

    def mark_in_review(self, event_id: str, race_session_id: str, caller: Caller) -> Event:
        """Link the race to a completed event and open result review."""
        caller.require(Capability.ORGANIZER, "review results")
        if not race_session_id.strip():
            raise ValidationError("Race session id is required")
        event = self.repository.get_event(event_id)
        if event.status is not EventStatus.COMPLETED:
            raise StateError(
                "Only completed events can be reviewed",
                context={"event_id": event_id, "status": event.status.value},
            )
        if event.race_state is not RaceProcessingState.PENDING:
            raise StateError(
                f"Event results are already {event.race_state.value}",
                context={"event_id": event_id},
            )
        with self.repository.atomic():
            if not self.repository.compare_and_set_race_state(
                event_id, RaceProcessingState.PENDING, RaceProcessingState.IN_REVIEW
            ):
                raise ConflictError(
                    "Event review was started concurrently", context={"event_id": event_id}
                )
            self.repository.link_race_session(event_id, race_session_id.strip())
        logger.info(
            f"Event {event_id} in review (race session {race_session_id})",
            extra={"event_id": event_id, "race_session_id": race_session_id},
        )
        return self.repository.get_event(event_id)

    def _squadron_for(self, event: Event, pilot_id: str) -> str | None:
        participation = event.participation_of_pilot(pilot_id)
        if participation is not None:
            return participation.squadron_id
        try:
            pilot = self.repository.get_pilot(pilot_id)
        except PilotNotFoundError:
            return None
        if pilot.squadron_id and event.find_participation(pilot.squadron_id) is not None:
            return pilot.squadron_id
        return None

    def calculate_results(
        self, event_id: str, race_session_id: str | None = None
    ) -> CalculatedResults:
        """Score the event's race without persisting anything.

        Drivers are resolved to pilots, pilots to squadrons through the event
        roster (falling back to their current squadron when it takes part), and
        position penalties and disqualifications are applied before scoring.
        Drivers that cannot be placed in a participating squadron are listed
        in ``unresolved_drivers`` and do not score.

        Raises:
            ValidationError: If no race session is linked or given.
            DataSourceError: If the race result cannot be fetched.
        """
        event = self.repository.get_event(event_id)
        session_id = race_session_id or event.linked_race_session_id
        if not session_id:
            raise ValidationError(
                "No race session linked to this event", context={"event_id": event_id}
            )

        raw = self.race_results.get_result(session_id)
        sanctions = self.repository.list_sanctions(event_id)

        pilot_ids: dict[str, str] = {}
        for result in raw:
            try:
                identity = self.identity.resolve(result.driver_name)
            except PilotNotFoundError:
                continue
            pilot_ids[normalize_name(result.driver_name)] = identity.pilot_id

        adjusted, audit = self.scoring_engine.adjust_positions(raw, sanctions, pilot_ids)
        original_positions = {normalize_name(a.driver_name): a for a in audit}

        entries: list[RaceEntry] = []
        unresolved: list[str] = []
        for result in adjusted:
            key = normalize_name(result.driver_name)
            pilot_id = pilot_ids.get(key)
            squadron_id = self._squadron_for(event, pilot_id) if pilot_id else None
            if pilot_id is None or squadron_id is None:
                unresolved.append(result.driver_name)
                continue
            moved = original_positions.get(key)
            entries.append(
                RaceEntry(
                    pilot_id=pilot_id,
                    driver_name=result.driver_name,
                    final_position=result.final_position,
                    kart_number=result.kart_number,
                    squadron_id=squadron_id,
                    original_position=moved.original_position if moved else None,
                )
            )

        if unresolved:
            logger.warning(
                f"Event {event_id}: {len(unresolved)} driver(s) not scored: {unresolved}",
                extra={"event_id": event_id, "race_session_id": session_id},
            )

        return self.scoring_engine.score(
            event_id=event.id,
            base_points=event.base_points,
            entries=entries,
            registration_order=event.registration_order(),
            race_session_id=session_id,
            adjusted_results=audit,
            unresolved_drivers=unresolved,
        )

    def _validate_results(self, event: Event, results: CalculatedResults) -> None:
        if results.event_id != event.id:
            raise ValidationError(
                "Results belong to a different event",
                context={"event_id": event.id, "results_event_id": results.event_id},
            )
        if results.base_points != event.base_points:
            raise ValidationError(
                "Results were computed with the wrong base points",
                context={"expected": event.base_points, "given": results.base_points},
            )
        squadron_ids = [s.squadron_id for s in results.squadrons]
        if len(set(squadron_ids)) != len(squadron_ids):
            raise ValidationError("A squadron appears more than once in the results")
        positions = sorted(s.position for s in results.squadrons)
        if positions != list(range(1, len(positions) + 1)):
            raise ValidationError("Squadron positions must run from 1 without gaps")
        for squadron in results.squadrons:
            percentage = self.scoring_engine.percentage_for_position(squadron.position)
            expected = self.scoring_engine.award(event.base_points, percentage)
            if squadron.percentage_awarded != percentage or squadron.points_awarded != expected:
                raise ValidationError(
                    f"Awarded points for position {squadron.position} "
                    "do not match the payout table",
                    context={
                        "squadron_id": squadron.squadron_id,
                        "expected_points": expected,
                        "given_points": squadron.points_awarded,
                    },
                )

    def finalize(self, event_id: str, results: CalculatedResults, caller: Caller) -> Event:
        """Commit an event's results.

        Inside one transaction: moves the race state from in_review to
        finalized, applies every squadron's awarded points with an audit
        entry, turns each sanction's points penalty into an approved incident,
        gives clean-race recovery to every scored pilot without a sanction,
        and stores the results. If any step fails nothing is committed and the
        call can be retried. Sanctioned pilots are notified after the commit;
        notification failures are logged only.

        Raises:
            AuthorizationError: If the caller is not an organizer.
            AlreadyFinalizedError: If the event was already finalized, including
                by a concurrent call.
            StateError: If the event is not in review.
            ValidationError: If the results do not match the event.
        """
        caller.require(Capability.ORGANIZER, "finalize results")
        event = self.repository.get_event(event_id)
        if event.race_state is RaceProcessingState.FINALIZED:
            raise AlreadyFinalizedError(
                "Event results are already finalized", context={"event_id": event_id}
            )
        if event.race_state is not RaceProcessingState.IN_REVIEW:
            raise StateError(
                "Event results must be in review before they can be finalized",
                context={"event_id": event_id, "race_state": event.race_state.value},
            )
        self._validate_results(event, results)

        sanctions = self.repository.list_sanctions(event_id)
        sanctioned = {s.pilot_id for s in sanctions}
        category = CATEGORY_CONFIG[event.category]
        finalized_at = self.clock()

        with self.repository.atomic():
            if not self.repository.compare_and_set_race_state(
                event_id, RaceProcessingState.IN_REVIEW, RaceProcessingState.FINALIZED
            ):
                raise AlreadyFinalizedError(
                    "Event results were finalized concurrently", context={"event_id": event_id}
                )

            for squadron in results.squadrons:
                self.points_ledger.apply(
                    squadron_id=squadron.squadron_id,
                    event_id=event_id,
                    points_awarded=squadron.points_awarded,
                    reason=(
                        f"Event: {event.name} - Position {squadron.position} "
                        f"({squadron.percentage_awarded}%)"
                    ),
                    modified_by=caller.user_id,
                    metadata={
                        "event_name": event.name,
                        "event_category": event.category.value,
                        "category_name": category.name,
                        "position": squadron.position,
                        "percentage": squadron.percentage_awarded,
                        "total_points": squadron.total_points,
                        "race_session_id": results.race_session_id,
                    },
                )

            for sanction in sanctions:
                self.fair_racing.apply_sanction(sanction, caller.user_id)

            scored_pilots = sorted(
                {pilot.pilot_id for squadron in results.squadrons for pilot in squadron.pilots}
            )
            for pilot_id in scored_pilots:
                if pilot_id not in sanctioned:
                    self.fair_racing.apply_clean_race_recovery(pilot_id, event_id)

            self.repository.save_results(
                event_id,
                list(results.squadrons),
                list(results.adjusted_results),
                finalized_at,
                caller.user_id,
            )

        logger.info(
            f"Event {event_id} finalized by {caller.user_id}: "
            f"{len(results.squadrons)} squadron(s), {len(sanctions)} sanction(s)",
            extra={"event_id": event_id},
        )
        self._notify_sanctions(event, sanctions)
        return self.repository.get_event(event_id)

    def _notify_sanctions(self, event: Event, sanctions: list[Sanction]) -> None:
        for sanction in sanctions:
            payload: dict[str, Any] = {
                "event_id": event.id,
                "event_name": event.name,
                "sanction_id": sanction.id,
                "sanction_type": sanction.sanction_type.value,
                "description": sanction.description,
                "position_penalty": sanction.position_penalty,
                "points_penalty": sanction.points_penalty,
            }
            try:
                self.notifier.notify(sanction.pilot_id, NotificationKind.RACE_SANCTION, payload)
            except Exception as e:
                logger.warning(
                    f"Failed to notify pilot {sanction.pilot_id} of sanction {sanction.id}: {e}",
                    extra={
                        "event_id": event.id,
                        "pilot_id": sanction.pilot_id,
                        "sanction_id": sanction.id,
                    },
                )
