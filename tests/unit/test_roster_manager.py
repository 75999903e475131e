"""Unit tests for RosterManager: registration, invitations and kart slots."""

import threading
from datetime import timedelta

import pytest

from squadron_league.core.domain import (
    EventCategory,
    EventStatus,
    InvitationStatus,
    ParticipationStatus,
    Squadron,
)
from squadron_league.core.domain.exceptions import (
    AuthorizationError,
    CapacityExceededError,
    ConflictError,
    DuplicateInvitationError,
    InvalidKartNumberError,
    InvitationExpiredError,
    KartUnavailableError,
    PilotNotFoundError,
    SquadronNotFoundError,
    StateError,
    ValidationError,
)

pytestmark = pytest.mark.unit


@pytest.fixture
def event(open_event):
    return open_event()


@pytest.fixture
def alpha_registered(league, event, pilot_caller):
    """Alpha registered by its captain on kart 1."""
    league.roster.register_squadron(event.id, "alpha", pilot_caller("a1", "alpha", True), 1)
    return event


class TestRegistration:
    """Tests for register_squadron."""

    def test_captain_takes_first_kart(self, league, event, pilot_caller):
        participation = league.roster.register_squadron(
            event.id, "alpha", pilot_caller("a1", "alpha", True), 7, notes="Full team"
        )

        assert participation.status is ParticipationStatus.PENDING
        assert [p.pilot_id for p in participation.confirmed_pilots] == ["a1"]
        assert league.roster.occupied_karts(event.id) == [7]
        stored = league.lifecycle.get(event.id).find_participation("alpha")
        assert stored.notes == "Full team"
        assert stored.registered_by == "a1"

    def test_single_pilot_minimum_confirms_immediately(self, league, open_event, pilot_caller):
        event = open_event(min_pilots_per_squadron=1)

        participation = league.roster.register_squadron(
            event.id, "alpha", pilot_caller("a1", "alpha"), 1
        )

        assert participation.status is ParticipationStatus.CONFIRMED

    def test_caller_must_belong_to_squadron(self, league, event, pilot_caller):
        with pytest.raises(AuthorizationError):
            league.roster.register_squadron(event.id, "alpha", pilot_caller("b1", "bravo"), 1)

    def test_registration_must_be_open(self, league, organizer, pilot_caller):
        event = league.lifecycle.create(
            "Night Race",
            EventCategory.OPEN_SERIES,
            league.clock() + timedelta(days=3),
            league.clock() + timedelta(days=1),
            organizer,
        )
        league.lifecycle.publish(event.id, organizer)

        with pytest.raises(StateError):
            league.roster.register_squadron(event.id, "alpha", pilot_caller("a1", "alpha"), 1)

    def test_deadline_enforced(self, league, event, pilot_caller):
        league.clock.advance(days=8)

        with pytest.raises(StateError, match="deadline"):
            league.roster.register_squadron(event.id, "alpha", pilot_caller("a1", "alpha"), 1)

    def test_squadron_registers_once(self, league, alpha_registered, pilot_caller):
        with pytest.raises(ConflictError):
            league.roster.register_squadron(
                alpha_registered.id, "alpha", pilot_caller("a2", "alpha"), 2
            )

    def test_event_capacity(self, league, open_event, pilot_caller):
        event = open_event(max_squadrons=1)
        league.roster.register_squadron(event.id, "alpha", pilot_caller("a1", "alpha"), 1)

        with pytest.raises(CapacityExceededError):
            league.roster.register_squadron(event.id, "bravo", pilot_caller("b1", "bravo"), 2)

    def test_kart_taken_by_other_squadron(self, league, alpha_registered, pilot_caller):
        with pytest.raises(KartUnavailableError):
            league.roster.register_squadron(
                alpha_registered.id, "bravo", pilot_caller("b1", "bravo"), 1
            )

    @pytest.mark.parametrize("kart", [0, 21])
    def test_kart_range(self, league, event, pilot_caller, kart):
        with pytest.raises(InvalidKartNumberError):
            league.roster.register_squadron(event.id, "alpha", pilot_caller("a1", "alpha"), kart)

    def test_rank_requirement(self, league, open_event, pilot_caller):
        with league.repository.atomic():
            for index in range(10):
                league.repository.add_squadron(
                    Squadron(id=f"top{index}", name=f"Top {index}", total_points=9000 + index)
                )
        event = open_event(category=EventCategory.LE_MANS)

        # Delta is now ranked 14th; Le Mans takes the top 10 only
        with pytest.raises(ValidationError, match="rank"):
            league.roster.register_squadron(event.id, "delta", pilot_caller("d1", "delta"), 1)


class TestInvitations:
    """Tests for invite and respond."""

    def test_invite_and_accept(self, league, alpha_registered, pilot_caller):
        invitation = league.roster.invite(
            alpha_registered.id, "alpha", "a2", 2, pilot_caller("a1", "alpha")
        )

        assert invitation.status is InvitationStatus.PENDING
        assert invitation.expires_at - invitation.invited_at == timedelta(hours=2)
        assert league.roster.occupied_karts(alpha_registered.id) == [1, 2]
        assert [i.token for i in league.roster.invitations_for("a2")] == [invitation.token]

        accepted = league.roster.respond(invitation.token, True, pilot_caller("a2", "alpha"))

        assert accepted.status is InvitationStatus.ACCEPTED
        participation = league.lifecycle.get(alpha_registered.id).find_participation("alpha")
        assert [p.pilot_id for p in participation.confirmed_pilots] == ["a1", "a2"]
        assert participation.status is ParticipationStatus.CONFIRMED
        assert league.roster.invitations_for("a2") == []

    def test_decline_frees_kart(self, league, alpha_registered, pilot_caller):
        invitation = league.roster.invite(
            alpha_registered.id, "alpha", "a2", 2, pilot_caller("a1", "alpha")
        )

        declined = league.roster.respond(invitation.token, False, pilot_caller("a2", "alpha"))

        assert declined.status is InvitationStatus.DECLINED
        assert league.roster.occupied_karts(alpha_registered.id) == [1]

    def test_only_invited_pilot_responds(self, league, alpha_registered, pilot_caller):
        invitation = league.roster.invite(
            alpha_registered.id, "alpha", "a2", 2, pilot_caller("a1", "alpha")
        )

        with pytest.raises(AuthorizationError):
            league.roster.respond(invitation.token, True, pilot_caller("a3", "alpha"))

    def test_answer_only_once(self, league, alpha_registered, pilot_caller):
        invitation = league.roster.invite(
            alpha_registered.id, "alpha", "a2", 2, pilot_caller("a1", "alpha")
        )
        league.roster.respond(invitation.token, False, pilot_caller("a2", "alpha"))

        with pytest.raises(StateError):
            league.roster.respond(invitation.token, True, pilot_caller("a2", "alpha"))

    def test_expired_invitation(self, league, alpha_registered, pilot_caller):
        invitation = league.roster.invite(
            alpha_registered.id, "alpha", "a2", 2, pilot_caller("a1", "alpha")
        )
        league.clock.advance(hours=2, minutes=1)

        with pytest.raises(InvitationExpiredError):
            league.roster.respond(invitation.token, True, pilot_caller("a2", "alpha"))

        stored = league.repository.get_invitation(invitation.token)
        assert stored.status is InvitationStatus.EXPIRED
        assert league.roster.occupied_karts(alpha_registered.id) == [1]
        assert league.roster.invitations_for("a2") == []

    def test_expired_kart_can_be_offered_again(self, league, alpha_registered, pilot_caller):
        captain = pilot_caller("a1", "alpha")
        league.roster.invite(alpha_registered.id, "alpha", "a2", 2, captain)
        league.clock.advance(hours=3)

        again = league.roster.invite(alpha_registered.id, "alpha", "a3", 2, captain)

        assert again.kart_number == 2

    def test_kart_held_by_live_invitation(self, league, alpha_registered, pilot_caller):
        league.roster.register_squadron(
            alpha_registered.id, "bravo", pilot_caller("b1", "bravo"), 5
        )
        league.roster.invite(alpha_registered.id, "alpha", "a2", 2, pilot_caller("a1", "alpha"))

        with pytest.raises(KartUnavailableError):
            league.roster.invite(
                alpha_registered.id, "bravo", "b2", 2, pilot_caller("b1", "bravo")
            )

    def test_pilot_invited_once(self, league, alpha_registered, pilot_caller):
        captain = pilot_caller("a1", "alpha")
        league.roster.invite(alpha_registered.id, "alpha", "a2", 2, captain)

        with pytest.raises(DuplicateInvitationError):
            league.roster.invite(alpha_registered.id, "alpha", "a2", 3, captain)

    def test_confirmed_pilot_cannot_be_invited(self, league, alpha_registered, pilot_caller):
        with pytest.raises(DuplicateInvitationError):
            league.roster.invite(
                alpha_registered.id, "alpha", "a1", 3, pilot_caller("a1", "alpha")
            )

    def test_only_squadron_members(self, league, alpha_registered, pilot_caller):
        with pytest.raises(ValidationError):
            league.roster.invite(
                alpha_registered.id, "alpha", "b2", 3, pilot_caller("a1", "alpha")
            )
        with pytest.raises(PilotNotFoundError):
            league.roster.invite(
                alpha_registered.id, "alpha", "ghost", 3, pilot_caller("a1", "alpha")
            )

    def test_squadron_must_be_registered(self, league, event, pilot_caller):
        with pytest.raises(SquadronNotFoundError):
            league.roster.invite(event.id, "alpha", "a2", 2, pilot_caller("a1", "alpha"))

    def test_roster_limit_counts_pending(self, league, open_event, pilot_caller):
        event = open_event(max_pilots_per_squadron=2)
        captain = pilot_caller("a1", "alpha")
        league.roster.register_squadron(event.id, "alpha", captain, 1)
        league.roster.invite(event.id, "alpha", "a2", 2, captain)

        with pytest.raises(CapacityExceededError):
            league.roster.invite(event.id, "alpha", "a3", 3, captain)

    def test_invites_allowed_after_registration_closes(
        self, league, alpha_registered, organizer, pilot_caller
    ):
        league.lifecycle.close_registration(alpha_registered.id, organizer)

        invitation = league.roster.invite(
            alpha_registered.id, "alpha", "a2", 2, pilot_caller("a1", "alpha")
        )

        assert invitation.status is InvitationStatus.PENDING

    def test_rosters_frozen_once_started(self, league, alpha_registered, organizer, pilot_caller):
        invitation = league.roster.invite(
            alpha_registered.id, "alpha", "a2", 2, pilot_caller("a1", "alpha")
        )
        league.lifecycle.close_registration(alpha_registered.id, organizer)
        league.lifecycle.start(alpha_registered.id, organizer)

        with pytest.raises(StateError):
            league.roster.invite(
                alpha_registered.id, "alpha", "a3", 3, pilot_caller("a1", "alpha")
            )
        with pytest.raises(StateError):
            league.roster.respond(invitation.token, True, pilot_caller("a2", "alpha"))
        assert league.lifecycle.get(alpha_registered.id).status is EventStatus.IN_PROGRESS

    @pytest.mark.slow
    def test_concurrent_invites_for_same_kart(self, league, alpha_registered, pilot_caller):
        event_id = alpha_registered.id
        league.roster.register_squadron(event_id, "bravo", pilot_caller("b1", "bravo"), 5)
        barrier = threading.Barrier(2)
        outcomes: list[object] = []
        lock = threading.Lock()

        def invite(squadron_id: str, captain: str, pilot_id: str) -> None:
            barrier.wait()
            try:
                result: object = league.roster.invite(
                    event_id, squadron_id, pilot_id, 9, pilot_caller(captain, squadron_id)
                )
            except ConflictError as e:
                result = e
            with lock:
                outcomes.append(result)

        threads = [
            threading.Thread(target=invite, args=("alpha", "a1", "a2")),
            threading.Thread(target=invite, args=("bravo", "b1", "b2")),
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        errors = [o for o in outcomes if isinstance(o, ConflictError)]
        assert len(outcomes) == 2
        assert len(errors) == 1
        assert league.roster.occupied_karts(event_id) == [1, 5, 9]


class TestUnregister:
    """Tests for unregister_pilot."""

    @pytest.fixture
    def full_alpha(self, league, alpha_registered, pilot_caller):
        invitation = league.roster.invite(
            alpha_registered.id, "alpha", "a2", 2, pilot_caller("a1", "alpha")
        )
        league.roster.respond(invitation.token, True, pilot_caller("a2", "alpha"))
        return alpha_registered

    def test_pilot_leaves(self, league, full_alpha, pilot_caller):
        league.roster.unregister_pilot(full_alpha.id, "a2", pilot_caller("a2", "alpha"))

        participation = league.lifecycle.get(full_alpha.id).find_participation("alpha")
        assert [p.pilot_id for p in participation.confirmed_pilots] == ["a1"]
        assert participation.status is ParticipationStatus.PENDING
        assert league.roster.occupied_karts(full_alpha.id) == [1]

    def test_captain_removes_teammate(self, league, full_alpha, pilot_caller):
        league.roster.unregister_pilot(
            full_alpha.id, "a2", pilot_caller("a1", "alpha", captain=True)
        )

        assert league.roster.occupied_karts(full_alpha.id) == [1]

    def test_other_pilot_cannot_remove(self, league, full_alpha, pilot_caller):
        with pytest.raises(AuthorizationError):
            league.roster.unregister_pilot(full_alpha.id, "a2", pilot_caller("a1", "alpha"))
        with pytest.raises(AuthorizationError):
            league.roster.unregister_pilot(
                full_alpha.id, "a2", pilot_caller("b1", "bravo", captain=True)
            )

    def test_last_pilot_leaving_withdraws_squadron(self, league, alpha_registered, pilot_caller):
        league.roster.unregister_pilot(alpha_registered.id, "a1", pilot_caller("a1", "alpha"))

        event = league.lifecycle.get(alpha_registered.id)
        assert event.find_participation("alpha") is None
        assert league.roster.occupied_karts(event.id) == []

    def test_not_after_deadline(self, league, full_alpha, pilot_caller):
        league.clock.advance(days=8)

        with pytest.raises(StateError):
            league.roster.unregister_pilot(full_alpha.id, "a2", pilot_caller("a2", "alpha"))
