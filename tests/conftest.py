"""
Pytest configuration and shared fixtures.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from squadron_league.adapters.outbound.directory_identity_adapter import (
    DirectoryIdentityResolver,
)
from squadron_league.adapters.outbound.sqlite_adapter import SQLiteAdapter
from squadron_league.core.domain import (
    Caller,
    Capability,
    EventCategory,
    Pilot,
    RawRaceResult,
    Squadron,
)
from squadron_league.core.domain.exceptions import RaceSessionNotFoundError
from squadron_league.core.ports.notification_port import NotificationKind, NotificationPort
from squadron_league.core.ports.race_result_port import RaceResultProviderPort
from squadron_league.core.services import (
    EventLifecycle,
    FairRacingScoreLedger,
    PointsLedger,
    RosterManager,
    SanctionRegistry,
    ScoringEngine,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

# (squadron id, name, starting points, [(pilot id, display name, timing name)])
SQUADRONS = [
    (
        "alpha",
        "Alpha Squadron",
        1000,
        [
            ("a1", "Alice Martin", "ALICE M"),
            ("a2", "Arthur Dubois", "ARTHUR D"),
            ("a3", "Amélie Roux", "AMELIE R"),
        ],
    ),
    ("bravo", "Bravo Squadron", 800, [("b1", "Bruno Petit", "BRUNO P"), ("b2", "Bea Leroy", None)]),
    (
        "charlie",
        "Charlie Squadron",
        500,
        [("c1", "Chloe Moreau", None), ("c2", "Cyril Faure", None)],
    ),
    ("delta", "Delta Squadron", 200, [("d1", "Denis Garnier", None), ("d2", "Diane Blanc", None)]),
]


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests (no external dependencies)")
    config.addinivalue_line("markers", "integration: Integration tests (HTTP API via TestClient)")
    config.addinivalue_line("markers", "slow: Slow tests (threads, many writes)")


class FakeClock:
    """Controllable clock passed to services instead of the wall clock."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class FakeRaceResults(RaceResultProviderPort):
    """Race results keyed by session id."""

    def __init__(self) -> None:
        self.sessions: dict[str, list[RawRaceResult]] = {}

    def add_session(self, session_id: str, finishers: list[tuple[str, int, int]]) -> None:
        self.sessions[session_id] = [
            RawRaceResult(name, position, kart) for name, position, kart in finishers
        ]

    def get_result(self, race_session_id: str) -> list[RawRaceResult]:
        if race_session_id not in self.sessions:
            raise RaceSessionNotFoundError(
                "Race session not found", context={"race_session_id": race_session_id}
            )
        return list(self.sessions[race_session_id])


@dataclass
class RecordingNotifier(NotificationPort):
    """Keeps notifications in memory; can be told to fail."""

    sent: list[tuple[str, NotificationKind, dict[str, Any]]] = field(default_factory=list)
    fail: bool = False

    def notify(self, pilot_id: str, kind: NotificationKind, payload: dict[str, Any]) -> None:
        if self.fail:
            raise RuntimeError("push gateway down")
        self.sent.append((pilot_id, kind, payload))


@dataclass
class League:
    """Services wired against one temporary database."""

    repository: SQLiteAdapter
    clock: FakeClock
    race_results: FakeRaceResults
    notifier: RecordingNotifier
    points: PointsLedger
    fair_racing: FairRacingScoreLedger
    roster: RosterManager
    sanctions: SanctionRegistry
    lifecycle: EventLifecycle


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def repository(tmp_path):
    """SQLite repository in a temporary directory."""
    adapter = SQLiteAdapter(tmp_path / "league.db")
    yield adapter
    adapter.close()


@pytest.fixture
def seeded_repository(repository):
    """Repository with four squadrons and their pilots."""
    with repository.atomic():
        for index, (squadron_id, name, points, pilots) in enumerate(SQUADRONS):
            repository.add_squadron(
                Squadron(
                    id=squadron_id,
                    name=name,
                    total_points=points,
                    initial_points=points,
                    created_at=NOW - timedelta(days=30 - index),
                )
            )
            for pilot_id, display_name, timing_name in pilots:
                repository.add_pilot(
                    Pilot(
                        pilot_id=pilot_id,
                        display_name=display_name,
                        karting_driver_name=timing_name,
                        squadron_id=squadron_id,
                    )
                )
    return repository


@pytest.fixture
def league(seeded_repository, clock):
    """All league services sharing the seeded repository and a fixed clock."""
    race_results = FakeRaceResults()
    notifier = RecordingNotifier()
    identity = DirectoryIdentityResolver(seeded_repository)
    points = PointsLedger(seeded_repository, clock=clock)
    fair_racing = FairRacingScoreLedger(seeded_repository, clock=clock)
    return League(
        repository=seeded_repository,
        clock=clock,
        race_results=race_results,
        notifier=notifier,
        points=points,
        fair_racing=fair_racing,
        roster=RosterManager(seeded_repository, clock=clock),
        sanctions=SanctionRegistry(seeded_repository, identity, clock=clock),
        lifecycle=EventLifecycle(
            repository=seeded_repository,
            scoring_engine=ScoringEngine(),
            points_ledger=points,
            fair_racing=fair_racing,
            race_results=race_results,
            identity=identity,
            notifier=notifier,
            clock=clock,
        ),
    )


@pytest.fixture
def organizer():
    return Caller(user_id="org-1", capabilities=Capability.ORGANIZER)


@pytest.fixture
def pilot_caller():
    """Factory for pilot callers: ``pilot_caller("a1", "alpha", captain=True)``."""

    def make(pilot_id: str, squadron_id: str, captain: bool = False) -> Caller:
        capabilities = Capability.PILOT | Capability.CAPTAIN if captain else Capability.PILOT
        return Caller(user_id=pilot_id, capabilities=capabilities, squadron_id=squadron_id)

    return make


@pytest.fixture
def open_event(league, organizer):
    """Factory creating an event that is open for registration."""

    def make(category: EventCategory = EventCategory.GRAND_PRIX_ELITE, **kwargs: Any):
        event = league.lifecycle.create(
            name=kwargs.pop("name", "Spring Grand Prix"),
            category=category,
            event_date=league.clock() + timedelta(days=10),
            registration_deadline=league.clock() + timedelta(days=7),
            caller=organizer,
            **kwargs,
        )
        league.lifecycle.publish(event.id, organizer)
        return league.lifecycle.open_registration(event.id, organizer)

    return make
