"""Unit tests for PointsLedger."""

from unittest.mock import MagicMock

import pytest

from squadron_league.core.domain import ChangeType, Squadron
from squadron_league.core.domain.exceptions import (
    ConflictError,
    SquadronNotFoundError,
    StaleWriteError,
    ValidationError,
)
from squadron_league.core.services.points_ledger import PointsLedger

pytestmark = pytest.mark.unit


@pytest.fixture
def ledger(seeded_repository, clock):
    return PointsLedger(seeded_repository, clock=clock)


def test_apply_adds_points_and_records_history(ledger):
    entry = ledger.apply(
        "bravo",
        "evt_1",
        1625,
        reason="Event: Spring GP - Position 2 (65%)",
        modified_by="org-1",
        metadata={"position": 2},
    )

    assert entry.previous_total == 800
    assert entry.new_total == 2425
    assert entry.change_type is ChangeType.RACE_EVENT

    history = ledger.history("bravo")
    assert len(history) == 1
    assert history[0].reason == "Event: Spring GP - Position 2 (65%)"
    assert history[0].metadata == {"position": 2}
    assert ledger.verify("bravo")


def test_standings_follow_totals(ledger):
    ledger.apply("delta", "evt_1", 2500, "win", "org-1")

    assert [s.id for s in ledger.standings()] == ["delta", "alpha", "bravo", "charlie"]


def test_same_event_awarded_once(ledger):
    ledger.apply("alpha", "evt_1", 100, "first", "org-1")

    with pytest.raises(ConflictError):
        ledger.apply("alpha", "evt_1", 100, "again", "org-1")

    # The failed second award rolled back its total update too
    assert ledger.standings()[0].total_points == 1100
    assert ledger.verify("alpha")


def test_manual_adjustments_not_limited_per_event(ledger):
    ledger.apply("alpha", "evt_1", 10, "bonus", "org-1", change_type=ChangeType.MANUAL_ADJUSTMENT)
    ledger.apply("alpha", "evt_1", 10, "bonus", "org-1", change_type=ChangeType.MANUAL_ADJUSTMENT)

    assert len(ledger.history("alpha")) == 2


def test_negative_points_rejected(ledger):
    with pytest.raises(ValidationError):
        ledger.apply("alpha", "evt_1", -5, "oops", "org-1")


def test_unknown_squadron(ledger):
    with pytest.raises(SquadronNotFoundError):
        ledger.apply("zulu", "evt_1", 5, "x", "org-1")
    with pytest.raises(SquadronNotFoundError):
        ledger.history("zulu")


def test_lost_update_detected(clock):
    repository = MagicMock()
    repository.get_squadron.return_value = Squadron(id="alpha", name="Alpha", total_points=10)
    repository.compare_and_set_squadron_total.return_value = False
    ledger = PointsLedger(repository, clock=clock)

    with pytest.raises(StaleWriteError):
        ledger.apply("alpha", "evt_1", 5, "x", "org-1")
    repository.append_points_history.assert_not_called()
