"""Unit tests for ScoringEngine."""

from dataclasses import replace
from datetime import UTC, datetime, timedelta

import pytest

from squadron_league.core.domain import (
    CATEGORY_CONFIG,
    EventCategory,
    RaceEntry,
    RawRaceResult,
    Sanction,
    SanctionType,
)
from squadron_league.core.services.scoring_engine import ScoringEngine

pytestmark = pytest.mark.unit

APPLIED_AT = datetime(2026, 3, 10, 20, 0, tzinfo=UTC)


def entry(squadron_id: str, pilot_id: str, position: int) -> RaceEntry:
    return RaceEntry(
        pilot_id=pilot_id,
        driver_name=pilot_id.upper(),
        final_position=position,
        kart_number=position,
        squadron_id=squadron_id,
    )


def sanction(
    driver_name: str,
    sanction_type: SanctionType,
    positions: int | None = None,
    minutes: int = 0,
) -> Sanction:
    return Sanction(
        id=f"san_{driver_name}_{minutes}",
        event_id="evt_1",
        driver_name=driver_name,
        pilot_id=driver_name.lower(),
        sanction_type=sanction_type,
        description="Contact in turn 3",
        applied_by="org-1",
        applied_at=APPLIED_AT + timedelta(minutes=minutes),
        position_penalty=positions,
    )


@pytest.fixture
def engine():
    return ScoringEngine()


class TestPayoutTables:
    """Tests for individual points and squadron percentages."""

    @pytest.mark.parametrize(
        "position,points",
        [(1, 25), (2, 22), (3, 20), (10, 11), (19, 2), (20, 1), (21, 0), (40, 0)],
    )
    def test_individual_points(self, position, points):
        assert ScoringEngine.individual_points(position) == points

    @pytest.mark.parametrize(
        "position,percentage",
        [(1, 100), (2, 65), (3, 45), (4, 30), (5, 20), (8, 20), (9, 10), (16, 10), (17, 5)],
    )
    def test_percentage_for_position(self, position, percentage):
        assert ScoringEngine.percentage_for_position(position) == percentage

    def test_award_rounds_half_up(self):
        assert ScoringEngine.award(250, 65) == 163
        assert ScoringEngine.award(5, 30) == 2
        assert ScoringEngine.award(2500, 65) == 1625

    def test_category_base_points(self):
        assert CATEGORY_CONFIG[EventCategory.LE_MANS].base_points == 5000
        assert CATEGORY_CONFIG[EventCategory.OPEN_SERIES].base_points == 400


class TestScore:
    """Tests for squadron ranking."""

    def test_four_squadrons_share_grand_prix_points(self, engine):
        entries = [
            entry("alpha", "a1", 1),
            entry("alpha", "a2", 2),
            entry("bravo", "b1", 3),
            entry("bravo", "b2", 4),
            entry("charlie", "c1", 5),
            entry("charlie", "c2", 6),
            entry("delta", "d1", 7),
            entry("delta", "d2", 8),
        ]

        results = engine.score("evt_1", 2500, entries)

        assert [s.squadron_id for s in results.squadrons] == ["alpha", "bravo", "charlie", "delta"]
        assert [s.points_awarded for s in results.squadrons] == [2500, 1625, 1125, 750]
        assert [s.percentage_awarded for s in results.squadrons] == [100, 65, 45, 30]
        assert results.squadrons[0].total_points == 47

    def test_pilot_outside_top_twenty_adds_nothing(self, engine):
        results = engine.score(
            "evt_1", 400, [entry("alpha", "a1", 1), entry("alpha", "a2", 21)]
        )

        alpha = results.squadrons[0]
        assert alpha.total_points == 25
        assert [p.individual_points for p in alpha.pilots] == [25, 0]

    def test_tie_goes_to_lower_position_sum(self, engine):
        entries = [
            entry("x", "x1", 2),
            entry("x", "x2", 7),
            entry("y", "y1", 3),
            entry("y", "y2", 5),
        ]

        results = engine.score("evt_1", 800, entries)

        assert results.squadrons[0].total_points == results.squadrons[1].total_points == 36
        assert [s.squadron_id for s in results.squadrons] == ["y", "x"]

    def test_full_tie_goes_to_earlier_registration(self, engine):
        entries = [
            entry("x", "x1", 6),
            entry("x", "x2", 7),
            entry("y", "y1", 5),
            entry("y", "y2", 8),
        ]

        first = engine.score("evt_1", 800, entries, registration_order=["y", "x"])
        second = engine.score("evt_1", 800, entries, registration_order=["x", "y"])

        assert [s.squadron_id for s in first.squadrons] == ["y", "x"]
        assert [s.squadron_id for s in second.squadrons] == ["x", "y"]

    def test_unregistered_tie_falls_back_to_squadron_id(self, engine):
        entries = [
            entry("zulu", "z1", 6),
            entry("zulu", "z2", 7),
            entry("echo", "e1", 5),
            entry("echo", "e2", 8),
        ]

        results = engine.score("evt_1", 800, entries)

        assert [s.squadron_id for s in results.squadrons] == ["echo", "zulu"]

    def test_same_input_gives_same_output(self, engine):
        entries = [entry("alpha", "a1", 2), entry("bravo", "b1", 1), entry("alpha", "a2", 3)]

        assert engine.score("evt_1", 1500, entries) == engine.score("evt_1", 1500, entries)

    def test_no_entries(self, engine):
        results = engine.score("evt_1", 1500, [])

        assert results.squadrons == ()
        assert results.base_points == 1500

    def test_pilots_listed_by_finishing_position(self, engine):
        results = engine.score(
            "evt_1", 400, [entry("alpha", "a2", 9), entry("alpha", "a1", 4)]
        )

        assert [p.pilot_id for p in results.squadrons[0].pilots] == ["a1", "a2"]


class TestAdjustPositions:
    """Tests for sanctions moving drivers."""

    @pytest.fixture
    def race(self):
        return [RawRaceResult(f"D{n}", n, n) for n in range(1, 6)]

    def test_position_penalty_shifts_passed_drivers_up(self, engine, race):
        adjusted, audit = engine.adjust_positions(
            race, [sanction("D1", SanctionType.POSITION_PENALTY, positions=2)]
        )

        assert [r.driver_name for r in adjusted] == ["D2", "D3", "D1", "D4", "D5"]
        assert [r.final_position for r in adjusted] == [1, 2, 3, 4, 5]
        moved = {a.driver_name: a for a in audit}
        assert moved["D1"].original_position == 1
        assert moved["D1"].adjusted_position == 3
        assert moved["D1"].sanction_applied
        assert not moved["D2"].sanction_applied

    def test_disqualification_moves_driver_last(self, engine, race):
        adjusted, _ = engine.adjust_positions(race, [sanction("D2", SanctionType.DISQUALIFICATION)])

        assert [r.driver_name for r in adjusted] == ["D1", "D3", "D4", "D5", "D2"]
        assert sorted(r.final_position for r in adjusted) == [1, 2, 3, 4, 5]

    def test_midfield_disqualification_moves_following_drivers_up(self, engine, race):
        adjusted, audit = engine.adjust_positions(
            race, [sanction("D3", SanctionType.DISQUALIFICATION)]
        )

        positions = {r.driver_name: r.final_position for r in adjusted}
        assert positions == {"D1": 1, "D2": 2, "D4": 3, "D5": 4, "D3": 5}
        assert len(set(positions.values())) == len(race)
        moved = {a.driver_name: (a.original_position, a.adjusted_position) for a in audit}
        assert moved["D4"] == (4, 3)
        assert moved["D5"] == (5, 4)

    def test_sanction_matched_by_pilot_id(self, engine, race):
        pilot_ids = {"d1": "p-one", "d2": "p-two", "d3": "p-three"}
        disqualified = replace(
            sanction("Dee Two", SanctionType.DISQUALIFICATION), pilot_id="p-two"
        )

        adjusted, audit = engine.adjust_positions(race, [disqualified], pilot_ids)

        assert [r.driver_name for r in adjusted] == ["D1", "D3", "D4", "D5", "D2"]
        by_name = {a.driver_name: a for a in audit}
        assert by_name["D2"].pilot_id == "p-two"
        assert by_name["D2"].sanction_applied
        assert by_name["D4"].pilot_id is None

    def test_penalty_never_goes_past_last(self, engine, race):
        adjusted, _ = engine.adjust_positions(
            race, [sanction("D4", SanctionType.POSITION_PENALTY, positions=10)]
        )

        assert adjusted[-1].driver_name == "D4"
        assert adjusted[-1].final_position == 5

    def test_sanctions_apply_in_order(self, engine, race):
        adjusted, _ = engine.adjust_positions(
            race,
            [
                sanction("D2", SanctionType.DISQUALIFICATION, minutes=5),
                sanction("D1", SanctionType.POSITION_PENALTY, positions=1, minutes=0),
            ],
        )

        # D1 drops behind D2 first, then D2 is sent to the back
        assert [r.driver_name for r in adjusted] == ["D1", "D3", "D4", "D5", "D2"]

    def test_warnings_do_not_move_anyone(self, engine, race):
        adjusted, audit = engine.adjust_positions(
            race,
            [sanction("D1", SanctionType.WARNING), sanction("D2", SanctionType.POINT_DEDUCTION)],
        )

        assert adjusted == race
        assert audit == []

    def test_driver_names_matched_loosely(self, engine):
        race = [RawRaceResult("Amélie Roux", 1, 4), RawRaceResult("Bruno Petit", 2, 7)]

        adjusted, _ = engine.adjust_positions(
            race, [sanction("  amelie   ROUX ", SanctionType.POSITION_PENALTY, positions=1)]
        )

        assert [r.driver_name for r in adjusted] == ["Bruno Petit", "Amélie Roux"]

    def test_unknown_driver_is_ignored(self, engine, race):
        adjusted, audit = engine.adjust_positions(
            race, [sanction("Nobody", SanctionType.DISQUALIFICATION)]
        )

        assert [r.final_position for r in adjusted] == [1, 2, 3, 4, 5]
        assert all(a.original_position == a.adjusted_position for a in audit)
