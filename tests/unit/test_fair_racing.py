"""Unit tests for fair racing scores and the FairRacingScoreLedger."""

from datetime import UTC, datetime
from unittest.mock import MagicMock

import pytest

from squadron_league.core.domain import (
    AdjustmentKind,
    FairRacingScore,
    IncidentCategory,
    IncidentStatus,
    RecognitionType,
    Sanction,
    SanctionType,
)
from squadron_league.core.domain.exceptions import (
    IncidentNotFoundError,
    StaleWriteError,
    StateError,
    ValidationError,
)
from squadron_league.core.services.fair_racing_ledger import FairRacingScoreLedger

pytestmark = pytest.mark.unit

AT = datetime(2026, 3, 10, 21, 0, tzinfo=UTC)


@pytest.fixture
def ledger(repository, clock):
    return FairRacingScoreLedger(repository, clock=clock)


def make_sanction(sanction_type: SanctionType, points_penalty: int | None) -> Sanction:
    return Sanction(
        id="san_1",
        event_id="evt_1",
        driver_name="ALICE M",
        pilot_id="a1",
        sanction_type=sanction_type,
        description="Divebomb into the hairpin",
        applied_by="org-1",
        applied_at=AT,
        points_penalty=points_penalty,
    )


class TestFairRacingScore:
    """Tests for the score record itself."""

    def test_new_record_starts_at_85(self):
        assert FairRacingScore(pilot_id="a1").current_score == 85

    def test_penalty_clamps_at_zero(self):
        score = FairRacingScore(pilot_id="a1", current_score=20)

        adjustment = score.apply_penalty(30, AT)

        assert score.current_score == 0
        assert adjustment.requested == -30
        assert adjustment.applied == -20

    def test_recognition_clamps_at_hundred(self):
        score = FairRacingScore(pilot_id="a1", current_score=98)

        adjustment = score.award_recognition(5, AT)

        assert score.current_score == 100
        assert adjustment.applied == 2
        assert adjustment.kind is AdjustmentKind.RECOGNITION

    @pytest.mark.parametrize("points", [2, 6])
    def test_recognition_points_limited(self, points):
        with pytest.raises(ValidationError):
            FairRacingScore(pilot_id="a1").award_recognition(points, AT)

    def test_negative_penalty_rejected(self):
        with pytest.raises(ValidationError):
            FairRacingScore(pilot_id="a1").apply_penalty(-1, AT)

    def test_clean_race_recovery_updates_counters(self):
        score = FairRacingScore(pilot_id="a1", current_score=70)

        score.apply_clean_race_recovery(AT, reference="evt_1")

        assert score.current_score == 71
        assert score.total_races_clean == 1
        assert score.recovery_progress == 1
        assert score.last_race_date == AT

    def test_every_change_is_recorded(self):
        score = FairRacingScore(pilot_id="a1")

        score.apply_penalty(5, AT)
        score.award_recognition(3, AT)
        score.apply_clean_race_recovery(AT)

        assert [a.kind for a in score.adjustments] == [
            AdjustmentKind.PENALTY,
            AdjustmentKind.RECOGNITION,
            AdjustmentKind.CLEAN_RACE_RECOVERY,
        ]
        assert score.adjustments[-1].score_after == score.current_score == 84


class TestLedger:
    """Tests for FairRacingScoreLedger against SQLite."""

    def test_unknown_pilot_gets_initial_score(self, ledger):
        score = ledger.get("nobody")

        assert score.current_score == 85
        assert score.version == 0

    def test_incident_then_clean_races(self, ledger):
        incident = ledger.report_incident(
            "a1",
            "evt_1",
            IncidentCategory.AVOIDABLE_CONTACT,
            severity=2,
            points_deducted=10,
            reported_by="mod-1",
            description="Punted B1 at turn 1",
        )
        assert ledger.get("a1").current_score == 85

        ledger.review_incident("a1", incident.incident_id, approve=True, moderator_id="mod-1")
        assert ledger.get("a1").current_score == 75

        for event_id in ("evt_2", "evt_3", "evt_4"):
            ledger.apply_clean_race_recovery("a1", event_id)

        score = ledger.get("a1")
        assert score.current_score == 78
        assert score.total_races_clean == 3
        assert score.incidents[0].status is IncidentStatus.APPROVED
        assert score.version == 5

    def test_rejected_incident_leaves_score(self, ledger):
        incident = ledger.report_incident(
            "a1", "evt_1", IncidentCategory.EXCESSIVE_BLOCKING, 1, 5, "mod-1", "Weaving"
        )

        ledger.review_incident("a1", incident.incident_id, approve=False, moderator_id="mod-1")

        score = ledger.get("a1")
        assert score.current_score == 85
        assert score.incidents[0].status is IncidentStatus.REJECTED

    def test_incident_reviewed_once(self, ledger):
        incident = ledger.report_incident(
            "a1", "evt_1", IncidentCategory.AGGRESSIVE_DRIVING, 1, 3, "mod-1", "Late lunge"
        )
        ledger.review_incident("a1", incident.incident_id, approve=True, moderator_id="mod-1")

        with pytest.raises(StateError):
            ledger.review_incident("a1", incident.incident_id, approve=True, moderator_id="mod-2")
        assert ledger.get("a1").current_score == 82

    def test_unknown_incident(self, ledger):
        with pytest.raises(IncidentNotFoundError) as exc_info:
            ledger.review_incident("a1", "inc_missing", approve=True, moderator_id="mod-1")

        assert exc_info.value.error_code == "LG_NF_008"
        assert exc_info.value.extra_context == {"pilot_id": "a1", "incident_id": "inc_missing"}

    @pytest.mark.parametrize("severity,points", [(0, 5), (4, 5), (2, 31)])
    def test_incident_limits(self, ledger, severity, points):
        with pytest.raises(ValidationError):
            ledger.report_incident(
                "a1", "evt_1", IncidentCategory.EXPLOIT_ABUSE, severity, points, "mod-1", "x"
            )
        assert ledger.get("a1").incidents == []

    def test_recognition(self, ledger):
        ledger.award_recognition(
            "a1", "evt_1", RecognitionType.SPORTSMANSHIP_OUTSTANDING, 4, "mod-1", "Waited"
        )

        score = ledger.get("a1")
        assert score.current_score == 89
        assert len(score.recognitions) == 1

    def test_sanction_penalty_capped(self, ledger):
        incident = ledger.apply_sanction(
            make_sanction(SanctionType.DISQUALIFICATION, points_penalty=45), "org-1"
        )

        assert incident.points_deducted == 30
        assert incident.severity == 3
        assert incident.category is IncidentCategory.UNSPORTSMANLIKE
        assert incident.status is IncidentStatus.APPROVED
        assert ledger.get("a1").current_score == 55

    def test_sanction_without_points_leaves_score(self, ledger):
        assert ledger.apply_sanction(make_sanction(SanctionType.WARNING, None), "org-1") is None
        assert ledger.get("a1").version == 0

    def test_stale_save_raises(self, clock):
        repository = MagicMock()
        repository.get_fair_racing_score.return_value = FairRacingScore(pilot_id="a1", version=3)
        repository.save_fair_racing_score.return_value = False
        ledger = FairRacingScoreLedger(repository, clock=clock)

        with pytest.raises(StaleWriteError):
            ledger.apply_clean_race_recovery("a1", "evt_1")
        repository.save_fair_racing_score.assert_called_once()
        assert repository.save_fair_racing_score.call_args.args[1] == 3

    def test_concurrent_first_writes_conflict(self, repository, clock):
        first = FairRacingScoreLedger(repository, clock=clock)
        score = first.get("a1")
        score.apply_clean_race_recovery(clock())
        assert repository.save_fair_racing_score(score, 0)

        # A second writer that also read version 0 must lose
        stale = FairRacingScore(pilot_id="a1")
        stale.apply_penalty(10, clock())
        assert not repository.save_fair_racing_score(stale, 0)
        assert first.get("a1").current_score == 86
