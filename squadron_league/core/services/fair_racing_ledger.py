"""Fair racing score ledger: loads, mutates and saves pilot reputation records."""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import TypeVar

from ..domain import (
    FairRacingScore,
    Incident,
    IncidentCategory,
    Recognition,
    RecognitionType,
    Sanction,
    SanctionType,
    ScoreAdjustment,
)
from ..domain.exceptions import StaleWriteError, ValidationError
from ..domain.fair_racing import DEFAULT_INITIAL_SCORE, MAX_INCIDENT_DEDUCTION
from ..domain.utils import new_id, utcnow
from ..ports.repository_port import FairRacingRepositoryPort

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Severity recorded for the incident a sanction turns into at finalize time
SANCTION_SEVERITY = {
    SanctionType.WARNING: 1,
    SanctionType.POINT_DEDUCTION: 2,
    SanctionType.POSITION_PENALTY: 2,
    SanctionType.DISQUALIFICATION: 3,
}


class FairRacingScoreLedger:
    """Per-pilot reputation with append-only history and optimistic saves."""

    def __init__(
        self,
        repository: FairRacingRepositoryPort,
        initial_score: int = DEFAULT_INITIAL_SCORE,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize the ledger.

        Args:
            repository: Storage for fair racing score records.
            initial_score: Score given to a pilot on first use.
            clock: Source of the current time.
        """
        self.repository = repository
        self.initial_score = initial_score
        self.clock = clock

    def get(self, pilot_id: str) -> FairRacingScore:
        """Return the pilot's record, or a fresh unsaved one at the initial score."""
        score = self.repository.get_fair_racing_score(pilot_id)
        if score is None:
            score = FairRacingScore(
                pilot_id=pilot_id,
                current_score=self.initial_score,
                initial_score=self.initial_score,
            )
        return score

    def _update(self, pilot_id: str, mutate: Callable[[FairRacingScore], T]) -> T:
        score = self.get(pilot_id)
        expected_version = score.version
        outcome = mutate(score)
        if not self.repository.save_fair_racing_score(score, expected_version):
            raise StaleWriteError(
                "Fair racing score was modified concurrently",
                context={"pilot_id": pilot_id, "expected_version": expected_version},
            )
        score.version = expected_version + 1
        return outcome

    def report_incident(
        self,
        pilot_id: str,
        event_id: str,
        category: IncidentCategory,
        severity: int,
        points_deducted: int,
        reported_by: str,
        description: str,
        video_evidence: str | None = None,
    ) -> Incident:
        """Record a pending incident. The score is unchanged until approval."""
        if not description.strip():
            raise ValidationError("Incident description is required")
        incident = Incident(
            incident_id=new_id("inc"),
            event_id=event_id,
            category=category,
            severity=severity,
            points_deducted=points_deducted,
            reported_by=reported_by,
            description=description.strip(),
            date=self.clock(),
            video_evidence=video_evidence,
        )

        def record(score: FairRacingScore) -> Incident:
            score.record_incident(incident)
            return incident

        self._update(pilot_id, record)
        logger.info(f"Incident {incident.incident_id} reported for pilot {pilot_id}")
        return incident

    def review_incident(
        self, pilot_id: str, incident_id: str, approve: bool, moderator_id: str
    ) -> Incident:
        """Approve (applying the penalty) or reject a pending incident."""
        at = self.clock()
        incident = self._update(
            pilot_id,
            lambda score: score.resolve_incident(incident_id, approve, moderator_id, at),
        )
        logger.info(f"Incident {incident_id} for pilot {pilot_id} {incident.status.value}")
        return incident

    def award_recognition(
        self,
        pilot_id: str,
        event_id: str,
        recognition_type: RecognitionType,
        points: int,
        observer_id: str,
        description: str = "",
    ) -> Recognition:
        recognition = Recognition(
            recognition_id=new_id("rec"),
            event_id=event_id,
            recognition_type=recognition_type,
            points_awarded=points,
            observer_id=observer_id,
            date=self.clock(),
            description=description,
        )
        self._update(pilot_id, lambda score: score.record_recognition(recognition))
        return recognition

    def apply_clean_race_recovery(self, pilot_id: str, event_id: str) -> ScoreAdjustment:
        at = self.clock()
        return self._update(
            pilot_id, lambda score: score.apply_clean_race_recovery(at, reference=event_id)
        )

    def apply_sanction(self, sanction: Sanction, moderator_id: str) -> Incident | None:
        """Turn a finalized sanction into an approved incident.

        Only sanctions carrying a points penalty change the score; the
        deduction is capped at the incident maximum.

        Returns:
            The approved incident, or None when the sanction has no points penalty.
        """
        if not sanction.points_penalty:
            return None
        at = self.clock()
        incident = Incident(
            incident_id=new_id("inc"),
            event_id=sanction.event_id,
            category=IncidentCategory.UNSPORTSMANLIKE,
            severity=SANCTION_SEVERITY[sanction.sanction_type],
            points_deducted=min(sanction.points_penalty, MAX_INCIDENT_DEDUCTION),
            reported_by=sanction.applied_by,
            description=sanction.description,
            date=at,
        )

        def approve(score: FairRacingScore) -> Incident:
            score.record_incident(incident)
            return score.resolve_incident(incident.incident_id, True, moderator_id, at)

        approved = self._update(sanction.pilot_id, approve)
        logger.info(
            f"Sanction {sanction.id} deducted {approved.points_deducted} fair racing points "
            f"from pilot {sanction.pilot_id}"
        )
        return approved
