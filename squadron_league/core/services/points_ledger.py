"""Squadron points ledger with an append-only audit trail."""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from ..domain import ChangeType, PointsHistoryEntry, Squadron
from ..domain.exceptions import StaleWriteError, ValidationError
from ..domain.utils import new_id, utcnow
from ..ports.repository_port import LeagueRepositoryPort

logger = logging.getLogger(__name__)


class PointsLedger:
    """Applies awarded points to squadron totals.

    Each change writes the new total and its history entry in one transaction,
    so the history of a squadron always sums to its total minus its total at
    creation.
    """

    def __init__(
        self,
        repository: LeagueRepositoryPort,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.repository = repository
        self.clock = clock

    def apply(
        self,
        squadron_id: str,
        event_id: str | None,
        points_awarded: int,
        reason: str,
        modified_by: str,
        change_type: ChangeType = ChangeType.RACE_EVENT,
        metadata: dict[str, Any] | None = None,
    ) -> PointsHistoryEntry:
        """Add points to a squadron and record the change.

        Args:
            squadron_id: Squadron receiving the points.
            event_id: Event the points come from.
            points_awarded: Points to add; must not be negative.
            reason: Human-readable reason stored in the audit trail.
            modified_by: User committing the change.
            change_type: Category of the change.
            metadata: Extra audit details (event name, position, ...).

        Returns:
            The history entry written.

        Raises:
            ValidationError: If ``points_awarded`` is negative.
            SquadronNotFoundError: If the squadron does not exist.
            StaleWriteError: If the total changed between read and write.
        """
        if points_awarded < 0:
            raise ValidationError(
                "Awarded points cannot be negative",
                context={"squadron_id": squadron_id, "points_awarded": points_awarded},
            )

        with self.repository.atomic():
            squadron = self.repository.get_squadron(squadron_id)
            previous_total = squadron.total_points
            new_total = previous_total + points_awarded

            if not self.repository.compare_and_set_squadron_total(
                squadron_id, previous_total, new_total
            ):
                raise StaleWriteError(
                    "Squadron total changed during update",
                    context={"squadron_id": squadron_id, "expected": previous_total},
                )

            entry = PointsHistoryEntry(
                id=new_id("pts"),
                squadron_id=squadron_id,
                event_id=event_id,
                points_change=points_awarded,
                previous_total=previous_total,
                new_total=new_total,
                reason=reason,
                change_type=change_type,
                modified_by=modified_by,
                timestamp=self.clock(),
                metadata=metadata or {},
            )
            self.repository.append_points_history(entry)

        logger.info(
            f"{squadron.name}: +{points_awarded} pts ({previous_total} -> {new_total})",
            extra={"squadron_id": squadron_id, "event_id": event_id},
        )
        return entry

    def history(self, squadron_id: str) -> list[PointsHistoryEntry]:
        self.repository.get_squadron(squadron_id)
        return self.repository.points_history(squadron_id)

    def standings(self) -> list[Squadron]:
        """Squadrons ordered by total points, highest first."""
        return self.repository.list_squadrons()

    def verify(self, squadron_id: str) -> bool:
        """Check that the audit trail accounts for the squadron's whole total."""
        squadron = self.repository.get_squadron(squadron_id)
        recorded = sum(entry.points_change for entry in self.repository.points_history(squadron_id))
        return recorded == squadron.total_points - squadron.initial_points
