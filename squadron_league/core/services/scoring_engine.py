"""Squadron scoring: race positions to squadron ranks and awarded points.

Everything in this module is pure. The same inputs always produce the same
``CalculatedResults``; nothing is read from or written to storage.
"""

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field, replace

from ..domain import (
    AdjustedResult,
    CalculatedResults,
    PilotResult,
    RaceEntry,
    RawRaceResult,
    Sanction,
    SanctionType,
    SquadronResult,
)
from ..domain.utils import normalize_name

logger = logging.getLogger(__name__)


@dataclass
class _SquadronTally:
    squadron_id: str
    total_points: int = 0
    position_sum: int = 0
    pilots: list[PilotResult] = field(default_factory=list)


class ScoringEngine:
    """Turns a finished race into squadron results."""

    # Individual points by finishing position; anything past 20th scores 0
    INDIVIDUAL_POINTS: dict[int, int] = {
        1: 25,
        2: 22,
        3: 20,
        4: 18,
        5: 16,
        6: 15,
        7: 14,
        8: 13,
        9: 12,
        10: 11,
        11: 10,
        12: 9,
        13: 8,
        14: 7,
        15: 6,
        16: 5,
        17: 4,
        18: 3,
        19: 2,
        20: 1,
    }

    @classmethod
    def individual_points(cls, final_position: int) -> int:
        """Points a pilot contributes for finishing at ``final_position``."""
        return cls.INDIVIDUAL_POINTS.get(final_position, 0)

    @staticmethod
    def percentage_for_position(position: int) -> int:
        """Share of the event's base points earned by a squadron rank."""
        if position == 1:
            return 100
        if position == 2:
            return 65
        if position == 3:
            return 45
        if position == 4:
            return 30
        if 5 <= position <= 8:
            return 20
        if 9 <= position <= 16:
            return 10
        return 5

    @staticmethod
    def award(base_points: int, percentage: int) -> int:
        """``base_points * percentage / 100`` rounded to the nearest integer, halves up."""
        return (base_points * percentage + 50) // 100

    @classmethod
    def expected_award(cls, base_points: int, position: int) -> int:
        return cls.award(base_points, cls.percentage_for_position(position))

    @staticmethod
    def _driver_key(driver_name: str, pilot_ids: Mapping[str, str]) -> tuple[str, str]:
        normalized = normalize_name(driver_name)
        pilot_id = pilot_ids.get(normalized)
        if pilot_id is not None:
            return ("pilot", pilot_id)
        return ("name", normalized)

    def adjust_positions(
        self,
        results: Sequence[RawRaceResult],
        sanctions: Iterable[Sanction],
        pilot_ids: Mapping[str, str] | None = None,
    ) -> tuple[list[RawRaceResult], list[AdjustedResult]]:
        """Apply position penalties and disqualifications to a raw result.

        A position penalty of N moves the driver down N places (never past
        last) and moves everyone it passes up by one. A disqualification moves
        the driver to last place and moves everyone behind up by one, so the
        field keeps one driver per position. Sanctions apply in the order they
        were given. Drivers not named by any sanction keep their relative order.

        A sanction is matched to a result through the sanctioned pilot's
        account, so a sanction entered under a display name or alias still
        finds the driver. Results missing from ``pilot_ids`` and sanctions
        whose pilot never appears fall back to the normalized driver name.

        Args:
            results: Raw per-driver results.
            sanctions: Sanctions attached to the event.
            pilot_ids: Normalized timing name to resolved pilot id.

        Returns:
            Tuple of (adjusted results ordered by position, per-driver
            before/after records). The second list is empty when no sanction
            moved anyone.
        """
        pilot_ids = pilot_ids or {}
        sanctions = list(sanctions)
        ordered = sorted(results, key=lambda r: (r.final_position, normalize_name(r.driver_name)))
        keys = [self._driver_key(r.driver_name, pilot_ids) for r in ordered]
        positions = {key: r.final_position for key, r in zip(keys, ordered, strict=True)}
        field_size = max(positions.values(), default=0)

        def sanction_key(sanction: Sanction) -> tuple[str, str]:
            if sanction.pilot_id and ("pilot", sanction.pilot_id) in positions:
                return ("pilot", sanction.pilot_id)
            return ("name", normalize_name(sanction.driver_name))

        movers = [
            s
            for s in sorted(sanctions, key=lambda s: (s.applied_at, s.id))
            if s.sanction_type is SanctionType.DISQUALIFICATION
            or (s.sanction_type is SanctionType.POSITION_PENALTY and s.position_penalty)
        ]
        sanctioned = {sanction_key(s) for s in sanctions}

        if not movers:
            return list(ordered), []

        for sanction in movers:
            key = sanction_key(sanction)
            if key not in positions:
                logger.warning(
                    f"Sanctioned driver not found in race result: {sanction.driver_name}"
                )
                continue
            current = positions[key]
            if sanction.sanction_type is SanctionType.DISQUALIFICATION:
                target = field_size
            else:
                target = min(current + (sanction.position_penalty or 0), field_size)
            if target == current:
                continue
            for other, position in positions.items():
                if other != key and current < position <= target:
                    positions[other] = position - 1
            positions[key] = target
            logger.info(
                f"{sanction.driver_name}: P{current} -> P{target} "
                f"({sanction.sanction_type.value})"
            )

        adjusted = [
            replace(r, final_position=positions[key]) for key, r in zip(keys, ordered, strict=True)
        ]
        audit = [
            AdjustedResult(
                driver_name=original.driver_name,
                pilot_id=key[1] if key[0] == "pilot" else None,
                original_position=original.final_position,
                adjusted_position=moved.final_position,
                sanction_applied=key in sanctioned,
            )
            for key, original, moved in zip(keys, ordered, adjusted, strict=True)
        ]
        adjusted.sort(key=lambda r: (r.final_position, normalize_name(r.driver_name)))
        return adjusted, audit

    def score(
        self,
        event_id: str,
        base_points: int,
        entries: Iterable[RaceEntry],
        registration_order: Sequence[str] = (),
        race_session_id: str | None = None,
        adjusted_results: Sequence[AdjustedResult] = (),
        unresolved_drivers: Sequence[str] = (),
    ) -> CalculatedResults:
        """Rank squadrons and compute their awarded points.

        Squadrons are ranked by total individual points, highest first. Ties
        go to the lower sum of finishing positions, then to the squadron that
        registered first, then to the lower squadron id.

        Args:
            event_id: Event being scored.
            base_points: Base points of the event's category.
            entries: Resolved per-pilot results.
            registration_order: Squadron ids in registration order.
            race_session_id: Race the entries came from.
            adjusted_results: Sanction adjustments to carry into the output.
            unresolved_drivers: Drivers skipped during resolution.

        Returns:
            CalculatedResults with squadrons ordered by position.
        """
        tallies: dict[str, _SquadronTally] = {}
        for entry in entries:
            tally = tallies.setdefault(entry.squadron_id, _SquadronTally(entry.squadron_id))
            points = self.individual_points(entry.final_position)
            tally.total_points += points
            tally.position_sum += entry.final_position
            tally.pilots.append(
                PilotResult(
                    pilot_id=entry.pilot_id,
                    driver_name=entry.driver_name,
                    final_position=entry.final_position,
                    individual_points=points,
                    kart_number=entry.kart_number,
                )
            )

        registration_rank = {sid: index for index, sid in enumerate(registration_order)}
        unregistered = len(registration_rank)
        ranked = sorted(
            tallies.values(),
            key=lambda t: (
                -t.total_points,
                t.position_sum,
                registration_rank.get(t.squadron_id, unregistered),
                t.squadron_id,
            ),
        )

        squadrons = []
        for position, tally in enumerate(ranked, start=1):
            percentage = self.percentage_for_position(position)
            squadrons.append(
                SquadronResult(
                    squadron_id=tally.squadron_id,
                    position=position,
                    total_points=tally.total_points,
                    points_awarded=self.award(base_points, percentage),
                    percentage_awarded=percentage,
                    pilots=tuple(
                        sorted(tally.pilots, key=lambda p: (p.final_position, p.pilot_id))
                    ),
                )
            )

        return CalculatedResults(
            event_id=event_id,
            base_points=base_points,
            squadrons=tuple(squadrons),
            race_session_id=race_session_id,
            adjusted_results=tuple(adjusted_results),
            unresolved_drivers=tuple(unresolved_drivers),
        )
