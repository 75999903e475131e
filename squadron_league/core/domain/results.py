"""Race result and scoring output models."""

from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass(frozen=True)
class RawRaceResult:
    """One driver's outcome as reported by the timing system.

    Attributes:
        driver_name: Name as typed into the timing system.
        final_position: Finishing position (1 = winner).
        kart_number: Kart the driver raced.
    """

    driver_name: str
    final_position: int
    kart_number: int


@dataclass(frozen=True)
class RaceEntry:
    """A raw result resolved to a pilot account and squadron.

    ``original_position`` is set when a sanction moved the driver.
    """

    pilot_id: str
    driver_name: str
    final_position: int
    kart_number: int
    squadron_id: str
    original_position: int | None = None


@dataclass(frozen=True)
class PilotResult:
    pilot_id: str
    driver_name: str
    final_position: int
    individual_points: int
    kart_number: int


@dataclass(frozen=True)
class SquadronResult:
    """One squadron's outcome in a scored event.

    Attributes:
        squadron_id: Squadron identifier.
        position: Rank among participating squadrons (1 = best).
        total_points: Sum of the squadron's pilots' individual points.
        points_awarded: Share of the event's base points earned by ``position``.
        percentage_awarded: Percentage of base points for ``position``.
        pilots: Per-pilot breakdown.
    """

    squadron_id: str
    position: int
    total_points: int
    points_awarded: int
    percentage_awarded: int
    pilots: tuple[PilotResult, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SquadronResult":
        return cls(
            squadron_id=data["squadron_id"],
            position=int(data["position"]),
            total_points=int(data["total_points"]),
            points_awarded=int(data["points_awarded"]),
            percentage_awarded=int(data["percentage_awarded"]),
            pilots=tuple(PilotResult(**pilot) for pilot in data.get("pilots", [])),
        )


@dataclass(frozen=True)
class AdjustedResult:
    """Driver position before and after sanctions were applied."""

    driver_name: str
    pilot_id: str | None
    original_position: int
    adjusted_position: int
    sanction_applied: bool

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AdjustedResult":
        return cls(**data)


@dataclass(frozen=True)
class CalculatedResults:
    """Scoring output for one event, ready to be finalized.

    Attributes:
        event_id: Event the results belong to.
        base_points: Base points of the event's category.
        squadrons: Ordered squadron results (position 1 first).
        race_session_id: Race the results were computed from.
        adjusted_results: Position changes caused by sanctions.
        unresolved_drivers: Drivers that could not be mapped to a squadron pilot.
    """

    event_id: str
    base_points: int
    squadrons: tuple[SquadronResult, ...]
    race_session_id: str | None = None
    adjusted_results: tuple[AdjustedResult, ...] = ()
    unresolved_drivers: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CalculatedResults":
        return cls(
            event_id=data["event_id"],
            base_points=int(data["base_points"]),
            squadrons=tuple(SquadronResult.from_dict(s) for s in data["squadrons"]),
            race_session_id=data.get("race_session_id"),
            adjusted_results=tuple(
                AdjustedResult.from_dict(a) for a in data.get("adjusted_results", [])
            ),
            unresolved_drivers=tuple(data.get("unresolved_drivers", [])),
        )
