"""Identity resolution against the registered pilot directory."""

import logging

from ...core.domain.exceptions import PilotNotFoundError
from ...core.domain.utils import normalize_name
from ...core.ports.identity_port import IdentityResolverPort, ResolvedIdentity
from ...core.ports.repository_port import SquadronRepositoryPort

logger = logging.getLogger(__name__)

# Confidence by the pilot field that matched, strongest first
MATCH_CONFIDENCE = {
    "karting_driver_name": 1.0,
    "display_name": 0.9,
    "alias": 0.8,
}


class DirectoryIdentityResolver(IdentityResolverPort):
    """Resolves timing-system driver names to registered pilots.

    Names are compared after ``normalize_name`` (case, accents, spacing and
    BOM markers are ignored). The linked timing name is tried first, then the
    display name, then any alias. A name matching several pilots on the same
    field is treated as unresolved.
    """

    def __init__(self, repository: SquadronRepositoryPort) -> None:
        self.repository = repository

    def resolve(self, driver_name: str) -> ResolvedIdentity:
        key = normalize_name(driver_name)
        if not key:
            raise PilotNotFoundError("Driver name is empty", context={"driver_name": driver_name})

        matches: dict[str, list[str]] = {field: [] for field in MATCH_CONFIDENCE}
        for pilot in self.repository.iter_pilots():
            if pilot.karting_driver_name and normalize_name(pilot.karting_driver_name) == key:
                matches["karting_driver_name"].append(pilot.pilot_id)
            elif normalize_name(pilot.display_name) == key:
                matches["display_name"].append(pilot.pilot_id)
            elif any(normalize_name(alias) == key for alias in pilot.aliases):
                matches["alias"].append(pilot.pilot_id)

        for field, confidence in MATCH_CONFIDENCE.items():
            found = matches[field]
            if len(found) == 1:
                return ResolvedIdentity(pilot_id=found[0], confidence=confidence, matched_on=field)
            if len(found) > 1:
                logger.warning(f"Driver name '{driver_name}' matches several pilots: {found}")
                raise PilotNotFoundError(
                    "Driver name is ambiguous",
                    context={"driver_name": driver_name, "candidates": found},
                )

        raise PilotNotFoundError(
            "No pilot account matches this driver name", context={"driver_name": driver_name}
        )
