"""Port interfaces implemented by outbound adapters."""

from .identity_port import IdentityResolverPort, ResolvedIdentity
from .notification_port import NotificationKind, NotificationPort
from .race_result_port import RaceResultProviderPort
from .repository_port import (
    EventRepositoryPort,
    FairRacingRepositoryPort,
    LeagueRepositoryPort,
    RosterRepositoryPort,
    SanctionRepositoryPort,
    SquadronRepositoryPort,
    UnitOfWorkPort,
)

__all__ = [
    "IdentityResolverPort",
    "ResolvedIdentity",
    "NotificationKind",
    "NotificationPort",
    "RaceResultProviderPort",
    "UnitOfWorkPort",
    "EventRepositoryPort",
    "RosterRepositoryPort",
    "SanctionRepositoryPort",
    "SquadronRepositoryPort",
    "FairRacingRepositoryPort",
    "LeagueRepositoryPort",
]
