"""Composition root wiring adapters to the league services."""

import logging
from datetime import timedelta
from functools import lru_cache

from ..adapters.outbound.directory_identity_adapter import DirectoryIdentityResolver
from ..adapters.outbound.notification_outbox import SQLiteNotificationOutbox
from ..adapters.outbound.race_results_adapter import RaceResultsAdapter
from ..adapters.outbound.sqlite_adapter import SQLiteAdapter
from ..config.settings import settings
from ..core.services.event_lifecycle import EventLifecycle
from ..core.services.fair_racing_ledger import FairRacingScoreLedger
from ..core.services.points_ledger import PointsLedger
from ..core.services.roster_manager import RosterManager
from ..core.services.sanction_registry import SanctionRegistry
from ..core.services.scoring_engine import ScoringEngine

logger = logging.getLogger(__name__)


@lru_cache
def get_repository() -> SQLiteAdapter:
    logger.info(f"Opening league database at {settings.database_path}")
    settings.ensure_directories()
    return SQLiteAdapter(settings.database_path)


@lru_cache
def get_identity_resolver() -> DirectoryIdentityResolver:
    return DirectoryIdentityResolver(get_repository())


@lru_cache
def get_race_results() -> RaceResultsAdapter:
    logger.info("Initializing RaceResultsAdapter...")
    return RaceResultsAdapter(
        base_url=settings.race_results_url,
        api_key=settings.race_results_api_key,
        timeout=settings.request_timeout,
    )


@lru_cache
def get_notifier() -> SQLiteNotificationOutbox:
    return SQLiteNotificationOutbox(settings.database_path)


@lru_cache
def get_points_ledger() -> PointsLedger:
    return PointsLedger(get_repository())


@lru_cache
def get_fair_racing_ledger() -> FairRacingScoreLedger:
    return FairRacingScoreLedger(
        get_repository(), initial_score=settings.initial_fair_racing_score
    )


@lru_cache
def get_roster_manager() -> RosterManager:
    return RosterManager(
        get_repository(),
        invitation_window=timedelta(minutes=settings.invitation_window_minutes),
    )


@lru_cache
def get_sanction_registry() -> SanctionRegistry:
    return SanctionRegistry(get_repository(), get_identity_resolver())


@lru_cache
def get_event_lifecycle() -> EventLifecycle:
    logger.info("Initializing EventLifecycle...")
    return EventLifecycle(
        repository=get_repository(),
        scoring_engine=ScoringEngine(),
        points_ledger=get_points_ledger(),
        fair_racing=get_fair_racing_ledger(),
        race_results=get_race_results(),
        identity=get_identity_resolver(),
        notifier=get_notifier(),
    )
