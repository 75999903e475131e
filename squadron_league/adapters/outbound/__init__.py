"""Outbound adapters implementing the core ports."""

from .directory_identity_adapter import DirectoryIdentityResolver
from .notification_outbox import SQLiteNotificationOutbox
from .race_results_adapter import RaceResultsAdapter
from .sqlite_adapter import SQLiteAdapter

__all__ = [
    "DirectoryIdentityResolver",
    "RaceResultsAdapter",
    "SQLiteAdapter",
    "SQLiteNotificationOutbox",
]
