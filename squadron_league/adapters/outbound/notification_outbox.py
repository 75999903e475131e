"""Notification outbox stored in SQLite.

Delivery to pilots (push, e-mail, ...) is handled by another process that
reads this table; the league only records what should be sent.
"""

import json
import logging
import sqlite3
from collections.abc import Iterator
from contextlib import closing, contextmanager
from pathlib import Path
from typing import Any

from ...core.domain.utils import utcnow
from ...core.ports.notification_port import NotificationKind, NotificationPort

logger = logging.getLogger(__name__)


class SQLiteNotificationOutbox(NotificationPort):
    """Appends notifications to an outbox table."""

    def __init__(self, db_path: str | Path = "data/squadron_league.db") -> None:
        """Initialize the outbox.

        Args:
            db_path: Path to the SQLite database file.
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Short-lived connection: committed on success, always closed."""
        with closing(sqlite3.connect(self.db_path, timeout=30)) as conn:
            conn.row_factory = sqlite3.Row
            with conn:
                yield conn

    def _init_db(self) -> None:
        """Initialize the outbox table."""
        try:
            with self._connect() as conn:
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS notifications (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        pilot_id TEXT NOT NULL,
                        kind TEXT NOT NULL,
                        payload_json TEXT NOT NULL,
                        created_at TEXT NOT NULL,
                        delivered_at TEXT
                    )
                """)
                conn.execute("""
                    CREATE INDEX IF NOT EXISTS idx_notifications_pilot
                    ON notifications(pilot_id)
                """)
        except sqlite3.Error as e:
            logger.error(f"Failed to initialize notification outbox: {e}")
            raise

    def notify(self, pilot_id: str, kind: NotificationKind, payload: dict[str, Any]) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO notifications (pilot_id, kind, payload_json, created_at)
                VALUES (?, ?, ?, ?)
                """,
                (pilot_id, kind.value, json.dumps(payload, default=str), utcnow().isoformat()),
            )
        logger.info(
            f"Queued {kind.value} notification for pilot {pilot_id}",
            extra={"pilot_id": pilot_id, "event_id": payload.get("event_id")},
        )

    def pending_for(self, pilot_id: str) -> list[dict[str, Any]]:
        """Undelivered notifications for a pilot, oldest first."""
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT id, kind, payload_json, created_at FROM notifications
                WHERE pilot_id = ? AND delivered_at IS NULL
                ORDER BY id
                """,
                (pilot_id,),
            ).fetchall()
        return [
            {
                "id": row["id"],
                "kind": row["kind"],
                "payload": json.loads(row["payload_json"]),
                "created_at": row["created_at"],
            }
            for row in rows
        ]
