"""SQLite adapter for league persistence.

Every connection runs in autocommit mode; ``atomic()`` opens an explicit
``BEGIN IMMEDIATE`` transaction so that only one writer holds the database
at a time. Roster slot allocation is done with single conditional
statements (``INSERT ... SELECT ... WHERE NOT EXISTS``), so two callers
racing for the same kart cannot both succeed even across processes.

Timestamps are stored as fixed-width UTC ISO strings, which keeps SQL string
comparisons (``expires_at > ?``) chronological.
"""

import json
import logging
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from ...core.domain import (
    AdjustedResult,
    AdjustmentKind,
    ChangeType,
    ConfirmedPilot,
    Event,
    EventCategory,
    EventStatus,
    FairRacingScore,
    Incident,
    IncidentCategory,
    IncidentStatus,
    Invitation,
    InvitationStatus,
    Participation,
    ParticipationStatus,
    Pilot,
    PointsHistoryEntry,
    RaceProcessingState,
    Recognition,
    RecognitionType,
    Sanction,
    SanctionType,
    ScoreAdjustment,
    Squadron,
    SquadronResult,
)
from ...core.domain.exceptions import (
    ConflictError,
    EventNotFoundError,
    InvitationNotFoundError,
    PilotNotFoundError,
    SanctionNotFoundError,
    SquadronNotFoundError,
)
from ...core.ports.repository_port import LeagueRepositoryPort

logger = logging.getLogger(__name__)

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS events (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        description TEXT,
        category TEXT NOT NULL,
        created_by TEXT NOT NULL,
        event_date TEXT NOT NULL,
        registration_deadline TEXT NOT NULL,
        location TEXT NOT NULL,
        max_squadrons INTEGER NOT NULL,
        min_pilots_per_squadron INTEGER NOT NULL,
        max_pilots_per_squadron INTEGER NOT NULL,
        status TEXT NOT NULL,
        race_state TEXT NOT NULL,
        linked_race_session_id TEXT,
        results_json TEXT NOT NULL DEFAULT '[]',
        adjusted_results_json TEXT NOT NULL DEFAULT '[]',
        created_at TEXT,
        published_at TEXT,
        completed_at TEXT,
        finalized_at TEXT,
        finalized_by TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS participations (
        event_id TEXT NOT NULL REFERENCES events(id),
        squadron_id TEXT NOT NULL REFERENCES squadrons(id),
        registered_by TEXT NOT NULL,
        registered_at TEXT NOT NULL,
        status TEXT NOT NULL,
        notes TEXT,
        PRIMARY KEY (event_id, squadron_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS confirmed_pilots (
        event_id TEXT NOT NULL,
        squadron_id TEXT NOT NULL,
        pilot_id TEXT NOT NULL,
        kart_number INTEGER NOT NULL,
        confirmed_at TEXT NOT NULL,
        UNIQUE (event_id, kart_number),
        UNIQUE (event_id, pilot_id),
        FOREIGN KEY (event_id, squadron_id) REFERENCES participations(event_id, squadron_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS invitations (
        token TEXT PRIMARY KEY,
        event_id TEXT NOT NULL REFERENCES events(id),
        squadron_id TEXT NOT NULL,
        pilot_id TEXT NOT NULL,
        kart_number INTEGER NOT NULL,
        invited_at TEXT NOT NULL,
        expires_at TEXT NOT NULL,
        status TEXT NOT NULL,
        invited_by TEXT,
        responded_at TEXT
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_invitations_event_status
    ON invitations(event_id, status)
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_invitations_pilot
    ON invitations(pilot_id)
    """,
    """
    CREATE TABLE IF NOT EXISTS sanctions (
        id TEXT PRIMARY KEY,
        event_id TEXT NOT NULL REFERENCES events(id),
        race_session_id TEXT,
        driver_name TEXT NOT NULL,
        pilot_id TEXT NOT NULL,
        identity_confidence REAL NOT NULL,
        sanction_type TEXT NOT NULL,
        description TEXT NOT NULL,
        position_penalty INTEGER,
        points_penalty INTEGER,
        applied_by TEXT NOT NULL,
        applied_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS squadrons (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        total_points INTEGER NOT NULL,
        initial_points INTEGER NOT NULL,
        created_at TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS points_history (
        seq INTEGER PRIMARY KEY AUTOINCREMENT,
        id TEXT NOT NULL UNIQUE,
        squadron_id TEXT NOT NULL REFERENCES squadrons(id),
        event_id TEXT,
        points_change INTEGER NOT NULL,
        previous_total INTEGER NOT NULL,
        new_total INTEGER NOT NULL,
        reason TEXT NOT NULL,
        change_type TEXT NOT NULL,
        modified_by TEXT NOT NULL,
        timestamp TEXT NOT NULL,
        metadata_json TEXT NOT NULL DEFAULT '{}'
    )
    """,
    # One race award per squadron per event
    """
    CREATE UNIQUE INDEX IF NOT EXISTS idx_points_history_race_award
    ON points_history(squadron_id, event_id) WHERE change_type = 'race_event'
    """,
    """
    CREATE TABLE IF NOT EXISTS pilots (
        pilot_id TEXT PRIMARY KEY,
        display_name TEXT NOT NULL,
        karting_driver_name TEXT,
        aliases_json TEXT NOT NULL DEFAULT '[]',
        squadron_id TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS fair_racing_scores (
        pilot_id TEXT PRIMARY KEY,
        current_score INTEGER NOT NULL,
        initial_score INTEGER NOT NULL,
        total_races_clean INTEGER NOT NULL,
        recovery_progress INTEGER NOT NULL,
        last_race_date TEXT,
        incidents_json TEXT NOT NULL,
        recognitions_json TEXT NOT NULL,
        adjustments_json TEXT NOT NULL,
        version INTEGER NOT NULL
    )
    """,
]

# Timestamp columns stamped by a status change
STATUS_TIMESTAMP_COLUMNS = {
    EventStatus.PUBLISHED: "published_at",
    EventStatus.COMPLETED: "completed_at",
}


def _ts(value: datetime | None) -> str | None:
    """Fixed-width UTC ISO string; naive datetimes are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%S.%f+00:00")


def _dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class SQLiteAdapter(LeagueRepositoryPort):
    """Adapter for SQLite database operations."""

    def __init__(self, db_path: str | Path = "data/squadron_league.db", timeout: float = 30.0):
        """Initialize the SQLite adapter.

        Args:
            db_path: Path to the SQLite database file.
            timeout: Seconds to wait for the write lock before failing.
        """
        self.db_path = Path(db_path)
        self.timeout = timeout
        self._local = threading.local()
        self._connections: list[sqlite3.Connection] = []
        self._lock = threading.Lock()
        self._ensure_db_dir()
        self._init_db()

    def _ensure_db_dir(self) -> None:
        """Ensure the database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _connection(self) -> sqlite3.Connection:
        """Connection owned by the calling thread."""
        conn = getattr(self._local, "conn", None)
        if conn is None:
            conn = sqlite3.connect(
                self.db_path,
                timeout=self.timeout,
                isolation_level=None,
                check_same_thread=False,
            )
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys = ON")
            self._local.conn = conn
            self._local.depth = 0
            with self._lock:
                self._connections.append(conn)
        return conn

    def _init_db(self) -> None:
        """Initialize the database schema."""
        try:
            conn = self._connection()
            conn.execute("PRAGMA journal_mode = WAL")
            with self.atomic():
                for statement in SCHEMA:
                    conn.execute(statement)
        except sqlite3.Error as e:
            logger.error(f"Failed to initialize database: {e}")
            raise

    def close(self) -> None:
        """Close every connection opened by this adapter."""
        with self._lock:
            for conn in self._connections:
                conn.close()
            self._connections.clear()
        self._local = threading.local()

    # =========================================================================
    # Transactions
    # =========================================================================

    @contextmanager
    def atomic(self) -> Iterator[None]:
        conn = self._connection()
        if self._local.depth:
            self._local.depth += 1
            try:
                yield
            finally:
                self._local.depth -= 1
            return

        conn.execute("BEGIN IMMEDIATE")
        self._local.depth = 1
        try:
            yield
        except BaseException:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        else:
            conn.execute("COMMIT")
        finally:
            self._local.depth = 0

    @contextmanager
    def _snapshot(self) -> Iterator[sqlite3.Connection]:
        """Consistent multi-statement read, joining an open transaction if any."""
        conn = self._connection()
        if self._local.depth:
            yield conn
            return
        conn.execute("BEGIN")
        try:
            yield conn
        finally:
            conn.execute("COMMIT")

    # =========================================================================
    # Events
    # =========================================================================

    def add_event(self, event: Event) -> None:
        self._connection().execute(
            """
            INSERT INTO events (
                id, name, description, category, created_by, event_date,
                registration_deadline, location, max_squadrons, min_pilots_per_squadron,
                max_pilots_per_squadron, status, race_state, linked_race_session_id,
                created_at, published_at, completed_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                event.id,
                event.name,
                event.description,
                event.category.value,
                event.created_by,
                _ts(event.event_date),
                _ts(event.registration_deadline),
                event.location,
                event.max_squadrons,
                event.min_pilots_per_squadron,
                event.max_pilots_per_squadron,
                event.status.value,
                event.race_state.value,
                event.linked_race_session_id,
                _ts(event.created_at),
                _ts(event.published_at),
                _ts(event.completed_at),
            ),
        )

    def get_event(self, event_id: str) -> Event:
        with self._snapshot() as conn:
            row = conn.execute("SELECT * FROM events WHERE id = ?", (event_id,)).fetchone()
            if row is None:
                raise EventNotFoundError("Event not found", context={"event_id": event_id})
            return self._load_event(conn, row)

    def list_events(self, status: EventStatus | None = None) -> list[Event]:
        with self._snapshot() as conn:
            if status is None:
                rows = conn.execute("SELECT * FROM events ORDER BY event_date, id").fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM events WHERE status = ? ORDER BY event_date, id",
                    (status.value,),
                ).fetchall()
            return [self._load_event(conn, row) for row in rows]

    def _load_event(self, conn: sqlite3.Connection, row: sqlite3.Row) -> Event:
        event_id = row["id"]
        confirmed: dict[str, list[ConfirmedPilot]] = {}
        for pilot_row in conn.execute(
            "SELECT * FROM confirmed_pilots WHERE event_id = ? ORDER BY confirmed_at, pilot_id",
            (event_id,),
        ):
            confirmed.setdefault(pilot_row["squadron_id"], []).append(
                ConfirmedPilot(
                    pilot_id=pilot_row["pilot_id"],
                    kart_number=pilot_row["kart_number"],
                    confirmed_at=_dt(pilot_row["confirmed_at"]),
                )
            )
        pending: dict[str, list[Invitation]] = {}
        for inv_row in conn.execute(
            "SELECT * FROM invitations WHERE event_id = ? AND status = ? ORDER BY invited_at",
            (event_id, InvitationStatus.PENDING.value),
        ):
            pending.setdefault(inv_row["squadron_id"], []).append(self._row_to_invitation(inv_row))

        participants = [
            Participation(
                event_id=event_id,
                squadron_id=p["squadron_id"],
                registered_by=p["registered_by"],
                registered_at=_dt(p["registered_at"]),
                confirmed_pilots=confirmed.get(p["squadron_id"], []),
                pending_invitations=pending.get(p["squadron_id"], []),
                status=ParticipationStatus(p["status"]),
                notes=p["notes"],
            )
            for p in conn.execute(
                "SELECT * FROM participations WHERE event_id = ? "
                "ORDER BY registered_at, squadron_id",
                (event_id,),
            )
        ]
        sanction_ids = [
            s["id"]
            for s in conn.execute(
                "SELECT id FROM sanctions WHERE event_id = ? ORDER BY applied_at, id", (event_id,)
            )
        ]

        return Event(
            id=event_id,
            name=row["name"],
            description=row["description"],
            category=EventCategory(row["category"]),
            created_by=row["created_by"],
            event_date=_dt(row["event_date"]),
            registration_deadline=_dt(row["registration_deadline"]),
            location=row["location"],
            max_squadrons=row["max_squadrons"],
            min_pilots_per_squadron=row["min_pilots_per_squadron"],
            max_pilots_per_squadron=row["max_pilots_per_squadron"],
            status=EventStatus(row["status"]),
            race_state=RaceProcessingState(row["race_state"]),
            linked_race_session_id=row["linked_race_session_id"],
            participants=participants,
            sanction_ids=sanction_ids,
            results=[SquadronResult.from_dict(r) for r in json.loads(row["results_json"])],
            adjusted_results=[
                AdjustedResult.from_dict(a) for a in json.loads(row["adjusted_results_json"])
            ],
            created_at=_dt(row["created_at"]),
            published_at=_dt(row["published_at"]),
            completed_at=_dt(row["completed_at"]),
            finalized_at=_dt(row["finalized_at"]),
            finalized_by=row["finalized_by"],
        )

    def compare_and_set_status(
        self, event_id: str, expected: EventStatus, new: EventStatus, at: datetime
    ) -> bool:
        assignments = "status = ?"
        params: list[Any] = [new.value]
        column = STATUS_TIMESTAMP_COLUMNS.get(new)
        if column:
            assignments += f", {column} = ?"
            params.append(_ts(at))
        cursor = self._connection().execute(
            f"UPDATE events SET {assignments} WHERE id = ? AND status = ?",
            (*params, event_id, expected.value),
        )
        return cursor.rowcount == 1

    def compare_and_set_race_state(
        self, event_id: str, expected: RaceProcessingState, new: RaceProcessingState
    ) -> bool:
        cursor = self._connection().execute(
            "UPDATE events SET race_state = ? WHERE id = ? AND race_state = ?",
            (new.value, event_id, expected.value),
        )
        return cursor.rowcount == 1

    def link_race_session(self, event_id: str, race_session_id: str) -> None:
        self._connection().execute(
            "UPDATE events SET linked_race_session_id = ? WHERE id = ?",
            (race_session_id, event_id),
        )

    def save_results(
        self,
        event_id: str,
        results: list[SquadronResult],
        adjusted_results: list[AdjustedResult],
        finalized_at: datetime,
        finalized_by: str,
    ) -> None:
        self._connection().execute(
            """
            UPDATE events
            SET results_json = ?, adjusted_results_json = ?, finalized_at = ?, finalized_by = ?
            WHERE id = ?
            """,
            (
                json.dumps([r.to_dict() for r in results]),
                json.dumps([a.to_dict() for a in adjusted_results]),
                _ts(finalized_at),
                finalized_by,
                event_id,
            ),
        )

    # =========================================================================
    # Rosters
    # =========================================================================

    def add_participation(
        self, participation: Participation, first_pilot: ConfirmedPilot, max_squadrons: int
    ) -> bool:
        event_id = participation.event_id
        now = _ts(first_pilot.confirmed_at)
        with self.atomic():
            conn = self._connection()
            cursor = conn.execute(
                """
                INSERT INTO participations (
                    event_id, squadron_id, registered_by, registered_at, status, notes
                )
                SELECT ?, ?, ?, ?, ?, ?
                WHERE (SELECT COUNT(*) FROM participations
                       WHERE event_id = ? AND status != 'cancelled') < ?
                  AND NOT EXISTS (SELECT 1 FROM participations
                                  WHERE event_id = ? AND squadron_id = ?)
                  AND NOT EXISTS (SELECT 1 FROM confirmed_pilots
                                  WHERE event_id = ? AND (kart_number = ? OR pilot_id = ?))
                  AND NOT EXISTS (SELECT 1 FROM invitations
                                  WHERE event_id = ? AND status = 'pending' AND expires_at > ?
                                    AND (kart_number = ? OR pilot_id = ?))
                """,
                (
                    event_id,
                    participation.squadron_id,
                    participation.registered_by,
                    _ts(participation.registered_at),
                    participation.status.value,
                    participation.notes,
                    event_id,
                    max_squadrons,
                    event_id,
                    participation.squadron_id,
                    event_id,
                    first_pilot.kart_number,
                    first_pilot.pilot_id,
                    event_id,
                    now,
                    first_pilot.kart_number,
                    first_pilot.pilot_id,
                ),
            )
            if cursor.rowcount != 1:
                return False
            conn.execute(
                """
                INSERT INTO confirmed_pilots (
                    event_id, squadron_id, pilot_id, kart_number, confirmed_at
                ) VALUES (?, ?, ?, ?, ?)
                """,
                (
                    event_id,
                    participation.squadron_id,
                    first_pilot.pilot_id,
                    first_pilot.kart_number,
                    now,
                ),
            )
        return True

    def reserve_invitation(self, invitation: Invitation, max_pilots: int, now: datetime) -> bool:
        now_ts = _ts(now)
        event_id = invitation.event_id
        cursor = self._connection().execute(
            """
            INSERT INTO invitations (
                token, event_id, squadron_id, pilot_id, kart_number,
                invited_at, expires_at, status, invited_by
            )
            SELECT ?, ?, ?, ?, ?, ?, ?, 'pending', ?
            WHERE EXISTS (SELECT 1 FROM participations
                          WHERE event_id = ? AND squadron_id = ? AND status != 'cancelled')
              AND NOT EXISTS (SELECT 1 FROM confirmed_pilots
                              WHERE event_id = ? AND (kart_number = ? OR pilot_id = ?))
              AND NOT EXISTS (SELECT 1 FROM invitations
                              WHERE event_id = ? AND status = 'pending' AND expires_at > ?
                                AND (kart_number = ? OR pilot_id = ?))
              AND (SELECT COUNT(*) FROM confirmed_pilots
                   WHERE event_id = ? AND squadron_id = ?)
                + (SELECT COUNT(*) FROM invitations
                   WHERE event_id = ? AND squadron_id = ? AND status = 'pending'
                     AND expires_at > ?) < ?
            """,
            (
                invitation.token,
                event_id,
                invitation.squadron_id,
                invitation.pilot_id,
                invitation.kart_number,
                _ts(invitation.invited_at),
                _ts(invitation.expires_at),
                invitation.invited_by,
                event_id,
                invitation.squadron_id,
                event_id,
                invitation.kart_number,
                invitation.pilot_id,
                event_id,
                now_ts,
                invitation.kart_number,
                invitation.pilot_id,
                event_id,
                invitation.squadron_id,
                event_id,
                invitation.squadron_id,
                now_ts,
                max_pilots,
            ),
        )
        return cursor.rowcount == 1

    @staticmethod
    def _row_to_invitation(row: sqlite3.Row) -> Invitation:
        return Invitation(
            token=row["token"],
            event_id=row["event_id"],
            squadron_id=row["squadron_id"],
            pilot_id=row["pilot_id"],
            kart_number=row["kart_number"],
            invited_at=_dt(row["invited_at"]),
            expires_at=_dt(row["expires_at"]),
            status=InvitationStatus(row["status"]),
            invited_by=row["invited_by"],
            responded_at=_dt(row["responded_at"]),
        )

    def get_invitation(self, token: str) -> Invitation:
        row = (
            self._connection()
            .execute("SELECT * FROM invitations WHERE token = ?", (token,))
            .fetchone()
        )
        if row is None:
            raise InvitationNotFoundError("Invitation not found", context={"token": token})
        return self._row_to_invitation(row)

    def accept_invitation(self, token: str, now: datetime, max_pilots: int) -> bool:
        now_ts = _ts(now)
        with self.atomic():
            conn = self._connection()
            cursor = conn.execute(
                """
                INSERT INTO confirmed_pilots (
                    event_id, squadron_id, pilot_id, kart_number, confirmed_at
                )
                SELECT i.event_id, i.squadron_id, i.pilot_id, i.kart_number, ?
                FROM invitations AS i
                WHERE i.token = ? AND i.status = 'pending' AND i.expires_at > ?
                  AND NOT EXISTS (SELECT 1 FROM confirmed_pilots AS c
                                  WHERE c.event_id = i.event_id
                                    AND (c.kart_number = i.kart_number
                                         OR c.pilot_id = i.pilot_id))
                  AND NOT EXISTS (SELECT 1 FROM invitations AS o
                                  WHERE o.event_id = i.event_id AND o.token != i.token
                                    AND o.status = 'pending' AND o.expires_at > ?
                                    AND o.kart_number = i.kart_number)
                  AND (SELECT COUNT(*) FROM confirmed_pilots AS c
                       WHERE c.event_id = i.event_id AND c.squadron_id = i.squadron_id) < ?
                """,
                (now_ts, token, now_ts, now_ts, max_pilots),
            )
            if cursor.rowcount != 1:
                return False
            conn.execute(
                "UPDATE invitations SET status = 'accepted', responded_at = ? WHERE token = ?",
                (now_ts, token),
            )
        return True

    def compare_and_set_invitation_status(
        self,
        token: str,
        expected: InvitationStatus,
        new: InvitationStatus,
        at: datetime,
    ) -> bool:
        cursor = self._connection().execute(
            "UPDATE invitations SET status = ?, responded_at = ? WHERE token = ? AND status = ?",
            (new.value, _ts(at), token, expected.value),
        )
        return cursor.rowcount == 1

    def invitations_for_pilot(self, pilot_id: str) -> list[Invitation]:
        rows = (
            self._connection()
            .execute(
                "SELECT * FROM invitations WHERE pilot_id = ? ORDER BY invited_at", (pilot_id,)
            )
            .fetchall()
        )
        return [self._row_to_invitation(row) for row in rows]

    def remove_confirmed_pilot(self, event_id: str, pilot_id: str) -> bool:
        cursor = self._connection().execute(
            "DELETE FROM confirmed_pilots WHERE event_id = ? AND pilot_id = ?",
            (event_id, pilot_id),
        )
        return cursor.rowcount == 1

    def remove_participation(self, event_id: str, squadron_id: str) -> None:
        with self.atomic():
            conn = self._connection()
            conn.execute(
                "DELETE FROM confirmed_pilots WHERE event_id = ? AND squadron_id = ?",
                (event_id, squadron_id),
            )
            conn.execute(
                "DELETE FROM participations WHERE event_id = ? AND squadron_id = ?",
                (event_id, squadron_id),
            )

    def set_participation_status(
        self, event_id: str, squadron_id: str, status: ParticipationStatus
    ) -> None:
        self._connection().execute(
            "UPDATE participations SET status = ? WHERE event_id = ? AND squadron_id = ?",
            (status.value, event_id, squadron_id),
        )

    # =========================================================================
    # Sanctions
    # =========================================================================

    def add_sanction(self, sanction: Sanction) -> None:
        self._connection().execute(
            """
            INSERT INTO sanctions (
                id, event_id, race_session_id, driver_name, pilot_id, identity_confidence,
                sanction_type, description, position_penalty, points_penalty,
                applied_by, applied_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                sanction.id,
                sanction.event_id,
                sanction.race_session_id,
                sanction.driver_name,
                sanction.pilot_id,
                sanction.identity_confidence,
                sanction.sanction_type.value,
                sanction.description,
                sanction.position_penalty,
                sanction.points_penalty,
                sanction.applied_by,
                _ts(sanction.applied_at),
            ),
        )

    @staticmethod
    def _row_to_sanction(row: sqlite3.Row) -> Sanction:
        return Sanction(
            id=row["id"],
            event_id=row["event_id"],
            driver_name=row["driver_name"],
            pilot_id=row["pilot_id"],
            sanction_type=SanctionType(row["sanction_type"]),
            description=row["description"],
            applied_by=row["applied_by"],
            applied_at=_dt(row["applied_at"]),
            position_penalty=row["position_penalty"],
            points_penalty=row["points_penalty"],
            race_session_id=row["race_session_id"],
            identity_confidence=row["identity_confidence"],
        )

    def get_sanction(self, sanction_id: str) -> Sanction:
        row = (
            self._connection()
            .execute("SELECT * FROM sanctions WHERE id = ?", (sanction_id,))
            .fetchone()
        )
        if row is None:
            raise SanctionNotFoundError(
                "Sanction not found", context={"sanction_id": sanction_id}
            )
        return self._row_to_sanction(row)

    def delete_sanction(self, sanction_id: str) -> bool:
        cursor = self._connection().execute("DELETE FROM sanctions WHERE id = ?", (sanction_id,))
        return cursor.rowcount == 1

    def list_sanctions(self, event_id: str) -> list[Sanction]:
        rows = (
            self._connection()
            .execute(
                "SELECT * FROM sanctions WHERE event_id = ? ORDER BY applied_at, id", (event_id,)
            )
            .fetchall()
        )
        return [self._row_to_sanction(row) for row in rows]

    # =========================================================================
    # Squadrons and pilots
    # =========================================================================

    def add_squadron(self, squadron: Squadron) -> None:
        try:
            self._connection().execute(
                """
                INSERT INTO squadrons (id, name, total_points, initial_points, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    squadron.id,
                    squadron.name,
                    squadron.total_points,
                    squadron.initial_points,
                    _ts(squadron.created_at),
                ),
            )
        except sqlite3.IntegrityError as e:
            raise ConflictError(
                "Squadron already exists", cause=e, context={"squadron_id": squadron.id}
            ) from e

    @staticmethod
    def _row_to_squadron(row: sqlite3.Row) -> Squadron:
        return Squadron(
            id=row["id"],
            name=row["name"],
            total_points=row["total_points"],
            initial_points=row["initial_points"],
            created_at=_dt(row["created_at"]),
        )

    def get_squadron(self, squadron_id: str) -> Squadron:
        row = (
            self._connection()
            .execute("SELECT * FROM squadrons WHERE id = ?", (squadron_id,))
            .fetchone()
        )
        if row is None:
            raise SquadronNotFoundError(
                "Squadron not found", context={"squadron_id": squadron_id}
            )
        return self._row_to_squadron(row)

    def list_squadrons(self) -> list[Squadron]:
        rows = (
            self._connection()
            .execute("SELECT * FROM squadrons ORDER BY total_points DESC, created_at, id")
            .fetchall()
        )
        return [self._row_to_squadron(row) for row in rows]

    def compare_and_set_squadron_total(self, squadron_id: str, expected: int, new: int) -> bool:
        cursor = self._connection().execute(
            "UPDATE squadrons SET total_points = ? WHERE id = ? AND total_points = ?",
            (new, squadron_id, expected),
        )
        return cursor.rowcount == 1

    def append_points_history(self, entry: PointsHistoryEntry) -> None:
        try:
            self._connection().execute(
                """
                INSERT INTO points_history (
                    id, squadron_id, event_id, points_change, previous_total, new_total,
                    reason, change_type, modified_by, timestamp, metadata_json
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    entry.id,
                    entry.squadron_id,
                    entry.event_id,
                    entry.points_change,
                    entry.previous_total,
                    entry.new_total,
                    entry.reason,
                    entry.change_type.value,
                    entry.modified_by,
                    _ts(entry.timestamp),
                    json.dumps(entry.metadata, default=str),
                ),
            )
        except sqlite3.IntegrityError as e:
            raise ConflictError(
                "Points for this event were already applied to the squadron",
                cause=e,
                context={"squadron_id": entry.squadron_id, "event_id": entry.event_id},
            ) from e

    def points_history(self, squadron_id: str) -> list[PointsHistoryEntry]:
        rows = (
            self._connection()
            .execute(
                "SELECT * FROM points_history WHERE squadron_id = ? ORDER BY seq", (squadron_id,)
            )
            .fetchall()
        )
        return [
            PointsHistoryEntry(
                id=row["id"],
                squadron_id=row["squadron_id"],
                event_id=row["event_id"],
                points_change=row["points_change"],
                previous_total=row["previous_total"],
                new_total=row["new_total"],
                reason=row["reason"],
                change_type=ChangeType(row["change_type"]),
                modified_by=row["modified_by"],
                timestamp=_dt(row["timestamp"]),
                metadata=json.loads(row["metadata_json"]),
            )
            for row in rows
        ]

    def add_pilot(self, pilot: Pilot) -> None:
        self._connection().execute(
            """
            INSERT INTO pilots (
                pilot_id, display_name, karting_driver_name, aliases_json, squadron_id
            )
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(pilot_id) DO UPDATE SET
                display_name = excluded.display_name,
                karting_driver_name = excluded.karting_driver_name,
                aliases_json = excluded.aliases_json,
                squadron_id = excluded.squadron_id
            """,
            (
                pilot.pilot_id,
                pilot.display_name,
                pilot.karting_driver_name,
                json.dumps(pilot.aliases),
                pilot.squadron_id,
            ),
        )

    @staticmethod
    def _row_to_pilot(row: sqlite3.Row) -> Pilot:
        return Pilot(
            pilot_id=row["pilot_id"],
            display_name=row["display_name"],
            karting_driver_name=row["karting_driver_name"],
            aliases=json.loads(row["aliases_json"]),
            squadron_id=row["squadron_id"],
        )

    def get_pilot(self, pilot_id: str) -> Pilot:
        row = (
            self._connection()
            .execute("SELECT * FROM pilots WHERE pilot_id = ?", (pilot_id,))
            .fetchone()
        )
        if row is None:
            raise PilotNotFoundError("Pilot not found", context={"pilot_id": pilot_id})
        return self._row_to_pilot(row)

    def iter_pilots(self) -> Iterator[Pilot]:
        rows = self._connection().execute("SELECT * FROM pilots ORDER BY pilot_id").fetchall()
        for row in rows:
            yield self._row_to_pilot(row)

    # =========================================================================
    # Fair racing scores
    # =========================================================================

    def get_fair_racing_score(self, pilot_id: str) -> FairRacingScore | None:
        row = (
            self._connection()
            .execute("SELECT * FROM fair_racing_scores WHERE pilot_id = ?", (pilot_id,))
            .fetchone()
        )
        if row is None:
            return None
        return FairRacingScore(
            pilot_id=row["pilot_id"],
            current_score=row["current_score"],
            initial_score=row["initial_score"],
            incidents=[_incident_from_dict(i) for i in json.loads(row["incidents_json"])],
            recognitions=[
                _recognition_from_dict(r) for r in json.loads(row["recognitions_json"])
            ],
            adjustments=[
                _adjustment_from_dict(a) for a in json.loads(row["adjustments_json"])
            ],
            total_races_clean=row["total_races_clean"],
            recovery_progress=row["recovery_progress"],
            last_race_date=_dt(row["last_race_date"]),
            version=row["version"],
        )

    def save_fair_racing_score(self, score: FairRacingScore, expected_version: int) -> bool:
        values = (
            score.current_score,
            score.initial_score,
            score.total_races_clean,
            score.recovery_progress,
            _ts(score.last_race_date),
            json.dumps([_incident_to_dict(i) for i in score.incidents]),
            json.dumps([_recognition_to_dict(r) for r in score.recognitions]),
            json.dumps([_adjustment_to_dict(a) for a in score.adjustments]),
            expected_version + 1,
        )
        conn = self._connection()
        if expected_version == 0:
            cursor = conn.execute(
                """
                INSERT INTO fair_racing_scores (
                    current_score, initial_score, total_races_clean, recovery_progress,
                    last_race_date, incidents_json, recognitions_json, adjustments_json,
                    version, pilot_id
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(pilot_id) DO NOTHING
                """,
                (*values, score.pilot_id),
            )
        else:
            cursor = conn.execute(
                """
                UPDATE fair_racing_scores
                SET current_score = ?, initial_score = ?, total_races_clean = ?,
                    recovery_progress = ?, last_race_date = ?, incidents_json = ?,
                    recognitions_json = ?, adjustments_json = ?, version = ?
                WHERE pilot_id = ? AND version = ?
                """,
                (*values, score.pilot_id, expected_version),
            )
        return cursor.rowcount == 1


# =============================================================================
# Fair racing JSON mapping
# =============================================================================


def _incident_to_dict(incident: Incident) -> dict[str, Any]:
    return {
        "incident_id": incident.incident_id,
        "event_id": incident.event_id,
        "category": incident.category.value,
        "severity": incident.severity,
        "points_deducted": incident.points_deducted,
        "reported_by": incident.reported_by,
        "description": incident.description,
        "date": _ts(incident.date),
        "status": incident.status.value,
        "moderator_id": incident.moderator_id,
        "video_evidence": incident.video_evidence,
    }


def _incident_from_dict(data: dict[str, Any]) -> Incident:
    return Incident(
        incident_id=data["incident_id"],
        event_id=data["event_id"],
        category=IncidentCategory(data["category"]),
        severity=data["severity"],
        points_deducted=data["points_deducted"],
        reported_by=data["reported_by"],
        description=data["description"],
        date=_dt(data["date"]),
        status=IncidentStatus(data["status"]),
        moderator_id=data.get("moderator_id"),
        video_evidence=data.get("video_evidence"),
    )


def _recognition_to_dict(recognition: Recognition) -> dict[str, Any]:
    return {
        "recognition_id": recognition.recognition_id,
        "event_id": recognition.event_id,
        "recognition_type": recognition.recognition_type.value,
        "points_awarded": recognition.points_awarded,
        "observer_id": recognition.observer_id,
        "date": _ts(recognition.date),
        "description": recognition.description,
    }


def _recognition_from_dict(data: dict[str, Any]) -> Recognition:
    return Recognition(
        recognition_id=data["recognition_id"],
        event_id=data["event_id"],
        recognition_type=RecognitionType(data["recognition_type"]),
        points_awarded=data["points_awarded"],
        observer_id=data["observer_id"],
        date=_dt(data["date"]),
        description=data.get("description", ""),
    )


def _adjustment_to_dict(adjustment: ScoreAdjustment) -> dict[str, Any]:
    return {
        "kind": adjustment.kind.value,
        "requested": adjustment.requested,
        "applied": adjustment.applied,
        "score_after": adjustment.score_after,
        "reference": adjustment.reference,
        "at": _ts(adjustment.at),
    }


def _adjustment_from_dict(data: dict[str, Any]) -> ScoreAdjustment:
    return ScoreAdjustment(
        kind=AdjustmentKind(data["kind"]),
        requested=data["requested"],
        applied=data["applied"],
        score_after=data["score_after"],
        reference=data.get("reference"),
        at=_dt(data["at"]),
    )
