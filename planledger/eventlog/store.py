"""SQLite-backed append-only event log."""

import json
import logging
import sqlite3
import threading
import time
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from .exceptions import EventLogClosedError
from .models import FileSystemEvent, StoredEvent, enrich

logger = logging.getLogger(__name__)

DELETE_EVENT_CLASSES = ("FileDeleted", "DirectoryDeleted")


class EventLog:
    """
    Append-only store of filesystem events.

    Features:
    - Monotonically increasing event ids (append order is replay order)
    - Frequently queried event properties promoted to indexed columns
    - Thread-local connections, safe to share between threads
    """

    def __init__(self, db_path: Path, table_name: str = "stored_events"):
        """
        Initialize the event log.

        Args:
            db_path: Path to the SQLite database file
            table_name: Name of the events table
        """
        self.db_path = Path(db_path)
        self.table_name = table_name
        self._lock = threading.Lock()
        self._local = threading.local()
        self._closed = False

        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a thread-local database connection."""
        if not hasattr(self._local, "conn") or self._local.conn is None:
            self._local.conn = sqlite3.connect(
                str(self.db_path),
                check_same_thread=False,
                isolation_level=None,  # Autocommit mode
                timeout=30.0,
            )
            self._local.conn.row_factory = sqlite3.Row
            self._local.conn.execute("PRAGMA journal_mode=WAL")
            self._local.conn.execute("PRAGMA synchronous=NORMAL")
        return self._local.conn

    def _init_db(self) -> None:
        """Initialize the database schema."""
        conn = self._get_connection()
        conn.executescript(f"""
            CREATE TABLE IF NOT EXISTS {self.table_name} (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                event_class TEXT NOT NULL,
                event_properties TEXT NOT NULL,
                meta_data TEXT NOT NULL,
                origin TEXT,
                file_path TEXT,
                old_path TEXT,
                file_hash TEXT,
                file_modified_at REAL,
                file_size INTEGER,
                file_type TEXT,
                created_at REAL NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_{self.table_name}_origin_created
                ON {self.table_name}(origin, created_at);
            CREATE INDEX IF NOT EXISTS idx_{self.table_name}_file_path
                ON {self.table_name}(file_path);
            CREATE INDEX IF NOT EXISTS idx_{self.table_name}_file_type
                ON {self.table_name}(file_type);
        """)

    def _check_closed(self) -> None:
        if self._closed:
            raise EventLogClosedError("Event log is closed")

    def _row_to_stored(self, row: sqlite3.Row) -> StoredEvent:
        event = FileSystemEvent.from_dict(json.loads(row["event_properties"]))
        return StoredEvent(
            id=row["id"],
            event=event,
            stored_at=row["created_at"],
            meta_data=json.loads(row["meta_data"]),
        )

    def append(self, event: FileSystemEvent) -> StoredEvent:
        """
        Append an event to the log.

        Args:
            event: Event to record

        Returns:
            The stored event with its assigned id and storage timestamp
        """
        self._check_closed()

        meta_data = enrich(event)
        now = time.time()

        with self._lock:
            conn = self._get_connection()
            cursor = conn.execute(
                f"""
                INSERT INTO {self.table_name} (
                    event_class, event_properties, meta_data, origin, file_path,
                    old_path, file_hash, file_modified_at, file_size, file_type, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    event.event_class,
                    json.dumps(event.to_dict()),
                    json.dumps(meta_data),
                    event.origin.value,
                    event.path,
                    getattr(event, "old_path", None),
                    event.content_hash,
                    event.modified_at,
                    event.size,
                    event.file_type,
                    now,
                ),
            )
            event_id = cursor.lastrowid

        return StoredEvent(id=event_id, event=event, stored_at=now, meta_data=meta_data)

    def get(self, event_id: int) -> Optional[StoredEvent]:
        """Get a single stored event by id."""
        self._check_closed()

        with self._lock:
            conn = self._get_connection()
            row = conn.execute(
                f"SELECT * FROM {self.table_name} WHERE id = ?", (event_id,)
            ).fetchone()
        return self._row_to_stored(row) if row else None

    def query(
        self,
        event_class: Optional[str] = None,
        path: Optional[str] = None,
        origin: Optional[str] = None,
        after_id: Optional[int] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[StoredEvent]:
        """
        Query stored events.

        Args:
            event_class: SQL LIKE pattern on the event class name
            path: Exact file path
            origin: Origin value (``initial``, ``real-time``, ``reconciled``)
            after_id: Only events with a greater id
            descending: Newest first when True
            limit: Maximum number of events

        Returns:
            Matching stored events
        """
        self._check_closed()

        clauses = []
        params: list = []
        if event_class is not None:
            clauses.append("event_class LIKE ?")
            params.append(event_class)
        if path is not None:
            clauses.append("file_path = ?")
            params.append(path)
        if origin is not None:
            clauses.append("origin = ?")
            params.append(origin)
        if after_id is not None:
            clauses.append("id > ?")
            params.append(after_id)

        sql = f"SELECT * FROM {self.table_name}"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY id DESC" if descending else " ORDER BY id"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)

        with self._lock:
            conn = self._get_connection()
            rows = conn.execute(sql, params).fetchall()
        return [self._row_to_stored(row) for row in rows]

    def iter_events(
        self,
        after_id: int = 0,
        descending: bool = False,
        batch_size: int = 500,
    ) -> Iterator[StoredEvent]:
        """
        Iterate over stored events in batches.

        Args:
            after_id: Only events with a greater id are yielded
            descending: Newest first when True
            batch_size: Number of rows fetched per query

        Yields:
            StoredEvent objects
        """
        if descending:
            cursor_id = self.last_id() + 1
            while True:
                batch = self._fetch_batch(
                    "id < ? AND id > ? ORDER BY id DESC", (cursor_id, after_id), batch_size
                )
                if not batch:
                    return
                yield from batch
                cursor_id = batch[-1].id
        else:
            cursor_id = after_id
            while True:
                batch = self._fetch_batch("id > ? ORDER BY id", (cursor_id,), batch_size)
                if not batch:
                    return
                yield from batch
                cursor_id = batch[-1].id

    def _fetch_batch(self, where: str, params: tuple, batch_size: int) -> List[StoredEvent]:
        self._check_closed()
        with self._lock:
            conn = self._get_connection()
            rows = conn.execute(
                f"SELECT * FROM {self.table_name} WHERE {where} LIMIT ?",
                params + (batch_size,),
            ).fetchall()
        return [self._row_to_stored(row) for row in rows]

    def latest(self, count: int) -> List[StoredEvent]:
        """
        Get the most recent events, oldest first.

        Args:
            count: Number of events to return
        """
        events = self.query(descending=True, limit=count)
        events.reverse()
        return events

    def last_id(self) -> int:
        """Get the id of the most recent event, or 0 for an empty log."""
        self._check_closed()

        with self._lock:
            conn = self._get_connection()
            row = conn.execute(f"SELECT MAX(id) FROM {self.table_name}").fetchone()
        return row[0] or 0

    def count(self, event_class: Optional[str] = None) -> int:
        """Count stored events, optionally filtered by event class pattern."""
        self._check_closed()

        with self._lock:
            conn = self._get_connection()
            if event_class is None:
                row = conn.execute(f"SELECT COUNT(*) FROM {self.table_name}").fetchone()
            else:
                row = conn.execute(
                    f"SELECT COUNT(*) FROM {self.table_name} WHERE event_class LIKE ?",
                    (event_class,),
                ).fetchone()
        return row[0]

    def count_by_class(self) -> Dict[str, int]:
        """Count stored events grouped by event class."""
        self._check_closed()

        with self._lock:
            conn = self._get_connection()
            rows = conn.execute(
                f"SELECT event_class, COUNT(*) FROM {self.table_name} GROUP BY event_class"
            ).fetchall()
        return {row[0]: row[1] for row in rows}

    def timeline(self) -> Dict[str, StoredEvent]:
        """
        Get the latest stored event for every recorded path.

        Returns:
            Mapping of path to its most recent event
        """
        self._check_closed()

        with self._lock:
            conn = self._get_connection()
            rows = conn.execute(f"""
                SELECT * FROM {self.table_name}
                WHERE id IN (SELECT MAX(id) FROM {self.table_name} GROUP BY file_path)
                ORDER BY id
            """).fetchall()
        return {row["file_path"]: self._row_to_stored(row) for row in rows}

    def latest_hashes(self) -> Dict[str, str]:
        """
        Get the last recorded content hash of every path that still exists
        according to the log.
        """
        self._check_closed()

        placeholders = ",".join("?" * len(DELETE_EVENT_CLASSES))
        with self._lock:
            conn = self._get_connection()
            rows = conn.execute(
                f"""
                SELECT file_path, file_hash FROM {self.table_name}
                WHERE id IN (SELECT MAX(id) FROM {self.table_name} GROUP BY file_path)
                  AND file_hash IS NOT NULL
                  AND event_class NOT IN ({placeholders})
                """,
                DELETE_EVENT_CLASSES,
            ).fetchall()
        return {row[0]: row[1] for row in rows}

    def close(self) -> None:
        """Close the event log and release resources."""
        if self._closed:
            return

        self._closed = True

        if hasattr(self._local, "conn") and self._local.conn:
            self._local.conn.close()
            self._local.conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
