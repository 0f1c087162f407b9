"""Persisted filesystem snapshots for reconcile runs."""

import logging
import sqlite3
import time
from pathlib import Path
from typing import Dict, Optional

from .exceptions import SnapshotNotFoundError
from .models import ItemState

logger = logging.getLogger(__name__)


class SnapshotStore:
    """
    Keeps the last crawl of each watched root.

    A reconcile run saves what it found on disk so a later run can compare
    the event log against it without crawling again.
    """

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self._init_tables()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path), timeout=30.0)
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        return conn

    def _init_tables(self) -> None:
        """Initialize the snapshot and snapshot status tables."""
        conn = self._connect()
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS filesystem_snapshot (
                    root TEXT NOT NULL,
                    path TEXT NOT NULL,
                    file_type TEXT NOT NULL,
                    modified_at REAL,
                    size INTEGER,
                    content_hash TEXT,
                    PRIMARY KEY (root, path)
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS snapshot_status (
                    root TEXT PRIMARY KEY,
                    item_count INTEGER NOT NULL,
                    taken_at REAL NOT NULL
                )
            """)
            conn.commit()
        finally:
            conn.close()

    def save(self, root: Path, state: Dict[str, ItemState]) -> None:
        """
        Replace the snapshot of a root.

        Args:
            root: Watched root the state was read from
            state: ``path -> ItemState`` for every item found
        """
        key = str(root)
        conn = self._connect()
        try:
            with conn:
                conn.execute("DELETE FROM filesystem_snapshot WHERE root = ?", (key,))
                conn.executemany(
                    """
                    INSERT INTO filesystem_snapshot
                        (root, path, file_type, modified_at, size, content_hash)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    [
                        (key, path, item.file_type, item.modified_at, item.size, item.content_hash)
                        for path, item in state.items()
                    ],
                )
                conn.execute(
                    "INSERT OR REPLACE INTO snapshot_status (root, item_count, taken_at) VALUES (?, ?, ?)",
                    (key, len(state), time.time()),
                )
        finally:
            conn.close()
        logger.debug(f"Saved snapshot of {root} ({len(state)} items)")

    def load(self, root: Path) -> Dict[str, ItemState]:
        """
        Load the last snapshot of a root.

        Raises:
            SnapshotNotFoundError: If the root was never snapshotted
        """
        key = str(root)
        if self.taken_at(root) is None:
            raise SnapshotNotFoundError(f"No saved snapshot for {root}; run reconcile without --skip-scan first")

        conn = self._connect()
        try:
            rows = conn.execute(
                """
                SELECT path, file_type, modified_at, size, content_hash
                FROM filesystem_snapshot WHERE root = ? ORDER BY path
                """,
                (key,),
            ).fetchall()
        finally:
            conn.close()

        return {
            row[0]: ItemState(file_type=row[1], modified_at=row[2], size=row[3], content_hash=row[4])
            for row in rows
        }

    def taken_at(self, root: Path) -> Optional[float]:
        """When the root was last snapshotted, None if never."""
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT taken_at FROM snapshot_status WHERE root = ?", (str(root),)
            ).fetchone()
        finally:
            conn.close()
        return row[0] if row else None
