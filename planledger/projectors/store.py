"""
Projection store for the projectors package.
"""

import logging
import sqlite3
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from .exceptions import ProjectionStoreError
from .models import FileRecord, MasterRecord, PartRecord

logger = logging.getLogger(__name__)

TABLES = ("files", "masters", "parts")

# Filter value meaning "do not filter on this column"
ANY = object()


def _under(column: str, prefix: str) -> Tuple[str, tuple]:
    """SQL condition matching ``prefix`` itself and every path below it."""
    child_prefix = prefix + "/"
    return (
        f"({column} = ? OR substr({column}, 1, ?) = ?)",
        (prefix, len(child_prefix), child_prefix),
    )


class ProjectionStore:
    """SQLite storage for the files, masters and parts projections."""

    def __init__(self, db_path: Path):
        """
        Initialize projection store.

        Args:
            db_path: Path to the SQLite database file
        """
        self.db_path = Path(db_path)
        self._lock = threading.RLock()
        self._conn: Optional[sqlite3.Connection] = None
        self._closed = False
        self._in_transaction = False

        self._init_db()

    def _init_db(self) -> None:
        """Initialize database schema."""
        self._conn = sqlite3.connect(
            str(self.db_path),
            check_same_thread=False,
            isolation_level=None,
            timeout=30.0,
        )
        self._conn.row_factory = sqlite3.Row

        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")

        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS files (
                path TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                file_type TEXT NOT NULL,
                extension TEXT,
                revision TEXT,
                part_name TEXT,
                core_name TEXT,
                product_main_type TEXT,
                product_sub_type TEXT,
                parent TEXT,
                parent_path TEXT,
                depth INTEGER NOT NULL DEFAULT 0,
                origin TEXT,
                content_hash TEXT,
                size INTEGER,
                modified_at REAL
            );

            CREATE TABLE IF NOT EXISTS masters (
                path TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                extension TEXT,
                master_revision TEXT,
                part_name TEXT,
                core_name TEXT,
                parent TEXT,
                parent_path TEXT,
                content_hash TEXT,
                size INTEGER,
                modified_at REAL,
                slave_path TEXT,
                slave_revision TEXT
            );

            CREATE TABLE IF NOT EXISTS parts (
                path TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                extension TEXT,
                revision TEXT,
                part_name TEXT,
                core_name TEXT,
                parent TEXT,
                parent_path TEXT,
                content_hash TEXT,
                size INTEGER,
                modified_at REAL,
                master_path TEXT,
                master_revision TEXT,
                slave_path TEXT,
                slave_revision TEXT,
                content_as_master INTEGER NOT NULL DEFAULT 0
            );

            CREATE TABLE IF NOT EXISTS projection_checkpoints (
                name TEXT PRIMARY KEY,
                last_event_id INTEGER NOT NULL,
                updated_at REAL NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_files_parent_path ON files(parent_path);
            CREATE INDEX IF NOT EXISTS idx_files_part_name ON files(part_name);
            CREATE INDEX IF NOT EXISTS idx_files_product_main_type ON files(product_main_type);
            CREATE INDEX IF NOT EXISTS idx_masters_parent_path ON masters(parent_path);
            CREATE INDEX IF NOT EXISTS idx_masters_part_name ON masters(part_name);
            CREATE INDEX IF NOT EXISTS idx_masters_slave_path ON masters(slave_path);
            CREATE INDEX IF NOT EXISTS idx_masters_content_hash ON masters(content_hash);
            CREATE INDEX IF NOT EXISTS idx_parts_part_name ON parts(part_name);
            CREATE INDEX IF NOT EXISTS idx_parts_master_path ON parts(master_path);
            CREATE INDEX IF NOT EXISTS idx_parts_slave_path ON parts(slave_path);
        """)

    def _check_closed(self) -> None:
        """Check if store is closed."""
        if self._closed:
            raise ProjectionStoreError("Store is closed")

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """
        Run a block of store operations atomically.

        Nested calls join the outer transaction.
        """
        self._check_closed()

        with self._lock:
            if self._in_transaction:
                yield
                return

            self._conn.execute("BEGIN IMMEDIATE")
            self._in_transaction = True
            try:
                yield
                self._conn.execute("COMMIT")
            except BaseException:
                self._conn.execute("ROLLBACK")
                raise
            finally:
                self._in_transaction = False

    def _execute(self, sql: str, params: Iterable[Any] = ()) -> int:
        """Run a write statement. Returns the number of affected rows."""
        self._check_closed()
        with self._lock:
            return self._conn.execute(sql, tuple(params)).rowcount

    def _query(self, sql: str, params: Iterable[Any] = ()) -> List[sqlite3.Row]:
        self._check_closed()
        with self._lock:
            return self._conn.execute(sql, tuple(params)).fetchall()

    def _upsert(self, table: str, data: Dict[str, Any]) -> None:
        columns = list(data)
        placeholders = ", ".join("?" * len(columns))
        self._execute(
            f"INSERT OR REPLACE INTO {table} ({', '.join(columns)}) VALUES ({placeholders})",
            [data[c] for c in columns],
        )

    def _select(self, table: str, where: str = "", params: Iterable[Any] = ()) -> List[sqlite3.Row]:
        sql = f"SELECT * FROM {table}"
        if where:
            sql += f" WHERE {where}"
        sql += " ORDER BY path"
        return self._query(sql, params)

    # File operations

    def get_file(self, path: str) -> Optional[FileRecord]:
        """Get a file row by path."""
        rows = self._select("files", "path = ?", (path,))
        return FileRecord.from_row(rows[0]) if rows else None

    def upsert_file(self, record: FileRecord) -> None:
        """Insert or replace a file row."""
        self._upsert("files", record.to_dict())

    def delete_file(self, path: str) -> int:
        """Delete a file row. Returns the number of rows removed."""
        return self._execute("DELETE FROM files WHERE path = ?", (path,))

    def delete_files_under(self, prefix: str) -> int:
        """Delete the row for ``prefix`` and every row below it."""
        condition, params = _under("path", prefix)
        return self._execute(f"DELETE FROM files WHERE {condition}", params)

    def files_under(self, prefix: str) -> List[FileRecord]:
        """Get the row for ``prefix`` and every row below it."""
        condition, params = _under("path", prefix)
        return [FileRecord.from_row(r) for r in self._select("files", condition, params)]

    def find_files(
        self,
        parent_path: Any = ANY,
        part_name: Any = ANY,
        extensions: Optional[Iterable[str]] = None,
    ) -> List[FileRecord]:
        """
        Find file rows.

        Args:
            parent_path: Containing folder (None matches root-level files)
            part_name: Exact part name
            extensions: Allowed extensions

        Returns:
            Matching rows, ordered by path
        """
        clauses = ["file_type = 'file'"]
        params: list = []
        if parent_path is not ANY:
            clauses.append("parent_path IS ?")
            params.append(parent_path)
        if part_name is not ANY:
            clauses.append("part_name IS ?")
            params.append(part_name)
        if extensions is not None:
            extensions = list(extensions)
            if not extensions:
                return []
            clauses.append(f"extension IN ({', '.join('?' * len(extensions))})")
            params.extend(extensions)

        rows = self._select("files", " AND ".join(clauses), params)
        return [FileRecord.from_row(r) for r in rows]

    def file_hashes(self) -> Dict[str, str]:
        """Get ``path -> content_hash`` for every file with a known hash."""
        rows = self._query(
            "SELECT path, content_hash FROM files WHERE file_type = 'file' AND content_hash IS NOT NULL"
        )
        return {row[0]: row[1] for row in rows}

    # Master operations

    def get_master(self, path: str) -> Optional[MasterRecord]:
        """Get a master row by path."""
        rows = self._select("masters", "path = ?", (path,))
        return MasterRecord.from_row(rows[0]) if rows else None

    def upsert_master(self, record: MasterRecord) -> None:
        """Insert or replace a master row."""
        self._upsert("masters", record.to_dict())

    def delete_master(self, path: str) -> int:
        """Delete a master row."""
        return self._execute("DELETE FROM masters WHERE path = ?", (path,))

    def delete_masters_referencing(self, path: str) -> int:
        """Delete master rows whose master or slave is ``path``."""
        return self._execute(
            "DELETE FROM masters WHERE path = ? OR slave_path = ?", (path, path)
        )

    def delete_masters_under(self, prefix: str) -> int:
        """Delete master rows whose master or slave lies under ``prefix``."""
        path_cond, path_params = _under("path", prefix)
        slave_cond, slave_params = _under("slave_path", prefix)
        return self._execute(
            f"DELETE FROM masters WHERE {path_cond} OR {slave_cond}",
            path_params + slave_params,
        )

    def find_masters(self, part_name: Optional[str], content_hash: Optional[str]) -> List[MasterRecord]:
        """Find masters sharing the part name or, when given, the content hash."""
        clauses = ["part_name IS ?"]
        params: list = [part_name]
        if content_hash is not None:
            clauses.append("content_hash = ?")
            params.append(content_hash)
        rows = self._select("masters", " OR ".join(clauses), params)
        return [MasterRecord.from_row(r) for r in rows]

    # Part operations

    def get_part(self, path: str) -> Optional[PartRecord]:
        """Get a part row by path."""
        rows = self._select("parts", "path = ?", (path,))
        return PartRecord.from_row(rows[0]) if rows else None

    def upsert_part(self, record: PartRecord) -> None:
        """Insert or replace a part row."""
        data = record.to_dict()
        data["content_as_master"] = 1 if record.content_as_master else 0
        self._upsert("parts", data)

    def delete_part(self, path: str) -> int:
        """Delete a part row."""
        return self._execute("DELETE FROM parts WHERE path = ?", (path,))

    def delete_parts_under(self, prefix: str) -> int:
        """Delete part rows under ``prefix``."""
        condition, params = _under("path", prefix)
        return self._execute(f"DELETE FROM parts WHERE {condition}", params)

    def part_paths_by_name(self, part_name: Optional[str]) -> List[str]:
        """Paths of the parts sharing a part name."""
        rows = self._query(
            "SELECT path FROM parts WHERE part_name IS ? ORDER BY path", (part_name,)
        )
        return [row[0] for row in rows]

    def part_paths_by_hash(self, content_hash: str) -> List[str]:
        """Paths of the parts with the given content hash."""
        rows = self._query(
            "SELECT path FROM parts WHERE content_hash = ? ORDER BY path", (content_hash,)
        )
        return [row[0] for row in rows]

    def part_paths_linked_under(self, prefix: str) -> List[str]:
        """Paths of the parts whose resolved master or slave lies under ``prefix``."""
        master_cond, master_params = _under("master_path", prefix)
        slave_cond, slave_params = _under("slave_path", prefix)
        rows = self._query(
            f"SELECT path FROM parts WHERE {master_cond} OR {slave_cond} ORDER BY path",
            master_params + slave_params,
        )
        return [row[0] for row in rows]

    # Checkpoints

    def get_checkpoint(self, name: str) -> int:
        """Id of the last event applied by ``name``, 0 if none."""
        rows = self._query(
            "SELECT last_event_id FROM projection_checkpoints WHERE name = ?", (name,)
        )
        return rows[0][0] if rows else 0

    def set_checkpoint(self, name: str, event_id: int) -> None:
        """Record the last event applied by ``name``."""
        self._execute(
            "INSERT OR REPLACE INTO projection_checkpoints (name, last_event_id, updated_at) VALUES (?, ?, ?)",
            (name, event_id, time.time()),
        )

    # Maintenance

    def all_rows(self, table: str) -> List[dict]:
        """Every row of a projection table as dictionaries, ordered by path."""
        if table not in TABLES:
            raise ProjectionStoreError(f"Unknown projection table: {table}")
        return [dict(row) for row in self._select(table)]

    def counts(self) -> Dict[str, int]:
        """Row count per projection table."""
        return {
            table: self._query(f"SELECT COUNT(*) FROM {table}")[0][0]
            for table in TABLES
        }

    def reset(self) -> None:
        """Remove every projection row and checkpoint."""
        with self.transaction():
            for table in TABLES:
                self._execute(f"DELETE FROM {table}")
            self._execute("DELETE FROM projection_checkpoints")
        logger.info("Projection tables cleared")

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None
            self._closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
