"""SQLite database handle shared by every keyed table.

One ``sqlite3.Connection`` opened with ``check_same_thread=False`` so the
coordinator's worker threads can use it; an ``RLock`` serialises access and
is held for the whole of a :meth:`Database.transaction`, which makes each
partition's writes atomic with respect to the other workers.

Usage::

    db = Database(":memory:")
    with db.transaction():
        db.execute("CREATE TABLE t (id INTEGER)")
        db.execute("INSERT INTO t VALUES (?)", (1,))
    db.query("SELECT * FROM t")      # [{'id': 1}]
    db.close()
"""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from transit_spine.core.errors import DuplicateRowError, StorageError, TableNotFoundError
from transit_spine.core.logging import get_logger

logger = get_logger(__name__)


def _storage_error(e: sqlite3.Error) -> StorageError:
    message = str(e)
    if isinstance(e, sqlite3.IntegrityError) and "UNIQUE" in message.upper():
        return DuplicateRowError(f"Duplicate row: {message}", cause=e)
    if isinstance(e, sqlite3.OperationalError) and message.startswith("no such table"):
        return TableNotFoundError(f"Table not found: {message}", cause=e)
    return StorageError(f"SQL failed: {message}", cause=e)


class Database:
    """Thread-safe wrapper around one SQLite connection."""

    def __init__(self, path: str | Path = ":memory:") -> None:
        self._path = str(path)
        if self._path != ":memory:":
            Path(self._path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(self._path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._depth = 0
        logger.debug("database.opened", path=self._path)

    @property
    def path(self) -> str:
        return self._path

    @contextmanager
    def transaction(self) -> Iterator[Database]:
        """Commit on success, roll back on error; nested calls join the outer one."""
        with self._lock:
            self._depth += 1
            try:
                yield self
                if self._depth == 1:
                    self._conn.commit()
            except Exception:
                if self._depth == 1:
                    self._conn.rollback()
                raise
            finally:
                self._depth -= 1

    def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Run one statement; returns the affected row count."""
        with self._lock:
            try:
                cursor = self._conn.execute(sql, tuple(params))
            except sqlite3.Error as e:
                if self._depth == 0:
                    self._conn.rollback()
                raise _storage_error(e) from e
            if self._depth == 0:
                self._conn.commit()
            return cursor.rowcount

    def executemany(self, sql: str, rows: Sequence[Sequence[Any]]) -> None:
        with self._lock:
            try:
                self._conn.executemany(sql, [tuple(r) for r in rows])
            except sqlite3.Error as e:
                if self._depth == 0:
                    self._conn.rollback()
                raise _storage_error(e) from e
            if self._depth == 0:
                self._conn.commit()

    def query(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        """Execute query and return results as dicts."""
        with self._lock:
            try:
                cursor = self._conn.execute(sql, tuple(params))
                return [dict(row) for row in cursor.fetchall()]
            except sqlite3.Error as e:
                raise _storage_error(e) from e

    def list_tables(self) -> list[str]:
        rows = self.query("SELECT name FROM sqlite_master WHERE type = 'table' ORDER BY name")
        return [r["name"] for r in rows]

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def __enter__(self) -> Database:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"Database({self._path!r})"
