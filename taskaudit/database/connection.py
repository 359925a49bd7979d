"""
SQLite store handle.

The store lives next to the mirrors (<working dir>/taskaudit.db) unless
TASKAUDIT_DB or database.path points elsewhere.
"""

import os
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

from .schema import ensure_schema

DB_FILENAME = "taskaudit.db"
BUSY_TIMEOUT_MS = 5000


def get_db_path(config: Optional[dict] = None) -> Path:
    """Resolve the store location: TASKAUDIT_DB, then database.path, then the working dir."""
    override = os.environ.get('TASKAUDIT_DB')
    if override:
        return Path(override)

    configured = (config or {}).get('database', {}).get('path')
    if configured:
        return Path(configured).expanduser()

    from ..config import get_working_dir
    return get_working_dir(config or {}) / DB_FILENAME


def open_store(path: Path) -> sqlite3.Connection:
    """Open (creating if needed) the store at path with the current schema."""
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row
    conn.execute(f"PRAGMA busy_timeout = {BUSY_TIMEOUT_MS}")
    conn.execute("PRAGMA journal_mode = WAL")
    ensure_schema(conn)
    return conn


class Database:
    """
    One store session. Commits when the block exits cleanly.

        with Database(config=config) as db:
            add_repo(db, url)
    """

    def __init__(self, db_path: Optional[Path] = None, config: Optional[dict] = None):
        self.path = Path(db_path) if db_path else get_db_path(config)
        self._conn: Optional[sqlite3.Connection] = None
        self._last: Optional[sqlite3.Cursor] = None

    def __enter__(self) -> 'Database':
        self._conn = open_store(self.path)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        conn, self._conn, self._last = self._conn, None, None
        if conn is None:
            return
        try:
            if exc_type is None:
                conn.commit()
            else:
                conn.rollback()
        finally:
            conn.close()

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError(f"store {self.path} is not open")
        return self._conn

    def execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        self._last = self.conn.execute(sql, params)
        return self._last

    def fetchone(self) -> Optional[sqlite3.Row]:
        return self._last.fetchone() if self._last else None

    def fetchall(self) -> List[sqlite3.Row]:
        return self._last.fetchall() if self._last else []

    @property
    def rowcount(self) -> int:
        """Rows touched by the last statement."""
        return self._last.rowcount if self._last else 0

    def commit(self) -> None:
        self.conn.commit()

    def rollback(self) -> None:
        self.conn.rollback()

    @contextmanager
    def transaction(self) -> Iterator['Database']:
        """Group statements so they land together or not at all."""
        try:
            yield self
        except BaseException:
            self.rollback()
            raise
        self.commit()
