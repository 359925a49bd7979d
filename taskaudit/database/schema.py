"""
Database schema for taskaudit.

Three tables:
- repositories: registered remote URLs
- git_credentials: the single transport identity (token obfuscated)
- valid_states: approved states per task, stored as JSON
"""

import logging
import sqlite3

logger = logging.getLogger(__name__)

# v1: Initial schema
CURRENT_VERSION = 1

SCHEMA_V1 = """
CREATE TABLE IF NOT EXISTS _schema_info (
    version INTEGER PRIMARY KEY,
    applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    description TEXT
);

CREATE TABLE IF NOT EXISTS repositories (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    url TEXT NOT NULL UNIQUE,
    added_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS git_credentials (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    username TEXT NOT NULL,
    token BLOB NOT NULL
);

CREATE TABLE IF NOT EXISTS valid_states (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    task TEXT NOT NULL,
    state_json TEXT NOT NULL,
    UNIQUE(task, state_json)
);

CREATE INDEX IF NOT EXISTS idx_valid_states_task ON valid_states(task);
"""


def get_schema_version(conn: sqlite3.Connection) -> int:
    """Get current schema version from database."""
    try:
        cursor = conn.execute("SELECT MAX(version) FROM _schema_info")
        result = cursor.fetchone()
        return result[0] if result[0] is not None else 0
    except sqlite3.OperationalError:
        # Table doesn't exist yet
        return 0


def apply_schema(conn: sqlite3.Connection) -> None:
    """Create tables and record the schema version."""
    conn.executescript(SCHEMA_V1)
    conn.execute(
        "INSERT OR REPLACE INTO _schema_info (version, description) VALUES (?, ?)",
        (CURRENT_VERSION, "Initial schema")
    )
    conn.commit()


def ensure_schema(conn: sqlite3.Connection) -> None:
    """Ensure database has current schema."""
    current = get_schema_version(conn)
    if current < CURRENT_VERSION:
        logger.debug(f"Applying schema v{CURRENT_VERSION} (found v{current})")
        apply_schema(conn)
