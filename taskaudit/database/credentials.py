"""
Credential storage for taskaudit.

Only one identity is kept. The token is XOR-obfuscated so it does not sit
in the database as plain text; this is not encryption.
"""

from typing import Optional

from ..domain.repository import Credentials
from .connection import Database

_MASK = 0xFF


def obfuscate(token: str) -> bytes:
    return bytes(b ^ _MASK for b in token.encode('utf-8'))


def reveal(blob: bytes) -> str:
    return bytes(b ^ _MASK for b in blob).decode('utf-8')


def set_credentials(db: Database, creds: Credentials) -> None:
    """Replace any stored credentials."""
    with db.transaction():
        db.execute("DELETE FROM git_credentials")
        db.execute(
            "INSERT INTO git_credentials (username, token) VALUES (?, ?)",
            (creds.username, obfuscate(creds.token))
        )


def get_credentials(db: Database) -> Optional[Credentials]:
    """Stored credentials, or None if none were set."""
    db.execute("SELECT username, token FROM git_credentials ORDER BY id DESC LIMIT 1")
    row = db.fetchone()
    if row is None:
        return None
    return Credentials(username=row['username'], token=reveal(row['token']))
