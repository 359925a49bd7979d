"""
Repository registry operations for taskaudit.
"""

import logging
from typing import List

from ..domain.repository import RepositoryRef
from .connection import Database

logger = logging.getLogger(__name__)


def add_repo(db: Database, url: str) -> bool:
    """
    Register a repository URL.

    Returns:
        True if added, False if the URL was already registered
    """
    db.execute("INSERT OR IGNORE INTO repositories (url) VALUES (?)", (url,))
    added = db.rowcount > 0
    if added:
        logger.debug(f"Registered {url}")
    return added


def delete_repo(db: Database, url: str) -> bool:
    """Remove a repository URL. Returns True if a row was deleted."""
    db.execute("DELETE FROM repositories WHERE url = ?", (url,))
    return db.rowcount > 0


def get_all_urls(db: Database) -> List[str]:
    """All registered URLs in registration order."""
    db.execute("SELECT url FROM repositories ORDER BY id")
    return [row['url'] for row in db.fetchall()]


def get_all_repos(db: Database) -> List[RepositoryRef]:
    return [RepositoryRef(url) for url in get_all_urls(db)]
