"""
Database module for taskaudit.

Provides SQLite persistence for the registered repositories, the git
credentials and the approved task states.

Key components:
- connection: Database connection management
- schema: Table definitions and schema versioning
- repository: Registered repository URLs
- credentials: The single transport identity
- states: Approved task states
"""

from .connection import get_db_path, open_store, Database
from .schema import CURRENT_VERSION, ensure_schema
from .repository import add_repo, delete_repo, get_all_urls, get_all_repos
from .credentials import set_credentials, get_credentials
from .states import (
    add_state,
    delete_state,
    get_states,
    get_all_tasks,
    get_registry,
    merge_states,
)

__all__ = [
    # Connection
    'open_store',
    'get_db_path',
    'Database',
    # Schema
    'ensure_schema',
    'CURRENT_VERSION',
    # Repositories
    'add_repo',
    'delete_repo',
    'get_all_urls',
    'get_all_repos',
    # Credentials
    'set_credentials',
    'get_credentials',
    # States
    'add_state',
    'delete_state',
    'get_states',
    'get_all_tasks',
    'get_registry',
    'merge_states',
]
