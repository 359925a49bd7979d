"""
Valid state storage for taskaudit.

Task names are stored lowercased, so lookups are case-insensitive. States
are stored as JSON in the {"type": ..., "value": ...} form. Two states
that are version-equivalent ("1" and "1.0.0") count as the same state.
"""

import logging
from collections import OrderedDict
from typing import Dict, List, Mapping, Optional, Sequence

from ..domain.task import (
    TaskFamily,
    ValidState,
    VersioningState,
    registry_key,
    state_from_json,
    state_to_json,
)
from .connection import Database

logger = logging.getLogger(__name__)


def get_states(db: Database, task: str) -> List[ValidState]:
    """States approved for one task."""
    db.execute(
        "SELECT state_json FROM valid_states WHERE task = ? ORDER BY id",
        (registry_key(task),)
    )
    return [state_from_json(row['state_json']) for row in db.fetchall()]


def add_state(db: Database, task: str, state: ValidState) -> bool:
    """
    Approve a state for a task.

    Returns:
        True if added, False if an equivalent state already exists

    Raises:
        ValueError: if the state belongs to the other task family
    """
    key = registry_key(task)
    versioning = TaskFamily.of(task) is TaskFamily.VERSIONING
    if versioning != isinstance(state, VersioningState):
        raise ValueError(f"{type(state).__name__} cannot be stored for {key}")
    if state in get_states(db, key):
        return False
    db.execute(
        "INSERT INTO valid_states (task, state_json) VALUES (?, ?)",
        (key, state_to_json(state))
    )
    logger.debug(f"Added state {state} for {key}")
    return True


def delete_state(db: Database, task: str, state: ValidState) -> bool:
    """Remove every stored state equivalent to state. Returns True if any matched."""
    key = registry_key(task)
    db.execute("SELECT id, state_json FROM valid_states WHERE task = ?", (key,))
    doomed = [row['id'] for row in db.fetchall() if state_from_json(row['state_json']) == state]
    for row_id in doomed:
        db.execute("DELETE FROM valid_states WHERE id = ?", (row_id,))
    return bool(doomed)


def get_all_tasks(db: Database) -> List[str]:
    """Task names that have at least one approved state, sorted."""
    db.execute("SELECT DISTINCT task FROM valid_states ORDER BY task")
    return [row['task'] for row in db.fetchall()]


def get_registry(db: Database, task: Optional[str] = None) -> Dict[str, List[ValidState]]:
    """All approved states keyed by task name, or those of one task."""
    tasks = [registry_key(task)] if task else get_all_tasks(db)
    registry: Dict[str, List[ValidState]] = OrderedDict()
    for name in tasks:
        states = get_states(db, name)
        if states:
            registry[name] = states
    return registry


def merge_states(db: Database, states: Mapping[str, Sequence[ValidState]]) -> int:
    """
    Add states loaded from a task state file, skipping ones already stored.

    Returns:
        Number of states added
    """
    added = 0
    for task, task_states in states.items():
        for state in task_states:
            if add_state(db, task, state):
                added += 1
    if added:
        logger.info(f"Merged {added} task state(s) from config file")
    return added
