"""
Common CLI utilities and decorators for consistent command behavior.
"""

import json
import logging
import sys
from functools import wraps
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import click

from .config import get_working_dir, load_task_states, TASK_STATES_FILE
from .database import Database, get_all_repos, get_credentials, get_registry, merge_states
from .domain.repository import Credentials, RepositoryRef
from .domain.task import ValidState
from .exit_codes import (
    SUCCESS, INTERRUPTED, GENERAL_ERROR,
    get_exit_code_for_exception, CommandError, NoReposFoundError, PartialSuccessError
)
from .render import err_console
from .services import ConcurrencyOrchestrator, RepositorySynchronizer, SyncMode

logger = logging.getLogger(__name__)


def standard_command(func):
    """
    Decorator that provides standard CLI behavior:
    - Errors reported on stderr
    - CommandError exit codes honoured
    - Other exceptions mapped through get_exit_code_for_exception

    A command may return an int to choose its exit code.
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            result = func(*args, **kwargs)
        except KeyboardInterrupt:
            err_console.print("[red]Interrupted by user[/red]")
            sys.exit(INTERRUPTED)
        except click.ClickException:
            # Click exceptions already have their exit code
            raise
        except CommandError as e:
            err_console.print(f"[red]Error:[/red] {e}", highlight=False)
            if isinstance(e, PartialSuccessError):
                err_console.print(f"{e.succeeded} succeeded, {e.failed} failed", highlight=False)
            sys.exit(e.exit_code)
        except Exception as e:
            logger.debug("Command failed", exc_info=True)
            err_console.print(f"[red]Command failed:[/red] {e}", highlight=False)
            sys.exit(get_exit_code_for_exception(e))

        sys.exit(result if isinstance(result, int) else SUCCESS)

    return wrapper


def sync_mode(no_update: bool = False, new: bool = False) -> SyncMode:
    """Map the --no-update / --new flags onto a SyncMode."""
    if no_update:
        return SyncMode.SKIP_IF_PRESENT
    if new:
        return SyncMode.CLONE_ONLY
    return SyncMode.CONVERGE


def check_outcomes(outcomes, operation: str) -> None:
    """Raise when some or all repositories failed."""
    failed = sum(1 for o in outcomes if not o.ok)
    if not failed:
        return
    succeeded = len(outcomes) - failed
    if succeeded:
        raise PartialSuccessError(
            f"{operation}: {failed} of {len(outcomes)} repositories not processed",
            succeeded=succeeded, failed=failed
        )
    raise CommandError(f"{operation}: no repository could be processed", GENERAL_ERROR)


class AppContext:
    """Shared state handed to every command through click's ctx.obj."""

    def __init__(self, config: Dict, task_states_path: Optional[str] = None):
        self.config = config
        self.working_dir = get_working_dir(config)
        self.task_states_path = (
            Path(task_states_path) if task_states_path else self.working_dir / TASK_STATES_FILE
        )

    def database(self) -> Database:
        return Database(config=self.config)

    def orchestrator(self) -> ConcurrencyOrchestrator:
        general = self.config.get('general', {})
        return ConcurrencyOrchestrator(
            RepositorySynchronizer(self.working_dir),
            limit=general.get('max_concurrent_operations') or None,
            walk_workers=general.get('walk_workers', 2),
        )

    def load_registry(self, db: Database, task: Optional[str] = None) -> Dict[str, List[ValidState]]:
        """Merge the task state file into the store, then read the registry."""
        merge_states(db, load_task_states(self.task_states_path))
        return get_registry(db, task)

    @staticmethod
    def credentials(db: Database) -> Optional[Credentials]:
        return get_credentials(db)

    @staticmethod
    def repositories(db: Database) -> List[RepositoryRef]:
        repos = get_all_repos(db)
        if not repos:
            raise NoReposFoundError("No repositories found. Add one with 'taskaudit repo add URL'")
        return repos


pass_app = click.make_pass_decorator(AppContext)


def output_jsonl(items: Iterable[Any]) -> None:
    """Print one JSON object per line for anything with to_dict()."""
    for item in items:
        data = item.to_dict() if hasattr(item, 'to_dict') else item
        click.echo(json.dumps(data, ensure_ascii=False))


json_option = click.option('--json', 'as_json', is_flag=True, help='Output JSONL instead of tables')
