"""
Valid state commands.

GitVersion states are written as "setup:VERSION,execute:VERSION,spec:VERSION";
every other task takes a single version.
"""

import click

from ..cli_utils import pass_app, standard_command
from ..database import add_state, delete_state, get_all_tasks
from ..domain.task import parse_state, registry_key
from ..exit_codes import CommandError, DATA_ERROR, GENERAL_ERROR
from ..render import console, render_states


@click.group(name='state')
def state_cmd():
    """Manage the approved task states."""
    pass


def _parse(task, value):
    try:
        return parse_state(task, value)
    except ValueError as e:
        raise CommandError(f"Invalid state format: {e}", DATA_ERROR)


@state_cmd.command(name='add')
@click.argument('task')
@click.argument('value')
@pass_app
@standard_command
def add_handler(app, task, value):
    """Approve VALUE for TASK."""
    state = _parse(task, value)
    with app.database() as db:
        app.load_registry(db)
        added = add_state(db, task, state)
    if added:
        console.print(f"Added valid state for {registry_key(task)}", highlight=False)
    else:
        console.print(f"[yellow]State already defined for {registry_key(task)}[/yellow]", highlight=False)


@state_cmd.command(name='delete')
@click.argument('task')
@click.argument('value')
@pass_app
@standard_command
def delete_handler(app, task, value):
    """Remove an approved VALUE for TASK."""
    state = _parse(task, value)
    with app.database() as db:
        app.load_registry(db)
        if not delete_state(db, task, state):
            raise CommandError(f"No such state for {registry_key(task)}: {value}", GENERAL_ERROR)
    console.print(f"Deleted task state for {registry_key(task)}: {value}", highlight=False)


@state_cmd.command(name='list')
@click.argument('task', required=False)
@pass_app
@standard_command
def list_handler(app, task):
    """List approved states, for one TASK or for all tasks."""
    with app.database() as db:
        registry = app.load_registry(db, task)
        tasks = [registry_key(task)] if task else get_all_tasks(db)
    render_states(registry, tasks)
