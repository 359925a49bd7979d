"""Settings file commands."""

import json

import click

from ..cli_utils import pass_app, standard_command
from ..config import get_config_path, get_default_config, save_config
from ..exit_codes import CommandError, GENERAL_ERROR
from ..render import console


@click.group(name='config')
def config_cmd():
    """Inspect or create the settings file."""
    pass


@config_cmd.command(name='show')
@click.option('--pretty', is_flag=True, help='Indented JSON instead of a single line')
@click.option('--path', 'show_path', is_flag=True, help='Only print the settings file location')
@pass_app
@standard_command
def show_handler(app, pretty, show_path):
    """Print the effective settings (defaults, file and environment merged)."""
    if show_path:
        click.echo(json.dumps({"config_path": str(get_config_path())}))
        return
    click.echo(json.dumps(app.config, indent=2 if pretty else None, ensure_ascii=False))


@config_cmd.command(name='init')
@click.option('--force', is_flag=True, help='Overwrite an existing settings file')
@standard_command
def init_handler(force):
    """Write the default settings to the settings file."""
    path = get_config_path()
    if path.exists() and not force:
        raise CommandError(f"{path} already exists (use --force to overwrite)", GENERAL_ERROR)
    written = save_config(get_default_config())
    console.print(f"Wrote default settings to {written}", highlight=False)
