"""Credential commands."""

import click

from ..cli_utils import pass_app, standard_command
from ..database import set_credentials
from ..domain.repository import Credentials
from ..exit_codes import ConfigError
from ..render import console


@click.group(name='creds')
def creds_cmd():
    """Manage the git credentials used for cloning."""
    pass


@creds_cmd.command(name='set')
@click.argument('value', metavar='USER:TOKEN')
@pass_app
@standard_command
def set_handler(app, value):
    """Store the git username and token."""
    try:
        creds = Credentials.parse(value)
    except ValueError as e:
        raise ConfigError(str(e))

    with app.database() as db:
        set_credentials(db, creds)
    console.print("Git credentials updated successfully")
