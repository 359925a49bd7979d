#!/usr/bin/env python3

import click

from taskaudit.cli_utils import AppContext
from taskaudit.config import configure_logging, load_config

from taskaudit.commands.repo import repo_cmd
from taskaudit.commands.creds import creds_cmd
from taskaudit.commands.state import state_cmd
from taskaudit.commands.check import check_cmd
from taskaudit.commands.analyze import analyze_cmd, search_cmd
from taskaudit.commands.config import config_cmd


@click.group()
@click.version_option(package_name='taskaudit')
@click.option('-v', '--verbose', is_flag=True, help='Debug logging')
@click.option('--config', 'task_states', type=click.Path(dir_okay=False),
              help='Task state file (default: taskauditconfig.yml in the working directory)')
@click.option('--workdir', type=click.Path(file_okay=False),
              help='Directory holding temp_repos/ and the database')
@click.pass_context
def cli(ctx, verbose, task_states, workdir):
    """taskaudit - Audit pipeline task versions across many repositories.

    Keeps sparse mirrors of the registered repositories, finds every
    `task: name@version` reference in their pipeline files and checks it
    against the approved states.
    """
    config = load_config()
    if workdir:
        config['general']['working_directory'] = workdir
    configure_logging(config, verbose)
    ctx.obj = AppContext(config, task_states_path=task_states)


# Command groups
cli.add_command(repo_cmd)
cli.add_command(creds_cmd)
cli.add_command(state_cmd)
cli.add_command(config_cmd)

# Individual commands
cli.add_command(check_cmd)
cli.add_command(analyze_cmd)
cli.add_command(search_cmd)


def main():
    cli()

if __name__ == "__main__":
    main()
