"""
Repository registry commands.

Adding repositories tests connectivity first and only registers the ones
that were cloned successfully.
"""

import click

from ..cli_utils import AppContext, check_outcomes, json_option, output_jsonl, pass_app, standard_command, sync_mode
from ..config import logger
from ..database import add_repo, delete_repo, get_all_repos
from ..domain.operation import OperationSummary
from ..exit_codes import CommandError, GENERAL_ERROR, PartialSuccessError, get_exit_code_for_exception
from ..render import console, render_failures, render_pipelines


@click.group(name='repo')
def repo_cmd():
    """Manage the registered repositories."""
    pass


def _onboard(app: AppContext, urls, new: bool) -> None:
    with app.database() as db:
        creds = app.credentials(db)
        report = app.orchestrator().onboard(
            urls, creds, register=lambda url: add_repo(db, url), mode=sync_mode(new=new)
        )

    for url in report.registered:
        console.print(f"[green]✓[/green] Added repository: {url}", highlight=False)
    render_failures(report.all_failures, title="Failed Repositories")

    failures = report.all_failures
    if not failures:
        return
    if report.registered:
        raise PartialSuccessError(
            f"Failed to process {len(failures)} repositories",
            succeeded=len(report.registered), failed=len(failures)
        )
    if len(failures) == 1 and failures[0].error is not None:
        error = failures[0].error
        raise CommandError(str(error), get_exit_code_for_exception(error))
    raise CommandError("No repositories were added", GENERAL_ERROR)


@repo_cmd.command(name='add')
@click.argument('url')
@click.option('--new', is_flag=True, help='Keep an existing local mirror as it is')
@pass_app
@standard_command
def add_handler(app, url, new):
    """Clone URL and register it."""
    _onboard(app, [url], new)


@repo_cmd.command(name='add-many')
@click.argument('urls')
@click.option('--new', is_flag=True, help='Keep existing local mirrors as they are')
@pass_app
@standard_command
def add_many_handler(app, urls, new):
    """Clone and register a comma-separated list of URLs."""
    candidates = [u.strip() for u in urls.split(',') if u.strip()]
    if not candidates:
        raise click.UsageError("No repository URLs given")
    logger.debug(f"Onboarding {len(candidates)} repositories")
    _onboard(app, candidates, new)


@repo_cmd.command(name='delete')
@click.argument('url')
@pass_app
@standard_command
def delete_handler(app, url):
    """Unregister URL. The local mirror is left in place."""
    with app.database() as db:
        if not delete_repo(db, url):
            raise CommandError(f"Repository not found: {url}", GENERAL_ERROR)
    console.print(f"Deleted repository: {url}", highlight=False)


@repo_cmd.command(name='list')
@json_option
@pass_app
@standard_command
def list_handler(app, as_json):
    """List registered repository URLs."""
    with app.database() as db:
        repos = get_all_repos(db)
    if as_json:
        output_jsonl(repos)
        return
    if not repos:
        console.print("No repositories found.")
        return
    for ref in repos:
        console.print(ref.url, highlight=False)


@repo_cmd.command(name='pipelines')
@click.option('--no-update', is_flag=True, help='Do not pull existing mirrors')
@pass_app
@standard_command
def pipelines_handler(app, no_update):
    """List the pipeline files of every repository."""
    with app.database() as db:
        repos = app.repositories(db)
        creds = app.credentials(db)
    outcomes = app.orchestrator().list_pipelines(repos, creds, mode=sync_mode(no_update=no_update))
    render_pipelines(outcomes)
    render_failures(outcomes)
    check_outcomes(outcomes, "pipelines")


@repo_cmd.command(name='sync')
@click.option('--no-update', is_flag=True, help='Only clone missing mirrors')
@json_option
@pass_app
@standard_command
def sync_handler(app, no_update, as_json):
    """Clone or update the local mirror of every repository."""
    with app.database() as db:
        repos = app.repositories(db)
        creds = app.credentials(db)
    outcomes = app.orchestrator().sync_all(repos, creds, mode=sync_mode(no_update=no_update))
    if as_json:
        output_jsonl(outcomes)
        output_jsonl([OperationSummary.from_outcomes("sync", outcomes)])
    else:
        for outcome in outcomes:
            if outcome.ok:
                sync = outcome.value
                branch = f" ({sync.branch})" if sync.branch else ""
                console.print(f"{outcome.repo_name}: {sync.action}{branch}", highlight=False)
        render_failures(outcomes)
    check_outcomes(outcomes, "sync")
