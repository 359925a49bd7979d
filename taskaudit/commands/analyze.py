"""Task usage analysis and pipeline search commands."""

import click

from ..cli_utils import check_outcomes, json_option, output_jsonl, pass_app, standard_command, sync_mode
from ..render import render_failures, render_search_hits, render_task_usage
from ..report import collect_task_usage
from ..services.validator import Registry


@click.command(name='analyze')
@click.option('--no-update', is_flag=True, help='Do not pull existing mirrors')
@pass_app
@standard_command
def analyze_cmd(app, no_update):
    """Show which versions of each task are used where."""
    with app.database() as db:
        repos = app.repositories(db)
        creds = app.credentials(db)

    # Usage does not depend on approved states
    empty: Registry = {}
    audit = app.orchestrator().audit(repos, creds, empty, mode=sync_mode(no_update=no_update))
    render_task_usage(collect_task_usage(audit.invocations))
    render_failures(audit.outcomes)
    check_outcomes(audit.outcomes, "analyze")


@click.command(name='search')
@click.argument('query')
@click.option('--no-update', is_flag=True, help='Do not pull existing mirrors')
@json_option
@pass_app
@standard_command
def search_cmd(app, query, no_update, as_json):
    """Search pipeline files for QUERY."""
    with app.database() as db:
        repos = app.repositories(db)
        creds = app.credentials(db)

    outcomes = app.orchestrator().search(repos, creds, query, mode=sync_mode(no_update=no_update))
    if as_json:
        output_jsonl(hit for o in outcomes if o.ok for hit in o.value)
        output_jsonl(o for o in outcomes if not o.ok)
    else:
        render_search_hits(outcomes, query)
        render_failures(outcomes)
    check_outcomes(outcomes, "search")
