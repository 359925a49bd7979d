"""
Compliance check command.

Syncs every registered repository, extracts task invocations and classifies
them against the approved states. With --markdown the same audit is also
written as a report.
"""

import click

from ..cli_utils import check_outcomes, json_option, output_jsonl, pass_app, standard_command, sync_mode
from ..config import logger
from ..domain.task import TaskFamily, registry_key
from ..exit_codes import NON_COMPLIANT
from ..render import console, render_compliance, render_failures
from ..report import generate_markdown_report, write_report


def select_results(orchestrator, audit, registry, task):
    """Results for one task; GitVersion is shown per file."""
    key = registry_key(task)
    if TaskFamily.of(task) is TaskFamily.VERSIONING:
        return orchestrator.validator.classify_by_file(audit.invocations, registry)
    return [r for r in audit.results if registry_key(r.task) == key]


@click.command(name='check')
@click.option('--no-update', is_flag=True, help='Do not pull existing mirrors')
@click.option('--markdown', is_flag=True, help='Also write a markdown report')
@click.option('--report-path', default=None, help='Report file name (default: general.report_path)')
@click.option('--task', 'task', default=None, help='Only show results for this task')
@click.option('--strict', is_flag=True, help='Exit non-zero when any task is not compliant')
@json_option
@pass_app
@standard_command
def check_cmd(app, no_update, markdown, report_path, task, strict, as_json):
    """Check task versions in all pipelines against the approved states."""
    with app.database() as db:
        repos = app.repositories(db)
        creds = app.credentials(db)
        registry = app.load_registry(db)

    orchestrator = app.orchestrator()
    audit = orchestrator.audit(repos, creds, registry, mode=sync_mode(no_update=no_update))

    results = select_results(orchestrator, audit, registry, task) if task else audit.results
    if as_json:
        output_jsonl(results)
        output_jsonl(audit.not_processed)
        output_jsonl([audit.summary])
    else:
        render_compliance(results)
        render_failures(audit.outcomes)

    for error in audit.extraction_errors:
        logger.warning(str(error))

    if markdown:
        if report_path is None:
            report_path = app.config.get('general', {}).get('report_path', 'report.md')
        text = generate_markdown_report(audit, registry)
        target = write_report(text, report_path, app.working_dir)
        console.print(f"Generated markdown report: {target}", highlight=False)

    check_outcomes(audit.outcomes, "check")

    if strict and any(not r.compliant for r in results):
        return NON_COMPLIANT
