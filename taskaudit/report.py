"""
Markdown audit report for taskaudit.

The report is rendered from an AuditReport that has already been
collected, so writing it never triggers another scan.
"""

import logging
from collections import OrderedDict
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from . import versions
from .domain.task import TaskInvocation, ValidState, format_states
from .render import relative_to_mirror
from .services.orchestrator import AuditReport

logger = logging.getLogger(__name__)

TaskUsage = Dict[str, Dict[str, Dict[str, List[Path]]]]


def sanitize_file_path(path: str) -> str:
    """Flatten a path into a single file name."""
    return path.replace('/', '_').replace('\\', '_')


def collect_task_usage(invocations: Iterable[TaskInvocation]) -> TaskUsage:
    """
    Group invocations as task -> version -> repository -> file paths.

    Tasks and repositories are sorted by name, versions by version order.
    """
    raw: Dict[str, Dict[str, Dict[str, List[Path]]]] = {}
    for inv in invocations:
        (raw.setdefault(inv.task, {})
            .setdefault(inv.version, {})
            .setdefault(inv.repo_name, [])
            .append(inv.file_path))

    usage: TaskUsage = OrderedDict()
    for task in sorted(raw):
        by_version = OrderedDict()
        for version in sorted(raw[task], key=versions.sort_key):
            by_version[version] = OrderedDict(
                (repo, sorted(paths)) for repo, paths in sorted(raw[task][version].items())
            )
        usage[task] = by_version
    return usage


def _summary(lines: List[str], audit: AuditReport) -> None:
    lines.append("## Summary\n")
    summary = audit.summary
    lines.append(f"- Repositories processed: {summary.successful} of {summary.total}")
    lines.append(f"- Task invocations found: {len(audit.invocations)}")
    compliant = sum(1 for r in audit.results if r.compliant)
    lines.append(f"- Compliant: {compliant} of {len(audit.results)}")
    lines.append("")

    issues = audit.issues
    if issues.has_issues:
        lines.append("### Issues Requiring Attention\n")
        if issues.missing_states:
            lines.append(f"- **{len(issues.missing_states)}** tasks missing valid state definitions")
        if issues.invalid_states:
            lines.append(
                f"- **{issues.invalid_count}** implementations with invalid states "
                f"across {len(issues.invalid_states)} tasks"
            )
        lines.append("")


def _valid_states(lines: List[str], registry: Mapping[str, Sequence[ValidState]]) -> None:
    lines.append("## Valid Task States\n")
    if not registry:
        lines.append("None\n")
        return
    for task in sorted(registry):
        lines.append(f"### {task}\n")
        lines.append(format_states(registry[task]))
        lines.append("")


def _detailed_issues(lines: List[str], audit: AuditReport) -> None:
    issues = audit.issues
    if not issues.has_issues:
        return

    lines.append("## Detailed Issues\n")
    if issues.missing_states:
        lines.append("### Tasks Needing State Definitions\n")
        for task in sorted(issues.missing_states):
            lines.append(f"- {task}")
        lines.append("")

    if issues.invalid_states:
        lines.append("### Invalid State Implementations\n")
        for task in sorted(issues.invalid_states):
            repos = issues.invalid_states[task]
            lines.append(f"#### {task} ({len(repos)} repos)\n")
            for repo in sorted(repos):
                # every distinct version seen in this repository, in file order
                seen = dict.fromkeys(", ".join(r.observed) for r in repos[repo])
                observed = "; ".join(seen)
                lines.append(f"- {repo} ({observed})")
            lines.append("")


def _not_processed(lines: List[str], audit: AuditReport) -> None:
    failed = audit.not_processed
    if not failed:
        return
    lines.append("## Not Processed\n")
    for outcome in failed:
        lines.append(f"- {outcome.repo.url}: {outcome.error_kind}: {outcome.error}")
    lines.append("")


def _task_usage(lines: List[str], audit: AuditReport) -> None:
    lines.append("## Task Usage Analysis\n")
    for task, by_version in collect_task_usage(audit.invocations).items():
        lines.append(f"### {task}\n")
        for version, by_repo in by_version.items():
            lines.append(f"#### Version {version}\n")
            for repo, paths in by_repo.items():
                if len(paths) > 1:
                    lines.append(f"- {repo} ({len(paths)} occurrences)")
                    for path in paths:
                        lines.append(f"  - {relative_to_mirror(path, repo).as_posix()}")
                else:
                    lines.append(f"- {repo}")
            lines.append("")


def generate_markdown_report(
    audit: AuditReport,
    registry: Mapping[str, Sequence[ValidState]],
    generated_at: Optional[datetime] = None
) -> str:
    """Render an audit as a markdown document."""
    generated_at = generated_at or datetime.now()
    lines = [
        "# Azure Pipeline Tasks Analysis\n",
        f"*Report generated on {generated_at.strftime('%Y-%m-%d %H:%M:%S')}*\n",
    ]
    _summary(lines, audit)
    _valid_states(lines, registry)
    _detailed_issues(lines, audit)
    _not_processed(lines, audit)
    _task_usage(lines, audit)
    return "\n".join(lines).rstrip() + "\n"


def write_report(text: str, report_path: str, directory: Optional[Path] = None) -> Path:
    """Write a report under directory using a sanitized file name."""
    target = Path(directory or Path.cwd()) / sanitize_file_path(report_path)
    target.write_text(text, encoding='utf-8')
    logger.debug(f"Wrote report to {target}")
    return target
