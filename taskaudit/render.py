"""
Rendering functions for taskaudit output.

This module handles all pretty-printing and table formatting.
Services return data, this module makes it human-readable.
"""

from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

from rich import box
from rich.console import Console
from rich.table import Table

from .domain.compliance import ComplianceResult
from .domain.operation import RepoOutcome
from .domain.repository import MIRROR_ROOT
from .domain.task import ValidState, format_states

console = Console()
err_console = Console(stderr=True)


def _table(title: Optional[str] = None) -> Table:
    return Table(
        title=title,
        box=box.ROUNDED,
        show_header=True,
        header_style="bold magenta"
    )


def relative_to_mirror(path: Path, repo_name: str) -> Path:
    """Path inside the mirror: everything after temp_repos/<repo_name>/."""
    parts = Path(path).parts
    for i in range(len(parts) - 2):
        if parts[i] == MIRROR_ROOT and parts[i + 1] == repo_name:
            return Path(*parts[i + 2:])
    return Path(path)


def render_compliance(results: Sequence[ComplianceResult], title: str = "Task Compliance") -> None:
    """One row per classified invocation (or GitVersion triple)."""
    if not results:
        console.print("[yellow]No task invocations found.[/yellow]")
        return

    table = _table(title)
    table.add_column("", width=1)
    table.add_column("Task", style="cyan")
    table.add_column("Repository", style="blue")
    table.add_column("Version")
    table.add_column("File", style="dim")

    for result in results:
        symbol = "[green]✓[/green]" if result.compliant else "[red]✗[/red]"
        if len(result.observed) == 3:
            observed = "setup@{}, execute@{}, spec@{}".format(*result.observed)
        else:
            observed = f"@{result.observed[0]}"
        path = relative_to_mirror(result.file_path, result.repo_name) if result.file_path else ""
        table.add_row(symbol, result.task, result.repo_name, observed, str(path))

    console.print(table)


def render_states(registry: Mapping[str, Sequence[ValidState]], tasks: Optional[Sequence[str]] = None) -> None:
    """Print the approved states of each task."""
    names = list(tasks) if tasks is not None else sorted(registry)
    if not names:
        console.print("[yellow]No valid states defined.[/yellow]")
        return
    for name in names:
        console.print(f"\n[bold]Valid states for {name}:[/bold]")
        console.print(format_states(registry.get(name, [])), markup=False, highlight=False)


def render_failures(outcomes: Sequence[RepoOutcome], title: str = "Not Processed") -> None:
    """Table of repositories that failed, on stderr."""
    failed = [o for o in outcomes if not o.ok]
    if not failed:
        return

    table = _table(title)
    table.add_column("Repository", style="cyan")
    table.add_column("Error Type", style="yellow")
    table.add_column("Error", style="red")
    for outcome in failed:
        table.add_row(outcome.repo_name, outcome.error_kind or "", str(outcome.error))

    err_console.print(table)


def render_pipelines(outcomes: Sequence[RepoOutcome]) -> None:
    """List pipeline files per repository."""
    for outcome in outcomes:
        if not outcome.ok:
            continue
        console.print(f"\n[bold]{outcome.repo.url}[/bold]", highlight=False)
        if not outcome.value:
            console.print("  [dim]no pipeline files[/dim]")
        for path in outcome.value or []:
            console.print(f"  {relative_to_mirror(path, outcome.repo_name)}", markup=False, highlight=False)


def render_task_usage(usage: Dict[str, Dict[str, Dict[str, List[Path]]]]) -> None:
    """Task -> version -> repository counts."""
    if not usage:
        console.print("[yellow]No task invocations found.[/yellow]")
        return

    table = _table("Task Usage")
    table.add_column("Task", style="cyan")
    table.add_column("Version")
    table.add_column("Repositories", style="blue")
    table.add_column("Occurrences", justify="right")

    for task, by_version in usage.items():
        for version, by_repo in by_version.items():
            occurrences = sum(len(paths) for paths in by_repo.values())
            table.add_row(task, version, ", ".join(by_repo), str(occurrences))

    console.print(table)


def render_search_hits(outcomes: Sequence[RepoOutcome], query: str) -> None:
    hits = [hit for o in outcomes if o.ok for hit in o.value or []]
    if not hits:
        console.print(f"[yellow]No matches for {query!r}.[/yellow]")
        return

    table = _table(f"Matches for {query!r}")
    table.add_column("Repository", style="blue")
    table.add_column("File", style="dim")
    table.add_column("Line", justify="right")
    table.add_column("Text")
    for hit in hits:
        table.add_row(
            hit.repo_name,
            str(relative_to_mirror(hit.file_path, hit.repo_name)),
            str(hit.line_number),
            hit.line,
        )

    console.print(table)
