"""
taskaudit - Pipeline task version auditing across many git repositories.

taskaudit keeps sparse local mirrors of a set of repositories, extracts
every `task: name@version` reference from their pipeline files and checks
each one against a registry of approved versions.

Quick Start:
    from pathlib import Path
    from taskaudit import (
        ConcurrencyOrchestrator, Credentials, GenericState,
        RepositoryRef, RepositorySynchronizer,
    )

    orchestrator = ConcurrencyOrchestrator(RepositorySynchronizer(Path.cwd()))
    report = orchestrator.audit(
        [RepositoryRef("https://dev.azure.com/org/project/_git/api")],
        Credentials("me", "token"),
        {"copyfiles": [GenericState("2")]},
    )
    for result in report.results:
        print(result.status.symbol, result.task, result.repo_name)
"""

__version__ = "0.3.0"

from .domain import (
    RepositoryRef,
    Credentials,
    TaskInvocation,
    GenericState,
    VersioningState,
    ComplianceStatus,
    ComplianceResult,
    RepoOutcome,
)
from .services import (
    RepositorySynchronizer,
    SyncMode,
    TaskExtractor,
    ComplianceValidator,
    ConcurrencyOrchestrator,
)

__all__ = [
    '__version__',
    'RepositoryRef',
    'Credentials',
    'TaskInvocation',
    'GenericState',
    'VersioningState',
    'ComplianceStatus',
    'ComplianceResult',
    'RepoOutcome',
    'RepositorySynchronizer',
    'SyncMode',
    'TaskExtractor',
    'ComplianceValidator',
    'ConcurrencyOrchestrator',
]
