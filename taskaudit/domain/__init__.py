"""
Domain layer for taskaudit.

Contains pure domain objects with no I/O or side effects:
- RepositoryRef / Credentials: what to mirror and how to authenticate
- TaskInvocation: a task reference found in a pipeline file
- GenericState / VersioningState: approved versions for a task
- ComplianceResult: classification of invocations against those states
- RepoOutcome / OperationSummary: per-repository results of bulk operations
"""

from .repository import RepositoryRef, Credentials, short_name
from .task import (
    TaskFamily,
    TaskInvocation,
    GenericState,
    VersioningState,
    ValidState,
    parse_state,
)
from .compliance import ComplianceStatus, ComplianceResult, TaskIssues
from .operation import OperationStatus, RepoOutcome, OperationSummary

__all__ = [
    'RepositoryRef',
    'Credentials',
    'short_name',
    'TaskFamily',
    'TaskInvocation',
    'GenericState',
    'VersioningState',
    'ValidState',
    'parse_state',
    'ComplianceStatus',
    'ComplianceResult',
    'TaskIssues',
    'OperationStatus',
    'RepoOutcome',
    'OperationSummary',
]
