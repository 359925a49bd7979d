"""
Compliance result domain objects for taskaudit.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple

from .task import TaskInvocation, ValidState


class ComplianceStatus(Enum):
    """Classification of an invocation against the valid states for its task."""
    COMPLIANT = "compliant"
    NON_COMPLIANT = "non_compliant"
    NO_POLICY_DEFINED = "no_policy_defined"

    @property
    def symbol(self) -> str:
        return "✓" if self is ComplianceStatus.COMPLIANT else "✗"


@dataclass(frozen=True)
class ComplianceResult:
    """
    Classification of one generic invocation, or of one repository's
    GitVersion setup/execute/spec triple.

    `observed` holds one version for generic tasks and the
    (setup, execute, spec) triple for GitVersion, with "?" for
    missing members.
    """
    task: str
    repo_name: str
    status: ComplianceStatus
    observed: Tuple[str, ...]
    file_path: Optional[Path] = None
    expected: Tuple[ValidState, ...] = ()

    @property
    def compliant(self) -> bool:
        return self.status is ComplianceStatus.COMPLIANT

    def to_dict(self) -> Dict[str, Any]:
        return {
            'task': self.task,
            'repo': self.repo_name,
            'status': self.status.value,
            'observed': list(self.observed),
            'file': str(self.file_path) if self.file_path else None,
            'expected': [str(state) for state in self.expected],
        }


@dataclass
class TaskIssues:
    """Aggregated problems across an audit, grouped for reporting."""
    missing_states: Set[str] = field(default_factory=set)
    invalid_states: Dict[str, Dict[str, List[ComplianceResult]]] = field(default_factory=dict)
    all_implementations: Dict[str, List[TaskInvocation]] = field(default_factory=dict)

    @classmethod
    def collect(cls, results, invocations) -> 'TaskIssues':
        issues = cls()
        for invocation in invocations:
            issues.all_implementations.setdefault(invocation.task, []).append(invocation)
        for result in results:
            if result.status is ComplianceStatus.NO_POLICY_DEFINED:
                issues.missing_states.add(result.task)
            elif result.status is ComplianceStatus.NON_COMPLIANT:
                (issues.invalid_states
                    .setdefault(result.task, {})
                    .setdefault(result.repo_name, [])
                    .append(result))
        return issues

    @property
    def has_issues(self) -> bool:
        return bool(self.missing_states or self.invalid_states)

    @property
    def invalid_count(self) -> int:
        return sum(len(repos) for repos in self.invalid_states.values())
