"""
Operation result domain objects for taskaudit.

Provides standardized per-repository outcomes for bulk operations
(sync, onboarding, audit) so that a failure in one repository is recorded
next to the successes instead of aborting the batch.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar

from .repository import RepositoryRef

T = TypeVar('T')


class OperationStatus(Enum):
    """How a per-repository unit of work ended."""
    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class RepoOutcome(Generic[T]):
    """
    What happened to one repository during a bulk operation.

    Exactly one of `value` (on success) or `error` (on failure) is set.
    """
    repo: RepositoryRef
    status: OperationStatus
    value: Optional[T] = None
    error: Optional[BaseException] = None

    @property
    def repo_name(self) -> str:
        return self.repo.name

    @property
    def ok(self) -> bool:
        return self.status is OperationStatus.SUCCESS

    @property
    def error_kind(self) -> Optional[str]:
        if self.error is None:
            return None
        return getattr(self.error, 'kind', type(self.error).__name__)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = {
            'url': self.repo.url,
            'name': self.repo.name,
            'status': self.status.value,
        }
        if self.error is not None:
            result['error'] = str(self.error)
            result['error_type'] = self.error_kind
        return result


@dataclass
class OperationSummary:
    """Counts over the outcomes of one bulk operation (sync, audit, ...)."""
    operation: str
    outcomes: List[RepoOutcome] = field(default_factory=list)

    @classmethod
    def from_outcomes(cls, operation: str, outcomes) -> 'OperationSummary':
        return cls(operation, list(outcomes))

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def successful(self) -> int:
        return sum(1 for o in self.outcomes if o.ok)

    @property
    def failed(self) -> int:
        return self.total - self.successful

    @property
    def success(self) -> bool:
        return self.failed == 0

    @property
    def errors(self) -> List[str]:
        """One "<repo>: <error>" line per failed repository."""
        return [f"{o.repo_name}: {o.error}" for o in self.outcomes if not o.ok]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': 'summary',
            'operation': self.operation,
            'total': self.total,
            'successful': self.successful,
            'failed': self.failed,
            'errors': self.errors,
        }
