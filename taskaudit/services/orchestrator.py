"""
Concurrency orchestration for taskaudit.

Fans synchronization, scanning and validation out over the repository set
with a bounded number of concurrent units. Each repository is one unit of
work with its own mirror directory; a failure is recorded on that
repository's outcome and never stops its siblings. Outcomes are sorted by
repository name once everything has finished.
"""

import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence, TypeVar

from ..domain.compliance import ComplianceResult, TaskIssues
from ..domain.operation import OperationStatus, OperationSummary, RepoOutcome
from ..domain.repository import Credentials, RepositoryRef
from ..domain.task import TaskInvocation
from ..errors import ConfigurationMissing, ExtractionError
from .extractor import SearchHit, TaskExtractor, find_pipeline_files
from .synchronizer import RepositorySynchronizer, SyncMode, SyncOutcome
from .validator import ComplianceValidator, Registry

logger = logging.getLogger(__name__)

T = TypeVar('T')


def default_concurrency() -> int:
    """Number of logical cores, or 4 when unknown."""
    return os.cpu_count() or 4


@dataclass
class RepoScan:
    """Everything gathered for one repository during an audit."""
    sync: SyncOutcome
    files: List[Path]
    invocations: List[TaskInvocation] = field(default_factory=list)
    results: List[ComplianceResult] = field(default_factory=list)
    errors: List[ExtractionError] = field(default_factory=list)


@dataclass
class AuditReport:
    """Aggregated audit output, ready for rendering without re-scanning."""
    outcomes: List[RepoOutcome]
    invocations: List[TaskInvocation]
    results: List[ComplianceResult]
    extraction_errors: List[ExtractionError]

    @property
    def not_processed(self) -> List[RepoOutcome]:
        return [o for o in self.outcomes if not o.ok]

    @property
    def summary(self) -> OperationSummary:
        return OperationSummary.from_outcomes("audit", self.outcomes)

    @property
    def issues(self) -> TaskIssues:
        return TaskIssues.collect(self.results, self.invocations)


@dataclass
class ConnectivityPartition:
    """Phase-1 result of onboarding."""
    reachable: List[RepositoryRef] = field(default_factory=list)
    unreachable: List[RepoOutcome] = field(default_factory=list)


@dataclass
class OnboardingReport:
    """Result of adding several repositories at once."""
    unreachable: List[RepoOutcome] = field(default_factory=list)
    cloned: List[RepoOutcome] = field(default_factory=list)
    registered: List[str] = field(default_factory=list)
    failed: List[RepoOutcome] = field(default_factory=list)

    @property
    def all_failures(self) -> List[RepoOutcome]:
        return self.unreachable + self.failed


class ConcurrencyOrchestrator:
    """
    Runs per-repository work with bounded parallelism and failure isolation.

    Example:
        orchestrator = ConcurrencyOrchestrator(RepositorySynchronizer(Path.cwd()))
        report = orchestrator.audit(repos, creds, registry)
        for outcome in report.not_processed:
            print(outcome.repo_name, outcome.error)
    """

    def __init__(
        self,
        synchronizer: RepositorySynchronizer,
        extractor: Optional[TaskExtractor] = None,
        validator: Optional[ComplianceValidator] = None,
        limit: Optional[int] = None,
        walk_workers: int = 2
    ):
        """
        Initialize ConcurrencyOrchestrator.

        Args:
            synchronizer: Mirror manager
            extractor: Task extractor (creates new if None)
            validator: Compliance validator (creates new if None)
            limit: Concurrency ceiling (default: logical core count)
            walk_workers: Threads reserved for directory walks
        """
        self.synchronizer = synchronizer
        self.extractor = extractor or TaskExtractor()
        self.validator = validator or ComplianceValidator()
        self.limit = limit if limit and limit > 0 else default_concurrency()
        self.walk_workers = max(1, walk_workers)

    def run_for_all(
        self,
        repos: Iterable[RepositoryRef],
        unit: Callable[[RepositoryRef], T],
        limit: Optional[int] = None
    ) -> List[RepoOutcome]:
        """
        Run unit once per distinct repository.

        A unit starts only after taking one of `limit` slots and gives the
        slot back when it finishes, whether it succeeded or raised.

        Returns:
            One RepoOutcome per repository, sorted by repository name
        """
        limit = limit if limit and limit > 0 else self.limit
        outcomes: List[RepoOutcome] = []
        runnable = []
        seen_urls = set()
        owners: Dict[str, str] = {}

        for repo in repos:
            if repo.url in seen_urls:
                continue
            seen_urls.add(repo.url)
            owner = owners.setdefault(repo.name, repo.url)
            if owner != repo.url:
                outcomes.append(RepoOutcome(
                    repo, OperationStatus.FAILED,
                    error=ValueError(f"mirror name '{repo.name}' already used by {owner}"),
                ))
                continue
            runnable.append(repo)

        if runnable:
            gate = threading.BoundedSemaphore(limit)
            with ThreadPoolExecutor(max_workers=limit, thread_name_prefix="repo") as executor:
                futures = {}
                for repo in runnable:
                    gate.acquire()
                    futures[executor.submit(self._run_unit, gate, repo, unit)] = repo
                for future in as_completed(futures):
                    outcomes.append(future.result())

        outcomes.sort(key=lambda o: (o.repo_name, o.repo.url))
        return outcomes

    @staticmethod
    def _run_unit(gate: threading.BoundedSemaphore, repo: RepositoryRef, unit) -> RepoOutcome:
        try:
            value = unit(repo)
            return RepoOutcome(repo, OperationStatus.SUCCESS, value=value)
        except Exception as e:
            logger.error(f"{repo.name}: {e}")
            return RepoOutcome(repo, OperationStatus.FAILED, error=e)
        finally:
            gate.release()

    @staticmethod
    def _require(creds: Optional[Credentials]) -> Credentials:
        if creds is None:
            raise ConfigurationMissing()
        return creds

    def sync_all(
        self,
        repos: Sequence[RepositoryRef],
        creds: Optional[Credentials],
        mode: SyncMode = SyncMode.CONVERGE
    ) -> List[RepoOutcome]:
        """Bring every mirror up to date."""
        creds = self._require(creds)
        return self.run_for_all(
            repos, lambda repo: self.synchronizer.ensure_ready(repo, creds, mode)
        )

    def probe(self, repos: Sequence[RepositoryRef], creds: Credentials) -> ConnectivityPartition:
        """Test connectivity for each repository, one after another."""
        partition = ConnectivityPartition()
        for repo in repos:
            try:
                self.synchronizer.test_connection(repo, creds)
                partition.reachable.append(repo)
            except Exception as e:
                logger.warning(f"Failed to connect to repository {repo.url}: {e}")
                partition.unreachable.append(RepoOutcome(repo, OperationStatus.FAILED, error=e))
        return partition

    def onboard(
        self,
        urls: Sequence[str],
        creds: Optional[Credentials],
        register: Optional[Callable[[str], None]] = None,
        mode: SyncMode = SyncMode.CONVERGE
    ) -> OnboardingReport:
        """
        Add several repositories: probe all of them first, then clone only
        the reachable ones in parallel, then register each clone.

        Args:
            urls: Candidate repository URLs
            creds: Transport credentials
            register: Called once per successfully cloned URL
            mode: Treatment of mirrors that already exist

        Returns:
            OnboardingReport
        """
        creds = self._require(creds)
        refs = [RepositoryRef(url.strip()) for url in urls if url.strip()]

        logger.info("Testing connections to all repositories...")
        partition = self.probe(refs, creds)
        report = OnboardingReport(unreachable=partition.unreachable)

        if not partition.reachable:
            logger.info("No valid repositories to process.")
            return report

        logger.info(f"Processing {len(partition.reachable)} valid repositories...")
        outcomes = self.run_for_all(
            partition.reachable,
            lambda repo: self.synchronizer.ensure_ready(repo, creds, mode)
        )

        for outcome in outcomes:
            if not outcome.ok:
                report.failed.append(outcome)
                continue
            report.cloned.append(outcome)
            if register is None:
                continue
            try:
                register(outcome.repo.url)
                report.registered.append(outcome.repo.url)
            except Exception as e:
                logger.error(f"Failed to add {outcome.repo.url} to database: {e}")
                report.failed.append(RepoOutcome(outcome.repo, OperationStatus.FAILED, error=e))

        return report

    def audit(
        self,
        repos: Sequence[RepositoryRef],
        creds: Optional[Credentials],
        registry: Registry,
        mode: SyncMode = SyncMode.CONVERGE
    ) -> AuditReport:
        """
        Sync, scan and classify every repository.

        Repositories that fail are kept in the report as not processed;
        classification uses the ones that succeeded.
        """
        creds = self._require(creds)

        with ThreadPoolExecutor(max_workers=self.walk_workers, thread_name_prefix="walk") as walker:
            def unit(repo: RepositoryRef) -> RepoScan:
                sync = self.synchronizer.ensure_ready(repo, creds, mode)
                files = walker.submit(find_pipeline_files, sync.path).result()
                extracted = self.extractor.extract(files, repo_name=repo.name)
                results = self.validator.classify(extracted.invocations, registry)
                return RepoScan(sync, files, extracted.invocations, results, extracted.errors)

            outcomes = self.run_for_all(repos, unit)

        invocations: List[TaskInvocation] = []
        results: List[ComplianceResult] = []
        errors: List[ExtractionError] = []
        for outcome in outcomes:
            if outcome.ok:
                invocations.extend(outcome.value.invocations)
                results.extend(outcome.value.results)
                errors.extend(outcome.value.errors)

        results.sort(key=lambda r: (r.task, r.repo_name, str(r.file_path or '')))
        return AuditReport(outcomes, invocations, results, errors)

    def list_pipelines(
        self,
        repos: Sequence[RepositoryRef],
        creds: Optional[Credentials],
        mode: SyncMode = SyncMode.CONVERGE
    ) -> List[RepoOutcome]:
        """Sync every repository and return its pipeline files."""
        creds = self._require(creds)
        with ThreadPoolExecutor(max_workers=self.walk_workers, thread_name_prefix="walk") as walker:
            def unit(repo: RepositoryRef) -> List[Path]:
                sync = self.synchronizer.ensure_ready(repo, creds, mode)
                return walker.submit(find_pipeline_files, sync.path).result()

            return self.run_for_all(repos, unit)

    def search(
        self,
        repos: Sequence[RepositoryRef],
        creds: Optional[Credentials],
        query: str,
        mode: SyncMode = SyncMode.CONVERGE
    ) -> List[RepoOutcome]:
        """Sync every repository and search its pipeline files for query."""
        creds = self._require(creds)
        with ThreadPoolExecutor(max_workers=self.walk_workers, thread_name_prefix="walk") as walker:
            def unit(repo: RepositoryRef) -> List[SearchHit]:
                sync = self.synchronizer.ensure_ready(repo, creds, mode)
                files = walker.submit(find_pipeline_files, sync.path).result()
                return self.extractor.search(files, query, repo_name=repo.name)

            return self.run_for_all(repos, unit)
