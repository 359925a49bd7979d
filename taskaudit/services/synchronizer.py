"""
Repository synchronization service for taskaudit.

Keeps one sparse, single-branch local mirror per remote repository under
<working_dir>/temp_repos/<name>. Only pipeline-like YAML files are
materialized.

Lifecycle per repository:

    ABSENT --clone--> CLONING --> READY
                          \\-----> FAILED
    present --converge--> CONVERGING --> READY
                              \\-------> FAILED
    present --skip/clone-only--> READY
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple

from ..domain.repository import Credentials, RepositoryRef
from ..errors import BranchNotFound, CloneError, GitConnectionError, UpdateError
from ..infra.git_client import GitClient, mask_credentials

logger = logging.getLogger(__name__)

BRANCH_FALLBACK: Tuple[str, ...] = ("develop", "main", "master")

SPARSE_PATTERNS: List[str] = [
    "/*.yml",
    "/*.yaml",
    "**/*pipeline*.yml",
    "**/*pipeline*.yaml",
    ".azure-pipelines/",
    ".pipelines/",
    ".github/workflows/",
]


class SyncMode(Enum):
    """How ensure_ready treats a mirror that already exists."""
    CONVERGE = "converge"          # reset + pull
    CLONE_ONLY = "clone_only"      # clone if absent, otherwise leave alone
    SKIP_IF_PRESENT = "skip"       # verification only, no network activity


class MirrorState(Enum):
    ABSENT = "absent"
    CLONING = "cloning"
    CONVERGING = "converging"
    READY = "ready"
    FAILED = "failed"


@dataclass
class SyncOutcome:
    """Result of a successful ensure_ready call."""
    repo: RepositoryRef
    path: Path
    state: MirrorState
    action: str  # "cloned", "converged", "present"
    branch: Optional[str] = None


def transport_url(url: str, creds: Credentials) -> str:
    """
    Build an https URL with the credentials embedded as basic auth.

    A URL that already carries a userinfo part keeps only what follows
    the first '@'.
    """
    if '@' in url:
        rest = url.split('@', 1)[1]
    else:
        rest = url
        for prefix in ("https://", "http://"):
            if rest.startswith(prefix):
                rest = rest[len(prefix):]
                break
    return f"https://{creds.username}:{creds.token}@{rest}"


class RepositorySynchronizer:
    """
    Converges local mirrors of remote repositories.

    Each call works on exactly one mirror directory, so calls for
    different repositories may run concurrently.

    Example:
        sync = RepositorySynchronizer(working_dir=Path.cwd())
        outcome = sync.ensure_ready(RepositoryRef(url), creds, SyncMode.CONVERGE)
        print(outcome.path, outcome.branch)
    """

    def __init__(
        self,
        working_dir: Path,
        git_client: Optional[GitClient] = None,
        branches: Tuple[str, ...] = BRANCH_FALLBACK,
        sparse_patterns: Optional[List[str]] = None
    ):
        """
        Initialize RepositorySynchronizer.

        Args:
            working_dir: Directory that holds temp_repos/
            git_client: GitClient instance (creates new if None)
            branches: Branch names to try, in priority order
            sparse_patterns: Sparse-checkout inclusion patterns
        """
        self.working_dir = Path(working_dir)
        self.git = git_client or GitClient()
        self.branches = tuple(branches)
        self.sparse_patterns = list(sparse_patterns or SPARSE_PATTERNS)

    def mirror_path(self, ref: RepositoryRef) -> Path:
        return ref.mirror_path(self.working_dir)

    def state_of(self, ref: RepositoryRef) -> MirrorState:
        """
        ABSENT without a directory, READY once a branch is checked out.

        A directory left behind by an interrupted or failed clone has no
        commit yet and stays in CLONING until a clone completes.
        """
        path = self.mirror_path(ref)
        if not path.exists():
            return MirrorState.ABSENT
        if not self.git.is_git_repo(path) or not self.git.has_commit(path):
            return MirrorState.CLONING
        return MirrorState.READY

    def test_connection(self, ref: RepositoryRef, creds: Credentials) -> None:
        """
        Check that the remote is reachable with these credentials.

        Does not touch local state.

        Raises:
            GitConnectionError: if ls-remote fails
        """
        logger.info(f"Testing Git connection for {ref.name}...")
        result = self.git.ls_remote_heads(transport_url(ref.url, creds))
        if not result.ok:
            raise GitConnectionError(
                ref.name, f"failed to connect to repository {ref.name}", result.stderr
            )
        logger.info(f"Connected to repository {ref.name}")

    def ensure_ready(
        self,
        ref: RepositoryRef,
        creds: Credentials,
        mode: SyncMode = SyncMode.CONVERGE
    ) -> SyncOutcome:
        """
        Make sure a usable local mirror exists for ref.

        Args:
            ref: Repository to mirror
            creds: Transport credentials
            mode: Treatment of an existing mirror

        Returns:
            SyncOutcome describing what was done

        Raises:
            CloneError, BranchNotFound, UpdateError
        """
        path = self.mirror_path(ref)
        state = self.state_of(ref)

        if state is not MirrorState.READY:
            if state is MirrorState.CLONING:
                logger.info(f"{ref.name}: incomplete mirror from an earlier attempt, cloning again")
            self._transition(ref, state, MirrorState.CLONING)
            branch = self._guard(ref, MirrorState.CLONING, self._clone, ref, creds, path)
            self._transition(ref, MirrorState.CLONING, MirrorState.READY)
            return SyncOutcome(ref, path, MirrorState.READY, "cloned", branch)

        if mode is not SyncMode.CONVERGE:
            logger.debug(f"{ref.name}: mirror present, {mode.value} mode, nothing to do")
            return SyncOutcome(ref, path, MirrorState.READY, "present")

        self._transition(ref, MirrorState.READY, MirrorState.CONVERGING)
        branch = self._guard(ref, MirrorState.CONVERGING, self._converge, ref, path)
        self._transition(ref, MirrorState.CONVERGING, MirrorState.READY)
        return SyncOutcome(ref, path, MirrorState.READY, "converged", branch)

    def _transition(self, ref: RepositoryRef, old: MirrorState, new: MirrorState) -> None:
        logger.debug(f"{ref.name}: {old.value} -> {new.value}")

    def _guard(self, ref, state, func, *args):
        try:
            return func(*args)
        except Exception:
            self._transition(ref, state, MirrorState.FAILED)
            raise

    def _clone(self, ref: RepositoryRef, creds: Credentials, path: Path) -> str:
        logger.info(f"Cloning repository {ref.name}...")
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CloneError(ref.name, f"cannot create {path}", str(e)) from e

        self._check(self.git.init(path), CloneError, ref, "git init failed")
        self._apply_sparse_checkout(ref, path, CloneError)
        self._check(
            self.git.remote_add(path, transport_url(ref.url, creds)),
            CloneError, ref, "git remote add failed"
        )

        branch = None
        last_error = ""
        for candidate in self.branches:
            result = self.git.fetch_shallow(path, candidate)
            if result.ok:
                branch = candidate
                break
            logger.debug(f"{ref.name}: branch {candidate} not fetched")
            last_error = result.stderr
        if branch is None:
            raise BranchNotFound(ref.name, self.branches, last_error)

        self._check(
            self.git.checkout_tracking(path, branch),
            CloneError, ref, f"checkout of {branch} failed"
        )
        logger.info(f"Cloned repository {ref.name} ({branch})")
        return branch

    def _converge(self, ref: RepositoryRef, path: Path) -> str:
        logger.info(f"Repository {ref.name} exists, updating...")
        branch = self.git.current_branch(path)

        if branch is None or branch == "HEAD":
            branch = None
            last_error = ""
            for candidate in self.branches:
                result = self.git.checkout(path, candidate)
                if result.ok:
                    branch = candidate
                    break
                last_error = result.stderr
            if branch is None:
                raise BranchNotFound(ref.name, self.branches, last_error)

        self._apply_sparse_checkout(ref, path, UpdateError)
        self._check(self.git.reset_hard(path), UpdateError, ref, "git reset failed")
        self._check(self.git.pull_force(path), UpdateError, ref, "git pull failed")
        logger.info(f"Updated repository {ref.name} ({branch})")
        return branch

    def _apply_sparse_checkout(self, ref: RepositoryRef, path: Path, error_cls) -> None:
        self._check(
            self.git.enable_sparse_checkout(path),
            error_cls, ref, "enabling sparse checkout failed"
        )
        try:
            self.git.write_sparse_patterns(path, self.sparse_patterns)
        except OSError as e:
            raise error_cls(ref.name, "writing sparse-checkout patterns failed", str(e)) from e

    @staticmethod
    def _check(result, error_cls, ref: RepositoryRef, message: str) -> None:
        if not result.ok:
            raise error_cls(ref.name, message, mask_credentials(result.stderr))
