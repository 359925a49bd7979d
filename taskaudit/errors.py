"""
Error taxonomy for repository synchronization and pipeline scanning.

Per-repository errors (everything deriving from SyncError, plus
ExtractionError) are captured on the repository's outcome by the
orchestrator. ConfigurationMissing is the only error that stops a batch,
and it is raised before any work is fanned out.
"""

from pathlib import Path
from typing import Optional

from .exit_codes import ConfigError


class SyncError(Exception):
    """Base class for failures while bringing a mirror up to date."""

    kind = "sync"

    def __init__(self, repo_name: str, message: str, stderr: Optional[str] = None):
        self.repo_name = repo_name
        self.stderr = (stderr or "").strip()
        detail = f"{message}: {self.stderr}" if self.stderr else message
        super().__init__(detail)


class GitConnectionError(SyncError):
    """Remote unreachable or authentication rejected."""
    kind = "connection"


class CloneError(SyncError):
    """init/config/fetch/checkout failed while creating a mirror."""
    kind = "clone"


class BranchNotFound(SyncError):
    """None of the fallback branches exist on the remote or locally."""
    kind = "branch_not_found"

    def __init__(self, repo_name: str, tried, stderr: Optional[str] = None):
        self.tried = tuple(tried)
        super().__init__(
            repo_name,
            f"no branch found in {repo_name} (tried {', '.join(self.tried)})",
            stderr,
        )


class UpdateError(SyncError):
    """reset or pull failed on an existing mirror."""
    kind = "update"


class ExtractionError(Exception):
    """A pipeline file could not be read. Never fatal."""

    kind = "extraction"

    def __init__(self, path: Path, reason: str):
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"failed to read {self.path}: {reason}")


class ConfigurationMissing(ConfigError):
    """No credentials are stored, so no transport identity is available."""

    def __init__(self, message: str = (
        "Git credentials not found. Set them first with 'taskaudit creds set USER:TOKEN'"
    )):
        super().__init__(message)
