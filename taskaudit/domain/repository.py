"""
Repository domain objects for taskaudit.

A RepositoryRef identifies a remote repository by URL; Credentials are the
username/token pair presented to the git transport.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

MIRROR_ROOT = "temp_repos"


def short_name(url: str) -> str:
    """Last path segment of a repository URL, without a trailing .git."""
    segment = url.rstrip('/').split('/')[-1] or "repo"
    if segment.endswith('.git'):
        segment = segment[:-len('.git')]
    return segment


@dataclass(frozen=True)
class RepositoryRef:
    """A remote repository. Identity is the URL string."""
    url: str
    name: str = field(default="", compare=False)

    def __post_init__(self):
        if not self.name:
            object.__setattr__(self, 'name', short_name(self.url))

    def mirror_path(self, working_dir: Path) -> Path:
        """Local mirror directory: <working_dir>/temp_repos/<name>."""
        return Path(working_dir) / MIRROR_ROOT / self.name

    def to_dict(self) -> Dict[str, Any]:
        return {'url': self.url, 'name': self.name}

    def __str__(self) -> str:
        return self.url


@dataclass(frozen=True)
class Credentials:
    """Username and token for the git transport. Never persisted by the core."""
    username: str
    token: str = field(repr=False)

    @classmethod
    def parse(cls, value: str) -> 'Credentials':
        """Parse "username:token"."""
        parts = value.split(':')
        if len(parts) != 2 or not parts[0] or not parts[1]:
            raise ValueError("Invalid credentials format. Expected 'username:token'")
        return cls(username=parts[0], token=parts[1])

    def __repr__(self) -> str:
        return f"Credentials(username={self.username!r}, token='***')"
