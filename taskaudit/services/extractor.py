"""
Task extraction from pipeline files.

Pipeline files are scanned as plain lines, not parsed as YAML: only the
`task: <name>@<version>` pattern and line adjacency matter. The GitVersion
setup task additionally gets its `versionSpec:` value attached by looking
a few lines ahead.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from ..domain.task import VERSIONING_SETUP, TaskInvocation
from ..errors import ExtractionError

logger = logging.getLogger(__name__)

TASK_PATTERN = re.compile(r'task:\s*([\w/]+)@(\d+)')
COMMENT_PREFIXES = ('#', '//')
PIPELINE_EXTENSIONS = ('.yml', '.yaml')
SPEC_FIELD = "versionSpec:"
LOOKAHEAD_LINES = 10


class SpecLocator:
    """
    Finds the spec value that belongs to the task declared at lines[index].

    Subclasses may replace the line heuristic with a structured parser
    without changing TaskExtractor.
    """

    def locate(self, lines: Sequence[str], index: int) -> Optional[str]:
        raise NotImplementedError


class LookaheadSpecLocator(SpecLocator):
    """
    Scan at most `window` following lines for a versionSpec field,
    stopping early at the next line that declares a task.
    """

    def __init__(self, window: int = LOOKAHEAD_LINES, field_name: str = SPEC_FIELD):
        self.window = window
        self.field_name = field_name

    def locate(self, lines: Sequence[str], index: int) -> Optional[str]:
        for line in lines[index + 1:index + 1 + self.window]:
            stripped = line.strip()
            if self.field_name in stripped:
                # the value ends at the next ':'
                return unquote(stripped.split(':', 2)[1])
            if "task:" in stripped:
                return None
        return None


def unquote(value: str) -> str:
    """Trim whitespace and surrounding single/double quotes."""
    return value.strip().strip("'").strip('"')


def find_pipeline_files(repo_path: Path) -> List[Path]:
    """
    Walk a mirror and return YAML files whose path mentions "pipeline".

    Links are followed; .git is skipped. Returns a sorted list.
    """
    repo_path = Path(repo_path)
    found = []
    for root, dirs, files in os.walk(repo_path, followlinks=True):
        dirs[:] = [d for d in dirs if d != '.git']
        for name in files:
            path = Path(root) / name
            if path.suffix.lower() not in PIPELINE_EXTENSIONS:
                continue
            if 'pipeline' in path.relative_to(repo_path).as_posix():
                found.append(path)
    return sorted(found)


@dataclass
class ExtractionResult:
    """Invocations found across a set of files, plus per-file read failures."""
    invocations: List[TaskInvocation] = field(default_factory=list)
    errors: List[ExtractionError] = field(default_factory=list)


@dataclass(frozen=True)
class SearchHit:
    """A line in a pipeline file containing a search query."""
    repo_name: str
    file_path: Path
    line_number: int
    line: str

    def to_dict(self):
        return {
            'repo': self.repo_name,
            'file': str(self.file_path),
            'line': self.line_number,
            'text': self.line,
        }


def _read_lines(path: Path) -> List[str]:
    with open(path, 'r', encoding='utf-8') as f:
        return f.read().splitlines()


class TaskExtractor:
    """
    Turns pipeline files into TaskInvocation facts.

    Example:
        extractor = TaskExtractor()
        result = extractor.extract(find_pipeline_files(path), repo_name="api")
        for inv in result.invocations:
            print(inv.task, inv.version, inv.spec)
    """

    def __init__(self, spec_locator: Optional[SpecLocator] = None):
        self.spec_locator = spec_locator or LookaheadSpecLocator()

    def extract(self, files: Sequence[Path], repo_name: str = "") -> ExtractionResult:
        """
        Extract task invocations from files.

        Unreadable files are recorded in `errors` and skipped.
        """
        result = ExtractionResult()
        for path in files:
            try:
                lines = _read_lines(path)
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"Skipping {path}: {e}")
                result.errors.append(ExtractionError(path, str(e)))
                continue
            result.invocations.extend(self.extract_lines(lines, Path(path), repo_name))
        return result

    def extract_lines(self, lines: Sequence[str], path: Path, repo_name: str = "") -> List[TaskInvocation]:
        """Extract invocations from the lines of one file."""
        invocations = []
        for index, line in enumerate(lines):
            stripped = line.strip()
            if stripped.startswith(COMMENT_PREFIXES):
                continue
            match = TASK_PATTERN.search(stripped)
            if not match:
                continue

            task, version = match.group(1), match.group(2)
            spec = None
            if task.lower() == VERSIONING_SETUP:
                spec = self.spec_locator.locate(lines, index)

            invocations.append(TaskInvocation(
                task=task,
                version=version,
                file_path=path,
                repo_name=repo_name,
                spec=spec,
                line_number=index + 1,
            ))
        return invocations

    def search(self, files: Sequence[Path], query: str, repo_name: str = "") -> List[SearchHit]:
        """Find lines containing query; unreadable files are skipped."""
        hits = []
        for path in files:
            try:
                lines = _read_lines(path)
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"Skipping {path}: {e}")
                continue
            for index, line in enumerate(lines):
                if query in line:
                    hits.append(SearchHit(repo_name, Path(path), index + 1, line.strip()))
        return hits
