"""
Task domain objects for taskaudit.

TaskInvocation is one `task: name@version` occurrence in a pipeline file.
ValidState is an approved version for a task, in one of two shapes: a
single version for ordinary tasks, or a setup/execute/spec triple for the
GitVersion task pair.
"""

import json
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .. import versions

VERSIONING_TOOL = "gitversion"
VERSIONING_SETUP = f"{VERSIONING_TOOL}/setup"
VERSIONING_EXECUTE = f"{VERSIONING_TOOL}/execute"

MISSING = "?"


class TaskFamily(Enum):
    """Closed set of task families; validation branches on this tag."""
    GENERIC = "generic"
    VERSIONING = "versioning"

    @classmethod
    def of(cls, task: str) -> 'TaskFamily':
        name = task.lower()
        if name == VERSIONING_TOOL or name.startswith(f"{VERSIONING_TOOL}/"):
            return cls.VERSIONING
        return cls.GENERIC


def registry_key(task: str) -> str:
    """Key under which valid states for a task are stored."""
    if TaskFamily.of(task) is TaskFamily.VERSIONING:
        return VERSIONING_TOOL
    return task.lower()


@dataclass(frozen=True)
class TaskInvocation:
    """One task reference found in a pipeline file."""
    task: str
    version: str
    file_path: Path
    repo_name: str
    spec: Optional[str] = None
    line_number: int = 0

    @property
    def family(self) -> TaskFamily:
        return TaskFamily.of(self.task)

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'task': self.task,
            'version': self.version,
            'file': str(self.file_path),
            'repo': self.repo_name,
            'line': self.line_number,
        }
        if self.spec is not None:
            result['spec'] = self.spec
        return result


@dataclass(frozen=True, eq=False)
class GenericState:
    """An approved single version for an ordinary task."""
    version: str

    def __eq__(self, other):
        if not isinstance(other, GenericState):
            return NotImplemented
        return versions.equivalent(self.version, other.version)

    def __hash__(self):
        return hash(('generic', versions.parse(self.version) or self.version))

    def __str__(self) -> str:
        return f"@{self.version}"


@dataclass(frozen=True, eq=False)
class VersioningState:
    """An approved setup/execute/spec combination for GitVersion."""
    setup_version: str
    execute_version: str
    spec_version: str

    @classmethod
    def from_string(cls, value: str) -> 'VersioningState':
        """Parse "setup:VERSION,execute:VERSION,spec:VERSION"."""
        parts = value.split(',')
        if len(parts) != 3:
            raise ValueError(
                "Invalid format. Expected 'setup:VERSION,execute:VERSION,spec:VERSION'"
            )

        found: Dict[str, str] = {}
        for part in parts:
            kv = part.split(':')
            if len(kv) != 2:
                raise ValueError(f"Invalid key-value pair: {part.strip()!r}")
            key = kv[0].strip()
            if key not in ('setup', 'execute', 'spec'):
                raise ValueError(f"Unknown key: {key}")
            found[key] = kv[1].strip()

        for key in ('setup', 'execute', 'spec'):
            if key not in found:
                raise ValueError(f"Missing {key} version")

        return cls(found['setup'], found['execute'], found['spec'])

    def matches(self, setup: str, execute: str, spec: str) -> bool:
        """True when all three members are equivalent; the "?" sentinel never matches."""
        if MISSING in (setup, execute, spec):
            return False
        return (
            versions.equivalent(self.setup_version, setup)
            and versions.equivalent(self.execute_version, execute)
            and versions.equivalent(self.spec_version, spec)
        )

    def __eq__(self, other):
        if not isinstance(other, VersioningState):
            return NotImplemented
        return self.matches(other.setup_version, other.execute_version, other.spec_version)

    def __hash__(self):
        return hash(('versioning',) + tuple(
            versions.parse(v) or v
            for v in (self.setup_version, self.execute_version, self.spec_version)
        ))

    def __str__(self) -> str:
        return (
            f"setup@{self.setup_version}, execute@{self.execute_version}, "
            f"spec@{self.spec_version}"
        )


ValidState = Union[GenericState, VersioningState]


def parse_state(task: str, value: str) -> ValidState:
    """Build the right ValidState shape for a task from CLI text."""
    if TaskFamily.of(task) is TaskFamily.VERSIONING:
        return VersioningState.from_string(value)
    return GenericState(value.strip())


def state_to_json(state: ValidState) -> str:
    """Serialize a state in the stored {"type": ..., "value": ...} form."""
    if isinstance(state, VersioningState):
        payload = {
            'type': 'Gitversion',
            'value': {
                'setup_version': state.setup_version,
                'execute_version': state.execute_version,
                'spec_version': state.spec_version,
            },
        }
    else:
        payload = {'type': 'Default', 'value': state.version}
    return json.dumps(payload, sort_keys=True)


def state_from_json(text: str) -> ValidState:
    payload = json.loads(text)
    kind = payload.get('type')
    value = payload.get('value')
    if kind == 'Gitversion':
        return VersioningState(
            str(value['setup_version']),
            str(value['execute_version']),
            str(value['spec_version']),
        )
    if kind == 'Default':
        return GenericState(str(value))
    raise ValueError(f"Unknown state type: {kind!r}")


def format_states(states) -> str:
    """Bullet list of states, or "None"."""
    if not states:
        return "None"
    return "\n".join(f"- {state}" for state in states)
