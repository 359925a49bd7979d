"""
Compliance validation for extracted task invocations.

Generic tasks are checked one invocation at a time against single-version
states. The GitVersion pair is checked as a setup/execute/spec triple,
assembled per repository (or per file, for the per-file view).
"""

import logging
from collections import OrderedDict
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..domain.compliance import ComplianceResult, ComplianceStatus
from ..domain.task import (
    MISSING,
    VERSIONING_EXECUTE,
    VERSIONING_SETUP,
    VERSIONING_TOOL,
    GenericState,
    TaskFamily,
    TaskInvocation,
    ValidState,
    VersioningState,
    registry_key,
)
from .. import versions

logger = logging.getLogger(__name__)

Registry = Mapping[str, Sequence[ValidState]]


class VersioningTriple:
    """The setup/execute/spec combination seen in one repository or file."""

    def __init__(self, repo_name: str):
        self.repo_name = repo_name
        self.setup: Optional[TaskInvocation] = None
        self.execute: Optional[TaskInvocation] = None

    def add(self, invocation: TaskInvocation) -> None:
        task = invocation.task.lower()
        if task == VERSIONING_SETUP:
            self.setup = invocation
        elif task == VERSIONING_EXECUTE:
            self.execute = invocation

    @property
    def members(self) -> Tuple[str, str, str]:
        setup = self.setup.version if self.setup else MISSING
        spec = self.setup.spec if self.setup and self.setup.spec else MISSING
        execute = self.execute.version if self.execute else MISSING
        return setup, execute, spec

    @property
    def file_path(self) -> Optional[Path]:
        source = self.setup or self.execute
        return source.file_path if source else None


def _states_for(registry: Registry, task: str) -> List[ValidState]:
    key = registry_key(task)
    for name, states in registry.items():
        if name.lower() == key:
            return list(states)
    return []


def _generic_states(task: str, states: Sequence[ValidState]) -> List[GenericState]:
    for state in states:
        if not isinstance(state, GenericState):
            raise TypeError(f"{type(state).__name__} cannot validate generic task {task!r}")
    return list(states)


def _versioning_states(states: Sequence[ValidState]) -> List[VersioningState]:
    for state in states:
        if not isinstance(state, VersioningState):
            raise TypeError(f"{type(state).__name__} cannot validate {VERSIONING_TOOL}")
    return list(states)


class ComplianceValidator:
    """
    Classifies invocations against a registry of valid states.

    The registry is only read, never modified.

    Example:
        validator = ComplianceValidator()
        results = validator.classify(invocations, {"copyfiles": [GenericState("1")]})
    """

    def classify(self, invocations: Iterable[TaskInvocation], registry: Registry) -> List[ComplianceResult]:
        """
        Classify every invocation.

        Generic invocations yield one result each; GitVersion invocations
        yield one result per repository.
        """
        generic = []
        versioning = []
        for invocation in invocations:
            if invocation.family is TaskFamily.VERSIONING:
                versioning.append(invocation)
            else:
                generic.append(invocation)

        results = [self.classify_generic(inv, _states_for(registry, inv.task)) for inv in generic]
        if versioning:
            states = _states_for(registry, VERSIONING_TOOL)
            for triple in group_by_repository(versioning).values():
                results.append(self.classify_triple(triple, states))

        results.sort(key=lambda r: (r.task, r.repo_name, str(r.file_path or '')))
        return results

    def classify_generic(self, invocation: TaskInvocation, states: Sequence[ValidState]) -> ComplianceResult:
        generic_states = _generic_states(invocation.task, states)
        if not generic_states:
            status = ComplianceStatus.NO_POLICY_DEFINED
        elif any(versions.equivalent(s.version, invocation.version) for s in generic_states):
            status = ComplianceStatus.COMPLIANT
        else:
            status = ComplianceStatus.NON_COMPLIANT

        return ComplianceResult(
            task=invocation.task,
            repo_name=invocation.repo_name,
            status=status,
            observed=(invocation.version,),
            file_path=invocation.file_path,
            expected=tuple(generic_states),
        )

    def classify_triple(self, triple: VersioningTriple, states: Sequence[ValidState]) -> ComplianceResult:
        versioning_states = _versioning_states(states)
        setup, execute, spec = triple.members
        if any(state.matches(setup, execute, spec) for state in versioning_states):
            status = ComplianceStatus.COMPLIANT
        else:
            status = ComplianceStatus.NON_COMPLIANT

        return ComplianceResult(
            task=VERSIONING_TOOL,
            repo_name=triple.repo_name,
            status=status,
            observed=(setup, execute, spec),
            file_path=triple.file_path,
            expected=tuple(versioning_states),
        )

    def classify_by_file(self, invocations: Iterable[TaskInvocation], registry: Registry) -> List[ComplianceResult]:
        """GitVersion view: one triple per file instead of per repository."""
        states = _states_for(registry, VERSIONING_TOOL)
        return [
            self.classify_triple(triple, states)
            for triple in pair_by_file(invocations).values()
        ]


def group_by_repository(invocations: Iterable[TaskInvocation]) -> Dict[str, VersioningTriple]:
    """Build one GitVersion triple per repository, in repository name order."""
    triples: Dict[str, VersioningTriple] = {}
    for invocation in invocations:
        if invocation.family is not TaskFamily.VERSIONING:
            continue
        triples.setdefault(invocation.repo_name, VersioningTriple(invocation.repo_name)).add(invocation)
    return OrderedDict(sorted(triples.items()))


def pair_by_file(invocations: Iterable[TaskInvocation]) -> Dict[Tuple[str, Path], VersioningTriple]:
    """Build one GitVersion triple per (repository, file)."""
    triples: Dict[Tuple[str, Path], VersioningTriple] = {}
    for invocation in invocations:
        if invocation.family is not TaskFamily.VERSIONING:
            continue
        key = (invocation.repo_name, invocation.file_path)
        triples.setdefault(key, VersioningTriple(invocation.repo_name)).add(invocation)
    return OrderedDict(sorted(triples.items(), key=lambda item: (item[0][0], str(item[0][1]))))
