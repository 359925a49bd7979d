"""
Service layer for taskaudit.

Contains the logic that drives infrastructure and domain objects:
- RepositorySynchronizer: keeps sparse local mirrors up to date
- TaskExtractor: finds task invocations in pipeline files
- ComplianceValidator: classifies invocations against valid states
- ConcurrencyOrchestrator: runs all of the above across many repositories

Services are the primary API for commands to use.
"""

from .synchronizer import RepositorySynchronizer, SyncMode, SyncOutcome, MirrorState
from .extractor import TaskExtractor, LookaheadSpecLocator, SpecLocator, find_pipeline_files
from .validator import ComplianceValidator
from .orchestrator import ConcurrencyOrchestrator, AuditReport, OnboardingReport, default_concurrency

__all__ = [
    'RepositorySynchronizer',
    'SyncMode',
    'SyncOutcome',
    'MirrorState',
    'TaskExtractor',
    'LookaheadSpecLocator',
    'SpecLocator',
    'find_pipeline_files',
    'ComplianceValidator',
    'ConcurrencyOrchestrator',
    'AuditReport',
    'OnboardingReport',
    'default_concurrency',
]
