"""
Domain layer for housekeep.

Contains pure domain objects with no I/O or side effects:
- WorkItem / WorkResult: the unit of parallel work and its outcome
- WorkOptions, ReplacementRule, StructuralEdit: what a run does to a repository
- BranchPolicy, BumpStrategy, ReplacementScope: run policies
- ProgressEvent: one entry of a run's progress stream
- Finding / ScanReport: normalized scanner output

These objects are immutable where possible and provide
serialization methods for JSONL output.
"""

from .work import (
    BranchPolicy,
    BumpStrategy,
    ReplacementRule,
    ReplacementScope,
    StructuralEdit,
    WorkItem,
    WorkOptions,
    WorkResult,
    rules_from_config,
)
from .event import ProgressEvent
from .finding import Finding, ScanReport

__all__ = [
    'BranchPolicy',
    'BumpStrategy',
    'ReplacementRule',
    'ReplacementScope',
    'StructuralEdit',
    'WorkItem',
    'WorkOptions',
    'WorkResult',
    'rules_from_config',
    'ProgressEvent',
    'Finding',
    'ScanReport',
]
