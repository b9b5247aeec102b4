"""
housekeep - Batch housekeeping for git repositories.

housekeep processes many local repositories in parallel: it prepares the
working branch, reconciles the project version with the latest tag,
applies whitespace-tolerant replacement rules and runs a verification
build, streaming progress events as repositories complete.

Quick Start:
    from housekeep import Orchestrator, PipelineService, RepositoryService, WorkOptions
    from housekeep.services import build_items

    paths = RepositoryService().discover("~/work")
    options = WorkOptions(target_branch="housekeeping", verify=True)
    pipeline = PipelineService()

    for event in Orchestrator(workers=4).run(build_items(paths, options), pipeline.process):
        print(event)

Domain Objects:
    WorkItem / WorkResult - One repository's unit of work and its outcome
    WorkOptions - What a run does to each repository
    ProgressEvent - init, item_result, update and done events of a run
"""

__version__ = "0.3.0"

from .domain import (
    BranchPolicy,
    BumpStrategy,
    Finding,
    ProgressEvent,
    ReplacementRule,
    ReplacementScope,
    ScanReport,
    StructuralEdit,
    WorkItem,
    WorkOptions,
    WorkResult,
)
from .services import (
    BranchService,
    Orchestrator,
    PipelineService,
    RepositoryService,
    RetryPolicy,
    ScanService,
    fuzzy_replace,
)
from .sink import LogEntry, LogLevel, LogSink

__all__ = [
    '__version__',
    'BranchPolicy',
    'BumpStrategy',
    'Finding',
    'ProgressEvent',
    'ReplacementRule',
    'ReplacementScope',
    'ScanReport',
    'StructuralEdit',
    'WorkItem',
    'WorkOptions',
    'WorkResult',
    'BranchService',
    'Orchestrator',
    'PipelineService',
    'RepositoryService',
    'RetryPolicy',
    'ScanService',
    'fuzzy_replace',
    'LogEntry',
    'LogLevel',
    'LogSink',
]
