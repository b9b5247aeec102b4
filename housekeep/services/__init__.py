"""
Service layer for housekeep.

Services hold the business logic and depend on the infra layer:
- BranchService: puts a repository on the right branch
- version_service / replace_service: pure text transformations
- PipelineService: the per-repository mutation unit
- ScanService: the per-repository read-only unit
- health_service: project type, framework and health score of a scan
- Orchestrator: runs units in parallel and streams progress
- RepositoryService: finds the repositories of a run
"""

from .branch_service import BranchService, first_day_of_previous_month
from .health_service import HealthReport, analyze_health, detect_project_type
from .orchestrator import Orchestrator, RetryPolicy, estimate_remaining, results_only
from .pipeline_service import PipelineService, build_items
from .replace_service import ReplaceResult, apply_rules, fuzzy_replace, replace_in_tree
from .repository_service import RepositoryService
from .scan_service import CommandScannerAdapter, ScannerAdapter, ScanService
from . import version_service

__all__ = [
    'BranchService',
    'first_day_of_previous_month',
    'HealthReport',
    'analyze_health',
    'detect_project_type',
    'Orchestrator',
    'RetryPolicy',
    'estimate_remaining',
    'results_only',
    'PipelineService',
    'build_items',
    'ReplaceResult',
    'apply_rules',
    'fuzzy_replace',
    'replace_in_tree',
    'RepositoryService',
    'CommandScannerAdapter',
    'ScannerAdapter',
    'ScanService',
    'version_service',
]
