"""
Work unit domain objects for housekeep.

A WorkItem binds one repository to the options of a single run; the
pipeline turns it into an immutable WorkResult.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple


class BranchPolicy(Enum):
    """What the branch state machine does before mutation."""
    DEFAULT_ONLY = "default"
    MAINTENANCE = "maintenance"
    NAMED = "named"

    @classmethod
    def for_branch(cls, branch: Optional[str], maintenance_branch: str) -> "BranchPolicy":
        branch = (branch or "").strip()
        if not branch:
            return cls.DEFAULT_ONLY
        if branch == maintenance_branch:
            return cls.MAINTENANCE
        return cls.NAMED


class BumpStrategy(Enum):
    """Which version component to increment."""
    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"

    @classmethod
    def parse(cls, value: Optional[str]) -> "BumpStrategy":
        """Parse a strategy name; empty means patch."""
        if not value:
            return cls.PATCH
        return cls(value.strip().lower())


class ReplacementScope(Enum):
    """Where user-supplied replacement rules are applied."""
    ALL = "all"
    VERSION_FILE_ONLY = "version-file-only"
    EXCLUDE_VERSION_FILE = "exclude-version-file"

    @property
    def version_file(self) -> bool:
        return self is not ReplacementScope.EXCLUDE_VERSION_FILE

    @property
    def tree(self) -> bool:
        return self is not ReplacementScope.VERSION_FILE_ONLY


@dataclass(frozen=True)
class ReplacementRule:
    """A whitespace-tolerant search/replace pair."""
    search: str
    replace: str

    @classmethod
    def parse(cls, text: str, separator: str = "=>") -> "ReplacementRule":
        """Parse a 'SEARCH=>REPLACE' string."""
        if separator not in text:
            raise ValueError(f"Replacement must look like 'SEARCH{separator}REPLACE': {text!r}")
        search, replace = text.split(separator, 1)
        if not search.strip():
            raise ValueError(f"Replacement has an empty search text: {text!r}")
        return cls(search=search, replace=replace)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReplacementRule":
        return cls(search=str(data.get('search', '')), replace=str(data.get('replace', '')))

    def to_dict(self) -> Dict[str, str]:
        return {'search': self.search, 'replace': self.replace}


@dataclass(frozen=True)
class StructuralEdit:
    """An exact, first-occurrence, replace-if-present edit."""
    search: str
    replace: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StructuralEdit":
        return cls(search=str(data.get('search', '')), replace=str(data.get('replace', '')))


def rules_from_config(entries: Iterable[Dict[str, Any]]) -> List[ReplacementRule]:
    """Build replacement rules from config/rule-file mappings, dropping empty searches."""
    rules = [ReplacementRule.from_dict(e) for e in entries or []]
    return [r for r in rules if r.search]


@dataclass(frozen=True)
class WorkOptions:
    """Options shared by every WorkItem of one run."""
    rules: Tuple[ReplacementRule, ...] = ()
    scope: ReplacementScope = ReplacementScope.ALL
    bump_strategy: BumpStrategy = BumpStrategy.PATCH
    target_branch: str = ""
    maintenance_branch: str = "housekeeping"
    parent_version: str = ""
    verify: bool = False
    check_warnings: bool = True
    excluded_folders: Tuple[str, ...] = ()
    version_file: str = "pom.xml"
    ci_settings_file: str = "ci-settings.xml"
    version_edits: Tuple[StructuralEdit, ...] = ()
    ci_settings_edits: Tuple[StructuralEdit, ...] = ()

    @property
    def branch_policy(self) -> BranchPolicy:
        return BranchPolicy.for_branch(self.target_branch, self.maintenance_branch)

    @property
    def version_file_rules(self) -> Tuple[ReplacementRule, ...]:
        return self.rules if self.scope.version_file else ()

    @property
    def tree_rules(self) -> Tuple[ReplacementRule, ...]:
        return self.rules if self.scope.tree else ()

    @classmethod
    def from_config(cls, config: Dict[str, Any], **overrides: Any) -> "WorkOptions":
        """Build options from a loaded config, then apply explicit overrides."""
        general = config.get('general', {})
        replacements = config.get('replacements', {})
        version = config.get('version', {})
        build = config.get('build', {})
        values: Dict[str, Any] = {
            'rules': tuple(rules_from_config(replacements.get('rules', []))),
            'scope': ReplacementScope(replacements.get('scope', 'all')),
            'bump_strategy': BumpStrategy.parse(version.get('bump_strategy')),
            'maintenance_branch': general.get('maintenance_branch', 'housekeeping'),
            'parent_version': version.get('parent_version', '') or '',
            'check_warnings': bool(build.get('check_warnings', True)),
            'excluded_folders': tuple(general.get('exclude_directories', [])),
            'version_file': general.get('version_file', 'pom.xml'),
            'ci_settings_file': general.get('ci_settings_file', 'ci-settings.xml'),
            'version_edits': tuple(
                StructuralEdit.from_dict(e) for e in version.get('structural_edits', [])
            ),
            'ci_settings_edits': tuple(
                StructuralEdit.from_dict(e)
                for e in config.get('ci_settings', {}).get('structural_edits', [])
            ),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


@dataclass(frozen=True)
class WorkItem:
    """One repository plus the options bound to it for a run."""
    repo_path: str
    options: WorkOptions = field(default_factory=WorkOptions)

    @property
    def repo_name(self) -> str:
        return Path(self.repo_path).name


@dataclass(frozen=True)
class WorkResult:
    """
    Outcome of one WorkItem.

    Attributes:
        repo_path: Absolute path of the repository (its identity)
        repo_name: Directory name, for display
        success: False if any step failed
        lines: Ordered log lines recorded while processing
        diagnostics: Side-channel text such as the build warning excerpt
        duration: Seconds spent on the item, retries included
        details: Extra data from read-only scans (findings, health figures)
    """
    repo_path: str
    repo_name: str
    success: bool
    lines: Tuple[str, ...] = ()
    diagnostics: str = ""
    duration: float = 0.0
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def failed(cls, repo_path: str, message: str, duration: float = 0.0) -> "WorkResult":
        return cls(
            repo_path=repo_path,
            repo_name=Path(repo_path).name,
            success=False,
            lines=(f"[ERROR] {message}",),
            duration=duration,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = {
            'path': self.repo_path,
            'name': self.repo_name,
            'success': self.success,
            'duration': round(self.duration, 3),
            'lines': list(self.lines),
        }
        if self.diagnostics:
            result['diagnostics'] = self.diagnostics
        if self.details:
            result['details'] = self.details
        return result
