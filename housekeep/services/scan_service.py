"""
Read-only scan units for housekeep.

A scan never changes a repository. It gathers a health snapshot (branch,
last commit, latest tag, project version, TODO/FIXME markers, project type
and health score) and the reports of any configured scanner adapters, and
returns them as a WorkResult so scans run through the same orchestrator as
mutations.

Scanners are opaque external commands. Each adapter normalizes its tool's
output into Findings; the default adapter expects the command to print a
JSON list of already-normalized findings.
"""

import json
import logging
import os
import re
import subprocess
import time
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from ..config import load_config
from ..domain.finding import Finding, ScanReport
from ..domain.work import WorkResult
from ..infra.cache import ExpiringCache
from ..infra.git_client import GitClient
from ..sink import LogSink
from .health_service import analyze_health
from .version_service import find_project_version

logger = logging.getLogger(__name__)

TODO_PATTERN = re.compile(r"\b(TODO|FIXME)\b")
TODO_SKIP_DIRS = {'.git', 'target', 'node_modules', 'dist'}

FindingParser = Callable[[str], List[Finding]]


def parse_json_findings(output: str) -> List[Finding]:
    """Parse a JSON list of normalized finding mappings."""
    data = json.loads(output or "[]")
    if isinstance(data, dict):
        data = data.get('findings', [])
    if not isinstance(data, list):
        raise ValueError("expected a JSON list of findings")
    return [Finding.from_dict(item) for item in data if isinstance(item, dict)]


class ScannerAdapter:
    """Boundary every scanner adapter implements."""

    name = "scanner"

    def scan(self, path: str) -> ScanReport:
        raise NotImplementedError


class CommandScannerAdapter(ScannerAdapter):
    """
    Runs an external scanner command inside the repository.

    Example:
        adapter = CommandScannerAdapter("audit", ["my-audit", "--json"])
        report = adapter.scan("/path/to/repo")
    """

    def __init__(
        self,
        name: str,
        command: Sequence[str],
        parser: Optional[FindingParser] = None,
        timeout: Optional[int] = 600
    ):
        self.name = name
        self.command = list(command)
        self.parser = parser or parse_json_findings
        self.timeout = timeout

    def scan(self, path: str) -> ScanReport:
        try:
            result = subprocess.run(
                self.command,
                cwd=path,
                capture_output=True,
                text=True,
                errors='replace',
                timeout=self.timeout
            )
        except subprocess.TimeoutExpired:
            return ScanReport(self.name, error=f"timed out after {self.timeout}s")
        except OSError as e:
            return ScanReport(self.name, error=str(e))

        # Audit tools commonly exit non-zero when they find something
        try:
            findings = self.parser(result.stdout)
        except (ValueError, TypeError) as e:
            stderr = (result.stderr or "").strip()
            message = f"could not parse output: {e}"
            if result.returncode != 0 and stderr:
                message = f"exit status {result.returncode}: {stderr}"
            return ScanReport(self.name, error=message)

        return ScanReport(self.name, findings=findings)


def adapters_from_config(config: Dict[str, Any]) -> List[ScannerAdapter]:
    """Build command adapters from the `scan.scanners` config section."""
    adapters: List[ScannerAdapter] = []
    for name, spec in (config.get('scan', {}).get('scanners') or {}).items():
        if isinstance(spec, dict):
            command = spec.get('command', [])
            timeout = spec.get('timeout', 600)
        else:
            command, timeout = spec, 600
        if isinstance(command, str):
            command = command.split()
        if not command:
            logger.warning(f"Scanner '{name}' has no command, ignoring")
            continue
        adapters.append(CommandScannerAdapter(name, command, timeout=timeout))
    return adapters


def count_todos(root: str, extensions: Iterable[str]) -> int:
    """Count lines carrying a TODO or FIXME marker in source files."""
    extensions = {e.lower() for e in extensions}
    count = 0
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = [d for d in dirnames if d not in TODO_SKIP_DIRS]
        for filename in filenames:
            if Path(filename).suffix.lower() not in extensions:
                continue
            try:
                with open(os.path.join(dirpath, filename), encoding='utf-8', errors='ignore') as f:
                    count += sum(1 for line in f if TODO_PATTERN.search(line))
            except OSError:
                continue
    return count


class ScanService:
    """
    Service for read-only repository scans.

    Scanner reports are cached per (scanner, repository, HEAD commit), so a
    repeated scan of an unchanged repository does not rerun the tools.

    Example:
        service = ScanService()
        result = service.scan_repo("/path/to/repo")
        print(result.details['todo_count'])
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        git_client: Optional[GitClient] = None,
        adapters: Optional[List[ScannerAdapter]] = None,
        cache: Optional[ExpiringCache] = None,
        clock: Optional[Callable[[], float]] = None
    ):
        self.config = config or load_config()
        self.git = git_client or GitClient()
        self.adapters = adapters if adapters is not None else adapters_from_config(self.config)
        self.cache = cache or ExpiringCache()
        self._clock = clock or time.monotonic

        scan = self.config.get('scan', {})
        self.cache_ttl = float(scan.get('cache_ttl_seconds', 3600))
        self.todo_extensions = scan.get('todo_extensions', [])
        self.version_file = self.config.get('general', {}).get('version_file', 'pom.xml')

    def scan_repo(self, path: str) -> WorkResult:
        """Collect the health snapshot and scanner reports of one repository."""
        started = self._clock()
        name = Path(path).name
        sink = LogSink(name)
        details: Dict[str, Any] = {}

        details['branch'] = self.git.current_branch(path)
        details['last_commit'] = self.git.last_commit_day(path)
        details['latest_tag'] = self.git.latest_tag(path)
        details['project_version'] = self._project_version(path)
        details['todo_count'] = count_todos(path, self.todo_extensions)
        health = analyze_health(path, details['todo_count'], self.version_file)
        details.update(health.to_dict())

        sink.info(f"Branch: {details['branch'] or 'unknown'}")
        sink.info(f"Last commit: {details['last_commit'] or 'none'}")
        sink.info(f"Latest tag: {details['latest_tag'] or 'none'}")
        if details['project_version']:
            sink.info(f"Project version: {details['project_version']}")
        sink.info(f"TODO/FIXME markers: {details['todo_count']}")
        project = health.project_type
        if health.framework:
            project = f"{project} ({health.framework})"
        sink.info(f"Project type: {project}")
        sink.info(f"Health score: {health.score}")

        reports = [self._scan_with(adapter, path, sink) for adapter in self.adapters]
        if reports:
            details['scanners'] = [r.to_dict() for r in reports]

        return WorkResult(
            repo_path=path,
            repo_name=name,
            success=all(r.ok for r in reports),
            lines=tuple(sink.lines()),
            duration=self._clock() - started,
            details=details,
        )

    def _project_version(self, path: str) -> Optional[str]:
        file = Path(path) / self.version_file
        if not file.is_file():
            return None
        try:
            field = find_project_version(file.read_text(encoding='utf-8'))
        except (OSError, UnicodeDecodeError) as e:
            logger.debug(f"Could not read {file}: {e}")
            return None
        return field.value if field else None

    def _scan_with(self, adapter: ScannerAdapter, path: str, sink: LogSink) -> ScanReport:
        key = (adapter.name, path, self.git.head_commit(path))
        cached, fresh = self.cache.get(key)
        if fresh:
            logger.debug(f"Using cached {adapter.name} report for {path}")
            report = cached
        else:
            report = adapter.scan(path)
            if report.ok:
                self.cache.put(key, report, self.cache_ttl)
            elif cached is not None:
                sink.warning(f"{adapter.name} failed ({report.error}); using previous report.")
                report = cached

        if report.ok:
            counts = report.severity_counts()
            summary = ", ".join(f"{n} {s}" for s, n in sorted(counts.items())) or "no findings"
            sink.info(f"{adapter.name}: {summary}")
        else:
            sink.error(f"{adapter.name}: {report.error}")
        return report
