"""
Mutation pipeline for housekeep.

Turns one WorkItem into one WorkResult by running, in order:

1. Branch preparation (aborts the item on a fatal failure)
2. Version file: tag reconciliation, scoped replacement rules, parent
   version and structural edits, committed once if the file changed
3. CI settings file: structural edits, committed if changed
4. Tree-wide replacement rules, one commit per changed file
5. Verification build when the tree changed or verification was requested
6. Warning excerpt from the build output (or from a warnings-only build)

Every step reports to the item's LogSink. Nothing raises past process().
"""

import logging
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from ..config import load_config
from ..domain.work import WorkItem, WorkOptions, WorkResult
from ..infra.build_client import (
    BuildClient,
    BuildOutput,
    DEFAULT_WARNING_KEYWORDS,
    MAX_WARNING_LINES,
    extract_warnings,
)
from ..infra.git_client import GitClient
from ..sink import LogSink
from . import version_service
from .branch_service import BranchService
from .orchestrator import RetryPolicy
from .replace_service import apply_rules, replace_in_tree

logger = logging.getLogger(__name__)


class PipelineService:
    """
    Per-repository mutation pipeline.

    Example:
        pipeline = PipelineService()
        result = pipeline.process(WorkItem("/path/to/repo", options))
        for line in result.lines:
            print(line)
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        git_client: Optional[GitClient] = None,
        build_client: Optional[BuildClient] = None,
        retry: Optional[RetryPolicy] = None,
        branch_service: Optional[BranchService] = None,
        clock: Optional[Callable[[], float]] = None
    ):
        """
        Initialize PipelineService.

        Args:
            config: Configuration dict (loads default if None)
            git_client: GitClient instance (creates new if None)
            build_client: BuildClient instance (built from config if None)
            retry: Retry policy for the verification build
            branch_service: BranchService instance (creates new if None)
            clock: Monotonic time source in seconds
        """
        self.config = config or load_config()
        self.git = git_client or GitClient()
        self.build = build_client or BuildClient.from_config(self.config)
        self.retry = retry or RetryPolicy.from_config(self.config)
        self.branches = branch_service or BranchService(self.git)
        self._clock = clock or time.monotonic

        build = self.config.get('build', {})
        self.warning_keywords = build.get('warning_keywords') or list(DEFAULT_WARNING_KEYWORDS)
        self.max_warning_lines = int(build.get('max_warning_lines', MAX_WARNING_LINES))

    def process(self, item: WorkItem) -> WorkResult:
        """Run every pipeline step for one repository."""
        started = self._clock()
        sink = LogSink(item.repo_name)
        diagnostics = ""
        success = True

        try:
            success, diagnostics = self._run_steps(item, sink)
        except Exception as e:
            logger.exception(f"Pipeline failed for {item.repo_path}")
            sink.error(f"Unexpected error: {e}")
            success = False

        return WorkResult(
            repo_path=item.repo_path,
            repo_name=item.repo_name,
            success=success and not sink.has_errors,
            lines=tuple(sink.lines()),
            diagnostics=diagnostics,
            duration=self._clock() - started,
        )

    def _run_steps(self, item: WorkItem, sink: LogSink):
        path = item.repo_path
        options = item.options

        if not self.branches.prepare(path, options, sink):
            return False, ""

        self._update_version_file(path, options, sink)
        self._update_ci_settings(path, options, sink)

        changed = replace_in_tree(
            path,
            options.tree_rules,
            self.git,
            sink,
            excluded=options.excluded_folders,
            skip_files=[options.version_file],
        )

        build_ok = True
        output: Optional[BuildOutput] = None
        if changed or options.verify:
            output = self._verify(path, sink)
            build_ok = output.ok
        elif options.check_warnings:
            output = self.build.check_warnings(path)

        diagnostics = ""
        if output is not None:
            warnings = extract_warnings(output.output, self.warning_keywords, self.max_warning_lines)
            if warnings:
                sink.warning(f"{len(warnings)} build warning(s) found.", count=len(warnings))
                diagnostics = "\n".join(warnings)

        return build_ok, diagnostics

    def _read(self, file: Path, sink: LogSink) -> Optional[str]:
        try:
            return file.read_bytes().decode("utf-8")
        except (OSError, UnicodeDecodeError) as e:
            sink.error(f"Could not read {file.name}: {e}")
            return None

    def _write_and_commit(self, path: str, name: str, content: str, sink: LogSink) -> None:
        try:
            (Path(path) / name).write_bytes(content.encode("utf-8"))
        except OSError as e:
            sink.error(f"Could not write {name}: {e}")
            return

        _, error = self.git.add(path, name)
        if error is None:
            _, error = self.git.commit(path, f"Update {name}")
        if error is not None:
            sink.warning(f"Commit of {name} failed: {error}")
            return
        sink.info(f"{name} updated and committed.")

    def _update_version_file(self, path: str, options: WorkOptions, sink: LogSink) -> None:
        name = options.version_file
        file = Path(path) / name
        if not file.is_file():
            sink.info(f"No {name} found, skipping version update.")
            return

        original = self._read(file, sink)
        if original is None:
            return

        tag = self.git.latest_tag(path)
        if tag is None:
            sink.info("No tags found, skipping version reconciliation.")
        else:
            sink.info(f"Current tag: {tag}", tag=tag)

        content = version_service.reconcile(original, tag, options.bump_strategy, sink, label=name)
        content = apply_rules(content, options.version_file_rules, sink, name)
        content = version_service.update_parent_version(content, options.parent_version, sink)
        content = version_service.apply_structural_edits(content, options.version_edits, sink, name)

        if content != original:
            self._write_and_commit(path, name, content, sink)

    def _update_ci_settings(self, path: str, options: WorkOptions, sink: LogSink) -> None:
        if not options.ci_settings_edits:
            return

        name = options.ci_settings_file
        file = Path(path) / name
        if not file.is_file():
            sink.info(f"No {name} found, skipping.")
            return

        original = self._read(file, sink)
        if original is None:
            return

        content = version_service.apply_structural_edits(original, options.ci_settings_edits, sink, name)
        if content != original:
            self._write_and_commit(path, name, content, sink)

    def _verify(self, path: str, sink: LogSink) -> BuildOutput:
        sink.info("Running verification build.")
        output = self.retry.call(lambda: self.build.build(path), lambda out: not out.ok)
        if output.ok:
            sink.success("Verification build succeeded.")
        else:
            sink.error(f"Verification build failed (exit status {output.returncode}).")
        return output


def build_items(paths: List[str], options: WorkOptions) -> List[WorkItem]:
    """One WorkItem per repository path, all sharing the run's options."""
    return [WorkItem(repo_path=str(Path(p).resolve()), options=options) for p in paths]
