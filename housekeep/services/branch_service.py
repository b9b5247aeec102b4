"""
Branch state machine for housekeep.

Moves a repository onto the branch its WorkItem asks for before any content
is touched:

    default branch (checkout, fetch, pull)
        -> stay on default            (no branch requested)
        -> maintenance branch         (evicted first if stale)
        -> named branch               (reused or created)

Checkout and creation failures are fatal for the repository; fetch and
fast-forward failures are only recorded.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from ..domain.work import BranchPolicy, WorkOptions
from ..infra.git_client import GitClient
from ..sink import LogSink

logger = logging.getLogger(__name__)


def first_day_of_previous_month(now: datetime) -> datetime:
    """Midnight on the first day of the calendar month before `now`'s month."""
    if now.month == 1:
        return now.replace(year=now.year - 1, month=12, day=1,
                           hour=0, minute=0, second=0, microsecond=0)
    return now.replace(month=now.month - 1, day=1,
                       hour=0, minute=0, second=0, microsecond=0)


class BranchService:
    """
    Prepares the working branch of a repository.

    Example:
        service = BranchService(GitClient())
        sink = LogSink("my-repo")
        if service.prepare("/path/to/repo", options, sink):
            ...  # safe to mutate
    """

    def __init__(
        self,
        git_client: Optional[GitClient] = None,
        now: Optional[Callable[[], datetime]] = None
    ):
        """
        Initialize BranchService.

        Args:
            git_client: GitClient instance (creates new if None)
            now: Returns the current local time, timezone-aware (injectable for tests)
        """
        self.git = git_client or GitClient()
        self._now = now or (lambda: datetime.now().astimezone())

    def prepare(self, path: str, options: WorkOptions, sink: LogSink) -> bool:
        """
        Run the branch transitions for one repository.

        Returns:
            True when the repository is on the requested branch and may be
            mutated, False when a fatal step failed.
        """
        default = self.git.default_branch(path)
        if not default:
            sink.error("Could not determine the default branch.")
            return False

        if not self._update_default(path, default, sink):
            return False

        policy = options.branch_policy
        if policy is BranchPolicy.DEFAULT_ONLY:
            sink.info(f"Staying on default branch '{default}'.")
            return True

        target = options.target_branch.strip()
        if policy is BranchPolicy.MAINTENANCE:
            self._evict_if_stale(path, target, sink)

        if self.git.branch_exists(path, target):
            return self._reuse(path, target, sink)
        return self._create(path, target, default, sink)

    def _update_default(self, path: str, default: str, sink: LogSink) -> bool:
        _, error = self.git.checkout(path, default)
        if error is not None:
            sink.error(f"Checkout of '{default}' failed: {error}")
            return False

        _, error = self.git.fetch(path, prune=True)
        if error is not None:
            sink.warning(f"Fetch failed: {error}")

        _, error = self.git.pull(path)
        if error is not None:
            sink.error(f"Pull on '{default}' failed: {error}")
            return False

        sink.info(f"Default branch '{default}' is up to date.")
        return True

    def _evict_if_stale(self, path: str, branch: str, sink: LogSink) -> None:
        if not self.git.branch_exists(path, branch):
            return

        last_commit = self.git.last_commit_date(path, branch)
        if last_commit is None:
            sink.warning(f"Could not read the last commit date of '{branch}'; keeping it.")
            return

        now = self._now()
        threshold = first_day_of_previous_month(now)
        if last_commit.tzinfo is not None and threshold.tzinfo is None:
            threshold = threshold.astimezone()
        elif last_commit.tzinfo is None and threshold.tzinfo is not None:
            last_commit = last_commit.replace(tzinfo=threshold.tzinfo)

        if last_commit >= threshold:
            logger.debug(f"{path}: branch {branch} last commit {last_commit} is recent")
            return

        _, error = self.git.delete_branch(path, branch)
        if error is not None:
            sink.warning(f"Could not delete stale branch '{branch}': {error}")
            return
        sink.info(
            f"Branch '{branch}' deleted (last commit {last_commit.date()} "
            f"older than {threshold.date()})."
        )

    def _reuse(self, path: str, branch: str, sink: LogSink) -> bool:
        _, error = self.git.checkout(path, branch)
        if error is not None:
            sink.error(f"Checkout of '{branch}' failed: {error}")
            return False
        sink.info(f"Switched to existing branch '{branch}'.")

        if not self.git.has_upstream(path, branch):
            sink.info(f"Branch '{branch}' has no upstream; using the local branch.")
            return True

        _, error = self.git.pull(path, ff_only=True)
        if error is not None:
            sink.info(f"Could not fast-forward '{branch}': {error}")
        return True

    def _create(self, path: str, branch: str, default: str, sink: LogSink) -> bool:
        _, error = self.git.create_branch(path, branch)
        if error is not None:
            sink.error(f"Could not create branch '{branch}': {error}")
            return False
        sink.info(f"Branch '{branch}' created from '{default}'.")
        return True
