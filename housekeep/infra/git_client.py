"""
Git client infrastructure for housekeep.

Provides a clean abstraction over git command execution.
All git operations go through this client, making them:
- Easy to mock for testing
- Consistent in error handling
- Isolated from business logic

Every call blocks the calling worker until git exits.
"""

import re
import subprocess
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple
import logging

from packaging.version import InvalidVersion, Version

logger = logging.getLogger(__name__)

DEFAULT_BRANCH_CANDIDATES = ("main", "master")


def tag_sort_key(tag: str):
    """Version-aware sort key for a tag name.

    PEP 440 parseable tags (after dropping a leading prefix such as 'v')
    sort above tags that only carry loose numbers.
    """
    cleaned = re.sub(r'^[^\d]+', '', tag)
    try:
        return (1, Version(cleaned), tag)
    except InvalidVersion:
        numbers = tuple(int(n) for n in re.findall(r'\d+', tag))
        return (0, numbers, tag)


class GitClient:
    """
    Abstraction over git commands.

    Provides methods for common git operations with consistent
    error handling and return types.

    Example:
        client = GitClient()
        output, error = client.run("/path/to/repo", "status", "--porcelain")
        if error is None and not output:
            print("Repository is clean")
    """

    def __init__(self, timeout: Optional[int] = 300, executable: str = "git"):
        """
        Initialize GitClient.

        Args:
            timeout: Command timeout in seconds (default: 300, None for no limit)
            executable: git binary to invoke
        """
        self.timeout = timeout
        self.executable = executable

    def run(self, path: str, *args: str) -> Tuple[str, Optional[str]]:
        """
        Run a git command in a repository.

        Args:
            path: Working directory
            *args: git arguments

        Returns:
            Tuple of (combined stdout/stderr, error). error is None on
            success, otherwise a message with the exit status and output.
        """
        cmd = [self.executable, *args]
        try:
            result = subprocess.run(
                cmd,
                cwd=path,
                capture_output=True,
                text=True,
                timeout=self.timeout
            )
        except subprocess.TimeoutExpired:
            logger.warning(f"Git command timed out: {' '.join(cmd)}")
            return "", f"timed out after {self.timeout}s"
        except OSError as e:
            logger.error(f"Git command failed: {' '.join(cmd)} - {e}")
            return "", str(e)

        output = (result.stdout or "") + (result.stderr or "")
        output = output.strip()
        if result.returncode != 0:
            return output, f"exit status {result.returncode}: {output}"
        return output, None

    def is_git_repo(self, path: str) -> bool:
        """Check if path is a git repository."""
        git_dir = Path(path) / ".git"
        return git_dir.is_dir()

    def _query(self, path: str, *args: str) -> Optional[str]:
        """Run a read-only git command, returning stdout or None on failure."""
        cmd = [self.executable, *args]
        try:
            result = subprocess.run(
                cmd,
                cwd=path,
                capture_output=True,
                text=True,
                timeout=self.timeout
            )
        except (subprocess.TimeoutExpired, OSError) as e:
            logger.debug(f"Git query failed: {' '.join(cmd)} - {e}")
            return None
        if result.returncode != 0:
            return None
        return result.stdout.strip()

    def tags(self, path: str) -> List[str]:
        """List tag names, highest version first."""
        output = self._query(path, "tag", "--list")
        if not output:
            return []
        names = [line.strip() for line in output.splitlines() if line.strip()]
        return sorted(names, key=tag_sort_key, reverse=True)

    def latest_tag(self, path: str) -> Optional[str]:
        """Get the highest tag under version-aware ordering, or None if there are no tags."""
        tags = self.tags(path)
        return tags[0] if tags else None

    def branch_exists(self, path: str, branch: str) -> bool:
        """Check whether a local branch exists."""
        _, error = self.run(path, "show-ref", "--verify", "--quiet", f"refs/heads/{branch}")
        return error is None

    def current_branch(self, path: str) -> Optional[str]:
        """Get current branch name."""
        return self._query(path, "rev-parse", "--abbrev-ref", "HEAD") or None

    def default_branch(self, path: str, remote: str = "origin") -> Optional[str]:
        """
        Discover the repository's default branch.

        Uses the remote's HEAD symbolic ref when available, then falls back
        to a local main/master branch, then to the current branch.
        """
        ref = self._query(path, "symbolic-ref", "--quiet", "--short", f"refs/remotes/{remote}/HEAD")
        if ref and ref.startswith(f"{remote}/"):
            return ref[len(remote) + 1:]

        for candidate in DEFAULT_BRANCH_CANDIDATES:
            if self.branch_exists(path, candidate):
                return candidate

        return self.current_branch(path)

    def has_upstream(self, path: str, branch: str) -> bool:
        """Check whether a branch has an upstream configured."""
        return self._query(path, "rev-parse", "--abbrev-ref", f"{branch}@{{upstream}}") is not None

    def last_commit_date(self, path: str, ref: str = "HEAD") -> Optional[datetime]:
        """Committer date of the most recent commit on ref (timezone-aware)."""
        output = self._query(path, "log", "-1", "--format=%cI", ref)
        if not output:
            return None
        try:
            return datetime.fromisoformat(output.replace('Z', '+00:00'))
        except ValueError:
            logger.debug(f"Unparseable commit date for {ref}: {output!r}")
            return None

    def last_commit_day(self, path: str) -> Optional[str]:
        """Short date (YYYY-MM-DD) of the last commit."""
        return self._query(path, "log", "-1", "--format=%cd", "--date=short") or None

    def head_commit(self, path: str) -> Optional[str]:
        return self._query(path, "rev-parse", "HEAD") or None

    def checkout(self, path: str, branch: str) -> Tuple[str, Optional[str]]:
        return self.run(path, "checkout", branch)

    def create_branch(self, path: str, branch: str) -> Tuple[str, Optional[str]]:
        """Create a branch from the current HEAD and switch to it."""
        return self.run(path, "checkout", "-b", branch)

    def delete_branch(self, path: str, branch: str) -> Tuple[str, Optional[str]]:
        return self.run(path, "branch", "-D", branch)

    def fetch(self, path: str, prune: bool = True) -> Tuple[str, Optional[str]]:
        args = ["fetch", "-p"] if prune else ["fetch"]
        return self.run(path, *args)

    def pull(self, path: str, ff_only: bool = False) -> Tuple[str, Optional[str]]:
        args = ["pull", "--ff-only"] if ff_only else ["pull"]
        return self.run(path, *args)

    def add(self, path: str, *files: str) -> Tuple[str, Optional[str]]:
        return self.run(path, "add", "--", *files)

    def commit(self, path: str, message: str) -> Tuple[str, Optional[str]]:
        return self.run(path, "commit", "-m", message)
