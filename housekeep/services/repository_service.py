"""
Repository discovery for housekeep.

Finds the git repositories a run should process below a root directory.
A repository's absolute path is its identity.
"""

from typing import Iterable, List, Optional, Set
from pathlib import Path
import logging
import os

from ..infra import GitClient

logger = logging.getLogger(__name__)


# Directories never searched for repositories
EXCLUDE_DIRS = {
    'node_modules', '.git', '__pycache__', 'venv', '.venv', 'dist', 'target'
}


class RepositoryService:
    """
    Service for discovering repositories.

    Example:
        service = RepositoryService()
        for path in service.discover("/home/user/projects"):
            print(path)
    """

    def __init__(self, git_client: Optional[GitClient] = None):
        """
        Initialize RepositoryService.

        Args:
            git_client: Git client instance (creates default if None)
        """
        self.git = git_client or GitClient()

    def discover(
        self,
        root: str,
        excluded: Iterable[str] = (),
        single: bool = False
    ) -> List[str]:
        """
        Discover git repositories under a root.

        A root that is itself a repository is returned on its own. Found
        repositories are not searched for nested ones.

        Args:
            root: Directory to search
            excluded: Directory names to skip
            single: Only accept the root itself

        Returns:
            Sorted absolute repository paths
        """
        path = str(Path(os.path.expanduser(root)).resolve())
        if not os.path.isdir(path):
            logger.debug(f"Not a directory: {path}")
            return []

        if single:
            return [path] if self.git.is_git_repo(path) else []

        exclude = set(excluded) | EXCLUDE_DIRS
        found: Set[str] = set()
        self._discover_path(path, exclude, found)
        return sorted(found)

    def _discover_path(self, path: str, exclude: Set[str], found: Set[str]) -> None:
        if self.git.is_git_repo(path):
            found.add(path)
            return

        try:
            entries = list(os.scandir(path))
        except PermissionError:
            logger.debug(f"Permission denied: {path}")
            return

        for entry in entries:
            if not entry.is_dir(follow_symlinks=False):
                continue
            name = entry.name
            if name.startswith('.') or name in exclude:
                continue
            self._discover_path(entry.path, exclude, found)
