"""
Infrastructure layer for housekeep.

Contains abstractions for external systems:
- GitClient: Git command execution
- BuildClient: Verification build execution
- ExpiringCache: Caller-owned cache with expiry

These provide clean interfaces that can be mocked for testing.
"""

from .git_client import GitClient
from .build_client import BuildClient, BuildOutput, extract_warnings
from .cache import ExpiringCache

__all__ = [
    'GitClient',
    'BuildClient',
    'BuildOutput',
    'extract_warnings',
    'ExpiringCache',
]
