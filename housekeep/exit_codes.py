"""
Exit codes for housekeep commands.

0 and 1 follow POSIX, 2 is click's usage error, 130 is Ctrl+C. The
remaining codes come from the 64-113 range left free for applications.
"""

from typing import Optional

SUCCESS = 0
GENERAL_ERROR = 1        # Unexpected failure, or every repository failed
USAGE_ERROR = 2          # Raised by click for bad arguments
NO_REPOS_FOUND = 64      # Discovery found no repository under the root
CONFIG_ERROR = 66        # Unreadable config or rule file
PARTIAL_SUCCESS = 71     # Some repositories succeeded, some failed
INTERRUPTED = 130


class CommandError(Exception):
    """An error that ends a command with its own exit code."""

    exit_code = GENERAL_ERROR

    def __init__(self, message: str, exit_code: Optional[int] = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class NoReposFoundError(CommandError):
    exit_code = NO_REPOS_FOUND

    def __init__(self, message: str = "No repositories found"):
        super().__init__(message)


class ConfigError(CommandError):
    exit_code = CONFIG_ERROR


class PartialSuccessError(CommandError):
    """Some repositories of a run failed; carries the counts for JSON output."""

    exit_code = PARTIAL_SUCCESS

    def __init__(self, message: str, succeeded: int = 0, failed: int = 0):
        super().__init__(message)
        self.succeeded = succeeded
        self.failed = failed


def exit_code_for(exc: BaseException) -> int:
    """Exit code a command ends with when `exc` escapes it."""
    if isinstance(exc, CommandError):
        return exc.exit_code
    if isinstance(exc, KeyboardInterrupt):
        return INTERRUPTED
    return GENERAL_ERROR
