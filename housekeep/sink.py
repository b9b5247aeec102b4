"""
Log sink for housekeep.

A LogSink is handed down through the mutation pipeline for one repository.
Components append structured entries instead of formatting strings for a
particular output, and the collected entries become the log lines of the
repository's WorkResult.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class LogLevel(Enum):
    """Log levels for sink entries."""
    DEBUG = 0
    INFO = 1
    WARNING = 2
    ERROR = 3
    SUCCESS = 4


_PREFIXES = {
    LogLevel.INFO: "[INFO] ",
    LogLevel.WARNING: "[WARNING] ",
    LogLevel.ERROR: "[ERROR] ",
}

_LOGGING_LEVELS = {
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.DEBUG,
    LogLevel.SUCCESS: logging.DEBUG,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.ERROR: logging.WARNING,
}


@dataclass(frozen=True)
class LogEntry:
    """One structured entry recorded by a pipeline component."""
    level: LogLevel
    message: str
    data: Dict[str, Any] = field(default_factory=dict)

    def format(self) -> str:
        """Render as a single plain-text log line."""
        return f"{_PREFIXES.get(self.level, '')}{self.message}"

    def to_dict(self) -> Dict[str, Any]:
        result = {'level': self.level.name.lower(), 'message': self.message}
        if self.data:
            result['data'] = self.data
        return result


class LogSink:
    """
    Collects LogEntry items for one unit of work.

    Entries are mirrored to the standard logger tagged with the repository
    name, and optionally forwarded to a listener as they arrive.

    Example:
        sink = LogSink("my-repo")
        sink.info("Current tag", tag="v1.2.0")
        sink.lines()  # ["[INFO] Current tag"]
    """

    def __init__(
        self,
        name: str = "",
        listener: Optional[Callable[[LogEntry], None]] = None
    ):
        self.name = name
        self.listener = listener
        self.entries: List[LogEntry] = []

    def log(self, level: LogLevel, message: str, **data: Any) -> LogEntry:
        entry = LogEntry(level=level, message=message, data=data)
        self.entries.append(entry)
        logger.log(_LOGGING_LEVELS[level], "%s: %s", self.name or "-", entry.format())
        if self.listener is not None:
            self.listener(entry)
        return entry

    def debug(self, message: str, **data: Any) -> LogEntry:
        return self.log(LogLevel.DEBUG, message, **data)

    def info(self, message: str, **data: Any) -> LogEntry:
        return self.log(LogLevel.INFO, message, **data)

    def warning(self, message: str, **data: Any) -> LogEntry:
        return self.log(LogLevel.WARNING, message, **data)

    def error(self, message: str, **data: Any) -> LogEntry:
        return self.log(LogLevel.ERROR, message, **data)

    def success(self, message: str, **data: Any) -> LogEntry:
        return self.log(LogLevel.SUCCESS, message, **data)

    @property
    def has_errors(self) -> bool:
        return any(e.level == LogLevel.ERROR for e in self.entries)

    def lines(self) -> List[str]:
        """All non-debug entries rendered as plain text lines."""
        return [e.format() for e in self.entries if e.level != LogLevel.DEBUG]
