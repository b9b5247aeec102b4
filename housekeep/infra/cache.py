"""
Expiring cache infrastructure for housekeep.

Provides a small in-memory key/value cache with:
- Per-entry expiry
- Stale reads (the caller decides whether a stale value is usable)
- Thread-safe operations

The cache is owned by whoever creates it; nothing is process-wide.
"""

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, Optional, Tuple


@dataclass
class _Entry:
    value: Any
    expires_at: float


class ExpiringCache:
    """
    Thread-safe cache whose entries go stale after an expiry.

    Example:
        cache = ExpiringCache()
        cache.put(("owasp", "/repo", "abc123"), report, expiry=3600)
        report, fresh = cache.get(("owasp", "/repo", "abc123"))
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        """
        Initialize ExpiringCache.

        Args:
            clock: Monotonic time source in seconds (injectable for tests)
        """
        self._clock = clock or time.monotonic
        self._lock = threading.Lock()
        self._entries: Dict[Hashable, _Entry] = {}

    def get(self, key: Hashable) -> Tuple[Optional[Any], bool]:
        """
        Look up a key.

        Returns:
            (value, fresh). (None, False) when the key is absent;
            (value, False) when present but expired.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None, False
            return entry.value, self._clock() < entry.expires_at

    def put(self, key: Hashable, value: Any, expiry: float) -> None:
        """Store a value that stays fresh for `expiry` seconds."""
        with self._lock:
            self._entries[key] = _Entry(value=value, expires_at=self._clock() + expiry)

    def invalidate(self, key: Hashable) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
