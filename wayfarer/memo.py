"""
Bounded in-process memo cache for provider lookups.

Each provider client owns one MemoCache, created with the service and
swept by the CacheSweeper. Entries may hold None to remember that a
provider definitively had no record ("negative" results), so callers
check against the MISSING sentinel rather than truthiness.

Concurrent writers to the same key are last-write-wins. Entries are
re-derivations of the same external truth, so no stronger guarantee
is needed.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Hashable, Optional

logger = logging.getLogger(__name__)

MISSING = object()


@dataclass
class _MemoEntry:
    value: Any
    expires_at: Optional[float]
    stored_at: float = field(default_factory=time.monotonic)


class MemoCache:
    """
    Thread-safe key/value memo with optional TTL and a size bound.

    ttl_seconds=None keeps entries for the lifetime of the cache (until
    evicted for capacity or cleared).
    """

    def __init__(
        self,
        name: str,
        ttl_seconds: Optional[float] = None,
        max_entries: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock

        self._data: Dict[Hashable, _MemoEntry] = {}
        self._lock = threading.RLock()

        # Statistics
        self._hits = 0
        self._misses = 0

    def get(self, key: Hashable, default: Any = MISSING) -> Any:
        """Return the memoised value, or default when absent or expired."""
        now = self._clock()
        with self._lock:
            entry = self._data.get(key)
            if entry is not None and (entry.expires_at is None or now < entry.expires_at):
                self._hits += 1
                return entry.value
            self._misses += 1
        return default

    def set(self, key: Hashable, value: Any, ttl_seconds: Optional[float] = None) -> None:
        """Store a value (None is a valid negative result)."""
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        now = self._clock()
        entry = _MemoEntry(
            value=value,
            expires_at=None if ttl is None else now + ttl,
            stored_at=now,
        )
        with self._lock:
            self._data[key] = entry
            if len(self._data) > self.max_entries:
                self._evict_oldest()

    def _evict_oldest(self) -> None:
        """Remove oldest entries when over capacity."""
        entries = sorted(self._data.items(), key=lambda x: x[1].stored_at)
        # Remove oldest 10%
        to_remove = max(1, len(entries) // 10)
        for key, _ in entries[:to_remove]:
            del self._data[key]

    def sweep(self) -> int:
        """Drop expired entries. Returns count removed."""
        now = self._clock()
        with self._lock:
            expired = [
                key for key, entry in self._data.items()
                if entry.expires_at is not None and entry.expires_at <= now
            ]
            for key in expired:
                del self._data[key]
        if expired:
            logger.debug(f'{self.name}: swept {len(expired)} expired entries')
        return len(expired)

    def invalidate(self, key: Hashable) -> None:
        with self._lock:
            self._data.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    @property
    def stats(self) -> dict:
        """Get cache statistics."""
        with self._lock:
            total = self._hits + self._misses
            return {
                'name': self.name,
                'entries': len(self._data),
                'hits': self._hits,
                'misses': self._misses,
                'hit_rate': self._hits / total if total > 0 else 0,
            }
