"""Memory tier: in-process LRU cache bounded by byte cost and entry count."""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable

from imgcache.cache.stats import CacheEntry
from imgcache.config.defaults import DEFAULT_MEMORY_BYTE_LIMIT, DEFAULT_MEMORY_COUNT_LIMIT

logger = logging.getLogger(__name__)


class MemoryCache:
    """In-memory LRU cache with cost- and count-based eviction.

    Entries are kept in access order (oldest first), so the head of the
    OrderedDict is always the least recently accessed entry.
    """

    def __init__(
        self,
        max_bytes: int = DEFAULT_MEMORY_BYTE_LIMIT,
        max_count: int = DEFAULT_MEMORY_COUNT_LIMIT,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store: OrderedDict[str, CacheEntry] = OrderedDict()
        self._max_bytes = max_bytes
        self._max_count = max_count
        self._current_bytes = 0
        self._clock = clock
        self._lock = threading.RLock()

    def get(self, key: str) -> CacheEntry | None:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            entry.last_accessed = self._clock()
            self._store.move_to_end(key)
            return entry

    def set(self, key: str, entry: CacheEntry) -> bool:
        """Insert an entry, evicting LRU entries until it fits.

        Returns False without storing anything if the entry alone exceeds the
        byte limit.
        """
        cost = entry.cost
        with self._lock:
            if key in self._store:
                self._remove(key)
            if cost > self._max_bytes:
                logger.debug(
                    "Entry %s (%d bytes) exceeds memory limit %d, not cached",
                    key, cost, self._max_bytes,
                )
                return False
            while self._store and (
                self._current_bytes + cost > self._max_bytes
                or len(self._store) + 1 > self._max_count
            ):
                self._evict_oldest()
            entry.last_accessed = self._clock()
            self._store[key] = entry
            self._current_bytes += cost
            return True

    def remove(self, key: str) -> bool:
        with self._lock:
            return self._remove(key)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()
            self._current_bytes = 0

    def reconfigure(self, max_bytes: int, max_count: int) -> None:
        """Change the limits. Enforced lazily at the next insertion."""
        with self._lock:
            self._max_bytes = max_bytes
            self._max_count = max_count

    @property
    def max_bytes(self) -> int:
        return self._max_bytes

    @property
    def max_count(self) -> int:
        return self._max_count

    @property
    def size_bytes(self) -> int:
        return self._current_bytes

    def keys(self) -> list[str]:
        """Keys in eviction order, least recently used first."""
        with self._lock:
            return list(self._store)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._store

    def __len__(self) -> int:
        return len(self._store)

    def _remove(self, key: str) -> bool:
        entry = self._store.pop(key, None)
        if entry is None:
            return False
        self._current_bytes -= entry.cost
        return True

    def _evict_oldest(self) -> None:
        key, entry = self._store.popitem(last=False)
        self._current_bytes -= entry.cost
        logger.debug("Evicted %s from memory tier (%d bytes)", key, entry.cost)
