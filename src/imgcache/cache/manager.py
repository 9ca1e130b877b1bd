"""Cache manager — orchestrates the memory and disk tiers."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Any, TypeVar

from PIL import Image

from imgcache.cache.disk import DiskCache
from imgcache.cache.memory import MemoryCache
from imgcache.cache.stats import CacheEntry, CacheStats, DiskRecord
from imgcache.config.defaults import (
    DEFAULT_DISK_BYTE_LIMIT,
    DEFAULT_EXPIRATION_SECONDS,
    DEFAULT_MEMORY_BYTE_LIMIT,
    DEFAULT_MEMORY_COUNT_LIMIT,
)
from imgcache.config.schema import CacheConfig
from imgcache.errors.exceptions import DecodeError
from imgcache.processing import decode_image

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CacheManager:
    """Two-tier cache: memory first, then disk (SQLite) with promotion.

    All disk work runs on a single worker thread, so disk operations execute
    in submission order and never block the event loop. A clear submitted
    before a read is always applied before that read.
    """

    def __init__(
        self,
        memory_byte_limit: int = DEFAULT_MEMORY_BYTE_LIMIT,
        memory_count_limit: int = DEFAULT_MEMORY_COUNT_LIMIT,
        disk_byte_limit: int = DEFAULT_DISK_BYTE_LIMIT,
        expiration_seconds: float = DEFAULT_EXPIRATION_SECONDS,
        disk_path: Path | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._clock = clock
        self._memory = MemoryCache(
            max_bytes=memory_byte_limit, max_count=memory_count_limit, clock=clock
        )
        self._disk = DiskCache(
            db_path=disk_path,
            max_bytes=disk_byte_limit,
            expiration_seconds=expiration_seconds,
            clock=clock,
        )
        self._disk_worker = ThreadPoolExecutor(max_workers=1, thread_name_prefix="imgcache-disk")
        self._stats = CacheStats()
        self._generation = 0

    @classmethod
    def from_config(
        cls, config: CacheConfig, clock: Callable[[], float] = time.time
    ) -> CacheManager:
        return cls(
            memory_byte_limit=config.memory_byte_limit,
            memory_count_limit=config.memory_count_limit,
            disk_byte_limit=config.disk_byte_limit,
            expiration_seconds=config.expiration_seconds,
            disk_path=config.disk_path,
            clock=clock,
        )

    @property
    def memory(self) -> MemoryCache:
        return self._memory

    @property
    def disk(self) -> DiskCache:
        return self._disk

    @property
    def generation(self) -> int:
        """Bumped by every clear. Inserts tagged with an older value are dropped."""
        return self._generation

    def lookup_memory(self, key: str) -> CacheEntry | None:
        """Memory-tier lookup. Never suspends."""
        entry = self._memory.get(key)
        if entry is not None:
            self._stats.memory_hits += 1
        return entry

    async def lookup(self, key: str) -> CacheEntry | None:
        """Look up a key: memory first, then disk with promotion into memory."""
        entry = self.lookup_memory(key)
        if entry is not None:
            return entry
        return await self.lookup_disk(key)

    async def lookup_disk(self, key: str, generation: int | None = None) -> CacheEntry | None:
        """Disk-tier lookup; a hit is decoded and promoted into memory.

        A record read before a clear that has since happened counts as a miss.
        """
        if generation is None:
            generation = self._generation
        record = await self._run_on_disk(self._disk.get, key)
        if record is not None and generation != self._generation:
            logger.debug("Discarding disk read of %s made before a clear", record.locator or key)
            record = None
        if record is None:
            self._stats.misses += 1
            return None

        try:
            image = decode_image(record.data, record.locator)
        except DecodeError:
            logger.warning("Corrupt disk entry for %s, dropping it", record.locator or key)
            await self._run_on_disk(self._disk.remove, key)
            self._stats.misses += 1
            return None

        now = self._clock()
        entry = CacheEntry(
            key=key, locator=record.locator, image=image, created_at=now, last_accessed=now
        )
        self._memory.set(key, entry)
        self._stats.disk_hits += 1
        logger.debug("Promoted %s from disk to memory", record.locator or key)
        return entry

    async def store(
        self,
        key: str,
        locator: str,
        image: Image.Image,
        data: bytes,
        generation: int | None = None,
    ) -> CacheEntry:
        """Insert a decoded image into memory and its serialized form into disk.

        When ``generation`` predates the latest clear, nothing is inserted.
        """
        now = self._clock()
        entry = CacheEntry(key=key, locator=locator, image=image, created_at=now, last_accessed=now)
        if generation is not None and generation != self._generation:
            logger.debug("Not caching %s, loaded across a clear", locator)
            return entry
        self._memory.set(key, entry)
        record = DiskRecord(key=key, locator=locator, data=data, created_at=now, last_accessed=now)
        await self._run_on_disk(self._disk.set, key, record)
        return entry

    def configure(self, config: CacheConfig) -> Future[int]:
        """Apply new bounds to both tiers and schedule an expiration sweep.

        Bounds are enforced at the next insertion; nothing is evicted here.
        """
        self._memory.reconfigure(config.memory_byte_limit, config.memory_count_limit)
        self._disk.reconfigure(config.disk_byte_limit, config.expiration_seconds)
        return self.sweep_expired()

    def clear(self) -> Future[None]:
        """Empty memory now; empty disk in the background."""
        self._generation += 1
        self._memory.clear()
        self._stats = CacheStats()
        return self._disk_worker.submit(self._disk.clear)

    def clear_memory(self) -> None:
        self._memory.clear()

    def sweep_expired(self) -> Future[int]:
        return self._disk_worker.submit(self._disk.sweep_expired)

    def stats(self) -> CacheStats:
        """Return aggregate cache statistics."""
        return self._stats.model_copy(
            update={
                "memory_entries": len(self._memory),
                "memory_bytes": self._memory.size_bytes,
                "disk_entries": self._disk.entry_count,
                "disk_bytes": self._disk.size_bytes,
            }
        )

    def close(self) -> None:
        self._disk_worker.shutdown(wait=True)
        self._disk.close()

    async def _run_on_disk(self, fn: Callable[..., T], *args: Any) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._disk_worker, fn, *args)
