"""Top-level entry point: the ImageCache facade used by views."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from concurrent.futures import Future
from typing import Any

import httpx
from PIL import Image

from imgcache.cache.keys import canonicalize_locator, generate_cache_key
from imgcache.cache.manager import CacheManager
from imgcache.cache.stats import CacheStats
from imgcache.config.defaults import DEFAULT_AVATAR_SIZE
from imgcache.config.hierarchy import load_config_hierarchy
from imgcache.config.schema import CacheConfig, build_cache_config
from imgcache.errors.exceptions import DecodeError, FetchError
from imgcache.fetch.client import ImageFetcher
from imgcache.fetch.coalescer import Coalescer
from imgcache.processing import DownsamplingProcessor, avatar_processor, decode_image, encode_image
from imgcache.types import ImageHandle, ImageRequest, ImageSource

logger = logging.getLogger(__name__)


class ImageCache:
    """Resolves remote image locators through a memory + disk cache.

    Construct one instance at process start and pass it to every consumer.
    Concurrent requests for the same locator share a single network fetch;
    concurrent requests for the same locator and downsampling target share
    the whole load (disk lookup, fetch, decode, insertion).
    """

    def __init__(
        self,
        config: CacheConfig | None = None,
        fetcher: ImageFetcher | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = (config or CacheConfig()).validate_limits()
        self._manager = CacheManager.from_config(self._config, clock=clock)
        self._fetcher = fetcher or ImageFetcher(
            timeout=self._config.fetch_timeout, transport=transport
        )
        self._default_processor = DownsamplingProcessor(
            self._config.downsample_width, self._config.downsample_height
        )
        self._fetches: Coalescer[bytes] = Coalescer("fetch")
        self._loads: Coalescer[ImageHandle] = Coalescer("load")
        self._failures = 0
        self._log_configuration()
        self._manager.sweep_expired()

    @classmethod
    def from_config_hierarchy(cls, **overrides: Any) -> ImageCache:
        """Build an ImageCache from defaults, YAML files, env vars and overrides."""
        return cls(config=build_cache_config(load_config_hierarchy(**overrides)))

    @property
    def config(self) -> CacheConfig:
        return self._config

    @property
    def manager(self) -> CacheManager:
        return self._manager

    @property
    def default_processor(self) -> DownsamplingProcessor:
        return self._default_processor

    # ── Resolution ──

    def request(
        self,
        locator: str | None,
        target: DownsamplingProcessor | None = None,
    ) -> ImageRequest:
        """Start resolving a locator.

        Returns PLACEHOLDER for a missing locator, SUCCESS on a memory hit
        (without suspending), otherwise a PENDING request backed by a shared
        load. The pending path needs a running event loop.
        """
        if locator is None or not locator.strip():
            return ImageRequest.placeholder(locator)

        processor = target or self._default_processor
        canonical = canonicalize_locator(locator)
        key = generate_cache_key(canonical, processor.identifier)

        entry = self._manager.lookup_memory(key)
        if entry is not None:
            logger.debug("Memory hit for %s", canonical)
            return ImageRequest.succeeded(
                ImageHandle(locator=canonical, key=key, image=entry.image, source=ImageSource.MEMORY)
            )

        waiter = asyncio.ensure_future(
            self._loads.run(key, lambda: self._load(canonical, key, processor))
        )
        return ImageRequest.pending(canonical, waiter)

    async def resolve(
        self,
        locator: str | None,
        target: DownsamplingProcessor | None = None,
    ) -> ImageHandle | None:
        """Resolve a locator to an image handle.

        Returns None when there is no locator (show the placeholder). Raises
        FetchError or DecodeError on failure; nothing is cached in that case.
        """
        result = await self.request(locator, target)
        if result.error is not None:
            raise result.error
        return result.handle

    async def _load(
        self, locator: str, key: str, processor: DownsamplingProcessor
    ) -> ImageHandle:
        # Loads that straddle a clear must not repopulate either tier
        generation = self._manager.generation
        entry = await self._manager.lookup_disk(key, generation)
        if entry is not None:
            return ImageHandle(locator=locator, key=key, image=entry.image, source=ImageSource.DISK)

        try:
            data = await self._fetches.run(locator, lambda: self._fetcher.fetch(locator))
            image = decode_image(data, locator)
            processed, encoded = self._transform(image, processor, locator)
        except (FetchError, DecodeError) as e:
            self._failures += 1
            logger.warning("Image load failed for %s: %s", locator, e.message)
            raise

        await self._manager.store(key, locator, processed, encoded, generation)
        logger.debug(
            "Image loaded: %s (%dx%d, %d bytes on disk)",
            locator, processed.width, processed.height, len(encoded),
        )
        return ImageHandle(locator=locator, key=key, image=processed, source=ImageSource.NETWORK)

    @staticmethod
    def _transform(
        image: Image.Image, processor: DownsamplingProcessor, locator: str
    ) -> tuple[Image.Image, bytes]:
        """Downsample and serialize; Pillow failures here count as decode failures."""
        try:
            processed = processor.process(image)
            return processed, encode_image(processed, image.format)
        except (OSError, ValueError) as e:
            raise DecodeError(
                f"Cannot process image: {e}", locator=locator, original=e
            ) from e

    # ── Configuration and invalidation ──

    def configure(self, config: CacheConfig) -> Future[int]:
        """Apply new process-wide bounds.

        Existing entries are not evicted until the next insertion needs room.
        Returns the future of the expiration sweep scheduled on the disk tier.
        """
        self._config = config.validate_limits()
        self._default_processor = DownsamplingProcessor(
            config.downsample_width, config.downsample_height
        )
        self._fetcher.timeout = config.fetch_timeout
        self._log_configuration()
        return self._manager.configure(config)

    def clear_all(self) -> Future[None]:
        """Empty memory synchronously and disk in the background (e.g. on logout).

        All statistics counters start over from zero.
        """
        future = self._manager.clear()
        self._fetches.reset_counters()
        self._loads.reset_counters()
        self._failures = 0
        logger.info("Image cache cleared (disk clearing in background)")
        return future

    def clear_memory_only(self) -> None:
        """Empty the memory tier, e.g. on a low-memory signal."""
        self._manager.clear_memory()
        logger.info("Memory cache cleared")

    def sweep_expired(self) -> Future[int]:
        return self._manager.sweep_expired()

    @staticmethod
    def avatar_target(size: float = DEFAULT_AVATAR_SIZE, scale: float = 1.0) -> DownsamplingProcessor:
        return avatar_processor(size, scale)

    def stats(self) -> CacheStats:
        return self._manager.stats().model_copy(
            update={
                "fetches": self._fetches.started,
                "coalesced": self._fetches.coalesced + self._loads.coalesced,
                "failures": self._failures,
            }
        )

    # ── Lifecycle ──

    async def close(self) -> None:
        await self._loads.wait_all()
        await self._fetcher.close()
        self._manager.close()

    async def __aenter__(self) -> ImageCache:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _log_configuration(self) -> None:
        cfg = self._config
        logger.info(
            "Image cache configured: memory %.0fMB / %d images, disk %.0fMB, expiration %.1f days",
            cfg.memory_byte_limit / (1024 * 1024),
            cfg.memory_count_limit,
            cfg.disk_byte_limit / (1024 * 1024),
            cfg.expiration_seconds / 86400,
        )
