"""Cache subsystem — two-tier (memory + disk) with locator-derived keys."""

from imgcache.cache.keys import canonicalize_locator, generate_cache_key
from imgcache.cache.manager import CacheManager
from imgcache.cache.stats import CacheEntry, CacheStats, DiskRecord

__all__ = [
    "CacheManager",
    "CacheEntry",
    "CacheStats",
    "DiskRecord",
    "canonicalize_locator",
    "generate_cache_key",
]
