"""imgcache — two-tier remote image cache with request coalescing."""

from imgcache.core import ImageCache
from imgcache.config.schema import CacheConfig
from imgcache.errors import ConfigurationError, DecodeError, FetchError, ImageCacheError
from imgcache.processing import DownsamplingProcessor
from imgcache.types import ImageHandle, ImageRequest, ImageSource, ResolveState

__all__ = [
    "ImageCache",
    "CacheConfig",
    "DownsamplingProcessor",
    "ImageHandle",
    "ImageRequest",
    "ImageSource",
    "ResolveState",
    "ImageCacheError",
    "FetchError",
    "DecodeError",
    "ConfigurationError",
]
