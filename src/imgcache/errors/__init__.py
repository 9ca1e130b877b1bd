"""Error handling — the cache's exception taxonomy."""

from imgcache.errors.exceptions import (
    ConfigurationError,
    DecodeError,
    FetchError,
    ImageCacheError,
)

__all__ = [
    "ImageCacheError",
    "FetchError",
    "DecodeError",
    "ConfigurationError",
]
