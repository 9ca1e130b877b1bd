"""Package-level default configuration values."""

from __future__ import annotations

from typing import Any

_MB = 1024 * 1024

# Memory tier: ~50 images at ~2 MB each
DEFAULT_MEMORY_BYTE_LIMIT = 100 * _MB
DEFAULT_MEMORY_COUNT_LIMIT = 50

# Disk tier: ~150 images at ~2 MB each
DEFAULT_DISK_BYTE_LIMIT = 300 * _MB
DEFAULT_EXPIRATION_SECONDS = 7 * 24 * 3600

# Fetch path
DEFAULT_DOWNSAMPLE_WIDTH = 400
DEFAULT_DOWNSAMPLE_HEIGHT = 400
DEFAULT_FETCH_TIMEOUT = 15.0

# Avatar views render at this point size and downsample to twice it
DEFAULT_AVATAR_SIZE = 56

# Log level
DEFAULT_LOG_LEVEL = "WARNING"


def get_defaults() -> dict[str, Any]:
    """Return all defaults as a flat dictionary for merging."""
    return {
        "memory_byte_limit": DEFAULT_MEMORY_BYTE_LIMIT,
        "memory_count_limit": DEFAULT_MEMORY_COUNT_LIMIT,
        "disk_byte_limit": DEFAULT_DISK_BYTE_LIMIT,
        "expiration_seconds": DEFAULT_EXPIRATION_SECONDS,
        "downsample_width": DEFAULT_DOWNSAMPLE_WIDTH,
        "downsample_height": DEFAULT_DOWNSAMPLE_HEIGHT,
        "fetch_timeout": DEFAULT_FETCH_TIMEOUT,
        "log_level": DEFAULT_LOG_LEVEL,
    }
