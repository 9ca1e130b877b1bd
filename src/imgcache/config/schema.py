"""Pydantic model for cache configuration."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from imgcache.config.defaults import (
    DEFAULT_DISK_BYTE_LIMIT,
    DEFAULT_DOWNSAMPLE_HEIGHT,
    DEFAULT_DOWNSAMPLE_WIDTH,
    DEFAULT_EXPIRATION_SECONDS,
    DEFAULT_FETCH_TIMEOUT,
    DEFAULT_LOG_LEVEL,
    DEFAULT_MEMORY_BYTE_LIMIT,
    DEFAULT_MEMORY_COUNT_LIMIT,
)
from imgcache.errors.exceptions import ConfigurationError

DEFAULT_DISK_PATH = Path.home() / ".imgcache" / "cache.db"

# Fields that must be strictly positive for the cache to be usable
_POSITIVE_FIELDS = (
    "memory_byte_limit",
    "memory_count_limit",
    "disk_byte_limit",
    "expiration_seconds",
    "downsample_width",
    "downsample_height",
    "fetch_timeout",
)


class CacheConfig(BaseModel):
    """Process-wide bounds for both tiers plus fetch-path settings."""

    memory_byte_limit: int = DEFAULT_MEMORY_BYTE_LIMIT
    memory_count_limit: int = DEFAULT_MEMORY_COUNT_LIMIT
    disk_byte_limit: int = DEFAULT_DISK_BYTE_LIMIT
    expiration_seconds: float = DEFAULT_EXPIRATION_SECONDS
    downsample_width: int = DEFAULT_DOWNSAMPLE_WIDTH
    downsample_height: int = DEFAULT_DOWNSAMPLE_HEIGHT
    fetch_timeout: float = DEFAULT_FETCH_TIMEOUT
    disk_path: Path = Field(default=DEFAULT_DISK_PATH)
    log_level: str = DEFAULT_LOG_LEVEL

    @field_validator("log_level")
    @classmethod
    def check_log_level(cls, value: str) -> str:
        name = value.strip().upper()
        if not isinstance(logging.getLevelName(name), int):
            raise ValueError(f"unknown log level '{value}'")
        return name

    def validate_limits(self) -> CacheConfig:
        """Raise ConfigurationError if any limit is non-positive."""
        for name in _POSITIVE_FIELDS:
            value = getattr(self, name)
            if value <= 0:
                raise ConfigurationError(
                    f"'{name}' must be positive, got {value!r}",
                    field=name,
                    value=value,
                )
        return self


def build_cache_config(values: dict[str, Any]) -> CacheConfig:
    """Validate a merged config dict into a CacheConfig.

    Unknown keys are ignored. Type errors and non-positive
    limits both surface as ConfigurationError.
    """
    known = {k: v for k, v in values.items() if k in CacheConfig.model_fields and v is not None}
    try:
        config = CacheConfig(**known)
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(p) for p in first.get("loc", ()))
        raise ConfigurationError(
            f"Invalid cache configuration: {first.get('msg', e)}",
            field=field or None,
            value=first.get("input"),
        ) from e
    return config.validate_limits()
