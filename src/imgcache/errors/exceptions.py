"""Custom exception hierarchy for imgcache."""

from __future__ import annotations

from typing import Any


class ImageCacheError(Exception):
    """Base exception for all imgcache errors."""

    def __init__(self, message: str = "", **kwargs: Any) -> None:
        super().__init__(message)
        self.message = message


class FetchError(ImageCacheError):
    """Network-level failure while fetching an image.

    Examples: timeout, DNS/connection error, non-2xx status, unsupported scheme.
    Never retried by the cache; the caller decides whether to request again.
    """

    def __init__(
        self,
        message: str = "",
        locator: str | None = None,
        http_status: int | None = None,
        original: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.locator = locator
        self.http_status = http_status
        self.original = original


class DecodeError(ImageCacheError):
    """Fetched payload is not a decodable image. Nothing is cached."""

    def __init__(
        self,
        message: str = "",
        locator: str | None = None,
        original: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.locator = locator
        self.original = original


class ConfigurationError(ImageCacheError):
    """Invalid cache configuration — fail fast at configuration time."""

    def __init__(
        self,
        message: str = "",
        field: str | None = None,
        value: Any = None,
    ) -> None:
        super().__init__(message)
        self.field = field
        self.value = value
