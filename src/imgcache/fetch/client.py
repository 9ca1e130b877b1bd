"""Async HTTP fetcher for remote images."""

from __future__ import annotations

import logging
from urllib.parse import urlsplit

import httpx

from imgcache.config.defaults import DEFAULT_FETCH_TIMEOUT
from imgcache.errors.exceptions import FetchError

logger = logging.getLogger(__name__)

_ALLOWED_SCHEMES = {"http", "https"}


class ImageFetcher:
    """Fetches image bytes with a plain HTTP GET.

    Failures are classified into FetchError and never retried here.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_FETCH_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            headers={"Accept": "image/avif,image/webp,image/png,image/*,*/*;q=0.8"},
            transport=transport,
        )

    @property
    def timeout(self) -> float | None:
        return self._client.timeout.read

    @timeout.setter
    def timeout(self, value: float) -> None:
        self._client.timeout = httpx.Timeout(value)

    async def fetch(self, locator: str) -> bytes:
        """GET the locator and return the response body."""
        scheme = urlsplit(locator).scheme.lower()
        if scheme not in _ALLOWED_SCHEMES:
            raise FetchError(f"Unsupported scheme '{scheme}' in {locator}", locator=locator)

        try:
            response = await self._client.get(locator)
        except httpx.TimeoutException as e:
            raise FetchError(f"Timed out fetching {locator}", locator=locator, original=e) from e
        except httpx.HTTPError as e:
            raise FetchError(f"Failed to fetch {locator}: {e}", locator=locator, original=e) from e

        if not response.is_success:
            raise FetchError(
                f"HTTP {response.status_code} fetching {locator}",
                locator=locator,
                http_status=response.status_code,
            )
        logger.debug("Fetched %s (%d bytes)", locator, len(response.content))
        return response.content

    async def close(self) -> None:
        await self._client.aclose()
