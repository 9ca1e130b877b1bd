"""Shared models for imgcache."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Generator
from enum import StrEnum
from typing import Any

from PIL import Image
from pydantic import BaseModel, ConfigDict

# ── Enums ──


class ResolveState(StrEnum):
    PLACEHOLDER = "placeholder"
    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"
    CANCELLED = "cancelled"


class ImageSource(StrEnum):
    MEMORY = "memory"
    DISK = "disk"
    NETWORK = "network"


# ── Runtime models ──


class ImageHandle(BaseModel):
    """Transient reference to a decoded image handed to a view."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    locator: str
    key: str
    image: Image.Image
    source: ImageSource

    @property
    def size(self) -> tuple[int, int]:
        return self.image.size


class ImageRequest:
    """One view's interest in a locator.

    Starts as PLACEHOLDER (no locator), SUCCESS (memory hit) or PENDING. A
    pending request settles into SUCCESS or FAILURE when the shared load
    finishes, or CANCELLED if this requester drops out first. Awaiting the
    request waits for it to settle and returns it; it never raises for
    fetch or decode failures, those are exposed via ``error``.
    """

    def __init__(
        self,
        locator: str | None,
        state: ResolveState,
        handle: ImageHandle | None = None,
        waiter: asyncio.Future[ImageHandle] | None = None,
    ) -> None:
        self.locator = locator
        self.state = state
        self.handle = handle
        self.error: BaseException | None = None
        self._waiter = waiter
        self._callbacks: list[Callable[[ImageRequest], Any]] = []
        if waiter is not None:
            waiter.add_done_callback(self._settle)

    @classmethod
    def placeholder(cls, locator: str | None = None) -> ImageRequest:
        return cls(locator, ResolveState.PLACEHOLDER)

    @classmethod
    def succeeded(cls, handle: ImageHandle) -> ImageRequest:
        return cls(handle.locator, ResolveState.SUCCESS, handle=handle)

    @classmethod
    def pending(cls, locator: str, waiter: asyncio.Future[ImageHandle]) -> ImageRequest:
        return cls(locator, ResolveState.PENDING, waiter=waiter)

    @property
    def image(self) -> Image.Image | None:
        return self.handle.image if self.handle else None

    def done(self) -> bool:
        return self.state is not ResolveState.PENDING

    def cancel(self) -> bool:
        """Drop this requester's interest. The shared fetch is left running."""
        if self._waiter is None or self._waiter.done():
            return False
        return self._waiter.cancel()

    def add_done_callback(self, fn: Callable[[ImageRequest], Any]) -> None:
        if self.done():
            fn(self)
        else:
            self._callbacks.append(fn)

    def __await__(self) -> Generator[Any, None, ImageRequest]:
        return self._wait().__await__()

    async def _wait(self) -> ImageRequest:
        if self._waiter is not None and not self._waiter.done():
            await asyncio.wait([self._waiter])
        if self._waiter is not None:
            self._settle(self._waiter)
        return self

    def _settle(self, waiter: asyncio.Future[ImageHandle]) -> None:
        if self.state is not ResolveState.PENDING:
            return
        if waiter.cancelled():
            self.state = ResolveState.CANCELLED
        elif waiter.exception() is not None:
            self.state = ResolveState.FAILURE
            self.error = waiter.exception()
        else:
            self.state = ResolveState.SUCCESS
            self.handle = waiter.result()
        callbacks, self._callbacks = self._callbacks, []
        for fn in callbacks:
            fn(self)

    def __repr__(self) -> str:
        return f"ImageRequest({self.locator!r}, state={self.state.value})"
