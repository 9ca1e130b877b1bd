"""In-flight request coalescing — at most one running task per key."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Coalescer(Generic[T]):
    """Maps a key to its single in-flight task.

    Callers await the shared task through ``asyncio.shield``: cancelling one
    caller drops only that caller's interest, the task keeps running for the
    others. The map entry is removed as soon as the task finishes, so a later
    request after completion (or failure) starts a fresh task.
    """

    def __init__(self, name: str = "task") -> None:
        self._name = name
        self._in_flight: dict[str, asyncio.Task[T]] = {}
        self._started = 0
        self._coalesced = 0

    async def run(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        """Join the in-flight task for ``key``, starting one from ``factory`` if none."""
        return await asyncio.shield(self.join(key, factory))

    def join(self, key: str, factory: Callable[[], Awaitable[T]]) -> asyncio.Task[T]:
        """Return the in-flight task for ``key``, starting it if needed.

        Must be called from a running event loop.
        """
        task = self._in_flight.get(key)
        if task is not None:
            self._coalesced += 1
            logger.debug("Coalesced %s request for %s", self._name, key)
            return task

        task = asyncio.ensure_future(factory())
        self._in_flight[key] = task
        task.add_done_callback(lambda t, k=key: self._forget(k, t))
        self._started += 1
        return task

    def is_in_flight(self, key: str) -> bool:
        return key in self._in_flight

    @property
    def in_flight_count(self) -> int:
        return len(self._in_flight)

    @property
    def started(self) -> int:
        return self._started

    @property
    def coalesced(self) -> int:
        return self._coalesced

    def reset_counters(self) -> None:
        """Zero the started and coalesced counters. In-flight tasks are untouched."""
        self._started = 0
        self._coalesced = 0

    async def wait_all(self) -> None:
        """Wait for every in-flight task to settle. Errors are not raised."""
        if self._in_flight:
            await asyncio.gather(*self._in_flight.values(), return_exceptions=True)

    def _forget(self, key: str, task: asyncio.Task[T]) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        # Mark an orphaned failure as retrieved so it is not reported as unhandled
        if not task.cancelled():
            task.exception()
