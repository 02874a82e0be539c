"""Serialised, evenly spaced execution of outbound catalog requests."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FetchQueue:
    """Run request tasks one at a time, in arrival order, with a fixed gap.

    The gap is measured from the completion of one task to the start of the
    next. A failing task only fails its own caller; the queue keeps draining.
    """

    def __init__(self, delay_seconds: float = 0.25):
        if delay_seconds < 0:
            raise ValueError("delay_seconds must not be negative")
        self._delay = delay_seconds
        # asyncio.Lock hands ownership to waiters in FIFO order.
        self._lock = asyncio.Lock()
        self._next_start: float | None = None
        self._pending = 0

    @property
    def delay_seconds(self) -> float:
        return self._delay

    @property
    def pending(self) -> int:
        """Number of tasks waiting for or holding the queue."""

        return self._pending

    async def enqueue(self, task: Callable[[], Awaitable[T]]) -> T:
        """Schedule ``task`` and return its result once it has run."""

        self._pending += 1
        try:
            async with self._lock:
                loop = asyncio.get_running_loop()
                if self._next_start is not None:
                    wait = self._next_start - loop.time()
                    if wait > 0:
                        await asyncio.sleep(wait)
                try:
                    return await task()
                finally:
                    self._next_start = loop.time() + self._delay
        finally:
            self._pending -= 1
