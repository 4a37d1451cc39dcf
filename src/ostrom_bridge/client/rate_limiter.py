"""
Fixed-window rate limiter shared by every outbound call to the Ostrom API.

The budget is reset to full capacity on a fixed tick, independent of when the
tokens were used. Calls that find the budget empty wait in FIFO order for the
next tick instead of failing.
"""

import asyncio
import functools
from collections import deque
from typing import Awaitable, Callable, Deque, Optional, TypeVar

from ostrom_bridge.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class RateLimiter:
    """Allows at most `capacity` operations to start per refill interval."""

    def __init__(
        self,
        capacity: int = 50,
        refill_interval: float = 60.0,
        on_depleted: Optional[Callable[[], None]] = None,
        on_full: Optional[Callable[[], None]] = None,
    ):
        if capacity < 1:
            raise ValueError("Capacity must be positive")

        self.capacity = capacity
        self.refill_interval = refill_interval
        self._remaining = capacity
        self._waiters: Deque[asyncio.Future] = deque()
        self._refill_task: Optional[asyncio.Task] = None
        self._on_depleted = on_depleted
        self._on_full = on_full

    @property
    def remaining(self) -> int:
        return self._remaining

    @property
    def queued(self) -> int:
        return sum(1 for waiter in self._waiters if not waiter.done())

    def wrap(self, operation: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        """Return a version of `operation` that only starts once a token is available."""

        @functools.wraps(operation)
        async def limited(*args, **kwargs) -> T:
            await self.acquire()
            return await operation(*args, **kwargs)

        return limited

    async def acquire(self) -> None:
        """Take one token, waiting for the next refill when the budget is exhausted."""
        self._ensure_refill_task()

        if self._remaining > 0 and not self._waiters:
            self._take()
            return

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        logger.debug("Rate limiter queued operation", queued=len(self._waiters))

        try:
            await waiter
        except asyncio.CancelledError:
            if waiter in self._waiters:
                self._waiters.remove(waiter)
            raise

    def refill(self) -> None:
        """Reset the budget to full capacity and release queued operations in order."""
        was_used = self._remaining < self.capacity
        self._remaining = self.capacity

        while self._waiters and self._remaining > 0:
            waiter = self._waiters.popleft()
            if waiter.done():
                continue
            self._take()
            waiter.set_result(None)

        if was_used and self._remaining == self.capacity:
            logger.debug("Rate limiter back at full capacity", capacity=self.capacity)
            if self._on_full:
                self._on_full()

    async def close(self) -> None:
        """Stop the refill tick."""
        if self._refill_task:
            self._refill_task.cancel()
            try:
                await self._refill_task
            except asyncio.CancelledError:
                pass
            self._refill_task = None

    def _take(self) -> None:
        self._remaining -= 1
        if self._remaining == 0:
            logger.warning("Rate limiter depleted", capacity=self.capacity, refill_interval=self.refill_interval)
            if self._on_depleted:
                self._on_depleted()

    def _ensure_refill_task(self) -> None:
        if self._refill_task is None or self._refill_task.done():
            self._refill_task = asyncio.get_running_loop().create_task(self._refill_loop())

    async def _refill_loop(self) -> None:
        while True:
            await asyncio.sleep(self.refill_interval)
            self.refill()
