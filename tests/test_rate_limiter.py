"""
Unit tests for the fixed-window rate limiter.
"""

import asyncio
from unittest.mock import MagicMock

import pytest

from ostrom_bridge.client.rate_limiter import RateLimiter


async def _settle():
    """Let queued tasks run until they block again."""
    for _ in range(5):
        await asyncio.sleep(0)


class TestRateLimiter:
    """Tests for budget accounting and queueing."""

    def test_capacity_must_be_positive(self):
        with pytest.raises(ValueError):
            RateLimiter(capacity=0)

    @pytest.mark.asyncio
    async def test_operations_start_immediately_within_budget(self):
        limiter = RateLimiter(capacity=3, refill_interval=3600)
        operation = MagicMock()

        async def call():
            operation()
            return "done"

        limited = limiter.wrap(call)
        results = [await limited() for _ in range(3)]

        assert results == ["done", "done", "done"]
        assert operation.call_count == 3
        assert limiter.remaining == 0
        await limiter.close()

    @pytest.mark.asyncio
    async def test_operation_beyond_budget_waits_for_refill(self):
        """The K+1th operation only starts after the window resets."""
        limiter = RateLimiter(capacity=2, refill_interval=3600)
        started = []

        async def call(index):
            started.append(index)

        limited = limiter.wrap(call)
        tasks = [asyncio.create_task(limited(index)) for index in range(3)]
        await _settle()

        assert started == [0, 1]
        assert limiter.queued == 1

        limiter.refill()
        await asyncio.gather(*tasks)

        assert started == [0, 1, 2]
        assert limiter.remaining == 1
        await limiter.close()

    @pytest.mark.asyncio
    async def test_queued_operations_released_in_order(self):
        limiter = RateLimiter(capacity=1, refill_interval=3600)
        started = []

        async def call(index):
            started.append(index)

        limited = limiter.wrap(call)
        tasks = [asyncio.create_task(limited(index)) for index in range(4)]
        await _settle()
        assert started == [0]

        for expected in ([0, 1], [0, 1, 2], [0, 1, 2, 3]):
            limiter.refill()
            await _settle()
            assert started == expected

        await asyncio.gather(*tasks)
        await limiter.close()

    @pytest.mark.asyncio
    async def test_failing_operation_still_consumes_token(self):
        limiter = RateLimiter(capacity=2, refill_interval=3600)

        async def call():
            raise RuntimeError("upstream down")

        with pytest.raises(RuntimeError):
            await limiter.wrap(call)()

        assert limiter.remaining == 1
        await limiter.close()

    @pytest.mark.asyncio
    async def test_cancelled_waiter_leaves_queue(self):
        limiter = RateLimiter(capacity=1, refill_interval=3600)
        await limiter.acquire()

        waiter = asyncio.create_task(limiter.acquire())
        await _settle()
        assert limiter.queued == 1

        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter

        assert limiter.queued == 0
        limiter.refill()
        assert limiter.remaining == 1
        await limiter.close()

    @pytest.mark.asyncio
    async def test_depleted_and_full_callbacks(self):
        on_depleted = MagicMock()
        on_full = MagicMock()
        limiter = RateLimiter(capacity=2, refill_interval=3600, on_depleted=on_depleted, on_full=on_full)

        await limiter.acquire()
        on_depleted.assert_not_called()
        await limiter.acquire()
        on_depleted.assert_called_once()

        limiter.refill()
        on_full.assert_called_once()

        # Refilling an untouched budget is not reported again
        limiter.refill()
        on_full.assert_called_once()
        await limiter.close()

    @pytest.mark.asyncio
    async def test_refill_tick(self):
        """The background tick releases waiting operations."""
        limiter = RateLimiter(capacity=1, refill_interval=0.05)
        loop = asyncio.get_running_loop()

        await limiter.acquire()
        before = loop.time()
        await asyncio.wait_for(limiter.acquire(), timeout=2)

        assert loop.time() - before >= 0.01
        await limiter.close()
