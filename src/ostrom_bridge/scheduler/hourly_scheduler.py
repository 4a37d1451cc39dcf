"""
Hourly scheduler for the refresh cycle of a device session.
Runs the job shortly after every top of the hour, never overlapping runs.
"""

import asyncio
import random
from datetime import datetime
from typing import Awaitable, Callable, Optional

from ostrom_bridge.logging_config import get_logger
from ostrom_bridge.utils.time_utils import next_top_of_hour, utc_now

logger = get_logger(__name__)


class HourlyScheduler:
    """One pending timer at a time; the next run is armed after the job finished."""

    def __init__(
        self,
        job: Callable[[], Awaitable[None]],
        jitter_min: int = 0,
        jitter_max: int = 60,
        clock: Callable[[], datetime] = utc_now,
        name: str = "refresh",
    ):
        if jitter_max < jitter_min:
            raise ValueError("jitter_max must not be smaller than jitter_min")

        self._job = job
        self._jitter_min = jitter_min
        self._jitter_max = jitter_max
        self._clock = clock
        self.name = name
        self._running = False
        self._in_cycle = False
        self._task: Optional[asyncio.Task] = None
        self.next_run: Optional[datetime] = None

    def start(self) -> None:
        """Start the scheduler background task."""
        if self._running:
            logger.warning("Scheduler already running", scheduler=self.name)
            return

        self._running = True
        self._task = asyncio.create_task(self._scheduler_loop())
        logger.info("Scheduler started", scheduler=self.name)

    async def stop(self) -> None:
        """
        Stop the scheduler.

        A pending timer is cancelled; a job that is already running is left to
        complete and no further run is armed.
        """
        if not self._running:
            return

        self._running = False
        if self._task and not self._in_cycle:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

        logger.info("Scheduler stopped", scheduler=self.name, in_cycle=self._in_cycle)

    def seconds_until_next_run(self) -> float:
        """
        Delay until the next top of the hour plus a random jitter.

        The jitter spreads the requests of concurrently scheduled devices over
        the shared upstream rate budget.
        """
        now = self._clock()
        jitter = random.randint(self._jitter_min, self._jitter_max)
        self.next_run = next_top_of_hour(now)

        delay = (self.next_run - now).total_seconds() + jitter
        logger.debug(
            "Next refresh scheduled",
            scheduler=self.name,
            next_run=self.next_run.isoformat(),
            jitter_seconds=jitter,
            sleep_seconds=round(delay),
        )
        return max(delay, 0.0)

    async def _scheduler_loop(self) -> None:
        """Main scheduler loop."""
        while self._running:
            try:
                await asyncio.sleep(self.seconds_until_next_run())
            except asyncio.CancelledError:
                break

            if not self._running:
                break

            self._in_cycle = True
            try:
                await self._job()
            except Exception as e:
                logger.error("Scheduled job failed", scheduler=self.name, error=str(e))
            finally:
                self._in_cycle = False

    @property
    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self._running
