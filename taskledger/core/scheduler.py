"""Interval scheduler for the recurrence sweep when polling is configured."""

import logging
from collections.abc import Awaitable, Callable
from functools import partial
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from taskledger.core.scheduler_tracker import JobTracker, retry_job_with_backoff


logger = logging.getLogger(__name__)

RECURRENCE_JOB_ID = "recurrence_sweep"


class RecurrencePoller:
    """Runs a sweep coroutine every ``interval_seconds`` with retry and tracking."""

    def __init__(
        self,
        *,
        sweep: Callable[[], Awaitable[Any]],
        interval_seconds: int,
        tracker: JobTracker,
    ) -> None:
        self._sweep = sweep
        self._interval_seconds = interval_seconds
        self._tracker = tracker
        self.scheduler = AsyncIOScheduler()

    def start(self) -> None:
        """Register the sweep job and start the scheduler.

        This should be called during FastAPI app startup, from inside the
        running event loop.
        """
        logger.info("Starting scheduler")

        # partial keeps the coroutine function visible to APScheduler's asyncio executor
        self.scheduler.add_job(
            partial(retry_job_with_backoff, self._sweep, RECURRENCE_JOB_ID, tracker=self._tracker),
            trigger=IntervalTrigger(seconds=self._interval_seconds),
            id=RECURRENCE_JOB_ID,
            name="Reset Elapsed Recurring Tasks",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        logger.info("Scheduled recurrence sweep job: every %ds", self._interval_seconds)

        self.scheduler.start()
        logger.info("Scheduler started successfully")

    def stop(self) -> None:
        """Stop the scheduler.

        This should be called during FastAPI app shutdown.
        """
        if not self.scheduler.running:
            return
        logger.info("Stopping scheduler")
        self.scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")

    @property
    def running(self) -> bool:
        return bool(self.scheduler.running)
