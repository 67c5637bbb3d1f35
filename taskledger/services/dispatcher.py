"""Single consumer of task change events that drives the recurrence sweep.

Store writes publish events onto a queue; this dispatcher is the only reader.
Events that pile up while a sweep is running are coalesced into one further
sweep, and the resets that sweep performs are themselves just more events,
so the loop settles once a sweep writes nothing.
"""

import asyncio
import logging
from contextlib import suppress

from taskledger.core.events import ChangeEvent, ChangeFeed, drain
from taskledger.core.scheduler import RECURRENCE_JOB_ID
from taskledger.core.scheduler_tracker import JobTracker, retry_job_with_backoff
from taskledger.services.recurrence import RecurrenceScheduler


logger = logging.getLogger(__name__)


class ChangeDispatcher:
    """Runs the recurrence sweep once per batch of task changes."""

    def __init__(
        self,
        *,
        feed: ChangeFeed,
        recurrence: RecurrenceScheduler,
        tracker: JobTracker,
        collection: str = "tasks",
    ) -> None:
        self._feed = feed
        self._recurrence = recurrence
        self._tracker = tracker
        self._collection = collection
        self._queue: asyncio.Queue[ChangeEvent] | None = None
        self._task: asyncio.Task[None] | None = None
        self.batches_processed = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Subscribe to the feed, catch up with one sweep, then follow changes."""
        if self.running:
            return

        self._queue = self._feed.open(self._collection)
        await self._sweep()
        self._task = asyncio.create_task(self._consume(self._queue), name="change-dispatcher")
        logger.info("Change dispatcher started", extra={"collection": self._collection})

    async def stop(self) -> None:
        """Cancel the consumer task and unsubscribe."""
        if self._task is not None:
            self._task.cancel()
            with suppress(asyncio.CancelledError):
                await self._task
            self._task = None

        if self._queue is not None:
            self._feed.close(self._collection, self._queue)
            self._queue = None
        logger.info("Change dispatcher stopped")

    async def wait_idle(self) -> None:
        """Block until every queued event, including ones caused by sweeps, is handled."""
        if self._queue is not None:
            await self._queue.join()

    async def _sweep(self) -> None:
        await retry_job_with_backoff(self._recurrence.sweep, RECURRENCE_JOB_ID, tracker=self._tracker, max_retries=1)

    async def _consume(self, queue: asyncio.Queue[ChangeEvent]) -> None:
        while True:
            first = await queue.get()
            batch = [first, *drain(queue)]
            try:
                logger.debug(
                    "Dispatching %d coalesced change(s)", len(batch), extra={"collection": self._collection}
                )
                await self._sweep()
                self.batches_processed += 1
            finally:
                for _ in batch:
                    queue.task_done()
