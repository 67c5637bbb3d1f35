"""Revert verified recurring tasks to pending once their period has elapsed.

Policy:
- daily: reset when the calendar date of ``verified_at`` is before today
- weekly: reset once at least seven full days have passed since ``verified_at``
  (a rolling window, not an ISO week boundary)
- one-time: never reset

Every write sets absolute values and is preceded by a re-read of the task, so
the sweep can run repeatedly and from several clients at once; all runs
converge on the same end state. Ledger entries are never touched.
"""

import logging
from datetime import datetime, timedelta

from dateutil import parser as dateutil_parser

from taskledger.core.clock import Clock
from taskledger.core.config import Constants
from taskledger.core.db_client import DocumentStore, RecordNotFoundError
from taskledger.core.logging import log_with_context, span
from taskledger.domain.task import DailyTask, OneTimeTask, TaskStatus, WeeklyTask, parse_task
from taskledger.models.service_models import SweepResult


logger = logging.getLogger(__name__)

TASKS_COLLECTION = "tasks"

RESET_FIELDS = {"status": TaskStatus.PENDING, "completed_at": None, "verified_at": None, "evidence_ref": None}


def _parse_instant(value: str, now: datetime) -> datetime:
    """Parse an ISO timestamp; naive values are read in the clock's timezone."""
    instant = dateutil_parser.isoparse(value)
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=now.tzinfo)
    return instant.astimezone(now.tzinfo)


def should_reset(task: DailyTask | WeeklyTask | OneTimeTask, now: datetime) -> bool:
    """Return True if a verified recurring task is due to become pending again."""
    if isinstance(task, OneTimeTask) or task.is_pool:
        return False
    if task.status != TaskStatus.VERIFIED or not task.verified_at:
        return False

    verified = _parse_instant(task.verified_at, now)

    if isinstance(task, DailyTask):
        return verified.date() < now.date()

    return now - verified >= timedelta(days=Constants.WEEKLY_RESET_DAYS)


class RecurrenceScheduler:
    """Scans the live task set and resets tasks whose period has elapsed."""

    def __init__(self, *, store: DocumentStore, clock: Clock) -> None:
        self._store = store
        self._clock = clock

    async def _reset(self, task_id: str, verified_at: str | None, now: datetime) -> bool:
        """Reset one task if it is still in the state the scan saw."""
        try:
            record = await self._store.get_record(collection=TASKS_COLLECTION, record_id=task_id)
        except RecordNotFoundError:
            logger.debug("Task disappeared before reset", extra={"task_id": task_id})
            return False

        current = parse_task(record)
        if current.verified_at != verified_at or not should_reset(current, now):
            return False

        try:
            await self._store.update_record(collection=TASKS_COLLECTION, record_id=task_id, data=dict(RESET_FIELDS))
        except RecordNotFoundError:
            logger.debug("Task deleted during reset", extra={"task_id": task_id})
            return False

        log_with_context(
            logger, "info", "Recurring task reset to pending", task_id=task_id, frequency=current.frequency
        )
        return True

    async def sweep(self) -> SweepResult:
        """Run one pass over all tasks. Safe to call any number of times."""
        with span("recurrence.sweep"):
            now = self._clock.now()
            records = await self._store.list_all(
                collection=TASKS_COLLECTION,
                filter_query=f'status = "{TaskStatus.VERIFIED}"',
            )

            reset_ids = []
            for record in records:
                task = parse_task(record)
                if not should_reset(task, now):
                    continue
                if await self._reset(record["id"], task.verified_at, now):
                    reset_ids.append(record["id"])

            logger.info("Recurrence sweep finished: %d/%d verified tasks reset", len(reset_ids), len(records))
            return SweepResult(checked=len(records), reset_task_ids=reset_ids, ran_at=now.isoformat())
