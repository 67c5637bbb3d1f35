"""Task lifecycle state machine with time-window and due-date gating.

States: pending -> completed -> verified, pending -> expired,
completed -> pending (rejection), verified -> pending (recurrence reset).

Verification and failure each perform two independent store writes: the
ledger append and the task status update. There is no transaction around
them. The ledger append goes first and carries an event key derived from the
task's current completion, so re-running a verification interrupted between
the two writes finishes the status update without crediting twice.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from taskledger.core.clock import Clock
from taskledger.core.db_client import DocumentStore, RecordNotFoundError
from taskledger.core.errors import DueDateExpired, InvalidTransition, NotFound, TimeWindowViolation
from taskledger.core.logging import log_with_context, span
from taskledger.domain.history import HistoryEntry, HistoryStatus
from taskledger.domain.task import DailyTask, OneTimeTask, TaskStatus, WeeklyTask, parse_task
from taskledger.services.ledger import PointsLedger


logger = logging.getLogger(__name__)

TASKS_COLLECTION = "tasks"

AnyTask = DailyTask | WeeklyTask | OneTimeTask


@dataclass(frozen=True)
class GateResult:
    """Outcome of the completion time gate: either ok or carrying the error."""

    error: TimeWindowViolation | DueDateExpired | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def check_completion_gate(task: AnyTask, now: datetime) -> GateResult:
    """Check the time window and due date of a task against ``now``.

    Returns a GateResult instead of raising so callers that only want to grey
    out a button can inspect the outcome.
    """
    current = now.strftime("%H:%M")
    if task.time_window is not None and not task.time_window.contains(current):
        return GateResult(
            error=TimeWindowViolation(start=task.time_window.start, end=task.time_window.end, attempted_at=current)
        )

    if isinstance(task, OneTimeTask) and task.due_date is not None:
        today = now.date().isoformat()
        if task.due_date < today:
            return GateResult(error=DueDateExpired(due_date=task.due_date, today=today))

    return GateResult()


class LifecycleEngine:
    """Owns every write to a task's status and lifecycle timestamps (besides resets)."""

    def __init__(self, *, store: DocumentStore, clock: Clock, ledger: PointsLedger) -> None:
        self._store = store
        self._clock = clock
        self._ledger = ledger

    async def _load(self, task_id: str, *, operation: str) -> AnyTask:
        try:
            record = await self._store.get_record(collection=TASKS_COLLECTION, record_id=task_id)
        except RecordNotFoundError as e:
            raise NotFound(collection=TASKS_COLLECTION, record_id=task_id) from e

        task = parse_task(record)
        if task.is_pool:
            raise InvalidTransition(entity_id=task_id, current="pool template", operation=operation)
        return task

    def _require(self, task: AnyTask, allowed: set[TaskStatus], *, operation: str) -> None:
        if task.status not in allowed:
            raise InvalidTransition(entity_id=str(task.id), current=task.status, operation=operation)

    async def _write(self, task_id: str, data: dict[str, Any]) -> AnyTask:
        record = await self._store.update_record(collection=TASKS_COLLECTION, record_id=task_id, data=data)
        return parse_task(record)

    async def complete(self, task_id: str, evidence_ref: str | None = None) -> AnyTask:
        """Mark a pending task as completed, subject to its time gate.

        Raises:
            NotFound: If the task does not exist
            InvalidTransition: If the task is not pending or is a pool template
            TimeWindowViolation: If now is outside the task's time window
            DueDateExpired: If the task's due date has passed
        """
        with span("lifecycle.complete"):
            task = await self._load(task_id, operation="complete")
            self._require(task, {TaskStatus.PENDING}, operation="complete")

            now = self._clock.now()
            gate = check_completion_gate(task, now)
            if gate.error is not None:
                log_with_context(
                    logger, "info", "Completion rejected by time gate", task_id=task_id, code=gate.error.code
                )
                raise gate.error

            data: dict[str, Any] = {"status": TaskStatus.COMPLETED, "completed_at": now.isoformat()}
            if evidence_ref:
                data["evidence_ref"] = evidence_ref

            updated = await self._write(task_id, data)
            log_with_context(logger, "info", "Task completed", task_id=task_id, user_id=task.assigned_to)
            return updated

    async def verify(self, task_id: str, *, force: bool = False) -> AnyTask:
        """Approve a completed task and credit its points.

        With ``force`` a guardian may verify a pending task directly, without
        evidence.

        Raises:
            NotFound: If the task does not exist
            InvalidTransition: If the task is not completed (or pending with force)
        """
        with span("lifecycle.verify"):
            allowed = {TaskStatus.COMPLETED, TaskStatus.PENDING} if force else {TaskStatus.COMPLETED}
            task = await self._load(task_id, operation="verify")
            self._require(task, allowed, operation="verify")

            now = self._clock.now()
            today = self._clock.today_date().isoformat()
            completed_at = task.completed_at or now.isoformat()
            entry = HistoryEntry(
                task_id=task_id,
                task_title=task.title,
                assigned_to=task.assigned_to,
                points=task.points or 0,
                status=HistoryStatus.VERIFIED,
                date=today,
                completed_at=completed_at,
                is_responsibility=bool(task.is_responsibility),
                event_key=f"{task_id}:verified:{task.completed_at or today}",
            )

            # Re-check right before the ledger append to narrow the double-credit window
            current = await self._load(task_id, operation="verify")
            self._require(current, allowed, operation="verify")

            await self._ledger.append(entry)
            updated = await self._write(task_id, {"status": TaskStatus.VERIFIED, "verified_at": now.isoformat()})

            log_with_context(
                logger, "info", "Task verified", task_id=task_id, user_id=task.assigned_to, points=entry.points
            )
            return updated

    async def reject(self, task_id: str) -> AnyTask:
        """Send a completed task back to pending without touching the ledger.

        Raises:
            NotFound: If the task does not exist
            InvalidTransition: If the task is not completed
        """
        with span("lifecycle.reject"):
            task = await self._load(task_id, operation="reject")
            self._require(task, {TaskStatus.COMPLETED}, operation="reject")

            updated = await self._write(
                task_id,
                {"status": TaskStatus.PENDING, "completed_at": None, "verified_at": None, "evidence_ref": None},
            )
            log_with_context(logger, "info", "Task rejected", task_id=task_id, user_id=task.assigned_to)
            return updated

    async def fail(self, task_id: str) -> AnyTask:
        """Mark a pending task as missed and record a zero-point entry.

        Raises:
            NotFound: If the task does not exist
            InvalidTransition: If the task is not pending
        """
        with span("lifecycle.fail"):
            task = await self._load(task_id, operation="fail")
            self._require(task, {TaskStatus.PENDING}, operation="fail")

            today = self._clock.today_date().isoformat()
            entry = HistoryEntry(
                task_id=task_id,
                task_title=task.title,
                assigned_to=task.assigned_to,
                points=0,
                status=HistoryStatus.MISSED,
                date=today,
                is_responsibility=bool(task.is_responsibility),
                event_key=f"{task_id}:missed:{today}",
            )

            current = await self._load(task_id, operation="fail")
            self._require(current, {TaskStatus.PENDING}, operation="fail")

            await self._ledger.append(entry)
            updated = await self._write(task_id, {"status": TaskStatus.EXPIRED})

            log_with_context(logger, "info", "Task marked as missed", task_id=task_id, user_id=task.assigned_to)
            return updated
