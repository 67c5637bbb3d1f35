"""Task service for CRUD operations and pool template assignment."""

import logging
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from taskledger.core.clock import Clock
from taskledger.core.config import Constants
from taskledger.core.db_client import DocumentStore, RecordNotFoundError, sanitize_param
from taskledger.core.errors import NotFound, ValidationError
from taskledger.core.logging import span
from taskledger.domain.task import (
    LIFECYCLE_FIELDS,
    DailyTask,
    OneTimeTask,
    TaskStatus,
    WeeklyTask,
    parse_task,
    task_document,
)
from taskledger.models.service_models import AssignmentResult
from taskledger.services.visibility import is_active_today


logger = logging.getLogger(__name__)

TASKS_COLLECTION = "tasks"

AnyTask = DailyTask | WeeklyTask | OneTimeTask

_META_FIELDS = {"id", "created", "updated"}

# Fields copied from a pool template into each assigned task
_TEMPLATE_EXCLUDE = {*_META_FIELDS, "assigned_to", *LIFECYCLE_FIELDS}

# Tasks that block a repeat assignment of the same title: never finished or let lapse
_UNFINISHED = {TaskStatus.PENDING, TaskStatus.EXPIRED}


def _format_errors(error: PydanticValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item["loc"]) or "task"
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)


def validate_task_data(data: dict[str, Any]) -> AnyTask:
    """Validate a task document, converting pydantic errors to ValidationError.

    Raises:
        ValidationError: If a required field is missing or a value is invalid
    """
    try:
        return parse_task(data)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid task: {_format_errors(e)}") from e


def _reject_lifecycle_fields(data: dict[str, Any]) -> None:
    supplied = sorted(LIFECYCLE_FIELDS & data.keys())
    if supplied:
        raise ValidationError(f"Lifecycle fields cannot be set directly: {', '.join(supplied)}")


class TaskService:
    """Create, edit, delete and list tasks; assign pool templates."""

    def __init__(self, *, store: DocumentStore, clock: Clock) -> None:
        self._store = store
        self._clock = clock

    async def get_task(self, task_id: str) -> AnyTask:
        """Get task by ID.

        Raises:
            NotFound: If task not found
        """
        try:
            record = await self._store.get_record(collection=TASKS_COLLECTION, record_id=task_id)
        except RecordNotFoundError as e:
            raise NotFound(collection=TASKS_COLLECTION, record_id=task_id) from e
        return parse_task(record)

    async def add_task(self, data: dict[str, Any]) -> AnyTask:
        """Create a new pending task (or pool template).

        Args:
            data: Task fields; ``frequency`` selects the variant

        Returns:
            Created task

        Raises:
            ValidationError: If fields are missing/invalid or lifecycle fields are supplied
        """
        with span("task_service.add_task"):
            _reject_lifecycle_fields(data)
            task = validate_task_data({**data, "status": TaskStatus.PENDING})

            record = await self._store.create_record(collection=TASKS_COLLECTION, data=task_document(task))

            logger.info("Created task: %s (assigned to: %s)", task.title, task.assigned_to)
            return parse_task(record)

    async def update_task(self, task_id: str, updates: dict[str, Any]) -> AnyTask:
        """Edit non-lifecycle fields of a task.

        A value of None removes an optional field. The merged document is
        validated before anything is written.

        Raises:
            NotFound: If task not found
            ValidationError: If the result would be invalid or lifecycle fields are supplied
        """
        with span("task_service.update_task"):
            _reject_lifecycle_fields(updates)
            updates = {key: value for key, value in updates.items() if key not in _META_FIELDS}
            if not updates:
                raise ValidationError("Empty update")

            try:
                current = await self._store.get_record(collection=TASKS_COLLECTION, record_id=task_id)
            except RecordNotFoundError as e:
                raise NotFound(collection=TASKS_COLLECTION, record_id=task_id) from e

            merged = {**current, **updates}
            merged = {key: value for key, value in merged.items() if value is not None}
            document = task_document(validate_task_data(merged))
            data = {key: document.get(key) for key in updates}

            try:
                record = await self._store.update_record(collection=TASKS_COLLECTION, record_id=task_id, data=data)
            except RecordNotFoundError as e:
                raise NotFound(collection=TASKS_COLLECTION, record_id=task_id) from e

            logger.info("Updated task %s fields: %s", task_id, ", ".join(sorted(updates)))
            return parse_task(record)

    async def delete_task(self, task_id: str) -> None:
        """Delete a task. Its ledger entries are kept.

        Raises:
            NotFound: If task not found
        """
        with span("task_service.delete_task"):
            try:
                await self._store.delete_record(collection=TASKS_COLLECTION, record_id=task_id)
            except RecordNotFoundError as e:
                raise NotFound(collection=TASKS_COLLECTION, record_id=task_id) from e
            logger.info("Deleted task %s", task_id)

    async def list_tasks(
        self,
        *,
        assigned_to: str | None = None,
        status: TaskStatus | None = None,
    ) -> list[AnyTask]:
        """List tasks with optional filters.

        Args:
            assigned_to: Filter by assignee (use 'pool' for templates)
            status: Filter by lifecycle state

        Returns:
            List of tasks matching filters
        """
        filters = []
        if assigned_to:
            filters.append(f'assigned_to = "{sanitize_param(assigned_to)}"')
        if status:
            filters.append(f'status = "{sanitize_param(status)}"')

        filter_query = " && ".join(filters)
        records = await self._store.list_all(collection=TASKS_COLLECTION, filter_query=filter_query)
        logger.debug("Retrieved %d tasks with filters: %s", len(records), filter_query)
        return [parse_task(record) for record in records]

    async def active_tasks_today(self, *, user_id: str, vacation_mode: bool) -> list[AnyTask]:
        """List a user's tasks that are relevant today."""
        today = self._clock.today_date()
        tasks = await self.list_tasks(assigned_to=user_id)
        return [task for task in tasks if is_active_today(task, today, vacation_mode)]

    async def assign_from_pool(self, *, template_id: str, user_ids: list[str]) -> AssignmentResult:
        """Clone a pool template into one pending task per user.

        Users who already hold a pending or expired task with the same title
        are skipped; completed and verified tasks do not block a new one.

        Raises:
            NotFound: If the template does not exist
            ValidationError: If the task is not a pool template
        """
        with span("task_service.assign_from_pool"):
            template = await self.get_task(template_id)
            if not template.is_pool:
                raise ValidationError(f"Task {template_id} is not a pool template")

            base = template.model_dump(mode="json", exclude_unset=True, exclude_none=True, exclude=_TEMPLATE_EXCLUDE)
            created: list[str] = []
            skipped: list[str] = []

            for user_id in user_ids:
                if user_id == Constants.POOL_ASSIGNEE:
                    skipped.append(user_id)
                    continue

                existing = await self.list_tasks(assigned_to=user_id)
                if any(task.title == template.title and task.status in _UNFINISHED for task in existing):
                    skipped.append(user_id)
                    continue

                task = await self.add_task({**base, "assigned_to": user_id})
                created.append(str(task.id))

            logger.info(
                "Assigned template '%s' to %d user(s), skipped %d", template.title, len(created), len(skipped)
            )
            return AssignmentResult(template_id=template_id, created_task_ids=created, skipped_user_ids=skipped)
