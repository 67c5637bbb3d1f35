"""Task domain models and enums.

A task is a tagged union keyed by ``frequency``: recurrence days exist only on
daily/weekly tasks and a due date only on one-time tasks.
"""

import re
from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator


HHMM_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# Fields only the lifecycle engine and recurrence scheduler may write
LIFECYCLE_FIELDS = frozenset({"status", "completed_at", "verified_at", "evidence_ref"})


class TaskStatus(StrEnum):
    """Task lifecycle state."""

    PENDING = "pending"
    COMPLETED = "completed"
    VERIFIED = "verified"
    EXPIRED = "expired"


class TaskFrequency(StrEnum):
    """How often a task recurs."""

    DAILY = "daily"
    WEEKLY = "weekly"
    ONE_TIME = "one-time"


def _validate_hhmm(value: str) -> str:
    if not HHMM_PATTERN.match(value):
        raise ValueError(f"Time must be zero-padded HH:MM, got {value!r}")
    return value


class TimeWindow(BaseModel):
    """Inclusive clock-time range during which a task may be completed."""

    model_config = ConfigDict(extra="forbid")

    start: str = Field(..., description="Window start (HH:MM)")
    end: str = Field(..., description="Window end (HH:MM)")

    @field_validator("start", "end")
    @classmethod
    def validate_format(cls, v: str) -> str:
        return _validate_hhmm(v)

    @model_validator(mode="after")
    def validate_order(self) -> "TimeWindow":
        """Windows spanning midnight are rejected."""
        if self.start > self.end:
            raise ValueError(f"Time window start {self.start} is after end {self.end}")
        return self

    def contains(self, hhmm: str) -> bool:
        """Zero-padded HH:MM strings compare in the same order as the times they denote."""
        return self.start <= hhmm <= self.end


class _TaskBase(BaseModel):
    """Fields shared by every task variant."""

    model_config = ConfigDict(extra="forbid")

    id: str | None = Field(default=None, description="Unique task ID (absent before creation)")
    created: str | None = Field(default=None, description="Creation timestamp (ISO format)")
    updated: str | None = Field(default=None, description="Last update timestamp (ISO format)")
    title: str = Field(..., description="Task title")
    description: str | None = Field(default=None, description="Detailed task description")
    assigned_to: str = Field(..., description="Assigned user ID, or 'pool' for a template")
    created_by: str | None = Field(default=None, description="Guardian user ID that created the task")
    status: TaskStatus = Field(default=TaskStatus.PENDING, description="Current lifecycle state")
    points: int | None = Field(default=None, ge=0, description="Points earned on verification")
    due_time: str | None = Field(default=None, description="Single cutoff time (HH:MM)")
    time_window: TimeWindow | None = Field(default=None, description="Completion window")
    is_school: bool | None = Field(default=None, description="Only relevant on school days")
    is_responsibility: bool | None = Field(default=None, description="Counts toward the missed-task threshold")
    completed_at: str | None = Field(default=None, description="Completion timestamp (ISO format)")
    verified_at: str | None = Field(default=None, description="Verification timestamp (ISO format)")
    evidence_ref: str | None = Field(default=None, description="Opaque proof-of-completion reference")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Title cannot be empty")
        return v

    @field_validator("due_time")
    @classmethod
    def validate_due_time(cls, v: str | None) -> str | None:
        return _validate_hhmm(v) if v is not None else v

    @property
    def is_pool(self) -> bool:
        """Whether this task is an unassigned template."""
        return self.assigned_to == "pool"


class _RecurringTask(_TaskBase):
    recurrence_days: list[int] | None = Field(
        default=None,
        description="Weekday indices (0=Sunday..6=Saturday) the task is shown on",
    )

    @field_validator("recurrence_days")
    @classmethod
    def validate_recurrence_days(cls, v: list[int] | None) -> list[int] | None:
        if v is None:
            return v
        if any(day < 0 or day > 6 for day in v):  # noqa: PLR2004
            raise ValueError("Recurrence days must be between 0 (Sunday) and 6 (Saturday)")
        return sorted(set(v))


class DailyTask(_RecurringTask):
    """Task that resets every calendar day after verification."""

    frequency: Literal["daily"] = "daily"


class WeeklyTask(_RecurringTask):
    """Task that resets seven days after verification."""

    frequency: Literal["weekly"] = "weekly"


class OneTimeTask(_TaskBase):
    """Task that is done once; never reset."""

    frequency: Literal["one-time"] = "one-time"
    due_date: str | None = Field(default=None, description="Last calendar day to complete (YYYY-MM-DD)")

    @field_validator("due_date")
    @classmethod
    def validate_due_date(cls, v: str | None) -> str | None:
        if v is not None and not DATE_PATTERN.match(v):
            raise ValueError(f"Due date must be YYYY-MM-DD, got {v!r}")
        return v


Task = Annotated[DailyTask | WeeklyTask | OneTimeTask, Field(discriminator="frequency")]

_task_adapter: TypeAdapter[DailyTask | WeeklyTask | OneTimeTask] = TypeAdapter(Task)


def parse_task(record: dict[str, Any]) -> DailyTask | WeeklyTask | OneTimeTask:
    """Build the task variant matching a stored document.

    Raises:
        pydantic.ValidationError: If the document is not a valid task
    """
    return _task_adapter.validate_python(record)


def task_document(task: _TaskBase) -> dict[str, Any]:
    """Serialize a task to its stored shape, omitting absent optional fields."""
    return task.model_dump(
        mode="json",
        exclude_unset=True,
        exclude_none=True,
        exclude={"id", "created", "updated"},
    )
