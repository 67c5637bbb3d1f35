"""Pydantic models for service layer return types.

These models provide type safety at service boundaries, converting database
dictionaries into typed objects with validation.
"""

from pydantic import BaseModel


class SweepResult(BaseModel):
    """Outcome of one recurrence sweep."""

    checked: int
    reset_task_ids: list[str]
    ran_at: str


class AssignmentResult(BaseModel):
    """Outcome of cloning a pool template to dependents."""

    template_id: str
    created_task_ids: list[str]
    skipped_user_ids: list[str]


class WeeklyStatistics(BaseModel):
    """Per-user statistics for one Monday-Sunday week."""

    user_id: str
    week_start: str
    week_end: str
    verified_count: int
    missed_count: int
    missed_responsibility_count: int
    points_earned: int
    balance: int
    warning: bool
    warning_threshold: int
