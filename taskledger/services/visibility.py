"""Decide whether a task is relevant on a given day."""

from datetime import date

from taskledger.core.clock import to_weekday_index
from taskledger.core.config import Constants
from taskledger.domain.task import DailyTask, OneTimeTask, WeeklyTask


def is_school_day(weekday: int) -> bool:
    """Return True for Monday through Friday (0=Sunday scheme)."""
    return weekday in Constants.SCHOOL_WEEKDAYS


def is_active_today(task: DailyTask | WeeklyTask | OneTimeTask, today: date, vacation_mode: bool) -> bool:
    """Return whether a task should be shown on ``today``.

    Pure and side-effect free. One-time tasks are always shown; status-based
    filtering happens in the caller. The responsibility flag never affects
    visibility.
    """
    if isinstance(task, OneTimeTask):
        return True

    weekday = to_weekday_index(today)

    if task.is_school:
        if vacation_mode:
            return False
        if not is_school_day(weekday):
            return False

    if task.recurrence_days and weekday not in task.recurrence_days:
        return False

    return True
