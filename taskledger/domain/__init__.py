"""Domain models and DTOs."""

from taskledger.domain.history import HistoryEntry, HistoryStatus
from taskledger.domain.reward import Redemption, RedemptionStatus, Reward
from taskledger.domain.task import (
    DailyTask,
    OneTimeTask,
    Task,
    TaskFrequency,
    TaskStatus,
    TimeWindow,
    WeeklyTask,
    parse_task,
)
from taskledger.domain.user import User, UserRole


__all__ = [
    "DailyTask",
    "HistoryEntry",
    "HistoryStatus",
    "OneTimeTask",
    "Redemption",
    "RedemptionStatus",
    "Reward",
    "Task",
    "TaskFrequency",
    "TaskStatus",
    "TimeWindow",
    "User",
    "UserRole",
    "WeeklyTask",
    "parse_task",
]
