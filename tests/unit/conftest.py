"""Pytest configuration and fixtures for unit tests."""

from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

import pytest

from taskledger.app_state import TaskLedgerApp
from taskledger.core.clock import FixedClock
from taskledger.core.config import Settings
from taskledger.domain.task import DailyTask, OneTimeTask, WeeklyTask
from tests.unit.mocks import FlakyDBClient, InMemoryDBClient


# Wednesday afternoon
DEFAULT_NOW = datetime(2024, 1, 10, 16, 30, tzinfo=UTC)

GUARDIAN_ID = "guardian-1"
CHILD_ID = "child-1"

AnyTask = DailyTask | WeeklyTask | OneTimeTask
TaskFactory = Callable[..., Awaitable[AnyTask]]


@pytest.fixture
def in_memory_db():
    """Provides a fresh InMemoryDBClient for each test."""
    return InMemoryDBClient()


@pytest.fixture
def flaky_db():
    """Provides an InMemoryDBClient that can be told to fail specific writes."""
    return FlakyDBClient()


@pytest.fixture
def clock() -> FixedClock:
    """Clock frozen at 2024-01-10 16:30 UTC (a Wednesday)."""
    return FixedClock(DEFAULT_NOW)


@pytest.fixture
def ledger_app(in_memory_db: InMemoryDBClient, clock: FixedClock, test_settings: Settings) -> TaskLedgerApp:
    """Application state wired to the in-memory store and the fixed clock."""
    return TaskLedgerApp(store=in_memory_db, clock=clock, config=test_settings)


@pytest.fixture
def flaky_app(flaky_db: FlakyDBClient, clock: FixedClock, test_settings: Settings) -> TaskLedgerApp:
    """Application state whose store can fail chosen writes."""
    return TaskLedgerApp(store=flaky_db, clock=clock, config=test_settings)


def task_data(**overrides: Any) -> dict[str, Any]:
    """Minimal valid daily task assigned to the child."""
    data: dict[str, Any] = {
        "title": "Make the bed",
        "assigned_to": CHILD_ID,
        "created_by": GUARDIAN_ID,
        "frequency": "daily",
        "points": 10,
    }
    data.update(overrides)
    return data


@pytest.fixture
def make_task(ledger_app: TaskLedgerApp) -> TaskFactory:
    """Create a task through the task service."""

    async def _make(**overrides: Any) -> AnyTask:
        return await ledger_app.add_task(task_data(**overrides))

    return _make
