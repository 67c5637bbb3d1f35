"""Tests for the interval recurrence poller."""

from functools import partial
from unittest.mock import AsyncMock

import pytest
from apscheduler.triggers.interval import IntervalTrigger

from taskledger.core.scheduler import RECURRENCE_JOB_ID, RecurrencePoller
from taskledger.core.scheduler_tracker import JobTracker, retry_job_with_backoff


@pytest.mark.unit
async def test_start_registers_interval_job() -> None:
    sweep = AsyncMock()
    poller = RecurrencePoller(sweep=sweep, interval_seconds=30, tracker=JobTracker())

    poller.start()
    try:
        job = poller.scheduler.get_job(RECURRENCE_JOB_ID)
        assert poller.running is True
        assert job is not None
        assert isinstance(job.trigger, IntervalTrigger)
        assert job.trigger.interval.total_seconds() == 30
        assert isinstance(job.func, partial)
        assert job.func.func is retry_job_with_backoff
        assert job.func.args == (sweep, RECURRENCE_JOB_ID)
        assert job.max_instances == 1
    finally:
        poller.stop()


@pytest.mark.unit
async def test_job_runs_sweep_through_tracker() -> None:
    sweep = AsyncMock()
    tracker = JobTracker()
    poller = RecurrencePoller(sweep=sweep, interval_seconds=30, tracker=tracker)
    poller.start()
    try:
        await poller.scheduler.get_job(RECURRENCE_JOB_ID).func()
    finally:
        poller.stop()

    sweep.assert_awaited_once()
    status = await tracker.get_job_status(RECURRENCE_JOB_ID)
    assert status["success_count"] == 1


@pytest.mark.unit
def test_stop_without_start_is_noop() -> None:
    poller = RecurrencePoller(sweep=AsyncMock(), interval_seconds=30, tracker=JobTracker())

    poller.stop()

    assert poller.running is False
