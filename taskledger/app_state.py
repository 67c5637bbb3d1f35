"""Application state: builds the store, clock and engines and exposes the operations callers use."""

import logging
from datetime import date
from typing import Any

from taskledger.core.clock import Clock, SystemClock
from taskledger.core.config import Settings, settings as default_settings
from taskledger.core.db_client import DocumentStore
from taskledger.core.scheduler import RecurrencePoller
from taskledger.core.scheduler_tracker import JobTracker
from taskledger.domain.reward import Redemption, RedemptionStatus
from taskledger.domain.task import DailyTask, OneTimeTask, WeeklyTask
from taskledger.models.service_models import SweepResult, WeeklyStatistics
from taskledger.services.dispatcher import ChangeDispatcher
from taskledger.services.ledger import PointsLedger
from taskledger.services.lifecycle import LifecycleEngine
from taskledger.services.message_service import MessageService
from taskledger.services.recurrence import RecurrenceScheduler
from taskledger.services.redemption import RedemptionProcessor
from taskledger.services.reward_service import RewardService
from taskledger.services.statistics import StatisticsService
from taskledger.services.task_service import TaskService
from taskledger.services.user_service import UserService
from taskledger.services.visibility import is_active_today


logger = logging.getLogger(__name__)

AnyTask = DailyTask | WeeklyTask | OneTimeTask


class TaskLedgerApp:
    """Wires every engine to one store and one clock.

    Engines never read settings or globals; everything they need is passed in
    here.
    """

    def __init__(
        self,
        *,
        store: DocumentStore | None = None,
        clock: Clock | None = None,
        config: Settings | None = None,
        tracker: JobTracker | None = None,
    ) -> None:
        self.config = config or default_settings
        self.store = store or DocumentStore(db_path=self.config.sqlite_db_path)
        self.clock = clock or SystemClock(self.config.timezone)
        self.tracker = tracker or JobTracker()

        self.ledger = PointsLedger(store=self.store)
        self.lifecycle = LifecycleEngine(store=self.store, clock=self.clock, ledger=self.ledger)
        self.recurrence = RecurrenceScheduler(store=self.store, clock=self.clock)
        self.redemptions = RedemptionProcessor(store=self.store, clock=self.clock, ledger=self.ledger)
        self.tasks = TaskService(store=self.store, clock=self.clock)
        self.users = UserService(store=self.store)
        self.rewards = RewardService(store=self.store)
        self.messages = MessageService(store=self.store)
        self.statistics = StatisticsService(
            ledger=self.ledger, clock=self.clock, warning_threshold=self.config.missed_warning_threshold
        )

        self.dispatcher = ChangeDispatcher(feed=self.store.feed, recurrence=self.recurrence, tracker=self.tracker)
        self.poller = RecurrencePoller(
            sweep=self.recurrence.sweep,
            interval_seconds=self.config.recurrence_poll_seconds,
            tracker=self.tracker,
        )

    async def startup(self) -> None:
        """Initialise the schema and start the configured recurrence trigger."""
        await self.store.init_db()
        if self.config.recurrence_trigger == "poll":
            self.poller.start()
        else:
            await self.dispatcher.start()
        logger.info("Recurrence trigger started", extra={"trigger": self.config.recurrence_trigger})

    async def shutdown(self) -> None:
        """Stop the recurrence trigger and close the store."""
        self.poller.stop()
        await self.dispatcher.stop()
        await self.store.close()

    # Task management

    async def add_task(self, data: dict[str, Any]) -> AnyTask:
        return await self.tasks.add_task(data)

    async def update_task(self, task_id: str, updates: dict[str, Any]) -> AnyTask:
        return await self.tasks.update_task(task_id, updates)

    async def delete_task(self, task_id: str) -> None:
        await self.tasks.delete_task(task_id)

    # Lifecycle

    async def complete(self, task_id: str, evidence_ref: str | None = None) -> AnyTask:
        return await self.lifecycle.complete(task_id, evidence_ref)

    async def verify(self, task_id: str, *, force: bool = False) -> AnyTask:
        return await self.lifecycle.verify(task_id, force=force)

    async def reject(self, task_id: str) -> AnyTask:
        return await self.lifecycle.reject(task_id)

    async def fail(self, task_id: str) -> AnyTask:
        return await self.lifecycle.fail(task_id)

    async def run_recurrence_sweep(self) -> SweepResult:
        return await self.recurrence.sweep()

    # Visibility

    def is_active_today(self, task: AnyTask, vacation_mode: bool) -> bool:
        """Check a task against today's date on this app's clock."""
        return is_active_today(task, self.clock.today_date(), vacation_mode)

    async def active_tasks_today(self, user_id: str) -> list[AnyTask]:
        vacation_mode = await self.users.vacation_mode_active()
        return await self.tasks.active_tasks_today(user_id=user_id, vacation_mode=vacation_mode)

    # Points and rewards

    async def balance(self, user_id: str) -> int:
        return await self.ledger.balance(user_id)

    async def request_redemption(self, reward_id: str, user_id: str) -> Redemption:
        return await self.redemptions.request(reward_id=reward_id, user_id=user_id)

    async def approve_redemption(self, redemption_id: str) -> Redemption:
        return await self.redemptions.approve(redemption_id)

    async def reject_redemption(self, redemption_id: str) -> Redemption:
        return await self.redemptions.reject(redemption_id)

    async def list_redemptions(self, status: RedemptionStatus | None = None) -> list[Redemption]:
        return await self.redemptions.list_redemptions(status=status)

    async def weekly_statistics(self, user_id: str, week_of: date | None = None) -> WeeklyStatistics:
        return await self.statistics.weekly_statistics(user_id, week_of=week_of)
