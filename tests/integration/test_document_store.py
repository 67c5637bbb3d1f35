"""Tests for the SQLite document store and the engines running on it."""

import asyncio
from datetime import UTC, datetime

import pytest

from taskledger.app_state import TaskLedgerApp
from taskledger.core.clock import FixedClock
from taskledger.core.config import Settings
from taskledger.core.db_client import DatabaseError, DocumentStore, RecordNotFoundError
from taskledger.core.events import ChangeAction
from taskledger.domain.task import TaskStatus


@pytest.mark.integration
class TestDocumentStore:
    """CRUD and change notification behaviour of DocumentStore."""

    async def test_create_and_get_round_trip_preserves_field_presence(self, sqlite_store: DocumentStore):
        data = {"title": "Dishes", "assigned_to": "7", "time_window": {"start": "15:00", "end": "19:00"}}
        created = await sqlite_store.create_record(collection="tasks", data=data)

        fetched = await sqlite_store.get_record(collection="tasks", record_id=created["id"])

        assert {k: v for k, v in fetched.items() if k not in {"id", "created", "updated"}} == data
        assert "points" not in fetched
        assert fetched["created"].endswith("Z")

    async def test_update_merges_and_none_removes(self, sqlite_store: DocumentStore):
        created = await sqlite_store.create_record(
            collection="tasks", data={"title": "Dishes", "status": "completed", "evidence_ref": "a.jpg"}
        )

        updated = await sqlite_store.update_record(
            collection="tasks",
            record_id=created["id"],
            data={"status": TaskStatus.PENDING, "evidence_ref": None, "points": 3},
        )

        assert updated["title"] == "Dishes"
        assert updated["status"] == "pending"
        assert updated["points"] == 3
        assert "evidence_ref" not in updated

    async def test_missing_records_raise(self, sqlite_store: DocumentStore):
        with pytest.raises(RecordNotFoundError):
            await sqlite_store.get_record(collection="tasks", record_id="999")
        with pytest.raises(RecordNotFoundError):
            await sqlite_store.update_record(collection="tasks", record_id="999", data={"title": "x"})
        with pytest.raises(RecordNotFoundError):
            await sqlite_store.delete_record(collection="tasks", record_id="abc")

    async def test_unknown_collection_raises_database_error(self, sqlite_store: DocumentStore):
        with pytest.raises(DatabaseError):
            await sqlite_store.create_record(collection="bad-name", data={"x": 1})

    async def test_list_records_filters_and_sorts(self, sqlite_store: DocumentStore):
        for title, user, points in [("A", "1", 5), ("B", "2", 1), ("C", "1", 9)]:
            await sqlite_store.create_record(
                collection="tasks", data={"title": title, "assigned_to": user, "points": points}
            )

        records = await sqlite_store.list_all(collection="tasks", filter_query='assigned_to = "1"', sort="-points")
        first = await sqlite_store.get_first_record(collection="tasks", filter_query='title ~ "b"')

        assert [r["title"] for r in records] == ["C", "A"]
        assert first is not None
        assert first["title"] == "B"

    async def test_boolean_filter(self, sqlite_store: DocumentStore):
        await sqlite_store.create_record(collection="users", data={"name": "Ana", "is_vacation_mode": True})
        await sqlite_store.create_record(collection="users", data={"name": "Ben", "is_vacation_mode": False})

        records = await sqlite_store.list_all(collection="users", filter_query='is_vacation_mode = "true"')

        assert [r["name"] for r in records] == ["Ana"]

    async def test_writes_publish_change_events(self, sqlite_store: DocumentStore):
        queue = sqlite_store.feed.open("tasks")
        created = await sqlite_store.create_record(collection="tasks", data={"title": "x"})
        await sqlite_store.update_record(collection="tasks", record_id=created["id"], data={"title": "y"})
        await sqlite_store.delete_record(collection="tasks", record_id=created["id"])

        actions = [queue.get_nowait().action for _ in range(3)]

        assert actions == [ChangeAction.CREATE, ChangeAction.UPDATE, ChangeAction.DELETE]
        assert queue.empty()
        sqlite_store.feed.close("tasks", queue)

    async def test_subscribe_yields_current_set_then_changes(self, sqlite_store: DocumentStore):
        await sqlite_store.create_record(collection="rewards", data={"title": "Ice cream"})
        stream = sqlite_store.subscribe(collection="rewards")

        initial = await anext(stream)
        await sqlite_store.create_record(collection="rewards", data={"title": "Park"})
        after = await asyncio.wait_for(anext(stream), timeout=1)
        await stream.aclose()

        assert [r["title"] for r in initial] == ["Ice cream"]
        assert [r["title"] for r in after] == ["Ice cream", "Park"]
        assert sqlite_store.feed.subscriber_count("rewards") == 0


@pytest.mark.integration
async def test_lifecycle_on_sqlite(sqlite_store: DocumentStore, test_settings: Settings) -> None:
    clock = FixedClock(datetime(2024, 1, 10, 9, 0, tzinfo=UTC))
    ledger_app = TaskLedgerApp(store=sqlite_store, clock=clock, config=test_settings)

    task = await ledger_app.add_task(
        {"title": "Feed the fish", "assigned_to": "child-1", "frequency": "daily", "points": 5}
    )
    await ledger_app.complete(str(task.id), evidence_ref="fish.jpg")
    await ledger_app.verify(str(task.id))

    clock.set(datetime(2024, 1, 11, 7, 0, tzinfo=UTC))
    result = await ledger_app.run_recurrence_sweep()

    stored = await sqlite_store.get_record(collection="tasks", record_id=str(task.id))
    assert result.reset_task_ids == [str(task.id)]
    assert stored["status"] == "pending"
    assert "verified_at" not in stored
    assert "evidence_ref" not in stored
    assert await ledger_app.balance("child-1") == 5

    reward = await ledger_app.rewards.add_reward({"title": "Sticker", "cost": 5, "created_by": "guardian-1"})
    redemption = await ledger_app.request_redemption(str(reward.id), "child-1")
    await ledger_app.approve_redemption(str(redemption.id))

    assert await ledger_app.balance("child-1") == 0
