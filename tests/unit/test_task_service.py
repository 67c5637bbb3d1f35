"""Tests for task creation, editing and pool template assignment."""

import pytest

from taskledger.app_state import TaskLedgerApp
from taskledger.core.errors import NotFound, ValidationError
from taskledger.domain.task import DailyTask, OneTimeTask, TaskStatus, WeeklyTask
from tests.unit.conftest import task_data
from tests.unit.mocks import InMemoryDBClient


@pytest.mark.unit
async def test_add_task_creates_pending_variant(ledger_app: TaskLedgerApp) -> None:
    daily = await ledger_app.add_task(task_data())
    weekly = await ledger_app.add_task(task_data(frequency="weekly", recurrence_days=[6, 0, 6]))
    once = await ledger_app.add_task(task_data(frequency="one-time", due_date="2024-02-01"))

    assert isinstance(daily, DailyTask)
    assert isinstance(weekly, WeeklyTask)
    assert isinstance(once, OneTimeTask)
    assert weekly.recurrence_days == [0, 6]
    assert {daily.status, weekly.status, once.status} == {TaskStatus.PENDING}


@pytest.mark.unit
async def test_stored_document_omits_absent_fields(ledger_app: TaskLedgerApp, in_memory_db: InMemoryDBClient) -> None:
    task = await ledger_app.add_task(task_data())

    stored = await in_memory_db.get_record(collection="tasks", record_id=str(task.id))

    assert set(stored) == {
        "id",
        "created",
        "updated",
        "title",
        "assigned_to",
        "created_by",
        "frequency",
        "points",
        "status",
    }


@pytest.mark.unit
@pytest.mark.parametrize(
    "overrides",
    [
        {"title": "   "},
        {"points": -1},
        {"due_time": "7:30"},
        {"time_window": {"start": "19:00", "end": "15:00"}},
        {"time_window": {"start": "25:00", "end": "26:00"}},
        {"recurrence_days": [7]},
        {"due_date": "2024-02-01"},
        {"frequency": "one-time", "recurrence_days": [1]},
        {"frequency": "monthly"},
    ],
)
async def test_add_task_rejects_invalid_documents(ledger_app: TaskLedgerApp, overrides: dict) -> None:
    with pytest.raises(ValidationError):
        await ledger_app.add_task(task_data(**overrides))


@pytest.mark.unit
async def test_add_task_rejects_missing_title(ledger_app: TaskLedgerApp) -> None:
    data = task_data()
    del data["title"]
    with pytest.raises(ValidationError):
        await ledger_app.add_task(data)


@pytest.mark.unit
@pytest.mark.parametrize("field", ["status", "completed_at", "verified_at", "evidence_ref"])
async def test_add_task_rejects_lifecycle_fields(ledger_app: TaskLedgerApp, field: str) -> None:
    with pytest.raises(ValidationError, match=field):
        await ledger_app.add_task(task_data(**{field: "verified"}))


@pytest.mark.unit
async def test_update_task_edits_and_removes_fields(ledger_app: TaskLedgerApp, in_memory_db: InMemoryDBClient) -> None:
    task = await ledger_app.add_task(task_data(description="Pull the sheets straight"))

    updated = await ledger_app.update_task(str(task.id), {"title": "Make your bed", "description": None, "points": 15})

    assert updated.title == "Make your bed"
    assert updated.points == 15
    stored = await in_memory_db.get_record(collection="tasks", record_id=str(task.id))
    assert "description" not in stored


@pytest.mark.unit
async def test_update_task_validates_merged_document(ledger_app: TaskLedgerApp, in_memory_db: InMemoryDBClient) -> None:
    task = await ledger_app.add_task(task_data())

    with pytest.raises(ValidationError):
        await ledger_app.update_task(str(task.id), {"due_date": "2024-02-01"})

    stored = await in_memory_db.get_record(collection="tasks", record_id=str(task.id))
    assert "due_date" not in stored


@pytest.mark.unit
async def test_update_task_writes_normalized_values(ledger_app: TaskLedgerApp, in_memory_db: InMemoryDBClient) -> None:
    task = await ledger_app.add_task(task_data(frequency="weekly", recurrence_days=[2]))

    await ledger_app.update_task(str(task.id), {"title": "  Tidy room  ", "recurrence_days": [5, 1, 1], "points": "7"})

    stored = await in_memory_db.get_record(collection="tasks", record_id=str(task.id))
    assert stored["title"] == "Tidy room"
    assert stored["recurrence_days"] == [1, 5]
    assert stored["points"] == 7


@pytest.mark.unit
@pytest.mark.parametrize("updates", [{}, {"id": "99", "created": "2024-01-01"}])
async def test_update_task_rejects_empty_update(ledger_app: TaskLedgerApp, updates: dict) -> None:
    task = await ledger_app.add_task(task_data())
    with pytest.raises(ValidationError, match="Empty update"):
        await ledger_app.update_task(str(task.id), updates)


@pytest.mark.unit
async def test_update_task_rejects_lifecycle_fields(ledger_app: TaskLedgerApp) -> None:
    task = await ledger_app.add_task(task_data())
    with pytest.raises(ValidationError):
        await ledger_app.update_task(str(task.id), {"status": "verified"})


@pytest.mark.unit
async def test_update_and_delete_missing_task(ledger_app: TaskLedgerApp) -> None:
    with pytest.raises(NotFound):
        await ledger_app.update_task("4040", {"title": "Nope"})
    with pytest.raises(NotFound):
        await ledger_app.delete_task("4040")


@pytest.mark.unit
async def test_delete_task_keeps_history(ledger_app: TaskLedgerApp) -> None:
    task = await ledger_app.add_task(task_data(points=4))
    await ledger_app.complete(str(task.id))
    await ledger_app.verify(str(task.id))

    await ledger_app.delete_task(str(task.id))

    with pytest.raises(NotFound):
        await ledger_app.tasks.get_task(str(task.id))
    assert await ledger_app.balance("child-1") == 4


@pytest.mark.unit
async def test_list_tasks_filters(ledger_app: TaskLedgerApp) -> None:
    first = await ledger_app.add_task(task_data(title="Dishes"))
    await ledger_app.add_task(task_data(title="Trash", assigned_to="child-2"))
    await ledger_app.add_task(task_data(title="Template", assigned_to="pool"))
    await ledger_app.complete(str(first.id))

    assert [t.title for t in await ledger_app.tasks.list_tasks(assigned_to="child-1")] == ["Dishes"]
    assert [t.title for t in await ledger_app.tasks.list_tasks(assigned_to="pool")] == ["Template"]
    assert [t.title for t in await ledger_app.tasks.list_tasks(status=TaskStatus.COMPLETED)] == ["Dishes"]
    assert len(await ledger_app.tasks.list_tasks()) == 3


@pytest.mark.unit
async def test_assign_from_pool_clones_template(ledger_app: TaskLedgerApp) -> None:
    template = await ledger_app.add_task(
        task_data(
            title="Water plants",
            assigned_to="pool",
            frequency="weekly",
            recurrence_days=[6],
            time_window={"start": "09:00", "end": "12:00"},
        )
    )
    await ledger_app.add_task(task_data(title="Water plants", assigned_to="child-2"))

    result = await ledger_app.tasks.assign_from_pool(
        template_id=str(template.id), user_ids=["child-1", "child-2", "pool"]
    )

    assert len(result.created_task_ids) == 1
    assert result.skipped_user_ids == ["child-2", "pool"]
    clone = await ledger_app.tasks.get_task(result.created_task_ids[0])
    assert isinstance(clone, WeeklyTask)
    assert clone.assigned_to == "child-1"
    assert clone.status == TaskStatus.PENDING
    assert clone.recurrence_days == [6]
    assert clone.time_window is not None
    assert clone.time_window.start == "09:00"


@pytest.mark.unit
async def test_assign_from_pool_requires_template(ledger_app: TaskLedgerApp) -> None:
    task = await ledger_app.add_task(task_data())
    with pytest.raises(ValidationError):
        await ledger_app.tasks.assign_from_pool(template_id=str(task.id), user_ids=["child-2"])


@pytest.mark.unit
async def test_assign_from_pool_skips_expired_but_not_finished(ledger_app: TaskLedgerApp) -> None:
    template = await ledger_app.add_task(task_data(title="Feed the cat", assigned_to="pool"))
    done = await ledger_app.add_task(task_data(title="Feed the cat", assigned_to="child-1"))
    lapsed = await ledger_app.add_task(task_data(title="Feed the cat", assigned_to="child-2"))
    checked = await ledger_app.add_task(task_data(title="Feed the cat", assigned_to="child-3"))
    await ledger_app.complete(str(done.id))
    await ledger_app.fail(str(lapsed.id))
    await ledger_app.complete(str(checked.id))
    await ledger_app.verify(str(checked.id))

    result = await ledger_app.tasks.assign_from_pool(
        template_id=str(template.id), user_ids=["child-1", "child-2", "child-3"]
    )

    assert result.skipped_user_ids == ["child-2"]
    assigned = [(await ledger_app.tasks.get_task(task_id)).assigned_to for task_id in result.created_task_ids]
    assert assigned == ["child-1", "child-3"]
