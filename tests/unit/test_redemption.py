"""Tests for reward redemption requests and approvals."""

import pytest

from taskledger.app_state import TaskLedgerApp
from taskledger.core.db_client import DatabaseError
from taskledger.core.errors import InsufficientBalance, InvalidTransition, NotFound
from taskledger.domain.history import HistoryEntry, HistoryStatus
from taskledger.domain.reward import RedemptionStatus
from tests.unit.mocks import FlakyDBClient, InMemoryDBClient


async def _credit(ledger_app: TaskLedgerApp, points: int, user: str = "child-1") -> None:
    await ledger_app.ledger.append(
        HistoryEntry(
            task_id="1",
            task_title="Seed credit",
            assigned_to=user,
            points=points,
            status=HistoryStatus.VERIFIED,
            date="2024-01-09",
        )
    )


async def _reward(ledger_app: TaskLedgerApp, cost: int = 50) -> str:
    reward = await ledger_app.rewards.add_reward({"title": "Movie night", "cost": cost, "created_by": "guardian-1"})
    return str(reward.id)


@pytest.mark.unit
async def test_request_refused_when_balance_too_low(ledger_app: TaskLedgerApp, in_memory_db: InMemoryDBClient) -> None:
    await _credit(ledger_app, 40)
    reward_id = await _reward(ledger_app, cost=50)

    with pytest.raises(InsufficientBalance) as exc_info:
        await ledger_app.request_redemption(reward_id, "child-1")

    assert exc_info.value.balance == 40
    assert exc_info.value.cost == 50
    assert in_memory_db.records("redemptions") == []


@pytest.mark.unit
async def test_request_snapshots_reward(ledger_app: TaskLedgerApp) -> None:
    await _credit(ledger_app, 60)
    reward_id = await _reward(ledger_app, cost=50)

    redemption = await ledger_app.request_redemption(reward_id, "child-1")
    await ledger_app.rewards.update_reward(reward_id, {"title": "Cinema trip", "cost": 80})
    await ledger_app.rewards.delete_reward(reward_id)

    stored = (await ledger_app.list_redemptions())[0]
    assert redemption.status == RedemptionStatus.PENDING
    assert redemption.requested_at == "2024-01-10T16:30:00+00:00"
    assert stored.reward_title == "Movie night"
    assert stored.cost == 50


@pytest.mark.unit
async def test_approve_debits_balance(ledger_app: TaskLedgerApp, in_memory_db: InMemoryDBClient) -> None:
    await _credit(ledger_app, 60)
    redemption = await ledger_app.request_redemption(await _reward(ledger_app, cost=50), "child-1")

    approved = await ledger_app.approve_redemption(str(redemption.id))

    assert approved.status == RedemptionStatus.APPROVED
    assert approved.resolved_at is not None
    assert await ledger_app.balance("child-1") == 10
    debit = [e for e in in_memory_db.records("history") if e["points"] < 0]
    assert len(debit) == 1
    assert debit[0]["points"] == -50
    assert debit[0]["status"] == "verified"
    assert debit[0]["date"] == "2024-01-10"
    assert debit[0]["redemption_id"] == str(redemption.id)


@pytest.mark.unit
async def test_second_approve_raises_without_second_debit(
    ledger_app: TaskLedgerApp, in_memory_db: InMemoryDBClient
) -> None:
    await _credit(ledger_app, 60)
    redemption = await ledger_app.request_redemption(await _reward(ledger_app, cost=50), "child-1")
    await ledger_app.approve_redemption(str(redemption.id))

    with pytest.raises(InvalidTransition):
        await ledger_app.approve_redemption(str(redemption.id))

    assert len(in_memory_db.records("history")) == 2
    assert await ledger_app.balance("child-1") == 10


@pytest.mark.unit
async def test_reject_has_no_ledger_effect(ledger_app: TaskLedgerApp, in_memory_db: InMemoryDBClient) -> None:
    await _credit(ledger_app, 60)
    redemption = await ledger_app.request_redemption(await _reward(ledger_app, cost=50), "child-1")

    rejected = await ledger_app.reject_redemption(str(redemption.id))

    assert rejected.status == RedemptionStatus.REJECTED
    assert len(in_memory_db.records("history")) == 1
    assert await ledger_app.balance("child-1") == 60

    with pytest.raises(InvalidTransition):
        await ledger_app.approve_redemption(str(redemption.id))


@pytest.mark.unit
async def test_request_unknown_reward_raises_not_found(ledger_app: TaskLedgerApp) -> None:
    with pytest.raises(NotFound):
        await ledger_app.request_redemption("4242", "child-1")


@pytest.mark.unit
async def test_list_redemptions_by_status(ledger_app: TaskLedgerApp) -> None:
    await _credit(ledger_app, 100)
    reward_id = await _reward(ledger_app, cost=10)
    first = await ledger_app.request_redemption(reward_id, "child-1")
    await ledger_app.request_redemption(reward_id, "child-1")
    await ledger_app.approve_redemption(str(first.id))

    pending = await ledger_app.list_redemptions(RedemptionStatus.PENDING)
    approved = await ledger_app.list_redemptions(RedemptionStatus.APPROVED)

    assert len(pending) == 1
    assert [r.id for r in approved] == [first.id]


@pytest.mark.unit
async def test_approve_retry_after_status_write_failure_debits_once(
    flaky_app: TaskLedgerApp, flaky_db: FlakyDBClient
) -> None:
    await _credit(flaky_app, 60)
    redemption = await flaky_app.request_redemption(await _reward(flaky_app, cost=50), "child-1")

    flaky_db.fail_next("update", "redemptions")
    with pytest.raises(DatabaseError):
        await flaky_app.approve_redemption(str(redemption.id))

    # Debit written, redemption still pending
    assert await flaky_app.balance("child-1") == 10
    assert (await flaky_app.list_redemptions(RedemptionStatus.PENDING))[0].id == redemption.id

    await flaky_app.approve_redemption(str(redemption.id))

    assert await flaky_app.balance("child-1") == 10
    assert len(flaky_db.records("history")) == 2
