"""JSON endpoints exposing task, points, reward and message board operations to collaborators."""

import logging
from datetime import date
from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, Query, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from taskledger.app_state import TaskLedgerApp
from taskledger.core.errors import ErrorCode, TaskLedgerError, classify_error_with_response
from taskledger.domain.reward import RedemptionStatus
from taskledger.domain.task import TaskStatus
from taskledger.domain.user import UserRole


router = APIRouter(tags=["taskledger"])
logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = {
    ErrorCode.ERR_VALIDATION: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.ERR_TIME_WINDOW: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.ERR_DUE_DATE_EXPIRED: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.ERR_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.ERR_INVALID_TRANSITION: status.HTTP_409_CONFLICT,
    ErrorCode.ERR_INSUFFICIENT_BALANCE: status.HTTP_409_CONFLICT,
}


class CompleteRequest(BaseModel):
    evidence_ref: str | None = Field(default=None, description="Opaque reference to completion evidence")


class VerifyRequest(BaseModel):
    force: bool = Field(default=False, description="Allow verifying a pending task directly")


class AssignRequest(BaseModel):
    user_ids: list[str] = Field(..., min_length=1, description="Users to receive a copy of the template")


class VacationRequest(BaseModel):
    enabled: bool


class RedemptionRequest(BaseModel):
    reward_id: str
    user_id: str


def get_ledger_app(request: Request) -> TaskLedgerApp:
    """Return the application state attached during startup."""
    return request.app.state.ledger_app


LedgerApp = Annotated[TaskLedgerApp, Depends(get_ledger_app)]
Document = Annotated[dict[str, Any], Body()]


def _dump(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(mode="json", exclude_none=True)


async def task_ledger_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    """Translate engine errors into JSON error bodies with a matching status code."""
    response = classify_error_with_response(exc)
    status_code = ERROR_STATUS_CODES.get(response.code, status.HTTP_500_INTERNAL_SERVER_ERROR)
    if isinstance(exc, TaskLedgerError):
        logger.info("Request refused: %s", exc, extra={"code": response.code})
    return JSONResponse(
        status_code=status_code,
        content={
            "code": response.code,
            "message": response.message,
            "suggestion": response.suggestion,
            "severity": response.severity.value,
            "detail": str(exc),
        },
    )


# Tasks


@router.post("/tasks", status_code=status.HTTP_201_CREATED)
async def create_task(ledger: LedgerApp, data: Document) -> dict[str, Any]:
    return _dump(await ledger.add_task(data))


@router.get("/tasks")
async def list_tasks(
    ledger: LedgerApp,
    assigned_to: str | None = None,
    task_status: Annotated[TaskStatus | None, Query(alias="status")] = None,
) -> list[dict[str, Any]]:
    tasks = await ledger.tasks.list_tasks(assigned_to=assigned_to, status=task_status)
    return [_dump(task) for task in tasks]


@router.get("/tasks/{task_id}")
async def get_task(ledger: LedgerApp, task_id: str) -> dict[str, Any]:
    return _dump(await ledger.tasks.get_task(task_id))


@router.patch("/tasks/{task_id}")
async def update_task(ledger: LedgerApp, task_id: str, updates: Document) -> dict[str, Any]:
    return _dump(await ledger.update_task(task_id, updates))


@router.delete("/tasks/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(ledger: LedgerApp, task_id: str) -> None:
    await ledger.delete_task(task_id)


@router.post("/tasks/{task_id}/complete")
async def complete_task(ledger: LedgerApp, task_id: str, body: CompleteRequest | None = None) -> dict[str, Any]:
    evidence_ref = body.evidence_ref if body else None
    return _dump(await ledger.complete(task_id, evidence_ref))


@router.post("/tasks/{task_id}/verify")
async def verify_task(ledger: LedgerApp, task_id: str, body: VerifyRequest | None = None) -> dict[str, Any]:
    return _dump(await ledger.verify(task_id, force=bool(body and body.force)))


@router.post("/tasks/{task_id}/reject")
async def reject_task(ledger: LedgerApp, task_id: str) -> dict[str, Any]:
    return _dump(await ledger.reject(task_id))


@router.post("/tasks/{task_id}/fail")
async def fail_task(ledger: LedgerApp, task_id: str) -> dict[str, Any]:
    return _dump(await ledger.fail(task_id))


@router.post("/tasks/{task_id}/assign")
async def assign_template(ledger: LedgerApp, task_id: str, body: AssignRequest) -> dict[str, Any]:
    result = await ledger.tasks.assign_from_pool(template_id=task_id, user_ids=body.user_ids)
    return _dump(result)


@router.get("/tasks/{task_id}/active")
async def task_active_today(ledger: LedgerApp, task_id: str) -> dict[str, Any]:
    task = await ledger.tasks.get_task(task_id)
    vacation_mode = await ledger.users.vacation_mode_active()
    return {
        "task_id": task_id,
        "date": ledger.clock.today_date().isoformat(),
        "vacation_mode": vacation_mode,
        "active": ledger.is_active_today(task, vacation_mode),
    }


@router.post("/recurrence/sweep")
async def run_recurrence_sweep(ledger: LedgerApp) -> dict[str, Any]:
    return _dump(await ledger.run_recurrence_sweep())


# Users


@router.post("/users", status_code=status.HTTP_201_CREATED)
async def create_user(ledger: LedgerApp, data: Document) -> dict[str, Any]:
    return _dump(await ledger.users.add_user(data))


@router.get("/users")
async def list_users(ledger: LedgerApp, role: UserRole | None = None) -> list[dict[str, Any]]:
    return [_dump(user) for user in await ledger.users.list_users(role=role)]


@router.patch("/users/{user_id}")
async def update_user(ledger: LedgerApp, user_id: str, updates: Document) -> dict[str, Any]:
    return _dump(await ledger.users.update_user(user_id, updates))


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(ledger: LedgerApp, user_id: str) -> None:
    await ledger.users.delete_user(user_id)


@router.post("/users/{user_id}/vacation")
async def set_vacation_mode(ledger: LedgerApp, user_id: str, body: VacationRequest) -> dict[str, Any]:
    return _dump(await ledger.users.set_vacation_mode(user_id, enabled=body.enabled))


@router.get("/users/{user_id}/tasks/today")
async def tasks_today(ledger: LedgerApp, user_id: str) -> list[dict[str, Any]]:
    return [_dump(task) for task in await ledger.active_tasks_today(user_id)]


@router.get("/users/{user_id}/balance")
async def get_balance(ledger: LedgerApp, user_id: str) -> dict[str, Any]:
    return {"user_id": user_id, "balance": await ledger.balance(user_id)}


@router.get("/users/{user_id}/statistics")
async def get_statistics(ledger: LedgerApp, user_id: str, week_of: date | None = None) -> dict[str, Any]:
    return _dump(await ledger.weekly_statistics(user_id, week_of))


# Rewards


@router.post("/rewards", status_code=status.HTTP_201_CREATED)
async def create_reward(ledger: LedgerApp, data: Document) -> dict[str, Any]:
    return _dump(await ledger.rewards.add_reward(data))


@router.get("/rewards")
async def list_rewards(ledger: LedgerApp) -> list[dict[str, Any]]:
    return [_dump(reward) for reward in await ledger.rewards.list_rewards()]


@router.patch("/rewards/{reward_id}")
async def update_reward(ledger: LedgerApp, reward_id: str, updates: Document) -> dict[str, Any]:
    return _dump(await ledger.rewards.update_reward(reward_id, updates))


@router.delete("/rewards/{reward_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_reward(ledger: LedgerApp, reward_id: str) -> None:
    await ledger.rewards.delete_reward(reward_id)


# Messages


@router.post("/messages", status_code=status.HTTP_201_CREATED)
async def post_message(ledger: LedgerApp, data: Document) -> dict[str, Any]:
    return _dump(await ledger.messages.add_message(data))


@router.get("/messages")
async def list_messages(ledger: LedgerApp, search: str | None = None) -> list[dict[str, Any]]:
    return [_dump(message) for message in await ledger.messages.list_messages(search=search)]


@router.patch("/messages/{message_id}")
async def update_message(ledger: LedgerApp, message_id: str, updates: Document) -> dict[str, Any]:
    return _dump(await ledger.messages.update_message(message_id, updates))


@router.delete("/messages/{message_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_message(ledger: LedgerApp, message_id: str) -> None:
    await ledger.messages.delete_message(message_id)


# Redemptions


@router.post("/redemptions", status_code=status.HTTP_201_CREATED)
async def request_redemption(ledger: LedgerApp, body: RedemptionRequest) -> dict[str, Any]:
    return _dump(await ledger.request_redemption(body.reward_id, body.user_id))


@router.get("/redemptions")
async def list_redemptions(
    ledger: LedgerApp,
    redemption_status: Annotated[RedemptionStatus | None, Query(alias="status")] = None,
) -> list[dict[str, Any]]:
    return [_dump(redemption) for redemption in await ledger.list_redemptions(redemption_status)]


@router.post("/redemptions/{redemption_id}/approve")
async def approve_redemption(ledger: LedgerApp, redemption_id: str) -> dict[str, Any]:
    return _dump(await ledger.approve_redemption(redemption_id))


@router.post("/redemptions/{redemption_id}/reject")
async def reject_redemption(ledger: LedgerApp, redemption_id: str) -> dict[str, Any]:
    return _dump(await ledger.reject_redemption(redemption_id))
