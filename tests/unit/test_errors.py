"""Tests for error classification."""

import pytest

from taskledger.core.errors import (
    DueDateExpired,
    ErrorCode,
    ErrorSeverity,
    InsufficientBalance,
    InvalidTransition,
    NotFound,
    TimeWindowViolation,
    ValidationError,
    classify_error_with_response,
)


@pytest.mark.unit
@pytest.mark.parametrize(
    ("exception", "code"),
    [
        (ValidationError("title: field required"), ErrorCode.ERR_VALIDATION),
        (TimeWindowViolation(start="15:00", end="19:00", attempted_at="10:00"), ErrorCode.ERR_TIME_WINDOW),
        (DueDateExpired(due_date="2024-01-09", today="2024-01-10"), ErrorCode.ERR_DUE_DATE_EXPIRED),
        (NotFound(collection="tasks", record_id="42"), ErrorCode.ERR_NOT_FOUND),
        (InvalidTransition(entity_id="42", current="verified", operation="verify"), ErrorCode.ERR_INVALID_TRANSITION),
        (InsufficientBalance(balance=40, cost=50), ErrorCode.ERR_INSUFFICIENT_BALANCE),
    ],
)
def test_domain_errors_keep_their_code(exception: Exception, code: str) -> None:
    response = classify_error_with_response(exception)

    assert response.code == code
    assert response.severity == ErrorSeverity.LOW


@pytest.mark.unit
def test_time_window_message_names_window() -> None:
    response = classify_error_with_response(TimeWindowViolation(start="15:00", end="19:00", attempted_at="10:00"))

    assert "15:00" in response.message
    assert "19:00" in response.message


@pytest.mark.unit
def test_insufficient_balance_message_names_amounts() -> None:
    exc = InsufficientBalance(balance=40, cost=50)

    response = classify_error_with_response(exc)

    assert "40" in response.message
    assert "50" in response.message
    assert str(exc) == "Insufficient balance: 40 points available, 50 required"


@pytest.mark.unit
def test_unknown_errors_are_generic() -> None:
    response = classify_error_with_response(RuntimeError("disk full"))

    assert response.code == ErrorCode.ERR_UNKNOWN
    assert response.severity == ErrorSeverity.MEDIUM
    assert "disk full" not in response.message
