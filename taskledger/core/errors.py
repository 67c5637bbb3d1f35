"""Domain errors and user-facing error classification."""

from enum import Enum

from pydantic import BaseModel


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCode:
    """Error codes for specific error conditions."""

    # Input errors
    ERR_VALIDATION = "ERR_VALIDATION"

    # Completion gate errors
    ERR_TIME_WINDOW = "ERR_TIME_WINDOW"
    ERR_DUE_DATE_EXPIRED = "ERR_DUE_DATE_EXPIRED"

    # Lookup and state errors
    ERR_NOT_FOUND = "ERR_NOT_FOUND"
    ERR_INVALID_TRANSITION = "ERR_INVALID_TRANSITION"

    # Points errors
    ERR_INSUFFICIENT_BALANCE = "ERR_INSUFFICIENT_BALANCE"

    # Generic errors
    ERR_UNKNOWN = "ERR_UNKNOWN"


class TaskLedgerError(Exception):
    """Base class for errors raised by the task and points engines."""

    code: str = ErrorCode.ERR_UNKNOWN


class ValidationError(TaskLedgerError):
    """A document is missing a required field or carries an invalid value."""

    code = ErrorCode.ERR_VALIDATION


class TimeWindowViolation(TaskLedgerError):
    """Completion attempted outside the task's time window."""

    code = ErrorCode.ERR_TIME_WINDOW

    def __init__(self, *, start: str, end: str, attempted_at: str) -> None:
        self.start = start
        self.end = end
        self.attempted_at = attempted_at
        super().__init__(f"Task can only be completed between {start} and {end} (attempted at {attempted_at})")


class DueDateExpired(TaskLedgerError):
    """Completion attempted after the task's due date."""

    code = ErrorCode.ERR_DUE_DATE_EXPIRED

    def __init__(self, *, due_date: str, today: str) -> None:
        self.due_date = due_date
        self.today = today
        super().__init__(f"Task was due on {due_date} and can no longer be completed ({today})")


class NotFound(TaskLedgerError):
    """Operation targets a document that does not exist."""

    code = ErrorCode.ERR_NOT_FOUND

    def __init__(self, *, collection: str, record_id: str) -> None:
        self.collection = collection
        self.record_id = record_id
        super().__init__(f"Record not found in {collection}: {record_id}")


class InvalidTransition(TaskLedgerError):
    """Operation attempted from a state that does not permit it."""

    code = ErrorCode.ERR_INVALID_TRANSITION

    def __init__(self, *, entity_id: str, current: str, operation: str) -> None:
        self.entity_id = entity_id
        self.current = current
        self.operation = operation
        super().__init__(f"Cannot {operation}: {entity_id} is in {current} state")


class InsufficientBalance(TaskLedgerError):
    """Redemption request exceeds the requester's current balance."""

    code = ErrorCode.ERR_INSUFFICIENT_BALANCE

    def __init__(self, *, balance: int, cost: int) -> None:
        self.balance = balance
        self.cost = cost
        super().__init__(f"Insufficient balance: {balance} points available, {cost} required")


class ErrorResponse(BaseModel):
    """Structured error response with user-friendly messaging."""

    code: str
    message: str
    suggestion: str
    severity: ErrorSeverity


def classify_error_with_response(exception: Exception) -> ErrorResponse:  # noqa: PLR0911
    """Classify an error and return a structured response with recovery suggestions.

    Args:
        exception: The exception raised during execution

    Returns:
        ErrorResponse with code, message, suggestion, and severity
    """
    if isinstance(exception, TimeWindowViolation):
        return ErrorResponse(
            code=exception.code,
            message=f"This task can only be completed between {exception.start} and {exception.end}.",
            suggestion="Try again during the allowed time window.",
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, DueDateExpired):
        return ErrorResponse(
            code=exception.code,
            message=f"This task was due on {exception.due_date}.",
            suggestion="Ask a guardian to reschedule the task.",
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, NotFound):
        return ErrorResponse(
            code=exception.code,
            message="That item no longer exists.",
            suggestion="Refresh the list and try again.",
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, InvalidTransition):
        return ErrorResponse(
            code=exception.code,
            message="This action cannot be performed in the current state.",
            suggestion="Refresh to see the latest status and try again.",
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, InsufficientBalance):
        return ErrorResponse(
            code=exception.code,
            message=f"Not enough points: {exception.balance} available, {exception.cost} needed.",
            suggestion="Complete more tasks to earn points.",
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, ValidationError):
        return ErrorResponse(
            code=exception.code,
            message=str(exception),
            suggestion="Check the highlighted fields and try again.",
            severity=ErrorSeverity.LOW,
        )

    return ErrorResponse(
        code=ErrorCode.ERR_UNKNOWN,
        message="An unexpected error occurred.",
        suggestion="Please try again later. If the problem persists, contact support.",
        severity=ErrorSeverity.MEDIUM,
    )
