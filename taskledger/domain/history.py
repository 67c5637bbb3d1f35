"""History (ledger) entry models for the points audit trail."""

from enum import StrEnum

from pydantic import BaseModel, Field


class HistoryStatus(StrEnum):
    """Outcome recorded by a ledger entry."""

    VERIFIED = "verified"
    MISSED = "missed"


class HistoryEntry(BaseModel):
    """Immutable ledger entry; balances are derived from these alone."""

    id: str | None = Field(default=None, description="Unique entry ID from database")
    created: str | None = Field(default=None, description="Creation timestamp (ISO format)")
    updated: str | None = Field(default=None, description="Last update timestamp (ISO format)")
    task_id: str = Field(..., description="Task ID, or 'redemption-<id>' for reward debits")
    task_title: str = Field(..., description="Task title at the time of the event")
    assigned_to: str = Field(..., description="User whose balance this entry affects")
    points: int = Field(..., description="Signed points; negative for redemptions")
    status: HistoryStatus = Field(..., description="verified or missed")
    date: str = Field(..., description="Calendar date of the event (YYYY-MM-DD)")
    completed_at: str | None = Field(default=None, description="When the task was completed (ISO format)")
    is_responsibility: bool = Field(default=False, description="Snapshot of the task's responsibility flag")
    redemption_id: str | None = Field(default=None, description="Redemption that produced this debit")
    event_key: str | None = Field(
        default=None,
        description="Identity of the event that produced the entry; at most one entry per key",
    )
