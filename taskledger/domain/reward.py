"""Reward and redemption domain models."""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RedemptionStatus(StrEnum):
    """Redemption request state; approved and rejected are terminal."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Reward(BaseModel):
    """Something a dependent can exchange points for."""

    model_config = ConfigDict(extra="forbid")

    id: str | None = Field(default=None, description="Unique reward ID from database")
    created: str | None = None
    updated: str | None = None
    title: str = Field(..., description="Reward title (e.g., '30 minutes of video games')")
    description: str | None = Field(default=None, description="Longer description")
    cost: int = Field(..., ge=0, description="Points required")
    icon: str | None = Field(default=None, description="Emoji or icon reference")
    created_by: str = Field(..., description="Guardian user ID that owns the reward")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Title cannot be empty")
        return v


class Redemption(BaseModel):
    """Request to exchange points for a reward.

    Title and cost are copied from the reward at request time so later edits
    or deletion of the reward never change history.
    """

    model_config = ConfigDict(extra="forbid")

    id: str | None = Field(default=None, description="Unique redemption ID from database")
    created: str | None = None
    updated: str | None = None
    reward_id: str = Field(..., description="Reward the request was made for")
    reward_title: str = Field(..., description="Reward title snapshot")
    cost: int = Field(..., ge=0, description="Reward cost snapshot")
    requested_by: str = Field(..., description="Dependent user ID")
    status: RedemptionStatus = Field(default=RedemptionStatus.PENDING)
    requested_at: str = Field(..., description="Request timestamp (ISO format)")
    resolved_at: str | None = Field(default=None, description="Approval or rejection timestamp (ISO format)")
