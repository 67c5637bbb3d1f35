"""Household message board domain model."""

from pydantic import BaseModel, ConfigDict, Field, field_validator


MAX_MESSAGE_LENGTH = 500


class Message(BaseModel):
    """A note pinned to the family message board."""

    model_config = ConfigDict(extra="forbid")

    id: str | None = Field(default=None, description="Unique message ID from database")
    created: str | None = None
    updated: str | None = None
    text: str = Field(..., description="Message body")
    posted_by: str | None = Field(default=None, description="User ID of the author")

    @field_validator("text")
    @classmethod
    def validate_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Message cannot be empty")
        if len(v) > MAX_MESSAGE_LENGTH:
            raise ValueError(f"Message too long (max {MAX_MESSAGE_LENGTH} characters)")
        return v
