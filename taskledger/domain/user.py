"""User domain models and enums."""

import re
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator


# Constants for validation
MAX_NAME_LENGTH = 50


class UserRole(StrEnum):
    """User role in the household."""

    GUARDIAN = "guardian"
    DEPENDENT = "dependent"


class User(BaseModel):
    """User data transfer object."""

    model_config = ConfigDict(extra="forbid")

    id: str | None = Field(default=None, description="Unique user ID from database")
    created: str | None = None
    updated: str | None = None
    name: str = Field(..., description="Display name of the user")
    role: UserRole = Field(default=UserRole.DEPENDENT, description="User role in household")
    username: str | None = Field(default=None, description="Login name")
    color: str | None = Field(default=None, description="Hex colour used to identify the user")
    avatar: str | None = Field(default=None, description="Avatar reference")
    is_vacation_mode: bool = Field(default=False, description="Guardian switch suspending school tasks")

    @field_validator("name")
    @classmethod
    def validate_name_usable(cls, v: str) -> str:
        """Validate name is usable - allows Unicode letters, spaces, hyphens, apostrophes."""
        v = v.strip()

        if not v:
            raise ValueError("Name cannot be empty")

        if len(v) > MAX_NAME_LENGTH:
            raise ValueError(f"Name too long (max {MAX_NAME_LENGTH} characters)")

        if not re.match(r"^[\w\s'-]+$", v, re.UNICODE):
            raise ValueError("Name can only contain letters, spaces, hyphens, and apostrophes")

        return v

    @field_validator("color")
    @classmethod
    def validate_color(cls, v: str | None) -> str | None:
        if v is not None and not re.match(r"^#[0-9a-fA-F]{6}$", v):
            raise ValueError("Color must be a hex code like #1E90FF")
        return v
