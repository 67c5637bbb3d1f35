"""Configuration management for taskledger."""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage Configuration
    sqlite_db_path: str = Field(default="data/taskledger.db", description="Path to the SQLite document store")

    # Clock Configuration
    timezone: str = Field(default="UTC", description="IANA timezone used for wall-clock time gates and dates")

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")
    environment: str = Field(default="production", description="Deployment environment name")

    # Recurrence Configuration
    recurrence_trigger: Literal["change", "poll"] = Field(
        default="change",
        description="Run the recurrence sweep on task changes ('change') or on a fixed interval ('poll')",
    )
    recurrence_poll_seconds: int = Field(
        default=60, description="Polling interval for the recurrence sweep when recurrence_trigger='poll'"
    )

    # Statistics Configuration
    missed_warning_threshold: int = Field(
        default=5, description="Missed tasks per week above which a dependent gets a warning"
    )


# Application Constants
class Constants:
    """Application-wide constants."""

    # Task assignment
    POOL_ASSIGNEE: str = "pool"

    # Weekdays use 0=Sunday..6=Saturday; school runs Monday to Friday
    SCHOOL_WEEKDAYS: frozenset[int] = frozenset({1, 2, 3, 4, 5})

    # Recurrence
    WEEKLY_RESET_DAYS: int = 7

    # Redemption ledger entries
    REDEMPTION_TASK_PREFIX: str = "redemption-"

    # Job retries
    JOB_MAX_RETRIES: int = 3
    JOB_RETRY_BASE_SECONDS: float = 1.0
    TRACKER_DEAD_LETTER_QUEUE_MAXLEN: int = 100

    # Pagination Defaults
    DEFAULT_PER_PAGE_LIMIT: int = 500

    # HTTP Status Codes
    HTTP_OK: int = 200
    HTTP_SERVICE_UNAVAILABLE: int = 503


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    return Settings()


# Global settings instance
settings = get_settings()
constants = Constants()
