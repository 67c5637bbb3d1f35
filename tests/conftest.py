"""Pytest configuration and shared fixtures."""

from collections.abc import AsyncIterator
from pathlib import Path

import pytest

from taskledger.core.config import Settings
from taskledger.core.db_client import DocumentStore


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Override settings for testing."""
    return Settings(
        sqlite_db_path=str(tmp_path / "taskledger-test.db"),
        timezone="UTC",
        logfire_token=None,
        environment="test",
        recurrence_trigger="change",
        missed_warning_threshold=5,
    )


@pytest.fixture
async def sqlite_store(test_settings: Settings) -> AsyncIterator[DocumentStore]:
    """Provide a fresh SQLite-backed document store with the schema applied."""
    store = DocumentStore(db_path=test_settings.sqlite_db_path)
    await store.init_db()
    yield store
    await store.close()
