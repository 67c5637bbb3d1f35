#!/usr/bin/env python3
"""Seed pool task templates from a JSON file.

Usage:
    python scripts/seed_templates.py templates.json
    python scripts/seed_templates.py templates.json --keep-existing --db-path data/dev.db

The file holds a JSON list of objects with ``title`` and optional
``description``, ``points``, ``frequency``, ``is_responsibility``,
``is_school``, ``time_window`` and ``due_time``. Existing pool templates are
deleted first unless ``--keep-existing`` is given.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from taskledger.app_state import TaskLedgerApp
from taskledger.core.config import Constants
from taskledger.core.db_client import DocumentStore
from taskledger.core.errors import ValidationError


logging.basicConfig(level=logging.INFO, format="%(message)s")
logger = logging.getLogger(__name__)

SEED_CREATOR = "system-seed"
DEFAULT_POINTS = 10


def build_template(raw: dict[str, Any]) -> dict[str, Any]:
    """Fill in seeding defaults and force the task into the pool."""
    template: dict[str, Any] = {
        "title": raw.get("title") or "Untitled",
        "description": raw.get("description", ""),
        "points": raw.get("points", DEFAULT_POINTS),
        "assigned_to": Constants.POOL_ASSIGNEE,
        "created_by": SEED_CREATOR,
        "frequency": raw.get("frequency", "daily"),
        "is_responsibility": raw.get("is_responsibility", True),
        "is_school": raw.get("is_school", False),
    }
    for optional in ("time_window", "due_time", "recurrence_days", "due_date"):
        if raw.get(optional):
            template[optional] = raw[optional]
    return template


async def seed_templates(ledger: TaskLedgerApp, templates: list[dict[str, Any]], *, replace: bool = True) -> int:
    """Insert templates through the task service; returns how many were created.

    Args:
        ledger: Application state to write through
        templates: Raw template objects from the JSON file
        replace: Delete existing pool templates first
    """
    if replace:
        existing = await ledger.tasks.list_tasks(assigned_to=Constants.POOL_ASSIGNEE)
        for task in existing:
            await ledger.delete_task(str(task.id))
        logger.info("Removed %d existing template(s)", len(existing))

    created = 0
    for raw in templates:
        try:
            task = await ledger.add_task(build_template(raw))
        except ValidationError as e:
            logger.warning("Skipping template %r: %s", raw.get("title"), e)
            continue
        logger.info("Seeded template: %s", task.title)
        created += 1
    return created


async def run(path: Path, *, db_path: str | None, replace: bool) -> int:
    templates = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(templates, list):
        raise ValueError(f"{path} must contain a JSON list of templates")

    ledger = TaskLedgerApp(store=DocumentStore(db_path=db_path) if db_path else None)
    await ledger.store.init_db()
    try:
        return await seed_templates(ledger, templates, replace=replace)
    finally:
        await ledger.store.close()


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Seed pool task templates from a JSON file")
    parser.add_argument("templates", type=Path, help="Path to the templates JSON file")
    parser.add_argument(
        "--db-path",
        type=str,
        default=None,
        help="Path to database file (default: uses settings.sqlite_db_path)",
    )
    parser.add_argument(
        "--keep-existing",
        action="store_true",
        help="Keep existing pool templates instead of replacing them",
    )

    args = parser.parse_args()

    if not args.templates.exists():
        logger.error("Templates file not found: %s", args.templates)
        sys.exit(1)

    created = asyncio.run(run(args.templates, db_path=args.db_path, replace=not args.keep_existing))
    logger.info("Seeded %d template(s)", created)


if __name__ == "__main__":
    main()
