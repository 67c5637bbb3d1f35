"""Append-only points ledger and balance projection."""

import logging
from collections.abc import Iterable
from typing import Any

from taskledger.core.db_client import DocumentStore, sanitize_param
from taskledger.core.logging import log_with_context, span
from taskledger.domain.history import HistoryEntry


logger = logging.getLogger(__name__)

HISTORY_COLLECTION = "history"


def compute_balance(entries: Iterable[HistoryEntry], user_id: str) -> int:
    """Sum the points of every entry belonging to ``user_id``.

    A pure fold over the entry set; missed entries carry 0 points.
    """
    return sum(entry.points for entry in entries if entry.assigned_to == user_id)


def _to_entry(record: dict[str, Any]) -> HistoryEntry:
    return HistoryEntry.model_validate(record)


class PointsLedger:
    """Write and read access to the ``history`` collection.

    Entries are only ever created. An entry may carry an ``event_key``; a
    second append with the same key is skipped so a retried operation never
    credits or debits twice.
    """

    def __init__(self, *, store: DocumentStore) -> None:
        self._store = store

    async def find_by_event_key(self, event_key: str) -> HistoryEntry | None:
        """Return the entry recorded for an event key, if any."""
        record = await self._store.get_first_record(
            collection=HISTORY_COLLECTION,
            filter_query=f'event_key = "{sanitize_param(event_key)}"',
        )
        return _to_entry(record) if record else None

    async def append(self, entry: HistoryEntry) -> HistoryEntry:
        """Record a new ledger entry (idempotent per event key)."""
        with span("ledger.append"):
            if entry.event_key:
                existing = await self.find_by_event_key(entry.event_key)
                if existing is not None:
                    log_with_context(
                        logger,
                        "info",
                        "Ledger entry already recorded, skipping",
                        event_key=entry.event_key,
                        entry_id=existing.id,
                    )
                    return existing

            data = entry.model_dump(mode="json", exclude_none=True, exclude={"id", "created", "updated"})
            record = await self._store.create_record(collection=HISTORY_COLLECTION, data=data)

            log_with_context(
                logger,
                "info",
                "Ledger entry appended",
                user_id=entry.assigned_to,
                task_id=entry.task_id,
                points=entry.points,
                status=entry.status,
            )
            return _to_entry(record)

    async def entries_for(self, user_id: str) -> list[HistoryEntry]:
        """Return every entry for a user, oldest first."""
        records = await self._store.list_all(
            collection=HISTORY_COLLECTION,
            filter_query=f'assigned_to = "{sanitize_param(user_id)}"',
            sort="+date",
        )
        return [_to_entry(record) for record in records]

    async def balance(self, user_id: str) -> int:
        """Project a user's balance from the ledger."""
        with span("ledger.balance"):
            return compute_balance(await self.entries_for(user_id), user_id)
