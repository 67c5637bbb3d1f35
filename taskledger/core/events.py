"""Change feed broadcasting document store writes to subscribers."""

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass
from enum import StrEnum


logger = logging.getLogger(__name__)


class ChangeAction(StrEnum):
    """Kind of write that produced a change event."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class ChangeEvent:
    """A single committed write to a collection."""

    collection: str
    action: ChangeAction
    record_id: str


class ChangeFeed:
    """Fan-out of change events to per-subscriber queues.

    Publishing never calls subscriber code directly; each subscriber drains
    its own queue on its own task, so a write can never re-enter a handler.
    """

    def __init__(self) -> None:
        self._queues: dict[str, list[asyncio.Queue[ChangeEvent]]] = defaultdict(list)

    def open(self, collection: str) -> asyncio.Queue[ChangeEvent]:
        """Register a new subscriber queue for a collection."""
        queue: asyncio.Queue[ChangeEvent] = asyncio.Queue()
        self._queues[collection].append(queue)
        return queue

    def close(self, collection: str, queue: asyncio.Queue[ChangeEvent]) -> None:
        """Unregister a subscriber queue."""
        queues = self._queues.get(collection, [])
        if queue in queues:
            queues.remove(queue)

    def publish(self, event: ChangeEvent) -> None:
        """Deliver an event to every subscriber of its collection."""
        for queue in self._queues.get(event.collection, []):
            queue.put_nowait(event)
        logger.debug(
            "Published change event",
            extra={"collection": event.collection, "action": event.action, "record_id": event.record_id},
        )

    def subscriber_count(self, collection: str) -> int:
        return len(self._queues.get(collection, []))


def drain(queue: asyncio.Queue[ChangeEvent]) -> list[ChangeEvent]:
    """Pop every event currently waiting in a queue without blocking."""
    events = []
    while not queue.empty():
        events.append(queue.get_nowait())
    return events
