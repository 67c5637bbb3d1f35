"""Family message board: short notes guardians pin for the household."""

import logging
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from taskledger.core.db_client import DocumentStore, RecordNotFoundError
from taskledger.core.errors import NotFound, ValidationError
from taskledger.core.logging import span
from taskledger.domain.message import Message


logger = logging.getLogger(__name__)

MESSAGES_COLLECTION = "messages"

_META_FIELDS = {"id", "created", "updated"}


def _validate_message(data: dict[str, Any]) -> Message:
    try:
        return Message.model_validate(data)
    except PydanticValidationError as e:
        messages = "; ".join(f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in e.errors())
        raise ValidationError(f"Invalid message: {messages}") from e


class MessageService:
    """CRUD for board messages, listed in the order they were posted."""

    def __init__(self, *, store: DocumentStore) -> None:
        self._store = store

    async def add_message(self, data: dict[str, Any]) -> Message:
        with span("message_service.add_message"):
            message = _validate_message(data)
            document = message.model_dump(mode="json", exclude_none=True, exclude=_META_FIELDS)
            record = await self._store.create_record(collection=MESSAGES_COLLECTION, data=document)
            logger.info("Posted message %s", record["id"])
            return Message.model_validate(record)

    async def get_message(self, message_id: str) -> Message:
        try:
            record = await self._store.get_record(collection=MESSAGES_COLLECTION, record_id=message_id)
        except RecordNotFoundError as e:
            raise NotFound(collection=MESSAGES_COLLECTION, record_id=message_id) from e
        return Message.model_validate(record)

    async def update_message(self, message_id: str, updates: dict[str, Any]) -> Message:
        """Edit a message in place.

        Raises:
            NotFound: If the message does not exist
            ValidationError: If the update is empty or the text would be blank
        """
        with span("message_service.update_message"):
            updates = {key: value for key, value in updates.items() if key not in _META_FIELDS}
            if not updates:
                raise ValidationError("Empty update")
            current = await self.get_message(message_id)
            merged = {**current.model_dump(exclude_none=True), **updates}
            message = _validate_message({key: value for key, value in merged.items() if value is not None})
            document = message.model_dump(mode="json", exclude_none=True, exclude=_META_FIELDS)
            data = {key: document.get(key) for key in updates}
            try:
                record = await self._store.update_record(
                    collection=MESSAGES_COLLECTION, record_id=message_id, data=data
                )
            except RecordNotFoundError as e:
                raise NotFound(collection=MESSAGES_COLLECTION, record_id=message_id) from e
            return Message.model_validate(record)

    async def delete_message(self, message_id: str) -> None:
        with span("message_service.delete_message"):
            try:
                await self._store.delete_record(collection=MESSAGES_COLLECTION, record_id=message_id)
            except RecordNotFoundError as e:
                raise NotFound(collection=MESSAGES_COLLECTION, record_id=message_id) from e
            logger.info("Deleted message %s", message_id)

    async def list_messages(self, *, search: str | None = None) -> list[Message]:
        """List messages, optionally keeping only those whose text contains ``search`` (case-insensitive)."""
        records = await self._store.list_all(collection=MESSAGES_COLLECTION)
        messages = [Message.model_validate(record) for record in records]
        if search:
            needle = search.casefold()
            messages = [message for message in messages if needle in message.text.casefold()]
        return messages
