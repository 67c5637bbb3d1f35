"""Reward catalogue management."""

import logging
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from taskledger.core.db_client import DocumentStore, RecordNotFoundError
from taskledger.core.errors import NotFound, ValidationError
from taskledger.core.logging import span
from taskledger.domain.reward import Reward


logger = logging.getLogger(__name__)

REWARDS_COLLECTION = "rewards"

_META_FIELDS = {"id", "created", "updated"}


def _validate_reward(data: dict[str, Any]) -> Reward:
    try:
        return Reward.model_validate(data)
    except PydanticValidationError as e:
        messages = "; ".join(f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in e.errors())
        raise ValidationError(f"Invalid reward: {messages}") from e


class RewardService:
    """CRUD for rewards. Redemptions keep their own snapshot, so edits never rewrite history."""

    def __init__(self, *, store: DocumentStore) -> None:
        self._store = store

    async def add_reward(self, data: dict[str, Any]) -> Reward:
        with span("reward_service.add_reward"):
            reward = _validate_reward(data)
            document = reward.model_dump(mode="json", exclude_none=True, exclude=_META_FIELDS)
            record = await self._store.create_record(collection=REWARDS_COLLECTION, data=document)
            logger.info("Created reward '%s' costing %d points", reward.title, reward.cost)
            return Reward.model_validate(record)

    async def get_reward(self, reward_id: str) -> Reward:
        try:
            record = await self._store.get_record(collection=REWARDS_COLLECTION, record_id=reward_id)
        except RecordNotFoundError as e:
            raise NotFound(collection=REWARDS_COLLECTION, record_id=reward_id) from e
        return Reward.model_validate(record)

    async def update_reward(self, reward_id: str, updates: dict[str, Any]) -> Reward:
        """Update reward fields; None removes an optional field.

        Raises:
            NotFound: If the reward does not exist
            ValidationError: If the update is empty or the merged reward would be invalid
        """
        with span("reward_service.update_reward"):
            updates = {key: value for key, value in updates.items() if key not in _META_FIELDS}
            if not updates:
                raise ValidationError("Empty update")
            current = await self.get_reward(reward_id)
            merged = {**current.model_dump(exclude_none=True), **updates}
            reward = _validate_reward({key: value for key, value in merged.items() if value is not None})
            document = reward.model_dump(mode="json", exclude_none=True, exclude=_META_FIELDS)
            data = {key: document.get(key) for key in updates}
            try:
                record = await self._store.update_record(collection=REWARDS_COLLECTION, record_id=reward_id, data=data)
            except RecordNotFoundError as e:
                raise NotFound(collection=REWARDS_COLLECTION, record_id=reward_id) from e
            return Reward.model_validate(record)

    async def delete_reward(self, reward_id: str) -> None:
        with span("reward_service.delete_reward"):
            try:
                await self._store.delete_record(collection=REWARDS_COLLECTION, record_id=reward_id)
            except RecordNotFoundError as e:
                raise NotFound(collection=REWARDS_COLLECTION, record_id=reward_id) from e
            logger.info("Deleted reward %s", reward_id)

    async def list_rewards(self) -> list[Reward]:
        records = await self._store.list_all(collection=REWARDS_COLLECTION)
        return [Reward.model_validate(record) for record in records]
