"""User service for the flat set of household members."""

import logging
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from taskledger.core.db_client import DocumentStore, RecordNotFoundError
from taskledger.core.errors import NotFound, ValidationError
from taskledger.core.logging import span
from taskledger.domain.user import User, UserRole


logger = logging.getLogger(__name__)

USERS_COLLECTION = "users"

_META_FIELDS = {"id", "created", "updated"}


def _validate_user(data: dict[str, Any]) -> User:
    try:
        return User.model_validate(data)
    except PydanticValidationError as e:
        messages = "; ".join(f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in e.errors())
        raise ValidationError(f"Invalid user: {messages}") from e


class UserService:
    """CRUD for users plus the guardian-wide vacation switch."""

    def __init__(self, *, store: DocumentStore) -> None:
        self._store = store

    async def add_user(self, data: dict[str, Any]) -> User:
        """Create a user.

        Raises:
            ValidationError: If the name or other fields are invalid
        """
        with span("user_service.add_user"):
            user = _validate_user(data)
            document = user.model_dump(mode="json", exclude_none=True, exclude=_META_FIELDS)
            record = await self._store.create_record(collection=USERS_COLLECTION, data=document)
            logger.info("Created user %s (%s)", user.name, user.role)
            return User.model_validate(record)

    async def get_user(self, user_id: str) -> User:
        try:
            record = await self._store.get_record(collection=USERS_COLLECTION, record_id=user_id)
        except RecordNotFoundError as e:
            raise NotFound(collection=USERS_COLLECTION, record_id=user_id) from e
        return User.model_validate(record)

    async def update_user(self, user_id: str, updates: dict[str, Any]) -> User:
        """Update a user's fields.

        Raises:
            NotFound: If the user does not exist
            ValidationError: If the update is empty or the merged user would be invalid
        """
        with span("user_service.update_user"):
            updates = {key: value for key, value in updates.items() if key not in _META_FIELDS}
            if not updates:
                raise ValidationError("Empty update")
            current = await self.get_user(user_id)
            merged = {**current.model_dump(exclude_none=True), **updates}
            user = _validate_user({key: value for key, value in merged.items() if value is not None})
            document = user.model_dump(mode="json", exclude_none=True, exclude=_META_FIELDS)
            data = {key: document.get(key) for key in updates}
            try:
                record = await self._store.update_record(collection=USERS_COLLECTION, record_id=user_id, data=data)
            except RecordNotFoundError as e:
                raise NotFound(collection=USERS_COLLECTION, record_id=user_id) from e
            logger.info("Updated user %s", user_id)
            return User.model_validate(record)

    async def delete_user(self, user_id: str) -> None:
        with span("user_service.delete_user"):
            try:
                await self._store.delete_record(collection=USERS_COLLECTION, record_id=user_id)
            except RecordNotFoundError as e:
                raise NotFound(collection=USERS_COLLECTION, record_id=user_id) from e
            logger.info("Deleted user %s", user_id)

    async def list_users(self, *, role: UserRole | None = None) -> list[User]:
        filter_query = f'role = "{role}"' if role else ""
        records = await self._store.list_all(collection=USERS_COLLECTION, filter_query=filter_query)
        return [User.model_validate(record) for record in records]

    async def set_vacation_mode(self, guardian_id: str, *, enabled: bool) -> User:
        """Turn a guardian's vacation switch on or off.

        Raises:
            NotFound: If the user does not exist
            ValidationError: If the user is not a guardian
        """
        user = await self.get_user(guardian_id)
        if user.role != UserRole.GUARDIAN:
            raise ValidationError(f"User {guardian_id} is not a guardian")
        return await self.update_user(guardian_id, {"is_vacation_mode": enabled})

    async def vacation_mode_active(self) -> bool:
        """Vacation mode is on when any guardian has switched it on."""
        guardians = await self.list_users(role=UserRole.GUARDIAN)
        return any(guardian.is_vacation_mode for guardian in guardians)
