"""SQLite document store with CRUD operations and change notifications."""

import asyncio
import json
import logging
import re
from collections.abc import AsyncIterator
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import aiosqlite
from pydantic_core import to_jsonable_python

from taskledger.core import schema
from taskledger.core.config import constants, settings
from taskledger.core.events import ChangeAction, ChangeEvent, ChangeFeed, drain


logger = logging.getLogger(__name__)

# Columns stored outside the JSON document
_META_FIELDS = {"id", "created", "updated"}


class DatabaseError(RuntimeError):
    """A store operation failed."""


class RecordNotFoundError(KeyError):
    """The requested record does not exist."""


def _validate_collection_name(collection: str) -> None:
    """Validate that a collection name contains only alphanumeric characters and underscores."""
    if not re.match(r"^[a-zA-Z_][a-zA-Z0-9_]*$", collection):
        msg = f"Invalid collection name: {collection}. Only alphanumeric characters and underscores are allowed."
        raise ValueError(msg)


def _validate_field_name(field: str) -> None:
    if not re.match(r"^[a-zA-Z_][a-zA-Z0-9_]*$", field):
        msg = f"Invalid field name: {field}"
        raise ValueError(msg)


def sanitize_param(value: str | int | float | bool | None) -> str:
    """Escape a value for safe embedding in filter queries via json.dumps."""
    return json.dumps(str(value))[1:-1]


def utc_timestamp() -> str:
    """Return the current UTC time in the store's timestamp format."""
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


def get_db_path(db_path: str | None = None) -> Path:
    """Get the resolved SQLite database file path."""
    path_str = db_path or settings.sqlite_db_path
    return Path(path_str).resolve()


def _field_expr(field: str) -> str:
    """Map a document field to its SQL expression."""
    _validate_field_name(field)
    if field in _META_FIELDS:
        return field
    return f"json_extract(data, '$.{field}')"


def _parse_value(value: str, *, is_like: bool = False) -> str | bool:
    """Parse a filter literal; document ids and dates stay strings."""
    if is_like:
        return "%" + value.replace("%", "\\%").replace("_", "\\_") + "%"

    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False

    return value


def _get_sql_operator(op: str) -> str:
    """Map filter operator to SQL operator."""
    op_map = {
        "=": "=",
        "!=": "!=",
        ">": ">",
        "<": "<",
        ">=": ">=",
        "<=": "<=",
        "~": "LIKE",
    }
    sql_op = op_map.get(op)
    if not sql_op:
        msg = f"Unsupported operator: {op}"
        raise ValueError(msg)
    return sql_op


def _parse_single_comparison(comparison: str) -> tuple[str, str | bool]:
    """Parse a single comparison expression into a SQL condition and parameter."""
    match = re.match(
        r"""(\w+)\s*(!=|>=|<=|=|>|<|~)\s*(['"])([^'"]*)\3""",
        comparison,
    )
    if not match:
        msg = f"Invalid filter syntax: {comparison}"
        raise ValueError(msg)

    field = match.group(1)
    op = match.group(2)
    raw_value = match.group(4)

    sql_op = _get_sql_operator(op)
    is_like = sql_op == "LIKE"
    value = _parse_value(raw_value, is_like=is_like)

    condition = f"{_field_expr(field)} {sql_op} ?"
    if is_like:
        condition += " ESCAPE '\\'"
    return condition, value


def _parse_or_group(or_group: str) -> tuple[str, list[str | bool]]:
    """Parse a parenthesized OR group into a SQL condition and parameters."""
    inner = or_group[1:-1]
    or_parts = [p.strip() for p in inner.split("||")]
    or_conditions = []
    or_params = []

    for part in or_parts:
        cond, value = _parse_single_comparison(part)
        or_conditions.append(cond)
        or_params.append(value)

    return f"({' OR '.join(or_conditions)})", or_params


def _split_and_conditions(filter_query: str) -> list[str]:
    """Split filter query by && while preserving parenthesized groups."""
    parts = []
    current = ""
    paren_depth = 0

    for char in filter_query:
        if char == "(":
            paren_depth += 1
        elif char == ")":
            paren_depth -= 1

        current += char

        if paren_depth == 0 and current.endswith("&&"):
            parts.append(current[:-2].strip())
            current = ""

    if current.strip():
        parts.append(current.strip())

    return parts


def parse_filter(filter_query: str) -> tuple[str, list[str | bool]]:
    """Parse filter syntax into a SQL WHERE clause and parameter list."""
    if not filter_query:
        return "", []

    parts = _split_and_conditions(filter_query)
    conditions = []
    params: list[str | bool] = []

    for raw_part in parts:
        part = raw_part.strip()

        if part.startswith("(") and part.endswith(")"):
            cond, cond_params = _parse_or_group(part)
            conditions.append(cond)
            params.extend(cond_params)
        else:
            cond, value = _parse_single_comparison(part)
            conditions.append(cond)
            params.append(value)

    return " AND ".join(conditions), params


def parse_sort(sort: str) -> str:
    """Translate '-field' / '+field' / 'field' into an ORDER BY clause."""
    if not sort:
        return "id ASC"
    direction = "DESC" if sort.startswith("-") else "ASC"
    field = sort.lstrip("+-").strip()
    try:
        return f"{_field_expr(field)} {direction}, id ASC"
    except ValueError:
        logger.warning("Invalid sort parameter, using default", extra={"sort": sort})
        return "id ASC"


def _row_to_record(row: aiosqlite.Row) -> dict[str, Any]:
    """Merge metadata columns and the JSON document into one record."""
    record_id, created, updated, data = row
    return {"id": str(record_id), "created": created, "updated": updated, **json.loads(data)}


def _strip_meta(data: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in data.items() if key not in _META_FIELDS}


class DocumentStore:
    """Document collections persisted in SQLite.

    Each write commits on its own; there are no cross-document transactions.
    Every committed write is published on the store's change feed.
    """

    def __init__(self, *, db_path: str | None = None, feed: ChangeFeed | None = None) -> None:
        self._path = get_db_path(db_path)
        self._conn: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()
        self.feed = feed or ChangeFeed()

    async def connect(self) -> aiosqlite.Connection:
        """Get or create the store's connection."""
        if self._conn is not None:
            return self._conn

        async with self._lock:
            if self._conn is not None:
                return self._conn

            self._path.parent.mkdir(parents=True, exist_ok=True)
            conn = await aiosqlite.connect(str(self._path))
            await conn.execute("PRAGMA journal_mode = WAL")
            self._conn = conn

            logger.info("Created new SQLite connection", extra={"db_path": str(self._path)})
            return conn

    async def close(self) -> None:
        """Close the store's connection if open."""
        if self._conn is None:
            return
        try:
            await self._conn.close()
            logger.info("Closed SQLite connection", extra={"db_path": str(self._path)})
        except Exception as e:
            logger.warning("Error closing SQLite connection", extra={"error": str(e)})
        finally:
            self._conn = None

    async def init_db(self) -> None:
        """Initialize the database schema."""
        conn = await self.connect()
        await schema.init_db(conn)

    async def create_record(self, *, collection: str, data: dict[str, Any]) -> dict[str, Any]:
        """Insert a new document and return it with its assigned id."""
        if not isinstance(data, dict):
            msg = f"Data must be a dictionary, got {type(data)}"
            raise DatabaseError(msg)

        try:
            _validate_collection_name(collection)
            conn = await self.connect()

            now = utc_timestamp()
            document = json.dumps(to_jsonable_python(_strip_meta(data)))
            query = f"INSERT INTO {collection} (created, updated, data) VALUES (?, ?, ?)"  # noqa: S608 - collection is validated
            cursor = await conn.execute(query, (now, now, document))
            await conn.commit()

            record_id = str(cursor.lastrowid)
        except Exception as e:
            if isinstance(e, aiosqlite.OperationalError) and "no such table" in str(e):
                logger.error("Table not found", extra={"collection": collection})
                msg = f"Table '{collection}' does not exist. Call init_db() first."
                raise DatabaseError(msg) from e
            logger.error("create_record_failed", extra={"collection": collection, "error": str(e)})
            msg = f"Failed to create record in {collection}: {e}"
            raise DatabaseError(msg) from e

        logger.info("Created record", extra={"collection": collection, "record_id": record_id})
        self.feed.publish(ChangeEvent(collection=collection, action=ChangeAction.CREATE, record_id=record_id))
        return await self.get_record(collection=collection, record_id=record_id)

    async def get_record(self, *, collection: str, record_id: str) -> dict[str, Any]:
        """Fetch a single document by ID, raising RecordNotFoundError if not found."""
        if not isinstance(record_id, str):
            msg = f"Record ID must be a string, got {type(record_id)}"
            raise DatabaseError(msg)
        if not record_id.isdigit():
            msg = f"Record not found in {collection}: {record_id}"
            raise RecordNotFoundError(msg)

        try:
            _validate_collection_name(collection)
            conn = await self.connect()

            query = f"SELECT id, created, updated, data FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
            cursor = await conn.execute(query, (int(record_id),))
            row = await cursor.fetchone()
        except Exception as e:
            logger.error("get_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
            msg = f"Failed to get record from {collection}: {e}"
            raise DatabaseError(msg) from e

        if row is None:
            msg = f"Record not found in {collection}: {record_id}"
            raise RecordNotFoundError(msg)

        return _row_to_record(row)

    async def update_record(self, *, collection: str, record_id: str, data: dict[str, Any]) -> dict[str, Any]:
        """Merge fields into a document and return the updated document.

        A value of None removes the field from the document. The merge is a
        single UPDATE statement, so concurrent writers touching different
        fields do not overwrite each other.
        """
        if not isinstance(data, dict):
            msg = f"Data must be a dictionary, got {type(data)}"
            raise DatabaseError(msg)
        payload = _strip_meta(data)
        if not payload:
            msg = "Empty update payload"
            raise ValueError(msg)
        if not isinstance(record_id, str) or not record_id.isdigit():
            msg = f"Record not found in {collection}: {record_id}"
            raise RecordNotFoundError(msg)

        expr = "data"
        params: list[Any] = []
        removed = []
        for key, value in payload.items():
            _validate_field_name(key)
            if value is None:
                removed.append(f"'$.{key}'")
            else:
                expr = f"json_set({expr}, '$.{key}', json(?))"
                params.append(json.dumps(to_jsonable_python(value)))
        if removed:
            expr = f"json_remove({expr}, {', '.join(removed)})"

        try:
            _validate_collection_name(collection)
            conn = await self.connect()

            query = f"UPDATE {collection} SET data = {expr}, updated = ? WHERE id = ?"  # noqa: S608 - names are validated
            cursor = await conn.execute(query, [*params, utc_timestamp(), int(record_id)])
            await conn.commit()
        except Exception as e:
            logger.error(
                "update_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)}
            )
            msg = f"Failed to update record in {collection}: {e}"
            raise DatabaseError(msg) from e

        if cursor.rowcount == 0:
            msg = f"Record not found in {collection}: {record_id}"
            raise RecordNotFoundError(msg)

        logger.info("Updated record", extra={"collection": collection, "record_id": record_id})
        self.feed.publish(ChangeEvent(collection=collection, action=ChangeAction.UPDATE, record_id=record_id))
        return await self.get_record(collection=collection, record_id=record_id)

    async def delete_record(self, *, collection: str, record_id: str) -> None:
        """Delete a document by ID, raising RecordNotFoundError if not found."""
        if not isinstance(record_id, str) or not record_id.isdigit():
            msg = f"Record not found in {collection}: {record_id}"
            raise RecordNotFoundError(msg)

        try:
            _validate_collection_name(collection)
            conn = await self.connect()

            query = f"DELETE FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
            cursor = await conn.execute(query, (int(record_id),))
            await conn.commit()
        except Exception as e:
            logger.error(
                "delete_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)}
            )
            msg = f"Failed to delete record from {collection}: {e}"
            raise DatabaseError(msg) from e

        if cursor.rowcount == 0:
            msg = f"Record not found in {collection}: {record_id}"
            raise RecordNotFoundError(msg)

        logger.info("Deleted record", extra={"collection": collection, "record_id": record_id})
        self.feed.publish(ChangeEvent(collection=collection, action=ChangeAction.DELETE, record_id=record_id))

    async def list_records(
        self,
        *,
        collection: str,
        page: int = 1,
        per_page: int = constants.DEFAULT_PER_PAGE_LIMIT,
        filter_query: str = "",
        sort: str = "",
    ) -> list[dict[str, Any]]:
        """List documents with optional filtering, sorting, and pagination."""
        try:
            _validate_collection_name(collection)
            conn = await self.connect()

            where_clause = ""
            params: list[Any] = []
            if filter_query:
                where_clause, params = parse_filter(filter_query)
                where_clause = f"WHERE {where_clause}"

            offset = (page - 1) * per_page
            query = (
                f"SELECT id, created, updated, data FROM {collection} {where_clause} "  # noqa: S608 - collection is validated
                f"ORDER BY {parse_sort(sort)} LIMIT ? OFFSET ?"
            )
            params.extend([per_page, offset])

            cursor = await conn.execute(query, params)
            rows = await cursor.fetchall()
        except Exception as e:
            logger.error("list_records_failed", extra={"collection": collection, "error": str(e)})
            msg = f"Failed to list records from {collection}: {e}"
            raise DatabaseError(msg) from e

        records = [_row_to_record(row) for row in rows]
        logger.debug("Listed records", extra={"collection": collection, "count": len(records)})
        return records

    async def list_all(self, *, collection: str, filter_query: str = "", sort: str = "") -> list[dict[str, Any]]:
        """Return every matching document, following pages until exhausted."""
        records: list[dict[str, Any]] = []
        page = 1
        while True:
            batch = await self.list_records(
                collection=collection,
                page=page,
                filter_query=filter_query,
                sort=sort,
            )
            records.extend(batch)
            if len(batch) < constants.DEFAULT_PER_PAGE_LIMIT:
                return records
            page += 1

    async def get_first_record(self, *, collection: str, filter_query: str) -> dict[str, Any] | None:
        """Return the first document matching the filter, or None."""
        records = await self.list_records(collection=collection, filter_query=filter_query, per_page=1)
        return records[0] if records else None

    async def subscribe(self, *, collection: str) -> AsyncIterator[list[dict[str, Any]]]:
        """Yield the current document set now and again after every change.

        Changes that arrive while the consumer is busy are coalesced into a
        single snapshot.
        """
        queue = self.feed.open(collection)
        try:
            yield await self.list_all(collection=collection)
            while True:
                await queue.get()
                drain(queue)
                yield await self.list_all(collection=collection)
        finally:
            self.feed.close(collection, queue)
