"""SQLite schema for the document collections (code-first approach)."""

import logging

import aiosqlite


logger = logging.getLogger(__name__)


# Central list of all collections in the schema
COLLECTIONS = [
    "users",
    "tasks",
    "history",
    "rewards",
    "redemptions",
    "messages",
]

# Documents are stored as JSON so absent optional fields stay absent.
_TABLE_TEMPLATE = """CREATE TABLE IF NOT EXISTS {name} (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    created TEXT NOT NULL,
    updated TEXT NOT NULL,
    data TEXT NOT NULL CHECK (json_valid(data))
)"""

INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_tasks_assigned ON tasks (json_extract(data, '$.assigned_to'))",
    "CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks (json_extract(data, '$.status'))",
    "CREATE INDEX IF NOT EXISTS idx_history_assigned ON history (json_extract(data, '$.assigned_to'))",
    "CREATE INDEX IF NOT EXISTS idx_redemptions_status ON redemptions (json_extract(data, '$.status'))",
]


def get_table_schemas() -> dict[str, str]:
    """Return CREATE TABLE statements keyed by collection name."""
    return {name: _TABLE_TEMPLATE.format(name=name) for name in COLLECTIONS}


async def init_db(conn: aiosqlite.Connection) -> None:
    """Create all collection tables and indexes if they do not exist."""
    for name, ddl in get_table_schemas().items():
        await conn.execute(ddl)
        logger.debug("Ensured table exists", extra={"collection": name})

    for ddl in INDEXES:
        await conn.execute(ddl)

    await conn.commit()
    logger.info("Database schema initialized", extra={"collections": len(COLLECTIONS)})
