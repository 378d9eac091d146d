"""
Database schema and migrations.

Migrations are versioned per dialect and recorded in `schema_migrations`.
Each pending version is applied inside its own transaction; re-running is a no-op.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, List, Tuple

from ...shared import ErrorCode, Result, TransactionAborted, get_logger, log_success

if TYPE_CHECKING:
    from .base import StoragePort

logger = get_logger(__name__)

# Schema version history:
# 1: tags, files, file_tags with live-name uniqueness and path uniqueness
# 2: lookup indexes for usage ordering, recency ordering and soft-delete scans
CURRENT_SCHEMA_VERSION = 2


@dataclass(frozen=True)
class Migration:
    version: int
    name: str
    statements: Tuple[str, ...]


_SQLITE_NOW = "(strftime('%Y-%m-%d %H:%M:%f', 'now'))"

SQLITE_MIGRATIONS: Tuple[Migration, ...] = (
    Migration(
        1,
        "initial",
        (
            f"""
            CREATE TABLE IF NOT EXISTS tags (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                color TEXT DEFAULT '#FFFF00',
                font_color TEXT DEFAULT '#000000',
                parent_id INTEGER REFERENCES tags(id) ON DELETE CASCADE,
                usage_count INTEGER NOT NULL DEFAULT 0 CHECK (usage_count >= 0),
                created_at TEXT NOT NULL DEFAULT {_SQLITE_NOW},
                updated_at TEXT NOT NULL DEFAULT {_SQLITE_NOW},
                deleted_at TEXT
            )
            """,
            f"""
            CREATE TABLE IF NOT EXISTS files (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                current_path TEXT NOT NULL UNIQUE,
                file_type TEXT NOT NULL CHECK (file_type IN ('file', 'folder')),
                file_size INTEGER NOT NULL DEFAULT 0 CHECK (file_size >= 0),
                created_at TEXT NOT NULL DEFAULT {_SQLITE_NOW},
                updated_at TEXT NOT NULL DEFAULT {_SQLITE_NOW},
                deleted_at TEXT
            )
            """,
            f"""
            CREATE TABLE IF NOT EXISTS file_tags (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                file_id INTEGER NOT NULL REFERENCES files(id) ON DELETE CASCADE,
                tag_id INTEGER NOT NULL REFERENCES tags(id) ON DELETE CASCADE,
                created_at TEXT NOT NULL DEFAULT {_SQLITE_NOW},
                UNIQUE (file_id, tag_id)
            )
            """,
            "CREATE UNIQUE INDEX IF NOT EXISTS idx_tags_name_live ON tags(name) WHERE deleted_at IS NULL",
            "CREATE INDEX IF NOT EXISTS idx_tags_parent_id ON tags(parent_id)",
            "CREATE INDEX IF NOT EXISTS idx_file_tags_file_id ON file_tags(file_id)",
            "CREATE INDEX IF NOT EXISTS idx_file_tags_tag_id ON file_tags(tag_id)",
        ),
    ),
    Migration(
        2,
        "ordering_indexes",
        (
            "CREATE INDEX IF NOT EXISTS idx_tags_usage ON tags(usage_count DESC, id) WHERE deleted_at IS NULL",
            "CREATE INDEX IF NOT EXISTS idx_tags_updated ON tags(updated_at DESC, id) WHERE deleted_at IS NULL",
            "CREATE INDEX IF NOT EXISTS idx_files_deleted_at ON files(deleted_at)",
        ),
    ),
)

POSTGRES_MIGRATIONS: Tuple[Migration, ...] = (
    Migration(
        1,
        "initial",
        (
            """
            CREATE TABLE IF NOT EXISTS tags (
                id SERIAL PRIMARY KEY,
                name TEXT NOT NULL,
                color TEXT DEFAULT '#FFFF00',
                font_color TEXT DEFAULT '#000000',
                parent_id INTEGER REFERENCES tags(id) ON DELETE CASCADE,
                usage_count INTEGER NOT NULL DEFAULT 0 CHECK (usage_count >= 0),
                created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
                deleted_at TIMESTAMPTZ
            )
            """,
            """
            CREATE TABLE IF NOT EXISTS files (
                id SERIAL PRIMARY KEY,
                current_path TEXT NOT NULL UNIQUE,
                file_type VARCHAR(16) NOT NULL CHECK (file_type IN ('file', 'folder')),
                file_size BIGINT NOT NULL DEFAULT 0 CHECK (file_size >= 0),
                created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
                deleted_at TIMESTAMPTZ
            )
            """,
            """
            CREATE TABLE IF NOT EXISTS file_tags (
                id SERIAL PRIMARY KEY,
                file_id INTEGER NOT NULL REFERENCES files(id) ON DELETE CASCADE,
                tag_id INTEGER NOT NULL REFERENCES tags(id) ON DELETE CASCADE,
                created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
                UNIQUE (file_id, tag_id)
            )
            """,
            "CREATE UNIQUE INDEX IF NOT EXISTS idx_tags_name_live ON tags(name) WHERE deleted_at IS NULL",
            "CREATE INDEX IF NOT EXISTS idx_tags_parent_id ON tags(parent_id)",
            "CREATE INDEX IF NOT EXISTS idx_file_tags_file_id ON file_tags(file_id)",
            "CREATE INDEX IF NOT EXISTS idx_file_tags_tag_id ON file_tags(tag_id)",
        ),
    ),
    Migration(
        2,
        "ordering_indexes",
        (
            "CREATE INDEX IF NOT EXISTS idx_tags_usage ON tags(usage_count DESC, id) WHERE deleted_at IS NULL",
            "CREATE INDEX IF NOT EXISTS idx_tags_updated ON tags(updated_at DESC, id) WHERE deleted_at IS NULL",
            "CREATE INDEX IF NOT EXISTS idx_files_deleted_at ON files(deleted_at)",
        ),
    ),
)

MIGRATIONS: Dict[str, Tuple[Migration, ...]] = {
    "sqlite": SQLITE_MIGRATIONS,
    "postgres": POSTGRES_MIGRATIONS,
}


def _tracking_table_sql(db: "StoragePort") -> str:
    ts_type = "TIMESTAMPTZ" if db.dialect.name == "postgres" else "TEXT"
    now = db.dialect.now()
    return (
        "CREATE TABLE IF NOT EXISTS schema_migrations ("
        "version INTEGER PRIMARY KEY, "
        "name TEXT NOT NULL, "
        f"applied_at {ts_type} NOT NULL DEFAULT ({now}))"
    )


async def _applied_versions(db: "StoragePort") -> Result[List[int]]:
    res = await db.aquery("SELECT version FROM schema_migrations ORDER BY version")
    if not res.ok:
        return res  # type: ignore[return-value]
    return Result.Ok([int(r["version"]) for r in (res.data or [])])


async def aget_schema_version(db: "StoragePort") -> int:
    res = await db.ascalar("SELECT MAX(version) FROM schema_migrations")
    if not res.ok or res.data is None:
        return 0
    return int(res.data)


async def _apply_one(db: "StoragePort", migration: Migration) -> Result[bool]:
    try:
        async with db.atransaction() as tx:
            if not tx.ok:
                return Result.Err(ErrorCode.MIGRATION_ERROR, f"Migration {migration.version} could not begin: {tx.error}")
            for stmt in migration.statements:
                res = await db.aexecute(stmt)
                if not res.ok:
                    raise TransactionAborted(res)
            res = await db.aexecute(
                "INSERT INTO schema_migrations (version, name) VALUES (?, ?)",
                (migration.version, migration.name),
            )
            if not res.ok:
                raise TransactionAborted(res)
    except TransactionAborted as aborted:
        return Result.Err(
            ErrorCode.MIGRATION_ERROR,
            f"Migration {migration.version} ({migration.name}) failed: {aborted.result.error}",
            version=migration.version,
        )
    if not tx.ok:
        return Result.Err(ErrorCode.MIGRATION_ERROR, f"Migration {migration.version} commit failed: {tx.error}")
    return Result.Ok(True)


async def apply_migrations(db: "StoragePort") -> Result[int]:
    """
    Bring the schema to `CURRENT_SCHEMA_VERSION`.

    Returns:
        Result with the schema version after migrating.
    """
    migrations = MIGRATIONS.get(db.dialect.name)
    if migrations is None:
        return Result.Err(ErrorCode.MIGRATION_ERROR, f"No migrations for dialect {db.dialect.name}")

    res = await db.aexecute(_tracking_table_sql(db))
    if not res.ok:
        return Result.Err(ErrorCode.MIGRATION_ERROR, f"Failed to create migration table: {res.error}")

    applied_res = await _applied_versions(db)
    if not applied_res.ok:
        return Result.Err(ErrorCode.MIGRATION_ERROR, f"Failed to read applied migrations: {applied_res.error}")
    applied = set(applied_res.data or [])
    pending = [m for m in migrations if m.version not in applied]
    if not pending:
        logger.debug("Schema already up to date (version %s)", max(applied, default=0))
        return Result.Ok(max(applied, default=0))

    for migration in pending:
        logger.info("Applying migration %s (%s)", migration.version, migration.name)
        step = await _apply_one(db, migration)
        if not step.ok:
            logger.error("%s", step.error)
            return step  # type: ignore[return-value]

    version = await aget_schema_version(db)
    log_success(logger, f"Schema migrated to version {version} ({db.dialect.name})")
    return Result.Ok(version)
