"""Database adapters."""
from __future__ import annotations

from ...config import DatabaseConfig
from ...shared import Result, get_logger
from .base import StoragePort
from .dialect import Dialect, PostgresDialect, SqliteDialect, contains_pattern, dialect_for, escape_like
from .schema import CURRENT_SCHEMA_VERSION, apply_migrations, aget_schema_version

logger = get_logger(__name__)


def connect_storage(config: DatabaseConfig) -> Result[StoragePort]:
    """
    Validate `config` and build the matching adapter.

    No I/O happens here; the pool is opened by the first query.
    """
    valid = config.validate()
    if not valid.ok:
        logger.error("Invalid database configuration: %s", valid.error)
        return valid  # type: ignore[return-value]
    if config.db_type == "postgres":
        from .postgres import PostgresStorage

        return Result.Ok(PostgresStorage(config))
    from .sqlite import SqliteStorage

    return Result.Ok(SqliteStorage(config))


__all__ = [
    "StoragePort",
    "Dialect",
    "SqliteDialect",
    "PostgresDialect",
    "dialect_for",
    "escape_like",
    "contains_pattern",
    "connect_storage",
    "apply_migrations",
    "aget_schema_version",
    "CURRENT_SCHEMA_VERSION",
]
