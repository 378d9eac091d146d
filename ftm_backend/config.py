"""
Configuration for the file tag manager.

Values are read from the environment once and frozen into `AppConfig`, which is
passed explicitly to the services that need it.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Literal
from urllib.parse import quote

from .shared import ErrorCode, Result, get_logger
from .utils import env_bool

logger = get_logger(__name__)

DatabaseType = Literal["postgres", "sqlite"]

DEFAULT_DATABASE_NAME = "file_manager"
DEFAULT_POSTGRES_PORT = 5432
DEFAULT_MAX_CONNECTIONS = 10
DEFAULT_CONNECT_TIMEOUT_S = 30.0
DEFAULT_MAX_JSON_BYTES = 1 * 1024 * 1024


def _env_raw(*names: str, default: str | None = None) -> str | None:
    for name in names:
        if not name:
            continue
        val = os.getenv(name)
        if val is not None and str(val).strip() != "":
            return str(val).strip()
    return default


def _env_int(default: int, *names: str, min_value: int | None = None, max_value: int | None = None) -> int:
    raw = _env_raw(*names)
    if raw is None:
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        logger.warning("Invalid integer for %s=%r, using default=%s", names[0] if names else "<unknown>", raw, default)
        return default
    if min_value is not None and value < min_value:
        logger.warning("Value too small for %s=%s, clamped to %s", names[0] if names else "<unknown>", value, min_value)
        value = min_value
    if max_value is not None and value > max_value:
        logger.warning("Value too large for %s=%s, clamped to %s", names[0] if names else "<unknown>", value, max_value)
        value = max_value
    return value


def _env_float(default: float, *names: str, min_value: float | None = None, max_value: float | None = None) -> float:
    raw = _env_raw(*names)
    if raw is None:
        return default
    try:
        value = float(raw)
    except (TypeError, ValueError):
        logger.warning("Invalid float for %s=%r, using default=%s", names[0] if names else "<unknown>", raw, default)
        return default
    if min_value is not None and value < min_value:
        logger.warning("Value too small for %s=%s, clamped to %s", names[0] if names else "<unknown>", value, min_value)
        value = min_value
    if max_value is not None and value > max_value:
        logger.warning("Value too large for %s=%s, clamped to %s", names[0] if names else "<unknown>", value, max_value)
        value = max_value
    return value


def _env_bool(default: bool, *names: str) -> bool:
    for name in names:
        if name and name in os.environ:
            return env_bool(name, default)
    return default


def _default_sqlite_path() -> str:
    return str(Path.home() / ".file-tag-manager" / f"{DEFAULT_DATABASE_NAME}.db")


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection parameters for either storage backend."""

    db_type: DatabaseType = "sqlite"
    database: str = DEFAULT_DATABASE_NAME
    host: str | None = None
    port: int | None = None
    username: str | None = None
    password: str | None = field(default=None, repr=False)
    sqlite_path: str | None = None
    max_connections: int = DEFAULT_MAX_CONNECTIONS
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT_S
    query_timeout: float = 0.0

    @classmethod
    def from_env(cls) -> "DatabaseConfig":
        db_type = (_env_raw("FTM_DATABASE_TYPE", "DATABASE_TYPE", default="sqlite") or "sqlite").lower()
        if db_type == "postgresql":
            db_type = "postgres"
        port_raw = _env_raw("FTM_DATABASE_PORT", "DATABASE_PORT")
        port: int | None = None
        if port_raw is not None:
            port = _env_int(DEFAULT_POSTGRES_PORT, "FTM_DATABASE_PORT", "DATABASE_PORT", min_value=1, max_value=65535)
        elif db_type == "postgres":
            port = DEFAULT_POSTGRES_PORT
        sqlite_path = _env_raw("FTM_DATABASE_SQLITE_PATH", "DATABASE_SQLITE_PATH")
        if sqlite_path is None and db_type == "sqlite":
            sqlite_path = _default_sqlite_path()
        return cls(
            db_type=db_type,  # type: ignore[arg-type]
            database=_env_raw("FTM_DATABASE_NAME", "DATABASE_NAME", default=DEFAULT_DATABASE_NAME) or "",
            host=_env_raw("FTM_DATABASE_HOST", "DATABASE_HOST"),
            port=port,
            username=_env_raw("FTM_DATABASE_USERNAME", "DATABASE_USERNAME"),
            password=_env_raw("FTM_DATABASE_PASSWORD", "DATABASE_PASSWORD"),
            sqlite_path=sqlite_path,
            max_connections=_env_int(DEFAULT_MAX_CONNECTIONS, "FTM_DATABASE_MAX_CONNECTIONS", "DATABASE_MAX_CONNECTIONS", min_value=1),
            connect_timeout=_env_float(DEFAULT_CONNECT_TIMEOUT_S, "FTM_DATABASE_CONNECT_TIMEOUT", "DATABASE_CONNECT_TIMEOUT", min_value=0.1),
            query_timeout=_env_float(0.0, "FTM_DATABASE_QUERY_TIMEOUT", min_value=0.0),
        )

    @classmethod
    def sqlite(cls, path: str | os.PathLike[str], **overrides) -> "DatabaseConfig":
        return cls(db_type="sqlite", sqlite_path=str(path), **overrides)

    def validate(self) -> Result["DatabaseConfig"]:
        """Check that the parameters needed by the selected backend are present."""
        if self.db_type not in ("postgres", "sqlite"):
            return Result.Err(ErrorCode.CONFIG_ERROR, f"Unsupported database type: {self.db_type}")
        if self.db_type == "postgres":
            missing = [
                name
                for name, value in (
                    ("host", self.host),
                    ("port", self.port),
                    ("username", self.username),
                    ("password", self.password),
                )
                if value in (None, "")
            ]
            if missing:
                return Result.Err(
                    ErrorCode.CONFIG_ERROR,
                    f"PostgreSQL configuration requires: {', '.join(missing)}",
                    missing=missing,
                )
        elif not self.sqlite_path:
            return Result.Err(ErrorCode.CONFIG_ERROR, "SQLite configuration requires sqlite_path")
        if not str(self.database or "").strip():
            return Result.Err(ErrorCode.CONFIG_ERROR, "Database name cannot be empty")
        if int(self.max_connections) < 1:
            return Result.Err(ErrorCode.CONFIG_ERROR, "max_connections must be at least 1")
        return Result.Ok(self)

    def connection_string(self) -> str:
        if self.db_type == "postgres":
            user = quote(str(self.username or ""), safe="")
            password = quote(str(self.password or ""), safe="")
            return f"postgres://{user}:{password}@{self.host}:{self.port}/{self.database}"
        return f"sqlite://{self.sqlite_path}"

    def redacted_connection_string(self) -> str:
        if self.db_type == "postgres":
            return f"postgres://{self.username}:***@{self.host}:{self.port}/{self.database}"
        return self.connection_string()


@dataclass(frozen=True)
class AppConfig:
    """Immutable runtime configuration handed to services at construction time."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    home_path: str | None = None
    copy_tags_on_copy: bool = False
    max_json_bytes: int = DEFAULT_MAX_JSON_BYTES

    @classmethod
    def from_env(cls) -> "AppConfig":
        return cls(
            database=DatabaseConfig.from_env(),
            home_path=_env_raw("FTM_HOME_PATH", "GLOBAL_HOME_PATH"),
            copy_tags_on_copy=_env_bool(False, "FTM_COPY_TAGS_ON_COPY"),
            max_json_bytes=_env_int(DEFAULT_MAX_JSON_BYTES, "FTM_MAX_JSON_SIZE", min_value=1024),
        )

    def with_overrides(self, **changes) -> "AppConfig":
        return replace(self, **changes)
