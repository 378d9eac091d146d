"""
Embedded SQLite storage adapter (aiosqlite-backed).

Implementation notes:
- Connections are pooled: an `asyncio.Semaphore` bounds concurrent use and idle
  connections are kept for reuse. Waiting longer than `connect_timeout` for a
  slot fails with CONNECTION_ERROR.
- Connections run in autocommit mode; `atransaction()` issues BEGIN/COMMIT
  explicitly and routes statements of the same task to the transaction's
  connection through a ContextVar.
- Concurrent writers are arbitrated by SQLite itself (busy_timeout plus unique
  indexes); there is no application-level write lock and no retry loop.

Critical guarantee:
- The adapter never raises to callers; it returns `Result(...)`.
"""

from __future__ import annotations

import asyncio
import sqlite3
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

import aiosqlite

from ...config import DatabaseConfig
from ...shared import ErrorCode, Result, get_logger
from .base import Params, Row, StoragePort
from .dialect import SQLITE_LOWER_FN, SqliteDialect, unicode_lower

logger = get_logger(__name__)

T = TypeVar("T")

# Negative cache_size is in KiB. -16000 ~= 16 MiB cache.
SQLITE_CACHE_SIZE_KIB = -16000


class _ConnectionUnavailable(Exception):
    pass


def _is_unique_violation(exc: Exception) -> bool:
    return "unique constraint failed" in str(exc).lower()


class SqliteStorage(StoragePort):
    """Connection pool manager for the embedded backend."""

    backend = "sqlite"

    def __init__(self, config: DatabaseConfig):
        super().__init__(config, SqliteDialect())
        self.db_path = Path(str(config.sqlite_path))
        self._max_conn_limit = max(1, int(config.max_connections))
        self._timeout = float(config.connect_timeout)
        self._query_timeout = float(config.query_timeout or 0.0)
        self._busy_timeout_ms = max(1000, int(self._timeout * 1000))
        self._idle: List[aiosqlite.Connection] = []
        self._active: set[aiosqlite.Connection] = set()
        self._sem: Optional[asyncio.Semaphore] = None
        self._init_lock: Optional[asyncio.Lock] = None
        self._initialized = False
        self._closed = False

    # ------------------------------------------------------------------ pool

    async def _apply_connection_pragmas(self, conn: aiosqlite.Connection) -> None:
        await conn.execute("PRAGMA journal_mode=WAL")
        await conn.execute("PRAGMA synchronous=NORMAL")
        await conn.execute(f"PRAGMA cache_size={SQLITE_CACHE_SIZE_KIB}")
        await conn.execute(f"PRAGMA busy_timeout = {self._busy_timeout_ms}")
        await conn.execute("PRAGMA foreign_keys=ON")
        await conn.create_function(SQLITE_LOWER_FN, 1, unicode_lower, deterministic=True)

    async def _create_connection(self) -> aiosqlite.Connection:
        # Autocommit mode; transactions are managed explicitly.
        conn = await aiosqlite.connect(str(self.db_path), timeout=self._timeout, isolation_level=None)
        conn.row_factory = sqlite3.Row
        await self._apply_connection_pragmas(conn)
        return conn

    async def _ensure_initialized(self) -> Result[bool]:
        if self._initialized:
            return Result.Ok(True)
        if self._closed:
            return Result.Err(ErrorCode.CONNECTION_ERROR, "Storage is closed")
        if self._init_lock is None:
            self._init_lock = asyncio.Lock()
        async with self._init_lock:
            if self._initialized:
                return Result.Ok(True)
            conn: Optional[aiosqlite.Connection] = None
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
                conn = await self._create_connection()
                await conn.execute("SELECT 1")
            except (OSError, sqlite3.Error) as exc:
                if conn is not None:
                    await conn.close()
                logger.error("Failed to open SQLite database %s: %s", self.db_path, exc)
                return Result.Err(ErrorCode.CONNECTION_ERROR, f"Failed to open database: {exc}")
            self._sem = asyncio.Semaphore(self._max_conn_limit)
            self._idle.append(conn)
            self._initialized = True
            logger.info("Database initialized: %s", self.db_path)
        return Result.Ok(True)

    async def _acquire(self) -> aiosqlite.Connection:
        if self._sem is None:
            raise _ConnectionUnavailable("Storage is not initialized")
        try:
            await asyncio.wait_for(self._sem.acquire(), timeout=self._timeout)
        except asyncio.TimeoutError:
            raise _ConnectionUnavailable(f"Timed out after {self._timeout:.1f}s waiting for a database connection")
        try:
            conn = self._idle.pop() if self._idle else await self._create_connection()
        except BaseException:
            self._sem.release()
            raise
        self._active.add(conn)
        return conn

    async def _release(self, conn: aiosqlite.Connection) -> None:
        try:
            self._active.discard(conn)
            if self._closed or len(self._idle) >= self._max_conn_limit:
                await conn.close()
            else:
                self._idle.append(conn)
        finally:
            if self._sem is not None:
                self._sem.release()

    # ------------------------------------------------------------- execution

    @staticmethod
    def _rows_to_dicts(rows: Any) -> List[Row]:
        if not rows:
            return []
        return [dict(r) for r in rows]

    async def _with_query_timeout(self, coro: Awaitable[Result[T]]) -> Result[T]:
        if self._query_timeout > 0:
            try:
                return await asyncio.wait_for(coro, timeout=self._query_timeout)
            except asyncio.TimeoutError:
                return Result.Err(ErrorCode.TIMEOUT, "Database operation timed out")
        return await coro

    def _translate_error(self, exc: Exception) -> Result[Any]:
        if isinstance(exc, _ConnectionUnavailable):
            logger.warning("Connection acquire failed: %s", exc)
            return Result.Err(ErrorCode.CONNECTION_ERROR, str(exc))
        if isinstance(exc, sqlite3.IntegrityError):
            unique = _is_unique_violation(exc)
            logger.debug("Integrity error: %s", exc)
            return Result.Err(ErrorCode.QUERY_ERROR, f"Integrity error: {exc}", unique_violation=unique)
        if isinstance(exc, sqlite3.OperationalError):
            msg = str(exc)
            if "unable to open" in msg.lower():
                logger.error("Operational error: %s", exc)
                return Result.Err(ErrorCode.CONNECTION_ERROR, f"Operational error: {msg}")
            logger.error("Operational error: %s", exc)
            return Result.Err(ErrorCode.QUERY_ERROR, f"Operational error: {msg}")
        if isinstance(exc, (sqlite3.Error, ValueError)):
            logger.error("Database error: %s", exc)
            return Result.Err(ErrorCode.QUERY_ERROR, str(exc))
        logger.error("Unexpected database error: %s", exc)
        return Result.Err(ErrorCode.CONNECTION_ERROR, str(exc))

    async def _run(self, op: Callable[[aiosqlite.Connection], Awaitable[T]]) -> Result[T]:
        init = await self._ensure_initialized()
        if not init.ok:
            return init  # type: ignore[return-value]

        async def _inner() -> Result[T]:
            tx_conn = self._tx_var.get()
            try:
                if tx_conn is not None:
                    return Result.Ok(await op(tx_conn))
                conn = await self._acquire()
                try:
                    return Result.Ok(await op(conn))
                finally:
                    await self._release(conn)
            except (sqlite3.Error, ValueError, OSError, _ConnectionUnavailable) as exc:
                return self._translate_error(exc)

        return await self._with_query_timeout(_inner())

    async def aquery(self, sql: str, params: Params = None) -> Result[List[Row]]:
        async def _op(conn: aiosqlite.Connection) -> List[Row]:
            async with conn.execute(sql, tuple(params or ())) as cursor:
                return self._rows_to_dicts(await cursor.fetchall())

        return await self._run(_op)

    async def aexecute(self, sql: str, params: Params = None) -> Result[int]:
        async def _op(conn: aiosqlite.Connection) -> int:
            async with conn.execute(sql, tuple(params or ())) as cursor:
                return int(cursor.rowcount if cursor.rowcount is not None else 0)

        return await self._run(_op)

    async def ainsert_returning_id(self, sql: str, params: Params = None) -> Result[int]:
        async def _op(conn: aiosqlite.Connection) -> int:
            async with conn.execute(sql, tuple(params or ())) as cursor:
                return int(cursor.lastrowid or 0)

        return await self._run(_op)

    @asynccontextmanager
    async def atransaction(self, mode: str = "immediate"):
        """Async context manager for a DB transaction."""
        if self._tx_var.get() is not None:
            # Join the enclosing transaction.
            yield Result.Ok(True)
            return

        init = await self._ensure_initialized()
        if not init.ok:
            yield Result.Err(init.code, init.error or "Failed to begin transaction")
            return
        begin_stmt = "BEGIN IMMEDIATE" if str(mode).lower() == "immediate" else "BEGIN"
        try:
            conn = await self._acquire()
        except (sqlite3.Error, OSError, _ConnectionUnavailable) as exc:
            yield self._translate_error(exc)
            return
        try:
            await conn.execute(begin_stmt)
        except sqlite3.Error as exc:
            await self._release(conn)
            yield self._translate_error(exc)
            return

        tx_state: Result[bool] = Result.Ok(True)
        token = self._tx_var.set(conn)
        try:
            try:
                yield tx_state
            except BaseException:
                try:
                    await conn.execute("ROLLBACK")
                except sqlite3.Error as rb_exc:
                    logger.warning("Rollback failed: %s", rb_exc)
                raise
            try:
                await conn.execute("COMMIT")
            except sqlite3.Error as exc:
                failed = self._translate_error(exc)
                tx_state.ok = False
                tx_state.code = failed.code
                tx_state.error = f"Commit failed: {failed.error}"
                try:
                    await conn.execute("ROLLBACK")
                except sqlite3.Error:
                    logger.debug("Rollback after failed commit also failed", exc_info=True)
        finally:
            self._tx_var.reset(token)
            await self._release(conn)

    # ---------------------------------------------------------------- admin

    async def ahealth_check(self) -> bool:
        res = await self.aquery("SELECT 1 AS ok")
        return bool(res.ok and res.data)

    async def aclose(self) -> None:
        self._closed = True
        idle, self._idle = self._idle, []
        for conn in idle + list(self._active):
            try:
                await conn.close()
            except (sqlite3.Error, ValueError) as exc:
                logger.debug("Error closing connection: %s", exc)
        self._active.clear()
        self._initialized = False

    def runtime_status(self) -> Dict[str, Any]:
        return {
            "backend": self.backend,
            "path": str(self.db_path),
            "active_connections": len(self._active),
            "pooled_connections": len(self._idle),
            "max_connections": self._max_conn_limit,
            "query_timeout_s": self._query_timeout,
            "busy_timeout_ms": self._busy_timeout_ms,
        }
