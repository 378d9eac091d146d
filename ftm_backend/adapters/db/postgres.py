"""
Client-server PostgreSQL storage adapter (asyncpg-backed).

The pool is created lazily on first use. SQL arrives with `?` placeholders and
is rewritten to `$n` by the dialect before reaching asyncpg.

Critical guarantee:
- The adapter never raises to callers; it returns `Result(...)`.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

import asyncpg

from ...config import DatabaseConfig
from ...shared import ErrorCode, Result, get_logger, sanitize_error_message
from .base import Params, Row, StoragePort
from .dialect import PostgresDialect

logger = get_logger(__name__)

T = TypeVar("T")

_CONNECTION_ERRORS: tuple[type[BaseException], ...] = (
    OSError,
    asyncio.TimeoutError,
    asyncpg.InterfaceError,
    asyncpg.InvalidAuthorizationSpecificationError,
    asyncpg.InvalidCatalogNameError,
    asyncpg.CannotConnectNowError,
    asyncpg.TooManyConnectionsError,
    asyncpg.PostgresConnectionError,
)


def _rowcount_from_status(status: str) -> int:
    """asyncpg returns command tags such as 'UPDATE 3' or 'INSERT 0 1'."""
    try:
        return int(str(status).rsplit(" ", 1)[-1])
    except (ValueError, IndexError):
        return 0


class PostgresStorage(StoragePort):
    """Connection pool manager for the client-server backend."""

    backend = "postgres"

    def __init__(self, config: DatabaseConfig):
        super().__init__(config, PostgresDialect())
        self._dsn = config.connection_string()
        self._max_conn_limit = max(1, int(config.max_connections))
        self._timeout = float(config.connect_timeout)
        self._query_timeout = float(config.query_timeout or 0.0)
        self._pool: Optional[asyncpg.Pool] = None
        self._init_lock: Optional[asyncio.Lock] = None
        self._closed = False

    async def _ensure_pool(self) -> Result[asyncpg.Pool]:
        if self._pool is not None:
            return Result.Ok(self._pool)
        if self._closed:
            return Result.Err(ErrorCode.CONNECTION_ERROR, "Storage is closed")
        if self._init_lock is None:
            self._init_lock = asyncio.Lock()
        async with self._init_lock:
            if self._pool is not None:
                return Result.Ok(self._pool)
            try:
                pool = await asyncpg.create_pool(
                    dsn=self._dsn,
                    min_size=1,
                    max_size=self._max_conn_limit,
                    timeout=self._timeout,
                    command_timeout=self._query_timeout or None,
                )
                async with pool.acquire(timeout=self._timeout) as conn:
                    await conn.fetchval("SELECT 1")
            except _CONNECTION_ERRORS as exc:
                msg = sanitize_error_message(exc, "Failed to connect to PostgreSQL")
                logger.error(msg)
                return Result.Err(ErrorCode.CONNECTION_ERROR, msg)
            except asyncpg.PostgresError as exc:
                msg = sanitize_error_message(exc, "Failed to connect to PostgreSQL")
                logger.error(msg)
                return Result.Err(ErrorCode.CONNECTION_ERROR, msg)
            self._pool = pool
            logger.info("PostgreSQL pool ready: %s", self.config.redacted_connection_string())
        return Result.Ok(self._pool)

    def _translate_error(self, exc: BaseException) -> Result[Any]:
        if isinstance(exc, asyncpg.UniqueViolationError):
            logger.debug("Unique violation: %s", exc)
            return Result.Err(ErrorCode.QUERY_ERROR, f"Integrity error: {exc}", unique_violation=True)
        if isinstance(exc, asyncpg.IntegrityConstraintViolationError):
            logger.debug("Integrity error: %s", exc)
            return Result.Err(ErrorCode.QUERY_ERROR, f"Integrity error: {exc}", unique_violation=False)
        if isinstance(exc, asyncpg.QueryCanceledError):
            return Result.Err(ErrorCode.TIMEOUT, "Database operation timed out")
        if isinstance(exc, _CONNECTION_ERRORS):
            msg = sanitize_error_message(exc, "Database connection error")
            logger.warning(msg)
            return Result.Err(ErrorCode.CONNECTION_ERROR, msg)
        logger.error("Database error: %s", exc)
        return Result.Err(ErrorCode.QUERY_ERROR, str(exc))

    async def _run(self, op: Callable[[asyncpg.Connection], Awaitable[T]]) -> Result[T]:
        tx_conn = self._tx_var.get()
        try:
            if tx_conn is not None:
                return Result.Ok(await op(tx_conn))
            pool_res = await self._ensure_pool()
            if not pool_res.ok:
                return pool_res  # type: ignore[return-value]
            async with pool_res.data.acquire(timeout=self._timeout) as conn:
                return Result.Ok(await op(conn))
        except (asyncpg.PostgresError, *_CONNECTION_ERRORS) as exc:
            return self._translate_error(exc)

    async def aquery(self, sql: str, params: Params = None) -> Result[List[Row]]:
        query = self.dialect.translate(sql)

        async def _op(conn: asyncpg.Connection) -> List[Row]:
            rows = await conn.fetch(query, *(params or ()))
            return [dict(r) for r in rows]

        return await self._run(_op)

    async def aexecute(self, sql: str, params: Params = None) -> Result[int]:
        query = self.dialect.translate(sql)

        async def _op(conn: asyncpg.Connection) -> int:
            return _rowcount_from_status(await conn.execute(query, *(params or ())))

        return await self._run(_op)

    async def ainsert_returning_id(self, sql: str, params: Params = None) -> Result[int]:
        query = self.dialect.translate(f"{sql.rstrip().rstrip(';')} RETURNING id")

        async def _op(conn: asyncpg.Connection) -> int:
            return int(await conn.fetchval(query, *(params or ())) or 0)

        return await self._run(_op)

    @asynccontextmanager
    async def atransaction(self, mode: str = "immediate"):
        """Async context manager for a DB transaction (`mode` is accepted for parity)."""
        if self._tx_var.get() is not None:
            yield Result.Ok(True)
            return

        pool_res = await self._ensure_pool()
        if not pool_res.ok:
            yield Result.Err(pool_res.code, pool_res.error or "Failed to begin transaction")
            return
        pool = pool_res.data
        try:
            conn = await pool.acquire(timeout=self._timeout)
        except (asyncpg.PostgresError, *_CONNECTION_ERRORS) as exc:
            yield self._translate_error(exc)
            return

        tx = conn.transaction()
        try:
            await tx.start()
        except (asyncpg.PostgresError, *_CONNECTION_ERRORS) as exc:
            await pool.release(conn)
            yield self._translate_error(exc)
            return

        tx_state: Result[bool] = Result.Ok(True)
        token = self._tx_var.set(conn)
        try:
            try:
                yield tx_state
            except BaseException:
                try:
                    await tx.rollback()
                except (asyncpg.PostgresError, *_CONNECTION_ERRORS) as rb_exc:
                    logger.warning("Rollback failed: %s", rb_exc)
                raise
            try:
                await tx.commit()
            except (asyncpg.PostgresError, *_CONNECTION_ERRORS) as exc:
                failed = self._translate_error(exc)
                tx_state.ok = False
                tx_state.code = failed.code
                tx_state.error = f"Commit failed: {failed.error}"
        finally:
            self._tx_var.reset(token)
            await pool.release(conn)

    async def ahealth_check(self) -> bool:
        res = await self.aquery("SELECT 1 AS ok")
        return bool(res.ok and res.data)

    async def aclose(self) -> None:
        self._closed = True
        pool, self._pool = self._pool, None
        if pool is not None:
            try:
                await asyncio.wait_for(pool.close(), timeout=self._timeout)
            except asyncio.TimeoutError:
                logger.warning("Pool close timed out; terminating connections")
                pool.terminate()

    def runtime_status(self) -> Dict[str, Any]:
        pool = self._pool
        return {
            "backend": self.backend,
            "target": self.config.redacted_connection_string(),
            "pool_size": pool.get_size() if pool is not None else 0,
            "idle_connections": pool.get_idle_size() if pool is not None else 0,
            "max_connections": self._max_conn_limit,
            "query_timeout_s": self._query_timeout,
        }
