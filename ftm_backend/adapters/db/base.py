"""
Storage port shared by the embedded (aiosqlite) and client-server (asyncpg) adapters.

Critical guarantee:
- Adapters never raise to callers; every call returns `Result(...)`.
- The one exception is `atransaction()`: exceptions raised inside the block
  roll the transaction back and propagate (raise `TransactionAborted` to abort
  with a Result).
"""

from __future__ import annotations

import contextvars
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from ...config import DatabaseConfig
from ...shared import Result
from .dialect import Dialect

Params = Optional[Sequence[Any]]
Row = Dict[str, Any]


class StoragePort(ABC):
    """Normalized query/execute interface over one relational backend."""

    backend: str = "generic"

    def __init__(self, config: DatabaseConfig, dialect: Dialect):
        self.config = config
        self.dialect = dialect
        self._tx_var: contextvars.ContextVar[Optional[Any]] = contextvars.ContextVar(
            f"ftm_tx_{self.backend}_{id(self)}", default=None
        )

    def in_transaction(self) -> bool:
        return self._tx_var.get() is not None

    @abstractmethod
    async def aquery(self, sql: str, params: Params = None) -> Result[List[Row]]:
        """Run a SELECT and return rows as dicts."""

    async def aquery_one(self, sql: str, params: Params = None) -> Result[Optional[Row]]:
        res = await self.aquery(sql, params)
        if not res.ok:
            return res  # type: ignore[return-value]
        rows = res.data or []
        return Result.Ok(rows[0] if rows else None)

    async def ascalar(self, sql: str, params: Params = None) -> Result[Any]:
        res = await self.aquery_one(sql, params)
        if not res.ok:
            return res
        row = res.data
        if not row:
            return Result.Ok(None)
        return Result.Ok(next(iter(row.values())))

    @abstractmethod
    async def aexecute(self, sql: str, params: Params = None) -> Result[int]:
        """Run a write statement and return the affected row count."""

    @abstractmethod
    async def ainsert_returning_id(self, sql: str, params: Params = None) -> Result[int]:
        """Run an INSERT and return the generated `id`."""

    @abstractmethod
    def atransaction(self) -> AsyncIterator[Result[bool]]:
        """
        Async context manager for a transaction.

        Yields a Result describing whether BEGIN succeeded; a failed COMMIT flips it
        to an error after the block. Nested use joins the outer transaction.
        """

    @abstractmethod
    async def ahealth_check(self) -> bool:
        """Trivial round trip (`SELECT 1`)."""

    @abstractmethod
    async def aclose(self) -> None:
        """Release every pooled connection."""

    @abstractmethod
    def runtime_status(self) -> Dict[str, Any]:
        """Lightweight pool counters for diagnostics."""

    async def amigrate(self) -> Result[int]:
        """Apply pending schema migrations; returns the resulting schema version."""
        from .schema import apply_migrations

        return await apply_migrations(self)

    async def aschema_version(self) -> int:
        from .schema import aget_schema_version

        return await aget_schema_version(self)
