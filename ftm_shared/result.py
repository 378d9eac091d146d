"""
Result pattern for error handling without exceptions.
All service methods return Result[T]; adapters translate driver and OS errors at their boundary.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Generic, Optional, TypeVar, cast

from .types import ErrorCode

T = TypeVar("T")
U = TypeVar("U")


@dataclass
class Result(Generic[T]):
    """
    Result pattern for safe error handling.

    Usage:
        async def aget(self, tag_id: int) -> Result[Tag]:
            row = ...
            if row is None:
                return Result.Err(ErrorCode.NOT_FOUND, f"Tag not found: {tag_id}")
            return Result.Ok(Tag.from_row(row))
    """
    ok: bool
    data: Optional[T] = None
    error: Optional[str] = None
    code: str = "OK"
    meta: dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def Ok(data: T, **meta: Any) -> "Result[T]":
        """Create a successful result with data and optional metadata."""
        return Result(ok=True, data=data, code="OK", meta=meta)

    @staticmethod
    def Err(code: ErrorCode | str | Enum, error: str, **meta: Any) -> "Result[T]":
        """Create an error result with code, message, and optional metadata."""
        code_value = code.value if isinstance(code, Enum) else code
        return Result(ok=False, error=error, code=str(code_value), meta=meta)

    def map(self, fn: Callable[[T], U]) -> "Result[U]":
        """Map the data if ok, otherwise return self."""
        if self.ok and self.data is not None:
            return Result.Ok(fn(self.data), **self.meta)
        return cast(Result[U], self)

    def unwrap(self) -> T:
        """Get data or raise ValueError if error."""
        if self.ok and self.data is not None:
            return self.data
        raise ValueError(f"[{self.code}] {self.error}")

    def unwrap_or(self, default: T) -> T:
        """Get data or return default if error."""
        return self.data if (self.ok and self.data is not None) else default

    def with_code(self, code: ErrorCode | str) -> "Result[T]":
        """Re-label an error result, keeping message and meta."""
        if self.ok:
            return self
        return Result.Err(code, self.error or "", **self.meta)


class TransactionAborted(Exception):
    """Raised inside `atransaction()` to roll back and carry the failing Result out."""

    def __init__(self, result: Result[Any]):
        super().__init__(f"[{result.code}] {result.error}")
        self.result = result
