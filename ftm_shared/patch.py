"""
Tri-state field update used by partial modifications.

A `Patch` is either unset (leave the field alone), null (clear the field) or a value.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Mapping, Optional, TypeVar

T = TypeVar("T")


class PatchKind(str, Enum):
    UNSET = "unset"
    NULL = "null"
    VALUE = "value"


@dataclass(frozen=True)
class Patch(Generic[T]):
    kind: PatchKind = PatchKind.UNSET
    value: Optional[T] = None

    @classmethod
    def unset(cls) -> "Patch[T]":
        return cls(PatchKind.UNSET)

    @classmethod
    def null(cls) -> "Patch[T]":
        return cls(PatchKind.NULL)

    @classmethod
    def of(cls, value: T) -> "Patch[T]":
        if value is None:
            return cls(PatchKind.NULL)
        return cls(PatchKind.VALUE, value)

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any], *keys: str) -> "Patch[Any]":
        """
        Build a patch from a decoded JSON object.

        The first key present wins, so both `font_color` and `fontColor` can be accepted.
        A missing key is unset, an explicit `null` clears the field.
        """
        for key in keys:
            if key in payload:
                return cls.of(payload[key])
        return cls.unset()

    @property
    def is_unset(self) -> bool:
        return self.kind is PatchKind.UNSET

    @property
    def is_null(self) -> bool:
        return self.kind is PatchKind.NULL

    def resolve(self, current: Optional[T]) -> Optional[T]:
        """Value the field would hold after applying this patch."""
        if self.kind is PatchKind.UNSET:
            return current
        if self.kind is PatchKind.NULL:
            return None
        return self.value


UNSET: Patch[Any] = Patch()
