"""
Tag row model.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Mapping, Optional

TAG_COLUMNS = ("id", "name", "color", "font_color", "parent_id", "usage_count")
TAG_TS_COLUMNS = ("created_at", "updated_at", "deleted_at")


@dataclass(frozen=True)
class Tag:
    id: int
    name: str
    color: Optional[str]
    font_color: Optional[str]
    parent_id: Optional[int]
    usage_count: int
    created_at: Optional[str]
    updated_at: Optional[str]
    deleted_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Tag":
        parent = row.get("parent_id")
        return cls(
            id=int(row["id"]),
            name=str(row["name"]),
            color=row.get("color"),
            font_color=row.get("font_color"),
            parent_id=int(parent) if parent is not None else None,
            usage_count=int(row.get("usage_count") or 0),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
            deleted_at=row.get("deleted_at"),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
