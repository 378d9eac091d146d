"""
Tag records: listing, search, creation and partial modification.

Name uniqueness among live tags is checked before writing and enforced by the
`idx_tags_name_live` partial unique index, so a concurrent duplicate still
surfaces as CONFLICT.
"""

from __future__ import annotations

from typing import Any, Optional

from ...adapters.db import StoragePort, contains_pattern
from ...shared import (
    DEFAULT_TAG_COLOR,
    DEFAULT_TAG_FONT_COLOR,
    DEFAULT_TAG_LIMIT,
    UNSET,
    ErrorCode,
    Patch,
    Result,
    TagListMode,
    TransactionAborted,
    get_logger,
)
from .models import TAG_COLUMNS, TAG_TS_COLUMNS, Tag

logger = get_logger(__name__)

MAX_TAG_LIMIT = 1000


def _resolve_limit(limit: Optional[int]) -> Result[int]:
    if limit is None:
        return Result.Ok(DEFAULT_TAG_LIMIT)
    try:
        value = int(limit)
    except (TypeError, ValueError):
        return Result.Err(ErrorCode.INVALID_INPUT, f"Invalid limit: {limit!r}")
    if value < 1:
        return Result.Err(ErrorCode.INVALID_INPUT, "Limit must be a positive integer")
    return Result.Ok(min(value, MAX_TAG_LIMIT))


def _conflict(name: str) -> Result[Any]:
    return Result.Err(ErrorCode.CONFLICT, f"Tag name already exists: {name}", name=name)


class TagStore:
    """CRUD and search over `tags`."""

    def __init__(self, db: StoragePort):
        self.db = db
        d = db.dialect
        self._select = f"SELECT {', '.join(TAG_COLUMNS)}, {d.select_ts_columns(TAG_TS_COLUMNS)} FROM tags"

    async def aget(self, tag_id: int) -> Result[Tag]:
        res = await self.db.aquery_one(f"{self._select} WHERE id = ? AND deleted_at IS NULL", (int(tag_id),))
        if not res.ok:
            return res  # type: ignore[return-value]
        if res.data is None:
            return Result.Err(ErrorCode.NOT_FOUND, f"Tag not found: {tag_id}", tag_id=tag_id)
        return Result.Ok(Tag.from_row(res.data))

    async def _find_live_by_name(self, name: str, *, exclude_id: Optional[int] = None) -> Result[Optional[int]]:
        sql = "SELECT id FROM tags WHERE name = ? AND deleted_at IS NULL"
        params: tuple = (name,)
        if exclude_id is not None:
            sql += " AND id <> ?"
            params = (name, int(exclude_id))
        return await self.db.ascalar(sql, params)

    async def alist(self, limit: Optional[int] = None, mode: TagListMode = TagListMode.MOST_USED) -> Result[list[Tag]]:
        """Live tags ordered by usage (default) or by last update, ties by ascending id."""
        lim = _resolve_limit(limit)
        if not lim.ok:
            return lim  # type: ignore[return-value]
        if mode == TagListMode.RECENTLY_USED:
            # Qualified so Postgres sorts on the stored timestamp, not the rendered text alias.
            order = "tags.updated_at DESC, tags.id ASC"
        else:
            order = "usage_count DESC, id ASC"
        res = await self.db.aquery(
            f"{self._select} WHERE deleted_at IS NULL ORDER BY {order} LIMIT ?",
            (lim.data,),
        )
        if not res.ok:
            return res  # type: ignore[return-value]
        return Result.Ok([Tag.from_row(r) for r in res.data or []])

    async def asearch(self, keyword: str, limit: Optional[int] = None) -> Result[list[Tag]]:
        """Case-insensitive substring match on name, ordered like the most-used list."""
        lim = _resolve_limit(limit)
        if not lim.ok:
            return lim  # type: ignore[return-value]
        needle = str(keyword or "").strip()
        res = await self.db.aquery(
            f"{self._select} WHERE deleted_at IS NULL AND {self.db.dialect.ci_contains('name')} "
            "ORDER BY usage_count DESC, id ASC LIMIT ?",
            (contains_pattern(needle), lim.data),
        )
        if not res.ok:
            return res  # type: ignore[return-value]
        return Result.Ok([Tag.from_row(r) for r in res.data or []])

    async def acreate(self, name: str) -> Result[Tag]:
        trimmed = str(name or "").strip()
        if not trimmed:
            return Result.Err(ErrorCode.INVALID_INPUT, "Tag name cannot be empty")

        existing = await self._find_live_by_name(trimmed)
        if not existing.ok:
            return existing  # type: ignore[return-value]
        if existing.data is not None:
            return _conflict(trimmed)

        now = self.db.dialect.now()
        inserted = await self.db.ainsert_returning_id(
            "INSERT INTO tags (name, color, font_color, parent_id, usage_count, created_at, updated_at) "
            f"VALUES (?, ?, ?, NULL, 0, {now}, {now})",
            (trimmed, DEFAULT_TAG_COLOR, DEFAULT_TAG_FONT_COLOR),
        )
        if not inserted.ok:
            if inserted.meta.get("unique_violation"):
                return _conflict(trimmed)
            return inserted  # type: ignore[return-value]
        logger.info("Created tag %s (id=%s)", trimmed, inserted.data)
        return await self.aget(int(inserted.data or 0))

    async def _validate_parent(self, tag_id: int, parent_id: Patch[int]) -> Result[bool]:
        if parent_id.is_unset or parent_id.is_null:
            return Result.Ok(True)
        value = parent_id.value
        if isinstance(value, bool) or not isinstance(value, int):
            return Result.Err(ErrorCode.INVALID_INPUT, f"Invalid parent id: {value!r}")
        if value == int(tag_id):
            return Result.Err(ErrorCode.INVALID_INPUT, "A tag cannot be its own parent")
        parent = await self.aget(value)
        if not parent.ok:
            if parent.code == ErrorCode.NOT_FOUND.value:
                return Result.Err(ErrorCode.NOT_FOUND, f"Parent tag not found: {value}", parent_id=value)
            return parent  # type: ignore[return-value]
        return Result.Ok(True)

    async def amodify(
        self,
        tag_id: int,
        *,
        name: Optional[str] = None,
        color: Patch[str] = UNSET,
        font_color: Patch[str] = UNSET,
        parent_id: Patch[int] = UNSET,
    ) -> Result[Tag]:
        """
        Apply a partial update.

        `name` is None to keep the current name. The other fields are tri-state
        patches: unset keeps the value, null clears it, a value replaces it.
        When nothing differs from the stored row, the row is returned without a
        write and `updated_at` is untouched.
        """
        new_name: Optional[str] = None
        if name is not None:
            new_name = str(name).strip()
            if not new_name:
                return Result.Err(ErrorCode.INVALID_INPUT, "Tag name cannot be empty")
        for label, patch in (("color", color), ("font_color", font_color)):
            if not patch.is_unset and not patch.is_null and not isinstance(patch.value, str):
                return Result.Err(ErrorCode.INVALID_INPUT, f"Invalid {label}: {patch.value!r}")

        try:
            async with self.db.atransaction() as tx:
                if not tx.ok:
                    return Result.Err(tx.code, tx.error or "Failed to begin transaction")

                current_res = await self.aget(tag_id)
                if not current_res.ok or current_res.data is None:
                    raise TransactionAborted(current_res)
                current = current_res.data

                changes: dict[str, Any] = {}
                if new_name is not None and new_name != current.name:
                    clash = await self._find_live_by_name(new_name, exclude_id=current.id)
                    if not clash.ok:
                        raise TransactionAborted(clash)
                    if clash.data is not None:
                        raise TransactionAborted(_conflict(new_name))
                    changes["name"] = new_name

                parent_ok = await self._validate_parent(current.id, parent_id)
                if not parent_ok.ok:
                    raise TransactionAborted(parent_ok)

                for column, patch in (("color", color), ("font_color", font_color), ("parent_id", parent_id)):
                    target = patch.resolve(getattr(current, column))
                    if target != getattr(current, column):
                        changes[column] = target

                if not changes:
                    return Result.Ok(current, changed=False)

                assignments = ", ".join(f"{col} = ?" for col in changes)
                updated = await self.db.aexecute(
                    f"UPDATE tags SET {assignments}, updated_at = {self.db.dialect.now()} "
                    "WHERE id = ? AND deleted_at IS NULL",
                    (*changes.values(), current.id),
                )
                if not updated.ok:
                    if updated.meta.get("unique_violation"):
                        raise TransactionAborted(_conflict(str(changes.get("name", current.name))))
                    raise TransactionAborted(updated)
                refreshed = await self.aget(current.id)
                if not refreshed.ok:
                    raise TransactionAborted(refreshed)
        except TransactionAborted as aborted:
            return aborted.result
        if not tx.ok:
            return Result.Err(tx.code, tx.error or "Commit failed")
        logger.debug("Modified tag %s: %s", tag_id, ", ".join(changes))
        return Result.Ok(refreshed.data, changed=True, fields=sorted(changes))
