"""
File-tag associations and the derived `tags.usage_count` cache.
"""

from __future__ import annotations

from typing import Iterable

from ...adapters.db import StoragePort
from ...shared import ErrorCode, Result, get_logger

logger = get_logger(__name__)


class FileTagLinker:
    """Idempotent links between `files` and `tags`."""

    def __init__(self, db: StoragePort):
        self.db = db
        self._insert_link = db.dialect.insert_ignore("file_tags", ("file_id", "tag_id"), ("file_id", "tag_id"))

    async def averify_tag_exists(self, tag_id: int) -> Result[bool]:
        res = await self.db.ascalar("SELECT id FROM tags WHERE id = ? AND deleted_at IS NULL", (int(tag_id),))
        if not res.ok:
            return res
        if res.data is None:
            return Result.Err(ErrorCode.NOT_FOUND, f"Tag not found: {tag_id}", tag_id=tag_id)
        return Result.Ok(True)

    async def aattach(self, file_id: int, tag_id: int) -> Result[bool]:
        """Link a file record to a tag. Data is False when the link already existed."""
        res = await self.db.aexecute(self._insert_link, (int(file_id), int(tag_id)))
        if not res.ok:
            return res  # type: ignore[return-value]
        return Result.Ok(bool(res.data))

    async def arecompute_usage(self, tag_id: int, *, touch: bool = True) -> Result[int]:
        """
        Set `usage_count` to the number of distinct live file records linked to the tag.

        `touch` bumps `updated_at`, which is what orders the recently-used list;
        bookkeeping recomputes after deletes or resurrections pass `touch=False`.
        """
        count_sql = (
            "SELECT COUNT(DISTINCT ft.file_id) FROM file_tags ft "
            "JOIN files f ON f.id = ft.file_id "
            "WHERE ft.tag_id = ? AND f.deleted_at IS NULL"
        )
        touch_sql = f", updated_at = {self.db.dialect.now()}" if touch else ""
        res = await self.db.aexecute(
            f"UPDATE tags SET usage_count = ({count_sql}){touch_sql} WHERE id = ?",
            (int(tag_id), int(tag_id)),
        )
        if not res.ok:
            return res  # type: ignore[return-value]
        count = await self.db.ascalar("SELECT usage_count FROM tags WHERE id = ?", (int(tag_id),))
        if not count.ok:
            return count
        return Result.Ok(int(count.data or 0))

    async def atag_ids_for_files(self, file_ids: Iterable[int]) -> Result[list[int]]:
        ids = sorted({int(i) for i in file_ids})
        if not ids:
            return Result.Ok([])
        placeholders = self.db.dialect.placeholders(len(ids))
        res = await self.db.aquery(
            "SELECT DISTINCT ft.tag_id AS tag_id FROM file_tags ft "
            "JOIN tags t ON t.id = ft.tag_id AND t.deleted_at IS NULL "
            f"WHERE ft.file_id IN ({placeholders}) ORDER BY ft.tag_id",
            tuple(ids),
        )
        if not res.ok:
            return res  # type: ignore[return-value]
        return Result.Ok([int(r["tag_id"]) for r in res.data or []])

    async def arecompute_for_files(self, file_ids: Iterable[int], *, exclude: Iterable[int] = ()) -> Result[list[int]]:
        """Recompute (without touching) every tag linked to `file_ids`."""
        tags = await self.atag_ids_for_files(file_ids)
        if not tags.ok:
            return tags
        skip = {int(t) for t in exclude}
        done: list[int] = []
        for tag_id in tags.data or []:
            if tag_id in skip:
                continue
            res = await self.arecompute_usage(tag_id, touch=False)
            if not res.ok:
                return res  # type: ignore[return-value]
            done.append(tag_id)
        return Result.Ok(done)
