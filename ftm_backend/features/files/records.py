"""
File records keyed by current absolute path.

Rows are created lazily when a path is first tagged, rewritten when the file is
renamed or moved, and soft-deleted (never removed) when the file is deleted.
`current_path` carries a full unique constraint: inserting over a soft-deleted
row conflicts, and the upsert resurrects that row instead.
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass
from typing import Any, Iterable, Mapping, Optional

from ...adapters.db import StoragePort
from ...shared import FILE_TYPES, ErrorCode, Result, TransactionAborted, get_logger

logger = get_logger(__name__)

# Appended (with the row id) to paths of stale rows displaced by a rename target.
RETIRED_MARKER = "|retired|"

_FILE_COLUMNS = ("id", "current_path", "file_type", "file_size")
_FILE_TS_COLUMNS = ("created_at", "updated_at", "deleted_at")


@dataclass(frozen=True)
class FileRecord:
    id: int
    current_path: str
    file_type: str
    file_size: int
    created_at: Optional[str]
    updated_at: Optional[str]
    deleted_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "FileRecord":
        return cls(
            id=int(row["id"]),
            current_path=str(row["current_path"]),
            file_type=str(row["file_type"]),
            file_size=int(row.get("file_size") or 0),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
            deleted_at=row.get("deleted_at"),
        )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _dir_prefix(path: str) -> str:
    """`path` with exactly one trailing separator, for descendant matching."""
    seps = os.sep + (os.altsep or "")
    return path.rstrip(seps) + os.sep


class FileRecordStore:
    """Get-or-create, rename propagation and soft delete over `files`."""

    def __init__(self, db: StoragePort):
        self.db = db
        d = db.dialect
        self._select = f"SELECT {', '.join(_FILE_COLUMNS)}, {d.select_ts_columns(_FILE_TS_COLUMNS)} FROM files"

    async def aget_by_path(self, path: str, *, include_deleted: bool = False) -> Result[Optional[FileRecord]]:
        sql = f"{self._select} WHERE current_path = ?"
        if not include_deleted:
            sql += " AND deleted_at IS NULL"
        res = await self.db.aquery_one(sql, (str(path),))
        if not res.ok:
            return res  # type: ignore[return-value]
        return Result.Ok(FileRecord.from_row(res.data) if res.data else None)

    async def aget(self, file_id: int) -> Result[Optional[FileRecord]]:
        res = await self.db.aquery_one(f"{self._select} WHERE id = ?", (int(file_id),))
        if not res.ok:
            return res  # type: ignore[return-value]
        return Result.Ok(FileRecord.from_row(res.data) if res.data else None)

    async def alist_live(self, under: Optional[str] = None) -> Result[list[FileRecord]]:
        """Live records, optionally only those strictly beneath directory `under`."""
        if under:
            prefix = _dir_prefix(under)
            res = await self.db.aquery(
                f"{self._select} WHERE deleted_at IS NULL AND {self.db.dialect.prefix_match('current_path')} ORDER BY id",
                (len(prefix), prefix),
            )
        else:
            res = await self.db.aquery(f"{self._select} WHERE deleted_at IS NULL ORDER BY id")
        if not res.ok:
            return res  # type: ignore[return-value]
        return Result.Ok([FileRecord.from_row(r) for r in res.data or []])

    async def aget_or_create(self, path: str, file_type: str, file_size: int) -> Result[int]:
        """
        Return the id of the live record at `path`, creating or resurrecting it.

        An existing live record is returned untouched (type and size are not
        refreshed). Result meta carries `created` and `resurrected` flags.
        """
        path = str(path or "")
        if not path:
            return Result.Err(ErrorCode.INVALID_INPUT, "Path cannot be empty")
        if file_type not in FILE_TYPES:
            return Result.Err(ErrorCode.INVALID_INPUT, f"Invalid file type: {file_type!r}")
        try:
            size = int(file_size)
        except (TypeError, ValueError):
            return Result.Err(ErrorCode.INVALID_INPUT, f"Invalid file size: {file_size!r}")
        if size < 0:
            return Result.Err(ErrorCode.INVALID_INPUT, "File size cannot be negative")

        d = self.db.dialect
        upsert_sql = d.upsert(
            "files",
            ("current_path", "file_type", "file_size"),
            ("current_path",),
            {
                "file_type": "excluded.file_type",
                "file_size": "excluded.file_size",
                "deleted_at": "NULL",
                "updated_at": d.now(),
            },
            where="files.deleted_at IS NOT NULL",
        )
        try:
            async with self.db.atransaction() as tx:
                if not tx.ok:
                    return Result.Err(tx.code, tx.error or "Failed to begin transaction")
                live = await self.db.ascalar(
                    "SELECT id FROM files WHERE current_path = ? AND deleted_at IS NULL", (path,)
                )
                if not live.ok:
                    raise TransactionAborted(live)
                if live.data is not None:
                    return Result.Ok(int(live.data), created=False, resurrected=False)

                prior = await self.db.ascalar("SELECT id FROM files WHERE current_path = ?", (path,))
                if not prior.ok:
                    raise TransactionAborted(prior)

                written = await self.db.aexecute(upsert_sql, (path, file_type, size))
                if not written.ok:
                    raise TransactionAborted(written)

                row_id = await self.db.ascalar(
                    "SELECT id FROM files WHERE current_path = ? AND deleted_at IS NULL", (path,)
                )
                if not row_id.ok:
                    raise TransactionAborted(row_id)
                if row_id.data is None:
                    raise TransactionAborted(
                        Result.Err(ErrorCode.QUERY_ERROR, f"File record missing after upsert: {path}")
                    )
        except TransactionAborted as aborted:
            return aborted.result
        if not tx.ok:
            return Result.Err(tx.code, tx.error or "Commit failed")

        resurrected = prior.data is not None
        if resurrected:
            logger.info("Resurrected file record %s for %s", row_id.data, path)
        return Result.Ok(int(row_id.data), created=not resurrected, resurrected=resurrected)

    async def _retire(self, where: str, params: tuple) -> Result[list[int]]:
        """
        Move stale rows out of the way of a rename target.

        Their path gets a unique suffix and live ones are soft-deleted; returns the
        ids that were live, whose tag counts need recomputing.
        """
        rows = await self.db.aquery(f"SELECT id, deleted_at FROM files WHERE {where}", params)
        if not rows.ok:
            return rows  # type: ignore[return-value]
        if not rows.data:
            return Result.Ok([])
        now = self.db.dialect.now()
        res = await self.db.aexecute(
            "UPDATE files SET current_path = current_path || CAST(? AS TEXT) || CAST(id AS TEXT), "
            f"deleted_at = COALESCE(deleted_at, {now}), updated_at = {now} WHERE {where}",
            (RETIRED_MARKER, *params),
        )
        if not res.ok:
            return res  # type: ignore[return-value]
        was_live = [int(r["id"]) for r in rows.data if r.get("deleted_at") is None]
        logger.warning("Retired %d stale file record(s) occupying a rename target", len(rows.data))
        return Result.Ok(was_live)

    async def arename_path(self, old_path: str, new_path: str) -> Result[int]:
        """
        Point the live record at `old_path` to `new_path`.

        Untracked paths are a no-op (0 rows). Result meta `retired_ids` lists live
        records that previously sat at `new_path` and were soft-deleted.
        """
        old_path, new_path = str(old_path), str(new_path)
        if old_path == new_path:
            return Result.Ok(0, retired_ids=[])
        try:
            async with self.db.atransaction() as tx:
                if not tx.ok:
                    return Result.Err(tx.code, tx.error or "Failed to begin transaction")
                source = await self.db.ascalar(
                    "SELECT id FROM files WHERE current_path = ? AND deleted_at IS NULL", (old_path,)
                )
                if not source.ok:
                    raise TransactionAborted(source)
                if source.data is None:
                    return Result.Ok(0, retired_ids=[])
                retired = await self._retire("current_path = ?", (new_path,))
                if not retired.ok:
                    raise TransactionAborted(retired)
                updated = await self.db.aexecute(
                    f"UPDATE files SET current_path = ?, updated_at = {self.db.dialect.now()} "
                    "WHERE id = ?",
                    (new_path, int(source.data)),
                )
                if not updated.ok:
                    raise TransactionAborted(updated)
        except TransactionAborted as aborted:
            return aborted.result
        if not tx.ok:
            return Result.Err(tx.code, tx.error or "Commit failed")
        logger.debug("Renamed file record %s: %s -> %s", source.data, old_path, new_path)
        return Result.Ok(int(updated.data or 0), retired_ids=retired.data or [])

    async def arename_descendants(self, old_dir: str, new_dir: str) -> Result[int]:
        """Rewrite the path prefix of live records beneath a renamed or moved folder."""
        old_prefix, new_prefix = _dir_prefix(old_dir), _dir_prefix(new_dir)
        if old_prefix == new_prefix:
            return Result.Ok(0, retired_ids=[])
        match = self.db.dialect.prefix_match("current_path")
        try:
            async with self.db.atransaction() as tx:
                if not tx.ok:
                    return Result.Err(tx.code, tx.error or "Failed to begin transaction")
                count = await self.db.ascalar(
                    f"SELECT COUNT(*) FROM files WHERE deleted_at IS NULL AND {match}",
                    (len(old_prefix), old_prefix),
                )
                if not count.ok:
                    raise TransactionAborted(count)
                if not int(count.data or 0):
                    return Result.Ok(0, retired_ids=[])
                retired = await self._retire(match, (len(new_prefix), new_prefix))
                if not retired.ok:
                    raise TransactionAborted(retired)
                updated = await self.db.aexecute(
                    "UPDATE files SET current_path = CAST(? AS TEXT) || substr(current_path, ?), "
                    f"updated_at = {self.db.dialect.now()} WHERE deleted_at IS NULL AND {match}",
                    (new_prefix, len(old_prefix) + 1, len(old_prefix), old_prefix),
                )
                if not updated.ok:
                    raise TransactionAborted(updated)
        except TransactionAborted as aborted:
            return aborted.result
        if not tx.ok:
            return Result.Err(tx.code, tx.error or "Commit failed")
        return Result.Ok(int(updated.data or 0), retired_ids=retired.data or [])

    async def asoft_delete(self, paths: Iterable[str], *, include_descendants: bool = False) -> Result[list[int]]:
        """
        Soft-delete the live records at `paths`; unknown paths are skipped.

        With `include_descendants`, live records beneath each path go as well.
        Returns the ids that were soft-deleted.
        """
        match = self.db.dialect.prefix_match("current_path")
        now = self.db.dialect.now()
        deleted: list[int] = []
        try:
            async with self.db.atransaction() as tx:
                if not tx.ok:
                    return Result.Err(tx.code, tx.error or "Failed to begin transaction")
                for path in paths:
                    where = "current_path = ?"
                    params: tuple = (str(path),)
                    if include_descendants:
                        prefix = _dir_prefix(str(path))
                        where = f"(current_path = ? OR {match})"
                        params = (str(path), len(prefix), prefix)
                    ids = await self.db.aquery(
                        f"SELECT id FROM files WHERE deleted_at IS NULL AND {where}", params
                    )
                    if not ids.ok:
                        raise TransactionAborted(ids)
                    if not ids.data:
                        continue
                    res = await self.db.aexecute(
                        f"UPDATE files SET deleted_at = {now}, updated_at = {now} "
                        f"WHERE deleted_at IS NULL AND {where}",
                        params,
                    )
                    if not res.ok:
                        raise TransactionAborted(res)
                    deleted.extend(int(r["id"]) for r in ids.data)
        except TransactionAborted as aborted:
            return aborted.result
        if not tx.ok:
            return Result.Err(tx.code, tx.error or "Commit failed")
        if deleted:
            logger.info("Soft-deleted %d file record(s)", len(deleted))
        return Result.Ok(deleted)
