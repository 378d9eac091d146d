"""
Filesystem mutations together with the metadata updates they imply.

Ordering is fixed: the physical operation runs first, then the file records are
reconciled. A metadata failure after a successful physical step is reported but
the filesystem change stays in place. Batches are processed sequentially and
stop at the first failing item; items already applied are not undone, but they
are still reconciled so the records follow the filesystem.

Each batch walks VALIDATING -> EXECUTING -> RECONCILING -> DONE, or FAILED.
"""

from __future__ import annotations

import os
from typing import Any, Iterable, Optional

from ...adapters.fs import FilesystemPort
from ...path_utils import base_name, is_same_or_descendant
from ...shared import BatchState, ErrorCode, Result, get_logger
from ...utils import normalize_path_list, parse_int
from ..tags.linker import FileTagLinker
from .filename import normalize_filename, validate_filename
from .records import FileRecordStore

logger = get_logger(__name__)


def _clean_path(path: str) -> str:
    return os.path.abspath(str(path))


class _BatchRun:
    """State tracking and uniform result shaping for one batch."""

    def __init__(self, op: str, total: int):
        self.op = op
        self.total = total
        self.completed = 0
        self.state = BatchState.VALIDATING

    def advance(self, state: BatchState) -> None:
        logger.debug("%s batch: %s -> %s", self.op, self.state.value, state.value)
        self.state = state

    def fail(self, res: Result[Any], *, at: Optional[BatchState] = None, **extra: Any) -> Result[Any]:
        failed_in = at or self.state
        self.advance(BatchState.FAILED)
        meta = dict(res.meta or {})
        meta.update(extra)
        meta.update(op=self.op, state=BatchState.FAILED.value, failed_state=failed_in.value, completed=self.completed)
        logger.warning("%s failed during %s after %d/%d item(s): %s", self.op, failed_in.value, self.completed, self.total, res.error)
        return Result.Err(res.code or ErrorCode.IO_ERROR, res.error or f"{self.op} failed", **meta)

    def done(self, data: Any, **meta: Any) -> Result[Any]:
        self.advance(BatchState.DONE)
        return Result.Ok(data, op=self.op, state=BatchState.DONE.value, completed=self.completed, **meta)


class FileOpsCoordinator:
    """Move, copy, rename, delete and tag-assignment over batches of paths."""

    def __init__(
        self,
        fs: FilesystemPort,
        records: FileRecordStore,
        linker: FileTagLinker,
        *,
        copy_tags_on_copy: bool = False,
    ):
        self.fs = fs
        self.records = records
        self.linker = linker
        self.copy_tags_on_copy = bool(copy_tags_on_copy)

    # ------------------------------------------------------------ validation

    @staticmethod
    def _validate_paths(paths: Any) -> Result[list[str]]:
        if not isinstance(paths, (list, tuple)) or not paths:
            return Result.Err(ErrorCode.INVALID_INPUT, "At least one path is required")
        valid = normalize_path_list(paths)
        if valid is None:
            return Result.Err(ErrorCode.INVALID_INPUT, "Paths must be non-empty strings")
        return Result.Ok([_clean_path(p) for p in valid])

    async def _validate_target(self, target: Any) -> Result[str]:
        if not isinstance(target, str) or not target.strip():
            return Result.Err(ErrorCode.INVALID_INPUT, "Target directory is required")
        path = _clean_path(target)
        if not await self.fs.aexists(path):
            return Result.Err(ErrorCode.NOT_FOUND, f"Target directory not found: {path}", path=path)
        if not await self.fs.ais_directory(path):
            return Result.Err(ErrorCode.NOT_A_DIRECTORY, f"Target is not a directory: {path}", path=path)
        return Result.Ok(path)

    async def _destination_for(self, src: str, target: str) -> Result[tuple[str, bool]]:
        if not await self.fs.aexists(src):
            return Result.Err(ErrorCode.NOT_FOUND, f"Source not found: {src}", path=src)
        dest = os.path.join(target, base_name(src))
        if await self.fs.aexists(dest):
            return Result.Err(ErrorCode.ALREADY_EXISTS, f"Destination already exists: {dest}", path=dest)
        is_dir = await self.fs.ais_directory(src)
        if is_dir and is_same_or_descendant(target, src):
            return Result.Err(ErrorCode.INVALID_INPUT, f"Cannot place a folder inside itself: {src}", path=src)
        return Result.Ok((dest, is_dir))

    # -------------------------------------------------------- reconciliation

    async def _propagate_rename(self, src: str, dest: str, is_dir: bool) -> Result[int]:
        res = await self.records.arename_path(src, dest)
        if not res.ok:
            return res
        retired = list(res.meta.get("retired_ids") or [])
        moved = int(res.data or 0)
        if is_dir:
            sub = await self.records.arename_descendants(src, dest)
            if not sub.ok:
                return sub
            retired.extend(sub.meta.get("retired_ids") or [])
            moved += int(sub.data or 0)
        if retired:
            recomputed = await self.linker.arecompute_for_files(retired)
            if not recomputed.ok:
                return recomputed  # type: ignore[return-value]
        return Result.Ok(moved)

    async def _duplicate_tags(self, copied: Iterable[tuple[str, str, bool]]) -> Result[list[int]]:
        """Re-link copies to the tags of their sources; returns the tags touched."""
        touched: set[int] = set()
        for src, dest, is_dir in copied:
            pairs: list[tuple[int, str]] = []
            own = await self.records.aget_by_path(src)
            if not own.ok:
                return own  # type: ignore[return-value]
            if own.data is not None:
                pairs.append((own.data.id, dest))
            if is_dir:
                subs = await self.records.alist_live(under=src)
                if not subs.ok:
                    return subs  # type: ignore[return-value]
                prefix_len = len(src.rstrip(os.sep)) + 1
                for rec in subs.data or []:
                    pairs.append((rec.id, os.path.join(dest, rec.current_path[prefix_len:])))

            for source_id, dest_path in pairs:
                tags = await self.linker.atag_ids_for_files([source_id])
                if not tags.ok:
                    return tags
                # Dot entries are not copied, so their records have no counterpart
                if not tags.data or not await self.fs.aexists(dest_path):
                    continue
                entry = await self.fs.aentry(dest_path)
                if not entry.ok:
                    return entry  # type: ignore[return-value]
                file_type = "folder" if entry.data.is_dir else "file"
                new_id = await self.records.aget_or_create(dest_path, file_type, entry.data.size)
                if not new_id.ok:
                    return new_id  # type: ignore[return-value]
                for tag_id in tags.data:
                    linked = await self.linker.aattach(int(new_id.data), tag_id)
                    if not linked.ok:
                        return linked  # type: ignore[return-value]
                    touched.add(tag_id)

        for tag_id in sorted(touched):
            res = await self.linker.arecompute_usage(tag_id)
            if not res.ok:
                return res  # type: ignore[return-value]
        return Result.Ok(sorted(touched))

    # ------------------------------------------------------------ operations

    async def amove(self, paths: Any, target_dir: Any) -> Result[dict]:
        """Move each path into `target_dir`, then point its records at the new location."""
        run = _BatchRun("move", len(paths) if isinstance(paths, (list, tuple)) else 0)
        sources = self._validate_paths(paths)
        if not sources.ok:
            return run.fail(sources)
        target = await self._validate_target(target_dir)
        if not target.ok:
            return run.fail(target)

        run.advance(BatchState.EXECUTING)
        moved: list[tuple[str, str, bool]] = []
        failure: Optional[Result[Any]] = None
        for src in sources.data or []:
            dst = await self._destination_for(src, target.data)
            if not dst.ok:
                failure = dst
                break
            dest, is_dir = dst.data
            res = await self.fs.amove(src, dest)
            if not res.ok:
                failure = res
                break
            moved.append((src, dest, is_dir))
            run.completed += 1

        run.advance(BatchState.RECONCILING)
        summary = [{"from": s, "to": d} for s, d, _ in moved]
        for src, dest, is_dir in moved:
            meta_res = await self._propagate_rename(src, dest, is_dir)
            if not meta_res.ok:
                return run.fail(meta_res, moved=summary, filesystem_applied=True)
        if failure is not None:
            return run.fail(failure, at=BatchState.EXECUTING, moved=summary)
        return run.done({"moved": summary})

    async def acopy(self, paths: Any, target_dir: Any) -> Result[dict]:
        """Copy each path into `target_dir`; dot entries inside folders are skipped."""
        run = _BatchRun("copy", len(paths) if isinstance(paths, (list, tuple)) else 0)
        sources = self._validate_paths(paths)
        if not sources.ok:
            return run.fail(sources)
        target = await self._validate_target(target_dir)
        if not target.ok:
            return run.fail(target)

        run.advance(BatchState.EXECUTING)
        copied: list[tuple[str, str, bool]] = []
        failure: Optional[Result[Any]] = None
        for src in sources.data or []:
            dst = await self._destination_for(src, target.data)
            if not dst.ok:
                failure = dst
                break
            dest, is_dir = dst.data
            if is_dir:
                res = await self.fs.acopy_dir_recursive(src, dest)
            else:
                res = await self.fs.acopy_file(src, dest)
            if not res.ok:
                failure = res
                break
            copied.append((src, dest, is_dir))
            run.completed += 1

        run.advance(BatchState.RECONCILING)
        summary = [{"from": s, "to": d} for s, d, _ in copied]
        tagged: list[int] = []
        if self.copy_tags_on_copy and copied:
            dup = await self._duplicate_tags(copied)
            if not dup.ok:
                return run.fail(dup, copied=summary, filesystem_applied=True)
            tagged = list(dup.data or [])
        if failure is not None:
            return run.fail(failure, at=BatchState.EXECUTING, copied=summary)
        return run.done({"copied": summary, "tags_copied": tagged})

    async def arename(self, old_path: Any, new_name: Any) -> Result[dict]:
        """
        Rename a file or folder within its directory.

        The metadata step runs whenever the item ended up at the new path, even if
        the rename call itself reported an error.
        """
        run = _BatchRun("rename", 1)
        if not isinstance(old_path, str) or not old_path.strip():
            return run.fail(Result.Err(ErrorCode.INVALID_INPUT, "Path is required"))
        valid, msg = validate_filename(str(new_name or ""))
        if not valid:
            return run.fail(Result.Err(ErrorCode.INVALID_INPUT, msg))

        src = _clean_path(old_path)
        if not await self.fs.aexists(src):
            return run.fail(Result.Err(ErrorCode.NOT_FOUND, f"Path not found: {src}", path=src))
        name = normalize_filename(str(new_name))
        dest = os.path.join(os.path.dirname(src), name)
        if await self.fs.aexists(dest):
            case_only = name != base_name(src) and await self.fs.asame_file(src, dest)
            if not case_only:
                return run.fail(Result.Err(ErrorCode.ALREADY_EXISTS, f"Destination already exists: {dest}", path=dest))
        is_dir = await self.fs.ais_directory(src)

        run.advance(BatchState.EXECUTING)
        physical = await self.fs.amove(src, dest)
        if physical.ok:
            run.completed = 1

        run.advance(BatchState.RECONCILING)
        metadata: Optional[Result[int]] = None
        landed = physical.ok or (await self.fs.aexists(dest) and not await self.fs.aexists(src))
        if landed:
            metadata = await self._propagate_rename(src, dest, is_dir)

        if not physical.ok:
            extra: dict[str, Any] = {}
            if metadata is not None and not metadata.ok:
                extra["metadata_error"] = metadata.error
            return run.fail(physical, at=BatchState.EXECUTING, **extra)
        if metadata is not None and not metadata.ok:
            return run.fail(metadata, filesystem_applied=True, old_path=src, new_path=dest)
        return run.done({"old_path": src, "new_path": dest})

    async def adelete(self, paths: Any) -> Result[dict]:
        """Remove each path (folders recursively), then soft-delete the matching records."""
        run = _BatchRun("delete", len(paths) if isinstance(paths, (list, tuple)) else 0)
        targets = self._validate_paths(paths)
        if not targets.ok:
            return run.fail(targets)
        for path in targets.data or []:
            if not await self.fs.aexists(path):
                return run.fail(Result.Err(ErrorCode.NOT_FOUND, f"Path not found: {path}", path=path))

        run.advance(BatchState.EXECUTING)
        removed: list[str] = []
        failure: Optional[Result[Any]] = None
        for path in targets.data or []:
            if await self.fs.ais_directory(path):
                res = await self.fs.aremove_dir_recursive(path)
            else:
                res = await self.fs.aremove_file(path)
            if not res.ok:
                failure = res
                break
            removed.append(path)
            run.completed += 1

        run.advance(BatchState.RECONCILING)
        soft_deleted: list[int] = []
        if removed:
            deleted = await self.records.asoft_delete(removed, include_descendants=True)
            if not deleted.ok:
                return run.fail(deleted, removed=removed, filesystem_applied=True)
            soft_deleted = list(deleted.data or [])
            if soft_deleted:
                recomputed = await self.linker.arecompute_for_files(soft_deleted)
                if not recomputed.ok:
                    return run.fail(recomputed, removed=removed, filesystem_applied=True)
        if failure is not None:
            return run.fail(failure, at=BatchState.EXECUTING, removed=removed)
        return run.done({"removed": removed, "records_soft_deleted": len(soft_deleted)})

    async def aadd_tags_to_files(self, paths: Any, tag_id: Any) -> Result[dict]:
        """
        Attach one tag to every path, creating file records as needed.

        The tag's usage count is recomputed once after the loop, including when the
        loop stopped early.
        """
        run = _BatchRun("add_tags", len(paths) if isinstance(paths, (list, tuple)) else 0)
        targets = self._validate_paths(paths)
        if not targets.ok:
            return run.fail(targets)
        tid = parse_int(tag_id)
        if tid is None:
            return run.fail(Result.Err(ErrorCode.INVALID_INPUT, f"Invalid tag id: {tag_id!r}"))
        exists = await self.linker.averify_tag_exists(tid)
        if not exists.ok:
            return run.fail(exists)

        run.advance(BatchState.EXECUTING)
        linked = 0
        resurrected: list[int] = []
        failure: Optional[Result[Any]] = None
        for path in targets.data or []:
            if not await self.fs.aexists(path):
                failure = Result.Err(ErrorCode.NOT_FOUND, f"Path not found: {path}", path=path)
                break
            entry = await self.fs.aentry(path)
            if not entry.ok:
                failure = entry
                break
            file_type = "folder" if entry.data.is_dir else "file"
            record = await self.records.aget_or_create(path, file_type, entry.data.size)
            if not record.ok:
                failure = record
                break
            if record.meta.get("resurrected"):
                resurrected.append(int(record.data))
            attached = await self.linker.aattach(int(record.data), tid)
            if not attached.ok:
                failure = attached
                break
            linked += 1 if attached.data else 0
            run.completed += 1

        run.advance(BatchState.RECONCILING)
        usage = await self.linker.arecompute_usage(tid)
        if not usage.ok and failure is None:
            return run.fail(usage)
        if resurrected:
            others = await self.linker.arecompute_for_files(resurrected, exclude=[tid])
            if not others.ok and failure is None:
                return run.fail(others)
        if failure is not None:
            return run.fail(failure, at=BatchState.EXECUTING)
        return run.done({"tag_id": tid, "files": run.completed, "linked": linked, "usage_count": usage.data})
