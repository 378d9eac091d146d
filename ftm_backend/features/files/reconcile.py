"""
Detect file records whose path no longer exists on disk.

Filesystem changes made outside the application (or a metadata step that failed
after a physical change) leave records pointing at missing paths. A scan lists
them; `apply=True` soft-deletes them and refreshes the affected tag counts.
"""

from __future__ import annotations

from ...adapters.fs import FilesystemPort
from ...shared import Result, get_logger, log_success
from ..tags.linker import FileTagLinker
from .records import FileRecordStore

logger = get_logger(__name__)


class FileReconciler:
    def __init__(self, fs: FilesystemPort, records: FileRecordStore, linker: FileTagLinker):
        self.fs = fs
        self.records = records
        self.linker = linker

    async def ascan(self, *, apply: bool = False) -> Result[dict]:
        live = await self.records.alist_live()
        if not live.ok:
            return live  # type: ignore[return-value]

        missing: list[str] = []
        for record in live.data or []:
            if not await self.fs.aexists(record.current_path):
                missing.append(record.current_path)

        report = {"checked": len(live.data or []), "missing": missing, "soft_deleted": 0}
        if not apply or not missing:
            return Result.Ok(report)

        deleted = await self.records.asoft_delete(missing)
        if not deleted.ok:
            return deleted  # type: ignore[return-value]
        recomputed = await self.linker.arecompute_for_files(deleted.data or [])
        if not recomputed.ok:
            return recomputed  # type: ignore[return-value]
        report["soft_deleted"] = len(deleted.data or [])
        log_success(logger, f"Reconciled {report['soft_deleted']} stale file record(s)")
        return Result.Ok(report)
