"""
Local filesystem adapter.

Every blocking call runs in a worker thread (`asyncio.to_thread`) so the event loop
stays responsive while large directories are copied or removed. OS failures are
returned as `Result.Err(IO_ERROR, <os error text>)`; nothing raises to callers.
"""

from __future__ import annotations

import asyncio
import os
import shutil
import stat
from dataclasses import dataclass
from typing import Callable, Protocol, TypeVar

from ...shared import ErrorCode, Result, get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class FsEntry:
    name: str
    path: str
    is_dir: bool
    size: int
    modified_at: float
    created_at: float
    hidden: bool = False


class FilesystemPort(Protocol):
    async def aexists(self, path: str) -> bool: ...

    async def ais_directory(self, path: str) -> bool: ...

    async def asame_file(self, a: str, b: str) -> bool: ...

    async def aentry(self, path: str) -> Result[FsEntry]: ...

    async def aread_dir_entries(self, path: str, *, skip_dot: bool = False) -> Result[list[FsEntry]]: ...

    async def amove(self, src: str, dst: str) -> Result[bool]: ...

    async def acopy_file(self, src: str, dst: str) -> Result[bool]: ...

    async def acopy_dir_recursive(self, src: str, dst: str) -> Result[bool]: ...

    async def aremove_file(self, path: str) -> Result[bool]: ...

    async def aremove_dir_recursive(self, path: str) -> Result[bool]: ...


def _os_error_text(exc: OSError) -> str:
    text = exc.strerror or str(exc)
    if exc.filename:
        return f"{text}: {exc.filename}"
    return text


def _is_hidden_attr(st: os.stat_result) -> bool:
    if os.name != "nt":
        return False
    attrs = getattr(st, "st_file_attributes", 0)
    return bool(attrs & getattr(stat, "FILE_ATTRIBUTE_HIDDEN", 0x2))


def _created_time(st: os.stat_result) -> float:
    birth = getattr(st, "st_birthtime", None)
    if birth:
        return float(birth)
    if os.name == "nt":
        return float(st.st_ctime)
    # POSIX ctime is a change time, not a creation time
    return float(st.st_mtime)


def _entry_from_stat(name: str, path: str, st: os.stat_result) -> FsEntry:
    is_dir = stat.S_ISDIR(st.st_mode)
    return FsEntry(
        name=name,
        path=path,
        is_dir=is_dir,
        size=0 if is_dir else int(st.st_size),
        modified_at=float(st.st_mtime),
        created_at=_created_time(st),
        hidden=name.startswith(".") or _is_hidden_attr(st),
    )


def _stat_entry(entry: os.DirEntry) -> os.stat_result:
    try:
        return entry.stat()
    except FileNotFoundError:
        # Dangling symlink: describe the link itself
        return entry.stat(follow_symlinks=False)


def _ignore_dot_entries(_dir: str, names: list[str]) -> list[str]:
    return [n for n in names if n.startswith(".")]


class LocalFilesystem:
    """`FilesystemPort` backed by `os` and `shutil`."""

    async def _run(self, fn: Callable[[], T], action: str) -> Result[T]:
        try:
            return Result.Ok(await asyncio.to_thread(fn))
        except OSError as exc:
            logger.warning("%s failed: %s", action, exc)
            return Result.Err(ErrorCode.IO_ERROR, _os_error_text(exc), action=action)

    async def aexists(self, path: str) -> bool:
        if not path:
            return False
        return await asyncio.to_thread(os.path.lexists, path)

    async def ais_directory(self, path: str) -> bool:
        if not path:
            return False
        return await asyncio.to_thread(os.path.isdir, path)

    async def asame_file(self, a: str, b: str) -> bool:
        """True when both paths name the same file (e.g. a case-only rename)."""

        def _same() -> bool:
            try:
                return os.path.samefile(a, b)
            except OSError:
                return False

        return await asyncio.to_thread(_same)

    async def aentry(self, path: str) -> Result[FsEntry]:
        def _stat() -> FsEntry:
            st = os.stat(path)
            name = os.path.basename(os.path.normpath(path)) or path
            return _entry_from_stat(name, path, st)

        res = await self._run(_stat, "stat")
        if not res.ok:
            return res.with_code(ErrorCode.METADATA_ERROR)
        return res

    async def aread_dir_entries(self, path: str, *, skip_dot: bool = False) -> Result[list[FsEntry]]:
        """
        Read immediate children with their metadata.

        Any child whose metadata cannot be read fails the whole call with
        METADATA_ERROR; a directory that cannot be opened fails with IO_ERROR.
        """

        def _read() -> list[FsEntry] | Result[list[FsEntry]]:
            out: list[FsEntry] = []
            with os.scandir(path) as it:
                for entry in it:
                    if skip_dot and entry.name.startswith("."):
                        continue
                    try:
                        st = _stat_entry(entry)
                    except OSError as exc:
                        return Result.Err(
                            ErrorCode.METADATA_ERROR,
                            f"Failed to read metadata for {entry.path}: {_os_error_text(exc)}",
                        )
                    out.append(_entry_from_stat(entry.name, entry.path, st))
            return out

        res = await self._run(_read, "read_dir")
        if res.ok and isinstance(res.data, Result):
            return res.data
        return res  # type: ignore[return-value]

    async def amove(self, src: str, dst: str) -> Result[bool]:
        def _move() -> bool:
            shutil.move(src, dst)
            return True

        return await self._run(_move, "move")

    async def acopy_file(self, src: str, dst: str) -> Result[bool]:
        def _copy() -> bool:
            shutil.copy2(src, dst)
            return True

        return await self._run(_copy, "copy_file")

    async def acopy_dir_recursive(self, src: str, dst: str) -> Result[bool]:
        def _copy() -> bool:
            shutil.copytree(src, dst, ignore=_ignore_dot_entries, symlinks=True)
            return True

        # shutil.Error aggregates per-file failures and is an OSError subclass
        return await self._run(_copy, "copy_dir")

    async def aremove_file(self, path: str) -> Result[bool]:
        def _remove() -> bool:
            os.remove(path)
            return True

        return await self._run(_remove, "remove_file")

    async def aremove_dir_recursive(self, path: str) -> Result[bool]:
        def _remove() -> bool:
            # A symlink to a directory is unlinked, never followed
            if os.path.islink(path):
                os.remove(path)
            else:
                shutil.rmtree(path)
            return True

        return await self._run(_remove, "remove_dir")
