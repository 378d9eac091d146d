"""
Directory listing for the file browser.

Listings are produced fresh on every call. Dot entries are filtered out
entirely, folders sort before files, and names compare by code point.
"""

from __future__ import annotations

import os
import string
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Optional

from ...adapters.fs import FilesystemPort, FsEntry
from ...path_utils import DRIVES_SENTINEL, is_root_path, normalize_path, parent_of
from ...shared import ErrorCode, Result, format_timestamp, get_logger, timer

logger = get_logger(__name__)


@dataclass(frozen=True)
class DirectoryEntry:
    name: str
    path: str
    file_type: str
    size: int
    modified_date: str
    created_date: str
    extension: Optional[str] = None
    is_hidden: bool = False

    @property
    def id(self) -> str:
        return self.path

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["id"] = self.path
        return data


@dataclass(frozen=True)
class DirectoryInfo:
    path: str
    parent_path: Optional[str]
    items: list[DirectoryEntry] = field(default_factory=list)
    total_files: int = 0
    total_folders: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "parent_path": self.parent_path,
            "items": [item.to_dict() for item in self.items],
            "total_files": self.total_files,
            "total_folders": self.total_folders,
        }


def _extension(name: str) -> Optional[str]:
    suffix = Path(name).suffix
    return suffix[1:] if len(suffix) > 1 else None


def _entry_sort_key(entry: DirectoryEntry) -> tuple[int, str]:
    return (0 if entry.file_type == "folder" else 1, entry.name)


def _to_directory_entry(entry: FsEntry) -> DirectoryEntry:
    return DirectoryEntry(
        name=entry.name,
        path=entry.path,
        file_type="folder" if entry.is_dir else "file",
        size=0 if entry.is_dir else int(entry.size),
        modified_date=format_timestamp(entry.modified_at),
        created_date=format_timestamp(entry.created_at or entry.modified_at),
        extension=_extension(entry.name),
        is_hidden=bool(entry.hidden),
    )


def _build_info(path: str, parent: Optional[str], items: list[DirectoryEntry]) -> DirectoryInfo:
    items.sort(key=_entry_sort_key)
    folders = sum(1 for i in items if i.file_type == "folder")
    return DirectoryInfo(
        path=path,
        parent_path=parent,
        items=items,
        total_files=len(items) - folders,
        total_folders=folders,
    )


class DirectoryLister:
    """
    List directories, drive roots and the home directory.

    `windows` forces drive semantics on or off (None follows the host OS).
    `home_path` overrides the detected home directory.
    """

    def __init__(self, fs: FilesystemPort, *, windows: Optional[bool] = None, home_path: Optional[str] = None):
        self.fs = fs
        self.windows = (os.name == "nt") if windows is None else bool(windows)
        self.home_path = home_path

    async def list_directory(self, path: str) -> Result[DirectoryInfo]:
        if not isinstance(path, str) or not path.strip():
            return Result.Err(ErrorCode.INVALID_INPUT, "Path is required")
        if path.strip().lower() == DRIVES_SENTINEL:
            return await self.list_roots()

        target = normalize_path(path.strip(), windows=self.windows)
        if not await self.fs.aexists(target):
            return Result.Err(ErrorCode.NOT_FOUND, f"Path not found: {target}", path=target)
        if not await self.fs.ais_directory(target):
            return Result.Err(ErrorCode.NOT_A_DIRECTORY, f"Not a directory: {target}", path=target)

        with timer(f"listing {target}", logger):
            entries = await self.fs.aread_dir_entries(target, skip_dot=True)
        if not entries.ok:
            logger.warning("Listing %s failed: %s", target, entries.error)
            return entries  # type: ignore[return-value]

        items = [_to_directory_entry(e) for e in entries.data or [] if not e.name.startswith(".")]
        return Result.Ok(_build_info(target, parent_of(target, windows=self.windows), items))

    async def list_roots(self) -> Result[DirectoryInfo]:
        if not self.windows:
            return Result.Err(ErrorCode.UNSUPPORTED, "Drive listing is only available on Windows")
        items: list[DirectoryEntry] = []
        for letter in string.ascii_uppercase:
            root = f"{letter}:\\"
            if not await self.fs.aexists(root):
                continue
            items.append(
                DirectoryEntry(
                    name=f"{letter}:",
                    path=root,
                    file_type="folder",
                    size=0,
                    modified_date="",
                    created_date="",
                    extension=None,
                    is_hidden=False,
                )
            )
        return Result.Ok(_build_info(DRIVES_SENTINEL, None, items))

    async def exists_as_directory(self, path: str) -> bool:
        if not isinstance(path, str) or not path.strip():
            return False
        target = path.strip()
        if is_root_path(target, windows=self.windows):
            target = normalize_path(target, windows=self.windows)
        try:
            return await self.fs.ais_directory(target)
        except (OSError, ValueError):
            return False

    def home_directory(self) -> Result[str]:
        if self.home_path:
            return Result.Ok(self.home_path)
        if self.windows:
            profile = os.environ.get("USERPROFILE")
            if profile:
                return Result.Ok(profile)
            drive, rest = os.environ.get("HOMEDRIVE"), os.environ.get("HOMEPATH")
            if drive and rest:
                return Result.Ok(f"{drive}{rest}")
        else:
            home = os.environ.get("HOME")
            if home:
                return Result.Ok(home)
        try:
            return Result.Ok(str(Path.home()))
        except RuntimeError as exc:
            return Result.Err(ErrorCode.NOT_FOUND, f"Unable to determine home directory: {exc}")
