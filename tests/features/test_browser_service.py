import os
from pathlib import Path

import pytest

from ftm_backend.adapters.fs import FsEntry, LocalFilesystem
from ftm_backend.adapters.fs import local as local_fs
from ftm_backend.features.browser import DirectoryLister
from ftm_backend.shared import ErrorCode, Result


def _names(info) -> list[str]:
    return [item.name for item in info.items]


@pytest.mark.asyncio
async def test_folders_first_then_names(tmp_path: Path) -> None:
    (tmp_path / "b.txt").write_text("bb", encoding="utf-8")
    (tmp_path / "a.txt").write_text("a", encoding="utf-8")
    (tmp_path / "Sub").mkdir()

    res = await DirectoryLister(LocalFilesystem()).list_directory(str(tmp_path))
    assert res.ok, res.error
    info = res.data
    assert _names(info) == ["Sub", "a.txt", "b.txt"]
    assert info.total_files == 2
    assert info.total_folders == 1
    assert info.parent_path == str(tmp_path.parent)

    folder, first = info.items[0], info.items[1]
    assert folder.file_type == "folder" and folder.size == 0 and folder.extension is None
    assert first.file_type == "file" and first.size == 1 and first.extension == "txt"
    assert first.id == first.path == os.path.join(str(tmp_path), "a.txt")
    assert first.modified_date.endswith("Z")


@pytest.mark.asyncio
async def test_dot_entries_are_never_listed(tmp_path: Path) -> None:
    (tmp_path / ".hidden").write_text("x", encoding="utf-8")
    (tmp_path / ".git").mkdir()
    (tmp_path / "shown.md").write_text("x", encoding="utf-8")

    res = await DirectoryLister(LocalFilesystem()).list_directory(str(tmp_path))
    assert res.ok
    assert _names(res.data) == ["shown.md"]
    assert res.data.total_files == 1
    assert res.data.total_folders == 0


@pytest.mark.asyncio
async def test_empty_directory(tmp_path: Path) -> None:
    res = await DirectoryLister(LocalFilesystem()).list_directory(str(tmp_path))
    assert res.ok
    assert res.data.items == []
    assert res.data.to_dict()["total_files"] == 0


@pytest.mark.asyncio
async def test_missing_and_non_directory_paths(tmp_path: Path) -> None:
    lister = DirectoryLister(LocalFilesystem())
    missing = await lister.list_directory(str(tmp_path / "nope"))
    assert not missing.ok and missing.code == "NOT_FOUND"

    f = tmp_path / "file.txt"
    f.write_text("x", encoding="utf-8")
    not_dir = await lister.list_directory(str(f))
    assert not not_dir.ok and not_dir.code == "NOT_A_DIRECTORY"

    empty = await lister.list_directory("  ")
    assert not empty.ok and empty.code == "INVALID_INPUT"


@pytest.mark.asyncio
async def test_dangling_symlink_is_listed(tmp_path: Path) -> None:
    link = tmp_path / "broken"
    try:
        link.symlink_to(tmp_path / "missing-target")
    except (OSError, NotImplementedError):
        pytest.skip("symlinks unavailable")
    res = await DirectoryLister(LocalFilesystem()).list_directory(str(tmp_path))
    assert res.ok, res.error
    assert _names(res.data) == ["broken"]


@pytest.mark.asyncio
async def test_roots_unsupported_off_windows() -> None:
    lister = DirectoryLister(LocalFilesystem(), windows=False)
    res = await lister.list_roots()
    assert not res.ok
    assert res.code == "UNSUPPORTED"
    via_sentinel = await lister.list_directory("drives:")
    assert via_sentinel.code == "UNSUPPORTED"


class _FakeWindowsFs:
    """Only the drive roots and one folder exist."""

    def __init__(self, existing):
        self.existing = set(existing)

    async def aexists(self, path):
        return path in self.existing

    async def ais_directory(self, path):
        return path in self.existing

    async def aread_dir_entries(self, path, *, skip_dot=False):
        return Result.Ok(
            [FsEntry(name="Users", path=path + "Users", is_dir=True, size=0, modified_at=0.0, created_at=0.0)]
        )


@pytest.mark.asyncio
async def test_roots_on_windows() -> None:
    lister = DirectoryLister(_FakeWindowsFs({"C:\\", "D:\\"}), windows=True)
    res = await lister.list_roots()
    assert res.ok
    info = res.data
    assert info.path == "drives:"
    assert info.parent_path is None
    assert [(i.name, i.path) for i in info.items] == [("C:", "C:\\"), ("D:", "D:\\")]
    assert all(i.file_type == "folder" and i.size == 0 for i in info.items)
    assert info.total_folders == 2


@pytest.mark.asyncio
async def test_drive_root_listing_points_back_to_drives() -> None:
    lister = DirectoryLister(_FakeWindowsFs({"C:\\"}), windows=True)
    res = await lister.list_directory("c:")
    assert res.ok
    assert res.data.path == "C:\\"
    assert res.data.parent_path == "drives:"
    assert _names(res.data) == ["Users"]


@pytest.mark.asyncio
async def test_exists_as_directory(tmp_path: Path) -> None:
    lister = DirectoryLister(LocalFilesystem())
    f = tmp_path / "file.txt"
    f.write_text("x", encoding="utf-8")
    assert await lister.exists_as_directory(str(tmp_path)) is True
    assert await lister.exists_as_directory(str(f)) is False
    assert await lister.exists_as_directory(str(tmp_path / "missing")) is False
    assert await lister.exists_as_directory("") is False

    win = DirectoryLister(_FakeWindowsFs({"C:\\"}), windows=True)
    assert await win.exists_as_directory("c:") is True


def test_home_directory(monkeypatch, tmp_path: Path) -> None:
    assert DirectoryLister(LocalFilesystem(), home_path="/srv/share").home_directory().data == "/srv/share"

    monkeypatch.setenv("HOME", str(tmp_path))
    assert DirectoryLister(LocalFilesystem(), windows=False).home_directory().data == str(tmp_path)

    monkeypatch.setenv("USERPROFILE", "C:\\Users\\me")
    assert DirectoryLister(LocalFilesystem(), windows=True).home_directory().data == "C:\\Users\\me"


class _UnreadableChildFs(_FakeWindowsFs):
    """One child of the folder cannot be stat-ed."""

    async def aread_dir_entries(self, path, *, skip_dot=False):
        return Result.Err(ErrorCode.METADATA_ERROR, f"Failed to read metadata: {path}locked.bin", path=path)


@pytest.mark.asyncio
async def test_listing_fails_when_one_entry_metadata_fails() -> None:
    lister = DirectoryLister(_UnreadableChildFs({"C:\\"}), windows=True)
    res = await lister.list_directory("C:\\")
    assert not res.ok
    assert res.code == "METADATA_ERROR"
    assert res.data is None


@pytest.mark.asyncio
async def test_local_listing_fails_on_unstatable_entry(tmp_path: Path, monkeypatch) -> None:
    (tmp_path / "ok.txt").write_text("x", encoding="utf-8")
    (tmp_path / "locked.bin").write_text("x", encoding="utf-8")
    real_stat = local_fs._stat_entry

    def _stat(entry):
        if entry.name == "locked.bin":
            raise PermissionError(13, "Permission denied", entry.path)
        return real_stat(entry)

    monkeypatch.setattr(local_fs, "_stat_entry", _stat)
    res = await DirectoryLister(LocalFilesystem()).list_directory(str(tmp_path))
    assert not res.ok
    assert res.code == "METADATA_ERROR"
