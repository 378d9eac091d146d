from pathlib import Path

import pytest

from ftm_backend.adapters.fs import LocalFilesystem
from ftm_backend.features.files import FileOpsCoordinator, FileRecordStore
from ftm_backend.features.tags import FileTagLinker, TagStore
from ftm_backend.shared import ErrorCode, Result


def _write(path: Path, text: str = "x") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def _coordinator(db, *, copy_tags: bool = False):
    records = FileRecordStore(db)
    linker = FileTagLinker(db)
    ops = FileOpsCoordinator(LocalFilesystem(), records, linker, copy_tags_on_copy=copy_tags)
    return ops, records


async def _tag(db, name: str = "tag"):
    res = await TagStore(db).acreate(name)
    assert res.ok, res.error
    return res.data


async def _usage(db, tag_id: int) -> int:
    return (await TagStore(db).aget(tag_id)).data.usage_count


# ---------------------------------------------------------------- rename


@pytest.mark.asyncio
async def test_rename_onto_existing_name_fails_and_keeps_source(db, tmp_path: Path) -> None:
    ops, _ = _coordinator(db)
    old = _write(tmp_path / "old.txt", "old")
    _write(tmp_path / "new.txt", "new")

    res = await ops.arename(str(old), "new.txt")
    assert not res.ok
    assert res.code == "ALREADY_EXISTS"
    assert res.meta["state"] == "failed"
    assert res.meta["failed_state"] == "validating"
    assert old.read_text(encoding="utf-8") == "old"
    assert (tmp_path / "new.txt").read_text(encoding="utf-8") == "new"


@pytest.mark.asyncio
async def test_rename_moves_record_and_keeps_tags(db, tmp_path: Path) -> None:
    ops, records = _coordinator(db)
    src = _write(tmp_path / "report.txt")
    tag = await _tag(db)
    assert (await ops.aadd_tags_to_files([str(src)], tag.id)).ok

    res = await ops.arename(str(src), "  final.txt ")
    assert res.ok, res.error
    new_path = str(tmp_path / "final.txt")
    assert res.data == {"old_path": str(src), "new_path": new_path}
    assert res.meta["state"] == "done"
    assert not src.exists() and Path(new_path).exists()

    record = (await records.aget_by_path(new_path)).data
    assert record is not None
    assert await _usage(db, tag.id) == 1


@pytest.mark.asyncio
async def test_rename_validation(db, tmp_path: Path) -> None:
    ops, _ = _coordinator(db)
    src = _write(tmp_path / "a.txt")
    assert (await ops.arename(str(src), "sub/b.txt")).code == "INVALID_INPUT"
    assert (await ops.arename(str(src), "..")).code == "INVALID_INPUT"
    assert (await ops.arename(str(src), "")).code == "INVALID_INPUT"
    assert (await ops.arename("", "b.txt")).code == "INVALID_INPUT"
    assert (await ops.arename(str(tmp_path / "missing.txt"), "b.txt")).code == "NOT_FOUND"


@pytest.mark.asyncio
async def test_rename_folder_rewrites_descendant_records(db, tmp_path: Path) -> None:
    ops, records = _coordinator(db)
    inner = _write(tmp_path / "album" / "2024" / "pic.jpg")
    tag = await _tag(db)
    assert (await ops.aadd_tags_to_files([str(tmp_path / "album"), str(inner)], tag.id)).ok

    res = await ops.arename(str(tmp_path / "album"), "photos")
    assert res.ok, res.error
    live = sorted(r.current_path for r in (await records.alist_live()).data)
    assert live == sorted([str(tmp_path / "photos"), str(tmp_path / "photos" / "2024" / "pic.jpg")])
    assert await _usage(db, tag.id) == 2


@pytest.mark.asyncio
async def test_rename_keeps_filesystem_change_when_records_fail(db, tmp_path: Path, monkeypatch) -> None:
    ops, records = _coordinator(db)
    src = _write(tmp_path / "draft.txt", "body")

    async def _unavailable(old, new):
        return Result.Err(ErrorCode.CONNECTION_ERROR, "storage unavailable")

    monkeypatch.setattr(records, "arename_path", _unavailable)
    res = await ops.arename(str(src), "final.txt")

    assert not res.ok
    assert res.code == "CONNECTION_ERROR"
    assert res.meta["filesystem_applied"] is True
    assert res.meta["failed_state"] == "reconciling"
    assert res.meta["new_path"] == str(tmp_path / "final.txt")
    assert not src.exists()
    assert (tmp_path / "final.txt").read_text(encoding="utf-8") == "body"


# ------------------------------------------------------------------ move


@pytest.mark.asyncio
async def test_move_batch(db, tmp_path: Path) -> None:
    ops, records = _coordinator(db)
    a = _write(tmp_path / "src" / "a.txt")
    b = _write(tmp_path / "src" / "b.txt")
    target = tmp_path / "dst"
    target.mkdir()
    tag = await _tag(db)
    await ops.aadd_tags_to_files([str(a)], tag.id)

    res = await ops.amove([str(a), str(b)], str(target))
    assert res.ok, res.error
    assert res.data["moved"] == [
        {"from": str(a), "to": str(target / "a.txt")},
        {"from": str(b), "to": str(target / "b.txt")},
    ]
    assert res.meta["completed"] == 2
    assert (target / "a.txt").exists() and (target / "b.txt").exists()
    assert (await records.aget_by_path(str(target / "a.txt"))).data is not None
    assert (await records.aget_by_path(str(a))).data is None
    assert await _usage(db, tag.id) == 1


@pytest.mark.asyncio
async def test_move_stops_at_first_failure_and_reconciles_applied(db, tmp_path: Path) -> None:
    ops, records = _coordinator(db)
    a = _write(tmp_path / "a.txt")
    c = _write(tmp_path / "c.txt")
    target = tmp_path / "dst"
    target.mkdir()
    tag = await _tag(db)
    await ops.aadd_tags_to_files([str(a)], tag.id)

    res = await ops.amove([str(a), str(tmp_path / "missing.txt"), str(c)], str(target))
    assert not res.ok
    assert res.code == "NOT_FOUND"
    assert res.meta["completed"] == 1
    assert res.meta["failed_state"] == "executing"
    assert res.meta["moved"] == [{"from": str(a), "to": str(target / "a.txt")}]
    assert c.exists()
    assert (await records.aget_by_path(str(target / "a.txt"))).data is not None


@pytest.mark.asyncio
async def test_move_target_validation(db, tmp_path: Path) -> None:
    ops, _ = _coordinator(db)
    a = _write(tmp_path / "a.txt")
    folder = tmp_path / "folder"
    (folder / "inner").mkdir(parents=True)
    _write(tmp_path / "dst" / "a.txt")

    assert (await ops.amove([str(a)], str(tmp_path / "nowhere"))).code == "NOT_FOUND"
    assert (await ops.amove([str(a)], str(a))).code == "NOT_A_DIRECTORY"
    assert (await ops.amove([], str(tmp_path))).code == "INVALID_INPUT"
    assert (await ops.amove([str(a)], str(tmp_path / "dst"))).code == "ALREADY_EXISTS"
    assert (await ops.amove([str(folder)], str(folder / "inner"))).code == "INVALID_INPUT"
    assert a.exists() and folder.exists()


# ------------------------------------------------------------------ copy


@pytest.mark.asyncio
async def test_copy_does_not_duplicate_tags_by_default(db, tmp_path: Path) -> None:
    ops, records = _coordinator(db)
    a = _write(tmp_path / "a.txt", "content")
    target = tmp_path / "dst"
    target.mkdir()
    tag = await _tag(db)
    await ops.aadd_tags_to_files([str(a)], tag.id)

    res = await ops.acopy([str(a)], str(target))
    assert res.ok, res.error
    assert res.data == {"copied": [{"from": str(a), "to": str(target / "a.txt")}], "tags_copied": []}
    assert (target / "a.txt").read_text(encoding="utf-8") == "content"
    assert a.exists()
    assert (await records.aget_by_path(str(target / "a.txt"))).data is None
    assert await _usage(db, tag.id) == 1


@pytest.mark.asyncio
async def test_copy_with_tag_duplication(db, tmp_path: Path) -> None:
    ops, records = _coordinator(db, copy_tags=True)
    inner = _write(tmp_path / "dir" / "x.txt")
    hidden = _write(tmp_path / "dir" / ".secret")
    target = tmp_path / "dst"
    target.mkdir()
    tag = await _tag(db)
    await ops.aadd_tags_to_files([str(inner), str(hidden)], tag.id)

    res = await ops.acopy([str(tmp_path / "dir")], str(target))
    assert res.ok, res.error
    assert res.data["tags_copied"] == [tag.id]
    assert (target / "dir" / "x.txt").exists()
    assert not (target / "dir" / ".secret").exists()
    assert (await records.aget_by_path(str(target / "dir" / "x.txt"))).data is not None
    assert await _usage(db, tag.id) == 3


# ---------------------------------------------------------------- delete


@pytest.mark.asyncio
async def test_delete_removes_files_and_soft_deletes_records(db, tmp_path: Path) -> None:
    ops, records = _coordinator(db)
    a = _write(tmp_path / "a.txt")
    inner = _write(tmp_path / "dir" / "deep" / "b.txt")
    tag = await _tag(db)
    await ops.aadd_tags_to_files([str(a), str(inner)], tag.id)
    tagged_at = (await TagStore(db).aget(tag.id)).data.updated_at

    res = await ops.adelete([str(a), str(tmp_path / "dir")])
    assert res.ok, res.error
    assert res.data == {"removed": [str(a), str(tmp_path / "dir")], "records_soft_deleted": 2}
    assert not a.exists() and not (tmp_path / "dir").exists()
    assert (await records.alist_live()).data == []

    after = (await TagStore(db).aget(tag.id)).data
    assert after.usage_count == 0
    assert after.updated_at == tagged_at


@pytest.mark.asyncio
async def test_delete_validates_every_path_first(db, tmp_path: Path) -> None:
    ops, _ = _coordinator(db)
    a = _write(tmp_path / "a.txt")
    res = await ops.adelete([str(a), str(tmp_path / "missing.txt")])
    assert not res.ok
    assert res.code == "NOT_FOUND"
    assert res.meta["completed"] == 0
    assert a.exists()


@pytest.mark.asyncio
async def test_delete_symlinked_folder_keeps_target(db, tmp_path: Path) -> None:
    ops, _ = _coordinator(db)
    real = _write(tmp_path / "real" / "keep.txt")
    link = tmp_path / "link"
    try:
        link.symlink_to(tmp_path / "real", target_is_directory=True)
    except (OSError, NotImplementedError):
        pytest.skip("symlinks unavailable")
    res = await ops.adelete([str(link)])
    assert res.ok, res.error
    assert not link.exists()
    assert real.exists()


@pytest.mark.asyncio
async def test_delete_keeps_removals_when_records_fail(db, tmp_path: Path, monkeypatch) -> None:
    ops, records = _coordinator(db)
    a = _write(tmp_path / "a.txt")
    folder = tmp_path / "dir"
    _write(folder / "inner.txt")

    async def _unavailable(paths, *, include_descendants=False):
        return Result.Err(ErrorCode.CONNECTION_ERROR, "storage unavailable")

    monkeypatch.setattr(records, "asoft_delete", _unavailable)
    res = await ops.adelete([str(a), str(folder)])

    assert not res.ok
    assert res.code == "CONNECTION_ERROR"
    assert res.meta["filesystem_applied"] is True
    assert res.meta["removed"] == [str(a), str(folder)]
    assert res.meta["completed"] == 2
    assert not a.exists()
    assert not folder.exists()


# -------------------------------------------------------------- add tags


@pytest.mark.asyncio
async def test_add_tags_creates_records_and_counts_usage(db, tmp_path: Path) -> None:
    ops, records = _coordinator(db)
    a = _write(tmp_path / "a.txt", "abc")
    folder = tmp_path / "folder"
    folder.mkdir()
    tag = await _tag(db)

    res = await ops.aadd_tags_to_files([str(a), str(folder)], tag.id)
    assert res.ok, res.error
    assert res.data == {"tag_id": tag.id, "files": 2, "linked": 2, "usage_count": 2}

    rec = (await records.aget_by_path(str(a))).data
    assert rec.file_type == "file" and rec.file_size == 3
    assert (await records.aget_by_path(str(folder))).data.file_type == "folder"

    again = await ops.aadd_tags_to_files([str(a)], str(tag.id))
    assert again.ok
    assert again.data["linked"] == 0
    assert again.data["usage_count"] == 2


@pytest.mark.asyncio
async def test_add_tags_validation(db, tmp_path: Path) -> None:
    ops, _ = _coordinator(db)
    a = _write(tmp_path / "a.txt")
    assert (await ops.aadd_tags_to_files([str(a)], 12345)).code == "NOT_FOUND"
    assert (await ops.aadd_tags_to_files([str(a)], "abc")).code == "INVALID_INPUT"
    assert (await ops.aadd_tags_to_files("not-a-list", 1)).code == "INVALID_INPUT"
    assert (await ops.aadd_tags_to_files([str(a), 3], 1)).code == "INVALID_INPUT"


@pytest.mark.asyncio
async def test_add_tags_partial_failure_still_recomputes(db, tmp_path: Path) -> None:
    ops, _ = _coordinator(db)
    a = _write(tmp_path / "a.txt")
    tag = await _tag(db)

    res = await ops.aadd_tags_to_files([str(a), str(tmp_path / "missing.txt")], tag.id)
    assert not res.ok
    assert res.code == "NOT_FOUND"
    assert res.meta["completed"] == 1
    assert await _usage(db, tag.id) == 1


@pytest.mark.asyncio
async def test_add_tags_resurrects_deleted_record_with_old_links(db, tmp_path: Path) -> None:
    ops, records = _coordinator(db)
    a = _write(tmp_path / "a.txt")
    first, second = await _tag(db, "first"), await _tag(db, "second")
    await ops.aadd_tags_to_files([str(a)], first.id)
    await ops.aadd_tags_to_files([str(a)], second.id)
    file_id = (await records.aget_by_path(str(a))).data.id

    assert (await ops.adelete([str(a)])).ok
    assert await _usage(db, first.id) == 0
    assert await _usage(db, second.id) == 0

    _write(a)
    res = await ops.aadd_tags_to_files([str(a)], first.id)
    assert res.ok, res.error
    assert (await records.aget_by_path(str(a))).data.id == file_id
    assert await _usage(db, first.id) == 1
    assert await _usage(db, second.id) == 1
