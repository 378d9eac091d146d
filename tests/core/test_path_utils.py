from pathlib import Path

import pytest

from ftm_backend import path_utils
from ftm_backend.path_utils import DRIVES_SENTINEL


@pytest.mark.parametrize("value", ["c:", "C:", "C:\\", "c:/", " d:\\ "])
def test_drive_roots_are_recognized_on_windows(value) -> None:
    assert path_utils.is_root_path(value, windows=True)
    assert path_utils.classify_path(value, windows=True) == {"is_root": True}


@pytest.mark.parametrize("value", ["C:\\Users", "CC:", "", "/", "\\\\server\\share"])
def test_non_roots_on_windows(value) -> None:
    assert not path_utils.is_root_path(value, windows=True)


def test_no_drive_roots_on_posix() -> None:
    assert not path_utils.is_root_path("c:", windows=False)
    assert path_utils.classify_path("/", windows=False) == {"is_root": False}


def test_normalize_path_windows() -> None:
    assert path_utils.normalize_path("c:", windows=True) == "C:\\"
    assert path_utils.normalize_path("d:/", windows=True) == "D:\\"
    assert path_utils.normalize_path("C:/Users/Me/Docs", windows=True) == "C:\\Users\\Me\\Docs"


def test_normalize_path_posix_is_unchanged() -> None:
    assert path_utils.normalize_path("/home/me/Docs", windows=False) == "/home/me/Docs"


def test_parent_of_windows() -> None:
    assert path_utils.parent_of("C:\\", windows=True) == DRIVES_SENTINEL
    assert path_utils.parent_of("c:", windows=True) == DRIVES_SENTINEL
    assert path_utils.parent_of("C:\\Users", windows=True) == "C:\\"
    assert path_utils.parent_of("C:\\Users\\me\\", windows=True) == "C:\\Users"
    assert path_utils.parent_of("C:/Users/me/file.txt", windows=True) == "C:\\Users\\me"


def test_parent_of_posix() -> None:
    assert path_utils.parent_of("/home/me", windows=False) == "/home"
    assert path_utils.parent_of("/home/", windows=False) == "/"
    assert path_utils.parent_of("/", windows=False) is None


def test_base_name() -> None:
    assert path_utils.base_name("C:\\a\\b.txt", windows=True) == "b.txt"
    assert path_utils.base_name("C:/a/folder/", windows=True) == "folder"
    assert path_utils.base_name("/a/b/", windows=False) == "b"


def test_is_same_or_descendant(tmp_path: Path) -> None:
    parent = tmp_path / "a"
    assert path_utils.is_same_or_descendant(str(parent), str(parent))
    assert path_utils.is_same_or_descendant(str(parent / "b" / "c"), str(parent))
    assert not path_utils.is_same_or_descendant(str(tmp_path / "ab"), str(parent))
    assert not path_utils.is_same_or_descendant(str(tmp_path), str(parent))
