"""
Path normalization and drive-root classification used by directory listing.

Windows semantics are selected by `os.name` unless a caller passes `windows=`
explicitly, which keeps drive handling testable on any host.
"""

from __future__ import annotations

import ntpath
import os
import posixpath
import re
from typing import Optional, TypedDict

DRIVES_SENTINEL = "drives:"

_DRIVE_ROOT_RE = re.compile(r"^[A-Z]:\\?$")


class PathClass(TypedDict):
    is_root: bool


def _is_windows(windows: Optional[bool]) -> bool:
    return (os.name == "nt") if windows is None else bool(windows)


def _to_backslashes(path: str) -> str:
    return str(path or "").strip().replace("/", "\\")


def is_root_path(path: str, *, windows: Optional[bool] = None) -> bool:
    """True when `path` names a drive root such as `c:`, `C:\\` or `c:/`."""
    if not _is_windows(windows):
        return False
    return bool(_DRIVE_ROOT_RE.match(_to_backslashes(path).upper()))


def classify_path(path: str, *, windows: Optional[bool] = None) -> PathClass:
    return {"is_root": is_root_path(path, windows=windows)}


def normalize_path(path: str, *, windows: Optional[bool] = None) -> str:
    """
    Normalize separators for the platform.

    Drive roots always come back as `<LETTER>:\\`; other paths keep their case.
    """
    if not _is_windows(windows):
        return str(path or "")
    if is_root_path(path, windows=True):
        return f"{_to_backslashes(path)[0].upper()}:\\"
    return _to_backslashes(path)


def parent_of(path: str, *, windows: Optional[bool] = None) -> Optional[str]:
    """
    Parent directory of `path`.

    A drive root returns `DRIVES_SENTINEL` so callers can show the list of roots.
    Returns None when the OS reports no parent (POSIX `/`).
    """
    win = _is_windows(windows)
    if win and is_root_path(path, windows=True):
        return DRIVES_SENTINEL

    if win:
        current = normalize_path(path, windows=True)
        if len(current) > 3:
            current = current.rstrip("\\")
        parent = ntpath.dirname(current)
    else:
        current = str(path or "")
        if len(current) > 1:
            current = current.rstrip("/")
        parent = posixpath.dirname(current)

    if not parent or parent == current:
        return None
    if win and is_root_path(parent, windows=True):
        return normalize_path(parent, windows=True)
    return parent


def base_name(path: str, *, windows: Optional[bool] = None) -> str:
    """Last path component, ignoring trailing separators."""
    if _is_windows(windows):
        return ntpath.basename(_to_backslashes(path).rstrip("\\"))
    return posixpath.basename(str(path or "").rstrip("/"))


def is_same_or_descendant(candidate: str, ancestor: str) -> bool:
    """True when `candidate` is `ancestor` or lies beneath it (after absolutizing)."""
    cand = os.path.normcase(os.path.abspath(candidate))
    anc = os.path.normcase(os.path.abspath(ancestor))
    if cand == anc:
        return True
    prefix = anc if anc.endswith(os.sep) else anc + os.sep
    return cand.startswith(prefix)
