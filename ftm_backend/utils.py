"""
Utility helpers shared across backend modules.
"""
from __future__ import annotations

import os
from typing import Any

BOOL_TRUE_VALUES = frozenset({"1", "true", "yes", "on", "enabled"})
BOOL_FALSE_VALUES = frozenset({"0", "false", "no", "off", "disabled"})


def parse_bool(value: Any, default: bool = False) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in BOOL_TRUE_VALUES:
            return True
        if normalized in BOOL_FALSE_VALUES:
            return False
    return default


def env_bool(name: str, default: bool) -> bool:
    if not name:
        return default
    raw = os.environ.get(name)
    if raw is None:
        return default
    return parse_bool(raw, default)


def env_float(name: str, default: float) -> float:
    if not name:
        return default
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except (ValueError, TypeError):
        return default


def parse_int(value: Any, default: int | None = None) -> int | None:
    """Lenient int coercion for request payloads; bools are rejected."""
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return default
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return default


def normalize_path_list(value: Any) -> list[str] | None:
    """Accept a list of non-empty strings; anything else returns None."""
    if not isinstance(value, (list, tuple)):
        return None
    out: list[str] = []
    for item in value:
        if not isinstance(item, str) or not item.strip():
            return None
        out.append(item)
    return out
