"""
Shared helpers for sanitizing error messages before they reach clients.
"""
from __future__ import annotations

import os
import re
from typing import Any

from .log import get_logger

logger = get_logger(__name__)
_DEBUG_MODE = os.getenv("FTM_DEBUG", "").strip().lower() in ("1", "true", "yes", "on")
_DSN_CREDENTIALS_RE = re.compile(r"(postgres(?:ql)?://[^:/\s]+):[^@\s]+@")


def _mask_credentials(value: str) -> str:
    """Hide passwords embedded in connection strings."""
    return _DSN_CREDENTIALS_RE.sub(r"\1:***@", value)


def sanitize_error_message(exc: Any, fallback: str) -> str:
    """
    Build a safe error message for clients.

    Paths are kept (users browse their own filesystem and need them), but
    credentials inside connection strings are masked and the text is flattened
    to one line.

    Args:
        exc: Exception or raw value to sanitize.
        fallback: Prefix, also used alone when nothing meaningful remains.
    """
    if not fallback:
        fallback = "An error occurred"
    if exc is None:
        return fallback

    raw = str(exc)
    if not raw:
        return fallback

    sanitized = " ".join(_mask_credentials(raw).splitlines()).strip()
    if _DEBUG_MODE:
        logger.debug("Sanitized error payload: %s", sanitized, exc_info=True)
    if sanitized:
        return f"{fallback}: {sanitized[:300]}"
    return fallback
