"""
Time utilities for timestamps and performance measurement.
"""
from __future__ import annotations

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone


def now() -> float:
    """Get current timestamp in seconds (float)."""
    return time.time()


def format_timestamp(ts: float | None = None) -> str:
    """
    Format an epoch timestamp in the canonical UTC text form.

    Args:
        ts: Timestamp in seconds (default: now())

    Returns:
        String like "2025-12-29T19:30:45.123Z", the same form the storage dialects render.
    """
    if ts is None:
        ts = now()
    dt = datetime.fromtimestamp(float(ts), tz=timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


@contextmanager
def timer(label: str, logger: logging.Logger | None = None) -> Iterator[None]:
    """
    Context manager for timing operations.

    Usage:
        with timer("directory listing", logger):
            ...
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        if logger:
            logger.debug("%s took %.3fs", label, elapsed)
