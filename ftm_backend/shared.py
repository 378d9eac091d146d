"""Backend-facing alias for shared utilities."""

from __future__ import annotations

from ftm_shared import (
    DEFAULT_TAG_COLOR,
    DEFAULT_TAG_FONT_COLOR,
    DEFAULT_TAG_LIMIT,
    FILE_TYPES,
    UNSET,
    BatchState,
    ErrorCode,
    FileType,
    Patch,
    PatchKind,
    Result,
    TagListMode,
    TransactionAborted,
    format_timestamp,
    get_logger,
    log_structured,
    log_success,
    request_id_var,
    sanitize_error_message,
    timer,
)

__all__ = [
    "Result",
    "TransactionAborted",
    "ErrorCode",
    "get_logger",
    "log_success",
    "log_structured",
    "request_id_var",
    "sanitize_error_message",
    "format_timestamp",
    "timer",
    "FileType",
    "FILE_TYPES",
    "TagListMode",
    "BatchState",
    "Patch",
    "PatchKind",
    "UNSET",
    "DEFAULT_TAG_COLOR",
    "DEFAULT_TAG_FONT_COLOR",
    "DEFAULT_TAG_LIMIT",
]
