"""Shared utilities for the file tag manager."""
from .errors import sanitize_error_message
from .log import get_logger, log_structured, log_success, request_id_var
from .patch import UNSET, Patch, PatchKind
from .result import Result, TransactionAborted
from .time import format_timestamp, now, timer
from .types import (
    DEFAULT_TAG_COLOR,
    DEFAULT_TAG_FONT_COLOR,
    DEFAULT_TAG_LIMIT,
    FILE_TYPES,
    BatchState,
    ErrorCode,
    FileType,
    TagListMode,
)

__all__ = [
    "Result",
    "TransactionAborted",
    "get_logger",
    "log_success",
    "log_structured",
    "request_id_var",
    "now",
    "format_timestamp",
    "timer",
    "ErrorCode",
    "FileType",
    "FILE_TYPES",
    "TagListMode",
    "BatchState",
    "DEFAULT_TAG_COLOR",
    "DEFAULT_TAG_FONT_COLOR",
    "DEFAULT_TAG_LIMIT",
    "Patch",
    "PatchKind",
    "UNSET",
    "sanitize_error_message",
]
