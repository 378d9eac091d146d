"""
Shared types, enums, and constants.
"""
from enum import Enum
from typing import Final, Literal

# Filesystem entry kinds, as stored in `files.file_type` and listed to clients
FileType = Literal["file", "folder"]
FILE_TYPES: Final[frozenset[str]] = frozenset({"file", "folder"})

DEFAULT_TAG_COLOR: Final[str] = "#FFFF00"
DEFAULT_TAG_FONT_COLOR: Final[str] = "#000000"
DEFAULT_TAG_LIMIT: Final[int] = 10


class ErrorCode(str, Enum):
    """Standardized error codes (string enum)."""

    # Client / validation
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_JSON = "INVALID_JSON"
    NOT_FOUND = "NOT_FOUND"
    NOT_A_DIRECTORY = "NOT_A_DIRECTORY"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    CONFLICT = "CONFLICT"

    # Feature / service availability
    UNSUPPORTED = "UNSUPPORTED"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"

    # Storage
    CONFIG_ERROR = "CONFIG_ERROR"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    QUERY_ERROR = "QUERY_ERROR"
    MIGRATION_ERROR = "MIGRATION_ERROR"
    TIMEOUT = "TIMEOUT"

    # Filesystem
    IO_ERROR = "IO_ERROR"
    METADATA_ERROR = "METADATA_ERROR"


class TagListMode(str, Enum):
    """Ordering used by the tag list."""
    MOST_USED = "most_used"          # usage_count desc, id asc
    RECENTLY_USED = "recent_used"    # updated_at desc, id asc

    @classmethod
    def parse(cls, value: object) -> "TagListMode | None":
        raw = str(value or "").strip().lower()
        if not raw:
            return cls.MOST_USED
        aliases = {"recently_used": cls.RECENTLY_USED, "recent": cls.RECENTLY_USED}
        if raw in aliases:
            return aliases[raw]
        for mode in cls:
            if mode.value == raw:
                return mode
        return None


class BatchState(str, Enum):
    """Lifecycle of a filesystem batch operation."""
    VALIDATING = "validating"
    EXECUTING = "executing"
    RECONCILING = "reconciling"
    DONE = "done"
    FAILED = "failed"
