"""Validation of names supplied to rename."""

MAX_NAME_LENGTH = 255


def normalize_filename(name: str) -> str:
    if not name:
        return ""
    return str(name).strip()


def filename_separator_error(name: str) -> str:
    if "/" in name or "\\" in name:
        return "Name cannot contain path separators"
    return ""


def filename_char_error(name: str) -> str:
    if "\x00" in name:
        return "Name cannot contain null bytes"
    if any(ord(char) < 32 for char in name):
        return "Name cannot contain control characters"
    return ""


def filename_dot_error(name: str) -> str:
    if name in (".", ".."):
        return "Name cannot be '.' or '..'"
    return ""


def validate_filename(name: str) -> tuple[bool, str]:
    normalized = normalize_filename(name)
    if not normalized:
        return False, "Name cannot be empty"
    for check in (filename_separator_error, filename_char_error, filename_dot_error):
        error = check(normalized)
        if error:
            return False, error
    if len(normalized) > MAX_NAME_LENGTH:
        return False, f"Name is too long (max {MAX_NAME_LENGTH} chars)"
    return True, ""
