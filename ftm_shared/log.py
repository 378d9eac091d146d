"""
Logging utilities with consistent formatting and emoji indicators.
"""
import json
import logging
import os
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Final

# Emoji indicators for log levels
EMOJI_MAP: Final[dict[str, str]] = {
    "DEBUG": "🔍",
    "INFO": "ℹ️",
    "WARNING": "⚠️",
    "ERROR": "❌",
    "CRITICAL": "🔥",
    "SUCCESS": "✅",
}

# Global logger prefix
PREFIX: Final[str] = "🏷️ FTM"

request_id_var: ContextVar[str] = ContextVar("ftm_request_id", default="")

LOG_LEVEL_ENV: Final[str] = "FTM_LOG_LEVEL"


class CorrelationFilter(logging.Filter):
    """Inject `request_id` from `request_id_var` into each log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            record.request_id = request_id_var.get("")
        except LookupError:
            record.request_id = ""
        return True


class EmojiFormatter(logging.Formatter):
    """Single-line formatter: prefix, level emoji, logger name, optional request id."""

    def format(self, record: logging.LogRecord) -> str:
        emoji = EMOJI_MAP.get(record.levelname, "🏷️")
        rid = str(getattr(record, "request_id", "") or "").strip()
        rid_part = f" [{rid}]" if rid else ""
        # Format: 🏷️ FTM [✅] features.tags.store [rid]: message
        log_format = f"{PREFIX} [{emoji}] %(name)s{rid_part}: %(message)s"
        return logging.Formatter(log_format).format(record)


def _ensure_correlation_filter(logger: logging.Logger) -> None:
    if any(isinstance(f, CorrelationFilter) for f in logger.filters):
        return
    logger.addFilter(CorrelationFilter())


def _short_name(name: str) -> str:
    if name.startswith("__main__"):
        return "main"
    parts = name.split(".")
    if parts and parts[0] in ("ftm_backend", "ftm_shared"):
        return ".".join(parts[1:]) or parts[0]
    return name


def _env_level() -> int:
    raw = os.environ.get(LOG_LEVEL_ENV, "").strip().upper()
    if raw.isdigit():
        return int(raw)
    level = logging.getLevelName(raw) if raw else logging.INFO
    return level if isinstance(level, int) else logging.INFO


def get_logger(name: str, level: int | None = None) -> logging.Logger:
    """
    Get a logger under the `ftm.` namespace with emoji formatting.

    Args:
        name: Logger name (usually __name__)
        level: Optional logging level (default: FTM_LOG_LEVEL, else INFO)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(f"ftm.{_short_name(name)}")
    _ensure_correlation_filter(logger)

    if level is not None:
        logger.setLevel(level)
    elif not logger.handlers:
        logger.setLevel(_env_level())

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(EmojiFormatter())
        logger.addHandler(handler)
        # Prevent duplicate lines through the root logger
        logger.propagate = False

    return logger


# Between INFO (20) and WARNING (30)
SUCCESS_LEVEL: Final[int] = 25
logging.addLevelName(SUCCESS_LEVEL, "SUCCESS")


def log_success(logger: logging.Logger, message: str) -> None:
    """Log a success message at the SUCCESS level."""
    logger.log(SUCCESS_LEVEL, message)


def log_structured(logger: logging.Logger, level: int, message: str, **context: Any) -> None:
    """Emit a structured JSON log entry with contextual fields."""
    payload = {
        "message": message,
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "context": context,
    }
    logger.log(level, json.dumps(payload, ensure_ascii=False, default=str))
