"""Structured JSON logging.

Every record is emitted as a single JSON object so that log aggregators can
index the ``extra`` fields passed at the call site::

    logger = get_logger(__name__)
    logger.info("Cache hit", extra={"cache_key": key[:16], "hit_count": 3})

Extra fields whose name looks like a credential are masked, and long string
values are truncated before they are written.
"""

import json
import logging
import re
import sys
import traceback
from datetime import datetime, timezone
from typing import Any

ROOT_LOGGER_NAME = "ai_orchestrator"

SENSITIVE_KEY_PATTERN = re.compile(
    r"api[_-]?key|secret|token(?!s)|password|authorization|bearer|credential",
    re.IGNORECASE,
)
MAX_VALUE_LENGTH = 200

# Attributes present on every LogRecord; anything else came in through ``extra``
_RESERVED_ATTRS = frozenset(
    {
        "name", "msg", "args", "created", "filename", "funcName", "levelname",
        "levelno", "lineno", "module", "msecs", "pathname", "process",
        "processName", "relativeCreated", "stack_info", "exc_info", "exc_text",
        "thread", "threadName", "taskName", "message",
    }
)


def mask_value(value: str) -> str:
    """Mask a secret, keeping only its first and last four characters."""
    if len(value) <= 8:
        return "***"
    return f"{value[:4]}...{value[-4:]}"


def truncate(value: str, max_length: int = MAX_VALUE_LENGTH) -> str:
    """Truncate long strings, noting the original length."""
    if len(value) <= max_length:
        return value
    return f"{value[:max_length]}... ({len(value)} chars total)"


def safe_value(key: str, value: Any) -> Any:
    """Return a log-safe version of an extra field."""
    if SENSITIVE_KEY_PATTERN.search(key):
        return mask_value(str(value)) if value else value
    if isinstance(value, str):
        return truncate(value)
    return value


class JSONFormatter(logging.Formatter):
    """Format log records as JSON with masked extra fields."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                log_obj[key] = safe_value(key, value)

        if record.exc_info:
            log_obj["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "stacktrace": traceback.format_exception(*record.exc_info),
            }

        return json.dumps(log_obj, default=str)


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Configure the package logger once and return it.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR)

    Returns:
        The configured package root logger
    """
    log = logging.getLogger(ROOT_LOGGER_NAME)
    log.setLevel(level.upper())

    # Avoid duplicate handlers on reimport / repeated app startup
    if not log.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
        log.addHandler(handler)

    return log


def get_logger(name: str) -> logging.Logger:
    """Get a logger nested under the package logger."""
    if name == ROOT_LOGGER_NAME or name.startswith(f"{ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
