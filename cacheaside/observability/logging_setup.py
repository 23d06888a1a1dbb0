"""
cacheaside - Logging Setup

Structured logging for the package logger.
Modules log through ``logging.getLogger(__name__)`` with ``extra={...}`` fields;
this module only decides how those records are rendered.
"""

import json
import logging
from datetime import UTC, datetime
from typing import Any

PACKAGE_LOGGER = "cacheaside"

# Attributes every LogRecord carries; anything else came in through ``extra``
_RESERVED_ATTRS = frozenset(
    (
        "args",
        "msg",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "name",
        "message",
    )
)


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for key, value in record.__dict__.items():
            if key not in log_data and not key.startswith("_") and key not in _RESERVED_ATTRS:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def configure_logging(level: str | None = None, fmt: str | None = None) -> logging.Logger:
    """
    Install a single handler on the package logger.

    Args:
        level: Log level name (DEBUG, INFO, ...); defaults to LOG_LEVEL from configuration
        fmt: "json" for structured output, "text" for human-readable lines;
            defaults to LOG_FORMAT from configuration

    Returns:
        The configured package logger
    """
    if level is None or fmt is None:
        from ..config import get_config

        config = get_config()
        level = level or config.log_level
        fmt = fmt or config.log_format

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.handlers.clear()

    handler = logging.StreamHandler()
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))

    logger.addHandler(handler)
    logger.setLevel(level.upper())
    logger.propagate = False

    return logger
