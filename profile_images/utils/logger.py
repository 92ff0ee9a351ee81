"""
Structured JSON logging for the profile image services.

Every record is emitted as one JSON object per line so pipeline outcomes
(caller id, rejection code, canonical URL) can be filtered downstream.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Union

# Attributes present on every LogRecord; anything else came in via ``extra=``.
_STANDARD_ATTRS = frozenset({
    'name', 'msg', 'args', 'created', 'filename', 'funcName', 'levelname',
    'levelno', 'lineno', 'module', 'msecs', 'message', 'pathname', 'process',
    'processName', 'relativeCreated', 'thread', 'threadName', 'exc_info',
    'exc_text', 'stack_info', 'asctime', 'taskName',
})


class JSONFormatter(logging.Formatter):
    """
    Serialize log records into JSON.

    Includes timestamp, level, logger name, message, source location and any
    contextual data passed via the ``extra`` parameter.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "source": {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            },
        }

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        extra_data = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _STANDARD_ATTRS and not key.startswith('_')
        }
        if extra_data:
            log_entry["extra"] = extra_data

        try:
            return json.dumps(log_entry, default=str)
        except (TypeError, ValueError) as e:
            fallback = {
                "timestamp": log_entry["timestamp"],
                "level": "ERROR",
                "logger": "JSONFormatter",
                "message": f"Failed to serialize log record: {e}",
                "original_message": str(record.msg),
            }
            return json.dumps(fallback)


def get_logger(service_name: str, level: Union[int, str] = logging.INFO) -> logging.Logger:
    """
    Get a logger for *service_name* that writes JSON lines to stdout.

    The handler is attached to the named logger, so module loggers under the
    ``profile_images`` package inherit it when ``service_name`` is the package
    name.

    Example:
        >>> logger = get_logger("profile_images")
        >>> logger.info("Profile image updated", extra={"caller_id": "42"})
    """
    logger = logging.getLogger(service_name)
    logger.setLevel(level)

    if logger.handlers:
        return logger

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(JSONFormatter())
    logger.addHandler(console_handler)

    # Avoid duplicate lines through the root logger
    logger.propagate = False

    return logger
