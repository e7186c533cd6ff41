"""Logging setup for tabdelta.

Modules log through ``logging.getLogger(__name__)``; the CLI calls
``configure_logging`` once to attach a stderr handler in text or JSON form.
"""

from __future__ import annotations

import json
import logging
import sys
import traceback
from datetime import datetime, timezone
from typing import Optional

from tabdelta.core.config import config

TEXT_FORMAT = "%(asctime)s %(levelname)-8s %(threadName)s %(name)s: %(message)s"


class JsonFormatter(logging.Formatter):
    """One JSON object per log line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }

        if record.exc_info:
            entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": traceback.format_exception(*record.exc_info),
            }

        return json.dumps(entry, default=str)


def configure_logging(level: Optional[str] = None, fmt: Optional[str] = None) -> logging.Logger:
    """Attach a stderr handler to the ``tabdelta`` logger.

    Args:
        level: Log level name (defaults to TABDELTA_LOG_LEVEL)
        fmt: 'text' or 'json' (defaults to TABDELTA_LOG_FORMAT)

    Returns:
        The configured package logger
    """
    level = (level or config.log_level).upper()
    fmt = fmt or config.log_format

    handler = logging.StreamHandler(sys.stderr)
    if fmt == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    package_logger = logging.getLogger("tabdelta")
    for existing in list(package_logger.handlers):
        package_logger.removeHandler(existing)
    package_logger.addHandler(handler)
    package_logger.setLevel(level)
    package_logger.propagate = False
    return package_logger
