"""
Logging configuration for vimgreet.

The terminal belongs to the UI, so records only ever go to a rotating
file. Without a log file, logging is disabled entirely.
"""

from __future__ import annotations

import logging
import logging.handlers
import json
import os
from pathlib import Path
from typing import Optional


LEVEL_ENV = "VIMGREET_LOG"


class JSONFormatter(logging.Formatter):
    """JSON log formatter for machine-readable logs."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "thread": record.threadName,
            "pid": record.process,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def resolve_level(name: Optional[str]) -> int:
    """
    Resolve a level name, letting the environment override it.

    Args:
        name: Level name such as "DEBUG" (None means INFO)

    Returns:
        Numeric logging level
    """
    name = os.environ.get(LEVEL_ENV) or name or "INFO"
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logging(
    log_file: Optional[Path] = None,
    level: int = logging.INFO,
    json_logs: bool = False,
) -> bool:
    """
    Configure logging for vimgreet.

    Args:
        log_file: Path to log file; None disables logging
        level: Logging level (default: INFO)
        json_logs: Use JSON format for file logs

    Returns:
        True if a file handler was installed
    """
    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    if log_file is None:
        root_logger.addHandler(logging.NullHandler())
        root_logger.setLevel(logging.CRITICAL + 1)
        return False

    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=5 * 1024 * 1024,  # 5MB
            backupCount=3,
            encoding="utf-8",
        )
    except OSError:
        # An unusable log path must not keep the greeter from starting
        root_logger.addHandler(logging.NullHandler())
        root_logger.setLevel(logging.CRITICAL + 1)
        return False

    if json_logs:
        file_handler.setFormatter(JSONFormatter())
    else:
        file_handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s [%(filename)s:%(lineno)d] %(message)s"
        ))

    root_logger.setLevel(level)
    root_logger.addHandler(file_handler)

    # Textual is chatty at DEBUG
    logging.getLogger("textual").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    return True
