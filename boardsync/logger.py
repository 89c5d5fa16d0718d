"""
Structured logging for BoardSync.

Every record is one JSON line on stdout. Components (engine, http, kanboard)
log through BoardLogger so each line carries the component name and, when
known, the project whose board it concerns.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from enum import Enum

LOGGER_NAME = "BoardSync"

logger = logging.getLogger(LOGGER_NAME)
logger.setLevel(os.environ.get("BOARDSYNC_LOG_LEVEL", "INFO").upper())
logger.propagate = False

# LogRecord internals never copied into the JSON line
_RECORD_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


def _jsonable(value):
    if isinstance(value, Enum):
        return value.value
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return str(value)
    return value


class JsonFormatter(logging.Formatter):
    """Render a record and its ``extra`` fields as a JSON object."""

    def format(self, record):
        line = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "module": record.module,
        }
        for key, value in vars(record).items():
            if key in _RECORD_ATTRS or key.startswith("_"):
                continue
            line[key] = _jsonable(value)
        if record.exc_info:
            line["exception"] = self.formatException(record.exc_info)
        return json.dumps(line)


_handler = logging.StreamHandler(sys.stdout)
_handler.setFormatter(JsonFormatter())
logger.addHandler(_handler)


def set_level(level: str) -> None:
    """Change the package log level (e.g. from config)."""
    logger.setLevel(level.upper())


def get_logger(component: str) -> "BoardLogger":
    return BoardLogger(component)


class BoardLogger:
    """Per-component logger; fields set to None are left out of the line."""

    def __init__(self, component: str):
        self.component = component
        self.logger = logging.getLogger(LOGGER_NAME)

    def _log(self, level: int, msg: str, project_id, fields: dict) -> None:
        extra = {"component": self.component, "project_id": project_id, **fields}
        self.logger.log(level, msg, extra={k: v for k, v in extra.items() if v is not None})

    def debug(self, msg, project_id=None, **fields):
        self._log(logging.DEBUG, msg, project_id, fields)

    def info(self, msg, project_id=None, **fields):
        self._log(logging.INFO, msg, project_id, fields)

    def warning(self, msg, project_id=None, **fields):
        self._log(logging.WARNING, msg, project_id, fields)

    def error(self, msg, project_id=None, **fields):
        self._log(logging.ERROR, msg, project_id, fields)
