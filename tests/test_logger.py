"""Tests for structured JSON logging."""

import json
import logging
from unittest.mock import Mock

from boardsync import logger as board_logger
from boardsync.kanban.types import OperationPhase


def _record(msg="Board refreshed", **extra) -> logging.LogRecord:
    record = logging.LogRecord("BoardSync", logging.INFO, __file__, 10, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_outputs_json_with_extras():
    record = _record(component="engine", project_id="p1", columns=3)
    data = json.loads(board_logger.JsonFormatter().format(record))

    assert data["message"] == "Board refreshed"
    assert data["level"] == "INFO"
    assert data["component"] == "engine"
    assert data["project_id"] == "p1"
    assert data["columns"] == 3
    assert "timestamp" in data


def test_formatter_skips_standard_attributes():
    data = json.loads(board_logger.JsonFormatter().format(_record()))
    assert "lineno" not in data
    assert "args" not in data


def test_formatter_renders_enum_values():
    data = json.loads(board_logger.JsonFormatter().format(_record(phase=OperationPhase.IDLE)))
    assert data["phase"] == OperationPhase.IDLE.value


def test_formatter_stringifies_unserializable_values():
    data = json.loads(board_logger.JsonFormatter().format(_record(error=RuntimeError("boom"))))
    assert data["error"] == "boom"


def test_board_logger_attaches_component_and_project():
    log = board_logger.get_logger("engine")
    log.logger = Mock()

    log.warning("Rolling back", project_id="p1", operation="move_issue")

    log.logger.log.assert_called_once_with(
        logging.WARNING,
        "Rolling back",
        extra={"component": "engine", "project_id": "p1", "operation": "move_issue"},
    )


def test_board_logger_without_project():
    log = board_logger.get_logger("http")
    log.logger = Mock()

    log.error("Request failed", url="http://api.test")

    assert log.logger.log.call_args[1]["extra"] == {"component": "http", "url": "http://api.test"}


def test_board_logger_drops_empty_fields():
    log = board_logger.get_logger("engine")
    log.logger = Mock()

    log.warning("Rolling back", project_id="p1", code=None)

    assert log.logger.log.call_args[1]["extra"] == {"component": "engine", "project_id": "p1"}


def test_set_level():
    previous = board_logger.logger.level
    try:
        board_logger.set_level("debug")
        assert board_logger.logger.level == logging.DEBUG
    finally:
        board_logger.logger.setLevel(previous)
