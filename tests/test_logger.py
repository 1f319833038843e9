"""
Tests for KeyRunner logging utilities.
"""

import json
import logging

import pytest
from rich.logging import RichHandler

from keyrunner.monitoring.logger import (
    ContextLogAdapter,
    JSONFormatter,
    SanitizingHandler,
    get_logger,
    log_test_event,
    setup_logging,
)


@pytest.fixture()
def restore_root_logger():
    """Put the root logger back the way it was after each test."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def _record(msg: str, **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="keyrunner.orchestration.dispatcher",
        level=logging.INFO,
        pathname=__file__,
        lineno=42,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    """Tests for the JSON formatter."""

    def test_includes_context_fields(self):
        formatter = JSONFormatter(sanitize=False)
        output = json.loads(formatter.format(_record("Executing keyword: LOGIN", test_id="TC001", keyword="LOGIN")))

        assert output["message"] == "Executing keyword: LOGIN"
        assert output["level"] == "INFO"
        assert output["test_id"] == "TC001"
        assert output["keyword"] == "LOGIN"

    def test_sanitizes_messages(self):
        formatter = JSONFormatter(sanitize=True)
        output = json.loads(formatter.format(_record("password=hunter2")))

        assert "hunter2" not in output["message"]


class TestSetupLogging:
    """Tests for handler configuration."""

    def test_text_format_uses_rich_handler(self, restore_root_logger):
        root = setup_logging(log_level="DEBUG", log_format="text", sanitize_logs=True)

        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        handler = root.handlers[0]
        assert isinstance(handler, SanitizingHandler)
        assert isinstance(handler.handler, RichHandler)

    def test_json_format(self, restore_root_logger):
        root = setup_logging(log_level="INFO", log_format="json")

        assert isinstance(root.handlers[0].formatter, JSONFormatter)

    def test_file_handler(self, restore_root_logger, tmp_path):
        log_file = tmp_path / "run.log"
        root = setup_logging(log_level="INFO", log_format="text", log_file=str(log_file))

        assert any(isinstance(h, logging.FileHandler) for h in root.handlers)
        for handler in root.handlers:
            if isinstance(handler, logging.FileHandler):
                handler.close()


class TestGetLogger:
    """Tests for logger helpers."""

    def test_plain_logger(self):
        assert isinstance(get_logger("keyrunner.test"), logging.Logger)

    def test_logger_with_context(self):
        logger = get_logger("keyrunner.test", test_id="TC001")
        assert isinstance(logger, ContextLogAdapter)

        msg, kwargs = logger.process("hello", {})
        assert kwargs["extra"]["test_id"] == "TC001"

    def test_log_test_event(self, caplog):
        with caplog.at_level(logging.INFO, logger="keyrunner.test_events"):
            log_test_event("started", "TC001", "Login")

        assert "Test started: TC001 - Login" in caplog.text
        assert caplog.records[-1].test_id == "TC001"
