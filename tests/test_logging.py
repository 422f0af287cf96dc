"""Tests for Helmsman structured logging."""

import json
import logging
import sys

from helmsman.logging import HelmsmanFormatter, configure_logging, get_logger


def _record(name: str, level: int, msg: str) -> logging.LogRecord:
    return logging.LogRecord(
        name=name,
        level=level,
        pathname="test.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )


class TestHelmsmanFormatter:
    def test_human_readable_format(self):
        output = HelmsmanFormatter(json_output=False).format(
            _record("helmsman.engine.gate", logging.INFO, "Action denied")
        )
        assert "helmsman.engine.gate" in output
        assert "Action denied" in output
        assert "INFO" in output

    def test_json_format(self):
        output = HelmsmanFormatter(json_output=True).format(
            _record("helmsman.tools.registry", logging.WARNING, "Detection timed out")
        )
        data = json.loads(output)
        assert data["logger"] == "helmsman.tools.registry"
        assert data["message"] == "Detection timed out"
        assert data["level"] == "WARNING"
        assert "timestamp" in data

    def test_context_fields_in_human_format(self):
        record = _record("helmsman", logging.INFO, "Action executed")
        record.action_id = "a-123"  # type: ignore[attr-defined]
        record.tier = "red"  # type: ignore[attr-defined]
        output = HelmsmanFormatter(json_output=False).format(record)
        assert "action_id=a-123" in output
        assert "tier=red" in output

    def test_context_fields_in_json(self):
        record = _record("helmsman", logging.INFO, "Intent dispatched")
        record.tool_id = "winget"  # type: ignore[attr-defined]
        record.duration_ms = 42  # type: ignore[attr-defined]
        data = json.loads(HelmsmanFormatter(json_output=True).format(record))
        assert data["tool_id"] == "winget"
        assert data["duration_ms"] == 42

    def test_action_module_extra(self):
        logger = get_logger("helmsman.engine.executor")
        records: list[logging.LogRecord] = []
        handler = logging.Handler()
        handler.emit = records.append  # type: ignore[method-assign]
        logger.addHandler(handler)
        try:
            logger.warning("Action execution failed", extra={"action_id": "a-1", "action_module": "cmd"})
        finally:
            logger.removeHandler(handler)

        (record,) = records
        assert record.module == "test_logging"
        output = HelmsmanFormatter(json_output=False).format(record)
        assert "action_module=cmd" in output
        assert "module=test_logging" not in output

    def test_unrelated_attributes_ignored(self):
        record = _record("helmsman", logging.INFO, "x")
        record.password = "hunter2"  # type: ignore[attr-defined]
        assert "hunter2" not in HelmsmanFormatter(json_output=True).format(record)

    def test_exception_included(self):
        try:
            raise ValueError("bad value")
        except ValueError:
            record = logging.LogRecord(
                name="helmsman",
                level=logging.ERROR,
                pathname="test.py",
                lineno=1,
                msg="Failed",
                args=(),
                exc_info=sys.exc_info(),
            )
        data = json.loads(HelmsmanFormatter(json_output=True).format(record))
        assert "ValueError: bad value" in data["exception"]


class TestGetLogger:
    def test_returns_logger(self):
        logger = get_logger("helmsman.test")
        assert isinstance(logger, logging.Logger)
        assert logger.name == "helmsman.test"

    def test_default_name(self):
        assert get_logger().name == "helmsman"


class TestConfigureLogging:
    def test_configure_info(self):
        configure_logging(level="INFO")
        assert get_logger("helmsman").level == logging.INFO

    def test_configure_debug(self):
        configure_logging(level="DEBUG")
        try:
            assert get_logger("helmsman").level == logging.DEBUG
        finally:
            configure_logging()

    def test_single_handler_after_reconfigure(self):
        configure_logging()
        configure_logging(json_output=True)
        logger = get_logger("helmsman")
        assert len(logger.handlers) == 1
        assert logger.propagate is False
        configure_logging()

    def test_unknown_level_falls_back_to_info(self):
        configure_logging(level="LOUD")
        assert get_logger("helmsman").level == logging.INFO

    def test_writes_to_current_stderr(self, capsys):
        configure_logging()
        get_logger("helmsman.test").warning("Detection timed out", extra={"tool_id": "winget"})
        err = capsys.readouterr().err
        assert "Detection timed out" in err
        assert "tool_id=winget" in err
