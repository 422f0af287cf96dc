"""
Helmsman Logging

Everything under the ``helmsman`` logger goes to stderr through one
handler. Action and tool context travels in ``extra`` and is rendered
after the message:

    [2026-01-01T10:00:00+00:00] INFO     helmsman.engine.gate: Action executed | action_id=a-1 status=executed

With ``HELMSMAN_LOG_JSON=true`` each record is a single JSON object
instead. Context keys must not collide with ``LogRecord`` attributes,
which is why the action's module is logged as ``action_module``.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

CONTEXT_FIELDS = (
    "action_id",
    "tool_id",
    "domain",
    "intent",
    "tier",
    "status",
    "action_module",
    "duration_ms",
)

_BASE_KEYS = ("timestamp", "level", "logger", "message")


class HelmsmanFormatter(logging.Formatter):
    """Render a record as a log line or a JSON object, context fields included."""

    def __init__(self, json_output: bool = False):
        super().__init__()
        self._json_output = json_output

    def _payload(self, record: logging.LogRecord) -> dict[str, Any]:
        data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        data.update(
            (key, getattr(record, key))
            for key in CONTEXT_FIELDS
            if getattr(record, key, None) is not None
        )
        return data

    def format(self, record: logging.LogRecord) -> str:
        data = self._payload(record)
        trace = self.formatException(record.exc_info) if record.exc_info else None

        if self._json_output:
            if trace:
                data["exception"] = trace
            return json.dumps(data, default=str)

        context = " ".join(f"{k}={v}" for k, v in data.items() if k not in _BASE_KEYS)
        line = f"[{data['timestamp']}] {record.levelname:8s} {record.name}: {data['message']}"
        if context:
            line += f" | {context}"
        if trace:
            line += "\n" + trace
        return line


class _StderrHandler(logging.StreamHandler):
    """Writes to whatever ``sys.stderr`` is at emit time.

    Click's CliRunner and pytest's capture both replace it per call.
    """

    def __init__(self) -> None:
        super().__init__(sys.stderr)

    @property
    def stream(self):
        return sys.stderr

    @stream.setter
    def stream(self, value) -> None:
        pass


def configure_logging(level: str = "INFO", json_output: bool = False) -> None:
    """(Re)configure the ``helmsman`` logger.

    Unknown level names fall back to INFO. Safe to call repeatedly; the
    previous handler is replaced.
    """
    logger = logging.getLogger("helmsman")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.handlers.clear()

    handler = _StderrHandler()
    handler.setFormatter(HelmsmanFormatter(json_output=json_output))
    logger.addHandler(handler)
    logger.propagate = False


def get_logger(name: str = "helmsman") -> logging.Logger:
    return logging.getLogger(name)


configure_logging()
