"""Application-wide structured logging configuration."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Any

_DEFAULT_LEVEL = logging.INFO

_RESERVED_ATTRS = frozenset(
    {
        "args",
        "exc_info",
        "exc_text",
        "message",
        "msg",
        "levelno",
        "levelname",
        "name",
        "pathname",
        "filename",
        "module",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "stack_info",
        "taskName",
    }
)


class JsonFormatter(logging.Formatter):
    """Render log records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.now(tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Merge extra properties, falling back to repr for non-JSON values
        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key.startswith("_"):
                continue
            try:
                json.dumps(value)
                payload[key] = value
            except (TypeError, ValueError):
                payload[key] = repr(value)

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False)


def configure_logging(level: str | int | None = None) -> None:
    """Configure root logger with JSON formatter.

    The handler is installed once; later calls only adjust the level.
    """

    root = logging.getLogger()
    resolved = _resolve_level(level)
    if getattr(root, "_structured_configured", False):  # type: ignore[attr-defined]
        if level is not None:
            root.setLevel(resolved)
        return

    root.setLevel(resolved)
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root.handlers.clear()
    root.addHandler(handler)

    root._structured_configured = True  # type: ignore[attr-defined]


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name)


def _resolve_level(level: str | int | None) -> int:
    if level is None:
        return _DEFAULT_LEVEL
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    return resolved if isinstance(resolved, int) else _DEFAULT_LEVEL
