"""Structured logging utilities."""
from __future__ import annotations

import logging
import os
import sys
import uuid
from typing import Any, Dict, Optional

import orjson

_TRACE_KEY = "trace_id"

# Attributes every LogRecord carries; anything else arrived through ``extra``.
_RESERVED = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__.keys()
) | {"message", "asctime"}


def _default(value: Any) -> Any:
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    return str(value)


class JsonFormatter(logging.Formatter):
    """Render log records as JSON."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "level": record.levelname,
            "message": record.getMessage(),
            "name": record.name,
            "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%S%z"),
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED and not key.startswith("_"):
                payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return orjson.dumps(payload, default=_default).decode()


def setup_logging(level: Optional[str] = None) -> None:
    """Install a JSON formatter on the root logger using LOG_LEVEL."""

    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(getattr(logging, level_name, logging.INFO))
    root.addHandler(handler)


def with_trace(extra: Optional[Dict[str, Any]] = None, trace_id: Optional[str] = None) -> Dict[str, Any]:
    """Attach a trace identifier to structured log metadata."""

    payload: Dict[str, Any] = {_TRACE_KEY: trace_id or str(uuid.uuid4())}
    if extra:
        payload.update(extra)
    return payload


__all__ = ["JsonFormatter", "setup_logging", "with_trace"]
