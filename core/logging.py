"""
Opsdesk Logging: stdlib logging with event-name messages.

Log calls use a dotted event name as the message and pass context through
``extra``::

    logger.info("tasks.nudge.sent", extra={"task_id": task.id, "recipients": 2})

The text formatter appends the extra fields as ``key=value`` pairs; the json
formatter emits one object per line.
"""
from __future__ import annotations
import json
import logging
import os
import sys
from datetime import datetime, timezone

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "text")

# Attributes every LogRecord carries; anything else came in through `extra`.
_RESERVED = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime"}


def _extra_fields(record: logging.LogRecord) -> dict:
    return {k: v for k, v in record.__dict__.items() if k not in _RESERVED}


class TextFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        extras = _extra_fields(record)
        if not extras:
            return base
        pairs = " ".join(f"{k}={v}" for k, v in sorted(extras.items()))
        return f"{base} {pairs}"


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "event": record.getMessage(),
            **_extra_fields(record),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    """Install a single stream handler on the root logger."""
    fmt = (fmt or LOG_FORMAT).lower()
    handler = logging.StreamHandler(sys.stdout)
    if fmt == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            TextFormatter("%(asctime)s %(levelname)s %(name)s %(message)s")
        )

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel((level or LOG_LEVEL).upper())


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
