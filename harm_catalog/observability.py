"""
Logging setup.

Every module logs through `logging.getLogger(__name__)`; this module only
decides how records are rendered.

GUARANTEES:
- Each record carries timestamp, level, logger name and message
- `dataset`, `error_code` and `status` extras are surfaced when present
"""

from __future__ import annotations
from datetime import datetime, timezone
from typing import Optional
import json
import logging
import sys


EXTRA_FIELDS = ("dataset", "error_code", "status")

_HANDLER_NAME = "harm_catalog"


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in EXTRA_FIELDS:
            val = record.__dict__.get(key)
            if val is not None:
                log[key] = val
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """Human-readable lines; extras appended as key=value."""

    def __init__(self):
        super().__init__("%(asctime)s %(levelname)s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extras = [
            f"{key}={record.__dict__[key]}"
            for key in EXTRA_FIELDS
            if record.__dict__.get(key) is not None
        ]
        return f"{line} [{' '.join(extras)}]" if extras else line


def setup_logging(level: str = "INFO", fmt: str = "text", stream: Optional[object] = None) -> logging.Handler:
    """
    Configure the root logger.

    Calling it again replaces the handler installed by the previous call.
    """
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(JSONFormatter() if fmt == "json" else TextFormatter())

    root = logging.getLogger()
    for existing in list(root.handlers):
        if existing.get_name() == _HANDLER_NAME:
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    return handler
