"""Structured JSON logging."""

import json
import logging
import sys
from datetime import datetime, timezone

ROOT_LOGGER = "cost_audit_store"

# Fields passed through ``extra=`` that end up as JSON keys
STRUCTURED_FIELDS = (
    "index",
    "execution_id",
    "resource_name",
    "resource_type",
    "filters",
    "limit",
    "endpoint",
    "milliseconds",
    "hits",
    "document",
)


class JSONFormatter(logging.Formatter):
    """Produces one JSON object per log line."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        for key in STRUCTURED_FIELDS:
            if hasattr(record, key):
                log_entry[key] = getattr(record, key)
        return json.dumps(log_entry, default=str)


def _root() -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER)
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
        root.addHandler(handler)
        root.setLevel(logging.INFO)
    return root


def get_logger(name: str) -> logging.Logger:
    """Return a named child logger of the package logger."""
    _root()
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def configure_logging(level: str = "info") -> None:
    """Set the package log level ("debug", "info", "warning", "error")."""
    _root().setLevel(getattr(logging, level.upper(), logging.INFO))
