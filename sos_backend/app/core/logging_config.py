"""
Structured logging configuration.

Provides:
    • JSON-formatted logs for production (machine-parseable)
    • Coloured console logs for development
    • Request-scoped context (request_id, client_ip, endpoint)

Pipeline code attaches its own context through ``extra=``; the keys in
``EXTRA_FIELDS`` are lifted into the JSON entry so an operator can filter
one SOS request by subject, alert or stage.

Usage:
    from sos_backend.app.core.logging_config import setup_logging, get_logger

    setup_logging()
    logger = get_logger(__name__)
    logger.info("Alert stored", extra={"subject_id": "S123", "stage": "persist"})
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict

from sos_backend.app.core.config import settings

EXTRA_FIELDS = (
    "subject_id", "alert_id", "channel", "stage", "recipient_count",
    "provider_status", "duration_ms", "status_code", "endpoint",
)

_request_context: ContextVar[Dict[str, Any]] = ContextVar(
    "request_context", default={}
)


def set_request_context(**kwargs: Any) -> None:
    """Set request-scoped log context (call from middleware)."""
    _request_context.set(kwargs)


def get_request_context() -> Dict[str, Any]:
    """Get current request context."""
    return _request_context.get()


class JSONFormatter(logging.Formatter):
    """One JSON object per line for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
        }

        ctx = get_request_context()
        if ctx:
            entry["context"] = ctx

        for key in EXTRA_FIELDS:
            if hasattr(record, key):
                entry[key] = getattr(record, key)

        if record.exc_info and record.exc_info[1]:
            entry["exception"] = {
                "type": type(record.exc_info[1]).__name__,
                "message": str(record.exc_info[1]),
            }

        return json.dumps(entry, default=str)


class PrettyFormatter(logging.Formatter):
    """Coloured human-readable format for local development."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        ts = self.formatTime(record, "%H:%M:%S")

        ctx = get_request_context()
        rid = f" [{ctx['request_id'][:8]}]" if ctx.get("request_id") else ""

        tags = " ".join(
            f"{key}={getattr(record, key)}"
            for key in ("subject_id", "alert_id", "channel", "stage")
            if hasattr(record, key)
        )

        line = (
            f"{color}{ts} {record.levelname:8s}{self.RESET}"
            f"{rid} {record.name}: {record.getMessage()}"
        )
        if tags:
            line += f"  ({tags})"

        if record.exc_info and record.exc_info[1]:
            line += f"\n  {type(record.exc_info[1]).__name__}: {record.exc_info[1]}"

        return line


def setup_logging() -> None:
    """Configure the root logger based on environment."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if settings.is_production else PrettyFormatter())
    root.addHandler(handler)

    # Provider round-trips are logged by the channels themselves
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a named logger — call once per module."""
    return logging.getLogger(name)
