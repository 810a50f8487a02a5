"""
Structured logging configuration.

- Development: human-readable colored format, request id appended
- Production: JSON format (log aggregator compatible)
- Log level: controlled via LOG_LEVEL env variable

Every record emitted inside a request carries ``request_id`` and ``actor``
(via RequestContextFilter) so service logs can be joined to the access log.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

from flask import g, has_request_context

# Extra attributes copied into JSON output when present on the record
_EXTRA_KEYS = (
    "method",
    "path",
    "status",
    "duration_ms",
    "remote_addr",
    "request_id",
    "actor",
    "resource_id",
)


class RequestContextFilter(logging.Filter):
    """Attach request id and actor from ``flask.g`` to each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            if getattr(record, "request_id", None) is None:
                record.request_id = getattr(g, "request_id", None)
            if getattr(record, "actor", None) is None:
                user = getattr(g, "current_user", None)
                record.actor = user.get("id") if isinstance(user, dict) else None
        return True


class JSONFormatter(logging.Formatter):
    """JSON log formatter for production / log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        for key in _EXTRA_KEYS:
            val = getattr(record, key, None)
            if val is not None:
                log_entry[key] = val
        return json.dumps(log_entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """Human-readable colored formatter for development."""

    COLORS = {
        "DEBUG": "\033[36m",      # cyan
        "INFO": "\033[32m",       # green
        "WARNING": "\033[33m",    # yellow
        "ERROR": "\033[31m",      # red
        "CRITICAL": "\033[35m",   # magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        ts = datetime.now().strftime("%H:%M:%S")
        duration = getattr(record, "duration_ms", None)
        dur_str = f" [{duration:.0f}ms]" if duration is not None else ""
        request_id = getattr(record, "request_id", None)
        rid_str = f" rid={request_id}" if request_id else ""
        msg = record.getMessage()
        base = f"{color}{ts} {record.levelname:<8}{self.RESET} {record.name}: {msg}{dur_str}{rid_str}"
        if record.exc_info and record.exc_info[0] is not None:
            base += "\n" + self.formatException(record.exc_info)
        return base


def resolve_level(app) -> tuple[str, int]:
    """LOG_LEVEL wins; otherwise INFO in production and DEBUG elsewhere."""
    is_prod = not app.config.get("DEBUG", False) and not app.config.get("TESTING", False)
    level_name = os.getenv("LOG_LEVEL", "INFO" if is_prod else "DEBUG").upper()
    return level_name, getattr(logging, level_name, logging.INFO)


def configure_logging(app):
    """
    Set up structured logging for the Flask app.

    Development / testing → ReadableFormatter on stderr
    Production            → JSONFormatter on stderr
    """
    is_testing = app.config.get("TESTING", False)
    is_prod = not app.config.get("DEBUG", False) and not is_testing
    level_name, level = resolve_level(app)

    formatter = JSONFormatter() if is_prod else ReadableFormatter()

    # Single root handler; cleared first so repeated create_app() calls do not stack
    root = logging.getLogger()
    root.handlers.clear()
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    handler.setLevel(level)
    handler.addFilter(RequestContextFilter())
    root.addHandler(handler)
    root.setLevel(level)

    for noisy in ("werkzeug", "sqlalchemy.engine"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    app.logger.setLevel(level)

    if not is_testing:
        app.logger.info("Logging configured: level=%s format=%s",
                        level_name, "JSON" if is_prod else "readable")
