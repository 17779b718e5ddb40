"""
Structured logging configuration.

- Development: human-readable colored format, workspace context appended
- Production: JSON format (log aggregator compatible)
- Log level: controlled via LOG_LEVEL env variable

Workspace and API code attach context through ``extra=``; the keys listed
in ``CONTEXT_FIELDS`` are copied into every formatted line that has them.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

# Request fields first, then the workspace identity of the line
CONTEXT_FIELDS = (
    "method",
    "path",
    "status",
    "remote_addr",
    "user_id",
    "agency_id",
    "role",
    "event_type",
)

# Short labels shown by ReadableFormatter
_READABLE_CONTEXT = (("user_id", "user"), ("agency_id", "agency"), ("event_type", "event"))


def context_of(record: logging.LogRecord) -> dict:
    """The ``CONTEXT_FIELDS`` present on ``record``, in declaration order."""
    values = {}
    for key in CONTEXT_FIELDS:
        val = getattr(record, key, None)
        if val is not None:
            values[key] = val
    return values


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
        log_entry.update(context_of(record))
        # Thai names written as-is
        return json.dumps(log_entry, ensure_ascii=False)


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
        msg = record.getMessage()
        tags = [f"{label}={getattr(record, key)}" for key, label in _READABLE_CONTEXT
                if getattr(record, key, None) is not None]
        ctx = f" [{' '.join(tags)}]" if tags else ""
        base = f"{color}{ts} {record.levelname:<8}{self.RESET} {record.name}: {msg}{ctx}"
        if record.exc_info and record.exc_info[0] is not None:
            base += "\n" + self.formatException(record.exc_info)
        return base


def configure_logging(app):
    """
    Set up structured logging for the Flask app.

    Reads LOG_LEVEL from env (default: DEBUG in dev, INFO in prod).
    Development  → ReadableFormatter on stderr
    Production   → JSONFormatter on stderr

    Safe to call once per app: the handler it installed for an earlier app
    is swapped out, handlers owned by others (pytest's caplog) are kept.
    """
    is_testing = app.config.get("TESTING", False)
    is_prod = not app.config.get("DEBUG", False) and not is_testing

    level_name = os.getenv("LOG_LEVEL", "INFO" if is_prod else "DEBUG")
    level = getattr(logging, level_name.upper(), logging.INFO)

    formatter = JSONFormatter() if is_prod else ReadableFormatter()

    root = logging.getLogger()
    for existing in [h for h in root.handlers if getattr(h, "_app_handler", False)]:
        root.removeHandler(existing)
    handler = logging.StreamHandler(sys.stderr)
    handler._app_handler = True
    handler.setFormatter(formatter)
    handler.setLevel(level)
    root.addHandler(handler)
    root.setLevel(level)

    # Library loggers stay at WARNING
    for noisy in ("urllib3", "werkzeug", "sqlalchemy.engine"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    app.logger.setLevel(level)

    if not is_testing:
        app.logger.info("Logging configured: level=%s format=%s",
                        level_name, "JSON" if is_prod else "readable")
