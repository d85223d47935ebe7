"""
Structured logging configuration.

- LOG_FORMAT=json: one JSON object per record (log aggregator compatible)
- LOG_FORMAT=text: human-readable single line format
- Log level: controlled via LOG_LEVEL
"""

import json
import logging
import sys
from datetime import datetime, timezone

from docstor.config import Settings, get_settings

# Extra attributes copied into JSON records when a caller passes them via `extra=`.
_EXTRA_FIELDS = ("event", "tenant_id", "document_id", "revision_id", "instance_id", "tool")


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
        for key in _EXTRA_FIELDS:
            val = getattr(record, key, None)
            if val is not None:
                log_entry[key] = str(val)
        return json.dumps(log_entry, ensure_ascii=False)


class ReadableFormatter(logging.Formatter):
    """Human-readable formatter for development."""

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.now().strftime("%H:%M:%S")
        base = f"{ts} {record.levelname:<8} {record.name}: {record.getMessage()}"
        tenant_id = getattr(record, "tenant_id", None)
        if tenant_id is not None:
            base += f" [tenant={tenant_id}]"
        if record.exc_info and record.exc_info[0] is not None:
            base += "\n" + self.formatException(record.exc_info)
        return base


def configure_logging(settings: Settings | None = None) -> None:
    """Install a single stderr handler on the root logger according to settings."""
    settings = settings or get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    formatter = JSONFormatter() if settings.log_format.lower() == "json" else ReadableFormatter()

    root = logging.getLogger()
    root.handlers.clear()
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    handler.setLevel(level)
    root.addHandler(handler)
    root.setLevel(level)

    if not settings.sql_echo:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(
        "Logging configured: level=%s format=%s", settings.log_level, settings.log_format
    )
