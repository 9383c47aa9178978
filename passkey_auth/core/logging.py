"""Logging setup: JSON lines in production, colored console output in development."""

import json
import logging
import sys
import traceback
from datetime import datetime, timezone
from typing import Any

from .config import settings

# LogRecord attributes that never belong in the "extra" section.
_RESERVED_ATTRS = frozenset(
    {
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "message",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "thread",
        "threadName",
        "taskName",
    }
)

# Extra keys whose values must never reach a log sink.
REDACTED_KEYS = frozenset(
    {"challenge", "session_token", "public_key", "token", "authorization", "signature"}
)
REDACTED = "***REDACTED***"


def _record_extra(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RESERVED_ATTRS and not key.startswith("_")
    }


class RedactingFilter(logging.Filter):
    """Replace values of secret-bearing extra fields before any handler sees them."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key in list(record.__dict__):
            if key.lower() in REDACTED_KEYS:
                setattr(record, key, REDACTED)
        return True


class JSONFormatter(logging.Formatter):
    """Render each record as one JSON object for log aggregation."""

    def __init__(self, include_extra: bool = True) -> None:
        super().__init__()
        self.include_extra = include_extra

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "service": settings.api_title,
            "process": {"id": record.process, "name": record.processName},
            "thread": {"id": record.thread, "name": record.threadName},
        }

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": traceback.format_exception(*record.exc_info),
            }

        if record.stack_info:
            log_entry["stack_info"] = record.stack_info

        if self.include_extra:
            extra = {}
            for key, value in _record_extra(record).items():
                try:
                    json.dumps(value)
                    extra[key] = value
                except (TypeError, ValueError):
                    extra[key] = str(value)
            if extra:
                log_entry["extra"] = extra

        return json.dumps(log_entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Human-readable console formatter with colors for development.

    Extra fields are appended as ``key=value`` pairs so ceremony context
    (email, user id, outcome) stays visible without switching to JSON.
    """

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
        timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc).strftime(
            "%Y-%m-%d %H:%M:%S"
        )

        formatted = (
            f"{timestamp} - {color}{record.levelname:8}{self.RESET} - "
            f"{record.name} - {record.getMessage()}"
        )

        extra = _record_extra(record)
        if extra:
            formatted += " [" + " ".join(f"{k}={v}" for k, v in sorted(extra.items())) + "]"

        if record.exc_info:
            formatted += "\n" + "".join(traceback.format_exception(*record.exc_info))

        return formatted


def setup_logging() -> None:
    """Configure the root logger once at startup.

    ENVIRONMENT=production selects JSON output, anything else the console
    formatter. LOG_FORMAT=json|console overrides the choice.
    """
    log_level = getattr(logging, settings.log_level.upper())
    log_format = settings.log_format

    if log_format == "json":
        formatter: logging.Formatter = JSONFormatter()
    elif log_format == "console":
        formatter = ConsoleFormatter()
    elif settings.is_production:
        formatter = JSONFormatter()
    else:
        formatter = ConsoleFormatter()

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.setLevel(log_level)
    handler.addFilter(RedactingFilter())
    root_logger.addHandler(handler)

    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("redis").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get logger instance with the given name.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("Passkey registered", extra={"user_id": "5f0c...", "email": "a@b.c"})
    """
    return logging.getLogger(name)


class LoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that stamps every message with fixed context.

    Example:
        >>> logger = LoggerAdapter(get_logger(__name__), {"ceremony": "registration"})
        >>> logger.info("Options issued", extra={"email": "a@b.c"})
    """

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        extra = kwargs.get("extra", {})
        extra.update(self.extra)
        kwargs["extra"] = extra
        return msg, kwargs
