"""
Structured Logging Configuration

JSON-formatted log output for production, plain text for development, and a
LoggerAdapter for attaching request context.

Features:
- JSONFormatter: one JSON object per log record, including ``extra`` fields
- StandardFormatter: human-readable console output
- setup_logging: root logger and Uvicorn logger configuration
- add_log_context: wrap a logger so every record carries the same context

Usage:
    from app.utils.logger import add_log_context, setup_logging

    setup_logging(log_level="INFO", json_logs=True)

    logger = logging.getLogger(__name__)
    ctx_logger = add_log_context(logger, request_id="abc123")
    ctx_logger.info("Processing request")
"""

import json
import logging
import sys
import traceback

from datetime import UTC, datetime
from typing import Any


LOG_LEVEL_MAP: dict[str, int] = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# Third-party loggers to reduce verbosity
THIRD_PARTY_LOGGERS: list[str] = [
    "motor",
    "pymongo",
    "boto3",
    "botocore",
    "s3transfer",
    "urllib3",
    "httpx",
    "httpcore",
    "redis",
    "asyncio",
    "passlib",
]

UVICORN_LOGGERS: tuple[str, ...] = ("uvicorn", "uvicorn.access", "uvicorn.error")


class LogJSONEncoder(json.JSONEncoder):
    """Serializes anything a log record may carry, falling back to ``str``."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, bytes):
            return obj.decode("utf-8", errors="replace")
        if isinstance(obj, set | frozenset):
            return sorted(obj, key=str)
        return str(obj)


class JSONFormatter(logging.Formatter):
    """
    Logging formatter that outputs log records as JSON strings.

    Example output:
        {
            "timestamp": "2025-01-15T10:30:45.123456+00:00",
            "level": "INFO",
            "logger": "app.services.access_service",
            "message": "Issued upload URL for file 3f2a... in bucket 9c1e...",
            "extra": {"request_id": "abc123"}
        }
    """

    # Standard LogRecord attributes to exclude from extra fields
    RESERVED_ATTRS: frozenset[str] = frozenset(
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
            "message",
            "module",
            "msecs",
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

    def __init__(
        self,
        include_extra_fields: bool = True,
        include_source_location: bool = False,
    ) -> None:
        super().__init__()
        self.include_extra_fields = include_extra_fields
        self.include_source_location = include_source_location

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(
                timespec="microseconds"
            ),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if self.include_source_location:
            log_entry["source"] = {
                "filename": record.filename,
                "lineno": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            log_entry["exception"] = {
                "type": exc_type.__name__ if exc_type else "Unknown",
                "message": str(exc_value) if exc_value else "",
                "traceback": "".join(traceback.format_exception(*record.exc_info)),
            }

        if record.stack_info:
            log_entry["stack_info"] = record.stack_info

        if self.include_extra_fields:
            extra_fields = self._extract_extra_fields(record)
            if extra_fields:
                log_entry["extra"] = extra_fields

        return json.dumps(log_entry, cls=LogJSONEncoder, ensure_ascii=False, separators=(",", ":"))

    def _extract_extra_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        """Fields passed through ``extra=`` or a LoggerAdapter."""
        return {
            key: value
            for key, value in record.__dict__.items()
            if not key.startswith("_") and key not in self.RESERVED_ATTRS
        }


class StandardFormatter(logging.Formatter):
    """
    Text formatter for console output in development mode.

    Format: [TIMESTAMP] LEVEL logger_name: message
    """

    DEFAULT_FORMAT: str = "[%(asctime)s] %(levelname)-8s %(name)s: %(message)s"
    DEFAULT_DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"

    def __init__(self, fmt: str | None = None, datefmt: str | None = None) -> None:
        super().__init__(
            fmt=fmt or self.DEFAULT_FORMAT,
            datefmt=datefmt or self.DEFAULT_DATE_FORMAT,
        )


def get_log_level_from_string(level_str: str) -> int:
    return LOG_LEVEL_MAP.get(level_str.upper(), logging.INFO)


def setup_logging(
    log_level: str = "INFO",
    json_logs: bool = True,
    third_party_level: str = "WARNING",
) -> None:
    """
    Configure application-wide logging.

    Called once from the application lifespan. Replaces the root logger's
    handlers, routes Uvicorn's loggers through the same formatter and quiets
    third-party libraries.

    Args:
        log_level: Application log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: If True, output JSON; if False, output standard text
        third_party_level: Log level for third-party libraries
    """
    level = get_log_level_from_string(log_level)

    formatter: logging.Formatter
    if json_logs:
        formatter = JSONFormatter(
            include_extra_fields=True,
            include_source_location=level <= logging.DEBUG,
        )
    else:
        formatter = StandardFormatter()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    for name in UVICORN_LOGGERS:
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.setLevel(level)
        uvicorn_logger.propagate = False
        uvicorn_logger.handlers.clear()
        handler = logging.StreamHandler(sys.stderr if name == "uvicorn.error" else sys.stdout)
        handler.setFormatter(formatter)
        uvicorn_logger.addHandler(handler)

    third_party_log_level = get_log_level_from_string(third_party_level)
    for name in THIRD_PARTY_LOGGERS:
        logging.getLogger(name).setLevel(third_party_log_level)

    logging.getLogger(__name__).info(
        "Logging configured: level=%s, json=%s", logging.getLevelName(level), json_logs
    )


class ContextLoggerAdapter(logging.LoggerAdapter):
    """LoggerAdapter that merges its context into ``extra`` without overwriting call-site fields."""

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        for key, value in (self.extra or {}).items():
            extra.setdefault(key, value)
        kwargs["extra"] = extra
        return msg, kwargs


def add_log_context(logger: logging.Logger, **kwargs: Any) -> logging.LoggerAdapter:
    """
    Wrap ``logger`` so every record carries ``kwargs`` as extra fields.

    Example:
        ctx_logger = add_log_context(logger, request_id="abc-123")
        ctx_logger.info("Request completed", extra={"status_code": 200})
    """
    return ContextLoggerAdapter(logger, kwargs)


__all__ = [
    "LOG_LEVEL_MAP",
    "ContextLoggerAdapter",
    "JSONFormatter",
    "StandardFormatter",
    "add_log_context",
    "get_log_level_from_string",
    "setup_logging",
]
