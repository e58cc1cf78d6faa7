"""
Structured Logging Configuration Module for MediaShelf

Features:
- JSONFormatter: one JSON object per log line for log aggregation
- StandardFormatter: readable single-line output for development
- setup_logging: root logger, uvicorn and third-party logger configuration,
  called once from the FastAPI lifespan
- add_log_context: LoggerAdapter that attaches request_id/user_id style
  context to every record

Usage:
    from mediashelf.utils.logger import add_log_context, setup_logging

    setup_logging(log_level="info", json_logs=False)

    logger = logging.getLogger(__name__)
    ctx_logger = add_log_context(logger, request_id="abc123", user_id="auth0|42")
    ctx_logger.info("Processing upload")
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

THIRD_PARTY_LOGGERS: list[str] = [
    "motor",
    "pymongo",
    "redis",
    "urllib3",
    "cloudinary",
    "httpx",
    "httpcore",
    "asyncio",
    "multipart",
    "python_multipart",
]

UVICORN_LOGGERS: tuple[str, ...] = ("uvicorn", "uvicorn.access", "uvicorn.error")


class LogJSONEncoder(json.JSONEncoder):
    """Falls back to ``str()`` for anything the stdlib encoder rejects."""

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
    Formatter that renders each LogRecord as a compact JSON object.

    Example output:
        {"timestamp":"2026-01-15T10:30:45.123456+00:00","level":"INFO",
         "logger":"mediashelf.api.upload","message":"Video upload request ...",
         "extra":{"request_id":"abc123"}}
    """

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

    def __init__(self, include_extra_fields: bool = True, include_source_location: bool = False) -> None:
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
            extra_fields = {
                key: value
                for key, value in record.__dict__.items()
                if not key.startswith("_") and key not in self.RESERVED_ATTRS
            }
            if extra_fields:
                log_entry["extra"] = extra_fields

        return json.dumps(log_entry, cls=LogJSONEncoder, ensure_ascii=False, separators=(",", ":"))


class StandardFormatter(logging.Formatter):
    """Format: [TIMESTAMP] LEVEL logger_name: message"""

    DEFAULT_FORMAT: str = "[%(asctime)s] %(levelname)-8s %(name)s: %(message)s"
    DEFAULT_DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"

    def __init__(self, fmt: str | None = None, datefmt: str | None = None) -> None:
        super().__init__(fmt=fmt or self.DEFAULT_FORMAT, datefmt=datefmt or self.DEFAULT_DATE_FORMAT)


def setup_logging(
    log_level: str = "INFO",
    json_logs: bool = False,
    third_party_level: str = "WARNING",
) -> None:
    """
    Configure application-wide logging.

    Replaces the root logger's handlers with a single stdout handler, routes
    uvicorn's loggers through the same formatter and quiets chatty libraries.

    Args:
        log_level: Application log level (case-insensitive)
        json_logs: JSON lines when True, StandardFormatter otherwise
        third_party_level: Level applied to THIRD_PARTY_LOGGERS
    """
    level = LOG_LEVEL_MAP.get(log_level.upper(), logging.INFO)

    formatter: logging.Formatter
    if json_logs:
        formatter = JSONFormatter(include_source_location=level <= logging.DEBUG)
    else:
        formatter = StandardFormatter()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    _configure_uvicorn_logging(formatter, level)
    _configure_third_party_loggers(LOG_LEVEL_MAP.get(third_party_level.upper(), logging.WARNING))

    logging.getLogger(__name__).info(
        "Logging configured: level=%s, json=%s", logging.getLevelName(level), json_logs
    )


def _configure_uvicorn_logging(formatter: logging.Formatter, level: int) -> None:
    for name in UVICORN_LOGGERS:
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.setLevel(level)
        uvicorn_logger.propagate = False
        uvicorn_logger.handlers.clear()
        stream = sys.stderr if name == "uvicorn.error" else sys.stdout
        handler = logging.StreamHandler(stream)
        handler.setFormatter(formatter)
        uvicorn_logger.addHandler(handler)


def _configure_third_party_loggers(level: int) -> None:
    for logger_name in THIRD_PARTY_LOGGERS:
        logging.getLogger(logger_name).setLevel(level)


class ContextLoggerAdapter(logging.LoggerAdapter):
    """LoggerAdapter that merges its context into ``extra`` without overwriting call-site values."""

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
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
        ctx_logger.info("Request started")
    """
    return ContextLoggerAdapter(logger, kwargs)
