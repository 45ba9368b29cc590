"""
Structured Logging for Write Sessions

One JSON object per line, suitable for ELK/Loki ingestion:

    {"@timestamp": "...", "level": "WARNING", "logger": "objectfs.fs.assembler",
     "message": "...", "uri": "s3://bucket/key", "upload_id": "..."}

Field sources, lowest precedence first:
1. Fields bound with ``StructuredLogger.context(...)`` for the current task
2. Default fields of a ``with_extra`` child logger
3. Keyword arguments of the log call

ObjectFSError values are rendered through ``to_dict()``; byte payloads are
never logged, only their length.
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from enum import IntEnum
from typing import Any, Mapping, Optional, TextIO

from objectfs.core.errors import ObjectFSError


class LogLevel(IntEnum):
    """Log level enumeration."""
    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40
    CRITICAL = 50

    @classmethod
    def from_name(cls, name: str) -> LogLevel:
        return cls[name.upper()]


# Fields bound for the current asyncio task
_log_context: ContextVar[dict[str, Any]] = ContextVar("log_context", default={})

# Attributes of logging.LogRecord itself; everything else came in as an extra
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}

# Client libraries that log every request at DEBUG
_NOISY_LOGGERS = ("botocore", "aiobotocore", "aioboto3", "urllib3", "asyncio")


def _jsonable(value: Any) -> Any:
    if isinstance(value, ObjectFSError):
        return value.to_dict()
    if isinstance(value, (bytes, bytearray, memoryview)):
        return f"<{len(value)} bytes>"
    return value


class JsonFormatter(logging.Formatter):
    """
    Renders a LogRecord as a single-line JSON document.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "@timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(_log_context.get())
        payload.update(
            (key, value) for key, value in vars(record).items() if key not in _RECORD_ATTRS
        )
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps({key: _jsonable(value) for key, value in payload.items()}, default=str)


class StructuredLogger:
    """
    Keyword-argument logger over ``logging.getLogger(name)``.

    Usage:
        logger = StructuredLogger(__name__)

        with StructuredLogger.context(uri="s3://bucket/key"):
            logger.info("Flushed", size=1024)
    """

    __slots__ = ("_logger", "_fields")

    def __init__(self, name: str, fields: Optional[Mapping[str, Any]] = None) -> None:
        self._logger = logging.getLogger(name)
        self._fields: dict[str, Any] = dict(fields or {})

    def debug(self, message: str, **fields: Any) -> None:
        self._emit(logging.DEBUG, message, fields)

    def info(self, message: str, **fields: Any) -> None:
        self._emit(logging.INFO, message, fields)

    def warning(self, message: str, **fields: Any) -> None:
        self._emit(logging.WARNING, message, fields)

    def error(self, message: str, **fields: Any) -> None:
        self._emit(logging.ERROR, message, fields)

    def critical(self, message: str, **fields: Any) -> None:
        self._emit(logging.CRITICAL, message, fields)

    def _emit(self, level: int, message: str, fields: dict[str, Any]) -> None:
        if self._logger.isEnabledFor(level):
            self._logger.log(level, message, extra={**self._fields, **fields}, stacklevel=3)

    def with_extra(self, **fields: Any) -> StructuredLogger:
        """Child logger that adds ``fields`` to every record."""
        return StructuredLogger(self._logger.name, {**self._fields, **fields})

    @property
    def name(self) -> str:
        return self._logger.name

    @staticmethod
    def context(**fields: Any) -> _LogContext:
        """Bind ``fields`` to every record logged inside the ``with`` block."""
        return _LogContext(fields)


class _LogContext:
    __slots__ = ("_fields", "_token")

    def __init__(self, fields: dict[str, Any]) -> None:
        self._fields = fields
        self._token = None

    def __enter__(self) -> _LogContext:
        self._token = _log_context.set({**_log_context.get(), **self._fields})
        return self

    def __exit__(self, *args: Any) -> None:
        if self._token is not None:
            _log_context.reset(self._token)
            self._token = None


def current_context() -> dict[str, Any]:
    """Fields bound by the innermost enclosing context()."""
    return dict(_log_context.get())


def setup_logging(
    level: LogLevel = LogLevel.INFO,
    json_output: bool = True,
    stream: Optional[TextIO] = None,
    logger_levels: Optional[Mapping[str, LogLevel]] = None,
) -> None:
    """
    Configure the root logger.

    Args:
        level: Minimum log level
        json_output: JSON lines (True) or a human-readable format
        stream: Output stream (default: stderr)
        logger_levels: Per-logger overrides; the S3 client libraries are
            held at WARNING unless overridden here
    """
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(level.value)
    handler.setFormatter(
        JsonFormatter() if json_output
        else logging.Formatter("%(asctime)s | %(levelname)-8s | %(name)s | %(message)s")
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level.value)

    levels = {name: LogLevel.WARNING for name in _NOISY_LOGGERS}
    levels.update(logger_levels or {})
    for name, logger_level in levels.items():
        logging.getLogger(name).setLevel(logger_level.value)
