"""
Observability module: structured JSON logging with context propagation.
"""

from objectfs.observability.logging import (
    LogLevel,
    JsonFormatter,
    StructuredLogger,
    current_context,
    setup_logging,
)

__all__ = [
    "LogLevel",
    "JsonFormatter",
    "StructuredLogger",
    "current_context",
    "setup_logging",
]
