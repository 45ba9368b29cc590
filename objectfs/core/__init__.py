"""
Core module: Type definitions, error hierarchy, and configuration.

This module provides the foundational abstractions:
- Result/Either monads for zero-exception control flow
- Object URIs and byte ranges
- Error hierarchy tagged with ErrorCode
- Configuration management with validation
"""

from objectfs.core.types import (
    Result,
    Ok,
    Err,
    ObjectUri,
    ByteRange,
)
from objectfs.core.errors import (
    ErrorCode,
    ObjectFSError,
    TransportError,
    FilesystemError,
)
from objectfs.core.config import BackendType, S3Params, ObjectFSConfig

__all__ = [
    "Result",
    "Ok",
    "Err",
    "ObjectUri",
    "ByteRange",
    "ErrorCode",
    "ObjectFSError",
    "TransportError",
    "FilesystemError",
    "BackendType",
    "S3Params",
    "ObjectFSConfig",
]
