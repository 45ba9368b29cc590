"""
Storage Module: Object Store Transports
=======================================

Provides:
- ObjectTransport protocol consumed by the filesystem
- In-memory implementation for development/testing
- aioboto3-backed S3 implementation for production
- Factory function for backend selection

Design Principles:
-----------------
1. **Backend Agnostic**: Same interface for in-memory and S3
2. **Factory Pattern**: Runtime backend selection via configuration
3. **Result Monad**: No exceptions for control flow

Example:
    >>> # Development (in-memory)
    >>> transport = create_transport(S3Params(backend=BackendType.IN_MEMORY))

    >>> # Production (MinIO)
    >>> transport = create_transport(S3Params(endpoint_override="minio:9000", scheme="http"))
"""

from __future__ import annotations

from typing import Optional

from objectfs.core.config import BackendType, S3Params
from objectfs.storage.protocols import CompletedPart, ObjectMetadata, ObjectTransport
from objectfs.storage.backends import InMemoryTransport
from objectfs.storage.metrics import TransferMetrics
from objectfs.storage.s3_store import S3Transport


# =============================================================================
# FACTORY FUNCTIONS
# =============================================================================

def create_transport(params: Optional[S3Params] = None) -> ObjectTransport:
    """
    Create the object store transport selected by ``params.backend``.

    Args:
        params: S3 parameters. Defaults to S3Params() (S3 backend).

    Returns:
        InMemoryTransport: For BackendType.IN_MEMORY.
        S3Transport: For BackendType.S3.

    Note:
        The returned transport is not connected yet.
    """
    params = params or S3Params()

    if params.backend is BackendType.IN_MEMORY:
        return InMemoryTransport()

    return S3Transport(params)


__all__ = [
    "ObjectTransport",
    "ObjectMetadata",
    "CompletedPart",
    "TransferMetrics",
    "InMemoryTransport",
    "S3Transport",
    "create_transport",
]
