"""
Buffered Object-Storage Filesystem

POSIX-like sequential write, random-offset read and flush semantics on
top of an S3-compatible, PUT/GET-only object store:
- Write Buffer Cache: per-URI in-memory accumulation
- Part Uploader: concurrent multipart parts, assembled in part order
- Flush Coordinator: single PUT vs multipart completion, abort on failure
- Range Reader: ranged GETs of finalized objects

Author: objectfs maintainers
License: MIT
"""

__version__ = "0.1.0"
__author__ = "objectfs maintainers"

# =============================================================================
# PUBLIC API EXPORTS
# =============================================================================
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

from objectfs.storage import (
    ObjectTransport,
    InMemoryTransport,
    S3Transport,
    create_transport,
)

from objectfs.fs import (
    EntryState,
    UploadPool,
    S3FileSystem,
)

__all__ = [
    # Version
    "__version__",
    # Core types
    "Result",
    "Ok",
    "Err",
    "ObjectUri",
    "ByteRange",
    # Errors
    "ErrorCode",
    "ObjectFSError",
    "TransportError",
    "FilesystemError",
    # Config
    "BackendType",
    "S3Params",
    "ObjectFSConfig",
    # Storage
    "ObjectTransport",
    "InMemoryTransport",
    "S3Transport",
    "create_transport",
    # Filesystem
    "EntryState",
    "UploadPool",
    "S3FileSystem",
]
