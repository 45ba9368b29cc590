"""
Transport Protocol Definitions: Object Store Capability Set
============================================================

Structural subtyping protocol (PEP 544) for the object store client the
filesystem consumes. The filesystem never talks to S3 directly; it only
needs this capability set:

- single-object PUT
- multipart initiate / upload-part / complete / abort
- ranged GET
- HEAD (size + existence)
- delete, list and bucket passthroughs

Design Principles:
    - Zero-exception control flow via Result[T, TransportError]
    - Async-first for non-blocking I/O
    - No retries at this level; a concrete client may retry internally

Author: objectfs maintainers
License: MIT
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Protocol, Sequence, runtime_checkable

from objectfs.core.types import Result, ObjectUri, ByteRange
from objectfs.core.errors import TransportError


# =============================================================================
# VALUE TYPES
# =============================================================================
@dataclass(frozen=True, slots=True)
class ObjectMetadata:
    """
    Metadata for a finalized remote object.

    Attributes:
        uri: Object location.
        size_bytes: Object length in bytes.
        etag: Entity tag (MD5 or multipart hash), quotes stripped.
        last_modified: Server timestamp if known.
        metadata: User-defined key-value metadata.
    """
    uri: ObjectUri
    size_bytes: int
    etag: str = ""
    last_modified: Optional[datetime] = None
    metadata: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True, order=True)
class CompletedPart:
    """
    Durable identifier of one uploaded part.

    Ordered by part_number so a list of parts sorts into upload order.
    """
    part_number: int
    etag: str
    size_bytes: int = field(default=0, compare=False)

    def to_s3(self) -> Dict[str, object]:
        """Shape expected by CompleteMultipartUpload."""
        return {"PartNumber": self.part_number, "ETag": self.etag}


# =============================================================================
# TRANSPORT PROTOCOL
# =============================================================================
@runtime_checkable
class ObjectTransport(Protocol):
    """
    Capability set of an S3-compatible object store client.

    Every method returns Ok(value) or Err(TransportError). A missing
    object is reported as ``TransportError.no_such_key`` so callers can
    tell "absent" from "unreachable".
    """

    @abstractmethod
    async def connect(self) -> Result[None, TransportError]:
        """Open client resources. Must be called before any operation."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release client resources. Safe to call multiple times."""
        ...

    # -------------------------------------------------------------------------
    # OBJECT OPERATIONS
    # -------------------------------------------------------------------------

    @abstractmethod
    async def put_object(
        self,
        uri: ObjectUri,
        data: bytes,
    ) -> Result[ObjectMetadata, TransportError]:
        """Upload a whole object in one request."""
        ...

    @abstractmethod
    async def initiate_multipart(self, uri: ObjectUri) -> Result[str, TransportError]:
        """Open a multipart upload and return its upload id."""
        ...

    @abstractmethod
    async def upload_part(
        self,
        uri: ObjectUri,
        upload_id: str,
        part_number: int,
        data: bytes,
    ) -> Result[CompletedPart, TransportError]:
        """
        Upload one part. Part numbers start at 1.

        Parts of the same upload may be in flight concurrently.
        """
        ...

    @abstractmethod
    async def complete_multipart(
        self,
        uri: ObjectUri,
        upload_id: str,
        parts: Sequence[CompletedPart],
    ) -> Result[ObjectMetadata, TransportError]:
        """
        Finalize the upload. ``parts`` must be in ascending part order.
        """
        ...

    @abstractmethod
    async def abort_multipart(
        self,
        uri: ObjectUri,
        upload_id: str,
    ) -> Result[None, TransportError]:
        """Discard server-side state of an upload (best effort)."""
        ...

    @abstractmethod
    async def get_range(
        self,
        uri: ObjectUri,
        byte_range: ByteRange,
    ) -> Result[bytes, TransportError]:
        """Ranged GET (inclusive range)."""
        ...

    @abstractmethod
    async def head_object(self, uri: ObjectUri) -> Result[ObjectMetadata, TransportError]:
        """Object metadata without body; no_such_key when absent."""
        ...

    @abstractmethod
    async def delete_object(self, uri: ObjectUri) -> Result[bool, TransportError]:
        """Delete object. Ok(False) if it did not exist."""
        ...

    @abstractmethod
    async def list_objects(
        self,
        bucket: str,
        prefix: str = "",
    ) -> Result[List[ObjectMetadata], TransportError]:
        """All objects in ``bucket`` whose key starts with ``prefix``."""
        ...

    # -------------------------------------------------------------------------
    # BUCKET PASSTHROUGHS
    # -------------------------------------------------------------------------

    @abstractmethod
    async def is_bucket(self, bucket: str) -> Result[bool, TransportError]:
        ...

    @abstractmethod
    async def create_bucket(self, bucket: str) -> Result[None, TransportError]:
        ...

    @abstractmethod
    async def remove_bucket(self, bucket: str) -> Result[None, TransportError]:
        ...
