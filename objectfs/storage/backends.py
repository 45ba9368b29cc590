"""
In-Memory Object Transport
==========================

S3-compatible transport backed by dictionaries, for development and tests.

Design Principles:
    - Same Result-returning surface as S3Transport for a seamless swap
    - Multipart semantics enforced like S3: parts are invisible until
      completion, completion lists parts in ascending order, aborted or
      completed upload ids are unknown afterwards
    - Thread-safe within one event loop via asyncio.Lock

Performance Characteristics:
    - put/head/delete: O(1) plus copy of the payload
    - complete_multipart: O(n) in object size (concatenation)
    - list_objects: O(k) in bucket size

Author: objectfs maintainers
License: MIT
"""

from __future__ import annotations

import asyncio
import hashlib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Sequence
from uuid import uuid4

from objectfs.core.types import Result, Ok, Err, ObjectUri, ByteRange
from objectfs.core.errors import TransportError
from objectfs.storage.metrics import TransferMetrics
from objectfs.storage.protocols import CompletedPart, ObjectMetadata


# =============================================================================
# INTERNAL RECORDS
# =============================================================================
@dataclass(slots=True)
class _StoredObject:
    data: bytes
    etag: str
    last_modified: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(slots=True)
class _PendingUpload:
    uri: ObjectUri
    parts: Dict[int, _StoredObject] = field(default_factory=dict)


def _md5(data: bytes) -> str:
    return hashlib.md5(data).hexdigest()


# =============================================================================
# IN-MEMORY TRANSPORT
# =============================================================================
class InMemoryTransport:
    """
    In-memory object store implementing ObjectTransport.

    Example:
        transport = InMemoryTransport()
        await transport.connect()
        await transport.create_bucket("scratch")
        await transport.put_object(ObjectUri("scratch", "a.bin"), b"...")
    """

    __slots__ = ("_buckets", "_uploads", "_lock", "_connected", "_min_part_size", "_metrics")

    def __init__(self, min_part_size: int = 0) -> None:
        """
        Args:
            min_part_size: Reject non-final parts smaller than this at
                completion time, as S3 does (0 disables the check).
        """
        self._buckets: Dict[str, Dict[str, _StoredObject]] = {}
        self._uploads: Dict[str, _PendingUpload] = {}
        self._lock = asyncio.Lock()
        self._connected = False
        self._min_part_size = min_part_size
        self._metrics = TransferMetrics()

    # -------------------------------------------------------------------------
    # CONNECTION MANAGEMENT
    # -------------------------------------------------------------------------

    async def connect(self) -> Result[None, TransportError]:
        self._connected = True
        return Ok(None)

    async def close(self) -> None:
        self._connected = False

    def _bucket(self, name: str) -> Result[Dict[str, _StoredObject], TransportError]:
        if not self._connected:
            return Err(TransportError.not_connected())
        bucket = self._buckets.get(name)
        if bucket is None:
            return Err(TransportError.no_such_bucket(name))
        return Ok(bucket)

    # -------------------------------------------------------------------------
    # OBJECT OPERATIONS
    # -------------------------------------------------------------------------

    async def put_object(
        self,
        uri: ObjectUri,
        data: bytes,
    ) -> Result[ObjectMetadata, TransportError]:
        start_ns = self._metrics.start()
        async with self._lock:
            bucket = self._bucket(uri.bucket)
            if bucket.is_err():
                return bucket
            stored = _StoredObject(data=bytes(data), etag=_md5(data))
            bucket.unwrap()[uri.key] = stored
        self._metrics.record_put(len(data), start_ns)
        return Ok(ObjectMetadata(
            uri=uri,
            size_bytes=len(stored.data),
            etag=stored.etag,
            last_modified=stored.last_modified,
        ))

    async def initiate_multipart(self, uri: ObjectUri) -> Result[str, TransportError]:
        async with self._lock:
            bucket = self._bucket(uri.bucket)
            if bucket.is_err():
                return bucket
            upload_id = uuid4().hex
            self._uploads[upload_id] = _PendingUpload(uri=uri)
            return Ok(upload_id)

    async def upload_part(
        self,
        uri: ObjectUri,
        upload_id: str,
        part_number: int,
        data: bytes,
    ) -> Result[CompletedPart, TransportError]:
        start_ns = self._metrics.start()
        async with self._lock:
            if not self._connected:
                return Err(TransportError.not_connected())
            upload = self._uploads.get(upload_id)
            if upload is None or upload.uri != uri:
                return Err(TransportError.no_such_upload(upload_id))
            if part_number < 1:
                return Err(TransportError.invalid_part(upload_id, part_number, "part numbers start at 1"))
            stored = _StoredObject(data=bytes(data), etag=_md5(data))
            upload.parts[part_number] = stored
        self._metrics.record_part(len(data), start_ns)
        return Ok(CompletedPart(part_number=part_number, etag=stored.etag, size_bytes=len(data)))

    async def complete_multipart(
        self,
        uri: ObjectUri,
        upload_id: str,
        parts: Sequence[CompletedPart],
    ) -> Result[ObjectMetadata, TransportError]:
        async with self._lock:
            bucket = self._bucket(uri.bucket)
            if bucket.is_err():
                return bucket
            upload = self._uploads.get(upload_id)
            if upload is None or upload.uri != uri:
                return Err(TransportError.no_such_upload(upload_id))
            if not parts:
                return Err(TransportError.invalid_part(upload_id, 0, "no parts listed"))

            previous = 0
            chunks: List[bytes] = []
            for index, part in enumerate(parts):
                stored = upload.parts.get(part.part_number)
                if part.part_number <= previous:
                    return Err(TransportError.invalid_part(
                        upload_id, part.part_number, "parts must be in ascending order"
                    ))
                if stored is None or stored.etag != part.etag:
                    return Err(TransportError.invalid_part(
                        upload_id, part.part_number, "part was not uploaded"
                    ))
                is_last = index == len(parts) - 1
                if not is_last and len(stored.data) < self._min_part_size:
                    return Err(TransportError.invalid_part(
                        upload_id, part.part_number, "part is smaller than the minimum part size"
                    ))
                previous = part.part_number
                chunks.append(stored.data)

            data = b"".join(chunks)
            etag = f"{_md5(b''.join(bytes.fromhex(_md5(c)) for c in chunks))}-{len(chunks)}"
            stored_object = _StoredObject(data=data, etag=etag)
            bucket.unwrap()[uri.key] = stored_object
            del self._uploads[upload_id]
            self._metrics.complete_count += 1

        return Ok(ObjectMetadata(
            uri=uri,
            size_bytes=len(data),
            etag=etag,
            last_modified=stored_object.last_modified,
        ))

    async def abort_multipart(
        self,
        uri: ObjectUri,
        upload_id: str,
    ) -> Result[None, TransportError]:
        async with self._lock:
            if not self._connected:
                return Err(TransportError.not_connected())
            if self._uploads.pop(upload_id, None) is None:
                return Err(TransportError.no_such_upload(upload_id))
            self._metrics.abort_count += 1
            return Ok(None)

    async def get_range(
        self,
        uri: ObjectUri,
        byte_range: ByteRange,
    ) -> Result[bytes, TransportError]:
        start_ns = self._metrics.start()
        async with self._lock:
            bucket = self._bucket(uri.bucket)
            if bucket.is_err():
                return bucket
            stored = bucket.unwrap().get(uri.key)
            if stored is None:
                self._metrics.not_found += 1
                return Err(TransportError.no_such_key(str(uri)))
            data = stored.data[byte_range.start:byte_range.end + 1]
        self._metrics.record_download(len(data), start_ns)
        return Ok(data)

    async def head_object(self, uri: ObjectUri) -> Result[ObjectMetadata, TransportError]:
        async with self._lock:
            bucket = self._bucket(uri.bucket)
            if bucket.is_err():
                return bucket
            self._metrics.head_count += 1
            stored = bucket.unwrap().get(uri.key)
            if stored is None:
                self._metrics.not_found += 1
                return Err(TransportError.no_such_key(str(uri)))
            return Ok(ObjectMetadata(
                uri=uri,
                size_bytes=len(stored.data),
                etag=stored.etag,
                last_modified=stored.last_modified,
            ))

    async def delete_object(self, uri: ObjectUri) -> Result[bool, TransportError]:
        async with self._lock:
            bucket = self._bucket(uri.bucket)
            if bucket.is_err():
                return bucket
            self._metrics.delete_count += 1
            return Ok(bucket.unwrap().pop(uri.key, None) is not None)

    async def list_objects(
        self,
        bucket: str,
        prefix: str = "",
    ) -> Result[List[ObjectMetadata], TransportError]:
        async with self._lock:
            objects = self._bucket(bucket)
            if objects.is_err():
                return objects
            self._metrics.list_count += 1
            return Ok([
                ObjectMetadata(
                    uri=ObjectUri(bucket=bucket, key=key),
                    size_bytes=len(stored.data),
                    etag=stored.etag,
                    last_modified=stored.last_modified,
                )
                for key, stored in sorted(objects.unwrap().items())
                if key.startswith(prefix)
            ])

    # -------------------------------------------------------------------------
    # BUCKET PASSTHROUGHS
    # -------------------------------------------------------------------------

    async def is_bucket(self, bucket: str) -> Result[bool, TransportError]:
        if not self._connected:
            return Err(TransportError.not_connected())
        return Ok(bucket in self._buckets)

    async def create_bucket(self, bucket: str) -> Result[None, TransportError]:
        async with self._lock:
            if not self._connected:
                return Err(TransportError.not_connected())
            if bucket in self._buckets:
                return Err(TransportError.request_failed(
                    "create_bucket", bucket, ValueError("BucketAlreadyOwnedByYou")
                ))
            self._buckets[bucket] = {}
            return Ok(None)

    async def remove_bucket(self, bucket: str) -> Result[None, TransportError]:
        async with self._lock:
            objects = self._bucket(bucket)
            if objects.is_err():
                return objects
            if objects.unwrap():
                return Err(TransportError.request_failed(
                    "remove_bucket", bucket, ValueError("BucketNotEmpty")
                ))
            del self._buckets[bucket]
            return Ok(None)

    # -------------------------------------------------------------------------
    # INTROSPECTION
    # -------------------------------------------------------------------------

    @property
    def open_uploads(self) -> int:
        """Number of initiated but neither completed nor aborted uploads."""
        return len(self._uploads)

    @property
    def metrics(self) -> TransferMetrics:
        return self._metrics
