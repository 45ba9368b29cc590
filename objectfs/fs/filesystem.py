"""
S3FileSystem: Buffered Object-Storage Filesystem Adapter
========================================================

POSIX-like sequential ``write``, random-offset ``read`` and ``flush`` on
top of a PUT/GET-only object store.

Write Path:
-----------
    write(uri, data)
        → WriteCache entry (per-URI lock)
        → single mode: append if it fits in multipart_part_size, else
          CapacityExceeded with the entry untouched
        → multipart mode: append, carve every full part, submit each to
          the PartUploader, throttle to max_parallel_ops pending parts
    flush_object(uri)
        → FlushCoordinator: single PUT, or tail + barrier + complete
        → entry removed from the cache; object visible to readers

Visibility:
-----------
A URI with unflushed writes is reported as absent by ``is_object``,
``object_size`` and ``read``; no partial state reaches readers.

Overwrite:
----------
A flushed object is immutable. A later ``write`` to the same URI opens a
new session whose flush replaces the object.

Error Surface:
--------------
Every operation returns ``Result[T, FilesystemError]``:

| Code                   | Raised by                     | Remote call? |
|------------------------|-------------------------------|--------------|
| FS_CAPACITY_EXCEEDED   | write (single mode)           | no           |
| FS_TRANSPORT_FAILURE   | write, flush, read, ...       | yes          |
| FS_NOT_FOUND           | object_size, read, remove     | HEAD         |
| FS_INVALID_RANGE       | read, read_into               | HEAD only    |
| FS_SESSION_FAILED      | flush of an already-failed URI| no           |
| FS_INVALID_URI         | every URI-taking operation    | no           |
| FS_NOT_INITIALIZED     | every operation before init   | no           |

Example:
    async with UploadPool(size=8) as pool:
        fs = S3FileSystem()
        await fs.init(S3Params(), pool)
        await fs.write("s3://bucket/log.bin", b"hello ")
        await fs.write("s3://bucket/log.bin", b"world")
        await fs.flush_object("s3://bucket/log.bin")
        data = (await fs.read("s3://bucket/log.bin", 6, 5)).unwrap()  # b"world"
        await fs.disconnect()
"""

from __future__ import annotations

from typing import List, Optional, Union

from objectfs.core.config import S3Params
from objectfs.core.errors import ErrorCode, FilesystemError
from objectfs.core.types import Result, Ok, Err, ObjectUri
from objectfs.fs.assembler import FlushCoordinator
from objectfs.fs.cache import WriteCache, WriteCacheEntry
from objectfs.fs.pool import UploadPool
from objectfs.fs.reader import RangeReader, WritableBuffer
from objectfs.fs.state import EntryState
from objectfs.fs.uploader import PartUploader
from objectfs.observability.logging import StructuredLogger
from objectfs.storage import create_transport
from objectfs.storage.protocols import ObjectTransport

UriLike = Union[str, ObjectUri]
BytesLike = Union[bytes, bytearray, memoryview]

logger = StructuredLogger(__name__)


class S3FileSystem:
    """
    Buffered filesystem adapter over an ObjectTransport.

    One instance owns its write cache and its transport. The UploadPool is
    borrowed: it must be initialised before ``init`` and outlive
    ``disconnect``.
    """

    __slots__ = (
        "_params",
        "_pool",
        "_transport",
        "_cache",
        "_uploader",
        "_assembler",
        "_reader",
        "_initialized",
    )

    def __init__(self) -> None:
        self._params: Optional[S3Params] = None
        self._pool: Optional[UploadPool] = None
        self._transport: Optional[ObjectTransport] = None
        self._cache = WriteCache()
        self._uploader: Optional[PartUploader] = None
        self._assembler: Optional[FlushCoordinator] = None
        self._reader: Optional[RangeReader] = None
        self._initialized = False

    # -------------------------------------------------------------------------
    # LIFECYCLE
    # -------------------------------------------------------------------------

    async def init(
        self,
        params: S3Params,
        pool: UploadPool,
        transport: Optional[ObjectTransport] = None,
    ) -> Result[None, FilesystemError]:
        """
        Connect the transport and wire the write/read components.

        Args:
            params: S3 parameters; fixed for the instance's lifetime.
            pool: Initialised shared upload pool.
            transport: Pre-built transport; defaults to create_transport(params).
        """
        if self._initialized:
            return Ok(None)
        if not pool.is_running:
            return Err(FilesystemError.not_initialized("init: upload pool is not running"))

        transport = transport if transport is not None else create_transport(params)
        connected = await transport.connect()
        if connected.is_err():
            return Err(FilesystemError.transport_failure("connect", "s3://", connected.error))

        self._params = params
        self._pool = pool
        self._transport = transport
        self._uploader = PartUploader(transport, pool, params.max_parallel_ops)
        self._assembler = FlushCoordinator(transport, self._uploader)
        self._reader = RangeReader(transport)
        self._initialized = True

        logger.info(
            "Filesystem initialized",
            multipart=params.use_multipart_upload,
            part_size=params.multipart_part_size,
            max_parallel_ops=params.max_parallel_ops,
        )
        return Ok(None)

    async def disconnect(self) -> Result[None, FilesystemError]:
        """
        Flush every open session, then close the transport.

        Every session is attempted; the first failure is returned.
        """
        if not self._initialized:
            return Ok(None)

        first_failure: Optional[FilesystemError] = None
        for entry in self._cache.entries():
            flushed = await self.flush_object(entry.uri)
            if flushed.is_err() and first_failure is None:
                first_failure = flushed.error

        await self._transport.close()
        self._initialized = False
        logger.info("Filesystem disconnected", failed=first_failure is not None)

        if first_failure is not None:
            return Err(first_failure)
        return Ok(None)

    # -------------------------------------------------------------------------
    # HELPERS
    # -------------------------------------------------------------------------

    def _check(self, operation: str) -> Result[None, FilesystemError]:
        if not self._initialized:
            return Err(FilesystemError.not_initialized(operation))
        return Ok(None)

    def _object_uri(self, uri: UriLike, operation: str) -> Result[ObjectUri, FilesystemError]:
        ready = self._check(operation)
        if ready.is_err():
            return ready

        parsed = ObjectUri.parse(uri)
        if parsed.is_err():
            return Err(FilesystemError.invalid_uri(str(uri), parsed.error))

        value = parsed.unwrap()
        if value.is_bucket or value.is_prefix:
            return Err(FilesystemError.invalid_uri(str(uri), "URI names a bucket or prefix, not an object"))
        return Ok(value)

    def _bucket_uri(self, uri: UriLike, operation: str) -> Result[ObjectUri, FilesystemError]:
        ready = self._check(operation)
        if ready.is_err():
            return ready

        parsed = ObjectUri.parse(uri)
        if parsed.is_err():
            return Err(FilesystemError.invalid_uri(str(uri), parsed.error))
        if not parsed.unwrap().is_bucket:
            return Err(FilesystemError.invalid_uri(str(uri), "URI names an object, not a bucket"))
        return parsed

    def _unflushed(self, uri: ObjectUri) -> FilesystemError:
        return FilesystemError.not_found(str(uri), "object has unflushed writes")

    # -------------------------------------------------------------------------
    # WRITE PATH
    # -------------------------------------------------------------------------

    async def write(
        self,
        uri: UriLike,
        data: BytesLike,
        length: Optional[int] = None,
    ) -> Result[None, FilesystemError]:
        """
        Append ``data`` (or its first ``length`` bytes) to the URI's session.

        A zero-length write is a no-op.
        """
        target = self._object_uri(uri, "write")
        if target.is_err():
            return target
        target = target.unwrap()

        payload = memoryview(data).cast("B")
        if length is not None:
            if length < 0 or length > payload.nbytes:
                return Err(FilesystemError.invalid_range(str(target), 0, length, payload.nbytes))
            payload = payload[:length]
        if payload.nbytes == 0:
            return Ok(None)

        params = self._params
        if not params.use_multipart_upload and payload.nbytes > params.multipart_part_size:
            existing = self._cache.get(target)
            buffered = existing.buffered if existing is not None else 0
            return Err(FilesystemError.capacity_exceeded(
                str(target), buffered, payload.nbytes, params.multipart_part_size
            ))

        with StructuredLogger.context(uri=str(target)):
            while True:
                entry = await self._cache.entry_for(target, params.use_multipart_upload)
                async with entry.lock:
                    if not self._cache.is_current(entry):
                        continue
                    if entry.state is EntryState.FAILED:
                        logger.info("Discarding failed session before new write")
                        await self._cache.discard(entry)
                        continue
                    if entry.multipart:
                        return await self._append_multipart(entry, payload)
                    return await self._append_single(entry, payload)

    async def _append_single(
        self,
        entry: WriteCacheEntry,
        payload: memoryview,
    ) -> Result[None, FilesystemError]:
        limit = self._params.multipart_part_size
        if not entry.fits(payload.nbytes, limit):
            if entry.state is EntryState.EMPTY:
                await self._cache.discard(entry)
            return Err(FilesystemError.capacity_exceeded(
                str(entry.uri), entry.buffered, payload.nbytes, limit
            ))
        entry.append(payload)
        return Ok(None)

    async def _append_multipart(
        self,
        entry: WriteCacheEntry,
        payload: memoryview,
    ) -> Result[None, FilesystemError]:
        part_size = self._params.multipart_part_size
        if not self._uploader.available and entry.buffered + payload.nbytes >= part_size:
            return Err(FilesystemError.not_initialized("write: upload pool is not running"))
        entry.append(payload)

        while entry.buffered >= part_size:
            session = entry.session
            if session is None:
                upload_id = await self._uploader.initiate(entry.uri)
                if upload_id.is_err():
                    return await self._assembler.fail(entry, "initiate_multipart", upload_id.error)
                session = entry.open_session(upload_id.unwrap())
                logger.debug("Opened multipart session", upload_id=session.upload_id)
            self._uploader.submit(entry.uri, session, entry.carve(part_size))

        session = entry.session
        if session is not None:
            throttled = await self._uploader.throttle(entry.uri, session)
            if throttled.is_err():
                return await self._assembler.fail(entry, "upload_part", throttled.error)
        return Ok(None)

    async def flush_object(self, uri: UriLike) -> Result[None, FilesystemError]:
        """
        Finalize all buffered writes for ``uri`` into one remote object.

        Flushing a URI with nothing buffered makes no remote call and
        creates no object. Flushing a URI whose session failed earlier
        reports FS_SESSION_FAILED once and forgets the session.
        """
        target = self._object_uri(uri, "flush_object")
        if target.is_err():
            return target
        target = target.unwrap()

        entry = self._cache.get(target)
        if entry is None:
            return Ok(None)

        with StructuredLogger.context(uri=str(target)):
            async with entry.lock:
                if not self._cache.is_current(entry):
                    return Ok(None)

                if entry.state is EntryState.FAILED:
                    await self._cache.discard(entry)
                    return Err(FilesystemError.session_failed(str(target), entry.failure))

                was_open = entry.state is not EntryState.EMPTY
                result = await self._assembler.flush(entry)
                if result.is_err():
                    return result

                await self._cache.discard(entry)
                if was_open:
                    logger.debug("Flushed", size=entry.total_bytes)
                return Ok(None)

    # -------------------------------------------------------------------------
    # READ PATH
    # -------------------------------------------------------------------------

    async def is_object(self, uri: UriLike) -> Result[bool, FilesystemError]:
        """True only for a finalized object with no newer unflushed writes."""
        target = self._object_uri(uri, "is_object")
        if target.is_err():
            return target
        target = target.unwrap()

        if self._cache.has_unflushed_writes(target):
            return Ok(False)

        size = await self._reader.size(target)
        if size.is_ok():
            return Ok(True)
        if size.error.code is ErrorCode.FS_NOT_FOUND:
            return Ok(False)
        return size

    async def object_size(self, uri: UriLike) -> Result[int, FilesystemError]:
        target = self._object_uri(uri, "object_size")
        if target.is_err():
            return target
        target = target.unwrap()

        if self._cache.has_unflushed_writes(target):
            return Err(self._unflushed(target))
        return await self._reader.size(target)

    async def read(self, uri: UriLike, offset: int, length: int) -> Result[bytes, FilesystemError]:
        """Read ``length`` bytes at ``offset`` of a finalized object."""
        target = self._object_uri(uri, "read")
        if target.is_err():
            return target
        target = target.unwrap()

        if self._cache.has_unflushed_writes(target):
            return Err(self._unflushed(target))
        return await self._reader.read(target, offset, length)

    async def read_into(
        self,
        uri: UriLike,
        offset: int,
        buffer: WritableBuffer,
    ) -> Result[int, FilesystemError]:
        """Fill ``buffer`` with ``len(buffer)`` bytes from ``offset``."""
        target = self._object_uri(uri, "read_into")
        if target.is_err():
            return target
        target = target.unwrap()

        if self._cache.has_unflushed_writes(target):
            return Err(self._unflushed(target))
        return await self._reader.read_into(target, offset, buffer)

    # -------------------------------------------------------------------------
    # OBJECT MANAGEMENT
    # -------------------------------------------------------------------------

    async def touch(self, uri: UriLike) -> Result[None, FilesystemError]:
        """Create an empty object unless one exists or writes are pending."""
        exists = await self.is_object(uri)
        if exists.is_err():
            return exists
        target = ObjectUri.parse(uri).unwrap()
        if exists.unwrap() or self._cache.has_unflushed_writes(target):
            return Ok(None)

        put = await self._transport.put_object(target, b"")
        if put.is_err():
            return Err(FilesystemError.transport_failure("put_object", str(target), put.error))
        return Ok(None)

    async def remove_object(self, uri: UriLike) -> Result[None, FilesystemError]:
        """
        Drop any open session for ``uri`` and delete the remote object.

        Returns NotFound when no remote object existed.
        """
        target = self._object_uri(uri, "remove_object")
        if target.is_err():
            return target
        target = target.unwrap()

        with StructuredLogger.context(uri=str(target)):
            entry = self._cache.get(target)
            if entry is not None:
                async with entry.lock:
                    await self._discard_session(entry)

            deleted = await self._transport.delete_object(target)
            if deleted.is_err():
                return Err(FilesystemError.transport_failure("delete_object", str(target), deleted.error))
            if not deleted.unwrap():
                return Err(FilesystemError.not_found(str(target)))
            return Ok(None)

    async def _discard_session(self, entry: WriteCacheEntry) -> None:
        session = entry.session
        if session is not None and entry.state is not EntryState.FAILED:
            aborted = await self._uploader.abort(entry.uri, session)
            if aborted.is_err():
                logger.error("Abort of discarded session failed", error=aborted.error)
        await self._cache.discard(entry)

    async def ls(self, uri: UriLike) -> Result[List[ObjectUri], FilesystemError]:
        """Finalized objects under a bucket or key prefix."""
        ready = self._check("ls")
        if ready.is_err():
            return ready

        parsed = ObjectUri.parse(uri)
        if parsed.is_err():
            return Err(FilesystemError.invalid_uri(str(uri), parsed.error))
        prefix = parsed.unwrap()

        listed = await self._transport.list_objects(prefix.bucket, prefix.key)
        if listed.is_err():
            return Err(FilesystemError.transport_failure("list_objects", str(prefix), listed.error))
        return Ok([meta.uri for meta in listed.unwrap()])

    # -------------------------------------------------------------------------
    # BUCKET PASSTHROUGHS
    # -------------------------------------------------------------------------

    async def is_bucket(self, uri: UriLike) -> Result[bool, FilesystemError]:
        bucket = self._bucket_uri(uri, "is_bucket")
        if bucket.is_err():
            return bucket
        result = await self._transport.is_bucket(bucket.unwrap().bucket)
        if result.is_err():
            return Err(FilesystemError.transport_failure("is_bucket", str(bucket.unwrap()), result.error))
        return result

    async def create_bucket(self, uri: UriLike) -> Result[None, FilesystemError]:
        bucket = self._bucket_uri(uri, "create_bucket")
        if bucket.is_err():
            return bucket
        result = await self._transport.create_bucket(bucket.unwrap().bucket)
        if result.is_err():
            return Err(FilesystemError.transport_failure("create_bucket", str(bucket.unwrap()), result.error))
        return Ok(None)

    async def remove_bucket(self, uri: UriLike) -> Result[None, FilesystemError]:
        bucket = self._bucket_uri(uri, "remove_bucket")
        if bucket.is_err():
            return bucket
        result = await self._transport.remove_bucket(bucket.unwrap().bucket)
        if result.is_err():
            return Err(FilesystemError.transport_failure("remove_bucket", str(bucket.unwrap()), result.error))
        return Ok(None)

    async def is_empty_bucket(self, uri: UriLike) -> Result[bool, FilesystemError]:
        bucket = self._bucket_uri(uri, "is_empty_bucket")
        if bucket.is_err():
            return bucket
        listed = await self.ls(bucket.unwrap())
        if listed.is_err():
            return listed
        return Ok(not listed.unwrap())

    async def empty_bucket(self, uri: UriLike) -> Result[None, FilesystemError]:
        """Delete every finalized object in the bucket."""
        bucket = self._bucket_uri(uri, "empty_bucket")
        if bucket.is_err():
            return bucket
        listed = await self.ls(bucket.unwrap())
        if listed.is_err():
            return listed

        for object_uri in listed.unwrap():
            deleted = await self._transport.delete_object(object_uri)
            if deleted.is_err():
                return Err(FilesystemError.transport_failure("delete_object", str(object_uri), deleted.error))
        return Ok(None)

    # -------------------------------------------------------------------------
    # INTROSPECTION
    # -------------------------------------------------------------------------

    @property
    def params(self) -> Optional[S3Params]:
        return self._params

    @property
    def transport(self) -> Optional[ObjectTransport]:
        return self._transport

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def open_sessions(self) -> int:
        """URIs with a cache entry (buffering, in flight or failed)."""
        return len(self._cache)

    def session_state(self, uri: UriLike) -> Optional[EntryState]:
        parsed = ObjectUri.parse(uri)
        if parsed.is_err():
            return None
        entry = self._cache.get(parsed.unwrap())
        return entry.state if entry is not None else None
