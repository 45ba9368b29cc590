"""
Flush Coordinator: Finalizes a Write Session into One Remote Object

Strategy per entry at flush time:

    | Entry                        | Remote calls                          |
    |------------------------------|---------------------------------------|
    | nothing buffered, no session | none (empty flush creates no object)  |
    | bytes buffered, no session   | put_object(buffer)                    |
    | multipart session open       | upload tail, barrier, complete(parts) |

Failure policy:
    Any PUT/part/completion failure aborts the multipart upload (best
    effort), moves the entry to FAILED and returns TransportFailure. An
    abort failure is logged and attached to the original error's context
    under ``abort_error``; it never replaces the original error.

All methods expect the caller to hold ``entry.lock``.
"""

from __future__ import annotations

import logging
from typing import Optional

from objectfs.core.errors import FilesystemError, TransportError
from objectfs.core.types import Result, Ok, Err
from objectfs.fs.cache import WriteCacheEntry
from objectfs.fs.state import EntryState
from objectfs.fs.uploader import PartUploader
from objectfs.storage.protocols import ObjectMetadata, ObjectTransport

logger = logging.getLogger(__name__)


class FlushCoordinator:
    """
    Chooses single PUT vs multipart completion and drives it to the end.
    """

    __slots__ = ("_transport", "_uploader")

    def __init__(self, transport: ObjectTransport, uploader: PartUploader) -> None:
        self._transport = transport
        self._uploader = uploader

    async def flush(self, entry: WriteCacheEntry) -> Result[Optional[ObjectMetadata], FilesystemError]:
        """
        Finalize ``entry``.

        Returns:
            Ok(ObjectMetadata) when an object was written
            Ok(None) when nothing was buffered (no remote call)
            Err(FilesystemError) on failure; entry is FAILED
        """
        if entry.state is EntryState.EMPTY:
            return Ok(None)

        entry.advance(EntryState.FLUSHING, "FLUSH")
        session = entry.session

        if session is None:
            payload = entry.drain()
            logger.debug("Flushing %s with single PUT of %d bytes", entry.uri, len(payload))
            put = await self._transport.put_object(entry.uri, payload)
            if put.is_err():
                return await self.fail(entry, "put_object", put.error)
            result = put.unwrap()
        else:
            tail = entry.drain()
            if tail and not self._uploader.available:
                return await self.fail(entry, "upload_part", TransportError.request_failed(
                    "upload_part", str(entry.uri), RuntimeError("upload pool is not running")
                ))
            if tail:
                self._uploader.submit(entry.uri, session, tail)
            logger.debug(
                "Flushing %s as multipart upload %s with %d parts",
                entry.uri,
                session.upload_id,
                session.next_part_number - 1,
            )

            parts = await self._uploader.barrier(entry.uri, session)
            if parts.is_err():
                return await self.fail(entry, "upload_part", parts.error)

            completed = await self._transport.complete_multipart(
                entry.uri, session.upload_id, parts.unwrap()
            )
            if completed.is_err():
                return await self.fail(entry, "complete_multipart", completed.error)
            result = completed.unwrap()

        entry.advance(EntryState.FINALIZED, "COMPLETED")
        logger.info("Finalized %s (%d bytes)", entry.uri, entry.total_bytes)
        return Ok(result)

    async def fail(
        self,
        entry: WriteCacheEntry,
        operation: str,
        cause: TransportError,
    ) -> Err[FilesystemError]:
        """
        Abort any open session, mark ``entry`` FAILED and build the error.
        """
        error = FilesystemError.transport_failure(operation, str(entry.uri), cause)
        logger.warning("%s failed for %s: %s", operation, entry.uri, cause)

        session = entry.session
        if session is not None:
            aborted = await self._uploader.abort(entry.uri, session)
            if aborted.is_err():
                logger.error(
                    "Abort of multipart upload %s for %s failed: %s",
                    session.upload_id,
                    entry.uri,
                    aborted.error,
                )
                error = error.with_context(abort_error=aborted.error)

        entry.mark_failed(error)
        return Err(error)
