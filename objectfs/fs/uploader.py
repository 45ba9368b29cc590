"""
Part Uploader: Concurrent Multipart Part Uploads

Turns carved buffer segments into remote parts on the shared UploadPool.

Ordering:
    Part numbers are assigned at submission, so the logical byte layout is
    fixed before any upload starts. Completions are harvested into a map
    keyed by part number; completion order is irrelevant.

Bounds:
    - At most ``max_parallel_ops`` part uploads per filesystem instance are
      in flight (instance semaphore), on top of the pool's global bound
    - ``throttle`` keeps a URI's pending parts at or below a limit
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from objectfs.core.errors import FilesystemError, TransportError
from objectfs.core.types import Result, Ok, Err, ObjectUri
from objectfs.fs.cache import MultipartSession
from objectfs.fs.pool import UploadPool
from objectfs.storage.protocols import CompletedPart, ObjectTransport

logger = logging.getLogger(__name__)


class PartUploader:
    """
    Submits and tracks part uploads for multipart sessions.

    Example:
        upload_id = (await uploader.initiate(uri)).unwrap()
        session = entry.open_session(upload_id)
        uploader.submit(uri, session, payload)
        parts = await uploader.barrier(uri, session)
    """

    __slots__ = ("_transport", "_pool", "_slots", "_max_parallel_ops")

    def __init__(
        self,
        transport: ObjectTransport,
        pool: UploadPool,
        max_parallel_ops: int,
    ) -> None:
        self._transport = transport
        self._pool = pool
        self._slots = asyncio.Semaphore(max_parallel_ops)
        self._max_parallel_ops = max_parallel_ops

    async def initiate(self, uri: ObjectUri) -> Result[str, TransportError]:
        """Open a multipart upload for ``uri`` and return its upload id."""
        result = await self._transport.initiate_multipart(uri)
        if result.is_ok():
            logger.debug("Opened multipart upload %s for %s", result.unwrap(), uri)
        return result

    @property
    def available(self) -> bool:
        """True while the shared pool accepts work."""
        return self._pool.is_running

    def submit(self, uri: ObjectUri, session: MultipartSession, payload: bytes) -> int:
        """
        Schedule ``payload`` as the session's next part.

        Returns:
            The part number assigned to ``payload``.
        """
        part_number = session.take_part_number()
        session.pending[part_number] = self._pool.submit(
            self._upload, uri, session.upload_id, part_number, payload
        )
        logger.debug("Submitted part %d (%d bytes) of %s", part_number, len(payload), uri)
        return part_number

    async def _upload(
        self,
        uri: ObjectUri,
        upload_id: str,
        part_number: int,
        payload: bytes,
    ) -> Result[CompletedPart, TransportError]:
        async with self._slots:
            return await self._transport.upload_part(uri, upload_id, part_number, payload)

    # -------------------------------------------------------------------------
    # COMPLETION TRACKING
    # -------------------------------------------------------------------------

    def _harvest(self, uri: ObjectUri, session: MultipartSession) -> Optional[TransportError]:
        """
        Move finished uploads from ``pending`` to ``completed``.

        Returns the error of the lowest-numbered failed part, if any.
        Failed parts stay in ``pending`` so the failure is sticky.
        """
        failure: Optional[TransportError] = None
        for part_number in sorted(session.pending):
            task = session.pending[part_number]
            if not task.done():
                continue

            error: Optional[TransportError] = None
            if task.cancelled():
                error = TransportError.request_failed(
                    "upload_part", f"{uri} part {part_number}", RuntimeError("part upload cancelled")
                )
            elif task.exception() is not None:
                error = TransportError.request_failed(
                    "upload_part", f"{uri} part {part_number}", task.exception()
                )
            else:
                result = task.result()
                if result.is_err():
                    error = result.error
                else:
                    session.completed[part_number] = result.unwrap()
                    del session.pending[part_number]

            if error is not None and failure is None:
                failure = error
        return failure

    async def throttle(
        self,
        uri: ObjectUri,
        session: MultipartSession,
        limit: Optional[int] = None,
    ) -> Result[None, TransportError]:
        """
        Wait until at most ``limit`` parts of the session are pending.

        Fails as soon as any part of the session has failed.
        """
        limit = self._max_parallel_ops if limit is None else limit

        failure = self._harvest(uri, session)
        while failure is None and len(session.pending) > limit:
            await asyncio.wait(list(session.pending.values()), return_when=asyncio.FIRST_COMPLETED)
            failure = self._harvest(uri, session)

        if failure is not None:
            return Err(failure)
        return Ok(None)

    async def barrier(
        self,
        uri: ObjectUri,
        session: MultipartSession,
    ) -> Result[List[CompletedPart], TransportError]:
        """
        Wait for every submitted part, then return them in part-number order.
        """
        if session.pending:
            await asyncio.wait(list(session.pending.values()))

        failure = self._harvest(uri, session)
        if failure is not None:
            return Err(failure)
        return Ok(session.ordered_parts())

    # -------------------------------------------------------------------------
    # ABORT
    # -------------------------------------------------------------------------

    async def abort(self, uri: ObjectUri, session: MultipartSession) -> Result[None, FilesystemError]:
        """
        Cancel outstanding parts and release the server-side upload.

        Best effort: a failed abort is reported as AbortFailure for the
        caller to log and attach, never to replace the original error.
        """
        outstanding = [task for task in session.pending.values() if not task.done()]
        for task in outstanding:
            task.cancel()
        if outstanding:
            await asyncio.gather(*outstanding, return_exceptions=True)
        session.pending.clear()

        result = await self._transport.abort_multipart(uri, session.upload_id)
        if result.is_err():
            return Err(FilesystemError.abort_failure(str(uri), session.upload_id, result.error))

        logger.debug("Aborted multipart upload %s for %s", session.upload_id, uri)
        return Ok(None)
