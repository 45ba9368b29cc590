"""
Range Reader: Random-Offset Reads of Finalized Objects

Reads are served by one ranged GET against the finalized remote object.
Range validation happens before the GET; nothing is cached across calls.
"""

from __future__ import annotations

from typing import Union

from objectfs.core.errors import FilesystemError
from objectfs.core.types import Result, Ok, Err, ObjectUri, ByteRange
from objectfs.storage.protocols import ObjectTransport

WritableBuffer = Union[bytearray, memoryview]


class RangeReader:
    """Size lookups and ranged reads against the transport."""

    __slots__ = ("_transport",)

    def __init__(self, transport: ObjectTransport) -> None:
        self._transport = transport

    async def size(self, uri: ObjectUri) -> Result[int, FilesystemError]:
        head = await self._transport.head_object(uri)
        if head.is_err():
            if head.error.is_not_found:
                return Err(FilesystemError.not_found(str(uri)))
            return Err(FilesystemError.transport_failure("head_object", str(uri), head.error))
        return Ok(head.unwrap().size_bytes)

    async def read(self, uri: ObjectUri, offset: int, length: int) -> Result[bytes, FilesystemError]:
        """
        Read ``length`` bytes starting at ``offset``.

        Errors:
            InvalidRange: negative offset/length or past end of object
            NotFound: no finalized object at ``uri``
            TransportFailure: HEAD/GET failed or returned a short body
        """
        if offset < 0 or length < 0:
            return Err(FilesystemError.invalid_range(str(uri), offset, length))

        size = await self.size(uri)
        if size.is_err():
            return size
        if offset + length > size.unwrap():
            return Err(FilesystemError.invalid_range(str(uri), offset, length, size.unwrap()))
        if length == 0:
            return Ok(b"")

        data = await self._transport.get_range(uri, ByteRange.from_offset(offset, length))
        if data.is_err():
            if data.error.is_not_found:
                return Err(FilesystemError.not_found(str(uri), "object removed during read"))
            return Err(FilesystemError.transport_failure("get_object", str(uri), data.error))

        payload = data.unwrap()
        if len(payload) != length:
            return Err(FilesystemError.transport_failure(
                "get_object",
                str(uri),
                ValueError(f"expected {length} bytes, got {len(payload)}"),
            ))
        return Ok(payload)

    async def read_into(
        self,
        uri: ObjectUri,
        offset: int,
        buffer: WritableBuffer,
    ) -> Result[int, FilesystemError]:
        """
        Fill ``buffer`` completely from ``offset``. The buffer is untouched on error.

        Returns:
            Ok(number of bytes written into ``buffer``)
        """
        view = memoryview(buffer).cast("B")
        data = await self.read(uri, offset, view.nbytes)
        if data.is_err():
            return data
        view[:] = data.unwrap()
        return Ok(view.nbytes)
