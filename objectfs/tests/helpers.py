"""
Test utilities: Result assertions, payload generators and a fault-injecting
transport wrapper.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Sequence, Set

from objectfs.core.errors import TransportError
from objectfs.core.types import Result, Ok, Err, ObjectUri, ByteRange
from objectfs.storage.backends import InMemoryTransport
from objectfs.storage.protocols import CompletedPart, ObjectMetadata

BUCKET = "objectfs-test"
BUCKET_URI = f"s3://{BUCKET}"
PATTERN = b"abcdefghijklmnopqrstuvwxyz"


# =============================================================================
# RESULT ASSERTIONS
# =============================================================================

def assert_ok(result, message: str = "Expected Ok result"):
    """Assert that result is Ok."""
    if result.is_err():
        raise AssertionError(f"{message}: {result.error}")
    return result.unwrap()


def assert_err(result, message: str = "Expected Err result"):
    """Assert that result is Err."""
    if result.is_ok():
        raise AssertionError(f"{message}: Got Ok({result.unwrap()!r})")
    return result.error


# =============================================================================
# PAYLOADS
# =============================================================================

def pattern(size: int, start: int = 0) -> bytes:
    """``size`` bytes of the repeating a..z pattern, rotated by ``start``."""
    repeats = (size + start) // len(PATTERN) + 1
    return (PATTERN * repeats)[start:start + size]


def uri(name: str) -> str:
    return f"{BUCKET_URI}/{name}"


# =============================================================================
# FAULT INJECTION
# =============================================================================

class FaultyTransport:
    """
    ObjectTransport wrapper that injects failures and delays.

    Every call is forwarded to ``inner`` unless a fault is configured for
    it. Part uploads are recorded in completion order.
    """

    def __init__(self, inner: Optional[InMemoryTransport] = None) -> None:
        self.inner = inner or InMemoryTransport()
        self.fail_put = False
        self.fail_initiate = False
        self.fail_parts: Set[int] = set()
        self.fail_complete = False
        self.fail_abort = False
        self.fail_head = False
        self.short_reads = False
        self.part_delays: Dict[int, float] = {}

        self.part_completion_order: List[int] = []
        self.completed_part_lists: List[List[int]] = []
        self.aborted: List[str] = []
        self.in_flight_parts = 0
        self.max_in_flight_parts = 0
        self.get_calls = 0

    @staticmethod
    def _injected(operation: str) -> Err[TransportError]:
        return Err(TransportError.request_failed(operation, "injected", RuntimeError("injected fault")))

    async def connect(self) -> Result[None, TransportError]:
        return await self.inner.connect()

    async def close(self) -> None:
        await self.inner.close()

    async def put_object(self, uri: ObjectUri, data: bytes) -> Result[ObjectMetadata, TransportError]:
        if self.fail_put:
            return self._injected("put_object")
        return await self.inner.put_object(uri, data)

    async def initiate_multipart(self, uri: ObjectUri) -> Result[str, TransportError]:
        if self.fail_initiate:
            return self._injected("initiate_multipart")
        return await self.inner.initiate_multipart(uri)

    async def upload_part(
        self,
        uri: ObjectUri,
        upload_id: str,
        part_number: int,
        data: bytes,
    ) -> Result[CompletedPart, TransportError]:
        self.in_flight_parts += 1
        self.max_in_flight_parts = max(self.max_in_flight_parts, self.in_flight_parts)
        try:
            await asyncio.sleep(self.part_delays.get(part_number, 0))
            if part_number in self.fail_parts:
                return self._injected("upload_part")
            result = await self.inner.upload_part(uri, upload_id, part_number, data)
            self.part_completion_order.append(part_number)
            return result
        finally:
            self.in_flight_parts -= 1

    async def complete_multipart(
        self,
        uri: ObjectUri,
        upload_id: str,
        parts: Sequence[CompletedPart],
    ) -> Result[ObjectMetadata, TransportError]:
        self.completed_part_lists.append([part.part_number for part in parts])
        if self.fail_complete:
            return self._injected("complete_multipart")
        return await self.inner.complete_multipart(uri, upload_id, parts)

    async def abort_multipart(self, uri: ObjectUri, upload_id: str) -> Result[None, TransportError]:
        self.aborted.append(upload_id)
        if self.fail_abort:
            return self._injected("abort_multipart")
        return await self.inner.abort_multipart(uri, upload_id)

    async def get_range(self, uri: ObjectUri, byte_range: ByteRange) -> Result[bytes, TransportError]:
        self.get_calls += 1
        result = await self.inner.get_range(uri, byte_range)
        if self.short_reads and result.is_ok():
            return Ok(result.unwrap()[:-1])
        return result

    async def head_object(self, uri: ObjectUri) -> Result[ObjectMetadata, TransportError]:
        if self.fail_head:
            return self._injected("head_object")
        return await self.inner.head_object(uri)

    async def delete_object(self, uri: ObjectUri) -> Result[bool, TransportError]:
        return await self.inner.delete_object(uri)

    async def list_objects(self, bucket: str, prefix: str = "") -> Result[List[ObjectMetadata], TransportError]:
        return await self.inner.list_objects(bucket, prefix)

    async def is_bucket(self, bucket: str) -> Result[bool, TransportError]:
        return await self.inner.is_bucket(bucket)

    async def create_bucket(self, bucket: str) -> Result[None, TransportError]:
        return await self.inner.create_bucket(bucket)

    async def remove_bucket(self, bucket: str) -> Result[None, TransportError]:
        return await self.inner.remove_bucket(bucket)

    def __getattr__(self, name: str) -> Any:
        return getattr(self.inner, name)
