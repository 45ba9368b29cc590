"""
Write Buffer Cache: Per-URI In-Memory Accumulators

Each URI with unflushed writes owns one WriteCacheEntry. The cache is an
explicit map owned by one filesystem instance; its lifetime is bounded by
that instance.

Locking:
    - WriteCache._lock guards entry creation and removal only
    - WriteCacheEntry.lock serialises every mutation of one entry
    - Entries for different URIs never share a lock

Strategy:
    The upload mode (single PUT vs multipart) is fixed when the entry is
    created. In multipart mode the entry starts as SinglePut and switches
    once to MultipartSession when the first full part is carved; it never
    switches back.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Union

from objectfs.core.errors import ObjectFSError, TransportError
from objectfs.core.types import ObjectUri, Result
from objectfs.fs.state import EntryState, transition
from objectfs.storage.protocols import CompletedPart


# =============================================================================
# UPLOAD STRATEGY (TAGGED VARIANT)
# =============================================================================
@dataclass(frozen=True, slots=True)
class SinglePut:
    """No remote state yet; flush issues one PUT of the whole buffer."""


@dataclass(slots=True)
class MultipartSession:
    """
    Open multipart upload.

    Attributes:
        upload_id: Server-side upload identifier.
        next_part_number: Number assigned to the next carved part (1-based).
        pending: Part uploads not yet harvested, keyed by part number.
        completed: Harvested part identifiers, keyed by part number.
    """
    upload_id: str
    next_part_number: int = 1
    pending: Dict[int, asyncio.Task[Result[CompletedPart, TransportError]]] = field(default_factory=dict)
    completed: Dict[int, CompletedPart] = field(default_factory=dict)

    def take_part_number(self) -> int:
        number = self.next_part_number
        self.next_part_number += 1
        return number

    def ordered_parts(self) -> List[CompletedPart]:
        """Completed parts in part-number order, independent of arrival order."""
        return [self.completed[number] for number in sorted(self.completed)]


UploadStrategy = Union[SinglePut, MultipartSession]


# =============================================================================
# CACHE ENTRY
# =============================================================================
@dataclass(eq=False)
class WriteCacheEntry:
    """
    In-memory state of one URI's write session.

    Invariant: buffered == len(buffer) <= total_bytes.
    """
    uri: ObjectUri
    multipart: bool
    buffer: bytearray = field(default_factory=bytearray)
    total_bytes: int = 0
    state: EntryState = EntryState.EMPTY
    strategy: UploadStrategy = field(default_factory=SinglePut)
    failure: Optional[ObjectFSError] = None
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    @property
    def buffered(self) -> int:
        return len(self.buffer)

    @property
    def session(self) -> Optional[MultipartSession]:
        return self.strategy if isinstance(self.strategy, MultipartSession) else None

    def advance(self, target: EntryState, trigger: str) -> None:
        """
        Move to ``target``.

        Raises:
            RuntimeError: On a transition the table does not allow.
        """
        self.state = transition(self.state, target, trigger).unwrap()

    def append(self, data: bytes) -> None:
        if self.state is EntryState.EMPTY:
            self.advance(EntryState.BUFFERING, "FIRST_WRITE")
        self.buffer += data
        self.total_bytes += len(data)

    def fits(self, size: int, limit: int) -> bool:
        return self.buffered + size <= limit

    def carve(self, size: int) -> bytes:
        """Remove and return the first ``size`` buffered bytes."""
        part = bytes(self.buffer[:size])
        del self.buffer[:size]
        return part

    def drain(self) -> bytes:
        """Remove and return everything buffered."""
        data = bytes(self.buffer)
        self.buffer.clear()
        return data

    def open_session(self, upload_id: str) -> MultipartSession:
        session = MultipartSession(upload_id=upload_id)
        self.strategy = session
        self.advance(EntryState.BUFFERING_MULTIPART, "PART_CARVED")
        return session

    def mark_failed(self, error: ObjectFSError) -> None:
        self.advance(EntryState.FAILED, "UPLOAD_FAILED")
        self.failure = error
        self.buffer.clear()


# =============================================================================
# CACHE
# =============================================================================
class WriteCache:
    """
    Map of normalised URI string → WriteCacheEntry.

    Example:
        cache = WriteCache()
        entry = await cache.entry_for(uri, multipart=True)
        async with entry.lock:
            entry.append(b"...")
    """

    __slots__ = ("_entries", "_lock")

    def __init__(self) -> None:
        self._entries: Dict[str, WriteCacheEntry] = {}
        self._lock = asyncio.Lock()

    async def entry_for(self, uri: ObjectUri, multipart: bool) -> WriteCacheEntry:
        """Existing entry for ``uri`` or a new EMPTY one."""
        key = str(uri)
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                entry = WriteCacheEntry(uri=uri, multipart=multipart)
                self._entries[key] = entry
            return entry

    def get(self, uri: ObjectUri) -> Optional[WriteCacheEntry]:
        return self._entries.get(str(uri))

    def is_current(self, entry: WriteCacheEntry) -> bool:
        """False once ``entry`` was discarded (possibly replaced by a newer one)."""
        return self._entries.get(str(entry.uri)) is entry

    async def discard(self, entry: WriteCacheEntry) -> None:
        """Remove ``entry`` if it is still the current entry for its URI."""
        async with self._lock:
            if self.is_current(entry):
                del self._entries[str(entry.uri)]

    def has_unflushed_writes(self, uri: ObjectUri) -> bool:
        entry = self.get(uri)
        return entry is not None and entry.state.has_unflushed_writes

    def entries(self) -> List[WriteCacheEntry]:
        """Snapshot of current entries."""
        return list(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[WriteCacheEntry]:
        return iter(self.entries())
