"""
Unit Tests: Write Session State and Cache

Tests:
    - Transition table
    - WriteCacheEntry buffer bookkeeping
    - WriteCache entry identity and discard
"""

import pytest

from objectfs.core.errors import FilesystemError
from objectfs.core.types import ObjectUri
from objectfs.fs.cache import MultipartSession, SinglePut, WriteCache, WriteCacheEntry
from objectfs.fs.state import EntryState, is_valid_transition, transition
from objectfs.storage.protocols import CompletedPart

URI = ObjectUri("bucket", "key")


class TestTransitions:
    """Tests for the entry state machine."""

    @pytest.mark.parametrize("current, target, trigger", [
        (EntryState.EMPTY, EntryState.BUFFERING, "FIRST_WRITE"),
        (EntryState.BUFFERING, EntryState.BUFFERING_MULTIPART, "PART_CARVED"),
        (EntryState.BUFFERING, EntryState.FLUSHING, "FLUSH"),
        (EntryState.BUFFERING_MULTIPART, EntryState.FLUSHING, "FLUSH"),
        (EntryState.FLUSHING, EntryState.FINALIZED, "COMPLETED"),
        (EntryState.FLUSHING, EntryState.FAILED, "UPLOAD_FAILED"),
    ])
    def test_valid(self, current, target, trigger):
        assert is_valid_transition(current, target, trigger)
        assert transition(current, target, trigger).unwrap() is target

    @pytest.mark.parametrize("current, target, trigger", [
        (EntryState.EMPTY, EntryState.FLUSHING, "FLUSH"),
        (EntryState.BUFFERING_MULTIPART, EntryState.BUFFERING, "PART_CARVED"),
        (EntryState.FINALIZED, EntryState.BUFFERING, "FIRST_WRITE"),
        (EntryState.FAILED, EntryState.FLUSHING, "FLUSH"),
        (EntryState.BUFFERING, EntryState.FLUSHING, "COMPLETED"),
    ])
    def test_invalid(self, current, target, trigger):
        result = transition(current, target, trigger)
        assert result.is_err()
        assert current.name in result.error

    def test_state_properties(self):
        assert EntryState.FINALIZED.is_terminal
        assert EntryState.FAILED.is_terminal
        assert not EntryState.FLUSHING.is_terminal

        unflushed = {s for s in EntryState if s.has_unflushed_writes}
        assert unflushed == {EntryState.BUFFERING, EntryState.BUFFERING_MULTIPART, EntryState.FLUSHING}


class TestWriteCacheEntry:
    """Tests for WriteCacheEntry."""

    def test_append_carve_drain(self):
        entry = WriteCacheEntry(uri=URI, multipart=True)
        assert entry.state is EntryState.EMPTY
        assert isinstance(entry.strategy, SinglePut)

        entry.append(b"abcdef")
        entry.append(b"ghij")
        assert entry.state is EntryState.BUFFERING
        assert entry.buffered == 10
        assert entry.total_bytes == 10

        assert entry.carve(4) == b"abcd"
        assert entry.buffered == 6
        assert entry.drain() == b"efghij"
        assert entry.buffered == 0
        assert entry.total_bytes == 10

    def test_fits(self):
        entry = WriteCacheEntry(uri=URI, multipart=False)
        entry.append(b"x" * 60)
        assert entry.fits(40, 100)
        assert not entry.fits(41, 100)

    def test_open_session(self):
        entry = WriteCacheEntry(uri=URI, multipart=True)
        entry.append(b"x")
        session = entry.open_session("upload-1")

        assert entry.session is session
        assert entry.state is EntryState.BUFFERING_MULTIPART
        assert session.take_part_number() == 1
        assert session.take_part_number() == 2

    def test_mark_failed_clears_buffer(self):
        entry = WriteCacheEntry(uri=URI, multipart=False)
        entry.append(b"data")
        error = FilesystemError.transport_failure("put_object", str(URI))

        entry.mark_failed(error)

        assert entry.state is EntryState.FAILED
        assert entry.failure is error
        assert entry.buffered == 0

    def test_illegal_advance_raises(self):
        entry = WriteCacheEntry(uri=URI, multipart=False)
        with pytest.raises(RuntimeError):
            entry.advance(EntryState.FINALIZED, "COMPLETED")


class TestMultipartSession:
    """Tests for MultipartSession."""

    def test_ordered_parts(self):
        session = MultipartSession(upload_id="u")
        for number in (3, 1, 2):
            session.completed[number] = CompletedPart(part_number=number, etag=f"e{number}")

        assert [part.part_number for part in session.ordered_parts()] == [1, 2, 3]
        assert session.ordered_parts()[0].to_s3() == {"PartNumber": 1, "ETag": "e1"}


class TestWriteCache:
    """Tests for WriteCache."""

    @pytest.mark.asyncio
    async def test_entry_identity_and_discard(self):
        cache = WriteCache()
        entry = await cache.entry_for(URI, multipart=False)
        assert await cache.entry_for(URI, multipart=False) is entry
        assert cache.is_current(entry)
        assert len(cache) == 1

        await cache.discard(entry)
        assert not cache.is_current(entry)
        assert cache.get(URI) is None

        replacement = await cache.entry_for(URI, multipart=False)
        await cache.discard(entry)
        assert cache.get(URI) is replacement

    @pytest.mark.asyncio
    async def test_has_unflushed_writes(self):
        cache = WriteCache()
        entry = await cache.entry_for(URI, multipart=False)
        assert not cache.has_unflushed_writes(URI)

        entry.append(b"x")
        assert cache.has_unflushed_writes(URI)

        entry.mark_failed(FilesystemError.transport_failure("put_object", str(URI)))
        assert not cache.has_unflushed_writes(URI)
        assert list(cache) == [entry]
