"""
Filesystem adapter tests: write/flush/read semantics.

Tests for:
- Visibility: nothing is an object before flush
- Round trip, size accounting and offset reads
- Single-PUT capacity limit (multipart disabled)
- Empty flush, overwrite, failed sessions
- URI handling, object management and bucket passthroughs

Run with: pytest objectfs/tests/test_filesystem.py
"""

from __future__ import annotations

import pytest

from objectfs.core import constants as C
from objectfs.core.errors import ErrorCode
from objectfs.core.types import ObjectUri
from objectfs.fs import EntryState, S3FileSystem, UploadPool
from objectfs.core.config import BackendType, S3Params
from objectfs.tests.helpers import (
    BUCKET,
    BUCKET_URI,
    assert_err,
    assert_ok,
    pattern,
    uri,
)


# =============================================================================
# FIXTURE SCENARIO
# =============================================================================

@pytest.mark.asyncio
@pytest.mark.parametrize(
    "multipart, part_size",
    [(False, 10 * C.MB), (True, 5 * C.MB)],
    ids=["single-put", "multipart"],
)
async def test_large_and_small_file_round_trip(make_fs, multipart, part_size):
    fs = await make_fs(use_multipart_upload=multipart, multipart_part_size=part_size)
    largefile, smallfile = uri("largefile"), uri("smallfile")

    assert_ok(await fs.write(largefile, pattern(5 * C.MB)))
    assert_ok(await fs.write(largefile, pattern(1 * C.MB)))
    assert_ok(await fs.write(smallfile, pattern(1 * C.MB)))

    assert assert_ok(await fs.is_object(largefile)) is False
    assert assert_ok(await fs.is_object(smallfile)) is False

    assert_ok(await fs.flush_object(largefile))
    assert_ok(await fs.flush_object(smallfile))

    assert assert_ok(await fs.is_object(largefile)) is True
    assert assert_ok(await fs.is_object(smallfile)) is True
    assert assert_ok(await fs.object_size(largefile)) == 6 * C.MB
    assert assert_ok(await fs.object_size(smallfile)) == 1 * C.MB

    assert assert_ok(await fs.read(largefile, 0, 26)) == b"abcdefghijklmnopqrstuvwxyz"
    assert assert_ok(await fs.read(largefile, 11, 26)) == b"lmnopqrstuvwxyzabcdefghijk"

    expected = pattern(5 * C.MB) + pattern(1 * C.MB)
    assert assert_ok(await fs.read(largefile, 0, 6 * C.MB)) == expected


@pytest.mark.asyncio
async def test_write_over_single_put_limit_fails(make_fs, transport):
    fs = await make_fs(use_multipart_upload=False, multipart_part_size=10 * C.MB)
    target = uri("too_big")

    error = assert_err(await fs.write(target, pattern(11 * C.MB)))

    assert error.code is ErrorCode.FS_CAPACITY_EXCEEDED
    assert error.context["limit"] == 10 * C.MB
    assert fs.open_sessions == 0
    assert assert_ok(await fs.is_object(target)) is False
    assert transport.metrics.put_count == 0


# =============================================================================
# VISIBILITY, ROUND TRIP, SIZE
# =============================================================================

@pytest.mark.asyncio
async def test_is_object_false_until_flush(make_fs):
    fs = await make_fs(use_multipart_upload=False, multipart_part_size=1024)
    target = uri("pending")

    for i in range(10):
        assert_ok(await fs.write(target, pattern(50, i)))
        assert assert_ok(await fs.is_object(target)) is False
        assert assert_err(await fs.object_size(target)).code is ErrorCode.FS_NOT_FOUND
        assert assert_err(await fs.read(target, 0, 1)).code is ErrorCode.FS_NOT_FOUND

    assert fs.session_state(target) is EntryState.BUFFERING
    assert_ok(await fs.flush_object(target))
    assert assert_ok(await fs.is_object(target)) is True
    assert fs.session_state(target) is None


@pytest.mark.asyncio
async def test_round_trip_preserves_write_order(make_fs):
    fs = await make_fs(use_multipart_upload=False, multipart_part_size=4096)
    target = uri("ordered")
    writes = [pattern(n, n) for n in (1, 17, 300, 0, 26, 999)]

    for chunk in writes:
        assert_ok(await fs.write(target, chunk))
    assert_ok(await fs.flush_object(target))

    expected = b"".join(writes)
    assert assert_ok(await fs.object_size(target)) == len(expected)
    assert assert_ok(await fs.read(target, 0, len(expected))) == expected

    for offset, length in [(0, 1), (5, 100), (1000, 343), (len(expected) - 1, 1)]:
        assert assert_ok(await fs.read(target, offset, length)) == expected[offset:offset + length]


@pytest.mark.asyncio
async def test_accepts_bytearray_memoryview_and_length(make_fs):
    fs = await make_fs(use_multipart_upload=False, multipart_part_size=1024)
    target = uri("buffers")

    assert_ok(await fs.write(target, bytearray(b"abc")))
    assert_ok(await fs.write(target, memoryview(b"defgh")[:2]))
    assert_ok(await fs.write(target, b"xyz-ignored", 3))
    assert_ok(await fs.flush_object(target))

    assert assert_ok(await fs.read(target, 0, 8)) == b"abcdexyz"

    error = assert_err(await fs.write(target, b"abc", 5))
    assert error.code is ErrorCode.FS_INVALID_RANGE


# =============================================================================
# CAPACITY (MULTIPART DISABLED)
# =============================================================================

@pytest.mark.asyncio
async def test_cumulative_overflow_leaves_buffer_unchanged(make_fs, transport):
    fs = await make_fs(use_multipart_upload=False, multipart_part_size=100)
    target = uri("capacity")
    first, rejected, last = pattern(60), pattern(50, 3), pattern(40, 7)

    assert_ok(await fs.write(target, first))

    error = assert_err(await fs.write(target, rejected))
    assert error.code is ErrorCode.FS_CAPACITY_EXCEEDED
    assert error.context["buffered"] == 60
    assert error.context["requested"] == 50
    assert transport.metrics.put_count == 0

    assert_ok(await fs.write(target, last))
    assert_ok(await fs.flush_object(target))

    assert assert_ok(await fs.object_size(target)) == 100
    assert assert_ok(await fs.read(target, 0, 100)) == first + last


@pytest.mark.asyncio
async def test_write_exactly_at_limit_is_accepted(make_fs):
    fs = await make_fs(use_multipart_upload=False, multipart_part_size=64)
    target = uri("exact")

    assert_ok(await fs.write(target, pattern(64)))
    assert assert_err(await fs.write(target, b"x")).code is ErrorCode.FS_CAPACITY_EXCEEDED
    assert_ok(await fs.flush_object(target))
    assert assert_ok(await fs.object_size(target)) == 64


# =============================================================================
# EMPTY FLUSH AND OVERWRITE
# =============================================================================

@pytest.mark.asyncio
async def test_empty_flush_creates_no_object(make_fs, transport):
    fs = await make_fs()
    never_written = uri("never")
    zero_written = uri("zero")

    assert_ok(await fs.flush_object(never_written))
    assert_ok(await fs.write(zero_written, b""))
    assert_ok(await fs.flush_object(zero_written))
    assert_ok(await fs.flush_object(zero_written))

    assert assert_ok(await fs.is_object(never_written)) is False
    assert assert_ok(await fs.is_object(zero_written)) is False
    assert transport.metrics.put_count == 0
    assert fs.open_sessions == 0


@pytest.mark.asyncio
async def test_write_after_flush_overwrites(make_fs):
    fs = await make_fs(use_multipart_upload=False, multipart_part_size=1024)
    target = uri("overwrite")

    assert_ok(await fs.write(target, b"first version"))
    assert_ok(await fs.flush_object(target))

    assert_ok(await fs.write(target, b"second"))
    assert assert_ok(await fs.is_object(target)) is False

    assert_ok(await fs.flush_object(target))
    assert assert_ok(await fs.object_size(target)) == 6
    assert assert_ok(await fs.read(target, 0, 6)) == b"second"


# =============================================================================
# READS
# =============================================================================

@pytest.mark.asyncio
async def test_out_of_range_reads_issue_no_get(make_fs, transport):
    fs = await make_fs()
    target = uri("ranged")
    assert_ok(await fs.write(target, pattern(26)))
    assert_ok(await fs.flush_object(target))

    past_end = assert_err(await fs.read(target, 20, 7))
    assert past_end.code is ErrorCode.FS_INVALID_RANGE
    assert past_end.context["size"] == 26

    assert assert_err(await fs.read(target, -1, 2)).code is ErrorCode.FS_INVALID_RANGE
    assert assert_err(await fs.read(target, 0, -1)).code is ErrorCode.FS_INVALID_RANGE
    assert assert_ok(await fs.read(target, 26, 0)) == b""
    assert transport.get_calls == 0

    assert assert_ok(await fs.read(target, 25, 1)) == b"z"
    assert transport.get_calls == 1


@pytest.mark.asyncio
async def test_read_missing_object_is_not_found(make_fs):
    fs = await make_fs()

    assert assert_err(await fs.read(uri("missing"), 0, 1)).code is ErrorCode.FS_NOT_FOUND
    assert assert_err(await fs.object_size(uri("missing"))).code is ErrorCode.FS_NOT_FOUND


@pytest.mark.asyncio
async def test_short_ranged_get_is_transport_failure(make_fs, transport):
    fs = await make_fs()
    target = uri("short")
    assert_ok(await fs.write(target, pattern(26)))
    assert_ok(await fs.flush_object(target))

    transport.short_reads = True
    error = assert_err(await fs.read(target, 0, 10))

    assert error.code is ErrorCode.FS_TRANSPORT_FAILURE


@pytest.mark.asyncio
async def test_head_failure_is_transport_failure(make_fs, transport):
    fs = await make_fs()
    transport.fail_head = True

    assert assert_err(await fs.is_object(uri("any"))).code is ErrorCode.FS_TRANSPORT_FAILURE


@pytest.mark.asyncio
async def test_read_into_fills_buffer_only_on_success(make_fs):
    fs = await make_fs()
    target = uri("into")
    assert_ok(await fs.write(target, pattern(26)))
    assert_ok(await fs.flush_object(target))

    buffer = bytearray(5)
    assert assert_ok(await fs.read_into(target, 3, buffer)) == 5
    assert bytes(buffer) == b"defgh"

    oversized = bytearray(b"#" * 30)
    assert assert_err(await fs.read_into(target, 0, oversized)).code is ErrorCode.FS_INVALID_RANGE
    assert oversized == bytearray(b"#" * 30)


# =============================================================================
# FAILED SESSIONS
# =============================================================================

@pytest.mark.asyncio
async def test_failed_put_reports_once_then_forgets(make_fs, transport):
    fs = await make_fs(use_multipart_upload=False, multipart_part_size=1024)
    target = uri("failed_put")
    transport.fail_put = True

    assert_ok(await fs.write(target, b"doomed"))
    error = assert_err(await fs.flush_object(target))

    assert error.code is ErrorCode.FS_TRANSPORT_FAILURE
    assert error.cause.code is ErrorCode.TRANSPORT_REQUEST_FAILED
    assert fs.session_state(target) is EntryState.FAILED
    assert assert_ok(await fs.is_object(target)) is False

    again = assert_err(await fs.flush_object(target))
    assert again.code is ErrorCode.FS_SESSION_FAILED
    assert again.cause.error_id == error.error_id

    assert_ok(await fs.flush_object(target))
    assert fs.open_sessions == 0


@pytest.mark.asyncio
async def test_write_after_failure_starts_fresh_session(make_fs, transport):
    fs = await make_fs(use_multipart_upload=False, multipart_part_size=1024)
    target = uri("retry")

    transport.fail_put = True
    assert_ok(await fs.write(target, b"lost"))
    assert_err(await fs.flush_object(target))

    transport.fail_put = False
    assert_ok(await fs.write(target, b"kept"))
    assert fs.session_state(target) is EntryState.BUFFERING
    assert_ok(await fs.flush_object(target))

    assert assert_ok(await fs.read(target, 0, 4)) == b"kept"


# =============================================================================
# URIS AND LIFECYCLE
# =============================================================================

@pytest.mark.asyncio
@pytest.mark.parametrize(
    "bad_uri",
    ["http://bucket/key", "s3:///key", "no-scheme/key", BUCKET_URI, f"{BUCKET_URI}/dir/"],
)
async def test_invalid_uris_are_rejected(make_fs, bad_uri):
    fs = await make_fs()

    assert assert_err(await fs.write(bad_uri, b"x")).code is ErrorCode.FS_INVALID_URI
    assert assert_err(await fs.is_object(bad_uri)).code is ErrorCode.FS_INVALID_URI


@pytest.mark.asyncio
async def test_uris_are_normalised_and_case_sensitive(make_fs):
    fs = await make_fs()

    assert_ok(await fs.write(f"s3://{BUCKET}//dir//file", b"payload"))
    assert_ok(await fs.flush_object(f"S3://{BUCKET}/dir/file"))

    assert assert_ok(await fs.is_object(ObjectUri(BUCKET, "dir/file"))) is True
    assert assert_ok(await fs.is_object(uri("DIR/file"))) is False


@pytest.mark.asyncio
async def test_operations_require_init(pool):
    fs = S3FileSystem()

    assert assert_err(await fs.write(uri("x"), b"x")).code is ErrorCode.FS_NOT_INITIALIZED
    assert assert_err(await fs.is_object(uri("x"))).code is ErrorCode.FS_NOT_INITIALIZED

    stopped = UploadPool(size=1)
    params = S3Params(backend=BackendType.IN_MEMORY)
    assert assert_err(await fs.init(params, stopped)).code is ErrorCode.FS_NOT_INITIALIZED


@pytest.mark.asyncio
async def test_disconnect_flushes_open_sessions(make_fs, transport):
    fs = await make_fs(use_multipart_upload=False, multipart_part_size=1024)
    assert_ok(await fs.write(uri("d1"), b"one"))
    assert_ok(await fs.write(uri("d2"), b"two"))

    assert_ok(await fs.disconnect())

    assert not fs.is_initialized
    assert assert_err(await fs.read(uri("d1"), 0, 3)).code is ErrorCode.FS_NOT_INITIALIZED

    assert_ok(await transport.connect())
    assert assert_ok(await transport.head_object(ObjectUri(BUCKET, "d1"))).size_bytes == 3
    assert assert_ok(await transport.head_object(ObjectUri(BUCKET, "d2"))).size_bytes == 3


@pytest.mark.asyncio
async def test_disconnect_reports_first_failure(make_fs, transport):
    fs = await make_fs(use_multipart_upload=False, multipart_part_size=1024)
    assert_ok(await fs.write(uri("bad"), b"data"))
    transport.fail_put = True

    error = assert_err(await fs.disconnect())

    assert error.code is ErrorCode.FS_TRANSPORT_FAILURE
    assert not fs.is_initialized


# =============================================================================
# OBJECT MANAGEMENT AND BUCKETS
# =============================================================================

@pytest.mark.asyncio
async def test_touch_creates_empty_object_once(make_fs):
    fs = await make_fs()
    empty, existing = uri("touched"), uri("existing")

    assert_ok(await fs.touch(empty))
    assert assert_ok(await fs.is_object(empty)) is True
    assert assert_ok(await fs.object_size(empty)) == 0

    assert_ok(await fs.write(existing, b"abc"))
    assert_ok(await fs.flush_object(existing))
    assert_ok(await fs.touch(existing))
    assert assert_ok(await fs.object_size(existing)) == 3


@pytest.mark.asyncio
async def test_remove_object(make_fs):
    fs = await make_fs()
    target, buffered_only = uri("doomed"), uri("buffered_only")

    assert_ok(await fs.write(target, b"abc"))
    assert_ok(await fs.flush_object(target))
    assert_ok(await fs.remove_object(target))
    assert assert_ok(await fs.is_object(target)) is False
    assert assert_err(await fs.remove_object(target)).code is ErrorCode.FS_NOT_FOUND

    assert_ok(await fs.write(buffered_only, b"abc"))
    assert assert_err(await fs.remove_object(buffered_only)).code is ErrorCode.FS_NOT_FOUND
    assert fs.session_state(buffered_only) is None
    assert_ok(await fs.flush_object(buffered_only))
    assert assert_ok(await fs.is_object(buffered_only)) is False


@pytest.mark.asyncio
async def test_ls_lists_finalized_objects_under_prefix(make_fs):
    fs = await make_fs()
    for name in ("a/1", "a/2", "b/1"):
        assert_ok(await fs.write(uri(name), name.encode()))
        assert_ok(await fs.flush_object(uri(name)))
    assert_ok(await fs.write(uri("a/unflushed"), b"x"))

    listed = assert_ok(await fs.ls(uri("a/")))
    assert [str(u) for u in listed] == [uri("a/1"), uri("a/2")]
    assert len(assert_ok(await fs.ls(BUCKET_URI))) == 3


@pytest.mark.asyncio
async def test_bucket_passthroughs(make_fs):
    fs = await make_fs()
    other = "s3://objectfs-other"

    assert assert_ok(await fs.is_bucket(BUCKET_URI)) is True
    assert assert_ok(await fs.is_bucket(other)) is False
    assert assert_err(await fs.is_bucket(uri("key"))).code is ErrorCode.FS_INVALID_URI

    assert_ok(await fs.create_bucket(other))
    assert assert_ok(await fs.is_empty_bucket(other)) is True

    assert_ok(await fs.write(f"{other}/obj", b"data"))
    assert_ok(await fs.flush_object(f"{other}/obj"))
    assert assert_ok(await fs.is_empty_bucket(other)) is False
    assert assert_err(await fs.remove_bucket(other)).code is ErrorCode.FS_TRANSPORT_FAILURE

    assert_ok(await fs.empty_bucket(other))
    assert assert_ok(await fs.is_empty_bucket(other)) is True
    assert_ok(await fs.remove_bucket(other))
    assert assert_ok(await fs.is_bucket(other)) is False
