"""Shared fixtures for objectfs tests."""

from __future__ import annotations

from typing import Any, Optional

import pytest_asyncio

from objectfs.core.config import BackendType, S3Params
from objectfs.fs import S3FileSystem, UploadPool
from objectfs.storage.protocols import ObjectTransport
from objectfs.tests.helpers import BUCKET, FaultyTransport, assert_ok



@pytest_asyncio.fixture
async def pool():
    """Initialised upload pool, shut down after the test."""
    async with UploadPool(size=4) as upload_pool:
        yield upload_pool


@pytest_asyncio.fixture
async def transport() -> FaultyTransport:
    """In-memory transport with the test bucket, wrapped for fault injection."""
    faulty = FaultyTransport()
    assert_ok(await faulty.connect())
    assert_ok(await faulty.create_bucket(BUCKET))
    return faulty


@pytest_asyncio.fixture
async def make_fs(pool: UploadPool, transport: FaultyTransport):
    """
    Factory for initialised filesystems sharing ``pool`` and ``transport``.

    Keyword arguments override S3Params fields.
    """
    async def factory(target: Optional[ObjectTransport] = None, **overrides: Any) -> S3FileSystem:
        params = S3Params(backend=BackendType.IN_MEMORY, **overrides)
        fs = S3FileSystem()
        assert_ok(await fs.init(params, pool, target if target is not None else transport))
        return fs

    return factory
