#!/usr/bin/env python3
"""
Buffered Object-Storage Filesystem

Demo: writes a 6 MiB and a 1 MiB file of the repeating a..z pattern,
checks visibility before and after flush, reads at two offsets and shows
the capacity limit of single-PUT mode.

Usage:
    python -m objectfs

    # Against MinIO
    OBJECTFS_S3_BACKEND=s3 OBJECTFS_S3_ENDPOINT_OVERRIDE=localhost:9000 \\
    OBJECTFS_S3_SCHEME=http OBJECTFS_S3_USE_VIRTUAL_ADDRESSING=false \\
    AWS_ACCESS_KEY_ID=minio AWS_SECRET_ACCESS_KEY=miniosecret python -m objectfs
"""

from __future__ import annotations

import asyncio
import dataclasses
import os
import sys
from uuid import uuid4

from objectfs.core import constants as C
from objectfs.core.config import BackendType, ObjectFSConfig
from objectfs.fs import S3FileSystem, UploadPool
from objectfs.observability.logging import LogLevel, setup_logging
from objectfs.storage import create_transport

PATTERN = b"abcdefghijklmnopqrstuvwxyz"


def pattern(size: int) -> bytes:
    """``size`` bytes of the repeating a..z pattern."""
    repeats = size // len(PATTERN) + 1
    return (PATTERN * repeats)[:size]


def fail(message: str) -> None:
    print(f"✗ {message}")
    sys.exit(1)


async def demo() -> None:
    print("\n" + "=" * 60)
    print("Buffered Object-Storage Filesystem - Demo")
    print("=" * 60 + "\n")

    if "OBJECTFS_S3_BACKEND" not in os.environ:
        os.environ["OBJECTFS_S3_BACKEND"] = BackendType.IN_MEMORY.value

    config_result = ObjectFSConfig.from_env()
    if config_result.is_err():
        fail(config_result.error)
    config = config_result.unwrap()

    validation = config.validate()
    if validation.is_err():
        fail(f"Validation error: {validation.error}")

    setup_logging(LogLevel.from_name(config.log_level), json_output=config.log_json)

    print("✓ Configuration loaded and validated")
    print(f"  Backend: {config.s3.backend.value}")
    print(f"  Multipart: {config.s3.use_multipart_upload} (part size {config.s3.multipart_part_size} B)")

    bucket = f"s3://objectfs-demo-{uuid4().hex[:8]}"
    largefile = f"{bucket}/largefile"
    smallfile = f"{bucket}/smallfile"

    async with UploadPool(size=config.pool_size) as pool:
        fs = S3FileSystem()
        transport = create_transport(config.s3)
        init = await fs.init(config.s3, pool, transport)
        if init.is_err():
            fail(f"Init error: {init.error}")

        await fs.create_bucket(bucket)
        print(f"\n✓ Created bucket {bucket}")

        for uri, chunks in ((largefile, (5 * C.MB, 1 * C.MB)), (smallfile, (1 * C.MB,))):
            for size in chunks:
                written = await fs.write(uri, pattern(size))
                if written.is_err():
                    fail(f"Write error: {written.error}")

        before = [(await fs.is_object(uri)).unwrap() for uri in (largefile, smallfile)]
        print(f"✓ Before flush: is_object = {before}")

        for uri in (largefile, smallfile):
            flushed = await fs.flush_object(uri)
            if flushed.is_err():
                fail(f"Flush error: {flushed.error}")

        after = [(await fs.is_object(uri)).unwrap() for uri in (largefile, smallfile)]
        print(f"✓ After flush:  is_object = {after}")
        print(f"  largefile: {(await fs.object_size(largefile)).unwrap()} B")
        print(f"  smallfile: {(await fs.object_size(smallfile)).unwrap()} B")

        for offset in (0, 11):
            data = (await fs.read(largefile, offset, len(PATTERN))).unwrap()
            print(f"  read(largefile, {offset}, 26) = {data.decode()}")

        limited = S3FileSystem()
        limited_params = dataclasses.replace(
            config.s3, use_multipart_upload=False, multipart_part_size=10 * 1000 * 1000
        )
        await limited.init(limited_params, pool, transport)
        too_big = await limited.write(f"{bucket}/too_big", pattern(11 * 1000 * 1000))
        print(f"\n✓ 11 MB write with a 10 MB single-PUT limit rejected: {too_big.is_err()}")
        if too_big.is_err():
            print(f"  {too_big.error}")

        metrics = transport.metrics.snapshot()
        print(
            f"\n✓ Transfers: {metrics['put_count']} PUT, {metrics['part_count']} parts, "
            f"{metrics['complete_count']} completions, {metrics['bytes_uploaded']} B up"
        )

        await fs.empty_bucket(bucket)
        await fs.remove_bucket(bucket)
        await fs.disconnect()

    print("\n✓ Demo complete")
    print("=" * 60 + "\n")


async def main() -> None:
    """Main entry point."""
    try:
        await demo()
    except KeyboardInterrupt:
        print("\nInterrupted")


def run() -> None:
    """Synchronous entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
