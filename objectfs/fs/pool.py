"""
Upload Pool: Shared Execution Substrate for Part Uploads

A fixed-size pool of asyncio tasks shared by every filesystem instance in
the process. The pool is explicitly sized and initialised before first
use and released by whoever created it; filesystems only borrow it.

Lifecycle:
    pool = UploadPool(size=8)
    await pool.init()
    ...                       # S3FileSystem.init(params, pool)
    await pool.shutdown()     # cancels work that has not finished

or:
    async with UploadPool(size=8) as pool:
        ...
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Set, TypeVar

from objectfs.core import constants as C

logger = logging.getLogger(__name__)

T = TypeVar("T")


class UploadPool:
    """
    Bounded "submit work, await completion" pool.

    At most ``size`` submitted callables run at once; the rest wait for a
    slot in submission order.
    """

    __slots__ = ("_size", "_slots", "_tasks", "_running")

    def __init__(self, size: int = C.DEFAULT_POOL_SIZE) -> None:
        if size <= 0:
            raise ValueError(f"size must be > 0, got {size}")
        self._size = size
        self._slots: Optional[asyncio.Semaphore] = None
        self._tasks: Set[asyncio.Task[Any]] = set()
        self._running = False

    async def init(self) -> None:
        """Create the worker slots. Idempotent."""
        if self._running:
            return
        self._slots = asyncio.Semaphore(self._size)
        self._running = True
        logger.debug("Upload pool started with %d slots", self._size)

    def submit(self, fn: Callable[..., Awaitable[T]], *args: Any) -> asyncio.Task[T]:
        """
        Schedule ``fn(*args)`` on the pool.

        Raises:
            RuntimeError: If the pool is not initialised or already shut down.
        """
        if not self._running or self._slots is None:
            raise RuntimeError("UploadPool is not running; call init() first")

        slots = self._slots

        async def run() -> T:
            async with slots:
                return await fn(*args)

        task = asyncio.get_running_loop().create_task(run())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def shutdown(self) -> None:
        """
        Stop accepting work and cancel everything still outstanding.

        Safe to call multiple times.
        """
        if not self._running:
            return
        self._running = False

        outstanding = list(self._tasks)
        for task in outstanding:
            task.cancel()
        if outstanding:
            await asyncio.gather(*outstanding, return_exceptions=True)
            logger.info("Upload pool shut down, cancelled %d outstanding tasks", len(outstanding))

        self._tasks.clear()
        self._slots = None

    async def __aenter__(self) -> UploadPool:
        await self.init()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.shutdown()

    @property
    def size(self) -> int:
        return self._size

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def in_flight(self) -> int:
        """Submitted tasks that have not finished (running or waiting)."""
        return len(self._tasks)
