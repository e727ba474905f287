"""Fixed-concurrency FIFO task queue.

A fixed number of worker tasks pull submitted jobs off one asyncio.Queue, so
jobs start strictly in submission order and never more than ``limit`` run at
the same time. Jobs may finish in any order.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from psy_schedule.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

Job = tuple[Callable[[], Awaitable[Any]], "asyncio.Future[Any]"]


class ConcurrencyGate:
    """Bounds how many fetch tasks execute at once."""

    def __init__(self, limit: int) -> None:
        if limit < 1:
            raise ValueError("limit must be at least 1")
        self.limit = limit
        self._queue: asyncio.Queue[Job] | None = None
        self._workers: list[asyncio.Task[None]] = []
        self._running = 0
        self._closed = False

    @property
    def running(self) -> int:
        """Number of jobs currently executing."""
        return self._running

    @property
    def pending(self) -> int:
        """Number of jobs waiting for a free worker."""
        return self._queue.qsize() if self._queue is not None else 0

    def submit(self, task: Callable[[], Awaitable[T]]) -> "asyncio.Future[T]":
        """Queue a coroutine factory and return a future for its result.

        Must be called from inside the running event loop. The factory is not
        called until a worker picks the job up.

        Raises:
            RuntimeError: If the gate has been closed.
        """
        if self._closed:
            raise RuntimeError("ConcurrencyGate is closed")
        self._ensure_workers()
        assert self._queue is not None

        future: asyncio.Future[T] = asyncio.get_running_loop().create_future()
        self._queue.put_nowait((task, future))
        logger.debug("gate_job_queued", pending=self.pending, running=self._running)
        return future

    def _ensure_workers(self) -> None:
        if self._workers:
            return
        self._queue = asyncio.Queue()
        self._workers = [
            asyncio.create_task(self._worker(), name=f"gate-worker-{i}")
            for i in range(self.limit)
        ]

    async def _worker(self) -> None:
        assert self._queue is not None
        while True:
            task, future = await self._queue.get()
            try:
                if future.cancelled():
                    continue
                self._running += 1
                try:
                    result = await task()
                except asyncio.CancelledError:
                    future.cancel()
                    raise
                except Exception as e:
                    if not future.done():
                        future.set_exception(e)
                else:
                    if not future.done():
                        future.set_result(result)
                finally:
                    self._running -= 1
            finally:
                self._queue.task_done()

    async def close(self) -> None:
        """Stop all workers and cancel jobs that never started."""
        self._closed = True
        for worker in self._workers:
            worker.cancel()
        if self._workers:
            await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []

        if self._queue is not None:
            while not self._queue.empty():
                _, future = self._queue.get_nowait()
                future.cancel()
                self._queue.task_done()
        logger.debug("gate_closed")
