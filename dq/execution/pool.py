"""Bounded worker pool for isolated units of work.

The pool runs submitted coroutine factories on a fixed set of asyncio worker
tasks fed from a bounded queue. It is owned by the hosting process, started
and stopped explicitly, and handed to the components that need it.

Sizing follows a thread-pool model: ``core_workers`` stay alive for the
lifetime of the pool, additional workers up to ``max_workers`` are spawned
under load and exit after ``keep_alive`` seconds without work. Submissions
beyond ``queue_size`` are rejected.
"""

import asyncio
import contextlib
import os
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")

Job = Callable[[], Awaitable[T]]


class WorkerPoolError(Exception):
    """Base exception for worker pool failures."""

    pass


class PoolRejectedError(WorkerPoolError):
    """Raised when the work queue is full."""

    pass


class PoolShutdownError(WorkerPoolError):
    """Raised when work is submitted to, or abandoned by, a stopped pool."""

    pass


@dataclass
class _WorkItem:
    job: Job[Any]
    future: asyncio.Future[Any]


def default_max_workers() -> int:
    """Twice the number of available CPUs."""
    return (os.cpu_count() or 1) * 2


class WorkerPool:
    """A bounded pool of asyncio worker tasks.

    Attributes:
        core_workers: Workers kept alive while the pool runs.
        max_workers: Upper bound on concurrently running workers.
        queue_size: Capacity of the pending-work queue.
        keep_alive: Idle seconds after which a non-core worker exits.
        name: Prefix for worker task names.
    """

    def __init__(
        self,
        core_workers: int | None = None,
        max_workers: int | None = None,
        queue_size: int | None = None,
        keep_alive: float = 30.0,
        name: str = "dq-worker",
    ) -> None:
        self.max_workers = max_workers or default_max_workers()
        self.core_workers = (
            core_workers if core_workers is not None else max(1, self.max_workers // 2)
        )
        self.queue_size = queue_size or self.max_workers * 5
        self.keep_alive = keep_alive
        self.name = name

        if self.core_workers < 1 or self.core_workers > self.max_workers:
            raise ValueError(
                f"core_workers must be between 1 and max_workers ({self.max_workers}), "
                f"got {self.core_workers}"
            )

        self._queue: asyncio.Queue[_WorkItem] | None = None
        self._workers: set[asyncio.Task[None]] = set()
        self._idle = 0
        self._running = False
        self._counter = 0

    @property
    def is_running(self) -> bool:
        """Whether the pool accepts submissions."""
        return self._running

    @property
    def worker_count(self) -> int:
        """Number of live worker tasks."""
        return len(self._workers)

    @property
    def pending(self) -> int:
        """Number of queued, not yet started, units of work."""
        return self._queue.qsize() if self._queue is not None else 0

    async def start(self) -> None:
        """Start the core workers. Calling start on a running pool is a no-op."""
        if self._running:
            return
        self._queue = asyncio.Queue(maxsize=self.queue_size)
        self._running = True
        for _ in range(self.core_workers):
            self._spawn(core=True)
        logger.info(
            "Worker pool started",
            core_workers=self.core_workers,
            max_workers=self.max_workers,
            queue_size=self.queue_size,
        )

    async def stop(self, timeout: float = 10.0) -> None:
        """Stop accepting work and shut the workers down.

        Queued work is given up to ``timeout`` seconds to finish. Anything
        still queued afterwards fails with `PoolShutdownError`. Running work is
        cancelled and its future fails with `PoolShutdownError` as well.

        Args:
            timeout: Seconds to wait for queued work to drain.
        """
        if not self._running or self._queue is None:
            return
        self._running = False
        queue = self._queue

        try:
            await asyncio.wait_for(queue.join(), timeout)
        except TimeoutError:
            logger.warning("Worker pool did not drain in time", pending=queue.qsize())

        while not queue.empty():
            item = queue.get_nowait()
            if not item.future.done():
                item.future.set_exception(PoolShutdownError("Worker pool stopped"))
            queue.task_done()

        workers = list(self._workers)
        for worker in workers:
            worker.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        self._workers.clear()
        self._idle = 0
        logger.info("Worker pool stopped")

    def submit(self, job: Job[T]) -> asyncio.Future[T]:
        """Queue a unit of work.

        Cancelling the returned future cancels the job, whether it is still
        queued or already running.

        Args:
            job: A zero-argument callable returning an awaitable.

        Returns:
            A future resolved with the job's result or exception.

        Raises:
            PoolShutdownError: If the pool is not running.
            PoolRejectedError: If the work queue is full.
        """
        if not self._running or self._queue is None:
            raise PoolShutdownError("Worker pool is not running")

        future: asyncio.Future[T] = asyncio.get_running_loop().create_future()
        try:
            self._queue.put_nowait(_WorkItem(job=job, future=future))
        except asyncio.QueueFull as e:
            logger.warning("Worker pool rejected submission", queue_size=self.queue_size)
            raise PoolRejectedError(
                f"Work queue is full ({self.queue_size} pending units of work)"
            ) from e

        if self._idle == 0 and len(self._workers) < self.max_workers:
            self._spawn(core=False)
        return future

    def _spawn(self, core: bool) -> None:
        self._counter += 1
        task = asyncio.create_task(self._work(core), name=f"{self.name}-{self._counter}")
        self._workers.add(task)
        task.add_done_callback(self._workers.discard)

    async def _work(self, core: bool) -> None:
        assert self._queue is not None
        queue = self._queue
        while True:
            self._idle += 1
            try:
                if core:
                    item = await queue.get()
                else:
                    item = await asyncio.wait_for(queue.get(), self.keep_alive)
            except TimeoutError:
                logger.debug("Idle worker expired", worker=asyncio.current_task().get_name())
                return
            finally:
                self._idle -= 1

            try:
                await self._run(item)
            finally:
                queue.task_done()

    async def _run(self, item: _WorkItem) -> None:
        if item.future.done():
            # Cancelled while queued
            return

        task = asyncio.ensure_future(item.job())

        def _propagate_cancel(future: asyncio.Future[Any]) -> None:
            if future.cancelled():
                task.cancel()

        item.future.add_done_callback(_propagate_cancel)
        try:
            result = await task
        except asyncio.CancelledError:
            stopping = asyncio.current_task().cancelling() > 0
            if not item.future.done():
                if stopping:
                    item.future.set_exception(
                        PoolShutdownError("Worker pool stopped while the job was running")
                    )
                else:
                    item.future.cancel()
            if stopping or not task.cancelled():
                raise
            return
        except Exception as e:
            if not item.future.done():
                item.future.set_exception(e)
            return
        finally:
            item.future.remove_done_callback(_propagate_cancel)

        if not item.future.done():
            item.future.set_result(result)
