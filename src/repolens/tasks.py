"""Bounded background task queue for fire-and-forget refreshes.

Callers hand over a coroutine factory and return immediately. Jobs run on a
small pool of asyncio worker tasks; a job's exception is logged and recorded
on the queue's error channel and never reaches the submitting caller. When the
queue is full the new job is dropped with a warning rather than blocking.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger(__name__)

Job = Callable[[], Awaitable[Any]]


@dataclass
class TaskFailure:
    """One failed background job."""

    name: str
    error: BaseException
    failed_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class BackgroundTasks:
    """Run submitted jobs off the caller's path on the current event loop.

    Args:
        max_pending: Jobs that may wait in the queue; further submits are dropped.
        workers:     Jobs executed concurrently.
        on_error:    Optional callback invoked with each TaskFailure.
        max_errors:  Failures kept in ``errors`` (oldest discarded first).
    """

    def __init__(
        self,
        max_pending: int = 16,
        workers: int = 2,
        on_error: Callable[[TaskFailure], None] | None = None,
        max_errors: int = 100,
    ) -> None:
        if workers < 1:
            raise ValueError("workers must be >= 1")
        self._queue: asyncio.Queue[tuple[str, Job]] = asyncio.Queue(maxsize=max_pending)
        self._n_workers = workers
        self._workers: list[asyncio.Task] = []
        self._on_error = on_error
        self.errors: deque[TaskFailure] = deque(maxlen=max_errors)

    def submit(self, job: Job, name: str = "job") -> bool:
        """Queue *job* without waiting. Returns False if the queue was full.

        Must be called from a running event loop.
        """
        self._ensure_workers()
        try:
            self._queue.put_nowait((name, job))
        except asyncio.QueueFull:
            logger.warning("Background queue full; dropping %s", name)
            return False
        logger.debug("Queued background job %s", name)
        return True

    async def drain(self) -> None:
        """Wait until every queued job has finished."""
        await self._queue.join()

    async def close(self) -> None:
        """Finish queued jobs, then stop the workers."""
        if self._workers:
            await self.drain()
        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers.clear()

    def _ensure_workers(self) -> None:
        self._workers = [w for w in self._workers if not w.done()]
        while len(self._workers) < self._n_workers:
            index = len(self._workers)
            self._workers.append(
                asyncio.create_task(self._worker(), name=f"repolens-bg-{index}")
            )

    async def _worker(self) -> None:
        while True:
            name, job = await self._queue.get()
            try:
                await job()
            except Exception as exc:
                logger.error("Background job %s failed", name, exc_info=exc)
                failure = TaskFailure(name=name, error=exc)
                self.errors.append(failure)
                if self._on_error is not None:
                    try:
                        self._on_error(failure)
                    except Exception:
                        logger.exception("on_error callback failed for %s", name)
            finally:
                self._queue.task_done()
