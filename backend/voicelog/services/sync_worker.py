"""
Background worker that drains queued record ids into a sync handler.

Record creation enqueues ids without waiting. The worker runs a fixed number
of consumer tasks on the event loop; ``join`` waits until everything queued
so far has been handled, which is what tests use instead of sleeping.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

SyncHandler = Callable[[str], Awaitable[Any]]


class SyncWorker:
    """Queue plus consumer tasks with an explicit start/stop lifecycle."""

    def __init__(
        self,
        handler: SyncHandler,
        *,
        concurrency: int = 4,
        name: str = "sync-worker",
    ) -> None:
        """Initialize the worker.

        Args:
            handler: Coroutine function called with each record id
            concurrency: Number of consumer tasks
            name: Prefix for task names in logs
        """
        self._handler = handler
        self._concurrency = max(1, concurrency)
        self._name = name
        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._tasks: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def start(self) -> None:
        """Start the consumer tasks on the running loop."""
        if self.running:
            logger.warning(f"{self._name} already running")
            return

        self._tasks = [
            asyncio.create_task(self._consume(), name=f"{self._name}-{index}")
            for index in range(self._concurrency)
        ]
        logger.info(f"{self._name} started with {self._concurrency} consumer(s)")

    def enqueue(self, record_id: str) -> None:
        """Queue a record id. Never blocks."""
        self._queue.put_nowait(record_id)
        if not self.running:
            logger.debug(f"{self._name} not running; record {record_id} queued until start")

    async def join(self, timeout: Optional[float] = None) -> None:
        """Wait until every queued id has been handled."""
        if timeout is None:
            await self._queue.join()
        else:
            await asyncio.wait_for(self._queue.join(), timeout=timeout)

    async def stop(self, *, drain: bool = False) -> None:
        """Stop the consumer tasks.

        Args:
            drain: Handle everything already queued before stopping
        """
        if not self.running:
            return
        if drain:
            await self.join()

        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info(f"{self._name} stopped ({self.pending} id(s) left in queue)")

    async def _consume(self) -> None:
        while True:
            record_id = await self._queue.get()
            try:
                await self._handler(record_id)
            except Exception as exc:
                logger.exception(f"{self._name} handler failed for record {record_id}: {exc}")
            finally:
                self._queue.task_done()
