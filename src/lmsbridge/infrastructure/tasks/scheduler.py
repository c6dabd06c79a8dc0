"""Periodic full resynchronization."""

import asyncio
import logging

from lmsbridge.domain.entities import Task, TaskType
from lmsbridge.domain.services import TaskQueue

logger = logging.getLogger(__name__)


class TaskScheduler:
    """Enqueues a RESYNC_ALL task at a fixed interval.

    The full pass heals remote drift and covers events that were lost.
    """

    def __init__(
        self,
        queue: TaskQueue,
        interval_seconds: float,
        run_on_start: bool = False,
    ) -> None:
        """Initialize the scheduler.

        Args:
            queue: Queue to enqueue into.
            interval_seconds: Seconds between two resync tasks.
            run_on_start: Whether to enqueue one immediately on start.
        """
        self._queue = queue
        self._interval = interval_seconds
        self._run_on_start = run_on_start
        self._stopped = asyncio.Event()
        self._stopped.set()

    async def start(self) -> None:
        """Run until stop() is called."""
        if not self._stopped.is_set():
            logger.warning("TaskScheduler already running")
            return

        self._stopped.clear()
        logger.info("TaskScheduler started (interval=%ss)", self._interval)

        if self._run_on_start:
            await self._enqueue_resync()

        while not self._stopped.is_set():
            try:
                try:
                    await asyncio.wait_for(self._stopped.wait(), timeout=self._interval)
                    break
                except asyncio.TimeoutError:
                    pass
                await self._enqueue_resync()
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Error in task scheduler")

        logger.info("TaskScheduler stopped")

    async def _enqueue_resync(self) -> None:
        await self._queue.enqueue(Task(type=TaskType.RESYNC_ALL, payload={}))
        logger.debug("Enqueued resync task")

    async def stop(self) -> None:
        logger.info("Stopping TaskScheduler")
        self._stopped.set()

    @property
    def is_running(self) -> bool:
        return not self._stopped.is_set()
