"""Task processing loop."""

import asyncio
import logging

from lmsbridge.domain.entities import Task
from lmsbridge.infrastructure.tasks.dispatcher import TaskDispatcher
from lmsbridge.infrastructure.tasks.queue import InMemoryTaskQueue

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_RETRY_DELAY_SECONDS = 30.0


class TaskLoop:
    """Runs queued tasks one at a time.

    A task whose handler raises is queued again after retry_delay seconds
    until it has failed max_attempts times, then dropped.
    """

    def __init__(
        self,
        queue: InMemoryTaskQueue,
        dispatcher: TaskDispatcher,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        retry_delay: float = DEFAULT_RETRY_DELAY_SECONDS,
    ) -> None:
        """Initialize the loop.

        Args:
            queue: Queue to read tasks from.
            dispatcher: Dispatcher that runs each task.
            max_attempts: Executions allowed per task.
            retry_delay: Seconds to wait before a retry.
        """
        self._queue = queue
        self._dispatcher = dispatcher
        self._max_attempts = max_attempts
        self._retry_delay = retry_delay
        self._stopped = asyncio.Event()
        self._stopped.set()

    async def start(self) -> None:
        """Process tasks until stop() is called."""
        if not self._stopped.is_set():
            logger.warning("TaskLoop already running")
            return

        self._stopped.clear()
        logger.info("TaskLoop started")

        while not self._stopped.is_set():
            try:
                try:
                    task = await asyncio.wait_for(self._queue.dequeue(), timeout=1.0)
                except asyncio.TimeoutError:
                    continue
                await self.run_task(task)
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Error in task loop")

        logger.info("TaskLoop stopped")

    async def run_task(self, task: Task) -> None:
        """Run one dequeued task, scheduling a retry when it fails."""
        logger.debug("Running task %s", task.get_identity_key())
        self._queue.mark_processing(task)
        try:
            await self._dispatcher.dispatch(task)
        except Exception:
            logger.exception(
                "Task %s failed (attempt %d/%d)",
                task.get_identity_key(),
                task.attempt + 1,
                self._max_attempts,
            )
            await self._retry(task)
        finally:
            self._queue.mark_done(task)

    async def _retry(self, task: Task) -> None:
        retry = task.next_attempt()
        if retry.attempt >= self._max_attempts:
            logger.error("Giving up task %s", task.get_identity_key())
            return
        await self._queue.enqueue(retry, delay=self._retry_delay)

    async def stop(self) -> None:
        """Stop the loop and drop waiting tasks."""
        logger.info("Stopping TaskLoop")
        self._stopped.set()
        self._queue.clear()

    @property
    def is_running(self) -> bool:
        return not self._stopped.is_set()
