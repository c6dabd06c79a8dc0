"""In-memory deferred task queue."""

import asyncio
import logging

from lmsbridge.domain.entities import Task

logger = logging.getLogger(__name__)


class InMemoryTaskQueue:
    """asyncio task queue with coalescing and delayed enqueue.

    Features:
    - Coalescing: a task whose identity key is already waiting replaces the
      waiting one, so a burst of triggers for one channel or user runs once.
    - Delayed enqueue: a task can become visible only after a delay; a newer
      task with the same key cancels the delayed one.
    - A task already running does not block a new one with the same key,
      which then runs afterwards against fresher state.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Task] = asyncio.Queue()
        # identity_key -> latest task waiting in _queue
        self._pending: dict[str, Task] = {}
        self._running: set[str] = set()
        self._delayed: dict[str, asyncio.Task[None]] = {}

    async def enqueue(self, task: Task, delay: float | None = None) -> None:
        """Add a task to the queue.

        Args:
            task: The task to run.
            delay: Optional delay in seconds before the task becomes visible.
        """
        key = task.get_identity_key()

        waiting = self._delayed.pop(key, None)
        if waiting is not None:
            waiting.cancel()
            try:
                await waiting
            except asyncio.CancelledError:
                pass
            logger.debug("Cancelled delayed task %s", key)

        if key in self._pending:
            logger.debug("Coalescing task %s", key)

        if delay is not None and delay > 0:
            self._delayed[key] = asyncio.create_task(self._enqueue_later(task, delay))
            return
        self._put(task)

    def _put(self, task: Task) -> None:
        # Stale entries stay in the asyncio queue and are skipped on dequeue.
        self._pending[task.get_identity_key()] = task
        self._queue.put_nowait(task)

    async def _enqueue_later(self, task: Task, delay: float) -> None:
        key = task.get_identity_key()
        try:
            await asyncio.sleep(delay)
            self._put(task)
            logger.debug("Delayed task %s is now queued", key)
        finally:
            self._delayed.pop(key, None)

    async def dequeue(self) -> Task:
        """Wait for the next current task.

        Tasks that were replaced by a newer task with the same identity key
        are dropped.
        """
        while True:
            task = await self._queue.get()
            if self._pending.get(task.get_identity_key()) is task:
                return task
            self._queue.task_done()

    def mark_processing(self, task: Task) -> None:
        """Move a dequeued task from waiting to running."""
        key = task.get_identity_key()
        self._pending.pop(key, None)
        self._running.add(key)

    def mark_done(self, task: Task) -> None:
        """Mark a running task as finished."""
        self._running.discard(task.get_identity_key())
        self._queue.task_done()

    @property
    def pending_count(self) -> int:
        """Number of tasks waiting to run (delayed tasks excluded)."""
        return len(self._pending)

    def is_running(self, task: Task) -> bool:
        return task.get_identity_key() in self._running

    def clear(self) -> None:
        """Drop every waiting and delayed task."""
        for delayed in self._delayed.values():
            delayed.cancel()
        self._delayed.clear()
        self._pending.clear()
        self._running.clear()
        logger.info("Task queue cleared")
