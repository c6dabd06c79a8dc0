"""Task dispatcher."""

import logging
from collections.abc import Awaitable, Callable

from lmsbridge.domain.entities import Task, TaskType

logger = logging.getLogger(__name__)

TaskHandler = Callable[[Task], Awaitable[None]]


def task_handler(task_type: TaskType) -> Callable[[TaskHandler], TaskHandler]:
    """Decorator marking a coroutine as the handler of a task type.

    Usage:
        @task_handler(TaskType.SYNCHRONIZE_CHANNEL)
        async def handle(task: Task) -> None:
            ...
    """

    def decorator(func: TaskHandler) -> TaskHandler:
        func._task_type = task_type  # type: ignore[attr-defined]
        return func

    return decorator


class TaskDispatcher:
    """Routes tasks to their handler.

    Each task type has exactly one handler. Handler exceptions propagate to
    the caller so that the loop can schedule a retry.
    """

    def __init__(self) -> None:
        self._handlers: dict[TaskType, TaskHandler] = {}

    def register(self, task_type: TaskType, handler: TaskHandler) -> None:
        """Register the handler of a task type.

        Raises:
            ValueError: If the type already has a handler.
        """
        if task_type in self._handlers:
            raise ValueError(f"Handler for {task_type.value} is already registered")
        self._handlers[task_type] = handler
        logger.debug(
            "Registered handler for %s: %s",
            task_type.value,
            getattr(handler, "__name__", str(handler)),
        )

    def register_handler(self, handler: TaskHandler) -> None:
        """Register a handler decorated with @task_handler.

        Raises:
            ValueError: If the handler was not decorated.
        """
        task_type = getattr(handler, "_task_type", None)
        if task_type is None:
            raise ValueError(
                f"Handler {getattr(handler, '__name__', str(handler))} "
                "has no _task_type attribute. Use the @task_handler decorator."
            )
        self.register(task_type, handler)

    def has_handler(self, task_type: TaskType) -> bool:
        return task_type in self._handlers

    async def dispatch(self, task: Task) -> None:
        """Run the handler of a task.

        Tasks without a handler are logged and dropped.
        """
        handler = self._handlers.get(task.type)
        if handler is None:
            logger.warning("No handler registered for task type: %s", task.type.value)
            return
        await handler(task)
