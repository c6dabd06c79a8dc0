"""Deferred task infrastructure."""

from lmsbridge.infrastructure.tasks.dispatcher import TaskDispatcher, task_handler
from lmsbridge.infrastructure.tasks.loop import TaskLoop
from lmsbridge.infrastructure.tasks.queue import InMemoryTaskQueue
from lmsbridge.infrastructure.tasks.scheduler import TaskScheduler

__all__ = [
    "InMemoryTaskQueue",
    "TaskDispatcher",
    "TaskLoop",
    "TaskScheduler",
    "task_handler",
]
