"""RESYNC_ALL task handler."""

import logging

from lmsbridge.application.services.membership_synchronizer import (
    MembershipSynchronizer,
)
from lmsbridge.domain.entities import Task, TaskType
from lmsbridge.infrastructure.tasks.dispatcher import task_handler

logger = logging.getLogger(__name__)


class ResyncTaskHandler:
    """Handler for RESYNC_ALL tasks.

    Reconciles every bound channel. Channel failures are counted by the
    synchronizer and do not fail the task.
    """

    def __init__(self, synchronizer: MembershipSynchronizer) -> None:
        self._synchronizer = synchronizer

    @task_handler(TaskType.RESYNC_ALL)
    async def handle(self, task: Task) -> None:
        logger.info("Handling RESYNC_ALL task")
        await self._synchronizer.synchronize_all()
