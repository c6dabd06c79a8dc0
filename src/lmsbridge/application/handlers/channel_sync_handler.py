"""SYNCHRONIZE_CHANNEL task handler."""

import logging

from lmsbridge.application.services.membership_synchronizer import (
    MembershipSynchronizer,
)
from lmsbridge.domain.entities import Task, TaskType
from lmsbridge.domain.exceptions import BindingNotFoundError
from lmsbridge.infrastructure.tasks.dispatcher import task_handler

logger = logging.getLogger(__name__)


class ChannelSyncTaskHandler:
    """Handler for SYNCHRONIZE_CHANNEL tasks.

    Runs a full reconciliation pass over one channel.
    """

    def __init__(self, synchronizer: MembershipSynchronizer) -> None:
        """Initialize the handler.

        Args:
            synchronizer: Membership synchronizer.
        """
        self._synchronizer = synchronizer

    @task_handler(TaskType.SYNCHRONIZE_CHANNEL)
    async def handle(self, task: Task) -> None:
        """Handle a SYNCHRONIZE_CHANNEL task.

        A channel that lost its binding since the task was queued is
        skipped. Any other error propagates so the task is retried.
        """
        channel_id = task.payload["channel_id"]
        try:
            await self._synchronizer.synchronize_channel(channel_id)
        except BindingNotFoundError:
            logger.info("Channel %s is no longer bound, skipping", channel_id)
