"""User-level task handlers."""

import logging

from lmsbridge.application.services.event_router import delete_remote_account
from lmsbridge.application.services.membership_synchronizer import (
    MembershipSynchronizer,
)
from lmsbridge.domain.entities import Task, TaskType
from lmsbridge.domain.services import RemoteChannelService
from lmsbridge.infrastructure.tasks.dispatcher import task_handler

logger = logging.getLogger(__name__)


class UserSyncTaskHandler:
    """Handler for SYNCHRONIZE_USER tasks."""

    def __init__(self, synchronizer: MembershipSynchronizer) -> None:
        self._synchronizer = synchronizer

    @task_handler(TaskType.SYNCHRONIZE_USER)
    async def handle(self, task: Task) -> None:
        user_id = int(task.payload["user_id"])
        course_id = task.payload.get("course_id")
        result = await self._synchronizer.synchronize_user(
            user_id, int(course_id) if course_id is not None else None
        )
        logger.debug(
            "Synchronized user %d: mutations=%d failed=%d",
            user_id,
            result.mutations,
            result.failed,
        )


class UnenrolUserTaskHandler:
    """Handler for UNENROL_USER_EVERYWHERE tasks.

    Removes a suspended or deleted user from every channel and, for a
    deleted user, deletes the remote account.
    """

    def __init__(
        self,
        synchronizer: MembershipSynchronizer,
        remote: RemoteChannelService,
    ) -> None:
        """Initialize the handler.

        Args:
            synchronizer: Membership synchronizer.
            remote: Remote chat server operations (account deletion).
        """
        self._synchronizer = synchronizer
        self._remote = remote

    @task_handler(TaskType.UNENROL_USER_EVERYWHERE)
    async def handle(self, task: Task) -> None:
        user_id = int(task.payload["user_id"])
        await self._synchronizer.unenroll_user_everywhere(user_id)
        if task.payload.get("delete_account"):
            await delete_remote_account(self._remote, user_id)
