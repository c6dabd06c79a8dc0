"""Routing of LMS events to synchronization work."""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING

from lmsbridge.config import BackgroundConfig
from lmsbridge.domain.entities import (
    LmsEvent,
    LmsEventType,
    ModuleInstance,
    Task,
    TaskType,
)
from lmsbridge.domain.exceptions import UnmappedUserError
from lmsbridge.domain.services import RemoteChannelService, TaskQueue

if TYPE_CHECKING:
    from lmsbridge.application.services.membership_synchronizer import (
        MembershipSynchronizer,
    )
    from lmsbridge.application.use_cases.provision_channel import ChannelProvisioner

logger = logging.getLogger(__name__)

ROLE_EVENTS = frozenset({LmsEventType.ROLE_ASSIGNED, LmsEventType.ROLE_UNASSIGNED})
USER_UPDATE_EVENTS = frozenset(
    {LmsEventType.USER_UPDATED, LmsEventType.USER_ENROLMENT_UPDATED}
)
SYNCHRONIZE_EVENTS = frozenset(
    {
        LmsEventType.GROUP_CREATED,
        LmsEventType.GROUP_MEMBER_ADDED,
        LmsEventType.GROUP_MEMBER_REMOVED,
        LmsEventType.MODULE_UPDATED,
        LmsEventType.BIN_ITEM_RESTORED,
    }
)
# Events resolved by resynchronizing one user.
USER_SYNC_EVENTS = frozenset(
    {
        LmsEventType.ROLE_ASSIGNED,
        LmsEventType.ROLE_UNASSIGNED,
        LmsEventType.USER_ENROLMENT_UPDATED,
        LmsEventType.GROUP_MEMBER_ADDED,
        LmsEventType.GROUP_MEMBER_REMOVED,
    }
)


class RouteMode(Enum):
    """How an event was executed."""

    IMMEDIATE = "immediate"
    DEFERRED = "deferred"


async def delete_remote_account(remote: RemoteChannelService, user_id: int) -> None:
    """Delete the remote account of a deleted LMS user, if one is mapped."""
    try:
        await remote.delete_user(user_id)
    except UnmappedUserError:
        logger.debug("User %d has no remote account to delete", user_id)


def _require(value: int | None, name: str) -> int:
    if value is None:
        raise ValueError(f"Event is missing '{name}'")
    return value


class EventRouter:
    """Maps LMS events to synchronizer and provisioner calls.

    Each event runs either inline (immediate) or as a queued task (deferred).
    The choice is a static lookup: role events are deferred when their
    enrolment method is in the configured allow-list, other user-level
    events follow the background flags. Retries are left to the task loop.
    """

    def __init__(
        self,
        synchronizer: MembershipSynchronizer,
        provisioner: ChannelProvisioner,
        remote: RemoteChannelService,
        queue: TaskQueue,
        background: BackgroundConfig,
    ) -> None:
        self._synchronizer = synchronizer
        self._provisioner = provisioner
        self._remote = remote
        self._queue = queue
        self._background = background

    def is_deferred(self, event: LmsEvent) -> bool:
        """Whether the synchronization triggered by an event is deferred."""
        if event.type in ROLE_EVENTS:
            return event.trigger_source in self._background.enrolment_methods
        if event.type in USER_UPDATE_EVENTS:
            return self._background.user_update
        if event.type == LmsEventType.MODULE_CREATED:
            return self._background.add_instance
        if event.type in SYNCHRONIZE_EVENTS:
            return self._background.synchronize
        return False

    async def route(self, event: LmsEvent) -> RouteMode:
        """Execute or defer the work an event calls for.

        Raises:
            ValueError: If a field the event type needs is missing.
        """
        deferred = self.is_deferred(event)
        mode = RouteMode.DEFERRED if deferred else RouteMode.IMMEDIATE
        logger.debug("Routing %s (%s)", event.type.value, mode.value)

        if event.type in USER_SYNC_EVENTS:
            await self._synchronize_user(
                _require(event.user_id, "user_id"), event.course_id, deferred
            )
        elif event.type == LmsEventType.USER_UPDATED:
            await self._user_updated(event, deferred)
        elif event.type == LmsEventType.GROUP_CREATED:
            await self._provisioner.create_group_channel(
                _require(event.course_id, "course_id"),
                _require(event.group_id, "group_id"),
                background=deferred,
            )
        elif event.type == LmsEventType.GROUP_DELETED:
            await self._provisioner.delete_group(_require(event.group_id, "group_id"))
        elif event.type == LmsEventType.MODULE_CREATED:
            instance = ModuleInstance(
                id=_require(event.instance_id, "instance_id"),
                course_id=_require(event.course_id, "course_id"),
                admin_role_ids=event.admin_role_ids or frozenset(),
                member_role_ids=event.member_role_ids or frozenset(),
                visible=event.visible if event.visible is not None else True,
            )
            await self._provisioner.provision_instance(
                instance, creator_user_id=event.actor_id, background=deferred
            )
        elif event.type == LmsEventType.MODULE_UPDATED:
            await self._provisioner.update_instance(
                _require(event.instance_id, "instance_id"),
                visible=event.visible,
                admin_role_ids=event.admin_role_ids,
                member_role_ids=event.member_role_ids,
                background=deferred,
            )
        elif event.type == LmsEventType.MODULE_DELETED:
            await self._provisioner.delete_instance(
                _require(event.instance_id, "instance_id")
            )
        elif event.type == LmsEventType.BIN_ITEM_CREATED:
            await self._provisioner.bin_item_created(
                _require(event.bin_id, "bin_id"),
                course_id=event.course_id,
                instance_id=event.instance_id,
            )
        elif event.type == LmsEventType.BIN_ITEM_RESTORED:
            await self._provisioner.bin_item_restored(
                _require(event.bin_id, "bin_id"),
                instance_id=event.instance_id,
                course_id=event.course_id,
                visible=event.visible if event.visible is not None else True,
                background=deferred,
            )
        elif event.type == LmsEventType.BIN_ITEM_PURGED:
            await self._provisioner.bin_item_purged(_require(event.bin_id, "bin_id"))

        return mode

    async def _synchronize_user(
        self, user_id: int, course_id: int | None, deferred: bool
    ) -> None:
        if deferred:
            await self._queue.enqueue(
                Task(
                    type=TaskType.SYNCHRONIZE_USER,
                    payload={"user_id": user_id, "course_id": course_id},
                )
            )
            return
        await self._synchronizer.synchronize_user(user_id, course_id)

    async def _user_updated(self, event: LmsEvent, deferred: bool) -> None:
        user_id = _require(event.user_id, "user_id")
        if not (event.suspended or event.deleted):
            await self._synchronize_user(user_id, None, deferred)
            return

        if deferred:
            await self._queue.enqueue(
                Task(
                    type=TaskType.UNENROL_USER_EVERYWHERE,
                    payload={"user_id": user_id, "delete_account": event.deleted},
                )
            )
            return
        await self._synchronizer.unenroll_user_everywhere(user_id)
        if event.deleted:
            await delete_remote_account(self._remote, user_id)
