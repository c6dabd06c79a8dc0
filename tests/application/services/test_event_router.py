"""Tests for EventRouter."""

from unittest.mock import AsyncMock

import pytest

from lmsbridge.application.services import EventRouter, RouteMode
from lmsbridge.config import BackgroundConfig
from lmsbridge.domain.entities import LmsEvent, LmsEventType, ModuleInstance, TaskType
from lmsbridge.domain.exceptions import UnmappedUserError


@pytest.fixture
def mock_synchronizer() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def mock_provisioner() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def mock_remote() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def mock_queue() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def background() -> BackgroundConfig:
    return BackgroundConfig(
        enrolment_methods=frozenset({"enrol_cohort"}),
        add_instance=True,
        synchronize=False,
        user_update=False,
    )


@pytest.fixture
def router(
    mock_synchronizer: AsyncMock,
    mock_provisioner: AsyncMock,
    mock_remote: AsyncMock,
    mock_queue: AsyncMock,
    background: BackgroundConfig,
) -> EventRouter:
    return EventRouter(
        mock_synchronizer, mock_provisioner, mock_remote, mock_queue, background
    )


def queued_task(mock_queue: AsyncMock):
    mock_queue.enqueue.assert_awaited_once()
    return mock_queue.enqueue.await_args.args[0]


class TestRoleEvents:
    """role_assigned / role_unassigned."""

    async def test_manual_enrolment_runs_inline(
        self, router: EventRouter, mock_synchronizer: AsyncMock, mock_queue: AsyncMock
    ) -> None:
        event = LmsEvent(
            type=LmsEventType.ROLE_ASSIGNED,
            user_id=5,
            course_id=2,
            role_id=3,
            component="enrol_manual",
        )

        mode = await router.route(event)

        assert mode == RouteMode.IMMEDIATE
        mock_synchronizer.synchronize_user.assert_awaited_once_with(5, 2)
        mock_queue.enqueue.assert_not_awaited()

    async def test_bulk_enrolment_method_is_deferred(
        self, router: EventRouter, mock_synchronizer: AsyncMock, mock_queue: AsyncMock
    ) -> None:
        event = LmsEvent(
            type=LmsEventType.ROLE_UNASSIGNED,
            user_id=5,
            course_id=2,
            component="enrol_cohort",
        )

        mode = await router.route(event)

        assert mode == RouteMode.DEFERRED
        task = queued_task(mock_queue)
        assert task.type == TaskType.SYNCHRONIZE_USER
        assert task.payload == {"user_id": 5, "course_id": 2}
        mock_synchronizer.synchronize_user.assert_not_awaited()

    async def test_missing_user_is_rejected(self, router: EventRouter) -> None:
        with pytest.raises(ValueError, match="user_id"):
            await router.route(LmsEvent(type=LmsEventType.ROLE_ASSIGNED, course_id=2))


class TestUserUpdated:
    async def test_profile_change_resynchronizes_user(
        self, router: EventRouter, mock_synchronizer: AsyncMock
    ) -> None:
        await router.route(LmsEvent(type=LmsEventType.USER_UPDATED, user_id=5))

        mock_synchronizer.synchronize_user.assert_awaited_once_with(5, None)

    async def test_deleted_user_is_removed_and_account_deleted(
        self, router: EventRouter, mock_synchronizer: AsyncMock, mock_remote: AsyncMock
    ) -> None:
        await router.route(
            LmsEvent(type=LmsEventType.USER_UPDATED, user_id=5, deleted=True)
        )

        mock_synchronizer.unenroll_user_everywhere.assert_awaited_once_with(5)
        mock_remote.delete_user.assert_awaited_once_with(5)

    async def test_unmapped_deleted_user_is_ignored(
        self, router: EventRouter, mock_remote: AsyncMock
    ) -> None:
        mock_remote.delete_user.side_effect = UnmappedUserError(5)

        mode = await router.route(
            LmsEvent(type=LmsEventType.USER_UPDATED, user_id=5, deleted=True)
        )

        assert mode == RouteMode.IMMEDIATE

    async def test_suspended_user_in_background(
        self,
        mock_synchronizer: AsyncMock,
        mock_provisioner: AsyncMock,
        mock_remote: AsyncMock,
        mock_queue: AsyncMock,
    ) -> None:
        router = EventRouter(
            mock_synchronizer,
            mock_provisioner,
            mock_remote,
            mock_queue,
            BackgroundConfig(user_update=True),
        )

        await router.route(
            LmsEvent(type=LmsEventType.USER_UPDATED, user_id=5, suspended=True)
        )

        task = queued_task(mock_queue)
        assert task.type == TaskType.UNENROL_USER_EVERYWHERE
        assert task.payload == {"user_id": 5, "delete_account": False}
        mock_remote.delete_user.assert_not_awaited()


class TestStructuralEvents:
    """Group, module and recycle bin events."""

    async def test_module_created(
        self, router: EventRouter, mock_provisioner: AsyncMock
    ) -> None:
        mode = await router.route(
            LmsEvent(
                type=LmsEventType.MODULE_CREATED,
                instance_id=10,
                course_id=2,
                actor_id=1,
                admin_role_ids=frozenset({3}),
            )
        )

        assert mode == RouteMode.DEFERRED
        mock_provisioner.provision_instance.assert_awaited_once_with(
            ModuleInstance(id=10, course_id=2, admin_role_ids=frozenset({3})),
            creator_user_id=1,
            background=True,
        )

    async def test_module_updated(
        self, router: EventRouter, mock_provisioner: AsyncMock
    ) -> None:
        await router.route(
            LmsEvent(type=LmsEventType.MODULE_UPDATED, instance_id=10, visible=False)
        )

        mock_provisioner.update_instance.assert_awaited_once_with(
            10,
            visible=False,
            admin_role_ids=None,
            member_role_ids=None,
            background=False,
        )

    async def test_module_deleted(
        self, router: EventRouter, mock_provisioner: AsyncMock
    ) -> None:
        await router.route(LmsEvent(type=LmsEventType.MODULE_DELETED, instance_id=10))

        mock_provisioner.delete_instance.assert_awaited_once_with(10)

    async def test_group_created(
        self, router: EventRouter, mock_provisioner: AsyncMock
    ) -> None:
        mode = await router.route(
            LmsEvent(type=LmsEventType.GROUP_CREATED, course_id=2, group_id=9)
        )

        assert mode == RouteMode.IMMEDIATE
        mock_provisioner.create_group_channel.assert_awaited_once_with(
            2, 9, background=False
        )

    async def test_group_created_reports_background_sync(
        self,
        mock_synchronizer: AsyncMock,
        mock_provisioner: AsyncMock,
        mock_remote: AsyncMock,
        mock_queue: AsyncMock,
        background: BackgroundConfig,
    ) -> None:
        """The reported mode matches how the group channel is filled."""
        background.synchronize = True
        router = EventRouter(
            mock_synchronizer, mock_provisioner, mock_remote, mock_queue, background
        )

        mode = await router.route(
            LmsEvent(type=LmsEventType.GROUP_CREATED, course_id=2, group_id=9)
        )

        assert mode == RouteMode.DEFERRED
        mock_provisioner.create_group_channel.assert_awaited_once_with(
            2, 9, background=True
        )

    async def test_group_member_added_synchronizes_user(
        self, router: EventRouter, mock_synchronizer: AsyncMock
    ) -> None:
        await router.route(
            LmsEvent(
                type=LmsEventType.GROUP_MEMBER_ADDED, user_id=5, course_id=2, group_id=9
            )
        )

        mock_synchronizer.synchronize_user.assert_awaited_once_with(5, 2)

    async def test_bin_events(
        self, router: EventRouter, mock_provisioner: AsyncMock
    ) -> None:
        await router.route(
            LmsEvent(type=LmsEventType.BIN_ITEM_CREATED, bin_id=4, instance_id=10)
        )
        await router.route(
            LmsEvent(type=LmsEventType.BIN_ITEM_RESTORED, bin_id=4, instance_id=11)
        )
        await router.route(LmsEvent(type=LmsEventType.BIN_ITEM_PURGED, bin_id=4))

        mock_provisioner.bin_item_created.assert_awaited_once_with(
            4, course_id=None, instance_id=10
        )
        mock_provisioner.bin_item_restored.assert_awaited_once_with(
            4, instance_id=11, course_id=None, visible=True, background=False
        )
        mock_provisioner.bin_item_purged.assert_awaited_once_with(4)
