"""Channel provisioning and lifecycle."""

import hashlib
import logging
import time
from collections.abc import Callable
from dataclasses import replace

from lmsbridge.application.services.membership_synchronizer import (
    MembershipSynchronizer,
)
from lmsbridge.config import MoodleConfig, NamingConfig, RolesConfig
from lmsbridge.domain.entities import (
    ChannelBinding,
    Course,
    ModuleInstance,
    SyncResult,
    Task,
    TaskType,
)
from lmsbridge.domain.exceptions import (
    BindingNotFoundError,
    ChannelCreationError,
    LmsServiceError,
)
from lmsbridge.domain.repositories import ChannelBindingRepository
from lmsbridge.domain.services import (
    ChannelNameFormatter,
    LmsGateway,
    RemoteChannelService,
    TaskQueue,
)

logger = logging.getLogger(__name__)


def _sha1(value: str) -> str:
    return hashlib.sha1(value.encode("utf-8")).hexdigest()


class ChannelProvisioner:
    """Creates, archives and restores the channels of module instances.

    Every module instance owns one course channel. Each group of the course
    gets one group channel, owned by the first instance of the course.
    """

    def __init__(
        self,
        remote: RemoteChannelService,
        lms: LmsGateway,
        binding_repository: ChannelBindingRepository,
        synchronizer: MembershipSynchronizer,
        queue: TaskQueue,
        naming: NamingConfig,
        roles: RolesConfig,
        moodle: MoodleConfig,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the provisioner.

        Args:
            remote: Remote chat server operations.
            lms: Read-only LMS state.
            binding_repository: Channel bindings.
            synchronizer: Membership synchronizer for the initial passes.
            queue: Deferred task queue for background passes.
            naming: Channel name templates.
            roles: Default role mapping of new instances.
            moodle: LMS site identity used in channel names.
            clock: Time source of the name collision suffix.
        """
        self._remote = remote
        self._lms = lms
        self._bindings = binding_repository
        self._synchronizer = synchronizer
        self._queue = queue
        self._naming = naming
        self._roles = roles
        self._moodle = moodle
        self._clock = clock
        self._formatter = ChannelNameFormatter(naming.invalid_chars_pattern)

    def course_variables(self, course: Course, instance_id: int) -> dict[str, object]:
        """Placeholders available to channel name templates."""
        return {
            "moodleid": _sha1(self._moodle.base_url),
            "moodleshortname": self._moodle.site_shortname,
            "moodlefullname": self._moodle.site_fullname,
            "moduleid": instance_id,
            "modulemoodleid": _sha1(f"{self._moodle.site_shortname}_{instance_id}"),
            "courseid": course.id,
            "courseshortname": course.shortname,
            "coursefullname": course.fullname,
        }

    async def _get_course(self, course_id: int) -> Course:
        course = await self._lms.get_course(course_id)
        if course is None:
            raise LmsServiceError(f"Course {course_id} not found", "invalidrecord")
        return course

    async def _create_channel(self, name: str) -> str:
        """Create a channel, retrying once with a timestamp suffix on collision."""
        try:
            return await self._remote.create_channel(name)
        except ChannelCreationError as e:
            if not e.name_taken:
                raise
            fallback = f"{name}_{int(self._clock())}"
            logger.info("Channel name %s is taken, retrying as %s", name, fallback)
            return await self._remote.create_channel(fallback)

    async def provision_instance(
        self,
        instance: ModuleInstance,
        creator_user_id: int | None = None,
        background: bool = False,
    ) -> ChannelBinding:
        """Create the channel of a new module instance.

        Group channels are created for the existing groups of the course, then
        the initial synchronization runs. In background mode only the creator
        is synchronized inline and the channel passes are deferred.

        Args:
            instance: The new module instance.
            creator_user_id: User who added the instance.
            background: Whether to defer the initial channel passes.

        Returns:
            The course channel binding (the existing one when already
            provisioned).
        """
        existing = await self._bindings.find_course_channel(instance.id)
        if existing is not None:
            logger.debug(
                "Instance %d already has channel %s", instance.id, existing.channel_id
            )
            return existing

        course = await self._get_course(instance.course_id)
        name = self._formatter.format(
            self._naming.channel_name_format,
            self.course_variables(course, instance.id),
        )
        channel_id = await self._create_channel(name)
        binding = ChannelBinding(
            channel_id=channel_id,
            instance_id=instance.id,
            course_id=course.id,
            name=name,
            admin_role_ids=instance.admin_role_ids or self._roles.default_admin_roles,
            member_role_ids=instance.member_role_ids or self._roles.default_member_roles,
        )
        await self._bindings.save(binding)
        logger.info(
            "Provisioned channel %s for instance %d in course %d",
            name,
            instance.id,
            course.id,
        )

        bindings = [binding]
        for group in await self._lms.list_course_groups(course.id):
            group_binding = await self._provision_group(course, group.id, group.name)
            if group_binding is not None:
                bindings.append(group_binding)

        if not instance.visible:
            await self._archive([b for b in bindings if b.instance_id == instance.id])

        await self._fan_out(
            bindings,
            background,
            force_synchronous_for=creator_user_id,
            course_id=course.id,
        )
        return binding

    async def _provision_group(
        self, course: Course, group_id: int, group_name: str
    ) -> ChannelBinding | None:
        existing = await self._bindings.find_by_group(group_id)
        if existing is not None:
            return existing
        owners = [
            b
            for b in await self._bindings.find_by_course(course.id)
            if not b.is_group_channel
        ]
        if not owners:
            logger.debug("Course %d has no channel instance, no group channel", course.id)
            return None
        owner = owners[0]

        variables = self.course_variables(course, owner.instance_id)
        variables.update(groupid=group_id, groupname=group_name, channelname=owner.name)
        name = self._formatter.format(self._naming.group_channel_name_format, variables)
        channel_id = await self._create_channel(name)
        binding = ChannelBinding(
            channel_id=channel_id,
            instance_id=owner.instance_id,
            course_id=course.id,
            name=name,
            admin_role_ids=owner.admin_role_ids,
            member_role_ids=owner.member_role_ids,
            group_id=group_id,
        )
        await self._bindings.save(binding)
        logger.info("Provisioned group channel %s for group %d", name, group_id)
        return binding

    async def create_group_channel(
        self, course_id: int, group_id: int, background: bool = False
    ) -> ChannelBinding | None:
        """Create the channel of a new group.

        Returns:
            The group binding, or None when the course has no instance.
        """
        existing = await self._bindings.find_by_group(group_id)
        if existing is not None:
            return existing
        if not await self._bindings.find_by_course(course_id):
            logger.debug("Course %d has no channel instance, no group channel", course_id)
            return None

        group = await self._lms.get_group(group_id)
        if group is None:
            raise LmsServiceError(f"Group {group_id} not found", "invalidrecord")
        course = await self._get_course(course_id)
        binding = await self._provision_group(course, group.id, group.name)
        if binding is not None:
            await self._fan_out([binding], background)
        return binding

    async def update_instance_roles(
        self,
        instance_id: int,
        admin_role_ids: frozenset[int],
        member_role_ids: frozenset[int],
        background: bool = False,
    ) -> list[ChannelBinding]:
        """Change the role mapping of an instance and resynchronize its channels.

        Raises:
            BindingNotFoundError: If the instance has no channel.
        """
        bindings = await self._require_instance(instance_id)
        updated: list[ChannelBinding] = []
        changed = False
        for binding in bindings:
            new = binding.with_roles(admin_role_ids, member_role_ids)
            if new != binding:
                await self._bindings.save(new)
                changed = True
            updated.append(new)
        if changed:
            logger.info("Updated roles of instance %d", instance_id)
            await self._fan_out(updated, background)
        return updated

    async def set_instance_visibility(self, instance_id: int, visible: bool) -> None:
        """Archive the channels of a hidden instance, restore them when shown.

        Raises:
            BindingNotFoundError: If the instance has no channel.
        """
        bindings = [
            b for b in await self._require_instance(instance_id) if b.recycle_bin_id is None
        ]
        if visible:
            await self._unarchive(bindings)
        else:
            await self._archive(bindings)

    async def update_instance(
        self,
        instance_id: int,
        visible: bool | None = None,
        admin_role_ids: frozenset[int] | None = None,
        member_role_ids: frozenset[int] | None = None,
        background: bool = False,
    ) -> None:
        """Apply a module update: visibility first, then role mapping."""
        if visible is not None:
            await self.set_instance_visibility(instance_id, visible)
        if admin_role_ids is not None or member_role_ids is not None:
            bindings = await self._require_instance(instance_id)
            current = bindings[0]
            await self.update_instance_roles(
                instance_id,
                admin_role_ids if admin_role_ids is not None else current.admin_role_ids,
                member_role_ids if member_role_ids is not None else current.member_role_ids,
                background,
            )

    async def delete_instance(self, instance_id: int) -> None:
        """Archive the channels of a deleted instance and drop their bindings.

        Bindings held by the recycle bin are kept so a restore can reuse them.
        """
        bindings = await self._bindings.find_by_instance(instance_id)
        await self._archive(bindings)
        for binding in bindings:
            if binding.recycle_bin_id is None:
                await self._bindings.delete(binding.channel_id)
        logger.info("Deleted channels of instance %d", instance_id)

    async def delete_group(self, group_id: int) -> None:
        """Archive the channel of a deleted group."""
        binding = await self._bindings.find_by_group(group_id)
        if binding is None:
            return
        await self._archive([binding])
        if binding.recycle_bin_id is None:
            await self._bindings.delete(binding.channel_id)

    async def bin_item_created(
        self,
        bin_id: int,
        course_id: int | None = None,
        instance_id: int | None = None,
    ) -> list[ChannelBinding]:
        """Hand the channels of a binned instance (or course) to the recycle bin."""
        if instance_id is not None:
            bindings = await self._bindings.find_by_instance(instance_id)
        elif course_id is not None:
            bindings = await self._bindings.find_by_course(course_id)
        else:
            return []
        held = [b.with_recycle_bin(bin_id) for b in bindings]
        for binding in held:
            await self._bindings.save(binding)
        await self._archive(held)
        logger.info("Recycle bin item %d holds %d channels", bin_id, len(held))
        return held

    async def bin_item_restored(
        self,
        bin_id: int,
        instance_id: int | None = None,
        course_id: int | None = None,
        visible: bool = True,
        background: bool = False,
    ) -> list[ChannelBinding]:
        """Bring back the channels of a restored recycle bin item.

        A restore gives the module (and for a whole course, the course) new
        IDs; the bindings follow them.
        """
        restored: list[ChannelBinding] = []
        for binding in await self._bindings.find_by_recycle_bin(bin_id):
            changes: dict[str, object] = {"recycle_bin_id": None}
            if instance_id is not None:
                changes["instance_id"] = instance_id
            if course_id is not None:
                changes["course_id"] = course_id
            new = replace(binding, **changes)
            await self._bindings.save(new)
            restored.append(new)
        if not restored:
            return restored
        if visible:
            await self._unarchive(restored)
            await self._fan_out(restored, background)
        logger.info("Restored %d channels from recycle bin item %d", len(restored), bin_id)
        return restored

    async def bin_item_purged(self, bin_id: int) -> None:
        """Forget the channels of a purged recycle bin item (they stay archived)."""
        for binding in await self._bindings.find_by_recycle_bin(bin_id):
            await self._bindings.delete(binding.channel_id)

    async def _require_instance(self, instance_id: int) -> list[ChannelBinding]:
        bindings = await self._bindings.find_by_instance(instance_id)
        if not bindings:
            raise BindingNotFoundError(f"instance:{instance_id}")
        return bindings

    async def _archive(self, bindings: list[ChannelBinding]) -> None:
        for binding in bindings:
            if not await self._remote.is_channel_archived(binding.channel_id):
                await self._remote.archive_channel(binding.channel_id)

    async def _unarchive(self, bindings: list[ChannelBinding]) -> None:
        for binding in bindings:
            if await self._remote.is_channel_archived(binding.channel_id):
                await self._remote.unarchive_channel(binding.channel_id)

    async def _fan_out(
        self,
        bindings: list[ChannelBinding],
        background: bool,
        force_synchronous_for: int | None = None,
        course_id: int | None = None,
    ) -> SyncResult:
        """Synchronize channels now, or defer them.

        When deferring, force_synchronous_for is still synchronized inline so
        that user sees the channel right away.
        """
        if not background:
            return await self._synchronizer.synchronize_bindings(bindings)

        result = SyncResult()
        if force_synchronous_for is not None:
            result.merge(
                await self._synchronizer.synchronize_user(force_synchronous_for, course_id)
            )
        for binding in bindings:
            await self._queue.enqueue(
                Task(
                    type=TaskType.SYNCHRONIZE_CHANNEL,
                    payload={"channel_id": binding.channel_id},
                )
            )
        logger.debug("Deferred synchronization of %d channels", len(bindings))
        return result
