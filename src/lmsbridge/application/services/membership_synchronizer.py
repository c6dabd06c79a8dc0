"""Channel membership reconciliation."""

import logging
from collections.abc import Iterable

from lmsbridge.application.services.channel_locks import ChannelLocks
from lmsbridge.domain.entities import (
    ChannelBinding,
    DesiredMember,
    EnrolledUser,
    LmsUser,
    RemoteMember,
    SyncResult,
    SyncScope,
    normalize_email,
)
from lmsbridge.domain.exceptions import BindingNotFoundError, UnmappedUserError
from lmsbridge.domain.repositories import (
    ChannelBindingRepository,
    IdentityMappingRepository,
)
from lmsbridge.domain.services import (
    LmsGateway,
    RemoteChannelService,
    desired_member_for,
)

logger = logging.getLogger(__name__)


def _merge_desired(members: Iterable[DesiredMember]) -> dict[str, DesiredMember]:
    """Index desired members by email, admin winning over plain member."""
    merged: dict[str, DesiredMember] = {}
    for member in members:
        known = merged.get(member.key)
        if known is None or (member.is_admin and not known.is_admin):
            merged[member.key] = member
    return merged


def _log_summary(channel_id: str, result: SyncResult) -> None:
    level = logging.WARNING if result.failed else logging.INFO
    logger.log(
        level,
        "Synchronized channel %s: enrolled=%d updated=%d removed=%d "
        "unchanged=%d failed=%d",
        channel_id,
        result.enrolled,
        result.updated,
        result.removed,
        result.unchanged,
        result.failed,
    )


class MembershipSynchronizer:
    """Reconciles remote channel membership with LMS role state.

    Each pass diffs a full snapshot of the remote members against the
    desired members computed from LMS enrolments. Running a pass twice
    without an LMS change performs no remote mutation the second time.
    A failure on one member is logged and counted; the pass goes on with
    the others.
    """

    def __init__(
        self,
        remote: RemoteChannelService,
        lms: LmsGateway,
        binding_repository: ChannelBindingRepository,
        identity_repository: IdentityMappingRepository,
        locks: ChannelLocks | None = None,
    ) -> None:
        """Initialize the synchronizer.

        Args:
            remote: Remote chat server operations.
            lms: Read-only LMS state.
            binding_repository: Channel bindings.
            identity_repository: Local to remote user mappings.
            locks: Per-channel locks shared with other passes.
        """
        self._remote = remote
        self._lms = lms
        self._bindings = binding_repository
        self._identities = identity_repository
        self._locks = locks or ChannelLocks()

    async def reconcile(self, scope: SyncScope) -> SyncResult:
        """Run one reconciliation pass over a channel.

        Raises:
            RemoteServiceError: If the current member list can't be fetched.
        """
        async with self._locks.hold(scope.channel_id):
            result = await self._reconcile(scope)
        _log_summary(scope.channel_id, result)
        return result

    async def _reconcile(self, scope: SyncScope) -> SyncResult:
        channel_id = scope.channel_id
        current = await self._remote.list_enriched_members(channel_id)
        result = SyncResult()
        kept: set[str] = set()

        for desired in _merge_desired(scope.desired_members).values():
            existing = current.pop(desired.key, None)
            try:
                if existing is None:
                    existing = await self._pop_mapped(current, desired)
                if existing is None:
                    enrolled = await self._remote.enroll_member(
                        channel_id, desired, desired.is_admin
                    )
                    kept.add(enrolled.remote_user_id)
                    result.enrolled += 1
                    continue
                kept.add(existing.remote_user_id)
                await self._remember(desired, existing)
                if existing.is_admin == desired.is_admin:
                    result.unchanged += 1
                    continue
                await self._remote.update_member_role(
                    channel_id, desired.local_user_id, desired.is_admin
                )
                result.updated += 1
            except Exception as e:
                self._record_failure(result, channel_id, desired.email, e)

        # Whatever is left has no desired local counterpart.
        for orphan in current.values():
            if orphan.remote_user_id in kept:
                continue
            try:
                await self._remote.remove_member(channel_id, remote_member=orphan)
                result.removed += 1
            except Exception as e:
                self._record_failure(result, channel_id, orphan.email, e)

        return result

    def _record_failure(
        self, result: SyncResult, channel_id: str, email: str, error: Exception
    ) -> None:
        result.failed += 1
        result.errors.append(f"{email}: {error}")
        if isinstance(error, UnmappedUserError):
            logger.debug("Skipped %s in channel %s: %s", email, channel_id, error)
        else:
            logger.debug(
                "Failed to reconcile %s in channel %s: %s", email, channel_id, error
            )

    async def _pop_mapped(
        self, current: dict[str, RemoteMember], desired: DesiredMember
    ) -> RemoteMember | None:
        # The remote account may still carry an email the LMS has since changed.
        mapping = await self._identities.find_by_local_user_id(desired.local_user_id)
        if mapping is None:
            return None
        for email, member in current.items():
            if member.remote_user_id == mapping.remote_user_id:
                return current.pop(email)
        return None

    async def _remember(self, desired: DesiredMember, existing: RemoteMember) -> None:
        # A member can exist remotely without a local mapping (added by hand,
        # or the mapping was lost); record it so later role updates resolve.
        mapping = await self._identities.find_by_local_user_id(desired.local_user_id)
        if mapping is None or mapping.remote_user_id != existing.remote_user_id:
            await self._remote.remember_identity(
                desired.local_user_id, existing.remote_user_id
            )

    async def build_scope(
        self,
        binding: ChannelBinding,
        enrolled: list[EnrolledUser] | None = None,
    ) -> SyncScope:
        """Compute the desired members of a bound channel.

        A group channel only wants group members who are also enrolled in
        the course.

        Args:
            binding: Channel binding.
            enrolled: Course enrolments, when already fetched.
        """
        if enrolled is None:
            enrolled = await self._lms.list_enrolled_users(binding.course_id)
        if binding.group_id is not None:
            group_member_ids = await self._lms.list_group_member_ids(binding.group_id)
            enrolled = [e for e in enrolled if e.user.id in group_member_ids]

        desired: list[DesiredMember] = []
        for entry in enrolled:
            member = desired_member_for(entry, binding)
            if member is not None:
                desired.append(member)

        return SyncScope(
            channel_id=binding.channel_id,
            desired_members=tuple(desired),
            course_id=binding.course_id,
            group_id=binding.group_id,
        )

    async def synchronize_binding(
        self,
        binding: ChannelBinding,
        enrolled: list[EnrolledUser] | None = None,
    ) -> SyncResult:
        """Reconcile one bound channel.

        Channels held by the recycle bin are left alone.
        """
        if binding.recycle_bin_id is not None:
            logger.debug("Channel %s is in the recycle bin, skipping", binding.channel_id)
            return SyncResult()
        scope = await self.build_scope(binding, enrolled)
        return await self.reconcile(scope)

    async def synchronize_channel(self, channel_id: str) -> SyncResult:
        """Reconcile a channel by its remote ID.

        Raises:
            BindingNotFoundError: If the channel is not bound.
        """
        binding = await self._bindings.find_by_channel_id(channel_id)
        if binding is None:
            raise BindingNotFoundError(f"channel:{channel_id}")
        return await self.synchronize_binding(binding)

    async def synchronize_bindings(self, bindings: list[ChannelBinding]) -> SyncResult:
        """Reconcile several channels, fetching each course's enrolments once.

        A channel whose pass fails is counted as one failure and the next
        channel is processed.
        """
        total = SyncResult()
        enrolments: dict[int, list[EnrolledUser]] = {}
        for binding in bindings:
            if binding.recycle_bin_id is not None:
                continue
            try:
                if binding.course_id not in enrolments:
                    enrolments[binding.course_id] = await self._lms.list_enrolled_users(
                        binding.course_id
                    )
                total.merge(
                    await self.synchronize_binding(
                        binding, enrolments[binding.course_id]
                    )
                )
            except Exception as e:
                logger.warning(
                    "Failed to synchronize channel %s: %s", binding.channel_id, e
                )
                total.failed += 1
                total.errors.append(f"{binding.channel_id}: {e}")
        return total

    async def synchronize_course(self, course_id: int) -> SyncResult:
        """Reconcile the course channel and group channels of a course."""
        return await self.synchronize_bindings(await self._bindings.find_by_course(course_id))

    async def synchronize_instance(self, instance_id: int) -> SyncResult:
        """Reconcile every channel owned by a module instance."""
        return await self.synchronize_bindings(
            await self._bindings.find_by_instance(instance_id)
        )

    async def synchronize_all(self) -> SyncResult:
        """Reconcile every bound channel."""
        bindings = await self._bindings.find_all()
        result = await self.synchronize_bindings(bindings)
        logger.info(
            "Full resync of %d channels: mutations=%d failed=%d",
            len(bindings),
            result.mutations,
            result.failed,
        )
        return result

    async def synchronize_user(
        self, user_id: int, course_id: int | None = None
    ) -> SyncResult:
        """Reconcile a single user in every channel of their courses.

        Other members are never touched. A suspended, deleted or unknown
        user is wanted nowhere and is removed everywhere.

        Args:
            user_id: LMS user ID.
            course_id: Restrict the pass to the channels of this course.
        """
        user = await self._lms.get_user(user_id)
        if user is None or not user.is_active:
            return await self.unenroll_user_everywhere(user_id, user)

        if course_id is not None:
            course_ids = [course_id]
        else:
            course_ids = await self._lms.list_user_course_ids(user_id)

        result = SyncResult()
        for cid in course_ids:
            bindings = await self._bindings.find_by_course(cid)
            if not bindings:
                continue
            enrolled = await self._lms.list_enrolled_users(cid)
            entry = next((e for e in enrolled if e.user.id == user_id), None)
            for binding in bindings:
                if binding.recycle_bin_id is not None:
                    continue
                try:
                    desired = await self._desired_in(binding, user_id, entry)
                    async with self._locks.hold(binding.channel_id):
                        result.merge(
                            await self._reconcile_user(binding.channel_id, user, desired)
                        )
                except Exception as e:
                    self._record_failure(result, binding.channel_id, user.email, e)
        return result

    async def _desired_in(
        self, binding: ChannelBinding, user_id: int, entry: EnrolledUser | None
    ) -> DesiredMember | None:
        if entry is None:
            return None
        if binding.group_id is not None:
            if user_id not in await self._lms.list_group_member_ids(binding.group_id):
                return None
        return desired_member_for(entry, binding)

    async def _reconcile_user(
        self, channel_id: str, user: LmsUser, desired: DesiredMember | None
    ) -> SyncResult:
        result = SyncResult()
        current = await self._remote.list_enriched_members(channel_id)
        existing = current.pop(normalize_email(user.email), None) if user.email else None
        if existing is None and desired is not None:
            existing = await self._pop_mapped(current, desired)

        if desired is None:
            if existing is not None:
                await self._remote.remove_member(channel_id, remote_member=existing)
                result.removed += 1
            else:
                result.unchanged += 1
        elif existing is None:
            await self._remote.enroll_member(channel_id, desired, desired.is_admin)
            result.enrolled += 1
        else:
            await self._remember(desired, existing)
            if existing.is_admin == desired.is_admin:
                result.unchanged += 1
            else:
                await self._remote.update_member_role(
                    channel_id, desired.local_user_id, desired.is_admin
                )
                result.updated += 1
        return result

    async def unenroll_user_everywhere(
        self, user_id: int, user: LmsUser | None = None
    ) -> SyncResult:
        """Remove a user from every bound channel they are a member of.

        The user is recognised by their mapped remote ID, or by email when
        the LMS still knows them.

        Args:
            user_id: LMS user ID.
            user: The LMS user, when already fetched.
        """
        mapping = await self._identities.find_by_local_user_id(user_id)
        remote_user_id = mapping.remote_user_id if mapping is not None else None
        email = normalize_email(user.email) if user is not None and user.email else None
        result = SyncResult()
        if remote_user_id is None and email is None:
            logger.debug("User %d has no remote identity, nothing to remove", user_id)
            return result

        for binding in await self._bindings.find_all():
            if binding.recycle_bin_id is not None:
                continue
            channel_id = binding.channel_id
            try:
                async with self._locks.hold(channel_id):
                    current = await self._remote.list_enriched_members(channel_id)
                    member = self._find_member(current, remote_user_id, email)
                    if member is None:
                        continue
                    await self._remote.remove_member(channel_id, remote_member=member)
                    result.removed += 1
            except Exception as e:
                self._record_failure(result, channel_id, email or str(user_id), e)

        logger.info("Removed user %d from %d channels", user_id, result.removed)
        return result

    @staticmethod
    def _find_member(
        current: dict[str, RemoteMember],
        remote_user_id: str | None,
        email: str | None,
    ) -> RemoteMember | None:
        if email is not None and email in current:
            return current[email]
        if remote_user_id is not None:
            for member in current.values():
                if member.remote_user_id == remote_user_id:
                    return member
        return None
