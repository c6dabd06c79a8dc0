"""In-memory collaborators for application tests."""

import pytest

from lmsbridge.application.services import ChannelLocks, MembershipSynchronizer
from lmsbridge.domain.entities import (
    ChannelBinding,
    Course,
    DesiredMember,
    EnrolledUser,
    Group,
    IdentityMapping,
    LmsUser,
    RemoteMember,
    RemoteUser,
    UserProfile,
    normalize_email,
)
from lmsbridge.domain.exceptions import (
    CHANNEL_NAME_TAKEN_MESSAGE,
    ChannelCreationError,
    RemoteServiceError,
    UnmappedUserError,
)


class FakeIdentities:
    """IdentityMappingRepository backed by a dict."""

    def __init__(self) -> None:
        self.remote_ids: dict[int, str] = {}

    async def save(self, mapping: IdentityMapping) -> None:
        for local_id, remote_id in list(self.remote_ids.items()):
            if remote_id == mapping.remote_user_id and local_id != mapping.local_user_id:
                del self.remote_ids[local_id]
        self.remote_ids[mapping.local_user_id] = mapping.remote_user_id

    async def find_by_local_user_id(self, local_user_id: int) -> IdentityMapping | None:
        remote_id = self.remote_ids.get(local_user_id)
        if remote_id is None:
            return None
        return IdentityMapping(local_user_id, remote_id)

    async def find_by_remote_user_id(self, remote_user_id: str) -> IdentityMapping | None:
        for local_id, remote_id in self.remote_ids.items():
            if remote_id == remote_user_id:
                return IdentityMapping(local_id, remote_id)
        return None

    async def delete(self, local_user_id: int) -> None:
        self.remote_ids.pop(local_user_id, None)


class FakeBindings:
    """ChannelBindingRepository backed by a dict."""

    def __init__(self) -> None:
        self.items: dict[str, ChannelBinding] = {}

    async def save(self, binding: ChannelBinding) -> None:
        self.items[binding.channel_id] = binding

    async def find_by_channel_id(self, channel_id: str) -> ChannelBinding | None:
        return self.items.get(channel_id)

    async def find_course_channel(self, instance_id: int) -> ChannelBinding | None:
        for binding in self.items.values():
            if binding.instance_id == instance_id and binding.group_id is None:
                return binding
        return None

    async def find_by_group(self, group_id: int) -> ChannelBinding | None:
        for binding in self.items.values():
            if binding.group_id == group_id:
                return binding
        return None

    async def find_by_course(self, course_id: int) -> list[ChannelBinding]:
        found = [b for b in self.items.values() if b.course_id == course_id]
        return sorted(found, key=lambda b: b.group_id is not None)

    async def find_by_instance(self, instance_id: int) -> list[ChannelBinding]:
        return [b for b in self.items.values() if b.instance_id == instance_id]

    async def find_by_recycle_bin(self, recycle_bin_id: int) -> list[ChannelBinding]:
        return [b for b in self.items.values() if b.recycle_bin_id == recycle_bin_id]

    async def find_all(self) -> list[ChannelBinding]:
        return list(self.items.values())

    async def delete(self, channel_id: str) -> None:
        self.items.pop(channel_id, None)


class FakeRemote:
    """RemoteChannelService keeping channels in memory and recording calls."""

    def __init__(self, identities: FakeIdentities) -> None:
        self.identities = identities
        self.channels: dict[str, dict[str, RemoteMember]] = {}
        self.names: dict[str, str] = {}
        self.archived: set[str] = set()
        self.taken_names: set[str] = set()
        self.failing_emails: set[str] = set()
        self.failing_channels: set[str] = set()
        self.deleted_users: list[int] = []
        self.calls: list[tuple] = []

    @property
    def mutations(self) -> list[tuple]:
        return [c for c in self.calls if c[0] in ("enroll", "update", "remove")]

    def add_member(
        self, channel_id: str, email: str, remote_user_id: str, is_admin: bool = False
    ) -> None:
        key = normalize_email(email)
        self.channels.setdefault(channel_id, {})[key] = RemoteMember(
            email=key, remote_user_id=remote_user_id, is_admin=is_admin
        )

    def membership(self, channel_id: str) -> dict[str, bool]:
        return {
            email: member.is_admin
            for email, member in self.channels.get(channel_id, {}).items()
        }

    async def test_connection(self) -> None:
        pass

    async def create_channel(self, name: str) -> str:
        if name in self.taken_names:
            raise ChannelCreationError(CHANNEL_NAME_TAKEN_MESSAGE, 400)
        channel_id = f"ch{len(self.names) + 1}"
        self.names[channel_id] = name
        self.channels[channel_id] = {}
        self.calls.append(("create", name))
        return channel_id

    async def archive_channel(self, channel_id: str) -> None:
        self.archived.add(channel_id)
        self.calls.append(("archive", channel_id))

    async def unarchive_channel(self, channel_id: str) -> None:
        self.archived.discard(channel_id)
        self.calls.append(("unarchive", channel_id))

    async def channel_exists(self, channel_id: str) -> bool:
        return channel_id in self.channels

    async def is_channel_archived(self, channel_id: str) -> bool:
        return channel_id in self.archived

    def channel_url(self, channel_id: str) -> str:
        return f"https://chat.example.com/school/channels/{channel_id}"

    async def upsert_user(self, profile: UserProfile) -> RemoteUser:
        return RemoteUser(id=f"r-{normalize_email(profile.email)}", email=profile.email)

    async def enroll_member(
        self, channel_id: str, member: DesiredMember, as_admin: bool
    ) -> RemoteMember:
        if member.key in self.failing_emails:
            raise RemoteServiceError("enrol failed", 500)
        remote_id = self.identities.remote_ids.get(member.local_user_id)
        if remote_id is None:
            remote_id = f"r{member.local_user_id}"
            await self.identities.save(IdentityMapping(member.local_user_id, remote_id))
        self.add_member(channel_id, member.email, remote_id, as_admin)
        self.calls.append(("enroll", channel_id, member.key, as_admin))
        return self.channels[channel_id][member.key]

    async def update_member_role(
        self, channel_id: str, local_user_id: int, as_admin: bool
    ) -> None:
        remote_id = self.identities.remote_ids.get(local_user_id)
        if remote_id is None:
            raise UnmappedUserError(local_user_id)
        members = self.channels[channel_id]
        for email, member in members.items():
            if member.remote_user_id == remote_id:
                members[email] = RemoteMember(email, remote_id, as_admin)
        self.calls.append(("update", channel_id, local_user_id, as_admin))

    async def remove_member(
        self,
        channel_id: str,
        local_user_id: int | None = None,
        remote_member: RemoteMember | None = None,
    ) -> None:
        if remote_member is None:
            raise ValueError("remote_member is required")
        if remote_member.email in self.failing_emails:
            raise RemoteServiceError("remove failed", 500)
        self.channels[channel_id].pop(remote_member.email, None)
        self.calls.append(("remove", channel_id, remote_member.email))

    async def list_enriched_members(self, channel_id: str) -> dict[str, RemoteMember]:
        if channel_id in self.failing_channels:
            raise RemoteServiceError("unavailable", 503)
        return dict(self.channels.get(channel_id, {}))

    async def remember_identity(self, local_user_id: int, remote_user_id: str) -> None:
        await self.identities.save(IdentityMapping(local_user_id, remote_user_id))

    async def delete_user(self, local_user_id: int) -> None:
        if local_user_id not in self.identities.remote_ids:
            raise UnmappedUserError(local_user_id)
        self.deleted_users.append(local_user_id)
        await self.identities.delete(local_user_id)


class FakeLms:
    """LmsGateway over in-memory courses, enrolments and groups."""

    def __init__(self) -> None:
        self.users: dict[int, LmsUser] = {}
        self.courses: dict[int, Course] = {}
        self.enrolments: dict[int, dict[int, frozenset[int]]] = {}
        self.groups: dict[int, Group] = {}
        self.group_members: dict[int, set[int]] = {}

    def add_user(self, user_id: int, email: str, **fields) -> LmsUser:
        user = LmsUser(id=user_id, email=email, username=f"user{user_id}", **fields)
        self.users[user_id] = user
        return user

    def enrol(self, course_id: int, user_id: int, *role_ids: int) -> None:
        self.enrolments.setdefault(course_id, {})[user_id] = frozenset(role_ids)

    def unenrol(self, course_id: int, user_id: int) -> None:
        self.enrolments.get(course_id, {}).pop(user_id, None)

    def add_group(self, group_id: int, course_id: int, name: str, *user_ids: int) -> None:
        self.groups[group_id] = Group(group_id, course_id, name)
        self.group_members[group_id] = set(user_ids)

    async def get_user(self, user_id: int) -> LmsUser | None:
        return self.users.get(user_id)

    async def get_course(self, course_id: int) -> Course | None:
        return self.courses.get(course_id)

    async def get_group(self, group_id: int) -> Group | None:
        return self.groups.get(group_id)

    async def list_course_groups(self, course_id: int) -> list[Group]:
        return [g for g in self.groups.values() if g.course_id == course_id]

    async def list_enrolled_users(self, course_id: int) -> list[EnrolledUser]:
        return [
            EnrolledUser(user=self.users[user_id], role_ids=role_ids)
            for user_id, role_ids in self.enrolments.get(course_id, {}).items()
        ]

    async def list_group_member_ids(self, group_id: int) -> set[int]:
        return set(self.group_members.get(group_id, set()))

    async def list_user_course_ids(self, user_id: int) -> list[int]:
        return [cid for cid, users in self.enrolments.items() if user_id in users]


ADMIN_ROLE = 3
MEMBER_ROLE = 5


def course_binding(channel_id: str = "c1", **fields) -> ChannelBinding:
    values = {
        "instance_id": 10,
        "course_id": 2,
        "name": "moodle_m101_10",
        "admin_role_ids": frozenset({ADMIN_ROLE}),
        "member_role_ids": frozenset({MEMBER_ROLE}),
    }
    values.update(fields)
    return ChannelBinding(channel_id=channel_id, **values)


@pytest.fixture
def identities() -> FakeIdentities:
    return FakeIdentities()


@pytest.fixture
def bindings() -> FakeBindings:
    return FakeBindings()


@pytest.fixture
def remote(identities: FakeIdentities) -> FakeRemote:
    return FakeRemote(identities)


@pytest.fixture
def lms() -> FakeLms:
    return FakeLms()


@pytest.fixture
def make_binding():
    """Factory for course channel bindings with admin role 3 and member role 5."""
    return course_binding


@pytest.fixture
def synchronizer(
    remote: FakeRemote,
    lms: FakeLms,
    bindings: FakeBindings,
    identities: FakeIdentities,
) -> MembershipSynchronizer:
    return MembershipSynchronizer(remote, lms, bindings, identities, ChannelLocks())
