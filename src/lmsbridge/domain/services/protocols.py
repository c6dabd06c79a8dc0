"""Domain service protocols."""

from typing import Protocol

from lmsbridge.domain.entities import (
    Course,
    DesiredMember,
    EnrolledUser,
    Group,
    LmsUser,
    RemoteMember,
    RemoteUser,
    Task,
    UserProfile,
)


class RemoteChannelService(Protocol):
    """Remote chat server operations with domain semantics.

    Every operation raises a typed error on remote failure; none of them
    succeeds silently.
    """

    async def test_connection(self) -> None:
        """Check that the remote server accepts our credentials."""
        ...

    async def create_channel(self, name: str) -> str:
        """Create a private channel.

        Returns:
            Remote channel ID.

        Raises:
            ChannelCreationError: If the remote server refuses the channel.
        """
        ...

    async def archive_channel(self, channel_id: str) -> None:
        """Archive a channel."""
        ...

    async def unarchive_channel(self, channel_id: str) -> None:
        """Restore an archived channel."""
        ...

    async def channel_exists(self, channel_id: str) -> bool:
        """Check whether a channel exists (archived or not)."""
        ...

    async def is_channel_archived(self, channel_id: str) -> bool:
        """Check whether a channel is archived."""
        ...

    def channel_url(self, channel_id: str) -> str:
        """Build the browser URL of a channel."""
        ...

    async def upsert_user(self, profile: UserProfile) -> RemoteUser:
        """Fetch the remote account for a profile, creating it when allowed."""
        ...

    async def enroll_member(
        self, channel_id: str, member: DesiredMember, as_admin: bool
    ) -> RemoteMember:
        """Add a local user to a channel, creating their account if needed."""
        ...

    async def update_member_role(
        self, channel_id: str, local_user_id: int, as_admin: bool
    ) -> None:
        """Change the role of a mapped user in a channel.

        Raises:
            UnmappedUserError: If the user has no remote identity.
        """
        ...

    async def remove_member(
        self,
        channel_id: str,
        local_user_id: int | None = None,
        remote_member: RemoteMember | None = None,
    ) -> None:
        """Remove a member given a local user or an already-fetched remote member.

        Raises:
            UnmappedUserError: If a local user is given without remote identity.
        """
        ...

    async def list_enriched_members(self, channel_id: str) -> dict[str, RemoteMember]:
        """List all channel members keyed by lower-cased email."""
        ...

    async def remember_identity(self, local_user_id: int, remote_user_id: str) -> None:
        """Record the remote identity of a local user."""
        ...

    async def delete_user(self, local_user_id: int) -> None:
        """Permanently delete a user's remote account and forget the mapping."""
        ...


class LmsGateway(Protocol):
    """Read-only access to LMS course, group, role and enrolment state."""

    async def get_user(self, user_id: int) -> LmsUser | None:
        """Get a user by ID."""
        ...

    async def get_course(self, course_id: int) -> Course | None:
        """Get a course by ID."""
        ...

    async def get_group(self, group_id: int) -> Group | None:
        """Get a group by ID."""
        ...

    async def list_course_groups(self, course_id: int) -> list[Group]:
        """List the groups of a course."""
        ...

    async def list_enrolled_users(self, course_id: int) -> list[EnrolledUser]:
        """List users with an active enrolment and their course roles."""
        ...

    async def list_group_member_ids(self, group_id: int) -> set[int]:
        """List the user IDs in a group."""
        ...

    async def list_user_course_ids(self, user_id: int) -> list[int]:
        """List the courses a user is enrolled in."""
        ...


class TaskQueue(Protocol):
    """Deferred execution facility (at-least-once, unordered)."""

    async def enqueue(self, task: Task, delay: float | None = None) -> None:
        """Queue a task for asynchronous execution."""
        ...
