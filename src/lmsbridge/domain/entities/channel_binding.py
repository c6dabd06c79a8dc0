"""Channel binding entity."""

from dataclasses import dataclass, replace


@dataclass(frozen=True)
class ChannelBinding:
    """Link between an LMS scope and a remote channel.

    A course-level binding has no group_id; a group-level binding carries the
    group it was provisioned for. The channel_id never changes once assigned.

    Attributes:
        channel_id: Remote channel ID.
        instance_id: Course module ID of the owning module instance.
        course_id: Course the channel belongs to.
        name: Channel name the channel was created with.
        admin_role_ids: LMS roles that make a user channel admin.
        member_role_ids: LMS roles that make a user a plain channel member.
        group_id: LMS group ID for group channels.
        recycle_bin_id: Recycle bin item holding this binding, if any.
    """

    channel_id: str
    instance_id: int
    course_id: int
    name: str
    admin_role_ids: frozenset[int] = frozenset()
    member_role_ids: frozenset[int] = frozenset()
    group_id: int | None = None
    recycle_bin_id: int | None = None

    @property
    def is_group_channel(self) -> bool:
        """Whether this binding belongs to an LMS group."""
        return self.group_id is not None

    def with_roles(
        self, admin_role_ids: frozenset[int], member_role_ids: frozenset[int]
    ) -> "ChannelBinding":
        """Return a copy with a new role configuration."""
        return replace(
            self,
            admin_role_ids=frozenset(admin_role_ids),
            member_role_ids=frozenset(member_role_ids),
        )

    def with_recycle_bin(self, recycle_bin_id: int | None) -> "ChannelBinding":
        """Return a copy held by (or released from) a recycle bin item."""
        return replace(self, recycle_bin_id=recycle_bin_id)
