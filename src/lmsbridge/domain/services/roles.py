"""Role classification for channel membership."""

from collections.abc import Iterable

from lmsbridge.domain.entities import (
    ChannelBinding,
    DesiredMember,
    EnrolledUser,
    LmsUser,
    UserProfile,
)


def classify_roles(
    role_ids: Iterable[int],
    admin_role_ids: frozenset[int],
    member_role_ids: frozenset[int],
) -> bool | None:
    """Classify a set of held roles.

    Admin roles are checked first: a user holding an admin role is admin
    whatever other roles they hold.

    Returns:
        True for channel admin, False for plain member, None when the user
        should not be in the channel.
    """
    held = frozenset(role_ids)
    if held & admin_role_ids:
        return True
    if held & member_role_ids:
        return False
    return None


def to_profile(user: LmsUser) -> UserProfile:
    """Build the remote account profile of an LMS user."""
    return UserProfile(
        email=user.email,
        username=user.username,
        first_name=user.first_name,
        last_name=user.last_name,
    )


def desired_member_for(
    enrolled: EnrolledUser, binding: ChannelBinding
) -> DesiredMember | None:
    """Compute whether and how an enrolled user belongs in a bound channel.

    Returns:
        The desired member, or None if the user should not be a member.
    """
    user = enrolled.user
    if not user.is_active or not user.email:
        return None
    is_admin = classify_roles(
        enrolled.role_ids, binding.admin_role_ids, binding.member_role_ids
    )
    if is_admin is None:
        return None
    return DesiredMember(
        local_user_id=user.id,
        email=user.email,
        is_admin=is_admin,
        profile=to_profile(user),
    )
