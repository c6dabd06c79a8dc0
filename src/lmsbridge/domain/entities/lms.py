"""LMS-side entities (read-only views of LMS state)."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class LmsUser:
    """LMS user.

    Attributes:
        id: LMS user ID.
        email: Email address (cross-system join key).
        username: Login name.
        first_name: First name.
        last_name: Last name.
        suspended: Whether the account is suspended.
        deleted: Whether the account is deleted.
    """

    id: int
    email: str
    username: str
    first_name: str = ""
    last_name: str = ""
    suspended: bool = False
    deleted: bool = False

    @property
    def is_active(self) -> bool:
        """Whether the account may be a member of any channel."""
        return not (self.suspended or self.deleted)


@dataclass(frozen=True)
class EnrolledUser:
    """User with an active enrolment in a course and their course roles."""

    user: LmsUser
    role_ids: frozenset[int] = field(default_factory=frozenset)


@dataclass(frozen=True)
class Course:
    """LMS course."""

    id: int
    shortname: str
    fullname: str


@dataclass(frozen=True)
class Group:
    """LMS group inside a course."""

    id: int
    course_id: int
    name: str


@dataclass(frozen=True)
class ModuleInstance:
    """Module instance that owns a course channel.

    Attributes:
        id: Course module ID.
        course_id: Course the instance was added to.
        admin_role_ids: Roles mapped to channel admin.
        member_role_ids: Roles mapped to plain channel member.
        visible: Whether the instance is visible on the course page.
    """

    id: int
    course_id: int
    admin_role_ids: frozenset[int] = field(default_factory=frozenset)
    member_role_ids: frozenset[int] = field(default_factory=frozenset)
    visible: bool = True
