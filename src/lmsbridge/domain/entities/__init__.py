"""Domain entities."""

from lmsbridge.domain.entities.channel_binding import ChannelBinding
from lmsbridge.domain.entities.event import LmsEvent, LmsEventType
from lmsbridge.domain.entities.identity_mapping import IdentityMapping
from lmsbridge.domain.entities.lms import (
    Course,
    EnrolledUser,
    Group,
    LmsUser,
    ModuleInstance,
)
from lmsbridge.domain.entities.member import (
    DesiredMember,
    RemoteMember,
    RemoteUser,
    UserProfile,
    normalize_email,
)
from lmsbridge.domain.entities.sync import SyncResult, SyncScope
from lmsbridge.domain.entities.task import Task, TaskType

__all__ = [
    "ChannelBinding",
    "Course",
    "DesiredMember",
    "EnrolledUser",
    "Group",
    "IdentityMapping",
    "LmsEvent",
    "LmsEventType",
    "LmsUser",
    "ModuleInstance",
    "RemoteMember",
    "RemoteUser",
    "SyncResult",
    "SyncScope",
    "Task",
    "TaskType",
    "UserProfile",
    "normalize_email",
]
