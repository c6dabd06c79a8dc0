"""LMS domain events consumed by the router."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

DEFAULT_ENROLMENT_COMPONENT = "enrol_manual"


class LmsEventType(Enum):
    """LMS event types."""

    ROLE_ASSIGNED = "role_assigned"
    ROLE_UNASSIGNED = "role_unassigned"
    USER_UPDATED = "user_updated"
    USER_ENROLMENT_UPDATED = "user_enrolment_updated"
    GROUP_MEMBER_ADDED = "group_member_added"
    GROUP_MEMBER_REMOVED = "group_member_removed"
    GROUP_CREATED = "group_created"
    GROUP_DELETED = "group_deleted"
    MODULE_CREATED = "module_created"
    MODULE_UPDATED = "module_updated"
    MODULE_DELETED = "module_deleted"
    BIN_ITEM_CREATED = "bin_item_created"
    BIN_ITEM_RESTORED = "bin_item_restored"
    BIN_ITEM_PURGED = "bin_item_purged"


@dataclass(frozen=True)
class LmsEvent:
    """Event raised by the LMS.

    Only the fields relevant to the event type are set.

    Attributes:
        type: Event type.
        user_id: Affected (related) user.
        course_id: Course the event happened in.
        role_id: Role assigned or unassigned.
        group_id: Group concerned.
        instance_id: Course module ID of a module instance.
        bin_id: Recycle bin item ID.
        component: Sub-system that triggered the event (enrolment method).
        actor_id: User who performed the action.
        visible: Module visibility after the update.
        suspended: Whether the user is suspended (user_updated).
        deleted: Whether the user is deleted (user_updated).
        admin_role_ids: Module admin roles after the update.
        member_role_ids: Module member roles after the update.
        created_at: Event creation time.
    """

    type: LmsEventType
    user_id: int | None = None
    course_id: int | None = None
    role_id: int | None = None
    group_id: int | None = None
    instance_id: int | None = None
    bin_id: int | None = None
    component: str | None = None
    actor_id: int | None = None
    visible: bool | None = None
    suspended: bool = False
    deleted: bool = False
    admin_role_ids: frozenset[int] | None = None
    member_role_ids: frozenset[int] | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def trigger_source(self) -> str:
        """Sub-system name used to pick immediate or deferred execution."""
        return self.component or DEFAULT_ENROLMENT_COMPONENT
