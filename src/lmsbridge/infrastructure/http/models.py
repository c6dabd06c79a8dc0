"""Inbound webhook payloads."""

from pydantic import BaseModel, ConfigDict, field_validator

from lmsbridge.domain.entities import LmsEvent, LmsEventType


class LmsEventPayload(BaseModel):
    """JSON body of POST /events.

    Role sets may be sent as a list of ids or a comma-joined string.
    """

    model_config = ConfigDict(extra="ignore")

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
    admin_role_ids: list[int] | None = None
    member_role_ids: list[int] | None = None

    @field_validator("admin_role_ids", "member_role_ids", mode="before")
    @classmethod
    def _split_roles(cls, value: object) -> object:
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    def to_event(self) -> LmsEvent:
        return LmsEvent(
            type=self.type,
            user_id=self.user_id,
            course_id=self.course_id,
            role_id=self.role_id,
            group_id=self.group_id,
            instance_id=self.instance_id,
            bin_id=self.bin_id,
            component=self.component,
            actor_id=self.actor_id,
            visible=self.visible,
            suspended=self.suspended,
            deleted=self.deleted,
            admin_role_ids=(
                frozenset(self.admin_role_ids)
                if self.admin_role_ids is not None
                else None
            ),
            member_role_ids=(
                frozenset(self.member_role_ids)
                if self.member_role_ids is not None
                else None
            ),
        )
