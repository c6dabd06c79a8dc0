"""Mattermost LMS-sync plugin payloads."""

from pydantic import BaseModel, ConfigDict, Field

ROLE_CHANNEL_ADMIN = "channel_admin"
ROLE_CHANNEL_USER = "channel_user"


class RemoteUserPayload(BaseModel):
    """User returned by GET /users/{email} and POST /users."""

    model_config = ConfigDict(extra="ignore")

    id: str
    email: str = ""
    username: str = ""


class ChannelPayload(BaseModel):
    """Channel returned by POST /channels and GET /channels/{id}."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str = ""
    delete_at: int = 0

    @property
    def archived(self) -> bool:
        return self.delete_at > 0


class ChannelMemberPayload(BaseModel):
    """Entry of GET /channels/{id}/members."""

    model_config = ConfigDict(extra="ignore")

    user_id: str
    email: str = ""
    roles: str = ""
    scheme_admin: bool = False

    @property
    def is_admin(self) -> bool:
        """Whether the member holds the channel admin role."""
        return self.scheme_admin or ROLE_CHANNEL_ADMIN in self.roles.split()


class CreateUserRequest(BaseModel):
    """Body of POST /users."""

    email: str
    username: str
    first_name: str = ""
    last_name: str = ""
    nickname: str = ""
    auth_service: str
    auth_data: str
    team_name: str


class MemberRequest(BaseModel):
    """Body of POST /channels/{id}/members and PATCH .../members/roles."""

    user_id: str
    role: str | None = Field(default=None)
