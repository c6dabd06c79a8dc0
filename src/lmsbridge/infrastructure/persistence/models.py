"""SQLModel table definitions."""

from datetime import datetime, timezone

from sqlmodel import Field, SQLModel


class IdentityMappingModel(SQLModel, table=True):
    """ID マッピングテーブル"""

    __tablename__ = "identity_mappings"

    local_user_id: int = Field(primary_key=True)
    remote_user_id: str = Field(unique=True, index=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ChannelBindingModel(SQLModel, table=True):
    """チャンネル紐付けテーブル"""

    __tablename__ = "channel_bindings"

    id: int | None = Field(default=None, primary_key=True)
    channel_id: str = Field(unique=True, index=True)
    instance_id: int = Field(index=True)
    course_id: int = Field(index=True)
    group_id: int | None = Field(default=None, index=True)
    name: str
    admin_role_ids: str = ""  # カンマ区切り: "3,4"
    member_role_ids: str = ""
    recycle_bin_id: int | None = Field(default=None, index=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
