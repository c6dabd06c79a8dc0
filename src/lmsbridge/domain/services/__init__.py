"""Domain services."""

from lmsbridge.domain.services.channel_name import (
    ChannelNameFormatter,
    format_template,
    sanitize_channel_name,
)
from lmsbridge.domain.services.protocols import (
    LmsGateway,
    RemoteChannelService,
    TaskQueue,
)
from lmsbridge.domain.services.roles import (
    classify_roles,
    desired_member_for,
    to_profile,
)

__all__ = [
    "ChannelNameFormatter",
    "LmsGateway",
    "RemoteChannelService",
    "TaskQueue",
    "classify_roles",
    "desired_member_for",
    "format_template",
    "sanitize_channel_name",
    "to_profile",
]
