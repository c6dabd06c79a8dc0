"""Task handlers package."""

from lmsbridge.application.handlers.channel_sync_handler import ChannelSyncTaskHandler
from lmsbridge.application.handlers.resync_handler import ResyncTaskHandler
from lmsbridge.application.handlers.user_sync_handler import (
    UnenrolUserTaskHandler,
    UserSyncTaskHandler,
)

__all__ = [
    "ChannelSyncTaskHandler",
    "ResyncTaskHandler",
    "UnenrolUserTaskHandler",
    "UserSyncTaskHandler",
]
