"""Application services."""

from lmsbridge.application.services.channel_locks import ChannelLocks
from lmsbridge.application.services.event_router import (
    EventRouter,
    RouteMode,
    delete_remote_account,
)
from lmsbridge.application.services.membership_synchronizer import (
    MembershipSynchronizer,
)

__all__ = [
    "ChannelLocks",
    "EventRouter",
    "MembershipSynchronizer",
    "RouteMode",
    "delete_remote_account",
]
