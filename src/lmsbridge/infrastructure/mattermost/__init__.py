"""Mattermost infrastructure."""

from lmsbridge.infrastructure.mattermost.channel_service import (
    MattermostChannelService,
)
from lmsbridge.infrastructure.mattermost.client import MattermostClient

__all__ = ["MattermostChannelService", "MattermostClient"]
