"""Application use cases."""

from lmsbridge.application.use_cases.provision_channel import ChannelProvisioner

__all__ = ["ChannelProvisioner"]
