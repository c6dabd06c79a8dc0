"""Repository protocols."""

from lmsbridge.domain.repositories.channel_binding_repository import (
    ChannelBindingRepository,
)
from lmsbridge.domain.repositories.identity_mapping_repository import (
    IdentityMappingRepository,
)

__all__ = ["ChannelBindingRepository", "IdentityMappingRepository"]
