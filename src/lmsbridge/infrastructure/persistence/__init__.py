"""Persistence infrastructure."""

from lmsbridge.infrastructure.persistence.channel_binding_repository import (
    SQLiteChannelBindingRepository,
)
from lmsbridge.infrastructure.persistence.database import DatabaseManager
from lmsbridge.infrastructure.persistence.exceptions import (
    DatabaseError,
    PersistenceError,
)
from lmsbridge.infrastructure.persistence.identity_mapping_repository import (
    SQLiteIdentityMappingRepository,
)
from lmsbridge.infrastructure.persistence.models import (
    ChannelBindingModel,
    IdentityMappingModel,
)

__all__ = [
    "ChannelBindingModel",
    "DatabaseError",
    "DatabaseManager",
    "IdentityMappingModel",
    "PersistenceError",
    "SQLiteChannelBindingRepository",
    "SQLiteIdentityMappingRepository",
]
