"""Identity mapping entity."""

from dataclasses import dataclass


@dataclass(frozen=True)
class IdentityMapping:
    """Association between a local user and the remote account created for them.

    Attributes:
        local_user_id: LMS user ID.
        remote_user_id: Remote (chat server) user ID.
    """

    local_user_id: int
    remote_user_id: str
