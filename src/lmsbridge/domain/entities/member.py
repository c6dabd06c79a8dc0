"""Channel member entities."""

from dataclasses import dataclass


def normalize_email(email: str) -> str:
    """Normalize an email address for cross-system comparison."""
    return email.strip().lower()


@dataclass(frozen=True)
class UserProfile:
    """Profile used to create or look up a remote account.

    auth_service and auth_data are filled in from configuration by the
    remote service when left empty.
    """

    email: str
    username: str
    first_name: str = ""
    last_name: str = ""
    auth_service: str | None = None
    auth_data: str | None = None

    @property
    def nickname(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class DesiredMember:
    """Local user who should be in a channel, with their privilege level.

    Attributes:
        local_user_id: LMS user ID.
        email: Email address.
        is_admin: Whether the user should be channel admin.
        profile: Profile used when the remote account must be created.
    """

    local_user_id: int
    email: str
    is_admin: bool
    profile: UserProfile

    @property
    def key(self) -> str:
        """Join key against remote members."""
        return normalize_email(self.email)


@dataclass(frozen=True)
class RemoteMember:
    """Member of a remote channel as reported by the chat server."""

    email: str
    remote_user_id: str
    is_admin: bool = False


@dataclass(frozen=True)
class RemoteUser:
    """Remote chat server account."""

    id: str
    email: str
    username: str = ""
