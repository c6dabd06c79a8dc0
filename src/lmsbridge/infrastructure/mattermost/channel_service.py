"""Mattermost implementation of RemoteChannelService."""

import logging

from pydantic import ValidationError

from lmsbridge.config import MattermostConfig
from lmsbridge.domain.entities import (
    DesiredMember,
    IdentityMapping,
    RemoteMember,
    RemoteUser,
    UserProfile,
    normalize_email,
)
from lmsbridge.domain.exceptions import (
    ChannelCreationError,
    RemoteServiceError,
    RemoteUserUnavailableError,
    UnmappedUserError,
)
from lmsbridge.domain.repositories import IdentityMappingRepository
from lmsbridge.infrastructure.mattermost.client import MattermostClient
from lmsbridge.infrastructure.mattermost.models import (
    ROLE_CHANNEL_ADMIN,
    ROLE_CHANNEL_USER,
    ChannelMemberPayload,
    ChannelPayload,
    CreateUserRequest,
    MemberRequest,
    RemoteUserPayload,
)

logger = logging.getLogger(__name__)


def _parse(model, data, what: str):
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise RemoteServiceError(f"Malformed {what} in Mattermost response: {e}") from e


class MattermostChannelService:
    """RemoteChannelService backed by the Mattermost LMS-sync plugin.

    Local users are resolved to remote accounts through the identity
    mapping repository. Mappings are written when a user is enrolled and
    removed when the remote account is deleted.
    """

    def __init__(
        self,
        client: MattermostClient,
        identity_repository: IdentityMappingRepository,
        config: MattermostConfig,
    ) -> None:
        """Initialize the service.

        Args:
            client: Plugin API client.
            identity_repository: Local to remote user mapping storage.
            config: Mattermost settings (account creation policy, page size).
        """
        self._client = client
        self._identities = identity_repository
        self._config = config

    async def test_connection(self) -> None:
        await self._client.test_connection()

    async def create_channel(self, name: str) -> str:
        """Create a private channel.

        Raises:
            ChannelCreationError: On any remote error. name_taken tells a
                name collision apart from other failures.
        """
        try:
            data = await self._client.create_channel(name)
        except RemoteServiceError as e:
            raise ChannelCreationError(e.message, e.status_code) from e
        if not isinstance(data, dict) or not data.get("id"):
            raise ChannelCreationError(f"No channel id returned for '{name}'")
        channel = _parse(ChannelPayload, data, "channel")
        logger.info("Created Mattermost channel %s (%s)", name, channel.id)
        return channel.id

    async def archive_channel(self, channel_id: str) -> None:
        await self._client.archive_channel(channel_id)
        logger.info("Archived Mattermost channel %s", channel_id)

    async def unarchive_channel(self, channel_id: str) -> None:
        await self._client.unarchive_channel(channel_id)
        logger.info("Unarchived Mattermost channel %s", channel_id)

    async def _get_channel(self, channel_id: str) -> ChannelPayload | None:
        try:
            data = await self._client.get_channel(channel_id)
        except RemoteServiceError as e:
            if e.is_not_found:
                return None
            raise
        return _parse(ChannelPayload, data, "channel")

    async def channel_exists(self, channel_id: str) -> bool:
        return await self._get_channel(channel_id) is not None

    async def is_channel_archived(self, channel_id: str) -> bool:
        channel = await self._get_channel(channel_id)
        return channel is not None and channel.archived

    def channel_url(self, channel_id: str) -> str:
        return f"{self._client.instance_url}/{self._client.team_slug}/channels/{channel_id}"

    def _creation_request(self, profile: UserProfile) -> CreateUserRequest:
        auth_service = profile.auth_service or self._config.auth_service
        auth_data = profile.auth_data
        if not auth_data:
            auth_data = (
                profile.username if self._config.auth_data == "username" else profile.email
            )
        return CreateUserRequest(
            email=profile.email,
            username=profile.username,
            first_name=profile.first_name,
            last_name=profile.last_name,
            nickname=profile.nickname,
            auth_service=auth_service,
            auth_data=auth_data,
            team_name=self._client.team_slug,
        )

    async def upsert_user(self, profile: UserProfile) -> RemoteUser:
        """Fetch the remote account of a profile, creating it when allowed.

        Raises:
            RemoteUserUnavailableError: If the account does not exist and
                account creation is disabled.
            RemoteServiceError: On any other remote failure.
        """
        try:
            data = await self._client.get_user_by_email(profile.email)
        except RemoteServiceError as e:
            if not e.is_not_found:
                raise
            logger.debug("User %s doesn't exist on Mattermost yet", profile.username)
            if not self._config.create_user_if_not_exists:
                raise RemoteUserUnavailableError(profile.email) from e
            request = self._creation_request(profile)
            data = await self._client.create_user(request.model_dump())
            logger.info("Created Mattermost user %s", profile.username)
        user = _parse(RemoteUserPayload, data, "user")
        return RemoteUser(id=user.id, email=user.email or profile.email, username=user.username)

    async def _resolve_remote_id(self, local_user_id: int) -> str:
        mapping = await self._identities.find_by_local_user_id(local_user_id)
        if mapping is None:
            raise UnmappedUserError(local_user_id)
        return mapping.remote_user_id

    async def enroll_member(
        self, channel_id: str, member: DesiredMember, as_admin: bool
    ) -> RemoteMember:
        """Add a member to a channel.

        The remote account is always looked up by email (and created when
        allowed), so a deleted or recreated account replaces a stale mapping.
        """
        user = await self.upsert_user(member.profile)
        remote_user_id = user.id
        mapping = await self._identities.find_by_local_user_id(member.local_user_id)
        if mapping is None or mapping.remote_user_id != remote_user_id:
            await self._identities.save(
                IdentityMapping(
                    local_user_id=member.local_user_id, remote_user_id=remote_user_id
                )
            )

        request = MemberRequest(
            user_id=remote_user_id, role=ROLE_CHANNEL_ADMIN if as_admin else None
        )
        await self._client.add_user_to_channel(
            channel_id, request.model_dump(exclude_none=True)
        )
        logger.debug(
            "Enrolled user %d in channel %s (admin=%s)",
            member.local_user_id,
            channel_id,
            as_admin,
        )
        return RemoteMember(
            email=normalize_email(member.email),
            remote_user_id=remote_user_id,
            is_admin=as_admin,
        )

    async def update_member_role(
        self, channel_id: str, local_user_id: int, as_admin: bool
    ) -> None:
        remote_user_id = await self._resolve_remote_id(local_user_id)
        request = MemberRequest(
            user_id=remote_user_id,
            role=ROLE_CHANNEL_ADMIN if as_admin else ROLE_CHANNEL_USER,
        )
        await self._client.update_channel_member_roles(channel_id, request.model_dump())

    async def remove_member(
        self,
        channel_id: str,
        local_user_id: int | None = None,
        remote_member: RemoteMember | None = None,
    ) -> None:
        if remote_member is not None:
            remote_user_id = remote_member.remote_user_id
        elif local_user_id is not None:
            remote_user_id = await self._resolve_remote_id(local_user_id)
        else:
            raise ValueError("Either local_user_id or remote_member is required")
        await self._client.remove_user_from_channel(channel_id, remote_user_id)

    async def list_enriched_members(self, channel_id: str) -> dict[str, RemoteMember]:
        """List every member of a channel keyed by lower-cased email.

        Pages are fetched until one comes back shorter than the page size.
        """
        page_size = self._config.page_size
        members: dict[str, RemoteMember] = {}
        page = 0
        while True:
            items = await self._client.get_channel_members(channel_id, page, page_size)
            for item in items:
                payload = _parse(ChannelMemberPayload, item, "channel member")
                email = normalize_email(payload.email)
                members[email] = RemoteMember(
                    email=email,
                    remote_user_id=payload.user_id,
                    is_admin=payload.is_admin,
                )
            if len(items) < page_size:
                break
            page += 1
        return members

    async def remember_identity(self, local_user_id: int, remote_user_id: str) -> None:
        await self._identities.save(
            IdentityMapping(local_user_id=local_user_id, remote_user_id=remote_user_id)
        )

    async def delete_user(self, local_user_id: int) -> None:
        remote_user_id = await self._resolve_remote_id(local_user_id)
        await self._client.delete_user(remote_user_id)
        await self._identities.delete(local_user_id)
        logger.info("Deleted Mattermost user of local user %d", local_user_id)
