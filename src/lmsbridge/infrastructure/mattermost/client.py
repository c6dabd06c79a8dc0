"""HTTP client for the Mattermost LMS-sync plugin API."""

import json
import logging
from typing import Any

import httpx

from lmsbridge.config import ConfigValidationError, MattermostConfig
from lmsbridge.domain.exceptions import RemoteServiceError

logger = logging.getLogger(__name__)

PLUGIN_ID = "com.mattermost.moodle-sync"
API_PREFIX = f"/plugins/{PLUGIN_ID}/api/v1"


def _error_message(response: httpx.Response) -> str:
    """Extract the error text from a failed response.

    The plugin answers with {"error": ...} or {"message": ...}; anything else
    is used as plain text.
    """
    try:
        body = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return response.text
    if isinstance(body, dict):
        return str(body.get("error") or body.get("message") or response.text)
    return response.text


class MattermostClient:
    """Typed wrapper over the plugin REST API.

    Every request carries the shared secret as a query parameter. Non-2xx
    responses and transport failures raise RemoteServiceError; the status
    code is 0 for transport failures and timeouts.
    """

    def __init__(
        self,
        config: MattermostConfig,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Mattermost connection settings.
            http_client: Client to use instead of a newly created one.

        Raises:
            ConfigValidationError: If the URL, secret or team slug is empty.
        """
        for name in ("instance_url", "secret", "team_slug"):
            if not getattr(config, name):
                raise ConfigValidationError(f"Mattermost '{name}' is not configured")
        self._config = config
        self._base_url = config.instance_url.rstrip("/")
        self._http = http_client or httpx.AsyncClient(timeout=config.timeout_seconds)

    @property
    def instance_url(self) -> str:
        return self._base_url

    @property
    def team_slug(self) -> str:
        return self._config.team_slug

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._http.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        payload: dict[str, Any] | None = None,
    ) -> Any:
        query = {"secret": self._config.secret}
        if params:
            query.update(params)
        url = f"{self._base_url}{API_PREFIX}{path}"
        try:
            response = await self._http.request(
                method,
                url,
                params=query,
                json=payload,
                headers={"Content-Type": "application/json"},
                timeout=self._config.timeout_seconds,
            )
        except httpx.HTTPError as e:
            logger.debug("Mattermost %s %s failed: %s", method, path, e)
            raise RemoteServiceError(str(e) or type(e).__name__, 0) from e

        if not response.is_success:
            message = _error_message(response)
            logger.debug(
                "Unexpected response from Mattermost %s %s, HTTP code: %d, message: %s",
                method,
                path,
                response.status_code,
                message,
            )
            raise RemoteServiceError(message, response.status_code)

        if not response.content:
            return None
        try:
            return response.json()
        except json.JSONDecodeError:
            return response.text

    async def test_connection(self) -> Any:
        return await self._request("POST", "/test")

    async def create_channel(self, name: str) -> dict[str, Any]:
        return await self._request(
            "POST",
            "/channels",
            params={"team_name": self.team_slug},
            payload={"name": name},
        )

    async def get_channel(self, channel_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/channels/{channel_id}")

    async def archive_channel(self, channel_id: str) -> None:
        await self._request("DELETE", f"/channels/{channel_id}")

    async def unarchive_channel(self, channel_id: str) -> None:
        await self._request("POST", f"/channels/{channel_id}/unarchive")

    async def create_user(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await self._request(
            "POST", "/users", params={"team_name": self.team_slug}, payload=payload
        )

    async def get_user_by_email(self, email: str) -> dict[str, Any]:
        return await self._request("GET", f"/users/{email}")

    async def delete_user(self, user_id: str) -> None:
        await self._request("DELETE", f"/users/{user_id}")

    async def add_user_to_channel(
        self, channel_id: str, payload: dict[str, Any]
    ) -> Any:
        return await self._request(
            "POST", f"/channels/{channel_id}/members", payload=payload
        )

    async def remove_user_from_channel(self, channel_id: str, user_id: str) -> None:
        await self._request("DELETE", f"/channels/{channel_id}/members/{user_id}")

    async def update_channel_member_roles(
        self, channel_id: str, payload: dict[str, Any]
    ) -> None:
        await self._request(
            "PATCH", f"/channels/{channel_id}/members/roles", payload=payload
        )

    async def get_channel_members(
        self, channel_id: str, page: int, per_page: int
    ) -> list[dict[str, Any]]:
        """Fetch one page of channel members (pages start at 0)."""
        result = await self._request(
            "GET",
            f"/channels/{channel_id}/members",
            params={"page": page, "per_page": per_page},
        )
        return result or []
