"""Fixtures for Mattermost tests."""

import json
from collections.abc import Callable

import httpx
import pytest

from lmsbridge.config import MattermostConfig
from lmsbridge.infrastructure.mattermost import MattermostClient


class RecordingTransport:
    """Route requests to canned responses and remember what was sent."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._routes: dict[tuple[str, str], Callable[[httpx.Request], httpx.Response]] = {}

    def on(self, method: str, path: str, status: int = 200, body=None) -> None:
        def respond(request: httpx.Request) -> httpx.Response:
            if body is None:
                return httpx.Response(status)
            return httpx.Response(status, json=body)

        self._routes[(method, path)] = respond

    def on_call(
        self, method: str, path: str, handler: Callable[[httpx.Request], httpx.Response]
    ) -> None:
        self._routes[(method, path)] = handler

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self._routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"error": "not found"})
        return route(request)

    def body(self, index: int = -1) -> dict:
        return json.loads(self.requests[index].content)


@pytest.fixture
def mattermost_config() -> MattermostConfig:
    return MattermostConfig(
        instance_url="https://chat.example.com/",
        secret="s3cret",
        team_slug="school",
        page_size=2,
    )


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def client(
    mattermost_config: MattermostConfig, transport: RecordingTransport
) -> MattermostClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(transport))
    return MattermostClient(mattermost_config, http_client=http_client)
