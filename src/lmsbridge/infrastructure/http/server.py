"""HTTP server: health probes, LMS webhook and admin endpoints."""

from __future__ import annotations

import hmac
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from aiohttp import web

from lmsbridge.domain.exceptions import (
    BindingNotFoundError,
    LmsServiceError,
    RemoteServiceError,
)
from lmsbridge.infrastructure.http.models import LmsEventPayload

if TYPE_CHECKING:
    from lmsbridge.application.services.event_router import EventRouter
    from lmsbridge.domain.repositories import ChannelBindingRepository
    from lmsbridge.domain.services import RemoteChannelService
    from lmsbridge.infrastructure.persistence.database import DatabaseManager
    from lmsbridge.infrastructure.tasks.loop import TaskLoop
    from lmsbridge.infrastructure.tasks.scheduler import TaskScheduler

logger = logging.getLogger(__name__)


class BridgeServer:
    """aiohttp server of the bridge.

    Endpoints:
    - GET /live, GET /ready: Kubernetes probes.
    - POST /events: LMS webhook, routed through the EventRouter.
    - GET /admin/test-connection: checks the Mattermost credentials.
    - GET /instances/{instance_id}/link: browser URL of an instance channel.
    """

    def __init__(
        self,
        task_loop: TaskLoop,
        task_scheduler: TaskScheduler,
        db_manager: DatabaseManager,
        router: EventRouter,
        remote: RemoteChannelService,
        binding_repository: ChannelBindingRepository,
        host: str = "0.0.0.0",
        port: int = 8080,
        token: str = "",
    ) -> None:
        """Initialize the server.

        Args:
            task_loop: TaskLoop instance.
            task_scheduler: TaskScheduler instance.
            db_manager: DatabaseManager instance.
            router: Router receiving webhook events.
            remote: Remote chat server operations.
            binding_repository: Channel bindings.
            host: Address to listen on.
            port: Port to listen on. Use 0 for any available port.
            token: Bearer token required on /events and /admin (empty: none).
        """
        self._task_loop = task_loop
        self._task_scheduler = task_scheduler
        self._db_manager = db_manager
        self._router = router
        self._remote = remote
        self._bindings = binding_repository
        self._host = host
        self._port = port
        self._actual_port = port
        self._token = token
        self._runner: web.AppRunner | None = None
        self._site: web.TCPSite | None = None
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def port(self) -> int:
        """Get the port the server is listening on."""
        return self._actual_port

    async def check_liveness(self) -> dict[str, Any]:
        is_alive = self._task_loop.is_running
        return {
            "status": "alive" if is_alive else "dead",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    async def check_readiness(self) -> dict[str, Any]:
        task_loop_ok = self._task_loop.is_running
        scheduler_ok = self._task_scheduler.is_running
        db_ok = await self._db_manager.is_healthy()
        return {
            "ready": task_loop_ok and scheduler_ok and db_ok,
            "task_loop": task_loop_ok,
            "task_scheduler": scheduler_ok,
            "database": db_ok,
        }

    def _authorized(self, request: web.Request) -> bool:
        if not self._token:
            return True
        header = request.headers.get("Authorization", "")
        return hmac.compare_digest(header, f"Bearer {self._token}")

    async def _handle_live(self, request: web.Request) -> web.Response:
        return web.json_response(await self.check_liveness())

    async def _handle_ready(self, request: web.Request) -> web.Response:
        result = await self.check_readiness()
        return web.json_response(result, status=200 if result["ready"] else 503)

    async def _handle_event(self, request: web.Request) -> web.Response:
        if not self._authorized(request):
            return web.json_response({"error": "unauthorized"}, status=401)
        try:
            payload = LmsEventPayload.model_validate(await request.json())
        except ValueError as e:
            # ValidationError and JSONDecodeError are both ValueErrors
            return web.json_response({"error": str(e)}, status=400)

        event = payload.to_event()
        try:
            mode = await self._router.route(event)
        except BindingNotFoundError as e:
            return web.json_response({"error": str(e)}, status=404)
        except ValueError as e:
            return web.json_response({"error": str(e)}, status=400)
        except (RemoteServiceError, LmsServiceError) as e:
            logger.warning("Failed to handle %s event: %s", event.type.value, e)
            return web.json_response({"error": str(e)}, status=502)
        return web.json_response({"mode": mode.value})

    async def _handle_test_connection(self, request: web.Request) -> web.Response:
        if not self._authorized(request):
            return web.json_response({"error": "unauthorized"}, status=401)
        try:
            await self._remote.test_connection()
        except RemoteServiceError as e:
            # Shown to administrators as-is.
            return web.json_response(
                {"success": False, "error_code": e.status_code, "message": e.message},
                status=502,
            )
        return web.json_response({"success": True})

    async def _handle_link(self, request: web.Request) -> web.Response:
        try:
            instance_id = int(request.match_info["instance_id"])
        except ValueError:
            return web.json_response({"error": "invalid instance id"}, status=400)
        binding = await self._bindings.find_course_channel(instance_id)
        if binding is None:
            return web.json_response({"error": "no channel"}, status=404)
        return web.json_response(
            {
                "channel_id": binding.channel_id,
                "url": self._remote.channel_url(binding.channel_id),
            }
        )

    def create_app(self) -> web.Application:
        """Build the aiohttp application."""
        app = web.Application()
        app.router.add_get("/live", self._handle_live)
        app.router.add_get("/ready", self._handle_ready)
        app.router.add_post("/events", self._handle_event)
        app.router.add_get("/admin/test-connection", self._handle_test_connection)
        app.router.add_get("/instances/{instance_id}/link", self._handle_link)
        return app

    async def start(self) -> None:
        """Start the HTTP server."""
        self._runner = web.AppRunner(self.create_app())
        await self._runner.setup()

        self._site = web.TCPSite(self._runner, self._host, self._port)
        await self._site.start()

        # Actual port when port=0
        if self._site._server is not None:
            sockets = self._site._server.sockets  # type: ignore[union-attr]
            if sockets:
                self._actual_port = sockets[0].getsockname()[1]

        self._running = True
        logger.info("HTTP server started on %s:%d", self._host, self.port)

    async def stop(self) -> None:
        """Stop the HTTP server."""
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            self._site = None

        self._running = False
        logger.info("HTTP server stopped")
