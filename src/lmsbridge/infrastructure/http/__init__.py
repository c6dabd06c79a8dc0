"""HTTP infrastructure."""

from lmsbridge.infrastructure.http.models import LmsEventPayload
from lmsbridge.infrastructure.http.server import BridgeServer

__all__ = ["BridgeServer", "LmsEventPayload"]
