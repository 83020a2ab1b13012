"""Transport layer for the Auton8 bridge.

This package contains all IO, wire handling and connection supervision.

Components:
- base: backend interface, connection state, publisher protocol
- http: aiohttp client for the auth exchange and event posts
- sse: HTTP + Server-Sent Events backend
- ws / ws_client: websocket helpers and broker backend
- client: the transport client the rest of the bridge talks to
"""

from .base import (
    ConnectionState,
    Credentials,
    EventPublisher,
    InboundMessage,
    TransportBackend,
)
from .client import TransportClient
from .http import BridgeHttpClient
from .sse import SseBackend, iter_sse_events
from .ws import connect_websocket, websocket_url
from .ws_client import (
    BridgeWsClient,
    BridgeWsMessage,
    BridgeWsMessageType,
    WebSocketBackend,
)

__all__ = [
    "BridgeHttpClient",
    "BridgeWsClient",
    "BridgeWsMessage",
    "BridgeWsMessageType",
    "ConnectionState",
    "Credentials",
    "EventPublisher",
    "InboundMessage",
    "SseBackend",
    "TransportBackend",
    "TransportClient",
    "WebSocketBackend",
    "connect_websocket",
    "iter_sse_events",
    "websocket_url",
]
