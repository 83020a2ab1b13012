"""Auton8 bridge: orchestrator transport and heuristic navigation observer."""

__version__ = "0.1.0"

from .bridge import Auton8Link, create_backend
from .config import BridgeConfig, EndpointConfig, load_config
from .errors import (
    BridgeClientError,
    BridgeConnectionError,
    BridgeHandshakeError,
    BridgeResponseError,
    BridgeTimeout,
    ConfigError,
)
from .game import GameClient, TickSample
from .hud import HudStatus, HudStatusStore
from .life import LifeMonitor
from .navigation import (
    CommandSource,
    NavigationObserver,
    NavigationTuning,
    NavMode,
    Vec3,
)
from .protocol import (
    Envelope,
    build_envelope,
    build_event,
    decode_envelope,
    encode_envelope,
    enrich_session_id,
)
from .session import BridgeSession, SessionInfo
from .transport import (
    ConnectionState,
    Credentials,
    SseBackend,
    TransportBackend,
    TransportClient,
    WebSocketBackend,
)

__all__ = [
    "Auton8Link",
    "BridgeClientError",
    "BridgeConfig",
    "BridgeConnectionError",
    "BridgeHandshakeError",
    "BridgeResponseError",
    "BridgeSession",
    "BridgeTimeout",
    "CommandSource",
    "ConfigError",
    "ConnectionState",
    "Credentials",
    "EndpointConfig",
    "Envelope",
    "GameClient",
    "HudStatus",
    "HudStatusStore",
    "LifeMonitor",
    "NavMode",
    "NavigationObserver",
    "NavigationTuning",
    "SessionInfo",
    "SseBackend",
    "TickSample",
    "TransportBackend",
    "TransportClient",
    "Vec3",
    "WebSocketBackend",
    "__version__",
    "build_envelope",
    "build_event",
    "create_backend",
    "decode_envelope",
    "encode_envelope",
    "enrich_session_id",
    "load_config",
]
