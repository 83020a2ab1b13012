"""Error types for the Auton8 bridge.

Transport failures derive from ``BridgeClientError``. The transport client
treats all of them as "connection not available" and falls back to its
reconnect loop; none of them reach the game tick.
"""

from __future__ import annotations


class BridgeClientError(Exception):
    """Base error for failures talking to the orchestrator."""


class BridgeTimeout(BridgeClientError):
    """Auth exchange, event post or broker handshake did not finish in time."""


class BridgeConnectionError(BridgeClientError):
    """Orchestrator unreachable, or the event stream / broker socket dropped."""


class BridgeHandshakeError(BridgeClientError):
    """Broker websocket rejected the upgrade (bad URL, token or session)."""


class BridgeResponseError(BridgeClientError):
    """Orchestrator answered with an unusable HTTP response.

    ``status`` is the HTTP status; a 200 without a token in the ``/auth``
    body is reported with status 200.
    """

    def __init__(self, status: int, message: str) -> None:
        super().__init__(message)
        self.status = status


class ConfigError(ValueError):
    """Bridge YAML is missing, has unknown keys or holds values of the wrong type."""
