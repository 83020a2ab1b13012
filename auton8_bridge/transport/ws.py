"""WebSocket helpers for the orchestrator broker connection."""

from __future__ import annotations

import asyncio

import websockets
from websockets.asyncio.client import ClientConnection
from websockets.exceptions import (
    InvalidHandshake,
    InvalidURI,
    WebSocketException,
)

from ..errors import (
    BridgeConnectionError,
    BridgeHandshakeError,
    BridgeTimeout,
)


def websocket_url(base_url: str, path: str) -> str:
    """Derive the websocket URL from the HTTP base URL."""
    base = base_url.rstrip("/")
    if base.startswith("https://"):
        base = "wss://" + base[len("https://") :]
    elif base.startswith("http://"):
        base = "ws://" + base[len("http://") :]
    return f"{base}{path}"


async def connect_websocket(
    url: str,
    *,
    headers: dict[str, str] | None = None,
    ping_interval: int | None = 20,
    timeout: float = 15.0,
) -> ClientConnection:
    """Connect to a WebSocket endpoint.

    Args:
        url: Full ws:// or wss:// URL
        headers: Extra handshake headers (authorization, session id)
        ping_interval: Interval for ping frames
        timeout: Connection timeout
    """
    try:
        return await asyncio.wait_for(
            websockets.connect(
                url,
                additional_headers=headers,
                ping_interval=ping_interval,
                close_timeout=5,
                max_size=None,
            ),
            timeout=timeout,
        )
    except TimeoutError as err:
        raise BridgeTimeout("WebSocket connection timed out") from err
    except (InvalidHandshake, InvalidURI) as err:
        raise BridgeHandshakeError("WebSocket handshake failed") from err
    except (OSError, WebSocketException) as err:
        raise BridgeConnectionError("WebSocket connection failed") from err
