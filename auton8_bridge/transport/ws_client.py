"""WebSocket client wrapper and broker backend."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from websockets.asyncio.client import ClientConnection
from websockets.exceptions import ConnectionClosed

from ..errors import BridgeConnectionError
from .base import Credentials, InboundMessage, TransportBackend
from .http import BridgeHttpClient
from .ws import connect_websocket, websocket_url

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

_LOGGER = logging.getLogger(__name__)


class BridgeWsMessageType(Enum):
    """Normalized WebSocket message types."""

    TEXT = "text"
    CLOSED = "closed"
    ERROR = "error"


@dataclass(frozen=True)
class BridgeWsMessage:
    """Normalized WebSocket message payload."""

    type: BridgeWsMessageType
    data: str | None = None


class BridgeWsClient:
    """Wrapper around the websockets library."""

    def __init__(self) -> None:
        self._ws: ClientConnection | None = None

    @property
    def connected(self) -> bool:
        return self._ws is not None

    async def connect(
        self,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        ping_interval: int = 20,
        timeout: float = 15.0,
    ) -> None:
        """Connect to the broker websocket."""
        self._ws = await connect_websocket(
            url,
            headers=headers,
            ping_interval=ping_interval,
            timeout=timeout,
        )

    async def close(self) -> None:
        """Close the websocket connection."""
        if self._ws is not None:
            ws, self._ws = self._ws, None
            await ws.close()

    async def send_json(self, payload: dict[str, Any]) -> None:
        """Send a JSON payload as a text frame."""
        if self._ws is None:
            raise BridgeConnectionError("WebSocket is not connected")
        try:
            await self._ws.send(json.dumps(payload, separators=(",", ":")))
        except ConnectionClosed as err:
            raise BridgeConnectionError("WebSocket closed while sending") from err

    def __aiter__(self) -> AsyncIterator[BridgeWsMessage]:
        if self._ws is None:
            raise BridgeConnectionError("WebSocket is not connected")
        return self._iter_messages()

    async def _iter_messages(self) -> AsyncIterator[BridgeWsMessage]:
        if self._ws is None:
            raise BridgeConnectionError("WebSocket is not connected")

        try:
            async for msg in self._ws:
                if isinstance(msg, bytes):
                    continue
                yield BridgeWsMessage(BridgeWsMessageType.TEXT, msg)
        except ConnectionClosed:
            yield BridgeWsMessage(type=BridgeWsMessageType.CLOSED)
        except Exception:
            yield BridgeWsMessage(type=BridgeWsMessageType.ERROR)
        else:
            # Normal iteration completion means the peer closed gracefully.
            yield BridgeWsMessage(type=BridgeWsMessageType.CLOSED)


class WebSocketBackend(TransportBackend):
    """Transport backend over a single broker websocket.

    The bearer token comes from the same HTTP exchange as the SSE backend;
    it and the session id ride on the websocket handshake headers. Each
    text frame carries one envelope in either direction.
    """

    def __init__(
        self,
        http: BridgeHttpClient,
        base_url: str,
        *,
        path: str = "/ws",
        ping_interval: int = 20,
        timeout: float = 15.0,
    ) -> None:
        self._http = http
        self._url = websocket_url(base_url, path)
        self._ping_interval = ping_interval
        self._timeout = timeout
        self._client: BridgeWsClient | None = None

    @property
    def url(self) -> str:
        return self._url

    async def open(self, credentials: Credentials, session_id: str | None) -> None:
        await self.close()

        token = await self._http.authenticate(
            credentials.client_id, credentials.auth_key, session_id
        )
        client = BridgeWsClient()
        await client.connect(
            self._url,
            headers=BridgeHttpClient.auth_headers(token, session_id),
            ping_interval=self._ping_interval,
            timeout=self._timeout,
        )
        self._client = client
        _LOGGER.debug("Broker websocket open at %s", self._url)

    async def messages(self) -> AsyncIterator[InboundMessage]:
        if self._client is None:
            raise BridgeConnectionError("WebSocket is not connected")
        async for msg in self._client:
            if msg.type is BridgeWsMessageType.TEXT and msg.data is not None:
                yield InboundMessage(data=msg.data)
            elif msg.type is BridgeWsMessageType.CLOSED:
                return
            else:
                raise BridgeConnectionError("WebSocket error")

    async def send(self, envelope: dict[str, Any]) -> None:
        if self._client is None:
            raise BridgeConnectionError("WebSocket is not connected")
        await self._client.send_json(envelope)

    async def close(self) -> None:
        if self._client is not None:
            client, self._client = self._client, None
            await client.close()
