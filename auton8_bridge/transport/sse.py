"""HTTP + Server-Sent Events backend.

Inbound messages arrive on a long-lived ``GET /events/stream``; outbound
envelopes are individual ``POST /events`` requests.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import aiohttp

from ..errors import BridgeConnectionError, BridgeResponseError, BridgeTimeout
from .base import Credentials, InboundMessage, TransportBackend
from .http import BridgeHttpClient

if TYPE_CHECKING:
    from collections.abc import AsyncIterable, AsyncIterator

_LOGGER = logging.getLogger(__name__)

DEFAULT_EVENT_NAME = "message"


@dataclass(frozen=True)
class ServerSentEvent:
    """One dispatched SSE event."""

    event: str
    data: str


async def iter_sse_events(lines: AsyncIterable[bytes]) -> AsyncIterator[ServerSentEvent]:
    """Parse an SSE byte stream into events.

    Handles ``event:`` and multi-line ``data:`` fields, ignores comments,
    ``id:`` and ``retry:``. A blank line dispatches the pending event; a
    trailing event without its blank line is discarded.
    """
    event_name: str | None = None
    data_lines: list[str] = []

    async for raw in lines:
        line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
        if not line:
            if data_lines:
                yield ServerSentEvent(
                    event=event_name or DEFAULT_EVENT_NAME,
                    data="\n".join(data_lines),
                )
            event_name = None
            data_lines = []
            continue
        if line.startswith(":"):
            continue

        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if field == "event":
            event_name = value
        elif field == "data":
            data_lines.append(value)


class SseBackend(TransportBackend):
    """Transport backend over HTTP POST + SSE stream."""

    def __init__(
        self,
        http: BridgeHttpClient,
        *,
        stream_path: str = "/events/stream",
        connect_timeout: float = 10.0,
    ) -> None:
        self._http = http
        self._stream_path = stream_path
        self._connect_timeout = connect_timeout
        self._token: str | None = None
        self._session_id: str | None = None
        self._response: aiohttp.ClientResponse | None = None

    async def open(self, credentials: Credentials, session_id: str | None) -> None:
        """Authenticate, then open the event stream."""
        await self.close()

        token = await self._http.authenticate(
            credentials.client_id, credentials.auth_key, session_id
        )
        headers = {
            **BridgeHttpClient.auth_headers(token, session_id),
            "Accept": "text/event-stream",
        }
        url = self._http.url(self._stream_path)
        try:
            response = await self._http.session.get(
                url,
                headers=headers,
                timeout=aiohttp.ClientTimeout(
                    total=None, sock_connect=self._connect_timeout
                ),
            )
        except TimeoutError as err:
            raise BridgeTimeout("Event stream connection timed out") from err
        except aiohttp.ClientError as err:
            raise BridgeConnectionError("Event stream connection failed") from err

        if response.status != 200:
            response.release()
            raise BridgeResponseError(
                response.status, f"Event stream rejected: {response.status}"
            )

        self._token = token
        self._session_id = session_id
        self._response = response
        _LOGGER.debug("Event stream open at %s", url)

    async def messages(self) -> AsyncIterator[InboundMessage]:
        if self._response is None:
            raise BridgeConnectionError("Event stream is not open")
        try:
            async for event in iter_sse_events(self._response.content):
                yield InboundMessage(data=event.data, kind=event.event)
        except aiohttp.ClientError as err:
            raise BridgeConnectionError("Event stream failed") from err

    async def send(self, envelope: dict[str, Any]) -> None:
        await self._http.post_event(
            envelope, token=self._token, session_id=self._session_id
        )

    async def close(self) -> None:
        if self._response is not None:
            self._response.close()
            self._response = None
