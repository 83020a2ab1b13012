"""Pytest configuration and fixtures for auton8_bridge tests."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from auton8_bridge.errors import BridgeConnectionError
from auton8_bridge.navigation.model import CommandSource
from auton8_bridge.transport.base import Credentials, InboundMessage, TransportBackend

_END_OF_STREAM = object()


@pytest.fixture
def mock_session() -> MagicMock:
    """Create a mock aiohttp ClientSession."""
    import aiohttp

    return MagicMock(spec=aiohttp.ClientSession)


def create_mock_response(
    status: int = 200,
    json_data: dict[str, Any] | None = None,
    text_data: str | None = None,
) -> AsyncMock:
    """Create a configured mock response.

    Args:
        status: HTTP status code
        json_data: Data to return from json() call
        text_data: Data to return from text() call

    Returns:
        Configured AsyncMock response usable as an async context manager
    """
    response = AsyncMock()
    response.status = status

    if json_data is not None:
        response.json.return_value = json_data
    if text_data is not None:
        response.text.return_value = text_data

    response.__aenter__.return_value = response
    response.__aexit__.return_value = None

    return response


class FakeBackend(TransportBackend):
    """In-memory backend recording every call."""

    def __init__(self) -> None:
        self.open_calls = 0
        self.close_calls = 0
        self.fail_opens = 0
        self.sent: list[dict[str, Any]] = []
        self.session_ids: list[str | None] = []
        self.credentials: Credentials | None = None
        self._inbox: asyncio.Queue[Any] | None = None

    async def open(self, credentials: Credentials, session_id: str | None) -> None:
        self.open_calls += 1
        self.credentials = credentials
        self.session_ids.append(session_id)
        if self.fail_opens > 0:
            self.fail_opens -= 1
            raise BridgeConnectionError("connection refused")
        self._inbox = asyncio.Queue()

    async def messages(self) -> AsyncIterator[InboundMessage]:
        inbox = self._inbox
        if inbox is None:
            raise BridgeConnectionError("not open")
        while True:
            item = await inbox.get()
            if item is _END_OF_STREAM:
                return
            if isinstance(item, Exception):
                raise item
            yield item

    async def send(self, envelope: dict[str, Any]) -> None:
        self.sent.append(envelope)

    async def close(self) -> None:
        self.close_calls += 1

    def push(self, data: Any, kind: str | None = None) -> None:
        """Deliver an inbound message; dicts are JSON-encoded."""
        assert self._inbox is not None
        raw = data if isinstance(data, str) else json.dumps(data)
        self._inbox.put_nowait(InboundMessage(data=raw, kind=kind))

    def end_stream(self) -> None:
        assert self._inbox is not None
        self._inbox.put_nowait(_END_OF_STREAM)

    def fail_stream(self, error: Exception) -> None:
        assert self._inbox is not None
        self._inbox.put_nowait(error)

    def sent_events(self, event: str | None = None) -> list[dict[str, Any]]:
        """Payloads sent on the events endpoint, optionally filtered."""
        payloads = [e["data"] for e in self.sent if e["endpoint"] == "events"]
        if event is not None:
            payloads = [p for p in payloads if p.get("event") == event]
        return payloads


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


class FakeGame:
    """Game collaborator recording chat lines."""

    def __init__(self, *, player: bool = True) -> None:
        self.player = player
        self.chat: list[tuple[str, CommandSource]] = []

    def has_player(self) -> bool:
        return self.player

    def send_chat(self, text: str, source: CommandSource) -> None:
        self.chat.append((text, source))


@pytest.fixture
def fake_game() -> FakeGame:
    return FakeGame()


class RecordingPublisher:
    """Publisher double capturing payloads per endpoint."""

    def __init__(self, *, connected: bool = True) -> None:
        self.connected = connected
        self.published: list[tuple[str, Any]] = []

    @property
    def is_connected(self) -> bool:
        return self.connected

    def publish(self, endpoint: str, payload: Any) -> None:
        self.published.append((endpoint, payload))

    def events(self, name: str | None = None) -> list[dict[str, Any]]:
        found = [p for e, p in self.published if e == "events"]
        if name is not None:
            found = [p for p in found if p.get("event") == name]
        return found

    def on(self, endpoint: str) -> list[Any]:
        return [p for e, p in self.published if e == endpoint]


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


async def eventually(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll until ``predicate`` holds or fail after ``timeout`` seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.01)
