"""Tests for the SSE parser and the HTTP + SSE backend."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from auton8_bridge.errors import BridgeResponseError
from auton8_bridge.transport.base import Credentials, InboundMessage
from auton8_bridge.transport.http import BridgeHttpClient
from auton8_bridge.transport.sse import ServerSentEvent, SseBackend, iter_sse_events

from .conftest import create_mock_response


class ByteLines:
    """Async iterable of raw stream lines, like aiohttp's StreamReader."""

    def __init__(self, text: str) -> None:
        self._lines = [line.encode() for line in text.splitlines(keepends=True)]

    async def __aiter__(self):
        for line in self._lines:
            yield line


async def collect(text: str) -> list[ServerSentEvent]:
    return [event async for event in iter_sse_events(ByteLines(text))]


class TestIterSseEvents:
    """Test SSE stream parsing."""

    async def test_default_event_name(self):
        events = await collect('data: {"a":1}\n\n')
        assert events == [ServerSentEvent(event="message", data='{"a":1}')]

    async def test_named_event_and_multiline_data(self):
        events = await collect("event: command\ndata: line1\ndata: line2\n\n")
        assert events == [ServerSentEvent(event="command", data="line1\nline2")]

    async def test_comments_and_unknown_fields_ignored(self):
        events = await collect(": keep-alive\nid: 7\nretry: 100\ndata: x\n\n")
        assert events == [ServerSentEvent(event="message", data="x")]

    async def test_crlf_line_endings(self):
        events = await collect("event: hud\r\ndata: y\r\n\r\n")
        assert events == [ServerSentEvent(event="hud", data="y")]

    async def test_event_name_resets_between_events(self):
        events = await collect("event: command\ndata: a\n\ndata: b\n\n")
        assert [e.event for e in events] == ["command", "message"]

    async def test_trailing_partial_event_discarded(self):
        events = await collect("data: done\n\ndata: partial\n")
        assert [e.data for e in events] == ["done"]


def _stream_response(status: int = 200, body: str = "") -> MagicMock:
    response = MagicMock()
    response.status = status
    response.content = ByteLines(body)
    return response


class TestSseBackend:
    """Test SseBackend against a mocked aiohttp session."""

    async def test_open_authenticates_and_subscribes(
        self, mock_session: MagicMock
    ) -> None:
        mock_session.post.return_value = create_mock_response(
            status=200, json_data={"token": "tok"}
        )
        mock_session.get = AsyncMock(return_value=_stream_response())
        backend = SseBackend(BridgeHttpClient(mock_session, "http://h/api"))

        await backend.open(Credentials("client-1", "key"), "sid-1")

        get_args = mock_session.get.call_args
        assert get_args.args[0] == "http://h/api/events/stream"
        assert get_args.kwargs["headers"] == {
            "Authorization": "Bearer tok",
            "X-Session-ID": "sid-1",
            "Accept": "text/event-stream",
        }

    async def test_stream_rejected_raises_and_releases(
        self, mock_session: MagicMock
    ) -> None:
        mock_session.post.return_value = create_mock_response(
            status=200, json_data={"token": "tok"}
        )
        rejected = _stream_response(status=403)
        mock_session.get = AsyncMock(return_value=rejected)
        backend = SseBackend(BridgeHttpClient(mock_session, "http://h/api"))

        with pytest.raises(BridgeResponseError) as exc:
            await backend.open(Credentials("client-1", "key"), None)

        assert exc.value.status == 403
        rejected.release.assert_called_once()

    async def test_messages_carry_event_name_as_kind(
        self, mock_session: MagicMock
    ) -> None:
        mock_session.post.return_value = create_mock_response(
            status=200, json_data={"token": "tok"}
        )
        body = 'event: command\ndata: {"endpoint":"cmd"}\n\ndata: {"endpoint":"hud"}\n\n'
        mock_session.get = AsyncMock(return_value=_stream_response(body=body))
        backend = SseBackend(BridgeHttpClient(mock_session, "http://h/api"))
        await backend.open(Credentials("client-1", "key"), None)

        received = [m async for m in backend.messages()]

        assert received == [
            InboundMessage(data='{"endpoint":"cmd"}', kind="command"),
            InboundMessage(data='{"endpoint":"hud"}', kind="message"),
        ]

    async def test_send_posts_with_token(self, mock_session: MagicMock) -> None:
        mock_session.post.return_value = create_mock_response(
            status=200, json_data={"token": "tok"}
        )
        mock_session.get = AsyncMock(return_value=_stream_response())
        backend = SseBackend(BridgeHttpClient(mock_session, "http://h/api"))
        await backend.open(Credentials("client-1", "key"), "sid-1")

        await backend.send({"endpoint": "events", "data": {}, "timestamp": 1})

        post_args = mock_session.post.call_args
        assert post_args.args[0] == "http://h/api/events"
        assert post_args.kwargs["headers"]["Authorization"] == "Bearer tok"

    async def test_close_closes_stream(self, mock_session: MagicMock) -> None:
        mock_session.post.return_value = create_mock_response(
            status=200, json_data={"token": "tok"}
        )
        response = _stream_response()
        mock_session.get = AsyncMock(return_value=response)
        backend = SseBackend(BridgeHttpClient(mock_session, "http://h/api"))
        await backend.open(Credentials("client-1", "key"), None)

        await backend.close()
        await backend.close()

        response.close.assert_called_once()
