"""Test the orchestrator REST exchange (auth and event posts)."""

from __future__ import annotations

from unittest.mock import MagicMock

import aiohttp
import pytest

from auton8_bridge.errors import (
    BridgeClientError,
    BridgeConnectionError,
    BridgeResponseError,
    BridgeTimeout,
)
from auton8_bridge.transport.http import BridgeHttpClient

from .conftest import create_mock_response

BASE_URL = "http://127.0.0.1:5679/api"


class TestAuthenticate:
    """Test the /auth token exchange."""

    async def test_authenticate_returns_token(self, mock_session: MagicMock) -> None:
        """Test a 200 with a token yields the token."""
        client = BridgeHttpClient(mock_session, BASE_URL)
        mock_session.post.return_value = create_mock_response(
            status=200, json_data={"token": "abc"}
        )

        token = await client.authenticate("client-1", "key", "sid-1")

        assert token == "abc"
        call_args = mock_session.post.call_args
        assert call_args.args[0] == "http://127.0.0.1:5679/api/auth"
        assert call_args.kwargs["json"] == {
            "client_id": "client-1",
            "auth_key": "key",
            "session_id": "sid-1",
        }

    async def test_trailing_slash_in_base_url(self, mock_session: MagicMock) -> None:
        client = BridgeHttpClient(mock_session, BASE_URL + "/")
        assert client.url("/auth") == "http://127.0.0.1:5679/api/auth"

    async def test_non_200_raises_response_error(
        self, mock_session: MagicMock
    ) -> None:
        client = BridgeHttpClient(mock_session, BASE_URL)
        mock_session.post.return_value = create_mock_response(status=401)

        with pytest.raises(BridgeResponseError, match="Authentication failed") as exc:
            await client.authenticate("client-1", "bad", None)
        assert exc.value.status == 401

    async def test_missing_token_raises_response_error(
        self, mock_session: MagicMock
    ) -> None:
        client = BridgeHttpClient(mock_session, BASE_URL)
        mock_session.post.return_value = create_mock_response(
            status=200, json_data={"ok": True}
        )

        with pytest.raises(BridgeResponseError, match="no token") as exc:
            await client.authenticate("client-1", "key", None)
        assert exc.value.status == 200
        assert isinstance(exc.value, BridgeClientError)

    async def test_timeout_raises_bridge_timeout(self, mock_session: MagicMock) -> None:
        client = BridgeHttpClient(mock_session, BASE_URL)
        mock_session.post.side_effect = TimeoutError("Request timed out")

        with pytest.raises(BridgeTimeout, match="timed out"):
            await client.authenticate("client-1", "key", None)

    async def test_client_error_raises_connection_error(
        self, mock_session: MagicMock
    ) -> None:
        client = BridgeHttpClient(mock_session, BASE_URL)
        mock_session.post.side_effect = aiohttp.ClientError("Connection refused")

        with pytest.raises(BridgeConnectionError, match="Authentication request failed"):
            await client.authenticate("client-1", "key", None)


class TestPostEvent:
    """Test outbound envelope posts."""

    async def test_post_event_sends_auth_headers(self, mock_session: MagicMock) -> None:
        client = BridgeHttpClient(mock_session, BASE_URL)
        mock_session.post.return_value = create_mock_response(status=202)
        envelope = {"endpoint": "events", "data": {"event": "x"}, "timestamp": 1}

        status = await client.post_event(envelope, token="tok", session_id="sid-1")

        assert status == 202
        call_args = mock_session.post.call_args
        assert call_args.args[0] == "http://127.0.0.1:5679/api/events"
        assert call_args.kwargs["json"] is envelope
        assert call_args.kwargs["headers"] == {
            "Authorization": "Bearer tok",
            "X-Session-ID": "sid-1",
        }

    async def test_post_event_error_status(self, mock_session: MagicMock) -> None:
        client = BridgeHttpClient(mock_session, BASE_URL)
        mock_session.post.return_value = create_mock_response(status=500)

        with pytest.raises(BridgeResponseError):
            await client.post_event({}, token="tok", session_id=None)

    async def test_post_event_uses_request_timeout(
        self, mock_session: MagicMock
    ) -> None:
        client = BridgeHttpClient(mock_session, BASE_URL, request_timeout=7)
        mock_session.post.return_value = create_mock_response(status=200)

        await client.post_event({}, token=None, session_id=None)

        call_kwargs = mock_session.post.call_args.kwargs
        assert call_kwargs["timeout"].total == 7
        assert call_kwargs["headers"] == {}
