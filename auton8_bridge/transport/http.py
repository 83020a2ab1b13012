"""HTTP client for the orchestrator REST endpoints."""

from __future__ import annotations

from typing import Any

import aiohttp

from ..errors import (
    BridgeConnectionError,
    BridgeResponseError,
    BridgeTimeout,
)


class BridgeHttpClient:
    """HTTP client wrapper for the orchestrator API."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        base_url: str,
        *,
        request_timeout: float = 30.0,
    ) -> None:
        self._session = session
        self._base_url = base_url.rstrip("/")
        self._request_timeout = request_timeout

    @property
    def session(self) -> aiohttp.ClientSession:
        return self._session

    def url(self, path: str) -> str:
        return f"{self._base_url}{path}"

    @staticmethod
    def auth_headers(token: str | None, session_id: str | None) -> dict[str, str]:
        """Headers attached to every request after authentication."""
        headers: dict[str, str] = {}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        if session_id:
            headers["X-Session-ID"] = session_id
        return headers

    async def authenticate(
        self,
        client_id: str,
        auth_key: str,
        session_id: str | None,
    ) -> str:
        """Exchange client credentials for a bearer token via /auth.

        Returns:
            The bearer token.

        Raises:
            BridgeResponseError: Non-200 response or no token in the body.
        """
        url = self.url("/auth")
        payload = {
            "client_id": client_id,
            "auth_key": auth_key,
            "session_id": session_id,
        }
        try:
            async with self._session.post(
                url,
                json=payload,
                timeout=aiohttp.ClientTimeout(total=10),
            ) as resp:
                if resp.status != 200:
                    raise BridgeResponseError(
                        resp.status, f"Authentication failed: {resp.status}"
                    )
                data = await resp.json()
        except TimeoutError as err:
            raise BridgeTimeout("Authentication request timed out") from err
        except aiohttp.ClientError as err:
            raise BridgeConnectionError("Authentication request failed") from err

        token = data.get("token") if isinstance(data, dict) else None
        if not isinstance(token, str) or not token:
            raise BridgeResponseError(200, "Authentication response has no token")
        return token

    async def post_event(
        self,
        envelope: dict[str, Any],
        *,
        token: str | None,
        session_id: str | None,
    ) -> int:
        """POST one envelope to /events and return the HTTP status."""
        url = self.url("/events")
        try:
            async with self._session.post(
                url,
                json=envelope,
                headers=self.auth_headers(token, session_id),
                timeout=aiohttp.ClientTimeout(total=self._request_timeout),
            ) as resp:
                if resp.status >= 300:
                    raise BridgeResponseError(
                        resp.status, f"Event post failed: {resp.status}"
                    )
                return resp.status
        except TimeoutError as err:
            raise BridgeTimeout("Event post timed out") from err
        except aiohttp.ClientError as err:
            raise BridgeConnectionError("Event post failed") from err
