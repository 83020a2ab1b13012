"""Backend interface shared by every transport flavour."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from collections.abc import AsyncIterator


class ConnectionState(Enum):
    """Connection state owned by the transport client."""

    DISCONNECTED = "disconnected"
    AUTHENTICATING = "authenticating"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


@dataclass(frozen=True)
class Credentials:
    """Client credentials exchanged for a bearer token."""

    client_id: str
    auth_key: str


@dataclass(frozen=True)
class InboundMessage:
    """Raw inbound message before envelope decoding.

    ``kind`` is the backend-level message class (the SSE event name), when
    the backend has one.
    """

    data: str
    kind: str | None = None


class TransportBackend(ABC):
    """One live connection to the orchestrator.

    Implementations authenticate, open the inbound stream, and carry
    outbound envelopes. They raise ``BridgeClientError`` subclasses on
    failure and hold no reconnect logic of their own.
    """

    @abstractmethod
    async def open(self, credentials: Credentials, session_id: str | None) -> None:
        """Authenticate and open the inbound stream."""

    @abstractmethod
    def messages(self) -> AsyncIterator[InboundMessage]:
        """Iterate inbound messages until the stream ends."""

    @abstractmethod
    async def send(self, envelope: dict[str, Any]) -> None:
        """Deliver one outbound envelope."""

    @abstractmethod
    async def close(self) -> None:
        """Release the stream. Safe to call repeatedly."""


class EventPublisher(Protocol):
    """Narrow publishing surface used by session and navigation code."""

    @property
    def is_connected(self) -> bool: ...

    def publish(self, endpoint: str, payload: Any) -> None: ...
