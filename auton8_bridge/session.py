"""Session lifecycle for one activation of the bridge.

Each activation gets a fresh session id so the orchestrator can detect a
restart and reset its own state. The id is stamped onto every outbound
payload by the transport.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING
from uuid import uuid4

from .protocol import ENDPOINT_EVENTS, build_event

if TYPE_CHECKING:
    from .transport.base import EventPublisher

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionInfo:
    """One logical run of the bridge."""

    id: str
    started_at: float
    ended_at: float | None = None


class BridgeSession:
    """Issues session ids and announces session start/end.

    Usage:
        session = BridgeSession(transport)
        session.activate()
        # every tick; announces session_start once the transport is up
        session.on_tick()
        session.deactivate()
    """

    def __init__(
        self,
        publisher: EventPublisher,
        *,
        events_endpoint: str = ENDPOINT_EVENTS,
        id_factory: Callable[[], str] = lambda: str(uuid4()),
    ) -> None:
        self._publisher = publisher
        self._events_endpoint = events_endpoint
        self._id_factory = id_factory
        self._current: SessionInfo | None = None
        self._last: SessionInfo | None = None
        self._start_pending = False

    @property
    def session_id(self) -> str | None:
        """Id of the active session, or None when inactive."""
        return self._current.id if self._current is not None else None

    @property
    def info(self) -> SessionInfo | None:
        """Active session, or the most recent one after deactivation."""
        return self._current or self._last

    @property
    def start_pending(self) -> bool:
        return self._start_pending

    def activate(self) -> str:
        """Start a new session, replacing any active one."""
        if self._current is not None:
            self.deactivate()
        self._current = SessionInfo(id=self._id_factory(), started_at=time.time())
        self._start_pending = True
        _LOGGER.info("Session %s activated", self._current.id)
        return self._current.id

    def deactivate(self) -> None:
        """End the session. Never raises."""
        if self._current is None:
            return
        try:
            self.emit_session_end()
        except Exception as err:
            _LOGGER.warning("session_end not sent: %s", err)
        self._last = replace(self._current, ended_at=time.time())
        _LOGGER.info("Session %s deactivated", self._current.id)
        self._current = None
        self._start_pending = False

    def on_tick(self) -> None:
        """Send the deferred session_start once the transport is connected.

        A failure leaves it pending for the next tick.
        """
        if not self._start_pending or not self._publisher.is_connected:
            return
        try:
            self.emit_session_start()
        except Exception as err:
            _LOGGER.debug("session_start deferred: %s", err)
            return
        self._start_pending = False

    def emit_session_start(self) -> None:
        if self._current is None:
            raise RuntimeError("No active session")
        self._publisher.publish(
            self._events_endpoint,
            build_event("session_start", "begin", session_id=self._current.id),
        )

    def emit_session_end(self) -> None:
        if self._current is None:
            return
        self._publisher.publish(
            self._events_endpoint,
            build_event("session_end", "end", session_id=self._current.id),
        )
