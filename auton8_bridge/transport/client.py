"""Resilient publish/subscribe client for the orchestrator.

This module provides the one transport API the rest of the bridge uses.
It handles:
- Authentication and stream setup through a pluggable backend
- Connection state machine and status announcements
- Fixed-delay reconnect supervised by a generation counter
- Endpoint-keyed inbound routing
- Session-stamped, ordered outbound delivery

``connect()`` and ``close()`` run on the event loop. ``publish()`` may be
called from any thread; ``publish_sync()`` from any thread except the
loop's own.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from ..errors import BridgeClientError
from ..protocol import (
    COMMAND_KIND,
    ENDPOINT_CMD,
    ENDPOINT_EVENTS,
    Envelope,
    build_envelope,
    build_event,
    decode_envelope,
)
from .base import ConnectionState, Credentials, InboundMessage, TransportBackend

_LOGGER = logging.getLogger(__name__)

MessageHandler = Callable[[str, Envelope], None]

STATUS_CONNECTED = "connected"
STATUS_RECONNECTED = "reconnected"
STATUS_DISCONNECTED = "disconnected"
STATUS_CONNECTION_LOST = "connection_lost"


class TransportClient:
    """Orchestrator transport client.

    Usage:
        client = TransportClient(backend, Credentials("id", "key"))
        client.on_message("cmd", my_command_handler)
        await client.connect()
        client.publish("events", {"event": "hello"})
        await client.close()
    """

    def __init__(
        self,
        backend: TransportBackend,
        credentials: Credentials,
        *,
        session_id_getter: Callable[[], str | None] | None = None,
        events_endpoint: str = ENDPOINT_EVENTS,
        command_endpoint: str = ENDPOINT_CMD,
        reconnect_delay: float = 5.0,
        flush_timeout: float = 2.0,
    ) -> None:
        """Initialize the client.

        Args:
            backend: Connection backend (SSE or websocket)
            credentials: Client id and auth key for the token exchange
            session_id_getter: Returns the active session id, if any
            events_endpoint: Endpoint for status announcements
            command_endpoint: Endpoint that also receives command-class messages
            reconnect_delay: Fixed delay before each reconnect attempt (seconds)
            flush_timeout: Upper bound for draining the outbound queue on close
        """
        self._backend = backend
        self._credentials = credentials
        self._session_id_getter = session_id_getter or (lambda: None)
        self._events_endpoint = events_endpoint
        self._command_endpoint = command_endpoint
        self._reconnect_delay = reconnect_delay
        self._flush_timeout = flush_timeout

        # Connection state
        self._state = ConnectionState.DISCONNECTED
        self._ever_connected = False
        self._generation = 0
        self._retry_attempts = 0
        self._connect_lock = asyncio.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None

        # Tasks
        self._listen_task: asyncio.Task[None] | None = None
        self._sender_task: asyncio.Task[None] | None = None
        self._reconnect_task: asyncio.Task[None] | None = None
        self._outbound: asyncio.Queue[dict[str, Any]] | None = None

        # Callbacks
        self._handlers: dict[str, MessageHandler] = {}
        self._state_listeners: list[Callable[[ConnectionState], None]] = []
        self._status_listeners: list[Callable[[str], None]] = []

    @property
    def _tag(self) -> str:
        return self._credentials.client_id

    # -------------------------------------------------------------------------
    # Public API: Connection Management
    # -------------------------------------------------------------------------

    async def connect(self) -> bool:
        """Authenticate and open the inbound stream.

        A failed attempt is not an error: the client moves to RECONNECTING
        and keeps retrying with a fixed delay until ``close()``.

        Returns:
            True if the client is connected when the call returns
        """
        self._loop = asyncio.get_running_loop()
        self._ensure_sender()
        return await self._attempt(self._generation)

    async def close(self) -> None:
        """Close the transport. Idempotent.

        Pending outbound messages get a bounded chance to drain first; any
        scheduled reconnect is dropped and stale attempts are ignored.
        """
        _LOGGER.info("[%s] Closing transport", self._tag)
        self._generation += 1

        if self._state is ConnectionState.CONNECTED:
            await self.flush(self._flush_timeout)

        for task in (self._reconnect_task, self._listen_task, self._sender_task):
            await self._cancel_task(task)
        self._reconnect_task = None
        self._listen_task = None
        self._sender_task = None
        self._outbound = None

        try:
            await asyncio.wait_for(self._backend.close(), timeout=2.0)
        except TimeoutError:
            _LOGGER.warning("[%s] Backend close timed out", self._tag)
        except BridgeClientError as err:
            _LOGGER.debug("[%s] Backend close failed: %s", self._tag, err)

        self._set_state(ConnectionState.DISCONNECTED)

    async def flush(self, timeout: float = 2.0) -> None:
        """Wait until queued outbound messages have been handed to the backend."""
        if self._outbound is None:
            return
        await asyncio.sleep(0)
        try:
            await asyncio.wait_for(self._outbound.join(), timeout=timeout)
        except TimeoutError:
            _LOGGER.warning(
                "[%s] Outbound flush timed out (%d pending)",
                self._tag,
                self._outbound.qsize() if self._outbound is not None else 0,
            )

    @property
    def is_connected(self) -> bool:
        """Check if the stream is live."""
        return self._state is ConnectionState.CONNECTED

    @property
    def state(self) -> ConnectionState:
        """Get current connection state."""
        return self._state

    # -------------------------------------------------------------------------
    # Public API: Callbacks
    # -------------------------------------------------------------------------

    def on_message(self, endpoint: str, handler: MessageHandler) -> None:
        """Register the handler for an endpoint; the latest registration wins.

        Handlers run on the delivery path (the event loop thread), never on
        the caller's thread.
        """
        self._handlers[endpoint] = handler

    def on_connection_state_changed(
        self, callback: Callable[[ConnectionState], None]
    ) -> None:
        """Register callback for connection state changes."""
        self._state_listeners.append(callback)

    def on_status(self, callback: Callable[[str], None]) -> None:
        """Register callback for status announcements.

        Callback receives: "connected", "reconnected", "disconnected",
        "connection_lost"
        """
        self._status_listeners.append(callback)

    # -------------------------------------------------------------------------
    # Public API: Publishing
    # -------------------------------------------------------------------------

    def publish(self, endpoint: str, payload: Any) -> None:
        """Queue a message for delivery. Fire-and-forget, thread-safe.

        Dropped when not connected. Object payloads get the session id.
        """
        if self._state is not ConnectionState.CONNECTED:
            _LOGGER.debug("[%s] Dropped publish to %s: not connected", self._tag, endpoint)
            return
        self._submit(self._envelope(endpoint, payload))

    def publish_sync(self, endpoint: str, payload: Any, timeout_ms: int = 2000) -> None:
        """Send a message and block the calling thread until it is delivered.

        Errors and timeouts are swallowed; there is no retry.

        Raises:
            RuntimeError: If called from the event loop thread
        """
        loop = self._loop
        if self._state is not ConnectionState.CONNECTED or loop is None:
            return
        if _running_loop() is loop:
            raise RuntimeError("publish_sync must not be called from the event loop")

        envelope = self._envelope(endpoint, payload)
        future = asyncio.run_coroutine_threadsafe(self._backend.send(envelope), loop)
        try:
            future.result(timeout=timeout_ms / 1000)
        except TimeoutError:
            future.cancel()
            _LOGGER.debug("[%s] publish_sync to %s timed out", self._tag, endpoint)
        except Exception as err:
            _LOGGER.debug("[%s] publish_sync to %s failed: %s", self._tag, endpoint, err)

    # -------------------------------------------------------------------------
    # Internal: Connection State Machine
    # -------------------------------------------------------------------------

    def _set_state(self, state: ConnectionState) -> None:
        """Update connection state and notify listeners."""
        if self._state is state:
            return
        _LOGGER.debug("[%s] State: %s → %s", self._tag, self._state.value, state.value)
        self._state = state
        for listener in list(self._state_listeners):
            try:
                listener(state)
            except Exception as err:
                _LOGGER.exception("[%s] State listener error: %s", self._tag, err)

    async def _attempt(self, generation: int) -> bool:
        async with self._connect_lock:
            if generation != self._generation:
                return False
            if self._state is ConnectionState.CONNECTED:
                return True

            self._set_state(ConnectionState.AUTHENTICATING)
            _LOGGER.info(
                "[%s] Connecting (attempt #%d)", self._tag, self._retry_attempts + 1
            )
            try:
                await self._backend.open(self._credentials, self._session_id_getter())
            except BridgeClientError as err:
                _LOGGER.warning("[%s] Connection failed: %s", self._tag, err)
                self._handle_connection_failure(generation)
                return False
            except Exception as err:
                _LOGGER.exception("[%s] Unexpected connection error: %s", self._tag, err)
                self._handle_connection_failure(generation)
                return False

            if generation != self._generation:
                # Closed while the attempt was in flight.
                await self._backend.close()
                return False

            self._retry_attempts = 0
            self._set_state(ConnectionState.CONNECTED)
            self._announce(STATUS_RECONNECTED if self._ever_connected else STATUS_CONNECTED)
            self._ever_connected = True
            _LOGGER.info("[%s] Connected, starting listener", self._tag)
            self._listen_task = asyncio.create_task(self._listen(generation))
            return True

    def _handle_connection_failure(self, generation: int) -> None:
        if generation != self._generation:
            return
        if self._ever_connected:
            self._announce(STATUS_CONNECTION_LOST)
        self._schedule_reconnect(generation)

    def _handle_stream_lost(self, generation: int) -> None:
        _LOGGER.warning("[%s] Stream lost", self._tag)
        self._set_state(ConnectionState.RECONNECTING)
        self._announce(STATUS_DISCONNECTED)
        self._announce(STATUS_CONNECTION_LOST)
        self._schedule_reconnect(generation)

    def _schedule_reconnect(self, generation: int) -> None:
        """Schedule a reconnect attempt after the fixed delay."""
        if generation != self._generation:
            return
        self._set_state(ConnectionState.RECONNECTING)
        pending = self._reconnect_task
        if (
            pending is not None
            and not pending.done()
            and pending is not asyncio.current_task()
        ):
            return

        self._retry_attempts += 1
        _LOGGER.info(
            "[%s] Reconnecting in %.1fs (attempt %d)",
            self._tag,
            self._reconnect_delay,
            self._retry_attempts,
        )
        self._reconnect_task = asyncio.create_task(
            self._reconnect_after_delay(generation)
        )

    async def _reconnect_after_delay(self, generation: int) -> None:
        try:
            await asyncio.sleep(self._reconnect_delay)
        except asyncio.CancelledError:
            _LOGGER.debug("[%s] Reconnect cancelled", self._tag)
            raise
        if generation != self._generation:
            _LOGGER.debug("[%s] Stale reconnect ignored", self._tag)
            return
        await self._attempt(generation)

    # -------------------------------------------------------------------------
    # Internal: Inbound
    # -------------------------------------------------------------------------

    async def _listen(self, generation: int) -> None:
        """Deliver inbound messages until the stream ends."""
        message_count = 0
        try:
            async for message in self._backend.messages():
                message_count += 1
                self._dispatch(message)
            _LOGGER.info("[%s] Stream closed by orchestrator", self._tag)
        except asyncio.CancelledError:
            _LOGGER.debug(
                "[%s] Listener cancelled (%d messages)", self._tag, message_count
            )
            raise
        except BridgeClientError as err:
            _LOGGER.warning("[%s] Stream error: %s", self._tag, err)
        except Exception as err:
            _LOGGER.exception("[%s] Unexpected stream error: %s", self._tag, err)

        if generation == self._generation and self._state is ConnectionState.CONNECTED:
            self._handle_stream_lost(generation)

    def _dispatch(self, message: InboundMessage) -> None:
        """Route one inbound message by endpoint.

        Command-class messages additionally reach the command handler,
        whatever endpoint they were addressed to.
        """
        try:
            envelope = decode_envelope(message.data, kind=message.kind)
        except ValueError as err:
            _LOGGER.debug("[%s] Dropped malformed message: %s", self._tag, err)
            return

        handler = self._handlers.get(envelope.endpoint)
        if handler is not None:
            self._invoke(handler, envelope.endpoint, envelope)
        else:
            _LOGGER.debug("[%s] No handler for endpoint %s", self._tag, envelope.endpoint)

        if envelope.kind == COMMAND_KIND and envelope.endpoint != self._command_endpoint:
            command_handler = self._handlers.get(self._command_endpoint)
            if command_handler is not None:
                self._invoke(command_handler, self._command_endpoint, envelope)

    def _invoke(self, handler: MessageHandler, endpoint: str, envelope: Envelope) -> None:
        try:
            handler(endpoint, envelope)
        except Exception as err:
            _LOGGER.exception("[%s] Handler error on %s: %s", self._tag, endpoint, err)

    # -------------------------------------------------------------------------
    # Internal: Outbound
    # -------------------------------------------------------------------------

    def _envelope(self, endpoint: str, payload: Any) -> dict[str, Any]:
        return build_envelope(endpoint, payload, session_id=self._session_id_getter())

    def _announce(self, status: str) -> None:
        """Notify status listeners and queue the status event.

        Status events bypass the CONNECTED gate of ``publish()``; delivery
        is best effort.
        """
        _LOGGER.info("[%s] Status: %s", self._tag, status)
        for listener in list(self._status_listeners):
            try:
                listener(status)
            except Exception as err:
                _LOGGER.exception("[%s] Status listener error: %s", self._tag, err)
        self._submit(self._envelope(self._events_endpoint, build_event("status", status)))

    def _submit(self, envelope: dict[str, Any]) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        if _running_loop() is loop:
            self._enqueue(envelope)
            return
        try:
            loop.call_soon_threadsafe(self._enqueue, envelope)
        except RuntimeError:
            _LOGGER.debug("[%s] Event loop closed, message dropped", self._tag)

    def _enqueue(self, envelope: dict[str, Any]) -> None:
        if self._outbound is not None:
            self._outbound.put_nowait(envelope)

    def _ensure_sender(self) -> None:
        if self._outbound is None:
            self._outbound = asyncio.Queue()
        if self._sender_task is None or self._sender_task.done():
            self._sender_task = asyncio.create_task(self._send_loop(self._outbound))

    async def _send_loop(self, queue: asyncio.Queue[dict[str, Any]]) -> None:
        """Deliver queued envelopes in submission order."""
        while True:
            envelope = await queue.get()
            try:
                await self._backend.send(envelope)
            except BridgeClientError as err:
                _LOGGER.debug(
                    "[%s] Send to %s failed: %s", self._tag, envelope.get("endpoint"), err
                )
            except Exception as err:
                _LOGGER.exception("[%s] Unexpected send error: %s", self._tag, err)
            finally:
                queue.task_done()

    @staticmethod
    async def _cancel_task(task: asyncio.Task[None] | None) -> None:
        if task is None or task.done() or task is asyncio.current_task():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None
