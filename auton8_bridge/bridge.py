"""Link module wiring the bridge together.

The host calls ``activate()`` / ``deactivate()`` on the event loop that
runs the transport, ``on_tick()`` from its tick thread, and ``on_chat()``
from its chat hook. Everything created in ``activate()`` is discarded in
``deactivate()``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import aiohttp

from .config import BACKEND_WEBSOCKET, BridgeConfig
from .hud import HudStatusStore
from .life import LifeMonitor
from .navigation.model import CommandSource
from .navigation.observer import NavigationObserver
from .session import BridgeSession
from .transport.client import TransportClient
from .transport.http import BridgeHttpClient
from .transport.sse import SseBackend
from .transport.ws_client import WebSocketBackend

if TYPE_CHECKING:
    from .game import GameClient, TickSample
    from .transport.base import TransportBackend

_LOGGER = logging.getLogger(__name__)


def create_backend(
    config: BridgeConfig, session: aiohttp.ClientSession
) -> TransportBackend:
    """Build the transport backend selected by ``config.backend``."""
    http = BridgeHttpClient(session, config.base_url)
    if config.backend == BACKEND_WEBSOCKET:
        return WebSocketBackend(http, config.base_url, path=config.ws_path)
    return SseBackend(http)


class Auton8Link:
    """One bridge between a game client and the orchestrator.

    Usage:
        link = Auton8Link(load_config("bridge.yaml"), game)
        await link.activate()
        # host tick thread, ~20 Hz:
        link.on_tick(TickSample(position=Vec3(x, y, z), alive=True))
        # host chat hook:
        link.on_chat("#goto 10 64 10", CommandSource.LOCAL)
        await link.deactivate()
    """

    def __init__(
        self,
        config: BridgeConfig,
        game: GameClient,
        *,
        backend: TransportBackend | None = None,
        http_session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.config = config
        self.hud = HudStatusStore()
        self._game = game
        self._backend_override = backend
        self._http_session = http_session
        self._owns_http_session = False

        self.session: BridgeSession | None = None
        self.transport: TransportClient | None = None
        self.navigation: NavigationObserver | None = None
        self.life: LifeMonitor | None = None

    @property
    def active(self) -> bool:
        return self.transport is not None

    async def activate(self) -> None:
        """Start a fresh session and connect.

        Connection failures are not raised; the transport keeps retrying.
        """
        if self.active:
            await self.deactivate()

        cfg = self.config
        backend = self._backend_override
        if backend is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
                self._owns_http_session = True
            backend = create_backend(cfg, self._http_session)

        transport = TransportClient(
            backend,
            cfg.credentials,
            session_id_getter=self._current_session_id,
            events_endpoint=cfg.endpoints.events,
            command_endpoint=cfg.endpoints.cmd,
            reconnect_delay=cfg.reconnect_delay,
        )
        self.transport = transport
        self.session = BridgeSession(transport, events_endpoint=cfg.endpoints.events)
        self.navigation = NavigationObserver(
            transport,
            self._game,
            tuning=cfg.tuning,
            events_endpoint=cfg.endpoints.events,
            state_endpoint=cfg.endpoints.state,
            enabled=cfg.allow_navigation_commands,
        )
        self.life = LifeMonitor(transport, events_endpoint=cfg.endpoints.events)

        transport.on_message(cfg.endpoints.cmd, self.navigation.handle_remote_message)
        transport.on_message(cfg.endpoints.hud, self.hud.handle_message)

        session_id = self.session.activate()
        _LOGGER.info("[%s] Activating link (session %s)", cfg.client_id, session_id)
        await transport.connect()

    async def deactivate(self) -> None:
        """Announce session end (best effort) and tear everything down."""
        if self.session is not None:
            self.session.deactivate()
        if self.transport is not None:
            await self.transport.close()
        if self._owns_http_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
            self._owns_http_session = False

        self.session = None
        self.transport = None
        self.navigation = None
        self.life = None
        _LOGGER.info("[%s] Link deactivated", self.config.client_id)

    def on_tick(self, sample: TickSample) -> None:
        """Per-tick entry point for the host. Never raises."""
        session, navigation, life = self.session, self.navigation, self.life
        if session is None or navigation is None:
            return
        session.on_tick()
        navigation.on_tick(sample.position)
        if life is not None and self.config.life_events:
            try:
                life.on_tick(sample)
            except Exception as err:
                _LOGGER.exception("Life monitor failed: %s", err)

    def on_chat(self, text: str, source: CommandSource = CommandSource.LOCAL) -> None:
        """Chat hook entry point for lines seen in the game chat."""
        navigation = self.navigation
        if navigation is not None:
            navigation.observe_chat(text, source)

    def _current_session_id(self) -> str | None:
        return self.session.session_id if self.session is not None else None
