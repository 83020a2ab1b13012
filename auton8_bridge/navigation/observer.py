"""Stateful wrapper that drives the navigation heuristics.

The host tick thread calls ``on_tick``; the transport delivery thread calls
``handle_remote_message``. Both go through one lock around the pure
heuristics, and side effects are carried out after the lock is released.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Any

from ..protocol import ENDPOINT_EVENTS, ENDPOINT_NAV_STATE, Envelope, build_event
from .heuristics import intake_command, step
from .model import (
    CommandSource,
    EmitEvent,
    EmitSnapshot,
    NavEffect,
    NavigationState,
    NavigationTuning,
    SendChat,
    TickInput,
    Vec3,
)

if TYPE_CHECKING:
    from ..game import GameClient
    from ..transport.base import EventPublisher

_LOGGER = logging.getLogger(__name__)

REMOTE_COMMAND_TYPE = "baritone_cmd"


def _wall_clock_ms() -> int:
    return int(time.time() * 1000)


class NavigationObserver:
    """Black-box observer of pathfinding progress.

    Usage:
        observer = NavigationObserver(transport, game)
        transport.on_message("cmd", observer.handle_remote_message)
        # once per host tick:
        observer.on_tick(Vec3(x, y, z))
    """

    def __init__(
        self,
        publisher: EventPublisher,
        game: GameClient,
        *,
        tuning: NavigationTuning | None = None,
        events_endpoint: str = ENDPOINT_EVENTS,
        state_endpoint: str = ENDPOINT_NAV_STATE,
        enabled: bool = True,
        clock: Callable[[], int] = _wall_clock_ms,
    ) -> None:
        self._publisher = publisher
        self._game = game
        self._tuning = tuning or NavigationTuning()
        self._events_endpoint = events_endpoint
        self._state_endpoint = state_endpoint
        self._clock = clock
        self.enabled = enabled

        self._lock = threading.Lock()
        self._state = NavigationState.initial(clock())

    @property
    def state(self) -> NavigationState:
        """Current state record (immutable)."""
        with self._lock:
            return self._state

    @property
    def tuning(self) -> NavigationTuning:
        return self._tuning

    # -------------------------------------------------------------------------
    # Tick
    # -------------------------------------------------------------------------

    def on_tick(self, position: Vec3 | None, now_ms: int | None = None) -> None:
        """Advance one tick. Never raises."""
        try:
            tick = TickInput(
                now_ms=now_ms if now_ms is not None else self._clock(),
                position=position,
            )
            with self._lock:
                self._state, effects = step(self._state, tick, self._tuning)
            self._apply(effects)
        except Exception as err:
            _LOGGER.exception("Navigation tick failed: %s", err)
            self._publish_event("error", type(err).__name__)

    # -------------------------------------------------------------------------
    # Command intake
    # -------------------------------------------------------------------------

    def observe_chat(self, text: str, source: CommandSource) -> None:
        """Chat hook: arm commands the operator typed.

        Lines the bridge itself sent come back tagged with their original
        source and are ignored here, so they are never armed twice.
        """
        if source is not CommandSource.LOCAL:
            return
        self.submit_command(text, CommandSource.LOCAL)

    def submit_command(
        self, text: str, source: CommandSource, now_ms: int | None = None
    ) -> None:
        """Run a command through the intake rules and carry out the effects."""
        if not self.enabled:
            return
        now = now_ms if now_ms is not None else self._clock()
        player_present = True
        if source is CommandSource.REMOTE:
            player_present = self._game.has_player()
        with self._lock:
            self._state, effects = intake_command(
                self._state,
                text,
                source,
                now,
                self._tuning,
                player_present=player_present,
            )
        self._apply(effects)

    def handle_remote_message(self, endpoint: str, envelope: Envelope) -> None:
        """Handler for the cmd endpoint.

        Expects ``{"type": "baritone_cmd", "cmd": "#..."}``; payloads of other
        types belong to other consumers and are ignored.
        """
        if not self.enabled:
            return
        try:
            data: Any = envelope.data
            if not isinstance(data, dict):
                raise TypeError("Command payload must be an object")
            if data.get("type") != REMOTE_COMMAND_TYPE:
                return
            command = data.get("cmd")
            _LOGGER.debug("Remote command on %s: %r", endpoint, command)
            self.submit_command(command, CommandSource.REMOTE)
        except Exception as err:
            _LOGGER.warning("Remote command failed: %s", err)
            self._publish_event("error", type(err).__name__)

    # -------------------------------------------------------------------------
    # Effects
    # -------------------------------------------------------------------------

    def _apply(self, effects: Iterable[NavEffect]) -> None:
        for effect in effects:
            if isinstance(effect, EmitEvent):
                self._publish_event(effect.name, effect.value)
            elif isinstance(effect, EmitSnapshot):
                self._publisher.publish(self._state_endpoint, effect.payload)
            elif isinstance(effect, SendChat):
                _LOGGER.info("Sending %s command: %s", effect.source.value, effect.text)
                self._game.send_chat(effect.text, effect.source)

    def _publish_event(self, name: str, value: Any = None) -> None:
        self._publisher.publish(self._events_endpoint, build_event(name, value))
