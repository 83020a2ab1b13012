"""Death and respawn detection from per-tick samples."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TYPE_CHECKING

from .protocol import ENDPOINT_EVENTS, build_event

if TYPE_CHECKING:
    from .game import TickSample
    from .transport.base import EventPublisher

_LOGGER = logging.getLogger(__name__)

MIN_EVENT_GAP_MS = 750


class LifeMonitor:
    """Publishes ``life`` events on alive/dead transitions.

    The first sample only initialises the baseline. Transitions closer than
    ``min_gap_ms`` to the previous event are held back until a later tick.
    """

    def __init__(
        self,
        publisher: EventPublisher,
        *,
        events_endpoint: str = ENDPOINT_EVENTS,
        min_gap_ms: int = MIN_EVENT_GAP_MS,
        clock: Callable[[], int] = lambda: int(time.time() * 1000),
    ) -> None:
        self._publisher = publisher
        self._events_endpoint = events_endpoint
        self._min_gap_ms = min_gap_ms
        self._clock = clock
        self._was_alive: bool | None = None
        self._last_event_ms: int | None = None

    def on_tick(self, sample: TickSample, now_ms: int | None = None) -> None:
        if sample.alive is None or sample.position is None:
            return
        if self._was_alive is None:
            self._was_alive = sample.alive
            return
        if sample.alive == self._was_alive:
            return

        now = now_ms if now_ms is not None else self._clock()
        if self._last_event_ms is not None and now - self._last_event_ms < self._min_gap_ms:
            return

        self._last_event_ms = now
        self._was_alive = sample.alive
        value = "respawned" if sample.alive else "dead"
        _LOGGER.info("Avatar %s", value)
        pos = sample.position
        self._publisher.publish(
            self._events_endpoint,
            build_event(
                "life",
                value,
                world=sample.world,
                x=pos.x,
                y=pos.y,
                z=pos.z,
            ),
        )
