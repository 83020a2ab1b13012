"""Last HUD snapshot pushed by the orchestrator.

The renderer is external; this store only parses the ``hud`` endpoint
payload and keeps the most recent good one for it to read.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import dataclass, field, fields
from typing import Any

from .protocol import Envelope

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class HudTarget:
    x: int
    y: int
    z: int


@dataclass(frozen=True)
class HudGoal:
    desc: str | None = None
    dimension: str | None = None
    target: HudTarget | None = None


@dataclass(frozen=True)
class HudStatus:
    """HUD snapshot as sent by the orchestrator.

    ``status`` is one of idle, active, requesting, await_accept. Older
    senders use ``agent_status`` instead; it fills ``status`` when
    ``status`` is empty.
    """

    title: str = "Auton8"
    status: str = "idle"
    agent_status: str | None = None
    world: str = ""
    dimension: str | None = None
    distance_from_spawn: int | None = None
    speed_bps: float | None = None
    goal: HudGoal | None = None
    target: HudTarget | None = None
    step_remaining: int | None = None
    cooldown_sec: int | None = None
    danger: bool | None = None
    last_player: dict[str, Any] | None = None
    message: str = ""
    planner_reason: str | None = None
    goal_expl: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)
    last_update: float = 0.0


def _target(value: Any) -> HudTarget | None:
    if not isinstance(value, dict):
        return None
    return HudTarget(int(value["x"]), int(value["y"]), int(value["z"]))


def parse_hud_status(data: dict[str, Any], *, now: float | None = None) -> HudStatus:
    """Build a HudStatus from a decoded payload.

    Raises:
        ValueError: If a field has an unusable shape.
    """
    try:
        goal = None
        if isinstance(goal_data := data.get("goal"), dict):
            goal = HudGoal(
                desc=goal_data.get("desc"),
                dimension=goal_data.get("dimension"),
                target=_target(goal_data.get("target")),
            )

        status = data.get("status")
        agent_status = data.get("agent_status")
        if (not isinstance(status, str) or not status.strip()) and agent_status:
            status = agent_status

        known = {f.name for f in fields(HudStatus)} - {"extra", "last_update"}
        return HudStatus(
            title=data.get("title") or "Auton8",
            status=status or "idle",
            agent_status=agent_status,
            world=data.get("world") or "",
            dimension=data.get("dimension"),
            distance_from_spawn=data.get("distance_from_spawn"),
            speed_bps=data.get("speed_bps"),
            goal=goal,
            target=_target(data.get("target")),
            step_remaining=data.get("step_remaining"),
            cooldown_sec=data.get("cooldown_sec"),
            danger=data.get("danger"),
            last_player=data.get("last_player"),
            message=data.get("message") or "",
            planner_reason=data.get("planner_reason"),
            goal_expl=data.get("goal_expl"),
            extra={k: v for k, v in data.items() if k not in known},
            last_update=now if now is not None else time.time(),
        )
    except (KeyError, TypeError) as err:
        raise ValueError(f"Invalid HUD payload: {err}") from err


class HudStatusStore:
    """Thread-safe holder of the latest HUD snapshot."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._last = HudStatus()

    def snapshot(self) -> HudStatus:
        with self._lock:
            return self._last

    def update(self, payload: str | bytes | dict[str, Any]) -> bool:
        """Replace the snapshot; bad payloads are ignored.

        Returns:
            True if the snapshot was replaced
        """
        try:
            data = json.loads(payload) if isinstance(payload, (str, bytes)) else payload
            if not isinstance(data, dict):
                raise ValueError("HUD payload must be an object")
            status = parse_hud_status(data)
        except ValueError as err:
            _LOGGER.debug("Ignored HUD payload: %s", err)
            return False
        with self._lock:
            self._last = status
        return True

    def handle_message(self, endpoint: str, envelope: Envelope) -> None:
        """Transport handler for the hud endpoint."""
        if envelope.data is None:
            return
        self.update(envelope.data)
