"""Boundary to the host game client.

The host owns the tick source, the avatar and the chat channel. It calls
into the bridge once per tick and for every chat line the operator types;
the bridge calls back through ``GameClient`` to transmit commands.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from .navigation.model import CommandSource, Vec3


@dataclass(frozen=True)
class TickSample:
    """What the host observed on one tick.

    Attributes:
        position: Avatar position, or None while no avatar is in a world.
        alive: Whether the avatar is alive (None when unknown).
        world: Short world label, e.g. "singleplayer" or "server".
    """

    position: Vec3 | None
    alive: bool | None = None
    world: str = ""


class GameClient(Protocol):
    """Collaborator that owns the avatar and the chat channel."""

    def has_player(self) -> bool:
        """Return True when an avatar exists to receive commands."""
        ...

    def send_chat(self, text: str, source: CommandSource) -> None:
        """Transmit ``text`` as a chat line on the game thread.

        May be called from the transport's delivery thread. The host must
        report the line back to ``Auton8Link.on_chat`` with the same
        ``source`` if its chat hook observes it.
        """
        ...
