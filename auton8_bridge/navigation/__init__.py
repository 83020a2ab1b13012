"""Heuristic navigation observer.

Pure state and heuristics live in ``model`` and ``heuristics``; the
thread-safe driver lives in ``observer``.
"""

from .heuristics import build_snapshot, intake_command, parse_goto, step
from .model import (
    BlockTarget,
    CommandOutcome,
    CommandReason,
    CommandSource,
    NavigationState,
    NavigationTuning,
    NavMode,
    TickInput,
    Vec3,
)
from .observer import NavigationObserver

__all__ = [
    "BlockTarget",
    "CommandOutcome",
    "CommandReason",
    "CommandSource",
    "NavMode",
    "NavigationObserver",
    "NavigationState",
    "NavigationTuning",
    "TickInput",
    "Vec3",
    "build_snapshot",
    "intake_command",
    "parse_goto",
    "step",
]
