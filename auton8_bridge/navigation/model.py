"""Data model for the heuristic navigation observer.

The pathfinder exposes no status API, so everything here is derived from
sampled positions and elapsed time. All records are immutable; the
heuristics produce a new state per tick.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class NavMode(Enum):
    """Observed navigation state."""

    IDLE = "IDLE"
    PATHING = "PATHING"
    STUCK = "STUCK"  # Sticky until goal, cancel or a fresh command.


class CommandOutcome(Enum):
    """Outcome of the armed command."""

    PENDING = "pending"
    SUCCESS = "success"
    FAIL = "fail"


class CommandReason(Enum):
    """Why the outcome or state last changed."""

    NONE = "none"
    STUCK = "stuck"
    GOAL_REACHED = "goal_reached"
    CANCELLED = "cancelled"
    TIMEOUT = "timeout"


class CommandSource(Enum):
    """Where a command string came from."""

    LOCAL = "local"  # Typed by the operator, seen through the chat hook.
    REMOTE = "remote"  # Issued by the orchestrator over the cmd endpoint.
    RETRY = "retry"  # Automatic resume after a stuck detection.


@dataclass(frozen=True)
class NavigationTuning:
    """Thresholds and timings for the heuristics.

    Attributes:
        tick_rate_hz: Nominal tick cadence of the host.
        ring_capacity: Position samples kept for the speed average.
        publish_interval_ms: Minimum gap between state snapshots.
        cooldown_ticks: Ticks after an automatic retry before another one.
        max_retries: Retry budget per command.
        goal_eps_xz: Horizontal distance counting as "at the goal".
        goal_dwell_ms: Continuous time within the goal radius before arrival.
        goal_reemit_ms: Minimum gap between two goal_reached events.
        moving_speed_mps: Speed that qualifies as pathing.
        movement_eps_mps: Speed that counts as any horizontal movement.
        accept_window_ms: Time after issuance to observe pathing.
        accept_sustain_ms: Sustained pathing speed needed for acceptance.
        stuck_idle_ms: Time without horizontal movement before stuck.
        max_command_length: Longest accepted remote command.
        command_prefix: Prefix every navigation command starts with.
        resume_command: Command re-issued to resume pathing.
    """

    tick_rate_hz: int = 20
    ring_capacity: int = 20
    publish_interval_ms: int = 950
    cooldown_ticks: int = 20 * 8
    max_retries: int = 3
    goal_eps_xz: float = 3.0
    goal_dwell_ms: int = 1_200
    goal_reemit_ms: int = 10_000
    moving_speed_mps: float = 0.4
    movement_eps_mps: float = 0.05
    accept_window_ms: int = 15_000
    accept_sustain_ms: int = 1_500
    stuck_idle_ms: int = 20_000
    max_command_length: int = 120
    command_prefix: str = "#"
    resume_command: str = "#path"

    @property
    def tick_ms(self) -> int:
        """Nominal duration of one tick in milliseconds."""
        return max(1, round(1000 / self.tick_rate_hz))


@dataclass(frozen=True)
class Vec3:
    """World position."""

    x: float
    y: float
    z: float


@dataclass(frozen=True)
class BlockTarget:
    """Integer block coordinates of a travel goal."""

    x: int
    y: int
    z: int

    @property
    def key(self) -> str:
        """Stable latch key for this goal."""
        return f"{self.x}:{self.y}:{self.z}"

    def short_string(self) -> str:
        return f"{self.x}, {self.y}, {self.z}"

    def as_dict(self) -> dict[str, Any]:
        return {"x": self.x, "y": self.y, "z": self.z, "key": self.key}


@dataclass(frozen=True)
class PositionSample:
    """Position observed at a given time."""

    at_ms: int
    position: Vec3


@dataclass(frozen=True)
class CommandContext:
    """The armed command."""

    text: str
    started_at: int
    target: BlockTarget | None = None


@dataclass(frozen=True)
class AcceptanceWindow:
    """Bookkeeping for heuristic command acceptance."""

    awaiting: bool = False
    deadline: int = 0
    emitted: bool = False
    moving_since: int | None = None


@dataclass(frozen=True)
class GoalWindow:
    """Sustained proximity to the armed target.

    ``last_emitted_at`` survives target changes so the re-emit gap also
    applies across different targets.
    """

    within_since: int | None = None
    emitted_for_target: bool = False
    last_emitted_at: int | None = None


@dataclass(frozen=True)
class NavigationState:
    """Complete observer state, replaced on every tick."""

    mode: NavMode = NavMode.IDLE
    command: CommandContext | None = None
    acceptance: AcceptanceWindow = field(default_factory=AcceptanceWindow)
    goal: GoalWindow = field(default_factory=GoalWindow)
    samples: tuple[PositionSample, ...] = ()
    last_horizontal_move_at: int = 0
    retries: int = 0
    cooldown_ticks: int = 0
    outcome: CommandOutcome = CommandOutcome.PENDING
    reason: CommandReason = CommandReason.NONE
    distance_remaining: float = -1.0
    speed_avg: float = 0.0
    last_publish_at: int | None = None

    @classmethod
    def initial(cls, now_ms: int) -> NavigationState:
        """Fresh state; the stuck timer starts counting from ``now_ms``."""
        return cls(last_horizontal_move_at=now_ms)

    @property
    def target(self) -> BlockTarget | None:
        return self.command.target if self.command is not None else None


@dataclass(frozen=True)
class TickInput:
    """One observation from the host tick.

    ``position`` is None while there is no avatar in the world.
    """

    now_ms: int
    position: Vec3 | None


@dataclass(frozen=True)
class EmitEvent:
    """Publish a lifecycle event on the events endpoint."""

    name: str
    value: Any = None


@dataclass(frozen=True)
class EmitSnapshot:
    """Publish a state snapshot on the navigation state endpoint."""

    payload: dict[str, Any]


@dataclass(frozen=True)
class SendChat:
    """Transmit a command string through the game chat."""

    text: str
    source: CommandSource


NavEffect = EmitEvent | EmitSnapshot | SendChat
