"""Pure heuristics for inferring navigation progress from motion.

Every function takes the current ``NavigationState`` and returns a new one
together with the effects to carry out. Nothing here reads a clock or does
I/O; the caller injects time through ``TickInput.now_ms``.

Per tick, in order:
1. Sample the position into the ring buffer.
2. Derive the horizontal (X/Z) average speed and the distance to target.
3. Acceptance: sustained pathing speed within the window -> cmd_accepted.
4. Sticky mode update (PATHING / STUCK / IDLE).
5. Goal: dwell inside the goal radius -> goal_reached, context cleared.
6. Stuck: no horizontal movement for the idle duration -> stuck_detected,
   optionally resend the resume command.
7. Periodic snapshot.
"""

from __future__ import annotations

import math
from dataclasses import replace
from typing import Any

from .model import (
    AcceptanceWindow,
    BlockTarget,
    CommandContext,
    CommandOutcome,
    CommandReason,
    CommandSource,
    EmitEvent,
    EmitSnapshot,
    GoalWindow,
    NavEffect,
    NavigationState,
    NavigationTuning,
    NavMode,
    PositionSample,
    SendChat,
    TickInput,
    Vec3,
)

SNAPSHOT_TYPE = "baritone_state"

# Reported as the remaining distance when there is no target.
NO_DISTANCE = -1

_CANCEL_COMMANDS = frozenset({"#cancel", "#stop"})


# --------------------------------------------------------------------------
# Command grammar
# --------------------------------------------------------------------------


def parse_goto(text: str) -> BlockTarget | None:
    """Extract the target of a ``#goto <x> <y> <z>`` command.

    Coordinates are rounded to whole blocks. Returns None for any other
    command or when the coordinates are missing or not numeric.
    """
    parts = text.strip().lower().split()
    if len(parts) < 4 or parts[0] != "#goto":
        return None
    try:
        x, y, z = (_round_half_up(float(p)) for p in parts[1:4])
    except ValueError:
        return None
    return BlockTarget(x, y, z)


def is_goto(text: str) -> bool:
    return text.strip().lower().startswith("#goto")


def is_cancel(text: str) -> bool:
    return text.strip().lower() in _CANCEL_COMMANDS


def is_resume(text: str, tuning: NavigationTuning) -> bool:
    return text.strip().lower() == tuning.resume_command


def is_valid_remote_command(text: Any, tuning: NavigationTuning) -> bool:
    """Remote commands must carry the prefix and stay within the length bound."""
    return (
        isinstance(text, str)
        and text.startswith(tuning.command_prefix)
        and len(text) <= tuning.max_command_length
    )


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


# --------------------------------------------------------------------------
# Geometry
# --------------------------------------------------------------------------


def push_sample(
    samples: tuple[PositionSample, ...], sample: PositionSample, capacity: int
) -> tuple[PositionSample, ...]:
    """Append a sample, evicting the oldest beyond ``capacity``."""
    ring = (*samples, sample)
    if len(ring) > capacity:
        ring = ring[len(ring) - capacity :]
    return ring


def horizontal_speed(samples: tuple[PositionSample, ...], tick_ms: int) -> float:
    """Average X/Z speed (m/s) between the oldest and newest sample.

    Vertical motion is ignored. The elapsed time never drops below one tick.
    """
    if len(samples) < 2:
        return 0.0
    first, last = samples[0], samples[-1]
    distance = math.hypot(
        last.position.x - first.position.x,
        last.position.z - first.position.z,
    )
    elapsed_ms = max(last.at_ms - first.at_ms, tick_ms)
    return distance / (elapsed_ms / 1000.0)


def horizontal_distance(position: Vec3, target: BlockTarget) -> float:
    """X/Z distance from ``position`` to the centre of the target block."""
    return math.hypot(
        (target.x + 0.5) - position.x,
        (target.z + 0.5) - position.z,
    )


# --------------------------------------------------------------------------
# Command context
# --------------------------------------------------------------------------


def arm_command(
    state: NavigationState, text: str, now_ms: int, tuning: NavigationTuning
) -> NavigationState:
    """Arm a fresh command, replacing any previous one."""
    return replace(
        state,
        mode=NavMode.IDLE if state.mode is NavMode.STUCK else state.mode,
        command=CommandContext(text=text, started_at=now_ms, target=parse_goto(text)),
        acceptance=_open_acceptance(now_ms, tuning),
        goal=GoalWindow(last_emitted_at=state.goal.last_emitted_at),
        outcome=CommandOutcome.PENDING,
        reason=CommandReason.NONE,
        distance_remaining=-1.0,
        retries=0,
    )


def resume_command(
    state: NavigationState,
    text: str,
    now_ms: int,
    tuning: NavigationTuning,
    *,
    count_retry: bool,
) -> NavigationState:
    """Re-open the acceptance window for the armed command.

    The command text and target are kept so later stuck retries still
    recognise a travel command; its start time restarts at ``now_ms``.
    Without an armed command the resume string itself is armed.
    """
    if state.command is None:
        return arm_command(state, text, now_ms, tuning)
    retries = state.retries
    if count_retry:
        retries = min(retries + 1, tuning.max_retries)
    return replace(
        state,
        command=replace(state.command, started_at=now_ms),
        acceptance=_open_acceptance(now_ms, tuning),
        retries=retries,
    )


def clear_command(state: NavigationState) -> NavigationState:
    """Drop command, target and acceptance bookkeeping.

    Later movement can no longer be attributed to the old command.
    """
    return replace(
        state,
        command=None,
        acceptance=AcceptanceWindow(),
        goal=GoalWindow(last_emitted_at=state.goal.last_emitted_at),
        distance_remaining=-1.0,
    )


def cancel_command(state: NavigationState) -> NavigationState:
    return replace(
        clear_command(state),
        mode=NavMode.IDLE,
        reason=CommandReason.CANCELLED,
    )


def _open_acceptance(now_ms: int, tuning: NavigationTuning) -> AcceptanceWindow:
    return AcceptanceWindow(awaiting=True, deadline=now_ms + tuning.accept_window_ms)


def intake_command(
    state: NavigationState,
    text: str,
    source: CommandSource,
    now_ms: int,
    tuning: NavigationTuning,
    *,
    player_present: bool = True,
) -> tuple[NavigationState, list[NavEffect]]:
    """Single entry point for commands from any source.

    Local commands were already sent by the operator: they are armed only.
    Remote commands are validated, sent through the game chat, armed and
    traced with the legacy ``accepted`` event.
    """
    effects: list[NavEffect] = []

    if source is CommandSource.REMOTE:
        if not is_valid_remote_command(text, tuning):
            return state, [EmitEvent("cmd_reject", "bad_cmd")]
        if not player_present:
            return state, [EmitEvent("cmd_reject", "no_player")]
        effects.append(SendChat(text, source))
    elif not text.startswith(tuning.command_prefix):
        return state, []

    if is_cancel(text):
        state = cancel_command(state)
    elif is_resume(text, tuning):
        state = resume_command(
            state,
            text,
            now_ms,
            tuning,
            count_retry=source is CommandSource.REMOTE,
        )
    else:
        state = arm_command(state, text, now_ms, tuning)

    if source is CommandSource.REMOTE:
        effects.append(EmitEvent("accepted", text))
    return state, effects


# --------------------------------------------------------------------------
# Tick
# --------------------------------------------------------------------------


def step(
    state: NavigationState, tick: TickInput, tuning: NavigationTuning
) -> tuple[NavigationState, list[NavEffect]]:
    """Advance the observer by one tick."""
    effects: list[NavEffect] = []
    now = tick.now_ms

    if state.cooldown_ticks > 0:
        state = replace(state, cooldown_ticks=state.cooldown_ticks - 1)

    if tick.position is not None:
        state = replace(
            state,
            samples=push_sample(
                state.samples,
                PositionSample(now, tick.position),
                tuning.ring_capacity,
            ),
        )

    state = _update_motion(state, tick, tuning, effects)
    state, goal_fired = _detect_goal(state, now, tuning, effects)
    if not goal_fired:
        state = _detect_stuck(state, now, tuning, effects)
    state = _maybe_snapshot(state, now, tuning, effects)
    return state, effects


def _update_motion(
    state: NavigationState,
    tick: TickInput,
    tuning: NavigationTuning,
    effects: list[NavEffect],
) -> NavigationState:
    now = tick.now_ms
    target = state.target
    if target is not None and tick.position is not None:
        distance = horizontal_distance(tick.position, target)
    else:
        distance = -1.0

    speed = horizontal_speed(state.samples, tuning.tick_ms)
    last_move = state.last_horizontal_move_at
    if speed >= tuning.movement_eps_mps:
        last_move = now

    moving = speed >= tuning.moving_speed_mps
    acceptance = state.acceptance
    mode = state.mode
    reason = state.reason

    if acceptance.awaiting and moving:
        since = acceptance.moving_since if acceptance.moving_since is not None else now
        acceptance = replace(acceptance, moving_since=since)
        if not acceptance.emitted and now - since >= tuning.accept_sustain_ms:
            text = state.command.text if state.command is not None else ""
            effects.append(EmitEvent("cmd_accepted", text))
            acceptance = replace(acceptance, awaiting=False, emitted=True)
            mode = NavMode.PATHING
    else:
        # Lost movement resets the sustain timer, never the emitted latch.
        acceptance = replace(acceptance, moving_since=None)

    if acceptance.awaiting and not acceptance.emitted and now > acceptance.deadline:
        # The command stays armed; goal or stuck detection may still resolve it.
        effects.append(EmitEvent("cmd_reject", "timeout_no_pathing"))
        acceptance = replace(acceptance, awaiting=False)
        reason = CommandReason.TIMEOUT

    if moving:
        mode = NavMode.PATHING
    elif mode is not NavMode.STUCK:
        mode = NavMode.IDLE

    return replace(
        state,
        mode=mode,
        acceptance=acceptance,
        reason=reason,
        distance_remaining=distance,
        speed_avg=speed,
        last_horizontal_move_at=last_move,
    )


def _detect_goal(
    state: NavigationState,
    now: int,
    tuning: NavigationTuning,
    effects: list[NavEffect],
) -> tuple[NavigationState, bool]:
    target = state.target
    if target is None or state.distance_remaining < 0:
        return state, False

    goal = state.goal
    if state.distance_remaining <= tuning.goal_eps_xz:
        if goal.within_since is None:
            goal = replace(goal, within_since=now)
    else:
        goal = replace(goal, within_since=None)

    dwelled = (
        goal.within_since is not None
        and now - goal.within_since >= tuning.goal_dwell_ms
    )
    debounced = (
        goal.last_emitted_at is None
        or now - goal.last_emitted_at >= tuning.goal_reemit_ms
    )
    if not (dwelled and debounced and not goal.emitted_for_target):
        return replace(state, goal=goal), False

    effects.append(EmitEvent("goal_reached", target.short_string()))
    state = replace(
        state,
        goal=replace(goal, emitted_for_target=True, last_emitted_at=now),
    )
    state = replace(
        clear_command(state),
        outcome=CommandOutcome.SUCCESS,
        reason=CommandReason.GOAL_REACHED,
        retries=0,
        mode=NavMode.IDLE,
    )
    return state, True


def _detect_stuck(
    state: NavigationState,
    now: int,
    tuning: NavigationTuning,
    effects: list[NavEffect],
) -> NavigationState:
    if now - state.last_horizontal_move_at < tuning.stuck_idle_ms:
        return state

    if state.distance_remaining >= 0:
        remaining = _round_half_up(state.distance_remaining)
    else:
        remaining = NO_DISTANCE
    effects.append(EmitEvent("stuck_detected", str(remaining)))

    state = replace(state, mode=NavMode.STUCK, reason=CommandReason.STUCK)
    command = state.command
    can_retry = (
        state.cooldown_ticks == 0
        and command is not None
        and is_goto(command.text)
        and state.retries < tuning.max_retries
    )
    if can_retry:
        effects.append(SendChat(tuning.resume_command, CommandSource.RETRY))
        effects.append(EmitEvent("accepted", tuning.resume_command))
        state = replace(
            state,
            retries=state.retries + 1,
            cooldown_ticks=tuning.cooldown_ticks,
            command=replace(command, started_at=now),
            acceptance=_open_acceptance(now, tuning),
        )
    elif state.retries >= tuning.max_retries:
        state = replace(state, outcome=CommandOutcome.FAIL)

    # Restart the idle timer so the trigger does not fire every tick.
    return replace(state, last_horizontal_move_at=now)


def _maybe_snapshot(
    state: NavigationState,
    now: int,
    tuning: NavigationTuning,
    effects: list[NavEffect],
) -> NavigationState:
    if (
        state.last_publish_at is not None
        and now - state.last_publish_at < tuning.publish_interval_ms
    ):
        return state
    effects.append(EmitSnapshot(build_snapshot(state, now, tuning)))
    return replace(state, last_publish_at=now)


def build_snapshot(
    state: NavigationState, now_ms: int, tuning: NavigationTuning
) -> dict[str, Any]:
    """Full observer state for dashboards polling the state endpoint."""
    command = state.command
    acceptance = state.acceptance
    goal = state.goal

    snapshot: dict[str, Any] = {
        "type": SNAPSHOT_TYPE,
        "ts": now_ms // 1000,
        "state": state.mode.value,
        "lastCmdOutcome": state.outcome.value,
        "reason": state.reason.value,
        "elapsedSec": (
            max(0, (now_ms - command.started_at) // 1000) if command is not None else 0
        ),
        "retries": state.retries,
        "cooldownSec": state.cooldown_ticks // tuning.tick_rate_hz,
        "speedAvg": round(state.speed_avg, 2),
        "distanceRemaining": state.distance_remaining,
        "awaitingAccept": acceptance.awaiting,
        "acceptedEmitted": acceptance.emitted,
        "movingSinceMs": (
            acceptance.moving_since if acceptance.moving_since is not None else 0
        ),
        "movingForMs": (
            now_ms - acceptance.moving_since
            if acceptance.moving_since is not None
            else 0
        ),
        "withinGoalNow": goal.within_since is not None,
        "withinGoalForMs": (
            now_ms - goal.within_since if goal.within_since is not None else 0
        ),
        "lastGoalEmitMsAgo": (
            now_ms - goal.last_emitted_at if goal.last_emitted_at is not None else -1
        ),
    }
    if command is not None:
        snapshot["lastCmd"] = command.text
        if command.target is not None:
            snapshot["target"] = command.target.as_dict()
    return snapshot
