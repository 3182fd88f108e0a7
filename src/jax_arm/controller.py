"""Per-frame control loop as an explicit state machine.

The caller owns a ``ControlState`` and feeds it, once per frame, together
with the current analog/button readings to ``step``. ``step`` returns a new
state; nothing is mutated in place. A proposed joint vector is committed only
if the resulting pose is collision-free, otherwise the previous joints are
kept and ``colliding`` is raised.
"""

import dataclasses
import enum
import logging
from typing import Optional, Tuple

import jax.numpy as jnp
from flax import struct
from jax import Array

from .chain import forward_kinematics, tip_position
from .collision import check_collision
from .core import ArmConfig, ChainModel
from .ik import solve_ik

logger = logging.getLogger(__name__)

DEADZONE = 0.1
IK_TARGET_SPEED = 0.04
TARGET_MIN_HEIGHT = 0.05
DPAD_STEP = 0.02
GRIPPER_RATE = 0.05


class ControlMode(enum.IntEnum):
    """Joint group driven by the sticks in manual mode."""
    BASE = 0   # J1, J2, J3
    ARM = 1    # J3, J4, J5
    WRIST = 2  # J6, J7 (+ J4 on the D-pad)

    def next(self) -> "ControlMode":
        return ControlMode((self + 1) % len(ControlMode))

    def previous(self) -> "ControlMode":
        return ControlMode((self - 1) % len(ControlMode))


@dataclasses.dataclass(frozen=True)
class ControlInput:
    """Controller readings for one frame.

    Attributes:
        axes: Left X, left Y, right X, right Y in [-1, 1].
        toggle_ik: A button, toggles IK mode on the rising edge.
        prev_mode: Left bumper, previous manual group on the rising edge.
        next_mode: Right bumper, next manual group on the rising edge.
        dpad_up, dpad_down, dpad_left, dpad_right: D-pad buttons.
        gripper_close: Left trigger value in [0, 1].
        gripper_open: Right trigger value in [0, 1].
    """
    axes: Tuple[float, float, float, float] = (0.0, 0.0, 0.0, 0.0)
    toggle_ik: bool = False
    prev_mode: bool = False
    next_mode: bool = False
    dpad_up: bool = False
    dpad_down: bool = False
    dpad_left: bool = False
    dpad_right: bool = False
    gripper_close: float = 0.0
    gripper_open: float = 0.0


@struct.dataclass
class ControlState:
    """Everything the control loop carries from one frame to the next."""
    joints: Array
    target: Array
    gripper: float = 0.0
    ik_mode: bool = struct.field(pytree_node=False, default=False)
    control_mode: ControlMode = struct.field(pytree_node=False, default=ControlMode.BASE)
    colliding: bool = struct.field(pytree_node=False, default=False)
    # Previous (toggle_ik, prev_mode, next_mode) for edge detection
    pressed: Tuple[bool, bool, bool] = struct.field(pytree_node=False, default=(False, False, False))


def initial_state(config: ArmConfig) -> ControlState:
    """Rest pose of ``config`` with the IK target parked at its tip."""
    joints = config.default_angles
    return ControlState(
        joints=joints,
        target=tip_position(joints, config.lengths, config.chain),
    )


def set_ik_mode(state: ControlState, enabled: bool, lengths: Array, chain: ChainModel) -> ControlState:
    """Switch IK mode; enabling it snaps the target to the current tip."""
    if enabled and not state.ik_mode:
        state = state.replace(target=tip_position(state.joints, lengths, chain))
    return state.replace(ik_mode=enabled)


def drag_target(state: ControlState, point) -> ControlState:
    """Move the IK target to ``point``, turning IK mode on if needed."""
    return state.replace(target=jnp.asarray(point, dtype=float), ik_mode=True)


def _deadzone(value: float) -> float:
    return value if abs(value) > DEADZONE else 0.0


def _commit(state: ControlState, proposed: Array, config: ArmConfig) -> ControlState:
    """Clamp the proposal and keep it only if it is collision-free."""
    proposed = config.limits.clamp(proposed)
    colliding = bool(check_collision(forward_kinematics(proposed, config.lengths, config.chain)))
    if colliding:
        logger.debug("Rejected joint proposal %s: collision", proposed)
        return state.replace(colliding=True)
    return state.replace(joints=proposed, colliding=False)


def _ik_proposal(state: ControlState, inputs: ControlInput, config: ArmConfig) -> Tuple[ControlState, Array]:
    lx, ly, rx, ry = (_deadzone(a) for a in inputs.axes)
    speeds = config.limits.speed

    # Static sticks leave a dragged target alone
    target = state.target
    if lx != 0.0 or ly != 0.0 or ry != 0.0:
        target = target + jnp.array([-lx, -ry, -ly]) * IK_TARGET_SPEED
        target = target.at[1].set(jnp.maximum(TARGET_MIN_HEIGHT, target[1]))

    proposed = solve_ik(target, state.joints, config.lengths, config.limits, config.chain)

    # Wrist overrides applied after the solve
    proposed = proposed.at[6].add(-rx * speeds[6])
    if inputs.dpad_up:
        proposed = proposed.at[5].add(DPAD_STEP)
    if inputs.dpad_down:
        proposed = proposed.at[5].add(-DPAD_STEP)
    if inputs.dpad_left:
        proposed = proposed.at[4].add(-DPAD_STEP)
    if inputs.dpad_right:
        proposed = proposed.at[4].add(DPAD_STEP)

    # Keep the target on the overridden tip so the solver does not pull it back
    overridden = rx != 0.0 or inputs.dpad_up or inputs.dpad_down or inputs.dpad_left or inputs.dpad_right
    if overridden:
        target = tip_position(proposed, config.lengths, config.chain)

    return state.replace(target=target), proposed


def _manual_proposal(state: ControlState, inputs: ControlInput, config: ArmConfig) -> Array:
    lx, ly, rx, ry = (_deadzone(a) for a in inputs.axes)
    speeds = config.limits.speed
    q = state.joints

    if state.control_mode == ControlMode.BASE:
        q = q.at[0].add(-lx * speeds[0])
        q = q.at[1].add(-ly * speeds[1])
        q = q.at[2].add(-rx * speeds[2])
    elif state.control_mode == ControlMode.ARM:
        q = q.at[2].add(-ly * speeds[2])
        q = q.at[3].add(-ry * speeds[3])
        q = q.at[4].add(-rx * speeds[4])
    else:
        q = q.at[5].add(-ly * speeds[5])
        q = q.at[6].add(-rx * speeds[6])
        if inputs.dpad_up:
            q = q.at[3].add(DPAD_STEP)
        if inputs.dpad_down:
            q = q.at[3].add(-DPAD_STEP)
    return q


def step(state: ControlState, inputs: Optional[ControlInput], config: ArmConfig) -> ControlState:
    """Advance the control loop by one frame.

    Args:
        state: Current state
        inputs: Controller readings, or None when no controller is connected.
                Without a controller only IK tracking of the target runs.
        config: Arm configuration read for this frame

    Returns:
        The next state
    """
    if inputs is None:
        if not state.ik_mode:
            return state
        proposed = solve_ik(state.target, state.joints, config.lengths, config.limits, config.chain)
        return _commit(state, proposed, config)

    was_toggle, was_prev, was_next = state.pressed

    if inputs.toggle_ik and not was_toggle:
        state = set_ik_mode(state, not state.ik_mode, config.lengths, config.chain)

    # Group switching only in manual mode
    if not state.ik_mode:
        if inputs.prev_mode and not was_prev:
            state = state.replace(control_mode=state.control_mode.previous())
        if inputs.next_mode and not was_next:
            state = state.replace(control_mode=state.control_mode.next())

    state = state.replace(pressed=(inputs.toggle_ik, inputs.prev_mode, inputs.next_mode))

    if state.ik_mode:
        state, proposed = _ik_proposal(state, inputs, config)
    else:
        proposed = _manual_proposal(state, inputs, config)

    gripper = state.gripper + (inputs.gripper_open - inputs.gripper_close) * GRIPPER_RATE
    state = state.replace(gripper=min(1.0, max(0.0, float(gripper))))

    return _commit(state, proposed, config)
