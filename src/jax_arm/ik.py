"""Damped cyclic coordinate descent (CCD) inverse kinematics.

Each sweep walks the positional joints from the wrist (J6) back to the base
(J1). For every joint the tip is swung about that joint's world axis towards
the target by half of the remaining angle, the joint is clamped to its
limits, and forward kinematics is recomputed so the next joint sees the
updated tip. The wrist roll joint (J7) is never moved by the solver.
"""

from typing import Tuple

import jax
import jax.numpy as jnp
from flax import struct
from jax import Array

from .chain import forward_kinematics_frames
from .core import DEFAULT_CHAIN, ChainModel, JointLimits
from .core.constants import (
    IK_ALIGNMENT_TOLERANCE,
    IK_DAMPING,
    IK_MAX_ITERATIONS,
    IK_POSITIONAL_JOINTS,
    IK_THRESHOLD,
)
from .transforms import se3, so3, vec3


@struct.dataclass
class IKSolution:
    """Result of ``solve_ik_detailed``.

    Attributes:
        angles: Joint angles of shape (7,), always within limits.
        iterations: Number of sweeps actually performed.
        error: Distance from the final tip to the target.
        converged: True if the error is below the early-exit threshold.
    """
    angles: Array
    iterations: Array
    error: Array
    converged: Array


def ccd_joint_step(
    index: Array,
    q: Array,
    target: Array,
    lengths: Array,
    limits: JointLimits,
    chain: ChainModel = DEFAULT_CHAIN,
) -> Array:
    """Apply one damped CCD correction to joint ``index``.

    Args:
        index: Joint index, may be traced
        q: Current joint angles of shape (7,)
        target: (3,) point the tip should reach
        lengths: Link lengths of shape (8,)
        limits: Joint limits
        chain: ChainModel

    Returns:
        Updated joint angles; only ``q[index]`` changes
    """
    frames = forward_kinematics_frames(q, lengths, chain)
    positions = se3.get_position(frames)

    joint_pos = positions[index]
    to_end = vec3.normalize(positions[-1] - joint_pos)
    to_target = vec3.normalize(target - joint_pos)

    # Already pointing at the target from this joint
    aligned = jnp.abs(1.0 - jnp.clip(vec3.dot(to_end, to_target), -1.0, 1.0)) < IK_ALIGNMENT_TOLERANCE

    # Frame `index` carries the rotation of every joint before this one
    world_axis = vec3.normalize(
        so3.apply(se3.get_rotation(frames[index]), chain.local_axes()[index])
    )

    delta = vec3.signed_angle_about(to_end, to_target, world_axis) * IK_DAMPING
    delta = jnp.where(aligned, 0.0, delta)

    updated = jnp.clip(q[index] + delta, limits.lower[index], limits.upper[index])
    return q.at[index].set(updated)


def ccd_sweep(
    q: Array,
    target: Array,
    lengths: Array,
    limits: JointLimits,
    chain: ChainModel = DEFAULT_CHAIN,
) -> Array:
    """One backward pass over joints J6..J1."""

    def body(k, angles):
        return ccd_joint_step(IK_POSITIONAL_JOINTS - 1 - k, angles, target, lengths, limits, chain)

    return jax.lax.fori_loop(0, IK_POSITIONAL_JOINTS, body, q)


def _tip_error(q: Array, target: Array, lengths: Array, chain: ChainModel) -> Array:
    tip = se3.get_position(forward_kinematics_frames(q, lengths, chain)[-1])
    return vec3.distance(tip, target)


@jax.jit
def _solve(
    target: Array,
    q: Array,
    lengths: Array,
    limits: JointLimits,
    chain: ChainModel,
) -> Tuple[Array, Array]:
    def cond(state):
        iteration, angles = state
        return (iteration < IK_MAX_ITERATIONS) & (
            _tip_error(angles, target, lengths, chain) >= IK_THRESHOLD
        )

    def body(state):
        iteration, angles = state
        return iteration + 1, ccd_sweep(angles, target, lengths, limits, chain)

    iterations, q = jax.lax.while_loop(cond, body, (jnp.asarray(0, dtype=jnp.int32), limits.clamp(q)))
    return q, iterations


def solve_ik(
    target: Array,
    q: Array,
    lengths: Array,
    limits: JointLimits,
    chain: ChainModel = DEFAULT_CHAIN,
) -> Array:
    """Move the tip towards ``target`` with up to five damped CCD sweeps.

    The input angles are copied and clamped to the limits before solving, and
    every joint update is clamped again, so no intermediate state leaves the
    configured ranges. Unreachable targets are not an error: the best effort
    angles after the last sweep are returned. Callers decide whether the
    result is close enough and collision-free before committing it.

    Args:
        target: (3,) world point for the tip
        q: Initial joint angles of shape (7,)
        lengths: Link lengths of shape (8,)
        limits: Joint limits
        chain: ChainModel

    Returns:
        New joint angles of shape (7,)
    """
    angles, _ = _solve(
        jnp.asarray(target, dtype=float),
        jnp.asarray(q, dtype=float),
        jnp.asarray(lengths, dtype=float),
        limits,
        chain,
    )
    return angles


def solve_ik_detailed(
    target: Array,
    q: Array,
    lengths: Array,
    limits: JointLimits,
    chain: ChainModel = DEFAULT_CHAIN,
) -> IKSolution:
    """Like ``solve_ik`` but also reports iterations and the final error."""
    target = jnp.asarray(target, dtype=float)
    lengths = jnp.asarray(lengths, dtype=float)
    angles, iterations = _solve(target, jnp.asarray(q, dtype=float), lengths, limits, chain)
    error = _tip_error(angles, target, lengths, chain)
    return IKSolution(
        angles=angles,
        iterations=iterations,
        error=error,
        converged=error < IK_THRESHOLD,
    )
