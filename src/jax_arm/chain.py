"""Forward kinematics over the arm's serial chain.

This module implements forward kinematics for the 7-joint arm using JAX
primitives. The chain is rebuilt from scratch on every call: a base
translation followed, for each joint, by an axis-aligned rotation and the
translation along the following segment.
"""

import jax
import jax.numpy as jnp
from jax import Array

from .core import DEFAULT_CHAIN, ChainModel
from .transforms import se3, so3


def forward_kinematics_frames(q: Array, lengths: Array, chain: ChainModel = DEFAULT_CHAIN) -> Array:
    """Compute the world frame at every joint and at the tip.

    Frame 0 is the base translation alone. Frame i+1 is frame i composed with
    the rotation of joint i and the translation along segment i+1, so the
    rotation part of frame i is the accumulated rotation of joints 0..i-1.

    Args:
        q: Joint angles of shape (7,). Not clamped.
        lengths: Link lengths of shape (8,)
        chain: ChainModel giving joint axes and segment directions

    Returns:
        Array of shape (8, 4, 4) with the world poses
    """
    q = jnp.asarray(q, dtype=float)
    offsets = chain.bone_offsets(lengths)

    T_base = se3.from_translation(offsets[0])

    def scan_body(T_world_to_parent, xs):
        """Advances the cumulative transform across one joint and its segment."""
        axis_index, angle, offset = xs

        T_joint_motion = se3.from_rotation(so3.about_axis(axis_index, angle))
        T_parent_to_child = se3.multiply(T_joint_motion, se3.from_translation(offset))

        T_world_to_child = se3.multiply(T_world_to_parent, T_parent_to_child)
        return T_world_to_child, T_world_to_child

    _, frames = jax.lax.scan(scan_body, T_base, (chain.joint_axes, q, offsets[1:]))

    return jnp.concatenate([T_base[None], frames], axis=0)


def forward_kinematics(q: Array, lengths: Array, chain: ChainModel = DEFAULT_CHAIN) -> Array:
    """Compute world positions of J1..J7 and the tip.

    Pure and total: any real-valued angles are accepted, including angles
    outside the joint limits.

    Args:
        q: Joint angles of shape (7,)
        lengths: Link lengths of shape (8,)
        chain: ChainModel giving joint axes and segment directions

    Returns:
        Array of shape (8, 3); index 0 is J1, index 7 the tip
    """
    return se3.get_position(forward_kinematics_frames(q, lengths, chain))


def tip_position(q: Array, lengths: Array, chain: ChainModel = DEFAULT_CHAIN) -> Array:
    """World position of the end effector, shape (3,)."""
    return forward_kinematics(q, lengths, chain)[-1]


def world_joint_axes(q: Array, lengths: Array, chain: ChainModel = DEFAULT_CHAIN) -> Array:
    """Rotation axis of every joint expressed in world coordinates, shape (7, 3)."""
    frames = forward_kinematics_frames(q, lengths, chain)
    return so3.apply(se3.get_rotation(frames[:-1]), chain.local_axes())
