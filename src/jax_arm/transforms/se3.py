"""SE(3) homogeneous transforms for the kinematic chain.

A frame is a 4x4 matrix ``[[R, p], [0, 1]]``. Forward kinematics only needs
to build frames from a rotation or a translation, chain them, and read the
position and rotation blocks back out.
"""

import jax
import jax.numpy as jnp

Array = jax.Array


def from_position_and_rotation(p: Array, R: Array) -> Array:
    """
    Build a frame from a position and a rotation.

    Args:
        p: (..., 3) origin of the frame
        R: (..., 3, 3) orientation of the frame

    Returns:
        (..., 4, 4) homogeneous matrix
    """
    batch_shape = jnp.broadcast_shapes(p.shape[:-1], R.shape[:-2])
    p = jnp.broadcast_to(p, batch_shape + (3,))
    R = jnp.broadcast_to(R, batch_shape + (3, 3))

    top = jnp.concatenate([R, p[..., :, None]], axis=-1)
    bottom = jnp.broadcast_to(jnp.array([0.0, 0.0, 0.0, 1.0], dtype=p.dtype), batch_shape + (1, 4))
    return jnp.concatenate([top, bottom], axis=-2)


def from_translation(p: Array) -> Array:
    """Pure translation by ``p``, shape (..., 3) -> (..., 4, 4)."""
    p = jnp.asarray(p, dtype=float)
    return from_position_and_rotation(p, jnp.eye(3, dtype=p.dtype))


def from_rotation(R: Array) -> Array:
    """Pure rotation by ``R``, shape (..., 3, 3) -> (..., 4, 4)."""
    return from_position_and_rotation(jnp.zeros(R.shape[:-1], dtype=R.dtype), R)


def multiply(T1: Array, T2: Array) -> Array:
    """Chain frames: ``T2`` expressed in ``T1``."""
    return T1 @ T2


def apply(T: Array, points: Array) -> Array:
    """
    Map point(s) through a frame.

    Args:
        T: (..., 4, 4) homogeneous matrix
        points: (..., 3) point, or (..., N, 3) points sharing each frame

    Returns:
        Transformed point(s), same shape as ``points``
    """
    R, p = get_rotation(T), get_position(T)
    if points.ndim == T.ndim - 1:
        return jnp.einsum('...ij,...j->...i', R, points) + p
    return jnp.einsum('...ij,...nj->...ni', R, points) + p[..., None, :]


def get_position(T: Array) -> Array:
    return T[..., :3, 3]


def get_rotation(T: Array) -> Array:
    return T[..., :3, :3]
