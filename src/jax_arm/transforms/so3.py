"""SO(3) rotations about the coordinate axes.

Every joint of the arm turns about one of its local X, Y or Z axes, so the
general exponential map is never needed. Rotations are 3x3 matrices and all
functions accept leading batch dimensions.
"""

import jax
import jax.numpy as jnp

Array = jax.Array


def _from_rows(row0, row1, row2) -> Array:
    """Assemble (..., 3, 3) matrices from three lists of (...,) entries."""
    return jnp.stack([jnp.stack(row, axis=-1) for row in (row0, row1, row2)], axis=-2)


def _cos_sin(angle):
    angle = jnp.asarray(angle, dtype=float)
    return jnp.cos(angle), jnp.sin(angle), jnp.ones_like(angle), jnp.zeros_like(angle)


def rot_x(angle: Array) -> Array:
    """
    Rotation about X (pitch joints).

    Args:
        angle: (...,) angle(s) in radians

    Returns:
        (..., 3, 3) rotation matrix
    """
    c, s, one, zero = _cos_sin(angle)
    return _from_rows([one, zero, zero], [zero, c, -s], [zero, s, c])


def rot_y(angle: Array) -> Array:
    """
    Rotation about Y (yaw joints, Y is up).

    Args:
        angle: (...,) angle(s) in radians

    Returns:
        (..., 3, 3) rotation matrix
    """
    c, s, one, zero = _cos_sin(angle)
    return _from_rows([c, zero, s], [zero, one, zero], [-s, zero, c])


def rot_z(angle: Array) -> Array:
    """
    Rotation about Z (roll joints).

    Args:
        angle: (...,) angle(s) in radians

    Returns:
        (..., 3, 3) rotation matrix
    """
    c, s, one, zero = _cos_sin(angle)
    return _from_rows([c, -s, zero], [s, c, zero], [zero, zero, one])


def about_axis(axis_index: Array, angle: Array) -> Array:
    """
    Rotation about the coordinate axis with the given index.

    The index follows ``JointAxis`` (0 = X, 1 = Y, 2 = Z) and may be traced,
    e.g. when it is scanned over inside ``lax.scan``.

    Args:
        axis_index: scalar integer axis index
        angle: scalar angle in radians

    Returns:
        (3, 3) rotation matrix
    """
    index = jnp.clip(jnp.asarray(axis_index, dtype=jnp.int32), 0, 2)
    return jax.lax.switch(index, (rot_x, rot_y, rot_z), jnp.asarray(angle, dtype=float))


def multiply(R1: Array, R2: Array) -> Array:
    """Compose rotations, ``R1`` applied after ``R2``."""
    return R1 @ R2


def apply(R: Array, v: Array) -> Array:
    """
    Rotate vector(s).

    Args:
        R: (..., 3, 3) rotation matrix
        v: (..., 3) vector, or (..., N, 3) vectors sharing each rotation

    Returns:
        Rotated vector(s), same shape as ``v``
    """
    if v.ndim == R.ndim - 1:
        return jnp.einsum('...ij,...j->...i', R, v)
    return jnp.einsum('...ij,...nj->...ni', R, v)
