"""3D vector helpers in JAX.

Small, JIT-able building blocks shared by the collision checker and the
IK solver. Degenerate inputs (zero-length vectors) are handled with
``jnp.where`` guards instead of raising.
"""

import jax
import jax.numpy as jnp

Array = jax.Array

# Below this length a vector is treated as having no direction.
EPS = 1e-12


def dot(a: Array, b: Array) -> Array:
    """Dot product over the last axis."""
    return jnp.sum(a * b, axis=-1)


def cross(a: Array, b: Array) -> Array:
    """Cross product over the last axis."""
    return jnp.cross(a, b)


def norm(v: Array) -> Array:
    """Euclidean length over the last axis."""
    return jnp.linalg.norm(v, axis=-1)


def distance(a: Array, b: Array) -> Array:
    """Euclidean distance between points."""
    return norm(a - b)


def normalize(v: Array) -> Array:
    """
    Scale vector(s) to unit length.

    A zero vector stays zero rather than turning into NaN.

    Args:
        v: (..., 3) vector(s)

    Returns:
        (..., 3) unit vector(s), or zeros where the input had no length
    """
    length = jnp.linalg.norm(v, axis=-1, keepdims=True)
    safe_length = jnp.where(length > EPS, length, 1.0)
    return jnp.where(length > EPS, v / safe_length, jnp.zeros_like(v))


def project_onto_plane(v: Array, normal: Array) -> Array:
    """
    Remove the component of ``v`` along the unit vector ``normal``.

    Args:
        v: (..., 3) vector(s)
        normal: (..., 3) unit plane normal(s)

    Returns:
        (..., 3) projection of ``v`` onto the plane through the origin
    """
    return v - normal * dot(v, normal)[..., None]


def signed_angle_about(a: Array, b: Array, axis: Array) -> Array:
    """
    Signed rotation angle about ``axis`` that carries ``a`` towards ``b``.

    Both vectors are projected onto the plane perpendicular to ``axis`` and
    normalized. The magnitude is the arccosine of the clamped dot product of
    the projections, the sign is positive when their cross product points
    along ``axis``. If either projection vanishes (a vector parallel to the
    axis) the angle is 0.

    Args:
        a: (3,) start direction
        b: (3,) goal direction
        axis: (3,) unit rotation axis

    Returns:
        scalar angle in radians within [-pi, pi]
    """
    a_proj = project_onto_plane(a, axis)
    b_proj = project_onto_plane(b, axis)
    degenerate = (norm(a_proj) <= EPS) | (norm(b_proj) <= EPS)

    a_unit = normalize(a_proj)
    b_unit = normalize(b_proj)

    angle = jnp.arccos(jnp.clip(dot(a_unit, b_unit), -1.0, 1.0))
    angle = jnp.where(dot(cross(a_unit, b_unit), axis) < 0.0, -angle, angle)

    return jnp.where(degenerate, 0.0, angle)
