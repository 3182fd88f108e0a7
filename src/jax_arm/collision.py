"""Floor and self-collision checks on forward kinematics output.

Links are modelled as line segments between consecutive joint positions.
Two links collide when the minimum distance between their segments drops
below a clearance threshold; directly adjacent links share a joint and are
never compared. Every function is pure and JIT-able.
"""

import enum
import itertools
from typing import Tuple

import jax
import jax.numpy as jnp
from flax import struct
from jax import Array

from .core.constants import (
    COLLISION_WARNING_THRESHOLD,
    FLOOR_BUFFER,
    FLOOR_LIMIT,
    NUM_POSITIONS,
    SEGMENT_EPSILON,
    UP_AXIS,
)
from .transforms import vec3

# Segment 0 runs from the world origin to J1, segment k from position k-1 to position k.
NUM_SEGMENTS = NUM_POSITIONS

# Pairs of links that do not share a joint, in scan order.
NON_ADJACENT_PAIRS: Tuple[Tuple[int, int], ...] = tuple(
    (i, j) for i, j in itertools.combinations(range(NUM_SEGMENTS), 2) if j >= i + 2
)


class CollisionKind(enum.IntEnum):
    NONE = 0
    FLOOR = 1
    SELF = 2


@struct.dataclass
class CollisionReport:
    """Detailed verdict of ``collision_report``.

    Attributes:
        colliding: True if any check failed.
        kind: ``CollisionKind`` value of the first failing check (floor first).
        point_index: First position below the floor, or -1.
        segment_pair: (i, j) of the first pair closer than the threshold, or (-1, -1).
        min_distance: Smallest distance over all non-adjacent pairs.
    """
    colliding: Array
    kind: Array
    point_index: Array
    segment_pair: Array
    min_distance: Array


def segment_distance(p1: Array, q1: Array, p2: Array, q2: Array) -> Array:
    """Minimum distance between segments p1-q1 and p2-q2.

    Closest points are found from the parameters s (along p1-q1) and t
    (along p2-q2). When the squared-sine denominator is below 1e-6 the
    segments are treated as parallel and s is pinned to 0. Both parameters
    end up in [0, 1], and numerators within 1e-6 of zero snap to zero.

    Args:
        p1, q1: (3,) endpoints of the first segment
        p2, q2: (3,) endpoints of the second segment

    Returns:
        Scalar distance
    """
    u = q1 - p1
    v = q2 - p2
    w = p1 - p2
    a = vec3.dot(u, u)
    b = vec3.dot(u, v)
    c = vec3.dot(v, v)
    d = vec3.dot(u, w)
    e = vec3.dot(v, w)
    D = a * c - b * b

    parallel = D < SEGMENT_EPSILON

    # Unclamped closest points of the two infinite lines
    sN_line = b * e - c * d
    tN_line = a * e - b * d

    sN = jnp.where(parallel, 0.0, sN_line)
    sD = jnp.where(parallel, 1.0, D)
    tN = jnp.where(parallel, e, tN_line)
    tD = jnp.where(parallel, c, D)

    # Clamp s to the first segment, re-solving t for that edge
    s_below = ~parallel & (sN_line < 0.0)
    s_above = ~parallel & ~s_below & (sN_line > D)
    sN = jnp.where(s_below, 0.0, jnp.where(s_above, sD, sN))
    tN = jnp.where(s_below, e, jnp.where(s_above, e + b, tN))
    tD = jnp.where(s_below | s_above, c, tD)

    # Clamp t to the second segment, re-solving s for that edge
    t_below = tN < 0.0
    t_above = ~t_below & (tN > tD)

    s_at_t0 = -d
    s_at_t1 = -d + b
    sN_t0 = jnp.where(s_at_t0 < 0.0, 0.0, jnp.where(s_at_t0 > a, sD, s_at_t0))
    sD_t0 = jnp.where((s_at_t0 < 0.0) | (s_at_t0 > a), sD, a)
    sN_t1 = jnp.where(s_at_t1 < 0.0, 0.0, jnp.where(s_at_t1 > a, sD, s_at_t1))
    sD_t1 = jnp.where((s_at_t1 < 0.0) | (s_at_t1 > a), sD, a)

    sN = jnp.where(t_below, sN_t0, jnp.where(t_above, sN_t1, sN))
    sD = jnp.where(t_below, sD_t0, jnp.where(t_above, sD_t1, sD))
    tN = jnp.where(t_below, 0.0, jnp.where(t_above, tD, tN))

    safe_sD = jnp.where(sD == 0.0, 1.0, sD)
    safe_tD = jnp.where(tD == 0.0, 1.0, tD)
    sc = jnp.where(jnp.abs(sN) < SEGMENT_EPSILON, 0.0, sN / safe_sD)
    tc = jnp.where(jnp.abs(tN) < SEGMENT_EPSILON, 0.0, tN / safe_tD)
    sc = jnp.clip(sc, 0.0, 1.0)
    tc = jnp.clip(tc, 0.0, 1.0)

    dP = w + sc * u - tc * v
    return vec3.norm(dP)


def build_segments(positions: Array) -> Tuple[Array, Array]:
    """Start and end points of the eight links.

    Args:
        positions: (8, 3) joint positions from forward kinematics

    Returns:
        Tuple ``(starts, ends)`` of (8, 3) arrays
    """
    origin = jnp.zeros((1, 3), dtype=positions.dtype)
    starts = jnp.concatenate([origin, positions[:-1]], axis=0)
    return starts, positions


def pair_distances(positions: Array) -> Array:
    """Distances for every entry of ``NON_ADJACENT_PAIRS``, shape (21,)."""
    starts, ends = build_segments(positions)
    i_idx = jnp.array([i for i, _ in NON_ADJACENT_PAIRS])
    j_idx = jnp.array([j for _, j in NON_ADJACENT_PAIRS])
    return jax.vmap(segment_distance)(starts[i_idx], ends[i_idx], starts[j_idx], ends[j_idx])


def floor_violations(positions: Array, floor_limit: float = FLOOR_LIMIT) -> Array:
    """Per-position mask of points closer than the buffer to the floor."""
    return positions[..., UP_AXIS] < floor_limit + FLOOR_BUFFER


def check_collision(
    positions: Array,
    threshold: float = COLLISION_WARNING_THRESHOLD,
    floor_limit: float = FLOOR_LIMIT,
) -> Array:
    """Return True if the pose hits the floor or itself.

    Args:
        positions: (8, 3) joint positions from forward kinematics
        threshold: Minimum clearance between non-adjacent links
        floor_limit: Height of the floor plane

    Returns:
        Scalar boolean array
    """
    below_floor = jnp.any(floor_violations(positions, floor_limit))
    too_close = jnp.any(pair_distances(positions) < threshold)
    return below_floor | too_close


def collision_report(
    positions: Array,
    threshold: float = COLLISION_WARNING_THRESHOLD,
    floor_limit: float = FLOOR_LIMIT,
) -> CollisionReport:
    """Same verdict as ``check_collision`` plus what triggered it.

    The floor is scanned before the links. Within each check the first
    offender in scan order is reported: ascending position index for the
    floor, outer segment ascending then inner segment ascending for links.
    """
    floor_mask = floor_violations(positions, floor_limit)
    distances = pair_distances(positions)
    close_mask = distances < threshold

    below_floor = jnp.any(floor_mask)
    too_close = jnp.any(close_mask)

    pairs = jnp.array(NON_ADJACENT_PAIRS, dtype=jnp.int32)
    point_index = jnp.where(below_floor, jnp.argmax(floor_mask), -1)
    segment_pair = jnp.where(too_close, pairs[jnp.argmax(close_mask)], jnp.array([-1, -1]))

    kind = jnp.where(
        below_floor,
        int(CollisionKind.FLOOR),
        jnp.where(too_close, int(CollisionKind.SELF), int(CollisionKind.NONE)),
    )

    return CollisionReport(
        colliding=below_floor | too_close,
        kind=kind,
        point_index=point_index,
        segment_pair=segment_pair,
        min_distance=jnp.min(distances),
    )
