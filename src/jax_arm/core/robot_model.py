"""Chain model and configuration records for the 7-DOF arm.

The engine functions only ever see two PyTrees from this module,
``ChainModel`` (static structure) and ``JointLimits`` (per-joint ranges),
plus a plain ``(8,)`` array of link lengths. The richer records
(``JointConfig``, ``RobotDimensions``, ``ArmConfig``) belong to the
configuration layer that callers own and swap between calls.
"""

import dataclasses
import enum
import math
from typing import Iterable, Sequence, Tuple

import jax
import jax.numpy as jnp
import numpy as np
from flax import struct

from .constants import NUM_JOINTS, NUM_POSITIONS

Array = jax.Array


class JointAxis(enum.IntEnum):
    """Local rotation axis of a joint."""
    X = 0
    Y = 1
    Z = 2

    @classmethod
    def from_name(cls, name: str) -> "JointAxis":
        try:
            return cls[name.upper()]
        except KeyError:
            raise ValueError(f"Unknown joint axis '{name}'")

    @property
    def unit_vector(self) -> Tuple[float, float, float]:
        v = [0.0, 0.0, 0.0]
        v[int(self)] = 1.0
        return tuple(v)


@dataclasses.dataclass(frozen=True)
class JointConfig:
    """Configuration of one joint as edited by the user.

    Attributes:
        id: Joint index in the chain (0..6).
        name: Display name.
        min: Lower angle limit in radians.
        max: Upper angle limit in radians.
        axis: Local rotation axis.
        default_value: Rest angle in radians.
        speed: Angle increment per frame at full analog deflection. Only used
               by input mapping, never by FK/IK/collision.
    """
    id: int
    name: str
    min: float
    max: float
    axis: JointAxis
    default_value: float = 0.0
    speed: float = 0.02

    def __post_init__(self):
        if self.min > self.max:
            raise ValueError(
                f"Joint '{self.name}' has min {self.min} greater than max {self.max}"
            )


@dataclasses.dataclass(frozen=True)
class RobotDimensions:
    """The eight segment lengths of the arm, in meters.

    Order matches the chain: base to J1, J1 to J2, ..., J7 to tip.
    """
    base_height: float = 0.2
    j1j2: float = 0.3
    j2j3: float = 0.8
    j3j4: float = 0.6
    j4j5: float = 0.6
    j5j6: float = 0.5
    j6j7: float = 0.3
    j7tip: float = 0.2

    def as_array(self) -> Array:
        """Return the link lengths as an ``(8,)`` array."""
        return jnp.array(dataclasses.astuple(self), dtype=float)

    @classmethod
    def from_sequence(cls, lengths: Iterable[float]) -> "RobotDimensions":
        values = [float(x) for x in lengths]
        if len(values) != NUM_POSITIONS:
            raise ValueError(f"Expected {NUM_POSITIONS} link lengths, got {len(values)}")
        return cls(*values)

    def validate(self) -> "RobotDimensions":
        """Raise ``ValueError`` unless every length is finite and positive."""
        for field in dataclasses.fields(self):
            value = getattr(self, field.name)
            if not math.isfinite(value) or value <= 0.0:
                raise ValueError(f"Link length '{field.name}' must be positive, got {value}")
        return self

    @property
    def total_length(self) -> float:
        return float(sum(dataclasses.astuple(self)))


@struct.dataclass
class ChainModel:
    """Immutable PyTree description of the serial chain.

    Attributes:
        joint_names: Names of the seven joints. Static field for JIT compilation.
        joint_axes: Int array of shape (7,) with ``JointAxis`` values.
        offset_directions: Array of shape (8, 3). Row 0 is the base offset in
                           world coordinates, row i+1 the local direction of the
                           segment following joint i.
    """
    joint_names: Tuple[str, ...] = struct.field(pytree_node=False)
    joint_axes: Array
    offset_directions: Array

    def local_axes(self) -> Array:
        """Unit rotation axes of all joints in their local frames, shape (7, 3)."""
        return jnp.eye(3, dtype=float)[self.joint_axes]

    def bone_offsets(self, lengths: Array) -> Array:
        """Segment translation vectors for the given link lengths, shape (8, 3)."""
        return self.offset_directions * jnp.asarray(lengths, dtype=float)[:, None]


@struct.dataclass
class JointLimits:
    """Per-joint angle ranges, as a PyTree of (7,) arrays."""
    lower: Array
    upper: Array
    speed: Array

    def clamp(self, q: Array) -> Array:
        return jnp.clip(q, self.lower, self.upper)

    def contains(self, q: Array, tol: float = 0.0) -> Array:
        return jnp.all((q >= self.lower - tol) & (q <= self.upper + tol), axis=-1)

    @classmethod
    def from_configs(cls, joints: Sequence[JointConfig]) -> "JointLimits":
        return cls(
            lower=jnp.array([j.min for j in joints], dtype=float),
            upper=jnp.array([j.max for j in joints], dtype=float),
            speed=jnp.array([j.speed for j in joints], dtype=float),
        )


DEFAULT_JOINTS: Tuple[JointConfig, ...] = (
    JointConfig(0, "J1: Base Yaw", -math.pi, math.pi, JointAxis.Y, 0.0, 0.02),
    JointConfig(1, "J2: Shoulder Pitch", -math.pi / 2, math.pi / 2, JointAxis.X, 0.0, 0.02),
    JointConfig(2, "J3: Arm Yaw 1", -math.pi / 1.5, math.pi / 1.5, JointAxis.Y, 0.0, 0.03),
    JointConfig(3, "J4: Arm Yaw 2", -math.pi / 1.5, math.pi / 1.5, JointAxis.Y, 0.0, 0.03),
    JointConfig(4, "J5: Arm Yaw 3", -math.pi / 1.5, math.pi / 1.5, JointAxis.Y, 0.0, 0.03),
    JointConfig(5, "J6: Wrist Pitch", -math.pi / 1.2, math.pi / 1.2, JointAxis.X, math.pi / 4, 0.04),
    JointConfig(6, "J7: Wrist Roll", -math.pi * 2, math.pi * 2, JointAxis.Z, 0.0, 0.05),
)

DEFAULT_DIMENSIONS = RobotDimensions()

# Base and shoulder segments rise along +Y, the rest of the arm reaches along local +Z.
DEFAULT_OFFSET_DIRECTIONS: Tuple[Tuple[float, float, float], ...] = (
    (0.0, 1.0, 0.0),
    (0.0, 1.0, 0.0),
) + ((0.0, 0.0, 1.0),) * 6


@dataclasses.dataclass(frozen=True)
class ArmConfig:
    """Complete, caller-owned description of one arm."""
    joints: Tuple[JointConfig, ...] = DEFAULT_JOINTS
    dimensions: RobotDimensions = DEFAULT_DIMENSIONS
    offset_directions: Tuple[Tuple[float, float, float], ...] = DEFAULT_OFFSET_DIRECTIONS

    def __post_init__(self):
        if len(self.joints) != NUM_JOINTS:
            raise ValueError(f"Expected {NUM_JOINTS} joints, got {len(self.joints)}")
        if len(self.offset_directions) != NUM_POSITIONS:
            raise ValueError(
                f"Expected {NUM_POSITIONS} offset directions, got {len(self.offset_directions)}"
            )
        directions = np.asarray(self.offset_directions, dtype=float)
        if not np.allclose(np.linalg.norm(directions, axis=-1), 1.0):
            raise ValueError("Offset directions must be unit vectors")

    @property
    def chain(self) -> ChainModel:
        return ChainModel(
            joint_names=tuple(j.name for j in self.joints),
            joint_axes=jnp.array([int(j.axis) for j in self.joints], dtype=jnp.int32),
            offset_directions=jnp.array(self.offset_directions, dtype=float),
        )

    @property
    def limits(self) -> JointLimits:
        return JointLimits.from_configs(self.joints)

    @property
    def lengths(self) -> Array:
        return self.dimensions.as_array()

    @property
    def default_angles(self) -> Array:
        return jnp.array([j.default_value for j in self.joints], dtype=float)

    def replace(self, **changes) -> "ArmConfig":
        return dataclasses.replace(self, **changes)

    def with_joint(self, index: int, **changes) -> "ArmConfig":
        """Return a copy with fields of joint ``index`` replaced."""
        joints = list(self.joints)
        joints[index] = dataclasses.replace(joints[index], **changes)
        return self.replace(joints=tuple(joints))


def default_config() -> ArmConfig:
    """Factory settings of the arm."""
    return ArmConfig()


DEFAULT_CHAIN: ChainModel = default_config().chain
