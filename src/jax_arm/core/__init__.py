"""Core arm model data structures for jax_arm.

This module provides the chain description, joint limits and the
configuration records callers use to describe an arm.
"""

from . import constants
from .robot_model import (
    DEFAULT_CHAIN,
    DEFAULT_DIMENSIONS,
    DEFAULT_JOINTS,
    ArmConfig,
    ChainModel,
    JointAxis,
    JointConfig,
    JointLimits,
    RobotDimensions,
    default_config,
)

__all__ = [
    "constants",
    "ArmConfig",
    "ChainModel",
    "JointAxis",
    "JointConfig",
    "JointLimits",
    "RobotDimensions",
    "DEFAULT_CHAIN",
    "DEFAULT_DIMENSIONS",
    "DEFAULT_JOINTS",
    "default_config",
]
