"""
jax_arm: kinematics engine for a simulated 7-DOF robot arm.

Forward kinematics, floor and self-collision checks, a damped CCD inverse
kinematics solver and Monte-Carlo workspace sampling, written as pure,
JIT-compilable JAX functions. Callers own all state and pass it in.
"""

import jax
jax.config.update("jax_enable_x64", True)

# Import core modules
from . import transforms
from . import core
from . import io
from .chain import forward_kinematics, forward_kinematics_frames, tip_position
from .collision import check_collision, collision_report, segment_distance
from .ik import solve_ik, solve_ik_detailed
from .workspace import CancellationToken, SamplingCancelled, WorkspaceSampler, sample_workspace
from . import controller

__version__ = "0.1.0"
__all__ = [
    "transforms",
    "core",
    "io",
    "controller",
    "forward_kinematics",
    "forward_kinematics_frames",
    "tip_position",
    "check_collision",
    "collision_report",
    "segment_distance",
    "solve_ik",
    "solve_ik_detailed",
    "sample_workspace",
    "WorkspaceSampler",
    "CancellationToken",
    "SamplingCancelled",
]
