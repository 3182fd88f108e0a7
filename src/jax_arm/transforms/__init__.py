"""
JAX-based geometry primitives for the arm kinematics.

This module provides JIT-compilable implementations of:
- SO(3) axis-aligned rotations (so3 module)
- SE(3) rigid body transforms (se3 module)
- 3D vector helpers (vec3 module)

All functions are pure, stateless, and designed for high-performance computation.
"""

# Core geometry modules
from . import so3
from . import se3
from . import vec3

__all__ = [
    "so3",
    "se3",
    "vec3",
]
