"""I/O utilities for loading arm descriptions from files.

This module provides functions for parsing standard robotics file formats
and converting them to jax_arm configuration records.
"""

from .urdf_parser import load_urdf

__all__ = ["load_urdf"]
