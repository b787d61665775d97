"""
Utility functions for the splat viewer.

This module provides helper functions for quaternion operations, covariance
construction and homogeneous transforms.
"""

from simple_splat_viewer.utils.transforms import (
    build_covariance,
    build_rotation,
    normalize_quaternion,
    to_homogeneous,
    transform_points,
)

__all__ = [
    "build_covariance",
    "build_rotation",
    "normalize_quaternion",
    "to_homogeneous",
    "transform_points",
]
