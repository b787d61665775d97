"""
Transform Utilities

Quaternion, covariance and homogeneous-coordinate helpers shared by the
splat factory, the screen projector and the visibility orderer.
"""

import torch
import torch.nn.functional as F


def normalize_quaternion(q: torch.Tensor) -> torch.Tensor:
    """
    Normalize quaternions to unit length.

    A zero-length quaternion carries no orientation and is mapped to the
    identity rotation.

    Args:
        q: Quaternions as tensor of shape (..., 4), real part first.

    Returns:
        Unit quaternions of shape (..., 4).
    """
    norm = torch.linalg.vector_norm(q, dim=-1, keepdim=True)
    identity = torch.zeros_like(q)
    identity[..., 0] = 1.0
    return torch.where(norm > 0, q / norm.clamp_min(torch.finfo(q.dtype).tiny), identity)


def build_rotation(r: torch.Tensor) -> torch.Tensor:
    """
    Build rotation matrix from quaternion.

    Args:
        r: Quaternions as tensor of shape (..., 4), real part first.

    Returns:
        Rotation matrices as tensor of shape (..., 3, 3).
    """
    q = normalize_quaternion(r)

    w, x, y, z = torch.unbind(q, -1)

    R = torch.stack(
        [
            1 - 2 * (y * y + z * z), 2 * (x * y - w * z), 2 * (x * z + w * y),
            2 * (x * y + w * z), 1 - 2 * (x * x + z * z), 2 * (y * z - w * x),
            2 * (x * z - w * y), 2 * (y * z + w * x), 1 - 2 * (x * x + y * y),
        ],
        dim=-1,
    )
    return R.reshape(q.shape[:-1] + (3, 3))


def build_covariance(rotations: torch.Tensor, scales: torch.Tensor) -> torch.Tensor:
    """
    Build 3D covariance matrices from rotations and scales.

    Computes T = R S with S = diag(scales), then Sigma = T T^T.

    Args:
        rotations: Quaternions (..., 4), real part first
        scales: Per-axis standard deviations (..., 3), already exp-activated

    Returns:
        Symmetric positive semi-definite covariances (..., 3, 3)
    """
    R = build_rotation(rotations)
    T = R * scales.unsqueeze(-2)  # R @ diag(s) scales the columns of R
    cov = T @ T.transpose(-1, -2)
    # exact symmetry under floating point
    return 0.5 * (cov + cov.transpose(-1, -2))


def to_homogeneous(points: torch.Tensor) -> torch.Tensor:
    """Append a unit w coordinate: (..., 3) -> (..., 4)."""
    return F.pad(points, (0, 1), value=1.0)


def transform_points(transform: torch.Tensor, points: torch.Tensor) -> torch.Tensor:
    """
    Apply a 4x4 matrix to 3D points.

    Args:
        transform: Matrix [4, 4] acting on column vectors
        points: Points [N, 3]

    Returns:
        Transformed homogeneous points [N, 4] (not divided by w)
    """
    return to_homogeneous(points) @ transform.transpose(-1, -2)


__all__ = [
    "normalize_quaternion",
    "build_rotation",
    "build_covariance",
    "to_homogeneous",
    "transform_points",
]
