"""
Screen-space projection of Gaussian splats.

Each 3D covariance is propagated through a local affine approximation of the
perspective projection (EWA splatting):

    Sigma_2D = T^T Sigma_3D T,   T = W J

where W is the transposed rotational part of the view matrix and J the
Jacobian of the projection evaluated at the splat center. The top-left 2x2
block of Sigma_2D is eigen-decomposed analytically and turned into two basis
vectors spanning the splat's screen-space ellipse out to 4 standard
deviations, in pixels.

Nothing here raises for degenerate input: splats at (or near) zero view
depth are projected with a clamped depth, and flat or zero-size splats yield
zero-length basis vectors.
"""

from typing import Tuple

import torch

from ..gaussians.base import Gaussian, GaussianSet
from ..utils.transforms import transform_points
from .camera import Camera

MAX_SPLAT_RADIUS = 1024.0
MIN_VIEW_DEPTH = 1e-3
BASIS_SIGMAS = 4.0


def clamp_view_depth(z: torch.Tensor, min_view_depth: float = MIN_VIEW_DEPTH) -> torch.Tensor:
    """Clamp |z| to at least ``min_view_depth``, keeping the sign; z == 0 maps to -min_view_depth."""
    return torch.where(z > 0, z.clamp_min(min_view_depth), z.clamp_max(-min_view_depth))


def eigenvalues_2x2(
    c_xx: torch.Tensor, c_xy: torch.Tensor, c_yy: torch.Tensor
) -> Tuple[torch.Tensor, torch.Tensor]:
    """Eigenvalues of symmetric 2x2 matrices, ordered lambda_1 >= lambda_2 >= 0.

    Negative values, which only arise from rounding on near-degenerate
    covariances, are clamped to zero.
    """
    half_trace = 0.5 * (c_xx + c_yy)
    det = c_xx * c_yy - c_xy * c_xy
    term = torch.sqrt(torch.clamp_min(half_trace * half_trace - det, 0.0))
    lambda_1 = torch.clamp_min(half_trace + term, 0.0)
    lambda_2 = torch.clamp_min(half_trace - term, 0.0)
    return lambda_1, lambda_2


def basis_from_covariance_2d(
    c_xx: torch.Tensor,
    c_xy: torch.Tensor,
    c_yy: torch.Tensor,
    max_radius: float = MAX_SPLAT_RADIUS,
) -> torch.Tensor:
    """Compute the screen-space ellipse basis of 2D covariances.

    Args:
        c_xx, c_xy, c_yy: Covariance entries [N]
        max_radius: Clamp on each basis vector's length, in pixels

    Returns:
        Basis vectors packed as (bx1, by1, bx2, by2) [N, 4]
    """
    lambda_1, lambda_2 = eigenvalues_2x2(c_xx, c_xy, c_yy)

    v = torch.stack([c_xy, lambda_1 - c_xx], dim=-1)
    norm = torch.linalg.vector_norm(v, dim=-1, keepdim=True)
    scale = (c_xx.abs() + c_yy.abs()).unsqueeze(-1)
    valid = norm > 1e-12 * scale

    # Diagonal block: the major axis is the one with the larger variance
    x_axis = torch.tensor([1.0, 0.0], dtype=v.dtype, device=v.device)
    y_axis = torch.tensor([0.0, 1.0], dtype=v.dtype, device=v.device)
    axis = torch.where((c_xx >= c_yy).unsqueeze(-1), x_axis, y_axis)

    eigvec_1 = torch.where(valid, v / torch.where(valid, norm, torch.ones_like(norm)), axis)
    eigvec_2 = torch.stack([eigvec_1[..., 1], -eigvec_1[..., 0]], dim=-1)

    extent_1 = torch.clamp_max(BASIS_SIGMAS * torch.sqrt(lambda_1), max_radius)
    extent_2 = torch.clamp_max(BASIS_SIGMAS * torch.sqrt(lambda_2), max_radius)

    return torch.cat([eigvec_1 * extent_1.unsqueeze(-1), eigvec_2 * extent_2.unsqueeze(-1)], dim=-1)


@torch.no_grad()
def project_covariance(
    positions: torch.Tensor,
    covariances: torch.Tensor,
    view: torch.Tensor,
    projection: torch.Tensor,
    viewport: Tuple[int, int],
    min_view_depth: float = MIN_VIEW_DEPTH,
) -> torch.Tensor:
    """Project 3D covariances to screen space.

    Args:
        positions: Splat centers [N, 3]
        covariances: 3D covariances [N, 3, 3]
        view: View matrix [4, 4]
        projection: Projection matrix [4, 4]
        viewport: (width, height) in pixels
        min_view_depth: Smallest |z| used in the Jacobian

    Returns:
        Projected covariances [N, 3, 3] in float64; the top-left 2x2 block
        is the screen-space covariance in pixels^2
    """
    dtype = torch.float64
    device = positions.device
    V = view.to(device=device, dtype=dtype)
    P = projection.to(device=device, dtype=dtype)

    view_pos = transform_points(V, positions.to(dtype))
    x, y = view_pos[:, 0], view_pos[:, 1]
    z = clamp_view_depth(view_pos[:, 2], min_view_depth)

    width, height = viewport
    focal_x = P[0, 0] * width * 0.5
    focal_y = P[1, 1] * height * 0.5

    inv_z = 1.0 / z
    inv_z2 = inv_z * inv_z
    J = torch.zeros((positions.shape[0], 3, 3), dtype=dtype, device=device)
    J[:, 0, 0] = -focal_x * inv_z
    J[:, 1, 1] = -focal_y * inv_z
    J[:, 2, 0] = focal_x * x * inv_z2
    J[:, 2, 1] = focal_y * y * inv_z2

    W = V[:3, :3].T
    T = W @ J
    return T.transpose(-1, -2) @ covariances.to(dtype) @ T


@torch.no_grad()
def project_basis(
    positions: torch.Tensor,
    covariances: torch.Tensor,
    view: torch.Tensor,
    projection: torch.Tensor,
    viewport: Tuple[int, int],
    max_radius: float = MAX_SPLAT_RADIUS,
    min_view_depth: float = MIN_VIEW_DEPTH,
) -> torch.Tensor:
    """Compute the screen-space basis of every splat.

    Args:
        positions: Splat centers [N, 3]
        covariances: 3D covariances [N, 3, 3]
        view: View matrix [4, 4]
        projection: Projection matrix [4, 4]
        viewport: (width, height) in pixels
        max_radius: Clamp on basis vector length, in pixels
        min_view_depth: Smallest |z| used in the Jacobian

    Returns:
        Basis vectors (bx1, by1, bx2, by2) [N, 4], float32
    """
    C = project_covariance(positions, covariances, view, projection, viewport, min_view_depth)
    basis = basis_from_covariance_2d(C[:, 0, 0], C[:, 0, 1], C[:, 1, 1], max_radius)
    return basis.to(torch.float32)


def project_set(
    gaussians: GaussianSet,
    camera: Camera,
    max_radius: float = MAX_SPLAT_RADIUS,
    min_view_depth: float = MIN_VIEW_DEPTH,
) -> torch.Tensor:
    """Compute the screen-space basis of every splat in a set [N, 4]."""
    return project_basis(
        gaussians.positions, gaussians.covariances, camera.view, camera.projection,
        camera.viewport, max_radius, min_view_depth,
    )


def project(
    gaussian: Gaussian,
    camera: Camera,
    max_radius: float = MAX_SPLAT_RADIUS,
    min_view_depth: float = MIN_VIEW_DEPTH,
) -> torch.Tensor:
    """Compute the screen-space basis of a single splat [4]."""
    basis = project_basis(
        gaussian.position.unsqueeze(0), gaussian.covariance3d.unsqueeze(0), camera.view,
        camera.projection, camera.viewport, max_radius, min_view_depth,
    )
    return basis[0]


__all__ = [
    "MAX_SPLAT_RADIUS",
    "MIN_VIEW_DEPTH",
    "eigenvalues_2x2",
    "basis_from_covariance_2d",
    "project_covariance",
    "project_basis",
    "project_set",
    "project",
]
