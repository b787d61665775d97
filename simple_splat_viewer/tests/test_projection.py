import math

import pytest
import torch

from simple_splat_viewer.core.camera import Camera, perspective
from simple_splat_viewer.core.projection import (
    MAX_SPLAT_RADIUS, basis_from_covariance_2d, eigenvalues_2x2, project, project_set)
from simple_splat_viewer.gaussians import splatify
from simple_splat_viewer.ply import decode_ply
from simple_splat_viewer.testing import make_vertex, ply_bytes, random_gaussian_set, simple_camera


def identity_camera(viewport=(100, 100), fovy=1.4):
    width, height = viewport
    return Camera(view=torch.eye(4, dtype=torch.float64),
                  projection=perspective(fovy, width / height, 0.01, 100.0),
                  viewport=viewport)


def extents(basis):
    return (torch.linalg.vector_norm(basis[..., 0:2], dim=-1),
            torch.linalg.vector_norm(basis[..., 2:4], dim=-1))


def test_eigenvalues_ordered():
    torch.manual_seed(0)
    m = torch.randn(256, 2, 2, dtype=torch.float64)
    cov = m @ m.transpose(-1, -2)

    lambda_1, lambda_2 = eigenvalues_2x2(cov[:, 0, 0], cov[:, 0, 1], cov[:, 1, 1])
    expected = torch.linalg.eigvalsh(cov)

    assert (lambda_1 >= lambda_2).all()
    assert (lambda_2 >= 0).all()
    torch.testing.assert_close(lambda_1, expected[:, 1])
    torch.testing.assert_close(lambda_2, expected[:, 0])


def test_basis_is_orthogonal_and_scaled():
    torch.manual_seed(1)
    m = torch.randn(128, 2, 2, dtype=torch.float64)
    cov = m @ m.transpose(-1, -2)

    basis = basis_from_covariance_2d(cov[:, 0, 0], cov[:, 0, 1], cov[:, 1, 1])
    lambda_1, lambda_2 = eigenvalues_2x2(cov[:, 0, 0], cov[:, 0, 1], cov[:, 1, 1])
    major, minor = extents(basis)

    dot = (basis[:, 0:2] * basis[:, 2:4]).sum(dim=-1)
    torch.testing.assert_close(dot, torch.zeros_like(dot), atol=1e-6, rtol=0)
    torch.testing.assert_close(major, 4.0 * torch.sqrt(lambda_1))
    torch.testing.assert_close(minor, 4.0 * torch.sqrt(lambda_2))


def test_basis_degenerate_covariances():
    c_xx = torch.tensor([0.0, 4.0, 1.0], dtype=torch.float64)
    c_xy = torch.tensor([0.0, 0.0, 0.0], dtype=torch.float64)
    c_yy = torch.tensor([0.0, 4.0, 9.0], dtype=torch.float64)

    basis = basis_from_covariance_2d(c_xx, c_xy, c_yy)
    assert torch.isfinite(basis).all()

    torch.testing.assert_close(basis[0], torch.zeros(4, dtype=torch.float64))
    torch.testing.assert_close(basis[1], torch.tensor([8.0, 0.0, 0.0, -8.0], dtype=torch.float64))
    torch.testing.assert_close(basis[2], torch.tensor([0.0, 12.0, 4.0, 0.0], dtype=torch.float64))


def test_basis_clamped():
    big = torch.tensor([1e9], dtype=torch.float64)
    basis = basis_from_covariance_2d(big, torch.zeros(1, dtype=torch.float64), big)
    major, minor = extents(basis)
    assert major.item() == MAX_SPLAT_RADIUS
    assert minor.item() == MAX_SPLAT_RADIUS


def test_single_vertex_at_origin():
    data = decode_ply(ply_bytes([make_vertex()]))
    g = splatify(data.vertex(0))

    torch.testing.assert_close(g.scale, torch.ones(3, dtype=torch.float64))
    torch.testing.assert_close(g.color, torch.full((3,), 0.5, dtype=torch.float64))
    assert g.opacity.item() == 0.5

    basis = project(g, identity_camera())
    assert basis.dtype == torch.float32
    assert torch.isfinite(basis).all()

    major, minor = extents(basis)
    assert 0 < minor.item() <= major.item() <= MAX_SPLAT_RADIUS


def test_isotropic_extent_matches_focal_length():
    g = splatify(make_vertex(0.0, 0.0, -5.0))
    camera = identity_camera()

    basis = project(g, camera)
    focal = camera.projection[0, 0].item() * 50.0
    major, minor = extents(basis)

    assert major.item() == pytest.approx(4.0 * focal / 5.0, rel=1e-5)
    assert minor.item() == pytest.approx(4.0 * focal / 5.0, rel=1e-5)


def test_anisotropic_axis_follows_rotation():
    log_scale = (0.0, math.log(0.1), math.log(0.1))
    camera = identity_camera()

    along_x = project(splatify(make_vertex(0.0, 0.0, -5.0, log_scale=log_scale)), camera)
    assert abs(along_x[0].item()) > 10 * abs(along_x[1].item())

    # 90 degrees about z moves the long axis onto y
    half = math.sqrt(0.5)
    along_y = project(splatify(make_vertex(0.0, 0.0, -5.0, rotation=(half, 0.0, 0.0, half),
                                           log_scale=log_scale)), camera)
    assert abs(along_y[1].item()) > 10 * abs(along_y[0].item())

    torch.testing.assert_close(extents(along_x)[0], extents(along_y)[0], rtol=1e-4, atol=1e-4)


def test_deterministic():
    gaussians = random_gaussian_set(200, seed=4)
    camera = simple_camera(eye=(0.5, 1.0, 4.0))

    first = project_set(gaussians, camera)
    second = project_set(gaussians, camera)
    assert torch.equal(first, second)


def test_set_matches_single():
    gaussians = random_gaussian_set(16, seed=6, dtype=torch.float64)
    camera = simple_camera(eye=(1.0, 0.5, 3.0))

    batched = project_set(gaussians, camera)
    for i in range(len(gaussians)):
        torch.testing.assert_close(project(gaussians[i], camera), batched[i])


def test_finite_for_every_depth():
    gaussians = random_gaussian_set(256, seed=7, extent=3.0)
    # Camera inside the cloud: splats behind, beside and in front of it
    camera = simple_camera(eye=(0.0, 0.0, 0.0), target=(0.0, 0.0, -1.0))

    basis = project_set(gaussians, camera)
    major, minor = extents(basis)
    assert torch.isfinite(basis).all()
    assert (major <= MAX_SPLAT_RADIUS + 1e-3).all()
    assert (minor <= major + 1e-3).all()
