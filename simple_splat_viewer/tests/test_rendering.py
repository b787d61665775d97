import numpy as np
import pytest
import torch

from simple_splat_viewer.config import RenderConfig
from simple_splat_viewer.core.frame import FrameUniforms, SplatPipeline
from simple_splat_viewer.core.rendering import SplatRasterizer, basis_to_conics, order_to_depths, resolve_device
from simple_splat_viewer.errors import DeviceUnavailableError
from simple_splat_viewer.gaussians import SH_C0, GaussianSet, splatify_columns
from simple_splat_viewer.ply import decode_ply
from simple_splat_viewer.testing import make_vertex, ply_bytes, simple_camera

RED = (0.5 / SH_C0, -0.5 / SH_C0, -0.5 / SH_C0)
GREEN = (RED[1], RED[0], RED[2])


def gaussians_from(vertices) -> GaussianSet:
    return splatify_columns(decode_ply(ply_bytes(vertices)).columns)


def test_uniforms_column_major():
    camera = simple_camera(eye=(1.0, 2.0, 3.0))
    uniforms = FrameUniforms.from_camera(camera, 1.5)

    assert uniforms.view.dtype == np.float32 and uniforms.view.shape == (16,)
    np.testing.assert_allclose(uniforms.view.reshape(4, 4).T, camera.view.numpy(), rtol=1e-6, atol=1e-6)
    np.testing.assert_allclose(uniforms.projection.reshape(4, 4).T, camera.projection.numpy(), rtol=1e-6)
    # translation lives in the last column, i.e. elements 12..14
    np.testing.assert_allclose(uniforms.view[12:15], camera.view[:3, 3].numpy(), rtol=1e-6, atol=1e-6)
    assert uniforms.viewport.tolist() == [64.0, 48.0]
    assert uniforms.splat_radius == 1.5


def test_buffers_layout():
    pipeline = SplatPipeline(gaussians_from([make_vertex(), make_vertex(0.5)]))
    buffers = pipeline.tick(simple_camera())

    assert len(buffers) == 2
    assert buffers.basis.shape == (2, 4) and buffers.basis.dtype == np.float32
    assert buffers.positions.shape == (2, 3)
    assert buffers.colors.shape == (2, 4)
    assert buffers.order.dtype == np.uint32
    np.testing.assert_allclose(buffers.colors[:, 3], 0.5)


def test_splat_radius_range():
    with pytest.raises(ValueError):
        RenderConfig(splat_radius=0.05)

    pipeline = SplatPipeline(gaussians_from([make_vertex()]))
    pipeline.set_splat_radius(2.0)
    assert pipeline.tick(simple_camera()).uniforms.splat_radius == 2.0

    with pytest.raises(ValueError):
        pipeline.set_splat_radius(2.5)
    assert pipeline.config.splat_radius == 2.0


def test_render_single_splat():
    pipeline = SplatPipeline(gaussians_from([make_vertex()]))
    rgb, alpha = SplatRasterizer().submit(pipeline.tick(simple_camera()), return_alpha=True)

    assert rgb.shape == (48, 64, 3)
    assert alpha.shape == (48, 64)
    assert alpha[24, 32] == pytest.approx(0.5, abs=0.02)
    assert alpha[0, 0] == 0.0
    np.testing.assert_allclose(rgb[24, 32], 0.25, atol=0.02)


def test_render_back_to_front():
    vertices = [
        make_vertex(0.0, 0.0, -1.0, f_dc=GREEN, opacity=6.0),
        make_vertex(0.0, 0.0, 1.0, f_dc=RED, opacity=6.0),
    ]
    pipeline = SplatPipeline(gaussians_from(vertices))
    rgb = SplatRasterizer().submit(pipeline.tick(simple_camera()))

    red, green, _ = rgb[24, 32]
    assert red > 0.9
    assert green < 0.1


def test_splat_radius_scales_footprint():
    pipeline = SplatPipeline(gaussians_from([make_vertex(log_scale=(-1.0, -1.0, -1.0))]))
    rasterizer = SplatRasterizer()

    pipeline.set_splat_radius(0.5)
    _, small = rasterizer.submit(pipeline.tick(simple_camera()), return_alpha=True)
    pipeline.set_splat_radius(2.0)
    _, large = rasterizer.submit(pipeline.tick(simple_camera()), return_alpha=True)

    assert (large > 0).sum() > (small > 0).sum()


def test_render_behind_camera_is_empty():
    pipeline = SplatPipeline(gaussians_from([make_vertex(0.0, 0.0, 10.0)]))
    rgb, alpha = SplatRasterizer(background=(0.2, 0.2, 0.2)).submit(
        pipeline.tick(simple_camera()), return_alpha=True)

    assert alpha.max() == 0.0
    np.testing.assert_allclose(rgb, 0.2, atol=1e-6)


def test_resolve_device():
    assert resolve_device("cpu") == torch.device("cpu")
    if not torch.cuda.is_available():
        with pytest.raises(DeviceUnavailableError):
            resolve_device("cuda")


def test_basis_to_conics_inverts_covariance():
    basis = torch.tensor([[8.0, 0.0, 0.0, 4.0], [3.0, 4.0, -8.0, 6.0], [0.0, 0.0, 0.0, 0.0]], dtype=torch.float32)
    conics, valid = basis_to_conics(basis)

    assert valid.tolist() == [True, True, False]
    np.testing.assert_allclose(conics[0].numpy(), [16.0 / 64.0, 0.0, 16.0 / 16.0], rtol=1e-6)
    np.testing.assert_array_equal(conics[2].numpy(), 0.0)

    b = basis[1].double()
    b1, b2 = b[:2].unsqueeze(-1), b[2:].unsqueeze(-1)
    cov = (b1 @ b1.T + b2 @ b2.T) / 16.0
    a, off, c = conics[1].double()
    product = torch.tensor([[a, off], [off, c]], dtype=torch.float64) @ cov
    np.testing.assert_allclose(product.numpy(), np.eye(2), atol=1e-5)


def test_order_to_depths_is_rank():
    order = torch.tensor([2, 0, 3, 1])
    depths = order_to_depths(order)

    assert depths.tolist() == [1.0, 3.0, 0.0, 2.0]
    assert depths[order].tolist() == [0.0, 1.0, 2.0, 3.0]


def test_backend_selection():
    assert SplatRasterizer().backend == "torch"
    assert SplatRasterizer(backend="gsplat").backend == "gsplat"
    with pytest.raises(ValueError):
        SplatRasterizer(backend="opengl")


@pytest.mark.skipif(not torch.cuda.is_available(), reason="gsplat needs CUDA")
def test_gsplat_matches_torch_backend():
    vertices = [
        make_vertex(0.0, 0.0, -1.0, f_dc=GREEN, opacity=6.0),
        make_vertex(0.0, 0.0, 1.0, f_dc=RED, opacity=6.0),
        make_vertex(0.6, 0.3, 0.0, log_scale=(-1.5, -1.0, -1.2)),
    ]
    pipeline = SplatPipeline(gaussians_from(vertices))
    buffers = pipeline.tick(simple_camera())

    device = torch.device("cuda")
    assert SplatRasterizer(device).backend == "gsplat"
    rgb, alpha = SplatRasterizer(device).submit(buffers, return_alpha=True)
    ref_rgb, ref_alpha = SplatRasterizer(backend="torch").submit(buffers, return_alpha=True)

    assert rgb.shape == ref_rgb.shape and alpha.shape == ref_alpha.shape
    np.testing.assert_allclose(rgb[24, 32], ref_rgb[24, 32], atol=0.02)
    np.testing.assert_allclose(alpha, ref_alpha, atol=0.05)
