"""
Shared rendering module for Gaussian splatting.

This module provides the render backend that consumes the per-frame buffers
of a SplatPipeline, used by both viewer (real-time) and export (batch)
modules. The rasterizer draws each splat as a screen-aligned quad spanned by
its two basis vectors, with a Gaussian falloff inside the quad, and
composites the quads back to front with source-over blending. CUDA devices
hand the same quads to gsplat as conics, sorted by their rank in the order.
"""

import math
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np
import torch

from ..config import RenderConfig
from ..errors import DeviceUnavailableError
from .camera import Camera
from .frame import FrameBuffers, SplatPipeline
from .loader import SplatScene
from .ordering import draw_sequence

# The basis spans 4 standard deviations, so exp(-0.5 * (4 r)^2) = exp(-8 r^2)
FALLOFF = 8.0
MIN_ALPHA = 1.0 / 255.0


def resolve_device(device: str) -> torch.device:
    """Resolve a device name, failing if CUDA is requested but unavailable.

    Raises:
        DeviceUnavailableError: If a CUDA device is requested without CUDA support
    """
    if device.startswith("cuda") and not torch.cuda.is_available():
        raise DeviceUnavailableError("CUDA requested but not available. Use --device cpu or install CUDA.")
    return torch.device(device)


def basis_to_conics(basis: torch.Tensor) -> Tuple[torch.Tensor, torch.Tensor]:
    """
    Convert pixel-space basis vectors to inverse 2D covariances.

    The basis spans 4 standard deviations along each axis, so the covariance
    is (b1 b1^T + b2 b2^T) / 16.

    Args:
        basis: Basis vectors [N, 4] as (b1x, b1y, b2x, b2y)

    Returns:
        Tuple of (conics [N, 3] as (a, b, c) of the inverse covariance, valid mask [N])
    """
    b = basis.to(torch.float64)
    xx = (b[:, 0] * b[:, 0] + b[:, 2] * b[:, 2]) / 16.0
    xy = (b[:, 0] * b[:, 1] + b[:, 2] * b[:, 3]) / 16.0
    yy = (b[:, 1] * b[:, 1] + b[:, 3] * b[:, 3]) / 16.0
    det = xx * yy - xy * xy
    valid = torch.isfinite(det) & (det > 1e-12)
    safe_det = torch.where(valid, det, torch.ones_like(det))
    conics = torch.stack([yy / safe_det, -xy / safe_det, xx / safe_det], dim=-1)
    conics = torch.where(valid.unsqueeze(-1), conics, torch.zeros_like(conics))
    return conics.to(basis.dtype), valid


def order_to_depths(order: torch.Tensor) -> torch.Tensor:
    """Rank of each splat in the near-to-far order, usable as a sort depth."""
    depths = torch.empty(order.shape[0], dtype=torch.float32, device=order.device)
    depths[order] = torch.arange(order.shape[0], dtype=torch.float32, device=order.device)
    return depths


class SplatRasterizer:
    """
    Render backend for FrameBuffers.

    On CUDA devices the quads are rasterized by gsplat's tile rasterizer; the
    torch backend composites them one by one and serves as the CPU reference.

    Attributes:
        device: Torch device used for compositing
        background: Background RGB color [3]
        backend: "gsplat", "torch", or "auto" (gsplat on CUDA, torch otherwise)
    """

    def __init__(
        self,
        device: torch.device = torch.device("cpu"),
        background: Sequence[float] = (0.0, 0.0, 0.0),
        backend: str = "auto",
        tile_size: int = 16,
    ):
        if backend not in ("auto", "torch", "gsplat"):
            raise ValueError(f"Unknown render backend: {backend}")
        self.device = torch.device(device)
        self.background = torch.tensor(background, dtype=torch.float32, device=self.device)
        if backend == "auto":
            backend = "gsplat" if self.device.type == "cuda" else "torch"
        self.backend = backend
        self.tile_size = tile_size

    @torch.no_grad()
    def submit(self, buffers: FrameBuffers, return_alpha: bool = False) -> np.ndarray | Tuple[np.ndarray, np.ndarray]:
        """
        Draw one frame.

        Args:
            buffers: Frame buffers produced by SplatPipeline.tick()
            return_alpha: If True, also return the accumulated alpha

        Returns:
            Rendered image [H, W, 3] in [0, 1], or tuple of (rgb [H, W, 3], alpha [H, W])
        """
        width, height = (int(v) for v in buffers.uniforms.viewport)

        if len(buffers) == 0:
            rgb = self.background.view(1, 1, 3).expand(height, width, 3)
            alpha = torch.zeros((height, width), dtype=torch.float32, device=self.device)
        else:
            splats = self._screen_splats(buffers, width, height)
            if self.backend == "gsplat":
                rgb, alpha = self._draw_gsplat(buffers, splats, width, height)
            else:
                rgb, alpha = self._draw_torch(buffers, splats, width, height)

        rgb = rgb.clamp(0, 1).cpu().numpy()
        if return_alpha:
            return rgb, alpha.cpu().numpy()
        return rgb

    def _screen_splats(self, buffers: FrameBuffers, width: int, height: int) -> dict:
        """Pixel-space centers, basis and bounding boxes of the splats in front of the camera."""
        uniforms = buffers.uniforms
        device = self.device

        projection = torch.from_numpy(uniforms.projection.reshape(4, 4).T.copy()).to(device)
        view = torch.from_numpy(uniforms.view.reshape(4, 4).T.copy()).to(device)
        positions = torch.from_numpy(buffers.positions).to(device)
        clip = torch.cat([positions, torch.ones_like(positions[:, :1])], dim=-1) @ (projection @ view).T

        w = clip[:, 3]
        visible = w > 0
        safe_w = torch.where(visible, w, torch.ones_like(w))
        centers = torch.stack(
            [
                (clip[:, 0] / safe_w * 0.5 + 0.5) * width,
                (0.5 - clip[:, 1] / safe_w * 0.5) * height,
            ],
            dim=-1,
        )

        # Pixel space has y pointing down, the basis has y pointing up
        basis = torch.from_numpy(buffers.basis).to(device) * uniforms.splat_radius
        basis = basis * torch.tensor([1.0, -1.0, 1.0, -1.0], device=device)

        half_extent = torch.stack(
            [basis[:, 0].abs() + basis[:, 2].abs(), basis[:, 1].abs() + basis[:, 3].abs()], dim=-1
        )
        visible &= torch.isfinite(centers).all(dim=-1) & torch.isfinite(half_extent).all(dim=-1)
        centers = torch.where(visible.unsqueeze(-1), centers, torch.zeros_like(centers))
        half_extent = torch.where(visible.unsqueeze(-1), half_extent, torch.zeros_like(half_extent))

        lower = torch.floor(centers - half_extent).clamp(min=0)
        upper = torch.ceil(centers + half_extent)
        upper = torch.minimum(upper, torch.tensor([width, height], dtype=upper.dtype, device=device))
        on_screen = visible & (upper[:, 0] > lower[:, 0]) & (upper[:, 1] > lower[:, 1])

        return {
            "centers": centers,
            "basis": basis,
            "half_extent": half_extent,
            "lower": lower,
            "upper": upper,
            "on_screen": on_screen,
            "colors": torch.from_numpy(buffers.colors).to(device),
        }

    def _draw_torch(self, buffers: FrameBuffers, splats: dict, width: int, height: int):
        device = self.device
        centers, basis, colors = splats["centers"], splats["basis"], splats["colors"]

        rgb = self.background.view(1, 1, 3).expand(height, width, 3).clone()
        alpha = torch.zeros((height, width), dtype=torch.float32, device=device)

        sequence = draw_sequence(torch.from_numpy(buffers.order.astype(np.int64)))
        sequence = sequence[splats["on_screen"].cpu()[sequence]]

        lower = splats["lower"].long().cpu()
        upper = splats["upper"].long().cpu()
        for i in sequence.tolist():
            x0, y0 = lower[i].tolist()
            x1, y1 = upper[i].tolist()
            bx1, by1, bx2, by2 = basis[i]
            det = bx1 * by2 - bx2 * by1
            if det.abs() < 1e-12:
                continue

            ys = torch.arange(y0, y1, device=device, dtype=torch.float32) + 0.5 - centers[i, 1]
            xs = torch.arange(x0, x1, device=device, dtype=torch.float32) + 0.5 - centers[i, 0]
            dy, dx = torch.meshgrid(ys, xs, indexing="ij")

            u = (by2 * dx - bx2 * dy) / det
            v = (bx1 * dy - by1 * dx) / det
            inside = (u.abs() <= 1.0) & (v.abs() <= 1.0)

            a = colors[i, 3] * torch.exp(-FALLOFF * (u * u + v * v))
            a = torch.where(inside & (a >= MIN_ALPHA), a, torch.zeros_like(a)).unsqueeze(-1)

            patch = rgb[y0:y1, x0:x1]
            rgb[y0:y1, x0:x1] = colors[i, :3] * a + patch * (1.0 - a)
            alpha[y0:y1, x0:x1] = a[..., 0] + alpha[y0:y1, x0:x1] * (1.0 - a[..., 0])

        return rgb, alpha

    def _draw_gsplat(self, buffers: FrameBuffers, splats: dict, width: int, height: int):
        from gsplat.cuda._wrapper import isect_offset_encode, isect_tiles, rasterize_to_pixels

        device = self.device
        conics, valid = basis_to_conics(splats["basis"])
        keep = splats["on_screen"] & valid

        radii = torch.ceil(splats["half_extent"]).to(torch.int32)
        radii = torch.where(keep.unsqueeze(-1), radii, torch.zeros_like(radii))
        order = torch.from_numpy(buffers.order.astype(np.int64)).to(device)
        depths = order_to_depths(order)

        means2d = splats["centers"].float()[None]
        tile_width = math.ceil(width / self.tile_size)
        tile_height = math.ceil(height / self.tile_size)
        _, isect_ids, flatten_ids = isect_tiles(
            means2d,
            radii[None],
            depths[None],
            self.tile_size,
            tile_width,
            tile_height,
            sort=True,
        )
        isect_offsets = isect_offset_encode(isect_ids, 1, tile_width, tile_height)

        colors = splats["colors"]
        rgb, alpha = rasterize_to_pixels(
            means2d,
            conics.float()[None],
            colors[None, :, :3].contiguous(),
            colors[None, :, 3].contiguous(),
            width,
            height,
            self.tile_size,
            isect_offsets,
            flatten_ids,
            backgrounds=self.background[None],
        )
        return rgb[0], alpha[0, ..., 0]


@dataclass
class RenderContext:
    """
    Context for rendering frames.

    This dataclass bundles the splat pipeline with the backend that draws its
    buffers, providing a clean interface for both viewer and export modules.
    """

    pipeline: SplatPipeline
    """Per-frame projection and ordering of the loaded splats"""

    rasterizer: SplatRasterizer
    """Render backend"""

    @classmethod
    def from_scene(cls, scene: SplatScene, device: torch.device, config: Optional[RenderConfig] = None) -> "RenderContext":
        """Create RenderContext from a loaded SplatScene."""
        return cls(
            pipeline=SplatPipeline(scene.gaussian_set.to(device), config),
            rasterizer=SplatRasterizer(device),
        )


def render_frame(ctx: RenderContext, camera: Camera) -> np.ndarray:
    """
    Render a single frame from the given camera.

    Args:
        ctx: RenderContext containing pipeline and rasterizer
        camera: Camera for this frame

    Returns:
        Rendered RGB image as numpy array [H, W, 3]
    """
    buffers = ctx.pipeline.tick(camera)
    return ctx.rasterizer.submit(buffers)


__all__ = [
    "RenderContext",
    "SplatRasterizer",
    "basis_to_conics",
    "order_to_depths",
    "render_frame",
    "resolve_device",
]
