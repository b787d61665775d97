"""
Per-frame splat pipeline.

A SplatPipeline owns a loaded GaussianSet and produces, once per frame tick,
everything a render backend needs to draw it: the screen-space basis of every
splat (recomputed every tick), the static position and color buffers, the
draw order (recomputed only when the camera moved far enough) and the frame
uniforms.
"""

from dataclasses import dataclass, replace
from typing import Optional

import numpy as np
import torch

from ..config import RenderConfig
from ..gaussians.base import GaussianSet
from .camera import Camera
from .ordering import VisibilityOrderer
from .projection import project_set


def _column_major(matrix: torch.Tensor) -> np.ndarray:
    return np.ascontiguousarray(matrix.detach().cpu().numpy().T.reshape(-1), dtype=np.float32)


@dataclass
class FrameUniforms:
    """Scalar uniforms for one frame.

    Matrices are flattened column-major, as GPU uniform buffers expect.
    """

    projection: np.ndarray
    """Projection matrix, 16 floats"""

    view: np.ndarray
    """View matrix, 16 floats"""

    viewport: np.ndarray
    """Viewport (width, height), 2 floats"""

    splat_radius: float
    """Splat radius scale factor"""

    @classmethod
    def from_camera(cls, camera: Camera, splat_radius: float) -> "FrameUniforms":
        return cls(
            projection=_column_major(camera.projection),
            view=_column_major(camera.view),
            viewport=np.asarray(camera.viewport, dtype=np.float32),
            splat_radius=float(splat_radius),
        )


@dataclass
class FrameBuffers:
    """Render-ready buffers for one frame.

    Attributes:
        basis: Screen-space basis (bx1, by1, bx2, by2) per splat [N, 4], float32
        positions: Splat centers [N, 3], float32
        colors: RGB and opacity per splat [N, 4], float32
        order: Draw order, ascending depth [N], uint32
        uniforms: Frame uniforms
        order_updated: Whether ``order`` was recomputed this frame
        frame_index: Number of ticks before this one
    """
    basis: np.ndarray
    positions: np.ndarray
    colors: np.ndarray
    order: np.ndarray
    uniforms: FrameUniforms
    order_updated: bool
    frame_index: int

    def __len__(self) -> int:
        return self.positions.shape[0]


class SplatPipeline:
    """
    Frame-synchronous projection and ordering of a splat set.

    Attributes:
        gaussians: The splat set being rendered
        config: Current render configuration
        orderer: Visibility orderer holding the current draw order
        frame_index: Number of completed ticks
    """

    def __init__(self, gaussians: GaussianSet, config: Optional[RenderConfig] = None):
        """
        Initialize a SplatPipeline.

        Args:
            gaussians: Splat set to render
            config: Render configuration (default: RenderConfig())
        """
        self.gaussians = gaussians
        self.config = config if config is not None else RenderConfig()
        self.orderer = VisibilityOrderer(self.config.sort_threshold)
        self.frame_index = 0

        self.positions = np.ascontiguousarray(gaussians.positions.detach().cpu().numpy(), dtype=np.float32)
        self.colors = np.ascontiguousarray(gaussians.colors_with_opacity().detach().cpu().numpy(), dtype=np.float32)
        self._order = np.arange(len(gaussians), dtype=np.uint32)

    def __len__(self) -> int:
        return len(self.gaussians)

    def set_splat_radius(self, splat_radius: float):
        """Change the splat radius scale factor (validated against its range)."""
        self.config = replace(self.config, splat_radius=splat_radius)

    def tick(self, camera: Camera, force_sort: bool = False) -> FrameBuffers:
        """
        Run one frame: project every splat and re-sort if needed.

        Args:
            camera: Camera for this frame
            force_sort: Re-sort regardless of camera displacement

        Returns:
            FrameBuffers for the render backend
        """
        basis = project_set(
            self.gaussians,
            camera,
            max_radius=self.config.max_splat_radius,
            min_view_depth=self.config.min_view_depth,
        )

        self.orderer.threshold = self.config.sort_threshold
        order, recomputed = self.orderer.update(self.gaussians.positions, camera, force=force_sort)
        if recomputed:
            self._order = order.detach().cpu().numpy().astype(np.uint32)

        buffers = FrameBuffers(
            basis=np.ascontiguousarray(basis.cpu().numpy(), dtype=np.float32),
            positions=self.positions,
            colors=self.colors,
            order=self._order,
            uniforms=FrameUniforms.from_camera(camera, self.config.splat_radius),
            order_updated=recomputed,
            frame_index=self.frame_index,
        )
        self.frame_index += 1
        return buffers


__all__ = ["FrameUniforms", "FrameBuffers", "SplatPipeline"]
