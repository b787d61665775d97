"""
Visibility ordering of Gaussian splats.

Splats are sorted by clip-space depth (z / w after the full view-projection
transform). With the [0, 1] depth range of the projection in ``camera.py``
the ascending order runs near to far; the rasterizer walks it in reverse so
that splats are composited back to front.

Sorting every frame is the expensive part of the pipeline, so the
VisibilityOrderer only re-sorts once the camera has moved further than a
threshold since the last sort. Between re-sorts the previous order is
reused, trading exact per-frame ordering for frame time.
"""

from typing import Optional, Tuple

import torch

from ..utils.transforms import transform_points
from .camera import Camera

SORT_THRESHOLD = 0.5


@torch.no_grad()
def depth_keys(positions: torch.Tensor, view: torch.Tensor, projection: torch.Tensor) -> torch.Tensor:
    """Clip-space depth of every splat center.

    Args:
        positions: Splat centers [N, 3]
        view: View matrix [4, 4]
        projection: Projection matrix [4, 4]

    Returns:
        Depth keys z / w [N], float64; centers with w == 0 get +inf
    """
    dtype = torch.float64
    device = positions.device
    view_projection = projection.to(device=device, dtype=dtype) @ view.to(device=device, dtype=dtype)
    clip = transform_points(view_projection, positions.to(dtype))
    z, w = clip[:, 2], clip[:, 3]
    safe_w = torch.where(w == 0, torch.ones_like(w), w)
    return torch.where(w == 0, torch.full_like(z, float("inf")), z / safe_w)


def sort_by_depth(keys: torch.Tensor) -> torch.Tensor:
    """Indices sorting ``keys`` ascending. Ties may come out in any order."""
    return torch.argsort(keys)


def draw_sequence(order: torch.Tensor) -> torch.Tensor:
    """Far-to-near sequence in which splats are composited."""
    return torch.flip(order, dims=(0,))


class VisibilityOrderer:
    """
    Keeps the draw order of a splat set up to date as the camera moves.

    Attributes:
        threshold: Camera displacement (world units) that triggers a re-sort
        order: Current draw order [N], or None before the first update
    """

    def __init__(self, threshold: float = SORT_THRESHOLD):
        self.threshold = threshold
        self.order: Optional[torch.Tensor] = None
        self._last_eye: Optional[torch.Tensor] = None

    def needs_update(self, eye: torch.Tensor) -> bool:
        if self.order is None or self._last_eye is None:
            return True
        distance = torch.linalg.vector_norm(eye.to(self._last_eye) - self._last_eye).item()
        return distance > self.threshold

    def update(self, positions: torch.Tensor, camera: Camera, force: bool = False) -> Tuple[torch.Tensor, bool]:
        """
        Re-sort the splats if the camera moved far enough.

        Args:
            positions: Splat centers [N, 3]
            camera: Current camera
            force: Re-sort regardless of camera displacement

        Returns:
            Tuple of (order, recomputed) where order is a permutation of
            [0, N) and recomputed tells whether it changed this call
        """
        eye = camera.eye.to(torch.float64)
        if not force and not self.needs_update(eye):
            return self.order, False

        keys = depth_keys(positions, camera.view, camera.projection)
        self.order = sort_by_depth(keys)
        self._last_eye = eye
        return self.order, True

    def reset(self):
        """Forget the current order; the next update always re-sorts."""
        self.order = None
        self._last_eye = None


__all__ = [
    "SORT_THRESHOLD",
    "depth_keys",
    "sort_by_depth",
    "draw_sequence",
    "VisibilityOrderer",
]
