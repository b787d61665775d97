"""
Camera matrices and poses.

This module builds the view and projection matrices consumed by the splat
pipeline. Conventions follow WebGPU: the camera looks down -z in view space
(right handed, y up) and the projection maps view depth to [0, 1] clip depth,
with 0 on the near plane. All matrices act on column vectors.
"""

import math
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np
import torch

# OpenCV camera (x right, y down, z forward) -> OpenGL camera (x right, y up, z backward)
CV_TO_GL = np.diag([1.0, -1.0, -1.0, 1.0])


def perspective(fovy: float, aspect: float, near: float, far: float, dtype: torch.dtype = torch.float64) -> torch.Tensor:
    """Build a perspective projection matrix.

    Args:
        fovy: Vertical field of view in radians
        aspect: Viewport width / height
        near: Near plane distance (> 0)
        far: Far plane distance (> near)
        dtype: Tensor dtype

    Returns:
        Projection matrix [4, 4]
    """
    if near <= 0 or far <= near:
        raise ValueError(f"Expected 0 < near < far, got near={near}, far={far}")
    f = math.tan(math.pi * 0.5 - 0.5 * fovy)
    range_inv = 1.0 / (near - far)
    return torch.tensor(
        [
            [f / aspect, 0.0, 0.0, 0.0],
            [0.0, f, 0.0, 0.0],
            [0.0, 0.0, far * range_inv, far * near * range_inv],
            [0.0, 0.0, -1.0, 0.0],
        ],
        dtype=dtype,
    )


def look_at(eye: Sequence[float], target: Sequence[float], up: Sequence[float] = (0.0, 1.0, 0.0),
            dtype: torch.dtype = torch.float64) -> torch.Tensor:
    """Build a view matrix for a camera at ``eye`` looking at ``target``.

    Returns:
        View (world to camera) matrix [4, 4]
    """
    eye = torch.as_tensor(eye, dtype=dtype)
    target = torch.as_tensor(target, dtype=dtype)
    up = torch.as_tensor(up, dtype=dtype)

    z_axis = eye - target
    z_axis = z_axis / torch.linalg.vector_norm(z_axis)
    x_axis = torch.linalg.cross(up, z_axis)
    x_axis = x_axis / torch.linalg.vector_norm(x_axis)
    y_axis = torch.linalg.cross(z_axis, x_axis)

    view = torch.eye(4, dtype=dtype)
    view[0, :3] = x_axis
    view[1, :3] = y_axis
    view[2, :3] = z_axis
    view[:3, 3] = -view[:3, :3] @ eye
    return view


@dataclass
class Camera:
    """Camera state for one frame.

    Attributes:
        view: World to view matrix [4, 4]
        projection: View to clip matrix [4, 4]
        viewport: Viewport size in pixels as (width, height)
    """
    view: torch.Tensor
    projection: torch.Tensor
    viewport: Tuple[int, int]

    @property
    def eye(self) -> torch.Tensor:
        """Camera position in world space [3]."""
        return torch.linalg.inv(self.view)[:3, 3]

    @property
    def aspect(self) -> float:
        width, height = self.viewport
        return width / height

    @classmethod
    def from_look_at(
        cls,
        eye: Sequence[float],
        target: Sequence[float],
        viewport: Tuple[int, int],
        fovy: float = 1.4,
        near: float = 0.001,
        far: float = 5000.0,
        up: Sequence[float] = (0.0, 1.0, 0.0),
    ) -> "Camera":
        width, height = viewport
        return cls(
            view=look_at(eye, target, up),
            projection=perspective(fovy, width / height, near, far),
            viewport=(int(width), int(height)),
        )

    @classmethod
    def from_c2w(
        cls,
        c2w: np.ndarray,
        fovy: float,
        viewport: Tuple[int, int],
        near: float = 0.001,
        far: float = 5000.0,
    ) -> "Camera":
        """Build a camera from an OpenCV-convention camera-to-world pose.

        Args:
            c2w: Camera to world transform [4, 4] (or [3, 4]), OpenCV axes
            fovy: Vertical field of view in radians
            viewport: (width, height) in pixels
            near: Near plane distance
            far: Far plane distance
        """
        pose = np.eye(4)
        pose[: c2w.shape[0], :4] = c2w
        view = np.linalg.inv(pose @ CV_TO_GL)
        width, height = viewport
        return cls(
            view=torch.from_numpy(view).to(torch.float64),
            projection=perspective(fovy, width / height, near, far),
            viewport=(int(width), int(height)),
        )


def orbit_eye(
    center: Sequence[float],
    radius: float,
    azimuth: float = 0.0,
    elevation: float = 0.3,
) -> Tuple[float, float, float]:
    """Point at ``radius`` from ``center``, at the given azimuth and elevation (radians, y up)."""
    cx, cy, cz = (float(c) for c in center)
    return (
        cx + radius * math.cos(elevation) * math.sin(azimuth),
        cy + radius * math.sin(elevation),
        cz - radius * math.cos(elevation) * math.cos(azimuth),
    )


def orbit_cameras(
    center: Sequence[float],
    radius: float,
    num_frames: int,
    viewport: Tuple[int, int],
    fovy: float = 1.4,
    elevation: float = 0.3,
    near: float = 0.001,
    far: float = 5000.0,
) -> List[Camera]:
    """Place ``num_frames`` cameras on a circle around ``center``, all looking at it.

    Args:
        center: Orbit center in world space
        radius: Distance from the center
        num_frames: Number of cameras
        viewport: (width, height) in pixels
        fovy: Vertical field of view in radians
        elevation: Angle above the horizontal plane, in radians
        near: Near plane distance
        far: Far plane distance

    Returns:
        List of cameras in orbit order
    """
    target = tuple(float(c) for c in center)
    cameras = []
    for i in range(num_frames):
        eye = orbit_eye(target, radius, 2.0 * math.pi * i / num_frames, elevation)
        cameras.append(Camera.from_look_at(eye, target, viewport, fovy=fovy, near=near, far=far))
    return cameras


__all__ = [
    "Camera",
    "perspective",
    "look_at",
    "orbit_eye",
    "orbit_cameras",
]
