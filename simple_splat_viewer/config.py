"""
Configuration dataclasses for rendering, viewing and exporting.
"""

from dataclasses import dataclass
from pathlib import Path

import torch

SPLAT_RADIUS_RANGE = (0.1, 2.0)


@dataclass(frozen=True)
class RenderConfig:
    """Per-frame rendering parameters."""

    splat_radius: float = 1.0
    """User-adjustable scale factor applied to every splat's basis, in [0.1, 2.0]."""

    max_splat_radius: float = 1024.0
    """Hard clamp on a splat's projected extent, in pixels."""

    sort_threshold: float = 0.5
    """Camera displacement (world units) that triggers a new visibility sort."""

    min_view_depth: float = 1e-3
    """Smallest |z| used when projecting; closer splats are size-clamped."""

    def __post_init__(self):
        low, high = SPLAT_RADIUS_RANGE
        if not low <= self.splat_radius <= high:
            raise ValueError(f"splat_radius must be in [{low}, {high}], got {self.splat_radius}")
        if self.max_splat_radius <= 0:
            raise ValueError(f"max_splat_radius must be positive, got {self.max_splat_radius}")
        if self.sort_threshold < 0:
            raise ValueError(f"sort_threshold must be non-negative, got {self.sort_threshold}")
        if self.min_view_depth <= 0:
            raise ValueError(f"min_view_depth must be positive, got {self.min_view_depth}")


@dataclass
class ViewerConfig:
    """Configuration for the interactive viewer."""

    ply_path: Path
    """Path to the PLY file to load."""

    port: int = 8080
    """Port for the viewer server."""

    device: str = "cuda" if torch.cuda.is_available() else "cpu"
    """Device to use for rendering ('cuda' or 'cpu')."""

    splat_radius: float = 1.0
    """Initial splat radius scale factor."""

    near: float = 0.001
    """Near clipping plane."""

    far: float = 5000.0
    """Far clipping plane."""

    distance: float = 3.0
    """Initial camera distance from the scene center, in scene radii."""

    verbose: bool = False
    """Whether to log timing information for each rendered frame."""


@dataclass
class ExportTask:
    """Configuration for an orbit export.

    Attributes:
        ply_path: Input PLY file path
        output_dir: Output directory path
        width: Output image width in pixels
        height: Output image height in pixels
        num_frames: Number of frames on the orbit
        distance: Orbit radius as a multiple of the scene radius
        fov: Vertical field of view in radians
        elevation: Orbit elevation above the scene center, in radians
        splat_radius: Splat radius scale factor
        device: Rendering device
        overwrite: Whether to overwrite existing files
    """
    ply_path: Path
    output_dir: Path
    width: int = 800
    height: int = 600
    num_frames: int = 36
    distance: float = 3.0
    fov: float = 1.4
    elevation: float = 0.3
    splat_radius: float = 1.0
    device: str = "cpu"
    overwrite: bool = True


__all__ = ["SPLAT_RADIUS_RANGE", "RenderConfig", "ViewerConfig", "ExportTask"]
