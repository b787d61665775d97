"""
Export subcommand for Simple Splat Viewer.

This module provides the export subcommand for rendering an orbit of
frames from a Gaussian-splat PLY file.
"""

from pathlib import Path

import torch

from ..config import SPLAT_RADIUS_RANGE
from ..errors import SplatViewerError


def export(
    ply_path: Path,
    output_dir: Path = Path("outputs/"),
    device: str = "cuda" if torch.cuda.is_available() else "cpu",
    width: int = 800,
    height: int = 600,
    num_frames: int = 36,
    distance: float = 3.0,
    fov: float = 1.4,
    splat_radius: float = 1.0,
    overwrite: bool = True,
) -> None:
    """Render an orbit of frames around a Gaussian-splat PLY scene.

    Args:
        ply_path: Path to the PLY file
        output_dir: Output directory for exported frames (default: outputs/)
        device: Device to use for rendering (default: cuda if available, else cpu)
        width: Frame width in pixels (default: 800)
        height: Frame height in pixels (default: 600)
        num_frames: Number of frames on the orbit (default: 36)
        distance: Orbit radius as a multiple of the scene radius (default: 3.0)
        fov: Vertical field of view in radians (default: 1.4)
        splat_radius: Splat radius scale factor, in [0.1, 2.0] (default: 1.0)
        overwrite: Overwrite existing files (default: True)
    """
    if width <= 0 or height <= 0:
        print(f"Error: Frame size must be positive, got {width}x{height}")
        return

    if num_frames <= 0:
        print(f"Error: Number of frames must be positive, got {num_frames}")
        return

    low, high = SPLAT_RADIUS_RANGE
    if not low <= splat_radius <= high:
        print(f"Error: Splat radius must be in [{low}, {high}], got {splat_radius}")
        return

    if not ply_path.exists():
        print(f"Error: PLY file not found: {ply_path}")
        return

    # Import here to avoid slow imports if --help is used
    from ..export import ExportTask, export_frames

    task = ExportTask(
        ply_path=ply_path,
        output_dir=output_dir,
        width=width,
        height=height,
        num_frames=num_frames,
        distance=distance,
        fov=fov,
        splat_radius=splat_radius,
        device=device,
        overwrite=overwrite,
    )

    try:
        export_frames(task)
    except FileNotFoundError as e:
        print(f"Error: {e}")
    except SplatViewerError as e:
        print(f"Error: {e}")


__all__ = ["export"]
