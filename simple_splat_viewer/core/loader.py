"""
Shared data loading module for Gaussian-splat PLY files.

This module provides the single source of truth for loading PLY scenes,
used by the viewer, export and info commands.
"""

import math
from dataclasses import dataclass
from pathlib import Path
from typing import List

import torch

from ..gaussians.base import GaussianSet
from ..gaussians.factory import splatify_columns
from ..ply.decoder import PlyHeader, read_ply


@dataclass
class SplatScene:
    """
    Container for a loaded splat scene.

    This dataclass encapsulates all data loaded from a PLY file, providing a
    clean interface for the rest of the codebase.
    """

    header: PlyHeader
    """Parsed PLY header"""

    gaussian_set: GaussianSet
    """The Gaussian set containing all splats"""

    center: List[float]
    """Center of the splat centers' bounding box"""

    radius: float
    """Half the diagonal of the splat centers' bounding box"""


def load_splat_scene(
    ply_path: str | Path,
    device: torch.device = torch.device("cpu"),
) -> SplatScene:
    """
    Load a Gaussian-splat scene from a PLY file.

    Args:
        ply_path: Path to the PLY file
        device: Torch device to load tensors to

    Returns:
        SplatScene container with all loaded data

    Raises:
        FileNotFoundError: If the PLY file doesn't exist
        FormatError: If the header or payload is malformed
        UnsupportedTypeError: If a property has an unsupported scalar type
    """
    ply_path = Path(ply_path)
    if not ply_path.exists():
        raise FileNotFoundError(f"PLY file not found: {ply_path}")

    print(f"Reading {ply_path}...")
    data = read_ply(ply_path)

    header = data.header
    print(f"Format: {header.format}, {header.vertex_count:,} vertices, "
          f"{len(header.properties)} properties")
    for comment in header.comments:
        print(f"  comment: {comment}")

    gaussian_set = splatify_columns(data.columns, device=device)
    gaussian_set.print_summary()

    lower, upper = gaussian_set.bounds()
    center = [(lo + hi) * 0.5 for lo, hi in zip(lower, upper)]
    radius = 0.5 * math.dist(lower, upper)

    return SplatScene(
        header=header,
        gaussian_set=gaussian_set,
        center=center,
        radius=radius,
    )


__all__ = [
    "SplatScene",
    "load_splat_scene",
]
