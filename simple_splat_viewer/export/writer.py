"""
Output utilities for saving rendered frames.

This module provides functions for saving rendered images and managing
the output directory.
"""

from pathlib import Path

import numpy as np
from PIL import Image


def save_rendered_frame(
    image: np.ndarray,
    output_path: Path,
    quality: int = 95,
) -> None:
    """Save rendered frame to disk as JPEG.

    Args:
        image: Rendered RGB image [H, W, 3] in range [0, 1]
        output_path: Output file path
        quality: JPEG quality (1-100)
    """
    image_uint8 = (np.clip(image, 0.0, 1.0) * 255).astype(np.uint8)

    img = Image.fromarray(image_uint8)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    img.save(output_path, quality=quality, format="JPEG")


def frame_path(output_dir: Path, frame_index: int) -> Path:
    """Output path of an orbit frame."""
    return output_dir / f"frame_{frame_index:04d}.jpg"
