"""
Simple Splat Viewer - A 3D Gaussian Splatting viewer for PLY files.

This package provides tools for decoding Gaussian-splat PLY files, projecting
splats to screen space, ordering them for blending and visualizing them with
an interactive web-based viewer.
"""

__version__ = "0.1.0"

from simple_splat_viewer.config import RenderConfig
from simple_splat_viewer.core import (
    Camera,
    SplatPipeline,
    VisibilityOrderer,
    load_splat_scene,
    project,
    project_set,
)
from simple_splat_viewer.errors import FormatError, SplatViewerError, UnsupportedTypeError
from simple_splat_viewer.gaussians import Gaussian, GaussianSet, splatify, splatify_columns
from simple_splat_viewer.ply import decode_ply

__all__ = [
    "Camera",
    "FormatError",
    "Gaussian",
    "GaussianSet",
    "RenderConfig",
    "SplatPipeline",
    "SplatViewerError",
    "UnsupportedTypeError",
    "VisibilityOrderer",
    "decode_ply",
    "load_splat_scene",
    "project",
    "project_set",
    "splatify",
    "splatify_columns",
]
