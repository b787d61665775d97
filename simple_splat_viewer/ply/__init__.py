"""
PLY point-cloud format support.

This module decodes the PLY files produced by 3D Gaussian Splatting training
into raw per-vertex attribute columns.
"""

from simple_splat_viewer.ply.decoder import (
    REQUIRED_PROPERTIES,
    PlyData,
    PlyHeader,
    PropertyDecl,
    decode_ply,
    read_ply,
)

__all__ = [
    "REQUIRED_PROPERTIES",
    "PlyData",
    "PlyHeader",
    "PropertyDecl",
    "decode_ply",
    "read_ply",
]
