"""
Core projection, ordering and rendering components.

This module contains the per-frame splat pipeline (screen-space projection
and visibility ordering), the camera math it consumes, the scene loader and
the reference render backend.
"""

from simple_splat_viewer.core.camera import Camera, look_at, orbit_cameras, perspective
from simple_splat_viewer.core.frame import FrameBuffers, FrameUniforms, SplatPipeline
from simple_splat_viewer.core.loader import SplatScene, load_splat_scene
from simple_splat_viewer.core.ordering import VisibilityOrderer, depth_keys, draw_sequence, sort_by_depth
from simple_splat_viewer.core.projection import project, project_basis, project_set
from simple_splat_viewer.core.rendering import RenderContext, SplatRasterizer, render_frame, resolve_device

__all__ = [
    # Data structures
    "SplatScene",
    "RenderContext",
    "FrameBuffers",
    "FrameUniforms",
    # Camera
    "Camera",
    "look_at",
    "perspective",
    "orbit_cameras",
    # Data loading
    "load_splat_scene",
    # Projection and ordering
    "project",
    "project_basis",
    "project_set",
    "depth_keys",
    "sort_by_depth",
    "draw_sequence",
    "VisibilityOrderer",
    "SplatPipeline",
    # Rendering
    "SplatRasterizer",
    "render_frame",
    "resolve_device",
]
