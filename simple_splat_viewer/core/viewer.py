"""
Splat Viewer Core Module

This module connects the splat pipeline to the interactive viewer: it turns
nerfview camera states into pipeline cameras and wires the GUI controls to
the render configuration.
"""

import time
from typing import Callable, Optional

import nerfview
import numpy as np
import torch
import viser
from rich.console import Console

from ..config import SPLAT_RADIUS_RANGE
from .camera import Camera, orbit_eye
from .loader import SplatScene
from .rendering import RenderContext


@torch.no_grad()
def render_fn(
    camera_state: nerfview.CameraState,
    render_tab_state: nerfview.RenderTabState,
    ctx: RenderContext,
    near: float = 0.001,
    far: float = 5000.0,
    console: Optional[Console] = None,
) -> np.ndarray:
    """
    Render function for nerfview.

    Args:
        camera_state: Current camera state from nerfview
        render_tab_state: Render tab state from nerfview
        ctx: RenderContext with the splat pipeline and rasterizer
        near: Near clipping plane
        far: Far clipping plane
        console: If given, log timing information for the frame

    Returns:
        Rendered RGB image as numpy array [H, W, 3]
    """
    start_time = time.perf_counter()

    width = render_tab_state.viewer_width
    height = render_tab_state.viewer_height
    camera = Camera.from_c2w(camera_state.c2w, camera_state.fov, (width, height), near=near, far=far)

    buffers = ctx.pipeline.tick(camera)
    image = ctx.rasterizer.submit(buffers)

    if console is not None:
        elapsed_ms = (time.perf_counter() - start_time) * 1000.0
        sorted_str = "sorted" if buffers.order_updated else "cached order"
        console.print(
            f"[dim]Frame {buffers.frame_index}:[/dim] {width}x{height} | "
            f"{len(buffers):,} splats | {sorted_str} | {elapsed_ms:.1f} ms"
        )

    return image


def set_initial_camera(server: viser.ViserServer, scene: SplatScene, distance: float = 3.0) -> None:
    """
    Place the camera of newly connected clients in front of the scene.

    Args:
        server: Viser server instance
        scene: Loaded scene; its center is the look-at point
        distance: Camera distance from the center, in scene radii
    """
    center = tuple(float(c) for c in scene.center)
    server.initial_camera.position = orbit_eye(center, max(scene.radius, 1e-3) * distance)
    server.initial_camera.look_at = center


def add_splat_radius_control(
    server: viser.ViserServer,
    ctx: RenderContext,
    on_change: Optional[Callable[[], None]] = None,
) -> viser.GuiInputHandle:
    """
    Add a slider controlling the splat radius scale factor.

    Args:
        server: Viser server instance
        ctx: RenderContext whose pipeline receives the new value
        on_change: Called after the value changed, e.g. to trigger a re-render

    Returns:
        The slider handle
    """
    low, high = SPLAT_RADIUS_RANGE
    slider = server.gui.add_slider(
        "Splat radius",
        min=low,
        max=high,
        step=0.1,
        initial_value=ctx.pipeline.config.splat_radius,
    )

    @slider.on_update
    def _(_):
        ctx.pipeline.set_splat_radius(float(slider.value))
        if on_change is not None:
            on_change()

    return slider


__all__ = ["render_fn", "set_initial_camera", "add_splat_radius_control"]
