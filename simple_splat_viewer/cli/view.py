"""
View subcommand for Simple Splat Viewer.

This module provides the view subcommand for interactively viewing
Gaussian-splat PLY files.
"""

import time
from pathlib import Path

import torch

from ..config import RenderConfig, ViewerConfig
from ..errors import SplatViewerError


def view(
    ply_path: Path,
    port: int = 8080,
    device: str = "cuda" if torch.cuda.is_available() else "cpu",
    splat_radius: float = 1.0,
    verbose: bool = False,
) -> None:
    """View a Gaussian-splat PLY file interactively.

    Args:
        ply_path: Path to the PLY file
        port: Port for the viewer server (default: 8080)
        device: Device to use for rendering (default: cuda if available, else cpu)
        splat_radius: Initial splat radius scale factor, in [0.1, 2.0] (default: 1.0)
        verbose: Log timing information for each frame (default: False)
    """
    config = ViewerConfig(ply_path=ply_path, port=port, device=device, splat_radius=splat_radius, verbose=verbose)
    serve_viewer(config)


def serve_viewer(config: ViewerConfig) -> None:
    """Load the scene and run the viewer until interrupted."""
    import nerfview
    import viser
    from rich.console import Console

    from ..core.loader import load_splat_scene
    from ..core.rendering import RenderContext, resolve_device
    from ..core.viewer import add_splat_radius_control, render_fn, set_initial_camera

    try:
        render_config = RenderConfig(splat_radius=config.splat_radius)
        torch_device = resolve_device(config.device)
    except (ValueError, SplatViewerError) as e:
        print(f"Error: {e}")
        return

    # Load scene
    print(f"\nLoading splat scene from {config.ply_path}")
    print("=" * 60)
    try:
        scene = load_splat_scene(config.ply_path, torch_device)
    except FileNotFoundError:
        print(f"Error: File not found: {config.ply_path}")
        return
    except SplatViewerError as e:
        print(f"Error: Failed to load PLY file: {e}")
        return
    print("=" * 60)

    ctx = RenderContext.from_scene(scene, torch_device, render_config)

    # Setup viewer
    print(f"\nStarting viewer server on port {config.port}...")
    try:
        server = viser.ViserServer(port=config.port, verbose=False)
    except OSError as e:
        if "already in use" in str(e):
            print(f"Error: Port {config.port} already in use. Use --port to specify a different port.")
        else:
            print(f"Error: Failed to start server: {e}")
        return

    set_initial_camera(server, scene, config.distance)

    console = Console() if config.verbose else None
    viewer = None  # Will be set after viewer creation

    def render_wrapper(camera_state, render_tab_state):
        return render_fn(
            camera_state, render_tab_state, ctx, near=config.near, far=config.far, console=console
        )

    def rerender():
        if viewer is not None:
            viewer.rerender(None)

    add_splat_radius_control(server, ctx, on_change=rerender)

    viewer = nerfview.Viewer(
        server=server,
        render_fn=render_wrapper,
        mode="rendering",
    )

    print(f"\nViewer running at http://localhost:{config.port}")
    print("Press Ctrl+C to exit\n")

    # Keep the viewer running
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        print("\nShutting down viewer...")


__all__ = ["view", "serve_viewer"]
