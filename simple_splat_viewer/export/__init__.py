"""
Frame export functionality for Gaussian-splat PLY files.

This module renders a camera orbit around a loaded scene and writes the
frames to disk.
"""

from ..config import ExportTask
from .writer import frame_path, save_rendered_frame

__all__ = [
    "ExportTask",
    "export_frames",
    "frame_path",
    "save_rendered_frame",
]


def export_frames(task: ExportTask) -> None:
    """Export an orbit of rendered frames from a PLY file.

    Loads the scene, places ``task.num_frames`` cameras on a circle around
    its center and renders each of them through the splat pipeline.

    Args:
        task: ExportTask containing configuration and parameters

    Raises:
        FileNotFoundError: If the PLY file doesn't exist
        FormatError: If the PLY file is malformed
        DeviceUnavailableError: If the requested device is unavailable
    """
    from tqdm import tqdm

    from ..config import RenderConfig
    from ..core.camera import orbit_cameras
    from ..core.loader import load_splat_scene
    from ..core.rendering import RenderContext, render_frame, resolve_device

    device = resolve_device(task.device)

    print(f"Loading splat scene from {task.ply_path}...")
    scene = load_splat_scene(task.ply_path, device)

    ctx = RenderContext.from_scene(scene, device, RenderConfig(splat_radius=task.splat_radius))

    radius = max(scene.radius, 1e-3) * task.distance
    cameras = orbit_cameras(
        scene.center,
        radius,
        task.num_frames,
        (task.width, task.height),
        fovy=task.fov,
        elevation=task.elevation,
    )

    task.output_dir.mkdir(parents=True, exist_ok=True)
    print(f"Total frames to export: {len(cameras)}")

    skipped = 0
    with tqdm(total=len(cameras), desc="Exporting frames") as pbar:
        for frame_idx, camera in enumerate(cameras):
            output_path = frame_path(task.output_dir, frame_idx)
            if not task.overwrite and output_path.exists():
                skipped += 1
                pbar.update(1)
                continue

            image = render_frame(ctx, camera)
            save_rendered_frame(image, output_path)

            pbar.set_postfix({"frame": frame_idx})
            pbar.update(1)

    if skipped:
        print(f"Skipped {skipped} existing frames")
    print(f"\nExport completed! Frames saved to: {task.output_dir}")
