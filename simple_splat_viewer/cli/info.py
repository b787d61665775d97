"""
Info subcommand for Simple Splat Viewer.

This module prints the header and splat statistics of a PLY file without
starting a viewer.
"""

from pathlib import Path

from rich.console import Console
from rich.table import Table

from ..errors import SplatViewerError


def info(ply_path: Path) -> None:
    """Print header and splat statistics of a Gaussian-splat PLY file.

    Args:
        ply_path: Path to the PLY file
    """
    from ..gaussians.factory import splatify_columns
    from ..ply.decoder import REQUIRED_PROPERTIES, read_ply

    console = Console()

    if not ply_path.exists():
        console.print(f"[bold red]Error:[/bold red] PLY file not found: {ply_path}")
        return

    try:
        data = read_ply(ply_path)
    except SplatViewerError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        return

    header = data.header
    console.print(f"[bold cyan]{ply_path}[/bold cyan]: {header.format}")
    for comment in header.comments:
        console.print(f"[dim]comment:[/dim] {comment}")

    elements = Table(title="Elements")
    elements.add_column("Element")
    elements.add_column("Count", justify="right")
    elements.add_column("Record bytes", justify="right")
    for element in header.elements:
        elements.add_row(element.name, f"{element.count:,}", str(element.record_size))
    console.print(elements)

    properties = Table(title="Vertex properties")
    properties.add_column("Property")
    properties.add_column("Type")
    properties.add_column("Used")
    for prop in header.properties:
        properties.add_row(prop.name, prop.type_name, "yes" if prop.name in REQUIRED_PROPERTIES else "")
    console.print(properties)

    gaussians = splatify_columns(data.columns)
    if len(gaussians) == 0:
        return

    stats = Table(title="Splats")
    stats.add_column("Attribute")
    stats.add_column("Min", justify="right")
    stats.add_column("Median", justify="right")
    stats.add_column("Max", justify="right")
    for name, values in (
        ("scale", gaussians.scales.flatten()),
        ("opacity", gaussians.opacities),
        ("color", gaussians.colors.flatten()),
    ):
        stats.add_row(
            name,
            f"{values.min().item():.4f}",
            f"{values.median().item():.4f}",
            f"{values.max().item():.4f}",
        )
    console.print(stats)


__all__ = ["info"]
