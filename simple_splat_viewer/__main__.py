"""
Unified CLI entry point for Simple Splat Viewer.

This module provides the main entry point for the simple-splat command,
which supports view, export and info subcommands using a decorator-based API.
"""

from tyro.extras import SubcommandApp

from .cli.export import export
from .cli.info import info
from .cli.view import view

# Create the SubcommandApp
app = SubcommandApp()

# Register subcommands using decorators
app.command(view)
app.command(export)
app.command(info)


def main() -> None:
    """Main entry point for the unified CLI."""
    app.cli()


if __name__ == "__main__":
    main()
