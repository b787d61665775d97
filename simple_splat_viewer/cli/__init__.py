"""Command line subcommands for Simple Splat Viewer."""
