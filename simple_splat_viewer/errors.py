"""
Exception types for Simple Splat Viewer.

Loading errors abort the load entirely; no partial scene is produced.
"""

from typing import Optional


class SplatViewerError(Exception):
    """Base class for all errors raised by the viewer."""


class FormatError(SplatViewerError, ValueError):
    """Malformed or unrecognized PLY header or payload.

    Attributes:
        line: The offending header line, if the error comes from the header
    """

    def __init__(self, message: str, line: Optional[str] = None):
        if line is not None:
            message = f"{message} (line: {line!r})"
        super().__init__(message)
        self.line = line


class UnsupportedTypeError(FormatError):
    """A property declares a scalar type outside the supported numeric set.

    Attributes:
        property_name: Name of the offending property
        type_name: The declared type string
    """

    def __init__(self, property_name: str, type_name: str, line: Optional[str] = None):
        super().__init__(f"Unsupported type '{type_name}' for property '{property_name}'", line=line)
        self.property_name = property_name
        self.type_name = type_name


class DeviceUnavailableError(SplatViewerError, RuntimeError):
    """The requested rendering device is not available."""


__all__ = [
    "SplatViewerError",
    "FormatError",
    "UnsupportedTypeError",
    "DeviceUnavailableError",
]
