"""
PLY point-cloud decoding.

This module reads a PLY buffer with ``plyfile`` and exposes the vertex
element as per-property numpy columns. Both the ``ascii`` and the
``binary_little_endian`` payload layouts are supported.

The vertex schema is validated once the header is known: a file missing any
of the properties needed to build a Gaussian splat is rejected before any
splat is built.
"""

import io
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Dict, Iterator, List, Optional, Union

import numpy as np
import plyfile

from ..errors import FormatError, UnsupportedTypeError

SUPPORTED_FORMATS = ("ascii", "binary_little_endian")

SCALAR_TYPES = ("int8", "uint8", "int16", "uint16", "int32", "uint32", "float32", "float64")

# Classic PLY type names and numpy type codes
TYPE_ALIASES = {
    "char": "int8",
    "uchar": "uint8",
    "short": "int16",
    "ushort": "uint16",
    "int": "int32",
    "uint": "uint32",
    "float": "float32",
    "double": "float64",
    "i1": "int8",
    "u1": "uint8",
    "i2": "int16",
    "u2": "uint16",
    "i4": "int32",
    "u4": "uint32",
    "f4": "float32",
    "f8": "float64",
}

VERTEX_ELEMENT = "vertex"

REQUIRED_PROPERTIES = (
    "x", "y", "z",
    "rot_0", "rot_1", "rot_2", "rot_3",
    "scale_0", "scale_1", "scale_2",
    "f_dc_0", "f_dc_1", "f_dc_2",
    "opacity",
)

Buffer = Union[bytes, bytearray, memoryview]


def canonical_type(type_name: str) -> Optional[str]:
    """Map a declared PLY scalar type to its canonical name, or None if unknown."""
    type_name = TYPE_ALIASES.get(type_name, type_name)
    return type_name if type_name in SCALAR_TYPES else None


@dataclass(frozen=True)
class PropertyDecl:
    """A scalar property declared on an element."""

    name: str
    """Property name, e.g. ``x`` or ``f_dc_0``"""

    type_name: str
    """Canonical scalar type name, e.g. ``float32``"""

    @property
    def dtype(self) -> np.dtype:
        return np.dtype(self.type_name)

    @property
    def size(self) -> int:
        """Width of the property in bytes in the binary layout."""
        return self.dtype.itemsize


@dataclass
class ElementDecl:
    """An element (``vertex``, ``face``, ...) declared in the header."""

    name: str
    count: int
    properties: List[PropertyDecl] = field(default_factory=list)
    has_list: bool = False

    @property
    def record_size(self) -> int:
        return sum(p.size for p in self.properties)

    @property
    def property_names(self) -> List[str]:
        return [p.name for p in self.properties]


@dataclass
class PlyHeader:
    """Parsed PLY header."""

    format: str
    """Payload layout, one of SUPPORTED_FORMATS"""

    elements: List[ElementDecl]
    """Declared elements in file order"""

    comments: List[str]
    """Text of ``comment`` and ``obj_info`` lines"""

    @property
    def vertex_element(self) -> ElementDecl:
        for element in self.elements:
            if element.name == VERTEX_ELEMENT:
                return element
        raise FormatError("Invalid PLY file: no vertex element declared")

    @property
    def vertex_count(self) -> int:
        return self.vertex_element.count

    @property
    def properties(self) -> List[PropertyDecl]:
        return self.vertex_element.properties


@dataclass
class PlyData:
    """Decoded vertex data.

    Each declared vertex property becomes one numpy column of length
    ``vertex_count``, keeping the declared scalar type. Properties not needed
    to build splats (normals, higher-order SH terms, ...) are kept as well.
    """

    header: PlyHeader
    columns: Dict[str, np.ndarray]

    def __len__(self) -> int:
        return self.header.vertex_count

    @property
    def property_names(self) -> List[str]:
        return list(self.columns.keys())

    def vertex(self, index: int) -> Dict[str, float]:
        """Return a single raw vertex as a property name -> value mapping."""
        if not 0 <= index < len(self):
            raise IndexError(f"Vertex index {index} out of range for {len(self)} vertices")
        return {name: column[index].item() for name, column in self.columns.items()}

    def __iter__(self) -> Iterator[Dict[str, float]]:
        for i in range(len(self)):
            yield self.vertex(i)


def _header_error(stream: BinaryIO, error: Exception) -> FormatError:
    """Turn a plyfile header failure into a FormatError, naming unsupported types."""
    stream.seek(0)
    for raw in iter(stream.readline, b""):
        line = raw.decode("ascii", errors="replace").strip()
        if line == "end_header":
            break
        tokens = line.split()
        if len(tokens) < 3 or tokens[0] != "property":
            continue
        type_names = tokens[2:4] if tokens[1] == "list" else tokens[1:2]
        for type_name in type_names:
            if canonical_type(type_name) is None:
                return UnsupportedTypeError(tokens[-1], type_name, line=line)
    return FormatError(f"Invalid PLY header: {error}")


def _build_header(ply: plyfile.PlyData) -> PlyHeader:
    if ply.text:
        ply_format = "ascii"
    elif ply.byte_order == ">":
        raise FormatError("Unsupported PLY format: binary_big_endian")
    else:
        ply_format = "binary_little_endian"

    elements = []
    for element in ply.elements:
        decl = ElementDecl(name=element.name, count=element.count)
        for prop in element.properties:
            if isinstance(prop, plyfile.PlyListProperty):
                if element.name == VERTEX_ELEMENT:
                    raise UnsupportedTypeError(prop.name, "list")
                decl.has_list = True
                continue
            decl.properties.append(PropertyDecl(name=prop.name, type_name=np.dtype(prop.val_dtype).name))
        elements.append(decl)

    header = PlyHeader(
        format=ply_format,
        elements=elements,
        comments=list(ply.comments) + list(ply.obj_info),
    )

    missing = [name for name in REQUIRED_PROPERTIES if name not in header.vertex_element.property_names]
    if missing:
        raise FormatError(f"Invalid PLY file: vertex element is missing required properties: {', '.join(missing)}")

    return header


def _read(stream: BinaryIO) -> PlyData:
    try:
        ply = plyfile.PlyData.read(stream)
    except plyfile.PlyHeaderParseError as e:
        raise _header_error(stream, e) from e
    except plyfile.PlyElementParseError as e:
        raise FormatError(f"Invalid PLY payload: {e}") from e
    except UnicodeDecodeError as e:
        raise FormatError(f"Invalid PLY file: header is not ASCII ({e})") from e
    except ValueError as e:
        raise _header_error(stream, e) from e

    header = _build_header(ply)
    vertices = ply[VERTEX_ELEMENT].data
    columns = {p.name: np.ascontiguousarray(vertices[p.name]) for p in header.properties}
    return PlyData(header=header, columns=columns)


def decode_ply(buffer: Buffer) -> PlyData:
    """Decode the vertex element of an in-memory PLY file.

    Args:
        buffer: Complete file contents; not modified

    Returns:
        PlyData with one column per declared vertex property

    Raises:
        FormatError: If the header is malformed, the format is not supported,
            the vertex element is missing or lacks required properties, or the
            payload is truncated or malformed
        UnsupportedTypeError: If a property declares an unknown type, or the
            vertex element declares a list property
    """
    return _read(io.BytesIO(buffer))


def read_ply(path: Union[str, Path]) -> PlyData:
    """Decode the vertex element of a PLY file on disk. Raises as decode_ply."""
    with open(path, "rb") as stream:
        return _read(stream)


__all__ = [
    "REQUIRED_PROPERTIES",
    "SCALAR_TYPES",
    "PropertyDecl",
    "ElementDecl",
    "PlyHeader",
    "PlyData",
    "canonical_type",
    "decode_ply",
    "read_ply",
]
