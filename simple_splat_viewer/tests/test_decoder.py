import io
import re

import numpy as np
import pytest
from plyfile import PlyData as RawPlyData
from plyfile import PlyElement

from simple_splat_viewer.errors import FormatError, UnsupportedTypeError
from simple_splat_viewer.ply import REQUIRED_PROPERTIES, decode_ply, read_ply
from simple_splat_viewer.testing import make_vertex, ply_bytes, random_vertices


def retype(buffer: bytes, name: str, type_name: str) -> bytes:
    return re.sub(rb"property \w+ " + name.encode() + rb"\n",
                  b"property " + type_name.encode() + b" " + name.encode() + b"\n", buffer, count=1)


def test_binary_single_vertex():
    vertex = make_vertex(1.0, 2.0, 3.0, log_scale=(0.5, -1.0, 0.0), opacity=0.25)
    data = decode_ply(ply_bytes([vertex]))

    assert len(data) == 1
    assert data.header.format == "binary_little_endian"
    decoded = data.vertex(0)
    for name in REQUIRED_PROPERTIES:
        assert decoded[name] == pytest.approx(vertex[name])


def test_ascii_matches_binary():
    vertices = random_vertices(16, seed=3)
    binary = decode_ply(ply_bytes(vertices))
    ascii_ = decode_ply(ply_bytes(vertices, fmt="ascii"))

    assert ascii_.header.format == "ascii"
    assert binary.property_names == ascii_.property_names
    for name in REQUIRED_PROPERTIES:
        np.testing.assert_allclose(binary.columns[name], ascii_.columns[name], rtol=1e-6)


def test_columns_keep_declared_type():
    properties = list(REQUIRED_PROPERTIES) + ["nx", "red"]
    types = {"x": "double", "red": "uchar"}
    vertex = dict(make_vertex(0.125), nx=0.5, red=200)

    for fmt in ("binary_little_endian", "ascii"):
        data = decode_ply(ply_bytes([vertex], fmt=fmt, properties=properties, types=types))
        assert data.columns["x"].dtype == np.float64
        assert data.columns["y"].dtype == np.float32
        assert data.columns["red"].dtype == np.uint8
        assert [p.type_name for p in data.header.properties][-2:] == ["float32", "uint8"]
        assert data.vertex(0)["red"] == 200
        assert data.vertex(0)["nx"] == pytest.approx(0.5)


def test_header_comments():
    buffer = ply_bytes([make_vertex()], comments=["Generated by trainer", "iteration 30000"])
    header = decode_ply(buffer).header

    assert header.comments == ["Generated by trainer", "iteration 30000"]
    assert header.vertex_count == 1
    assert header.vertex_element.record_size == 4 * len(REQUIRED_PROPERTIES)


def test_empty_vertex_element():
    data = decode_ply(ply_bytes([]))
    assert len(data) == 0
    assert all(len(column) == 0 for column in data.columns.values())


def test_accepts_memoryview_without_modifying_it():
    buffer = bytearray(ply_bytes(random_vertices(4, seed=1)))
    original = bytes(buffer)

    data = decode_ply(memoryview(buffer))
    assert len(data) == 4
    assert bytes(buffer) == original


def test_read_ply_matches_decode(tmp_path):
    buffer = ply_bytes(random_vertices(8, seed=2))
    path = tmp_path / "scene.ply"
    path.write_bytes(buffer)

    from_disk = read_ply(path)
    in_memory = decode_ply(buffer)
    for name in REQUIRED_PROPERTIES:
        np.testing.assert_array_equal(from_disk.columns[name], in_memory.columns[name])


def test_agrees_with_plyfile():
    buffer = ply_bytes(random_vertices(12, seed=4), fmt="ascii")
    raw = RawPlyData.read(io.BytesIO(buffer))["vertex"]

    data = decode_ply(buffer)
    for name in REQUIRED_PROPERTIES:
        np.testing.assert_array_equal(data.columns[name], raw[name])


def test_rejects_missing_magic():
    buffer = ply_bytes([make_vertex()])
    with pytest.raises(FormatError, match="Invalid PLY header"):
        decode_ply(b"plx" + buffer[3:])


def test_rejects_missing_end_header():
    buffer = ply_bytes([make_vertex()], fmt="ascii")
    header, _ = buffer.split(b"end_header\n")
    with pytest.raises(FormatError):
        decode_ply(header)


def test_rejects_big_endian():
    with pytest.raises(FormatError, match="binary_big_endian"):
        decode_ply(ply_bytes([make_vertex()], fmt="binary_big_endian"))


def test_rejects_unsupported_type():
    buffer = retype(ply_bytes([make_vertex()], fmt="ascii"), "opacity", "half")
    with pytest.raises(UnsupportedTypeError) as info:
        decode_ply(buffer)

    assert info.value.property_name == "opacity"
    assert info.value.type_name == "half"
    assert info.value.line == "property half opacity"


def test_rejects_missing_required_property():
    properties = [p for p in REQUIRED_PROPERTIES if p != "rot_3"]
    with pytest.raises(FormatError, match="rot_3"):
        decode_ply(ply_bytes([make_vertex()], properties=properties))


def test_rejects_vertex_list_property():
    vertex = make_vertex()
    records = np.empty(1, dtype=[(p, "f4") for p in REQUIRED_PROPERTIES] + [("indices", "O")])
    for p in REQUIRED_PROPERTIES:
        records[p] = vertex[p]
    records["indices"][0] = np.array([0, 1], dtype=np.int32)
    element = PlyElement.describe(records, "vertex", len_types={"indices": "u1"}, val_types={"indices": "i4"})

    stream = io.BytesIO()
    RawPlyData([element], text=True).write(stream)

    with pytest.raises(UnsupportedTypeError) as info:
        decode_ply(stream.getvalue())
    assert info.value.property_name == "indices"


def test_skips_trailing_face_element():
    faces = np.empty(1, dtype=[("vertex_indices", "O")])
    faces["vertex_indices"][0] = np.array([0, 0, 0], dtype=np.int32)
    face = PlyElement.describe(faces, "face", len_types={"vertex_indices": "u1"},
                               val_types={"vertex_indices": "i4"})

    data = decode_ply(ply_bytes([make_vertex(1.0)], extra_elements=[face]))

    assert [e.name for e in data.header.elements] == ["vertex", "face"]
    assert data.header.elements[1].has_list
    assert data.vertex(0)["x"] == 1.0


def test_rejects_truncated_binary():
    buffer = ply_bytes(random_vertices(3))
    with pytest.raises(FormatError, match="Invalid PLY payload"):
        decode_ply(buffer[:-10])


def test_rejects_truncated_ascii():
    buffer = ply_bytes(random_vertices(3), fmt="ascii")
    truncated = buffer[:buffer.rstrip(b"\n").rfind(b"\n") + 1]
    with pytest.raises(FormatError, match="Invalid PLY payload"):
        decode_ply(truncated)


def test_rejects_non_numeric_ascii():
    buffer = ply_bytes([make_vertex(1.5)], fmt="ascii")
    header, body = buffer.split(b"end_header\n")
    with pytest.raises(FormatError, match="Invalid PLY payload"):
        decode_ply(header + b"end_header\n" + b"abc" + body[body.index(b" "):])


def test_vertex_index_out_of_range():
    data = decode_ply(ply_bytes([make_vertex()]))
    with pytest.raises(IndexError):
        data.vertex(1)


def test_iterates_in_file_order():
    vertices = [make_vertex(float(i)) for i in range(5)]
    data = decode_ply(ply_bytes(vertices))
    assert [v["x"] for v in data] == [0.0, 1.0, 2.0, 3.0, 4.0]
