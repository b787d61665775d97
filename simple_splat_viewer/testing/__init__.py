from .ply import make_vertex, ply_bytes, vertex_element
from .scene import random_gaussian_set, random_vertices, simple_camera


__all__ = [
    'make_vertex', 'ply_bytes', 'vertex_element',
    'random_gaussian_set', 'random_vertices', 'simple_camera',
]
