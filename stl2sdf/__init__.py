"""stl2sdf — triangle meshes as signed distance fields.

Turns triangulated surface meshes stored in STL format into
:class:`sdf3d.geometry.Geometry3D` values that compose with the analytic
primitives, and writes extracted meshes back out as colored binary STL.

Quick start
-----------
>>> from stl2sdf import stl_to_geometry
>>> from sdf3d import Sphere3D
>>> part = stl_to_geometry("my_mesh.stl")
>>> shape = part.subtract(Sphere3D(0.3))
>>> shape.sdf(np.zeros((1, 3))).shape
(1,)

Closed-mesh requirement
-----------------------
Distances come from an exact closest-point search accelerated by a BVH.
The sign is taken from angle-weighted pseudonormals at the closest feature
(vertex, edge or face), which is only meaningful for **closed,
consistently wound** meshes.

Performance
-----------
One query costs O(log F) BVH steps in the common case.  Queries run in
pure Python, so dense sampling of large meshes is slow; the extraction
driver in :mod:`sdf3d.extract` skips empty space to keep the number of
queries down.
"""

from .bvh import PointQuery, TriangleBVH
from .geometry import (
    ClosestPointResult,
    MeshData,
    MeshField,
    MeshQueryError,
    mesh_to_geometry,
    stl_to_geometry,
)
from .mesh_sdf import decode_colors, encode_colors, load_stl, save_stl

__all__ = [
    "PointQuery",
    "TriangleBVH",
    "ClosestPointResult",
    "MeshData",
    "MeshField",
    "MeshQueryError",
    "mesh_to_geometry",
    "stl_to_geometry",
    "decode_colors",
    "encode_colors",
    "load_stl",
    "save_stl",
]
