"""Public API for stl2sdf: mesh distance fields as composable geometries."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import numpy as np

from sdf3d.geometry import Geometry3D as _Geometry3D
from ._math import (
    _closest_point_triangle,
    _dedupe_vertices,
    _edge_pseudonormals,
    _face_normals,
    _vertex_pseudonormals,
)
from .bvh import PointQuery, TriangleBVH
from .mesh_sdf import load_stl

logger = logging.getLogger(__name__)


class MeshQueryError(RuntimeError):
    """A nearest-point query finished without finding any triangle."""


@dataclass
class ClosestPointResult:
    """Outcome of one nearest-point query."""

    point: Optional[np.ndarray] = None
    distance: float = float("inf")
    prim_id: Optional[int] = None
    geom_id: Optional[int] = None


def _readonly(a: np.ndarray) -> np.ndarray:
    a.setflags(write=False)
    return a


class MeshData:
    """Deduplicated mesh with its pseudonormals.

    Attributes
    ----------
    vertices:
        ``(V, 3)`` positions, first-appearance order.
    triangles:
        ``(F, 3)`` vertex indices.
    vertex_normals:
        ``(V, 3)`` angle-weighted pseudonormals.
    edge_normals:
        ``(F, 3, 3)`` edge pseudonormals for slots AB, AC, BC.

    All arrays are read-only.
    """

    def __init__(self, soup: np.ndarray) -> None:
        if np.size(soup) == 0:
            raise ValueError("mesh has no triangles")
        vertices, triangles = _dedupe_vertices(soup)
        face_normals = _face_normals(vertices, triangles)
        self.vertices = _readonly(vertices)
        self.triangles = _readonly(triangles)
        self.vertex_normals = _readonly(_vertex_pseudonormals(vertices, triangles, face_normals))
        self.edge_normals = _readonly(_edge_pseudonormals(triangles, face_normals))

    def __len__(self) -> int:
        return len(self.triangles)


class MeshField:
    """Signed distance to a triangle mesh.

    Holds the mesh buffers and the spatial index; geometries built with
    :meth:`geometry` share this object rather than copying it, and it is
    safe to query from many threads at once.
    """

    def __init__(self, soup: np.ndarray, *, geom_id: int = 0, leaf_size: int = 4) -> None:
        self.mesh = MeshData(soup)
        self.geom_id = geom_id
        self.index = TriangleBVH(self.mesh.vertices, self.mesh.triangles, leaf_size=leaf_size)
        logger.debug(
            "mesh field: %d triangles, %d vertices, %d bvh nodes",
            len(self.mesh), len(self.mesh.vertices), self.index.node_count,
        )

    def query(self, point: np.ndarray) -> ClosestPointResult:
        """Nearest point on the mesh to *point* with the signed distance.

        Raises :class:`MeshQueryError` when nothing is found.
        """
        q = np.asarray(point, dtype=np.float64)
        mesh = self.mesh
        result = ClosestPointResult()

        def _visit(query: PointQuery, prim: int) -> bool:
            ia, ib, ic = mesh.triangles[prim]
            nab, nac, nbc = mesh.edge_normals[prim]
            p, n = _closest_point_triangle(
                q,
                mesh.vertices[ia], mesh.vertices[ib], mesh.vertices[ic],
                mesh.vertex_normals[ia], mesh.vertex_normals[ib], mesh.vertex_normals[ic],
                nab, nac, nbc,
            )
            diff = q - p
            d = float(np.sqrt(diff @ diff))
            if d >= query.radius:
                return False
            query.radius = d
            result.point = p
            result.distance = -d if diff @ n <= 0.0 else d
            result.prim_id = prim
            result.geom_id = self.geom_id
            return True

        self.index.point_query(PointQuery(q), _visit)
        if result.prim_id is None:
            raise MeshQueryError(f"no triangle found for query point {q.tolist()}")
        return result

    def sdf(self, p: np.ndarray) -> np.ndarray:
        """Signed distances for ``(..., 3)`` points; shape ``(...)``."""
        p = np.asarray(p, dtype=np.float64)
        flat = p.reshape(-1, 3)
        out = np.fromiter(
            (self.query(q).distance for q in flat), dtype=np.float64, count=len(flat)
        )
        return out.reshape(p.shape[:-1])

    def geometry(self) -> _Geometry3D:
        """Wrap this field as a :class:`sdf3d.geometry.Geometry3D`."""
        return _Geometry3D(self.sdf)


def mesh_to_geometry(triangles: np.ndarray, *, leaf_size: int = 4) -> _Geometry3D:
    """Build a mesh distance field from a ``(F, 3, 3)`` triangle soup.

    Sign convention: phi < 0 inside, phi = 0 on surface, phi > 0 outside.
    The mesh must be closed and consistently wound (counter-clockwise seen
    from outside).
    """
    return MeshField(triangles, leaf_size=leaf_size).geometry()


def stl_to_geometry(path: Union[str, Path], *, leaf_size: int = 4) -> _Geometry3D:
    """Load an STL file and return a :class:`sdf3d.geometry.Geometry3D`.

    The returned object has the same interface as analytic primitives
    (``Sphere3D``, ``Box3D``, etc.) and can be combined with them using
    ``.union()``, ``.subtract()``, ``.translate()``, etc.

    Parameters
    ----------
    path:
        Path to the ``.stl`` file (binary or ASCII).
    leaf_size:
        Triangles per BVH leaf.

    Examples
    --------
    >>> from stl2sdf import stl_to_geometry
    >>> from sdf3d import Plane3D
    >>>
    >>> part = stl_to_geometry("bracket.stl").color(0x3498DB)
    >>> cut = part & Plane3D((0, 1, 0)).rotate_x(np.pi / 8).color(0xE74C3C)
    """
    triangles = load_stl(path)
    logger.info("loaded %d triangles from %s", len(triangles), path)
    return mesh_to_geometry(triangles, leaf_size=leaf_size)
