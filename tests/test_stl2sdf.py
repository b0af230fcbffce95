"""Tests for stl2sdf.

Internal math tested via stl2sdf._math (private but tested directly).
Public API tested via stl2sdf.stl_to_geometry and stl2sdf.MeshField.
"""
from __future__ import annotations

import struct
from pathlib import Path

import numpy as np
import numpy.testing as npt
import pytest

from stl2sdf import (
    MeshData,
    MeshField,
    MeshQueryError,
    PointQuery,
    TriangleBVH,
    decode_colors,
    encode_colors,
    load_stl,
    mesh_to_geometry,
    save_stl,
    stl_to_geometry,
)
from stl2sdf._math import (
    _closest_point_triangle,
    _dedupe_vertices,
    _edge_pseudonormals,
    _face_normals,
)
from sdf3d.geometry import Geometry3D
from sdf3d import Box3D, Sphere3D


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_box_triangles(hx: float = 0.5, hy: float = 0.5, hz: float = 0.5) -> np.ndarray:
    """12-triangle watertight box [-hx,hx]×[-hy,hy]×[-hz,hz]."""
    verts = np.array([
        [-hx, -hy, -hz], [ hx, -hy, -hz], [ hx,  hy, -hz], [-hx,  hy, -hz],
        [-hx, -hy,  hz], [ hx, -hy,  hz], [ hx,  hy,  hz], [-hx,  hy,  hz],
    ], dtype=np.float64)
    face_indices = [
        (0, 2, 1), (0, 3, 2),   # -Z
        (4, 5, 6), (4, 6, 7),   # +Z
        (0, 4, 7), (0, 7, 3),   # -X
        (1, 2, 6), (1, 6, 5),   # +X
        (0, 1, 5), (0, 5, 4),   # -Y
        (3, 7, 6), (3, 6, 2),   # +Y
    ]
    return np.array([[verts[i], verts[j], verts[k]] for i, j, k in face_indices],
                    dtype=np.float64)


def _make_octahedron() -> np.ndarray:
    """8-triangle octahedron with vertices on the unit axes, wound outward."""
    tris = []
    for sx in (1.0, -1.0):
        for sy in (1.0, -1.0):
            for sz in (1.0, -1.0):
                a, b, c = [sx, 0, 0], [0, sy, 0], [0, 0, sz]
                if sx * sy * sz < 0:
                    b, c = c, b
                tris.append([a, b, c])
    return np.array(tris, dtype=np.float64)


def _write_binary_stl(triangles: np.ndarray, header: bytes = b"\x00" * 80) -> bytes:
    count   = struct.pack("<I", len(triangles))
    records = bytearray()
    for tri in triangles:
        records += struct.pack("<fff", 0.0, 0.0, 0.0)
        for v in tri:
            records += struct.pack("<fff", float(v[0]), float(v[1]), float(v[2]))
        records += struct.pack("<H", 0)
    return header + count + bytes(records)


def _write_ascii_stl(triangles: np.ndarray) -> str:
    lines = ["solid test"]
    for tri in triangles:
        lines.append("  facet normal 0 0 0")
        lines.append("    outer loop")
        for v in tri:
            lines.append(f"      vertex {v[0]:.6g} {v[1]:.6g} {v[2]:.6g}")
        lines.append("    endloop")
        lines.append("  endfacet")
    lines.append("endsolid test")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# STL codec
# ---------------------------------------------------------------------------

class TestColorCodec:
    def test_encode_known_values(self):
        words = encode_colors(np.array([[1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.0, 0.0, 1.0]]))
        assert list(words) == [0x8000 | 0x7C00, 0x8000 | 0x03E0, 0x8000 | 0x001F]

    def test_encode_clips(self):
        words = encode_colors(np.array([[2.0, -1.0, 0.5]]))
        npt.assert_allclose(decode_colors(words), [[1.0, 0.0, 16 / 31]])

    def test_decode_without_valid_bit_is_nan(self):
        rgb = decode_colors(np.array([0x7FFF, 0x8000], dtype=np.uint16))
        assert np.all(np.isnan(rgb[0]))
        npt.assert_array_equal(rgb[1], [0.0, 0.0, 0.0])

    def test_quantisation_error(self):
        rgb = np.random.default_rng(3).uniform(0.0, 1.0, size=(100, 3))
        back = decode_colors(encode_colors(rgb))
        assert np.max(np.abs(back - rgb)) <= 1 / 62 + 1e-12


class TestLoadStl:
    def test_binary_shape(self, tmp_path):
        stl = tmp_path / "box.stl"
        stl.write_bytes(_write_binary_stl(_make_box_triangles()))
        assert load_stl(stl).shape == (12, 3, 3)

    def test_binary_with_solid_header(self, tmp_path):
        stl = tmp_path / "cad.stl"
        header = b"solid exported by some CAD tool".ljust(80, b" ")
        stl.write_bytes(_write_binary_stl(_make_box_triangles(), header=header))
        npt.assert_allclose(load_stl(stl), _make_box_triangles())

    def test_ascii(self, tmp_path):
        stl = tmp_path / "box_ascii.stl"
        stl.write_text(_write_ascii_stl(_make_box_triangles()))
        tris, colors = load_stl(stl, with_colors=True)
        npt.assert_allclose(tris, _make_box_triangles(), atol=1e-6)
        assert colors.shape == (12, 3)
        assert np.all(np.isnan(colors))

    def test_ascii_bad_vertex_count(self, tmp_path):
        stl = tmp_path / "broken.stl"
        stl.write_text("solid x\nvertex 0 0 0\nvertex 1 0 0\nendsolid x\n")
        with pytest.raises(ValueError):
            load_stl(stl)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_stl(tmp_path / "nope.stl")


class TestSaveStl:
    def test_round_trip(self, tmp_path):
        rng = np.random.default_rng(0)
        points = rng.uniform(-10, 10, size=(30, 3))
        colors = rng.uniform(0, 1, size=(10, 3))
        path = tmp_path / "out.stl"
        save_stl(path, points, colors)

        assert path.stat().st_size == 84 + 50 * 10
        tris, back = load_stl(path, with_colors=True)
        npt.assert_array_equal(tris.reshape(-1, 3), points.astype(np.float32).astype(np.float64))
        assert np.max(np.abs(back - colors)) <= 1 / 62 + 1e-12

    def test_uncolored(self, tmp_path):
        path = tmp_path / "plain.stl"
        save_stl(path, _make_box_triangles())
        _, colors = load_stl(path, with_colors=True)
        assert np.all(np.isnan(colors))

    def test_partial_colors(self, tmp_path):
        path = tmp_path / "partial.stl"
        save_stl(path, _make_box_triangles(), np.tile([1.0, 0.0, 0.0], (5, 1)))
        _, colors = load_stl(path, with_colors=True)
        npt.assert_array_equal(colors[:5], np.tile([1.0, 0.0, 0.0], (5, 1)))
        assert np.all(np.isnan(colors[5:]))

    def test_face_normals_written(self, tmp_path):
        path = tmp_path / "normals.stl"
        tri = np.array([[0.0, 0.0, 0.0], [2.0, 0.0, 0.0], [0.0, 2.0, 0.0]])
        save_stl(path, tri)
        normal = struct.unpack_from("<fff", path.read_bytes(), 84)
        npt.assert_allclose(normal, [0.0, 0.0, 1.0])

    def test_empty(self, tmp_path):
        path = tmp_path / "empty.stl"
        save_stl(path, np.zeros((0, 3)))
        assert path.stat().st_size == 84
        assert load_stl(path).shape == (0, 3, 3)

    def test_creates_parent_dirs(self, tmp_path):
        path = tmp_path / "a" / "b" / "box.stl"
        save_stl(path, _make_box_triangles())
        assert path.exists()

    def test_no_file_on_failure(self, tmp_path):
        path = tmp_path / "bad.stl"
        with pytest.raises(ValueError):
            save_stl(path, np.zeros((4, 3)))
        assert not path.exists()


# ---------------------------------------------------------------------------
# Closest point on a triangle
# ---------------------------------------------------------------------------

class TestClosestPointTriangle:
    A = np.array([0.0, 0.0, 0.0])
    B = np.array([1.0, 0.0, 0.0])
    C = np.array([0.0, 1.0, 0.0])
    # One tag per feature so the returned normal identifies the region.
    TAGS = {name: np.array([float(i), 0.0, 0.0])
            for i, name in enumerate(["a", "b", "c", "ab", "ac", "bc"], start=1)}

    def _closest(self, *p):
        t = self.TAGS
        return _closest_point_triangle(
            np.array(p, dtype=float), self.A, self.B, self.C,
            t["a"], t["b"], t["c"], t["ab"], t["ac"], t["bc"],
        )

    @pytest.mark.parametrize("p, expected, region", [
        ((-1.0, -1.0, 0.0), (0.0, 0.0, 0.0), "a"),
        ((2.0, -1.0, 0.0), (1.0, 0.0, 0.0), "b"),
        ((-1.0, 2.0, 0.0), (0.0, 1.0, 0.0), "c"),
        ((0.5, -1.0, 0.0), (0.5, 0.0, 0.0), "ab"),
        ((-1.0, 0.5, 0.0), (0.0, 0.5, 0.0), "ac"),
        ((0.8, 0.8, 0.0), (0.5, 0.5, 0.0), "bc"),
    ])
    def test_boundary_regions(self, p, expected, region):
        point, normal = self._closest(*p)
        npt.assert_allclose(point, expected, atol=1e-12)
        npt.assert_array_equal(normal, self.TAGS[region])

    def test_face_region(self):
        point, normal = self._closest(0.2, 0.2, 0.5)
        npt.assert_allclose(point, [0.2, 0.2, 0.0], atol=1e-12)
        npt.assert_allclose(normal, [0.0, 0.0, 1.0])

    def test_point_on_triangle(self):
        point, _ = self._closest(0.25, 0.25, 0.0)
        npt.assert_allclose(point, [0.25, 0.25, 0.0], atol=1e-12)


# ---------------------------------------------------------------------------
# Mesh preparation
# ---------------------------------------------------------------------------

class TestDedupe:
    def test_shared_edge(self):
        a, b, c, d = [0.0, 0, 0], [1.0, 0, 0], [0.0, 1, 0], [1.0, 1, 0]
        vertices, triangles = _dedupe_vertices(np.array([[a, b, c], [b, d, c]]))
        npt.assert_array_equal(vertices, [a, b, c, d])
        npt.assert_array_equal(triangles, [[0, 1, 2], [1, 3, 2]])

    def test_box(self):
        vertices, triangles = _dedupe_vertices(_make_box_triangles())
        assert vertices.shape == (8, 3)
        assert triangles.shape == (12, 3)
        npt.assert_array_equal(vertices[triangles], _make_box_triangles())

    def test_bad_point_count(self):
        with pytest.raises(ValueError):
            _dedupe_vertices(np.zeros((4, 3)))


class TestPseudonormals:
    def test_octahedron_vertex_normals_are_axes(self):
        mesh = MeshData(_make_octahedron())
        npt.assert_allclose(mesh.vertex_normals, mesh.vertices, atol=1e-12)

    def test_box_corner_normals(self):
        mesh = MeshData(_make_box_triangles())
        expected = np.sign(mesh.vertices) / np.sqrt(3.0)
        npt.assert_allclose(mesh.vertex_normals, expected, atol=1e-12)

    def test_unit_length(self):
        mesh = MeshData(_make_octahedron())
        npt.assert_allclose(np.linalg.norm(mesh.vertex_normals, axis=-1), 1.0)
        npt.assert_allclose(np.linalg.norm(mesh.edge_normals, axis=-1), 1.0)

    def test_shared_edges_bit_identical(self):
        mesh = MeshData(_make_box_triangles())
        slots = ((0, 1), (0, 2), (1, 2))
        seen = {}
        for f, tri in enumerate(mesh.triangles):
            for s, (i, j) in enumerate(slots):
                key = tuple(sorted((int(tri[i]), int(tri[j]))))
                if key in seen:
                    npt.assert_array_equal(mesh.edge_normals[f, s], seen[key])
                else:
                    seen[key] = mesh.edge_normals[f, s]
        assert len(seen) == 18

    def test_face_normals_outward(self):
        vertices, triangles = _dedupe_vertices(_make_octahedron())
        normals = _face_normals(vertices, triangles)
        centroids = vertices[triangles].mean(axis=1)
        assert np.all(np.sum(normals * centroids, axis=-1) > 0)

    def test_degenerate_face_gets_zero_normal(self):
        vertices = np.array([[0.0, 0, 0], [1.0, 0, 0], [2.0, 0, 0]])
        triangles = np.array([[0, 1, 2]])
        npt.assert_array_equal(_face_normals(vertices, triangles), np.zeros((1, 3)))
        npt.assert_array_equal(_edge_pseudonormals(triangles, np.zeros((1, 3))), np.zeros((1, 3, 3)))

    def test_arrays_read_only(self):
        mesh = MeshData(_make_box_triangles())
        with pytest.raises(ValueError):
            mesh.vertices[0, 0] = 1.0

    def test_empty_mesh_rejected(self):
        with pytest.raises(ValueError, match="no triangles"):
            MeshData(np.zeros((0, 3, 3)))


# ---------------------------------------------------------------------------
# BVH
# ---------------------------------------------------------------------------

def _random_soup(n: int = 40, seed: int = 1) -> np.ndarray:
    rng = np.random.default_rng(seed)
    centres = rng.uniform(-5, 5, size=(n, 1, 3))
    return centres + rng.uniform(-0.5, 0.5, size=(n, 3, 3))


def _unsigned_distance(p, tri):
    z = np.zeros(3)
    point, _ = _closest_point_triangle(p, tri[0], tri[1], tri[2], z, z, z, z, z, z)
    return float(np.linalg.norm(p - point))


class TestTriangleBVH:
    def test_nearest_matches_brute_force(self):
        soup = _random_soup()
        vertices = soup.reshape(-1, 3)
        triangles = np.arange(len(vertices)).reshape(-1, 3)
        bvh = TriangleBVH(vertices, triangles, leaf_size=2)
        assert len(bvh) == len(soup)

        rng = np.random.default_rng(2)
        for p in rng.uniform(-7, 7, size=(25, 3)):
            best = {}

            def _visit(query, prim):
                d = _unsigned_distance(p, soup[prim])
                if d >= query.radius:
                    return False
                query.radius = d
                best["prim"] = prim
                return True

            assert bvh.point_query(PointQuery(p), _visit)
            brute = [_unsigned_distance(p, tri) for tri in soup]
            assert best["prim"] == int(np.argmin(brute))

    def test_prunes_far_boxes(self):
        soup = _random_soup(64)
        vertices = soup.reshape(-1, 3)
        bvh = TriangleBVH(vertices, np.arange(len(vertices)).reshape(-1, 3))
        visited = []

        def _visit(query, prim):
            visited.append(prim)
            return False

        bvh.point_query(PointQuery(np.zeros(3), radius=0.1), _visit)
        assert len(visited) < len(soup)

    def test_stops_at_zero_radius(self):
        soup = _random_soup(32)
        vertices = soup.reshape(-1, 3)
        bvh = TriangleBVH(vertices, np.arange(len(vertices)).reshape(-1, 3), leaf_size=8)
        calls = []

        def _visit(query, prim):
            calls.append(prim)
            query.radius = 0.0
            return True

        assert bvh.point_query(PointQuery(np.zeros(3)), _visit)
        assert len(calls) == 1

    def test_empty_tree(self):
        bvh = TriangleBVH(np.zeros((0, 3)), np.zeros((0, 3), dtype=int))
        assert bvh.node_count == 0
        assert not bvh.point_query(PointQuery(np.zeros(3)), lambda q, i: True)

    def test_leaf_size_validated(self):
        with pytest.raises(ValueError):
            TriangleBVH(np.zeros((3, 3)), np.array([[0, 1, 2]]), leaf_size=0)


# ---------------------------------------------------------------------------
# Mesh distance field
# ---------------------------------------------------------------------------

class TestMeshField:
    def test_cube_values(self):
        field = MeshField(_make_box_triangles())
        npt.assert_allclose(field.sdf(np.zeros(3)), -0.5, atol=1e-12)
        npt.assert_allclose(field.sdf(np.array([1.0, 0.0, 0.0])), 0.5, atol=1e-12)
        npt.assert_allclose(field.sdf(np.array([1.0, 1.0, 1.0])), np.sqrt(3) / 2, atol=1e-12)
        npt.assert_allclose(field.sdf(np.array([1.0, 1.0, 0.0])), np.sqrt(0.5), atol=1e-12)

    def test_matches_box_primitive(self):
        field = MeshField(_make_box_triangles(0.5, 0.3, 0.7))
        box = Box3D((0.5, 0.3, 0.7))
        p = np.random.default_rng(4).uniform(-1.5, 1.5, size=(200, 3))
        npt.assert_allclose(field.sdf(p), box.sdf(p), atol=1e-9)

    def test_octahedron_sign(self):
        field = MeshField(_make_octahedron())
        assert field.sdf(np.zeros(3)) < 0
        npt.assert_allclose(field.sdf(np.zeros(3)), -1 / np.sqrt(3), atol=1e-12)
        # Near a vertex the sign comes from the vertex pseudonormal.
        assert field.sdf(np.array([1.2, 0.0, 0.0])) > 0
        assert field.sdf(np.array([0.9, 0.0, 0.0])) < 0

    def test_query_result(self):
        field = MeshField(_make_box_triangles(), geom_id=7)
        res = field.query(np.array([2.0, 0.1, -0.2]))
        npt.assert_allclose(res.point, [0.5, 0.1, -0.2], atol=1e-12)
        assert res.distance == pytest.approx(1.5)
        assert res.geom_id == 7
        assert np.allclose(field.mesh.vertices[field.mesh.triangles[res.prim_id]][:, 0], 0.5)

    def test_batch_shape(self):
        field = MeshField(_make_box_triangles())
        assert field.sdf(np.zeros((4, 5, 3))).shape == (4, 5)

    def test_degenerate_triangle_tolerated(self):
        box = _make_box_triangles()
        corner = box[0, 0]
        soup = np.concatenate([box, [[corner, corner, corner]]])
        field = MeshField(soup)
        p = np.random.default_rng(5).uniform(-1.0, 1.0, size=(50, 3))
        npt.assert_allclose(field.sdf(p), Box3D((0.5, 0.5, 0.5)).sdf(p), atol=1e-9)

    def test_no_hit_raises(self, monkeypatch):
        field = MeshField(_make_box_triangles())
        monkeypatch.setattr(TriangleBVH, "point_query", lambda self, query, callback: False)
        with pytest.raises(MeshQueryError):
            field.sdf(np.zeros(3))

    def test_geometry_shares_field(self):
        field = MeshField(_make_box_triangles())
        g = field.geometry()
        assert isinstance(g, Geometry3D)
        npt.assert_allclose(g.sdf(np.zeros(3)), -0.5, atol=1e-12)


class TestStlToGeometry:
    def test_returns_geometry3d(self, tmp_path):
        stl = tmp_path / "box.stl"
        stl.write_bytes(_write_binary_stl(_make_box_triangles()))
        assert isinstance(stl_to_geometry(stl), Geometry3D)

    def test_ascii_input(self, tmp_path):
        stl = tmp_path / "box_ascii.stl"
        stl.write_text(_write_ascii_stl(_make_box_triangles()))
        geom = stl_to_geometry(str(stl))
        npt.assert_allclose(geom.sdf(np.zeros(3)), -0.5, atol=1e-6)

    def test_composes_with_primitives(self, tmp_path):
        stl = tmp_path / "box.stl"
        stl.write_bytes(_write_binary_stl(_make_box_triangles()))
        geom = stl_to_geometry(stl).translate(2.0, 0.0, 0.0) | Sphere3D(0.25)
        npt.assert_allclose(geom.sdf(np.array([2.0, 0.0, 0.0])), -0.5, atol=1e-6)
        npt.assert_allclose(geom.sdf(np.zeros(3)), -0.25, atol=1e-12)

    def test_scaled_mesh(self):
        geom = mesh_to_geometry(_make_box_triangles()).scale(4.0)
        npt.assert_allclose(geom.sdf(np.array([3.0, 0.0, 0.0])), 1.0, atol=1e-12)

    def test_empty_stl_rejected(self, tmp_path):
        stl = tmp_path / "empty.stl"
        stl.write_bytes(_write_binary_stl(np.zeros((0, 3, 3))))
        with pytest.raises(ValueError):
            stl_to_geometry(stl)
