"""Sphere ∩ box minus three orthogonal bores, meshed with colors.

Demonstrates: Sphere3D, Box3D, Cylinder3D, boolean operators, .color(),
              extract_mesh, save_stl
Output:       examples/sdf3d/csg_extraction_example.stl

Color rule verified:
    every triangle on a bore wall carries that bore's color
"""
import os, sys
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

import math

import numpy as np
from sdf3d import Box3D, Cylinder3D, Sphere3D, centered_bounds, extract_mesh
from stl2sdf import save_stl

_R   = 24.0
_OUT = os.path.join(os.path.dirname(__file__), "csg_extraction_example.stl")


def build():
    f = Sphere3D(_R).color(0x222222)
    f &= Box3D((0.75 * _R,) * 3).color(0xFFFFFF)
    f -= Cylinder3D(_R / 2).rotate_x(math.pi / 2).color(0xFF0000)
    f -= Cylinder3D(_R / 2).rotate_y(math.pi / 2).color(0x00FF00)
    f -= Cylinder3D(_R / 2).color(0x0000FF)
    return f


def main():
    print("=" * 60)
    print("CSG EXTRACTION: rounded cube with three bores")
    print(f"  sphere radius {_R}, box half size {0.75 * _R}, bore radius {_R / 2}")
    print("=" * 60)

    geom = build()
    h = int(math.ceil(_R)) + 1
    result = extract_mesh(geom, centered_bounds(h, h, h))
    print(f"  Triangles: {len(result):,}")

    # The Z bore wall sits at radius R/2 in XY, inside the box.
    centroids = result.triangles.mean(axis=1)
    rho = np.hypot(centroids[:, 0], centroids[:, 1])
    on_z_bore = (np.abs(rho - _R / 2) < 0.5) & (np.abs(centroids[:, 2]) < 0.5 * _R)
    blue = np.all(result.colors[on_z_bore] == [0.0, 0.0, 1.0], axis=1)
    print(f"  Z bore triangles: {on_z_bore.sum():,}  blue: {blue.sum():,}")

    save_stl(_OUT, result.points, result.colors)
    print(f"  Saved: {_OUT}")
    print("  Preview: python scripts/preview_stl.py " + _OUT)


if __name__ == "__main__":
    main()
