"""
sdf3d — 3D Signed Distance Function Library
============================================

A library for creating, composing and meshing 3D signed distance fields
(SDFs).

Implemented features
--------------------
- Primitive shapes: Sphere, Box, Cylinder (infinite), Plane (half-space)
- Boolean operations: Union, Intersection, Difference (with color selection)
- Transforms: translate, scale, rotate (any axis), rotate_x/y/z
- Colors: constant color overrides via ``.color(0xRRGGBB)``
- Mesh extraction: :func:`extract_mesh` (adaptive, multi-threaded)
- Configuration: :class:`ExtractionConfig`
- Command line: ``python -m sdf3d``

Mesh-based fields live in the sibling package :mod:`stl2sdf`.

Quick start
-----------

::

    from sdf3d import Sphere3D, Box3D, Cylinder3D, extract_mesh, centered_bounds
    from stl2sdf import save_stl

    shape = (Sphere3D(20).color(0x3498DB) & Box3D((15, 15, 15))) - Cylinder3D(8)
    result = extract_mesh(shape, centered_bounds(21, 21, 21), workers=4)
    save_stl("shape.stl", result.points, result.colors)
"""

from .geometry import (
    Geometry3D,
    Sphere3D,
    Box3D,
    Cylinder3D,
    Plane3D,
    Union3D,
    Intersection3D,
    Difference3D,
    parse_color,
)
from .marching import triangulate_cube
from .extract import ExtractionResult, centered_bounds, extract_mesh, scan_slice
from .config import ExtractionConfig
from .workers import float_scope, run_workers, timed

__version__ = "0.3.0"

__all__ = [
    # Base
    "Geometry3D",

    # Primitives
    "Sphere3D",
    "Box3D",
    "Cylinder3D",
    "Plane3D",

    # Boolean operations
    "Union3D",
    "Intersection3D",
    "Difference3D",

    # Colors
    "parse_color",

    # Extraction
    "triangulate_cube",
    "ExtractionResult",
    "centered_bounds",
    "extract_mesh",
    "scan_slice",
    "ExtractionConfig",

    # Workers
    "float_scope",
    "run_workers",
    "timed",
]
