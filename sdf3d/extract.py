"""Adaptive iso-surface extraction of a 3-D geometry on an integer lattice.

Every lattice cell is a unit cube ``(x0, y0, z0)``–``(x0+1, y0+1, z0+1)``.
Workers own interleaved slices of the X axis (worker ``i`` of ``n`` takes
``x ≡ x_lo + i (mod n)``) and scan Y then Z inside it.  At each cell the
field is evaluated at the centre; if the surface is farther than half the
cube diagonal the cell is empty and, because a distance field changes by at
most one unit per unit of travel, the next ``floor(d - √3/2)`` cells along Z
are empty as well and are skipped.  Cells near the surface are sampled at
their 8 corners and triangulated by :func:`sdf3d.marching.triangulate_cube`.

Fields that over-estimate distance (for example a non-uniform stretch
applied through a raw callable) can make the skip miss thin features.
"""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .geometry import Geometry3D
from .marching import triangulate_cube
from .workers import float_scope, run_workers, timed

logger = logging.getLogger(__name__)

HALF_DIAGONAL = math.sqrt(3.0) / 2.0

_Bounds = Tuple[Tuple[int, int], Tuple[int, int], Tuple[int, int]]

# Corner order of a lattice cube, relative to (x0, y0, z0).
_CORNERS = np.array([
    [0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 1, 0],
    [0, 0, 1], [1, 0, 1], [1, 1, 1], [0, 1, 1],
], dtype=np.float64)


@dataclass
class ExtractionResult:
    """Triangle soup produced by :func:`extract_mesh`.

    ``points`` holds three ``(x, y, z)`` rows per triangle, ``colors`` one
    RGB row per triangle.  Triangle order across workers is unspecified.
    """

    points: np.ndarray
    colors: np.ndarray

    def __len__(self) -> int:
        return len(self.colors)

    @property
    def triangles(self) -> np.ndarray:
        """``(T, 3, 3)`` view of :attr:`points`."""
        return self.points.reshape(-1, 3, 3)


class _Accumulator:
    """Shared output, appended to once per worker under a single lock."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._points: List[np.ndarray] = []
        self._colors: List[np.ndarray] = []

    def merge(self, points: List[np.ndarray], colors: List[np.ndarray]) -> None:
        with self._lock:
            self._points.extend(points)
            self._colors.extend(colors)

    def result(self) -> ExtractionResult:
        points = np.array(self._points, dtype=np.float64).reshape(-1, 3)
        colors = np.array(self._colors, dtype=np.float64).reshape(-1, 3)
        return ExtractionResult(points, colors)


def centered_bounds(hx: int, hy: int, hz: int) -> _Bounds:
    """Lattice bounds ``[-h, h)`` on each axis."""
    return ((-hx, hx), (-hy, hy), (-hz, hz))


def _check_bounds(bounds: Sequence[Sequence[int]]) -> _Bounds:
    if len(bounds) != 3:
        raise ValueError("bounds need one (lo, hi) pair per axis")
    out = []
    for lo, hi in bounds:
        if int(lo) != lo or int(hi) != hi:
            raise ValueError(f"lattice bounds must be integers, got ({lo}, {hi})")
        if lo >= hi:
            raise ValueError(f"empty lattice range ({lo}, {hi})")
        out.append((int(lo), int(hi)))
    return tuple(out)  # type: ignore[return-value]


def scan_slice(
    geom: Geometry3D,
    bounds: _Bounds,
    worker: int,
    num_workers: int,
    *,
    skip: bool = True,
    iso_level: float = 0.0,
) -> Tuple[List[np.ndarray], List[np.ndarray]]:
    """Extract the triangles of one worker's X slice.

    Returns private ``(points, colors)`` buffers: three position rows and
    one color row per triangle.
    """
    (x_lo, x_hi), (y_lo, y_hi), (z_lo, z_hi) = bounds
    points: List[np.ndarray] = []
    colors: List[np.ndarray] = []
    for x0 in range(x_lo + worker, x_hi, num_workers):
        for y0 in range(y_lo, y_hi):
            z0 = z_lo
            while z0 < z_hi:
                mid = np.array([x0 + 0.5, y0 + 0.5, z0 + 0.5])
                if skip:
                    d = abs(float(geom.sdf(mid)) - iso_level)
                    if d > HALF_DIAGONAL:
                        z0 += int(min(math.floor(d - HALF_DIAGONAL), z_hi - z0)) + 1
                        continue

                corners = _CORNERS + (x0, y0, z0)
                values = geom.sdf(corners)
                n = triangulate_cube(corners, values, iso_level, points)
                if n:
                    color = np.array(geom.color_at(mid), dtype=np.float64)
                    colors.extend([color] * n)
                z0 += 1
    return points, colors


def extract_mesh(
    geom: Geometry3D,
    bounds: Sequence[Sequence[int]],
    *,
    workers: Optional[int] = None,
    skip: bool = True,
    iso_level: float = 0.0,
) -> ExtractionResult:
    """Extract the ``iso_level`` surface of *geom* inside *bounds*.

    Parameters
    ----------
    geom:
        The field to mesh; evaluated concurrently from every worker.
    bounds:
        ``((x_lo, x_hi), (y_lo, y_hi), (z_lo, z_hi))`` integer lattice
        range; cells start at ``lo`` inclusive and stop before ``hi``.
    workers:
        Number of worker threads (default: CPU count).
    skip:
        Skip cells the centre distance proves empty.  Turning it off samples
        every cell and never changes the result for true distance fields.
    iso_level:
        Surface threshold.

    Any exception raised while evaluating the field aborts the extraction
    and propagates to the caller.
    """
    lattice = _check_bounds(bounds)
    acc = _Accumulator()

    def _worker(wi: int, wn: int) -> None:
        with float_scope():
            points, colors = scan_slice(geom, lattice, wi, wn, skip=skip, iso_level=iso_level)
        acc.merge(points, colors)
        logger.debug("worker %d/%d produced %d triangles", wi, wn, len(colors))

    with timed("running workers"):
        run_workers(_worker, workers)
    result = acc.result()
    logger.info("extracted %d triangles", len(result))
    return result
