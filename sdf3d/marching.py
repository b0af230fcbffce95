"""Iso-surface triangulation of a single lattice cube.

Wraps :func:`skimage.measure.marching_cubes` on a 2×2×2 volume so the
extraction driver can triangulate one cube at a time.
"""

from __future__ import annotations

from typing import List

import numpy as np
from skimage import measure

_TIE_OFFSET = 1e-9


def triangulate_cube(
    positions: np.ndarray,
    values: np.ndarray,
    iso_level: float,
    out: List[np.ndarray],
) -> int:
    """Triangulate one axis-aligned cube and append the result to *out*.

    Parameters
    ----------
    positions:
        ``(8, 3)`` corner positions, any order.
    values:
        ``(8,)`` field values at those corners.
    iso_level:
        Threshold of the surface.
    out:
        Receives three ``(3,)`` absolute vertex positions per triangle.

    Returns
    -------
    int
        Number of triangles appended.
    """
    pos = np.asarray(positions, dtype=np.float64).reshape(8, 3)
    vals = np.asarray(values, dtype=np.float64).reshape(8)
    # Corners exactly on the level count as outside, so a surface lying on a
    # cube face is emitted once, by the cube on its inner side.
    vals = np.where(vals == iso_level, iso_level + _TIE_OFFSET * max(1.0, abs(iso_level)), vals)
    if not vals.min() < iso_level < vals.max():
        return 0

    origin = pos.min(axis=0)
    size = pos.max(axis=0) - origin
    if np.any(size <= 0.0):
        raise ValueError("corner positions do not span a cube")
    idx = np.rint((pos - origin) / size).astype(int)
    volume = np.empty((2, 2, 2))
    volume[idx[:, 0], idx[:, 1], idx[:, 2]] = vals

    verts, faces, _, _ = measure.marching_cubes(
        volume, level=iso_level, spacing=tuple(size), allow_degenerate=False
    )
    if len(faces) == 0:
        return 0
    tris = verts.astype(np.float64)[faces] + origin
    out.extend(tris.reshape(-1, 3))
    return len(faces)
