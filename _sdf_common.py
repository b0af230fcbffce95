"""Shared vector helpers used by both sdf3d and stl2sdf.

This module provides:

* **Type alias**: :data:`_F`
* **Vector constructors**: :func:`vec3`
* **Math helpers**: :func:`length`, :func:`dot`, :func:`normalize`,
  :func:`clamp`, :func:`rotation_matrix`
* **Shared boolean/domain operators**:
  :func:`opUnion`, :func:`opDifference`, :func:`opIntersection`,
  :func:`opScale`

Not meant to be imported directly by end users; import from
``sdf3d`` or ``stl2sdf`` instead.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np
import numpy.typing as npt

# ---------------------------------------------------------------------------
# Type alias
# ---------------------------------------------------------------------------
_F = npt.NDArray[np.floating]

X_AXIS = np.array([1.0, 0.0, 0.0])
Y_AXIS = np.array([0.0, 1.0, 0.0])
Z_AXIS = np.array([0.0, 0.0, 1.0])

__all__ = [
    "_F",
    "X_AXIS", "Y_AXIS", "Z_AXIS",
    "vec3",
    "length", "dot", "normalize", "clamp", "rotation_matrix",
    "opUnion", "opDifference", "opIntersection", "opScale",
]


# ===========================================================================
# Vector constructors
# ===========================================================================

def vec3(x: _F, y: _F, z: _F) -> _F:
    """Stack *x*, *y*, *z* into a ``(..., 3)`` array."""
    x, y, z = np.broadcast_arrays(x, y, z)
    return np.stack([x, y, z], axis=-1)


# ===========================================================================
# Math helpers
# ===========================================================================

def length(v: _F) -> _F:
    """Euclidean length along the last axis."""
    return np.linalg.norm(v, axis=-1)


def dot(a: _F, b: _F) -> _F:
    """Dot product along the last axis."""
    return np.sum(a * b, axis=-1)


def normalize(v: _F) -> _F:
    """Unit vectors along the last axis; zero-length vectors stay zero."""
    v = np.asarray(v, dtype=np.float64)
    n = length(v)[..., None]
    return np.divide(v, n, out=np.zeros_like(v), where=n > 0.0)


def clamp(x: _F, lo: float | _F, hi: float | _F) -> _F:
    """Clamp *x* element-wise to ``[lo, hi]``."""
    return np.minimum(np.maximum(x, lo), hi)


def rotation_matrix(angle: float, axis: Sequence[float]) -> _F:
    """``(3, 3)`` matrix rotating by *angle* radians about *axis* (Rodrigues).

    Raises :class:`ValueError` for a zero-length axis.
    """
    v = np.asarray(axis, dtype=np.float64)
    n = float(np.linalg.norm(v))
    if n == 0.0:
        raise ValueError("rotation axis must be non-zero")
    x, y, z = v / n
    s = np.sin(angle)
    c = np.cos(angle)
    m = 1.0 - c
    return np.array([
        [m * x * x + c,     m * x * y - z * s, m * z * x + y * s],
        [m * x * y + z * s, m * y * y + c,     m * y * z - x * s],
        [m * z * x - y * s, m * y * z + x * s, m * z * z + c],
    ])


# ===========================================================================
# Shared boolean / domain operators
# ===========================================================================

def opUnion(d1: _F, d2: _F) -> _F:
    """Union of two SDFs: ``min(d1, d2)``."""
    return np.minimum(d1, d2)


def opDifference(d1: _F, d2: _F) -> _F:
    """Subtract *d2* from *d1*: ``max(d1, -d2)``."""
    return np.maximum(d1, -d2)


def opIntersection(d1: _F, d2: _F) -> _F:
    """Intersection of two SDFs: ``max(d1, d2)``."""
    return np.maximum(d1, d2)


def opScale(p: _F, s: float, primitive: "_SDFFunc") -> _F:  # type: ignore[name-defined]
    """Uniformly scale a primitive by factor *s*."""
    return primitive(p / s) * s
