"""3-D SDF math primitives for the sdf3d package.

Re-exports all shared helpers from :mod:`_sdf_common`, then adds the 3-D
primitive SDFs and the domain operators used by
:class:`sdf3d.geometry.Geometry3D`.

All functions accept and return ``numpy.ndarray`` objects and support
broadcasting over arbitrary leading batch dimensions.  A "point array" *p*
has shape ``(..., 3)``; scalar SDF results have shape ``(...,)``.
"""

import numpy as np

from _sdf_common import *  # noqa: F401, F403  (re-export shared helpers)
from _sdf_common import _F, length, dot


# ===========================================================================
# 3-D primitive SDFs
# ===========================================================================

def sdSphere(p: _F, s: float, c: _F = 0.0) -> _F:
    """Sphere of radius *s* centred at *c*."""
    return length(p - c) - s


def sdBox(p: _F, b: _F) -> _F:
    """Axis-aligned box with half-extents *b* ``(bx, by, bz)``."""
    q = np.abs(p) - b
    return length(np.maximum(q, 0.0)) + np.minimum(np.max(q, axis=-1), 0.0)


def sdCylinder(p: _F, r: float) -> _F:
    """Infinite cylinder of radius *r* along the Z axis."""
    return length(p[..., :2]) - r


def sdPlane(p: _F, n: _F, o: _F) -> _F:
    """Half-space bounded by the plane through *o* with normal *n*.

    The solid lies on the side *n* points to (negative there).  *n* need
    not be unit length.
    """
    n = n / np.linalg.norm(n)
    return dot(o - p, n)


# ===========================================================================
# Domain operators
# ===========================================================================

def opTranslate(p: _F, t: _F, primitive3d: "_SDFFunc") -> _F:  # type: ignore[name-defined]
    """Evaluate the primitive moved by *t*."""
    return primitive3d(p - t)


def opTx(p: _F, rot: _F, trans: _F, primitive3d: "_SDFFunc") -> _F:  # type: ignore[name-defined]
    """Apply rotation *rot* and translation *trans* to the primitive.

    *rot* is a ``(3, 3)`` rotation matrix; the inverse (transpose) is applied
    to transform the query point into the primitive's local frame.
    """
    inv_rot = rot.T
    q = (p - trans) @ inv_rot.T
    return primitive3d(q)
