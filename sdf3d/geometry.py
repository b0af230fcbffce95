"""3D geometry primitives, boolean operations and colors for signed distance functions."""

from __future__ import annotations

import functools
from typing import Callable, Optional, Sequence, Union

import numpy as np
import numpy.typing as npt

from . import sdf_lib as sdf

# ---------------------------------------------------------------------------
# Type aliases
# ---------------------------------------------------------------------------
_Array = npt.NDArray[np.floating]
_SDFFunc = Callable[[_Array], _Array]
_ColorFunc = Callable[[_Array], _Array]
ColorSpec = Union[int, str, Sequence[float]]

DEFAULT_COLOR = (1.0, 1.0, 1.0)


# ===========================================================================
# Colors
# ===========================================================================

def parse_color(value: ColorSpec) -> _Array:
    """Return *value* as an ``(3,)`` RGB array in ``[0, 1]``.

    Accepts a packed 24-bit integer (``0x3498DB``), a hex string
    (``"0x3498DB"`` or ``"#3498DB"``) or an ``(r, g, b)`` float triple.
    """
    if isinstance(value, str):
        text = value.strip().lower()
        if text.startswith("#"):
            text = text[1:]
        elif text.startswith("0x"):
            text = text[2:]
        try:
            value = int(text, 16)
        except ValueError:
            raise ValueError(f"invalid color string {value!r}") from None
    if isinstance(value, (int, np.integer)):
        if not 0 <= value <= 0xFFFFFF:
            raise ValueError(f"packed color out of range: {value:#x}")
        return np.array([(value >> 16) & 0xFF, (value >> 8) & 0xFF, value & 0xFF],
                        dtype=np.float64) / 255.0
    rgb = np.asarray(value, dtype=np.float64)
    if rgb.shape != (3,):
        raise ValueError(f"expected an (r, g, b) triple, got shape {rgb.shape}")
    return rgb


def _constant_color(rgb: _Array) -> _ColorFunc:
    def _color(p: _Array) -> _Array:
        return np.broadcast_to(rgb, np.shape(p)[:-1] + (3,))

    return _color


def _pick(mask: _Array, a: _Array, b: _Array) -> _Array:
    return np.where(np.asarray(mask)[..., None], a, b)


# ===========================================================================
# Base class
# ===========================================================================

class Geometry3D:
    """Base class for 3D signed-distance-function geometries.

    A ``Geometry3D`` wraps a callable ``func(p) -> distances`` where *p* is
    a ``(..., 3)`` array of 3D points and the return value is a ``(...)``
    array of signed distances, paired with a color callable returning
    ``(..., 3)`` RGB values.

    Values are immutable: every operation returns a new geometry that
    captures its operands.

    Implements:
    - Boolean operations: :meth:`union`, :meth:`subtract`, :meth:`intersect`
    - Transforms:         :meth:`translate`, :meth:`scale`, :meth:`rotate`,
                          :meth:`rotate_x`, :meth:`rotate_y`, :meth:`rotate_z`
    - Colors:             :meth:`color`, :meth:`color_at`
    - Operators:          ``|`` union, ``-`` difference or translation,
                          ``&`` intersection, ``+`` translation, ``*`` scale
    """

    def __init__(self, func: _SDFFunc, color_func: Optional[_ColorFunc] = None) -> None:
        self._func = func
        self._color_func = color_func or _constant_color(np.array(DEFAULT_COLOR))

    def sdf(self, p: _Array) -> _Array:
        """Evaluate signed distance at *p* (shape ``(..., 3)``)."""
        return self._func(p)

    def __call__(self, p: _Array) -> _Array:
        return self._func(p)

    def color_at(self, p: _Array) -> _Array:
        """Evaluate the RGB color at *p*; returns shape ``(..., 3)``."""
        return self._color_func(p)

    def color(self, value: ColorSpec) -> Geometry3D:
        """Return this shape with a constant color override."""
        return Geometry3D(self._func, _constant_color(parse_color(value)))

    # ------------------------------------------------------------------
    # Boolean operations
    # ------------------------------------------------------------------

    def union(self, other: Geometry3D) -> Geometry3D:
        """Return the union (min) of this shape and *other*.

        The color comes from whichever operand is nearer; ties go to *other*.
        """
        def _color(p: _Array) -> _Array:
            return _pick(self.sdf(p) < other.sdf(p), self.color_at(p), other.color_at(p))

        return Geometry3D(lambda p: sdf.opUnion(self.sdf(p), other.sdf(p)), _color)

    def subtract(self, other: Geometry3D) -> Geometry3D:
        """Subtract *other* from this shape: ``max(a, -b)``."""
        def _color(p: _Array) -> _Array:
            return _pick(self.sdf(p) > -other.sdf(p), self.color_at(p), other.color_at(p))

        return Geometry3D(lambda p: sdf.opDifference(self.sdf(p), other.sdf(p)), _color)

    def intersect(self, other: Geometry3D) -> Geometry3D:
        """Return the intersection (max) of this shape and *other*."""
        def _color(p: _Array) -> _Array:
            return _pick(self.sdf(p) > other.sdf(p), self.color_at(p), other.color_at(p))

        return Geometry3D(lambda p: sdf.opIntersection(self.sdf(p), other.sdf(p)), _color)

    # ------------------------------------------------------------------
    # Transforms
    # ------------------------------------------------------------------

    def translate(self, tx: float, ty: float, tz: float) -> Geometry3D:
        """Translate by ``(tx, ty, tz)``."""
        t = np.array([tx, ty, tz], dtype=np.float64)
        return Geometry3D(
            lambda p: sdf.opTranslate(p, t, self.sdf),
            lambda p: sdf.opTranslate(p, t, self.color_at),
        )

    def scale(self, s: float) -> Geometry3D:
        """Uniformly scale by factor *s*.

        Only scalar factors are accepted; a non-uniform scale would break the
        distance property the extraction skip relies on.
        """
        if np.ndim(s) != 0:
            raise ValueError("scale factor must be a scalar")
        s = float(s)
        if s == 0.0:
            raise ValueError("scale factor must be non-zero")
        return Geometry3D(
            lambda p: sdf.opScale(p, s, self.sdf),
            lambda p: self.color_at(p / s),
        )

    def rotate(self, angle_rad: float, axis: Sequence[float] = (0.0, 0.0, 1.0)) -> Geometry3D:
        """Rotate by *angle_rad* radians around *axis* (through the origin)."""
        rot = sdf.rotation_matrix(angle_rad, axis)
        origin = np.zeros(3)
        return Geometry3D(
            lambda p: sdf.opTx(p, rot, origin, self.sdf),
            lambda p: sdf.opTx(p, rot, origin, self.color_at),
        )

    def rotate_x(self, angle_rad: float) -> Geometry3D:
        """Rotate around the X axis by *angle_rad* radians."""
        return self.rotate(angle_rad, sdf.X_AXIS)

    def rotate_y(self, angle_rad: float) -> Geometry3D:
        """Rotate around the Y axis by *angle_rad* radians."""
        return self.rotate(angle_rad, sdf.Y_AXIS)

    def rotate_z(self, angle_rad: float) -> Geometry3D:
        """Rotate around the Z axis by *angle_rad* radians."""
        return self.rotate(angle_rad, sdf.Z_AXIS)

    # ------------------------------------------------------------------
    # Operators
    # ------------------------------------------------------------------

    def __or__(self, other: Geometry3D) -> Geometry3D:
        return self.union(other)

    def __and__(self, other: Geometry3D) -> Geometry3D:
        return self.intersect(other)

    def __sub__(self, other):
        if isinstance(other, Geometry3D):
            return self.subtract(other)
        tx, ty, tz = np.asarray(other, dtype=np.float64)
        return self.translate(-tx, -ty, -tz)

    def __add__(self, offset: Sequence[float]) -> Geometry3D:
        tx, ty, tz = np.asarray(offset, dtype=np.float64)
        return self.translate(tx, ty, tz)

    def __mul__(self, factor: float) -> Geometry3D:
        return self.scale(factor)


# ===========================================================================
# Primitive shapes
# ===========================================================================

class Sphere3D(Geometry3D):
    """Sphere with given *radius* centred at *center*."""

    def __init__(self, radius: float = 1.0, center: Sequence[float] = (0.0, 0.0, 0.0)) -> None:
        c = np.array(center, dtype=float)
        super().__init__(lambda p: sdf.sdSphere(p, radius, c))


class Box3D(Geometry3D):
    """Axis-aligned box with *half_size* ``(hx, hy, hz)`` centred at origin."""

    def __init__(self, half_size: Sequence[float] = (1.0, 1.0, 1.0)) -> None:
        b = np.array(half_size, dtype=float)
        super().__init__(lambda p: sdf.sdBox(p, b))


class Cylinder3D(Geometry3D):
    """Infinite cylinder of *radius* along the Z axis."""

    def __init__(self, radius: float = 1.0) -> None:
        super().__init__(lambda p: sdf.sdCylinder(p, radius))


class Plane3D(Geometry3D):
    """Half-space bounded by the plane through *point* with *normal*.

    The solid lies on the side the normal points to.
    """

    def __init__(
        self,
        normal: Sequence[float] = (0.0, 0.0, 1.0),
        point: Sequence[float] = (0.0, 0.0, 0.0),
    ) -> None:
        n = np.array(normal, dtype=float)
        if not np.any(n):
            raise ValueError("plane normal must be non-zero")
        o = np.array(point, dtype=float)
        super().__init__(lambda p: sdf.sdPlane(p, n, o))


# ===========================================================================
# Boolean operation classes
# ===========================================================================

class Union3D(Geometry3D):
    """Union of two or more 3-D geometries (minimum SDF)."""

    def __init__(self, *geoms: Geometry3D) -> None:
        if not geoms:
            raise ValueError("Union3D needs at least one geometry")
        g = functools.reduce(Geometry3D.union, geoms)
        super().__init__(g._func, g._color_func)


class Intersection3D(Geometry3D):
    """Intersection of two or more 3-D geometries (maximum SDF)."""

    def __init__(self, *geoms: Geometry3D) -> None:
        if not geoms:
            raise ValueError("Intersection3D needs at least one geometry")
        g = functools.reduce(Geometry3D.intersect, geoms)
        super().__init__(g._func, g._color_func)


class Difference3D(Geometry3D):
    """Subtract *cutter* from *base*."""

    def __init__(self, base: Geometry3D, cutter: Geometry3D) -> None:
        g = base.subtract(cutter)
        super().__init__(g._func, g._color_func)
