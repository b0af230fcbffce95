"""STL mesh codec.

Binary layout
-------------
80-byte header, little-endian ``uint32`` triangle count, then one 50-byte
record per triangle: ``float32[3]`` normal, ``float32[3][3]`` vertices and a
``uint16`` attribute word.

Colors use the common 15-bit convention of the attribute word: bit 15 set
means "valid color", bits 10–14 red, 5–9 green, 0–4 blue, each channel
quantised to ``round(clip(c, 0, 1) * 31)``.  Triangles without a color get
an attribute of zero.
"""

from __future__ import annotations

import logging
import struct
from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np

from _sdf_common import normalize

logger = logging.getLogger(__name__)

_HEADER_SIZE = 80
_RECORD_DTYPE = np.dtype([
    ("normal", "<f4", (3,)),
    ("vertices", "<f4", (3, 3)),
    ("attr", "<u2"),
])
_COLOR_VALID = 1 << 15


# ---------------------------------------------------------------------------
# Colors
# ---------------------------------------------------------------------------

def encode_colors(colors: np.ndarray) -> np.ndarray:
    """Pack ``(N, 3)`` RGB floats into ``(N,)`` uint16 attribute words."""
    q = np.rint(np.clip(np.asarray(colors, dtype=np.float64), 0.0, 1.0) * 31).astype(np.uint16)
    return (_COLOR_VALID | (q[:, 0] << 10) | (q[:, 1] << 5) | q[:, 2]).astype(np.uint16)


def decode_colors(attrs: np.ndarray) -> np.ndarray:
    """Unpack uint16 attribute words into ``(N, 3)`` RGB floats.

    Words without the valid-color bit decode to NaN rows.
    """
    attrs = np.asarray(attrs, dtype=np.uint16)
    rgb = np.stack([(attrs >> 10) & 31, (attrs >> 5) & 31, attrs & 31], axis=-1) / 31.0
    rgb[(attrs & _COLOR_VALID) == 0] = np.nan
    return rgb


# ---------------------------------------------------------------------------
# STL loading
# ---------------------------------------------------------------------------

def load_stl(
    path: Union[str, Path],
    *,
    with_colors: bool = False,
) -> Union[np.ndarray, Tuple[np.ndarray, np.ndarray]]:
    """Load an STL file and return its triangles as a ``(F, 3, 3)`` float64 array.

    Supports both binary and ASCII STL.  Normals are discarded; only vertex
    coordinates are returned.

    Parameters
    ----------
    path:
        Path to the ``.stl`` file.
    with_colors:
        Also return the ``(F, 3)`` per-triangle colors (see
        :func:`decode_colors`).  ASCII files have no colors, so every row
        is NaN.

    Returns
    -------
    numpy.ndarray
        Shape ``(F, 3, 3)`` where ``triangles[i, j]`` is the j-th vertex of
        the i-th triangle as ``(x, y, z)``; with *with_colors* a
        ``(triangles, colors)`` tuple.
    """
    path = Path(path)
    raw = path.read_bytes()

    # Prefer the binary-size invariant: a valid binary STL satisfies
    # len(raw) == 84 + 50 * triangle_count.  This correctly handles binary
    # files whose 80-byte header happens to start with "solid" (produced by
    # some CAD tools such as SolidWorks), which would fool a keyword-only check.
    if len(raw) >= 84:
        count = struct.unpack_from("<I", raw, _HEADER_SIZE)[0]
        if len(raw) == 84 + 50 * count:
            triangles, attrs = _load_binary_stl(raw)
            logger.debug("binary STL %s: %d triangles", path, len(triangles))
            return (triangles, decode_colors(attrs)) if with_colors else triangles

    triangles = _load_ascii_stl(raw.decode("ascii", errors="replace"))
    logger.debug("ASCII STL %s: %d triangles", path, len(triangles))
    if with_colors:
        return triangles, np.full((len(triangles), 3), np.nan)
    return triangles


def _load_binary_stl(raw: bytes) -> Tuple[np.ndarray, np.ndarray]:
    """Parse a binary STL bytestring into vertices and attribute words."""
    count = struct.unpack_from("<I", raw, _HEADER_SIZE)[0]
    records = np.frombuffer(raw, dtype=_RECORD_DTYPE, count=count, offset=84)
    return records["vertices"].astype(np.float64), records["attr"].copy()


def _load_ascii_stl(text: str) -> np.ndarray:
    """Parse an ASCII STL string."""
    verts: list[list[float]] = []
    for line in text.splitlines():
        line = line.strip()
        if line.startswith("vertex"):
            parts = line.split()
            verts.append([float(parts[1]), float(parts[2]), float(parts[3])])
    arr = np.array(verts, dtype=np.float64).reshape(-1, 3)  # (F*3, 3)
    if len(arr) % 3:
        raise ValueError(f"ASCII STL has {len(arr)} vertices, not a multiple of 3")
    return arr.reshape(-1, 3, 3)


# ---------------------------------------------------------------------------
# STL writing
# ---------------------------------------------------------------------------

def save_stl(
    path: Union[str, Path],
    points: np.ndarray,
    colors: Optional[np.ndarray] = None,
) -> None:
    """Write triangles to a binary STL file.

    Parameters
    ----------
    path:
        Destination; parent directories are created as needed.
    points:
        ``(3F, 3)`` or ``(F, 3, 3)`` triangle vertices.
    colors:
        Optional ``(K, 3)`` RGB colors for the first ``K`` triangles; the
        rest are written uncolored.

    The whole file image is built in memory before the file is opened, so an
    encoding failure never leaves a truncated file behind.
    """
    path = Path(path)
    tris = np.asarray(points, dtype=np.float64).reshape(-1, 3, 3)
    count = len(tris)

    records = np.zeros(count, dtype=_RECORD_DTYPE)
    records["vertices"] = tris
    records["normal"] = normalize(np.cross(tris[:, 1] - tris[:, 0], tris[:, 2] - tris[:, 0]))
    if colors is not None and len(colors):
        colors = np.asarray(colors, dtype=np.float64).reshape(-1, 3)[:count]
        records["attr"][:len(colors)] = encode_colors(colors)

    image = bytearray(84 + 50 * count)
    struct.pack_into("<I", image, _HEADER_SIZE, count)
    image[84:] = records.tobytes()

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(bytes(image))
    logger.info("wrote %d triangles to %s", count, path)
