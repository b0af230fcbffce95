"""stl_remesh_demo.py — ISS Multi-Tool Wrench → colored remesh demo.

Downloads the Wrench.stl from NASA's public 3D-printing archive (the first
object ever 3D-printed in space, Dec 2014), turns it into a signed distance
field, cuts it with a tilted plane and re-extracts a colored triangle mesh
on an integer lattice.

Usage
-----
python examples/stl2sdf/stl_remesh_demo.py              # default --cells 96
python examples/stl2sdf/stl_remesh_demo.py --cells 48   # quick draft
python examples/stl2sdf/stl_remesh_demo.py --cut 30     # steeper cut

Outputs
-------
wrench_remesh.stl — binary STL, mesh blue and cut face red
"""

from __future__ import annotations

import argparse
import logging
import math
import sys
import urllib.request
from pathlib import Path

import numpy as np

# ---------------------------------------------------------------------------
# STL download
# ---------------------------------------------------------------------------
_WRENCH_URL = (
    "https://raw.githubusercontent.com/nasa/NASA-3D-Resources"
    "/master/3D%20Printing/Wrench/Wrench.stl"
)
_EXAMPLES_DIR = Path(__file__).parent
_LOCAL_STL = _EXAMPLES_DIR / "wrench.stl"


def _download_stl(url: str, dest: Path) -> None:
    print(f"Downloading {url} ...", flush=True)
    urllib.request.urlretrieve(url, dest)
    print(f"  Saved to {dest} ({dest.stat().st_size // 1024} KB)", flush=True)


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main() -> None:
    parser = argparse.ArgumentParser(description="Wrench STL → colored remesh demo")
    parser.add_argument(
        "--cells", type=int, default=96,
        help="Lattice cells along the longest mesh axis (default 96)"
    )
    parser.add_argument("--cut", type=float, default=22.5, help="Cut plane tilt in degrees")
    parser.add_argument(
        "--stl", type=Path, default=_LOCAL_STL,
        help="Path to STL file (downloaded if not present)"
    )
    parser.add_argument(
        "--out", type=Path, default=_EXAMPLES_DIR / "wrench_remesh.stl",
        help="Output .stl path"
    )
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    # --- ensure STL exists ---
    if not args.stl.exists():
        try:
            _download_stl(_WRENCH_URL, args.stl)
        except OSError as exc:
            print(f"ERROR: Could not download STL: {exc}", file=sys.stderr)
            print("Please download manually and pass --stl <path>", file=sys.stderr)
            sys.exit(1)

    from sdf3d import Plane3D, extract_mesh
    from stl2sdf import load_stl, save_stl, stl_to_geometry

    # --- fit the mesh bbox (+5% pad) into the lattice ---
    verts = load_stl(args.stl).reshape(-1, 3)
    lo, hi = verts.min(axis=0), verts.max(axis=0)
    centre = 0.5 * (lo + hi)
    scale = args.cells / (1.05 * float((hi - lo).max()))
    half = np.ceil(0.5 * 1.05 * (hi - lo) * scale).astype(int) + 1
    print(f"Scale {scale:.3f} cells/mm, lattice half extents {half.tolist()}", flush=True)

    part = stl_to_geometry(args.stl).translate(*(-centre)).scale(scale).color(0x3498DB)
    cut = Plane3D((0.0, 1.0, 0.0)).rotate_x(math.radians(args.cut)).color(0xE74C3C)
    geom = part & cut

    result = extract_mesh(geom, tuple((-int(h), int(h)) for h in half))
    print(f"Done.  {len(result):,} triangles", flush=True)

    save_stl(args.out, result.points, result.colors)
    print(f"Saved remeshed STL to {args.out}")


if __name__ == "__main__":
    main()
