"""Render a (colored) binary or ASCII STL to a PNG with matplotlib.

Triangles carrying a valid 15-bit color are drawn in that color; the rest
use a flat steel blue.  Every face is shaded by a fixed light direction.

Usage::

    python scripts/preview_stl.py demo.stl                 # saves demo.png
    python scripts/preview_stl.py demo.stl --out view.png
    python scripts/preview_stl.py demo.stl --elev 30 --azim -60

Requirements: numpy, matplotlib
"""
from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

# Ensure the repo root (parent of scripts/) is importable regardless of cwd
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
from mpl_toolkits.mplot3d.art3d import Poly3DCollection

from stl2sdf import load_stl

_FALLBACK = np.array([0.29, 0.56, 0.85])
_LIGHT = np.array([0.577, 0.577, 0.577])


def face_colors(triangles: np.ndarray, colors: np.ndarray) -> np.ndarray:
    """RGBA per face: stored color (or fallback) times a Lambert term."""
    norms = np.cross(triangles[:, 1] - triangles[:, 0], triangles[:, 2] - triangles[:, 0])
    nlen  = np.linalg.norm(norms, axis=1, keepdims=True)
    norms = norms / np.where(nlen > 0, nlen, 1.0)
    shade = 0.3 + 0.7 * np.clip(norms @ _LIGHT, 0, 1)

    rgb = np.where(np.isnan(colors), _FALLBACK, colors)
    return np.column_stack([rgb * shade[:, None], np.ones_like(shade)])


def render(path: Path, out: Path, elev: float = 25.0, azim: float = -50.0) -> None:
    triangles, colors = load_stl(path, with_colors=True)
    if len(triangles) == 0:
        print(f"  {path} has no triangles — nothing to render.")
        return

    verts = triangles.reshape(-1, 3)
    lo, hi = verts.min(axis=0), verts.max(axis=0)
    centre = 0.5 * (lo + hi)
    half = 0.5 * float((hi - lo).max())

    fig = plt.figure(figsize=(6, 6), facecolor="#111")
    ax  = fig.add_subplot(111, projection="3d")
    ax.set_facecolor("#111"); ax.set_axis_off(); ax.set_box_aspect([1, 1, 1])
    ax.add_collection3d(Poly3DCollection(triangles, facecolors=face_colors(triangles, colors),
                                         edgecolors="none"))
    ax.set_xlim(centre[0] - half, centre[0] + half)
    ax.set_ylim(centre[1] - half, centre[1] + half)
    ax.set_zlim(centre[2] - half, centre[2] + half)
    ax.view_init(elev=elev, azim=azim)
    ax.set_title(f"{path.name} — {len(triangles):,} triangles", color="white", fontsize=10)
    plt.savefig(out, dpi=150, bbox_inches="tight", facecolor="#111")
    plt.close(fig)
    print(f"  Saved: {out}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Render an STL file to PNG")
    parser.add_argument("stl", type=Path, help="input STL")
    parser.add_argument("--out", type=Path, default=None, help="output PNG (default: <stl>.png)")
    parser.add_argument("--elev", type=float, default=25.0, help="camera elevation in degrees")
    parser.add_argument("--azim", type=float, default=-50.0, help="camera azimuth in degrees")
    args = parser.parse_args()

    render(args.stl, args.out or args.stl.with_suffix(".png"), args.elev, args.azim)


if __name__ == "__main__":
    main()
