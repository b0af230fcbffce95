"""Command line front end: ``python -m sdf3d``.

Usage
-----
python -m sdf3d mesh part.stl -o remeshed.stl --half-extents 320 320 520 \\
    --offset 0 0 24 --scale 10 --cut-angle 22.5
python -m sdf3d demo --radius 40 -o demo.stl
python -m sdf3d mesh part.stl --config run.json --workers 4

Flags given on the command line override values from ``--config``.
"""

from __future__ import annotations

import argparse
import logging
import math
import sys
from pathlib import Path
from typing import List, Optional

from stl2sdf import save_stl, stl_to_geometry

from .config import ExtractionConfig
from .extract import extract_mesh
from .geometry import Box3D, Cylinder3D, Geometry3D, Plane3D, Sphere3D
from .workers import timed

logger = logging.getLogger(__name__)

MESH_COLOR = 0x3498DB
CUT_COLOR = 0xE74C3C


def build_mesh_field(args: argparse.Namespace) -> Geometry3D:
    """STL distance field, moved into lattice units and optionally cut."""
    geom = stl_to_geometry(args.input)
    if args.offset is not None:
        ox, oy, oz = args.offset
        geom = geom.translate(-ox, -oy, -oz)
    if args.scale != 1.0:
        geom = geom.scale(args.scale)
    geom = geom.color(args.color)
    if args.cut_angle is not None:
        cut = Plane3D((0.0, 1.0, 0.0)).rotate_x(math.radians(args.cut_angle)).color(CUT_COLOR)
        geom = geom & cut
    return geom


def build_demo_field(args: argparse.Namespace) -> Geometry3D:
    """Rounded cube with three orthogonal bores, each bore wall colored."""
    r = args.radius
    f = Sphere3D(r).color((0.0, 0.0, 0.0))
    f &= Box3D((0.75 * r,) * 3).color((1.0, 1.0, 1.0))
    f -= Cylinder3D(r / 2).rotate_x(math.pi / 2).color((1.0, 0.0, 0.0))
    f -= Cylinder3D(r / 2).rotate_y(math.pi / 2).color((0.0, 1.0, 0.0))
    f -= Cylinder3D(r / 2).color((0.0, 0.0, 1.0))
    if args.half:
        f &= Plane3D((0.0, 0.0, 1.0)).color((1.0, 0.0, 1.0))
    return f


def _parse_color(text: str) -> int:
    return int(text, 0)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sdf3d",
        description="Extract a colored triangle mesh from a signed distance field.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-o", "--output", type=Path, default=None, help="output STL path")
    common.add_argument("--config", type=Path, default=None, help="JSON extraction config")
    common.add_argument("--half-extents", type=int, nargs=3, metavar=("HX", "HY", "HZ"),
                        default=None, help="lattice range [-h, h) per axis")
    common.add_argument("--workers", type=int, default=None, help="worker threads")
    common.add_argument("--no-skip", action="store_true",
                        help="sample every cell instead of skipping empty space")

    sub = parser.add_subparsers(dest="command", required=True)

    mesh = sub.add_parser("mesh", parents=[common], help="remesh a binary/ASCII STL")
    mesh.add_argument("input", type=Path, help="input STL")
    mesh.add_argument("--offset", type=float, nargs=3, metavar=("X", "Y", "Z"), default=None,
                      help="subtract this point from the mesh before scaling")
    mesh.add_argument("--scale", type=float, default=1.0, help="mesh units to lattice units")
    mesh.add_argument("--color", type=_parse_color, default=MESH_COLOR,
                      help="packed 0xRRGGBB mesh color")
    mesh.add_argument("--cut-angle", type=float, default=None, metavar="DEG",
                      help="keep the side of a +Y plane turned DEG degrees about X "
                           "(right-hand rule: positive turns +Y toward +Z)")
    mesh.set_defaults(build=build_mesh_field)

    demo = sub.add_parser("demo", parents=[common], help="CSG demo shape")
    demo.add_argument("-r", "--radius", type=float, default=40.0, help="sphere radius in cells")
    demo.add_argument("--half", action="store_true", help="keep only the z > 0 half")
    demo.set_defaults(build=build_demo_field)
    return parser


def resolve_config(args: argparse.Namespace) -> ExtractionConfig:
    """Merge ``--config`` with explicit flags."""
    config = ExtractionConfig.from_json(args.config) if args.config else ExtractionConfig()
    if args.half_extents is not None:
        config.half_extents = tuple(args.half_extents)
        config.bounds = None
    elif args.config is None and args.command == "demo":
        h = int(math.ceil(args.radius)) + 1
        config.half_extents = (h, h, h)
    if args.workers is not None:
        config.workers = args.workers
    if args.no_skip:
        config.skip = False
    if args.output is not None:
        config.output = args.output
    return config


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = resolve_config(args)
    logger.debug("config: %s", config.to_dict())
    with timed("initializing"):
        geom = args.build(args)

    result = extract_mesh(
        geom,
        config.lattice_bounds(),
        workers=config.workers,
        skip=config.skip,
        iso_level=config.iso_level,
    )

    with timed("writing output"):
        save_stl(config.output, result.points, result.colors)
    return 0


if __name__ == "__main__":
    sys.exit(main())
