from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional, Sequence

from .gerber import GerberReadError
from .pipeline import EmptyMeshError, RenderOptions, convert, default_output_path
from .raster import DEFAULT_MAX_PIXELS, Bounds, InvalidBoundsError, RasterTooLargeError


def parse_args(argv: Optional[Sequence[str]] = None):
    p = argparse.ArgumentParser(description="Convert a Gerber paste/copper layer into a 3D printable stencil STL.")
    p.add_argument("gerber", type=str, help="Path to the Gerber file (e.g. board.GTP).")

    p.add_argument("--out", "-o", type=str, default=None,
                   help="Output STL path. Defaults to the Gerber path with an .stl suffix.")
    p.add_argument("--height", "--plate-thickness", dest="height", type=float, default=0.2,
                   help="Stencil height (mm).")
    p.add_argument("--dpi", type=float, default=1000.0,
                   help="Raster resolution. Higher DPI = smoother curves, more triangles.")
    p.add_argument("--bounds", type=float, nargs=4, metavar=("MINX", "MINY", "MAXX", "MAXY"), default=None,
                   help="Explicit drawing bounds in Gerber units, skips automatic bounds.")
    p.add_argument("--max-pixels", type=int, default=DEFAULT_MAX_PIXELS,
                   help="Refuse to allocate rasters larger than this many pixels.")

    # Output / debug
    p.add_argument("--keep-png", "--kp", action="store_true",
                   help="Save the intermediate raster next to the Gerber file.")
    p.add_argument("--png", type=str, default=None, help="Write the intermediate raster to this path.")
    p.add_argument("--debug-svg", type=str, default=None, help="Write SVG of the vector aperture geometry.")
    p.add_argument("--ascii", action="store_true", help="Write ASCII STL instead of binary.")
    p.add_argument("--verbose", "-v", action="count", default=0, help="More logging (-vv for debug).")
    return p.parse_args(argv)


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    _configure_logging(args.verbose)

    gerber_path = Path(args.gerber)
    if not gerber_path.exists():
        raise SystemExit(f"Gerber file not found: {gerber_path}")

    try:
        options = RenderOptions(
            height_mm=args.height,
            dpi=args.dpi,
            bounds=Bounds(*args.bounds) if args.bounds else None,
            keep_png=args.keep_png,
            png_path=Path(args.png) if args.png else None,
            svg_path=Path(args.debug_svg) if args.debug_svg else None,
            ascii_stl=args.ascii,
            max_pixels=args.max_pixels,
        )
    except ValueError as e:
        raise SystemExit(f"Invalid option: {e}")

    out_path = Path(args.out) if args.out else default_output_path(gerber_path)
    try:
        result = convert(gerber_path, out_path, options, report=print)
    except GerberReadError as e:
        raise SystemExit(f"Error parsing gerber: {e}")
    except (RasterTooLargeError, InvalidBoundsError) as e:
        raise SystemExit(f"Error rendering gerber: {e}")
    except EmptyMeshError as e:
        raise SystemExit(str(e))

    print(f"Wrote STL: {result.stl_path.resolve()}")
    print(f"Extents (mm): {result.solid.extents}")
    return 0
