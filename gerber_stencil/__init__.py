"""
Gerber to 3D-printable stencil conversion.
"""

from .apertures import (
    CircleAperture,
    CoordinateFormat,
    Macro,
    MacroAperture,
    MacroCenterLine,
    MacroCircle,
    ObroundAperture,
    RectangleAperture,
    Units,
)
from .export import write_png, write_stl
from .extrude import Solid, box_triangles, extrude_field, find_runs
from .gerber import (
    Anomaly,
    DrawTo,
    Drawing,
    FlashAt,
    GerberReadError,
    InterpreterState,
    MoveTo,
    SelectAperture,
    parse_coordinate,
    parse_gerber_file,
    parse_gerber_lines,
)
from .pipeline import ConversionResult, EmptyMeshError, RenderOptions, build_solid, convert
from .raster import (
    Bounds,
    InvalidBoundsError,
    OccupancyField,
    RasterTooLargeError,
    compute_bounds,
    pixels_per_unit,
    render,
)

__all__ = [
    "CircleAperture",
    "CoordinateFormat",
    "Macro",
    "MacroAperture",
    "MacroCenterLine",
    "MacroCircle",
    "ObroundAperture",
    "RectangleAperture",
    "Units",
    "write_png",
    "write_stl",
    "Solid",
    "box_triangles",
    "extrude_field",
    "find_runs",
    "Anomaly",
    "DrawTo",
    "Drawing",
    "FlashAt",
    "GerberReadError",
    "InterpreterState",
    "MoveTo",
    "SelectAperture",
    "parse_coordinate",
    "parse_gerber_file",
    "parse_gerber_lines",
    "ConversionResult",
    "EmptyMeshError",
    "RenderOptions",
    "build_solid",
    "convert",
    "Bounds",
    "InvalidBoundsError",
    "OccupancyField",
    "RasterTooLargeError",
    "compute_bounds",
    "pixels_per_unit",
    "render",
]
