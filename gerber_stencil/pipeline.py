"""
Gerber to stencil STL conversion: parse, rasterize, extrude, export.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Tuple, Union

from .export import write_png, write_stl
from .extrude import Solid, extrude_field
from .gerber import Drawing, parse_gerber_file
from .preview import drawing_geometry, write_svg
from .raster import DEFAULT_MAX_PIXELS, Bounds, OccupancyField, render

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class EmptyMeshError(RuntimeError):
    pass


@dataclass
class RenderOptions:
    height_mm: float = 0.2
    dpi: float = 1000.0
    bounds: Optional[Bounds] = None
    keep_png: bool = False
    png_path: Optional[Path] = None
    svg_path: Optional[Path] = None
    ascii_stl: bool = False
    max_pixels: int = DEFAULT_MAX_PIXELS

    def __post_init__(self):
        if self.height_mm <= 0:
            raise ValueError(f"Stencil height must be positive, got {self.height_mm}")
        if self.dpi <= 0:
            raise ValueError(f"DPI must be positive, got {self.dpi}")


@dataclass
class ConversionResult:
    drawing: Drawing
    field: OccupancyField
    solid: Solid
    stl_path: Path
    png_path: Optional[Path] = None
    svg_path: Optional[Path] = None


def default_output_path(gerber_path: PathLike, suffix: str = ".stl") -> Path:
    return Path(gerber_path).with_suffix(suffix)


def build_solid(drawing: Drawing, options: RenderOptions) -> Tuple[OccupancyField, Solid]:
    """Rasterize and extrude an already parsed drawing."""
    field = render(drawing, dpi=options.dpi, bounds=options.bounds, max_pixels=options.max_pixels)
    solid = extrude_field(field, options.height_mm)
    return field, solid


def convert(
    gerber_path: PathLike,
    out_path: Optional[PathLike] = None,
    options: Optional[RenderOptions] = None,
    report: Optional[Callable[[str], None]] = None,
) -> ConversionResult:
    options = options or RenderOptions()
    report = report or logger.info
    stl_path = Path(out_path) if out_path is not None else default_output_path(gerber_path)

    report(f"Parsing {gerber_path}...")
    drawing = parse_gerber_file(gerber_path)
    if drawing.anomalies:
        logger.warning("Skipped %d unsupported or malformed Gerber blocks", len(drawing.anomalies))

    svg_path = None
    if options.svg_path is not None:
        svg_path = write_svg(drawing_geometry(drawing), options.svg_path, unit=drawing.state.units.value.lower())
        report(f"Wrote preview SVG: {svg_path}")

    report("Rendering and generating mesh...")
    field, solid = build_solid(drawing, options)

    png_path = None
    if options.keep_png or options.png_path is not None:
        png_path = write_png(field, options.png_path or default_output_path(gerber_path, ".png"))
        report(f"Saved intermediate PNG to {png_path}")

    if solid.is_empty:
        raise EmptyMeshError("Mesh generation failed (no stencil material left after rendering).")

    report(f"Saving to {stl_path} ({solid.triangle_count} triangles)...")
    write_stl(solid, stl_path, ascii=options.ascii_stl)
    return ConversionResult(
        drawing=drawing,
        field=field,
        solid=solid,
        stl_path=stl_path,
        png_path=png_path,
        svg_path=svg_path,
    )
