"""
Vector preview of a drawing.

Builds the stencil openings as shapely geometry straight from the command list,
without rasterizing, and writes them as SVG for a quick visual check.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Union

from shapely.affinity import translate as shp_translate
from shapely.geometry import LineString, MultiPolygon, Point, Polygon, box
from shapely.ops import unary_union

from .apertures import (
    Aperture,
    CircleAperture,
    MacroAperture,
    MacroCenterLine,
    MacroCircle,
    ObroundAperture,
    RectangleAperture,
)
from .gerber import DrawTo, Drawing, FlashAt, InterpreterState, SelectAperture


def _fix_valid(geom):
    try:
        return geom.buffer(0)
    except Exception:
        return geom


def _as_polygons(geom) -> List[Polygon]:
    if geom.is_empty:
        return []
    if isinstance(geom, Polygon):
        return [geom]
    if isinstance(geom, MultiPolygon):
        return list(geom.geoms)
    try:
        return [g for g in geom.geoms if isinstance(g, Polygon)]
    except AttributeError:
        return []


def aperture_shape(aperture: Aperture, state: InterpreterState):
    """Aperture outline centred on the origin, in drawing units."""
    if isinstance(aperture, CircleAperture):
        return Point(0, 0).buffer(aperture.diameter / 2.0)
    if isinstance(aperture, (RectangleAperture, ObroundAperture)):
        w, h = aperture.width / 2.0, aperture.height / 2.0
        return box(-w, -h, w, h)
    if isinstance(aperture, MacroAperture):
        macro = state.macros.get(aperture.name)
        if macro is None:
            return Polygon()
        shape = Polygon()
        for prim in macro.primitives:
            if isinstance(prim, MacroCircle):
                part = Point(prim.center_x, prim.center_y).buffer(prim.diameter / 2.0)
            elif isinstance(prim, MacroCenterLine):
                w, h = prim.oriented_size
                part = box(
                    prim.center_x - w / 2.0, prim.center_y - h / 2.0,
                    prim.center_x + w / 2.0, prim.center_y + h / 2.0,
                )
            else:
                continue
            shape = shape.union(part) if prim.exposure else shape.difference(part)
        return shape
    return Polygon()


def _stroke(aperture: Aperture, shape, x1: float, y1: float, x2: float, y2: float):
    if (x1, y1) == (x2, y2):
        return shp_translate(shape, xoff=x2, yoff=y2)
    if isinstance(aperture, CircleAperture):
        return LineString([(x1, y1), (x2, y2)]).buffer(aperture.diameter / 2.0)
    start = shp_translate(shape, xoff=x1, yoff=y1)
    end = shp_translate(shape, xoff=x2, yoff=y2)
    return unary_union([start, end]).convex_hull


def drawing_geometry(drawing: Drawing):
    """Union of every flashed and stroked aperture."""
    state = drawing.state
    shapes = {}
    parts = []
    x = y = 0.0
    code: Optional[int] = None
    for cmd in drawing.commands:
        if isinstance(cmd, SelectAperture):
            code = cmd.code
            continue
        prev_x, prev_y = x, y
        if cmd.x is not None:
            x = cmd.x
        if cmd.y is not None:
            y = cmd.y
        if not isinstance(cmd, (FlashAt, DrawTo)) or code not in state.apertures:
            continue
        aperture = state.apertures[code]
        if code not in shapes:
            shapes[code] = aperture_shape(aperture, state)
        if shapes[code].is_empty:
            continue
        if isinstance(cmd, FlashAt):
            parts.append(shp_translate(shapes[code], xoff=x, yoff=y))
        else:
            parts.append(_stroke(aperture, shapes[code], prev_x, prev_y, x, y))
    return _fix_valid(unary_union(parts)) if parts else MultiPolygon([])


def write_svg(geom, path: Union[str, Path], unit: str = "mm") -> Path:
    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    if geom.is_empty:
        out_path.write_text("<svg xmlns='http://www.w3.org/2000/svg'></svg>", encoding="utf-8")
        return out_path
    minx, miny, maxx, maxy = geom.bounds
    w = maxx - minx
    h = maxy - miny

    def ring_to_path(coords):
        coords = list(coords)
        if coords[0] != coords[-1]:
            coords.append(coords[0])
        d = f"M {coords[0][0]-minx:.4f} {maxy-coords[0][1]:.4f} "
        for cx, cy in coords[1:]:
            d += f"L {cx-minx:.4f} {maxy-cy:.4f} "
        d += "Z "
        return d

    paths = []
    for p in _as_polygons(geom):
        d = ring_to_path(p.exterior.coords)
        for hole in p.interiors:
            d += ring_to_path(hole.coords)
        paths.append(d)

    svg = f"""<svg xmlns="http://www.w3.org/2000/svg" width="{w:.4f}{unit}" height="{h:.4f}{unit}" viewBox="0 0 {w:.4f} {h:.4f}">
  <path d="{' '.join(paths)}" fill="black" fill-rule="evenodd" />
</svg>
"""
    out_path.write_text(svg, encoding="utf-8")
    return out_path
