"""
Rasterizer: replays the geometry commands with a simulated pen and stamps the
aperture shapes into a boolean occupancy field.

The field starts as solid material (True); every flash or draw clears the
pixels covered by the aperture, leaving the stencil openings.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import numpy as np

from .apertures import (
    MM_PER_INCH,
    Aperture,
    CircleAperture,
    MacroAperture,
    MacroCenterLine,
    MacroCircle,
    ObroundAperture,
    RectangleAperture,
    Units,
)
from .gerber import DrawTo, Drawing, FlashAt, InterpreterState, SelectAperture

logger = logging.getLogger(__name__)

PADDING_MM = 2.0
DEFAULT_EXTENT_MM = 10.0
DEFAULT_MAX_PIXELS = 200_000_000


class RasterTooLargeError(RuntimeError):
    def __init__(self, width: int, height: int, limit: int):
        super().__init__(
            f"Raster of {width}x{height} pixels exceeds the limit of {limit} pixels. "
            "Lower the DPI or restrict the bounds."
        )
        self.width = width
        self.height = height
        self.limit = limit


class InvalidBoundsError(ValueError):
    pass


@dataclass(frozen=True)
class Bounds:
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    def padded(self, margin: float) -> "Bounds":
        return Bounds(self.min_x - margin, self.min_y - margin, self.max_x + margin, self.max_y + margin)


@dataclass
class OccupancyField:
    solid: np.ndarray  # (rows, cols) bool, True where material remains
    bounds: Bounds
    pixels_per_unit: float
    pixel_size_mm: float

    @property
    def shape(self) -> Tuple[int, int]:
        return self.solid.shape

    @property
    def solid_count(self) -> int:
        return int(np.count_nonzero(self.solid))

    @property
    def clear_count(self) -> int:
        return int(self.solid.size - np.count_nonzero(self.solid))


def pixels_per_unit(units: Units, dpi: float) -> float:
    return dpi if units is Units.IN else dpi / MM_PER_INCH


def compute_bounds(drawing: Drawing) -> Bounds:
    """Extent of all flash points and draw endpoints, padded on every side."""
    units = drawing.state.units
    points: List[Tuple[float, float]] = []
    x = y = 0.0
    for cmd in drawing.commands:
        if isinstance(cmd, SelectAperture):
            continue
        prev = (x, y)
        if cmd.x is not None:
            x = cmd.x
        if cmd.y is not None:
            y = cmd.y
        if isinstance(cmd, FlashAt):
            points.append((x, y))
        elif isinstance(cmd, DrawTo):
            points.append(prev)
            points.append((x, y))

    if not points:
        extent = units.from_mm(DEFAULT_EXTENT_MM)
        bounds = Bounds(0.0, 0.0, extent, extent)
    else:
        pts = np.asarray(points, dtype=np.float64)
        lo = pts.min(axis=0)
        hi = pts.max(axis=0)
        bounds = Bounds(float(lo[0]), float(lo[1]), float(hi[0]), float(hi[1]))
    return bounds.padded(units.from_mm(PADDING_MM))


# ----------------------------
# Stamping
# ----------------------------

@dataclass(frozen=True)
class _Patch:
    # Offset of the mask's top-left pixel from the stamp centre.
    dx: int
    dy: int
    mask: np.ndarray


def _disk(ox: int, oy: int, radius: float) -> _Patch:
    r = int(math.floor(radius))
    yy, xx = np.ogrid[-r:r + 1, -r:r + 1]
    return _Patch(ox - r, oy - r, xx * xx + yy * yy <= radius * radius)


def _rect(ox: int, oy: int, w: int, h: int) -> _Patch:
    # Anything narrower than a pixel still cuts one, like a zero-size disk.
    w, h = max(w, 1), max(h, 1)
    return _Patch(ox - w // 2, oy - h // 2, np.ones((h, w), dtype=bool))


def _combine(parts: List[Tuple[_Patch, bool]]) -> Optional[_Patch]:
    """Flatten macro primitives into one cutting mask.

    Exposure-on parts are added and exposure-off parts removed in order, so
    an off primitive only carves into its own macro and never into openings
    made by other flashes.
    """
    if not parts:
        return None
    x0 = min(p.dx for p, _ in parts)
    y0 = min(p.dy for p, _ in parts)
    x1 = max(p.dx + p.mask.shape[1] for p, _ in parts)
    y1 = max(p.dy + p.mask.shape[0] for p, _ in parts)
    mask = np.zeros((y1 - y0, x1 - x0), dtype=bool)
    for patch, exposure in parts:
        h, w = patch.mask.shape
        region = mask[patch.dy - y0:patch.dy - y0 + h, patch.dx - x0:patch.dx - x0 + w]
        region[patch.mask] = exposure
    return _Patch(x0, y0, mask)


class _Stamper:

    def __init__(self, solid: np.ndarray, state: InterpreterState, scale: float):
        self.solid = solid
        self.state = state
        self.scale = scale
        self._footprints: Dict[int, Optional[_Patch]] = {}

    def footprint(self, code: int) -> Optional[_Patch]:
        if code not in self._footprints:
            aperture = self.state.apertures.get(code)
            if aperture is None:
                logger.debug("Aperture D%d is not defined; skipping", code)
                self._footprints[code] = None
            else:
                self._footprints[code] = self._build(aperture)
        return self._footprints[code]

    def _build(self, aperture: Aperture) -> Optional[_Patch]:
        s = self.scale
        if isinstance(aperture, CircleAperture):
            return _disk(0, 0, aperture.diameter * s / 2.0)
        if isinstance(aperture, (RectangleAperture, ObroundAperture)):
            return _rect(0, 0, int(aperture.width * s), int(aperture.height * s))
        if isinstance(aperture, MacroAperture):
            macro = self.state.macros.get(aperture.name)
            if macro is None:
                logger.debug("Macro %s is not defined; skipping", aperture.name)
                return None
            parts: List[Tuple[_Patch, bool]] = []
            for prim in macro.primitives:
                # Macro offsets are Y-up, raster rows are Y-down.
                ox = int(prim.center_x * s)
                oy = -int(prim.center_y * s)
                if isinstance(prim, MacroCircle):
                    parts.append((_disk(ox, oy, prim.diameter * s / 2.0), prim.exposure))
                elif isinstance(prim, MacroCenterLine):
                    if not prim.is_axis_aligned:
                        logger.warning(
                            "Macro %s: rotation %.1f deg is drawn unrotated",
                            macro.name, prim.rotation,
                        )
                    w, h = prim.oriented_size
                    parts.append((_rect(ox, oy, int(w * s), int(h * s)), prim.exposure))
            return _combine(parts)
        return None

    def stamp(self, code: Optional[int], px: int, py: int) -> None:
        if code is None:
            return
        patch = self.footprint(code)
        if patch is None:
            return
        rows, cols = self.solid.shape
        mh, mw = patch.mask.shape
        x0, y0 = px + patch.dx, py + patch.dy
        cx0, cy0 = max(x0, 0), max(y0, 0)
        cx1, cy1 = min(x0 + mw, cols), min(y0 + mh, rows)
        if cx0 >= cx1 or cy0 >= cy1:
            return
        sub = patch.mask[cy0 - y0:cy1 - y0, cx0 - x0:cx1 - x0]
        region = self.solid[cy0:cy1, cx0:cx1]
        region[sub] = False

    def stroke(self, code: Optional[int], x1: int, y1: int, x2: int, y2: int) -> None:
        dx = float(x2 - x1)
        dy = float(y2 - y1)
        steps = int(math.hypot(dx, dy))
        if steps == 0:
            self.stamp(code, x1, y1)
            return
        for i in range(steps + 1):
            t = i / steps
            self.stamp(code, int(x1 + t * dx), int(y1 + t * dy))


# ----------------------------
# Render
# ----------------------------

def render(
    drawing: Drawing,
    dpi: float = 1000.0,
    bounds: Optional[Bounds] = None,
    max_pixels: int = DEFAULT_MAX_PIXELS,
) -> OccupancyField:
    b = bounds if bounds is not None else compute_bounds(drawing)
    if b.width <= 0 or b.height <= 0:
        raise InvalidBoundsError(f"Bounds must have a positive extent, got {b}")

    scale = pixels_per_unit(drawing.state.units, dpi)
    cols = int(b.width * scale)
    rows = int(b.height * scale)
    if cols <= 0 or rows <= 0:
        raise InvalidBoundsError(f"Bounds {b} are smaller than one pixel at {dpi} DPI")
    if cols * rows > max_pixels:
        raise RasterTooLargeError(cols, rows, max_pixels)
    try:
        solid = np.ones((rows, cols), dtype=bool)
    except MemoryError as e:
        raise RasterTooLargeError(cols, rows, max_pixels) from e

    def to_pixel(x: float, y: float) -> Tuple[int, int]:
        return int((x - b.min_x) * scale), int((b.height - (y - b.min_y)) * scale)

    stamper = _Stamper(solid, drawing.state, scale)
    x = y = 0.0
    aperture: Optional[int] = None
    for cmd in drawing.commands:
        if isinstance(cmd, SelectAperture):
            aperture = cmd.code
            continue
        prev_x, prev_y = x, y
        if cmd.x is not None:
            x = cmd.x
        if cmd.y is not None:
            y = cmd.y
        if isinstance(cmd, FlashAt):
            stamper.stamp(aperture, *to_pixel(x, y))
        elif isinstance(cmd, DrawTo):
            stamper.stroke(aperture, *to_pixel(prev_x, prev_y), *to_pixel(x, y))

    logger.info("Rendered %dx%d raster (%.3f px/%s)", cols, rows, scale, drawing.state.units.value.lower())
    return OccupancyField(
        solid=solid,
        bounds=b,
        pixels_per_unit=scale,
        pixel_size_mm=MM_PER_INCH / dpi,
    )
