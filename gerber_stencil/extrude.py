"""
Mesh extrusion of an occupancy field.

Each raster row is split into maximal runs of solid pixels and every run becomes
one closed box of the requested height. Touching boxes keep all of their faces,
so every box is a closed manifold on its own.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Tuple

import numpy as np
import trimesh

from .raster import OccupancyField

logger = logging.getLogger(__name__)

# Box corners are indexed as p000, p100, p110, p010, p001, p101, p111, p011.
# Each quad (a, b, c, d) becomes triangles (a, b, c) and (c, d, a), wound outward.
_BOX_QUADS = (
    (0, 3, 2, 1),  # bottom
    (5, 6, 7, 4),  # top
    (0, 1, 5, 4),  # front
    (1, 2, 6, 5),  # right
    (2, 3, 7, 6),  # back
    (3, 0, 4, 7),  # left
)
BOX_FACES = np.array(
    [tri for a, b, c, d in _BOX_QUADS for tri in ((a, b, c), (c, d, a))],
    dtype=np.int64,
)
TRIANGLES_PER_BOX = len(BOX_FACES)


@dataclass
class Solid:
    triangles: np.ndarray  # (N, 3, 3) float64
    box_count: int = 0

    @property
    def triangle_count(self) -> int:
        return int(self.triangles.shape[0])

    @property
    def is_empty(self) -> bool:
        return self.triangle_count == 0

    @property
    def bounds(self) -> np.ndarray:
        """(2, 3) array of min and max corners."""
        if self.is_empty:
            return np.zeros((2, 3))
        pts = self.triangles.reshape(-1, 3)
        return np.vstack([pts.min(axis=0), pts.max(axis=0)])

    @property
    def extents(self) -> np.ndarray:
        b = self.bounds
        return b[1] - b[0]

    def to_trimesh(self) -> trimesh.Trimesh:
        # process=False keeps the triangle soup and its vertex order untouched.
        vertices = self.triangles.reshape(-1, 3)
        faces = np.arange(len(vertices), dtype=np.int64).reshape(-1, 3)
        return trimesh.Trimesh(vertices=vertices, faces=faces, process=False)


def find_runs(solid: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Maximal horizontal runs of True pixels.

    Returns (row, start, end) arrays in row-major order; end is exclusive.
    """
    rows, cols = solid.shape
    padded = np.zeros((rows, cols + 2), dtype=np.int8)
    padded[:, 1:-1] = solid
    edges = np.diff(padded, axis=1)
    run_rows, starts = np.nonzero(edges == 1)
    _, ends = np.nonzero(edges == -1)
    return run_rows, starts, ends


def _boxes(x0, y0, x1, y1, height: float) -> np.ndarray:
    x0, y0, x1, y1 = (np.atleast_1d(np.asarray(v, dtype=np.float64)) for v in (x0, y0, x1, y1))
    n = x0.shape[0]
    z0 = np.zeros(n)
    z1 = np.full(n, float(height))
    corners = np.stack(
        [
            np.stack([x0, y0, z0], axis=-1),
            np.stack([x1, y0, z0], axis=-1),
            np.stack([x1, y1, z0], axis=-1),
            np.stack([x0, y1, z0], axis=-1),
            np.stack([x0, y0, z1], axis=-1),
            np.stack([x1, y0, z1], axis=-1),
            np.stack([x1, y1, z1], axis=-1),
            np.stack([x0, y1, z1], axis=-1),
        ],
        axis=1,
    )
    return corners[:, BOX_FACES].reshape(-1, 3, 3)


def box_triangles(x: float, y: float, w: float, h: float, height: float) -> np.ndarray:
    """The 12 triangles of one axis-aligned box standing on z=0."""
    return _boxes(x, y, x + w, y + h, height)


def extrude_field(field: OccupancyField, height_mm: float) -> Solid:
    rows = field.solid.shape[0]
    pitch = field.pixel_size_mm
    run_rows, starts, ends = find_runs(field.solid)

    # Row 0 is the top of the raster; flip so the mesh keeps the drawing's Y-up orientation.
    y0 = (rows - 1 - run_rows) * pitch
    triangles = _boxes(starts * pitch, y0, ends * pitch, y0 + pitch, height_mm)

    logger.info("Extruded %d runs into %d triangles", run_rows.size, triangles.shape[0])
    return Solid(triangles=triangles, box_count=int(run_rows.size))
