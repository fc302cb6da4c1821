"""Writers for the finished stencil mesh and the intermediate raster."""

from __future__ import annotations

from pathlib import Path
from typing import Union

import numpy as np
from matplotlib import image as mpl_image

from .extrude import Solid
from .raster import OccupancyField


def write_stl(solid: Solid, path: Union[str, Path], ascii: bool = False) -> Path:
    """Export the triangle soup as STL, preserving vertex order per triangle."""
    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    mesh = solid.to_trimesh()
    mesh.export(out_path.as_posix(), file_type="stl_ascii" if ascii else "stl")
    return out_path


def write_png(field: OccupancyField, path: Union[str, Path]) -> Path:
    """Material black, openings white."""
    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    pixels = np.where(field.solid, 0, 255).astype(np.uint8)
    mpl_image.imsave(out_path.as_posix(), pixels, cmap="gray", vmin=0, vmax=255)
    return out_path
