#!/usr/bin/env python3
"""
main.py

Creates 3D-printable solder paste stencils from Gerber paste layers.

Pipeline:
- parse the RS-274X drawing into apertures, macros and pen commands
- rasterize the openings at --dpi into a solid/clear field
- merge each raster row into runs and extrude every run into a closed box

Debug outputs: --keep-png (intermediate raster), --debug-svg (vector apertures).

Dependencies:
  pip install numpy shapely matplotlib trimesh
"""

from gerber_stencil.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
