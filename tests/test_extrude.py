"""Test row-run extrusion.

Tests for gerber_stencil.extrude:
    - Run detection per row (edges, empty rows, full rows)
    - Lossless merging: box footprint area == solid pixel count
    - Every box is 12 triangles forming a closed, outward-wound 6-face box
    - Z extent equals the requested height; Y keeps the drawing orientation

Run:
    pytest tests/test_extrude.py -v
"""

import numpy as np
import pytest
import trimesh

from gerber_stencil.extrude import TRIANGLES_PER_BOX, box_triangles, extrude_field, find_runs
from gerber_stencil.gerber import parse_gerber_lines
from gerber_stencil.raster import Bounds, OccupancyField, render


def make_field(solid, pixel_size_mm=0.1):
    solid = np.asarray(solid, dtype=bool)
    rows, cols = solid.shape
    return OccupancyField(
        solid=solid,
        bounds=Bounds(0.0, 0.0, cols * pixel_size_mm, rows * pixel_size_mm),
        pixels_per_unit=1.0 / pixel_size_mm,
        pixel_size_mm=pixel_size_mm,
    )


def box_areas(solid_mesh):
    boxes = solid_mesh.triangles.reshape(-1, TRIANGLES_PER_BOX * 3, 3)
    extents = boxes.max(axis=1) - boxes.min(axis=1)
    return extents[:, 0] * extents[:, 1]


def to_mesh(triangles):
    # Default processing merges the shared corners so closure can be checked.
    vertices = triangles.reshape(-1, 3)
    faces = np.arange(len(vertices)).reshape(-1, 3)
    return trimesh.Trimesh(vertices=vertices, faces=faces)


def test_find_runs():
    solid = np.array(
        [
            [1, 1, 0, 1, 0],
            [0, 0, 0, 0, 0],
            [1, 1, 1, 1, 1],
            [0, 1, 1, 0, 1],
        ],
        dtype=bool,
    )
    rows, starts, ends = find_runs(solid)
    assert list(zip(rows, starts, ends)) == [(0, 0, 2), (0, 3, 4), (2, 0, 5), (3, 1, 3), (3, 4, 5)]


@pytest.mark.parametrize("seed", [0, 1, 2])
def test_run_merging_is_lossless(seed):
    rng = np.random.default_rng(seed)
    solid = rng.random((37, 53)) < 0.6
    rows, starts, ends = find_runs(solid)
    assert int((ends - starts).sum()) == int(solid.sum())

    pitch = 0.1
    mesh = extrude_field(make_field(solid, pitch), height_mm=0.2)
    assert mesh.box_count == len(rows)
    assert mesh.triangle_count == TRIANGLES_PER_BOX * len(rows)
    assert box_areas(mesh).sum() / pitch ** 2 == pytest.approx(solid.sum())


def test_single_box_is_closed():
    tris = box_triangles(1.0, 2.0, 3.0, 0.5, 0.2)
    assert tris.shape == (12, 3, 3)

    mesh = to_mesh(tris)
    assert mesh.is_watertight
    assert mesh.is_winding_consistent
    assert mesh.volume == pytest.approx(3.0 * 0.5 * 0.2)

    normals = {tuple(np.round(n, 6)) for n in mesh.face_normals}
    assert normals == {(1, 0, 0), (-1, 0, 0), (0, 1, 0), (0, -1, 0), (0, 0, 1), (0, 0, -1)}
    np.testing.assert_allclose(mesh.bounds, [[1.0, 2.0, 0.0], [4.0, 2.5, 0.2]])


def test_each_box_of_solid_is_closed():
    solid = np.array([[1, 1, 0, 1], [1, 1, 1, 1]], dtype=bool)
    mesh = extrude_field(make_field(solid), height_mm=0.3)
    for box in mesh.triangles.reshape(-1, TRIANGLES_PER_BOX, 3, 3):
        part = to_mesh(box)
        assert part.is_watertight
        assert part.volume > 0


def test_rows_flip_to_y_up():
    # Only the top raster row is solid: it must end up at the highest Y.
    solid = np.zeros((4, 3), dtype=bool)
    solid[0, :] = True
    mesh = extrude_field(make_field(solid, 0.5), height_mm=0.2)
    np.testing.assert_allclose(mesh.bounds, [[0.0, 1.5, 0.0], [1.5, 2.0, 0.2]])


def test_empty_field_gives_empty_solid():
    mesh = extrude_field(make_field(np.zeros((3, 3), dtype=bool)), height_mm=0.2)
    assert mesh.is_empty
    assert mesh.triangles.shape == (0, 3, 3)


def test_flash_scenario_end_to_end(single_flash):
    field = render(single_flash, dpi=1000.0)
    mesh = extrude_field(field, height_mm=0.2)
    assert mesh.triangle_count > 0
    assert mesh.triangle_count % TRIANGLES_PER_BOX == 0
    assert mesh.extents[2] == pytest.approx(0.2)
    assert box_areas(mesh).sum() / field.pixel_size_mm ** 2 == pytest.approx(field.solid_count)


def test_empty_drawing_still_produces_solid():
    field = render(parse_gerber_lines([]), dpi=100.0)
    mesh = extrude_field(field, height_mm=0.2)
    assert mesh.triangle_count > 0
    assert np.all(np.isfinite(mesh.bounds))
    assert np.all(mesh.extents > 0)


def test_to_trimesh_preserves_triangle_order():
    mesh = extrude_field(make_field(np.ones((2, 2), dtype=bool)), height_mm=0.2)
    tm = mesh.to_trimesh()
    np.testing.assert_allclose(tm.triangles, mesh.triangles)
