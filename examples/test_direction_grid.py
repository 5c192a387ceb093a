#!/usr/bin/env python3
"""
Tests for DirectionGrid construction and the field-of-view helper.
"""

import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import math
import numpy as np
import pytest
from panorama_engine.direction_grid import DirectionGrid, focal_distance_from_fov
from panorama_engine.errors import InvalidDimensionError
from panorama_engine.vector3d import Vector3D

FOV = math.radians(110)


def test_grid_shape_and_unit_length():
  """Every entry of the grid is a unit vector and the grid has the viewport size."""
  grid = DirectionGrid.build(64, 48, focal_distance_from_fov(64, FOV))

  assert grid.shape == (64, 48)
  assert grid.vectors.shape == (48, 64, 3)
  norms = np.linalg.norm(grid.vectors, axis=-1)
  assert np.allclose(norms, 1.0, atol=1e-12)


def test_center_pixel_points_forward():
  """The optical center of an 800x400 grid looks straight down +Z."""
  grid = DirectionGrid.build(800, 400, focal_distance_from_fov(800, FOV))
  center = grid[400, 200]

  assert center.x == pytest.approx(0.0, abs=1e-3)
  assert center.y == pytest.approx(0.0, abs=1e-3)
  assert center.z == pytest.approx(1.0, abs=1e-3)


def test_grid_indexing_is_column_first():
  """grid[x, y] matches the raw ray (x - w//2, y - h//2, d) normalized."""
  d = focal_distance_from_fov(800, FOV)
  grid = DirectionGrid.build(800, 600, d)

  raw = Vector3D(300 - 400, 200 - 300, d).normalize()
  v = grid.vector_at(300, 200)
  assert v.x == pytest.approx(raw.x, abs=1e-12)
  assert v.y == pytest.approx(raw.y, abs=1e-12)
  assert v.z == pytest.approx(raw.z, abs=1e-12)
  assert grid[300, 200] == v


def test_odd_size_uses_integer_half_width():
  """For odd sizes the center is at (width // 2, height // 2)."""
  grid = DirectionGrid.build(5, 3, 10.0)
  assert grid[2, 1] == Vector3D(0.0, 0.0, 1.0)


def test_edge_rays_span_field_of_view():
  """The leftmost ray of a 110 degree grid is about 55 degrees off axis."""
  grid = DirectionGrid.build(800, 600, focal_distance_from_fov(800, FOV))
  left = grid[0, 300]
  assert math.degrees(math.atan2(-left.x, left.z)) == pytest.approx(55.0, abs=0.01)


def test_grid_is_read_only():
  grid = DirectionGrid.build(8, 8, 4.0)
  with pytest.raises(ValueError):
    grid.vectors[0, 0, 0] = 5.0


def test_out_of_range_lookup_raises_index_error():
  grid = DirectionGrid.build(8, 6, 4.0)
  assert not grid.contains(8, 0)
  with pytest.raises(IndexError):
    grid.vector_at(8, 0)
  with pytest.raises(IndexError):
    grid.vector_at(0, -1)


@pytest.mark.parametrize("width, height", [(0, 10), (10, 0), (-5, 10), (10, -1), (2.5, 10), (True, 4)])
def test_invalid_dimensions_raise(width, height):
  """Non-positive or non-integer sizes never produce an empty grid."""
  with pytest.raises(InvalidDimensionError):
    DirectionGrid.build(width, height, 100.0)


@pytest.mark.parametrize("focal_distance", [0.0, -1.0, float('nan'), float('inf')])
def test_invalid_focal_distance_raises(focal_distance):
  with pytest.raises(ValueError):
    DirectionGrid.build(10, 10, focal_distance)


def test_focal_distance_from_fov():
  assert focal_distance_from_fov(800, math.radians(90)) == pytest.approx(400.0)
  assert focal_distance_from_fov(800, FOV) == pytest.approx(400 / math.tan(FOV / 2))

  with pytest.raises(ValueError):
    focal_distance_from_fov(800, 0.0)
  with pytest.raises(ValueError):
    focal_distance_from_fov(800, math.pi)
  with pytest.raises(InvalidDimensionError):
    focal_distance_from_fov(0, FOV)
