#!/usr/bin/env python3
"""
Tests for the rotation and equirectangular lookup of Projector, scalar and vectorized.
"""

import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import math
import numpy as np
import pytest
from panorama_engine.camera_plane import CameraPlane
from panorama_engine.direction_grid import focal_distance_from_fov
from panorama_engine.projector import Projector, rotate_vectors, equirectangular_maps
from panorama_engine.rotation_state import RotationState, RotationSnapshot
from panorama_engine.vector3d import Vector3D

FOV = math.radians(110)


def _random_unit_vectors(count, seed=1157):
  rng = np.random.default_rng(seed)
  vectors = rng.normal(size=(count, 3))
  return vectors / np.linalg.norm(vectors, axis=1, keepdims=True)


def test_identity_rotation_leaves_vectors_unchanged():
  projector = Projector()
  for x, y, z in _random_unit_vectors(50):
    out = projector.rotate(Vector3D(x, y, z))
    assert out.x == pytest.approx(x, abs=1e-6)
    assert out.y == pytest.approx(y, abs=1e-6)
    assert out.z == pytest.approx(z, abs=1e-6)


def test_rotation_preserves_length():
  projector = Projector(RotationState(1.1, -0.4))
  for x, y, z in _random_unit_vectors(50):
    assert projector.rotate(Vector3D(x, y, z)).length() == pytest.approx(1.0, abs=1e-12)


def test_forward_vector_maps_to_optical_axis():
  state = RotationState(0.7, 0.3)
  projector = Projector(state)
  out = projector.rotate(Vector3D(0, 0, 1))
  axis = state.get_rotation()
  assert out.x == pytest.approx(axis.x, abs=1e-12)
  assert out.y == pytest.approx(axis.y, abs=1e-12)
  assert out.z == pytest.approx(axis.z, abs=1e-12)


def test_pitch_is_applied_before_yaw():
  """A vector on the local X axis keeps y == 0: pitch turns about X before the yaw."""
  projector = Projector(RotationState(0.8, 0.6))
  out = projector.rotate(Vector3D(1, 0, 0))
  assert out.y == pytest.approx(0.0, abs=1e-12)
  assert out.x == pytest.approx(math.cos(0.8))
  assert out.z == pytest.approx(-math.sin(0.8))


def test_explicit_snapshot_overrides_current_rotation():
  state = RotationState(0.5, 0.2)
  projector = Projector(state)
  v = Vector3D(0.1, 0.2, 0.97).normalize()
  assert projector.rotate(v, RotationSnapshot.identity()) == v


def test_vectorized_rotation_matches_scalar():
  snapshot = RotationSnapshot(-1.3, 0.45)
  projector = Projector()
  vectors = _random_unit_vectors(40)
  rotated = rotate_vectors(vectors, snapshot)
  for row, out in zip(vectors, rotated):
    expected = projector.rotate(Vector3D(*row), snapshot)
    assert tuple(out) == pytest.approx(expected.to_tuple(), abs=1e-12)


def test_equirectangular_forward_hits_center():
  assert Projector.equirectangular(Vector3D(0, 0, 1), 2049, 1025) == (1024, 512)


def test_known_off_center_pixel():
  """Pixel (300, 200) of an 800x600 view looking ahead lands near (911, 405) on a 2048x1024 panorama."""
  camera = CameraPlane(800, 600, focal_distance_from_fov(800, FOV))
  camera.set_rotation(Vector3D(0, 0, 1))
  tx, ty = Projector.equirectangular(camera.get_vector3d(300, 200), 2048, 1024)
  assert abs(tx - 911) <= 1
  assert abs(ty - 405) <= 1


@pytest.mark.parametrize("u, v", [
  (0.1, 0.3), (0.25, 0.5), (0.5, 0.5), (0.62, 0.71), (0.9, 0.2), (0.75, 0.8)
])
def test_equirectangular_round_trip(u, v):
  """Directions synthesized from (u, v) project back within one pixel."""
  width, height = 2048, 1024
  lon = (u - 0.5) * 2 * math.pi
  lat = (v - 0.5) * math.pi
  direction = Vector3D(math.cos(lat) * math.sin(lon), math.sin(lat), math.cos(lat) * math.cos(lon))

  tx, ty = Projector.equirectangular(direction, width, height)
  assert abs(tx - (width - 1) * u) <= 1
  assert abs(ty - (height - 1) * v) <= 1


def test_equirectangular_clamps_overshoot():
  """Slightly non-unit vectors at the poles and the back seam stay inside the image."""
  assert Projector.equirectangular(Vector3D(0, 1.0000001, 0), 64, 32) == (31, 31)
  assert Projector.equirectangular(Vector3D(0, -1.0000001, 0), 64, 32)[1] == 0
  tx, ty = Projector.equirectangular(Vector3D(-0.0, 0, -1), 64, 32)
  assert 0 <= tx <= 63 and 0 <= ty <= 31


def test_vectorized_maps_match_scalar():
  vectors = _random_unit_vectors(200, seed=7)
  map_x, map_y = equirectangular_maps(vectors, 512, 256)
  assert map_x.dtype == np.int32
  for row, tx, ty in zip(vectors, map_x, map_y):
    sx, sy = Projector.equirectangular(Vector3D(*row), 512, 256)
    assert abs(sx - tx) <= 1
    assert abs(sy - ty) <= 1


def test_vectorized_maps_stay_in_bounds():
  vectors = np.array([[0.0, 1.5, 0.0], [0.0, -1.5, 0.0], [-1e-17, 0.0, -1.0], [1e-17, 0.0, -1.0]])
  map_x, map_y = equirectangular_maps(vectors, 10, 5)
  assert map_x.min() >= 0 and map_x.max() <= 9
  assert map_y.min() >= 0 and map_y.max() <= 4
