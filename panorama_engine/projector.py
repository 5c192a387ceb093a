"""
MIT License

Copyright (c) 2025 Pan Yu

Permission is hereby granted, free of charge, to any person obtaining a copy
of this software and associated documentation files (the "Software"), to deal
in the Software without restriction, including without limitation the rights
to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
copies of the Software, and to permit persons to whom the Software is
furnished to do so, subject to the following conditions:

The above copyright notice and this permission notice shall be included in all
copies or substantial portions of the Software.

THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
SOFTWARE.

Author: Pan Yu
"""

import math
import numpy as np
from typing import Tuple, Optional
from .rotation_state import RotationState, RotationSnapshot
from .vector3d import Vector3D


def rotate_vectors(vectors: np.ndarray, snapshot: RotationSnapshot) -> np.ndarray:
  """
  Vectorized rotation of an (..., 3) array of grid directions.

  Same composition as Projector.rotate: pitch about the camera X axis first,
  then yaw about the world Y axis.
  """
  x = vectors[..., 0]
  y = vectors[..., 1]
  z = vectors[..., 2]

  z1 = z * snapshot.cos_phi - y * snapshot.sin_phi
  y1 = z * snapshot.sin_phi + y * snapshot.cos_phi
  x2 = z1 * snapshot.sin_theta + x * snapshot.cos_theta
  z2 = z1 * snapshot.cos_theta - x * snapshot.sin_theta

  return np.stack([x2, y1, z2], axis=-1)


def equirectangular_maps(vectors: np.ndarray, source_width: int, source_height: int) -> Tuple[np.ndarray, np.ndarray]:
  """
  Vectorized equirectangular lookup for an (..., 3) array of unit vectors.

  Parameters:
  - vectors: rotated unit direction vectors
  - source_width, source_height: panorama dimensions in pixels

  Returns:
  - map_x, map_y: int32 source pixel indices, clamped into the image
  """
  u = 0.5 + np.arctan2(vectors[..., 0], vectors[..., 2]) / (2 * np.pi)
  v = 0.5 + np.arcsin(np.clip(vectors[..., 1], -1.0, 1.0)) / np.pi

  # Clamp instead of failing on the +-pi wrap and at the poles
  map_x = np.clip(np.floor((source_width - 1) * u), 0, source_width - 1).astype(np.int32)
  map_y = np.clip(np.floor((source_height - 1) * v), 0, source_height - 1).astype(np.int32)

  return map_x, map_y


class Projector:
  """
  Rotates grid directions by the camera rotation and maps them onto an
  equirectangular panorama.

  The rotation is a fixed two-axis composition, pitch about the camera's local
  X axis followed by yaw about the world Y axis, which gives a free-look
  camera with a level horizon. Swapping the order skews the horizon.
  """

  def __init__(self, rotation: Optional[RotationState] = None):
    self.rotation = rotation if rotation is not None else RotationState()

  def rotate(self, v: Vector3D, snapshot: Optional[RotationSnapshot] = None) -> Vector3D:
    """
    Rotate a grid-space vector into world space.

    Parameters:
    - v: un-rotated direction from a DirectionGrid
    - snapshot: rotation to apply; the current rotation if None
    """
    r = snapshot if snapshot is not None else self.rotation.snapshot()
    z1 = v.z * r.cos_phi - v.y * r.sin_phi
    y1 = v.z * r.sin_phi + v.y * r.cos_phi
    x2 = z1 * r.sin_theta + v.x * r.cos_theta
    z2 = z1 * r.cos_theta - v.x * r.sin_theta
    return Vector3D(x2, y1, z2)

  @staticmethod
  def equirectangular(v: Vector3D, source_width: int, source_height: int) -> Tuple[int, int]:
    """
    Source pixel of a world-space unit direction on an equirectangular image.

    Longitude comes from atan2 on the horizontal plane, latitude from the
    arcsine of the vertical component (clamped against floating overshoot).

    Returns:
    (tx, ty) clamped into [0, source_width-1] x [0, source_height-1].
    """
    u = 0.5 + math.atan2(v.x, v.z) / (2 * math.pi)
    v_ = 0.5 + math.asin(min(1.0, max(-1.0, v.y))) / math.pi
    tx = math.floor((source_width - 1) * u)
    ty = math.floor((source_height - 1) * v_)
    tx = min(max(tx, 0), source_width - 1)
    ty = min(max(ty, 0), source_height - 1)
    return tx, ty

  def project(self, v: Vector3D, source_width: int, source_height: int,
              snapshot: Optional[RotationSnapshot] = None) -> Tuple[int, int]:
    """Rotate v and look it up on the panorama."""
    return self.equirectangular(self.rotate(v, snapshot), source_width, source_height)
