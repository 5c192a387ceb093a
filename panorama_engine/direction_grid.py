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
import time
import numpy as np
from typing import Tuple
from .errors import InvalidDimensionError
from .vector3d import Vector3D


def focal_distance_from_fov(width: int, fov: float) -> float:
  """
  Distance from the optical center to the image plane for a horizontal field of view.

  Parameters:
  - width: viewport width in pixels
  - fov: horizontal field of view in radians, strictly between 0 and pi

  Returns:
  Focal distance in pixels, (width / 2) / tan(fov / 2).
  """
  if width <= 0:
    raise InvalidDimensionError(f"Invalid viewport width: {width}")
  if not (0.0 < fov < math.pi):
    raise ValueError(f"Invalid field of view: {fov} rad (must be in (0, pi))")
  return (width / 2.0) / math.tan(fov / 2.0)


def _check_dimensions(width, height, what: str) -> None:
  for value in (width, height):
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value <= 0:
      raise InvalidDimensionError(f"Invalid {what} dimensions: {width}x{height}")


class DirectionGrid:
  """
  Per-pixel unit ray directions for a pin-hole camera looking down +Z.

  The grid depends only on the viewport size and the focal distance, never on
  the camera rotation, so one instance is reused by every repaint until the
  viewport is resized. The underlying array is read-only; a resize builds a
  new grid instead of touching this one.

  Vectors are stored row-major as ``vectors[y, x]`` with shape
  ``(height, width, 3)``; ``grid[x, y]`` indexes by column first.
  """

  def __init__(self, width: int, height: int, focal_distance: float, vectors: np.ndarray):
    if vectors.shape != (height, width, 3):
      raise ValueError(f"Direction array shape {vectors.shape} does not match {width}x{height}")
    self.width = width
    self.height = height
    self.focal_distance = focal_distance
    vectors.setflags(write=False)
    self.vectors = vectors

  @classmethod
  def build(cls, width: int, height: int, focal_distance: float, verbose: bool = False) -> 'DirectionGrid':
    """
    Build the direction grid for a viewport.

    Parameters:
    - width, height: viewport size in pixels, both positive
    - focal_distance: positive distance to the image plane in pixels
    - verbose: print build timing

    Returns:
    A new DirectionGrid.

    Raises:
    InvalidDimensionError if width or height is not a positive integer.
    ValueError if focal_distance is not positive and finite.
    """
    _check_dimensions(width, height, "grid")
    if not math.isfinite(focal_distance) or focal_distance <= 0:
      raise ValueError(f"Invalid focal distance: {focal_distance}")

    start_time = time.time()

    # Integer half sizes: pixel (width//2, height//2) is the optical center
    x_coords, y_coords = np.meshgrid(
      np.arange(width, dtype=np.float64) - (width // 2),
      np.arange(height, dtype=np.float64) - (height // 2)
    )
    z_coords = np.full_like(x_coords, float(focal_distance))

    vectors = np.stack([x_coords, y_coords, z_coords], axis=-1)
    vectors /= np.linalg.norm(vectors, axis=-1, keepdims=True)

    if verbose:
      build_time = time.time() - start_time
      print(f"Built {width}x{height} direction grid (focal distance {focal_distance:.1f})")
      print(f"\033[33mDirection grid build time: {build_time:.4f} seconds\033[0m")

    return cls(width, height, float(focal_distance), vectors)

  @property
  def shape(self) -> Tuple[int, int]:
    """(width, height) of the grid."""
    return (self.width, self.height)

  def contains(self, x: int, y: int) -> bool:
    return 0 <= x < self.width and 0 <= y < self.height

  def vector_at(self, x: int, y: int) -> Vector3D:
    """
    Un-rotated unit direction through pixel (x, y).

    Raises:
    IndexError if (x, y) lies outside the grid.
    """
    if not self.contains(x, y):
      raise IndexError(f"Pixel ({x}, {y}) outside {self.width}x{self.height} grid")
    vx, vy, vz = self.vectors[y, x]
    return Vector3D(vx, vy, vz)

  def __getitem__(self, index: Tuple[int, int]) -> Vector3D:
    x, y = index
    return self.vector_at(x, y)

  @property
  def nbytes(self) -> int:
    return self.vectors.nbytes

  def __repr__(self):
    return f"DirectionGrid({self.width}x{self.height}, focal_distance={self.focal_distance:.3f})"
