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

import threading
import numpy as np
from typing import Optional, Tuple
from .cache_manager import CacheManager, GRID_PREFIX
from .direction_grid import DirectionGrid, focal_distance_from_fov
from .projector import Projector
from .remapper import Remapper
from .rotation_state import RotationState
from .vector3d import Vector3D
from .viewer_config import ViewerConfig

FORWARD = Vector3D(0.0, 0.0, 1.0)


class CameraPlane:
  """
  Virtual camera for one open panorama view.

  Owns the direction grid of the viewport, the rotation state, the remapper
  and the last rendered offscreen frame. Screen-space gestures
  (drag, click-to-center) come in as pixel coordinates and are turned into
  rotation updates here.

  A render pass takes the source image, grid and rotation snapshot together
  under the view lock and then runs without it, so a resize or drag during a
  pass only affects the next pass.
  """

  def __init__(self, width: int, height: int, focal_distance: Optional[float] = None,
               config: Optional[ViewerConfig] = None, cache_manager: Optional[CacheManager] = None):
    """
    Parameters:
    - width, height: viewport size in pixels
    - focal_distance: distance to the image plane; derived from config.fov_degrees if None
    - config: viewer settings, defaults to ViewerConfig()
    - cache_manager: optional shared cache. If None, creates a new one from the config.
    """
    self.config = config if config is not None else ViewerConfig()
    self.config.validate()

    self.cache_manager = cache_manager if cache_manager is not None else CacheManager(
      max_memory_mb=self.config.cache_max_memory_mb, verbose=self.config.verbose)

    self.rotation = RotationState()
    self.projector = Projector(self.rotation)
    self.remapper = Remapper.from_config(self.config, cache_manager=self.cache_manager)

    self._lock = threading.RLock()
    self._source: Optional[np.ndarray] = None
    self._offscreen: Optional[np.ndarray] = None
    self._grid: Optional[DirectionGrid] = None

    self.resize(width, height, focal_distance)

  @property
  def grid(self) -> DirectionGrid:
    with self._lock:
      return self._grid

  @property
  def size(self) -> Tuple[int, int]:
    grid = self.grid
    return (grid.width, grid.height)

  @property
  def focal_distance(self) -> float:
    return self.grid.focal_distance

  def _grid_cache_key(self, width: int, height: int, focal_distance: float) -> str:
    return f"{GRID_PREFIX}{width}x{height}_f{focal_distance!r}"

  def _build_grid(self, width: int, height: int, focal_distance: float) -> DirectionGrid:
    cache_key = self._grid_cache_key(width, height, focal_distance)
    cached = self.cache_manager.get(cache_key)
    if cached is not None:
      if self.config.verbose:
        print(f"Using cached direction grid: {cache_key}")
      return DirectionGrid(width, height, focal_distance, cached[0])

    grid = DirectionGrid.build(width, height, focal_distance, verbose=self.config.verbose)
    self.cache_manager.put(cache_key, grid.vectors)
    return grid

  def resize(self, width: int, height: int, focal_distance: Optional[float] = None) -> DirectionGrid:
    """
    Rebuild the direction grid for a new viewport size and drop the last frame.

    The previous grid is replaced, not modified, so a render
    already running finishes against it.

    Returns:
    The new DirectionGrid.
    """
    if focal_distance is None:
      focal_distance = focal_distance_from_fov(width, self.config.fov_radians)
    grid = self._build_grid(width, height, focal_distance)

    with self._lock:
      self._grid = grid
      self._offscreen = None
    return grid

  @staticmethod
  def _allocate_offscreen(grid: DirectionGrid, source: np.ndarray) -> np.ndarray:
    return np.zeros((grid.height, grid.width) + source.shape[2:], dtype=source.dtype)

  def set_image(self, source: Optional[np.ndarray]) -> None:
    """Set the panorama to display (None clears it). The rotation is kept."""
    with self._lock:
      self._source = source
      self._offscreen = None

  def get_image(self) -> Optional[np.ndarray]:
    with self._lock:
      return self._source

  def _grid_vector(self, grid: DirectionGrid, x: int, y: int) -> Vector3D:
    if not grid.contains(x, y):
      return FORWARD
    return grid.vector_at(x, y)

  def get_vector3d(self, x: int, y: int) -> Vector3D:
    """
    World-space direction through viewport pixel (x, y) under the current rotation.

    Pixels outside the viewport give (0, 0, 1).
    """
    grid = self.grid
    if not grid.contains(x, y):
      return FORWARD
    return self.projector.rotate(grid.vector_at(x, y))

  def set_rotation(self, vector: Vector3D) -> bool:
    """Point the optical axis along vector. Returns False if the identity fallback was used."""
    return self.rotation.set_from_vector(vector)

  def set_rotation_angles(self, theta: float, phi: float) -> None:
    """Set yaw and pitch in radians."""
    self.rotation.set_direct(theta, phi)

  def get_rotation(self) -> Vector3D:
    return self.rotation.get_rotation()

  def look_at_point(self, x: int, y: int) -> bool:
    """Re-center the view on the direction currently shown at pixel (x, y)."""
    return self.set_rotation(self.get_vector3d(x, y))

  def set_rotation_from_delta(self, start: Tuple[int, int], end: Tuple[int, int]) -> None:
    """
    Rotate for a drag from screen point start to screen point end.

    Both points are looked up in the un-rotated grid; points outside the
    viewport count as the optical center.
    """
    grid = self.grid
    before = self._grid_vector(grid, *start)
    after = self._grid_vector(grid, *end)
    self.rotation.set_from_delta(before, after)

  def mapping(self, source: np.ndarray, target: np.ndarray) -> np.ndarray:
    """Render source into target through the current grid and rotation."""
    with self._lock:
      grid = self._grid
      snapshot = self.rotation.snapshot()
    return self.remapper.render(source, target, grid, snapshot)

  @property
  def offscreen(self) -> Optional[np.ndarray]:
    """Last frame rendered for the current grid and image, or None."""
    with self._lock:
      return self._offscreen

  def render(self) -> np.ndarray:
    """
    Render the current panorama into a new offscreen buffer.

    Every pass fills its own buffer and swaps it in under the view lock, so a
    frame returned earlier is never overwritten by a later or concurrent pass.
    A frame finished after a resize or set_image is returned but not kept.

    Returns:
    The frame, shape (height, width) plus the source's channels.

    Raises:
    ValueError if no image has been set.
    """
    with self._lock:
      source = self._source
      grid = self._grid
      snapshot = self.rotation.snapshot()
    if source is None:
      raise ValueError("No panorama image set")

    frame = self._allocate_offscreen(grid, source)
    self.remapper.render(source, frame, grid, snapshot)

    with self._lock:
      if self._grid is grid and self._source is source:
        self._offscreen = frame
    return frame

  def __repr__(self):
    grid = self.grid
    return (f"CameraPlane({grid.width}x{grid.height}, focal_distance={grid.focal_distance:.3f}, "
            f"{self.rotation!r})")
