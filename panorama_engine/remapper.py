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

import cv2
import numpy as np
import threading
import time
from collections import OrderedDict
from typing import Tuple, Optional, Union
from concurrent.futures import ThreadPoolExecutor
import multiprocessing
from .cache_manager import CacheManager, MAPS_PREFIX
from .direction_grid import DirectionGrid
from .errors import InvalidDimensionError, DimensionMismatchError
from .projector import Projector, rotate_vectors, equirectangular_maps
from .rotation_state import RotationState, RotationSnapshot


# Depths cv2.remap accepts; it also refuses sources with a side of SHRT_MAX or more
REMAP_DTYPES = (np.uint8, np.uint16, np.int16, np.float32, np.float64)
REMAP_MAX_SIDE = 32767
REMAP_MAX_CHANNELS = 4


def _remap_supported(source: np.ndarray) -> bool:
  if source.dtype not in REMAP_DTYPES:
    return False
  if source.ndim == 3 and source.shape[2] > REMAP_MAX_CHANNELS:
    return False
  return source.shape[0] < REMAP_MAX_SIDE and source.shape[1] < REMAP_MAX_SIDE


def apply_panorama_maps(source: np.ndarray, map_x: np.ndarray, map_y: np.ndarray, verbose: bool = False) -> np.ndarray:
  """
  Copy panorama pixels into a new view using pre-generated integer maps.

  Uses cv2.remap when OpenCV supports the source's dtype, channel count and
  size. Other sources (packed uint32 pixels, panoramas 32767 pixels or wider)
  are copied with numpy fancy indexing. Both paths clamp stray indices to the
  image border.

  Parameters:
  - source: equirectangular panorama as numpy array
  - map_x, map_y: source column/row index for each output pixel

  Returns:
  - view image with the maps' shape and the source's channels
  """
  if source is None:
    raise ValueError("Source image is None")

  start_time = time.time()

  if _remap_supported(source):
    # Nearest-neighbour copy; replicated borders keep any stray index inside the image
    result = cv2.remap(source, map_x.astype(np.float32), map_y.astype(np.float32),
                       cv2.INTER_NEAREST, borderMode=cv2.BORDER_REPLICATE)
    method = "OpenCV remap"
  else:
    source_height, source_width = source.shape[:2]
    rows = np.clip(map_y, 0, source_height - 1)
    cols = np.clip(map_x, 0, source_width - 1)
    result = source[rows, cols]
    method = "Numpy index copy"

  if verbose:
    remap_time = time.time() - start_time
    print(f"\033[33m{method} processing time: {remap_time:.4f} seconds\033[0m")

  return result


def _source_size(source: np.ndarray) -> Tuple[int, int]:
  if source is None:
    raise ValueError("Source image is None")
  if source.ndim not in (2, 3):
    raise ValueError(f"Source image must be 2-D or 3-D, got shape {source.shape}")
  source_height, source_width = source.shape[:2]
  if source_width <= 0 or source_height <= 0:
    raise InvalidDimensionError(f"Invalid source dimensions: {source_width}x{source_height}")
  return source_width, source_height


class Remapper:
  """
  Fills a viewport buffer from an equirectangular panorama.

  Each output pixel takes its direction from a DirectionGrid, is rotated by a
  RotationSnapshot and looked up on the source. Rows are independent, so the
  projection maps are generated in row chunks on a thread pool, each chunk
  writing its own slice. The rotation is snapshotted once per pass.
  """

  def __init__(self, use_vectorized: bool = True, max_workers: Optional[int] = None,
               min_chunk_rows: int = 32, single_thread_threshold: int = 128,
               cache_manager: Optional[CacheManager] = None, max_cached_maps: int = 4,
               verbose: bool = False):
    """
    Parameters:
    - use_vectorized: if True, use numpy map generation; if False, the per-pixel reference loop
    - max_workers: thread cap; defaults to the CPU count capped at 8
    - min_chunk_rows: minimum rows per worker chunk
    - single_thread_threshold: viewports narrower or shorter than this run on one thread
    - cache_manager: optional cache for projection maps
    - max_cached_maps: most maps entries this remapper keeps in the cache. A drag
      produces a new rotation every frame, so older rotations are dropped.
    - verbose: print timing lines
    """
    self.use_vectorized = use_vectorized
    self.max_workers = max_workers if max_workers is not None else min(multiprocessing.cpu_count(), 8)
    self.min_chunk_rows = min_chunk_rows
    self.single_thread_threshold = single_thread_threshold
    self.cache_manager = cache_manager
    self.max_cached_maps = max_cached_maps
    self.verbose = verbose

    # Maps keys this remapper stored, least recently used first
    self._maps_keys = OrderedDict()
    self._maps_lock = threading.Lock()

  @classmethod
  def from_config(cls, config, cache_manager: Optional[CacheManager] = None) -> 'Remapper':
    return cls(use_vectorized=config.use_vectorized, max_workers=config.max_workers,
               min_chunk_rows=config.min_chunk_rows,
               single_thread_threshold=config.single_thread_threshold,
               cache_manager=cache_manager, max_cached_maps=config.max_cached_maps,
               verbose=config.verbose)

  def _touch_maps_key(self, cache_key: str) -> None:
    with self._maps_lock:
      if cache_key in self._maps_keys:
        self._maps_keys.move_to_end(cache_key)

  def _track_maps_key(self, cache_key: str) -> None:
    """Remember a stored maps entry and drop this remapper's oldest ones beyond max_cached_maps."""
    with self._maps_lock:
      self._maps_keys[cache_key] = None
      self._maps_keys.move_to_end(cache_key)
      stale_keys = []
      while len(self._maps_keys) > self.max_cached_maps:
        stale_key, _ = self._maps_keys.popitem(last=False)
        stale_keys.append(stale_key)

    for stale_key in stale_keys:
      if self.cache_manager.remove(stale_key) and self.verbose:
        print(f"Dropped stale projection maps: {stale_key}")

  def _generate_cache_key(self, grid: DirectionGrid, snapshot: RotationSnapshot,
                          source_width: int, source_height: int) -> str:
    """Unique cache key for a grid, rotation and source size."""
    return (f"{MAPS_PREFIX}{grid.width}x{grid.height}_f{grid.focal_distance!r}"
            f"_theta{snapshot.theta!r}_phi{snapshot.phi!r}_src{source_width}x{source_height}")

  def _process_row_chunk(self, grid: DirectionGrid, snapshot: RotationSnapshot,
                         row_start: int, row_end: int,
                         source_width: int, source_height: int) -> Tuple[np.ndarray, np.ndarray]:
    """Vectorized projection maps for rows [row_start, row_end)."""
    rotated = rotate_vectors(grid.vectors[row_start:row_end], snapshot)
    return equirectangular_maps(rotated, source_width, source_height)

  def _generate_maps_reference(self, grid: DirectionGrid, snapshot: RotationSnapshot,
                               source_width: int, source_height: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Reference implementation: one Projector call per pixel.

    Slow, kept for debugging the vectorized path.
    """
    start_time = time.time()
    projector = Projector()

    map_x = np.zeros((grid.height, grid.width), dtype=np.int32)
    map_y = np.zeros((grid.height, grid.width), dtype=np.int32)

    for y in range(grid.height):
      for x in range(grid.width):
        tx, ty = projector.project(grid.vector_at(x, y), source_width, source_height, snapshot)
        map_x[y, x] = tx
        map_y[y, x] = ty

    if self.verbose:
      map_generation_time = time.time() - start_time
      print(f"\033[33mReference map generation processing time: {map_generation_time:.4f} seconds\033[0m")

    return map_x, map_y

  def _generate_maps_vectorized(self, grid: DirectionGrid, snapshot: RotationSnapshot,
                                source_width: int, source_height: int) -> Tuple[np.ndarray, np.ndarray]:
    """Parallel vectorized implementation over row chunks."""
    start_time = time.time()

    num_workers = max(1, self.max_workers)
    chunk_size = max(self.min_chunk_rows, grid.height // (num_workers * 2))

    map_x = np.zeros((grid.height, grid.width), dtype=np.int32)
    map_y = np.zeros((grid.height, grid.width), dtype=np.int32)

    if (num_workers == 1 or grid.height < self.single_thread_threshold
        or grid.width < self.single_thread_threshold):
      map_x[:], map_y[:] = self._process_row_chunk(grid, snapshot, 0, grid.height, source_width, source_height)
    else:
      with ThreadPoolExecutor(max_workers=num_workers) as executor:
        futures = []
        row_ranges = []

        for row_start in range(0, grid.height, chunk_size):
          row_end = min(row_start + chunk_size, grid.height)
          row_ranges.append((row_start, row_end))
          futures.append(executor.submit(
            self._process_row_chunk, grid, snapshot, row_start, row_end, source_width, source_height
          ))

        # Chunks own disjoint row slices
        for future, (row_start, row_end) in zip(futures, row_ranges):
          map_x_chunk, map_y_chunk = future.result()
          map_x[row_start:row_end] = map_x_chunk
          map_y[row_start:row_end] = map_y_chunk

    if self.verbose:
      map_generation_time = time.time() - start_time
      print(f"Generated {grid.width}x{grid.height} projection maps using {num_workers} threads "
            f"with chunk size {chunk_size} rows")
      print(f"\033[33mParallel vectorized map generation processing time: {map_generation_time:.4f} seconds\033[0m")

    return map_x, map_y

  def get_projection_maps(self, grid: DirectionGrid, snapshot: RotationSnapshot,
                          source_width: int, source_height: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Source pixel indices for every viewport pixel, cached when a cache manager is set.

    Returns:
    - map_x, map_y: int32 arrays of shape (grid.height, grid.width)
    """
    cache_key = None
    if self.cache_manager is not None:
      cache_key = self._generate_cache_key(grid, snapshot, source_width, source_height)
      cached_maps = self.cache_manager.get(cache_key)
      if cached_maps is not None:
        self._touch_maps_key(cache_key)
        if self.verbose:
          print(f"Using cached projection maps: {cache_key}")
        return cached_maps

    if self.use_vectorized:
      map_x, map_y = self._generate_maps_vectorized(grid, snapshot, source_width, source_height)
    else:
      map_x, map_y = self._generate_maps_reference(grid, snapshot, source_width, source_height)

    if cache_key is not None and self.cache_manager.put(cache_key, map_x, map_y):
      self._track_maps_key(cache_key)
      if self.verbose:
        print(f"Cached projection maps: {cache_key}")

    return map_x, map_y

  def render(self, source: np.ndarray, target: np.ndarray, grid: DirectionGrid,
             rotation: Union[RotationState, RotationSnapshot]) -> np.ndarray:
    """
    Overwrite target with the view of source seen through grid and rotation.

    Parameters:
    - source: equirectangular panorama, shape (H, W) or (H, W, C)
    - target: output buffer, shape (grid.height, grid.width) plus the source's channels
    - grid: direction grid of the viewport
    - rotation: RotationState (snapshotted once here) or RotationSnapshot

    Returns:
    - target, filled completely

    Raises:
    InvalidDimensionError if the source has a non-positive dimension.
    DimensionMismatchError if target does not match the grid or the source channels.
    """
    source_width, source_height = _source_size(source)
    if target is None or target.shape[:2] != (grid.height, grid.width):
      target_shape = None if target is None else target.shape
      raise DimensionMismatchError(
        f"Target buffer shape {target_shape} does not match {grid.width}x{grid.height} grid")
    if target.shape[2:] != source.shape[2:]:
      raise DimensionMismatchError(
        f"Target channels {target.shape[2:]} do not match source channels {source.shape[2:]}")

    snapshot = rotation.snapshot() if isinstance(rotation, RotationState) else rotation

    map_x, map_y = self.get_projection_maps(grid, snapshot, source_width, source_height)
    view = apply_panorama_maps(source, map_x, map_y, verbose=self.verbose)
    target[...] = view.reshape(target.shape)
    return target
