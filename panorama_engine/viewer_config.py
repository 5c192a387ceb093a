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
import yaml

DEFAULT_FOV_DEGREES = 110.0


class ViewerConfig:
  """
  Settings for a panorama view.

  Holds the horizontal field of view of the virtual camera and the tuning
  knobs of the remapper, in the same keys as the YAML configuration file.
  """

  def __init__(self, fov_degrees=DEFAULT_FOV_DEGREES, use_vectorized=True, max_workers=8,
               min_chunk_rows=32, single_thread_threshold=128, cache_max_memory_mb=256.0,
               max_cached_maps=4, verbose=False):
    """
    Parameters:
    - fov_degrees: horizontal field of view in degrees
    - use_vectorized: numpy map generation (True) or per-pixel reference loop (False)
    - max_workers: maximum threads used for map generation
    - min_chunk_rows: minimum rows handled by one worker
    - single_thread_threshold: viewports smaller than this in either direction run on one thread
    - cache_max_memory_mb: memory limit of the grid/map cache, None for no limit
    - max_cached_maps: projection maps kept per view; older rotations are dropped while dragging
    - verbose: print timing and cache messages
    """
    self.fov_degrees = fov_degrees
    self.use_vectorized = use_vectorized
    self.max_workers = max_workers
    self.min_chunk_rows = min_chunk_rows
    self.single_thread_threshold = single_thread_threshold
    self.cache_max_memory_mb = cache_max_memory_mb
    self.max_cached_maps = max_cached_maps
    self.verbose = verbose

  @property
  def fov_radians(self) -> float:
    return math.radians(self.fov_degrees)

  def to_dict(self):
    return {
      'fov_degrees': self.fov_degrees,
      'use_vectorized': self.use_vectorized,
      'max_workers': self.max_workers,
      'min_chunk_rows': self.min_chunk_rows,
      'single_thread_threshold': self.single_thread_threshold,
      'cache_max_memory_mb': self.cache_max_memory_mb,
      'max_cached_maps': self.max_cached_maps,
      'verbose': self.verbose
    }

  def validate(self):
    """
    Validate settings.

    Raises:
    ValueError if any setting is invalid or out of range.
    """
    if not (0 < self.fov_degrees < 180):
      raise ValueError(f"Invalid field of view: {self.fov_degrees} degrees (must be in (0, 180))")

    for name in ('max_workers', 'min_chunk_rows', 'single_thread_threshold', 'max_cached_maps'):
      value = getattr(self, name)
      if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError(f"Invalid {name}: {value!r} (must be a positive integer)")

    if self.cache_max_memory_mb is not None and self.cache_max_memory_mb <= 0:
      raise ValueError(f"Invalid cache_max_memory_mb: {self.cache_max_memory_mb}")

    for name in ('use_vectorized', 'verbose'):
      if not isinstance(getattr(self, name), bool):
        raise ValueError(f"Invalid {name}: {getattr(self, name)!r} (must be true or false)")

  def __str__(self):
    cache = "unlimited" if self.cache_max_memory_mb is None else f"{self.cache_max_memory_mb:.1f} MB"
    return (f"ViewerConfig(fov={self.fov_degrees:.1f}deg, "
            f"vectorized={self.use_vectorized}, workers={self.max_workers}, "
            f"chunk_rows={self.min_chunk_rows}, cache={cache})")

  def __repr__(self):
    return self.__str__()


def parse_viewer_config(filename):
  """
  Parse viewer settings from a YAML file and return a ViewerConfig.

  Missing keys keep their defaults; an empty file gives the default config.

  Raises:
  FileNotFoundError if the file doesn't exist.
  ValueError if the YAML is malformed, a key is unknown or a value is invalid.
  """
  try:
    with open(filename, 'r') as f:
      data = yaml.safe_load(f)
  except FileNotFoundError:
    raise FileNotFoundError(f"Viewer config file not found: {filename}")
  except yaml.YAMLError as e:
    raise ValueError(f"Invalid YAML format in file '{filename}': {e}")

  if data is None:
    data = {}
  if not isinstance(data, dict):
    raise ValueError(f"Viewer config in '{filename}' must be a mapping")

  known_keys = set(ViewerConfig().to_dict())
  unknown_keys = sorted(str(key) for key in set(data) - known_keys)
  if unknown_keys:
    raise ValueError(f"Unknown viewer config keys in '{filename}': {', '.join(unknown_keys)}")

  try:
    config = ViewerConfig(**data)
    if config.fov_degrees is not None:
      config.fov_degrees = float(config.fov_degrees)
    if config.cache_max_memory_mb is not None:
      config.cache_max_memory_mb = float(config.cache_max_memory_mb)
    config.validate()
  except (TypeError, ValueError) as e:
    raise ValueError(f"Invalid parameter format in YAML file: {e}")

  return config


def parse_viewer_config_dict(filename):
  """Parse viewer settings from file and return them as a dictionary."""
  return parse_viewer_config(filename).to_dict()
