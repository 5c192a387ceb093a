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

import numpy as np
import threading
import time
from collections import OrderedDict
from typing import Dict, Tuple, Optional, Any

GRID_PREFIX = 'grid_'
MAPS_PREFIX = 'maps_'


def _entry_nbytes(arrays: Tuple[np.ndarray, ...]) -> int:
  return sum(a.nbytes for a in arrays)


class CacheManager:
  """
  Thread-safe LRU cache for direction grids and projection maps.

  Entries are tuples of numpy arrays stored under string keys. Grid entries
  use the ``grid_`` prefix and projection map entries the ``maps_`` prefix so
  one manager can be shared by several camera planes. When a memory limit is
  set, least recently used entries are evicted to make room.
  """

  def __init__(self, max_memory_mb: Optional[float] = None, verbose: bool = False):
    """
    Parameters:
    - max_memory_mb: Optional maximum memory usage in MB. If None, no limit is enforced.
    - verbose: print eviction messages
    """
    self._cache: OrderedDict[str, Tuple[Tuple[np.ndarray, ...], float]] = OrderedDict()
    self._max_memory_mb = max_memory_mb
    self._verbose = verbose
    self._lock = threading.RLock()
    self._access_count = 0
    self._hit_count = 0
    self._eviction_count = 0

  @property
  def max_memory_mb(self) -> Optional[float]:
    return self._max_memory_mb

  def get(self, cache_key: str) -> Optional[Tuple[np.ndarray, ...]]:
    """
    Retrieve a cached entry and mark it most recently used.

    Returns:
    - Tuple of arrays if found, None otherwise
    """
    with self._lock:
      self._access_count += 1

      if cache_key in self._cache:
        arrays, _ = self._cache[cache_key]
        self._cache[cache_key] = (arrays, time.time())
        self._cache.move_to_end(cache_key)
        self._hit_count += 1
        return arrays

      return None

  def put(self, cache_key: str, *arrays: np.ndarray) -> bool:
    """
    Store arrays under cache_key, evicting least recently used entries if needed.

    Arrays are stored read-only and shared with the caller, which must not
    modify them afterwards.

    Returns:
    - True if stored, False if the entry alone exceeds the memory limit
    """
    for a in arrays:
      a.setflags(write=False)

    with self._lock:
      new_memory_mb = _entry_nbytes(arrays) / (1024 * 1024)
      current_time = time.time()

      if cache_key in self._cache:
        self._cache[cache_key] = (arrays, current_time)
        self._cache.move_to_end(cache_key)
        return True

      if self._max_memory_mb is not None:
        current_memory = self._calculate_total_memory_mb()

        while current_memory + new_memory_mb > self._max_memory_mb and len(self._cache) > 0:
          lru_key, (lru_arrays, _) = self._cache.popitem(last=False)
          freed_memory = _entry_nbytes(lru_arrays) / (1024 * 1024)
          current_memory -= freed_memory
          self._eviction_count += 1

          if self._verbose:
            print(f"LRU evicted: {lru_key} (freed {freed_memory:.1f} MB)")

        if current_memory + new_memory_mb > self._max_memory_mb:
          print(f"Warning: Cannot add cache entry - exceeds memory limit even after eviction "
                f"({self._max_memory_mb:.1f} MB)")
          return False

      self._cache[cache_key] = (arrays, current_time)
      return True

  def remove(self, cache_key: str) -> bool:
    """Remove a specific entry. Returns True if it was present."""
    with self._lock:
      if cache_key in self._cache:
        del self._cache[cache_key]
        return True
      return False

  def clear(self, prefix: Optional[str] = None) -> None:
    """Clear all entries, or only those whose key starts with prefix."""
    with self._lock:
      if prefix is None:
        self._cache.clear()
        return
      for key in [k for k in self._cache if k.startswith(prefix)]:
        del self._cache[key]

  def contains(self, cache_key: str) -> bool:
    with self._lock:
      return cache_key in self._cache

  def get_info(self) -> Dict[str, Any]:
    """
    Get cache statistics.

    Returns:
    - Dictionary with entry counts per kind, memory usage and LRU counters
    """
    with self._lock:
      total_memory_bytes = 0
      grid_count = 0
      maps_count = 0

      for key, (arrays, _) in self._cache.items():
        total_memory_bytes += _entry_nbytes(arrays)
        if key.startswith(GRID_PREFIX):
          grid_count += 1
        elif key.startswith(MAPS_PREFIX):
          maps_count += 1

      return {
        'total_entries': len(self._cache),
        'grid_entries': grid_count,
        'maps_entries': maps_count,
        'memory_usage_bytes': total_memory_bytes,
        'memory_usage_mb': total_memory_bytes / (1024 * 1024),
        'max_memory_mb': self._max_memory_mb,
        'memory_limit_enabled': self._max_memory_mb is not None,
        'total_accesses': self._access_count,
        'total_hits': self._hit_count,
        'total_evictions': self._eviction_count,
      }

  def print_status(self) -> None:
    """Print current cache status in a human-readable format."""
    info = self.get_info()
    print(f"Cache status: {info['total_entries']} entries "
          f"({info['grid_entries']} grids, {info['maps_entries']} projection maps), "
          f"{info['memory_usage_mb']:.1f} MB")

    if info['memory_limit_enabled'] and info['max_memory_mb'] > 0:
      usage_percent = (info['memory_usage_mb'] / info['max_memory_mb']) * 100
      print(f"Cache memory usage: {usage_percent:.1f}% of {info['max_memory_mb']:.1f} MB limit")

  def _calculate_total_memory_mb(self) -> float:
    total_bytes = 0
    for arrays, _ in self._cache.values():
      total_bytes += _entry_nbytes(arrays)
    return total_bytes / (1024 * 1024)

  def get_cache_keys(self, prefix: Optional[str] = None) -> list:
    """Cache keys in LRU order (least recently used first), optionally filtered by prefix."""
    with self._lock:
      if prefix is None:
        return list(self._cache.keys())
      return [key for key in self._cache.keys() if key.startswith(prefix)]
