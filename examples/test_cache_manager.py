#!/usr/bin/env python3
"""
Tests for the CacheManager shared by camera planes and remappers.

Covers:
1. Individual and shared cache managers
2. Cache key prefixes for grids and projection maps
3. Cache operations (get, put, remove, clear)
4. LRU ordering and eviction under a memory limit
"""

import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import numpy as np
import pytest
from panorama_engine.cache_manager import CacheManager, GRID_PREFIX, MAPS_PREFIX
from panorama_engine.camera_plane import CameraPlane


def _panorama(width=128, height=64):
  return np.zeros((height, width, 3), dtype=np.uint8)


def _array_mb(mb):
  return np.zeros(int(mb * 1024 * 1024), dtype=np.uint8)


def test_individual_cache_managers():
  """Each camera plane gets its own cache manager by default."""
  first = CameraPlane(64, 48)
  second = CameraPlane(32, 24)
  assert first.cache_manager is not second.cache_manager
  assert first.cache_manager.get_info()['grid_entries'] == 1
  assert second.cache_manager.get_info()['grid_entries'] == 1


def test_shared_cache_manager():
  """Camera planes with a shared cache reuse each other's grids."""
  shared_cache = CacheManager()
  first = CameraPlane(64, 48, cache_manager=shared_cache)
  second = CameraPlane(64, 48, cache_manager=shared_cache)

  assert shared_cache.get_info()['grid_entries'] == 1
  assert second.grid.vectors is first.grid.vectors

  first.set_image(_panorama())
  first.render()
  second.set_image(_panorama())
  second.render()
  assert shared_cache.get_info()['maps_entries'] == 1


def test_cache_key_prefixes():
  shared_cache = CacheManager()
  camera = CameraPlane(40, 30, cache_manager=shared_cache)
  camera.set_image(_panorama())
  camera.render()

  grid_keys = shared_cache.get_cache_keys(prefix=GRID_PREFIX)
  maps_keys = shared_cache.get_cache_keys(prefix=MAPS_PREFIX)
  assert len(grid_keys) == 1 and grid_keys[0].startswith("grid_40x30_")
  assert len(maps_keys) == 1 and maps_keys[0].startswith("maps_40x30_")
  assert sorted(shared_cache.get_cache_keys()) == sorted(grid_keys + maps_keys)


def test_cache_operations():
  cache = CacheManager()
  a = np.arange(10)
  b = np.arange(5)

  assert cache.get("maps_a") is None
  assert cache.put("maps_a", a, b)
  stored = cache.get("maps_a")
  assert stored[0] is a and stored[1] is b
  assert not a.flags.writeable
  assert cache.contains("maps_a")

  cache.put("grid_a", np.zeros(3))
  cache.clear(prefix=MAPS_PREFIX)
  assert not cache.contains("maps_a")
  assert cache.contains("grid_a")

  assert cache.remove("grid_a")
  assert not cache.remove("grid_a")
  cache.put("grid_b", np.zeros(3))
  cache.clear()
  assert cache.get_info()['total_entries'] == 0


def test_statistics():
  cache = CacheManager()
  cache.put("grid_x", np.zeros(1024, dtype=np.float64))
  cache.get("grid_x")
  cache.get("missing")

  info = cache.get_info()
  assert info['memory_usage_bytes'] == 8192
  assert info['total_accesses'] == 2
  assert info['total_hits'] == 1
  assert info['memory_limit_enabled'] is False


def test_lru_eviction():
  cache = CacheManager(max_memory_mb=3.0)
  cache.put("maps_1", _array_mb(1))
  cache.put("maps_2", _array_mb(1))
  cache.put("maps_3", _array_mb(1))
  assert cache.get_cache_keys() == ["maps_1", "maps_2", "maps_3"]

  # Touch the oldest entry so maps_2 becomes least recently used
  cache.get("maps_1")
  assert cache.get_cache_keys() == ["maps_2", "maps_3", "maps_1"]

  cache.put("maps_4", _array_mb(1))
  assert cache.get_cache_keys() == ["maps_3", "maps_1", "maps_4"]
  assert cache.get_info()['total_evictions'] == 1


def test_entry_larger_than_limit_is_skipped(capsys):
  cache = CacheManager(max_memory_mb=1.0)
  cache.put("maps_small", _array_mb(0.5))
  assert not cache.put("maps_big", _array_mb(2))
  assert not cache.contains("maps_big")
  assert "Warning" in capsys.readouterr().out


def test_print_status(capsys):
  cache = CacheManager(max_memory_mb=10.0)
  cache.put("grid_a", _array_mb(1))
  cache.print_status()
  out = capsys.readouterr().out
  assert "1 grids" in out
  assert "10.0% of 10.0 MB limit" in out
