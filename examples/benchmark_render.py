"""
Benchmark script for panorama rendering.

Compares single-threaded and parallel projection map generation for several
viewport sizes and shows the effect of the projection map cache.
"""

import sys
import os
import time
import numpy as np

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from panorama_engine import CacheManager, DirectionGrid, Remapper, RotationSnapshot, focal_distance_from_fov, ViewerConfig


def benchmark_render_performance():
  """Time full-frame renders with and without parallel map generation."""

  print("=" * 60)
  print("PANORAMA RENDER BENCHMARK")
  print("=" * 60)

  config = ViewerConfig()
  rng = np.random.default_rng(0)
  panorama = rng.integers(0, 256, size=(2048, 4096, 3), dtype=np.uint8)
  snapshot = RotationSnapshot(0.6, -0.2)

  test_sizes = [
    (320, 240, "Small"),
    (800, 600, "Medium"),
    (1920, 1080, "Large"),
    (3840, 2160, "Very Large")
  ]

  for width, height, size_name in test_sizes:
    print(f"\n{size_name} viewport: {width}x{height}")
    print("-" * 40)

    grid = DirectionGrid.build(width, height, focal_distance_from_fov(width, config.fov_radians))
    target = np.zeros((height, width, 3), dtype=np.uint8)

    for label, remapper in [
      ("single thread", Remapper(max_workers=1)),
      ("parallel", Remapper(max_workers=config.max_workers, min_chunk_rows=config.min_chunk_rows))
    ]:
      start_time = time.time()
      remapper.render(panorama, target, grid, snapshot)
      total_time = time.time() - start_time

      pixels_per_second = width * height / total_time if total_time > 0 else 0
      print(f"✓ {label}: {total_time:.4f} seconds ({pixels_per_second:,.0f} pixels/second)")

  print("\n" + "=" * 60)
  print("CACHE PERFORMANCE")
  print("=" * 60)

  cache = CacheManager(max_memory_mb=config.cache_max_memory_mb)
  remapper = Remapper(cache_manager=cache)
  grid = DirectionGrid.build(1920, 1080, focal_distance_from_fov(1920, config.fov_radians))
  target = np.zeros((1080, 1920, 3), dtype=np.uint8)

  start_time = time.time()
  remapper.render(panorama, target, grid, snapshot)
  miss_time = time.time() - start_time

  start_time = time.time()
  remapper.render(panorama, target, grid, snapshot)
  hit_time = time.time() - start_time

  print(f"✓ Cache miss render time: {miss_time:.4f} seconds")
  print(f"✓ Cache hit render time: {hit_time:.4f} seconds")
  cache.print_status()


if __name__ == "__main__":
  benchmark_render_performance()
