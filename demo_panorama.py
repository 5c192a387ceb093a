import math
import os
import cv2
import numpy as np
from panorama_engine import CameraPlane, CacheManager, Vector3D, parse_viewer_config


def create_panorama_views(panorama_path, config_path, width=800, height=600):
  """
  Demonstrate rendering views of an equirectangular panorama with CameraPlane.
  """
  config = parse_viewer_config(config_path)
  print(f"Loaded viewer config: {config}")

  panorama = cv2.imread(panorama_path)
  if panorama is None:
    raise ValueError(f"Could not load {panorama_path}")

  pano_height, pano_width = panorama.shape[:2]
  print(f"Panorama size: {pano_width}x{pano_height}")

  cache = CacheManager(max_memory_mb=config.cache_max_memory_mb)
  camera = CameraPlane(width, height, config=config, cache_manager=cache)
  camera.set_image(panorama)

  os.makedirs("output", exist_ok=True)
  saved = []

  def save(name):
    filename = f"output/panorama_{name}.jpg"
    cv2.imwrite(filename, camera.render())
    print(f"Saved: {filename}")
    saved.append(filename)

  print("\n1. Looking straight ahead...")
  camera.set_rotation(Vector3D(0, 0, 1))
  front = camera.render().copy()
  save("front")

  print("\n2. Turning 90° to the right...")
  camera.set_rotation_angles(math.radians(90), 0.0)
  save("right")

  print("\n3. Looking backward...")
  camera.set_rotation_angles(math.pi, 0.0)
  save("back")

  print("\n4. Tilting 45° downward...")
  camera.set_rotation_angles(0.0, math.radians(45))
  save("down")

  print("\n5. Dragging the view from the center to the right edge...")
  camera.set_rotation(Vector3D(0, 0, 1))
  camera.set_rotation_from_delta((width // 2, height // 2), (width - 1, height // 2))
  save("dragged")

  print("\n6. Clicking the top-left corner to center it...")
  camera.look_at_point(0, 0)
  save("clicked")

  print("\n7. Testing cache functionality - repeating the first view...")
  camera.set_rotation(Vector3D(0, 0, 1))
  if np.array_equal(front, camera.render()):
    print("✓ Cache working correctly - identical results from cached projection maps")
  else:
    print("✗ Cache issue - results differ")

  print("\nCache statistics:")
  cache.print_status()
  print(f"Camera rotation: {camera.get_rotation()}")

  return saved


def main():
  panorama_file = "data/panorama.jpg"
  config_file = "config/viewer.yaml"

  try:
    files = create_panorama_views(panorama_file, config_file)
  except Exception as e:
    print(f"Error: {e}")
    return False

  print("\n" + "=" * 60)
  print("PANORAMA VIEW DEMONSTRATION COMPLETE")
  print("=" * 60)
  print(f"Total files created: {len(files)}")
  return True


if __name__ == "__main__":
  main()
