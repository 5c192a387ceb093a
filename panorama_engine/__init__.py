"""
Panoramic Projection Engine

This package renders equirectangular (360 degree) panoramas onto a viewport
through a rotatable virtual camera:
- Per-pixel camera ray grids and rotation state
- Equirectangular projection and parallel remapping
- Caching of grids and projection maps, and YAML viewer settings
"""

from .errors import InvalidDimensionError, DimensionMismatchError
from .vector3d import Vector3D
from .direction_grid import DirectionGrid, focal_distance_from_fov
from .rotation_state import RotationState, RotationSnapshot
from .projector import Projector, rotate_vectors, equirectangular_maps
from .cache_manager import CacheManager
from .remapper import Remapper, apply_panorama_maps
from .viewer_config import ViewerConfig, parse_viewer_config, parse_viewer_config_dict
from .camera_plane import CameraPlane

__all__ = [
  'InvalidDimensionError',
  'DimensionMismatchError',
  'Vector3D',
  'DirectionGrid',
  'focal_distance_from_fov',
  'RotationState',
  'RotationSnapshot',
  'Projector',
  'rotate_vectors',
  'equirectangular_maps',
  'CacheManager',
  'Remapper',
  'apply_panorama_maps',
  'ViewerConfig',
  'parse_viewer_config',
  'parse_viewer_config_dict',
  'CameraPlane'
]
