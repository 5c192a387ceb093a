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
import threading
from typing import Tuple
from .vector3d import Vector3D


class RotationSnapshot:
  """
  Immutable camera orientation: yaw (theta) and pitch (phi) with cached sin/cos.

  Render passes read one snapshot and use it for every pixel, so all four
  trigonometric values always belong to the same pair of angles.
  """

  __slots__ = ('theta', 'phi', 'sin_theta', 'cos_theta', 'sin_phi', 'cos_phi')

  def __init__(self, theta: float, phi: float):
    for name, value in (
      ('theta', float(theta)),
      ('phi', float(phi)),
      ('sin_theta', math.sin(theta)),
      ('cos_theta', math.cos(theta)),
      ('sin_phi', math.sin(phi)),
      ('cos_phi', math.cos(phi)),
    ):
      object.__setattr__(self, name, value)

  def __setattr__(self, name, value):
    raise AttributeError("RotationSnapshot is immutable")

  @classmethod
  def identity(cls) -> 'RotationSnapshot':
    return cls(0.0, 0.0)

  def optical_axis(self) -> Vector3D:
    """World-space direction of the camera's +Z axis under this rotation."""
    # x is sin_theta*cos_phi, the rotated (0, 0, 1); equals plain sin_theta when phi == 0
    return Vector3D(self.sin_theta * self.cos_phi, self.sin_phi, self.cos_phi * self.cos_theta)

  def __eq__(self, other):
    if not isinstance(other, RotationSnapshot):
      return NotImplemented
    return self.theta == other.theta and self.phi == other.phi

  def __hash__(self):
    return hash((self.theta, self.phi))

  def __repr__(self):
    return f"RotationSnapshot(theta={self.theta:.6f}, phi={self.phi:.6f})"


def yaw_pitch(v: Vector3D) -> Tuple[float, float]:
  """
  Yaw and pitch angles of a direction vector.

  yaw = atan2(x, z), pitch = atan2(y, sqrt(x^2 + z^2)).
  """
  theta = math.atan2(v.x, v.z)
  phi = math.atan2(v.y, math.sqrt(v.x * v.x + v.z * v.z))
  return theta, phi


def _is_degenerate(v: Vector3D) -> bool:
  if not all(math.isfinite(c) for c in v):
    return True
  return v.x == 0.0 and v.y == 0.0 and v.z == 0.0


class RotationState:
  """
  Thread-safe holder of the current camera rotation for one panorama view.

  Every update builds a new RotationSnapshot and swaps it in under the lock;
  readers call snapshot() once and never see a half-applied update.
  """

  def __init__(self, theta: float = 0.0, phi: float = 0.0):
    self._lock = threading.Lock()
    self._snapshot = RotationSnapshot(theta, phi)

  def snapshot(self) -> RotationSnapshot:
    with self._lock:
      return self._snapshot

  @property
  def theta(self) -> float:
    return self.snapshot().theta

  @property
  def phi(self) -> float:
    return self.snapshot().phi

  def set_direct(self, theta: float, phi: float) -> None:
    """Set yaw and pitch in radians."""
    new_snapshot = RotationSnapshot(theta, phi)
    with self._lock:
      self._snapshot = new_snapshot

  def set_from_vector(self, v: Vector3D) -> bool:
    """
    Point the camera's optical axis along v.

    A zero-length vector, non-finite components or non-finite angles fall
    back to the identity rotation instead of raising. This fallback keeps a
    malformed click from breaking the view; callers should not rely on it.

    Returns:
    True if the rotation was taken from v, False if the identity fallback was used.
    """
    theta, phi = 0.0, 0.0
    applied = False
    if not _is_degenerate(v):
      theta, phi = yaw_pitch(v)
      applied = math.isfinite(theta) and math.isfinite(phi)
    if not applied:
      print(f"Warning: degenerate rotation input {v!r}, falling back to identity rotation")
      theta, phi = 0.0, 0.0
    self.set_direct(theta, phi)
    return applied

  def set_from_delta(self, before: Vector3D, after: Vector3D) -> None:
    """
    Apply a drag from `before` to `after`.

    Both vectors are un-rotated grid directions under the drag start and the
    current mouse position. The yaw and pitch differences between them are
    added to the current angles, so the point grabbed at `before` follows the
    cursor. Near the poles (phi close to +-pi/2) the view can jump; this is
    not corrected.
    """
    if _is_degenerate(before) or _is_degenerate(after):
      print(f"Warning: ignoring drag with degenerate input {before!r} -> {after!r}")
      return
    before_theta, before_phi = yaw_pitch(before)
    after_theta, after_phi = yaw_pitch(after)
    delta_theta = before_theta - after_theta
    delta_phi = before_phi - after_phi
    with self._lock:
      current = self._snapshot
      self._snapshot = RotationSnapshot(current.theta + delta_theta, current.phi + delta_phi)

  def get_rotation(self) -> Vector3D:
    """Direction the camera's optical axis currently points to, in world space."""
    return self.snapshot().optical_axis()

  def __repr__(self):
    snapshot = self.snapshot()
    return f"RotationState(theta={snapshot.theta:.6f}, phi={snapshot.phi:.6f})"
