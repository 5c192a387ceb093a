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
from typing import Tuple


class Vector3D:
  """
  Immutable 3-component vector.

  Used for the camera ray directions of a DirectionGrid and for the optical
  axis reported by RotationState. Equality and hashing are by value.
  """

  __slots__ = ('_x', '_y', '_z')

  def __init__(self, x: float, y: float, z: float):
    object.__setattr__(self, '_x', float(x))
    object.__setattr__(self, '_y', float(y))
    object.__setattr__(self, '_z', float(z))

  def __setattr__(self, name, value):
    raise AttributeError("Vector3D is immutable")

  @property
  def x(self) -> float:
    return self._x

  @property
  def y(self) -> float:
    return self._y

  @property
  def z(self) -> float:
    return self._z

  def length(self) -> float:
    return math.sqrt(self._x * self._x + self._y * self._y + self._z * self._z)

  def normalize(self) -> 'Vector3D':
    """Return the unit vector in the same direction. A zero vector stays zero."""
    m = self.length()
    if m == 0:
      return Vector3D(0.0, 0.0, 0.0)
    return Vector3D(self._x / m, self._y / m, self._z / m)

  def to_tuple(self) -> Tuple[float, float, float]:
    return (self._x, self._y, self._z)

  def __iter__(self):
    yield self._x
    yield self._y
    yield self._z

  def __eq__(self, other):
    if not isinstance(other, Vector3D):
      return NotImplemented
    return self.to_tuple() == other.to_tuple()

  def __hash__(self):
    return hash(self.to_tuple())

  def __reduce__(self):
    return (Vector3D, self.to_tuple())

  def __repr__(self):
    return f"Vector3D({self._x:.6f}, {self._y:.6f}, {self._z:.6f})"
