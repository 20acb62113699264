"""
Vector3 class for 3D math operations.

Used throughout the tracer for:
- Points and direction vectors in world and object space
- Surface normals
- RGB radiance values
"""

from __future__ import annotations
import math
import random
from typing import Optional, Union
import numpy as np


class Vec3:
    """A 3D vector class supporting common vector operations.

    Uses numpy internally for efficient computation while providing
    a clean, Pythonic API.
    """

    __slots__ = ('_data',)

    def __init__(self, x: float = 0.0, y: float = 0.0, z: float = 0.0):
        self._data = np.array([x, y, z], dtype=np.float64)

    @classmethod
    def from_array(cls, arr: np.ndarray) -> Vec3:
        """Create Vec3 from numpy array (only the first three entries are used)."""
        v = cls.__new__(cls)
        v._data = np.asarray(arr[:3], dtype=np.float64)
        return v

    @property
    def x(self) -> float:
        return float(self._data[0])

    @property
    def y(self) -> float:
        return float(self._data[1])

    @property
    def z(self) -> float:
        return float(self._data[2])

    # Aliases for color operations
    @property
    def r(self) -> float:
        return self.x

    @property
    def g(self) -> float:
        return self.y

    @property
    def b(self) -> float:
        return self.z

    def __repr__(self) -> str:
        return f"Vec3({self.x:.4f}, {self.y:.4f}, {self.z:.4f})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Vec3):
            return NotImplemented
        return np.allclose(self._data, other._data)

    def __hash__(self) -> int:
        return hash(tuple(self._data))

    def __neg__(self) -> Vec3:
        return Vec3.from_array(-self._data)

    def __add__(self, other: Union[Vec3, float]) -> Vec3:
        if isinstance(other, Vec3):
            return Vec3.from_array(self._data + other._data)
        return Vec3.from_array(self._data + other)

    def __radd__(self, other: float) -> Vec3:
        return Vec3.from_array(other + self._data)

    def __sub__(self, other: Union[Vec3, float]) -> Vec3:
        if isinstance(other, Vec3):
            return Vec3.from_array(self._data - other._data)
        return Vec3.from_array(self._data - other)

    def __mul__(self, other: Union[Vec3, float]) -> Vec3:
        if isinstance(other, Vec3):
            return Vec3.from_array(self._data * other._data)
        return Vec3.from_array(self._data * other)

    def __rmul__(self, other: float) -> Vec3:
        return Vec3.from_array(other * self._data)

    def __truediv__(self, other: Union[Vec3, float]) -> Vec3:
        if isinstance(other, Vec3):
            return Vec3.from_array(self._data / other._data)
        return Vec3.from_array(self._data / other)

    def __getitem__(self, index: int) -> float:
        return float(self._data[index])

    def __iter__(self):
        return iter((self.x, self.y, self.z))

    def length(self) -> float:
        """Return the magnitude (length) of the vector."""
        return float(np.linalg.norm(self._data))

    def length_squared(self) -> float:
        """Return the squared magnitude (avoids sqrt for comparisons)."""
        return float(np.dot(self._data, self._data))

    def normalize(self) -> Vec3:
        """Return a unit vector in the same direction."""
        length = self.length()
        if length == 0:
            return Vec3(0, 0, 0)
        return Vec3.from_array(self._data / length)

    def dot(self, other: Vec3) -> float:
        """Compute dot product with another vector."""
        return float(np.dot(self._data, other._data))

    def cross(self, other: Vec3) -> Vec3:
        """Compute cross product with another vector."""
        return Vec3.from_array(np.cross(self._data, other._data))

    def reflect(self, normal: Vec3) -> Vec3:
        """Mirror this vector about the given normal: d - 2(N.d)N."""
        return self - normal * 2 * self.dot(normal)

    def refract(self, normal: Vec3, ior: float) -> Vec3:
        """Refract this direction through a surface using Snell's law.

        The normal is the geometric outward normal. A ray travelling against
        it is entering the medium (ratio 1/ior); a ray travelling along it is
        exiting, so the normal is reversed and the ratio inverted.

        Args:
            normal: Outward unit surface normal
            ior: Index of refraction of the medium

        Returns:
            Unit refracted direction, or the zero vector on total internal
            reflection or a degenerate index
        """
        if ior <= 0:
            return Vec3(0, 0, 0)

        d = self.normalize()
        n = normal
        eta = 1.0 / ior
        if d.dot(n) > 0:
            n = -n
            eta = ior

        cos_i = max(-1.0, min(1.0, -d.dot(n)))
        sin_t_sq = eta * eta * (1.0 - cos_i * cos_i)

        if sin_t_sq > 1.0:
            # Total internal reflection
            return Vec3(0, 0, 0)

        cos_t = math.sqrt(1.0 - sin_t_sq)
        return (d * eta + n * (eta * cos_i - cos_t)).normalize()

    def near_zero(self, epsilon: float = 1e-8) -> bool:
        """Check if vector is close to zero in all dimensions."""
        return all(abs(c) < epsilon for c in self._data)

    def to_array(self) -> np.ndarray:
        """Return the underlying numpy array (copy)."""
        return self._data.copy()

    def clamp(self, min_val: float = 0.0, max_val: float = 1.0) -> Vec3:
        """Clamp all components to the given range."""
        return Vec3.from_array(np.clip(self._data, min_val, max_val))

    @staticmethod
    def random_in_unit_disk(rng: Optional[random.Random] = None) -> Vec3:
        """Generate a random point inside the unit disk (z=0)."""
        rng = rng or random
        while True:
            p = Vec3(rng.uniform(-1, 1), rng.uniform(-1, 1), 0)
            if p.length_squared() < 1:
                return p


# Convenience type aliases
Point3 = Vec3
Color = Vec3
