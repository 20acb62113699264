"""
Affine object-to-world transforms.

Each shape carries a Transform whose inverse and normal matrix are
computed once at construction, so per-ray work is only matrix products.
"""

from __future__ import annotations
import math
from typing import Iterable, Sequence

import numpy as np

from .vec3 import Vec3, Point3


class Transform:
    """A 4x4 affine transform with cached inverse and normal matrix."""

    __slots__ = ('matrix', 'inverse', 'normal_matrix')

    def __init__(self, matrix: np.ndarray = None):
        """Create a transform.

        Args:
            matrix: Row-major 4x4 object-to-world matrix (identity if None)
        """
        if matrix is None:
            matrix = np.eye(4)
        self.matrix = np.asarray(matrix, dtype=np.float64).reshape(4, 4)
        self.inverse = np.linalg.inv(self.matrix)
        # Inverse-transpose of the linear part maps object normals to world.
        self.normal_matrix = np.linalg.inv(self.matrix[:3, :3]).T

    @classmethod
    def identity(cls) -> Transform:
        return cls(np.eye(4))

    @classmethod
    def translate(cls, x: float, y: float, z: float) -> Transform:
        m = np.eye(4)
        m[:3, 3] = (x, y, z)
        return cls(m)

    @classmethod
    def scale(cls, x: float, y: float = None, z: float = None) -> Transform:
        if y is None:
            y = x
        if z is None:
            z = x
        return cls(np.diag([x, y, z, 1.0]))

    @classmethod
    def rotate(cls, axis: Sequence[float], angle: float) -> Transform:
        """Rotation about an arbitrary axis (Rodrigues), angle in radians."""
        a = np.asarray(axis, dtype=np.float64)
        norm = np.linalg.norm(a)
        if norm == 0:
            raise ValueError("Rotation axis must be non-zero")
        x, y, z = a / norm
        c = math.cos(angle)
        s = math.sin(angle)
        t = 1.0 - c
        m = np.eye(4)
        m[:3, :3] = [
            [t * x * x + c, t * x * y - s * z, t * x * z + s * y],
            [t * x * y + s * z, t * y * y + c, t * y * z - s * x],
            [t * x * z - s * y, t * y * z + s * x, t * z * z + c],
        ]
        return cls(m)

    @classmethod
    def compose(cls, transforms: Iterable[Transform]) -> Transform:
        """Compose transforms in scene-graph order (first is outermost)."""
        m = np.eye(4)
        for transform in transforms:
            m = m @ transform.matrix
        return cls(m)

    def __matmul__(self, other: Transform) -> Transform:
        return Transform(self.matrix @ other.matrix)

    def point(self, p: Point3) -> Point3:
        """Object-space point to world space."""
        return Vec3.from_array(self.matrix[:3, :3] @ p._data + self.matrix[:3, 3])

    def vector(self, v: Vec3) -> Vec3:
        """Object-space direction to world space (no translation)."""
        return Vec3.from_array(self.matrix[:3, :3] @ v._data)

    def inverse_point(self, p: Point3) -> Point3:
        """World-space point to object space."""
        return Vec3.from_array(self.inverse[:3, :3] @ p._data + self.inverse[:3, 3])

    def inverse_vector(self, v: Vec3) -> Vec3:
        """World-space direction to object space."""
        return Vec3.from_array(self.inverse[:3, :3] @ v._data)

    def normal(self, n: Vec3) -> Vec3:
        """Object-space normal to a renormalized world-space normal."""
        return Vec3.from_array(self.normal_matrix @ n._data).normalize()

    def __repr__(self) -> str:
        return f"Transform({self.matrix.tolist()})"
