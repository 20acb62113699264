"""
Axis-Aligned Bounding Box for the acceleration structure.

An empty box has minimum = +inf and maximum = -inf on every axis, so the
first extend() initializes it and later extends only ever grow it.
"""

from __future__ import annotations
from typing import List, Optional, Union, TYPE_CHECKING

from .vec3 import Vec3, Point3

if TYPE_CHECKING:
    from .transform import Transform

INF = float('inf')

# Direction components smaller than this are treated as parallel to a slab.
PARALLEL_EPSILON = 1e-12


class AABB:
    """Axis-Aligned Bounding Box."""

    __slots__ = ('minimum', 'maximum')

    def __init__(self, minimum: Optional[Point3] = None, maximum: Optional[Point3] = None):
        """Create an AABB from corner points.

        Args:
            minimum: Corner with smallest x, y, z values (empty box if None)
            maximum: Corner with largest x, y, z values (empty box if None)
        """
        self.minimum = minimum if minimum is not None else Point3(INF, INF, INF)
        self.maximum = maximum if maximum is not None else Point3(-INF, -INF, -INF)

    @classmethod
    def from_points(cls, points) -> AABB:
        box = cls()
        for p in points:
            box.extend(p)
        return box

    def is_empty(self) -> bool:
        return any(self.minimum[i] > self.maximum[i] for i in range(3))

    def inside(self, point: Point3) -> bool:
        """True iff the point lies within [min, max] on every axis (inclusive)."""
        return all(self.minimum[i] <= point[i] <= self.maximum[i] for i in range(3))

    def extend(self, other: Union[Point3, AABB]) -> AABB:
        """Grow the box to contain a point or another box. Returns self."""
        if isinstance(other, AABB):
            lo, hi = other.minimum, other.maximum
        else:
            lo = hi = other
        self.minimum = Point3(
            min(self.minimum.x, lo.x),
            min(self.minimum.y, lo.y),
            min(self.minimum.z, lo.z)
        )
        self.maximum = Point3(
            max(self.maximum.x, hi.x),
            max(self.maximum.y, hi.y),
            max(self.maximum.z, hi.z)
        )
        return self

    def centroid(self) -> Point3:
        return (self.minimum + self.maximum) * 0.5

    def extent(self) -> Vec3:
        return self.maximum - self.minimum

    def longest_axis(self) -> int:
        """Axis with the largest extent; ties prefer x, then y, then z."""
        d = self.extent()
        if d.x >= d.y and d.x >= d.z:
            return 0
        if d.y >= d.z:
            return 1
        return 2

    def corners(self) -> List[Point3]:
        """The eight corners of the box."""
        return [
            Point3(x, y, z)
            for x in (self.minimum.x, self.maximum.x)
            for y in (self.minimum.y, self.maximum.y)
            for z in (self.minimum.z, self.maximum.z)
        ]

    def transformed(self, transform: Transform) -> AABB:
        """World box around the transformed corners (conservative under rotation)."""
        return AABB.from_points(transform.point(c) for c in self.corners())

    def hit(self, origin: Point3, direction: Vec3, t_min: float = 0.0, t_max: float = INF) -> bool:
        """Slab test: does the ray overlap the box for some t in [t_min, t_max]?"""
        for i in range(3):
            o = origin[i]
            d = direction[i]
            if abs(d) < PARALLEL_EPSILON:
                # Parallel to this slab: only the origin decides.
                if o < self.minimum[i] or o > self.maximum[i]:
                    return False
                continue

            inv_d = 1.0 / d
            t0 = (self.minimum[i] - o) * inv_d
            t1 = (self.maximum[i] - o) * inv_d
            if t0 > t1:
                t0, t1 = t1, t0

            t_min = max(t0, t_min)
            t_max = min(t1, t_max)

            if t_min > t_max:
                return False

        return True

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AABB):
            return NotImplemented
        return self.minimum == other.minimum and self.maximum == other.maximum

    def __repr__(self) -> str:
        return f"AABB(min={self.minimum}, max={self.maximum})"
