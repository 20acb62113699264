"""
Primitive geometry for the ray tracer.

Every primitive lives in its own object space. The four unit solids are
centred at the origin and bounded by [-0.5, 0.5]^3; scene shapes place them
in the world through a Transform. Each primitive answers three questions:

- intersect: nearest hit with t > 0 and the outward normal
- intersect_inside: farthest hit with t > 0, i.e. where a ray that started
  inside the solid leaves it
- uv: texture coordinate of a surface point, or None if the primitive has
  no parameterization
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple, TYPE_CHECKING
import math

from .vec3 import Vec3, Point3
from .aabb import AABB
from .bvh import BVH

if TYPE_CHECKING:
    from .mesh import Mesh

# Möller-Trumbore tolerance for parallel rays and minimum accepted t
TRIANGLE_EPSILON = 1e-7

# Leading quadratic coefficients and direction components below this are degenerate
DEGENERATE_EPSILON = 1e-12

# Distance from a cap plane within which a point counts as on the cap
UV_EPSILON = 1e-5

UNIT_BOUNDS = (Point3(-0.5, -0.5, -0.5), Point3(0.5, 0.5, 0.5))


class PrimitiveType(Enum):
    """Kinds of primitive a scene shape can reference."""
    SPHERE = "sphere"
    CUBE = "cube"
    CYLINDER = "cylinder"
    CONE = "cone"
    TRIANGLE = "triangle"
    MESH = "mesh"


@dataclass
class LocalHit:
    """An intersection in object space.

    Attributes:
        t: Ray parameter of the hit, in units of the object-space direction
        normal: Outward surface normal in object space (unit length)
    """
    t: float
    normal: Vec3


def _nearest(hits: List[LocalHit]) -> Optional[LocalHit]:
    best = None
    for hit in hits:
        if best is None or hit.t < best.t:
            best = hit
    return best


def _farthest(hits: List[LocalHit]) -> Optional[LocalHit]:
    best = None
    for hit in hits:
        if best is None or hit.t > best.t:
            best = hit
    return best


def _solve_quadratic(a: float, b: float, c: float) -> List[float]:
    """Real roots of at^2 + bt + c = 0, ascending. Degenerate a gives the linear root."""
    if abs(a) < DEGENERATE_EPSILON:
        if abs(b) < DEGENERATE_EPSILON:
            return []
        return [-c / b]

    discriminant = b * b - 4 * a * c
    if discriminant < 0:
        return []
    if discriminant == 0:
        return [-b / (2 * a)]

    sqrtd = math.sqrt(discriminant)
    t0 = (-b - sqrtd) / (2 * a)
    t1 = (-b + sqrtd) / (2 * a)
    return sorted((t0, t1))


def _azimuth_u(x: float, z: float) -> float:
    theta = math.atan2(z, x)
    if theta < 0:
        return -theta / (2 * math.pi)
    return 1 - theta / (2 * math.pi)


class Primitive(ABC):
    """Abstract base class for everything a ray can be tested against."""

    kind: PrimitiveType

    @abstractmethod
    def candidates(self, origin: Point3, direction: Vec3) -> List[LocalHit]:
        """All surface crossings with t > 0, in no particular order."""
        pass

    def intersect(self, origin: Point3, direction: Vec3) -> Optional[LocalHit]:
        """Nearest hit with t > 0.

        Args:
            origin: Ray origin in object space
            direction: Ray direction in object space (need not be unit length)

        Returns:
            LocalHit if the ray hits the surface, None otherwise
        """
        return _nearest(self.candidates(origin, direction))

    def intersect_inside(self, origin: Point3, direction: Vec3) -> Optional[LocalHit]:
        """Farthest hit with t > 0 (the exit point of a ray inside the solid)."""
        return _farthest(self.candidates(origin, direction))

    def uv(self, point: Point3) -> Optional[Tuple[float, float]]:
        """Texture coordinate of an object-space surface point."""
        return None

    def bounds(self) -> AABB:
        """Object-space bounding box."""
        return AABB(*UNIT_BOUNDS)


class UnitSphere(Primitive):
    """Sphere of radius 0.5 centred at the origin."""

    kind = PrimitiveType.SPHERE
    radius = 0.5

    def candidates(self, origin: Point3, direction: Vec3) -> List[LocalHit]:
        """Solve |o + td|^2 = r^2 for t."""
        a = direction.length_squared()
        if a < DEGENERATE_EPSILON:
            return []
        b = 2 * origin.dot(direction)
        c = origin.length_squared() - self.radius * self.radius

        hits = []
        for t in _solve_quadratic(a, b, c):
            if t > 0:
                point = origin + direction * t
                hits.append(LocalHit(t, (point * 2).normalize()))
        return hits

    def uv(self, point: Point3) -> Tuple[float, float]:
        u = _azimuth_u(point.x, point.z)
        s = max(-1.0, min(1.0, point.y / self.radius))
        v = math.asin(s) / math.pi + 0.5
        return u, v


class UnitCube(Primitive):
    """Axis-aligned cube spanning [-0.5, 0.5] on every axis."""

    kind = PrimitiveType.CUBE

    def candidates(self, origin: Point3, direction: Vec3) -> List[LocalHit]:
        """Test the six face planes, keeping crossings inside the face."""
        hits = []
        for axis in range(3):
            d = direction[axis]
            if abs(d) < DEGENERATE_EPSILON:
                continue
            o = origin[axis]
            others = [i for i in range(3) if i != axis]
            for side in (-0.5, 0.5):
                t = (side - o) / d
                if t <= 0:
                    continue
                inside_face = all(
                    -0.5 <= origin[i] + t * direction[i] <= 0.5 for i in others
                )
                if not inside_face:
                    continue
                n = [0.0, 0.0, 0.0]
                n[axis] = 1.0 if side > 0 else -1.0
                hits.append(LocalHit(t, Vec3(*n)))
        return hits

    def uv(self, point: Point3) -> Tuple[float, float]:
        """Planar mapping of whichever face the point lies on."""
        x, y, z = point
        if abs(x - 0.5) < UV_EPSILON:
            return -z + 0.5, y + 0.5
        if abs(x + 0.5) < UV_EPSILON:
            return z + 0.5, y + 0.5
        if abs(y - 0.5) < UV_EPSILON:
            return x + 0.5, -z + 0.5
        if abs(y + 0.5) < UV_EPSILON:
            return x + 0.5, z + 0.5
        if abs(z - 0.5) < UV_EPSILON:
            return x + 0.5, y + 0.5
        return -x + 0.5, y + 0.5


class UnitCylinder(Primitive):
    """Cylinder of radius 0.5 around the y axis, capped at y = +-0.5."""

    kind = PrimitiveType.CYLINDER

    def candidates(self, origin: Point3, direction: Vec3) -> List[LocalHit]:
        ox, oy, oz = origin
        dx, dy, dz = direction
        hits = []

        # Lateral surface: x^2 + z^2 = r^2 within the finite height
        a = dx * dx + dz * dz
        if a >= DEGENERATE_EPSILON:
            b = 2 * (ox * dx + oz * dz)
            c = ox * ox + oz * oz - 0.25
            for t in _solve_quadratic(a, b, c):
                if t <= 0:
                    continue
                y = oy + t * dy
                if -0.5 <= y <= 0.5:
                    x = ox + t * dx
                    z = oz + t * dz
                    hits.append(LocalHit(t, Vec3(x, 0, z).normalize()))

        # Flat caps
        if abs(dy) >= DEGENERATE_EPSILON:
            for cap in (-0.5, 0.5):
                t = (cap - oy) / dy
                if t <= 0:
                    continue
                x = ox + t * dx
                z = oz + t * dz
                if x * x + z * z <= 0.25:
                    hits.append(LocalHit(t, Vec3(0, 1 if cap > 0 else -1, 0)))

        return hits

    def uv(self, point: Point3) -> Tuple[float, float]:
        x, y, z = point
        if abs(y + 0.5) < UV_EPSILON:
            return x + 0.5, z + 0.5
        if abs(y - 0.5) < UV_EPSILON:
            return x + 0.5, -z + 0.5
        return _azimuth_u(x, z), y + 0.5


class UnitCone(Primitive):
    """Cone around the y axis with its apex at y = 0.5 and a base of radius 0.5 at y = -0.5."""

    kind = PrimitiveType.CONE

    def candidates(self, origin: Point3, direction: Vec3) -> List[LocalHit]:
        ox, oy, oz = origin
        dx, dy, dz = direction
        hits = []

        # Lateral surface: x^2 + z^2 - (0.5 - y)^2 / 4 = 0
        a = dx * dx + dz * dz - 0.25 * dy * dy
        b = 2 * (ox * dx + oz * dz) - 0.5 * oy * dy + 0.25 * dy
        c = ox * ox + oz * oz - 0.25 * oy * oy + 0.25 * oy - 0.0625
        for t in _solve_quadratic(a, b, c):
            if t <= 0:
                continue
            y = oy + t * dy
            if -0.5 <= y <= 0.5:
                x = ox + t * dx
                z = oz + t * dz
                hits.append(LocalHit(t, self._lateral_normal(x, y, z)))

        # Base cap
        if abs(dy) >= DEGENERATE_EPSILON:
            t = (-0.5 - oy) / dy
            if t > 0:
                x = ox + t * dx
                z = oz + t * dz
                if x * x + z * z <= 0.25:
                    hits.append(LocalHit(t, Vec3(0, -1, 0)))

        return hits

    @staticmethod
    def _lateral_normal(x: float, y: float, z: float) -> Vec3:
        """Gradient of the implicit surface; straight up at the apex."""
        n = Vec3(2 * x, 0.5 * (0.5 - y), 2 * z)
        if n.near_zero():
            return Vec3(0, 1, 0)
        return n.normalize()

    def uv(self, point: Point3) -> Tuple[float, float]:
        x, y, z = point
        if abs(y + 0.5) < UV_EPSILON:
            return x + 0.5, z + 0.5
        return _azimuth_u(x, z), y + 0.5


def intersect_triangle(
    origin: Point3,
    direction: Vec3,
    v0: Point3,
    v1: Point3,
    v2: Point3
) -> Optional[Tuple[float, float, float]]:
    """Möller-Trumbore ray-triangle test.

    Returns:
        (t, u, v) with barycentric weights u for v1 and v for v2, or None on
        a miss, a near-parallel ray, or t at or below the tolerance
    """
    e1 = v1 - v0
    e2 = v2 - v0
    h = direction.cross(e2)
    det = e1.dot(h)

    # Ray is parallel to triangle
    if abs(det) < TRIANGLE_EPSILON:
        return None

    f = 1.0 / det
    s = origin - v0
    u = f * s.dot(h)
    if u < 0.0 or u > 1.0:
        return None

    q = s.cross(e1)
    v = f * direction.dot(q)
    if v < 0.0 or u + v > 1.0:
        return None

    t = f * e2.dot(q)
    if t <= TRIANGLE_EPSILON:
        return None
    return t, u, v


class Triangle(Primitive):
    """A triangle defined by three vertices, counter-clockwise for the front face."""

    kind = PrimitiveType.TRIANGLE

    def __init__(self, v0: Point3, v1: Point3, v2: Point3):
        self.v0 = v0
        self.v1 = v1
        self.v2 = v2
        self.normal = (v1 - v0).cross(v2 - v0).normalize()

    def candidates(self, origin: Point3, direction: Vec3) -> List[LocalHit]:
        result = intersect_triangle(origin, direction, self.v0, self.v1, self.v2)
        if result is None:
            return []
        return [LocalHit(result[0], self.normal)]

    def bounds(self) -> AABB:
        return AABB.from_points((self.v0, self.v1, self.v2))


class MeshPrimitive(Primitive):
    """A triangle mesh tested through its own triangle BVH."""

    kind = PrimitiveType.MESH

    def __init__(self, mesh: Mesh, bvh: Optional[BVH] = None):
        """Wrap a loaded mesh.

        Args:
            mesh: The shared, read-only mesh
            bvh: Triangle hierarchy in object space (built here if None)
        """
        self.mesh = mesh
        self.bvh = bvh if bvh is not None else BVH.for_mesh(mesh)

    def _face_normal(self, index: int, u: float, v: float) -> Vec3:
        """Smooth normal from vertex normals when the face has them, else the flat normal."""
        face = self.mesh.faces[index]
        if face.vn is not None:
            n0, n1, n2 = (self.mesh.normals[i] for i in face.vn)
            n = n0 * (1 - u - v) + n1 * u + n2 * v
            if not n.near_zero():
                return n.normalize()
        a, b, c = self.mesh.triangle(index)
        return (b - a).cross(c - a).normalize()

    def candidates(self, origin: Point3, direction: Vec3) -> List[LocalHit]:
        hits = []
        for index in self.bvh.potential_intersections(origin, direction):
            result = intersect_triangle(origin, direction, *self.mesh.triangle(index))
            if result is None:
                continue
            t, u, v = result
            hits.append(LocalHit(t, self._face_normal(index, u, v)))
        return hits

    def bounds(self) -> AABB:
        return self.mesh.bounds()


_UNIT_PRIMITIVES = {
    PrimitiveType.SPHERE: UnitSphere(),
    PrimitiveType.CUBE: UnitCube(),
    PrimitiveType.CYLINDER: UnitCylinder(),
    PrimitiveType.CONE: UnitCone(),
}


def unit_primitive(kind: PrimitiveType) -> Primitive:
    """Shared stateless instance of a unit solid."""
    try:
        return _UNIT_PRIMITIVES[kind]
    except KeyError:
        raise ValueError(f"{kind.value} is not a unit primitive") from None
