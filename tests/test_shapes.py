"""Tests for primitive geometry."""

import pytest

from prismtrace.vec3 import Vec3, Point3
from prismtrace.aabb import AABB
from prismtrace.mesh import Face, Mesh
from prismtrace.shapes import (
    MeshPrimitive, PrimitiveType, Triangle, UnitCone, UnitCube,
    UnitCylinder, UnitSphere, intersect_triangle, unit_primitive
)


class TestUnitSphere:
    """Test sphere intersection."""

    def test_hit_from_front(self):
        hit = UnitSphere().intersect(Point3(0, 0, -2), Vec3(0, 0, 1))
        assert hit.t == pytest.approx(1.5)
        assert hit.normal == Vec3(0, 0, -1)

    def test_unnormalized_direction_scales_t(self):
        hit = UnitSphere().intersect(Point3(0, 0, -2), Vec3(0, 0, 3))
        assert hit.t == pytest.approx(0.5)

    def test_miss(self):
        assert UnitSphere().intersect(Point3(0, 1, -2), Vec3(0, 0, 1)) is None

    def test_behind(self):
        assert UnitSphere().intersect(Point3(0, 0, 2), Vec3(0, 0, 1)) is None

    def test_zero_direction(self):
        assert UnitSphere().intersect(Point3(0, 0, -2), Vec3(0, 0, 0)) is None

    def test_from_inside(self):
        hit = UnitSphere().intersect(Point3(0, 0, 0), Vec3(1, 0, 0))
        assert hit.t == pytest.approx(0.5)
        assert hit.normal == Vec3(1, 0, 0)

    def test_inside_intersect_returns_far_side(self):
        hit = UnitSphere().intersect_inside(Point3(0, 0, -2), Vec3(0, 0, 1))
        assert hit.t == pytest.approx(2.5)
        assert hit.normal == Vec3(0, 0, 1)

    def test_uv(self):
        sphere = UnitSphere()
        assert sphere.uv(Point3(0.5, 0, 0)) == pytest.approx((1.0, 0.5))
        assert sphere.uv(Point3(0, 0, 0.5)) == pytest.approx((0.75, 0.5))
        assert sphere.uv(Point3(0, 0, -0.5)) == pytest.approx((0.25, 0.5))
        assert sphere.uv(Point3(0, 0.5, 0))[1] == pytest.approx(1.0)


class TestUnitCube:
    """Test cube intersection."""

    def test_hit_from_left(self):
        hit = UnitCube().intersect(Point3(-2, 0, 0), Vec3(1, 0, 0))
        assert hit.t == pytest.approx(1.5)
        assert hit.normal == Vec3(-1, 0, 0)

    def test_hit_top(self):
        hit = UnitCube().intersect(Point3(0.1, 3, 0.2), Vec3(0, -1, 0))
        assert hit.t == pytest.approx(2.5)
        assert hit.normal == Vec3(0, 1, 0)

    def test_edge_is_inclusive(self):
        hit = UnitCube().intersect(Point3(-2, 0.5, 0), Vec3(1, 0, 0))
        assert hit is not None
        assert hit.t == pytest.approx(1.5)

    def test_miss(self):
        assert UnitCube().intersect(Point3(-2, 0.6, 0), Vec3(1, 0, 0)) is None

    def test_inside_exit(self):
        hit = UnitCube().intersect_inside(Point3(0, 0, 0), Vec3(0, 0, -1))
        assert hit.t == pytest.approx(0.5)
        assert hit.normal == Vec3(0, 0, -1)

    def test_uv_on_front_face(self):
        assert UnitCube().uv(Point3(0.1, 0.2, 0.5)) == pytest.approx((0.6, 0.7))


class TestUnitCylinder:
    """Test cylinder intersection."""

    def test_side(self):
        hit = UnitCylinder().intersect(Point3(-2, 0, 0), Vec3(1, 0, 0))
        assert hit.t == pytest.approx(1.5)
        assert hit.normal == Vec3(-1, 0, 0)

    def test_top_cap(self):
        hit = UnitCylinder().intersect(Point3(0, 2, 0), Vec3(0, -1, 0))
        assert hit.t == pytest.approx(1.5)
        assert hit.normal == Vec3(0, 1, 0)

    def test_bottom_cap_inside_exit(self):
        hit = UnitCylinder().intersect_inside(Point3(0.1, 2, 0), Vec3(0, -1, 0))
        assert hit.t == pytest.approx(2.5)
        assert hit.normal == Vec3(0, -1, 0)

    def test_above_height_misses(self):
        assert UnitCylinder().intersect(Point3(-2, 0.7, 0), Vec3(1, 0, 0)) is None

    def test_uv(self):
        cylinder = UnitCylinder()
        assert cylinder.uv(Point3(0.1, -0.5, 0.2)) == pytest.approx((0.6, 0.7))
        assert cylinder.uv(Point3(0, 0.25, -0.5)) == pytest.approx((0.25, 0.75))


class TestUnitCone:
    """Test cone intersection."""

    def test_apex_normal_points_up(self):
        hit = UnitCone().intersect(Point3(0, 2, 0), Vec3(0, -1, 0))
        assert hit.t == pytest.approx(1.5)
        assert hit.normal == Vec3(0, 1, 0)

    def test_side(self):
        hit = UnitCone().intersect(Point3(-2, 0, 0), Vec3(1, 0, 0))
        assert hit.t == pytest.approx(1.75)
        assert hit.normal.x < 0
        assert hit.normal.y > 0
        assert hit.normal.length() == pytest.approx(1.0)

    def test_base_cap(self):
        hit = UnitCone().intersect(Point3(0, -2, 0), Vec3(0, 1, 0))
        assert hit.t == pytest.approx(1.5)
        assert hit.normal == Vec3(0, -1, 0)

    def test_inside_exits_through_side(self):
        hit = UnitCone().intersect_inside(Point3(0, 0, 0), Vec3(1, 0, 0))
        assert hit.t == pytest.approx(0.25)
        assert hit.normal.x > 0
        assert hit.normal.y > 0

    def test_inside_exits_through_base(self):
        hit = UnitCone().intersect_inside(Point3(0, 0, 0), Vec3(0, -1, 0))
        assert hit.t == pytest.approx(0.5)
        assert hit.normal == Vec3(0, -1, 0)

    def test_inside_picks_far_side(self):
        hit = UnitCone().intersect_inside(Point3(-2, 0, 0), Vec3(1, 0, 0))
        assert hit.t == pytest.approx(2.25)
        assert hit.normal.x > 0

    def test_narrow_top_misses(self):
        assert UnitCone().intersect(Point3(-2, 0.4, 0), Vec3(1, 0, 0)).t == pytest.approx(1.95)
        assert UnitCone().intersect(Point3(-2, 0.4, 0.2), Vec3(1, 0, 0)) is None

    def test_uv_on_base(self):
        assert UnitCone().uv(Point3(0.1, -0.5, 0.2)) == pytest.approx((0.6, 0.7))


class TestTriangle:
    """Test Möller-Trumbore triangles."""

    @pytest.fixture
    def tri(self):
        return Triangle(Point3(0, 0, 0), Point3(1, 0, 0), Point3(0, 1, 0))

    def test_hit(self, tri):
        hit = tri.intersect(Point3(0.2, 0.2, 1), Vec3(0, 0, -1))
        assert hit.t == pytest.approx(1.0)
        assert hit.normal == Vec3(0, 0, 1)

    def test_barycentrics(self):
        t, u, v = intersect_triangle(
            Point3(0.2, 0.3, 1), Vec3(0, 0, -1),
            Point3(0, 0, 0), Point3(1, 0, 0), Point3(0, 1, 0)
        )
        assert (t, u, v) == pytest.approx((1.0, 0.2, 0.3))

    def test_parallel(self, tri):
        assert tri.intersect(Point3(0, 0, 1), Vec3(1, 0, 0)) is None

    def test_behind(self, tri):
        assert tri.intersect(Point3(0.2, 0.2, -1), Vec3(0, 0, -1)) is None

    def test_outside(self, tri):
        assert tri.intersect(Point3(2, 2, 1), Vec3(0, 0, -1)) is None

    def test_no_uv(self, tri):
        assert tri.uv(Point3(0.2, 0.2, 0)) is None

    def test_bounds(self, tri):
        assert tri.bounds() == AABB(Point3(0, 0, 0), Point3(1, 1, 0))

    def test_degenerate(self):
        tri = Triangle(Point3(0, 0, 0), Point3(1, 0, 0), Point3(2, 0, 0))
        assert tri.intersect(Point3(0.5, 0, 1), Vec3(0, 0, -1)) is None


class TestMeshPrimitive:
    """Test BVH-backed triangle meshes."""

    def test_flat_normal(self):
        mesh = Mesh(
            vertices=[Point3(0, 0, 0), Point3(1, 0, 0), Point3(0, 1, 0)],
            faces=[Face((0, 1, 2))]
        )
        hit = MeshPrimitive(mesh).intersect(Point3(0.25, 0.25, 1), Vec3(0, 0, -1))
        assert hit.normal == Vec3(0, 0, 1)

    def test_smooth_normal(self):
        mesh = Mesh(
            vertices=[Point3(0, 0, 0), Point3(1, 0, 0), Point3(0, 1, 0)],
            normals=[Vec3(0, 0, 1), Vec3(1, 0, 0), Vec3(0, 1, 0)],
            faces=[Face((0, 1, 2), (0, 1, 2))]
        )
        hit = MeshPrimitive(mesh).intersect(Point3(0.25, 0.25, 1), Vec3(0, 0, -1))
        assert hit.normal == Vec3(0.25, 0.25, 0.5).normalize()

    def test_nearest_and_farthest(self):
        mesh = Mesh(
            vertices=[Point3(-1, -1, 0), Point3(1, -1, 0), Point3(0, 1, 0),
                      Point3(-1, -1, -1), Point3(1, -1, -1), Point3(0, 1, -1)],
            faces=[Face((0, 1, 2)), Face((3, 4, 5))]
        )
        prim = MeshPrimitive(mesh)
        assert prim.intersect(Point3(0, 0, 1), Vec3(0, 0, -1)).t == pytest.approx(1.0)
        assert prim.intersect_inside(Point3(0, 0, 1), Vec3(0, 0, -1)).t == pytest.approx(2.0)

    def test_bounds(self):
        mesh = Mesh(
            vertices=[Point3(-1, 0, 0), Point3(2, 0, 0), Point3(0, 3, 1)],
            faces=[Face((0, 1, 2))]
        )
        assert MeshPrimitive(mesh).bounds() == AABB(Point3(-1, 0, 0), Point3(2, 3, 1))


class TestUnitPrimitive:
    def test_shared_instances(self):
        assert unit_primitive(PrimitiveType.SPHERE) is unit_primitive(PrimitiveType.SPHERE)
        assert isinstance(unit_primitive(PrimitiveType.CONE), UnitCone)

    def test_unit_bounds(self):
        box = unit_primitive(PrimitiveType.CUBE).bounds()
        assert box == AABB(Point3(-0.5, -0.5, -0.5), Point3(0.5, 0.5, 0.5))

    def test_triangle_is_not_unit(self):
        with pytest.raises(ValueError):
            unit_primitive(PrimitiveType.TRIANGLE)
