"""Tests for the recursive ray tracer."""

import pytest
import math
import os
import tempfile
import numpy as np
from PIL import Image

from prismtrace.vec3 import Vec3, Point3, Color
from prismtrace.ray import Ray
from prismtrace.camera import Camera
from prismtrace.filters import median_filter
from prismtrace.lights import Light, LightType
from prismtrace.materials import Material, TextureMap
from prismtrace.scene import GlobalData, Scene, SceneShape
from prismtrace.shapes import PrimitiveType
from prismtrace.textures import TextureCache
from prismtrace.transform import Transform
from prismtrace.raytracer import RayTracer, RenderConfig, new_image


def front_camera():
    return Camera(Point3(0, 0, 5), Vec3(0, 0, -1))


def shape(kind, transform=None, **material):
    return SceneShape(kind, transform or Transform.identity(), Material(**material))


def wall(z, **material):
    """A thin 20x20 slab facing the camera."""
    return shape(
        PrimitiveType.CUBE,
        Transform.compose([Transform.translate(0, 0, z), Transform.scale(20, 20, 0.1)]),
        **material
    )


def point_light(position, **kwargs):
    return Light(LightType.POINT, color=Color(1, 1, 1), position=position, **kwargs)


def make_scene(shapes, lights=(), width=1, height=1, global_data=None, camera=None):
    scene = Scene(
        width, height, camera or front_camera(), list(shapes), list(lights),
        global_data or GlobalData()
    )
    return scene.prepare()


def center_ray():
    return Ray(Point3(0, 0, 5), Vec3(0, 0, -1))


class RecordingTracer(RayTracer):
    """Records the depth of every trace call."""

    def __init__(self, config=None):
        super().__init__(config)
        self.depths = []
        self.origins = []

    def trace(self, scene, ray, depth, max_depth, rng=None):
        self.depths.append(depth)
        self.origins.append(ray.origin)
        return super().trace(scene, ray, depth, max_depth, rng)


class TestRenderConfig:
    """Test configuration validation."""

    def test_defaults(self):
        config = RenderConfig()
        assert config.enable_acceleration
        assert config.enable_shadow
        assert not config.enable_refraction
        assert config.max_depth == 4
        assert config.reflection_gate == "reflective"
        assert config.num_threads == (os.cpu_count() or 4)

    def test_supersample_and_dof_conflict(self):
        with pytest.raises(ValueError):
            RenderConfig(enable_super_sample=True, enable_depth_of_field=True)

    @pytest.mark.parametrize('kwargs', [
        {'max_depth': -1},
        {'soft_shadow_samples': 0},
        {'texture_filter': 'lanczos'},
        {'post_filter': 'gaussian'},
        {'reflection_gate': 'always'},
    ])
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            RenderConfig(**kwargs)


class TestLocalIllumination:
    """Test ambient, diffuse and specular terms."""

    def test_miss_is_background(self):
        scene = make_scene([])
        assert RayTracer().trace(scene, center_ray(), 0, 4) == Color(0, 0, 0)

    def test_ambient_and_diffuse(self):
        sphere = shape(
            PrimitiveType.SPHERE, Transform.scale(2),
            ambient=Color(0.1, 0.1, 0.1), diffuse=Color(0.5, 0, 0)
        )
        scene = make_scene([sphere], [point_light(Point3(0, 0, 10))])
        color = RayTracer().trace(scene, center_ray(), 0, 4)
        assert tuple(color) == pytest.approx((0.6, 0.1, 0.1))

    def test_global_coefficients(self):
        sphere = shape(
            PrimitiveType.SPHERE, Transform.scale(2),
            ambient=Color(1, 0, 0), diffuse=Color(0, 1, 0)
        )
        scene = make_scene(
            [sphere], [point_light(Point3(0, 0, 10))],
            global_data=GlobalData(ka=0.25, kd=0.5)
        )
        color = RayTracer().trace(scene, center_ray(), 0, 4)
        assert tuple(color) == pytest.approx((0.25, 0.5, 0))

    def test_specular_highlight(self):
        sphere = shape(
            PrimitiveType.SPHERE, Transform.scale(2),
            diffuse=Color(0.2, 0.2, 0.2), specular=Color(0.5, 0.5, 0.5), shininess=20
        )
        scene = make_scene([sphere], [point_light(Point3(0, 0, 10))])
        color = RayTracer().trace(scene, center_ray(), 0, 4)
        assert tuple(color) == pytest.approx((0.7, 0.7, 0.7))

    def test_light_behind_surface_adds_nothing(self):
        sphere = shape(PrimitiveType.SPHERE, Transform.scale(2), diffuse=Color(1, 1, 1))
        scene = make_scene([sphere], [point_light(Point3(0, 0, -10))])
        config = RenderConfig(enable_shadow=False)
        assert RayTracer(config).trace(scene, center_ray(), 0, 4) == Color(0, 0, 0)

    def test_attenuation(self):
        sphere = shape(PrimitiveType.SPHERE, Transform.scale(2), diffuse=Color(1, 1, 1))
        scene = make_scene([sphere], [point_light(Point3(0, 0, 3), attenuation=(0, 0, 1))])
        color = RayTracer().trace(scene, center_ray(), 0, 4)
        assert color.r == pytest.approx(0.25)

    def test_directional_light(self):
        sphere = shape(PrimitiveType.SPHERE, Transform.scale(2), diffuse=Color(1, 1, 1))
        light = Light(LightType.DIRECTIONAL, color=Color(0.5, 0.5, 0.5), direction=Vec3(0, 0, -1))
        scene = make_scene([sphere], [light])
        assert RayTracer().trace(scene, center_ray(), 0, 4).g == pytest.approx(0.5)

    def test_spot_outside_cone_adds_nothing(self):
        sphere = shape(PrimitiveType.SPHERE, Transform.scale(2), diffuse=Color(1, 1, 1))
        spot = Light(
            LightType.SPOT, color=Color(1, 1, 1), position=Point3(0, 0, 10),
            direction=Vec3(0, 1, 0), angle=math.radians(20)
        )
        scene = make_scene([sphere], [spot])
        assert RayTracer().trace(scene, center_ray(), 0, 4) == Color(0, 0, 0)

    def test_spot_inside_cone(self):
        sphere = shape(PrimitiveType.SPHERE, Transform.scale(2), diffuse=Color(1, 1, 1))
        spot = Light(
            LightType.SPOT, color=Color(1, 1, 1), position=Point3(0, 0, 10),
            direction=Vec3(0, 0, -1), angle=math.radians(20), penumbra=math.radians(5)
        )
        scene = make_scene([sphere], [spot])
        assert RayTracer().trace(scene, center_ray(), 0, 4).r == pytest.approx(1.0)


class TestShadows:
    """Test hard and soft shadows."""

    def test_no_self_shadowing(self):
        sphere = shape(PrimitiveType.SPHERE, Transform.scale(2), diffuse=Color(1, 1, 1))
        light = point_light(Point3(0, 0, 10))
        scene = make_scene([sphere], [light])
        tracer = RayTracer()
        visibility = tracer.light_visibility(scene, Point3(0, 0, 1), Vec3(0, 0, 1), light)
        assert visibility == 1.0

    def test_no_self_shadowing_soft(self):
        sphere = shape(PrimitiveType.SPHERE, Transform.scale(2), diffuse=Color(1, 1, 1))
        light = point_light(Point3(0, 0, 10))
        scene = make_scene([sphere], [light])
        tracer = RayTracer(RenderConfig(enable_soft_shadow=True))
        visibility = tracer.light_visibility(scene, Point3(0, 0, 1), Vec3(0, 0, 1), light)
        assert visibility == 1.0

    def test_occluder_blocks_light(self):
        sphere = shape(PrimitiveType.SPHERE, Transform.scale(2), diffuse=Color(1, 1, 1))
        blocker = shape(PrimitiveType.CUBE, Transform.translate(0.2, 0.1, 3))
        light = point_light(Point3(0, 0, 10))
        scene = make_scene([sphere, blocker], [light])
        tracer = RayTracer()
        assert tracer.light_visibility(scene, Point3(0, 0, 1), Vec3(0, 0, 1), light) == 0.0

    def test_occluder_beyond_light_does_not_block(self):
        sphere = shape(PrimitiveType.SPHERE, Transform.scale(2), diffuse=Color(1, 1, 1))
        beyond = shape(PrimitiveType.CUBE, Transform.translate(0.2, 0.1, 12))
        light = point_light(Point3(0, 0, 10))
        scene = make_scene([sphere, beyond], [light])
        assert RayTracer().light_visibility(scene, Point3(0, 0, 1), Vec3(0, 0, 1), light) == 1.0

    def test_directional_occluded_at_any_distance(self):
        sphere = shape(PrimitiveType.SPHERE, Transform.scale(2), diffuse=Color(1, 1, 1))
        far = shape(PrimitiveType.CUBE, Transform.compose([
            Transform.translate(0, 0, 500), Transform.scale(5)
        ]))
        light = Light(LightType.DIRECTIONAL, direction=Vec3(0, 0, -1))
        scene = make_scene([sphere, far], [light])
        assert RayTracer().light_visibility(scene, Point3(0, 0, 1), Vec3(0, 0, 1), light) == 0.0

    def test_shadow_darkens_pixel(self):
        sphere = shape(
            PrimitiveType.SPHERE, Transform.scale(2),
            ambient=Color(0.1, 0.1, 0.1), diffuse=Color(1, 1, 1)
        )
        blocker = shape(PrimitiveType.CUBE, Transform.translate(0.2, 0.1, 3))
        scene = make_scene([sphere, blocker], [point_light(Point3(0, 0, 10))])
        ray = Ray(Point3(0, -0.3, 1.8), Vec3(0, 0.3, -1))
        shadowed = RayTracer().trace(scene, ray, 0, 0)
        lit = RayTracer(RenderConfig(enable_shadow=False)).trace(scene, ray, 0, 0)
        assert shadowed == Color(0.1, 0.1, 0.1)
        assert lit.r > 0.5

    def test_soft_shadow_half_covered(self):
        floor_point = Point3(0, 0, 0)
        half = shape(PrimitiveType.CUBE, Transform.compose([
            Transform.translate(5, 0, 5), Transform.scale(10, 10, 1)
        ]))
        light = point_light(Point3(0, 0, 10))
        scene = make_scene([half], [light])
        tracer = RayTracer(RenderConfig(enable_soft_shadow=True, soft_shadow_samples=16))
        visibility = tracer.light_visibility(scene, floor_point, Vec3(0, 0, 1), light)
        assert visibility == pytest.approx(0.5)


class TestReflection:
    """Test mirror recursion and the reflection gate."""

    def mirror_scene(self, mirror_color, global_data=None):
        mirror = wall(0, reflective=mirror_color)
        behind = shape(
            PrimitiveType.SPHERE,
            Transform.compose([Transform.translate(0, 0, 10), Transform.scale(2)]),
            ambient=Color(0.5, 0.5, 0.5)
        )
        return make_scene([mirror, behind], global_data=global_data)

    def test_mirror_sees_object_behind_camera(self):
        scene = self.mirror_scene(Color(0.8, 0.8, 0.8))
        color = RayTracer().trace(scene, center_ray(), 0, 4)
        assert tuple(color) == pytest.approx((0.4, 0.4, 0.4))

    def test_weighted_by_ks(self):
        scene = self.mirror_scene(Color(0.8, 0.8, 0.8), GlobalData(ks=0.5))
        color = RayTracer().trace(scene, center_ray(), 0, 4)
        assert color.r == pytest.approx(0.2)

    def test_disabled(self):
        scene = self.mirror_scene(Color(0.8, 0.8, 0.8))
        tracer = RayTracer(RenderConfig(enable_reflection=False))
        assert tracer.trace(scene, center_ray(), 0, 4) == Color(0, 0, 0)

    def test_depth_zero_stops_recursion(self):
        scene = self.mirror_scene(Color(0.8, 0.8, 0.8))
        tracer = RecordingTracer()
        assert tracer.trace(scene, center_ray(), 0, 0) == Color(0, 0, 0)
        assert tracer.depths == [0]

    def test_reflective_gate_skips_plain_surfaces(self):
        scene = self.mirror_scene(Color(0, 0, 0))
        tracer = RecordingTracer(RenderConfig(reflection_gate="reflective"))
        tracer.trace(scene, center_ray(), 0, 4)
        assert tracer.depths == [0]

    def test_legacy_gate_recurses_only_on_plain_surfaces(self):
        plain = self.mirror_scene(Color(0, 0, 0))
        tracer = RecordingTracer(RenderConfig(reflection_gate="legacy"))
        color = tracer.trace(plain, center_ray(), 0, 1)
        assert tracer.depths == [0, 1]
        assert color == Color(0, 0, 0)

    def test_legacy_gate_skips_mirrors(self):
        mirror = self.mirror_scene(Color(0.8, 0.8, 0.8))
        tracer = RecordingTracer(RenderConfig(reflection_gate="legacy"))
        color = tracer.trace(mirror, center_ray(), 0, 4)
        assert tracer.depths == [0]
        assert color == Color(0, 0, 0)


class TestRecursionBound:
    """Facing mirrors must stop at max_depth."""

    @pytest.fixture
    def hall_of_mirrors(self):
        white = Color(0.9, 0.9, 0.9)
        return make_scene([wall(0, reflective=white), wall(10, reflective=white)])

    @pytest.mark.parametrize('max_depth', [0, 1, 3, 6])
    def test_bound(self, hall_of_mirrors, max_depth):
        tracer = RecordingTracer(RenderConfig(max_depth=max_depth))
        tracer.trace(hall_of_mirrors, center_ray(), 0, max_depth)
        assert max(tracer.depths) == max_depth
        assert tracer.depths == list(range(max_depth + 1))


class TestRefraction:
    """Test two-interface refraction."""

    def glass_scene(self, ior=1.5):
        glass = shape(
            PrimitiveType.SPHERE, Transform.scale(2),
            transparent=Color(1, 1, 1), ior=ior
        )
        backdrop = wall(-5, ambient=Color(0, 0.5, 0))
        return make_scene([glass, backdrop])

    def test_straight_through_sphere(self):
        tracer = RayTracer(RenderConfig(enable_refraction=True))
        color = tracer.trace(self.glass_scene(), center_ray(), 0, 4)
        assert tuple(color) == pytest.approx((0, 0.5, 0))

    def test_disabled_by_default(self):
        assert RayTracer().trace(self.glass_scene(), center_ray(), 0, 4) == Color(0, 0, 0)

    def test_weighted_by_kt(self):
        glass = shape(PrimitiveType.SPHERE, Transform.scale(2), transparent=Color(0.5, 0.5, 0.5), ior=1.2)
        backdrop = wall(-5, ambient=Color(0, 1, 0))
        scene = make_scene([glass, backdrop], global_data=GlobalData(kt=0.5))
        color = RayTracer(RenderConfig(enable_refraction=True)).trace(scene, center_ray(), 0, 4)
        assert color.g == pytest.approx(0.25)

    def test_opaque_material_does_not_recurse(self):
        scene = make_scene([wall(0, diffuse=Color(1, 1, 1))])
        tracer = RecordingTracer(RenderConfig(enable_refraction=True))
        tracer.trace(scene, center_ray(), 0, 4)
        assert tracer.depths == [0]

    def test_total_internal_reflection_contributes_nothing(self):
        cube = shape(PrimitiveType.CUBE, transparent=Color(1, 1, 1), ior=1.5)
        scene = make_scene([cube, wall(-5, ambient=Color(1, 1, 1))])
        theta = math.radians(80)
        d = Vec3(math.sin(theta), 0, -math.cos(theta))
        ray = Ray(Point3(0.3, 0, 0.5) - d, d)

        tracer = RecordingTracer(RenderConfig(enable_refraction=True))
        hit = tracer.find_nearest_hit(scene, ray.origin, ray.direction)
        assert hit.normal == Vec3(0, 0, 1)
        assert tracer.refraction(scene, ray, hit, 0, 4) == Color(0, 0, 0)
        assert tracer.depths == []

    def test_steep_entry_transmits(self):
        cube = shape(PrimitiveType.CUBE, transparent=Color(1, 1, 1), ior=1.5)
        scene = make_scene([cube, wall(-5, ambient=Color(1, 1, 1))])
        ray = Ray(Point3(0.3, 0, 2), Vec3(0, 0, -1))

        tracer = RecordingTracer(RenderConfig(enable_refraction=True))
        hit = tracer.find_nearest_hit(scene, ray.origin, ray.direction)
        color = tracer.refraction(scene, ray, hit, 0, 4)
        assert tracer.depths[0] == 1
        assert color == Color(1, 1, 1)


class TestNormalsMode:
    """Test normals-only output."""

    def test_hit_returns_facing_normal(self):
        scene = make_scene([shape(PrimitiveType.SPHERE, Transform.scale(2))])
        tracer = RayTracer(RenderConfig(only_render_normals=True))
        assert tracer.trace(scene, center_ray(), 0, 4) == Vec3(0, 0, 1)

    def test_normal_flipped_toward_viewer(self):
        scene = make_scene([shape(PrimitiveType.SPHERE, Transform.scale(2))])
        tracer = RayTracer(RenderConfig(only_render_normals=True))
        inside = Ray(Point3(0, 0, 0), Vec3(0, 0, -1))
        assert tracer.trace(scene, inside, 0, 4) == Vec3(0, 0, 1)

    def test_miss(self):
        tracer = RayTracer(RenderConfig(only_render_normals=True))
        assert tracer.trace(make_scene([]), center_ray(), 0, 4) == Vec3(-1, -1, -1)

    def test_pixel_encoding(self):
        scene = make_scene([shape(PrimitiveType.SPHERE, Transform.scale(2))])
        tracer = RayTracer(RenderConfig(only_render_normals=True, enable_parallelism=False))
        image = tracer.render(new_image(1, 1), scene)
        assert tuple(image[0, 0]) == (127, 127, 255, 255)


class TestTextures:
    """Test texture blending in the diffuse term."""

    @pytest.fixture
    def red_png(self):
        img = Image.new('RGB', (4, 4), (255, 0, 0))
        with tempfile.NamedTemporaryFile(suffix='.png', delete=False) as f:
            img.save(f, format='PNG')
        yield f.name
        os.unlink(f.name)

    def textured_scene(self, filename, blend):
        cube = shape(
            PrimitiveType.CUBE,
            diffuse=Color(0, 0, 1), blend=blend, texture=TextureMap(filename)
        )
        scene = Scene(1, 1, front_camera(), [cube], [point_light(Point3(0, 0, 10))])
        return scene.prepare(texture_cache=TextureCache())

    def test_full_blend(self, red_png):
        scene = self.textured_scene(red_png, 1.0)
        color = RayTracer().trace(scene, center_ray(), 0, 4)
        assert tuple(color) == pytest.approx((1, 0, 0))

    def test_half_blend(self, red_png):
        scene = self.textured_scene(red_png, 0.5)
        color = RayTracer().trace(scene, center_ray(), 0, 4)
        assert tuple(color) == pytest.approx((0.5, 0, 0.5))

    def test_texture_mapping_disabled(self, red_png):
        scene = self.textured_scene(red_png, 1.0)
        color = RayTracer(RenderConfig(enable_texture_map=False)).trace(scene, center_ray(), 0, 4)
        assert tuple(color) == pytest.approx((0, 0, 1))

    @pytest.mark.parametrize('kind', ['bilinear', 'bicubic'])
    def test_filtered_constant_texture(self, red_png, kind):
        scene = self.textured_scene(red_png, 1.0)
        config = RenderConfig(enable_texture_filter=True, texture_filter=kind)
        color = RayTracer(config).trace(scene, center_ray(), 0, 4)
        assert tuple(color) == pytest.approx((1, 0, 0))

    def test_missing_texture_falls_back_to_material(self):
        scene = self.textured_scene('/nonexistent/texture.png', 1.0)
        color = RayTracer().trace(scene, center_ray(), 0, 4)
        assert tuple(color) == pytest.approx((0, 0, 1))


def busy_scene(width=32, height=24):
    """A handful of non-overlapping primitives lit by two lights."""
    shapes = [
        shape(PrimitiveType.SPHERE,
              Transform.compose([Transform.translate(-1.5, 0, 0), Transform.scale(1.5)]),
              diffuse=Color(0.8, 0.2, 0.2), specular=Color(0.5, 0.5, 0.5),
              reflective=Color(0.3, 0.3, 0.3), shininess=16),
        shape(PrimitiveType.CUBE,
              Transform.compose([Transform.translate(1.5, 0, 0), Transform.rotate([0, 1, 0], 0.5)]),
              diffuse=Color(0.2, 0.8, 0.2), ambient=Color(0.05, 0.05, 0.05)),
        shape(PrimitiveType.CYLINDER, Transform.translate(0, 1.5, -1),
              diffuse=Color(0.2, 0.2, 0.8)),
        shape(PrimitiveType.CONE, Transform.translate(0, -1.5, 0),
              diffuse=Color(0.8, 0.8, 0.2)),
        SceneShape(
            PrimitiveType.TRIANGLE,
            material=Material(diffuse=Color(0.6, 0.6, 0.6)),
            vertices=[Point3(-6, -6, -4), Point3(6, -6, -4), Point3(0, 6, -4)]
        ),
    ]
    lights = [
        point_light(Point3(2, 4, 6)),
        Light(LightType.DIRECTIONAL, color=Color(0.3, 0.3, 0.3), direction=Vec3(-1, -1, -1)),
    ]
    camera = Camera(Point3(0, 0, 8), Vec3(0, 0, -1))
    return Scene(width, height, camera, shapes, lights)


class TestRender:
    """Test whole-image rendering."""

    def test_accelerated_parallel_matches_brute_force_serial(self):
        fast = RenderConfig(enable_acceleration=True, enable_parallelism=True, num_threads=4)
        slow = RenderConfig(enable_acceleration=False, enable_parallelism=False)
        a = RayTracer(fast).render(new_image(32, 24), busy_scene())
        b = RayTracer(slow).render(new_image(32, 24), busy_scene())
        assert np.array_equal(a, b)
        assert a[..., :3].any()

    def test_soft_shadows_deterministic_across_scheduling(self):
        fast = RenderConfig(enable_soft_shadow=True, soft_shadow_samples=4, num_threads=3, seed=5)
        slow = RenderConfig(
            enable_soft_shadow=True, soft_shadow_samples=4, seed=5,
            enable_acceleration=False, enable_parallelism=False
        )
        a = RayTracer(fast).render(new_image(20, 16), busy_scene(20, 16))
        b = RayTracer(slow).render(new_image(20, 16), busy_scene(20, 16))
        assert np.array_equal(a, b)

    def test_alpha_is_opaque(self):
        image = RayTracer().render(new_image(16, 12), busy_scene(16, 12))
        assert np.all(image[..., 3] == 255)

    def test_wrong_buffer_shape(self):
        with pytest.raises(ValueError):
            RayTracer().render(new_image(8, 8), busy_scene(16, 12))

    def test_prepares_unprepared_scene(self):
        scene = busy_scene(8, 6)
        assert not scene.is_prepared
        RayTracer().render(new_image(8, 6), scene)
        assert scene.is_prepared

    def test_progress_reaches_one(self):
        progress = []
        tracer = RayTracer(RenderConfig(num_threads=4))
        tracer.set_progress_callback(progress.append)
        tracer.render(new_image(40, 34), busy_scene(40, 34))
        assert max(progress) == pytest.approx(1.0)

    def test_failed_pixel_stays_background(self, caplog):
        class FailingTracer(RayTracer):
            def render_pixel(self, scene, x, y):
                if (x, y) == (1, 1):
                    raise RuntimeError("bad pixel")
                return super().render_pixel(scene, x, y)

        scene = make_scene([wall(0, ambient=Color(1, 1, 1))], width=3, height=3)
        image = FailingTracer(RenderConfig(num_threads=2)).render(new_image(3, 3), scene)
        assert tuple(image[1, 1]) == (0, 0, 0, 255)
        assert np.all(image[0, :, :3] == 255)
        assert 'Failed to shade pixel' in caplog.text

    def test_post_filter_runs_after_tiles(self):
        scene = busy_scene(16, 12)
        plain = RayTracer(RenderConfig(enable_parallelism=False)).render(new_image(16, 12), scene)
        filtered = RayTracer(RenderConfig(enable_parallelism=False, post_filter='median')).render(
            new_image(16, 12), scene
        )
        assert np.array_equal(filtered, median_filter(plain))


class TestSampling:
    """Test supersampling and depth of field."""

    def test_supersample_uniform_region(self):
        scene = make_scene([wall(0, ambient=Color(0.5, 0.5, 0.5))], width=4, height=4)
        image = RayTracer(RenderConfig(enable_super_sample=True)).render(new_image(4, 4), scene)
        assert np.all(image[..., :3] == 127)

    def test_supersample_refines_edges(self):
        scene = busy_scene(16, 12)
        config = RenderConfig(enable_super_sample=True, enable_parallelism=False, max_depth=3)
        tracer = RecordingTracer(config)
        tracer.render(new_image(16, 12), scene)
        eye = scene.camera.position
        primary = [d for d, o in zip(tracer.depths, tracer.origins) if o == eye]
        corners = [d for d in primary if d == 3]
        refinements = [d for d in primary if d == 0]
        assert set(primary) == {0, 3}
        assert len(corners) == 4 * 16 * 12
        assert refinements
        assert len(refinements) % 5 == 0

    def test_supersample_corners_are_local_only(self):
        white = Color(1, 1, 1)
        scene = make_scene([wall(0, reflective=white), wall(10, reflective=white)])
        tracer = RecordingTracer(RenderConfig(enable_super_sample=True, max_depth=3))
        tracer.render(new_image(1, 1), scene)
        # Uniform corners need no refinement, and none of them recurse
        assert tracer.depths == [3, 3, 3, 3]

    def test_depth_of_field_uniform_region(self):
        camera = Camera(Point3(0, 0, 5), Vec3(0, 0, -1), aperture=0.5, focal_length=5)
        scene = make_scene(
            [wall(0, ambient=Color(0.5, 0.5, 0.5))], width=4, height=4, camera=camera
        )
        image = RayTracer(RenderConfig(enable_depth_of_field=True)).render(new_image(4, 4), scene)
        assert np.all(image[..., :3] == 127)

    def test_depth_of_field_is_deterministic(self):
        camera = Camera(Point3(0, 0, 8), Vec3(0, 0, -1), aperture=0.4, focal_length=8)
        config = RenderConfig(enable_depth_of_field=True, num_threads=2, seed=3)
        scene = busy_scene(12, 9)
        scene.camera = camera
        a = RayTracer(config).render(new_image(12, 9), scene)
        b = RayTracer(config).render(new_image(12, 9), scene)
        assert np.array_equal(a, b)
