"""
Recursive Whitted-style ray tracer - the heart of the renderer.

Implements:
- Nearest-hit search over BVH-culled (or all) scene shapes
- Phong local illumination with directional, point and spot lights
- Hard and stratified soft shadows
- Mirror reflection and two-interface refraction with a depth bound
- Adaptive supersampling or thin-lens depth of field per pixel
- Tile-parallel rendering into an RGBA uint8 buffer
"""

from __future__ import annotations
import logging
import random
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

import numpy as np

from .vec3 import Vec3, Point3, Color
from .ray import Ray
from .lights import Light
from .mesh import MeshCache
from .scene import Scene, SceneShape
from .scheduler import Tile, generate_tiles, resolve_thread_count, run_tiles
from .textures import BILINEAR, FILTER_KINDS as TEXTURE_FILTERS, NEAREST, TextureCache, sample_texture
from . import filters

logger = logging.getLogger(__name__)

# Offset along the surface normal (or refracted direction) for secondary ray origins
SURFACE_EPSILON = 1e-3

# Summed distance of the corner samples from their mean above which a pixel is refined
SUPERSAMPLE_THRESHOLD = 0.1

# Side of the sub-pixel grid for depth of field
DOF_GRID = 3

REFLECTION_GATES = ("reflective", "legacy")

BACKGROUND = Color(0, 0, 0)
MISS_NORMAL = Vec3(-1, -1, -1)


@dataclass
class RenderConfig:
    """Feature toggles and tuning for a render."""
    enable_acceleration: bool = True
    enable_parallelism: bool = True
    enable_shadow: bool = True
    enable_soft_shadow: bool = False
    enable_reflection: bool = True
    enable_refraction: bool = False
    enable_texture_map: bool = True
    enable_texture_filter: bool = False
    texture_filter: str = BILINEAR
    enable_super_sample: bool = False
    enable_depth_of_field: bool = False
    max_depth: int = 4
    only_render_normals: bool = False
    num_threads: int = 0  # 0 = auto-detect
    soft_shadow_samples: int = 16
    post_filter: Optional[str] = None
    filter_kernel_size: int = filters.DEFAULT_KERNEL_SIZE
    seed: int = 0
    reflection_gate: str = "reflective"

    def __post_init__(self):
        if self.enable_super_sample and self.enable_depth_of_field:
            raise ValueError("Supersampling and depth of field cannot both be enabled")
        if self.max_depth < 0:
            raise ValueError(f"max_depth must be non-negative, got {self.max_depth}")
        if self.soft_shadow_samples < 1:
            raise ValueError(f"soft_shadow_samples must be at least 1, got {self.soft_shadow_samples}")
        if self.texture_filter not in TEXTURE_FILTERS:
            raise ValueError(f"Unknown texture filter: {self.texture_filter}")
        if self.post_filter is not None and self.post_filter not in filters.FILTER_KINDS:
            raise ValueError(f"Unknown post filter: {self.post_filter}")
        if self.reflection_gate not in REFLECTION_GATES:
            raise ValueError(f"Unknown reflection gate: {self.reflection_gate}")
        self.num_threads = resolve_thread_count(self.num_threads)


@dataclass
class Hit:
    """Nearest intersection along a world-space ray.

    Attributes:
        t: Ray parameter of the hit
        point: World-space hit position
        normal: Outward world-space surface normal (unit length)
        shape: The shape that was hit
    """
    t: float
    point: Point3
    normal: Vec3
    shape: SceneShape


class RayTracer:
    """Renders a prepared scene into an RGBA buffer."""

    def __init__(
        self,
        config: RenderConfig = None,
        mesh_cache: Optional[MeshCache] = None,
        texture_cache: Optional[TextureCache] = None
    ):
        """Create a ray tracer.

        Args:
            config: Render configuration (uses defaults if None)
            mesh_cache: Cache used when preparing an unprepared scene
            texture_cache: Cache used when preparing an unprepared scene
        """
        self.config = config if config else RenderConfig()
        self.mesh_cache = mesh_cache if mesh_cache is not None else MeshCache()
        self.texture_cache = texture_cache if texture_cache is not None else TextureCache()
        self._progress_callback: Optional[Callable[[float], None]] = None

    def set_progress_callback(self, callback: Callable[[float], None]) -> None:
        """Set a callback function for progress updates.

        Args:
            callback: Function that takes progress as float (0.0 to 1.0)
        """
        self._progress_callback = callback

    # ------------------------------------------------------------------
    # Image level
    # ------------------------------------------------------------------

    def render(self, image: np.ndarray, scene: Scene) -> np.ndarray:
        """Render the scene into the buffer in place.

        Args:
            image: (height, width, 4) uint8 buffer matching the scene size
            scene: Scene to render; prepared first if it is not already

        Returns:
            The same buffer, for convenience
        """
        expected = (scene.height, scene.width, 4)
        if image.shape != expected or image.dtype != np.uint8:
            raise ValueError(f"Expected a uint8 buffer of shape {expected}, got {image.dtype} {image.shape}")

        if not scene.is_prepared:
            scene.prepare(self.mesh_cache, self.texture_cache)

        image[..., :3] = 0
        image[..., 3] = 255

        def render_tile(tile: Tile) -> None:
            self.render_tile(image, scene, tile)

        if self.config.enable_parallelism:
            workers = self.config.num_threads
            queue = generate_tiles(scene.width, scene.height, workers)
            total = len(queue)
            logger.info(
                "Rendering %dx%d in %d tiles on %d threads",
                scene.width, scene.height, total, workers
            )

            def progress(done: int) -> None:
                if self._progress_callback:
                    self._progress_callback(done / total)

            run_tiles(queue, render_tile, workers, progress)
        else:
            logger.info("Rendering %dx%d on the calling thread", scene.width, scene.height)
            render_tile(Tile(0, 0, scene.width, scene.height))
            if self._progress_callback:
                self._progress_callback(1.0)

        if self.config.post_filter:
            image[...] = filters.apply_filter(
                image, self.config.post_filter, self.config.filter_kernel_size
            )

        return image

    def render_tile(self, image: np.ndarray, scene: Scene, tile: Tile) -> None:
        """Shade every pixel of a tile; a pixel that fails stays at background."""
        for x, y in tile.pixels():
            try:
                value = self.render_pixel(scene, x, y)
                image[y, x, :3] = self.to_rgb(value)
            except Exception:
                logger.exception("Failed to shade pixel (%d, %d)", x, y)

    def pixel_rng(self, x: int, y: int) -> random.Random:
        """Random source for one pixel, independent of tile scheduling order."""
        return random.Random(f"{self.config.seed}:{x}:{y}")

    def render_pixel(self, scene: Scene, x: int, y: int) -> Color:
        """Radiance (or normal, in normals mode) of pixel (x, y)."""
        rng = self.pixel_rng(x, y)
        if self.config.enable_super_sample:
            return self._supersample(scene, x, y, rng)
        if self.config.enable_depth_of_field:
            return self._depth_of_field(scene, x, y, rng)
        ray = scene.camera.get_ray(x + 0.5, y + 0.5, scene.width, scene.height)
        return self.trace(scene, ray, 0, self.config.max_depth, rng)

    def _supersample(self, scene: Scene, x: int, y: int, rng: random.Random) -> Color:
        """Adaptive supersampling: corners first, five more samples if they disagree.

        Corner samples start at max_depth and so are local illumination only.
        The refinement samples start at depth 0 and recurse fully.
        """
        camera = scene.camera
        max_depth = self.config.max_depth

        def sample(px: float, py: float, depth: int) -> Color:
            ray = camera.get_ray(px, py, scene.width, scene.height)
            return self.trace(scene, ray, depth, max_depth, rng)

        samples = [
            sample(x, y, max_depth),
            sample(x + 1, y, max_depth),
            sample(x, y + 1, max_depth),
            sample(x + 1, y + 1, max_depth),
        ]
        mean = sum(samples, Color(0, 0, 0)) / len(samples)
        spread = sum((s - mean).length() for s in samples)

        if spread > SUPERSAMPLE_THRESHOLD:
            for px, py in ((x + 0.5, y), (x, y + 0.5), (x + 0.5, y + 0.5),
                           (x + 1, y + 0.5), (x + 0.5, y + 1)):
                samples.append(sample(px, py, 0))

        return sum(samples, Color(0, 0, 0)) / len(samples)

    def _depth_of_field(self, scene: Scene, x: int, y: int, rng: random.Random) -> Color:
        """Average of lens rays over a sub-pixel grid."""
        step = 1.0 / DOF_GRID
        total = Color(0, 0, 0)
        for sy in range(DOF_GRID):
            for sx in range(DOF_GRID):
                px = x + (sx + 0.5) * step
                py = y + (sy + 0.5) * step
                ray = scene.camera.get_lens_ray(px, py, scene.width, scene.height, rng)
                total = total + self.trace(scene, ray, 0, self.config.max_depth, rng)
        return total / (DOF_GRID * DOF_GRID)

    def to_rgb(self, value: Vec3) -> Tuple[int, int, int]:
        """Map radiance (or a normal in normals mode) to 8-bit channels."""
        if self.config.only_render_normals:
            scaled = (value + 1.0) * 0.5 * 255.0
        else:
            scaled = value.clamp(0.0, 1.0) * 255.0
        return tuple(int(min(max(c, 0.0), 255.0)) for c in scaled)

    # ------------------------------------------------------------------
    # Ray level
    # ------------------------------------------------------------------

    def trace(
        self,
        scene: Scene,
        ray: Ray,
        depth: int,
        max_depth: int,
        rng: Optional[random.Random] = None
    ) -> Color:
        """Radiance arriving along a ray.

        Args:
            scene: Prepared scene
            ray: World-space ray
            depth: Current recursion depth (0 for camera rays)
            max_depth: Secondary rays are spawned only while depth < max_depth
            rng: Random source for soft shadows

        Returns:
            Radiance, or the facing surface normal in normals mode
        """
        hit = self.find_nearest_hit(scene, ray.origin, ray.direction)
        if hit is None:
            return MISS_NORMAL if self.config.only_render_normals else BACKGROUND

        view = (-ray.direction).normalize()
        normal = hit.normal if hit.normal.dot(view) >= 0 else -hit.normal

        if self.config.only_render_normals:
            return normal

        color = self.local_illumination(scene, hit, normal, view, rng)

        if depth < max_depth:
            if self.config.enable_reflection:
                color = color + self.reflection(scene, ray, hit, normal, depth, max_depth, rng)
            if self.config.enable_refraction:
                color = color + self.refraction(scene, ray, hit, depth, max_depth, rng)

        return color

    def find_nearest_hit(self, scene: Scene, origin: Point3, direction: Vec3) -> Optional[Hit]:
        """Smallest positive t over all candidate shapes; the first of equal t wins."""
        best = None
        for shape in scene.candidates(origin, direction, self.config.enable_acceleration):
            local = shape.intersect(origin, direction)
            if local is None or local.t <= 0:
                continue
            if best is None or local.t < best.t:
                best = Hit(local.t, origin + direction * local.t, local.normal, shape)
        return best

    def is_occluded(self, scene: Scene, origin: Point3, direction: Vec3, max_distance: float) -> bool:
        """Does any shape block the unit-direction ray before max_distance?"""
        for shape in scene.candidates(origin, direction, self.config.enable_acceleration):
            local = shape.intersect(origin, direction)
            if local is not None and 0 < local.t < max_distance:
                return True
        return False

    # ------------------------------------------------------------------
    # Shading
    # ------------------------------------------------------------------

    def texture_color(self, scene: Scene, hit: Hit) -> Optional[Color]:
        """Texture sample at the hit point, or None if the surface has none."""
        texture = hit.shape.material.texture
        if not self.config.enable_texture_map or texture is None:
            return None
        uv = hit.shape.uv(hit.point)
        if uv is None:
            return None
        kind = self.config.texture_filter if self.config.enable_texture_filter else NEAREST
        return sample_texture(
            scene.texture_image(texture.filename),
            uv[0], uv[1], texture.repeat_u, texture.repeat_v, kind
        )

    def local_illumination(
        self,
        scene: Scene,
        hit: Hit,
        normal: Vec3,
        view: Vec3,
        rng: Optional[random.Random] = None
    ) -> Color:
        """Ambient plus attenuated, shadowed diffuse and specular from every light.

        Args:
            scene: Prepared scene
            hit: Surface hit
            normal: Unit normal flipped to face the viewer
            view: Unit direction from the hit point toward the viewer
            rng: Random source for soft shadows
        """
        material = hit.shape.material
        coeffs = scene.global_data
        color = material.ambient * coeffs.ka

        texture = self.texture_color(scene, hit)
        base = material.diffuse * coeffs.kd
        if texture is not None:
            base = texture * material.blend + base * (1 - material.blend)

        for light in scene.lights:
            to_light, distance = light.direction_from(hit.point)
            falloff = light.falloff(hit.point)
            if falloff >= 1.0:
                continue
            att = light.attenuation_at(distance)

            n_dot_l = max(0.0, min(1.0, normal.dot(to_light)))
            diffuse = base * n_dot_l

            reflected = normal * (2 * to_light.dot(normal)) - to_light
            r_dot_v = max(0.0, min(1.0, reflected.dot(view)))
            specular = material.specular * (coeffs.ks * r_dot_v ** material.shininess)

            visibility = 1.0
            if self.config.enable_shadow:
                visibility = self.light_visibility(scene, hit.point, normal, light, rng)

            color = color + light.color * (diffuse + specular) * (att * (1 - falloff) * visibility)

        return color

    def light_visibility(
        self,
        scene: Scene,
        point: Point3,
        normal: Vec3,
        light: Light,
        rng: Optional[random.Random] = None
    ) -> float:
        """Unoccluded fraction of a light as seen from a surface point.

        Hard shadows give 0 or 1. With soft shadows enabled, point and spot
        lights are sampled over their emitter rectangle.
        """
        origin = point + normal * SURFACE_EPSILON

        if self.config.enable_soft_shadow and light.has_area:
            rng = rng if rng is not None else random.Random(self.config.seed)
            samples = light.area_samples(rng, self.config.soft_shadow_samples)
            clear = 0
            for sample in samples:
                offset = sample - origin
                if not self.is_occluded(scene, origin, offset.normalize(), offset.length()):
                    clear += 1
            return clear / len(samples)

        to_light, distance = light.direction_from(origin)
        return 0.0 if self.is_occluded(scene, origin, to_light, distance) else 1.0

    def reflection_gate(self, shape: SceneShape) -> bool:
        """Whether a hit on this shape spawns a mirror ray.

        "reflective" recurses for materials with a non-zero reflective color.
        "legacy" keeps the inverted historical test, recursing only when the
        reflective color is zero, which always contributes nothing.
        """
        reflective = shape.material.is_reflective
        if self.config.reflection_gate == "legacy":
            return not reflective
        return reflective

    def reflection(
        self,
        scene: Scene,
        ray: Ray,
        hit: Hit,
        normal: Vec3,
        depth: int,
        max_depth: int,
        rng: Optional[random.Random] = None
    ) -> Color:
        """ks * reflective color * radiance along the mirror direction."""
        if not self.reflection_gate(hit.shape):
            return Color(0, 0, 0)
        direction = ray.direction.normalize().reflect(normal)
        mirror = Ray(hit.point + normal * SURFACE_EPSILON, direction)
        radiance = self.trace(scene, mirror, depth + 1, max_depth, rng)
        return hit.shape.material.reflective * radiance * scene.global_data.ks

    def refraction(
        self,
        scene: Scene,
        ray: Ray,
        hit: Hit,
        depth: int,
        max_depth: int,
        rng: Optional[random.Random] = None
    ) -> Color:
        """kt * transparent color * radiance after refracting through the solid.

        The ray bends on entry, crosses the shape to its far side (found with
        the inside intersection) and bends again on exit. Total internal
        reflection at either interface contributes nothing.
        """
        material = hit.shape.material
        if not material.is_transparent:
            return Color(0, 0, 0)

        entering = ray.direction.normalize().refract(hit.normal, material.ior)
        if entering.near_zero():
            return Color(0, 0, 0)

        start = hit.point + entering * SURFACE_EPSILON
        exit_hit = hit.shape.intersect(start, entering, inside=True)
        if exit_hit is None:
            return Color(0, 0, 0)

        exit_point = start + entering * exit_hit.t
        leaving = entering.refract(exit_hit.normal, material.ior)
        if leaving.near_zero():
            return Color(0, 0, 0)

        transmitted = Ray(exit_point + leaving * SURFACE_EPSILON, leaving)
        radiance = self.trace(scene, transmitted, depth + 1, max_depth, rng)
        return material.transparent * radiance * scene.global_data.kt


def new_image(width: int, height: int) -> np.ndarray:
    """A black, opaque RGBA buffer."""
    image = np.zeros((height, width, 4), dtype=np.uint8)
    image[..., 3] = 255
    return image
