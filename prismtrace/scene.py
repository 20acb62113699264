"""
Scene model: shapes, lights, camera and global shading coefficients.

A Scene is assembled by the parser (or by hand) and then prepared once:
meshes and textures are loaded into their caches, per-mesh triangle BVHs
and the scene-level shape BVH are built. Nothing is mutated afterwards, so
a prepared scene can be shared by any number of render threads.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from .vec3 import Vec3, Point3
from .aabb import AABB
from .bvh import BVH
from .camera import Camera
from .lights import Light
from .materials import Material
from .mesh import Mesh, MeshCache
from .shapes import (
    LocalHit, MeshPrimitive, Primitive, PrimitiveType, Triangle, unit_primitive
)
from .textures import ImageData, TextureCache
from .transform import Transform

logger = logging.getLogger(__name__)


@dataclass
class GlobalData:
    """Scene-wide weights for the ambient, diffuse, specular and transmitted terms."""
    ka: float = 1.0
    kd: float = 1.0
    ks: float = 1.0
    kt: float = 1.0


@dataclass(eq=False)
class SceneShape:
    """A primitive placed in the world with a material.

    Attributes:
        type: Primitive kind
        transform: Object-to-world transform
        material: Surface material
        mesh_file: OBJ path for mesh shapes
        vertices: Object-space corners for triangle shapes
    """
    type: PrimitiveType
    transform: Transform = field(default_factory=Transform)
    material: Material = field(default_factory=Material)
    mesh_file: Optional[str] = None
    vertices: Optional[Sequence[Point3]] = None
    primitive: Optional[Primitive] = field(default=None, repr=False)
    mesh: Optional[Mesh] = field(default=None, repr=False)
    triangle_bvh: Optional[BVH] = field(default=None, repr=False)

    def prepare(self, mesh_cache: MeshCache) -> None:
        """Resolve the primitive, loading the mesh and building its triangle BVH if needed."""
        if self.primitive is not None:
            return

        if self.type == PrimitiveType.MESH:
            if not self.mesh_file:
                raise ValueError("Mesh shape has no mesh file")
            self.mesh = mesh_cache.load(self.mesh_file)
            self.triangle_bvh = BVH.for_mesh(self.mesh)
            self.primitive = MeshPrimitive(self.mesh, self.triangle_bvh)
        elif self.type == PrimitiveType.TRIANGLE:
            if self.vertices is None or len(self.vertices) != 3:
                raise ValueError("Triangle shape needs exactly three vertices")
            self.primitive = Triangle(*self.vertices)
        else:
            self.primitive = unit_primitive(self.type)

    def world_bounds(self) -> AABB:
        """Box around the transformed corners of the local bounds."""
        return self.primitive.bounds().transformed(self.transform)

    def intersect(self, origin: Point3, direction: Vec3, inside: bool = False) -> Optional[LocalHit]:
        """Intersect a world-space ray with this shape.

        The ray is carried into object space with the cached inverse, so the
        returned t is valid for the world-space ray as given.

        Args:
            origin: World-space ray origin
            direction: World-space ray direction
            inside: Return the farthest hit (exit point) instead of the nearest

        Returns:
            LocalHit whose normal has been mapped to world space, or None
        """
        o = self.transform.inverse_point(origin)
        d = self.transform.inverse_vector(direction)
        if inside:
            hit = self.primitive.intersect_inside(o, d)
        else:
            hit = self.primitive.intersect(o, d)
        if hit is None:
            return None
        return LocalHit(hit.t, self.transform.normal(hit.normal))

    def uv(self, world_point: Point3) -> Optional[tuple]:
        """Texture coordinate of a world-space surface point."""
        return self.primitive.uv(self.transform.inverse_point(world_point))


@dataclass
class Scene:
    """Everything needed to render one image."""
    width: int
    height: int
    camera: Camera
    shapes: List[SceneShape] = field(default_factory=list)
    lights: List[Light] = field(default_factory=list)
    global_data: GlobalData = field(default_factory=GlobalData)
    bvh: Optional[BVH] = field(default=None, repr=False)
    textures: Dict[str, ImageData] = field(default_factory=dict, repr=False)

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Image size must be positive, got {self.width}x{self.height}")

    def prepare(
        self,
        mesh_cache: Optional[MeshCache] = None,
        texture_cache: Optional[TextureCache] = None
    ) -> Scene:
        """Load meshes and textures and build every acceleration structure.

        Must run before rendering starts; rendering never writes to the scene.

        Args:
            mesh_cache: Shared mesh cache (a private one if None)
            texture_cache: Shared texture cache (a private one if None)

        Returns:
            self, for chaining
        """
        mesh_cache = mesh_cache if mesh_cache is not None else MeshCache()
        texture_cache = texture_cache if texture_cache is not None else TextureCache()

        for shape in self.shapes:
            shape.prepare(mesh_cache)
            texture = shape.material.texture
            if texture is not None and texture.filename not in self.textures:
                self.textures[texture.filename] = texture_cache.load(texture.filename)

        self.bvh = BVH.for_shapes(self.shapes)
        logger.info(
            "Prepared scene: %d shapes, %d lights, %d textures, BVH depth %d",
            len(self.shapes), len(self.lights), len(self.textures), self.bvh.depth()
        )
        return self

    @property
    def is_prepared(self) -> bool:
        return self.bvh is not None

    def texture_image(self, filename: str) -> ImageData:
        """Decoded image for a texture path, empty if it was never loaded."""
        image = self.textures.get(filename)
        return image if image is not None else ImageData()

    def candidates(self, origin: Point3, direction: Vec3, accelerated: bool = True) -> List[SceneShape]:
        """Shapes a ray may hit: BVH-culled, or every shape when not accelerated."""
        if accelerated:
            return self.bvh.potential_intersections(origin, direction)
        return self.shapes
