"""
prismtrace - A Whitted-style Python Ray Tracer

A recursive CPU ray tracer with support for:
- Unit sphere, cube, cylinder and cone primitives, triangles and OBJ meshes
- Median-split bounding volume hierarchies over shapes and mesh triangles
- Directional, point and spot lights with hard or soft shadows
- Mirror reflection and refraction with a bounded recursion depth
- Image textures with nearest, bilinear and bicubic filtering
- Adaptive supersampling or depth of field
- Tile-parallel rendering with a centre-first work queue
"""

__version__ = "0.1.0"

from .vec3 import Vec3, Point3, Color
from .ray import Ray
from .transform import Transform
from .aabb import AABB
from .bvh import BVH, BVHNode
from .shapes import (
    PrimitiveType, LocalHit, Primitive, UnitSphere, UnitCube, UnitCylinder,
    UnitCone, Triangle, MeshPrimitive, intersect_triangle, unit_primitive
)
from .mesh import Mesh, Face, MeshCache, MeshLoadError, load_mesh
from .textures import ImageData, TextureCache, load_image, sample_texture
from .lights import Light, LightType
from .materials import Material, TextureMap
from .camera import Camera
from .scene import GlobalData, Scene, SceneShape
from .scheduler import Tile, TileQueue, generate_tiles, run_tiles
from .filters import bilateral_filter, median_filter
from .raytracer import RayTracer, RenderConfig, Hit, new_image
from .scene_parser import SceneParser, SceneParseError, load_scene, parse_scene
