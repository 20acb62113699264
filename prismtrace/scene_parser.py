"""
Scene description parser.

Supports YAML or JSON scene files with:
- Render size
- Global shading coefficients
- Camera configuration
- A named materials library (optional)
- Shapes with transform stacks and materials
- Lights

Example scene file:
```yaml
render:
  width: 320
  height: 240

global:
  ka: 0.5
  kd: 0.5
  ks: 0.5
  kt: 1.0

camera:
  position: [0, 0, 5]
  look_at: [0, 0, 0]
  up: [0, 1, 0]
  vfov: 45
  aperture: 0.1
  focal_length: 5

materials:
  chrome:
    diffuse: [0.2, 0.2, 0.2]
    specular: [1, 1, 1]
    reflective: [0.8, 0.8, 0.8]
    shininess: 25

shapes:
  - type: sphere
    transform:
      - translate: [0, 0.5, 0]
      - scale: 2
    material: chrome

  - type: cube
    transform:
      - rotate: {axis: [0, 1, 0], angle: 30}
    material:
      diffuse: [1, 1, 1]
      blend: 0.7
      texture: {file: textures/brick.png, repeat_u: 2, repeat_v: 2}

  - type: mesh
    file: models/bunny.obj

lights:
  - type: directional
    direction: [-1, -1, -1]
    color: [1, 1, 1]

  - type: spot
    position: [0, 4, 0]
    direction: [0, -1, 0]
    attenuation: [1, 0.1, 0]
    angle: 30
    penumbra: 5
```

Angles are given in degrees. Relative mesh and texture paths resolve
against the directory of the scene file.
"""

from __future__ import annotations
import json
import logging
import math
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np
import yaml

from .vec3 import Vec3, Color
from .camera import Camera
from .lights import Light, LightType
from .materials import Material, TextureMap
from .mesh import MeshCache, MeshLoadError
from .scene import GlobalData, Scene, SceneShape
from .shapes import PrimitiveType
from .transform import Transform

logger = logging.getLogger(__name__)


class SceneParseError(Exception):
    """Error during scene parsing."""
    pass


class SceneParser:
    """Parser for scene description files."""

    def __init__(self, mesh_cache: Optional[MeshCache] = None, base_dir: Optional[Path] = None):
        """Create a parser.

        Args:
            mesh_cache: Cache that meshes are loaded into while parsing
            base_dir: Directory that relative asset paths resolve against
        """
        self.mesh_cache = mesh_cache if mesh_cache is not None else MeshCache()
        self.base_dir = base_dir
        self.materials: Dict[str, Material] = {}

    def parse_file(self, filepath: str) -> Scene:
        """Parse a scene file.

        Args:
            filepath: Path to the scene file (YAML or JSON)

        Returns:
            The parsed, unprepared Scene
        """
        path = Path(filepath)
        if not path.exists():
            raise SceneParseError(f"Scene file not found: {filepath}")

        content = path.read_text()

        try:
            if path.suffix == '.json':
                data = json.loads(content)
            else:
                # YAML is a superset of JSON
                data = yaml.safe_load(content)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise SceneParseError(f"Malformed scene file {filepath}: {e}") from e

        if self.base_dir is None:
            self.base_dir = path.parent

        logger.info("Parsing scene %s", filepath)
        return self.parse_dict(data)

    def parse_dict(self, data: Dict[str, Any]) -> Scene:
        """Parse a scene from a dictionary.

        Args:
            data: Scene description dictionary

        Returns:
            The parsed, unprepared Scene
        """
        if not isinstance(data, dict):
            raise SceneParseError(f"Scene must be a mapping, got {type(data).__name__}")

        render = self._section(data, 'render', dict)
        width = self._parse_int(render.get('width', 512), 'render.width')
        height = self._parse_int(render.get('height', 512), 'render.height')
        if width <= 0 or height <= 0:
            raise SceneParseError(f"Render size must be positive, got {width}x{height}")

        # Parse materials first (shapes reference them)
        self._parse_materials(self._section(data, 'materials', dict))

        scene = Scene(
            width=width,
            height=height,
            camera=self._parse_camera(self._section(data, 'camera', dict)),
            shapes=self._parse_shapes(self._section(data, 'shapes', list)),
            lights=self._parse_lights(self._section(data, 'lights', list)),
            global_data=self._parse_global(self._section(data, 'global', dict))
        )
        logger.debug("Parsed %d shapes and %d lights", len(scene.shapes), len(scene.lights))
        return scene

    def _section(self, data: Dict[str, Any], key: str, kind: type) -> Any:
        """Return data[key], empty when missing or null, checked against kind."""
        value = data.get(key)
        if value is None:
            return kind()
        if not isinstance(value, kind):
            raise SceneParseError(
                f"'{key}' must be a {'mapping' if kind is dict else 'list'}, "
                f"got {type(value).__name__}"
            )
        return value

    def _resolve(self, filename: str) -> str:
        path = Path(filename)
        if not path.is_absolute() and self.base_dir is not None:
            path = self.base_dir / path
        return str(path)

    def _parse_float(self, value: Any, what: str) -> float:
        try:
            return float(value)
        except (TypeError, ValueError):
            raise SceneParseError(f"{what} must be a number, got {value!r}") from None

    def _parse_int(self, value: Any, what: str) -> int:
        try:
            return int(value)
        except (TypeError, ValueError):
            raise SceneParseError(f"{what} must be an integer, got {value!r}") from None

    def _parse_vec3(self, data: Any) -> Vec3:
        """Parse a Vec3 from a list or an x/y/z mapping."""
        if isinstance(data, (list, tuple)):
            if len(data) != 3:
                raise SceneParseError(f"Vec3 must have 3 components, got {len(data)}")
            return Vec3(*(self._parse_float(c, 'Vec3 component') for c in data))
        elif isinstance(data, dict):
            return Vec3(
                self._parse_float(data.get('x', 0), 'x'),
                self._parse_float(data.get('y', 0), 'y'),
                self._parse_float(data.get('z', 0), 'z')
            )
        else:
            raise SceneParseError(f"Cannot parse Vec3 from: {data}")

    def _parse_color(self, data: Any) -> Color:
        """Parse a Color from RGB(A) lists, r/g/b mappings or hex strings."""
        if isinstance(data, (list, tuple)):
            if len(data) not in (3, 4):
                raise SceneParseError(f"Color must have 3 or 4 components, got {len(data)}")
            return Color(*(self._parse_float(c, 'Color component') for c in data[:3]))
        elif isinstance(data, dict):
            return Color(
                self._parse_float(data.get('r', 0), 'r'),
                self._parse_float(data.get('g', 0), 'g'),
                self._parse_float(data.get('b', 0), 'b')
            )
        elif isinstance(data, str):
            # Handle hex colors
            if data.startswith('#') and len(data) == 7:
                try:
                    return Color(*(int(data[i:i + 2], 16) / 255.0 for i in (1, 3, 5)))
                except ValueError:
                    pass
            raise SceneParseError(f"Cannot parse color from string: {data}")
        else:
            raise SceneParseError(f"Cannot parse Color from: {data}")

    def _parse_global(self, data: Dict[str, Any]) -> GlobalData:
        return GlobalData(
            ka=self._parse_float(data.get('ka', 1.0), 'global.ka'),
            kd=self._parse_float(data.get('kd', 1.0), 'global.kd'),
            ks=self._parse_float(data.get('ks', 1.0), 'global.ks'),
            kt=self._parse_float(data.get('kt', 1.0), 'global.kt')
        )

    def _parse_camera(self, camera_data: Dict[str, Any]) -> Camera:
        """Parse camera section."""
        position = self._parse_vec3(camera_data.get('position', [0, 0, 5]))
        if 'look' in camera_data:
            look = self._parse_vec3(camera_data['look'])
        else:
            look = self._parse_vec3(camera_data.get('look_at', [0, 0, 0])) - position

        try:
            return Camera(
                position=position,
                look=look,
                up=self._parse_vec3(camera_data.get('up', [0, 1, 0])),
                vfov=self._parse_float(camera_data.get('vfov', 45), 'camera.vfov'),
                aperture=self._parse_float(camera_data.get('aperture', 0.0), 'camera.aperture'),
                focal_length=self._parse_float(camera_data.get('focal_length', 1.0), 'camera.focal_length')
            )
        except ValueError as e:
            raise SceneParseError(f"Invalid camera: {e}") from e

    def _parse_material(self, mat_data: Dict[str, Any]) -> Material:
        texture = None
        if 'texture' in mat_data:
            tex_data = mat_data['texture']
            if isinstance(tex_data, str):
                tex_data = {'file': tex_data}
            if not isinstance(tex_data, dict) or not isinstance(tex_data.get('file'), str):
                raise SceneParseError(f"Texture needs a file, got {tex_data!r}")
            texture = TextureMap(
                filename=self._resolve(tex_data['file']),
                repeat_u=self._parse_float(tex_data.get('repeat_u', 1.0), 'texture.repeat_u'),
                repeat_v=self._parse_float(tex_data.get('repeat_v', 1.0), 'texture.repeat_v')
            )

        black = [0, 0, 0]
        try:
            return Material(
                ambient=self._parse_color(mat_data.get('ambient', black)),
                diffuse=self._parse_color(mat_data.get('diffuse', black)),
                specular=self._parse_color(mat_data.get('specular', black)),
                reflective=self._parse_color(mat_data.get('reflective', black)),
                transparent=self._parse_color(mat_data.get('transparent', black)),
                shininess=self._parse_float(mat_data.get('shininess', 1.0), 'shininess'),
                ior=self._parse_float(mat_data.get('ior', 1.0), 'ior'),
                blend=self._parse_float(mat_data.get('blend', 0.0), 'blend'),
                texture=texture
            )
        except ValueError as e:
            raise SceneParseError(f"Invalid material: {e}") from e

    def _parse_materials(self, materials_data: Dict[str, Any]) -> None:
        """Parse the named materials library."""
        for name, mat_data in materials_data.items():
            if not isinstance(mat_data, dict):
                raise SceneParseError(f"Material {name!r} must be a mapping, got {mat_data!r}")
            self.materials[name] = self._parse_material(mat_data)

    def _get_material(self, mat_ref: Any) -> Material:
        """Get a material by name or inline definition."""
        if mat_ref is None:
            return Material()
        if isinstance(mat_ref, str):
            if mat_ref not in self.materials:
                raise SceneParseError(f"Unknown material: {mat_ref}")
            return self.materials[mat_ref]
        elif isinstance(mat_ref, dict):
            return self._parse_material(mat_ref)
        else:
            raise SceneParseError(f"Invalid material reference: {mat_ref}")

    def _parse_transform_step(self, step: Dict[str, Any]) -> Transform:
        if not isinstance(step, dict) or len(step) != 1:
            raise SceneParseError(f"Transform step must have exactly one key, got {step!r}")
        (kind, value), = step.items()

        if kind == 'translate':
            return Transform.translate(*self._parse_vec3(value))
        elif kind == 'scale':
            if isinstance(value, (int, float)):
                factors = Vec3(value, value, value)
            else:
                factors = self._parse_vec3(value)
            if any(f == 0 for f in factors):
                raise SceneParseError(f"Scale factors must be non-zero, got {value}")
            return Transform.scale(*factors)
        elif kind == 'rotate':
            if not isinstance(value, dict) or 'axis' not in value or 'angle' not in value:
                raise SceneParseError(f"Rotate needs an axis and an angle, got {value!r}")
            axis = self._parse_vec3(value['axis'])
            if axis.near_zero():
                raise SceneParseError("Rotation axis must be non-zero")
            angle = math.radians(self._parse_float(value['angle'], 'rotate.angle'))
            return Transform.rotate(list(axis), angle)
        elif kind == 'matrix':
            try:
                matrix = np.array(value, dtype=np.float64).reshape(4, 4)
                return Transform(matrix)
            except (TypeError, ValueError, np.linalg.LinAlgError) as e:
                raise SceneParseError(f"Invalid transform matrix: {e}") from e
        else:
            raise SceneParseError(f"Unknown transform step: {kind}")

    def _parse_shapes(self, shapes_data: List[Dict[str, Any]]) -> List[SceneShape]:
        """Parse shapes section."""
        shapes = []
        for shape_data in shapes_data:
            if not isinstance(shape_data, dict):
                raise SceneParseError(f"Shape entry must be a mapping, got {shape_data!r}")
            type_name = str(shape_data.get('type', 'sphere')).lower()
            try:
                kind = PrimitiveType(type_name)
            except ValueError:
                raise SceneParseError(f"Unknown shape type: {type_name}") from None

            steps = self._section(shape_data, 'transform', list)
            transform = Transform.compose(self._parse_transform_step(step) for step in steps)
            shape = SceneShape(
                type=kind,
                transform=transform,
                material=self._get_material(shape_data.get('material'))
            )

            if kind == PrimitiveType.MESH:
                if not isinstance(shape_data.get('file'), str):
                    raise SceneParseError("Mesh shape needs a file")
                shape.mesh_file = self._resolve(shape_data['file'])
                try:
                    self.mesh_cache.load(shape.mesh_file)
                except MeshLoadError as e:
                    raise SceneParseError(f"Cannot load mesh: {e}") from e
            elif kind == PrimitiveType.TRIANGLE:
                vertices = shape_data.get('vertices')
                if not isinstance(vertices, list) or len(vertices) != 3:
                    raise SceneParseError("Triangle shape needs three vertices")
                shape.vertices = [self._parse_vec3(v) for v in vertices]

            shapes.append(shape)
        return shapes

    def _parse_lights(self, lights_data: List[Dict[str, Any]]) -> List[Light]:
        """Parse lights section."""
        lights = []
        for light_data in lights_data:
            if not isinstance(light_data, dict):
                raise SceneParseError(f"Light entry must be a mapping, got {light_data!r}")
            type_name = str(light_data.get('type', 'point')).lower()
            try:
                light_type = LightType(type_name)
            except ValueError:
                raise SceneParseError(f"Unknown light type: {type_name}") from None

            attenuation = light_data.get('attenuation', [1, 0, 0])
            if not isinstance(attenuation, (list, tuple)) or len(attenuation) != 3:
                raise SceneParseError(f"Attenuation must have 3 coefficients, got {attenuation!r}")

            light = Light(
                type=light_type,
                color=self._parse_color(light_data.get('color', [1, 1, 1])),
                position=self._parse_vec3(light_data.get('position', [0, 0, 0])),
                direction=self._parse_vec3(light_data.get('direction', [0, -1, 0])),
                attenuation=tuple(self._parse_float(c, 'attenuation') for c in attenuation),
                angle=math.radians(self._parse_float(light_data.get('angle', 0), 'angle')),
                penumbra=math.radians(self._parse_float(light_data.get('penumbra', 0), 'penumbra'))
            )
            if light_type != LightType.POINT and light.direction.near_zero():
                raise SceneParseError(f"{type_name} light needs a non-zero direction")
            lights.append(light)
        return lights


def load_scene(filepath: str, mesh_cache: Optional[MeshCache] = None) -> Scene:
    """Convenience function to load a scene file.

    Args:
        filepath: Path to the scene file
        mesh_cache: Cache that meshes are loaded into

    Returns:
        The parsed, unprepared Scene
    """
    parser = SceneParser(mesh_cache)
    return parser.parse_file(filepath)


def parse_scene(
    data: Dict[str, Any],
    base_dir: Optional[str] = None,
    mesh_cache: Optional[MeshCache] = None
) -> Scene:
    """Convenience function to parse a scene from a dictionary.

    Args:
        data: Scene description dictionary
        base_dir: Directory that relative asset paths resolve against
        mesh_cache: Cache that meshes are loaded into

    Returns:
        The parsed, unprepared Scene
    """
    parser = SceneParser(mesh_cache, Path(base_dir) if base_dir else None)
    return parser.parse_dict(data)
