"""
Phong-style surface materials.

A material is a bag of colors and scalars scaled at shading time by the
scene's global coefficients (ka, kd, ks, kt):

- ambient: constant term
- diffuse: Lambertian term, optionally blended with a texture
- specular: highlight color and exponent
- reflective: weight of the mirror ray
- transparent: weight of the refracted ray, bent by the index of refraction
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional

from .vec3 import Color


@dataclass
class TextureMap:
    """An image mapped onto a surface.

    Attributes:
        filename: Path to the image (resolved against the scene file)
        repeat_u: Number of times the image tiles horizontally
        repeat_v: Number of times the image tiles vertically
    """
    filename: str
    repeat_u: float = 1.0
    repeat_v: float = 1.0


def _black() -> Color:
    return Color(0, 0, 0)


@dataclass
class Material:
    """Surface appearance of a scene shape."""
    ambient: Color = field(default_factory=_black)
    diffuse: Color = field(default_factory=_black)
    specular: Color = field(default_factory=_black)
    reflective: Color = field(default_factory=_black)
    transparent: Color = field(default_factory=_black)
    shininess: float = 1.0
    ior: float = 1.0
    blend: float = 0.0
    texture: Optional[TextureMap] = None

    def __post_init__(self):
        if not 0.0 <= self.blend <= 1.0:
            raise ValueError(f"Texture blend must be in [0, 1], got {self.blend}")

    @property
    def is_reflective(self) -> bool:
        return any(c != 0 for c in self.reflective)

    @property
    def is_transparent(self) -> bool:
        return any(c != 0 for c in self.transparent)
