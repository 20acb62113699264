"""
Light sources for the ray tracer.

Implements three light types:
- Directional lights (fixed direction, no attenuation)
- Point lights (distance attenuation)
- Spot lights (point light restricted to a cone with a soft penumbra)

Point and spot lights can also be treated as small rectangular emitters for
soft shadows; directional lights have no finite area.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Tuple
import math
import random

from .vec3 import Vec3, Point3, Color

# Side lengths of the emitter rectangle (world X and Y) used for soft shadows
SOFT_SHADOW_WIDTH = 0.5
SOFT_SHADOW_HEIGHT = 0.5


class LightType(Enum):
    DIRECTIONAL = "directional"
    POINT = "point"
    SPOT = "spot"


@dataclass
class Light:
    """A light source.

    Attributes:
        type: Directional, point or spot
        color: Light color (per-channel intensity)
        position: Position of point and spot lights
        direction: Direction the light travels (directional and spot lights)
        attenuation: Coefficients (c0, c1, c2) of the distance falloff
        angle: Spot cone half-angle in radians
        penumbra: Width in radians of the soft edge inside the cone
    """
    type: LightType
    color: Color = field(default_factory=lambda: Color(1, 1, 1))
    position: Point3 = field(default_factory=lambda: Point3(0, 0, 0))
    direction: Vec3 = field(default_factory=lambda: Vec3(0, 0, -1))
    attenuation: Tuple[float, float, float] = (1.0, 0.0, 0.0)
    angle: float = 0.0
    penumbra: float = 0.0

    @property
    def has_area(self) -> bool:
        return self.type != LightType.DIRECTIONAL

    def attenuation_at(self, distance: float) -> float:
        """min(1, 1 / (c0 + c1*d + c2*d^2)); directional lights never attenuate."""
        if self.type == LightType.DIRECTIONAL:
            return 1.0
        c0, c1, c2 = self.attenuation
        denom = c0 + c1 * distance + c2 * distance * distance
        if denom <= 0:
            return 1.0
        return min(1.0, 1.0 / denom)

    def falloff(self, point: Point3) -> float:
        """Fraction of the spot light blocked at a point: 0 in the core, 1 outside the cone."""
        if self.type != LightType.SPOT:
            return 0.0

        to_point = (point - self.position).normalize()
        cos_x = max(-1.0, min(1.0, to_point.dot(self.direction.normalize())))
        x = math.acos(cos_x)

        if x >= self.angle:
            return 1.0
        inner = self.angle - self.penumbra
        if x <= inner or self.penumbra <= 0:
            return 0.0

        s = (x - inner) / self.penumbra
        return -2 * s ** 3 + 3 * s ** 2

    def direction_from(self, point: Point3) -> Tuple[Vec3, float]:
        """Unit direction from a surface point toward the light and the distance to it.

        The distance is infinite for directional lights.
        """
        if self.type == LightType.DIRECTIONAL:
            return (-self.direction).normalize(), math.inf
        to_light = self.position - point
        return to_light.normalize(), to_light.length()

    def area_samples(self, rng: random.Random, count: int) -> List[Point3]:
        """Stratified jittered positions over the emitter rectangle.

        The rectangle is centred on the light and spans the world X and Y
        axes. Samples cycle through a sqrt(count) x sqrt(count) grid of cells.

        Args:
            rng: Random source (seeded per pixel for reproducible renders)
            count: Number of samples

        Returns:
            World-space sample positions
        """
        side = max(1, math.isqrt(count))
        cell_w = SOFT_SHADOW_WIDTH / side
        cell_h = SOFT_SHADOW_HEIGHT / side
        x0 = self.position.x - SOFT_SHADOW_WIDTH / 2
        y0 = self.position.y - SOFT_SHADOW_HEIGHT / 2

        samples = []
        for i in range(count):
            cell = i % (side * side)
            row, col = divmod(cell, side)
            x = x0 + (col + rng.random()) * cell_w
            y = y0 + (row + rng.random()) * cell_h
            samples.append(Point3(x, y, self.position.z))
        return samples
