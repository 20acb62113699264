"""
Camera module for generating primary rays.

Supports:
- Perspective projection with a vertical field of view
- Arbitrary positioning via position, look direction and up vector
- Thin-lens depth of field (aperture + focal length)

Rays are generated at continuous pixel coordinates: (i + 0.5, j + 0.5) is the
centre of pixel (i, j), (i, j) its top-left corner. Row 0 is the top of the
image.
"""

from __future__ import annotations
import math
import random
from typing import Optional

import numpy as np

from .vec3 import Vec3, Point3
from .ray import Ray
from .transform import Transform


class Camera:
    """A pinhole camera with an optional thin lens."""

    def __init__(
        self,
        position: Point3,
        look: Vec3,
        up: Vec3 = Vec3(0, 1, 0),
        vfov: float = 45.0,
        aperture: float = 0.0,
        focal_length: float = 1.0
    ):
        """Create a camera.

        Args:
            position: Eye position in world space
            look: Viewing direction (need not be unit length)
            up: World up vector, need not be orthogonal to look
            vfov: Vertical field of view in degrees
            aperture: Lens diameter for depth of field (0 = pinhole)
            focal_length: Distance multiplier from the eye to the plane in focus
        """
        if look.near_zero():
            raise ValueError("Camera look direction must be non-zero")

        self.position = position
        self.look = look
        self.up = up
        self.vfov = vfov
        self.aperture = aperture
        self.focal_length = focal_length
        self.view = Transform(self._view_matrix())

    def _view_matrix(self) -> np.ndarray:
        """World-to-camera matrix: rotate into the (u, v, w) basis after moving the eye to the origin."""
        w = (-self.look).normalize()
        v = (self.up - w * self.up.dot(w)).normalize()
        if v.near_zero():
            raise ValueError("Camera up vector must not be parallel to the look direction")
        u = v.cross(w)

        rotate = np.eye(4)
        rotate[0, :3] = u.to_array()
        rotate[1, :3] = v.to_array()
        rotate[2, :3] = w.to_array()

        translate = np.eye(4)
        translate[:3, 3] = -self.position.to_array()
        return rotate @ translate

    @property
    def view_matrix(self) -> np.ndarray:
        return self.view.matrix

    @property
    def lens_radius(self) -> float:
        return self.aperture / 2

    def camera_direction(self, px: float, py: float, width: int, height: int) -> Vec3:
        """Camera-space direction through a point on the image plane at distance 1."""
        x = px / width - 0.5
        y = (height - py) / height - 0.5
        plane_v = 2 * math.tan(math.radians(self.vfov) / 2)
        plane_u = plane_v * width / height
        return Vec3(plane_u * x, plane_v * y, -1)

    def get_ray(self, px: float, py: float, width: int, height: int) -> Ray:
        """World-space ray from the eye through continuous pixel (px, py)."""
        d = self.camera_direction(px, py, width, height)
        return Ray(self.position, self.view.inverse_vector(d))

    def get_lens_ray(
        self,
        px: float,
        py: float,
        width: int,
        height: int,
        rng: Optional[random.Random] = None
    ) -> Ray:
        """Depth-of-field ray from a random point on the lens.

        The origin is jittered within a disk of radius aperture/2 around the
        eye and the ray is aimed at the focal point of the unperturbed ray,
        so all lens rays for one image point converge there.
        """
        d = self.camera_direction(px, py, width, height)
        focus = d * self.focal_length
        offset = Vec3.random_in_unit_disk(rng) * self.lens_radius
        origin = self.view.inverse_point(offset)
        return Ray(origin, self.view.inverse_vector(focus - offset))
