"""
Image textures for the ray tracer.

Provides:
- Image decoding through Pillow into RGBA numpy arrays
- A thread-safe, path-keyed texture cache
- Nearest, smoothstep-bilinear and bicubic samplers with clamp-to-edge
  addressing

Texture coordinates are tiled by the material's repeat factors before
sampling. An image that failed to load is cached as empty and yields no
sample, so the surface falls back to its material color.
"""

from __future__ import annotations
import logging
import math
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

import numpy as np
from PIL import Image

from .vec3 import Color

logger = logging.getLogger(__name__)

NEAREST = "nearest"
BILINEAR = "bilinear"
BICUBIC = "bicubic"
FILTER_KINDS = (NEAREST, BILINEAR, BICUBIC)


@dataclass
class ImageData:
    """Decoded RGBA texels, row 0 at the top of the image."""
    pixels: np.ndarray = field(default_factory=lambda: np.zeros((0, 0, 4), dtype=np.uint8))

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    def is_empty(self) -> bool:
        return self.pixels.size == 0

    def texel(self, x: int, y: int) -> np.ndarray:
        """RGB of a texel in [0, 1]; out-of-range coordinates clamp to the edge."""
        x = min(max(x, 0), self.width - 1)
        y = min(max(y, 0), self.height - 1)
        return self.pixels[y, x, :3] / 255.0


def load_image(filename: str) -> ImageData:
    """Decode an image file to RGBA.

    Args:
        filename: Path to the image file

    Returns:
        The decoded image, or an empty ImageData if it cannot be read
    """
    path = Path(filename)
    try:
        with Image.open(path) as img:
            pixels = np.array(img.convert('RGBA'), dtype=np.uint8)
    except (OSError, ValueError) as e:
        logger.warning("Failed to load texture %s: %s", filename, e)
        return ImageData()

    logger.debug("Loaded texture %s (%dx%d)", filename, pixels.shape[1], pixels.shape[0])
    return ImageData(pixels)


class TextureCache:
    """Path-keyed image cache with one guarded first load per key."""

    def __init__(self):
        self._images: Dict[str, ImageData] = {}
        self._lock = threading.Lock()

    def load(self, filename: str) -> ImageData:
        """Return the cached image, decoding it on first request."""
        key = str(filename)
        with self._lock:
            image = self._images.get(key)
            if image is None:
                image = load_image(key)
                self._images[key] = image
            return image

    def __contains__(self, filename: str) -> bool:
        return str(filename) in self._images

    def __len__(self) -> int:
        return len(self._images)


def tile_uv(u: float, v: float, repeat_u: float, repeat_v: float) -> tuple:
    """Scale a coordinate by the repeat factors and keep the fractional part."""
    su = u * repeat_u
    sv = v * repeat_v
    return su - int(su), sv - int(sv)


def sample_nearest(image: ImageData, u: float, v: float) -> Color:
    c = int(u * image.width)
    r = image.height - 1 - int(v * image.height)
    return Color.from_array(image.texel(c, r))


def _ease(a: np.ndarray, b: np.ndarray, alpha: float) -> np.ndarray:
    weight = 3 * alpha ** 2 - 2 * alpha ** 3
    return a + weight * (b - a)


def sample_bilinear(image: ImageData, u: float, v: float) -> Color:
    """Blend the four neighbouring texels with smoothstep weights."""
    x = u * image.width
    y = image.height - 1 - v * image.height
    x0 = math.floor(x)
    y0 = math.floor(y)
    fx = x - x0
    fy = y - y0

    top = _ease(image.texel(x0, y0), image.texel(x0 + 1, y0), fx)
    bottom = _ease(image.texel(x0, y0 + 1), image.texel(x0 + 1, y0 + 1), fx)
    return Color.from_array(np.clip(_ease(top, bottom, fy), 0.0, 1.0))


def cubic_interpolate(p0, p1, p2, p3, alpha: float):
    """Catmull-Rom spline through p1 and p2 at parameter alpha in [0, 1]."""
    a = 3 * p1 - 3 * p2 + p3 - p0
    b = 2 * p0 - 5 * p1 + 4 * p2 - p3
    c = p2 - p0
    d = 2 * p1
    return (((a * alpha + b) * alpha + c) * alpha + d) * 0.5


def sample_bicubic(image: ImageData, u: float, v: float) -> Color:
    """Catmull-Rom filter over the surrounding 4x4 texels."""
    x = u * image.width
    y = image.height - 1 - v * image.height
    x0 = math.floor(x)
    y0 = math.floor(y)
    fx = x - x0
    fy = y - y0

    rows = []
    for j in range(-1, 3):
        texels = [image.texel(x0 + i, y0 + j) for i in range(-1, 3)]
        rows.append(cubic_interpolate(*texels, fx))

    result = cubic_interpolate(*rows, fy)
    return Color.from_array(np.clip(result, 0.0, 1.0))


_SAMPLERS = {
    NEAREST: sample_nearest,
    BILINEAR: sample_bilinear,
    BICUBIC: sample_bicubic,
}


def sample_texture(
    image: ImageData,
    u: float,
    v: float,
    repeat_u: float = 1.0,
    repeat_v: float = 1.0,
    filter_kind: str = NEAREST
) -> Optional[Color]:
    """Sample a texture at a surface coordinate.

    Args:
        image: Decoded texture
        u, v: Surface coordinate in [0, 1]
        repeat_u, repeat_v: Number of times the image tiles across the surface
        filter_kind: One of "nearest", "bilinear" or "bicubic"

    Returns:
        RGB color in [0, 1], or None when the image is empty
    """
    if image.is_empty():
        return None
    try:
        sampler = _SAMPLERS[filter_kind]
    except KeyError:
        raise ValueError(f"Unknown texture filter: {filter_kind}") from None
    tu, tv = tile_uv(u, v, repeat_u, repeat_v)
    return sampler(image, tu, tv)
