"""
Post-render anti-aliasing filters on the 8-bit RGBA buffer.

Both filters read neighbours with wrapped addressing (the image tiles
periodically past its edges) over a square window whose side is
int(sqrt(kernel_size)). They return a new buffer with alpha set to 255.
"""

from __future__ import annotations
import math
from typing import Iterator, Tuple

import numpy as np

BILATERAL = "bilateral"
MEDIAN = "median"
FILTER_KINDS = (BILATERAL, MEDIAN)

DEFAULT_KERNEL_SIZE = 10
SPATIAL_SIGMA = 3.0
RANGE_SIGMA = 30.0


def _window_offsets(kernel_size: int) -> Iterator[Tuple[int, int]]:
    dim = int(math.sqrt(kernel_size))
    if dim < 1:
        raise ValueError(f"Kernel size must be at least 1, got {kernel_size}")
    start = -(dim // 2)
    for dy in range(start, start + dim):
        for dx in range(start, start + dim):
            yield dy, dx


def _shifted(rgb: np.ndarray, dy: int, dx: int) -> np.ndarray:
    """out[y, x] = rgb[(y + dy) % h, (x + dx) % w]."""
    return np.roll(rgb, shift=(-dy, -dx), axis=(0, 1))


def _to_rgba(rgb: np.ndarray) -> np.ndarray:
    out = np.empty(rgb.shape[:2] + (4,), dtype=np.uint8)
    out[..., :3] = np.clip(np.round(rgb), 0, 255).astype(np.uint8)
    out[..., 3] = 255
    return out


def bilateral_filter(
    image: np.ndarray,
    kernel_size: int = DEFAULT_KERNEL_SIZE,
    spatial_sigma: float = SPATIAL_SIGMA,
    range_sigma: float = RANGE_SIGMA
) -> np.ndarray:
    """Edge-preserving blur.

    Each neighbour is weighted by a Gaussian of its pixel offset and a
    Gaussian of its RGB distance from the centre pixel.

    Args:
        image: (H, W, 4) uint8 buffer
        kernel_size: Window area; the side is int(sqrt(kernel_size))
        spatial_sigma: Width of the spatial Gaussian in pixels
        range_sigma: Width of the color Gaussian in 8-bit units

    Returns:
        Filtered (H, W, 4) uint8 buffer
    """
    rgb = image[..., :3].astype(np.float64)
    acc = np.zeros_like(rgb)
    weight_sum = np.zeros(rgb.shape[:2], dtype=np.float64)

    for dy, dx in _window_offsets(kernel_size):
        neighbour = _shifted(rgb, dy, dx)
        spatial = math.exp(-(dx * dx + dy * dy) / (2 * spatial_sigma ** 2))
        distance_sq = np.sum((neighbour - rgb) ** 2, axis=-1)
        weight = spatial * np.exp(-distance_sq / (2 * range_sigma ** 2))
        acc += neighbour * weight[..., None]
        weight_sum += weight

    # The centre pixel always contributes weight 1, so weight_sum > 0
    return _to_rgba(acc / weight_sum[..., None])


def median_filter(image: np.ndarray, kernel_size: int = DEFAULT_KERNEL_SIZE) -> np.ndarray:
    """Per-channel median over the window.

    Args:
        image: (H, W, 4) uint8 buffer
        kernel_size: Window area; the side is int(sqrt(kernel_size))

    Returns:
        Filtered (H, W, 4) uint8 buffer
    """
    rgb = image[..., :3]
    stack = np.stack([_shifted(rgb, dy, dx) for dy, dx in _window_offsets(kernel_size)])
    stack.sort(axis=0)
    return _to_rgba(stack[stack.shape[0] // 2].astype(np.float64))


def apply_filter(image: np.ndarray, kind: str, kernel_size: int = DEFAULT_KERNEL_SIZE) -> np.ndarray:
    """Run the named filter."""
    if kind == BILATERAL:
        return bilateral_filter(image, kernel_size)
    if kind == MEDIAN:
        return median_filter(image, kernel_size)
    raise ValueError(f"Unknown post filter: {kind}")
