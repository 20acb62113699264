"""
Tile scheduling for parallel rendering.

The image is cut into square tiles whose side scales with the core count.
Tiles go into one shared queue in raster order, except the tile holding the
image centre, which is put at the front so the most important region is
finished first. Worker threads pop tiles until the queue is empty. Tiles
cover disjoint pixel rectangles, so workers never share mutable state
beyond the queue itself.
"""

from __future__ import annotations
import logging
import os
import threading
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Iterator, Optional, Tuple

logger = logging.getLogger(__name__)

MIN_TILE_SIZE = 32


@dataclass(frozen=True)
class Tile:
    """A pixel rectangle [x0, x1) x [y0, y1)."""
    x0: int
    y0: int
    x1: int
    y1: int

    def contains(self, x: int, y: int) -> bool:
        return self.x0 <= x < self.x1 and self.y0 <= y < self.y1

    def pixels(self) -> Iterator[Tuple[int, int]]:
        """(x, y) of every pixel, row by row."""
        for y in range(self.y0, self.y1):
            for x in range(self.x0, self.x1):
                yield x, y


def resolve_thread_count(num_threads: int) -> int:
    """0 means one worker per CPU."""
    if num_threads > 0:
        return num_threads
    return os.cpu_count() or 4


def tile_size_for(width: int, cores: int) -> int:
    return max(width // max(cores, 1), MIN_TILE_SIZE)


class TileQueue:
    """A deque of tiles guarded by a single lock."""

    def __init__(self):
        self._tiles: deque = deque()
        self._lock = threading.Lock()

    def push(self, tile: Tile) -> None:
        with self._lock:
            self._tiles.append(tile)

    def push_front(self, tile: Tile) -> None:
        with self._lock:
            self._tiles.appendleft(tile)

    def pop(self) -> Optional[Tile]:
        """Take the next tile, or None once the queue is drained."""
        with self._lock:
            if not self._tiles:
                return None
            return self._tiles.popleft()

    def __len__(self) -> int:
        with self._lock:
            return len(self._tiles)


def generate_tiles(width: int, height: int, cores: int) -> TileQueue:
    """Queue every tile of the image, centre tile first.

    Args:
        width: Image width in pixels
        height: Image height in pixels
        cores: Number of workers the tile size is tuned for

    Returns:
        A queue whose tiles exactly cover the image without overlap
    """
    size = tile_size_for(width, cores)
    center_x = width // 2
    center_y = height // 2

    queue = TileQueue()
    for y in range(0, height, size):
        for x in range(0, width, size):
            tile = Tile(x, y, min(x + size, width), min(y + size, height))
            if tile.contains(center_x, center_y):
                queue.push_front(tile)
            else:
                queue.push(tile)
    return queue


def run_tiles(
    queue: TileQueue,
    render_tile: Callable[[Tile], None],
    workers: int,
    progress: Optional[Callable[[int], None]] = None
) -> int:
    """Render queued tiles on a pool of worker threads and wait for all of them.

    Args:
        queue: Tiles to render; drained by the workers
        render_tile: Renders one tile into the shared output buffer
        workers: Number of worker threads
        progress: Called with the running count of finished tiles

    Returns:
        Number of tiles rendered
    """
    done = [0]
    done_lock = threading.Lock()

    def worker() -> None:
        while True:
            tile = queue.pop()
            if tile is None:
                return
            try:
                render_tile(tile)
            except Exception:
                logger.exception("Tile %s failed", tile)
            with done_lock:
                done[0] += 1
                count = done[0]
            if progress is not None:
                progress(count)

    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = [executor.submit(worker) for _ in range(workers)]
        for future in futures:
            future.result()

    return done[0]
