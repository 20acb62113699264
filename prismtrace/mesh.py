"""
Triangle meshes loaded from Wavefront OBJ files.

Supports:
- Vertices (v)
- Normals (vn)
- Triangular faces (f) in v, v/vt, v//vn and v/vt/vn forms

Texture coordinates, groups and material libraries are skipped. A mesh is
loaded once per path through MeshCache and shared read-only afterwards.
"""

from __future__ import annotations
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .vec3 import Vec3, Point3
from .aabb import AABB

logger = logging.getLogger(__name__)


class MeshLoadError(Exception):
    """Error while reading a mesh file."""
    pass


@dataclass
class Face:
    """A triangle as 0-based vertex indices and optional normal indices."""
    v: Tuple[int, int, int]
    vn: Optional[Tuple[int, int, int]] = None


@dataclass
class Mesh:
    """Vertex positions, vertex normals and triangular faces."""
    vertices: List[Point3] = field(default_factory=list)
    normals: List[Vec3] = field(default_factory=list)
    faces: List[Face] = field(default_factory=list)

    def triangle(self, index: int) -> Tuple[Point3, Point3, Point3]:
        """The three vertex positions of a face."""
        a, b, c = self.faces[index].v
        return self.vertices[a], self.vertices[b], self.vertices[c]

    def triangle_bounds(self, index: int) -> AABB:
        return AABB.from_points(self.triangle(index))

    def bounds(self) -> AABB:
        """Union of all vertex positions."""
        return AABB.from_points(self.vertices)

    def __len__(self) -> int:
        return len(self.faces)


def _parse_index(token: str, count: int, line_num: int) -> int:
    """Convert a 1-based (or negative, relative) OBJ index to 0-based."""
    idx = int(token)
    if idx < 0:
        idx = count + idx + 1
    idx -= 1
    if idx < 0 or idx >= count:
        raise MeshLoadError(f"Line {line_num}: index {token} out of range")
    return idx


def load_mesh(filename: str) -> Mesh:
    """Load an OBJ file into a Mesh.

    Args:
        filename: Path to the OBJ file

    Returns:
        The loaded Mesh

    Raises:
        MeshLoadError: If the file cannot be read or a line is malformed
    """
    path = Path(filename)
    try:
        text = path.read_text()
    except OSError as e:
        raise MeshLoadError(f"Failed to open mesh file {filename}: {e}") from e

    mesh = Mesh()

    for line_num, line in enumerate(text.splitlines(), 1):
        line = line.strip()

        # Skip empty lines and comments
        if not line or line.startswith('#'):
            continue

        parts = line.split()
        cmd = parts[0]

        try:
            if cmd == 'v':
                x, y, z = (float(p) for p in parts[1:4])
                mesh.vertices.append(Point3(x, y, z))

            elif cmd == 'vn':
                nx, ny, nz = (float(p) for p in parts[1:4])
                mesh.normals.append(Vec3(nx, ny, nz))

            elif cmd == 'f':
                if len(parts) != 4:
                    raise ValueError(f"expected a triangle, got {len(parts) - 1} vertices")
                v_idx = []
                vn_idx = []
                for corner in parts[1:]:
                    indices = corner.split('/')
                    v_idx.append(_parse_index(indices[0], len(mesh.vertices), line_num))
                    if len(indices) > 2 and indices[2]:
                        vn_idx.append(_parse_index(indices[2], len(mesh.normals), line_num))
                mesh.faces.append(Face(
                    v=tuple(v_idx),
                    vn=tuple(vn_idx) if len(vn_idx) == 3 else None
                ))

        except ValueError as e:
            raise MeshLoadError(f"{filename}:{line_num}: malformed '{cmd}' line: {line}") from e

    logger.debug(
        "Loaded mesh %s: %d vertices, %d normals, %d faces",
        filename, len(mesh.vertices), len(mesh.normals), len(mesh.faces)
    )
    return mesh


class MeshCache:
    """Path-keyed mesh cache with one guarded first load per key."""

    def __init__(self):
        self._meshes: Dict[str, Mesh] = {}
        self._lock = threading.Lock()

    def load(self, filename: str) -> Mesh:
        """Return the cached mesh, loading it on first request."""
        key = str(filename)
        with self._lock:
            mesh = self._meshes.get(key)
            if mesh is None:
                mesh = load_mesh(key)
                self._meshes[key] = mesh
            return mesh

    def __contains__(self, filename: str) -> bool:
        return str(filename) in self._meshes

    def __len__(self) -> int:
        return len(self._meshes)
