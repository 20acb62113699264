"""
Bounding Volume Hierarchy (BVH) for culling ray-object intersection tests.

The BVH is a binary tree where each node holds an AABB and either:
- Two owned child nodes (internal node)
- Exactly one item (leaf node)

The same median-split builder serves two kinds of item: whole scene shapes
(boxed by their transformed local bounds) and the triangles of a single mesh
(boxed by their three vertices). Traversal only reports candidates; the
exact intersection test is left to the caller.
"""

from __future__ import annotations
from typing import Any, List, Optional, Sequence, TYPE_CHECKING

from .vec3 import Vec3, Point3
from .aabb import AABB

if TYPE_CHECKING:
    from .mesh import Mesh
    from .scene import SceneShape


class BVHNode:
    """A node in the hierarchy.

    Leaves carry ``item``; internal nodes carry ``left`` and ``right``.
    The bounding box of an internal node is the union of all items below it.
    """

    __slots__ = ('bbox', 'left', 'right', 'item')

    def __init__(
        self,
        bbox: AABB,
        left: Optional[BVHNode] = None,
        right: Optional[BVHNode] = None,
        item: Any = None
    ):
        self.bbox = bbox
        self.left = left
        self.right = right
        self.item = item

    @property
    def is_leaf(self) -> bool:
        return self.left is None and self.right is None

    def depth(self) -> int:
        """Number of levels in the subtree rooted here."""
        if self.is_leaf:
            return 1
        return 1 + max(self.left.depth(), self.right.depth())


class BVH:
    """Median-split bounding volume hierarchy.

    Provides O(log n) candidate culling instead of testing every item.
    """

    def __init__(self, items: Sequence[Any], boxes: Sequence[AABB]):
        """Build a BVH over items with precomputed bounding boxes.

        Args:
            items: Payloads stored in the leaves
            boxes: World-space AABB of each item, in the same order
        """
        if len(items) != len(boxes):
            raise ValueError("items and boxes must have the same length")

        self.items = list(items)
        entries = list(zip(self.items, boxes))
        self.root: Optional[BVHNode] = self._build(entries) if entries else None

    @classmethod
    def for_shapes(cls, shapes: Sequence[SceneShape]) -> BVH:
        """Build a hierarchy over scene shapes using their world bounds."""
        return cls(shapes, [shape.world_bounds() for shape in shapes])

    @classmethod
    def for_mesh(cls, mesh: Mesh) -> BVH:
        """Build a hierarchy over a mesh's triangles, keyed by face index."""
        indices = range(len(mesh))
        return cls(indices, [mesh.triangle_bounds(i) for i in indices])

    def _build(self, entries: List[tuple]) -> BVHNode:
        if len(entries) == 1:
            item, box = entries[0]
            return BVHNode(box, item=item)

        bbox = AABB()
        for _, box in entries:
            bbox.extend(box)

        axis = bbox.longest_axis()

        # Stable sort by the centroid of each item's own box
        def centroid(entry: tuple) -> float:
            box = entry[1]
            return (box.minimum[axis] + box.maximum[axis]) / 2

        entries = sorted(entries, key=centroid)

        mid = len(entries) // 2
        left = self._build(entries[:mid])
        right = self._build(entries[mid:])
        return BVHNode(bbox, left=left, right=right)

    def potential_intersections(self, origin: Point3, direction: Vec3) -> List[Any]:
        """Collect the items whose leaf boxes the ray passes through.

        Args:
            origin: Ray origin in the space the boxes were built in
            direction: Ray direction (need not be unit length)

        Returns:
            Candidate items in left-to-right tree order; a superset of
            every item the ray hits at t > 0
        """
        candidates = []
        if self.root is None:
            return candidates

        stack = [self.root]
        while stack:
            node = stack.pop()
            if not node.bbox.hit(origin, direction):
                continue
            if node.is_leaf:
                candidates.append(node.item)
            else:
                stack.append(node.right)
                stack.append(node.left)
        return candidates

    def depth(self) -> int:
        if self.root is None:
            return 0
        return self.root.depth()

    def __len__(self) -> int:
        """Return the number of items in the BVH."""
        return len(self.items)

