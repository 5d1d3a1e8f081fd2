"""Connector geometry and hit testing.

Derived entirely from the tree, the viewport, and the sizes of mounted
node widgets. Sizes live in ``AnchorRegistry``, a side-table owned by the
presentation layer; they are never part of the tree.
"""

from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Tuple

from mindmesh.tree import Node, Tree
from mindmesh.viewport import Point, Viewport


class AnchorRegistry:
    """Measured node sizes in canvas units, keyed by node id."""

    def __init__(self):
        self._sizes: Dict[str, Tuple[float, float]] = {}

    def mount(self, node_id: str, width: float, height: float):
        self._sizes[node_id] = (width, height)

    def unmount(self, node_id: str):
        self._sizes.pop(node_id, None)

    def size(self, node_id: str) -> Optional[Tuple[float, float]]:
        return self._sizes.get(node_id)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._sizes

    def __len__(self) -> int:
        return len(self._sizes)

    def prune(self, tree: Tree):
        """Unmount every entry whose node is no longer in ``tree``."""
        for node_id in [i for i in self._sizes if i not in tree]:
            del self._sizes[node_id]

    def clear(self):
        self._sizes.clear()


@dataclass(frozen=True)
class Connector:
    """Cubic Bézier from a parent's anchor to a child's anchor, in screen space."""
    parent_id: str
    child_id: str
    start: Point
    control1: Point
    control2: Point
    end: Point

    @classmethod
    def between(cls, parent_id: str, child_id: str, start: Point, end: Point) -> "Connector":
        # Horizontal S-curve: both control points sit halfway across.
        mid_x = start[0] + (end[0] - start[0]) / 2
        return cls(
            parent_id=parent_id,
            child_id=child_id,
            start=start,
            control1=(mid_x, start[1]),
            control2=(mid_x, end[1]),
            end=end,
        )

    def to_svg_path(self) -> str:
        (sx, sy), (c1x, c1y), (c2x, c2y), (ex, ey) = (
            self.start, self.control1, self.control2, self.end
        )
        return f"M{sx:g},{sy:g} C{c1x:g},{c1y:g} {c2x:g},{c2y:g} {ex:g},{ey:g}"


def anchor_of(node: Node, registry: AnchorRegistry, viewport: Viewport) -> Optional[Point]:
    """Screen-space center of a mounted node, or None when it is not mounted."""
    size = registry.size(node.id)
    if size is None:
        return None
    width, height = size
    return viewport.to_screen(node.position.x + width / 2, node.position.y + height / 2)


def compute_connectors(tree: Tree, viewport: Viewport,
                       registry: AnchorRegistry) -> List[Connector]:
    """One connector per parent/child pair where both ends are mounted."""
    connectors = []
    for node in tree.to_list():
        if node.parent_id is None:
            continue
        parent = tree.get(node.parent_id)
        if parent is None:
            continue
        start = anchor_of(parent, registry, viewport)
        end = anchor_of(node, registry, viewport)
        if start is None or end is None:
            continue
        connectors.append(Connector.between(parent.id, node.id, start, end))
    return connectors


def node_rects(tree: Tree, registry: AnchorRegistry) -> Iterator[Tuple[Node, float, float, float, float]]:
    """(node, x, y, width, height) in canvas units, in drawing order."""
    for node in tree.to_list():
        size = registry.size(node.id)
        if size is not None:
            yield node, node.position.x, node.position.y, size[0], size[1]


def node_at(tree: Tree, viewport: Viewport, registry: AnchorRegistry,
            sx: float, sy: float) -> Optional[str]:
    """Id of the top-most node under the screen point, if any."""
    cx, cy = viewport.to_canvas(sx, sy)
    hit = None
    # Later nodes draw on top, so the last match wins.
    for node, x, y, w, h in node_rects(tree, registry):
        if x <= cx <= x + w and y <= cy <= y + h:
            hit = node.id
    return hit
