"""In-memory tree model for a mind map.

A ``Tree`` is an immutable snapshot. Every mutation returns a new snapshot
and leaves the original untouched, so the engine can hand snapshots to the
presentation layer without copying.
"""

from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional, Tuple

from mindmesh.errors import (
    DanglingParent, DuplicateId, InvariantViolation, NotFound, RootExists
)


@dataclass(frozen=True)
class Position:
    """Absolute placement of a node in the rendering plane."""
    x: float = 0.0
    y: float = 0.0

    def offset(self, dx: float = 0.0, dy: float = 0.0) -> "Position":
        return Position(self.x + dx, self.y + dy)


@dataclass(frozen=True)
class Node:
    """A single content unit in the tree."""
    id: str
    content: str = ""
    parent_id: Optional[str] = None
    position: Position = field(default_factory=Position)
    order: int = 0

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    def to_dict(self) -> dict:
        """Serialize to the wire/persistence shape."""
        return {
            "id": self.id,
            "content": self.content,
            "parentId": self.parent_id,
            "position": {"x": self.position.x, "y": self.position.y},
            "order": self.order,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Node":
        """Build a node from the wire/persistence shape.

        Raises ``KeyError``/``TypeError``/``ValueError`` on malformed input;
        callers at the trust boundary translate those into protocol errors.
        """
        pos = data.get("position") or {}
        return cls(
            id=str(data["id"]),
            content=str(data.get("content") or ""),
            parent_id=str(data["parentId"]) if data.get("parentId") is not None else None,
            position=Position(float(pos.get("x", 0.0)), float(pos.get("y", 0.0))),
            order=int(data.get("order", 0)),
        )


def _sort_key(node: Node) -> Tuple[int, str]:
    # Ties on order are broken by id so navigation is stable.
    return (node.order, node.id)


class Tree:
    """Immutable set of nodes keyed by id."""

    __slots__ = ("_nodes", "_children")

    def __init__(self, nodes: Optional[Dict[str, Node]] = None):
        self._nodes: Dict[str, Node] = dict(nodes or {})
        children: Dict[Optional[str], List[str]] = {}
        for node in self._nodes.values():
            children.setdefault(node.parent_id, []).append(node.id)
        self._children = children

    @classmethod
    def from_nodes(cls, nodes: Iterable[Node]) -> "Tree":
        """Build a snapshot from loaded nodes without ordering requirements."""
        table: Dict[str, Node] = {}
        for node in nodes:
            if node.id in table:
                raise DuplicateId(node.id)
            table[node.id] = node
        return cls(table)

    # ==================== Queries ====================

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __iter__(self):
        return iter(self._nodes.values())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Tree):
            return NotImplemented
        return self._nodes == other._nodes

    def __repr__(self) -> str:
        return f"Tree({len(self._nodes)} nodes)"

    def get(self, node_id: Optional[str]) -> Optional[Node]:
        if node_id is None:
            return None
        return self._nodes.get(node_id)

    def node(self, node_id: str) -> Node:
        """Return the node or raise ``NotFound``."""
        try:
            return self._nodes[node_id]
        except KeyError:
            raise NotFound(node_id) from None

    @property
    def root(self) -> Optional[Node]:
        roots = self._children.get(None, [])
        if not roots:
            return None
        return min((self._nodes[i] for i in roots), key=_sort_key)

    def children_of(self, node_id: str) -> List[Node]:
        """Children of ``node_id`` ordered by (order, id)."""
        self.node(node_id)
        return sorted((self._nodes[i] for i in self._children.get(node_id, [])), key=_sort_key)

    def siblings_of(self, node_id: str) -> List[Node]:
        """The sibling group of ``node_id``, including the node itself."""
        node = self.node(node_id)
        return sorted(
            (self._nodes[i] for i in self._children.get(node.parent_id, [])),
            key=_sort_key,
        )

    def child_count(self, node_id: str) -> int:
        return len(self._children.get(node_id, []))

    def descendant_ids(self, node_id: str) -> List[str]:
        """The subtree closure of ``node_id``, the node itself first.

        Iterative work-list walk; it terminates because no node is its
        own ancestor.
        """
        self.node(node_id)
        closure: List[str] = []
        work = [node_id]
        while work:
            current = work.pop()
            closure.append(current)
            work.extend(self._children.get(current, []))
        return closure

    def ancestors_of(self, node_id: str) -> List[str]:
        """Ids from the parent of ``node_id`` up to the root."""
        result = []
        seen = {node_id}
        current = self.node(node_id).parent_id
        while current is not None and current not in seen:
            result.append(current)
            seen.add(current)
            parent = self._nodes.get(current)
            current = parent.parent_id if parent else None
        return result

    def to_list(self) -> List[Node]:
        """Nodes in a parent-before-child order suitable for replay."""
        result: List[Node] = []
        work = sorted((self._nodes[i] for i in self._children.get(None, [])), key=_sort_key)
        work.reverse()
        while work:
            node = work.pop()
            result.append(node)
            kids = sorted((self._nodes[i] for i in self._children.get(node.id, [])), key=_sort_key)
            work.extend(reversed(kids))
        return result

    # ==================== Mutations ====================

    def insert(self, node: Node) -> "Tree":
        if node.id in self._nodes:
            raise DuplicateId(node.id)
        if node.parent_id is None:
            if self._nodes:
                raise RootExists(node.id)
        elif node.parent_id not in self._nodes:
            raise DanglingParent(node.id, node.parent_id)
        nodes = dict(self._nodes)
        nodes[node.id] = node
        return Tree(nodes)

    def update(self, node_id: str, content: str) -> "Tree":
        node = self.node(node_id)
        if node.content == content:
            return self
        nodes = dict(self._nodes)
        nodes[node_id] = replace(node, content=content)
        return Tree(nodes)

    def shift_siblings(self, parent_id: Optional[str], from_order: int) -> "Tree":
        """Raise the order of every child of ``parent_id`` at or above ``from_order`` by one."""
        ids = [i for i in self._children.get(parent_id, []) if self._nodes[i].order >= from_order]
        if not ids:
            return self
        nodes = dict(self._nodes)
        for node_id in ids:
            nodes[node_id] = replace(nodes[node_id], order=nodes[node_id].order + 1)
        return Tree(nodes)

    def remove_subtree(self, node_id: str) -> "Tree":
        doomed = set(self.descendant_ids(node_id))
        return Tree({k: v for k, v in self._nodes.items() if k not in doomed})

    # ==================== Validation ====================

    def problems(self) -> List[str]:
        """Describe every broken invariant; empty when the tree is sound."""
        found: List[str] = []
        roots = self._children.get(None, [])
        if self._nodes and len(roots) != 1:
            found.append(f"expected exactly one root, found {len(roots)}")
        for parent_id, kids in self._children.items():
            if parent_id is not None and parent_id not in self._nodes:
                found.append(f"dangling parent {parent_id!r} referenced by {sorted(kids)}")
            orders = [self._nodes[i].order for i in kids]
            if len(orders) != len(set(orders)):
                found.append(f"duplicate order among children of {parent_id!r}")
        for node_id in self._nodes:
            seen = {node_id}
            current = self._nodes[node_id].parent_id
            while current is not None and current in self._nodes:
                if current in seen:
                    found.append(f"cycle through {node_id!r}")
                    break
                seen.add(current)
                current = self._nodes[current].parent_id
        return found

    def validate(self) -> "Tree":
        found = self.problems()
        if found:
            raise InvariantViolation(found)
        return self


EMPTY_TREE = Tree()
