"""Mutation events emitted by the engine."""

from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Optional, Tuple, Union

from mindmesh.tree import Node


class EventKind(Enum):
    """Kinds of mutation events; values are the wire event names."""
    NODE_CREATED = "node:create"
    NODE_UPDATED = "node:update"
    NODE_DELETED = "node:delete"


@dataclass(frozen=True)
class NodeCreated:
    kind: ClassVar[EventKind] = EventKind.NODE_CREATED
    mind_map_id: str
    node: Node
    # Sibling ids whose order was raised to make room (local bookkeeping only).
    shifted: Tuple[str, ...] = ()
    origin: Optional[str] = None

    @property
    def node_id(self) -> str:
        return self.node.id


@dataclass(frozen=True)
class NodeUpdated:
    kind: ClassVar[EventKind] = EventKind.NODE_UPDATED
    mind_map_id: str
    node_id: str
    content: str
    origin: Optional[str] = None


@dataclass(frozen=True)
class NodeDeleted:
    kind: ClassVar[EventKind] = EventKind.NODE_DELETED
    mind_map_id: str
    node_id: str
    # Closure computed by whoever applied the event; never sent on the wire.
    removed: Tuple[str, ...] = field(default=(), compare=False)
    origin: Optional[str] = None


MutationEvent = Union[NodeCreated, NodeUpdated, NodeDeleted]
