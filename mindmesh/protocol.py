"""Wire format for the real-time channel.

Messages are Socket.IO events with JSON object payloads::

    join:mindmap   {"mindMapId"}
    leave:mindmap  {"mindMapId"}
    node:create    {"mindMapId", "node", "origin"}
    node:update    {"mindMapId", "nodeId", "content", "origin"}
    node:delete    {"mindMapId", "nodeId", "origin"}

A deletion names only the root of the removed subtree; receivers compute
the closure themselves.
"""

from typing import Any, Dict, Optional, Tuple

from mindmesh.errors import ProtocolError
from mindmesh.events import EventKind, MutationEvent, NodeCreated, NodeDeleted, NodeUpdated
from mindmesh.tree import Node

JOIN = "join:mindmap"
LEAVE = "leave:mindmap"
MUTATION_EVENTS = tuple(kind.value for kind in EventKind)


def room_payload(mind_map_id: str) -> Dict[str, str]:
    return {"mindMapId": mind_map_id}


def encode(event: MutationEvent, origin: Optional[str] = None) -> Tuple[str, Dict[str, Any]]:
    """Return ``(event name, payload)`` for ``event``."""
    payload: Dict[str, Any] = {"mindMapId": event.mind_map_id}
    if isinstance(event, NodeCreated):
        payload["node"] = event.node.to_dict()
    elif isinstance(event, NodeUpdated):
        payload["nodeId"] = event.node_id
        payload["content"] = event.content
    elif isinstance(event, NodeDeleted):
        payload["nodeId"] = event.node_id
    else:
        raise TypeError(f"Cannot encode {type(event).__name__}")
    sender = origin if origin is not None else event.origin
    if sender is not None:
        payload["origin"] = sender
    return event.kind.value, payload


def decode(name: str, payload: Any) -> MutationEvent:
    """Parse a received message, raising ``ProtocolError`` when malformed."""
    if not isinstance(payload, dict):
        raise ProtocolError(f"{name}: payload is not an object")
    try:
        kind = EventKind(name)
    except ValueError:
        raise ProtocolError(f"Unknown event {name!r}") from None

    try:
        mind_map_id = str(payload["mindMapId"])
        origin = payload.get("origin")
        if kind is EventKind.NODE_CREATED:
            return NodeCreated(mind_map_id, Node.from_dict(payload["node"]), origin=origin)
        if kind is EventKind.NODE_UPDATED:
            content = payload["content"]
            if not isinstance(content, str):
                raise TypeError("content must be a string")
            return NodeUpdated(mind_map_id, str(payload["nodeId"]), content, origin=origin)
        return NodeDeleted(mind_map_id, str(payload["nodeId"]), origin=origin)
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise ProtocolError(f"{name}: malformed payload ({exc})") from exc
