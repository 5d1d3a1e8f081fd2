import pytest

from mindmesh import protocol
from mindmesh.errors import ProtocolError
from mindmesh.events import NodeCreated, NodeDeleted, NodeUpdated
from tests.conftest import node


def test_delete_carries_only_subtree_root():
    event = NodeDeleted("m", "a", removed=("a", "a1", "a2"))
    name, payload = protocol.encode(event, origin="me")
    assert name == "node:delete"
    assert payload == {"mindMapId": "m", "nodeId": "a", "origin": "me"}


def test_create_payload_embeds_node():
    name, payload = protocol.encode(NodeCreated("m", node("c", "r", 2, "hi")))
    assert name == "node:create"
    assert payload["node"]["order"] == 2
    assert "origin" not in payload


def test_decode_update():
    event = protocol.decode("node:update",
                            {"mindMapId": "m", "nodeId": "a", "content": "x", "origin": "p"})
    assert event == NodeUpdated("m", "a", "x", origin="p")


def test_decode_create():
    event = protocol.decode("node:create", {
        "mindMapId": "m",
        "node": {"id": "c", "parentId": "r", "content": "", "position": {"x": 1, "y": 2}, "order": 0},
    })
    assert isinstance(event, NodeCreated)
    assert event.node.position.x == 1.0
    assert event.origin is None


@pytest.mark.parametrize("name, payload", [
    ("node:move", {"mindMapId": "m"}),
    ("node:delete", {"nodeId": "a"}),
    ("node:create", {"mindMapId": "m", "node": {"content": "no id"}}),
    ("node:create", {"mindMapId": "m", "node": {"id": "c", "order": "first"}}),
    ("node:update", ["m", "a", "x"]),
])
def test_decode_rejects_malformed(name, payload):
    with pytest.raises(ProtocolError):
        protocol.decode(name, payload)
