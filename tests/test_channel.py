import pytest
from socketio.exceptions import BadNamespaceError, ConnectionError as SocketIOConnectionError

from mindmesh.channel import SocketIOChannel
from mindmesh.errors import NetworkDeliveryFailure


class StubClient:
    """Just enough of socketio.Client."""

    def __init__(self):
        self.connected = False
        self.handlers = {}
        self.emitted = []
        self.connect_calls = []
        self.refuse = False
        self.broken = False

    def on(self, event, handler):
        self.handlers[event] = handler

    def connect(self, url, auth=None, wait_timeout=None):
        self.connect_calls.append((url, auth, wait_timeout))
        if self.refuse:
            raise SocketIOConnectionError("refused")
        self.connected = True
        self.handlers["connect"]()

    def disconnect(self):
        self.connected = False
        self.handlers["disconnect"]("client disconnect")

    def emit(self, event, data):
        if self.broken:
            raise BadNamespaceError("/ is not a connected namespace.")
        self.emitted.append((event, data))


@pytest.fixture
def client():
    return StubClient()


def test_connect_attaches_credential(client):
    channel = SocketIOChannel("http://server.test", client=client, connect_timeout=3)
    connected = []
    channel.on_connected = lambda: connected.append(True)

    channel.connect("tok")

    assert client.connect_calls == [("http://server.test", {"token": "tok"}, 3)]
    assert channel.connected
    assert connected == [True]


def test_connect_without_credential(client):
    SocketIOChannel("http://server.test", client=client).connect(None)
    assert client.connect_calls[0][1] is None


def test_connect_is_skipped_when_already_connected(client):
    channel = SocketIOChannel("http://server.test", client=client)
    channel.connect("tok")
    channel.connect("tok")
    assert len(client.connect_calls) == 1


def test_connect_failure_is_delivery_failure(client):
    client.refuse = True
    with pytest.raises(NetworkDeliveryFailure):
        SocketIOChannel("http://server.test", client=client).connect("tok")


def test_emit_failure_is_delivery_failure(client):
    client.broken = True
    with pytest.raises(NetworkDeliveryFailure):
        SocketIOChannel("http://server.test", client=client).emit("node:create", {})


def test_handlers_and_disconnect_callback(client):
    channel = SocketIOChannel("http://server.test", client=client)
    received = []
    dropped = []
    channel.on("node:update", received.append)
    channel.on_disconnected = lambda: dropped.append(True)

    channel.connect(None)
    client.handlers["node:update"]({"nodeId": "a"})
    channel.disconnect()

    assert received == [{"nodeId": "a"}]
    assert dropped == [True]
    assert not channel.connected
