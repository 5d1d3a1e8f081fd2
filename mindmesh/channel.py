"""Real-time channel transport.

The channel owns the connection lifecycle (connect, reconnect); the sync
layer only joins and leaves rooms and sends typed messages. Handlers run
on the transport's own threads.
"""

import logging
from typing import Any, Callable, Dict, Optional, Protocol

import socketio
from socketio.exceptions import SocketIOError

from mindmesh.errors import NetworkDeliveryFailure

logger = logging.getLogger(__name__)


class Channel(Protocol):
    on_connected: Optional[Callable[[], None]]
    on_disconnected: Optional[Callable[[], None]]

    @property
    def connected(self) -> bool: ...

    def connect(self, credential: Optional[str]) -> None: ...

    def disconnect(self) -> None: ...

    def emit(self, event: str, payload: Dict[str, Any]) -> None: ...

    def on(self, event: str, handler: Callable[[Any], None]) -> None: ...


class SocketIOChannel:
    """Channel over a Socket.IO connection."""

    def __init__(self, url: str, client: Optional[socketio.Client] = None,
                 connect_timeout: float = 10.0):
        self.url = url
        self.connect_timeout = connect_timeout
        self.sio = client or socketio.Client(reconnection=True, logger=False)

        # Callbacks
        self.on_connected: Optional[Callable[[], None]] = None
        self.on_disconnected: Optional[Callable[[], None]] = None

        self.sio.on("connect", self._handle_connect)
        self.sio.on("disconnect", self._handle_disconnect)

    @property
    def connected(self) -> bool:
        return self.sio.connected

    def connect(self, credential: Optional[str]):
        """Open the connection, attaching the opaque credential."""
        if self.sio.connected:
            return
        auth = {"token": credential} if credential else None
        try:
            self.sio.connect(self.url, auth=auth, wait_timeout=self.connect_timeout)
        except SocketIOError as exc:
            raise NetworkDeliveryFailure(f"Could not connect to {self.url}", exc) from exc

    def disconnect(self):
        if self.sio.connected:
            self.sio.disconnect()

    def emit(self, event: str, payload: Dict[str, Any]):
        try:
            self.sio.emit(event, payload)
        except SocketIOError as exc:
            raise NetworkDeliveryFailure(f"Could not send {event}", exc) from exc

    def on(self, event: str, handler: Callable[[Any], None]):
        self.sio.on(event, handler)

    def _handle_connect(self):
        logger.info("Connected to %s", self.url)
        if self.on_connected:
            self.on_connected()

    def _handle_disconnect(self, *_reason):
        logger.info("Disconnected from %s", self.url)
        if self.on_disconnected:
            self.on_disconnected()
