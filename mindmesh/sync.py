"""Sync protocol layer.

Connects one mutation engine to the real-time channel:

* local mutations are already applied to the tree when they reach us; we
  broadcast them (content updates coalesced per node),
* received mutations are decoded, filtered, and applied on the main loop
  without being re-broadcast,
* messages we sent ourselves (echoes) are dropped by origin id.

Delivery is best-effort and at-most-once. Concurrent edits to the same
node resolve as last-write-wins at each receiver; nothing is merged.
"""

import functools
import logging
import uuid
from enum import Enum
from typing import Any, Callable, Optional

from mindmesh import protocol
from mindmesh.channel import Channel
from mindmesh.debounce import Debouncer, Scheduler
from mindmesh.engine import MutationEngine
from mindmesh.errors import NetworkDeliveryFailure, ProtocolError
from mindmesh.events import MutationEvent, NodeCreated, NodeDeleted, NodeUpdated

logger = logging.getLogger(__name__)


class SyncState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"  # connected, not in any room
    JOINED = "joined"


class SyncSession:
    """Room membership and event fan-out for one open mind map.

    One session drives a channel at a time; the channel itself may outlive
    the session and be reused for the next mind map.
    """

    def __init__(self, engine: MutationEngine, channel: Channel, scheduler: Scheduler,
                 credential: Optional[str] = None, update_debounce_ms: int = 300,
                 client_id: Optional[str] = None):
        self.engine = engine
        self.channel = channel
        self.scheduler = scheduler
        self.credential = credential
        self.client_id = client_id or uuid.uuid4().hex

        self.state = SyncState.CONNECTED if channel.connected else SyncState.DISCONNECTED
        self.room: Optional[str] = None
        self._wanted_room: Optional[str] = None
        self._warned_undelivered = False
        self._updates = Debouncer(scheduler, update_debounce_ms, self._send_update)

        # Callbacks
        self.on_notice: Optional[Callable[[str], None]] = None
        self.on_state_changed: Optional[Callable[[SyncState], None]] = None
        self.on_remote_applied: Optional[Callable[[MutationEvent], None]] = None

        for name in protocol.MUTATION_EVENTS:
            channel.on(name, functools.partial(self._receive, name))
        channel.on_connected = self._on_channel_connected
        channel.on_disconnected = self._on_channel_disconnected
        engine.add_listener(self._on_mutation)

    # ==================== Room lifecycle ====================

    def enter(self) -> bool:
        """Connect if needed and join the engine's mind map room."""
        room = self.engine.mind_map_id
        self._wanted_room = room
        if self.state is SyncState.JOINED and self.room == room:
            return True
        if self.room is not None and self.room != room:
            self._leave_room()

        if not self.channel.connected:
            self._set_state(SyncState.CONNECTING)
            try:
                self.channel.connect(self.credential)
            except NetworkDeliveryFailure as exc:
                logger.error("Connection failed: %s", exc)
                self._set_state(SyncState.DISCONNECTED)
                self._notice("Live updates unavailable: could not connect")
                return False
        return self._join(room)

    def leave(self):
        """Leave the room; the channel stays connected for reuse."""
        self._updates.flush_all()
        self._wanted_room = None
        self._leave_room()

    def close(self):
        """Release the room and stop listening to the engine."""
        self.leave()
        self.engine.remove_listener(self._on_mutation)

    def _join(self, room: str) -> bool:
        try:
            self.channel.emit(protocol.JOIN, protocol.room_payload(room))
        except NetworkDeliveryFailure as exc:
            logger.error("Join failed: %s", exc)
            self._notice("Live updates unavailable: could not join")
            return False
        logger.info("Joined mind map %s", room)
        self.room = room
        self._warned_undelivered = False
        self._set_state(SyncState.JOINED)
        return True

    def _leave_room(self):
        room, self.room = self.room, None
        if room is not None and self.channel.connected:
            try:
                self.channel.emit(protocol.LEAVE, protocol.room_payload(room))
                logger.info("Left mind map %s", room)
            except NetworkDeliveryFailure as exc:
                logger.warning("Leave failed: %s", exc)
        self._set_state(SyncState.CONNECTED if self.channel.connected else SyncState.DISCONNECTED)

    def _on_channel_connected(self):
        self.scheduler.idle_add(self._rejoin)

    def _on_channel_disconnected(self):
        self.scheduler.idle_add(self._dropped)

    def _rejoin(self):
        # Room membership does not survive a reconnect.
        if self._wanted_room is not None and self.state is not SyncState.JOINED:
            self._join(self._wanted_room)
        elif self.state is SyncState.DISCONNECTED:
            self._set_state(SyncState.CONNECTED)

    def _dropped(self):
        self.room = None
        self._set_state(SyncState.DISCONNECTED)

    def _set_state(self, state: SyncState):
        if state is self.state:
            return
        self.state = state
        if self.on_state_changed:
            self.on_state_changed(state)

    def _notice(self, message: str):
        if self.on_notice:
            self.on_notice(message)

    # ==================== Outbound ====================

    def _on_mutation(self, event: MutationEvent, local: bool):
        # Updates for a deleted node never go out, whoever deleted it.
        if isinstance(event, NodeDeleted):
            for node_id in event.removed:
                self._updates.cancel(node_id)
        if not local:
            return
        if isinstance(event, NodeUpdated):
            self._updates.submit(event.node_id, event)
        elif isinstance(event, NodeDeleted):
            self._send(event)
        elif isinstance(event, NodeCreated):
            self._send(event)

    def flush_node(self, node_id: str) -> bool:
        """Send any coalesced content update for ``node_id`` now."""
        return self._updates.flush(node_id)

    def _send_update(self, _node_id: str, event: NodeUpdated):
        self._send(event)

    def _send(self, event: MutationEvent):
        if self.state is not SyncState.JOINED:
            logger.debug("Not joined; %s not broadcast", event.kind.value)
            if not self._warned_undelivered:
                self._warned_undelivered = True
                self._notice("Offline: changes are not reaching collaborators")
            return
        name, payload = protocol.encode(event, origin=self.client_id)
        try:
            self.channel.emit(name, payload)
        except NetworkDeliveryFailure as exc:
            logger.error("Broadcast failed: %s", exc)
            self._notice("A change could not be sent to collaborators")

    # ==================== Inbound ====================

    def _receive(self, name: str, payload: Any):
        # Transport thread: hand off to the main loop.
        self.scheduler.idle_add(lambda: self.apply_message(name, payload))

    def apply_message(self, name: str, payload: Any) -> Optional[MutationEvent]:
        """Decode and apply one received message on the main loop."""
        try:
            event = protocol.decode(name, payload)
        except ProtocolError as exc:
            logger.warning("Dropping message: %s", exc)
            return None
        if event.origin is not None and event.origin == self.client_id:
            logger.debug("Dropping echo of own %s", name)
            return None
        if self.room is None or event.mind_map_id != self.room:
            logger.debug("Dropping %s for room %s", name, event.mind_map_id)
            return None
        applied = self.engine.apply_remote(event)
        if applied is not None and self.on_remote_applied:
            self.on_remote_applied(applied)
        return applied
