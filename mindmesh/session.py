"""The hosting session for one open mind map.

Holds the live tree (through the engine), the per-client view state, the
sync session, and the autosaver, and tears them down together.
"""

import logging
from concurrent.futures import Executor
from typing import Callable, Optional

from mindmesh.autosave import AutoSaver
from mindmesh.channel import Channel
from mindmesh.config import Settings
from mindmesh.debounce import Scheduler
from mindmesh.engine import MutationEngine, new_node_id
from mindmesh.events import MutationEvent, NodeDeleted
from mindmesh.interaction import KeyboardController
from mindmesh.layout import AnchorRegistry
from mindmesh.selection import Selection
from mindmesh.store import MindMapRecord, MindMapStore
from mindmesh.sync import SyncSession
from mindmesh.viewport import Viewport

logger = logging.getLogger(__name__)


class MindMapSession:
    def __init__(self, record: MindMapRecord, store: MindMapStore, scheduler: Scheduler,
                 settings: Optional[Settings] = None, channel: Optional[Channel] = None,
                 executor: Optional[Executor] = None,
                 id_factory: Callable[[], str] = new_node_id):
        self.settings = settings or Settings()
        self.record = record
        self.store = store

        # Ephemeral per-client state, kept apart from the tree.
        self.selection = Selection()
        self.viewport = Viewport.from_settings(self.settings)
        self.anchors = AnchorRegistry()

        self.engine = MutationEngine(
            record.id, record.tree,
            selection=self.selection,
            settings=self.settings,
            read_only=record.read_only,
            id_factory=id_factory,
        )
        self.keyboard = KeyboardController(self.engine)
        self.saver = AutoSaver(store, scheduler, record.id,
                               delay_ms=self.settings.save_debounce_ms, executor=executor)
        self.sync: Optional[SyncSession] = None
        if channel is not None:
            self.sync = SyncSession(
                self.engine, channel, scheduler,
                credential=self.settings.auth_token,
                update_debounce_ms=self.settings.update_debounce_ms,
            )
            self.sync.on_notice = self._notice

        # Callbacks
        self.on_notice: Optional[Callable[[str], None]] = None
        self.on_changed: Optional[Callable[[MutationEvent], None]] = None

        self.saver.on_error = self._notice
        self.engine.add_listener(self._on_mutation)

        problems = record.tree.problems()
        if problems:
            logger.warning("Mind map %s loaded with problems: %s", record.id, "; ".join(problems))

    @classmethod
    def open(cls, map_id: str, store: MindMapStore, scheduler: Scheduler,
             **kwargs) -> "MindMapSession":
        """Load ``map_id`` from ``store``; raises ``MapNotFound``."""
        return cls(store.load_tree(map_id), store, scheduler, **kwargs)

    @property
    def tree(self):
        return self.engine.tree

    @property
    def read_only(self) -> bool:
        return self.engine.read_only

    def start(self):
        """Join the live room, when there is a channel."""
        if self.sync is not None:
            self.sync.enter()

    def end_edit(self):
        """The edited node lost focus."""
        node_id = self.selection.editing_id
        deleted = self.engine.end_edit()
        if deleted is None and node_id is not None and self.sync is not None:
            self.sync.flush_node(node_id)
        return deleted

    def reload(self):
        """Replace the live tree with the stored copy, dropping divergence."""
        self.record = self.store.load_tree(self.record.id)
        self.engine.load(self.record.tree)
        self.anchors.prune(self.engine.tree)

    def close(self):
        """Tear down: leave the room and finish saving."""
        if self.sync is not None:
            self.sync.close()
        self.saver.shutdown()
        self.engine.remove_listener(self._on_mutation)

    def _on_mutation(self, event: MutationEvent, local: bool):
        if local:
            self.saver.schedule(self.engine.tree)
        if isinstance(event, NodeDeleted):
            for node_id in event.removed:
                self.anchors.unmount(node_id)
        if self.on_changed:
            self.on_changed(event)

    def _notice(self, message: str):
        if self.on_notice:
            self.on_notice(message)
