"""Background saving of tree snapshots.

Saves are fire-and-forget: the tree is already updated when a save starts,
and a failed save is reported but never rolls the tree back.
"""

import logging
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Callable, Optional

from mindmesh.debounce import Debouncer, Scheduler
from mindmesh.errors import MindMeshError
from mindmesh.store import MindMapStore
from mindmesh.tree import Tree

logger = logging.getLogger(__name__)


class AutoSaver:
    """Coalesces snapshot saves and runs them off the main loop."""

    def __init__(self, store: MindMapStore, scheduler: Scheduler, map_id: str,
                 delay_ms: int = 1000, executor: Optional[Executor] = None):
        self.store = store
        self.scheduler = scheduler
        self.map_id = map_id
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="mindmesh-save"
        )
        self._owns_executor = executor is None
        self._debouncer = Debouncer(scheduler, delay_ms, self._start_save)
        self.in_flight = 0

        # Callbacks
        self.on_saving: Optional[Callable[[bool], None]] = None
        self.on_error: Optional[Callable[[str], None]] = None

    def schedule(self, tree: Tree):
        """Save ``tree`` once edits go quiet; a later snapshot replaces it."""
        self._debouncer.submit(self.map_id, tree)

    @property
    def pending(self) -> bool:
        return self._debouncer.is_pending(self.map_id) or self.in_flight > 0

    def flush(self):
        """Start any pending save immediately."""
        self._debouncer.flush_all()

    def shutdown(self):
        """Flush and wait for outstanding saves."""
        self.flush()
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    def _start_save(self, map_id: str, tree: Tree):
        self.in_flight += 1
        if self.on_saving:
            self.on_saving(True)
        future = self._executor.submit(self.store.save_tree, map_id, tree)
        future.add_done_callback(
            lambda f: self.scheduler.idle_add(lambda: self._finished(f))
        )

    def _finished(self, future: Future):
        self.in_flight -= 1
        exc = future.exception()
        if exc is not None:
            logger.error("Saving mind map %s failed: %s", self.map_id, exc)
            if self.on_error:
                message = str(exc) if isinstance(exc, MindMeshError) else "Failed to save your changes"
                self.on_error(message)
        if self.on_saving:
            self.on_saving(self.in_flight > 0)
