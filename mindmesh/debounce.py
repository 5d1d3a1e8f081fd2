"""Timer-based coalescing of outbound calls.

Policy: the last submitted value wins, and at most one call goes out per
quiet period. Each key (usually a node id) has its own timer, so typing
in one node never delays updates for another.
"""

from typing import Any, Callable, Dict, Hashable, Optional, Protocol, Tuple


class Scheduler(Protocol):
    """The slice of a main loop the core needs.

    ``mindmesh.mainloop.GLibScheduler`` is the production implementation.
    """

    def timeout_add(self, delay_ms: int, callback: Callable[[], None]) -> int: ...

    def source_remove(self, source_id: int) -> None: ...

    def idle_add(self, callback: Callable[[], None]) -> int: ...


class Debouncer:
    """Trailing-edge debouncer keyed by an arbitrary hashable."""

    def __init__(self, scheduler: Scheduler, delay_ms: int,
                 callback: Callable[[Hashable, Any], None]):
        self.scheduler = scheduler
        self.delay_ms = delay_ms
        self.callback = callback
        # key -> (timer source id, latest value)
        self._pending: Dict[Hashable, Tuple[int, Any]] = {}

    def submit(self, key: Hashable, value: Any):
        """Record ``value`` for ``key`` and restart its quiet period."""
        entry = self._pending.get(key)
        if entry is not None:
            self.scheduler.source_remove(entry[0])
        source_id = self.scheduler.timeout_add(self.delay_ms, lambda: self._fire(key))
        self._pending[key] = (source_id, value)

    def is_pending(self, key: Hashable) -> bool:
        return key in self._pending

    def pending_value(self, key: Hashable) -> Optional[Any]:
        entry = self._pending.get(key)
        return entry[1] if entry else None

    def flush(self, key: Hashable) -> bool:
        """Deliver the pending value for ``key`` now. Returns whether one existed."""
        entry = self._pending.pop(key, None)
        if entry is None:
            return False
        self.scheduler.source_remove(entry[0])
        self.callback(key, entry[1])
        return True

    def flush_all(self):
        for key in list(self._pending):
            self.flush(key)

    def cancel(self, key: Hashable) -> bool:
        entry = self._pending.pop(key, None)
        if entry is None:
            return False
        self.scheduler.source_remove(entry[0])
        return True

    def cancel_all(self):
        for key in list(self._pending):
            self.cancel(key)

    def _fire(self, key: Hashable):
        entry = self._pending.pop(key, None)
        if entry is not None:
            self.callback(key, entry[1])
