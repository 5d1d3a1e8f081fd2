"""GLib main loop adapter.

All tree mutations happen on the GLib main context. Work arriving from
other threads (socket callbacks, finished saves) is queued with
``idle_add`` and runs there.
"""

from typing import Callable

from gi.repository import GLib


class GLibScheduler:
    """Scheduler backed by the default GLib main context."""

    def timeout_add(self, delay_ms: int, callback: Callable[[], None]) -> int:
        def _once():
            callback()
            return GLib.SOURCE_REMOVE
        return GLib.timeout_add(delay_ms, _once)

    def source_remove(self, source_id: int) -> None:
        GLib.source_remove(source_id)

    def idle_add(self, callback: Callable[[], None]) -> int:
        def _once():
            callback()
            return GLib.SOURCE_REMOVE
        # GLib.idle_add is safe to call from any thread.
        return GLib.idle_add(_once)
