"""Per-client selection state.

Lives beside the tree, never inside it: nothing here is saved or broadcast.
"""

from typing import Callable, List, Optional


class Selection:
    """The active node and whether it is being edited."""

    def __init__(self):
        self.active_id: Optional[str] = None
        self.editing_id: Optional[str] = None
        self._listeners: List[Callable[[Optional[str]], None]] = []

    def add_listener(self, callback: Callable[[Optional[str]], None]):
        self._listeners.append(callback)

    @property
    def is_editing(self) -> bool:
        return self.editing_id is not None

    def activate(self, node_id: Optional[str], edit: bool = False):
        changed = node_id != self.active_id
        self.active_id = node_id
        if self.editing_id is not None and self.editing_id != node_id:
            self.editing_id = None
        if edit and node_id is not None:
            self.editing_id = node_id
        if changed:
            for callback in self._listeners:
                callback(node_id)

    def begin_edit(self):
        if self.active_id is not None:
            self.editing_id = self.active_id

    def end_edit(self) -> Optional[str]:
        """Leave editing mode, returning the node that was being edited."""
        node_id, self.editing_id = self.editing_id, None
        return node_id

    def clear(self):
        self.activate(None)
