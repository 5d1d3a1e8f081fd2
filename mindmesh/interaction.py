"""Keyboard-driven selection and creation."""

import logging
from enum import Enum
from typing import Optional

from mindmesh.engine import MutationEngine
from mindmesh.tree import Node

logger = logging.getLogger(__name__)


class Key(Enum):
    """Toolkit-independent key intents."""
    CREATE_CHILD = "create_child"      # Tab
    CREATE_SIBLING = "create_sibling"  # Enter
    DELETE = "delete"                  # Delete
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"


NAVIGATION_KEYS = frozenset({Key.UP, Key.DOWN, Key.LEFT, Key.RIGHT})


class KeyboardController:
    """Maps key intents onto the engine and the active selection.

    Keys only act while a node is active. In read-only mode only selection
    movement is available.
    """

    def __init__(self, engine: MutationEngine):
        self.engine = engine

    @property
    def active(self) -> Optional[Node]:
        return self.engine.tree.get(self.engine.selection.active_id)

    def handle_key(self, key: Key) -> bool:
        """Apply ``key``. Returns whether the key belongs to the mind map."""
        node = self.active
        if node is None:
            return False

        if key in NAVIGATION_KEYS:
            self.navigate(node, key)
            return True
        if self.engine.read_only:
            logger.debug("%s ignored: read-only", key.value)
            return True

        if key is Key.CREATE_CHILD:
            self.engine.add_child(node.id)
        elif key is Key.CREATE_SIBLING:
            self.engine.add_sibling(node.id)
        elif key is Key.DELETE:
            self.engine.delete_node(node.id)
        return True

    def navigate(self, node: Node, key: Key):
        """Move the selection; moving past either end is a no-op."""
        tree = self.engine.tree
        target: Optional[str] = None

        if key in (Key.UP, Key.DOWN):
            siblings = tree.siblings_of(node.id)
            idx = next(i for i, n in enumerate(siblings) if n.id == node.id)
            idx += -1 if key is Key.UP else 1
            if 0 <= idx < len(siblings):
                target = siblings[idx].id
        elif key is Key.LEFT:
            target = node.parent_id
        elif key is Key.RIGHT:
            children = tree.children_of(node.id)
            if children:
                target = children[0].id

        if target is not None:
            self.engine.selection.activate(target)
