"""Mutation engine: user intents and remote events applied to the tree."""

import functools
import logging
import uuid
from typing import Callable, List, Optional

from mindmesh.config import Settings
from mindmesh.errors import MindMeshError, NotFound, PermissionDenied, StructureError
from mindmesh.events import MutationEvent, NodeCreated, NodeDeleted, NodeUpdated
from mindmesh.selection import Selection
from mindmesh.tree import EMPTY_TREE, Node, Tree

logger = logging.getLogger(__name__)

MutationListener = Callable[[MutationEvent, bool], None]


def _quiet(method):
    """Turn tree and permission errors from a user intent into a no-op."""
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except (NotFound, PermissionDenied) as exc:
            logger.debug("%s ignored: %s", method.__name__, exc)
        except StructureError as exc:
            logger.warning("%s rejected: %s", method.__name__, exc)
        return None
    return wrapper


def new_node_id() -> str:
    return str(uuid.uuid4())


class MutationEngine:
    """Owns the live tree for one mind map and applies every change to it.

    Local intents are validated, applied, and announced to listeners with
    ``local=True``; the sync layer broadcasts those. Remote events go through
    ``apply_remote`` and are announced with ``local=False``.
    """

    def __init__(self, mind_map_id: str, tree: Optional[Tree] = None,
                 selection: Optional[Selection] = None,
                 settings: Optional[Settings] = None,
                 read_only: bool = False,
                 id_factory: Callable[[], str] = new_node_id):
        self.mind_map_id = mind_map_id
        self.tree = tree if tree is not None else EMPTY_TREE
        self.selection = selection or Selection()
        self.settings = settings or Settings()
        self.read_only = read_only
        self._new_id = id_factory
        self._listeners: List[MutationListener] = []

    def add_listener(self, callback: MutationListener):
        self._listeners.append(callback)

    def remove_listener(self, callback: MutationListener):
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _emit(self, event: MutationEvent, local: bool):
        for callback in list(self._listeners):
            callback(event, local)

    def _check_writable(self):
        if self.read_only:
            raise PermissionDenied("session is read-only")

    def load(self, tree: Tree):
        """Replace the tree wholesale, e.g. after reloading from persistence."""
        self.tree = tree
        if self.selection.active_id not in tree:
            self.selection.clear()

    # ==================== Local intents ====================

    @_quiet
    def add_child(self, parent_id: str) -> Optional[NodeCreated]:
        """Append a new empty child to ``parent_id`` and focus it for editing."""
        self._check_writable()
        parent = self.tree.node(parent_id)
        children = self.tree.children_of(parent_id)
        count = len(children)
        order = max(count, children[-1].order + 1) if children else 0
        node = Node(
            id=self._new_id(),
            content="",
            parent_id=parent.id,
            position=parent.position.offset(
                dy=self.settings.child_step_y + count * self.settings.child_spread_y
            ),
            order=order,
        )
        self.tree = self.tree.insert(node)
        self.selection.activate(node.id, edit=True)

        event = NodeCreated(self.mind_map_id, node)
        self._emit(event, True)
        return event

    @_quiet
    def add_sibling(self, node_id: str) -> Optional[NodeCreated]:
        """Insert a new empty node directly after ``node_id`` among its siblings."""
        self._check_writable()
        target = self.tree.node(node_id)
        if target.is_root:
            return self.add_child(node_id)

        order = target.order + 1
        shifted = tuple(
            n.id for n in self.tree.siblings_of(node_id) if n.order >= order
        )
        node = Node(
            id=self._new_id(),
            content="",
            parent_id=target.parent_id,
            position=target.position.offset(dy=self.settings.sibling_step_y),
            order=order,
        )
        self.tree = self.tree.shift_siblings(target.parent_id, order).insert(node)
        self.selection.activate(node.id, edit=True)

        event = NodeCreated(self.mind_map_id, node, shifted=shifted)
        self._emit(event, True)
        return event

    @_quiet
    def delete_node(self, node_id: str) -> Optional[NodeDeleted]:
        """Delete ``node_id`` and its descendants. The root is never deleted here."""
        self._check_writable()
        node = self.tree.node(node_id)
        if node.is_root:
            logger.debug("Refusing to delete root %s; use clear_tree()", node_id)
            return None
        return self._remove(node, local=True)

    @_quiet
    def clear_tree(self) -> Optional[NodeDeleted]:
        """Remove the root and therefore the whole tree."""
        self._check_writable()
        root = self.tree.root
        if root is None:
            return None
        return self._remove(root, local=True)

    @_quiet
    def edit_content(self, node_id: str, text: str) -> Optional[NodeUpdated]:
        """Replace the content of ``node_id``. Last write wins."""
        self._check_writable()
        self.tree = self.tree.update(node_id, text)
        event = NodeUpdated(self.mind_map_id, node_id, text)
        self._emit(event, True)
        return event

    def end_edit(self) -> Optional[NodeDeleted]:
        """Handle loss of edit focus.

        A non-root node left empty is deleted; empty leaves are not kept.
        """
        node_id = self.selection.end_edit()
        if node_id is None or self.read_only:
            return None
        node = self.tree.get(node_id)
        if node is None or node.is_root or node.content.strip():
            return None
        return self.delete_node(node_id)

    def _remove(self, node: Node, local: bool, origin: Optional[str] = None) -> NodeDeleted:
        removed = tuple(self.tree.descendant_ids(node.id))
        self.tree = self.tree.remove_subtree(node.id)

        if self.selection.active_id in removed:
            self.selection.activate(node.parent_id)
        elif self.selection.editing_id in removed:
            self.selection.end_edit()

        event = NodeDeleted(self.mind_map_id, node.id, removed=removed, origin=origin)
        self._emit(event, local)
        return event

    # ==================== Remote events ====================

    def apply_remote(self, event: MutationEvent) -> Optional[MutationEvent]:
        """Apply an event received from the channel without re-broadcasting it.

        Returns the applied event, or ``None`` when it was rejected and the
        tree left unchanged. Read-only sessions still apply remote events.
        """
        if event.mind_map_id != self.mind_map_id:
            logger.debug("Ignoring event for mind map %s", event.mind_map_id)
            return None
        try:
            if isinstance(event, NodeCreated):
                return self._apply_created(event)
            if isinstance(event, NodeUpdated):
                self.tree = self.tree.update(event.node_id, event.content)
                self._emit(event, False)
                return event
            if isinstance(event, NodeDeleted):
                return self._remove(
                    self.tree.node(event.node_id), local=False, origin=event.origin
                )
        except MindMeshError as exc:
            logger.warning("Rejected remote %s: %s", event.kind.value, exc)
            return None
        raise TypeError(f"Unknown event type: {type(event).__name__}")

    def _apply_created(self, event: NodeCreated) -> NodeCreated:
        node = event.node
        tree = self.tree
        shifted = ()
        # Repeat the sender's shift; a gap left by a delete does not stop it.
        if node.parent_id is not None and node.parent_id in tree and node.id not in tree:
            shifted = tuple(
                s.id for s in tree.children_of(node.parent_id) if s.order >= node.order
            )
            tree = tree.shift_siblings(node.parent_id, node.order)
        self.tree = tree.insert(node)

        applied = NodeCreated(event.mind_map_id, node, shifted=shifted, origin=event.origin)
        self._emit(applied, False)
        return applied
