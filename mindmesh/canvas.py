"""Canvas widget for rendering and editing a live mind map."""

import math
from typing import Optional, Tuple

import gi

gi.require_version("Gtk", "4.0")
gi.require_version("Gdk", "4.0")
from gi.repository import Gtk, Gdk, GLib

import cairo

from mindmesh.events import MutationEvent
from mindmesh.interaction import Key
from mindmesh.layout import compute_connectors, node_at, node_rects
from mindmesh.session import MindMapSession
from mindmesh.tree import Node
from mindmesh.viewport import PanGesture

# Keys that act on the mind map outside of text editing.
KEY_INTENTS = {
    Gdk.KEY_Tab: Key.CREATE_CHILD,
    Gdk.KEY_Return: Key.CREATE_SIBLING,
    Gdk.KEY_KP_Enter: Key.CREATE_SIBLING,
    Gdk.KEY_Delete: Key.DELETE,
    Gdk.KEY_Up: Key.UP,
    Gdk.KEY_Down: Key.DOWN,
    Gdk.KEY_Left: Key.LEFT,
    Gdk.KEY_Right: Key.RIGHT,
}


class MindMapCanvas(Gtk.DrawingArea):
    """Draws the session's tree and feeds pointer and key input back into it."""

    COLORS = {
        'bg_primary': (0.039, 0.039, 0.039),      # #0a0a0a
        'surface': (0.118, 0.118, 0.118),         # #1e1e1e
        'surface_hover': (0.145, 0.145, 0.145),   # #252525
        'border_subtle': (0.165, 0.165, 0.165),   # #2a2a2a
        'border_active': (1.0, 0.176, 0.176),     # #ff2d2d
        'text_primary': (0.878, 0.878, 0.878),    # #e0e0e0
        'text_muted': (0.333, 0.333, 0.333),      # #555555
        'accent_primary': (1.0, 0.176, 0.176),    # #ff2d2d
        'accent_secondary': (0.8, 0.0, 0.0),      # #cc0000
        'grid_dots': (0.12, 0.12, 0.12),
        'root_node': (0.15, 0.05, 0.05),
        'root_border': (0.6, 0.1, 0.1),
    }

    PLACEHOLDER = "Type something"

    # Node sizes in canvas units
    NODE_PADDING = 16
    NODE_MIN_WIDTH = 120
    NODE_MAX_WIDTH = 300
    ROOT_NODE_MIN_WIDTH = 160
    NODE_HEIGHT = 40
    ROOT_NODE_HEIGHT = 56

    def __init__(self):
        super().__init__()

        self.session: Optional[MindMapSession] = None
        self.pan: Optional[PanGesture] = None
        self._centered = False

        self.last_mouse_x = 0.0
        self.last_mouse_y = 0.0
        self._drag_origin = (0.0, 0.0)
        self.hovered_id: Optional[str] = None

        # Text editing state; the tree holds the committed text.
        self.edit_id: Optional[str] = None
        self.edit_text: str = ""
        self.edit_cursor_pos: int = 0
        self.cursor_visible: bool = True
        self.cursor_blink_id: Optional[int] = None

        self.show_grid = True
        self.grid_size = 30

        self.set_draw_func(self._on_draw)
        self.set_focusable(True)
        self.set_can_focus(True)
        self._setup_event_controllers()
        self.set_hexpand(True)
        self.set_vexpand(True)

    def _setup_event_controllers(self):
        click_ctrl = Gtk.GestureClick()
        click_ctrl.set_button(1)
        click_ctrl.connect("pressed", self._on_click)
        self.add_controller(click_ctrl)

        motion_ctrl = Gtk.EventControllerMotion()
        motion_ctrl.connect("motion", self._on_motion)
        motion_ctrl.connect("leave", self._on_leave)
        self.add_controller(motion_ctrl)

        scroll_ctrl = Gtk.EventControllerScroll.new(
            Gtk.EventControllerScrollFlags.VERTICAL
        )
        scroll_ctrl.connect("scroll", self._on_scroll)
        self.add_controller(scroll_ctrl)

        key_ctrl = Gtk.EventControllerKey()
        key_ctrl.connect("key-pressed", self._on_key_pressed)
        self.add_controller(key_ctrl)

        focus_ctrl = Gtk.EventControllerFocus()
        focus_ctrl.connect("leave", self._on_focus_leave)
        self.add_controller(focus_ctrl)

        drag_ctrl = Gtk.GestureDrag()
        drag_ctrl.set_button(1)
        drag_ctrl.connect("drag-begin", self._on_drag_begin)
        drag_ctrl.connect("drag-update", self._on_drag_update)
        drag_ctrl.connect("drag-end", self._on_drag_end)
        self.add_controller(drag_ctrl)

    # ==================== Session ====================

    def set_session(self, session: MindMapSession):
        """Show ``session``; its engine becomes the only writer from this widget."""
        self._stop_editing()
        self.session = session
        self.pan = PanGesture(session.viewport)
        self._centered = False
        session.on_changed = self._on_tree_changed
        session.selection.add_listener(self._on_selection_changed)
        self.queue_draw()

    def _on_tree_changed(self, _event: MutationEvent):
        tree = self.session.tree
        if self.edit_id is not None:
            node = tree.get(self.edit_id)
            if node is None:
                self._stop_editing()
            elif node.content != self.edit_text:
                # Someone else wrote this node; last write wins.
                self.edit_text = node.content
                self.edit_cursor_pos = min(self.edit_cursor_pos, len(self.edit_text))
        self._sync_edit_state()
        self.queue_draw()

    def _on_selection_changed(self, _active_id: Optional[str]):
        self._sync_edit_state()
        self.queue_draw()

    def _sync_edit_state(self):
        """Follow the selection into or out of editing mode."""
        editing_id = self.session.selection.editing_id
        if editing_id == self.edit_id:
            return
        if editing_id is None:
            self._stop_editing()
            return
        node = self.session.tree.get(editing_id)
        if node is not None:
            self._begin_buffer(node)

    # ==================== Measuring ====================

    def _calc_node_size(self, node: Node, text: str) -> Tuple[float, float]:
        is_root = node.is_root
        width = len(text or self.PLACEHOLDER) * (10 if is_root else 9) + self.NODE_PADDING * 2
        min_width = self.ROOT_NODE_MIN_WIDTH if is_root else self.NODE_MIN_WIDTH
        width = max(min_width, min(self.NODE_MAX_WIDTH, width))
        height = self.ROOT_NODE_HEIGHT if is_root else self.NODE_HEIGHT
        return width, height

    def _measure(self):
        """Mount every node's current size so connectors can attach to it."""
        anchors = self.session.anchors
        tree = self.session.tree
        for node in tree:
            text = self.edit_text if node.id == self.edit_id else node.content
            anchors.mount(node.id, *self._calc_node_size(node, text))
        anchors.prune(tree)

    def center_view(self):
        """Center the view on the root node."""
        if self.session is None:
            return
        root = self.session.tree.root
        if root is None:
            return
        size = self.session.anchors.size(root.id) or self._calc_node_size(root, root.content)
        self.session.viewport.center_on(
            root.position.x + size[0] / 2, root.position.y + size[1] / 2,
            self.get_width(), self.get_height(),
        )
        self.queue_draw()

    # ==================== Drawing ====================

    def _on_draw(self, area, cr, width, height):
        cr.save()
        cr.set_source_rgb(*self.COLORS['bg_primary'])
        cr.paint()

        if self.session is None:
            cr.restore()
            return

        self._measure()
        if not self._centered and width > 0:
            self._centered = True
            self.center_view()

        viewport = self.session.viewport
        if self.show_grid:
            self._draw_grid(cr, width, height)

        # Connectors are computed in screen space, behind the nodes.
        self._draw_connectors(cr)

        cr.translate(viewport.pan_x, viewport.pan_y)
        cr.scale(viewport.zoom, viewport.zoom)
        for node, x, y, w, h in node_rects(self.session.tree, self.session.anchors):
            self._draw_node(cr, node, x, y, w, h)

        cr.restore()

    def _draw_grid(self, cr, width: float, height: float):
        """Draw dot grid pattern."""
        viewport = self.session.viewport
        cr.save()
        cr.set_source_rgb(*self.COLORS['grid_dots'])

        effective_grid = self.grid_size * viewport.zoom
        x = viewport.pan_x % effective_grid
        while x < width:
            y = viewport.pan_y % effective_grid
            while y < height:
                cr.arc(x, y, 1.5, 0, 2 * math.pi)
                cr.fill()
                y += effective_grid
            x += effective_grid

        cr.restore()

    def _draw_connectors(self, cr):
        session = self.session
        zoom = session.viewport.zoom
        for connector in compute_connectors(session.tree, session.viewport, session.anchors):
            (sx, sy), (ex, ey) = connector.start, connector.end
            gradient = cairo.LinearGradient(sx, sy, ex, ey)
            gradient.add_color_stop_rgba(0, *self.COLORS['accent_primary'], 0.8)
            gradient.add_color_stop_rgba(1, *self.COLORS['accent_secondary'], 0.6)

            cr.set_source(gradient)
            cr.set_line_width(max(1.0, 2.0 * zoom))
            cr.set_line_cap(cairo.LINE_CAP_ROUND)
            cr.move_to(sx, sy)
            cr.curve_to(*connector.control1, *connector.control2, ex, ey)
            cr.stroke()

    def _draw_node(self, cr, node: Node, x: float, y: float, w: float, h: float):
        is_root = node.is_root
        is_active = node.id == self.session.selection.active_id
        is_editing = node.id == self.edit_id
        is_hovered = node.id == self.hovered_id

        cr.save()

        radius = 8 if is_root else 6
        self._draw_rounded_rect(cr, x, y, w, h, radius)
        if is_root:
            bg = self.COLORS['root_node']
        elif is_active or is_hovered:
            bg = self.COLORS['surface_hover']
        else:
            bg = self.COLORS['surface']
        cr.set_source_rgb(*bg)
        cr.fill_preserve()

        if is_active or is_editing:
            cr.set_source_rgb(*self.COLORS['border_active'])
            cr.set_line_width(2)
        elif is_root:
            cr.set_source_rgb(*self.COLORS['root_border'])
            cr.set_line_width(2)
        else:
            cr.set_source_rgb(*self.COLORS['border_subtle'])
            cr.set_line_width(1)
        cr.stroke()

        cr.select_font_face("JetBrains Mono", cairo.FONT_SLANT_NORMAL,
                            cairo.FONT_WEIGHT_BOLD if is_root else cairo.FONT_WEIGHT_NORMAL)
        cr.set_font_size(15 if is_root else 13)

        text = self.edit_text if is_editing else node.content
        text_x = x + self.NODE_PADDING
        text_y = y + h / 2
        if text:
            cr.set_source_rgb(*self.COLORS['text_primary'])
        else:
            text = self.PLACEHOLDER
            cr.set_source_rgb(*self.COLORS['text_muted'])

        shown = text
        max_width = w - self.NODE_PADDING * 2
        extents = cr.text_extents(shown)
        if not is_editing:
            while extents.width > max_width and len(shown) > 3:
                shown = shown[:-4] + "..."
                extents = cr.text_extents(shown)
        cr.move_to(text_x, text_y + 5)
        cr.show_text(shown)

        if is_editing and self.cursor_visible:
            before = self.edit_text[:self.edit_cursor_pos]
            cursor_x = text_x + (cr.text_extents(before).x_advance if before else 0)
            cr.set_source_rgb(*self.COLORS['accent_primary'])
            cr.set_line_width(2)
            cr.move_to(cursor_x, text_y - 9)
            cr.line_to(cursor_x, text_y + 9)
            cr.stroke()

        cr.restore()

    def _draw_rounded_rect(self, cr, x: float, y: float, w: float, h: float, radius: float):
        """Draw a rounded rectangle path."""
        cr.new_path()
        cr.arc(x + w - radius, y + radius, radius, -math.pi / 2, 0)
        cr.arc(x + w - radius, y + h - radius, radius, 0, math.pi / 2)
        cr.arc(x + radius, y + h - radius, radius, math.pi / 2, math.pi)
        cr.arc(x + radius, y + radius, radius, math.pi, 3 * math.pi / 2)
        cr.close_path()

    # ==================== Pointer ====================

    def _node_at(self, x: float, y: float) -> Optional[str]:
        session = self.session
        return node_at(session.tree, session.viewport, session.anchors, x, y)

    def _on_click(self, gesture, n_press, x, y):
        self.grab_focus()
        if self.session is None:
            return

        clicked = self._node_at(x, y)
        if self.edit_id is not None and clicked != self.edit_id:
            self.finish_edit()

        selection = self.session.selection
        if clicked is None:
            selection.clear()
        elif n_press == 2:
            self.start_editing(clicked)
        else:
            selection.activate(clicked)

    def _on_motion(self, controller, x, y):
        self.last_mouse_x = x
        self.last_mouse_y = y
        if self.session is None:
            return
        hovered = self._node_at(x, y)
        if hovered != self.hovered_id:
            self.hovered_id = hovered
            self.queue_draw()

    def _on_leave(self, controller):
        if self.hovered_id:
            self.hovered_id = None
            self.queue_draw()

    def _on_scroll(self, controller, dx, dy):
        """Ctrl+scroll zooms towards the pointer."""
        state = controller.get_current_event_state()
        if self.session is None or not state & Gdk.ModifierType.CONTROL_MASK:
            return False
        anchor = (self.last_mouse_x, self.last_mouse_y)
        viewport = self.session.viewport
        changed = viewport.zoom_in(anchor) if dy < 0 else viewport.zoom_out(anchor)
        if changed:
            self.queue_draw()
        return True

    def _on_drag_begin(self, gesture, start_x, start_y):
        if self.pan is None:
            return
        self._drag_origin = (start_x, start_y)
        self.pan.press(start_x, start_y, self._node_at(start_x, start_y) is not None)

    def _on_drag_update(self, gesture, offset_x, offset_y):
        if self.pan is None:
            return
        ox, oy = self._drag_origin
        if self.pan.motion(ox + offset_x, oy + offset_y):
            self.queue_draw()

    def _on_drag_end(self, gesture, offset_x, offset_y):
        if self.pan is not None:
            self.pan.release()

    def _on_focus_leave(self, controller):
        if self.edit_id is not None:
            self.finish_edit()

    # ==================== Keyboard ====================

    def _on_key_pressed(self, controller, keyval, keycode, state):
        if self.session is None:
            return False
        ctrl = state & Gdk.ModifierType.CONTROL_MASK

        if self.edit_id is not None:
            return self._handle_edit_key(keyval, state)

        if ctrl:
            return self._handle_zoom_key(keyval)

        key = KEY_INTENTS.get(keyval)
        if key is not None:
            return self.session.keyboard.handle_key(key)

        active = self.session.selection.active_id
        if keyval == Gdk.KEY_F2 and active:
            self.start_editing(active)
            return True

        # Typing on an active node starts editing it
        uc = Gdk.keyval_to_unicode(keyval)
        if uc and chr(uc).isprintable() and active:
            if self.start_editing(active):
                self._set_text(chr(uc), 1)
            return True
        return False

    def _handle_zoom_key(self, keyval) -> bool:
        viewport = self.session.viewport
        center = (self.get_width() / 2, self.get_height() / 2)
        if keyval in (Gdk.KEY_plus, Gdk.KEY_equal):
            viewport.zoom_in(center)
        elif keyval == Gdk.KEY_minus:
            viewport.zoom_out(center)
        elif keyval == Gdk.KEY_0:
            viewport.zoom_to_100(center)
        else:
            return False
        self.queue_draw()
        return True

    def _handle_edit_key(self, keyval, state) -> bool:
        text, pos = self.edit_text, self.edit_cursor_pos

        if keyval == Gdk.KEY_Escape:
            self.finish_edit()
            return True

        if keyval in (Gdk.KEY_Tab, Gdk.KEY_Return, Gdk.KEY_KP_Enter):
            # An empty node is not a place to branch from
            if not text.strip():
                return True
            self.finish_edit()
            return self.session.keyboard.handle_key(KEY_INTENTS[keyval])

        if keyval == Gdk.KEY_BackSpace:
            if pos > 0:
                self._set_text(text[:pos - 1] + text[pos:], pos - 1)
        elif keyval == Gdk.KEY_Delete:
            if pos < len(text):
                self._set_text(text[:pos] + text[pos + 1:], pos)
        elif keyval == Gdk.KEY_Left:
            self.edit_cursor_pos = max(0, pos - 1)
        elif keyval == Gdk.KEY_Right:
            self.edit_cursor_pos = min(len(text), pos + 1)
        elif keyval == Gdk.KEY_Home:
            self.edit_cursor_pos = 0
        elif keyval == Gdk.KEY_End:
            self.edit_cursor_pos = len(text)
        else:
            uc = Gdk.keyval_to_unicode(keyval)
            if not uc or not chr(uc).isprintable() or state & Gdk.ModifierType.CONTROL_MASK:
                return False
            self._set_text(text[:pos] + chr(uc) + text[pos:], pos + 1)

        self.cursor_visible = True
        self.queue_draw()
        return True

    # ==================== Editing ====================

    def start_editing(self, node_id: str) -> bool:
        """Enter editing mode on ``node_id``; refused in read-only sessions."""
        if self.session.read_only:
            return False
        selection = self.session.selection
        selection.activate(node_id)
        selection.begin_edit()
        self._sync_edit_state()
        self.queue_draw()
        return self.edit_id == node_id

    def finish_edit(self):
        """Leave editing mode; an emptied node is removed."""
        self._stop_editing()
        self.session.end_edit()
        self.queue_draw()

    def _set_text(self, text: str, cursor: int):
        self.edit_text = text
        self.edit_cursor_pos = cursor
        self.session.engine.edit_content(self.edit_id, text)

    def _begin_buffer(self, node: Node):
        self.edit_id = node.id
        self.edit_text = node.content
        self.edit_cursor_pos = len(self.edit_text)
        self.cursor_visible = True
        if self.cursor_blink_id:
            GLib.source_remove(self.cursor_blink_id)
        self.cursor_blink_id = GLib.timeout_add(530, self._blink_cursor)
        self.grab_focus()

    def _blink_cursor(self) -> bool:
        if self.edit_id is not None:
            self.cursor_visible = not self.cursor_visible
            self.queue_draw()
            return True
        self.cursor_blink_id = None
        return False

    def _stop_editing(self):
        self.edit_id = None
        self.edit_text = ""
        self.edit_cursor_pos = 0
        if self.cursor_blink_id:
            GLib.source_remove(self.cursor_blink_id)
            self.cursor_blink_id = None
