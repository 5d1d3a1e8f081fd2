"""Main MindMesh application."""

import argparse
import logging
import sys
from typing import List, Optional

import gi
gi.require_version("Gtk", "4.0")
gi.require_version("Adw", "1")
from gi.repository import Gtk, Gio, Adw

from mindmesh import __version__, __app_id__
from mindmesh.canvas import MindMapCanvas
from mindmesh.channel import SocketIOChannel
from mindmesh.config import Settings, load_settings
from mindmesh.errors import MapNotFound, MindMeshError
from mindmesh.mainloop import GLibScheduler
from mindmesh.session import MindMapSession
from mindmesh.store import HttpStore, MindMapStore, SQLiteStore
from mindmesh.sync import SyncState

logger = logging.getLogger(__name__)

STATE_LABELS = {
    SyncState.DISCONNECTED: "Offline",
    SyncState.CONNECTING: "Connecting…",
    SyncState.CONNECTED: "Connected",
    SyncState.JOINED: "Live",
}


class MindMeshWindow(Adw.ApplicationWindow):
    """Main application window: one mind map per window."""

    def __init__(self, app: "MindMeshApp", map_id: str):
        super().__init__(application=app)
        self.app = app
        self.map_id = map_id
        self.session: Optional[MindMapSession] = None

        self.set_title("MindMesh")
        self.set_default_size(1400, 900)

        self._build_ui()
        self._setup_shortcuts()
        self.connect("close-request", self._on_close_request)

        self._open_map()

    def _build_ui(self):
        main_box = Gtk.Box(orientation=Gtk.Orientation.VERTICAL)
        main_box.append(self._build_header())

        self.canvas = MindMapCanvas()
        self.stack = Gtk.Stack()
        self.stack.set_vexpand(True)
        self.stack.add_named(self.canvas, "canvas")

        self.status_page = Adw.StatusPage()
        self.status_page.set_icon_name("dialog-warning-symbolic")
        retry_btn = Gtk.Button(label="Try Again")
        retry_btn.set_halign(Gtk.Align.CENTER)
        retry_btn.add_css_class("pill")
        retry_btn.connect("clicked", lambda b: self._open_map())
        self.status_page.set_child(retry_btn)
        self.stack.add_named(self.status_page, "status")

        # Wrap in toast overlay for in-app notifications
        self.toast_overlay = Adw.ToastOverlay()
        self.toast_overlay.set_child(self.stack)
        main_box.append(self.toast_overlay)

        self.set_content(main_box)

    def _build_header(self) -> Adw.HeaderBar:
        header = Adw.HeaderBar()
        header.add_css_class("flat")

        menu = Gio.Menu()
        view_section = Gio.Menu()
        view_section.append("Zoom In", "win.zoom-in")
        view_section.append("Zoom Out", "win.zoom-out")
        view_section.append("Zoom to 100%", "win.zoom-100")
        view_section.append("Center on Root", "win.center")
        menu.append_section(None, view_section)
        map_section = Gio.Menu()
        map_section.append("Reload Map", "win.reload")
        map_section.append("About MindMesh", "win.show-about")
        menu.append_section(None, map_section)

        menu_btn = Gtk.MenuButton()
        menu_btn.set_icon_name("open-menu-symbolic")
        menu_btn.set_tooltip_text("Menu")
        popover = Gtk.PopoverMenu()
        popover.set_menu_model(menu)
        menu_btn.set_popover(popover)
        header.pack_start(menu_btn)

        self.title_widget = Adw.WindowTitle(title="MindMesh", subtitle="")
        header.set_title_widget(self.title_widget)

        self.status_label = Gtk.Label(label=STATE_LABELS[SyncState.DISCONNECTED])
        self.status_label.add_css_class("dim-label")
        header.pack_end(self.status_label)

        self.read_only_label = Gtk.Label(label="Read-only")
        self.read_only_label.add_css_class("warning")
        self.read_only_label.set_visible(False)
        header.pack_end(self.read_only_label)

        self.saving_spinner = Gtk.Spinner()
        self.saving_spinner.set_tooltip_text("Saving")
        header.pack_end(self.saving_spinner)

        return header

    def _setup_shortcuts(self):
        actions = [
            ("zoom-in", self._zoom_in, ["<Control>plus", "<Control>equal"]),
            ("zoom-out", self._zoom_out, ["<Control>minus"]),
            ("zoom-100", self._zoom_100, ["<Control>0"]),
            ("center", self._center, ["<Control>Home"]),
            ("reload", self._reload, ["<Control>r"]),
            ("show-about", self._show_about, []),
            ("quit", lambda: self.close(), ["<Control>q"]),
        ]
        for name, callback, accels in actions:
            action = Gio.SimpleAction.new(name, None)
            action.connect("activate", lambda a, p, cb=callback: cb())
            self.add_action(action)
            if accels:
                self.get_application().set_accels_for_action(f"win.{name}", accels)

    # ==================== Session ====================

    def _open_map(self):
        self.close_session()
        try:
            session = MindMapSession.open(
                self.map_id, self.app.store, self.app.scheduler,
                settings=self.app.settings, channel=self.app.channel,
            )
        except MapNotFound:
            self._show_status("Mind map not found",
                              f"There is no mind map with id {self.map_id}.")
            return
        except MindMeshError as exc:
            logger.error("Loading mind map %s failed: %s", self.map_id, exc)
            self._show_status("Could not load the mind map", str(exc))
            return

        self.session = session
        session.on_notice = self._show_toast
        session.saver.on_saving = self._on_saving
        if session.sync is not None:
            session.sync.on_state_changed = self._on_sync_state
        self.canvas.set_session(session)

        self.title_widget.set_title(session.record.name or "Untitled Map")
        self.title_widget.set_subtitle(session.record.description or "")
        self.read_only_label.set_visible(session.read_only)
        self.stack.set_visible_child_name("canvas")

        session.start()
        if session.sync is not None:
            self._on_sync_state(session.sync.state)
        self.canvas.grab_focus()

    def close_session(self):
        if self.session is not None:
            self.session.close()
            self.session = None

    def _show_status(self, title: str, description: str):
        self.status_page.set_title(title)
        self.status_page.set_description(description)
        self.stack.set_visible_child_name("status")

    def _on_sync_state(self, state: SyncState):
        self.status_label.set_label(STATE_LABELS[state])

    def _on_saving(self, saving: bool):
        if saving:
            self.saving_spinner.start()
        else:
            self.saving_spinner.stop()

    def _on_close_request(self, window) -> bool:
        self.close_session()
        return False

    # ==================== Actions ====================

    def _zoom(self, change):
        if self.session is None:
            return
        center = (self.canvas.get_width() / 2, self.canvas.get_height() / 2)
        if change(self.session.viewport, center):
            self.canvas.queue_draw()

    def _zoom_in(self):
        self._zoom(lambda v, c: v.zoom_in(c))

    def _zoom_out(self):
        self._zoom(lambda v, c: v.zoom_out(c))

    def _zoom_100(self):
        self._zoom(lambda v, c: v.zoom_to_100(c))

    def _center(self):
        self.canvas.center_view()

    def _reload(self):
        """Throw away local divergence and reload the stored tree."""
        if self.session is None:
            self._open_map()
            return
        try:
            self.session.reload()
        except MindMeshError as exc:
            self._show_toast(f"Reload failed: {exc}")
            return
        self.canvas.queue_draw()
        self._show_toast("Mind map reloaded")

    def _show_about(self):
        about = Adw.AboutWindow(
            transient_for=self,
            application_name="MindMesh",
            application_icon="applications-graphics",
            developer_name="MindMesh Project",
            version=__version__,
            license_type=Gtk.License.MIT_X11,
            comments="Collaborative mind maps",
        )
        about.present()

    def _show_toast(self, message: str):
        """Show a toast notification."""
        toast = Adw.Toast(title=message)
        toast.set_timeout(3)
        self.toast_overlay.add_toast(toast)


class MindMeshApp(Adw.Application):
    """Main application class."""

    def __init__(self, settings: Settings, map_id: Optional[str]):
        super().__init__(
            application_id=__app_id__,
            flags=Gio.ApplicationFlags.NON_UNIQUE,
        )
        self.settings = settings
        self.map_id = map_id
        self.scheduler = GLibScheduler()
        self.store: Optional[MindMapStore] = None
        self.channel: Optional[SocketIOChannel] = None
        self.window: Optional[MindMeshWindow] = None

    def do_startup(self):
        Adw.Application.do_startup(self)

        if self.settings.offline:
            store = SQLiteStore()
            if self.map_id is None:
                maps = store.list_maps()
                self.map_id = maps[0].id if maps else store.create_map().id
            self.store = store
        else:
            self.store = HttpStore(self.settings.server_url, credential=self.settings.auth_token,
                                   timeout=self.settings.request_timeout)
            self.channel = SocketIOChannel(self.settings.server_url,
                                           connect_timeout=self.settings.request_timeout)

        style_manager = Adw.StyleManager.get_default()
        style_manager.set_color_scheme(Adw.ColorScheme.FORCE_DARK)

    def do_activate(self):
        if not self.window:
            self.window = MindMeshWindow(self, self.map_id)
        self.window.present()

    def do_shutdown(self):
        if self.window:
            self.window.close_session()
        if self.channel:
            self.channel.disconnect()
        if self.store:
            self.store.close()
        Adw.Application.do_shutdown(self)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mindmesh", description="Collaborative mind maps")
    parser.add_argument("map_id", nargs="?", help="id of the mind map to open")
    parser.add_argument("--offline", action="store_true",
                        help="work on the local database, without a server")
    parser.add_argument("--server", help="server URL (overrides the config file)")
    parser.add_argument("--token", help="bearer credential for the server")
    parser.add_argument("--verbose", "-v", action="store_true", help="debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def settings_from_args(args: argparse.Namespace, settings: Optional[Settings] = None) -> Settings:
    """Layer command line options over the loaded settings."""
    settings = settings or load_settings()
    if args.offline:
        settings.offline = True
    if args.server:
        settings.server_url = args.server
    if args.token:
        settings.auth_token = args.token
    return settings


def main(argv: Optional[List[str]] = None) -> int:
    """Application entry point."""
    argv = sys.argv if argv is None else argv
    parser = build_parser()
    args = parser.parse_args(argv[1:])
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = settings_from_args(args)
    if not settings.offline and not args.map_id:
        parser.error("a mind map id is required unless --offline is given")

    app = MindMeshApp(settings, args.map_id)
    return app.run(argv[:1])


if __name__ == "__main__":
    sys.exit(main())
