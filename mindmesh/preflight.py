"""Environment and dependency preflight checks.

Set MINDMESH_SKIP_PREFLIGHT=1 to bypass (useful for development).
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from typing import Optional

SKIP_ENV = "MINDMESH_SKIP_PREFLIGHT"


@dataclass(frozen=True)
class PreflightResult:
    ok: bool
    message: str


def _check_gui_deps() -> Optional[str]:
    """Return an error message if the GTK stack is missing."""
    try:
        import cairo  # type: ignore[import-not-found]  # noqa: F401
    except ImportError as exc:
        return (
            "Missing Python dependency 'pycairo'. "
            "Install it with pip (pycairo) and ensure cairo is available. "
            f"Underlying error: {exc}"
        )

    try:
        import gi  # type: ignore[import-not-found]

        gi.require_version("Gtk", "4.0")
        gi.require_version("Adw", "1")
        gi.require_version("Gdk", "4.0")
        from gi.repository import Gtk, Adw, Gdk  # type: ignore[import-not-found]  # noqa: F401
    except (ImportError, ValueError) as exc:
        return (
            "Missing GTK 4/libadwaita bindings. Install PyGObject together with "
            "the gtk4 and libadwaita system packages. "
            f"Underlying error: {exc}"
        )

    return None


def _check_network_deps() -> Optional[str]:
    """Return an error message if the server client libraries are missing."""
    for module, package in (("socketio", "python-socketio[client]"), ("httpx", "httpx")):
        try:
            __import__(module)
        except ImportError as exc:
            return f"Missing Python dependency '{package}'. Underlying error: {exc}"
    return None


def run_preflight(*, check_gui: bool = True, check_network: bool = True) -> PreflightResult:
    """Run checks and return a structured result."""
    if os.environ.get(SKIP_ENV) == "1":
        return PreflightResult(True, f"Preflight skipped via {SKIP_ENV}=1")

    if check_network:
        dep_error = _check_network_deps()
        if dep_error:
            return PreflightResult(False, dep_error)

    if check_gui:
        dep_error = _check_gui_deps()
        if dep_error:
            return PreflightResult(False, dep_error)

    return PreflightResult(True, "Preflight OK")


def run_preflight_or_die(*, check_gui: bool = True, check_network: bool = True) -> None:
    result = run_preflight(check_gui=check_gui, check_network=check_network)
    if result.ok:
        return

    sys.stderr.write("\nMindMesh preflight check failed:\n")
    sys.stderr.write(result.message)
    sys.stderr.write("\n\n")
    sys.stderr.write(
        "Suggested setup:\n"
        "  install gtk4, libadwaita and gobject-introspection from your distribution\n"
        "  pip install -e '.[gui]'\n\n"
    )
    raise SystemExit(1)
