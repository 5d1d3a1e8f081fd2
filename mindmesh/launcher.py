"""MindMesh launcher.

Checks that pycairo, PyGObject with Gtk 4 and libadwaita, python-socketio
and httpx import before loading the application; a missing one is reported
with setup hints instead of a traceback. Set MINDMESH_SKIP_PREFLIGHT=1 to
skip the checks.
"""

from __future__ import annotations

import sys


def main() -> int:
    from mindmesh.preflight import run_preflight_or_die

    run_preflight_or_die(check_gui=True, check_network=True)

    from mindmesh.app import main as app_main

    return int(app_main(sys.argv))


if __name__ == "__main__":
    raise SystemExit(main())
