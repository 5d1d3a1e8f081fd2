"""Pan/zoom transform for the canvas.

Screen position of a canvas point is ``point * zoom + pan``. View state is
per client; it is never saved or broadcast.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from mindmesh.config import Settings

Point = Tuple[float, float]


@dataclass
class Viewport:
    zoom: float = 1.0
    pan_x: float = 0.0
    pan_y: float = 0.0
    zoom_min: float = 0.5
    zoom_max: float = 2.0
    zoom_step: float = 0.1

    @classmethod
    def from_settings(cls, settings: Settings) -> "Viewport":
        return cls(
            zoom_min=settings.zoom_min,
            zoom_max=settings.zoom_max,
            zoom_step=settings.zoom_step,
        )

    def to_screen(self, x: float, y: float) -> Point:
        return (x * self.zoom + self.pan_x, y * self.zoom + self.pan_y)

    def to_canvas(self, sx: float, sy: float) -> Point:
        return ((sx - self.pan_x) / self.zoom, (sy - self.pan_y) / self.zoom)

    def clamp_zoom(self, zoom: float) -> float:
        return max(self.zoom_min, min(self.zoom_max, zoom))

    def pan_by(self, dx: float, dy: float):
        self.pan_x += dx
        self.pan_y += dy

    def set_zoom(self, zoom: float, anchor: Optional[Point] = None) -> bool:
        """Set the zoom level, keeping the screen point ``anchor`` fixed.

        Returns whether the zoom actually changed.
        """
        new_zoom = round(self.clamp_zoom(zoom), 6)
        if new_zoom == self.zoom:
            return False
        if anchor is not None:
            ax, ay = anchor
            ratio = new_zoom / self.zoom
            self.pan_x = ax - (ax - self.pan_x) * ratio
            self.pan_y = ay - (ay - self.pan_y) * ratio
        self.zoom = new_zoom
        return True

    def zoom_in(self, anchor: Optional[Point] = None) -> bool:
        return self.set_zoom(self.zoom + self.zoom_step, anchor)

    def zoom_out(self, anchor: Optional[Point] = None) -> bool:
        return self.set_zoom(self.zoom - self.zoom_step, anchor)

    def zoom_to_100(self, anchor: Optional[Point] = None) -> bool:
        return self.set_zoom(1.0, anchor)

    def center_on(self, x: float, y: float, width: float, height: float):
        """Pan so the canvas point (x, y) sits in the middle of a width x height view."""
        self.pan_x = width / 2 - x * self.zoom
        self.pan_y = height / 2 - y * self.zoom


class PanGesture:
    """Background drag that pans the viewport.

    A drag only starts when the pointer went down on the background, so a
    press on a node is never taken for a canvas drag.
    """

    def __init__(self, viewport: Viewport):
        self.viewport = viewport
        self.active = False
        self._last: Point = (0.0, 0.0)

    def press(self, x: float, y: float, on_node: bool) -> bool:
        self.active = not on_node
        self._last = (x, y)
        return self.active

    def motion(self, x: float, y: float) -> bool:
        if not self.active:
            return False
        lx, ly = self._last
        self.viewport.pan_by(x - lx, y - ly)
        self._last = (x, y)
        return True

    def release(self):
        self.active = False
