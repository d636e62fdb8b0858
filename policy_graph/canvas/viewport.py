"""
Viewport engine: pan offset and zoom factor of the canvas.

Mapping between screen (pointer) and world (graph) coordinates::

    world = (screen - canvas_origin - pan) / zoom
    screen = world * zoom + pan + canvas_origin

Zoom scales about the world origin; pan is not corrected to keep the
point under the cursor fixed.
"""

from __future__ import annotations

import logging

from policy_graph.domain.models import Point

logger = logging.getLogger(__name__)

ZOOM_MIN = 0.1
ZOOM_MAX = 3.0
ZOOM_STEP = 0.1


class Viewport:
    """Ephemeral view state; never persisted with the graph."""

    def __init__(
        self,
        min_zoom: float = ZOOM_MIN,
        max_zoom: float = ZOOM_MAX,
        zoom_step: float = ZOOM_STEP,
    ) -> None:
        if min_zoom <= 0.0 or min_zoom >= max_zoom:
            raise ValueError("zoom bounds must satisfy 0 < min_zoom < max_zoom")

        self.min_zoom = float(min_zoom)
        self.max_zoom = float(max_zoom)
        self.zoom_step = float(zoom_step)

        self.pan_x: float = 0.0
        self.pan_y: float = 0.0
        self.zoom: float = 1.0

        # Canvas element top-left in screen space, and its size.
        self.origin_x: float = 0.0
        self.origin_y: float = 0.0
        self.width: float = 800.0
        self.height: float = 600.0

    # ---------- canvas element ----------
    def set_canvas_rect(
        self,
        origin_x: float,
        origin_y: float,
        width: float | None = None,
        height: float | None = None,
    ) -> None:
        self.origin_x = float(origin_x)
        self.origin_y = float(origin_y)
        if width is not None:
            if width <= 0:
                raise ValueError("canvas width must be positive")
            self.width = float(width)
        if height is not None:
            if height <= 0:
                raise ValueError("canvas height must be positive")
            self.height = float(height)

    # ---------- coordinate mapping ----------
    def screen_to_world(self, screen_x: float, screen_y: float) -> Point:
        return Point(
            (screen_x - self.origin_x - self.pan_x) / self.zoom,
            (screen_y - self.origin_y - self.pan_y) / self.zoom,
        )

    def world_to_screen(self, world_x: float, world_y: float) -> Point:
        return Point(
            world_x * self.zoom + self.pan_x + self.origin_x,
            world_y * self.zoom + self.pan_y + self.origin_y,
        )

    def visible_center(self) -> Point:
        """World coordinates of the centre of the canvas element."""
        return Point(
            (-self.pan_x + self.width / 2) / self.zoom,
            (-self.pan_y + self.height / 2) / self.zoom,
        )

    # ---------- pan / zoom ----------
    def pan(self, dx: float, dy: float) -> None:
        """Shift the view by a screen-space delta. Unclamped."""
        self.pan_x += dx
        self.pan_y += dy

    def zoom_by(self, delta: float) -> float:
        """Add ``delta`` to the zoom factor, clamped to the bounds. Returns the new zoom."""
        self.zoom = min(max(self.zoom + delta, self.min_zoom), self.max_zoom)
        logger.debug("Zoom set to %.3f", self.zoom)
        return self.zoom

    def zoom_in(self) -> float:
        return self.zoom_by(self.zoom_step)

    def zoom_out(self) -> float:
        return self.zoom_by(-self.zoom_step)

    def reset(self) -> None:
        self.pan_x = 0.0
        self.pan_y = 0.0
        self.zoom = 1.0

    def snapshot(self) -> dict[str, float]:
        return {"panX": self.pan_x, "panY": self.pan_y, "zoom": self.zoom}
