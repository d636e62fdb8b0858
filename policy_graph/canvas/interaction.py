"""
Interaction state machine for the canvas.

Consumes a single stream of pointer-down / pointer-move / pointer-up
events (screen coordinates) plus wheel events, and drives node dragging,
canvas panning and connection drawing. Exactly one state is active at a
time:

    Idle ──down on output port──▶ DrawingConnection ──up──▶ Idle (connect attempt)
    Idle ──down on node body────▶ DraggingNode ───────up──▶ Idle
    Idle ──down on empty canvas─▶ Panning ────────────up──▶ Idle

Wheel events bypass the state machine: with a modifier they zoom,
otherwise they pan.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from policy_graph.canvas.viewport import Viewport
from policy_graph.core.errors import (
    CycleDetectedError,
    NotFoundError,
    PolicyGraphError,
    TypeMismatchError,
)
from policy_graph.core.notifications import NotificationSink, notify
from policy_graph.domain.enums import PortDirection
from policy_graph.domain.models import Point, PortRef
from policy_graph.graph.layout import NodeHit, PortHit, hit_test, port_anchor
from policy_graph.graph.store import GraphStore

logger = logging.getLogger(__name__)

WHEEL_ZOOM_SENSITIVITY = 0.001


class InteractionMode(str, Enum):
    IDLE = "idle"
    PANNING = "panning"
    DRAGGING_NODE = "dragging_node"
    DRAWING_CONNECTION = "drawing_connection"


@dataclass(frozen=True)
class Idle:
    mode = InteractionMode.IDLE


@dataclass(frozen=True)
class Panning:
    last_screen: Point
    mode = InteractionMode.PANNING


@dataclass(frozen=True)
class DraggingNode:
    node_id: str
    # pointer world position minus node position at grab time
    grab_offset: Point
    mode = InteractionMode.DRAGGING_NODE


@dataclass(frozen=True)
class DrawingConnection:
    source: PortRef
    cursor: Point
    mode = InteractionMode.DRAWING_CONNECTION


InteractionState = Idle | Panning | DraggingNode | DrawingConnection

IDLE = Idle()


@dataclass(frozen=True)
class PointerEvent:
    screen_x: float
    screen_y: float

    @property
    def screen(self) -> Point:
        return Point(self.screen_x, self.screen_y)


@dataclass(frozen=True)
class WheelEvent:
    delta_x: float
    delta_y: float
    # ctrl / meta held
    modifier: bool = False


class InteractionStateMachine:
    """Maps pointer input onto Graph Store and Viewport mutations."""

    def __init__(
        self,
        store: GraphStore,
        viewport: Viewport,
        *,
        wheel_zoom_sensitivity: float = WHEEL_ZOOM_SENSITIVITY,
        notifier: NotificationSink | None = None,
    ) -> None:
        self.store = store
        self.viewport = viewport
        self.wheel_zoom_sensitivity = wheel_zoom_sensitivity
        self.notifier = notifier
        self._state: InteractionState = IDLE

    @property
    def state(self) -> InteractionState:
        return self._state

    @property
    def mode(self) -> InteractionMode:
        return self._state.mode

    def reset(self) -> None:
        """Abandon any gesture in progress."""
        self._state = IDLE

    # ------------------------------------------------------------------
    # Pointer events
    # ------------------------------------------------------------------

    def pointer_down(self, event: PointerEvent) -> InteractionState:
        if not isinstance(self._state, Idle):
            logger.debug("pointer_down while %s; abandoning gesture", self.mode.value)
            self._state = IDLE

        world = self.viewport.screen_to_world(event.screen_x, event.screen_y)
        target = hit_test(self.store, world)

        if isinstance(target, PortHit):
            if target.direction == PortDirection.OUTPUT:
                self._state = DrawingConnection(
                    source=PortRef(node_id=target.node_id, port_index=target.index),
                    cursor=world,
                )
            # Pressing an input port starts nothing
        elif isinstance(target, NodeHit):
            node = self.store.get_node(target.node_id)
            self._state = DraggingNode(
                node_id=node.id, grab_offset=Point(world.x - node.x, world.y - node.y)
            )
        else:
            self._state = Panning(last_screen=event.screen)

        return self._state

    def pointer_move(self, event: PointerEvent) -> InteractionState:
        state = self._state

        if isinstance(state, DrawingConnection):
            world = self.viewport.screen_to_world(event.screen_x, event.screen_y)
            self._state = DrawingConnection(source=state.source, cursor=world)

        elif isinstance(state, DraggingNode):
            world = self.viewport.screen_to_world(event.screen_x, event.screen_y)
            try:
                self.store.move_node(
                    state.node_id,
                    Point(world.x - state.grab_offset.x, world.y - state.grab_offset.y),
                )
            except NotFoundError:
                # Node deleted mid-drag
                self._state = IDLE

        elif isinstance(state, Panning):
            self.viewport.pan(
                event.screen_x - state.last_screen.x, event.screen_y - state.last_screen.y
            )
            self._state = Panning(last_screen=event.screen)

        return self._state

    def pointer_up(self, event: PointerEvent) -> InteractionState:
        state = self._state
        self._state = IDLE

        if isinstance(state, DrawingConnection):
            world = self.viewport.screen_to_world(event.screen_x, event.screen_y)
            self._finish_connection(state.source, world)

        return self._state

    def wheel(self, event: WheelEvent) -> None:
        if event.modifier:
            self.viewport.zoom_by(-event.delta_y * self.wheel_zoom_sensitivity)
        else:
            self.viewport.pan(-event.delta_x, -event.delta_y)

    # ------------------------------------------------------------------
    # Rendering helpers
    # ------------------------------------------------------------------

    def connection_preview(self) -> tuple[Point, Point] | None:
        """World-space segment from the source port to the cursor while drawing."""
        state = self._state
        if not isinstance(state, DrawingConnection):
            return None
        try:
            source = self.store.get_node(state.source.node_id)
        except NotFoundError:
            return None
        start = port_anchor(source, PortDirection.OUTPUT, state.source.port_index)
        return start, state.cursor

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _finish_connection(self, source: PortRef, world: Point) -> str | None:
        target = hit_test(self.store, world)
        if not isinstance(target, PortHit) or target.direction != PortDirection.INPUT:
            logger.debug("Connection from %s dropped outside an input port", source.node_id)
            return None

        try:
            return self.store.connect(
                source, PortRef(node_id=target.node_id, port_index=target.index)
            )
        except (TypeMismatchError, CycleDetectedError) as e:
            notify("connection_rejected", e.message, details=e.details, sink=self.notifier)
        except PolicyGraphError as e:
            logger.debug("Connection discarded: %s", e.message)
        return None
