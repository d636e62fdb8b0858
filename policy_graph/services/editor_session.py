"""
Editor Session

Owns one editing session: the Type Catalog, the Graph Store, the Viewport
and the Interaction State Machine, plus the compiled rule tree that is
kept current on every graph change.

This is the boundary where domain errors stop. Store operations raise;
the session turns every PolicyGraphError into a notification and leaves
the graph as it was, so no editing action can end the session.
"""

from __future__ import annotations

import copy
import logging
import random
from typing import Any

from policy_graph.canvas.interaction import (
    InteractionState,
    InteractionStateMachine,
    PointerEvent,
    WheelEvent,
)
from policy_graph.canvas.viewport import Viewport
from policy_graph.compiler.canonicalizer import rule_tree_fingerprint, to_canonical_json_pretty
from policy_graph.compiler.compiler import compile_graph
from policy_graph.compiler.importer import ImportIssue, RuleTreeImporter
from policy_graph.core.config import Settings
from policy_graph.core.errors import PolicyGraphError
from policy_graph.core.notifications import Notification, notify
from policy_graph.domain.catalog import TypeCatalog, load_catalog
from policy_graph.domain.enums import NodeKind
from policy_graph.domain.models import Point
from policy_graph.graph.store import GraphChange, GraphStore, deserialize_graph, serialize_graph

logger = logging.getLogger(__name__)

# New palette nodes land this far up-left of the visible centre, plus jitter
PALETTE_OFFSET = Point(100.0, 50.0)
PALETTE_JITTER = 50.0


class EditorSession:
    """
    Explicit Graph + Viewport aggregate for one editor.

    Example:
        >>> session = EditorSession(TypeCatalog.default())
        >>> compare_id = session.add_node(NodeKind.COMPARE)
        >>> session.rule_tree
        {'status_rules': []}
    """

    def __init__(
        self,
        catalog: TypeCatalog | None = None,
        *,
        viewport: Viewport | None = None,
        wheel_zoom_sensitivity: float = 0.001,
        importer: RuleTreeImporter | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.catalog = catalog or TypeCatalog.default()
        self.viewport = viewport or Viewport()
        self.importer = importer or RuleTreeImporter(self.catalog)
        self.notifications: list[Notification] = []
        self._rng = rng or random.Random()

        self.store = GraphStore(self.catalog)
        self.interaction = InteractionStateMachine(
            self.store,
            self.viewport,
            wheel_zoom_sensitivity=wheel_zoom_sensitivity,
            notifier=self.notifications.append,
        )
        self.importer.notifier = self.notifications.append

        self._rule_tree: dict[str, list[Any]] = {"status_rules": []}
        self._suspended = False
        self._unsubscribe = self.store.subscribe(self._on_graph_change)
        self._recompile()

    @classmethod
    def from_settings(
        cls, settings: Settings, catalog: TypeCatalog | None = None
    ) -> EditorSession:
        """Build a session configured from application settings."""
        catalog = catalog or load_catalog(settings.variable_catalog_file)
        return cls(
            catalog,
            viewport=Viewport(
                min_zoom=settings.canvas_zoom_min,
                max_zoom=settings.canvas_zoom_max,
                zoom_step=settings.canvas_zoom_step,
            ),
            wheel_zoom_sensitivity=settings.canvas_wheel_zoom_sensitivity,
            importer=RuleTreeImporter(
                catalog,
                column_spacing=settings.import_column_spacing,
                row_spacing=settings.import_row_spacing,
                result_x=settings.import_result_x,
                allow_unknown_variables=settings.allow_unknown_variables_on_import,
            ),
        )

    # ------------------------------------------------------------------
    # Compiled output
    # ------------------------------------------------------------------

    @property
    def rule_tree(self) -> dict[str, list[Any]]:
        """The rule tree for the current graph. Returns a copy."""
        return copy.deepcopy(self._rule_tree)

    @property
    def fingerprint(self) -> str:
        return rule_tree_fingerprint(self._rule_tree)

    def export_rule_tree(self) -> str:
        """Canonical, pretty-printed rule tree JSON (the editor's JSON panel)."""
        return to_canonical_json_pretty(self._rule_tree)

    def export_graph(self) -> dict[str, list[dict[str, Any]]]:
        return serialize_graph(self.store)

    def drain_notifications(self) -> list[Notification]:
        """Return pending notifications and clear them."""
        pending = list(self.notifications)
        self.notifications.clear()
        return pending

    # ------------------------------------------------------------------
    # Palette and inspector actions
    # ------------------------------------------------------------------

    def add_node(self, kind: NodeKind | str, payload: dict[str, Any] | None = None) -> str | None:
        """
        Add a node of ``kind`` near the centre of the visible canvas.

        Returns:
            The new node id, or None if the payload was rejected
        """
        center = self.viewport.visible_center()
        position = Point(
            center.x - PALETTE_OFFSET.x + self._rng.random() * PALETTE_JITTER,
            center.y - PALETTE_OFFSET.y + self._rng.random() * PALETTE_JITTER,
        )
        return self._guarded("add_node", lambda: self.store.add_node(kind, position, payload))

    def delete_node(self, node_id: str) -> bool:
        return self._guarded("delete_node", lambda: self.store.remove_node(node_id)) is not None

    def update_payload(self, node_id: str, partial: dict[str, Any]) -> bool:
        return (
            self._guarded("update_payload", lambda: self.store.update_payload(node_id, partial))
            is not None
        )

    def disconnect(self, edge_id: str) -> bool:
        return self._guarded("disconnect", lambda: self.store.disconnect(edge_id)) is not None

    # ------------------------------------------------------------------
    # Viewport controls
    # ------------------------------------------------------------------

    def zoom_in(self) -> float:
        return self.viewport.zoom_in()

    def zoom_out(self) -> float:
        return self.viewport.zoom_out()

    def reset_view(self) -> None:
        self.viewport.reset()

    # ------------------------------------------------------------------
    # Pointer input
    # ------------------------------------------------------------------

    def pointer_down(self, screen_x: float, screen_y: float) -> InteractionState:
        return self.interaction.pointer_down(PointerEvent(screen_x, screen_y))

    def pointer_move(self, screen_x: float, screen_y: float) -> InteractionState:
        return self.interaction.pointer_move(PointerEvent(screen_x, screen_y))

    def pointer_up(self, screen_x: float, screen_y: float) -> InteractionState:
        return self.interaction.pointer_up(PointerEvent(screen_x, screen_y))

    def wheel(self, delta_x: float, delta_y: float, modifier: bool = False) -> None:
        self.interaction.wheel(WheelEvent(delta_x, delta_y, modifier))

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load_rule_tree(self, document: Any) -> list[ImportIssue]:
        """
        Replace the graph with one imported from ``document``.

        A document that cannot be imported at all leaves the graph as it was.

        Returns:
            Fragments that were recovered during import
        """
        self.interaction.reset()
        self._suspended = True
        try:
            result = self.importer.import_document(document, store=self.store)
        except PolicyGraphError as e:
            self._warn("load_rule_tree", e)
            return []
        finally:
            self._suspended = False
        self._recompile()
        return result.issues

    def load_graph_document(self, document: dict[str, Any]) -> bool:
        """
        Replace the graph with a serialized graph document.

        The document is rebuilt in a fresh store first; the current graph is
        only replaced when every node and edge is accepted.
        """
        try:
            loaded = deserialize_graph(
                document,
                self.catalog,
                allow_unknown_variables=self.importer.allow_unknown_variables,
            )
        except PolicyGraphError as e:
            self._warn("load_graph_document", e)
            return False
        except (KeyError, TypeError, AttributeError) as e:
            notify(
                "load_graph_document_rejected",
                "Graph document is malformed",
                details={"error": str(e)},
                sink=self.notifications.append,
            )
            return False

        self._unsubscribe()
        self.store = loaded
        self.interaction.store = loaded
        self.interaction.reset()
        self._unsubscribe = self.store.subscribe(self._on_graph_change)
        self._recompile()
        return True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _on_graph_change(self, change: GraphChange) -> None:
        if not self._suspended:
            self._recompile()

    def _recompile(self) -> None:
        self._rule_tree = compile_graph(self.store)

    def _guarded(self, action: str, operation):
        try:
            result = operation()
        except PolicyGraphError as e:
            self._warn(action, e)
            return None
        return result if result is not None else True

    def _warn(self, action: str, error: PolicyGraphError) -> None:
        notify(
            f"{action}_rejected",
            error.message,
            details=error.details,
            sink=self.notifications.append,
        )
