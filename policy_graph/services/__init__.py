"""
Services package for the attendance policy graph editor.

Contains the editor session aggregate that ties the graph, viewport,
interaction state machine and compiler together.
"""

from policy_graph.services.editor_session import EditorSession

__all__ = ["EditorSession"]
