"""
Builder Nodes — canvas-only helpers that never reach the backend.
"""

from __future__ import annotations

from studio.workflow.nodes.base import BaseNode, NodeMode, register_node


@register_node
class NoteNode(BaseNode):
    """Sticky note. Ignored by stage computation and dropped on compile."""

    node_type = "note"
    label = "Sticky Note"
    description = "Builder-only annotation. Not executable."
    group = "builder"
    icon = "📝"
    color = "#f59e0b"
    builder_only = True
    annotation_only = True

    modes = [
        NodeMode(value="note", label="Note", default_config={"content": "Add your note"}),
    ]


@register_node
class EndNode(BaseNode):
    """Visual end marker; may only terminate a path."""

    node_type = "end"
    label = "End Marker"
    description = "Builder-only visual end marker."
    group = "builder"
    icon = "⏹"
    color = "#f43f5e"
    builder_only = True
    terminal_only = True

    modes = [
        NodeMode(value="end", label="End", default_config={"final_status": "completed"}),
    ]
