"""
Connection Guard — admission check for a proposed edge.

Rules, first match wins:

1. Unknown endpoint → error; a self-connection is reported as a loop.
2. Target admits no incoming edges (trigger) → error.
3. Source admits no outgoing edges (end marker) → error.
4. The edge would close a loop (self-connections included) → error.
5. Otherwise allowed; a warning is attached when the source's
   capabilities do not cover what the target needs.

The guard is pure: it never mutates the document and never raises.
"""

from __future__ import annotations

from logging import getLogger
from typing import Iterable, List, Literal, Optional, Set

from pydantic import BaseModel, Field

from studio.workflow.nodes import get_node_registry
from studio.workflow.nodes.base import Capability, NEED_LABELS, need_satisfied
from studio.workflow.workflow_model import GraphDocument, WorkflowEdge, WorkflowNode

logger = getLogger(__name__)

MSG_UNKNOWN = "Cannot connect these steps."
MSG_TRIGGER_INCOMING = "Trigger cannot have incoming connections."
MSG_END_OUTGOING = "End marker cannot connect to another step."
MSG_CYCLE = "This connection creates a loop. Use only forward flow steps."

END_SUGGESTIONS = ["Use End Marker as the final visual step only."]


class ConnectionResult(BaseModel):
    """Outcome of a connection attempt."""

    allow: bool
    level: Literal["error", "warning", "info"] = "info"
    message: Optional[str] = None
    suggestions: List[str] = Field(default_factory=list)


# ====================================================================
# Graph walks
# ====================================================================


def creates_cycle(source_id: str, target_id: str, edges: Iterable[WorkflowEdge]) -> bool:
    """True when adding ``source_id -> target_id`` would close a loop."""
    if source_id == target_id:
        return True
    edge_list = list(edges)
    stack = [target_id]
    seen: Set[str] = set()
    while stack:
        current = stack.pop()
        if current == source_id:
            return True
        if current in seen:
            continue
        seen.add(current)
        stack.extend(e.target for e in edge_list if e.source == current)
    return False


def collect_upstream(target_id: str, edges: Iterable[WorkflowEdge]) -> Set[str]:
    """Every node with a path to ``target_id``."""
    edge_list = list(edges)
    upstream: Set[str] = set()
    stack = [target_id]
    while stack:
        current = stack.pop()
        for edge in edge_list:
            if edge.target != current or edge.source in upstream:
                continue
            upstream.add(edge.source)
            stack.append(edge.source)
    return upstream


# ====================================================================
# Capability check
# ====================================================================


def suggested_next(node: WorkflowNode) -> List[str]:
    node_type = get_node_registry().get(node.type)
    if node_type is None:
        return []
    return node_type.suggestions_for(node.mode)


def missing_capabilities(source: WorkflowNode, target: WorkflowNode) -> List[str]:
    """Labels of the target's needs the source cannot produce."""
    registry = get_node_registry()
    source_mode = registry.lookup_mode(source.type, source.mode)
    target_mode = registry.lookup_mode(target.type, target.mode)
    if source_mode is None or target_mode is None:
        return []
    produces = frozenset(source_mode.produces)
    if not target_mode.needs or Capability.ANY in produces:
        return []

    missing: List[str] = []
    for need in target_mode.needs:
        label = NEED_LABELS[need]
        if not need_satisfied(need, produces) and label not in missing:
            missing.append(label)
    return missing


# ====================================================================
# Public API
# ====================================================================


def check_nodes(
    source: Optional[WorkflowNode],
    target: Optional[WorkflowNode],
) -> ConnectionResult:
    """Type-level rules only (no graph walk)."""
    if source is None or target is None:
        return ConnectionResult(allow=False, level="error", message=MSG_UNKNOWN)

    registry = get_node_registry()
    target_type = registry.get(target.type)
    source_type = registry.get(source.type)

    if target_type is not None and target_type.source_only:
        return ConnectionResult(
            allow=False,
            level="error",
            message=MSG_TRIGGER_INCOMING,
            suggestions=suggested_next(source),
        )

    if source_type is not None and source_type.terminal_only:
        return ConnectionResult(
            allow=False,
            level="error",
            message=MSG_END_OUTGOING,
            suggestions=list(END_SUGGESTIONS),
        )

    missing = missing_capabilities(source, target)
    if not missing:
        return ConnectionResult(allow=True)

    return ConnectionResult(
        allow=True,
        level="warning",
        message=f"This connection may need manual mapping for {', '.join(missing)}.",
        suggestions=suggested_next(source),
    )


def validate(
    document: GraphDocument,
    source_id: str,
    target_id: str,
    handle: Optional[str] = None,
) -> ConnectionResult:
    """Decide whether ``source_id -> target_id`` may be added to ``document``.

    ``handle`` is the source handle the edge is drawn from; it does not
    affect admission.
    """
    source = document.get_node(source_id)
    target = document.get_node(target_id)

    if source is None or target is None:
        result = ConnectionResult(allow=False, level="error", message=MSG_UNKNOWN)
    elif source_id == target_id:
        result = ConnectionResult(allow=False, level="error", message=MSG_CYCLE)
    else:
        result = check_nodes(source, target)
        if result.allow and creates_cycle(source_id, target_id, document.edges):
            result = ConnectionResult(allow=False, level="error", message=MSG_CYCLE)

    logger.debug(
        f"Guard {source_id} -> {target_id}"
        f"{f' [{handle}]' if handle else ''}: allow={result.allow} level={result.level}"
    )
    return result
