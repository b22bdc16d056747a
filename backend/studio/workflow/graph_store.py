"""
Graph Store — the single owner of the document being edited.

Every edit is a command model applied by ``reduce(document, command)``,
a pure function that returns a new ``GraphDocument``. ``GraphStore``
wraps the reducer with the current document and bounded undo/redo
stacks.

Commands:
    AddNode          — new node from catalog defaults
    DuplicateNode    — copy of an existing node, offset on the canvas
    PatchNode        — label / mode / config / bindings / enabled
    DeleteNode       — remove a node and every edge touching it
    Connect          — guarded edge add, then auto-map the target
    Disconnect       — remove one edge
    AutoMap          — re-run binding inference
    RenameWorkflow   — change the document name
    ReplaceDocument  — swap in a loaded document
"""

from __future__ import annotations

import re
from logging import getLogger
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from pydantic import BaseModel, ConfigDict

from studio.config import get_execution_config
from studio.workflow import connection_guard
from studio.workflow.binding_resolver import (
    BindingContract,
    auto_map_document,
    binding_contract,
    map_from_source,
    reconcile_bindings,
)
from studio.workflow.definition_loader import blank_document
from studio.workflow.errors import ConnectionRejectedError
from studio.workflow.nodes import get_node_registry
from studio.workflow.stage_resolver import can_use_as_source, compute_stages
from studio.workflow.workflow_model import GraphDocument, WorkflowEdge, WorkflowNode

logger = getLogger(__name__)

DUPLICATE_OFFSET = 40


# ====================================================================
# Commands
# ====================================================================


class _Command(BaseModel):
    model_config = ConfigDict(frozen=True)


class AddNode(_Command):
    type: str
    mode: Optional[str] = None
    position: Optional[Dict[str, float]] = None
    label: Optional[str] = None
    node_id: Optional[str] = None


class DuplicateNode(_Command):
    node_id: str


class PatchNode(_Command):
    """Field-level update; ``None`` leaves a field untouched.

    ``config`` and ``input_bindings`` replace the whole mapping. A mode
    change resets config to the new mode's defaults unless ``config``
    is given too.
    """

    node_id: str
    label: Optional[str] = None
    mode: Optional[str] = None
    config: Optional[Dict[str, Any]] = None
    input_bindings: Optional[Dict[str, Any]] = None
    enabled: Optional[bool] = None
    position: Optional[Dict[str, float]] = None


class DeleteNode(_Command):
    node_id: str


class Connect(_Command):
    source: str
    target: str
    handle: Optional[str] = None


class Disconnect(_Command):
    edge_id: str


class AutoMap(_Command):
    node_id: Optional[str] = None
    force: bool = False


class RenameWorkflow(_Command):
    name: str


class ReplaceDocument(_Command):
    document: GraphDocument


Command = Union[
    AddNode, DuplicateNode, PatchNode, DeleteNode, Connect,
    Disconnect, AutoMap, RenameWorkflow, ReplaceDocument,
]


# ====================================================================
# Naming
# ====================================================================


def next_auto_label(base: str, labels: Iterable[str]) -> str:
    """``base`` if unused, else ``base N`` one past the highest number seen."""
    base = base.strip() or "Step"
    pattern = re.compile(rf"^{re.escape(base)}(?: (\d+))?$")
    highest = 0
    for label in labels:
        match = pattern.match((label or "").strip())
        if match:
            highest = max(highest, int(match.group(1) or 1))
    return base if highest == 0 else f"{base} {highest + 1}"


def next_node_id(node_type: str, existing: Iterable[str]) -> str:
    used = set(existing)
    n = 1
    while f"{node_type}_{n}" in used:
        n += 1
    return f"{node_type}_{n}"


def _next_edge_id(source: str, target: str, handle: Optional[str], existing: Iterable[str]) -> str:
    base = f"edge_{source}_{target}" + (f"_{handle}" if handle else "")
    used = set(existing)
    candidate = base
    suffix = 2
    while candidate in used:
        candidate = f"{base}_{suffix}"
        suffix += 1
    return candidate


# ====================================================================
# Handlers
# ====================================================================


def _add_node(document: GraphDocument, command: AddNode) -> GraphDocument:
    node_type = get_node_registry().require(command.type)
    mode = node_type.get_mode(command.mode).value
    node = WorkflowNode(
        id=command.node_id or next_node_id(node_type.node_type, document.node_ids()),
        type=node_type.node_type,
        label=command.label or next_auto_label(node_type.label, (n.label for n in document.nodes)),
        position=dict(command.position or {"x": 0, "y": 0}),
        data=node_type.create_node_data(mode),
    )
    if document.get_node(node.id) is not None:
        raise ValueError(f"Node id already in use: {node.id}")
    return document.with_nodes(list(document.nodes) + [node])


def _duplicate_node(document: GraphDocument, command: DuplicateNode) -> GraphDocument:
    original = document.require_node(command.node_id)
    registry = get_node_registry()
    node_type = registry.get(original.type)
    base_label = node_type.label if node_type is not None else original.label
    copy_node = original.evolve(
        id=next_node_id(original.type, document.node_ids()),
        label=next_auto_label(base_label, (n.label for n in document.nodes)),
        position={
            "x": original.position.get("x", 0) + DUPLICATE_OFFSET,
            "y": original.position.get("y", 0) + DUPLICATE_OFFSET,
        },
    )
    return document.with_nodes(list(document.nodes) + [copy_node])


def _eligible_sources(document: GraphDocument, node_id: str) -> List[str]:
    stages = compute_stages(document.nodes, document.edges)
    return [n.id for n in document.nodes if can_use_as_source(n.id, node_id, stages)]


def _patch_node(document: GraphDocument, command: PatchNode) -> GraphDocument:
    node = document.require_node(command.node_id)
    changes: Dict[str, Any] = {}
    data_changes: Dict[str, Any] = {}

    if command.label is not None:
        changes["label"] = command.label
    if command.position is not None:
        changes["position"] = dict(command.position)

    mode_changed = command.mode is not None and command.mode != node.mode
    if mode_changed:
        node_type = get_node_registry().require(node.type)
        mode = get_node_registry().mode_for(node.type, command.mode).value
        fresh = node_type.create_node_data(mode)
        data_changes.update(
            mode=mode,
            node_ref=fresh.node_ref,
            implemented=fresh.implemented,
            config=fresh.config,
        )
    if command.config is not None:
        data_changes["config"] = command.config
    if command.input_bindings is not None:
        data_changes["input_bindings"] = command.input_bindings
    if command.enabled is not None:
        data_changes["enabled"] = command.enabled

    updated = node.evolve(**changes)
    if data_changes:
        updated = updated.with_data(**data_changes)

    if mode_changed and command.input_bindings is None:
        # Drop targets the new mode does not accept.
        expected = set(binding_contract(updated).expected_targets)
        kept = reconcile_bindings(
            updated.bindings, BindingContract(), _eligible_sources(document, node.id),
        )
        kept = {k: v for k, v in kept.items() if k in expected}
        updated = updated.with_data(input_bindings=kept)

    result = document.replace_node(updated)
    if mode_changed and document.get_edges_to(node.id):
        result = auto_map_document(result, node.id)
    return result


def _delete_node(document: GraphDocument, command: DeleteNode) -> GraphDocument:
    document.require_node(command.node_id)
    return GraphDocument(
        name=document.name,
        nodes=tuple(n for n in document.nodes if n.id != command.node_id),
        edges=tuple(
            e for e in document.edges
            if e.source != command.node_id and e.target != command.node_id
        ),
    )


def _connect(document: GraphDocument, command: Connect) -> GraphDocument:
    result = connection_guard.validate(document, command.source, command.target, command.handle)
    if not result.allow:
        raise ConnectionRejectedError(result)
    for edge in document.edges:
        if (edge.source, edge.target, edge.source_handle) == (command.source, command.target, command.handle):
            return document
    edge = WorkflowEdge(
        id=_next_edge_id(command.source, command.target, command.handle, (e.id for e in document.edges)),
        source=command.source,
        target=command.target,
        source_handle=command.handle,
    )
    connected = document.with_edges(list(document.edges) + [edge])
    return map_from_source(connected, command.target, command.source)


def _disconnect(document: GraphDocument, command: Disconnect) -> GraphDocument:
    remaining = [e for e in document.edges if e.id != command.edge_id]
    if len(remaining) == len(document.edges):
        logger.warning(f"Disconnect ignored, no edge with id {command.edge_id}")
        return document
    return document.with_edges(remaining)


def _auto_map(document: GraphDocument, command: AutoMap) -> GraphDocument:
    return auto_map_document(document, command.node_id, force=command.force)


def _rename(document: GraphDocument, command: RenameWorkflow) -> GraphDocument:
    return GraphDocument(name=command.name, nodes=document.nodes, edges=document.edges)


def _replace(document: GraphDocument, command: ReplaceDocument) -> GraphDocument:
    return command.document


_HANDLERS: Dict[type, Callable[[GraphDocument, Any], GraphDocument]] = {
    AddNode: _add_node,
    DuplicateNode: _duplicate_node,
    PatchNode: _patch_node,
    DeleteNode: _delete_node,
    Connect: _connect,
    Disconnect: _disconnect,
    AutoMap: _auto_map,
    RenameWorkflow: _rename,
    ReplaceDocument: _replace,
}


def reduce(document: GraphDocument, command: Command) -> GraphDocument:
    """Apply ``command`` to ``document`` and return the new document.

    Raises:
        ConnectionRejectedError: a ``Connect`` the guard refuses.
        NodeNotFoundError: a command naming a node that does not exist.
        UnknownNodeTypeError / UnknownNodeModeError: bad catalog references.
    """
    handler = _HANDLERS.get(type(command))
    if handler is None:
        raise TypeError(f"Unsupported command: {type(command).__name__}")
    return handler(document, command)


# ====================================================================
# GraphStore
# ====================================================================


class GraphStore:
    """Current document plus undo/redo history."""

    def __init__(
        self,
        document: Optional[GraphDocument] = None,
        history_limit: Optional[int] = None,
    ) -> None:
        self._document = document or blank_document()
        self._history_limit = (
            history_limit if history_limit is not None else get_execution_config().history_limit
        )
        self._undo: List[GraphDocument] = []
        self._redo: List[GraphDocument] = []

    @property
    def document(self) -> GraphDocument:
        return self._document

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    def dispatch(self, command: Command) -> GraphDocument:
        """Apply a command; failures leave the document untouched."""
        updated = reduce(self._document, command)
        if updated is self._document:
            return updated
        self._undo.append(self._document)
        if len(self._undo) > self._history_limit:
            del self._undo[: len(self._undo) - self._history_limit]
        self._redo.clear()
        self._document = updated
        logger.info(
            f"Applied {type(command).__name__}: "
            f"{len(updated.nodes)} nodes, {len(updated.edges)} edges"
        )
        return updated

    def connect(
        self, source: str, target: str, handle: Optional[str] = None,
    ) -> connection_guard.ConnectionResult:
        """Guarded connect that also reports warnings.

        Raises ``ConnectionRejectedError`` when the guard refuses.
        """
        result = connection_guard.validate(self._document, source, target, handle)
        self.dispatch(Connect(source=source, target=target, handle=handle))
        return result

    def undo(self) -> bool:
        if not self._undo:
            return False
        self._redo.append(self._document)
        self._document = self._undo.pop()
        return True

    def redo(self) -> bool:
        if not self._redo:
            return False
        self._undo.append(self._document)
        self._document = self._redo.pop()
        return True

    def reset(self, document: GraphDocument) -> None:
        """Replace the document and forget history (used after a load)."""
        self._document = document
        self._undo.clear()
        self._redo.clear()
