"""
Definition Loader — execution definition → editable GraphDocument.

The inverse of ``definition_compiler``. Each node's studio type is
resolved from ``node_ref.key`` / ``node_type`` / ``type`` through the
catalog (unknown keys load as a generic function step), catalog
defaults fill in what the definition leaves out, and trigger sample
inputs are cleared. Schema-version-2 definitions are auto-laid-out.
"""

from __future__ import annotations

import copy
import math
from logging import getLogger
from typing import Any, Dict, List, Mapping, Optional

from studio.workflow.auto_layout import place
from studio.workflow.bindings import parse_bindings
from studio.workflow.nodes import get_node_registry
from studio.workflow.workflow_model import GraphDocument, NodeRef, WorkflowEdge, WorkflowNode

logger = getLogger(__name__)

BLANK_TRIGGER_ID = "trigger_1"
BLANK_TRIGGER_POSITION = {"x": 80, "y": 170}


def _text(value: Any) -> str:
    return str(value if value is not None else "").strip()


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _position(raw: Mapping[str, Any], index: int) -> Dict[str, float]:
    ui_position = _mapping(_mapping(_mapping(raw.get("metadata")).get("ui")).get("position"))
    position = ui_position or _mapping(raw.get("position"))
    if position:
        return {"x": position.get("x", 0), "y": position.get("y", 0)}
    return {"x": 100 + index * 380, "y": 200}


def _version(value: Any) -> Optional[int]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number <= 0:
        return None
    return int(number)


def load_node(raw: Mapping[str, Any], index: int) -> WorkflowNode:
    """Build one studio node from a definition node."""
    registry = get_node_registry()
    raw_ref = _mapping(raw.get("node_ref")) or _mapping(raw.get("nodeRef"))
    raw_key = _text(raw_ref.get("key")) or _text(raw.get("node_type")) or _text(raw.get("type"))
    node_type_name, mode, implemented = registry.resolve_node_key(raw_key)
    node_type = registry.require(node_type_name)
    defaults = node_type.create_node_data(mode)

    node_id = _text(raw.get("id")) or f"{node_type_name}_{index + 1}"
    label = (
        _text(raw.get("title")) or _text(raw.get("label")) or _text(raw.get("name")) or node_id
    )

    config = copy.deepcopy(dict(raw["config"])) if isinstance(raw.get("config"), Mapping) else defaults.config
    if node_type.source_only:
        config["input"] = {}
    if node_type_name == "human" and isinstance(raw.get("assignee"), Mapping):
        config["assignee"] = copy.deepcopy(dict(raw["assignee"]))

    bindings = parse_bindings(copy.deepcopy(raw.get("input_bindings")))

    catalog_key = node_type.node_key_for(mode) or ""
    if raw_key and raw_key.lower() != catalog_key.lower() and node_type_name == registry.FALLBACK_TYPE:
        # Keys the catalog does not know keep their own identity.
        catalog_key = raw_key
    node_ref = defaults.node_ref
    ref_key = _text(raw_ref.get("key")) or catalog_key
    if not node_type.builder_only and ref_key:
        node_ref = NodeRef(key=ref_key, version=_version(raw_ref.get("version")))

    data = defaults.evolve(
        config=config,
        input_bindings=bindings,
        node_ref=node_ref,
        enabled=raw.get("enabled") is not False,
        implemented=implemented,
        join=_text(raw.get("join")) or defaults.join,
        on_error=_text(raw.get("on_error")) or defaults.on_error,
    )
    return WorkflowNode(
        id=node_id,
        type=node_type_name,
        label=label,
        position=_position(raw, index),
        data=data,
    )


def load_edges(raw_edges: Any) -> List[WorkflowEdge]:
    edges: List[WorkflowEdge] = []
    for index, raw in enumerate(raw_edges if isinstance(raw_edges, list) else []):
        raw = _mapping(raw)
        source = _text(raw.get("from") or raw.get("source"))
        target = _text(raw.get("to") or raw.get("target"))
        if not source or not target or source == target:
            continue
        when = _mapping(raw.get("when"))
        handle: Optional[str] = None
        if _text(when.get("type")).lower() == "route":
            equals = _text(when.get("equals"))
            handle = equals.lower() if equals.lower() in ("true", "false") else (equals or None)
        edges.append(WorkflowEdge(
            id=_text(raw.get("id")) or f"edge_{index + 1}",
            source=source,
            target=target,
            source_handle=handle,
        ))
    return edges


def _connectable(nodes: List[WorkflowNode], edges: List[WorkflowEdge]) -> List[WorkflowEdge]:
    """Edges the loaded nodes can hold: both endpoints exist, the target
    accepts incoming connections and the source allows outgoing ones."""
    registry = get_node_registry()
    types = {n.id: registry.get(n.type) for n in nodes}
    kept = []
    for edge in edges:
        if edge.source not in types or edge.target not in types:
            continue
        source_type, target_type = types[edge.source], types[edge.target]
        if target_type is not None and target_type.source_only:
            continue
        if source_type is not None and source_type.terminal_only:
            continue
        kept.append(edge)
    if len(kept) < len(edges):
        logger.warning(f"Dropped {len(edges) - len(kept)} edge(s) the loaded nodes cannot hold")
    return kept


def blank_document(name: str = "Untitled Workflow") -> GraphDocument:
    """Document holding a single default trigger."""
    trigger = get_node_registry().require("trigger")
    node = WorkflowNode(
        id=BLANK_TRIGGER_ID,
        type="trigger",
        label=trigger.label,
        position=dict(BLANK_TRIGGER_POSITION),
        data=trigger.create_node_data(),
    )
    return GraphDocument(name=name, nodes=(node,))


def load_definition(definition: Any, name: str = "Untitled Workflow") -> GraphDocument:
    """Turn an execution definition into an editable document."""
    definition = _mapping(definition)
    raw_nodes = definition.get("nodes") if isinstance(definition.get("nodes"), list) else []
    nodes = [load_node(_mapping(raw), i) for i, raw in enumerate(raw_nodes)]
    edges = load_edges(definition.get("edges"))

    if not nodes:
        nodes = list(blank_document().nodes)
        return GraphDocument(name=name, nodes=tuple(nodes), edges=tuple(_connectable(nodes, edges)))

    edges = _connectable(nodes, edges)

    try:
        schema_version = int(definition.get("schema_version") or 1)
    except (TypeError, ValueError):
        schema_version = 1
    if schema_version == 2:
        nodes = place(nodes, edges)

    logger.debug(f"Loaded definition '{name}': {len(nodes)} nodes, {len(edges)} edges")
    return GraphDocument(name=name, nodes=tuple(nodes), edges=tuple(edges))


def run_input_patch(run_input: Any) -> Dict[str, Any]:
    """Trigger input values recovered from a past run's input."""
    run_input = _mapping(run_input)
    raw_ids = run_input.get("doc_ids")
    if isinstance(raw_ids, list):
        doc_ids = [str(x) for x in raw_ids if str(x or "").strip()]
    elif run_input.get("doc_id"):
        doc_ids = [str(run_input["doc_id"])]
    else:
        doc_ids = []

    patch: Dict[str, Any] = {}
    if doc_ids:
        patch["doc_ids"] = doc_ids
        patch["doc_id"] = doc_ids[0]
    folder_path = run_input.get("folder_path")
    if isinstance(folder_path, str) and folder_path:
        patch["folder_path"] = folder_path
    return patch


def apply_run_input(document: GraphDocument, run_input: Any) -> GraphDocument:
    """Merge a past run's input into every trigger's sample input."""
    patch = run_input_patch(run_input)
    if not patch:
        return document
    nodes = []
    for node in document.nodes:
        if node.type == "trigger":
            config = dict(node.config)
            existing = config.get("input") if isinstance(config.get("input"), dict) else {}
            config["input"] = {**existing, **patch}
            node = node.with_data(config=config)
        nodes.append(node)
    return document.with_nodes(nodes)
