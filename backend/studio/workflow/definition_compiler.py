"""
Definition Compiler — GraphDocument → execution definition.

Produces the ``schema_version: 2`` / ``custom.workflow`` wire format the
execution backend consumes:

1. Step ids are sanitized to ``^[A-Za-z][A-Za-z0-9_-]*$`` and made
   unique (``_2``, ``_3``…); the old → new mapping is kept.
2. Builder-only steps (notes, end markers) and steps with no resolvable
   node key are dropped.
3. Edges are translated, dangling edges and self-loops dropped, and
   route handles turned into ``when`` conditions.
4. A graph with several steps and no edges becomes a sequential chain.
5. Entry nodes are the steps without incoming edges.
"""

from __future__ import annotations

import copy
import math
import re
from logging import getLogger
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set

from pydantic import BaseModel, Field

from studio.config import get_execution_config
from studio.workflow.bindings import serialize_bindings
from studio.workflow.errors import DefinitionCompileError
from studio.workflow.nodes import get_node_registry
from studio.workflow.workflow_model import WorkflowEdge, WorkflowNode

logger = getLogger(__name__)

SCHEMA_VERSION = 2
DEFINITION_TYPE = "custom.workflow"
EMPTY_DEFINITION_MESSAGE = "Add at least one executable step before saving."
TRIGGER_NODE_KEYS = ("manual.trigger", "chat.trigger")
STEP_ID_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_-]*$")


class ExecutionPolicy(BaseModel):
    max_parallelism: int = 2
    on_node_failure: str = "fail_fast"

    @classmethod
    def from_config(cls) -> "ExecutionPolicy":
        config = get_execution_config()
        return cls(
            max_parallelism=config.max_parallelism,
            on_node_failure=config.on_node_failure,
        )


class CompiledDefinition(BaseModel):
    """Execution definition plus the id mapping used to build it."""

    schema_version: int = SCHEMA_VERSION
    type: str = DEFINITION_TYPE
    nodes: List[Dict[str, Any]] = Field(default_factory=list)
    edges: List[Dict[str, Any]] = Field(default_factory=list)
    entry_nodes: List[str] = Field(default_factory=list)
    execution: Dict[str, Any] = Field(default_factory=dict)
    id_map: Dict[str, str] = Field(default_factory=dict, exclude=True)

    @property
    def definition_mode(self) -> str:
        return infer_definition_mode(self.to_wire())

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump()


# ====================================================================
# Ids
# ====================================================================


def sanitize_step_id(value: Any) -> str:
    """Whitespace and invalid characters → ``_``; non-letter start → ``step_``."""
    raw = str(value or "").strip()
    if not raw:
        return ""
    normalized = re.sub(r"\s+", "_", raw)
    normalized = re.sub(r"[^A-Za-z0-9_-]", "_", normalized)
    normalized = re.sub(r"_+", "_", normalized)
    if not normalized:
        return ""
    if not re.match(r"^[A-Za-z]", normalized):
        return f"step_{normalized}"
    return normalized


def _unique(preferred: str, used: Set[str]) -> str:
    candidate = preferred
    suffix = 2
    while candidate in used:
        candidate = f"{preferred}_{suffix}"
        suffix += 1
    used.add(candidate)
    return candidate


# ====================================================================
# Nodes
# ====================================================================


def resolve_node_key(node: WorkflowNode) -> str:
    """Backend node key a step compiles to; empty when it is not executable."""
    node_type = get_node_registry().get(node.type)
    if node_type is not None and node_type.builder_only:
        return ""
    ref_key = node.node_key.strip()
    if ref_key:
        return ref_key
    if node_type is None:
        return ""
    return str(node_type.node_key_for(node.mode) or "").strip()


def _valid_version(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value) or value <= 0:
        return None
    return int(value)


def _compile_node(node: WorkflowNode, step_id: str, node_key: str) -> Dict[str, Any]:
    data = node.data
    compiled: Dict[str, Any] = {
        "id": step_id,
        "node_type": node_key,
        "title": (node.label or step_id).strip() or step_id,
    }

    if data.node_ref is not None and data.node_ref.key.strip():
        ref: Dict[str, Any] = {"key": data.node_ref.key.strip()}
        version = _valid_version(data.node_ref.version)
        if version is not None:
            ref["version"] = version
        compiled["node_ref"] = ref

    config = copy.deepcopy(data.config)
    if node_key.lower() in TRIGGER_NODE_KEYS:
        config["input"] = {}
    if config:
        compiled["config"] = config

    bindings = serialize_bindings(data.input_bindings)
    if bindings:
        compiled["input_bindings"] = copy.deepcopy(bindings)

    if node.type == "human" and isinstance(data.config.get("assignee"), dict):
        compiled["assignee"] = copy.deepcopy(data.config["assignee"])

    if not data.enabled:
        compiled["enabled"] = False

    metadata = copy.deepcopy(data.metadata)
    ui = metadata.get("ui") if isinstance(metadata.get("ui"), dict) else {}
    ui["position"] = dict(node.position)
    metadata["ui"] = ui
    compiled["metadata"] = metadata
    return compiled


# ====================================================================
# Edges
# ====================================================================


def _when(source_key: str, handle: str) -> Dict[str, Any]:
    routing = _routing_for_key(source_key)
    if routing == "branch":
        handle = handle.lower()
    if handle and routing in ("branch", "route"):
        return {"type": "route", "equals": handle}
    return {"type": "always"}


def _routing_for_key(node_key: str) -> str:
    registry = get_node_registry()
    node_type, mode, _ = registry.resolve_node_key(node_key)
    if registry.node_key_for(node_type, mode) != node_key.lower():
        return "none"
    return registry.require(node_type).routing_for(mode)


def _compile_edges(
    edges: Sequence[WorkflowEdge],
    id_map: Mapping[str, str],
    key_by_original_id: Mapping[str, str],
) -> List[Dict[str, Any]]:
    used: Set[str] = set()
    output: List[Dict[str, Any]] = []

    for index, edge in enumerate(edges):
        raw_from = str(edge.source or "").strip()
        raw_to = str(edge.target or "").strip()
        source = id_map.get(raw_from)
        target = id_map.get(raw_to)
        if not source or not target or source == target:
            continue

        preferred = sanitize_step_id(edge.id or f"{source}_{target}_{index + 1}") or f"edge_{index + 1}"
        handle = str(edge.source_handle or "").strip()
        output.append({
            "id": _unique(preferred, used),
            "from": source,
            "to": target,
            "when": _when(key_by_original_id.get(raw_from, "").lower(), handle),
        })
    return output


def sequential_edges(node_ids: Sequence[str]) -> List[Dict[str, Any]]:
    ids = [str(n or "").strip() for n in node_ids if str(n or "").strip()]
    return [
        {
            "id": sanitize_step_id(f"{a}_to_{b}_{i + 1}") or f"edge_{i + 1}",
            "from": a,
            "to": b,
            "when": {"type": "always"},
        }
        for i, (a, b) in enumerate(zip(ids, ids[1:]))
    ]


# ====================================================================
# Public API
# ====================================================================


def compile_definition(
    nodes: Sequence[WorkflowNode],
    edges: Sequence[WorkflowEdge],
    policy: Optional[ExecutionPolicy] = None,
) -> CompiledDefinition:
    """Compile the graph into the execution definition.

    Raises:
        DefinitionCompileError: when no executable step remains.
    """
    policy = policy or ExecutionPolicy.from_config()

    compiled_nodes: List[Dict[str, Any]] = []
    id_map: Dict[str, str] = {}
    key_by_original_id: Dict[str, str] = {}
    used: Set[str] = set()

    for index, node in enumerate(nodes):
        original_id = str(node.id or "").strip() or f"step_{index + 1}"
        node_key = resolve_node_key(node)
        if not node_key:
            continue
        preferred = (
            sanitize_step_id(original_id)
            or sanitize_step_id(node.label or "step")
            or f"step_{index + 1}"
        )
        step_id = _unique(preferred, used)
        id_map[original_id] = step_id
        key_by_original_id[original_id] = node_key
        compiled_nodes.append(_compile_node(node, step_id, node_key))

    if not compiled_nodes:
        raise DefinitionCompileError(EMPTY_DEFINITION_MESSAGE)

    node_ids = [n["id"] for n in compiled_nodes]
    compiled_edges = _compile_edges(edges, id_map, key_by_original_id)
    if not compiled_edges and len(node_ids) > 1:
        compiled_edges = sequential_edges(node_ids)

    incoming = {node_id: 0 for node_id in node_ids}
    for edge in compiled_edges:
        if edge["to"] in incoming:
            incoming[edge["to"]] += 1
    entry_nodes = [node_id for node_id in node_ids if incoming[node_id] == 0] or [node_ids[0]]

    logger.debug(
        f"Compiled definition: {len(compiled_nodes)} nodes, {len(compiled_edges)} edges, "
        f"entry={entry_nodes}"
    )
    return CompiledDefinition(
        nodes=compiled_nodes,
        edges=compiled_edges,
        entry_nodes=entry_nodes,
        execution=policy.model_dump(),
        id_map=id_map,
    )


def infer_definition_mode(definition: Mapping[str, Any]) -> str:
    """``registry`` when every typed node carries a ``node_ref``, ``legacy``
    when none does, ``mixed`` otherwise."""
    has_registry = False
    has_legacy = False
    nodes = definition.get("nodes") if isinstance(definition, Mapping) else None
    for node in nodes or []:
        if not isinstance(node, Mapping):
            continue
        ref = node.get("node_ref")
        has_ref = isinstance(ref, Mapping) and bool(str(ref.get("key") or "").strip())
        has_type = bool(str(node.get("node_type") or "").strip())
        if has_ref:
            has_registry = True
        if has_type and not has_ref:
            has_legacy = True
    if has_registry and has_legacy:
        return "mixed"
    if has_registry:
        return "registry"
    return "legacy"
