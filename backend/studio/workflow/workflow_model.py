"""
Workflow Data Models — nodes, edges, and the immutable graph document.

These are the serializable data structures that describe a workflow
graph while it is being edited. ``GraphDocument`` is frozen: every edit
goes through ``graph_store.reduce`` and yields a new document. Node
config and bindings are deep-copied whenever a node is rebuilt, so two
documents never share mutable state.
"""

from __future__ import annotations

import copy
import uuid
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from studio.workflow.bindings import BindingExpression, parse_bindings
from studio.workflow.errors import NodeNotFoundError


class NodeRef(BaseModel):
    """Backend registry key (and optional version) a node executes as."""

    model_config = ConfigDict(frozen=True)

    key: str
    version: Optional[int] = None


class NodeData(BaseModel):
    """Everything about a node except identity and placement."""

    model_config = ConfigDict(frozen=True)

    mode: str
    node_ref: Optional[NodeRef] = None
    config: Dict[str, Any] = Field(default_factory=dict)
    input_bindings: Dict[str, BindingExpression] = Field(default_factory=dict)
    on_error: str = "fail_fast"
    join: str = "all"
    enabled: bool = True
    implemented: bool = True
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("input_bindings", mode="before")
    @classmethod
    def _parse_bindings(cls, value: Any) -> Any:
        return {
            target: binding.model_dump()
            for target, binding in parse_bindings(value).items()
        }

    def evolve(self, **changes: Any) -> "NodeData":
        """Copy with ``changes`` applied; mutable fields are deep-copied."""
        values = {
            "mode": self.mode,
            "node_ref": self.node_ref,
            "config": copy.deepcopy(self.config),
            "input_bindings": dict(self.input_bindings),
            "on_error": self.on_error,
            "join": self.join,
            "enabled": self.enabled,
            "implemented": self.implemented,
            "metadata": copy.deepcopy(self.metadata),
        }
        for key, value in changes.items():
            if key in ("config", "metadata"):
                value = copy.deepcopy(value)
            values[key] = value
        return NodeData(**values)


class WorkflowNode(BaseModel):
    """A single step placed on the canvas.

    ``type`` references a registered ``BaseNode.node_type``.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4())[:8])
    type: str
    label: str = ""
    position: Dict[str, float] = Field(
        default_factory=lambda: {"x": 0, "y": 0}
    )
    data: NodeData

    @property
    def mode(self) -> str:
        return self.data.mode

    @property
    def node_key(self) -> str:
        return self.data.node_ref.key if self.data.node_ref else ""

    @property
    def config(self) -> Dict[str, Any]:
        return self.data.config

    @property
    def bindings(self) -> Dict[str, Any]:
        return self.data.input_bindings

    def evolve(self, **changes: Any) -> "WorkflowNode":
        """Copy with ``changes``; ``data`` defaults to a deep copy of the current one."""
        values = {
            "id": self.id,
            "type": self.type,
            "label": self.label,
            "position": dict(self.position),
            "data": self.data.evolve(),
        }
        values.update(changes)
        return WorkflowNode(**values)

    def with_data(self, **changes: Any) -> "WorkflowNode":
        return self.evolve(data=self.data.evolve(**changes))


class WorkflowEdge(BaseModel):
    """A directed edge between two nodes.

    ``source_handle`` names the branch of a routing node the edge leaves
    from (``true``/``false`` or a route key). On the wire the endpoints
    are called ``from`` and ``to``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4())[:8])
    source: str = Field(alias="from")
    target: str = Field(alias="to")
    source_handle: Optional[str] = None


class GraphDocument(BaseModel):
    """Immutable snapshot of the graph being edited."""

    model_config = ConfigDict(frozen=True)

    name: str = "Untitled Workflow"
    nodes: Tuple[WorkflowNode, ...] = ()
    edges: Tuple[WorkflowEdge, ...] = ()

    # ── Lookup ──

    def get_node(self, node_id: str) -> Optional[WorkflowNode]:
        """Find a node by ID."""
        for n in self.nodes:
            if n.id == node_id:
                return n
        return None

    def require_node(self, node_id: str) -> WorkflowNode:
        node = self.get_node(node_id)
        if node is None:
            raise NodeNotFoundError(node_id)
        return node

    def node_map(self) -> Dict[str, WorkflowNode]:
        return {n.id: n for n in self.nodes}

    def node_ids(self) -> List[str]:
        return [n.id for n in self.nodes]

    def get_edges_from(self, node_id: str) -> List[WorkflowEdge]:
        """Get all edges originating from a node."""
        return [e for e in self.edges if e.source == node_id]

    def get_edges_to(self, node_id: str) -> List[WorkflowEdge]:
        """Get all edges pointing to a node."""
        return [e for e in self.edges if e.target == node_id]

    def incoming_sources(self, node_id: str) -> List[WorkflowNode]:
        """Direct predecessors of a node, in edge order, without repeats."""
        by_id = self.node_map()
        seen = set()
        result: List[WorkflowNode] = []
        for edge in self.get_edges_to(node_id):
            if edge.source in seen or edge.source not in by_id:
                continue
            seen.add(edge.source)
            result.append(by_id[edge.source])
        return result

    def find_trigger(self) -> Optional[WorkflowNode]:
        for n in self.nodes:
            if n.type == "trigger":
                return n
        return None

    # ── Copy-on-write helpers ──

    def with_nodes(self, nodes: Iterable[WorkflowNode]) -> "GraphDocument":
        return GraphDocument(name=self.name, nodes=tuple(nodes), edges=self.edges)

    def with_edges(self, edges: Iterable[WorkflowEdge]) -> "GraphDocument":
        return GraphDocument(name=self.name, nodes=self.nodes, edges=tuple(edges))

    def replace_node(self, node: WorkflowNode) -> "GraphDocument":
        self.require_node(node.id)
        return self.with_nodes(node if n.id == node.id else n for n in self.nodes)

    # ── Validation ──

    def validate_graph(self) -> List[str]:
        """Check the structural invariants.

        Returns a list of error messages (empty = valid).
        """
        from studio.workflow.nodes import get_node_registry

        registry = get_node_registry()
        errors: List[str] = []

        seen = set()
        for node in self.nodes:
            if node.id in seen:
                errors.append(f"Duplicate node id: {node.id}")
            seen.add(node.id)

        node_types = {n.id: n.type for n in self.nodes}
        for edge in self.edges:
            if edge.source not in node_types:
                errors.append(f"Edge references unknown source node: {edge.source}")
                continue
            if edge.target not in node_types:
                errors.append(f"Edge references unknown target node: {edge.target}")
                continue
            target_type = registry.get(node_types[edge.target])
            if target_type is not None and target_type.source_only:
                errors.append(f"Node {edge.target} cannot have incoming connections.")
            source_type = registry.get(node_types[edge.source])
            if source_type is not None and source_type.terminal_only:
                errors.append(f"Node {edge.source} cannot have outgoing connections.")

        return errors
