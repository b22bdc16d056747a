"""
Workflow Studio — graph composition and validation engine.

Provides the infrastructure for authoring workflow graphs out of typed
steps, checking them as they are edited, and compiling them into the
execution definition the workflow backend runs.

Architecture:
    nodes/              — BaseNode + NodeRegistry and the node catalog
    workflow_model      — Nodes, edges, and the immutable GraphDocument
    bindings            — Binding expressions (run input / step output / constant)
    graph_store         — Command reducer with undo/redo
    connection_guard    — Admission check for proposed edges
    stage_resolver      — Topological stages
    binding_resolver    — Auto-mapping of input bindings
    readiness           — Per-step readiness diagnostics
    definition_compiler — GraphDocument → execution definition
    definition_loader   — Execution definition → GraphDocument
    auto_layout         — Layered left-to-right placement
    workflow_inspector  — Pre-run report
    templates           — Pre-built starter workflows
    backend_client      — HTTP client for the workflow backend
    session             — Save / run / poll / load against the backend
"""

from studio.workflow.nodes.base import (
    BaseNode,
    NodeMode,
    NodeRegistry,
    get_node_registry,
)
from studio.workflow.errors import (
    BackendError,
    ConnectionRejectedError,
    DefinitionCompileError,
    GraphCycleError,
    NodeNotFoundError,
    RunBlockedError,
    UnknownNodeModeError,
    UnknownNodeTypeError,
    WorkflowStudioError,
)
from studio.workflow.workflow_model import (
    GraphDocument,
    NodeData,
    NodeRef,
    WorkflowEdge,
    WorkflowNode,
)
from studio.workflow.bindings import (
    ConstantBinding,
    RunInputBinding,
    StepOutputBinding,
    parse_binding,
)
from studio.workflow.connection_guard import ConnectionResult, validate as validate_connection
from studio.workflow.stage_resolver import can_use_as_source, compute_stages
from studio.workflow.binding_resolver import auto_map_document, resolve_bindings
from studio.workflow.readiness import ReadinessIssue, collect_issues, evaluate
from studio.workflow.definition_compiler import CompiledDefinition, compile_definition
from studio.workflow.definition_loader import blank_document, load_definition
from studio.workflow.auto_layout import place
from studio.workflow.graph_store import GraphStore, reduce
from studio.workflow.workflow_inspector import inspect_workflow
from studio.workflow.backend_client import HttpWorkflowBackend, WorkflowBackend
from studio.workflow.session import WorkflowSession

__all__ = [
    "BaseNode",
    "NodeMode",
    "NodeRegistry",
    "get_node_registry",
    "WorkflowStudioError",
    "UnknownNodeTypeError",
    "UnknownNodeModeError",
    "NodeNotFoundError",
    "ConnectionRejectedError",
    "GraphCycleError",
    "DefinitionCompileError",
    "BackendError",
    "RunBlockedError",
    "GraphDocument",
    "NodeData",
    "NodeRef",
    "WorkflowEdge",
    "WorkflowNode",
    "ConstantBinding",
    "RunInputBinding",
    "StepOutputBinding",
    "parse_binding",
    "ConnectionResult",
    "validate_connection",
    "compute_stages",
    "can_use_as_source",
    "resolve_bindings",
    "auto_map_document",
    "ReadinessIssue",
    "collect_issues",
    "evaluate",
    "CompiledDefinition",
    "compile_definition",
    "load_definition",
    "blank_document",
    "place",
    "GraphStore",
    "reduce",
    "inspect_workflow",
    "WorkflowBackend",
    "HttpWorkflowBackend",
    "WorkflowSession",
]
