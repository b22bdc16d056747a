"""
Workflow Inspector — a pre-run report of how a GraphDocument will
compile and what still needs attention.

It runs the same analysis the session runs before saving or starting
a run, but collects the results into one structured report:

* Per-node stage, catalog info, routing handles and readiness
* How each edge is wired (always vs routed) in the compiled definition
* Setup-class issues that block a run
* Run inputs that would satisfy the remaining input gaps
* A preview of the compiled definition, or the compile error
"""

from __future__ import annotations

from logging import getLogger
from typing import Any, Dict, List, Mapping, Optional

from studio.workflow.definition_compiler import compile_definition
from studio.workflow.errors import DefinitionCompileError
from studio.workflow.nodes import get_node_registry
from studio.workflow.nodes.base import NodeRegistry
from studio.workflow.readiness import (
    ReadinessIssue,
    collect_issues,
    runtime_input_requirements,
    setup_blockers,
)
from studio.workflow.stage_resolver import compute_stages
from studio.workflow.workflow_model import GraphDocument, WorkflowEdge, WorkflowNode

logger = getLogger(__name__)


# ====================================================================
# Public API
# ====================================================================


def inspect_workflow(
    document: GraphDocument,
    registry: Optional[NodeRegistry] = None,
) -> Dict[str, Any]:
    """Inspect a document and produce the pre-run report.

    Returns a dict containing:
        - ``nodes``              : Per-node detail list
        - ``edges``              : Per-edge detail list
        - ``summary``            : High-level stats
        - ``validation``         : Structural validation result
        - ``run_blockers``       : Setup-class issues
        - ``input_requirements`` : Run inputs the caller can supply
        - ``definition``         : Compiled definition, or ``None``
        - ``compile_error``      : Why compilation failed, or ``None``
    """
    reg = registry or get_node_registry()
    errors = document.validate_graph()
    stages = compute_stages(document.nodes, document.edges)
    issues = collect_issues(document)
    issues_by_node = {i.node_id: i for i in issues}

    definition: Optional[Dict[str, Any]] = None
    compile_error: Optional[str] = None
    id_map: Dict[str, str] = {}
    try:
        compiled = compile_definition(document.nodes, document.edges)
        definition = compiled.to_wire()
        id_map = dict(compiled.id_map)
    except DefinitionCompileError as e:
        compile_error = str(e)
        logger.debug(f"Inspect '{document.name}': {compile_error}")

    node_details = _build_node_details(document, reg, stages, issues_by_node, id_map)
    edge_details = _build_edge_details(document, definition, id_map)
    blockers = setup_blockers(issues)

    return {
        "nodes": node_details,
        "edges": edge_details,
        "summary": {
            "workflow_name": document.name,
            "total_nodes": len(document.nodes),
            "executable_nodes": len(id_map),
            "total_edges": len(document.edges),
            "routed_edges": sum(1 for d in edge_details if d["wiring"] == "route"),
            "stage_count": (max(stages.values()) + 1) if stages else 0,
            "issue_count": len(issues),
            "is_valid": not errors,
            "can_run": not errors and not blockers and compile_error is None,
        },
        "validation": {
            "valid": not errors,
            "errors": errors,
        },
        "run_blockers": [i.model_dump() for i in blockers],
        "input_requirements": [r.model_dump() for r in runtime_input_requirements(document)],
        "definition": definition,
        "compile_error": compile_error,
    }


# ====================================================================
# Node detail builder
# ====================================================================


def _build_node_details(
    document: GraphDocument,
    registry: NodeRegistry,
    stages: Mapping[str, int],
    issues_by_node: Mapping[str, ReadinessIssue],
    id_map: Mapping[str, str],
) -> List[Dict[str, Any]]:
    details = []
    for node in document.nodes:
        base = registry.get(node.type)
        if base is None:
            details.append({
                "id": node.id,
                "label": node.label,
                "node_type": node.type,
                "role": "unknown",
                "description": f"Unknown node type: {node.type}",
            })
            continue

        issue = issues_by_node.get(node.id)
        details.append({
            "id": node.id,
            "step_id": id_map.get(node.id),
            "label": node.label or base.label,
            "node_type": node.type,
            "mode": node.mode,
            "node_key": node.node_key or None,
            "group": base.group,
            "role": _role(node, registry),
            "stage": stages.get(node.id),
            "implemented": node.data.implemented,
            "enabled": node.data.enabled,
            "routing": base.routing_for(node.mode),
            "output_handles": base.output_handles(node.mode, node.config),
            "targets": [
                {
                    "edge_id": e.id,
                    "handle": e.source_handle,
                    "target_id": e.target,
                    "target_label": _label(document, e.target),
                }
                for e in document.get_edges_from(node.id)
            ],
            "bindings": {k: v.to_wire() for k, v in node.bindings.items()},
            "missing": issue.missing if issue else [],
            "setup_missing": issue.setup_missing if issue else [],
            "input_missing": issue.input_missing if issue else [],
        })
    return details


def _role(node: WorkflowNode, registry: NodeRegistry) -> str:
    base = registry.get(node.type)
    if base is None:
        return "unknown"
    if base.source_only:
        return "entry"
    if base.annotation_only:
        return "annotation"
    if base.builder_only:
        return "marker"
    if base.routing_for(node.mode) != "none":
        return "router"
    return "step"


def _label(document: GraphDocument, node_id: str) -> str:
    node = document.get_node(node_id)
    return (node.label or node.type) if node else node_id


# ====================================================================
# Edge detail builder
# ====================================================================


def _build_edge_details(
    document: GraphDocument,
    definition: Optional[Mapping[str, Any]],
    id_map: Mapping[str, str],
) -> List[Dict[str, Any]]:
    compiled: Dict[tuple, Dict[str, Any]] = {}
    for edge in (definition or {}).get("edges", []):
        compiled.setdefault((edge["from"], edge["to"]), edge)

    details = []
    for edge in document.edges:
        wire = compiled.get((id_map.get(edge.source), id_map.get(edge.target)))
        details.append(_edge_detail(document, edge, wire))
    return details


def _edge_detail(
    document: GraphDocument,
    edge: WorkflowEdge,
    wire: Optional[Mapping[str, Any]],
) -> Dict[str, Any]:
    if wire is None:
        wiring = "dropped"
        description = "Not part of the compiled definition"
    elif wire["when"]["type"] == "route":
        wiring = "route"
        description = f"Taken when the route equals \"{wire['when']['equals']}\""
    else:
        wiring = "always"
        description = "Always taken"
    return {
        "id": edge.id,
        "source": edge.source,
        "source_label": _label(document, edge.source),
        "target": edge.target,
        "target_label": _label(document, edge.target),
        "handle": edge.source_handle,
        "wiring": wiring,
        "description": description,
    }
