"""
Stage Resolver — topological depth of every step.

``stage(u) < stage(v)`` for every edge ``u -> v`` of an acyclic graph.
Stages decide which steps may feed which: a step can only read from a
step at a strictly lower stage.

Sticky notes and self-loops are ignored. When the graph still contains
a cycle, the nodes left over by Kahn's pass get a deterministic
best-effort stage; pass ``strict=True`` to get ``GraphCycleError``
instead.
"""

from __future__ import annotations

from collections import deque
from logging import getLogger
from typing import Dict, Iterable, List, Mapping, Sequence

from studio.workflow.errors import GraphCycleError
from studio.workflow.nodes import get_node_registry
from studio.workflow.workflow_model import WorkflowEdge, WorkflowNode

logger = getLogger(__name__)


def _is_annotation(node: WorkflowNode) -> bool:
    node_type = get_node_registry().get(node.type)
    return bool(node_type and node_type.annotation_only)


def compute_stages(
    nodes: Sequence[WorkflowNode],
    edges: Iterable[WorkflowEdge],
    strict: bool = False,
) -> Dict[str, int]:
    """Map node id → stage.

    Raises:
        GraphCycleError: if ``strict`` and some nodes sit on a cycle.
    """
    node_ids: List[str] = [n.id for n in nodes if not _is_annotation(n)]
    node_set = set(node_ids)
    order = {node_id: i for i, node_id in enumerate(node_ids)}

    indegree: Dict[str, int] = {node_id: 0 for node_id in node_ids}
    adjacency: Dict[str, List[str]] = {node_id: [] for node_id in node_ids}
    stages: Dict[str, int] = {node_id: 0 for node_id in node_ids}

    edge_list = list(edges)
    for edge in edge_list:
        if edge.source not in node_set or edge.target not in node_set:
            continue
        if edge.source == edge.target:
            continue
        adjacency[edge.source].append(edge.target)
        indegree[edge.target] += 1

    queue = deque(node_id for node_id in node_ids if indegree[node_id] == 0)
    while queue:
        current = queue.popleft()
        for nxt in adjacency[current]:
            stages[nxt] = max(stages[nxt], stages[current] + 1)
            indegree[nxt] -= 1
            if indegree[nxt] == 0:
                queue.append(nxt)

    leftover = [node_id for node_id in node_ids if indegree[node_id] > 0]
    if not leftover:
        return stages

    if strict:
        raise GraphCycleError(leftover)

    logger.warning(f"Graph contains a cycle through {leftover}; using best-effort stages")
    for node_id in sorted(leftover, key=order.__getitem__):
        best = stages[node_id]
        for edge in edge_list:
            if edge.target == node_id and edge.source in node_set and edge.source != node_id:
                best = max(best, stages[edge.source] + 1)
        stages[node_id] = best
    return stages


def can_use_as_source(source_id: str, target_id: str, stages: Mapping[str, int]) -> bool:
    """True when ``source_id`` sits at a strictly lower stage than ``target_id``."""
    if source_id not in stages or target_id not in stages:
        return False
    return stages[source_id] < stages[target_id]
