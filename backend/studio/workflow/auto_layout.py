"""
Auto Layout — left-to-right layered placement of a DAG.

Columns are the stages from ``compute_stages``, so cycle members land
where the resolver's fallback puts them. Sticky notes have no stage and
keep their position. Within a column nodes are ordered by the mean
order index of their parents, ties broken by the previous order, and
centred vertically around ``origin.y``.
"""

from __future__ import annotations

from typing import Dict, List, Sequence, Tuple

from studio.workflow.stage_resolver import compute_stages
from studio.workflow.workflow_model import WorkflowEdge, WorkflowNode

COLUMN_GAP = 380
ROW_GAP = 180
ORIGIN = (120, 220)


def place(
    nodes: Sequence[WorkflowNode],
    edges: Sequence[WorkflowEdge],
    column_gap: float = COLUMN_GAP,
    row_gap: float = ROW_GAP,
    origin: Tuple[float, float] = ORIGIN,
) -> List[WorkflowNode]:
    """Return copies of ``nodes`` with computed positions."""
    if not nodes:
        return []

    level = compute_stages(nodes, edges)
    ids = [n.id for n in nodes if n.id in level]
    index = {node_id: i for i, node_id in enumerate(ids)}

    incoming: Dict[str, List[str]] = {i: [] for i in ids}
    for edge in edges:
        if edge.source in level and edge.target in level and edge.source != edge.target:
            incoming[edge.target].append(edge.source)

    ranked = sorted(ids, key=lambda i: (level[i], index[i]))
    order: Dict[str, int] = {node_id: rank for rank, node_id in enumerate(ranked)}

    columns: Dict[int, List[str]] = {}
    for node_id in ranked:
        columns.setdefault(level[node_id], []).append(node_id)

    for lvl in sorted(columns):
        def barycenter(node_id: str) -> Tuple[float, int]:
            parents = incoming[node_id]
            if parents:
                center = sum(order[p] for p in parents) / len(parents)
            else:
                center = order[node_id]
            return center, order[node_id]

        column = sorted(columns[lvl], key=barycenter)
        for idx, node_id in enumerate(column):
            order[node_id] = idx
        columns[lvl] = column

    base_x, base_y = origin
    placed: List[WorkflowNode] = []
    for node in nodes:
        if node.id not in level:
            placed.append(node.evolve())
            continue
        column = columns[level[node.id]]
        idx = column.index(node.id)
        offset = -((len(column) - 1) * row_gap) / 2
        placed.append(node.evolve(position={
            "x": base_x + level[node.id] * column_gap,
            "y": base_y + offset + idx * row_gap,
        }))
    return placed
