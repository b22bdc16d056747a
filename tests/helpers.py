"""Graph-building shortcuts shared by the tests."""

from studio.workflow.graph_store import AddNode, Connect, PatchNode, reduce
from studio.workflow.workflow_model import GraphDocument, WorkflowEdge


def add(doc, node_type, node_id, mode=None, config=None, label=None):
    """Add a node; ``config`` entries are merged over the catalog defaults."""
    doc = reduce(doc, AddNode(type=node_type, mode=mode, node_id=node_id, label=label))
    if config is not None:
        merged = dict(doc.require_node(node_id).config)
        merged.update(config)
        doc = reduce(doc, PatchNode(node_id=node_id, config=merged))
    return doc


def connect(doc, source, target, handle=None):
    """Guarded connect (auto-maps the target)."""
    return reduce(doc, Connect(source=source, target=target, handle=handle))


def raw_edge(doc, source, target, handle=None, edge_id=None):
    """Append an edge without the guard or auto-mapping."""
    edge = WorkflowEdge(
        id=edge_id or f"e_{source}_{target}",
        source=source,
        target=target,
        source_handle=handle,
    )
    return doc.with_edges(list(doc.edges) + [edge])


def chain(*steps):
    """Document of ``(type, id, mode)`` nodes connected in order with raw edges."""
    doc = GraphDocument()
    for node_type, node_id, mode in steps:
        doc = add(doc, node_type, node_id, mode)
    for (_, a, _), (_, b, _) in zip(steps, steps[1:]):
        doc = raw_edge(doc, a, b)
    return doc
