"""Property tests over randomly edited graphs."""

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from studio.workflow.binding_resolver import auto_map_document
from studio.workflow.definition_compiler import STEP_ID_PATTERN, compile_definition, sanitize_step_id
from studio.workflow.errors import ConnectionRejectedError
from studio.workflow.graph_store import AddNode, Connect, reduce
from studio.workflow.stage_resolver import compute_stages
from studio.workflow.workflow_model import GraphDocument

STEP_KINDS = [
    ("ai", "generate"),
    ("ai", "extract"),
    ("ai", "classify"),
    ("records", "list_folder"),
    ("records", "read_document"),
    ("document", "create"),
    ("checks", "validate"),
    ("flow", "if_else"),
    ("flow", "router"),
    ("human", "review"),
    ("output", "export_csv"),
    ("end", None),
]

edits = st.tuples(
    st.lists(st.sampled_from(STEP_KINDS), min_size=1, max_size=8),
    st.lists(st.tuples(st.integers(0, 8), st.integers(0, 8)), max_size=20),
)


def _build(kinds, attempts):
    doc = reduce(GraphDocument(), AddNode(type="trigger", node_id="start"))
    for node_type, mode in kinds:
        doc = reduce(doc, AddNode(type=node_type, mode=mode))
    ids = doc.node_ids()
    for a, b in attempts:
        source, target = ids[a % len(ids)], ids[b % len(ids)]
        try:
            doc = reduce(doc, Connect(source=source, target=target))
        except ConnectionRejectedError:
            pass
    return doc


@settings(max_examples=60, deadline=None, suppress_health_check=[HealthCheck.too_slow])
@given(edits)
def test_guarded_graphs_stay_acyclic_and_staged(data):
    doc = _build(*data)
    stages = compute_stages(doc.nodes, doc.edges, strict=True)
    for edge in doc.edges:
        assert stages[edge.source] < stages[edge.target]
    assert all(e.target != "start" for e in doc.edges)
    assert doc.validate_graph() == []


@settings(max_examples=60, deadline=None, suppress_health_check=[HealthCheck.too_slow])
@given(edits)
def test_compiled_ids_are_valid_and_unique(data):
    doc = _build(*data)
    compiled = compile_definition(doc.nodes, doc.edges)
    ids = [n["id"] for n in compiled.nodes]
    assert len(ids) == len(set(ids))
    assert all(STEP_ID_PATTERN.match(i) for i in ids)
    for edge in compiled.edges:
        assert edge["from"] in ids and edge["to"] in ids
    assert set(compiled.entry_nodes) <= set(ids)


@settings(max_examples=60, deadline=None, suppress_health_check=[HealthCheck.too_slow])
@given(edits)
def test_auto_mapping_is_idempotent(data):
    doc = auto_map_document(_build(*data))
    assert auto_map_document(doc) == doc


@given(st.text(max_size=30))
def test_sanitized_ids_match_the_grammar(raw):
    step_id = sanitize_step_id(raw)
    assert step_id == "" or STEP_ID_PATTERN.match(step_id)
